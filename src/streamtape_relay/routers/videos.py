import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from streamtape_relay.adapters.provider import StreamtapeClient
from streamtape_relay.dependencies import get_provider
from streamtape_relay.errors import MissingParameterError
from streamtape_relay.schemas import (
    DownloadLinkResponse,
    DownloadTicketResponse,
    ErrorResponse,
    RemoteUploadRequest,
    RemoteUploadResponse,
    RemoteUploadStatusResponse,
    ThumbnailResponse,
    VideoListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
}


@router.get("/videos", response_model=VideoListResponse, responses=ERROR_RESPONSES)
async def list_videos(provider: StreamtapeClient = Depends(get_provider)):
    """List converted videos in the configured Streamtape folder."""
    videos = await provider.list_videos()
    return VideoListResponse(videos=videos)


@router.get("/videos/{link_id}/thumbnail", response_model=ThumbnailResponse, responses=ERROR_RESPONSES)
async def get_thumbnail(
    link_id: str = Path(..., description="Streamtape link id"),
    provider: StreamtapeClient = Depends(get_provider),
):
    thumbnail_url = await provider.get_thumbnail(link_id)
    return ThumbnailResponse(thumbnail_url=thumbnail_url)


@router.get("/videos/{link_id}/download-ticket", response_model=DownloadTicketResponse, responses=ERROR_RESPONSES)
async def get_download_ticket(
    link_id: str = Path(..., description="Streamtape link id"),
    provider: StreamtapeClient = Depends(get_provider),
):
    """First step of a direct download: a ticket plus the wait before it can be redeemed."""
    ticket = await provider.get_download_ticket(link_id)
    return DownloadTicketResponse(**ticket)


@router.get(
    "/videos/{link_id}/download-link",
    response_model=DownloadLinkResponse,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}, **ERROR_RESPONSES},
)
async def get_download_link(
    link_id: str = Path(..., description="Streamtape link id"),
    ticket: Optional[str] = Query(None, description="Ticket from the download-ticket endpoint"),
    provider: StreamtapeClient = Depends(get_provider),
):
    """Redeem a download ticket for a direct URL."""
    if not ticket:
        raise MissingParameterError("Download ticket is required.")
    link = await provider.get_download_link(link_id, ticket)
    return DownloadLinkResponse(download_url=link["url"], filename=link["name"])


@router.post(
    "/remote-upload",
    response_model=RemoteUploadResponse,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}, **ERROR_RESPONSES},
)
async def start_remote_upload(
    body: RemoteUploadRequest,
    provider: StreamtapeClient = Depends(get_provider),
):
    """Have Streamtape fetch a file from a public URL into the configured folder."""
    if not body.url:
        raise MissingParameterError("Remote URL is required.")
    remote = await provider.add_remote_upload(body.url, body.name)
    logger.info(f"Remote upload {remote['id']} queued for {body.url}")
    return RemoteUploadResponse(remote_upload_id=remote["id"], folder_id=remote["folderid"])


@router.get(
    "/remote-upload-status/{remote_id}",
    response_model=RemoteUploadStatusResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}, **ERROR_RESPONSES},
)
async def get_remote_upload_status(
    remote_id: str = Path(..., description="Remote upload id"),
    provider: StreamtapeClient = Depends(get_provider),
):
    entry = await provider.get_remote_upload_status(remote_id)
    return RemoteUploadStatusResponse(
        status=entry.get("status"),
        bytes_loaded=entry.get("bytes_loaded"),
        bytes_total=entry.get("bytes_total"),
        remote_url=entry.get("remoteurl"),
        # Streamtape reports false until the file exists
        streamtape_url=entry.get("url") or None,
    )
