import logging

from fastapi import APIRouter, Depends, Request, status

from streamtape_relay.adapters.provider import StreamtapeClient
from streamtape_relay.dependencies import get_provider
from streamtape_relay.schemas import ErrorResponse, UploadResponse
from streamtape_relay.services.upload import UploadPipeline
from streamtape_relay.services.upload.normalizer import success_response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse, "description": "No file in the request."},
        status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse, "description": "Transfer aborted."},
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse, "description": "Streamtape rejected the upload."},
        status.HTTP_504_GATEWAY_TIMEOUT: {"model": ErrorResponse, "description": "Streamtape timed out; try again."},
    },
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {
                "multipart/form-data": {
                    "schema": {
                        "type": "object",
                        "required": ["videoFile"],
                        "properties": {"videoFile": {"type": "string", "format": "binary"}},
                    }
                }
            },
        }
    },
)
async def upload_video(
    request: Request,
    provider: StreamtapeClient = Depends(get_provider),
) -> UploadResponse:
    """
    Relay an uploaded video to Streamtape.

    The body is parsed here rather than by FastAPI so the file can be
    forwarded while it is still arriving.
    """
    pipeline = UploadPipeline(provider)
    upload = await pipeline.run(request)
    pipeline.mark_responded()
    return success_response(upload)
