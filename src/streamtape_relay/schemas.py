####################################
# --- Request/response schemas --- #
####################################

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialises with camelCase keys, accepts either spelling on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(BaseModel):
    """Body of every failed request."""
    success: bool = False
    message: str

    model_config = ConfigDict(
        json_schema_extra={"example": {"success": False, "message": "No file uploaded."}}
    )


class UploadResult(CamelModel):
    """Normalized description of a file Streamtape accepted."""
    file_id: str = Field(description="Streamtape file id.")
    file_name: Optional[str] = Field(None, description="File name as echoed by Streamtape.")
    stream_url: str = Field(description="Embeddable player URL.")
    download_url: Optional[str] = Field(None, description="Direct URL returned by Streamtape.")
    size: Optional[int] = None
    content_type: Optional[str] = None
    sha256: Optional[str] = None


class UploadResponse(BaseModel):
    """Response model for `POST /api/upload`."""
    success: bool = True
    message: str = "Video uploaded successfully!"
    data: UploadResult

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "message": "Video uploaded successfully!",
                "data": {
                    "fileId": "kXo9Lm2Qa1",
                    "fileName": "clip.mp4",
                    "streamUrl": "https://streamtape.com/e/kXo9Lm2Qa1",
                    "downloadUrl": "https://streamtape.com/v/kXo9Lm2Qa1/clip.mp4",
                    "size": 10,
                    "contentType": "video/mp4",
                    "sha256": "9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08",
                },
            }
        }
    )


class VideoListResponse(BaseModel):
    """Response model for `GET /api/videos`."""
    success: bool = True
    videos: List[Dict[str, Any]]


class ThumbnailResponse(CamelModel):
    success: bool = True
    thumbnail_url: str


class DownloadTicketResponse(BaseModel):
    # keys stay snake_case to match Streamtape's own ticket payload
    success: bool = True
    ticket: Optional[str] = None
    wait_time: Optional[int] = None


class DownloadLinkResponse(CamelModel):
    success: bool = True
    download_url: str
    filename: Optional[str] = None


class RemoteUploadRequest(BaseModel):
    """Body of `POST /api/remote-upload`."""
    url: Optional[str] = Field(None, description="Public URL Streamtape should fetch.")
    name: Optional[str] = Field(None, description="Optional file name on Streamtape.")


class RemoteUploadResponse(CamelModel):
    success: bool = True
    remote_upload_id: str
    folder_id: Optional[str] = None


class RemoteUploadStatusResponse(CamelModel):
    """Response model for `GET /api/remote-upload-status/{id}`."""
    success: bool = True
    status: Optional[str] = None
    bytes_loaded: Optional[int] = None
    bytes_total: Optional[int] = None
    remote_url: Optional[str] = None
    streamtape_url: Optional[str] = None
