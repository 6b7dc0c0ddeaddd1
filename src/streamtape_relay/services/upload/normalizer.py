"""Maps Streamtape's upload result onto the public response shape."""

from typing import Any, Dict

from streamtape_relay.schemas import UploadResponse, UploadResult


def build_stream_url(stream_base_url: str, file_id: str) -> str:
    return f"{stream_base_url.rstrip('/')}/{file_id}"


def normalize_upload_result(result: Dict[str, Any], stream_base_url: str) -> UploadResult:
    """
    Build the public result from ``result`` of a successful upload envelope.

    Streamtape reports ``id``, ``name``, ``size``, ``content_type``, ``sha256``
    and ``url``; the player URL is derived from the id.
    """
    file_id = str(result["id"])
    return UploadResult(
        file_id=file_id,
        file_name=result.get("name"),
        stream_url=build_stream_url(stream_base_url, file_id),
        download_url=result.get("url"),
        size=result.get("size"),
        content_type=result.get("content_type"),
        sha256=result.get("sha256"),
    )


def success_response(upload: UploadResult) -> UploadResponse:
    return UploadResponse(success=True, message="Video uploaded successfully!", data=upload)
