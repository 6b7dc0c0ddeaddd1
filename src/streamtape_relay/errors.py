"""Error taxonomy and FastAPI handlers.

Every failure a client can see is rendered as ``{"success": false,
"message": ...}``. Handlers never include tracebacks or filesystem paths.
"""

import logging
from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Base class for errors that map onto a client-facing status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingFileError(RelayError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "No file uploaded."


class MissingParameterError(RelayError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "A required parameter is missing."


class PayloadTooLargeError(RelayError):
    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    default_message = "Uploaded file is too large."


class NotFoundError(RelayError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found."


class ProviderError(RelayError):
    """Non-success envelope from a single-call provider proxy."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Streamtape request failed."

    def __init__(self, message: Optional[str] = None, provider_status: Optional[int] = None):
        super().__init__(message)
        self.provider_status = provider_status
        if provider_status and 400 <= provider_status < 600:
            self.status_code = provider_status


class ProviderUnavailableError(RelayError):
    """Transport failure on a single-call provider proxy."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error while contacting Streamtape."


class UploadError(RelayError):
    """Base class for failures on the upload relay path."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Failed to upload video."


class NegotiationTimeoutError(UploadError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_message = "Timed out waiting for an upload URL. Please try again."


class UpstreamNegotiationError(UploadError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Failed to get upload URL from Streamtape."


class UpstreamTimeoutError(UploadError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_message = "Upload timed out after a long wait. Please try again."


class UpstreamUploadError(UploadError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Upload failed or no file ID returned from Streamtape."


class TransferAbortedError(UploadError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Upload was aborted before it completed."


class ClientDisconnectedError(TransferAbortedError):
    default_message = "Client disconnected during upload."


class CleanupError(RelayError):
    """Raised when a temporary artifact cannot be removed. Logged, never rendered."""


def error_body(message: str) -> dict:
    return {"success": False, "message": message}


def client_message(exc: RelayError) -> str:
    """Upload failures carry the provider message behind a fixed prefix."""
    if isinstance(exc, (UpstreamNegotiationError, UpstreamUploadError, TransferAbortedError)):
        return f"Failed to upload video: {exc.message}"
    return exc.message


async def handle_relay_errors(request: Request, exc: RelayError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(client_message(exc)))


async def handle_request_validation_errors(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    fields = [".".join(str(part) for part in err.get("loc", ())[1:]) for err in errors]
    fields = [f for f in fields if f]
    message = f"Invalid request: {', '.join(fields)}" if fields else "Invalid request."
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body(message))


class BroadExceptionMiddleware:
    """Turn anything unexpected into a 500 for this request only.

    A plain ASGI middleware: the app's ``receive`` reaches the routes
    unwrapped, so ``request.is_disconnected()`` sees the real connection.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_tracking_start(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_tracking_start)
        except Exception:
            logger.exception(f"Unhandled error on {scope.get('method')} {scope.get('path')}")
            if response_started:
                raise
            response = JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=error_body("Internal server error."),
            )
            await response(scope, receive, send)
