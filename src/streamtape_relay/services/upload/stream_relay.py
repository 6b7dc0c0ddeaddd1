"""
Relays a transfer source to a negotiated upload URL as a multipart POST.

The request body is an async generator wrapped around the source, so bytes
are only pulled from the source as fast as the connection to Streamtape
accepts them. When the source size is known the body gets an exact
Content-Length; otherwise it is sent with chunked transfer encoding.
"""

import asyncio
import logging
import secrets
from typing import Any, AsyncIterator, Callable, Dict, Optional

import httpx

from streamtape_relay.adapters.provider import StreamtapeClient, envelope_message, envelope_ok
from streamtape_relay.errors import (
    RelayError,
    TransferAbortedError,
    UpstreamTimeoutError,
    UpstreamUploadError,
)
from streamtape_relay.services.upload.negotiator import UploadDestination
from streamtape_relay.services.upload.sources import TransferSource

logger = logging.getLogger(__name__)

UPLOAD_FIELD = "file1"
OUTBOUND_CONTENT_TYPE = "application/octet-stream"
TIMEOUT_STATUSES = (408, 504)

ProgressCallback = Callable[[int, Optional[int]], None]


def quote_form_param(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace('"', "%22")
        .replace("\r", "%0D")
        .replace("\n", "%0A")
    )


class MultipartBody:
    """A single-file ``multipart/form-data`` body streamed from a TransferSource."""

    def __init__(self, source: TransferSource, field_name: str = UPLOAD_FIELD, boundary: Optional[str] = None):
        self.source = source
        self.boundary = boundary or secrets.token_hex(16)
        self.preamble = (
            f"--{self.boundary}\r\n"
            f'Content-Disposition: form-data; name="{field_name}"; '
            f'filename="{quote_form_param(source.filename)}"\r\n'
            f"Content-Type: {OUTBOUND_CONTENT_TYPE}\r\n\r\n"
        ).encode("utf-8")
        self.epilogue = f"\r\n--{self.boundary}--\r\n".encode("ascii")

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    @property
    def content_length(self) -> Optional[int]:
        if self.source.size_hint is None:
            return None
        return len(self.preamble) + self.source.size_hint + len(self.epilogue)

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": self.content_type}
        if self.content_length is not None:
            headers["Content-Length"] = str(self.content_length)
        return headers

    async def stream(self, progress: "ProgressTracker") -> AsyncIterator[bytes]:
        yield self.preamble
        async for chunk in self.source.chunks():
            progress.advance(len(chunk))
            yield chunk
        yield self.epilogue


class ProgressTracker:
    """Counts relayed file bytes and logs at fixed percentage or byte intervals."""

    def __init__(
        self,
        filename: str,
        total: Optional[int],
        log_percent: int = 10,
        log_bytes: int = 50 * 1024 * 1024,
        callback: Optional[ProgressCallback] = None,
    ):
        self.filename = filename
        self.total = total
        self.sent = 0
        self.log_percent = log_percent
        self.log_bytes = log_bytes
        self.callback = callback
        self._next_mark = log_percent if total else log_bytes

    @property
    def percent(self) -> Optional[int]:
        if not self.total:
            return None
        return min(100, self.sent * 100 // self.total)

    def advance(self, n: int) -> None:
        if n <= 0:
            return
        self.sent += n
        if self.callback is not None:
            self.callback(self.sent, self.total)

        if self.total:
            percent = self.percent
            if percent >= self._next_mark:
                logger.info(f"Upload progress for {self.filename}: {percent}%")
                self._next_mark = (percent // self.log_percent + 1) * self.log_percent
        elif self.sent >= self._next_mark:
            logger.info(f"Upload progress for {self.filename}: {self.sent} bytes")
            self._next_mark = (self.sent // self.log_bytes + 1) * self.log_bytes


class StreamRelay:
    def __init__(self, provider: StreamtapeClient, on_progress: Optional[ProgressCallback] = None):
        self.provider = provider
        self.on_progress = on_progress

    async def send(self, source: TransferSource, destination: UploadDestination) -> Dict[str, Any]:
        """POST the source to the destination and return Streamtape's ``result``.

        Raises:
            UpstreamTimeoutError: ``upload_timeout`` exceeded, or Streamtape signalled a timeout
            TransferAbortedError: The connection or the client stream broke mid-transfer
            UpstreamUploadError: Any other unsuccessful answer
        """
        settings = self.provider.settings
        body = MultipartBody(source)
        progress = ProgressTracker(
            source.filename,
            source.size_hint,
            log_percent=settings.progress_log_percent,
            log_bytes=settings.progress_log_bytes,
            callback=self.on_progress,
        )

        try:
            async with asyncio.timeout(settings.upload_timeout):
                response = await self.provider.http.post(
                    destination.url,
                    content=body.stream(progress),
                    headers=body.headers(),
                    timeout=settings.upload_timeout,
                )
        except RelayError:
            raise
        except (TimeoutError, httpx.TimeoutException) as e:
            logger.error(f"Upload of {source.filename} timed out after {progress.sent} bytes")
            raise UpstreamTimeoutError() from e
        except httpx.HTTPError as e:
            logger.error(f"Upload of {source.filename} aborted after {progress.sent} bytes: {e!r}")
            raise TransferAbortedError(f"Connection to Streamtape failed ({type(e).__name__}).") from e

        result = self._interpret(response)
        logger.info(f"File {source.filename} uploaded to Streamtape with ID: {result['id']}")
        return result

    def _interpret(self, response: httpx.Response) -> Dict[str, Any]:
        if response.status_code in TIMEOUT_STATUSES:
            raise UpstreamTimeoutError()
        try:
            envelope = response.json()
        except ValueError:
            raise UpstreamUploadError(f"Unexpected response from upload server (HTTP {response.status_code}).")

        if isinstance(envelope, dict) and envelope.get("status") in TIMEOUT_STATUSES:
            raise UpstreamTimeoutError()

        if not envelope_ok(envelope):
            raise UpstreamUploadError(envelope_message(envelope, UpstreamUploadError.default_message))
        result = envelope.get("result")
        if not isinstance(result, dict) or not result.get("id"):
            raise UpstreamUploadError()
        return result
