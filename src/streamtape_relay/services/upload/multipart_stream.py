"""
Incremental extraction of one file part from a ``multipart/form-data`` body.

The body is pulled from the client one chunk at a time and pushed through
python-multipart's callback parser. Only bytes belonging to the selected
file part are kept, and only until the consumer takes them, so memory use
is bounded by the client's chunk size regardless of the file size.
"""

import logging
from collections import deque
from typing import AsyncIterator, Deque, Dict, Optional

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.requests import ClientDisconnect

from streamtape_relay.errors import ClientDisconnectedError, MissingFileError, TransferAbortedError

logger = logging.getLogger(__name__)


def _decode(value: bytes, charset: str = "utf-8") -> str:
    try:
        return value.decode(charset)
    except (UnicodeDecodeError, LookupError):
        return value.decode("latin-1")


class MultipartFileReader:
    """Pulls the file part named ``field_name`` out of a streamed multipart body.

    ``open()`` reads just far enough to see that part's headers. After that
    ``iter_file()`` yields the part's bytes, reading more of the body only
    when the previous chunk has been consumed. Every other field or file is
    parsed and dropped. ``drain()`` consumes whatever is left of the body.
    """

    def __init__(self, body: AsyncIterator[bytes], content_type_header: Optional[str], field_name: str):
        content_type, params = parse_options_header(content_type_header or "")
        if content_type != b"multipart/form-data" or b"boundary" not in params:
            raise MissingFileError("Expected a multipart/form-data upload.")

        self.field_name = field_name
        self.filename: Optional[str] = None
        self.content_type: Optional[str] = None
        self.bytes_received = 0

        self._charset = _decode(params.get(b"charset", b"utf-8"))
        self._body = body.__aiter__()
        self._parser = MultipartParser(
            params[b"boundary"],
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
            },
        )

        self._pending: Deque[bytes] = deque()
        self._headers: Dict[bytes, bytes] = {}
        self._header_field = bytearray()
        self._header_value = bytearray()
        self._in_file_part = False
        self._file_found = False
        self._file_complete = False
        self._body_complete = False

    @property
    def file_found(self) -> bool:
        return self._file_found

    @property
    def file_complete(self) -> bool:
        return self._file_complete

    @property
    def body_complete(self) -> bool:
        return self._body_complete

    # -- parser callbacks -------------------------------------------------

    def _on_part_begin(self) -> None:
        self._headers = {}
        self._in_file_part = False

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers[bytes(self._header_field).lower()] = bytes(self._header_value)
        self._header_field.clear()
        self._header_value.clear()

    def _on_headers_finished(self) -> None:
        _, options = parse_options_header(self._headers.get(b"content-disposition", b""))
        name = _decode(options.get(b"name", b""), self._charset)
        is_file = b"filename" in options
        if is_file and name == self.field_name and not self._file_found:
            self._file_found = True
            self._in_file_part = True
            self.filename = _decode(options[b"filename"], self._charset)
            part_type = self._headers.get(b"content-type")
            self.content_type = _decode(part_type).strip() if part_type else None
            logger.info(f"Receiving file: {self.filename} ({self.content_type})")
        elif is_file:
            logger.debug(f"Discarding file part {name!r}")

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._in_file_part:
            self._pending.append(bytes(data[start:end]))

    def _on_part_end(self) -> None:
        if self._in_file_part:
            self._in_file_part = False
            self._file_complete = True

    # -- pulling ------------------------------------------------------------

    async def _feed(self) -> bool:
        """Push the next body chunk through the parser. False once the body is exhausted."""
        if self._body_complete:
            return False
        try:
            chunk = await self._body.__anext__()
        except StopAsyncIteration:
            self._body_complete = True
            self._parser.finalize()
            return False
        except ClientDisconnect as e:
            raise ClientDisconnectedError() from e

        if chunk:
            self.bytes_received += len(chunk)
            try:
                self._parser.write(chunk)
            except MultipartParseError as e:
                if self._file_found:
                    raise TransferAbortedError("Malformed multipart body.") from e
                raise MissingFileError("Malformed multipart body.") from e
        return True

    async def open(self) -> None:
        """Read the body until the file part's headers have been parsed."""
        while not self._file_found:
            if not await self._feed():
                logger.warning("No file stream found in upload request.")
                raise MissingFileError()

    async def iter_file(self) -> AsyncIterator[bytes]:
        """Yield the file part's bytes as they arrive from the client."""
        if not self._file_found:
            await self.open()
        while True:
            while self._pending:
                yield self._pending.popleft()
            if self._file_complete:
                return
            if not await self._feed():
                raise TransferAbortedError("Upload body ended before the file was complete.")

    async def drain(self) -> None:
        """Consume and discard the rest of the body."""
        while await self._feed():
            self._pending.clear()
