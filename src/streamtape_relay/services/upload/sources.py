"""
Transfer sources: one streamable view over the three ways upload bytes can be held.

- ``stream``: the file part is read from the live request as the relay consumes it
- ``disk``: the file part is written to a temporary artifact first, then re-read
- ``memory``: the file part is collected into a bytes buffer
"""

import logging
import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import AsyncIterator, Optional

import aiofiles
from fastapi import Request

from streamtape_relay.config.settings import Settings
from streamtape_relay.errors import PayloadTooLargeError
from streamtape_relay.services.upload.multipart_stream import MultipartFileReader
from streamtape_relay.services.upload.reaper import ResourceReaper, TemporaryArtifact

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "uploaded_video"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class SourceKind(str, Enum):
    STREAM = "stream"
    DISK = "disk"
    MEMORY = "memory"


class TransferSource(ABC):
    """Base class: a named byte stream with an optional known size."""

    kind: SourceKind

    def __init__(self, filename: Optional[str], content_type: Optional[str], size_hint: Optional[int] = None):
        self.filename = filename or DEFAULT_FILENAME
        self.content_type = content_type or DEFAULT_CONTENT_TYPE
        self.size_hint = size_hint

    @abstractmethod
    def chunks(self) -> AsyncIterator[bytes]:
        """Yield the file bytes in order, exactly once."""

    async def finish(self) -> None:
        """Release anything the source still holds open."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.filename!r}, size_hint={self.size_hint})"


class StreamSource(TransferSource):
    """Bytes come straight from the request body; size is unknown."""

    kind = SourceKind.STREAM

    def __init__(self, reader: MultipartFileReader):
        super().__init__(reader.filename, reader.content_type, size_hint=None)
        self.reader = reader

    def chunks(self) -> AsyncIterator[bytes]:
        return self.reader.iter_file()

    async def finish(self) -> None:
        # only the closing boundary remains once the file part is complete;
        # after a failure the rest of the body is left to the server
        if self.reader.file_complete:
            await self.reader.drain()


class DiskFileSource(TransferSource):
    kind = SourceKind.DISK

    def __init__(self, artifact: TemporaryArtifact, filename, content_type, size: int, chunk_size: int):
        super().__init__(filename, content_type, size_hint=size)
        self.artifact = artifact
        self.chunk_size = chunk_size
        self._handle = None

    async def chunks(self) -> AsyncIterator[bytes]:
        self._handle = await aiofiles.open(self.artifact.path, "rb")
        try:
            while True:
                chunk = await self._handle.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            await self.finish()

    async def finish(self) -> None:
        if self._handle is not None:
            handle, self._handle = self._handle, None
            await handle.close()


class BufferSource(TransferSource):
    kind = SourceKind.MEMORY

    def __init__(self, data: bytes, filename, content_type, chunk_size: int):
        super().__init__(filename, content_type, size_hint=len(data))
        self.data = data
        self.chunk_size = chunk_size

    async def chunks(self) -> AsyncIterator[bytes]:
        view = memoryview(self.data)
        for offset in range(0, len(self.data), self.chunk_size):
            yield bytes(view[offset:offset + self.chunk_size])


async def buffer_to_disk(reader: MultipartFileReader, settings: Settings, reaper: ResourceReaper) -> DiskFileSource:
    suffix = os.path.splitext(reader.filename or "")[1]
    artifact = reaper.create_artifact(settings.upload_dir, suffix=suffix)
    size = 0
    async with aiofiles.open(artifact.path, "wb") as f:
        async for chunk in reader.iter_file():
            await f.write(chunk)
            size += len(chunk)
    await reader.drain()
    logger.info(f"Buffered {reader.filename} to disk ({size} bytes)")
    return DiskFileSource(artifact, reader.filename, reader.content_type, size, settings.chunk_size)


async def buffer_in_memory(reader: MultipartFileReader, settings: Settings) -> BufferSource:
    buffer = bytearray()
    async for chunk in reader.iter_file():
        buffer += chunk
        if len(buffer) > settings.max_buffer_bytes:
            raise PayloadTooLargeError(
                f"Uploaded file exceeds the {settings.max_buffer_bytes} byte in-memory limit."
            )
    await reader.drain()
    logger.info(f"Buffered {reader.filename} in memory ({len(buffer)} bytes)")
    return BufferSource(bytes(buffer), reader.filename, reader.content_type, settings.chunk_size)


async def open_transfer_source(request: Request, settings: Settings, reaper: ResourceReaper) -> TransferSource:
    """Turn an incoming upload request into a TransferSource.

    Args:
        request: The incoming request; its body has not been read yet
        settings: Supplies the field name, strategy and buffering limits
        reaper: Takes ownership of any temporary file created here

    Returns:
        A source whose ``chunks()`` yields the uploaded file's bytes

    Raises:
        MissingFileError: The body holds no file part under the expected field
        PayloadTooLargeError: The memory strategy's cap was exceeded
    """
    reader = MultipartFileReader(
        request.stream(),
        request.headers.get("content-type"),
        settings.upload_field_name,
    )
    await reader.open()

    strategy = SourceKind(settings.upload_strategy)
    if strategy is SourceKind.DISK:
        return await buffer_to_disk(reader, settings, reaper)
    if strategy is SourceKind.MEMORY:
        return await buffer_in_memory(reader, settings)
    return StreamSource(reader)
