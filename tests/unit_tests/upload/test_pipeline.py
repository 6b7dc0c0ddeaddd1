import asyncio

import pytest
from starlette.requests import Request

from streamtape_relay.adapters.provider import StreamtapeClient
from streamtape_relay.errors import (
    ClientDisconnectedError,
    MissingFileError,
    UpstreamNegotiationError,
)
from streamtape_relay.services.upload import UploadPipeline, UploadState
from streamtape_relay.services.upload.pipeline import run_until_disconnected
from tests.fixtures.app_fixtures import make_settings
from tests.fixtures.fake_streamtape import envelope
from tests.fixtures.multipart import build_multipart, content_type_for

VIDEO = build_multipart([("videoFile", "clip.mp4", "video/mp4", b"0123456789" * 20)])


def make_request(body: bytes, disconnect_after_body: bool = False, chunk_size: int = 32) -> Request:
    """An ASGI request whose body arrives in chunks, as a server would deliver it."""
    chunks = [body[i:i + chunk_size] for i in range(0, len(body), chunk_size)]

    async def receive():
        if chunks:
            chunk = chunks.pop(0)
            return {"type": "http.request", "body": chunk, "more_body": bool(chunks)}
        if disconnect_after_body:
            return {"type": "http.disconnect"}
        await asyncio.sleep(3600)

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/upload",
        "query_string": b"",
        "headers": [(b"content-type", content_type_for().encode())],
    }
    return Request(scope, receive)


def make_pipeline(upload_dir, fake_streamtape, **overrides) -> UploadPipeline:
    settings = make_settings(upload_dir, **overrides)
    return UploadPipeline(StreamtapeClient(settings, transport=fake_streamtape.transport()))


@pytest.mark.parametrize("strategy", ["stream", "disk", "memory"])
async def test_states_on_success(upload_dir, fake_streamtape, strategy):
    pipeline = make_pipeline(upload_dir, fake_streamtape, upload_strategy=strategy)

    upload = await pipeline.run(make_request(VIDEO))
    pipeline.mark_responded()

    assert upload.file_name == "clip.mp4"
    assert pipeline.history == [
        UploadState.RECEIVED,
        UploadState.SOURCE_MATERIALIZED,
        UploadState.DESTINATION_NEGOTIATED,
        UploadState.TRANSFERRING,
        UploadState.SUCCEEDED,
        UploadState.CLEANED,
        UploadState.RESPONDED,
    ]
    assert list(upload_dir.iterdir()) == []


async def test_states_when_file_is_missing(upload_dir, fake_streamtape):
    pipeline = make_pipeline(upload_dir, fake_streamtape)
    body = build_multipart([("title", None, None, b"no file here")])

    with pytest.raises(MissingFileError):
        await pipeline.run(make_request(body))

    assert pipeline.history == [UploadState.RECEIVED, UploadState.FAILED, UploadState.CLEANED]
    assert fake_streamtape.calls == []


async def test_states_when_negotiation_fails(upload_dir, fake_streamtape):
    fake_streamtape.overrides["file/ul"] = envelope(None, status=403, msg="Invalid login")
    pipeline = make_pipeline(upload_dir, fake_streamtape, upload_strategy="disk")

    with pytest.raises(UpstreamNegotiationError):
        await pipeline.run(make_request(VIDEO))

    assert pipeline.history == [
        UploadState.RECEIVED,
        UploadState.SOURCE_MATERIALIZED,
        UploadState.FAILED,
        UploadState.CLEANED,
    ]
    assert fake_streamtape.upload_calls == []
    assert list(upload_dir.iterdir()) == []


async def test_client_disconnect_aborts_buffered_relay(upload_dir, fake_streamtape):
    fake_streamtape.negotiation_delay = 1
    pipeline = make_pipeline(upload_dir, fake_streamtape, upload_strategy="disk")

    with pytest.raises(ClientDisconnectedError):
        await pipeline.run(make_request(VIDEO, disconnect_after_body=True))

    assert pipeline.state is UploadState.CLEANED
    assert UploadState.FAILED in pipeline.history
    assert fake_streamtape.upload_calls == []
    assert list(upload_dir.iterdir()) == []


class FakeConnection:
    def __init__(self, disconnect_after: int):
        self.polls = 0
        self.disconnect_after = disconnect_after

    async def is_disconnected(self) -> bool:
        self.polls += 1
        return self.polls > self.disconnect_after


async def test_run_until_disconnected_returns_result():
    async def work():
        await asyncio.sleep(0.01)
        return "done"

    assert await run_until_disconnected(FakeConnection(disconnect_after=1000), work(), 0.001) == "done"


async def test_run_until_disconnected_cancels_work():
    cancelled = asyncio.Event()

    async def work():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    with pytest.raises(ClientDisconnectedError):
        await run_until_disconnected(FakeConnection(disconnect_after=2), work(), 0.001)

    assert cancelled.is_set()


async def test_run_until_disconnected_propagates_work_errors():
    async def work():
        raise UpstreamNegotiationError("Invalid login")

    with pytest.raises(UpstreamNegotiationError):
        await run_until_disconnected(FakeConnection(disconnect_after=1000), work(), 0.001)
