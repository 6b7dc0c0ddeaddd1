"""
One upload request, end to end.

    Received -> SourceMaterialized -> DestinationNegotiated -> Transferring
             -> Succeeded | Failed -> Cleaned -> Responded

Steps run strictly in order. Temporary artifacts are reaped on every exit
path, including cancellation, before control returns to the route.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional

from fastapi import Request

from streamtape_relay.adapters.provider import StreamtapeClient
from streamtape_relay.errors import ClientDisconnectedError
from streamtape_relay.schemas import UploadResult
from streamtape_relay.services.upload.negotiator import UploadSessionNegotiator
from streamtape_relay.services.upload.normalizer import normalize_upload_result
from streamtape_relay.services.upload.reaper import ResourceReaper
from streamtape_relay.services.upload.sources import SourceKind, TransferSource, open_transfer_source
from streamtape_relay.services.upload.stream_relay import StreamRelay

logger = logging.getLogger(__name__)

CANCEL_GRACE_SECONDS = 1.0


class UploadState(str, Enum):
    RECEIVED = "received"
    SOURCE_MATERIALIZED = "source_materialized"
    DESTINATION_NEGOTIATED = "destination_negotiated"
    TRANSFERRING = "transferring"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CLEANED = "cleaned"
    RESPONDED = "responded"


async def run_until_disconnected(request: Request, work: Awaitable, poll_interval: float):
    """Await ``work`` but cancel it if the client goes away first.

    Only valid once the request body has been fully read: polling the
    connection consumes ASGI receive messages.
    """
    work_task = asyncio.ensure_future(work)

    async def watch():
        while not await request.is_disconnected():
            await asyncio.sleep(poll_interval)

    watch_task = asyncio.ensure_future(watch())
    try:
        await asyncio.wait({work_task, watch_task}, return_when=asyncio.FIRST_COMPLETED)
        if work_task.done():
            return work_task.result()
        logger.warning("Client disconnected; aborting upload relay")
        raise ClientDisconnectedError()
    finally:
        pending = {t for t in (work_task, watch_task) if not t.done()}
        for task in pending:
            task.cancel()
        if pending:
            done, stuck = await asyncio.wait(pending, timeout=CANCEL_GRACE_SECONDS)
            for task in done:
                if not task.cancelled():
                    task.exception()
            if stuck:
                logger.warning(f"{len(stuck)} relay task(s) still running {CANCEL_GRACE_SECONDS}s after cancel")


class UploadPipeline:
    """Runs the upload relay for exactly one request.

    A new pipeline is built per request; nothing here is shared between
    concurrent uploads.
    """

    def __init__(
        self,
        provider: StreamtapeClient,
        negotiator: Optional[UploadSessionNegotiator] = None,
        relay: Optional[StreamRelay] = None,
    ):
        self.provider = provider
        self.settings = provider.settings
        self.negotiator = negotiator or UploadSessionNegotiator(provider)
        self.relay = relay or StreamRelay(provider)
        self.reaper = ResourceReaper()
        self.state = UploadState.RECEIVED
        self.history: List[UploadState] = [UploadState.RECEIVED]

    def _enter(self, state: UploadState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug(f"Upload state -> {state.value}")

    def mark_responded(self) -> None:
        self._enter(UploadState.RESPONDED)

    async def run(self, request: Request) -> UploadResult:
        try:
            source = await open_transfer_source(request, self.settings, self.reaper)
            self._enter(UploadState.SOURCE_MATERIALIZED)
            try:
                if source.kind is SourceKind.STREAM:
                    # a disconnect surfaces while reading the live body
                    result = await self._transfer(source)
                else:
                    result = await run_until_disconnected(
                        request, self._transfer(source), self.settings.disconnect_poll_interval
                    )
            finally:
                await source.finish()
            upload = normalize_upload_result(result, self.settings.stream_base_url)
            self._enter(UploadState.SUCCEEDED)
            return upload
        except BaseException:
            self._enter(UploadState.FAILED)
            raise
        finally:
            removed = self.reaper.reap()
            if removed:
                logger.info(f"Removed {removed} temporary file(s)")
            self._enter(UploadState.CLEANED)

    async def _transfer(self, source: TransferSource) -> Dict[str, Any]:
        destination = await self.negotiator.negotiate()
        self._enter(UploadState.DESTINATION_NEGOTIATED)
        self._enter(UploadState.TRANSFERRING)
        return await self.relay.send(source, destination)
