"""Obtains a one-time upload URL from Streamtape."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from streamtape_relay.adapters.provider import StreamtapeClient, envelope_message, envelope_ok
from streamtape_relay.errors import NegotiationTimeoutError, UpstreamNegotiationError

logger = logging.getLogger(__name__)

NEGOTIATION_FAILED = "Failed to get upload URL from Streamtape."


@dataclass
class UploadDestination:
    """Single-use upload target. Streamtape enforces ``valid_until`` itself."""
    url: str
    valid_until: Optional[str] = None
    wait_hint: Optional[int] = None


class UploadSessionNegotiator:
    def __init__(self, provider: StreamtapeClient):
        self.provider = provider

    async def negotiate(self) -> UploadDestination:
        """Ask ``file/ul`` for an upload URL for the configured folder.

        Raises:
            NegotiationTimeoutError: No answer within ``negotiation_timeout``
            UpstreamNegotiationError: Unreachable, or any answer without a URL
        """
        settings = self.provider.settings
        timeout = settings.negotiation_timeout
        params = self.provider.auth_params(folder=settings.streamtape_folder_id)

        try:
            async with asyncio.timeout(timeout):
                response = await self.provider.http.get(
                    f"{self.provider.base_url}/file/ul",
                    params=params,
                    timeout=timeout,
                )
        except (TimeoutError, httpx.TimeoutException) as e:
            logger.error(f"Upload URL request timed out after {timeout:.0f}s")
            raise NegotiationTimeoutError() from e
        except httpx.HTTPError as e:
            logger.error(f"Upload URL request failed: {e!r}")
            raise UpstreamNegotiationError("Could not reach Streamtape.") from e

        try:
            envelope = response.json()
        except ValueError:
            raise UpstreamNegotiationError(f"Unexpected response from Streamtape (HTTP {response.status_code}).")

        if not envelope_ok(envelope):
            message = envelope_message(envelope, NEGOTIATION_FAILED)
            logger.error(f"Streamtape API error (file/ul): {message}")
            raise UpstreamNegotiationError(message)

        result = envelope.get("result")
        if not isinstance(result, dict) or not result.get("url"):
            logger.error("Streamtape file/ul answered without an upload URL")
            raise UpstreamNegotiationError(NEGOTIATION_FAILED)

        destination = UploadDestination(
            url=result["url"],
            valid_until=result.get("valid_until"),
            wait_hint=result.get("wait_time"),
        )
        logger.info("Streamtape upload URL obtained")
        return destination
