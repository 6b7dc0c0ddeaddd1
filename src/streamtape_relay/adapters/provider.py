"""
Streamtape API client.

Every endpoint answers with the same envelope ``{"status", "msg", "result"}``
where ``status == 200`` means success. Authentication is by query parameters.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from streamtape_relay.config.settings import Settings
from streamtape_relay.errors import NotFoundError, ProviderError, ProviderUnavailableError
from streamtape_relay.utils.decorators import async_log_execution_time

logger = logging.getLogger(__name__)

SUCCESS_STATUS = 200


def envelope_ok(envelope: Any) -> bool:
    return isinstance(envelope, dict) and envelope.get("status") == SUCCESS_STATUS


def envelope_message(envelope: Any, default: str) -> str:
    if isinstance(envelope, dict) and envelope.get("msg"):
        return str(envelope["msg"])
    return default


class StreamtapeClient:
    """Thin async client over the Streamtape HTTP API.

    Credentials come from the injected settings, never from module state.
    ``transport`` replaces the network layer (tests pass ``httpx.MockTransport``).

    One pooled ``httpx.AsyncClient`` serves every call so connections are
    kept alive between requests. It is opened on first use and closed by
    ``aclose()``, which the app's lifespan calls on shutdown.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.base_url = settings.api_base_url.rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _make_transport(self) -> Optional[httpx.AsyncBaseTransport]:
        if self._transport is not None:
            return self._transport
        if self.settings.force_ipv4:
            # binding to the IPv4 wildcard keeps name resolution on A records
            return httpx.AsyncHTTPTransport(local_address="0.0.0.0")
        return None

    @property
    def http(self) -> httpx.AsyncClient:
        """The shared AsyncClient. Pass ``timeout=`` per call to override the default."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.request_timeout),
                transport=self._make_transport(),
                limits=httpx.Limits(keepalive_expiry=self.settings.keepalive_expiry),
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    async def __aenter__(self) -> "StreamtapeClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def auth_params(self, **extra: Any) -> Dict[str, Any]:
        params = {
            "login": self.settings.streamtape_login,
            "key": self.settings.streamtape_key,
        }
        params.update({k: v for k, v in extra.items() if v is not None})
        return params

    async def call(self, endpoint: str, params: Dict[str, Any], failure: str) -> Any:
        """GET an endpoint and return its ``result`` or raise a ProviderError.

        Args:
            endpoint: Path below the API base, e.g. ``file/listfolder``
            params: Query parameters including credentials where required
            failure: Message used when the provider gives none

        Returns:
            The envelope's ``result`` member
        """
        url = f"{self.base_url}/{endpoint}"
        try:
            response = await self.http.get(url, params=params, timeout=self.settings.request_timeout)
        except httpx.HTTPError as e:
            logger.error(f"Error calling Streamtape {endpoint}: {e!r}")
            raise ProviderUnavailableError() from e

        try:
            envelope = response.json()
        except ValueError:
            logger.error(f"Streamtape {endpoint} returned a non-JSON body (HTTP {response.status_code})")
            raise ProviderError(failure, provider_status=response.status_code)

        if not envelope_ok(envelope):
            message = envelope_message(envelope, failure)
            logger.error(f"Streamtape API error ({endpoint}): {message}")
            provider_status = envelope.get("status") if isinstance(envelope, dict) else None
            raise ProviderError(message, provider_status=provider_status if isinstance(provider_status, int) else None)

        return envelope.get("result")

    @async_log_execution_time
    async def list_videos(self) -> List[Dict[str, Any]]:
        """Converted files in the configured folder."""
        result = await self.call(
            "file/listfolder",
            self.auth_params(folder=self.settings.streamtape_folder_id),
            failure="Failed to fetch videos.",
        )
        files = (result or {}).get("files") if isinstance(result, dict) else None
        if files is None:
            raise ProviderError("Failed to fetch videos.")
        return [f for f in files if f.get("linkid") and f.get("convert") == "converted"]

    @async_log_execution_time
    async def get_thumbnail(self, link_id: str) -> str:
        result = await self.call(
            "file/getsplash",
            self.auth_params(file=link_id),
            failure="Failed to get thumbnail.",
        )
        if not result:
            raise ProviderError("Failed to get thumbnail.")
        return result

    @async_log_execution_time
    async def get_download_ticket(self, link_id: str) -> Dict[str, Any]:
        result = await self.call(
            "file/dlticket",
            self.auth_params(file=link_id),
            failure="Failed to get download ticket.",
        )
        if not isinstance(result, dict):
            raise ProviderError("Failed to get download ticket.")
        return {"ticket": result.get("ticket"), "wait_time": result.get("wait_time")}

    @async_log_execution_time
    async def get_download_link(self, link_id: str, ticket: str) -> Dict[str, Any]:
        # file/dl is authorised by the ticket alone
        result = await self.call(
            "file/dl",
            {"file": link_id, "ticket": ticket},
            failure="Failed to get download link.",
        )
        if not isinstance(result, dict) or not result.get("url"):
            raise ProviderError("Failed to get download link.")
        return {"url": result["url"], "name": result.get("name")}

    @async_log_execution_time
    async def add_remote_upload(self, url: str, name: Optional[str] = None) -> Dict[str, Any]:
        """Ask Streamtape to fetch ``url`` itself into the configured folder."""
        result = await self.call(
            "remotedl/add",
            self.auth_params(url=url, folder=self.settings.streamtape_folder_id, name=name),
            failure="Failed to start remote upload.",
        )
        if not isinstance(result, dict) or not result.get("id"):
            raise ProviderError("Failed to start remote upload.")
        return {"id": result["id"], "folderid": result.get("folderid")}

    @async_log_execution_time
    async def get_remote_upload_status(self, remote_id: str) -> Dict[str, Any]:
        result = await self.call(
            "remotedl/status",
            self.auth_params(id=remote_id),
            failure="Failed to get remote upload status.",
        )
        entry = result.get(remote_id) if isinstance(result, dict) else None
        if not entry:
            raise NotFoundError(f"Remote upload {remote_id} not found.")
        return entry

    async def ping(self) -> bool:
        """Reachability check used by the CLI."""
        try:
            response = await self.http.get(
                f"{self.base_url}/account/info",
                params=self.auth_params(),
                timeout=self.settings.request_timeout,
            )
            return envelope_ok(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Streamtape reachability check failed: {e!r}")
            return False
