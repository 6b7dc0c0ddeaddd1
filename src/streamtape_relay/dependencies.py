from fastapi import Request

from streamtape_relay.adapters.provider import StreamtapeClient
from streamtape_relay.config.settings import Settings


def get_settings_from_app(request: Request) -> Settings:
    """Settings the app was created with."""
    return request.app.state.settings


def get_provider(request: Request) -> StreamtapeClient:
    """Streamtape client bound to the app's settings."""
    return request.app.state.provider
