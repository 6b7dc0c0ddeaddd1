from contextlib import asynccontextmanager
from textwrap import dedent
import logging
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute

from streamtape_relay import __version__
from streamtape_relay.adapters.provider import StreamtapeClient
from streamtape_relay.config.settings import Settings
from streamtape_relay.errors import (
    BroadExceptionMiddleware,
    RelayError,
    handle_relay_errors,
    handle_request_validation_errors,
)
from streamtape_relay.routers.health import router as health_router
from streamtape_relay.routers.uploads import router as uploads_router
from streamtape_relay.routers.videos import router as videos_router

# Set up logging
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close the pooled Streamtape connections on shutdown."""
    async with app.state.provider:
        yield


def create_app(
    settings: Settings | None = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create a FastAPI application.

    Args:
        settings: Application settings; read from the environment when omitted
        transport: Replacement network layer for outbound Streamtape calls
    """
    settings = settings or Settings()

    app = FastAPI(
        title="Streamtape Relay API",
        summary="List, download and upload videos through Streamtape",
        version=__version__,
        description=dedent(
            """\
        Relays client uploads to Streamtape and proxies its listing,
        thumbnail and download-link endpoints.

        | Endpoint | Notes |
        | --- | --- |
        | `POST /api/upload` | multipart field `videoFile` |
        | `POST /api/remote-upload` | Streamtape fetches the URL itself |
        """
        ),
        docs_url="/docs",
        generate_unique_id_function=custom_generate_unique_id,
        lifespan=lifespan,
    )

    app.add_middleware(BroadExceptionMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.state.settings = settings
    app.state.provider = StreamtapeClient(settings, transport=transport)

    if not settings.credentials_configured:
        logger.error(
            "Streamtape API credentials (login, key, folder ID) are not fully set. "
            "Set STREAMTAPE_LOGIN, STREAMTAPE_KEY and STREAMTAPE_FOLDER_ID."
        )

    app.include_router(videos_router, prefix="/api", tags=["videos"])
    app.include_router(uploads_router, prefix="/api", tags=["uploads"])
    app.include_router(health_router, tags=["health"])

    app.add_exception_handler(
        exc_class_or_status_code=RelayError,
        handler=handle_relay_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=RequestValidationError,
        handler=handle_request_validation_errors,
    )

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    from streamtape_relay.utils.log_config import configure_logging

    settings = Settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
