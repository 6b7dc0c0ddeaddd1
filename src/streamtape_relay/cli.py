# cli.py
import asyncio
import logging

import click

from streamtape_relay.adapters.provider import StreamtapeClient
from streamtape_relay.config.settings import get_settings
from streamtape_relay.utils.log_config import configure_logging

# Configure logging
logger = logging.getLogger(__name__)


@click.group()
def cli():
    """CLI commands for the Streamtape relay API"""
    pass


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind")
@click.option("--port", type=int, default=None, help="Port to bind (defaults to PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes (development only)")
def serve(host, port, reload):
    """Run the API with uvicorn"""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    port = port or settings.port

    logger.info(f"Server running on port {port}")
    if not settings.is_production:
        logger.info(f"Local API Access: http://localhost:{port}/api/videos")
        logger.info(f"Local Upload Endpoint: http://localhost:{port}/api/upload")
        logger.info(f"Local Health Check: http://localhost:{port}/health")
    else:
        logger.info("Server is running in production mode.")

    uvicorn.run(
        "streamtape_relay.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        access_log=True,
        log_level=settings.log_level.lower(),
    )


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    print("Current Configuration:")
    for key, value in settings.public_summary().items():
        print(f"  {key}: {value}")


async def _ping(settings) -> bool:
    async with StreamtapeClient(settings) as provider:
        return await provider.ping()


@cli.command()
def check_provider():
    """Verify Streamtape is reachable with the configured credentials"""
    settings = get_settings()
    configure_logging(settings.log_level)

    if not settings.credentials_configured:
        print("❌ Streamtape credentials are not fully configured")
        raise SystemExit(1)

    ok = asyncio.run(_ping(settings))
    if ok:
        print("✅ Streamtape API reachable and credentials accepted")
    else:
        print("❌ Streamtape API check failed")
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
