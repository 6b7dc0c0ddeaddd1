"""AWS Lambda entry point: the relay app behind API Gateway via Mangum."""
from mangum import Mangum

from streamtape_relay.config.settings import get_settings
from streamtape_relay.main import create_app
from streamtape_relay.utils.log_config import configure_logging

settings = get_settings()
configure_logging(settings.log_level)

handler = Mangum(create_app(settings), lifespan="off")
lambda_handler = handler
