# Entry point for running under uvicorn directly, e.g. `uvicorn chameleon_proxy.main:app --port 3000`
import logging

from chameleon_proxy.app_builder import app, initialize
from chameleon_proxy.config_loader import get_config_from_env_vars, set_config
from chameleon_proxy.telemetry import configure_logging, configure_telemetry

logger = logging.getLogger(__name__)

config = get_config_from_env_vars(logger)
configure_logging(config.log_level)
configure_telemetry(logger)

set_config(config)
initialize()

__all__ = ["app"]
