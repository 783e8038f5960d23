import logging

from chameleon_proxy.models import Config, normalize_backend_url


def get_config_from_env_vars(
    logger: logging.Logger, port: int | None = None, backend: str | None = None
) -> Config:
    """
    Load configuration from environment variables

    port and backend come from the command line and take precedence over the
    PORT and BACKEND_URL environment variables.
    """
    overrides = {}
    if port is not None:
        overrides["PORT"] = port
    if backend:
        overrides["BACKEND_URL"] = normalize_backend_url(backend)

    config = Config(**overrides)
    logger.debug("Loaded configuration: %s", config)
    return config


# pylint: disable-next=invalid-name
_config = None


def get_config() -> Config:
    if not _config:
        raise ValueError("Config not set")
    return _config


def set_config(new_config: Config):
    # pylint: disable-next=global-statement
    global _config
    _config = new_config
