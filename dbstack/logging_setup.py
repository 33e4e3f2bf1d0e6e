"""Logging configuration for dbstack."""

import logging
from typing import Optional, Type

from dbstack.config import Config, get_config


def configure_logging(config: Optional[Type[Config]] = None) -> None:
    """
    Apply the configured log level and format to the root logger.

    Args:
        config: Configuration class; defaults to ``get_config()``
    """
    config = config or get_config()
    logging.basicConfig(
        level=getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO),
        format=config.LOG_FORMAT,
    )
    # botocore is very chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)
