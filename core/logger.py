"""
Service logger setup

Configures the root handlers for a microservice from LoggingConfig and
returns the service's named logger.

Usage:
    from core.logger import setup_service_logger

    logger = setup_service_logger("admin_service")
"""

import logging
import sys
from typing import Optional

from core.config import LoggingConfig, get_settings


def setup_service_logger(
    service_name: str,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """Configure logging for a service and return its logger"""
    config = config or get_settings().logging
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(config.log_format)

    root = logging.getLogger()
    root.setLevel(level)

    # Avoid stacking handlers when the app module is imported more than once
    for handler in list(root.handlers):
        if getattr(handler, "_service_handler", False):
            root.removeHandler(handler)

    if config.enable_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        console._service_handler = True
        root.addHandler(console)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(formatter)
        file_handler._service_handler = True
        root.addHandler(file_handler)

    # Quiet noisy client libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger = logging.getLogger(service_name)
    logger.info(f"Logging configured for {service_name} (level={config.log_level}, env={config.environment})")
    return logger


__all__ = ["setup_service_logger"]
