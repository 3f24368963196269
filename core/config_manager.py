"""
Centralized configuration access for microservices.

Wraps the global settings from core.config and resolves the endpoints of
infrastructure services.

Usage:
    from core.config_manager import ConfigManager

    config = ConfigManager("admin_service")
    host, port = config.discover_service(
        service_name="postgres_service",
        default_host="localhost",
        default_port=5432,
        env_host_key="POSTGRES_HOST",
        env_port_key="POSTGRES_PORT",
    )
"""

import logging
import os
from typing import Optional, Tuple

from core.config import AdminConfig, get_settings

logger = logging.getLogger(__name__)


class ConfigManager:
    """Per-service view over the platform configuration"""

    def __init__(self, service_name: str, settings: Optional[AdminConfig] = None):
        self.service_name = service_name
        self.settings = settings or get_settings()

    def discover_service(
        self,
        service_name: str,
        default_host: str,
        default_port: int,
        env_host_key: Optional[str] = None,
        env_port_key: Optional[str] = None,
    ) -> Tuple[str, int]:
        """
        Resolve host/port for a dependency.

        Priority: environment variables, then the supplied defaults.
        """
        host = os.getenv(env_host_key) if env_host_key else None
        port_value = os.getenv(env_port_key) if env_port_key else None

        try:
            port = int(port_value) if port_value else default_port
        except ValueError:
            logger.warning(f"Invalid port '{port_value}' for {service_name}, using {default_port}")
            port = default_port

        resolved = (host or default_host, port)
        logger.debug(f"[{self.service_name}] {service_name} resolved to {resolved[0]}:{resolved[1]}")
        return resolved


__all__ = ["ConfigManager"]
