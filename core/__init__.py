#!/usr/bin/env python3
"""
Core Module for Microservices Architecture

Shared infrastructure components for the admin plane microservices.

COMPONENTS:
    - config/: Dataclass configuration loaded from environment (.env by ENV)
    - config_manager.py: Per-service configuration access and service discovery
    - logger.py: Service logger setup
    - postgres_client.py: asyncpg pool wrapper
    - nats_client.py: NATS JetStream event bus
    - service_client_base.py: Base class for outbound HTTP API clients

USAGE:
    from core.config_manager import ConfigManager

    # Initialize configuration for a service
    config = ConfigManager("admin_service")
"""

from .config_manager import ConfigManager

__all__ = [
    "ConfigManager",
]

__version__ = "1.0.0"
