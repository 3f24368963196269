#!/usr/bin/env python3
"""Modular configuration system for the admin plane

Configuration hierarchy:
- infra_config: Infrastructure services (PostgreSQL, NATS)
- firebase_config: Push gateway and Remote Config endpoints
- admin_config: Admin platform settings (broadcast fan-out, scheduler)
- logging_config: Logging configuration
"""
import os
from dotenv import load_dotenv
from .logging_config import LoggingConfig
from .infra_config import InfraConfig
from .firebase_config import FirebaseConfig
from .admin_config import AdminConfig, BroadcastConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)

# Create global settings instance
settings = AdminConfig.from_env()

def get_settings() -> AdminConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> AdminConfig:
    """Reload settings from environment"""
    global settings
    settings = AdminConfig.from_env()
    return settings

__all__ = [
    # Main config
    'AdminConfig',
    'get_settings',
    'reload_settings',
    'settings',
    # Sub-configs
    'LoggingConfig',
    'InfraConfig',
    'FirebaseConfig',
    'BroadcastConfig',
]
