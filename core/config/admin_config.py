#!/usr/bin/env python3
"""Admin service main configuration

Main configuration for the admin control plane.
Combines all sub-configs and includes broadcast fan-out tuning.
"""
import os
from dataclasses import dataclass, field

from .infra_config import InfraConfig
from .logging_config import LoggingConfig
from .firebase_config import FirebaseConfig


def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


# ===========================================
# Broadcast Fan-out Configuration
# ===========================================

@dataclass
class BroadcastConfig:
    """Batch sizes and pacing for broadcast delivery"""
    # Push fan-out: recipients per batch and pause between batches
    push_batch_size: int = 100
    push_batch_delay: float = 0.1

    # Store write-size limit for in-app notification records
    record_batch_size: int = 500

    # Listing and scheduled processing
    list_limit: int = 100
    scheduler_enabled: bool = True
    scheduler_interval: float = 60.0

    @classmethod
    def from_env(cls) -> 'BroadcastConfig':
        return cls(
            push_batch_size=_int(os.getenv("BROADCAST_PUSH_BATCH_SIZE", "100"), 100),
            push_batch_delay=_float(os.getenv("BROADCAST_PUSH_BATCH_DELAY", "0.1"), 0.1),
            record_batch_size=_int(os.getenv("BROADCAST_RECORD_BATCH_SIZE", "500"), 500),
            list_limit=_int(os.getenv("BROADCAST_LIST_LIMIT", "100"), 100),
            scheduler_enabled=_bool(os.getenv("BROADCAST_SCHEDULER_ENABLED", "true")),
            scheduler_interval=_float(os.getenv("BROADCAST_SCHEDULER_INTERVAL", "60"), 60.0),
        )


# ===========================================
# Main Admin Configuration
# ===========================================

@dataclass
class AdminConfig:
    """Main admin platform configuration with all sub-configs"""

    # Environment
    environment: str = "development"
    debug: bool = False

    # Default service settings
    default_host: str = "0.0.0.0"
    default_port: int = 8260

    # Sub-configurations
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    infrastructure: InfraConfig = field(default_factory=InfraConfig)
    firebase: FirebaseConfig = field(default_factory=FirebaseConfig)
    broadcast: BroadcastConfig = field(default_factory=BroadcastConfig)

    @classmethod
    def from_env(cls) -> 'AdminConfig':
        """Load complete configuration from environment"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            # Environment
            environment=env,
            debug=_bool(os.getenv("DEBUG", "true" if env == "development" else "false")),

            # Default service settings
            default_host=os.getenv("HOST", "0.0.0.0"),
            default_port=_int(os.getenv("PORT", "8260"), 8260),

            # Load sub-configs
            logging=LoggingConfig.from_env(),
            infrastructure=InfraConfig.from_env(),
            firebase=FirebaseConfig.from_env(),
            broadcast=BroadcastConfig.from_env(),
        )
