#!/usr/bin/env python3
"""Firebase configuration

Push gateway (FCM HTTP v1) and Remote Config REST endpoints used by the
admin plane, plus the credentials they are called with.
"""
import os
from dataclasses import dataclass
from typing import Optional

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


def _private_key(val: Optional[str]) -> Optional[str]:
    """PEM key from an env var that may carry literal \\n sequences"""
    return val.replace("\\n", "\n") if val else None


@dataclass
class FirebaseConfig:
    """Firebase project and API settings"""
    project_id: str = "ora-dev"

    # Service account; the key file wins over email + key
    credentials_file: Optional[str] = None
    client_email: Optional[str] = None
    private_key: Optional[str] = None
    # Static bearer override, sent as-is and never refreshed
    access_token: Optional[str] = None

    fcm_base_url: str = "https://fcm.googleapis.com"
    remote_config_base_url: str = "https://firebaseremoteconfig.googleapis.com"

    # Deep links default to <scheme>://notification/<broadcast_id>
    deep_link_scheme: str = "ora"
    http_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> 'FirebaseConfig':
        """Load Firebase config from environment"""
        return cls(
            project_id=os.getenv("FIREBASE_PROJECT_ID", "ora-dev"),
            credentials_file=(
                os.getenv("FIREBASE_CREDENTIALS_FILE") or os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
            ),
            client_email=os.getenv("FIREBASE_CLIENT_EMAIL", "").strip() or None,
            private_key=_private_key(os.getenv("FIREBASE_PRIVATE_KEY")),
            access_token=os.getenv("FIREBASE_ACCESS_TOKEN") or os.getenv("GOOGLE_OAUTH_ACCESS_TOKEN"),
            fcm_base_url=os.getenv("FCM_BASE_URL", "https://fcm.googleapis.com"),
            remote_config_base_url=os.getenv(
                "REMOTE_CONFIG_BASE_URL", "https://firebaseremoteconfig.googleapis.com"
            ),
            deep_link_scheme=os.getenv("DEEP_LINK_SCHEME", "ora"),
            http_timeout=_float(os.getenv("FIREBASE_HTTP_TIMEOUT", "30"), 30.0),
        )
