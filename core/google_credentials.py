"""
Google service-account credentials for Firebase APIs

Loads service-account credentials (google-auth) scoped for FCM and Remote
Config and exposes them as an httpx auth flow that keeps the bearer token
fresh. Access tokens expire after about an hour; the flow refreshes before
each request once the token is no longer valid, and once more after a 401.

Usage:
    auth = build_firebase_auth(settings.firebase)
    client = PushGatewayClient.from_config(settings.firebase, auth=auth)
"""

import asyncio
import logging
from typing import Any, AsyncGenerator, Optional

import httpx
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from core.config import FirebaseConfig

logger = logging.getLogger(__name__)

FIREBASE_SCOPES = (
    "https://www.googleapis.com/auth/firebase.messaging",
    "https://www.googleapis.com/auth/firebase.remoteconfig",
)
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


def load_service_account_credentials(config: FirebaseConfig) -> Optional[service_account.Credentials]:
    """
    Service-account credentials from a key file, or from the client email
    and private key given separately. None when neither is configured.
    """
    if config.credentials_file:
        logger.info(f"Loading Firebase service account from {config.credentials_file}")
        return service_account.Credentials.from_service_account_file(
            config.credentials_file, scopes=FIREBASE_SCOPES
        )

    if config.client_email and config.private_key:
        logger.info(f"Loading Firebase service account {config.client_email}")
        return service_account.Credentials.from_service_account_info(
            {
                "type": "service_account",
                "project_id": config.project_id,
                "client_email": config.client_email,
                "private_key": config.private_key,
                "token_uri": GOOGLE_TOKEN_URI,
            },
            scopes=FIREBASE_SCOPES,
        )

    return None


class GoogleCredentialsAuth(httpx.Auth):
    """Bearer auth backed by refreshable google-auth credentials"""

    def __init__(self, credentials: Any, refresh_request: Optional[Any] = None):
        self.credentials = credentials
        self._refresh_request = refresh_request
        self._lock = asyncio.Lock()

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        await self._refresh(stale_token=None)
        sent_token = self.credentials.token
        request.headers["Authorization"] = f"Bearer {sent_token}"
        response = yield request

        if response.status_code == 401:
            logger.warning("Google access token rejected, refreshing and retrying once")
            await self._refresh(stale_token=sent_token)
            request.headers["Authorization"] = f"Bearer {self.credentials.token}"
            yield request

    async def _refresh(self, stale_token: Optional[str]) -> None:
        """
        Refresh when the token is invalid, or when it is still `stale_token`.
        Concurrent callers share one refresh.
        """
        async with self._lock:
            if stale_token is None:
                if self.credentials.valid:
                    return
            elif self.credentials.token != stale_token:
                return

            if self._refresh_request is None:
                self._refresh_request = GoogleAuthRequest()
            # google-auth refresh is blocking
            await asyncio.to_thread(self.credentials.refresh, self._refresh_request)
            logger.info("Refreshed Google access token")


def build_firebase_auth(config: FirebaseConfig) -> Optional[httpx.Auth]:
    """
    Auth flow for the Firebase clients.

    A static `access_token` overrides the service account and is sent as a
    fixed header, so no flow is returned for it.
    """
    if config.access_token:
        logger.info("Using static Firebase access token")
        return None

    credentials = load_service_account_credentials(config)
    if credentials is None:
        logger.warning(
            "No Firebase credentials configured; push and Remote Config calls will be rejected"
        )
        return None
    return GoogleCredentialsAuth(credentials)


__all__ = [
    "FIREBASE_SCOPES",
    "GoogleCredentialsAuth",
    "build_firebase_auth",
    "load_service_account_credentials",
]
