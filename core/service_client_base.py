"""
Base Service Client for outbound HTTP APIs

Base class for the clients that call external REST APIs (push gateway,
remote configuration). Handles base URL, bearer authentication (a static
token or an httpx auth flow), HTTP client lifecycle and timeouts.
"""

import httpx
import logging
from typing import Optional, Dict, Any
from abc import ABC

logger = logging.getLogger(__name__)


class BaseServiceClient(ABC):
    """
    Outbound API client base class

    Handles:
    1. Base URL resolution
    2. Bearer token authentication
    3. HTTP client management
    4. Timeout control

    Example:
        class RemoteConfigClient(BaseServiceClient):
            service_name = "firebase_remote_config"
            default_base_url = "https://firebaseremoteconfig.googleapis.com"

            async def get_template(self):
                response = await self.get("/v1/projects/p/remoteConfig")
                return response.json()
    """

    # Subclasses define these
    service_name: str = None
    default_base_url: str = None

    def __init__(
        self,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        auth: Optional[httpx.Auth] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API base URL (defaults to the class default)
            access_token: Static OAuth2 bearer token sent on every request
            auth: httpx auth flow that sets the bearer per request
            timeout: Request timeout (seconds)
            transport: Optional httpx transport (used by tests)
        """
        if not self.service_name:
            raise ValueError(f"{self.__class__.__name__} must define 'service_name'")

        self.base_url = (base_url or self.default_base_url or "").rstrip('/')
        if not self.base_url:
            raise ValueError(f"{self.__class__.__name__} requires a base_url")

        default_headers = self._build_default_headers(access_token)

        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers=default_headers,
            auth=auth,
            transport=transport,
        )

        logger.debug(
            f"Initialized {self.service_name} client: {self.base_url} "
            f"(auth={'bearer' if access_token else 'flow' if auth else 'none'})"
        )

    def _build_default_headers(self, access_token: Optional[str]) -> Dict[str, str]:
        """Build default request headers"""
        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"ora-admin/{self.service_name}",
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()
        logger.debug(f"Closed {self.service_name} client")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ========================================
    # HTTP helpers
    # ========================================

    async def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        """GET request"""
        url = f"{self.base_url}{path}"
        return await self.client.get(url, params=params, headers=headers)

    async def post(
        self,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        """POST request"""
        url = f"{self.base_url}{path}"
        return await self.client.post(url, json=json, params=params, headers=headers)

    async def put(
        self,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        """PUT request"""
        url = f"{self.base_url}{path}"
        return await self.client.put(url, json=json, params=params, headers=headers)


__all__ = ["BaseServiceClient"]
