"""
Remote Config Client

Client for the Firebase Remote Config REST API. The template's ETag comes
back in the response header and must be sent as If-Match when publishing.
HTTP failures are mapped onto the service's error taxonomy so the sync
engine can decide what to retry.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from google.auth.exceptions import RefreshError

from core.config import FirebaseConfig
from core.service_client_base import BaseServiceClient

from ..models import ConfigTemplate
from ..protocols import (
    AdminServiceError,
    AuthError,
    ConflictError,
    TransientServiceError,
    UpstreamServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class RemoteConfigClient(BaseServiceClient):
    """Client for the Remote Config REST API"""

    service_name = "firebase_remote_config"
    default_base_url = "https://firebaseremoteconfig.googleapis.com"

    def __init__(
        self,
        project_id: str,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        auth: Optional[httpx.Auth] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url,
            access_token=access_token,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )
        self.project_id = project_id
        self.template_path = f"/v1/projects/{project_id}/remoteConfig"

    @classmethod
    def from_config(cls, config: FirebaseConfig, auth: Optional[httpx.Auth] = None) -> "RemoteConfigClient":
        return cls(
            project_id=config.project_id,
            base_url=config.remote_config_base_url,
            access_token=config.access_token,
            auth=auth,
            timeout=config.http_timeout,
        )

    async def get_template(self) -> ConfigTemplate:
        """Fetch the active template and its ETag"""
        response = await self._request("GET")
        template = self._parse_template(response)
        logger.debug(f"Fetched Remote Config template (etag={template.etag})")
        return template

    async def validate_template(self, template: ConfigTemplate) -> ConfigTemplate:
        """Validate without publishing; the input ETag is kept on the result"""
        response = await self._request(
            "PUT",
            json=template.to_request_body(),
            params={"validateOnly": "true"},
            headers={"If-Match": template.etag or "*"},
        )
        validated = self._parse_template(response)
        validated.etag = template.etag
        return validated

    async def publish_template(self, template: ConfigTemplate) -> ConfigTemplate:
        """Publish guarded by If-Match; a stale ETag is a ConflictError"""
        response = await self._request(
            "PUT",
            json=template.to_request_body(),
            headers={"If-Match": template.etag or "*"},
        )
        return self._parse_template(response)

    async def _request(
        self,
        method: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        try:
            if method == "GET":
                response = await self.get(self.template_path, params=params, headers=headers)
            else:
                response = await self.put(self.template_path, json=json, params=params, headers=headers)
        except httpx.TransportError as e:
            raise TransientServiceError(
                f"Remote Config unreachable: {e}", code="remote-config/unavailable"
            ) from e
        except RefreshError as e:
            raise AuthError(
                f"Remote Config credentials refresh failed: {e}", code="remote-config/unauthenticated", status=401
            ) from e

        if response.status_code >= 400:
            raise self._classify_error(response)
        return response

    @staticmethod
    def _parse_template(response: httpx.Response) -> ConfigTemplate:
        template = ConfigTemplate.model_validate(response.json() or {})
        template.etag = response.headers.get("ETag", "")
        return template

    @staticmethod
    def _classify_error(response: httpx.Response) -> AdminServiceError:
        status_code = response.status_code
        error: Dict[str, Any] = {}
        try:
            error = (response.json() or {}).get("error") or {}
        except ValueError:
            pass

        text = error.get("message") or response.text or f"HTTP {status_code}"
        upstream_status = error.get("status")
        code = (
            f"remote-config/{upstream_status.lower().replace('_', '-')}"
            if upstream_status else f"remote-config/http-{status_code}"
        )

        if status_code == 400:
            return ValidationError(f"Remote Config validation failed: {text}", code=code, status=status_code)
        if status_code == 401:
            return AuthError(
                "Remote Config authorization failed. Ensure Remote Config API is enabled in Firebase Console.",
                code=code,
                status=status_code,
            )
        if status_code == 403:
            return AuthError(
                "Remote Config authentication failed. Check Firebase service account credentials.",
                code=code,
                status=status_code,
            )
        if status_code in (409, 412):
            return ConflictError(f"Remote Config version mismatch: {text}", code=code, status=status_code)
        if status_code >= 500:
            return TransientServiceError(f"Remote Config server error: {text}", code=code, status=status_code)
        return UpstreamServiceError(f"Remote Config request failed: {text}", code=code, status=status_code)


__all__ = ["RemoteConfigClient"]
