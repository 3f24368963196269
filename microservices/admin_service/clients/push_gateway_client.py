"""
Push Gateway Client

Client for the Firebase Cloud Messaging HTTP v1 API. FCM v1 accepts one
token per request, so a multi-token send is fanned out concurrently and
the per-token outcomes are collected into a MulticastResult with
normalized `messaging/*` error codes.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx
from google.auth.exceptions import RefreshError

from core.config import FirebaseConfig
from core.service_client_base import BaseServiceClient

from ..models import MulticastResult, PushMessage, TokenSendResult
from ..protocols import (
    AdminServiceError,
    AuthError,
    PermanentDeliveryError,
    TransientServiceError,
    UpstreamServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

FCM_ERROR_TYPE = "type.googleapis.com/google.firebase.fcm.v1.FcmError"


class PushGatewayClient(BaseServiceClient):
    """Client for FCM HTTP v1"""

    service_name = "fcm"
    default_base_url = "https://fcm.googleapis.com"

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
        self.send_path = f"/v1/projects/{project_id}/messages:send"

    @classmethod
    def from_config(cls, config: FirebaseConfig, auth: Optional[httpx.Auth] = None) -> "PushGatewayClient":
        return cls(
            project_id=config.project_id,
            base_url=config.fcm_base_url,
            access_token=config.access_token,
            auth=auth,
            timeout=config.http_timeout,
        )

    async def send_multicast(self, message: PushMessage, tokens: List[str]) -> MulticastResult:
        """Send `message` to each token; failures are reported per token, not raised"""
        responses = await asyncio.gather(*(self._send_for_result(message, token) for token in tokens))
        return MulticastResult(responses=list(responses))

    async def send(self, message: PushMessage, token: str) -> str:
        """Send to one token and return the FCM message name"""
        try:
            response = await self.post(self.send_path, json={"message": self.build_fcm_message(message, token)})
        except RefreshError as e:
            raise AuthError(
                f"FCM credentials refresh failed: {e}", code="messaging/authentication-error", status=401
            ) from e
        if response.status_code == 200:
            return response.json().get("name", "")
        raise self._classify_error(response, token)

    async def _send_for_result(self, message: PushMessage, token: str) -> TokenSendResult:
        try:
            name = await self.send(message, token)
            return TokenSendResult(token=token, success=True, message_id=name)
        except AdminServiceError as e:
            return TokenSendResult(
                token=token,
                success=False,
                error_code=e.code or "messaging/unknown-error",
                error_message=e.message,
            )
        except httpx.TransportError as e:
            logger.warning(f"FCM transport error: {e}")
            return TokenSendResult(
                token=token,
                success=False,
                error_code="messaging/server-unavailable",
                error_message=str(e),
            )

    @staticmethod
    def build_fcm_message(message: PushMessage, token: str) -> Dict[str, Any]:
        """FCM v1 message resource for one token"""
        apns: Dict[str, Any] = {
            "payload": {
                "aps": {
                    "sound": "default",
                    "badge": message.badge,
                    "content-available": 1,
                    "mutable-content": 1,
                },
            },
        }
        if message.image_url:
            apns["fcm_options"] = {"image": message.image_url}

        return {
            "token": token,
            "notification": {"title": message.title, "body": message.body},
            "data": dict(message.data),
            "apns": apns,
            "android": {
                "priority": "high",
                "notification": {
                    "sound": "default",
                    "channel_id": message.android_channel_id,
                },
            },
        }

    def _classify_error(self, response: httpx.Response, token: str) -> AdminServiceError:
        status_code = response.status_code
        error: Dict[str, Any] = {}
        try:
            error = response.json().get("error") or {}
        except ValueError:
            pass

        text = error.get("message") or response.text or f"HTTP {status_code}"
        fcm_code = None
        for detail in error.get("details") or []:
            if detail.get("@type") == FCM_ERROR_TYPE:
                fcm_code = detail.get("errorCode")
        fcm_code = fcm_code or error.get("status")

        if fcm_code == "UNREGISTERED" or status_code == 404:
            return PermanentDeliveryError(text, token=token, code="messaging/registration-token-not-registered")
        if fcm_code == "INVALID_ARGUMENT":
            if "registration token" in text.lower():
                return PermanentDeliveryError(text, token=token, code="messaging/invalid-registration-token")
            return ValidationError(text, code="messaging/invalid-argument", status=status_code)
        if fcm_code == "SENDER_ID_MISMATCH":
            return AuthError(text, code="messaging/mismatched-credential", status=status_code)
        if fcm_code == "THIRD_PARTY_AUTH_ERROR":
            return AuthError(text, code="messaging/third-party-auth-error", status=status_code)
        if status_code in (401, 403):
            return AuthError(text, code="messaging/authentication-error", status=status_code)
        if fcm_code == "QUOTA_EXCEEDED" or status_code == 429:
            return TransientServiceError(text, code="messaging/message-rate-exceeded", status=status_code)
        if status_code == 503 or fcm_code == "UNAVAILABLE":
            return TransientServiceError(text, code="messaging/server-unavailable", status=status_code)
        if status_code >= 500:
            return TransientServiceError(text, code="messaging/internal-error", status=status_code)
        return UpstreamServiceError(text, code="messaging/unknown-error", status=status_code)


__all__ = ["PushGatewayClient"]
