"""
Admin Service Protocols

Defines interfaces for dependency injection and testing, plus the
service's exception taxonomy.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Set, runtime_checkable

from .models import (
    BroadcastMessage,
    BroadcastStatus,
    ConfigTemplate,
    DeliveryLogEntry,
    DeliveryToken,
    MulticastResult,
    PushMessage,
    SystemSettings,
    UserNotification,
)


# ====================
# Repository Protocol
# ====================


@runtime_checkable
class AdminRepositoryProtocol(Protocol):
    """Protocol for the admin data repository"""

    async def initialize(self) -> None:
        """Initialize repository connection"""
        ...

    async def close(self) -> None:
        """Close repository connection"""
        ...

    async def health_check(self) -> bool:
        """Check repository health"""
        ...

    # Audience sources
    async def list_user_ids(self) -> List[str]:
        """Every recipient id in the store"""
        ...

    async def list_user_ids_by_role(self, role: str) -> List[str]:
        """Recipient ids whose role attribute equals `role`"""
        ...

    async def list_content_author_ids(self, since: datetime) -> List[str]:
        """Distinct ids of recipients that produced content at or after `since`"""
        ...

    # Consent
    async def get_notification_preferences(
        self, user_ids: Sequence[str]
    ) -> Dict[str, Dict[str, Any]]:
        """Stored preference documents keyed by recipient id; missing ids have no record"""
        ...

    # Delivery tokens
    async def get_delivery_tokens(self, user_id: str) -> List[DeliveryToken]:
        """All token records of a recipient"""
        ...

    async def delete_delivery_token(self, token: str, user_id: Optional[str] = None) -> int:
        """Delete a token record; returns the number of rows removed"""
        ...

    # In-app records
    async def commit_notification_records(self, records: List[UserNotification]) -> None:
        """Upsert a batch of in-app records in one transaction"""
        ...

    # Delivery log
    async def record_delivery(self, entry: DeliveryLogEntry) -> None:
        """Append a push attempt outcome"""
        ...

    async def get_delivered_recipient_ids(self, broadcast_id: str) -> Set[str]:
        """Recipients with a delivered outcome for this broadcast"""
        ...

    # Broadcasts
    async def create_broadcast(self, message: BroadcastMessage) -> BroadcastMessage:
        """Insert a broadcast"""
        ...

    async def get_broadcast(self, broadcast_id: str) -> Optional[BroadcastMessage]:
        """Get broadcast by ID"""
        ...

    async def list_broadcasts(self, limit: int = 100) -> List[BroadcastMessage]:
        """Newest broadcasts first"""
        ...

    async def update_broadcast(self, broadcast_id: str, **fields: Any) -> Optional[BroadcastMessage]:
        """Update broadcast fields"""
        ...

    async def transition_broadcast(
        self,
        broadcast_id: str,
        from_statuses: Sequence[BroadcastStatus],
        to_status: BroadcastStatus,
        **fields: Any,
    ) -> Optional[BroadcastMessage]:
        """Move status only if currently in `from_statuses`; None when the guard fails"""
        ...

    async def list_due_scheduled(self, now: datetime) -> List[BroadcastMessage]:
        """Scheduled broadcasts whose time has come"""
        ...

    # System settings
    async def get_system_settings(self) -> Optional[SystemSettings]:
        """Primary settings record, None if never written"""
        ...

    async def save_system_settings(
        self, updates: Dict[str, Any], updated_by: Optional[str]
    ) -> SystemSettings:
        """Merge-write top-level settings sections"""
        ...


# ====================
# External Gateway Protocols
# ====================


@runtime_checkable
class PushGatewayProtocol(Protocol):
    """Protocol for the push gateway"""

    async def send_multicast(self, message: PushMessage, tokens: List[str]) -> MulticastResult:
        """Send one payload to several tokens; per-token outcome in the result"""
        ...


@runtime_checkable
class RemoteConfigClientProtocol(Protocol):
    """Protocol for the remote configuration service"""

    async def get_template(self) -> ConfigTemplate:
        """Fetch the current template with its ETag"""
        ...

    async def validate_template(self, template: ConfigTemplate) -> ConfigTemplate:
        """Server-side validation without publishing"""
        ...

    async def publish_template(self, template: ConfigTemplate) -> ConfigTemplate:
        """Publish guarded by the template's ETag"""
        ...


@runtime_checkable
class EventBusProtocol(Protocol):
    """Protocol for event bus"""

    async def publish_event(self, event: Any) -> bool:
        """Publish an event"""
        ...


# ====================
# Exceptions
# ====================


class AdminServiceError(Exception):
    """Base exception for admin service errors"""

    def __init__(self, message: str, code: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


class ValidationError(AdminServiceError):
    """Rejected input; never retried"""
    pass


class InvalidBroadcastStateError(ValidationError):
    """Raised when broadcast is in invalid state for operation"""

    def __init__(self, message: str, current_status: Optional[BroadcastStatus] = None):
        super().__init__(message, code="invalid-state")
        self.current_status = current_status


class AuthError(AdminServiceError):
    """Credentials missing, wrong or lacking permission; never retried"""
    pass


class ConflictError(AdminServiceError):
    """Concurrency token mismatch; retried from a fresh fetch"""
    pass


class TransientServiceError(AdminServiceError):
    """Upstream server failure that may succeed on retry"""
    pass


class PermanentDeliveryError(AdminServiceError):
    """Push token the gateway will never accept again"""

    def __init__(self, message: str, token: str, code: Optional[str] = None):
        super().__init__(message, code=code)
        self.token = token


class NotFoundError(AdminServiceError):
    """Raised when a resource is not found"""
    pass


class UpstreamServiceError(AdminServiceError):
    """Unclassified upstream failure; propagated without retry"""
    pass


__all__ = [
    "AdminRepositoryProtocol",
    "PushGatewayProtocol",
    "RemoteConfigClientProtocol",
    "EventBusProtocol",
    "AdminServiceError",
    "ValidationError",
    "InvalidBroadcastStateError",
    "AuthError",
    "ConflictError",
    "TransientServiceError",
    "PermanentDeliveryError",
    "NotFoundError",
    "UpstreamServiceError",
]
