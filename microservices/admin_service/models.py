"""
Admin Service Data Models

Broadcast messages and their audience/consent/delivery models, system
settings, and the Remote Config template. JSON payloads use camelCase
keys (the dashboard and mobile clients' contract); Python attributes are
snake_case.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ====================
# Enums
# ====================

class BroadcastCategory(str, Enum):
    """Broadcast category (matches the client NotificationType values)"""
    ANNOUNCEMENT = "announcement"
    PROMO = "promo"
    FEATURE_UPDATE = "feature_update"
    EVENT = "event"


class BroadcastStatus(str, Enum):
    """Broadcast lifecycle status"""
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


class AudienceType(str, Enum):
    """Target audience selector"""
    ALL = "all"
    ROLE = "role"
    ACTIVITY = "activity"
    CUSTOM = "custom"


class DeliveryStatus(str, Enum):
    """Per-recipient push delivery outcome"""
    DELIVERED = "delivered"
    FAILED = "failed"


class SkipReason(str, Enum):
    """Why a candidate recipient was filtered out"""
    NO_PREFERENCES = "no_preferences"
    PROMOTIONAL_DISABLED = "promotional_disabled"


# ====================
# Audience
# ====================

DEFAULT_AUDIENCE_ROLE = "user"
DEFAULT_ACTIVITY_DAYS = 30


class AudienceFilters(CamelModel):
    """Filters for the selected audience type"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    role: Optional[str] = Field(None, description="Role attribute to match (role audience)")
    days: Optional[int] = Field(None, ge=1, description="Activity window in days (activity audience)")
    user_ids: Optional[List[str]] = Field(None, description="Explicit recipient ids (custom audience)")

    @field_validator("user_ids")
    def validate_user_ids(cls, v):
        if v and any(not user_id or not user_id.strip() for user_id in v):
            raise ValueError("userIds must not contain blank ids")
        return v


class TargetAudience(CamelModel):
    """Declarative audience description, immutable once attached"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: AudienceType = Field(..., description="Audience selector")
    filters: AudienceFilters = Field(default_factory=AudienceFilters)


# ====================
# Broadcast
# ====================

class BroadcastStats(CamelModel):
    """Aggregate delivery statistics"""
    total_recipients: int = 0
    delivered: int = 0
    opened: int = 0
    clicked: int = 0
    failed: int = 0
    skipped: int = 0


class BroadcastMessage(CamelModel):
    """Broadcast message"""
    broadcast_id: str = Field(..., description="Broadcast ID")
    title: str
    body: str
    category: BroadcastCategory
    target_audience: TargetAudience
    image_url: Optional[str] = None
    deep_link: Optional[str] = None

    status: BroadcastStatus = BroadcastStatus.DRAFT
    stats: BroadcastStats = Field(default_factory=BroadcastStats)
    last_error: Optional[str] = None

    sent_by: Optional[str] = Field(None, description="Admin who created the broadcast")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    scheduled_for: Optional[datetime] = None
    sent_at: Optional[datetime] = None


class BroadcastCreateRequest(CamelModel):
    """Create broadcast request"""
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=2000)
    category: BroadcastCategory = Field(
        ...,
        validation_alias=AliasChoices("category", "type"),
        description="Broadcast category (legacy clients send it as 'type')",
    )
    target_audience: TargetAudience
    image_url: Optional[str] = None
    deep_link: Optional[str] = None
    scheduled_for: Optional[datetime] = None


class BroadcastResponse(CamelModel):
    """Result of creating or sending a broadcast"""
    success: bool = True
    notification_id: str
    status: BroadcastStatus
    stats: BroadcastStats
    message: Optional[str] = None


class BroadcastListResponse(CamelModel):
    """Broadcast list response"""
    success: bool = True
    notifications: List[BroadcastMessage] = Field(default_factory=list)


class BroadcastDetailResponse(CamelModel):
    """Single broadcast response"""
    success: bool = True
    notification: BroadcastMessage


class ScheduledRunResponse(CamelModel):
    """Outcome of one scheduled-broadcast processing run"""
    success: bool = True
    processed: int = 0
    results: List[BroadcastResponse] = Field(default_factory=list)


# ====================
# Consent
# ====================

# Category -> key inside the stored `promotional` preferences document
CATEGORY_PREFERENCE_KEYS: Dict[BroadcastCategory, str] = {
    BroadcastCategory.ANNOUNCEMENT: "announcements",
    BroadcastCategory.PROMO: "promos",
    BroadcastCategory.FEATURE_UPDATE: "featureUpdates",
    BroadcastCategory.EVENT: "events",
}


class RecipientPreference(BaseModel):
    """Resolved promotional consent for one recipient"""
    recipient_id: str
    promotional_enabled: bool = False
    category_overrides: Dict[str, bool] = Field(default_factory=dict)

    @classmethod
    def from_document(cls, recipient_id: str, document: Dict[str, Any]) -> "RecipientPreference":
        """Build from the stored `{promotional: {enabled, announcements, ...}}` document"""
        promotional = document.get("promotional") or {}
        overrides = {}
        for category, key in CATEGORY_PREFERENCE_KEYS.items():
            if key in promotional and promotional[key] is not None:
                overrides[category.value] = promotional[key] is not False
        return cls(
            recipient_id=recipient_id,
            promotional_enabled=bool(promotional.get("enabled")),
            category_overrides=overrides,
        )

    def allows(self, category: BroadcastCategory) -> bool:
        # Absent override defaults to enabled
        return self.category_overrides.get(category.value, True)


class SkippedRecipient(CamelModel):
    """Candidate filtered out by the consent gate"""
    recipient_id: str
    reason: str


class EligibilityResult(BaseModel):
    """Eligible recipients plus the ones skipped, with reasons"""
    eligible: List[str] = Field(default_factory=list)
    skipped: List[SkippedRecipient] = Field(default_factory=list)
    bypassed: int = Field(0, description="Recipients admitted only by the all-audience bypass")

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


# ====================
# Delivery
# ====================

class DeliveryToken(BaseModel):
    """Push delivery token registered by a recipient device"""
    recipient_id: str
    token: str
    enabled: bool = True
    platform: Optional[str] = None
    created_at: Optional[datetime] = None


class PushMessage(BaseModel):
    """Platform-neutral push payload sent to every token of one recipient"""
    title: str
    body: str
    data: Dict[str, str] = Field(default_factory=dict)
    image_url: Optional[str] = None
    android_channel_id: str = "promotional"
    badge: int = 1


# Gateway codes that mean the token will never work again
PERMANENT_TOKEN_ERROR_CODES = frozenset({
    "messaging/invalid-registration-token",
    "messaging/registration-token-not-registered",
})


class TokenSendResult(BaseModel):
    """Per-token gateway outcome"""
    token: str
    success: bool
    message_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_permanent_failure(self) -> bool:
        return not self.success and self.error_code in PERMANENT_TOKEN_ERROR_CODES


class MulticastResult(BaseModel):
    """Gateway response for one multi-token send"""
    responses: List[TokenSendResult] = Field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.responses if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.responses if not r.success)


class DispatchResult(BaseModel):
    """Aggregate push outcome of a dispatch run"""
    sent: int = 0
    failed: int = 0

    def add(self, other: "DispatchResult") -> None:
        self.sent += other.sent
        self.failed += other.failed


class DeliveryLogEntry(BaseModel):
    """Per (broadcast, recipient) push attempt"""
    broadcast_id: str
    recipient_id: str
    category: BroadcastCategory
    status: DeliveryStatus
    token_count: int = 0
    error: Optional[str] = None
    created_at: Optional[datetime] = None


class NotificationRecord(CamelModel):
    """Durable in-app notification shown in the recipient's inbox"""
    type: BroadcastCategory
    category: str = "promotional"
    message: str
    promo_title: str
    promo_body: str
    target_id: str
    is_read: bool = False
    actors: List[str] = Field(default_factory=list)
    actor_count: int = 0
    promo_image_url: Optional[str] = None
    deep_link: Optional[str] = None

    @classmethod
    def from_broadcast(cls, message: BroadcastMessage) -> "NotificationRecord":
        return cls(
            type=message.category,
            message=message.body,
            promo_title=message.title,
            promo_body=message.body,
            target_id=message.broadcast_id,
            promo_image_url=message.image_url,
            deep_link=message.deep_link,
        )


class UserNotification(BaseModel):
    """A NotificationRecord addressed to one recipient under a deterministic key"""
    notification_key: str
    recipient_id: str
    broadcast_id: str
    record: NotificationRecord


# ====================
# Settings
# ====================

class SystemSettings(CamelModel):
    """Primary system settings record"""
    feature_flags: Dict[str, Any] = Field(default_factory=dict)
    remote_config: Dict[str, Any] = Field(default_factory=dict)
    maintenance_mode: bool = False
    ui_settings: Dict[str, Any] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None


class SettingsUpdateRequest(CamelModel):
    """Partial settings update; omitted sections are left untouched"""
    feature_flags: Optional[Dict[str, Any]] = None
    remote_config: Optional[Dict[str, Any]] = None
    maintenance_mode: Optional[bool] = None
    ui_settings: Optional[Dict[str, Any]] = None

    @property
    def touches_remote_config(self) -> bool:
        return (
            self.feature_flags is not None
            or self.remote_config is not None
            or self.maintenance_mode is not None
        )


class RemoteConfigErrorInfo(CamelModel):
    """Remote Config sync failure reported next to a successful save"""
    message: str
    code: Optional[str] = None
    status: Optional[int] = None


class SettingsResponse(CamelModel):
    """Settings read response"""
    success: bool = True
    settings: SystemSettings


class SettingsUpdateResponse(CamelModel):
    """Settings update response"""
    success: bool = True
    settings: SystemSettings
    remote_config_error: Optional[RemoteConfigErrorInfo] = None
    warning: Optional[str] = None


# ====================
# Remote Config Template
# ====================

class ConfigParameter(CamelModel):
    """Remote Config parameter; unknown keys are carried through"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    default_value: Optional[Dict[str, Any]] = None
    conditional_values: Optional[Dict[str, Any]] = None
    description: Optional[str] = None
    value_type: Optional[str] = None

    @classmethod
    def string(cls, value: str, description: str) -> "ConfigParameter":
        return cls(default_value={"value": value}, description=description)


class ConfigTemplate(CamelModel):
    """Remote Config template with its concurrency token"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    conditions: List[Dict[str, Any]] = Field(default_factory=list)
    parameters: Dict[str, ConfigParameter] = Field(default_factory=dict)
    parameter_groups: Dict[str, Any] = Field(default_factory=dict)
    version: Optional[Dict[str, Any]] = None
    etag: str = Field("", exclude=True)

    def to_request_body(self) -> Dict[str, Any]:
        """Body for validate/publish; server-assigned version fields are dropped"""
        body = self.model_dump(by_alias=True, exclude_none=True)
        if self.version and self.version.get("description"):
            body["version"] = {"description": self.version["description"]}
        else:
            body.pop("version", None)
        return body


# ====================
# Health
# ====================

class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    port: int
    version: str
    dependencies: Dict[str, str] = Field(default_factory=dict)


class ReadinessResponse(BaseModel):
    """Readiness check response"""
    ready: bool
    checks: Dict[str, bool] = Field(default_factory=dict)
    details: Dict[str, str] = Field(default_factory=dict)


class LivenessResponse(BaseModel):
    """Liveness check response"""
    alive: bool
    uptime_seconds: float


__all__ = [
    # Enums
    "BroadcastCategory",
    "BroadcastStatus",
    "AudienceType",
    "DeliveryStatus",
    "SkipReason",
    # Audience
    "DEFAULT_AUDIENCE_ROLE",
    "DEFAULT_ACTIVITY_DAYS",
    "AudienceFilters",
    "TargetAudience",
    # Broadcast
    "BroadcastStats",
    "BroadcastMessage",
    "BroadcastCreateRequest",
    "BroadcastResponse",
    "BroadcastListResponse",
    "BroadcastDetailResponse",
    "ScheduledRunResponse",
    # Consent
    "CATEGORY_PREFERENCE_KEYS",
    "RecipientPreference",
    "SkippedRecipient",
    "EligibilityResult",
    # Delivery
    "DeliveryToken",
    "PushMessage",
    "PERMANENT_TOKEN_ERROR_CODES",
    "TokenSendResult",
    "MulticastResult",
    "DispatchResult",
    "DeliveryLogEntry",
    "NotificationRecord",
    "UserNotification",
    # Settings
    "SystemSettings",
    "SettingsUpdateRequest",
    "RemoteConfigErrorInfo",
    "SettingsResponse",
    "SettingsUpdateResponse",
    # Remote Config
    "ConfigParameter",
    "ConfigTemplate",
    # Health
    "HealthResponse",
    "ReadinessResponse",
    "LivenessResponse",
    "utc_now",
]
