"""
Component Test Fixtures for Admin Service

In-memory repository, push gateway and Remote Config mocks, plus services
wired to them with a fixed clock and a recording sleep.
"""

import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Set

import pytest

from core.config import BroadcastConfig
from microservices.admin_service.broadcast_service import BroadcastService
from microservices.admin_service.config_sync_engine import ConfigSyncEngine
from microservices.admin_service.models import (
    BroadcastCreateRequest,
    BroadcastMessage,
    BroadcastStatus,
    ConfigParameter,
    ConfigTemplate,
    DeliveryLogEntry,
    DeliveryStatus,
    DeliveryToken,
    MulticastResult,
    PushMessage,
    SystemSettings,
    TargetAudience,
    TokenSendResult,
    UserNotification,
)
from microservices.admin_service.protocols import ConflictError
from microservices.admin_service.settings_service import SettingsService

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def promotional_prefs(enabled: bool = True, **categories: bool) -> Dict[str, Any]:
    """Stored preference document: {promotional: {enabled, announcements, ...}}"""
    return {"promotional": {"enabled": enabled, **categories}}


# ====================
# Mock Repository
# ====================


class MockAdminRepository:
    """In-memory admin repository for component testing"""

    def __init__(self):
        self.users: Dict[str, str] = {}
        self.posts: List[Dict[str, Any]] = []
        self.preferences: Dict[str, Dict[str, Any]] = {}
        self.tokens: Dict[str, List[DeliveryToken]] = {}
        self.record_commits: List[List[UserNotification]] = []
        self.user_notifications: Dict[str, Dict[str, Any]] = {}
        self.deliveries: List[DeliveryLogEntry] = []
        self.broadcasts: Dict[str, BroadcastMessage] = {}
        self.settings_data: Dict[str, Any] = {}
        self.settings: Optional[SystemSettings] = None
        self.errors: Dict[str, Exception] = {}
        self._clock = itertools.count()

    # Test helpers

    def add_user(
        self,
        user_id: str,
        role: str = "user",
        preferences: Optional[Dict[str, Any]] = None,
        tokens: Sequence[str] = (),
    ) -> None:
        self.users[user_id] = role
        if preferences is not None:
            self.preferences[user_id] = preferences
        for token in tokens:
            self.tokens.setdefault(user_id, []).append(DeliveryToken(recipient_id=user_id, token=token))

    def add_post(self, author_id: str, created_at: datetime) -> None:
        self.posts.append({"author_id": author_id, "created_at": created_at})

    def fail(self, method: str, error: Exception) -> None:
        """Make `method` raise `error`"""
        self.errors[method] = error

    def _check(self, method: str) -> None:
        if method in self.errors:
            raise self.errors[method]

    def _tick(self) -> datetime:
        return FIXED_NOW + timedelta(seconds=next(self._clock))

    # Lifecycle

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def health_check(self) -> bool:
        return True

    # Audience sources

    async def list_user_ids(self) -> List[str]:
        self._check("list_user_ids")
        return list(self.users)

    async def list_user_ids_by_role(self, role: str) -> List[str]:
        self._check("list_user_ids_by_role")
        return [user_id for user_id, user_role in self.users.items() if user_role == role]

    async def list_content_author_ids(self, since: datetime) -> List[str]:
        self._check("list_content_author_ids")
        return [p["author_id"] for p in self.posts if p["created_at"] >= since]

    # Consent

    async def get_notification_preferences(self, user_ids: Sequence[str]) -> Dict[str, Dict[str, Any]]:
        self._check("get_notification_preferences")
        return {uid: self.preferences[uid] for uid in user_ids if uid in self.preferences}

    # Delivery tokens

    async def get_delivery_tokens(self, user_id: str) -> List[DeliveryToken]:
        self._check("get_delivery_tokens")
        return list(self.tokens.get(user_id, []))

    async def delete_delivery_token(self, token: str, user_id: Optional[str] = None) -> int:
        removed = 0
        for owner, records in self.tokens.items():
            if user_id is not None and owner != user_id:
                continue
            kept = [r for r in records if r.token != token]
            removed += len(records) - len(kept)
            self.tokens[owner] = kept
        return removed

    # In-app records

    async def commit_notification_records(self, records: List[UserNotification]) -> None:
        self._check("commit_notification_records")
        self.record_commits.append(list(records))
        for item in records:
            existing = self.user_notifications.get(item.notification_key)
            stored = item.record.model_dump(by_alias=True)
            stored["recipientId"] = item.recipient_id
            if existing is not None:
                stored["isRead"] = existing["isRead"]
            self.user_notifications[item.notification_key] = stored

    # Delivery log

    async def record_delivery(self, entry: DeliveryLogEntry) -> None:
        self._check("record_delivery")
        self.deliveries.append(entry)

    async def get_delivered_recipient_ids(self, broadcast_id: str) -> Set[str]:
        return {
            d.recipient_id for d in self.deliveries
            if d.broadcast_id == broadcast_id and d.status == DeliveryStatus.DELIVERED
        }

    # Broadcasts

    async def create_broadcast(self, message: BroadcastMessage) -> BroadcastMessage:
        self._check("create_broadcast")
        now = self._tick()
        stored = message.model_copy(update={"created_at": now, "updated_at": now})
        self.broadcasts[stored.broadcast_id] = stored
        return stored

    async def get_broadcast(self, broadcast_id: str) -> Optional[BroadcastMessage]:
        return self.broadcasts.get(broadcast_id)

    async def list_broadcasts(self, limit: int = 100) -> List[BroadcastMessage]:
        ordered = sorted(self.broadcasts.values(), key=lambda b: b.created_at, reverse=True)
        return ordered[:limit]

    async def update_broadcast(self, broadcast_id: str, **fields: Any) -> Optional[BroadcastMessage]:
        self._check("update_broadcast")
        current = self.broadcasts.get(broadcast_id)
        if current is None:
            return None
        updated = current.model_copy(update={**fields, "updated_at": self._tick()})
        self.broadcasts[broadcast_id] = updated
        return updated

    async def transition_broadcast(
        self,
        broadcast_id: str,
        from_statuses: Sequence[BroadcastStatus],
        to_status: BroadcastStatus,
        **fields: Any,
    ) -> Optional[BroadcastMessage]:
        current = self.broadcasts.get(broadcast_id)
        if current is None or current.status not in from_statuses:
            return None
        updated = current.model_copy(update={**fields, "status": to_status, "updated_at": self._tick()})
        self.broadcasts[broadcast_id] = updated
        return updated

    async def list_due_scheduled(self, now: datetime) -> List[BroadcastMessage]:
        return sorted(
            (
                b for b in self.broadcasts.values()
                if b.status == BroadcastStatus.SCHEDULED and b.scheduled_for and b.scheduled_for <= now
            ),
            key=lambda b: b.scheduled_for,
        )

    # System settings

    async def get_system_settings(self) -> Optional[SystemSettings]:
        return self.settings

    async def save_system_settings(self, updates: Dict[str, Any], updated_by: Optional[str]) -> SystemSettings:
        self._check("save_system_settings")
        self.settings_data.update(updates)
        self.settings = SystemSettings.model_validate({
            **self.settings_data,
            "updatedAt": self._tick(),
            "updatedBy": updated_by,
        })
        return self.settings


# ====================
# Mock Push Gateway
# ====================


class MockPushGateway:
    """Push gateway that succeeds unless told otherwise per token"""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.token_errors: Dict[str, str] = {}
        self.token_exceptions: Dict[str, Exception] = {}

    async def send_multicast(self, message: PushMessage, tokens: List[str]) -> MulticastResult:
        self.calls.append({"message": message, "tokens": list(tokens)})
        for token in tokens:
            if token in self.token_exceptions:
                raise self.token_exceptions[token]

        responses = []
        for token in tokens:
            if token in self.token_errors:
                responses.append(TokenSendResult(
                    token=token,
                    success=False,
                    error_code=self.token_errors[token],
                    error_message="mock failure",
                ))
            else:
                responses.append(TokenSendResult(
                    token=token, success=True, message_id=f"projects/test/messages/{len(self.calls)}"
                ))
        return MulticastResult(responses=responses)

    @property
    def sent_tokens(self) -> List[str]:
        return [token for call in self.calls for token in call["tokens"]]


# ====================
# Mock Remote Config
# ====================


class MockRemoteConfigClient:
    """Remote Config with server-side ETag checks and scripted failures"""

    def __init__(self, template: Optional[ConfigTemplate] = None):
        self.template = template or ConfigTemplate(
            conditions=[{"name": "ios", "expression": "device.os == 'ios'"}],
            parameters={
                "welcomeMessage": ConfigParameter.string("Hello", "Shown on launch"),
            },
            version={"versionNumber": "1"},
            etag="etag-1",
        )
        self.get_errors: List[Exception] = []
        self.validate_errors: List[Exception] = []
        self.publish_errors: List[Exception] = []
        self.get_calls = 0
        self.validated: List[ConfigTemplate] = []
        self.published: List[ConfigTemplate] = []

    async def get_template(self) -> ConfigTemplate:
        self.get_calls += 1
        if self.get_errors:
            raise self.get_errors.pop(0)
        return self.template.model_copy(deep=True)

    async def validate_template(self, template: ConfigTemplate) -> ConfigTemplate:
        self.validated.append(template)
        if self.validate_errors:
            raise self.validate_errors.pop(0)
        return template.model_copy(deep=True)

    async def publish_template(self, template: ConfigTemplate) -> ConfigTemplate:
        self.published.append(template)
        if self.publish_errors:
            raise self.publish_errors.pop(0)
        if template.etag != self.template.etag:
            raise ConflictError("etag mismatch", code="remote-config/failed-precondition", status=412)

        number = int((self.template.version or {}).get("versionNumber", "0")) + 1
        self.template = template.model_copy(
            deep=True,
            update={"version": {"versionNumber": str(number)}, "etag": f"etag-{number}"},
        )
        return self.template.model_copy(deep=True)


class RecordingSleep:
    """Sleep replacement that records requested delays"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ====================
# Fixtures
# ====================


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def mock_repository() -> MockAdminRepository:
    return MockAdminRepository()


@pytest.fixture
def mock_push_gateway() -> MockPushGateway:
    return MockPushGateway()


@pytest.fixture
def mock_remote_config() -> MockRemoteConfigClient:
    return MockRemoteConfigClient()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def broadcast_config() -> BroadcastConfig:
    return BroadcastConfig()


@pytest.fixture
def broadcast_service(
    mock_repository, mock_push_gateway, mock_event_bus, broadcast_config, recording_sleep
) -> BroadcastService:
    return BroadcastService(
        repository=mock_repository,
        push_gateway=mock_push_gateway,
        event_bus=mock_event_bus,
        config=broadcast_config,
        clock=lambda: FIXED_NOW,
        sleep=recording_sleep,
    )


@pytest.fixture
def sync_engine(mock_remote_config, recording_sleep) -> ConfigSyncEngine:
    return ConfigSyncEngine(mock_remote_config, sleep=recording_sleep)


@pytest.fixture
def settings_service(mock_repository, sync_engine, mock_event_bus) -> SettingsService:
    return SettingsService(
        repository=mock_repository,
        sync_engine=sync_engine,
        event_bus=mock_event_bus,
    )


@pytest.fixture
def make_request():
    """Build a BroadcastCreateRequest from camelCase overrides"""

    def _make(**overrides: Any) -> BroadcastCreateRequest:
        payload = {
            "title": "Spring update",
            "body": "New features are live",
            "category": "announcement",
            "targetAudience": {"type": "all"},
        }
        payload.update(overrides)
        return BroadcastCreateRequest.model_validate(payload)

    return _make


@pytest.fixture
def make_broadcast():
    """Build a BroadcastMessage with sensible defaults"""
    counter = itertools.count(1)

    def _make(**overrides: Any) -> BroadcastMessage:
        fields = {
            "broadcast_id": f"bc_test_{next(counter):04d}",
            "title": "Spring update",
            "body": "New features are live",
            "category": "announcement",
            "target_audience": TargetAudience(type="all"),
        }
        fields.update(overrides)
        return BroadcastMessage(**fields)

    return _make


@pytest.fixture
def prefs():
    """Builder for stored preference documents"""
    return promotional_prefs
