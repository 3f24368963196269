"""
Admin Event Publishers

Publishes admin_service events to NATS JetStream. Publishing is best
effort: failures are logged and reported as False, never raised.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.nats_client import Event, EventType, ServiceSource

from ..models import BroadcastMessage, RemoteConfigErrorInfo
from .models import (
    BroadcastCreatedEventData,
    BroadcastResetEventData,
    BroadcastSentEventData,
    RemoteConfigPublishedEventData,
    RemoteConfigSyncFailedEventData,
    SettingsUpdatedEventData,
)

logger = logging.getLogger(__name__)


class AdminEventPublisher:
    """Publisher for admin service events"""

    def __init__(self, event_bus=None):
        self.event_bus = event_bus

    async def publish(self, event_type: EventType, data: Dict[str, Any], subject: Optional[str] = None) -> bool:
        """
        Publish an event to NATS.

        Returns:
            True if published successfully, False otherwise
        """
        if not self.event_bus:
            logger.debug(f"Event bus not configured, skipping publish: {event_type.value}")
            return False

        try:
            event = Event(
                event_type=event_type,
                source=ServiceSource.ADMIN_SERVICE,
                data=data,
                subject=subject,
            )
            return await self.event_bus.publish_event(event)
        except Exception as e:
            logger.error(f"Failed to publish event {event_type.value}: {e}")
            return False

    # ====================
    # Broadcast events
    # ====================

    async def publish_broadcast_created(self, message: BroadcastMessage) -> bool:
        data = BroadcastCreatedEventData(
            broadcast_id=message.broadcast_id,
            category=message.category.value,
            audience_type=message.target_audience.type.value,
            status=message.status.value,
            sent_by=message.sent_by,
            scheduled_for=message.scheduled_for,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(
            EventType.BROADCAST_CREATED, data.model_dump(mode="json"), subject=message.broadcast_id
        )

    async def publish_broadcast_sent(self, message: BroadcastMessage, bypassed_preferences: bool = False) -> bool:
        """admin.broadcast.sent with the final counts"""
        data = BroadcastSentEventData(
            broadcast_id=message.broadcast_id,
            category=message.category.value,
            total_recipients=message.stats.total_recipients,
            delivered=message.stats.delivered,
            failed=message.stats.failed,
            skipped=message.stats.skipped,
            bypassed_preferences=bypassed_preferences,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(
            EventType.BROADCAST_SENT, data.model_dump(mode="json"), subject=message.broadcast_id
        )

    async def publish_broadcast_reset(self, broadcast_id: str, previous_status: str, error: str) -> bool:
        """Published when a failed send returns the broadcast to draft"""
        data = BroadcastResetEventData(
            broadcast_id=broadcast_id,
            previous_status=previous_status,
            error=error,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(EventType.BROADCAST_RESET, data.model_dump(mode="json"), subject=broadcast_id)

    # ====================
    # Settings events
    # ====================

    async def publish_settings_updated(self, changed_sections: List[str], updated_by: Optional[str]) -> bool:
        data = SettingsUpdatedEventData(
            updated_by=updated_by,
            changed_sections=changed_sections,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(EventType.SETTINGS_UPDATED, data.model_dump(mode="json"))

    async def publish_remote_config_published(
        self,
        version_number: Optional[str],
        parameters: List[str],
    ) -> bool:
        data = RemoteConfigPublishedEventData(
            version_number=version_number,
            parameters=parameters,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(EventType.REMOTE_CONFIG_PUBLISHED, data.model_dump(mode="json"))

    async def publish_remote_config_sync_failed(self, error: RemoteConfigErrorInfo) -> bool:
        data = RemoteConfigSyncFailedEventData(
            message=error.message,
            code=error.code,
            status=error.status,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(EventType.REMOTE_CONFIG_SYNC_FAILED, data.model_dump(mode="json"))
