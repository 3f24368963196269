"""
Admin Service Events

Event models and publisher for admin service.
"""

from .models import (
    BroadcastCreatedEventData,
    BroadcastSentEventData,
    BroadcastResetEventData,
    SettingsUpdatedEventData,
    RemoteConfigPublishedEventData,
    RemoteConfigSyncFailedEventData,
)
from .publishers import AdminEventPublisher

__all__ = [
    # Event Data Models
    "BroadcastCreatedEventData",
    "BroadcastSentEventData",
    "BroadcastResetEventData",
    "SettingsUpdatedEventData",
    "RemoteConfigPublishedEventData",
    "RemoteConfigSyncFailedEventData",
    # Publisher
    "AdminEventPublisher",
]
