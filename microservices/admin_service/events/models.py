"""
Admin Event Data Models

Payloads for events published by admin_service.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Broadcast events
# =============================================================================


class BroadcastCreatedEventData(BaseModel):
    """admin.broadcast.created event data"""
    broadcast_id: str = Field(..., description="Broadcast ID")
    category: str = Field(..., description="Broadcast category")
    audience_type: str = Field(..., description="Target audience type")
    status: str = Field(..., description="Initial status (draft or scheduled)")
    sent_by: Optional[str] = Field(None, description="Admin who created the broadcast")
    scheduled_for: Optional[datetime] = Field(None, description="Scheduled send time")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class BroadcastSentEventData(BaseModel):
    """admin.broadcast.sent event data"""
    broadcast_id: str = Field(..., description="Broadcast ID")
    category: str = Field(..., description="Broadcast category")
    total_recipients: int = Field(..., description="Eligible recipients")
    delivered: int = Field(..., description="Recipients reached on at least one token")
    failed: int = Field(..., description="Recipients not reached")
    skipped: int = Field(..., description="Recipients filtered by preferences")
    bypassed_preferences: bool = Field(False, description="Preference gate was bypassed")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class BroadcastResetEventData(BaseModel):
    """admin.broadcast.reset event data"""
    broadcast_id: str = Field(..., description="Broadcast ID")
    previous_status: str = Field(..., description="Status before the reset")
    error: str = Field(..., description="Error that caused the reset")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


# =============================================================================
# Settings events
# =============================================================================


class SettingsUpdatedEventData(BaseModel):
    """admin.settings.updated event data"""
    updated_by: Optional[str] = Field(None, description="Admin who saved the settings")
    changed_sections: List[str] = Field(default_factory=list, description="Top-level keys written")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class RemoteConfigPublishedEventData(BaseModel):
    """admin.remote_config.published event data"""
    version_number: Optional[str] = Field(None, description="Published template version")
    parameters: List[str] = Field(default_factory=list, description="Parameter names in the template")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class RemoteConfigSyncFailedEventData(BaseModel):
    """admin.remote_config.sync_failed event data"""
    message: str = Field(..., description="Failure message")
    code: Optional[str] = Field(None, description="Upstream error code")
    status: Optional[int] = Field(None, description="Upstream HTTP status")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")
