"""
NATS JetStream Client for Python Microservices

Event bus wrapper around nats-py. Events are published to JetStream
streams derived from the event type prefix (admin.* -> admin-stream).
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

import nats
from nats.aio.client import Client as NATS
from nats.js import JetStreamContext

if TYPE_CHECKING:
    from core.config_manager import ConfigManager

logger = logging.getLogger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles Decimal and datetime types"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class EventType(Enum):
    """Event types published by the admin plane"""

    # Broadcast Events
    BROADCAST_CREATED = "admin.broadcast.created"
    BROADCAST_SENT = "admin.broadcast.sent"
    BROADCAST_RESET = "admin.broadcast.reset"

    # Settings Events
    SETTINGS_UPDATED = "admin.settings.updated"
    REMOTE_CONFIG_PUBLISHED = "admin.remote_config.published"
    REMOTE_CONFIG_SYNC_FAILED = "admin.remote_config.sync_failed"


class ServiceSource(Enum):
    """Service sources"""

    ADMIN_SERVICE = "admin_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: EventType,
        source: ServiceSource,
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value
        self.source = source.value
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }


class NATSEventBus:
    """
    NATS JetStream event bus using nats-py.
    """

    def __init__(
        self,
        service_name: str,
        config: Optional["ConfigManager"] = None,
    ):
        """
        Initialize NATS Event Bus.

        Args:
            service_name: Name of the service (used as the connection name)
            config: Optional ConfigManager instance for service discovery
        """
        from core.config_manager import ConfigManager

        self.service_name = service_name

        # Priority: NATS_URL → NATS_HOST/NATS_PORT → default fallback
        if config is None:
            config = ConfigManager(service_name)

        self.host, self.port = config.discover_service(
            service_name='nats_service',
            default_host=config.settings.infrastructure.nats_host,
            default_port=config.settings.infrastructure.nats_port,
            env_host_key='NATS_HOST',
            env_port_key='NATS_PORT'
        )
        self.servers = config.settings.infrastructure.nats_url or f"nats://{self.host}:{self.port}"

        self._nc: Optional[NATS] = None
        self._js: Optional[JetStreamContext] = None
        self._streams: set = set()

        logger.info(f"NATS EventBus initialized: {self.servers}")

    async def connect(self):
        """Connect to NATS and open a JetStream context"""
        try:
            self._nc = await nats.connect(servers=[self.servers], name=self.service_name)
            self._js = self._nc.jetstream()
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise

    async def publish_event(self, event: Event) -> bool:
        """
        Publish an event to NATS JetStream.

        The stream is derived from the event type prefix and created on first
        use. Returns False instead of raising when publishing fails.
        """
        if not self.is_connected or not self._js:
            logger.error("Not connected to NATS")
            return False

        try:
            subject = event.type
            data = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()
            stream_name = self._get_stream_name_for_event(event.type)

            if stream_name not in self._streams:
                subject_prefix = event.type.split('.')[0]
                try:
                    await self._js.add_stream(name=stream_name, subjects=[f"{subject_prefix}.>"])
                except Exception as e:
                    logger.debug(f"Stream creation note: {e}")
                self._streams.add(stream_name)

            ack = await self._js.publish(subject, data)
            logger.info(f"Published event {event.type} [{event.id}] to stream {stream_name}, seq={ack.seq}")
            return True

        except Exception as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    def _get_stream_name_for_event(self, event_type: str) -> str:
        """admin.broadcast.sent -> admin-stream"""
        prefix = event_type.split('.')[0]
        return f"{prefix}-stream"

    async def close(self):
        """Drain and close the connection"""
        if self._nc is not None:
            try:
                await self._nc.drain()
            except Exception as e:
                logger.warning(f"Error draining NATS connection: {e}")
            self._nc = None
            self._js = None
            logger.info(f"NATS connection closed for {self.service_name}")

    @property
    def is_connected(self) -> bool:
        return self._nc is not None and self._nc.is_connected

