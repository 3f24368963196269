"""
Admin Service Factory

Factory for creating admin service instances with proper dependency injection.
"""

import logging
from typing import Optional

from core.config_manager import ConfigManager
from core.google_credentials import build_firebase_auth
from core.nats_client import NATSEventBus

from .admin_repository import AdminRepository
from .broadcast_service import BroadcastService
from .clients import PushGatewayClient, RemoteConfigClient
from .config_sync_engine import ConfigSyncEngine
from .scheduler import ScheduledBroadcastPoller
from .settings_service import SettingsService

logger = logging.getLogger(__name__)


class AdminServiceFactory:
    """Factory for creating admin service components"""

    def __init__(self, config: Optional[ConfigManager] = None):
        self.config = config or ConfigManager("admin_service")
        self._repository: Optional[AdminRepository] = None
        self._nats_client: Optional[NATSEventBus] = None
        self._push_gateway: Optional[PushGatewayClient] = None
        self._remote_config_client: Optional[RemoteConfigClient] = None
        self._broadcast_service: Optional[BroadcastService] = None
        self._settings_service: Optional[SettingsService] = None
        self._poller: Optional[ScheduledBroadcastPoller] = None

    async def initialize(self) -> None:
        """Initialize all components"""
        logger.info("Initializing Admin Service components...")
        settings = self.config.settings

        # Initialize repository
        self._repository = AdminRepository(self.config)
        await self._repository.initialize()

        # Initialize NATS client
        try:
            self._nats_client = NATSEventBus(
                service_name="admin_service",
                config=self.config,
            )
            await self._nats_client.connect()
            logger.info("NATS client connected")
        except Exception as e:
            logger.warning(f"NATS client initialization failed: {e}")
            self._nats_client = None

        # Initialize Firebase clients; both share one refreshing credential
        firebase_auth = build_firebase_auth(settings.firebase)
        self._push_gateway = PushGatewayClient.from_config(settings.firebase, auth=firebase_auth)
        self._remote_config_client = RemoteConfigClient.from_config(settings.firebase, auth=firebase_auth)

        # Initialize services
        self._broadcast_service = BroadcastService(
            repository=self._repository,
            push_gateway=self._push_gateway,
            event_bus=self._nats_client,
            config=settings.broadcast,
            deep_link_scheme=settings.firebase.deep_link_scheme,
        )
        self._settings_service = SettingsService(
            repository=self._repository,
            sync_engine=ConfigSyncEngine(self._remote_config_client),
            event_bus=self._nats_client,
        )

        self._poller = ScheduledBroadcastPoller(
            self._broadcast_service,
            interval=settings.broadcast.scheduler_interval,
        )

        logger.info("Admin Service components initialized")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Admin Service components...")

        if self._poller:
            await self._poller.stop()

        if self._push_gateway:
            await self._push_gateway.close()

        if self._remote_config_client:
            await self._remote_config_client.close()

        if self._nats_client:
            await self._nats_client.close()

        if self._repository:
            await self._repository.close()

        logger.info("Admin Service components closed")

    @property
    def repository(self) -> AdminRepository:
        """Get admin repository"""
        if not self._repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._repository

    @property
    def broadcast_service(self) -> BroadcastService:
        """Get broadcast service"""
        if not self._broadcast_service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._broadcast_service

    @property
    def settings_service(self) -> SettingsService:
        """Get settings service"""
        if not self._settings_service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._settings_service

    @property
    def poller(self) -> ScheduledBroadcastPoller:
        """Get scheduled broadcast poller"""
        if not self._poller:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._poller

    @property
    def nats_client(self) -> Optional[NATSEventBus]:
        """Get NATS client"""
        return self._nats_client


__all__ = ["AdminServiceFactory"]
