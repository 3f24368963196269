"""
Settings Service Business Logic

The stored settings record is the source of truth. Remote Config is a
secondary copy for the mobile apps: a failed sync is reported next to the
successful save and never rolls it back.
"""

import logging
from typing import Optional

from .config_sync_engine import ConfigSyncEngine
from .events.publishers import AdminEventPublisher
from .models import (
    RemoteConfigErrorInfo,
    SettingsUpdateRequest,
    SettingsUpdateResponse,
    SystemSettings,
)
from .protocols import AdminRepositoryProtocol, AdminServiceError, EventBusProtocol

logger = logging.getLogger(__name__)

SYNC_FAILED_WARNING = (
    "Settings saved to database, but failed to sync to Firebase Remote Config. "
    "The iOS app may not receive the updates until this is resolved."
)


class SettingsService:
    """System settings business logic layer"""

    def __init__(
        self,
        repository: AdminRepositoryProtocol,
        sync_engine: Optional[ConfigSyncEngine] = None,
        event_bus: Optional[EventBusProtocol] = None,
    ):
        self.repository = repository
        self.sync_engine = sync_engine
        self.publisher = AdminEventPublisher(event_bus)

    async def get_settings(self) -> SystemSettings:
        """Stored settings, or defaults when none were ever saved"""
        stored = await self.repository.get_system_settings()
        return stored or SystemSettings()

    async def update_settings(
        self,
        request: SettingsUpdateRequest,
        updated_by: Optional[str] = None,
    ) -> SettingsUpdateResponse:
        """
        Merge the provided sections into the stored record, then push flags,
        remote config values and maintenance mode to Remote Config.
        """
        updates = request.model_dump(by_alias=True, exclude_none=True)
        saved = await self.repository.save_system_settings(updates, updated_by)
        logger.info(f"System settings updated by {updated_by}: {sorted(updates)}")
        await self.publisher.publish_settings_updated(sorted(updates), updated_by)

        if not request.touches_remote_config:
            return SettingsUpdateResponse(settings=saved)
        if self.sync_engine is None:
            logger.warning("Remote Config sync not configured, skipping")
            return SettingsUpdateResponse(settings=saved)

        try:
            published = await self.sync_engine.sync(
                feature_flags=request.feature_flags,
                remote_config=request.remote_config,
                maintenance_mode=request.maintenance_mode,
            )
        except AdminServiceError as e:
            error = RemoteConfigErrorInfo(message=e.message, code=e.code, status=e.status)
        except Exception as e:
            logger.error(f"Unexpected Remote Config sync error: {e}", exc_info=True)
            error = RemoteConfigErrorInfo(message=str(e))
        else:
            await self.publisher.publish_remote_config_published(
                (published.version or {}).get("versionNumber"),
                sorted(published.parameters),
            )
            return SettingsUpdateResponse(settings=saved)

        logger.error(f"Settings saved but Remote Config sync failed: {error.message}")
        await self.publisher.publish_remote_config_sync_failed(error)
        return SettingsUpdateResponse(
            settings=saved,
            remote_config_error=error,
            warning=SYNC_FAILED_WARNING,
        )


__all__ = ["SettingsService", "SYNC_FAILED_WARNING"]
