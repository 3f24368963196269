"""
Admin Repository

Data access layer for the admin service - PostgreSQL (asyncpg).

Admin-owned tables live in the `admin` schema; audience sources, consent
documents and delivery tokens are read from the platform tables in
`public`.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set

from core.config_manager import ConfigManager
from core.postgres_client import PostgresClientWrapper

from .models import (
    BroadcastMessage,
    BroadcastStats,
    BroadcastStatus,
    DeliveryLogEntry,
    DeliveryStatus,
    DeliveryToken,
    SystemSettings,
    TargetAudience,
    UserNotification,
)

logger = logging.getLogger(__name__)

SETTINGS_ID = "main"

# Columns update_broadcast may touch
_BROADCAST_COLUMNS = {
    "title", "body", "category", "image_url", "deep_link", "status", "stats",
    "last_error", "scheduled_for", "sent_at",
}


class AdminRepository:
    """Admin service data repository - PostgreSQL (Async)"""

    def __init__(self, config: Optional[ConfigManager] = None):
        # Use config_manager for service discovery
        if config is None:
            config = ConfigManager("admin_service")

        infra = config.settings.infrastructure

        # Discover PostgreSQL service
        host, port = config.discover_service(
            service_name='postgres_service',
            default_host=infra.postgres_host,
            default_port=infra.postgres_port,
            env_host_key='POSTGRES_HOST',
            env_port_key='POSTGRES_PORT'
        )

        logger.info(f"Connecting to PostgreSQL at {host}:{port}")
        self.db = PostgresClientWrapper(
            service_name="admin_service",
            host=host,
            port=port,
            database=infra.postgres_db,
            username=infra.postgres_user,
            password=infra.postgres_password,
            min_size=infra.postgres_min_pool,
            max_size=infra.postgres_max_pool,
        )
        self.schema = "admin"
        self.platform_schema = "public"

        # Table names
        self.broadcasts_table = f"{self.schema}.broadcasts"
        self.user_notifications_table = f"{self.schema}.user_notifications"
        self.deliveries_table = f"{self.schema}.notification_deliveries"
        self.settings_table = f"{self.schema}.system_settings"
        self.users_table = f"{self.platform_schema}.users"
        self.posts_table = f"{self.platform_schema}.posts"
        self.preferences_table = f"{self.platform_schema}.notification_preferences"
        self.tokens_table = f"{self.platform_schema}.delivery_tokens"

    async def initialize(self):
        """Initialize database connection"""
        await self.db.connect()
        logger.info("Admin repository initialized with PostgreSQL")

    async def close(self):
        """Close database connection"""
        await self.db.close()
        logger.info("Admin repository database connection closed")

    async def health_check(self) -> bool:
        """Check repository health"""
        return await self.db.health_check()

    # ====================
    # Audience sources
    # ====================

    async def list_user_ids(self) -> List[str]:
        """Every recipient id"""
        rows = await self.db.query(f"SELECT user_id FROM {self.users_table}")
        return [row["user_id"] for row in rows]

    async def list_user_ids_by_role(self, role: str) -> List[str]:
        """Recipient ids whose role equals `role`"""
        rows = await self.db.query(
            f"SELECT user_id FROM {self.users_table} WHERE role = $1",
            [role],
        )
        return [row["user_id"] for row in rows]

    async def list_content_author_ids(self, since: datetime) -> List[str]:
        """Distinct authors of posts created at or after `since`"""
        rows = await self.db.query(
            f'''
                SELECT DISTINCT user_id FROM {self.posts_table}
                WHERE created_at >= $1 AND user_id IS NOT NULL
            ''',
            [since],
        )
        return [row["user_id"] for row in rows]

    # ====================
    # Consent
    # ====================

    async def get_notification_preferences(
        self, user_ids: Sequence[str]
    ) -> Dict[str, Dict[str, Any]]:
        """Preference documents keyed by user id"""
        if not user_ids:
            return {}
        rows = await self.db.query(
            f'''
                SELECT user_id, preferences FROM {self.preferences_table}
                WHERE user_id = ANY($1::text[])
            ''',
            [list(user_ids)],
        )
        return {row["user_id"]: row["preferences"] or {} for row in rows}

    # ====================
    # Delivery tokens
    # ====================

    async def get_delivery_tokens(self, user_id: str) -> List[DeliveryToken]:
        """All token records of a user"""
        rows = await self.db.query(
            f'''
                SELECT user_id, token, enabled, platform, created_at
                FROM {self.tokens_table}
                WHERE user_id = $1
            ''',
            [user_id],
        )
        return [
            DeliveryToken(
                recipient_id=row["user_id"],
                token=row["token"],
                enabled=row["enabled"] is not False,
                platform=row.get("platform"),
                created_at=row.get("created_at"),
            )
            for row in rows
            if row.get("token")
        ]

    async def delete_delivery_token(self, token: str, user_id: Optional[str] = None) -> int:
        """Delete token records matching `token` (scoped to `user_id` when given)"""
        try:
            if user_id:
                return await self.db.execute(
                    f"DELETE FROM {self.tokens_table} WHERE token = $1 AND user_id = $2",
                    [token, user_id],
                )
            return await self.db.execute(
                f"DELETE FROM {self.tokens_table} WHERE token = $1",
                [token],
            )
        except Exception as e:
            logger.error(f"Error deleting delivery token: {e}", exc_info=True)
            raise

    # ====================
    # In-app records
    # ====================

    async def commit_notification_records(self, records: List[UserNotification]) -> None:
        """Upsert a batch of in-app records in one transaction.

        A rewrite keeps the record's read state and creation time.
        """
        if not records:
            return

        query = f'''
            INSERT INTO {self.user_notifications_table} (
                notification_key, user_id, broadcast_id, type, category,
                message, promo_title, promo_body, target_id, is_read,
                actors, actor_count, promo_image_url, deep_link,
                created_at, updated_at, last_activity_at
            ) VALUES (
                $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14,
                NOW(), NOW(), NOW()
            )
            ON CONFLICT (notification_key) DO UPDATE SET
                type = EXCLUDED.type,
                category = EXCLUDED.category,
                message = EXCLUDED.message,
                promo_title = EXCLUDED.promo_title,
                promo_body = EXCLUDED.promo_body,
                target_id = EXCLUDED.target_id,
                actors = EXCLUDED.actors,
                actor_count = EXCLUDED.actor_count,
                promo_image_url = EXCLUDED.promo_image_url,
                deep_link = EXCLUDED.deep_link,
                updated_at = NOW(),
                last_activity_at = NOW()
        '''
        params_list = [
            [
                item.notification_key,
                item.recipient_id,
                item.broadcast_id,
                item.record.type.value,
                item.record.category,
                item.record.message,
                item.record.promo_title,
                item.record.promo_body,
                item.record.target_id,
                item.record.is_read,
                item.record.actors,
                item.record.actor_count,
                item.record.promo_image_url,
                item.record.deep_link,
            ]
            for item in records
        ]

        try:
            await self.db.execute_many(query, params_list)
        except Exception as e:
            logger.error(f"Error committing {len(records)} notification records: {e}", exc_info=True)
            raise

    # ====================
    # Delivery log
    # ====================

    async def record_delivery(self, entry: DeliveryLogEntry) -> None:
        """Append a push attempt outcome"""
        await self.db.execute(
            f'''
                INSERT INTO {self.deliveries_table} (
                    broadcast_id, user_id, category, status, token_count, error, created_at
                ) VALUES ($1, $2, $3, $4, $5, $6, NOW())
            ''',
            [
                entry.broadcast_id,
                entry.recipient_id,
                entry.category.value,
                entry.status.value,
                entry.token_count,
                entry.error,
            ],
        )

    async def get_delivered_recipient_ids(self, broadcast_id: str) -> Set[str]:
        rows = await self.db.query(
            f'''
                SELECT DISTINCT user_id FROM {self.deliveries_table}
                WHERE broadcast_id = $1 AND status = $2
            ''',
            [broadcast_id, DeliveryStatus.DELIVERED.value],
        )
        return {row["user_id"] for row in rows}

    # ====================
    # Broadcasts
    # ====================

    async def create_broadcast(self, message: BroadcastMessage) -> BroadcastMessage:
        """Insert a broadcast"""
        try:
            query = f'''
                INSERT INTO {self.broadcasts_table} (
                    broadcast_id, title, body, category, target_audience,
                    image_url, deep_link, status, stats, sent_by,
                    scheduled_for, sent_at, created_at, updated_at
                ) VALUES (
                    $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, NOW(), NOW()
                )
                RETURNING *
            '''
            params = [
                message.broadcast_id,
                message.title,
                message.body,
                message.category.value,
                message.target_audience.model_dump(mode="json", by_alias=True),
                message.image_url,
                message.deep_link,
                message.status.value,
                message.stats.model_dump(by_alias=True),
                message.sent_by,
                message.scheduled_for,
                message.sent_at,
            ]
            row = await self.db.query_row(query, params)
            return self._row_to_broadcast(row) if row else message

        except Exception as e:
            logger.error(f"Error creating broadcast: {e}", exc_info=True)
            raise

    async def get_broadcast(self, broadcast_id: str) -> Optional[BroadcastMessage]:
        """Get broadcast by ID"""
        row = await self.db.query_row(
            f"SELECT * FROM {self.broadcasts_table} WHERE broadcast_id = $1",
            [broadcast_id],
        )
        return self._row_to_broadcast(row) if row else None

    async def list_broadcasts(self, limit: int = 100) -> List[BroadcastMessage]:
        """Newest first"""
        rows = await self.db.query(
            f"SELECT * FROM {self.broadcasts_table} ORDER BY created_at DESC LIMIT $1",
            [limit],
        )
        return [self._row_to_broadcast(row) for row in rows]

    async def update_broadcast(self, broadcast_id: str, **fields: Any) -> Optional[BroadcastMessage]:
        """Update broadcast fields"""
        assignments, params = self._build_assignments(fields)
        if not assignments:
            return await self.get_broadcast(broadcast_id)

        params.append(broadcast_id)
        query = f'''
            UPDATE {self.broadcasts_table}
            SET {", ".join(assignments)}, updated_at = NOW()
            WHERE broadcast_id = ${len(params)}
            RETURNING *
        '''
        try:
            row = await self.db.query_row(query, params)
            return self._row_to_broadcast(row) if row else None
        except Exception as e:
            logger.error(f"Error updating broadcast {broadcast_id}: {e}", exc_info=True)
            raise

    async def transition_broadcast(
        self,
        broadcast_id: str,
        from_statuses: Sequence[BroadcastStatus],
        to_status: BroadcastStatus,
        **fields: Any,
    ) -> Optional[BroadcastMessage]:
        """Compare-and-set on status; None when the current status is not allowed"""
        assignments, params = self._build_assignments({**fields, "status": to_status})
        params.append(broadcast_id)
        id_index = len(params)
        params.append([s.value for s in from_statuses])
        query = f'''
            UPDATE {self.broadcasts_table}
            SET {", ".join(assignments)}, updated_at = NOW()
            WHERE broadcast_id = ${id_index} AND status = ANY(${id_index + 1}::text[])
            RETURNING *
        '''
        try:
            row = await self.db.query_row(query, params)
            return self._row_to_broadcast(row) if row else None
        except Exception as e:
            logger.error(f"Error transitioning broadcast {broadcast_id}: {e}", exc_info=True)
            raise

    async def list_due_scheduled(self, now: datetime) -> List[BroadcastMessage]:
        rows = await self.db.query(
            f'''
                SELECT * FROM {self.broadcasts_table}
                WHERE status = $1 AND scheduled_for <= $2
                ORDER BY scheduled_for ASC
            ''',
            [BroadcastStatus.SCHEDULED.value, now],
        )
        return [self._row_to_broadcast(row) for row in rows]

    # ====================
    # System settings
    # ====================

    async def get_system_settings(self) -> Optional[SystemSettings]:
        row = await self.db.query_row(
            f"SELECT * FROM {self.settings_table} WHERE settings_id = $1",
            [SETTINGS_ID],
        )
        return self._row_to_settings(row) if row else None

    async def save_system_settings(
        self, updates: Dict[str, Any], updated_by: Optional[str]
    ) -> SystemSettings:
        """Merge top-level sections into the settings record"""
        query = f'''
            INSERT INTO {self.settings_table} (settings_id, data, updated_at, updated_by)
            VALUES ($1, $2, NOW(), $3)
            ON CONFLICT (settings_id) DO UPDATE SET
                data = {self.settings_table}.data || EXCLUDED.data,
                updated_at = NOW(),
                updated_by = EXCLUDED.updated_by
            RETURNING *
        '''
        try:
            row = await self.db.query_row(query, [SETTINGS_ID, updates, updated_by])
            return self._row_to_settings(row)
        except Exception as e:
            logger.error(f"Error saving system settings: {e}", exc_info=True)
            raise

    # ====================
    # Helpers
    # ====================

    def _build_assignments(self, fields: Dict[str, Any]):
        assignments = []
        params: List[Any] = []
        for column, value in fields.items():
            if column not in _BROADCAST_COLUMNS:
                raise ValueError(f"Unknown broadcast column: {column}")
            if isinstance(value, BroadcastStats):
                value = value.model_dump(by_alias=True)
            elif isinstance(value, Enum):
                value = value.value
            params.append(value)
            assignments.append(f"{column} = ${len(params)}")
        return assignments, params

    def _row_to_broadcast(self, row: Dict[str, Any]) -> BroadcastMessage:
        return BroadcastMessage(
            broadcast_id=row["broadcast_id"],
            title=row["title"],
            body=row["body"],
            category=row["category"],
            target_audience=TargetAudience.model_validate(row["target_audience"]),
            image_url=row.get("image_url"),
            deep_link=row.get("deep_link"),
            status=row["status"],
            stats=BroadcastStats.model_validate(row.get("stats") or {}),
            last_error=row.get("last_error"),
            sent_by=row.get("sent_by"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            scheduled_for=row.get("scheduled_for"),
            sent_at=row.get("sent_at"),
        )

    def _row_to_settings(self, row: Dict[str, Any]) -> SystemSettings:
        data = row.get("data") or {}
        return SystemSettings.model_validate({
            **data,
            "updatedAt": row.get("updated_at"),
            "updatedBy": row.get("updated_by"),
        })


__all__ = ["AdminRepository"]
