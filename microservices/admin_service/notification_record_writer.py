"""
Notification Record Writer

Writes one in-app notification record per eligible recipient, committed in
batches no larger than the store's write-size limit.
"""

import logging
import uuid
from typing import List, Sequence

from .models import NotificationRecord, UserNotification
from .protocols import AdminRepositoryProtocol

logger = logging.getLogger(__name__)

# Namespace for deterministic (broadcast, recipient) record keys
RECORD_KEY_NAMESPACE = uuid.UUID("6f1c2a7e-9b4d-5e3f-8a21-0c7d4b9e1f53")


def notification_key(message_id: str, recipient_id: str) -> str:
    """Same inputs always give the same key, so a repeat write overwrites"""
    return str(uuid.uuid5(RECORD_KEY_NAMESPACE, f"{message_id}:{recipient_id}"))


class NotificationRecordWriter:
    """Batched writer for in-app notification records"""

    def __init__(self, repository: AdminRepositoryProtocol, batch_size: int = 500):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.repository = repository
        self.batch_size = batch_size

    async def write_records(
        self,
        message_id: str,
        eligible_ids: Sequence[str],
        record: NotificationRecord,
    ) -> int:
        """Write `record` for every recipient; returns the number of records written"""
        batch: List[UserNotification] = []
        written = 0
        commits = 0

        for recipient_id in eligible_ids:
            batch.append(UserNotification(
                notification_key=notification_key(message_id, recipient_id),
                recipient_id=recipient_id,
                broadcast_id=message_id,
                record=record,
            ))
            if len(batch) >= self.batch_size:
                await self.repository.commit_notification_records(batch)
                written += len(batch)
                commits += 1
                batch = []

        if batch:
            await self.repository.commit_notification_records(batch)
            written += len(batch)
            commits += 1

        logger.info(f"Wrote {written} in-app records for broadcast {message_id} in {commits} commits")
        return written


__all__ = ["NotificationRecordWriter", "notification_key"]
