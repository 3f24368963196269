"""
Component Tests for NotificationRecordWriter

Batched in-app record writes.
"""

import pytest

from microservices.admin_service.models import NotificationRecord
from microservices.admin_service.notification_record_writer import (
    NotificationRecordWriter,
    notification_key,
)


@pytest.fixture
def writer(mock_repository):
    return NotificationRecordWriter(mock_repository, batch_size=500)


class TestBatchCommits:
    """Commit sizing"""

    @pytest.mark.asyncio
    async def test_1200_recipients_commit_500_500_200(self, writer, mock_repository, make_broadcast):
        # Given: 1,200 eligible recipients
        message = make_broadcast()
        ids = [f"u{i:04d}" for i in range(1200)]

        # When: Writing records
        written = await writer.write_records(message.broadcast_id, ids, NotificationRecord.from_broadcast(message))

        # Then: Exactly three commits of 500, 500 and 200
        assert written == 1200
        assert [len(batch) for batch in mock_repository.record_commits] == [500, 500, 200]

    @pytest.mark.asyncio
    async def test_exact_multiple_has_no_empty_commit(self, writer, mock_repository, make_broadcast):
        message = make_broadcast()
        ids = [f"u{i:04d}" for i in range(1000)]

        await writer.write_records(message.broadcast_id, ids, NotificationRecord.from_broadcast(message))

        assert [len(batch) for batch in mock_repository.record_commits] == [500, 500]

    @pytest.mark.asyncio
    async def test_no_recipients_no_commit(self, writer, mock_repository, make_broadcast):
        message = make_broadcast()

        written = await writer.write_records(message.broadcast_id, [], NotificationRecord.from_broadcast(message))

        assert written == 0
        assert mock_repository.record_commits == []

    def test_batch_size_must_be_positive(self, mock_repository):
        with pytest.raises(ValueError):
            NotificationRecordWriter(mock_repository, batch_size=0)


class TestRecordContent:
    """Stored record shape and idempotency"""

    @pytest.mark.asyncio
    async def test_record_matches_client_contract(self, writer, mock_repository, make_broadcast):
        message = make_broadcast(category="event", deep_link="ora://events/42")

        await writer.write_records(message.broadcast_id, ["u1"], NotificationRecord.from_broadcast(message))

        stored = mock_repository.user_notifications[notification_key(message.broadcast_id, "u1")]
        assert stored["type"] == "event"
        assert stored["category"] == "promotional"
        assert stored["promoTitle"] == message.title
        assert stored["promoBody"] == message.body
        assert stored["targetId"] == message.broadcast_id
        assert stored["isRead"] is False
        assert stored["actors"] == []
        assert stored["actorCount"] == 0
        assert stored["deepLink"] == "ora://events/42"

    @pytest.mark.asyncio
    async def test_rewrite_keeps_read_state(self, writer, mock_repository, make_broadcast):
        """Writing the same broadcast twice keeps one record per recipient"""
        # Given: A record the recipient has already read
        message = make_broadcast()
        record = NotificationRecord.from_broadcast(message)
        await writer.write_records(message.broadcast_id, ["u1"], record)
        key = notification_key(message.broadcast_id, "u1")
        mock_repository.user_notifications[key]["isRead"] = True

        # When: Writing again
        await writer.write_records(message.broadcast_id, ["u1"], record)

        # Then: Still one record, still read
        assert len(mock_repository.user_notifications) == 1
        assert mock_repository.user_notifications[key]["isRead"] is True
