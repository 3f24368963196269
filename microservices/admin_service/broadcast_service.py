"""
Broadcast Service Business Logic

Owns the broadcast lifecycle: create (immediate or scheduled), list, get,
send a draft, and process due scheduled broadcasts. A send resolves the
audience, applies the consent gate, pushes in bounded batches and writes
the in-app records.

Status moves draft|scheduled -> sending -> sent. A send that raises
returns the broadcast to draft so it can be sent again, and the caller
gets the draft id with the counts reached so far.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from core.config import BroadcastConfig

from .audience_resolver import AudienceResolver
from .broadcast_dispatcher import BroadcastDispatcher, SleepFunc
from .delivery_token_registry import DeliveryTokenRegistry
from .events.publishers import AdminEventPublisher
from .models import (
    BroadcastCreateRequest,
    BroadcastMessage,
    BroadcastResponse,
    BroadcastStats,
    BroadcastStatus,
    NotificationRecord,
    ScheduledRunResponse,
    utc_now,
)
from .notification_record_writer import NotificationRecordWriter
from .preference_gate import PreferenceGate
from .protocols import (
    AdminRepositoryProtocol,
    EventBusProtocol,
    InvalidBroadcastStateError,
    NotFoundError,
    PushGatewayProtocol,
)

logger = logging.getLogger(__name__)


class BroadcastService:
    """Broadcast service business logic layer"""

    def __init__(
        self,
        repository: AdminRepositoryProtocol,
        push_gateway: PushGatewayProtocol,
        event_bus: Optional[EventBusProtocol] = None,
        config: Optional[BroadcastConfig] = None,
        deep_link_scheme: str = "ora",
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self.repository = repository
        self.config = config or BroadcastConfig()
        self._clock = clock or utc_now

        self.audience_resolver = AudienceResolver(repository, clock=self._clock)
        self.preference_gate = PreferenceGate(repository)
        self.token_registry = DeliveryTokenRegistry(repository)
        self.dispatcher = BroadcastDispatcher(
            self.token_registry,
            push_gateway,
            repository=repository,
            batch_size=self.config.push_batch_size,
            batch_delay=self.config.push_batch_delay,
            deep_link_scheme=deep_link_scheme,
            sleep=sleep,
        )
        self.record_writer = NotificationRecordWriter(
            repository, batch_size=self.config.record_batch_size
        )
        self.publisher = AdminEventPublisher(event_bus)

    # ====================
    # Create / read
    # ====================

    async def create_broadcast(
        self,
        request: BroadcastCreateRequest,
        sent_by: Optional[str] = None,
    ) -> BroadcastResponse:
        """
        Create a broadcast.

        With `scheduled_for` it is stored as scheduled and left for the poller;
        otherwise it is created as a draft and sent right away.
        """
        scheduled_for = request.scheduled_for
        if scheduled_for is not None and scheduled_for.tzinfo is None:
            scheduled_for = scheduled_for.replace(tzinfo=timezone.utc)

        message = BroadcastMessage(
            broadcast_id=f"bc_{uuid.uuid4().hex[:20]}",
            title=request.title,
            body=request.body,
            category=request.category,
            target_audience=request.target_audience,
            image_url=request.image_url,
            deep_link=request.deep_link,
            status=BroadcastStatus.SCHEDULED if scheduled_for else BroadcastStatus.DRAFT,
            sent_by=sent_by,
            scheduled_for=scheduled_for,
        )
        created = await self.repository.create_broadcast(message)
        logger.info(
            f"Created broadcast {created.broadcast_id} "
            f"({created.category.value}, audience={created.target_audience.type.value}, "
            f"status={created.status.value})"
        )
        await self.publisher.publish_broadcast_created(created)

        if created.status == BroadcastStatus.SCHEDULED:
            return BroadcastResponse(
                notification_id=created.broadcast_id,
                status=created.status,
                stats=created.stats,
                message=f"Broadcast scheduled for {scheduled_for.isoformat()}",
            )

        return await self._deliver(created, from_statuses=[BroadcastStatus.DRAFT])

    async def list_broadcasts(self, limit: Optional[int] = None) -> List[BroadcastMessage]:
        """Newest first"""
        return await self.repository.list_broadcasts(limit=limit or self.config.list_limit)

    async def get_broadcast(self, broadcast_id: str) -> BroadcastMessage:
        message = await self.repository.get_broadcast(broadcast_id)
        if message is None:
            raise NotFoundError(f"Broadcast not found: {broadcast_id}")
        return message

    # ====================
    # Send
    # ====================

    async def send_broadcast(self, broadcast_id: str) -> BroadcastResponse:
        """Send a draft broadcast"""
        message = await self.get_broadcast(broadcast_id)
        if message.status != BroadcastStatus.DRAFT:
            raise InvalidBroadcastStateError(
                f"Cannot send broadcast in '{message.status.value}' status; only drafts can be sent",
                current_status=message.status,
            )
        return await self._deliver(message, from_statuses=[BroadcastStatus.DRAFT])

    async def process_scheduled(self, now: Optional[datetime] = None) -> ScheduledRunResponse:
        """Send every scheduled broadcast whose time has come"""
        now = now or self._clock()
        due = await self.repository.list_due_scheduled(now)
        if not due:
            return ScheduledRunResponse()

        logger.info(f"Processing {len(due)} due scheduled broadcasts")
        results: List[BroadcastResponse] = []
        for message in due:
            try:
                results.append(
                    await self._deliver(message, from_statuses=[BroadcastStatus.SCHEDULED])
                )
            except InvalidBroadcastStateError as e:
                # Claimed by another run between the listing and the transition
                logger.info(f"Skipping scheduled broadcast {message.broadcast_id}: {e.message}")
            except Exception as e:
                results.append(BroadcastResponse(
                    success=False,
                    notification_id=message.broadcast_id,
                    status=BroadcastStatus.DRAFT,
                    stats=message.stats,
                    message=str(e),
                ))

        return ScheduledRunResponse(processed=len(results), results=results)

    async def _deliver(
        self,
        message: BroadcastMessage,
        from_statuses: Sequence[BroadcastStatus],
    ) -> BroadcastResponse:
        broadcast_id = message.broadcast_id
        sending = await self.repository.transition_broadcast(
            broadcast_id, from_statuses, BroadcastStatus.SENDING
        )
        if sending is None:
            current = await self.repository.get_broadcast(broadcast_id)
            current_status = current.status if current else None
            raise InvalidBroadcastStateError(
                f"Broadcast {broadcast_id} is no longer "
                f"{' or '.join(s.value for s in from_statuses)}",
                current_status=current_status,
            )

        stats = sending.stats
        try:
            candidates = await self.audience_resolver.resolve_audience(sending.target_audience)
            eligibility = await self.preference_gate.filter_eligible(
                candidates, sending.category, sending.target_audience.type
            )

            # Fixed from here on; dispatch never revises it
            stats = BroadcastStats(
                total_recipients=len(eligibility.eligible),
                skipped=eligibility.skipped_count,
            )
            await self.repository.update_broadcast(broadcast_id, stats=stats)

            already_delivered = await self.repository.get_delivered_recipient_ids(broadcast_id)
            pending = [r for r in eligibility.eligible if r not in already_delivered]
            if len(pending) < len(eligibility.eligible):
                logger.info(
                    f"Broadcast {broadcast_id}: skipping "
                    f"{len(eligibility.eligible) - len(pending)} recipients already delivered"
                )

            dispatch = await self.dispatcher.dispatch(sending, pending)
            # Recipients reached by an earlier run still count as delivered
            stats = stats.model_copy(update={
                "delivered": len(eligibility.eligible) - len(pending) + dispatch.sent,
                "failed": dispatch.failed,
            })

            await self.record_writer.write_records(
                broadcast_id, eligibility.eligible, NotificationRecord.from_broadcast(sending)
            )

            final = await self.repository.transition_broadcast(
                broadcast_id,
                [BroadcastStatus.SENDING],
                BroadcastStatus.SENT,
                stats=stats,
                sent_at=self._clock(),
                last_error=None,
            )

        except Exception as e:
            logger.error(f"Error sending broadcast {broadcast_id}: {e}", exc_info=True)
            await self._reset_to_draft(broadcast_id, e)
            return BroadcastResponse(
                success=False,
                notification_id=broadcast_id,
                status=BroadcastStatus.DRAFT,
                stats=stats,
                message=str(e),
            )

        logger.info(
            f"Broadcast {broadcast_id} sent: "
            f"total={stats.total_recipients} sent={stats.delivered} "
            f"failed={stats.failed} skipped={stats.skipped}"
        )
        await self.publisher.publish_broadcast_sent(
            final or sending.model_copy(update={"status": BroadcastStatus.SENT, "stats": stats}),
            bypassed_preferences=eligibility.bypassed > 0,
        )

        return BroadcastResponse(
            notification_id=broadcast_id,
            status=BroadcastStatus.SENT,
            stats=stats,
        )

    async def _reset_to_draft(self, broadcast_id: str, error: Exception) -> None:
        """sending -> draft after a failed send"""
        try:
            reset = await self.repository.transition_broadcast(
                broadcast_id,
                [BroadcastStatus.SENDING],
                BroadcastStatus.DRAFT,
                last_error=str(error),
            )
        except Exception as e:
            logger.error(f"Failed to reset broadcast {broadcast_id} to draft: {e}")
            return

        if reset is not None:
            logger.warning(f"Broadcast {broadcast_id} reset to draft after error: {error}")
            await self.publisher.publish_broadcast_reset(
                broadcast_id, BroadcastStatus.SENDING.value, str(error)
            )


__all__ = ["BroadcastService"]
