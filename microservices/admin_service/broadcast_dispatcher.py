"""
Broadcast Dispatcher

Bounded-batch push fan-out. Batches run one after another; recipients in a
batch are sent concurrently, and one recipient's failure never aborts the
run.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Set

from .delivery_token_registry import DeliveryTokenRegistry
from .models import (
    BroadcastMessage,
    DeliveryLogEntry,
    DeliveryStatus,
    DispatchResult,
    MulticastResult,
    PushMessage,
)
from .protocols import AdminRepositoryProtocol, PushGatewayProtocol

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


def default_deep_link(broadcast_id: str, scheme: str = "ora") -> str:
    return f"{scheme}://notification/{broadcast_id}"


def build_push_message(message: BroadcastMessage, deep_link_scheme: str = "ora") -> PushMessage:
    """Render the push payload shared by every token of every recipient"""
    data = {
        "type": message.category.value,
        "category": "promotional",
        "targetId": message.broadcast_id,
        "notificationId": message.broadcast_id,
        "deepLink": message.deep_link or default_deep_link(message.broadcast_id, deep_link_scheme),
    }
    if message.image_url:
        data["imageUrl"] = message.image_url

    return PushMessage(
        title=message.title,
        body=message.body,
        data=data,
        image_url=message.image_url,
    )


class BroadcastDispatcher:
    """Sends a broadcast's push notification to eligible recipients"""

    def __init__(
        self,
        token_registry: DeliveryTokenRegistry,
        push_gateway: PushGatewayProtocol,
        repository: Optional[AdminRepositoryProtocol] = None,
        batch_size: int = 100,
        batch_delay: float = 0.1,
        deep_link_scheme: str = "ora",
        sleep: Optional[SleepFunc] = None,
    ):
        self.token_registry = token_registry
        self.push_gateway = push_gateway
        self.repository = repository
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.deep_link_scheme = deep_link_scheme
        self._sleep = sleep or asyncio.sleep
        self._pending_invalidations: Set[asyncio.Task] = set()

    async def dispatch(self, message: BroadcastMessage, eligible_ids: Sequence[str]) -> DispatchResult:
        """
        Push `message` to every eligible recipient.

        Returns aggregate sent/failed token counts. Exceptions from outside the
        per-recipient sends (e.g. rendering the payload) propagate.
        """
        push = build_push_message(message, self.deep_link_scheme)
        total = DispatchResult()
        recipients = list(eligible_ids)
        batch_count = (len(recipients) + self.batch_size - 1) // self.batch_size

        for index in range(batch_count):
            batch = recipients[index * self.batch_size:(index + 1) * self.batch_size]
            results = await asyncio.gather(
                *(self._send_to_recipient(message, push, recipient_id) for recipient_id in batch)
            )
            for result in results:
                total.add(result)

            logger.debug(
                f"Broadcast {message.broadcast_id} batch {index + 1}/{batch_count}: "
                f"{len(batch)} recipients, running sent={total.sent} failed={total.failed}"
            )

            if index < batch_count - 1:
                await self._sleep(self.batch_delay)

        logger.info(
            f"Broadcast {message.broadcast_id} push complete: "
            f"{len(recipients)} recipients, sent={total.sent}, failed={total.failed}"
        )
        return total

    async def _send_to_recipient(
        self, message: BroadcastMessage, push: PushMessage, recipient_id: str
    ) -> DispatchResult:
        tokens: List[str] = []
        try:
            tokens = await self.token_registry.get_tokens(recipient_id)
            if not tokens:
                return DispatchResult()

            response: MulticastResult = await self.push_gateway.send_multicast(push, tokens)

            for token_result in response.responses:
                if token_result.is_permanent_failure:
                    self._schedule_invalidation(token_result.token, recipient_id, token_result.error_code)
                elif not token_result.success:
                    logger.warning(
                        f"Push to {recipient_id} failed for one token: "
                        f"{token_result.error_code} {token_result.error_message or ''}".rstrip()
                    )

            result = DispatchResult(sent=response.success_count, failed=response.failure_count)
            await self._log_delivery(
                message,
                recipient_id,
                DeliveryStatus.DELIVERED if result.sent > 0 else DeliveryStatus.FAILED,
                token_count=len(tokens),
                error=None if result.sent > 0 else "all tokens failed",
            )
            return result

        except Exception as e:
            logger.error(f"Error sending broadcast {message.broadcast_id} to {recipient_id}: {e}")
            await self._log_delivery(
                message, recipient_id, DeliveryStatus.FAILED, token_count=len(tokens), error=str(e)
            )
            return DispatchResult(sent=0, failed=1)

    def _schedule_invalidation(self, token: str, recipient_id: str, error_code: Optional[str]) -> None:
        task = asyncio.create_task(self._invalidate(token, recipient_id, error_code))
        self._pending_invalidations.add(task)
        task.add_done_callback(self._pending_invalidations.discard)

    async def _invalidate(self, token: str, recipient_id: str, error_code: Optional[str]) -> None:
        try:
            await self.token_registry.invalidate(token, recipient_id, error_code=error_code)
        except Exception as e:
            logger.error(f"Error removing invalid token for {recipient_id}: {e}")

    async def wait_for_invalidations(self) -> None:
        """Wait for fire-and-forget token removals started so far"""
        if self._pending_invalidations:
            await asyncio.gather(*list(self._pending_invalidations))

    async def _log_delivery(
        self,
        message: BroadcastMessage,
        recipient_id: str,
        status: DeliveryStatus,
        token_count: int,
        error: Optional[str] = None,
    ) -> None:
        if self.repository is None:
            return
        try:
            await self.repository.record_delivery(DeliveryLogEntry(
                broadcast_id=message.broadcast_id,
                recipient_id=recipient_id,
                category=message.category,
                status=status,
                token_count=token_count,
                error=error,
            ))
        except Exception as e:
            logger.warning(f"Failed to record delivery for {recipient_id}: {e}")


__all__ = ["BroadcastDispatcher", "build_push_message", "default_deep_link"]
