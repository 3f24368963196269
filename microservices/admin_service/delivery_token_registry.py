"""
Delivery Token Registry

Per-recipient push tokens. Tokens are only ever removed, and only when the
gateway reports them permanently invalid.
"""

import logging
from typing import List, Optional

from .models import PERMANENT_TOKEN_ERROR_CODES
from .protocols import AdminRepositoryProtocol

logger = logging.getLogger(__name__)


class DeliveryTokenRegistry:
    """Reads and invalidates push delivery tokens"""

    def __init__(self, repository: AdminRepositoryProtocol):
        self.repository = repository

    async def get_tokens(self, recipient_id: str) -> List[str]:
        """Enabled tokens of a recipient"""
        records = await self.repository.get_delivery_tokens(recipient_id)
        return [record.token for record in records if record.enabled and record.token]

    async def invalidate(
        self,
        token: str,
        recipient_id: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> int:
        """
        Delete a token record.

        When `error_code` is given it must be a permanent-invalidity code;
        transient failures never remove a token.
        """
        if error_code is not None and error_code not in PERMANENT_TOKEN_ERROR_CODES:
            logger.debug(f"Not invalidating token for {recipient_id}: non-permanent error {error_code}")
            return 0

        removed = await self.repository.delete_delivery_token(token, recipient_id)
        logger.info(f"Removed {removed} invalid delivery token(s) for {recipient_id or 'unknown recipient'}")
        return removed


__all__ = ["DeliveryTokenRegistry"]
