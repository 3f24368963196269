"""
Audience Resolver

Turns a declarative TargetAudience into the concrete set of recipient ids.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Set

from .models import (
    AudienceType,
    DEFAULT_ACTIVITY_DAYS,
    DEFAULT_AUDIENCE_ROLE,
    TargetAudience,
)
from .protocols import AdminRepositoryProtocol

logger = logging.getLogger(__name__)


class AudienceResolver:
    """Resolves audience descriptions against the store"""

    def __init__(
        self,
        repository: AdminRepositoryProtocol,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def resolve_audience(self, audience: TargetAudience) -> Set[str]:
        """
        Resolve recipients for an audience.

        - all: every recipient
        - role: recipients whose role equals filters.role (default "user")
        - activity: authors of content in the last filters.days days (default 30)
        - custom: exactly filters.user_ids, without an existence check
        """
        filters = audience.filters

        if audience.type == AudienceType.ALL:
            recipients = set(await self.repository.list_user_ids())

        elif audience.type == AudienceType.ROLE:
            role = filters.role or DEFAULT_AUDIENCE_ROLE
            recipients = set(await self.repository.list_user_ids_by_role(role))

        elif audience.type == AudienceType.ACTIVITY:
            days = filters.days or DEFAULT_ACTIVITY_DAYS
            since = self._clock() - timedelta(days=days)
            recipients = set(await self.repository.list_content_author_ids(since))

        elif audience.type == AudienceType.CUSTOM:
            recipients = set(filters.user_ids or [])

        else:
            recipients = set()

        logger.info(f"Resolved {audience.type.value} audience to {len(recipients)} recipients")
        return recipients


__all__ = ["AudienceResolver"]
