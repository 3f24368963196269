"""
Preference Gate

Filters candidate recipients against their stored promotional consent.
Stored documents are resolved into RecipientPreference once, here.
"""

import logging
from typing import Iterable

from .models import (
    AudienceType,
    BroadcastCategory,
    EligibilityResult,
    RecipientPreference,
    SkipReason,
    SkippedRecipient,
)
from .protocols import AdminRepositoryProtocol

logger = logging.getLogger(__name__)


def category_disabled_reason(category: BroadcastCategory) -> str:
    return f"type_{category.value}_disabled"


class PreferenceGate:
    """Consent filter for promotional broadcasts"""

    def __init__(self, repository: AdminRepositoryProtocol):
        self.repository = repository

    async def filter_eligible(
        self,
        candidate_ids: Iterable[str],
        category: BroadcastCategory,
        audience_type: AudienceType,
    ) -> EligibilityResult:
        """
        Split candidates into eligible and skipped.

        Rules, in order:
        1. No preference record: skipped (no_preferences).
        2. Promotional disabled: skipped (promotional_disabled).
        3. Category override false: skipped (type_<category>_disabled).

        Rules 1 and 2 are waived for the `all` audience.
        """
        candidates = sorted(set(candidate_ids))
        documents = await self.repository.get_notification_preferences(candidates)

        result = EligibilityResult()
        for recipient_id in candidates:
            document = documents.get(recipient_id)

            if document is None:
                if self._bypass(audience_type, recipient_id, SkipReason.NO_PREFERENCES):
                    result.eligible.append(recipient_id)
                    result.bypassed += 1
                else:
                    result.skipped.append(SkippedRecipient(
                        recipient_id=recipient_id, reason=SkipReason.NO_PREFERENCES.value
                    ))
                continue

            preference = RecipientPreference.from_document(recipient_id, document)

            if not preference.promotional_enabled:
                if self._bypass(audience_type, recipient_id, SkipReason.PROMOTIONAL_DISABLED):
                    result.eligible.append(recipient_id)
                    result.bypassed += 1
                else:
                    result.skipped.append(SkippedRecipient(
                        recipient_id=recipient_id, reason=SkipReason.PROMOTIONAL_DISABLED.value
                    ))
                continue

            if preference.allows(category):
                result.eligible.append(recipient_id)
            else:
                result.skipped.append(SkippedRecipient(
                    recipient_id=recipient_id, reason=category_disabled_reason(category)
                ))

        logger.info(
            f"Broadcast targeting: {len(candidates)} total, {len(result.eligible)} eligible, "
            f"{result.skipped_count} skipped"
        )
        if result.bypassed:
            logger.warning(
                f"All-audience consent bypass admitted {result.bypassed} recipients "
                f"without promotional opt-in"
            )
        return result

    def _bypass(self, audience_type: AudienceType, recipient_id: str, reason: SkipReason) -> bool:
        # CONSENT BYPASS: the `all` audience admits recipients with missing or
        # disabled promotional consent. Every admission is logged.
        if audience_type != AudienceType.ALL:
            return False
        logger.warning(f"Consent bypass for {recipient_id} ({reason.value}) on all-audience broadcast")
        return True


__all__ = ["PreferenceGate", "category_disabled_reason"]
