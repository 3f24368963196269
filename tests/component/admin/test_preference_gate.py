"""
Component Tests for PreferenceGate

Consent filtering of candidate recipients.
"""

import pytest

from microservices.admin_service.models import AudienceType, BroadcastCategory
from microservices.admin_service.preference_gate import PreferenceGate


@pytest.fixture
def gate(mock_repository):
    return PreferenceGate(mock_repository)


@pytest.fixture
def mixed_consent(mock_repository, prefs):
    """Four recipients covering each consent state"""
    mock_repository.add_user("opted_in", preferences=prefs(True))
    mock_repository.add_user("opted_out", preferences=prefs(False))
    mock_repository.add_user("no_record")
    mock_repository.add_user("promos_off", preferences=prefs(True, promos=False))
    return mock_repository


class TestTargetedAudiences:
    """Gate rules for role, activity and custom audiences"""

    @pytest.mark.asyncio
    async def test_role_excludes_promotional_disabled(self, gate, mixed_consent):
        # When: Filtering for a role broadcast
        result = await gate.filter_eligible(
            ["opted_in", "opted_out", "no_record"], BroadcastCategory.ANNOUNCEMENT, AudienceType.ROLE
        )

        # Then: Only the opted-in recipient passes
        assert result.eligible == ["opted_in"]
        reasons = {s.recipient_id: s.reason for s in result.skipped}
        assert reasons == {"opted_out": "promotional_disabled", "no_record": "no_preferences"}
        assert result.bypassed == 0

    @pytest.mark.asyncio
    async def test_category_override_false_skips(self, gate, mixed_consent):
        """An explicit false for the broadcast's category skips the recipient"""
        result = await gate.filter_eligible(
            ["opted_in", "promos_off"], BroadcastCategory.PROMO, AudienceType.CUSTOM
        )

        assert result.eligible == ["opted_in"]
        assert result.skipped[0].recipient_id == "promos_off"
        assert result.skipped[0].reason == "type_promo_disabled"

    @pytest.mark.asyncio
    async def test_category_override_only_affects_its_category(self, gate, mixed_consent):
        result = await gate.filter_eligible(
            ["promos_off"], BroadcastCategory.EVENT, AudienceType.ACTIVITY
        )

        assert result.eligible == ["promos_off"]

    @pytest.mark.asyncio
    async def test_absent_enabled_flag_means_disabled(self, gate, mock_repository):
        """A promotional section without `enabled` is treated as opted out"""
        mock_repository.add_user("partial", preferences={"promotional": {"announcements": True}})

        result = await gate.filter_eligible(
            ["partial"], BroadcastCategory.ANNOUNCEMENT, AudienceType.ROLE
        )

        assert result.eligible == []
        assert result.skipped[0].reason == "promotional_disabled"

    @pytest.mark.asyncio
    async def test_duplicate_candidates_counted_once(self, gate, mixed_consent):
        result = await gate.filter_eligible(
            ["opted_in", "opted_in", "opted_out"], BroadcastCategory.ANNOUNCEMENT, AudienceType.CUSTOM
        )

        assert result.eligible == ["opted_in"]
        assert result.skipped_count == 1


class TestAllAudienceBypass:
    """The `all` audience admits recipients without promotional opt-in"""

    @pytest.mark.asyncio
    async def test_all_includes_no_record_and_disabled(self, gate, mixed_consent):
        # When: Filtering for an all-audience broadcast
        result = await gate.filter_eligible(
            ["opted_in", "opted_out", "no_record"], BroadcastCategory.ANNOUNCEMENT, AudienceType.ALL
        )

        # Then: Everyone is eligible and the bypass is counted
        assert sorted(result.eligible) == ["no_record", "opted_in", "opted_out"]
        assert result.skipped == []
        assert result.bypassed == 2

    @pytest.mark.asyncio
    async def test_all_still_honours_category_override(self, gate, mixed_consent):
        result = await gate.filter_eligible(
            ["promos_off"], BroadcastCategory.PROMO, AudienceType.ALL
        )

        assert result.eligible == []
        assert result.skipped[0].reason == "type_promo_disabled"

    @pytest.mark.asyncio
    async def test_bypass_is_logged_at_warning(self, gate, mixed_consent, caplog):
        with caplog.at_level("WARNING", logger="microservices.admin_service.preference_gate"):
            await gate.filter_eligible(["no_record"], BroadcastCategory.EVENT, AudienceType.ALL)

        assert any("Consent bypass for no_record" in r.getMessage() for r in caplog.records)
