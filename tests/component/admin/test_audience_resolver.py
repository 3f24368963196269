"""
Component Tests for AudienceResolver

Resolves declarative audiences against the in-memory repository.
"""

from datetime import timedelta

import pytest

from microservices.admin_service.audience_resolver import AudienceResolver
from microservices.admin_service.models import TargetAudience


@pytest.fixture
def resolver(mock_repository, fixed_now):
    return AudienceResolver(mock_repository, clock=lambda: fixed_now)


class TestResolveAll:
    """Tests for the `all` audience"""

    @pytest.mark.asyncio
    async def test_all_returns_every_user(self, resolver, mock_repository):
        """Every stored recipient is returned"""
        # Given: Three users with mixed roles
        mock_repository.add_user("u1", role="user")
        mock_repository.add_user("u2", role="admin")
        mock_repository.add_user("u3", role="user")

        # When: Resolving the all audience
        recipients = await resolver.resolve_audience(TargetAudience(type="all"))

        # Then: All three are returned
        assert recipients == {"u1", "u2", "u3"}


class TestResolveRole:
    """Tests for the `role` audience"""

    @pytest.mark.asyncio
    async def test_role_matches_attribute(self, resolver, mock_repository):
        # Given: Two admins and one regular user
        mock_repository.add_user("a1", role="admin")
        mock_repository.add_user("a2", role="admin")
        mock_repository.add_user("u1", role="user")

        # When: Resolving the admin role
        recipients = await resolver.resolve_audience(
            TargetAudience.model_validate({"type": "role", "filters": {"role": "admin"}})
        )

        # Then: Only admins are returned
        assert recipients == {"a1", "a2"}

    @pytest.mark.asyncio
    async def test_role_defaults_to_user(self, resolver, mock_repository):
        """Missing role filter targets the default `user` role"""
        mock_repository.add_user("a1", role="admin")
        mock_repository.add_user("u1", role="user")

        recipients = await resolver.resolve_audience(TargetAudience(type="role"))

        assert recipients == {"u1"}


class TestResolveActivity:
    """Tests for the `activity` audience"""

    @pytest.mark.asyncio
    async def test_activity_excludes_stale_authors(self, resolver, mock_repository, fixed_now):
        """days=30 excludes authors whose latest post is older than the window"""
        # Given: One recent author and one whose only post is 31 days old
        mock_repository.add_post("recent", fixed_now - timedelta(days=2))
        mock_repository.add_post("stale", fixed_now - timedelta(days=31))

        # When: Resolving a 30-day activity audience
        recipients = await resolver.resolve_audience(
            TargetAudience.model_validate({"type": "activity", "filters": {"days": 30}})
        )

        # Then: Only the recent author is included
        assert recipients == {"recent"}

    @pytest.mark.asyncio
    async def test_activity_deduplicates_prolific_authors(self, resolver, mock_repository, fixed_now):
        """An author with many recent posts appears once"""
        for hours in range(5):
            mock_repository.add_post("busy", fixed_now - timedelta(hours=hours))
        mock_repository.add_post("other", fixed_now - timedelta(days=1))

        recipients = await resolver.resolve_audience(TargetAudience(type="activity"))

        assert sorted(recipients) == ["busy", "other"]

    @pytest.mark.asyncio
    async def test_activity_window_follows_days_filter(self, resolver, mock_repository, fixed_now):
        mock_repository.add_post("week_old", fixed_now - timedelta(days=7))

        narrow = await resolver.resolve_audience(
            TargetAudience.model_validate({"type": "activity", "filters": {"days": 5}})
        )
        wide = await resolver.resolve_audience(
            TargetAudience.model_validate({"type": "activity", "filters": {"days": 10}})
        )

        assert narrow == set()
        assert wide == {"week_old"}


class TestResolveCustom:
    """Tests for the `custom` audience"""

    @pytest.mark.asyncio
    async def test_custom_returns_exact_ids(self, resolver, mock_repository):
        """Supplied ids come back as-is, whether or not they exist in the store"""
        # Given: A store that knows only u1
        mock_repository.add_user("u1")

        # When: Resolving a custom list with an unknown id and a duplicate
        recipients = await resolver.resolve_audience(
            TargetAudience.model_validate({
                "type": "custom",
                "filters": {"userIds": ["u1", "ghost", "u1"]},
            })
        )

        # Then: Exactly the supplied ids, deduplicated
        assert recipients == {"u1", "ghost"}

    @pytest.mark.asyncio
    async def test_custom_without_ids_is_empty(self, resolver):
        recipients = await resolver.resolve_audience(TargetAudience(type="custom"))

        assert recipients == set()
