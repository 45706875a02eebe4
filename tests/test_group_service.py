"""
Tests for group management: creation, metrics, settings, deletion,
co-captains and popularity.
"""

from datetime import datetime, timedelta

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.scale.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from src.scale.graph.axis_selection import resolve_axis_selection
from src.scale.models import MemberRole, NO_METRIC
from src.scale.services.group_service import trending_score

from conftest import make_group


class TestCreateGroup:
    """Tests for GroupService.create_group()."""

    def test_creator_is_captain_member(self, scale_app, captain):
        group = scale_app.groups.create_group(captain, "Crew", metrics=[{"name": "Speed"}])
        members = scale_app.members.list_members(group.id)
        assert group.captain_id == captain.id
        assert [(m.user_id, m.role) for m in members] == [(captain.id, MemberRole.CAPTAIN)]

    def test_metric_order_assigned(self, scale_app, captain):
        group = scale_app.groups.create_group(captain, "Crew", metrics=[{"name": "A"}, {"name": "B"}])
        assert [m.order for m in group.ordered_metrics] == [0, 1]
        assert all(m.id for m in group.metrics)

    def test_empty_name_rejected(self, scale_app, captain):
        with pytest.raises(ValidationError):
            scale_app.groups.create_group(captain, "   ")

    def test_invalid_range_rejected(self, scale_app, captain):
        with pytest.raises(ValidationError):
            scale_app.groups.create_group(captain, "Crew", metrics=[{"name": "Bad", "min_value": 10, "max_value": 5}])

    def test_too_many_metrics(self, scale_app, captain):
        metrics = [{"name": f"M{i}"} for i in range(scale_app.groups.max_metrics + 1)]
        with pytest.raises(ValidationError):
            scale_app.groups.create_group(captain, "Crew", metrics=metrics)


class TestUpdateGroup:
    """Tests for update_metrics() and update_settings()."""

    def test_removed_metric_clears_axis_settings(self, scale_app, team, captain):
        group, _ = team
        skill, effort = group.ordered_metrics
        scale_app.groups.update_settings(group.id, captain.id, default_x_metric_id=effort.id,
                                         locked_y_metric_id=effort.id)
        scale_app.groups.update_metrics(group.id, captain.id, [skill])
        stored = scale_app.groups.get_group(group.id)
        assert [m.id for m in stored.metrics] == [skill.id]
        assert stored.default_x_metric_id is None
        assert stored.locked_y_metric_id is None

    def test_settings_unknown_metric(self, scale_app, team, captain):
        group, _ = team
        with pytest.raises(ValidationError):
            scale_app.groups.update_settings(group.id, captain.id, default_x_metric_id="nope")

    def test_settings_none_axis(self, scale_app, team, captain):
        group, _ = team
        updated = scale_app.groups.update_settings(group.id, captain.id, locked_x_metric_id="")
        assert updated.locked_x_metric_id is None

    def test_none_default_axis_is_kept(self, scale_app, team, captain):
        """Choosing 'None' as the default X axis reaches viewers as 'None'."""
        group, _ = team
        scale_app.groups.update_settings(group.id, captain.id, default_x_metric_id=NO_METRIC)
        stored = scale_app.groups.get_group(group.id)
        assert stored.default_x_metric_id == NO_METRIC
        assert resolve_axis_selection(stored).x_metric_id == NO_METRIC

    def test_unknown_setting(self, scale_app, team, captain):
        group, _ = team
        with pytest.raises(ValidationError):
            scale_app.groups.update_settings(group.id, captain.id, captain_id="someone")

    def test_member_cannot_update(self, scale_app, team, alice):
        group, _ = team
        with pytest.raises(PermissionDeniedError):
            scale_app.groups.update_settings(group.id, alice.id, is_open=True)


class TestDeleteGroup:
    """Tests for delete_group() cascade."""

    def test_cascade(self, scale_app, team, captain, alice, store):
        group, (first, _) = team
        scale_app.ratings.submit_rating(group.id, group.ordered_metrics[0].id, alice.id, first.id, 50)
        scale_app.groups.delete_group(group.id, captain.id)
        with pytest.raises(NotFoundError):
            scale_app.groups.get_group(group.id)
        for collection in ("objects", "ratings", "members", "invitations"):
            assert store.list(collection, {"group_id": group.id}) == []

    def test_co_captain_cannot_delete(self, scale_app, team, captain, alice):
        group, _ = team
        scale_app.groups.add_co_captain(group.id, captain.id, alice.id)
        with pytest.raises(PermissionDeniedError):
            scale_app.groups.delete_group(group.id, alice.id)


class TestCoCaptains:
    """Tests for add_co_captain() / remove_co_captain()."""

    def test_co_captain_gets_captain_rights(self, scale_app, team, captain, alice):
        group, _ = team
        scale_app.groups.add_co_captain(group.id, captain.id, alice.id)
        scale_app.objects.add_object(group.id, alice.id, "Third")
        member = scale_app.repository.list_members(group.id, user_id=alice.id)[0]
        assert member.role == MemberRole.CO_CAPTAIN

        scale_app.groups.remove_co_captain(group.id, captain.id, alice.id)
        with pytest.raises(PermissionDeniedError):
            scale_app.objects.add_object(group.id, alice.id, "Fourth")


class TestPopularity:
    """Tests for views, shares and trending."""

    def test_record_view_and_share(self, scale_app, team):
        group, _ = team
        scale_app.groups.record_view(group.id)
        scale_app.groups.record_view(group.id)
        scale_app.groups.record_share(group.id)
        stored = scale_app.groups.get_group(group.id)
        assert stored.view_count == 2
        assert stored.share_count == 1

    def test_trending_score_decays(self):
        now = datetime(2024, 1, 15)
        fresh = make_group(view_count=10, rating_count=5, share_count=1, last_activity_at=now)
        stale = make_group(view_count=10, rating_count=5, share_count=1, last_activity_at=now - timedelta(days=7))
        assert trending_score(fresh, now) == pytest.approx(23)
        assert trending_score(stale, now) == pytest.approx(11.5)

    def test_trending_only_public_featured(self, scale_app, captain):
        featured = scale_app.groups.create_group(captain, "Featured")
        scale_app.groups.update_settings(featured.id, captain.id, is_featured=True)
        scale_app.groups.create_group(captain, "Plain")
        hidden = scale_app.groups.create_group(captain, "Private", is_public=False)
        scale_app.groups.update_settings(hidden.id, captain.id, is_featured=True)
        assert [g.name for g in scale_app.groups.trending_groups()] == ["Featured"]
