"""
Tests for rating submission and debounced auto-save.

Tests:
- submit_rating() upsert: one rating per (group, metric, rater, object)
- validation and permission failures
- duplicate cleanup
- RatingDebouncer: only the final value of a burst is written
"""

import asyncio

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.scale.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from src.scale.models import RatingMode
from src.scale.services import RatingDebouncer, changed_ratings, rateable_objects, slider_default

from conftest import make_metric, make_object, make_rating


class TestSubmitRating:
    """Tests for RatingService.submit_rating()."""

    def test_creates_rating(self, scale_app, team, alice):
        group, (first, _) = team
        skill = group.ordered_metrics[0]
        rating = scale_app.ratings.submit_rating(group.id, skill.id, alice.id, first.id, 70)
        assert rating.value == 70
        assert len(scale_app.repository.list_ratings(group.id)) == 1

    def test_resubmit_overwrites(self, scale_app, team, alice):
        group, (first, _) = team
        skill = group.ordered_metrics[0]
        created = scale_app.ratings.submit_rating(group.id, skill.id, alice.id, first.id, 70)
        updated = scale_app.ratings.submit_rating(group.id, skill.id, alice.id, first.id, 30)
        stored = scale_app.repository.list_ratings(group.id)
        assert len(stored) == 1
        assert stored[0].value == 30
        assert updated.id == created.id

    def test_one_rating_per_rater_and_cell(self, scale_app, team, captain, alice):
        group, (first, second) = team
        skill = group.ordered_metrics[0]
        for user_id in (captain.id, alice.id):
            for obj in (first, second):
                for value in (10, 20, 30):
                    scale_app.ratings.submit_rating(group.id, skill.id, user_id, obj.id, value)
        keys = [r.key for r in scale_app.repository.list_ratings(group.id)]
        assert len(keys) == 4
        assert len(set(keys)) == 4

    def test_rating_count_bumped_on_create_only(self, scale_app, team, alice):
        group, (first, _) = team
        skill = group.ordered_metrics[0]
        scale_app.ratings.submit_rating(group.id, skill.id, alice.id, first.id, 70)
        scale_app.ratings.submit_rating(group.id, skill.id, alice.id, first.id, 60)
        assert scale_app.groups.get_group(group.id).rating_count == 1

    def test_value_out_of_range(self, scale_app, team, alice):
        group, (first, _) = team
        effort = group.ordered_metrics[1]
        with pytest.raises(ValidationError):
            scale_app.ratings.submit_rating(group.id, effort.id, alice.id, first.id, 11)
        assert scale_app.repository.list_ratings(group.id) == []

    def test_non_member_rejected(self, scale_app, team, bob):
        group, (first, _) = team
        with pytest.raises(PermissionDeniedError):
            scale_app.ratings.submit_rating(group.id, group.ordered_metrics[0].id, bob.id, first.id, 50)

    def test_missing_metric_and_object(self, scale_app, team, alice):
        group, (first, _) = team
        with pytest.raises(NotFoundError):
            scale_app.ratings.submit_rating(group.id, "gone", alice.id, first.id, 50)
        with pytest.raises(NotFoundError):
            scale_app.ratings.submit_rating(group.id, group.ordered_metrics[0].id, alice.id, "gone", 50)

    def test_disabled_metric_rejected(self, scale_app, team, captain, alice):
        group, (first, _) = team
        skill = group.ordered_metrics[0]
        scale_app.objects.set_metric_enabled(first.id, captain.id, skill.id, False)
        with pytest.raises(ValidationError):
            scale_app.ratings.submit_rating(group.id, skill.id, alice.id, first.id, 50)

    def test_captain_only_object(self, scale_app, team, captain, alice):
        group, (first, _) = team
        skill = group.ordered_metrics[0]
        scale_app.objects.set_rating_mode(first.id, captain.id, RatingMode.CAPTAIN)
        with pytest.raises(PermissionDeniedError):
            scale_app.ratings.submit_rating(group.id, skill.id, alice.id, first.id, 50)
        scale_app.ratings.submit_rating(group.id, skill.id, captain.id, first.id, 50)

    def test_duplicates_collapsed(self, scale_app, team, alice):
        group, (first, _) = team
        skill = group.ordered_metrics[0]
        for i, value in enumerate([10, 20]):
            scale_app.repository.save_rating(make_rating(
                first.id, skill.id, alice.id, value, group_id=group.id, rating_id=f"dup-{i}"))
        scale_app.ratings.submit_rating(group.id, skill.id, alice.id, first.id, 99)
        stored = scale_app.repository.list_ratings(group.id)
        assert len(stored) == 1
        assert stored[0].value == 99

    def test_submit_ratings_batch(self, scale_app, team, alice):
        group, (first, second) = team
        skill, effort = group.ordered_metrics
        scale_app.ratings.submit_ratings(group.id, alice.id, {
            (first.id, skill.id): 10,
            (first.id, effort.id): 5,
            (second.id, skill.id): 90,
        })
        assert len(scale_app.ratings.get_user_ratings(group.id, alice.id)) == 3


class TestRatingHelpers:
    """Tests for rateable_objects(), slider_default() and changed_ratings()."""

    def test_slider_default_midpoint(self):
        assert slider_default(make_metric("m", min_value=0, max_value=10)) == 5
        assert slider_default(make_metric("m"), existing=42) == 42

    def test_rateable_objects(self):
        from conftest import make_group
        group = make_group()
        objects = [
            make_object("o1"),
            make_object("o2", rating_mode=RatingMode.CAPTAIN),
            make_object("o3", visible_in_graph=False),
        ]
        member_view = [o.id for o in rateable_objects(group, objects, "alice")]
        captain_view = [o.id for o in rateable_objects(group, objects, "captain")]
        assert "o2" not in member_view
        assert "o2" in captain_view

    def test_changed_ratings_skips_untouched_unrated_cells(self):
        metrics = [make_metric("m1"), make_metric("m2", max_value=10)]
        values = {("o1", "m1"): 50.0, ("o1", "m2"): 7.0, ("o2", "m1"): 50.0}
        assert changed_ratings(values, {}, metrics) == {("o1", "m2"): 7.0}

    def test_changed_ratings_against_own_ratings(self):
        metrics = [make_metric("m1")]
        own = {("o1", "m1"): 80.0, ("o2", "m1"): 20.0}
        values = {("o1", "m1"): 80.0, ("o2", "m1"): 50.0}
        # Moving a rated cell back to the midpoint is a real change
        assert changed_ratings(values, own, metrics) == {("o2", "m1"): 50.0}

    def test_changed_ratings_ignores_unknown_metric(self):
        assert changed_ratings({("o1", "gone"): 3.0}, {}, [make_metric("m1")]) == {}


class TestRatingDebouncer:
    """Tests for RatingDebouncer."""

    def test_burst_writes_final_value_once(self):
        writes = []

        async def scenario():
            debouncer = RatingDebouncer(lambda o, m, v: writes.append((o, m, v)), delay=0.05)
            for value in (10, 20, 30, 40):
                debouncer.schedule("o1", "m1", value)
                await asyncio.sleep(0.01)
            await asyncio.sleep(0.15)

        asyncio.run(scenario())
        assert writes == [("o1", "m1", 40)]

    def test_cells_are_independent(self):
        writes = []

        async def scenario():
            debouncer = RatingDebouncer(lambda o, m, v: writes.append((o, m, v)), delay=0.03)
            debouncer.schedule("o1", "m1", 1)
            debouncer.schedule("o1", "m2", 2)
            debouncer.schedule("o2", "m1", 3)
            await asyncio.sleep(0.1)

        asyncio.run(scenario())
        assert sorted(writes) == [("o1", "m1", 1), ("o1", "m2", 2), ("o2", "m1", 3)]

    def test_async_writer_and_flush(self):
        writes = []

        async def write(object_id, metric_id, value):
            await asyncio.sleep(0)
            writes.append(value)

        async def scenario():
            debouncer = RatingDebouncer(write, delay=10)
            debouncer.schedule("o1", "m1", 5)
            debouncer.schedule("o1", "m1", 6)
            assert debouncer.pending == {("o1", "m1"): 6}
            await debouncer.flush()
            assert debouncer.pending == {}

        asyncio.run(scenario())
        assert writes == [6]

    def test_cancel_all_drops_pending(self):
        writes = []

        async def scenario():
            debouncer = RatingDebouncer(lambda o, m, v: writes.append(v), delay=0.02)
            debouncer.schedule("o1", "m1", 5)
            debouncer.cancel_all()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert writes == []

    def test_errors_reported_not_raised(self):
        errors = []

        def failing(object_id, metric_id, value):
            raise RuntimeError("store down")

        async def scenario():
            debouncer = RatingDebouncer(failing, delay=0.01, on_error=lambda key, e: errors.append((key, str(e))))
            debouncer.schedule("o1", "m1", 5)
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert errors == [(("o1", "m1"), "store down")]
