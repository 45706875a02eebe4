"""
Tests for read-boundary normalization of legacy documents.
"""

from datetime import datetime

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.scale.models import ClaimStatus, MemberRole, ObjectType, RatingMode, ResponseStatus
from src.scale.normalization import (
    normalize_group,
    normalize_member,
    normalize_object,
    normalize_rating,
    normalize_ratings,
    read_field,
)


class TestReadField:
    """Tests for read_field()."""

    def test_snake_then_camel_then_legacy(self):
        assert read_field({"group_id": "a", "groupId": "b"}, "group_id") == "a"
        assert read_field({"groupId": "b"}, "group_id") == "b"
        assert read_field({"creatorId": "c"}, "captain_id", "creatorId") == "c"
        assert read_field({}, "captain_id", default="x") == "x"


class TestNormalizeGroup:
    """Tests for normalize_group()."""

    def test_legacy_camel_case_group(self):
        group = normalize_group({
            "id": "g1",
            "name": "Old",
            "creatorId": "u1",
            "metrics": [
                {"id": "b", "name": "B", "order": 1, "minValue": 0, "maxValue": 10},
                {"id": "a", "name": "A", "order": 0, "prefix": "?", "suffix": "%"},
            ],
            "createdAt": 1700000000000,
        })
        assert group.captain_id == "u1"
        assert group.co_captain_ids == []
        assert [m.id for m in group.metrics] == ["a", "b"]
        assert group.metrics[0].prefix == ""
        assert group.metrics[0].suffix == "%"
        assert group.metrics[1].max_value == 10
        assert group.is_public is True
        assert group.created_at == datetime(2023, 11, 14, 22, 13, 20)

    def test_empty_lock_is_none(self):
        group = normalize_group({"id": "g1", "captain_id": "u1", "lockedXMetricId": ""})
        assert group.locked_x_metric_id is None


class TestNormalizeObject:
    """Tests for normalize_object()."""

    def test_defaults_filled(self):
        obj = normalize_object({"id": "o1", "groupId": "g1", "name": "Thing"})
        assert obj.group_id == "g1"
        assert obj.object_type == ObjectType.TEXT
        assert obj.rating_mode == RatingMode.GROUP
        assert obj.visible_in_graph is True
        assert obj.disabled_metric_ids == []
        assert obj.claim_status == ClaimStatus.UNCLAIMED

    def test_only_explicit_false_hides(self):
        assert normalize_object({"id": "o1", "visibleInGraph": None}).visible_in_graph is True
        assert normalize_object({"id": "o1", "visible_in_graph": False}).visible_in_graph is False

    def test_legacy_claimed_member_shape(self):
        obj = normalize_object({
            "id": "o1",
            "customName": "Sam",
            "objectType": "user",
            "claimedByClerkId": "u9",
        })
        assert obj.name == "Sam"
        assert obj.claimed_by_id == "u9"
        assert obj.claim_status == ClaimStatus.CLAIMED

    def test_unknown_enum_values_fall_back(self):
        obj = normalize_object({"id": "o1", "object_type": "video", "rating_mode": "weird"})
        assert obj.object_type == ObjectType.TEXT
        assert obj.rating_mode == RatingMode.GROUP


class TestNormalizeRating:
    """Tests for normalize_rating() / normalize_ratings()."""

    def test_legacy_target_member_id(self):
        rating = normalize_rating({
            "id": "r1", "groupId": "g1", "metricId": "m1", "raterId": "u1",
            "targetMemberId": "o1", "value": "42",
        })
        assert rating.target_object_id == "o1"
        assert rating.value == 42.0

    @pytest.mark.parametrize("raw", [
        {"id": "r1", "value": 5},
        {"id": "r2", "target_object_id": "o1"},
        {"id": "r3", "target_object_id": "o1", "value": "abc"},
    ])
    def test_unusable_ratings_skipped(self, raw):
        assert normalize_rating(raw) is None
        assert normalize_ratings([raw]) == []


class TestNormalizeMember:
    """Tests for normalize_member()."""

    def test_placeholder_becomes_pending(self):
        member = normalize_member({"id": "p1", "groupId": "g1", "status": "placeholder"})
        assert member.status == ResponseStatus.PENDING
        assert member.user_id == "p1"

    def test_legacy_captain_flag(self):
        member = normalize_member({"id": "m1", "clerkId": "u1", "isCaptain": True, "status": "accepted"})
        assert member.role == MemberRole.CAPTAIN
        assert member.user_id == "u1"
