"""
Group Service

Group lifecycle: creation, metric editing, settings, co-captains, deletion
with cascade, plus popularity counters and trending ranking.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from src.scale.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from src.scale.models import (
    Group,
    GroupMember,
    MemberRole,
    Metric,
    NO_METRIC,
    ResponseStatus,
    UserIdentity,
    is_captain,
)
from src.scale.repositories.scale_repository import ScaleRepository
from src.scale.validation import (
    MAX_METRIC_VALUE,
    MAX_METRICS_PER_GROUP,
    validate_metrics,
    validate_required,
)

logger = logging.getLogger(__name__)

MetricInput = Union[Metric, Dict[str, Any]]

SETTINGS_FIELDS = {
    "name",
    "description",
    "item_categories",
    "default_x_metric_id",
    "default_y_metric_id",
    "locked_x_metric_id",
    "locked_y_metric_id",
    "captain_control_enabled",
    "is_public",
    "is_open",
    "is_featured",
}

AXIS_FIELDS = (
    "default_x_metric_id",
    "default_y_metric_id",
    "locked_x_metric_id",
    "locked_y_metric_id",
)
LOCK_FIELDS = ("locked_x_metric_id", "locked_y_metric_id")

# Trending weights: shares count more than ratings, ratings more than views
VIEW_WEIGHT = 1.0
RATING_WEIGHT = 2.0
SHARE_WEIGHT = 3.0
TRENDING_DECAY_DAYS = 7.0


def build_metrics(metrics: Sequence[MetricInput]) -> List[Metric]:
    """Turn metric dicts (id optional) or Metric models into Metric models."""
    built = []
    for i, metric in enumerate(metrics):
        if isinstance(metric, Metric):
            built.append(metric)
            continue
        data = dict(metric)
        data.setdefault("id", str(uuid.uuid4()))
        data.setdefault("order", i)
        try:
            built.append(Metric(**data))
        except Exception as e:
            raise ValidationError(f"Invalid metric '{data.get('name', '')}': {e}", field="metrics")
    return built


def trending_score(group: Group, now: Optional[datetime] = None) -> float:
    """Weighted activity, decayed by days since the group's last activity."""
    now = now or datetime.utcnow()
    activity = (
        group.view_count * VIEW_WEIGHT
        + group.rating_count * RATING_WEIGHT
        + group.share_count * SHARE_WEIGHT
    )
    age_days = max(0.0, (now - group.last_activity_at).total_seconds() / 86400)
    return activity / (1 + age_days / TRENDING_DECAY_DAYS)


class GroupService:
    """Service for group management."""

    def __init__(
        self,
        repository: ScaleRepository,
        max_metrics: int = MAX_METRICS_PER_GROUP,
        max_metric_value: float = MAX_METRIC_VALUE,
    ):
        """
        Initialize the group service.

        Args:
            repository: Scale repository
            max_metrics: Maximum metrics per group
            max_metric_value: Maximum allowed metric max_value
        """
        self._repository = repository
        self.max_metrics = max_metrics
        self.max_metric_value = max_metric_value

    def get_group(self, group_id: str) -> Group:
        group = self._repository.get_group(group_id)
        if group is None:
            raise NotFoundError("group", group_id, "Group not found")
        return group

    def _require_captain(self, group: Group, user_id: str) -> None:
        if not is_captain(group, user_id):
            raise PermissionDeniedError("Only the captain can change this group")

    def create_group(
        self,
        captain: UserIdentity,
        name: str,
        description: str = "",
        metrics: Sequence[MetricInput] = (),
        item_categories: Optional[List[str]] = None,
        is_public: bool = True,
        is_open: bool = False,
    ) -> Group:
        """
        Create a group with the creator as captain.

        Args:
            captain: Creating user
            name: Group name
            description: Group description
            metrics: Metric definitions (dicts without ids are accepted)
            item_categories: Optional item categories
            is_public: Anyone can view
            is_open: Anyone signed in can rate

        Returns:
            The created Group

        Raises:
            ValidationError: Empty name or invalid metrics
        """
        name = validate_required(name, "name")
        validated = validate_metrics(build_metrics(metrics), self.max_metrics, self.max_metric_value)

        now = datetime.utcnow()
        group = Group(
            id=str(uuid.uuid4()),
            name=name,
            description=(description or "").strip(),
            captain_id=captain.id,
            metrics=validated,
            item_categories=[c.strip() for c in (item_categories or []) if c and c.strip()],
            is_public=is_public,
            is_open=is_open,
            last_activity_at=now,
            created_at=now,
            updated_at=now,
        )
        self._repository.save_group(group)
        self._repository.save_member(GroupMember(
            id=str(uuid.uuid4()),
            group_id=group.id,
            user_id=captain.id,
            email=captain.email,
            name=captain.name,
            image_url=captain.image_url,
            role=MemberRole.CAPTAIN,
            status=ResponseStatus.ACCEPTED,
            invited_at=now,
            responded_at=now,
        ))
        logger.info(f"Created group '{group.name}' ({group.id}) with {len(validated)} metrics")
        return group

    def update_metrics(self, group_id: str, acting_user_id: str, metrics: Sequence[MetricInput]) -> Group:
        """
        Replace a group's metrics.

        Axis defaults and locks pointing at removed metrics are cleared.
        Ratings for removed metrics are left in place as orphans.
        """
        group = self.get_group(group_id)
        self._require_captain(group, acting_user_id)
        validated = validate_metrics(build_metrics(metrics), self.max_metrics, self.max_metric_value)

        kept_ids = {m.id for m in validated}
        updates: Dict[str, Any] = {"metrics": validated, "updated_at": datetime.utcnow()}
        for axis_field in AXIS_FIELDS:
            current = getattr(group, axis_field)
            if current and current not in kept_ids:
                updates[axis_field] = None

        self._repository.update_group(group_id, updates)
        removed = {m.id for m in group.metrics} - kept_ids
        if removed:
            logger.info(f"Removed {len(removed)} metric(s) from group {group_id}; their ratings are orphaned")
        return group.model_copy(update=updates)

    def update_settings(self, group_id: str, acting_user_id: str, **settings: Any) -> Group:
        """
        Update group settings (name, axis defaults and locks, visibility flags).

        Raises:
            ValidationError: Unknown setting, empty name or unknown metric id
        """
        group = self.get_group(group_id)
        self._require_captain(group, acting_user_id)

        unknown = set(settings) - SETTINGS_FIELDS
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}", field="settings")

        updates = dict(settings)
        if "name" in updates:
            updates["name"] = validate_required(updates["name"], "name")
        for axis_field in AXIS_FIELDS:
            if axis_field not in updates:
                continue
            metric_id = updates[axis_field]
            if metric_id is None:
                continue
            if metric_id == NO_METRIC:
                # A "None" default is kept; a "None" lock means unlocked
                if axis_field in LOCK_FIELDS:
                    updates[axis_field] = None
            elif group.get_metric(metric_id) is None:
                raise ValidationError(f"Unknown metric: {metric_id}", field=axis_field)

        updates["updated_at"] = datetime.utcnow()
        self._repository.update_group(group_id, updates)
        logger.info(f"Updated settings of group {group_id}: {sorted(settings)}")
        return group.model_copy(update=updates)

    def delete_group(self, group_id: str, acting_user_id: str) -> None:
        """Delete a group and everything scoped to it. Original captain only."""
        group = self.get_group(group_id)
        if group.captain_id != acting_user_id:
            raise PermissionDeniedError("Only the group's creator can delete it")

        repo = self._repository
        cascade = [
            ("members", repo.list_members(group_id), repo.delete_member),
            ("objects", repo.list_objects(group_id), repo.delete_object),
            ("ratings", repo.list_ratings(group_id), repo.delete_rating),
            ("invitations", repo.list_invitations(group_id=group_id), repo.delete_invitation),
            ("claim tokens", repo.list_claim_tokens(group_id=group_id), repo.delete_claim_token),
            ("pending objects", repo.list_pending_objects(group_id=group_id), repo.delete_pending_object),
        ]
        for _, records, delete in cascade:
            for record in records:
                delete(record.id)
        repo.delete_group(group_id)
        summary = ", ".join(f"{len(records)} {label}" for label, records, _ in cascade)
        logger.info(f"Deleted group {group_id} ({summary})")

    def add_co_captain(self, group_id: str, acting_user_id: str, user_id: str) -> Group:
        group = self.get_group(group_id)
        if group.captain_id != acting_user_id:
            raise PermissionDeniedError("Only the captain can manage co-captains")
        if user_id == group.captain_id or user_id in group.co_captain_ids:
            return group

        co_captains = group.co_captain_ids + [user_id]
        self._repository.update_group(group_id, {"co_captain_ids": co_captains, "updated_at": datetime.utcnow()})
        for member in self._repository.list_members(group_id, user_id=user_id):
            self._repository.update_member(member.id, {"role": MemberRole.CO_CAPTAIN})
        logger.info(f"Added co-captain {user_id} to group {group_id}")
        return group.model_copy(update={"co_captain_ids": co_captains})

    def remove_co_captain(self, group_id: str, acting_user_id: str, user_id: str) -> Group:
        group = self.get_group(group_id)
        if group.captain_id != acting_user_id:
            raise PermissionDeniedError("Only the captain can manage co-captains")
        if user_id not in group.co_captain_ids:
            return group

        co_captains = [uid for uid in group.co_captain_ids if uid != user_id]
        self._repository.update_group(group_id, {"co_captain_ids": co_captains, "updated_at": datetime.utcnow()})
        for member in self._repository.list_members(group_id, user_id=user_id):
            if member.role == MemberRole.CO_CAPTAIN:
                self._repository.update_member(member.id, {"role": MemberRole.MEMBER})
        logger.info(f"Removed co-captain {user_id} from group {group_id}")
        return group.model_copy(update={"co_captain_ids": co_captains})

    # --- Popularity ---

    def record_view(self, group_id: str) -> None:
        group = self.get_group(group_id)
        self._repository.update_group(group_id, {"view_count": group.view_count + 1})

    def record_share(self, group_id: str) -> None:
        group = self.get_group(group_id)
        self._repository.update_group(group_id, {
            "share_count": group.share_count + 1,
            "last_activity_at": datetime.utcnow(),
        })

    def trending_groups(self, limit: int = 10, now: Optional[datetime] = None) -> List[Group]:
        """Public, featured groups ranked by decayed activity."""
        candidates = [
            g for g in self._repository.list_groups({"is_public": True})
            if g.is_featured
        ]
        candidates.sort(key=lambda g: trending_score(g, now), reverse=True)
        return candidates[:limit]

    def popular_groups(self, limit: int = 10) -> List[Group]:
        """Public, featured groups ranked by total views."""
        candidates = [
            g for g in self._repository.list_groups({"is_public": True})
            if g.is_featured
        ]
        candidates.sort(key=lambda g: g.view_count, reverse=True)
        return candidates[:limit]
