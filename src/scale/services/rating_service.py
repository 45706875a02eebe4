"""
Rating Service

Submits ratings as upserts keyed by (rater, metric, object) and keeps the
group's popularity counters current.
"""

import logging
import threading
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from src.scale.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from src.scale.models import (
    Group,
    GroupObject,
    Metric,
    Rating,
    RatingMode,
    can_user_rate,
    is_captain,
    metric_applies_to_object,
)
from src.scale.repositories.scale_repository import ScaleRepository
from src.scale.validation import validate_rating_value

logger = logging.getLogger(__name__)


def rateable_objects(group: Group, objects: Sequence[GroupObject], user_id: Optional[str]) -> List[GroupObject]:
    """Objects the user may rate; captain-only objects are hidden from non-captains."""
    if is_captain(group, user_id):
        return list(objects)
    return [obj for obj in objects if obj.rating_mode != RatingMode.CAPTAIN]


def slider_default(metric: Metric, existing: Optional[float] = None) -> float:
    """Initial slider value: the user's previous rating, else the metric midpoint."""
    if existing is not None:
        return existing
    return metric.midpoint


def changed_ratings(
    values: Dict[Tuple[str, str], float],
    own_ratings: Dict[Tuple[str, str], float],
    metrics: Sequence[Metric],
) -> Dict[Tuple[str, str], float]:
    """
    Cells of a rating form that need saving.

    A cell is saved when its slider moved off its starting value (the user's
    own rating, or the metric midpoint for a cell they never rated). Unrated
    cells left at the midpoint stay unrated.

    Args:
        values: Slider values keyed by (object_id, metric_id)
        own_ratings: The user's stored values keyed the same way
        metrics: The group's metrics

    Returns:
        The subset of ``values`` to submit
    """
    by_id = {metric.id: metric for metric in metrics}
    changed = {}
    for cell, value in values.items():
        metric = by_id.get(cell[1])
        if metric is None:
            continue
        if float(value) != float(slider_default(metric, own_ratings.get(cell))):
            changed[cell] = value
    return changed


class RatingService:
    """
    Service for submitting ratings.

    The store offers no conditional write, so the upsert is a query followed
    by a write. The in-process lock makes that pair atomic for concurrent
    Streamlit sessions sharing one store; duplicates that slipped in from
    elsewhere are collapsed onto the oldest record.
    """

    def __init__(self, repository: ScaleRepository):
        self._repository = repository
        self._lock = threading.Lock()

    def _load_context(self, group_id: str, metric_id: str, object_id: str) -> Tuple[Group, Metric, GroupObject]:
        group = self._repository.get_group(group_id)
        if group is None:
            raise NotFoundError("group", group_id, "Group not found")
        metric = group.get_metric(metric_id)
        if metric is None:
            raise NotFoundError("metric", metric_id, "This metric no longer exists")
        obj = self._repository.get_object(object_id)
        if obj is None or obj.group_id != group_id:
            raise NotFoundError("object", object_id, "Item not found")
        return group, metric, obj

    def check_rating(
        self,
        group_id: str,
        metric_id: str,
        rater_id: str,
        object_id: str,
        value: float,
    ) -> Tuple[Group, float]:
        """
        Validate a rating without writing it.

        Returns:
            (group, value as float)

        Raises:
            ValidationError: Value outside the metric range, or metric disabled
            NotFoundError: Group, metric or object missing
            PermissionDeniedError: User may not rate in this group
        """
        group, metric, obj = self._load_context(group_id, metric_id, object_id)
        numeric = validate_rating_value(metric, value)

        if not metric_applies_to_object(metric, obj):
            raise ValidationError(f"'{metric.name}' does not apply to {obj.display_name}", field="metric_id")
        if not can_user_rate(group, rater_id, self._repository.list_members(group_id, user_id=rater_id)):
            raise PermissionDeniedError("You are not a member of this group")
        if obj.rating_mode == RatingMode.CAPTAIN and not is_captain(group, rater_id):
            raise PermissionDeniedError("Only the captain rates this item")
        return group, numeric

    def submit_rating(
        self,
        group_id: str,
        metric_id: str,
        rater_id: str,
        object_id: str,
        value: float,
    ) -> Rating:
        """
        Create or overwrite the rater's rating for one (object, metric) cell.

        Args:
            group_id: Group ID
            metric_id: Metric being rated
            rater_id: Rating user
            object_id: Object being rated
            value: Rating value, within the metric's range

        Returns:
            The stored Rating

        Raises:
            ValidationError: Value outside the metric range, or metric disabled
            NotFoundError: Group, metric or object missing
            PermissionDeniedError: User may not rate in this group
            UpstreamError: Store failure
        """
        group, numeric = self.check_rating(group_id, metric_id, rater_id, object_id, value)

        with self._lock:
            rating, created = self._upsert(group_id, metric_id, rater_id, object_id, numeric)

        self._touch_group(group, created)
        return rating

    def submit_ratings(
        self,
        group_id: str,
        rater_id: str,
        values: Dict[Tuple[str, str], float],
    ) -> List[Rating]:
        """Submit several cells at once ("save all"); keys are (object_id, metric_id)."""
        return [
            self.submit_rating(group_id, metric_id, rater_id, object_id, value)
            for (object_id, metric_id), value in values.items()
        ]

    def _upsert(
        self,
        group_id: str,
        metric_id: str,
        rater_id: str,
        object_id: str,
        value: float,
    ) -> Tuple[Rating, bool]:
        existing = self._repository.find_ratings(group_id, metric_id, rater_id, object_id)
        now = datetime.utcnow()

        if existing:
            existing.sort(key=lambda r: r.created_at)
            keep, extras = existing[0], existing[1:]
            for extra in extras:
                logger.warning(f"Removing duplicate rating {extra.id} for {keep.key}")
                self._repository.delete_rating(extra.id)
            self._repository.update_rating(keep.id, {"value": value, "updated_at": now})
            logger.info(f"Updated rating {keep.id}: {rater_id} -> {object_id}/{metric_id} = {value:g}")
            return keep.model_copy(update={"value": value, "updated_at": now}), False

        rating = Rating(
            id=str(uuid.uuid4()),
            group_id=group_id,
            metric_id=metric_id,
            rater_id=rater_id,
            target_object_id=object_id,
            value=value,
            created_at=now,
            updated_at=now,
        )
        self._repository.save_rating(rating)
        logger.info(f"Created rating {rating.id}: {rater_id} -> {object_id}/{metric_id} = {value:g}")
        return rating, True

    def _touch_group(self, group: Group, created: bool) -> None:
        updates = {"last_activity_at": datetime.utcnow()}
        if created:
            updates["rating_count"] = group.rating_count + 1
        try:
            self._repository.update_group(group.id, updates)
        except Exception as e:
            # Counters are advisory; the rating itself is already stored
            logger.warning(f"Could not update activity for group {group.id}: {e}")

    def get_user_ratings(self, group_id: str, rater_id: str) -> List[Rating]:
        return self._repository.list_ratings(group_id, rater_id=rater_id)
