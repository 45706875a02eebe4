"""
Score Aggregation

Turns the raw per-rater ratings of a group into one AggregatedScore per
(object, metric) pair. The computation is a pure, total rebuild from the
current snapshot: callers pass the full object, metric and rating lists
every time and never patch a previous result.

Rating modes:
- group: mean of every rating for the pair
- captain: only the captain's rating counts; when the caller does not know
  the captain id, all ratings are used instead
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from src.scale.models import (
    AggregatedScore,
    GroupObject,
    Metric,
    Rating,
    RatingMode,
)

logger = logging.getLogger(__name__)

ScoreKey = Tuple[str, str]


def _bucket_ratings(ratings: Iterable[Rating]) -> Dict[ScoreKey, List[Rating]]:
    buckets: Dict[ScoreKey, List[Rating]] = defaultdict(list)
    for rating in ratings:
        buckets[(rating.target_object_id, rating.metric_id)].append(rating)
    return buckets


def compute_scores(
    objects: Sequence[GroupObject],
    metrics: Sequence[Metric],
    ratings: Iterable[Rating],
    captain_id: Optional[str] = None,
) -> List[AggregatedScore]:
    """
    Compute aggregated scores for every (object, metric) pair.

    Args:
        objects: Objects of the group
        metrics: Metrics of the group
        ratings: Full rating snapshot (ratings for deleted metrics or objects
            are ignored)
        captain_id: Rater whose values count for captain-mode objects

    Returns:
        Exactly len(objects) * len(metrics) scores, in object-major order.
        Unrated pairs carry average_value=0 and total_ratings=0.
    """
    buckets = _bucket_ratings(ratings)
    scores: List[AggregatedScore] = []
    warned_fallback = False

    for obj in objects:
        captain_only = obj.rating_mode == RatingMode.CAPTAIN
        if captain_only and not captain_id and not warned_fallback:
            logger.warning(
                f"Captain-only object '{obj.id}' scored without a captain id; "
                f"using all ratings"
            )
            warned_fallback = True

        for metric in metrics:
            subset = buckets.get((obj.id, metric.id), [])
            if captain_only and captain_id:
                subset = [r for r in subset if r.rater_id == captain_id]

            total = len(subset)
            average = sum(r.value for r in subset) / total if total else 0.0
            scores.append(AggregatedScore(
                object_id=obj.id,
                metric_id=metric.id,
                average_value=average,
                total_ratings=total,
            ))

    return scores


class ScoreIndex:
    """Lookup of aggregated scores by (object_id, metric_id)."""

    def __init__(self, scores: Iterable[AggregatedScore]):
        self._scores: Dict[ScoreKey, AggregatedScore] = {
            (s.object_id, s.metric_id): s for s in scores
        }

    def get(self, object_id: str, metric_id: str) -> Optional[AggregatedScore]:
        return self._scores.get((object_id, metric_id))

    def average(self, object_id: str, metric_id: str, default: float = 0.0) -> float:
        score = self.get(object_id, metric_id)
        return score.average_value if score else default

    def count(self, object_id: str, metric_id: str) -> int:
        score = self.get(object_id, metric_id)
        return score.total_ratings if score else 0

    def for_object(self, object_id: str) -> List[AggregatedScore]:
        return [s for (oid, _), s in self._scores.items() if oid == object_id]

    def __len__(self) -> int:
        return len(self._scores)

    def __contains__(self, key: ScoreKey) -> bool:
        return key in self._scores


def user_ratings_by_cell(ratings: Iterable[Rating], rater_id: Optional[str]) -> Dict[ScoreKey, float]:
    """The given rater's own values keyed by (object_id, metric_id)."""
    if not rater_id:
        return {}
    return {
        (r.target_object_id, r.metric_id): r.value
        for r in ratings
        if r.rater_id == rater_id
    }


Scores = Union[ScoreIndex, Iterable[AggregatedScore]]


def as_score_index(scores: Scores) -> ScoreIndex:
    return scores if isinstance(scores, ScoreIndex) else ScoreIndex(scores)
