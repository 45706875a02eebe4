"""
Graph Layout

Maps aggregated scores onto normalized plot coordinates in [0, 100] per axis.
Each axis is laid out independently; an axis with no metric selected spreads
the objects evenly so they do not stack on one coordinate.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from src.scale.models import GroupObject, Metric
from src.scale.scoring.aggregation import ScoreIndex, Scores, as_score_index

SPREAD_MIN = 10.0
SPREAD_MAX = 90.0
CENTER = 50.0


@dataclass(frozen=True)
class PlotPosition:
    """Normalized position of one object on the plot."""
    object_id: str
    x: float
    y: float


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def spread_position(index: int, total: int) -> float:
    """Even spread over [10, 90] by index; a lone object sits at 50."""
    if total <= 1:
        return CENTER
    return index / (total - 1) * (SPREAD_MAX - SPREAD_MIN) + SPREAD_MIN


def normalize_value(value: float, metric: Metric) -> float:
    """Map a raw metric value to [0, 100]; a zero-width range maps to 50."""
    if metric.max_value == metric.min_value:
        return CENTER
    return _clamp((value - metric.min_value) / (metric.max_value - metric.min_value) * 100)


def raw_axis_value(obj: GroupObject, scores: ScoreIndex, metric: Metric) -> float:
    """Average score for the axis, or the metric midpoint when unrated."""
    score = scores.get(obj.id, metric.id)
    if score is None or not score.is_rated:
        return metric.midpoint
    return score.average_value


def layout_axis(
    objects: Sequence[GroupObject],
    scores: Scores,
    metric: Optional[Metric],
) -> Dict[str, float]:
    """
    Lay out one axis.

    Args:
        objects: Objects to place, in display order
        scores: Aggregated scores (list or ScoreIndex)
        metric: Metric driving the axis, or None for the even spread

    Returns:
        Mapping of object id to position in [0, 100]
    """
    if metric is None:
        total = len(objects)
        return {obj.id: spread_position(i, total) for i, obj in enumerate(objects)}

    index = as_score_index(scores)
    return {
        obj.id: normalize_value(raw_axis_value(obj, index, metric), metric)
        for obj in objects
    }


def layout_positions(
    objects: Sequence[GroupObject],
    scores: Scores,
    x_metric: Optional[Metric],
    y_metric: Optional[Metric],
) -> List[PlotPosition]:
    """Positions for every object shown on the graph (visible_in_graph only)."""
    plotted = [obj for obj in objects if obj.visible_in_graph]
    index = as_score_index(scores)
    xs = layout_axis(plotted, index, x_metric)
    ys = layout_axis(plotted, index, y_metric)
    return [PlotPosition(object_id=obj.id, x=xs[obj.id], y=ys[obj.id]) for obj in plotted]
