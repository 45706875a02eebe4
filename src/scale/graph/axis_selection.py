"""
Axis selection for the graph.

Priority on load: locked axis > viewer's current choice > group default >
fallback (first metric for X, second metric or the first for Y). The empty
string is the "None" axis and counts as a deliberate choice.
"""

from dataclasses import dataclass
from typing import Optional

from src.scale.models import Group, NO_METRIC


@dataclass(frozen=True)
class AxisSelection:
    x_metric_id: str
    y_metric_id: str
    x_locked: bool = False
    y_locked: bool = False


def _metric_exists(group: Group, metric_id: Optional[str]) -> bool:
    return metric_id == NO_METRIC or group.get_metric(metric_id) is not None


def _resolve(
    group: Group,
    locked: Optional[str],
    current: Optional[str],
    default: Optional[str],
    fallback: str,
) -> str:
    if locked and group.get_metric(locked):
        return locked
    if current is not None and _metric_exists(group, current):
        return current
    if default is not None and _metric_exists(group, default):
        return default
    return fallback


def resolve_axis_selection(
    group: Group,
    current_x: Optional[str] = None,
    current_y: Optional[str] = None,
) -> AxisSelection:
    """
    Decide which metric drives each axis.

    Args:
        group: Group with metrics, defaults and locks
        current_x: Viewer's current X choice (None = no choice yet)
        current_y: Viewer's current Y choice (None = no choice yet)

    Returns:
        AxisSelection; ids referencing deleted metrics are ignored
    """
    metrics = group.ordered_metrics
    fallback_x = metrics[0].id if metrics else NO_METRIC
    if len(metrics) > 1:
        fallback_y = metrics[1].id
    else:
        fallback_y = fallback_x

    x_locked = bool(group.locked_x_metric_id and group.get_metric(group.locked_x_metric_id))
    y_locked = bool(group.locked_y_metric_id and group.get_metric(group.locked_y_metric_id))

    return AxisSelection(
        x_metric_id=_resolve(group, group.locked_x_metric_id, current_x, group.default_x_metric_id, fallback_x),
        y_metric_id=_resolve(group, group.locked_y_metric_id, current_y, group.default_y_metric_id, fallback_y),
        x_locked=x_locked,
        y_locked=y_locked,
    )
