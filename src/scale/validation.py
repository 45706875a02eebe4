"""
Write-side validation rules.

Everything here runs before a write is attempted, so a failure never leaves
partial state behind.
"""

import re
from typing import List, Optional, Sequence

from src.scale.exceptions import ValidationError
from src.scale.models import Metric

MAX_METRICS_PER_GROUP = 10
MAX_METRIC_VALUE = 1_000_000

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_email(email: str) -> str:
    """Return the trimmed email or raise ValidationError."""
    cleaned = (email or "").strip()
    if not cleaned:
        raise ValidationError("Email is required", field="email")
    if not _EMAIL_PATTERN.match(cleaned):
        raise ValidationError(f"Invalid email address: {cleaned}", field="email")
    return cleaned


def validate_required(value: Optional[str], field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field.replace('_', ' ').capitalize()} is required", field=field)
    return cleaned


def validate_metric(metric: Metric, max_value: float = MAX_METRIC_VALUE) -> None:
    if not metric.name.strip():
        raise ValidationError("Metric name is required", field="name")
    if metric.min_value >= metric.max_value:
        raise ValidationError(
            f"Metric '{metric.name}': minimum ({metric.min_value:g}) must be below "
            f"maximum ({metric.max_value:g})",
            field="min_value",
        )
    if metric.max_value > max_value:
        raise ValidationError(
            f"Metric '{metric.name}': maximum cannot exceed {max_value:,.0f}",
            field="max_value",
        )


def validate_metrics(
    metrics: Sequence[Metric],
    max_metrics: int = MAX_METRICS_PER_GROUP,
    max_value: float = MAX_METRIC_VALUE,
) -> List[Metric]:
    """Validate a group's metric list and return it re-ordered by position."""
    if len(metrics) > max_metrics:
        raise ValidationError(
            f"A group can have at most {max_metrics} metrics (got {len(metrics)})",
            field="metrics",
        )
    seen = set()
    for metric in metrics:
        if metric.id in seen:
            raise ValidationError(f"Duplicate metric id: {metric.id}", field="metrics")
        seen.add(metric.id)
        validate_metric(metric, max_value=max_value)
    return [m.model_copy(update={"order": i}) for i, m in enumerate(metrics)]


def validate_rating_value(metric: Metric, value: float) -> float:
    """Ratings must lie within [min_value, max_value]."""
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Rating must be a number (got {value!r})", field="value")
    if numeric != numeric:  # NaN
        raise ValidationError("Rating must be a number", field="value")
    if numeric < metric.min_value or numeric > metric.max_value:
        raise ValidationError(
            f"Rating {numeric:g} is outside the range "
            f"{metric.min_value:g}-{metric.max_value:g} for '{metric.name}'",
            field="value",
        )
    return numeric
