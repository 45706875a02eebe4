"""
JSON Exporter for Scale scores
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from src.scale.models import Group, GroupObject, metric_applies_to_object
from src.scale.scoring.aggregation import Scores, as_score_index

logger = logging.getLogger(__name__)


class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder for datetime objects."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


def scores_payload(group: Group, objects: Sequence[GroupObject], scores: Scores) -> Dict[str, Any]:
    """Group, metrics and per-object scores as plain data."""
    index = as_score_index(scores)
    metrics = group.ordered_metrics
    items = []
    for obj in objects:
        item_scores = {}
        for metric in metrics:
            score = index.get(obj.id, metric.id)
            item_scores[metric.id] = {
                "average_value": score.average_value if score else 0.0,
                "total_ratings": score.total_ratings if score else 0,
                "applicable": metric_applies_to_object(metric, obj),
            }
        items.append({
            "id": obj.id,
            "name": obj.display_name,
            "category": obj.category,
            "visible_in_graph": obj.visible_in_graph,
            "rating_mode": obj.rating_mode.value,
            "scores": item_scores,
        })

    return {
        "group": {"id": group.id, "name": group.name, "description": group.description},
        "metrics": [m.model_dump() for m in metrics],
        "items": items,
        "exported_at": datetime.utcnow(),
    }


def export_scores_to_json(
    group: Group,
    objects: Sequence[GroupObject],
    scores: Scores,
    output_path: Optional[str] = None,
    indent: int = 2,
) -> str:
    """
    Export a group's scores to JSON.

    Args:
        group: Group being exported
        objects: Group objects
        scores: Aggregated scores
        output_path: Output file path (None returns the JSON text instead)
        indent: JSON indentation level

    Returns:
        Path to created file, or the JSON text when no path is given
    """
    text = json.dumps(scores_payload(group, objects, scores), indent=indent, cls=DateTimeEncoder)
    if output_path is None:
        return text

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(text)

    logger.info(f"Exported scores for '{group.name}' to {path}")
    return str(path)
