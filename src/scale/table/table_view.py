"""
Table Sort/Filter

Builds the sortable score table from the same aggregated scores the graph
uses. Sorting and filtering return new lists and never touch their inputs.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Sequence, Tuple

import pandas as pd

from src.scale.models import GroupObject, Metric, metric_applies_to_object
from src.scale.scoring.aggregation import Scores, as_score_index

SortDirection = Literal['asc', 'desc']

NAME_COLUMN = "name"
UNRATED_MARKER = "–"
NOT_APPLICABLE_MARKER = "N/A"


@dataclass(frozen=True)
class SortState:
    """Current table sort; ``column`` is NAME_COLUMN or a metric id."""
    column: Optional[str] = None
    direction: SortDirection = 'desc'

    def toggle(self, column: str) -> "SortState":
        """Same column flips direction; a new column starts descending."""
        if column == self.column:
            return SortState(column=column, direction='asc' if self.direction == 'desc' else 'desc')
        return SortState(column=column, direction='desc')


def filter_objects(objects: Sequence[GroupObject], include_hidden: bool = False) -> List[GroupObject]:
    """Objects shown in the table; hidden ones only for the management view."""
    if include_hidden:
        return list(objects)
    return [obj for obj in objects if obj.visible_in_graph]


def sort_objects(
    objects: Sequence[GroupObject],
    scores: Scores,
    column: Optional[str],
    direction: SortDirection = 'desc',
) -> List[str]:
    """
    Order object ids for display.

    Args:
        objects: Objects in their current order
        scores: Aggregated scores (list or ScoreIndex)
        column: NAME_COLUMN, a metric id, or None to keep the current order
        direction: 'asc' or 'desc'

    Returns:
        Object ids in display order. The sort is stable: ties keep their
        relative order from ``objects``.
    """
    if not column:
        return [obj.id for obj in objects]

    reverse = direction == 'desc'
    if column == NAME_COLUMN:
        ordered = sorted(objects, key=lambda o: o.display_name.casefold(), reverse=reverse)
    else:
        index = as_score_index(scores)
        ordered = sorted(objects, key=lambda o: index.average(o.id, column, 0.0), reverse=reverse)
    return [obj.id for obj in ordered]


@dataclass
class TableCell:
    """One (object, metric) cell of the score table."""
    metric: Metric
    average_value: float = 0.0
    total_ratings: int = 0
    applicable: bool = True
    own_rating: Optional[float] = None

    @property
    def is_rated(self) -> bool:
        return self.total_ratings > 0

    @property
    def display(self) -> str:
        if not self.applicable:
            return NOT_APPLICABLE_MARKER
        if not self.is_rated:
            return UNRATED_MARKER
        return self.metric.format_value(self.average_value, decimals=1)


@dataclass
class TableRow:
    object_id: str
    name: str
    image_url: Optional[str]
    category: Optional[str]
    visible: bool
    cells: Dict[str, TableCell] = field(default_factory=dict)


def build_table_rows(
    objects: Sequence[GroupObject],
    metrics: Sequence[Metric],
    scores: Scores,
    own_ratings: Optional[Dict[Tuple[str, str], float]] = None,
    sort_state: Optional[SortState] = None,
    include_hidden: bool = False,
) -> List[TableRow]:
    """
    Build the filtered, sorted table rows.

    Args:
        objects: Group objects
        metrics: Metrics in column order
        scores: Aggregated scores
        own_ratings: Viewer's own values keyed by (object_id, metric_id)
        sort_state: Sort to apply (None keeps object order)
        include_hidden: Include objects hidden from the graph

    Returns:
        List of TableRow
    """
    index = as_score_index(scores)
    own_ratings = own_ratings or {}
    shown = filter_objects(objects, include_hidden=include_hidden)
    sort_state = sort_state or SortState()
    order = sort_objects(shown, index, sort_state.column, sort_state.direction)
    by_id = {obj.id: obj for obj in shown}

    rows = []
    for object_id in order:
        obj = by_id[object_id]
        row = TableRow(
            object_id=obj.id,
            name=obj.display_name,
            image_url=obj.display_image,
            category=obj.category,
            visible=obj.visible_in_graph,
        )
        for metric in metrics:
            score = index.get(obj.id, metric.id)
            row.cells[metric.id] = TableCell(
                metric=metric,
                average_value=score.average_value if score else 0.0,
                total_ratings=score.total_ratings if score else 0,
                applicable=metric_applies_to_object(metric, obj),
                own_rating=own_ratings.get((obj.id, metric.id)),
            )
        rows.append(row)
    return rows


def build_table_frame(rows: Sequence[TableRow], metrics: Sequence[Metric], numeric: bool = False) -> pd.DataFrame:
    """
    Convert table rows into a DataFrame for display or export.

    With ``numeric=False`` cells hold display strings (formatted score,
    "–" when unrated, "N/A" when the metric does not apply). With
    ``numeric=True`` cells hold the average or None, plus a rating-count
    column per metric.
    """
    has_category = any(row.category for row in rows)
    records = []
    for row in rows:
        record = {"Name": row.name}
        if has_category:
            record["Category"] = row.category or ""
        for metric in metrics:
            cell = row.cells.get(metric.id)
            if cell is None:
                continue
            if numeric:
                rated = cell.applicable and cell.is_rated
                record[metric.name] = round(cell.average_value, 2) if rated else None
                record[f"{metric.name} (ratings)"] = cell.total_ratings
            else:
                record[metric.name] = cell.display
        record["Visible"] = row.visible
        records.append(record)

    return pd.DataFrame(records)
