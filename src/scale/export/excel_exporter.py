"""
Excel Exporter for Scale score tables
"""

import io
import logging
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Sequence, Union

import pandas as pd

from src.scale.models import Group, GroupObject
from src.scale.scoring.aggregation import Scores, as_score_index
from src.scale.table.table_view import SortState, build_table_frame, build_table_rows

logger = logging.getLogger(__name__)


def _write_workbook(
    target: Union[Path, BinaryIO],
    group: Group,
    objects: Sequence[GroupObject],
    scores: Scores,
    sort_state: SortState,
    include_hidden: bool,
) -> None:
    metrics = group.ordered_metrics
    rows = build_table_rows(
        objects,
        metrics,
        as_score_index(scores),
        sort_state=sort_state,
        include_hidden=include_hidden,
    )

    with pd.ExcelWriter(target, engine='openpyxl') as writer:
        # Sheet 1: Scores as displayed
        build_table_frame(rows, metrics).to_excel(writer, sheet_name='Scores', index=False)

        # Sheet 2: Numeric averages and rating counts
        build_table_frame(rows, metrics, numeric=True).to_excel(writer, sheet_name='Raw Scores', index=False)

        # Sheet 3: Metric definitions
        metrics_df = pd.DataFrame([{
            'Metric': m.name,
            'Description': m.description,
            'Min': m.min_value,
            'Max': m.max_value,
            'Prefix': m.prefix,
            'Suffix': m.suffix,
            'Categories': '; '.join(m.applicable_categories) or 'All',
        } for m in metrics])
        metrics_df.to_excel(writer, sheet_name='Metrics', index=False)

        # Sheet 4: Group summary
        summary_df = pd.DataFrame([{
            'Group': group.name,
            'Description': group.description,
            'Items': len(rows),
            'Metrics': len(metrics),
            'Ratings': group.rating_count,
            'Exported': datetime.utcnow().strftime('%Y-%m-%d %H:%M'),
        }])
        summary_df.to_excel(writer, sheet_name='Summary', index=False)


def export_table_to_excel(
    group: Group,
    objects: Sequence[GroupObject],
    scores: Scores,
    output_path: str,
    sort_state: SortState = SortState(),
    include_hidden: bool = False,
) -> str:
    """
    Export a group's score table to an Excel file.

    Creates a workbook with:
    - Scores (formatted, as shown in the table)
    - Raw Scores (numeric averages and rating counts)
    - Metrics
    - Summary

    Args:
        group: Group being exported
        objects: Group objects
        scores: Aggregated scores
        output_path: Output file path
        sort_state: Row order
        include_hidden: Include objects hidden from the graph

    Returns:
        Path to created file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    _write_workbook(output_path, group, objects, scores, sort_state, include_hidden)
    logger.info(f"Exported score table for '{group.name}' to {output_path}")
    return str(output_path)


def table_to_excel_bytes(
    group: Group,
    objects: Sequence[GroupObject],
    scores: Scores,
    sort_state: SortState = SortState(),
    include_hidden: bool = False,
) -> bytes:
    """Same workbook as export_table_to_excel, in memory (for download buttons)."""
    buffer = io.BytesIO()
    _write_workbook(buffer, group, objects, scores, sort_state, include_hidden)
    return buffer.getvalue()
