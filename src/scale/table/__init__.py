"""Score table sorting, filtering and row building."""

from src.scale.table.table_view import (
    NAME_COLUMN,
    NOT_APPLICABLE_MARKER,
    UNRATED_MARKER,
    SortState,
    TableCell,
    TableRow,
    build_table_frame,
    build_table_rows,
    filter_objects,
    sort_objects,
)

__all__ = [
    "NAME_COLUMN",
    "NOT_APPLICABLE_MARKER",
    "UNRATED_MARKER",
    "SortState",
    "TableCell",
    "TableRow",
    "build_table_frame",
    "build_table_rows",
    "filter_objects",
    "sort_objects",
]
