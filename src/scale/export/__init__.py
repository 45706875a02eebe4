"""
Export Utilities for Scale

Provides export functionality for:
- Excel score tables
- JSON score data
"""

from src.scale.export.excel_exporter import export_table_to_excel, table_to_excel_bytes
from src.scale.export.json_exporter import export_scores_to_json, scores_payload

__all__ = [
    "export_table_to_excel",
    "table_to_excel_bytes",
    "export_scores_to_json",
    "scores_payload",
]
