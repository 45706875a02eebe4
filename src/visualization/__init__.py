"""
Visualization module for Scale.
"""

from src.visualization.scale_charts import (
    build_scale_figure,
    render_scale_graph,
    render_score_table,
    shorten_name
)

__all__ = [
    'build_scale_figure',
    'render_scale_graph',
    'render_score_table',
    'shorten_name'
]
