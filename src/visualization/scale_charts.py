"""
Streamlit visualization components for Scale groups.

Usage:
    import streamlit as st
    from src.visualization.scale_charts import render_scale_graph, render_score_table

    selected = render_scale_graph(group, objects, scores, x_metric, y_metric)
    render_score_table(rows, group.ordered_metrics)
"""

from typing import Optional, Sequence

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from src.scale.graph.layout import layout_positions
from src.scale.models import Group, GroupObject, Metric, metric_applies_to_object
from src.scale.scoring.aggregation import Scores, as_score_index
from src.scale.table.table_view import TableRow, build_table_frame

AXIS_TICKS = [0, 25, 50, 75, 100]


def shorten_name(name: str, max_len: int = 18) -> str:
    """Shorten item names for marker labels."""
    if len(str(name)) <= max_len:
        return str(name)
    return str(name)[:max_len - 3] + '...'


def _axis_config(metric: Optional[Metric]) -> dict:
    if metric is None:
        return dict(
            title='',
            range=[-5, 105],
            showticklabels=False,
            gridcolor='lightgray',
            zeroline=False,
        )
    ticktext = [
        metric.format_value(metric.min_value + metric.span * t / 100, decimals=0)
        for t in AXIS_TICKS
    ]
    return dict(
        title=metric.name,
        range=[-5, 105],
        tickvals=AXIS_TICKS,
        ticktext=ticktext,
        gridcolor='lightgray',
        zeroline=False,
    )


def _hover_line(obj: GroupObject, metric: Optional[Metric], scores) -> str:
    if metric is None:
        return ""
    if not metric_applies_to_object(metric, obj):
        return f"{metric.name}: N/A<br>"
    score = scores.get(obj.id, metric.id)
    if score is None or not score.is_rated:
        return f"{metric.name}: not rated yet<br>"
    return (
        f"{metric.name}: {metric.format_value(score.average_value, decimals=1)} "
        f"({score.total_ratings} rating{'s' if score.total_ratings != 1 else ''})<br>"
    )


def build_scale_figure(
    group: Group,
    objects: Sequence[GroupObject],
    scores: Scores,
    x_metric: Optional[Metric],
    y_metric: Optional[Metric],
    height: int = 600,
    highlight_id: Optional[str] = None,
) -> go.Figure:
    """
    Build the scatter plot of the group's visible items.

    Positions come from the normalized [0, 100] layout; axis tick labels show
    the metric's own value range.

    Args:
        group: Group being plotted
        objects: Group objects (hidden ones are skipped)
        scores: Aggregated scores
        x_metric: Metric on the X axis (None spreads items evenly)
        y_metric: Metric on the Y axis (None spreads items evenly)
        height: Chart height in pixels
        highlight_id: Object to draw emphasized (pinned popup)

    Returns:
        Plotly figure
    """
    index = as_score_index(scores)
    by_id = {obj.id: obj for obj in objects}
    positions = layout_positions(objects, index, x_metric, y_metric)

    fig = go.Figure()
    if positions:
        shown = [by_id[p.object_id] for p in positions]
        hover = [
            f"<b>{obj.display_name}</b><br>"
            + _hover_line(obj, y_metric, index)
            + _hover_line(obj, x_metric, index)
            + "<extra></extra>"
            for obj in shown
        ]
        fig.add_trace(go.Scatter(
            x=[p.x for p in positions],
            y=[p.y for p in positions],
            mode='markers+text',
            marker=dict(
                size=[26 if p.object_id == highlight_id else 18 for p in positions],
                color=['#f59e0b' if p.object_id == highlight_id else '#6366f1' for p in positions],
                line=dict(width=2, color='white'),
                opacity=0.9,
            ),
            text=[shorten_name(obj.display_name) for obj in shown],
            textposition='top center',
            textfont=dict(size=11, color='#333'),
            customdata=[p.object_id for p in positions],
            hovertemplate=hover,
            showlegend=False,
        ))

    fig.update_layout(
        title=dict(text=f'<b>{group.name}</b>', x=0.5, font=dict(size=18)),
        xaxis=_axis_config(x_metric),
        yaxis=_axis_config(y_metric),
        plot_bgcolor='white',
        height=height,
        margin=dict(l=40, r=20, t=60, b=40),
        clickmode='event+select',
        dragmode=False,
    )
    return fig


def render_scale_graph(
    group: Group,
    objects: Sequence[GroupObject],
    scores: Scores,
    x_metric: Optional[Metric],
    y_metric: Optional[Metric],
    height: int = 600,
    highlight_id: Optional[str] = None,
    key: str = "scale_graph",
) -> Optional[str]:
    """
    Render the scatter plot in Streamlit.

    Returns:
        Object id of the clicked marker, if any
    """
    fig = build_scale_figure(group, objects, scores, x_metric, y_metric, height, highlight_id)
    event = st.plotly_chart(fig, use_container_width=True, on_select="rerun", key=key)

    points = []
    if event:
        selection = event.get("selection") if isinstance(event, dict) else getattr(event, "selection", None)
        if selection:
            points = selection.get("points", []) if isinstance(selection, dict) else selection.points
    for point in points:
        object_id = point.get("customdata")
        if isinstance(object_id, list):
            object_id = object_id[0] if object_id else None
        if object_id:
            return object_id
    return None


def render_score_table(rows: Sequence[TableRow], metrics: Sequence[Metric], show_visibility: bool = False) -> pd.DataFrame:
    """Render the score table and return the displayed DataFrame."""
    df = build_table_frame(rows, metrics)
    if not show_visibility and "Visible" in df.columns:
        df = df.drop(columns=["Visible"])
    st.dataframe(df, use_container_width=True, hide_index=True)
    return df
