"""
Graph layout for Scale groups.

Axis normalization, axis selection and popup placement.
"""

from src.scale.graph.layout import (
    PlotPosition,
    layout_axis,
    layout_positions,
    normalize_value,
    spread_position,
)
from src.scale.graph.axis_selection import AxisSelection, resolve_axis_selection
from src.scale.graph.popup import (
    ActivePopup,
    PopupController,
    PopupPlacement,
    Rect,
    Size,
    place_popup,
)

__all__ = [
    "PlotPosition",
    "layout_axis",
    "layout_positions",
    "normalize_value",
    "spread_position",
    "AxisSelection",
    "resolve_axis_selection",
    "ActivePopup",
    "PopupController",
    "PopupPlacement",
    "Rect",
    "Size",
    "place_popup",
]
