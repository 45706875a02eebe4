"""
Scale - Peer Rating Groups

Captains define rateable items and numeric metrics, members rate them, and
the aggregated scores are shown on a 2D scatter plot and a sortable table.

Components:
- models: Pydantic records (groups, metrics, items, ratings)
- normalization: Read-time upgrade of older record shapes
- protocols: Interfaces for the document store, blob store and identity
- repositories: Typed data access and store implementations
- scoring: Rating aggregation
- graph: Axis layout, axis selection and popup placement
- table: Table sort/filter
- services: Rating, group, object, membership, claim and integrity services
- export: Excel/JSON export utilities
"""

from src.scale.factory import ScaleApp, create_scale_app
from src.scale.scoring.aggregation import compute_scores
from src.scale.graph.layout import layout_axis, layout_positions
from src.scale.graph.popup import place_popup
from src.scale.table.table_view import sort_objects

__all__ = [
    "ScaleApp",
    "create_scale_app",
    "compute_scores",
    "layout_axis",
    "layout_positions",
    "place_popup",
    "sort_objects",
]
