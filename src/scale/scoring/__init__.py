"""
Scoring for Scale groups.

Aggregates raw ratings into per-object, per-metric scores.
"""

from src.scale.scoring.aggregation import (
    ScoreIndex,
    Scores,
    as_score_index,
    compute_scores,
    user_ratings_by_cell,
)

__all__ = ["compute_scores", "ScoreIndex", "Scores", "as_score_index", "user_ratings_by_cell"]
