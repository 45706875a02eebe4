"""
Tests for the demo dataset.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.scale.demo_data import DEMO_GROUP_ID, FEATURED_GROUP_ID, build_demo_documents, create_demo_store
from src.scale.repositories import ScaleRepository
from src.scale.scoring.aggregation import compute_scores


class TestDemoData:
    """Tests for build_demo_documents() and create_demo_store()."""

    def test_deterministic_for_seed(self):
        first = build_demo_documents(seed=7)["ratings"]
        second = build_demo_documents(seed=7)["ratings"]
        assert [r["value"] for r in first] == [r["value"] for r in second]

    def test_one_rating_per_cell(self):
        ratings = build_demo_documents()["ratings"]
        keys = {(r["group_id"], r["metric_id"], r["rater_id"], r["target_object_id"]) for r in ratings}
        assert len(keys) == len(ratings)

    def test_values_within_metric_range(self):
        repository = ScaleRepository(create_demo_store())
        for group in repository.list_groups():
            for rating in repository.list_ratings(group.id):
                metric = group.get_metric(rating.metric_id)
                assert metric is not None
                assert metric.min_value <= rating.value <= metric.max_value

    def test_groups_score(self):
        repository = ScaleRepository(create_demo_store())
        for group_id in (DEMO_GROUP_ID, FEATURED_GROUP_ID):
            group = repository.get_group(group_id)
            objects = repository.list_objects(group_id)
            scores = compute_scores(objects, group.ordered_metrics, repository.list_ratings(group_id),
                                    captain_id=group.captain_id)
            assert len(scores) == len(objects) * len(group.metrics)
            assert any(s.total_ratings for s in scores)

    def test_rating_counts(self):
        repository = ScaleRepository(create_demo_store())
        for group in repository.list_groups():
            assert group.rating_count == len(repository.list_ratings(group.id))
