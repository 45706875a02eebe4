"""
Tests for the FastAPI backend.

Tests:
- Health endpoints
- Score, layout, popup and sort computations
- Maintenance endpoints with an injected in-memory app
- Error mapping
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fastapi.testclient import TestClient

from src.api.main import app, get_scale_app

from conftest import make_group, make_object, make_rating


def dump(model):
    return model.model_dump(mode="json")


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def maintenance_client(scale_app):
    app.dependency_overrides[get_scale_app] = lambda: scale_app
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def group_payload():
    group = make_group()
    objects = [make_object("o1", name="Zed"), make_object("o2", name="Amy")]
    ratings = [
        make_rating("o1", "m1", "alice", 40),
        make_rating("o1", "m1", "bob", 60),
        make_rating("o2", "m1", "alice", 90),
    ]
    return group, objects, ratings


class TestHealth:
    """Tests for health endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health(self, client):
        assert client.get("/health").json()["version"] == "1.0.0"


class TestComputations:
    """Tests for the stateless computation endpoints."""

    def test_scores(self, client, group_payload):
        group, objects, ratings = group_payload
        response = client.post("/api/v1/scores", json={
            "group": dump(group),
            "objects": [dump(o) for o in objects],
            "ratings": [dump(r) for r in ratings],
        })
        assert response.status_code == 200
        scores = response.json()["scores"]
        assert len(scores) == 4
        first = next(s for s in scores if s["object_id"] == "o1" and s["metric_id"] == "m1")
        assert first["average_value"] == pytest.approx(50)
        assert first["total_ratings"] == 2

    def test_layout(self, client, group_payload):
        group, objects, _ = group_payload
        scores = [{"object_id": "o1", "metric_id": "m1", "average_value": 25, "total_ratings": 1}]
        response = client.post("/api/v1/layout", json={
            "group": dump(group),
            "objects": [dump(o) for o in objects],
            "scores": scores,
            "x_metric_id": "m1",
        })
        assert response.status_code == 200
        positions = {p["object_id"]: p for p in response.json()["positions"]}
        assert positions["o1"]["x"] == pytest.approx(25)
        assert positions["o2"]["x"] == pytest.approx(50)
        assert positions["o1"]["y"] == pytest.approx(10)
        assert positions["o2"]["y"] == pytest.approx(90)

    def test_layout_unknown_metric(self, client, group_payload):
        group, objects, _ = group_payload
        response = client.post("/api/v1/layout", json={
            "group": dump(group),
            "objects": [dump(o) for o in objects],
            "x_metric_id": "nope",
        })
        assert response.status_code == 404
        assert "nope" in response.json()["detail"]

    def test_popup_falls_back_to_left(self, client):
        response = client.post("/api/v1/popup", json={
            "anchor": {"x": 280, "y": 100, "width": 10, "height": 10},
            "container": {"x": 0, "y": 0, "width": 300, "height": 300},
            "width": 100,
            "height": 50,
            "pinned": True,
        })
        assert response.status_code == 200
        body = response.json()
        assert body["arrow_side"] == "right"
        assert body["x"] == pytest.approx(172)
        assert body["pinned"] is True

    def test_popup_rejects_empty_size(self, client):
        response = client.post("/api/v1/popup", json={
            "anchor": {"x": 0, "y": 0, "width": 10, "height": 10},
            "container": {"x": 0, "y": 0, "width": 300, "height": 300},
            "width": 0,
            "height": 50,
        })
        assert response.status_code == 422

    def test_sort(self, client, group_payload):
        _, objects, _ = group_payload
        response = client.post("/api/v1/table/sort", json={
            "objects": [dump(o) for o in objects],
            "column": "name",
            "direction": "asc",
        })
        assert response.json()["object_ids"] == ["o2", "o1"]


class TestMaintenance:
    """Tests for maintenance endpoints."""

    @pytest.fixture
    def seeded(self, store):
        store.create("objects", "o1", {"group_id": "g1", "name": "Sam"})
        store.create("members", "p1", {"groupId": "g1", "name": "Sam", "status": "placeholder"})
        store.create("ratings", "r1", {"groupId": "g1", "metricId": "m1", "raterId": "u",
                                       "targetMemberId": "p1", "value": 5})
        return store

    def test_diagnose(self, maintenance_client, seeded):
        body = maintenance_client.get("/api/v1/maintenance/diagnose-ratings").json()
        assert body["ratings_pointing_to_placeholders"] == 1
        assert body["total_placeholders"] == 1

    def test_fix(self, maintenance_client, seeded):
        body = maintenance_client.post("/api/v1/maintenance/fix-ratings").json()
        assert body["fixed_count"] == 1
        assert seeded.get("ratings", "r1")["target_object_id"] == "o1"

    def test_migrate_dry_run(self, maintenance_client, seeded):
        response = maintenance_client.post("/api/v1/maintenance/migrate-objects", json={"dry_run": True})
        assert response.status_code == 200
        assert response.json()["migrated_count"] == 1
        assert seeded.count("objects") == 1

    def test_status(self, maintenance_client):
        body = maintenance_client.get("/api/v1/status").json()
        assert body["store"] == "InMemoryDocumentStore"
        assert body["database_configured"] is False


class TestDebouncedRatings:
    """Tests for the debounced rating endpoints."""

    @pytest.fixture
    def rating_app(self, scale_app):
        # Long quiet period: writes only happen on flush or shutdown
        scale_app.settings.rating_debounce_seconds = 30
        app.dependency_overrides[get_scale_app] = lambda: scale_app
        yield scale_app
        app.dependency_overrides.clear()

    @staticmethod
    def rating_body(group, obj, rater, value):
        return {
            "group_id": group.id,
            "metric_id": group.ordered_metrics[0].id,
            "rater_id": rater.id,
            "object_id": obj.id,
            "value": value,
        }

    def test_burst_saves_last_value(self, rating_app, team, alice):
        group, (first, _) = team
        with TestClient(app) as client:
            for value in (10, 20, 30):
                response = client.post("/api/v1/ratings", json=self.rating_body(group, first, alice, value))
                assert response.status_code == 202
            assert response.json() == {"status": "scheduled", "pending": 1}
            assert rating_app.repository.list_ratings(group.id) == []

            flushed = client.post("/api/v1/ratings/flush", json={"group_id": group.id, "rater_id": alice.id})
            assert flushed.json()["status"] == "flushed"
            stored = rating_app.repository.list_ratings(group.id)
            assert [(r.rater_id, r.value) for r in stored] == [(alice.id, 30)]

    def test_pending_saved_on_shutdown(self, rating_app, team, alice):
        group, (first, second) = team
        with TestClient(app) as client:
            client.post("/api/v1/ratings", json=self.rating_body(group, first, alice, 40))
            client.post("/api/v1/ratings", json=self.rating_body(group, second, alice, 60))
        stored = rating_app.repository.list_ratings(group.id)
        assert sorted(r.value for r in stored) == [40, 60]

    def test_invalid_rating_rejected_before_scheduling(self, rating_app, team, alice, bob):
        group, (first, _) = team
        with TestClient(app) as client:
            out_of_range = client.post("/api/v1/ratings", json=self.rating_body(group, first, alice, 500))
            assert out_of_range.status_code == 422
            outsider = client.post("/api/v1/ratings", json=self.rating_body(group, first, bob, 50))
            assert outsider.status_code == 403
        assert rating_app.repository.list_ratings(group.id) == []
