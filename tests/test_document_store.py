"""
Tests for the document store layer.

Tests:
- matches_filters() equality and list containment
- InMemoryDocumentStore CRUD and subscriptions
- ScaleRepository error translation
- LocalBlobStore uploads
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.scale.exceptions import NotFoundError, UpstreamError
from src.scale.repositories import InMemoryDocumentStore, LocalBlobStore, ScaleRepository
from src.scale.repositories.memory_store import matches_filters

from conftest import make_group, make_object


class TestMatchesFilters:
    """Tests for matches_filters()."""

    def test_empty_filters_match(self):
        assert matches_filters({"a": 1}, None)
        assert matches_filters({"a": 1}, {})

    def test_equality(self):
        assert matches_filters({"a": 1, "b": "x"}, {"a": 1})
        assert not matches_filters({"a": 1}, {"a": 2})
        assert not matches_filters({"a": 1}, {"missing": 1})

    def test_list_containment(self):
        doc = {"tags": ["red", "blue"]}
        assert matches_filters(doc, {"tags": "red"})
        assert not matches_filters(doc, {"tags": "green"})
        assert matches_filters(doc, {"tags": ["red", "blue"]})


class TestInMemoryDocumentStore:
    """Tests for InMemoryDocumentStore."""

    def test_create_get_list(self):
        store = InMemoryDocumentStore()
        store.create("things", "t1", {"kind": "a"})
        store.create("things", "t2", {"kind": "b"})
        assert store.get("things", "t1") == {"kind": "a", "id": "t1"}
        assert store.get("things", "missing") is None
        assert [d["id"] for d in store.list("things", {"kind": "b"})] == ["t2"]
        assert store.count("things") == 2

    def test_returned_documents_are_copies(self):
        store = InMemoryDocumentStore(initial={"things": [{"id": "t1", "tags": ["a"]}]})
        doc = store.get("things", "t1")
        doc["tags"].append("b")
        assert store.get("things", "t1")["tags"] == ["a"]

    def test_update_merges(self):
        store = InMemoryDocumentStore()
        store.create("things", "t1", {"kind": "a", "size": 1})
        store.update("things", "t1", {"size": 2})
        assert store.get("things", "t1") == {"kind": "a", "size": 2, "id": "t1"}

    def test_update_missing_raises_key_error(self):
        with pytest.raises(KeyError):
            InMemoryDocumentStore().update("things", "nope", {"a": 1})

    def test_delete_missing_is_noop(self):
        store = InMemoryDocumentStore()
        store.delete("things", "nope")
        assert store.count("things") == 0

    def test_subscribe_initial_and_updates(self):
        store = InMemoryDocumentStore()
        store.create("things", "t1", {"kind": "a"})
        snapshots = []
        unsubscribe = store.subscribe("things", {"kind": "a"}, snapshots.append)
        assert [d["id"] for d in snapshots[0]] == ["t1"]

        store.create("things", "t2", {"kind": "a"})
        assert [d["id"] for d in snapshots[-1]] == ["t1", "t2"]

        unsubscribe()
        store.create("things", "t3", {"kind": "a"})
        assert len(snapshots) == 2

    def test_broken_subscriber_does_not_block_writes(self):
        store = InMemoryDocumentStore()
        snapshots = []

        def broken(docs):
            if docs:
                raise RuntimeError("subscriber failure")

        store.subscribe("things", None, broken)
        store.subscribe("things", None, snapshots.append)
        store.create("things", "t1", {})
        assert store.count("things") == 1
        assert len(snapshots[-1]) == 1


class FailingStore(InMemoryDocumentStore):
    def list(self, collection, filters=None):
        raise ConnectionError("store offline")


class TestScaleRepository:
    """Tests for ScaleRepository."""

    def test_round_trip_models(self, repository):
        repository.save_group(make_group())
        repository.save_object(make_object())
        assert repository.get_group("g1").name == "Test Group"
        assert [o.id for o in repository.list_objects("g1")] == ["o1"]
        assert repository.list_objects("other") == []

    def test_update_missing_raises_not_found(self, repository):
        with pytest.raises(NotFoundError):
            repository.update_object("missing", {"name": "x"})

    def test_store_failure_becomes_upstream_error(self):
        repository = ScaleRepository(FailingStore())
        with pytest.raises(UpstreamError) as exc_info:
            repository.list_groups()
        assert "list groups failed" in exc_info.value.message
        assert isinstance(exc_info.value.cause, ConnectionError)

    def test_legacy_documents_normalized_on_read(self):
        store = InMemoryDocumentStore(initial={"groups": [
            {"id": "g1", "name": "Old", "creatorId": "u1", "isPublic": False, "createdAt": 1700000000000}
        ]})
        group = ScaleRepository(store).get_group("g1")
        assert group.captain_id == "u1"
        assert group.is_public is False
        assert group.created_at.year == 2023

    def test_unusable_ratings_skipped(self):
        store = InMemoryDocumentStore(initial={"ratings": [
            {"id": "r1", "group_id": "g1", "metric_id": "m1", "rater_id": "u", "target_object_id": "o1", "value": 5},
            {"id": "r2", "group_id": "g1", "metric_id": "m1", "rater_id": "u", "value": 5},
            {"id": "r3", "group_id": "g1", "metric_id": "m1", "rater_id": "u", "target_object_id": "o1", "value": "high"},
        ]})
        assert [r.id for r in ScaleRepository(store).list_ratings("g1")] == ["r1"]


class TestLocalBlobStore:
    """Tests for LocalBlobStore."""

    def test_upload_writes_file(self, tmp_path):
        blobs = LocalBlobStore(str(tmp_path / "blobs"), "http://blobs.test/")
        url = blobs.upload(b"\x89PNG", "Photo.PNG", "image/png")
        assert url.startswith("http://blobs.test/")
        assert url.endswith(".png")
        stored = tmp_path / "blobs" / url.rsplit("/", 1)[1]
        assert stored.read_bytes() == b"\x89PNG"

    def test_default_base_url_is_directory(self, tmp_path):
        blobs = LocalBlobStore(str(tmp_path))
        url = blobs.upload(b"data", "notes")
        assert url.endswith(".bin")
        assert Path(url).exists()


def seed_legacy_group(store):
    """Documents written by older clients with camelCase and legacy keys."""
    store.create("groups", "g1", {
        "name": "Legacy", "creatorId": "u1",
        "metrics": [{"id": "m1", "name": "Skill", "order": 0}],
    })
    store.create("objects", "o1", {"groupId": "g1", "name": "Sam"})
    store.create("members", "mem-u2", {"groupId": "g1", "clerkId": "u2", "status": "accepted"})
    store.create("ratings", "r1", {
        "groupId": "g1", "metricId": "m1", "raterId": "u2", "targetMemberId": "o1", "value": 40,
    })


class TestLegacyKeyedDocuments:
    """Filtered reads see documents that use camelCase or legacy keys."""

    def test_lists_include_legacy_documents(self, store, repository):
        seed_legacy_group(store)
        assert [o.id for o in repository.list_objects("g1")] == ["o1"]
        assert [r.id for r in repository.list_ratings("g1")] == ["r1"]
        assert [m.id for m in repository.list_members("g1", user_id="u2")] == ["mem-u2"]
        assert repository.list_objects("other") == []

    def test_find_ratings_matches_legacy_triple(self, store, repository):
        seed_legacy_group(store)
        assert [r.id for r in repository.find_ratings("g1", "m1", "u2", "o1")] == ["r1"]
        assert repository.find_ratings("g1", "m1", "u1", "o1") == []

    def test_mixed_key_spellings_listed_once(self, store, repository):
        seed_legacy_group(store)
        store.create("objects", "o2", {"group_id": "g1", "groupId": "g1", "name": "Kim"})
        assert sorted(o.id for o in repository.list_objects("g1")) == ["o1", "o2"]

    def test_rating_upsert_overwrites_legacy_rating(self, store, scale_app):
        seed_legacy_group(store)
        scale_app.ratings.submit_rating("g1", "m1", "u2", "o1", 90)
        assert store.count("ratings") == 1
        assert store.get("ratings", "r1")["value"] == 90

    def test_scoreboard_counts_legacy_rating(self, store, scale_app):
        seed_legacy_group(store)
        with scale_app.scoreboard("g1") as board:
            assert [o.id for o in board.snapshot.objects] == ["o1"]
            assert board.snapshot.index.average("o1", "m1") == pytest.approx(40)
            store.create("ratings", "r2", {
                "groupId": "g1", "metricId": "m1", "raterId": "u1", "targetObjectId": "o1", "value": 60,
            })
            assert board.snapshot.index.get("o1", "m1").total_ratings == 2

    def test_subscription_ignores_other_groups(self, store, repository):
        seed_legacy_group(store)
        snapshots = []
        unsubscribe = repository.subscribe_objects("g1", snapshots.append)
        store.create("objects", "x1", {"groupId": "g2", "name": "Elsewhere"})
        assert [o.id for o in snapshots[-1]] == ["o1"]
        unsubscribe()
