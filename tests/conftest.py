"""
Shared fixtures for the Scale test suite.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.scale.factory import create_scale_app
from src.scale.models import (
    Group,
    GroupMember,
    GroupObject,
    MemberRole,
    Metric,
    Rating,
    ResponseStatus,
    UserIdentity,
)
from src.scale.repositories import InMemoryDocumentStore, LocalBlobStore, ScaleRepository
from src.utils.config import Settings


def make_metric(metric_id="m1", name=None, min_value=0, max_value=100, order=0, **kwargs) -> Metric:
    return Metric(id=metric_id, name=name or metric_id.upper(), min_value=min_value,
                  max_value=max_value, order=order, **kwargs)


def make_object(object_id="o1", group_id="g1", name=None, **kwargs) -> GroupObject:
    return GroupObject(id=object_id, group_id=group_id, name=name or object_id.title(), **kwargs)


def make_rating(object_id, metric_id, rater_id, value, group_id="g1", rating_id=None, **kwargs) -> Rating:
    return Rating(
        id=rating_id or f"{object_id}-{metric_id}-{rater_id}",
        group_id=group_id,
        metric_id=metric_id,
        rater_id=rater_id,
        target_object_id=object_id,
        value=value,
        **kwargs
    )


def make_group(group_id="g1", captain_id="captain", metrics=None, **kwargs) -> Group:
    if metrics is None:
        metrics = [make_metric("m1", "Skill", order=0), make_metric("m2", "Effort", order=1)]
    return Group(id=group_id, name=kwargs.pop("name", "Test Group"), captain_id=captain_id,
                 metrics=metrics, **kwargs)


def make_member(user_id, group_id="g1", role=MemberRole.MEMBER, status=ResponseStatus.ACCEPTED, **kwargs) -> GroupMember:
    return GroupMember(id=f"{group_id}-{user_id}", group_id=group_id, user_id=user_id,
                       role=role, status=status, **kwargs)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        scale_database_url=None,
        enable_database=False,
        blob_dir=str(tmp_path / "uploads"),
        app_password=None,
    )


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def repository(store):
    return ScaleRepository(store)


@pytest.fixture
def scale_app(settings, store, tmp_path):
    return create_scale_app(
        settings=settings,
        store=store,
        blob_store=LocalBlobStore(str(tmp_path / "uploads"), "http://blobs.test"),
    )


@pytest.fixture
def captain():
    return UserIdentity(id="captain", name="Cap", email="cap@example.com")


@pytest.fixture
def alice():
    return UserIdentity(id="alice", name="Alice", email="alice@example.com")


@pytest.fixture
def bob():
    return UserIdentity(id="bob", name="Bob", email="bob@example.com")


@pytest.fixture
def team(scale_app, captain, alice):
    """Closed group with two metrics, Alice as member and two items."""
    group = scale_app.groups.create_group(
        captain,
        name="Team",
        metrics=[
            {"name": "Skill", "min_value": 0, "max_value": 100},
            {"name": "Effort", "min_value": 0, "max_value": 10},
        ],
    )
    invitation = scale_app.members.invite(group.id, captain, alice.email)
    scale_app.members.respond_to_invitation(invitation.id, alice, accept=True)
    first = scale_app.objects.add_object(group.id, captain.id, "First")
    second = scale_app.objects.add_object(group.id, captain.id, "Second")
    group = scale_app.groups.get_group(group.id)
    return group, [first, second]
