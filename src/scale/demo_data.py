"""
Demo data for the demo page and the seeding script.

``build_demo_documents`` returns store-ready documents for the "Product Team
Alpha" demo group (people rated by their teammates) and the featured
"NBA's Best" group (players and teams with category-specific metrics).
Ratings are drawn from per-item score ranges with a seeded RNG, so the same
seed always produces the same demo.
"""

import random
from datetime import datetime, timedelta
from typing import Any, Dict, List, Tuple

from src.scale.models import (
    ClaimStatus,
    Group,
    GroupMember,
    GroupObject,
    MemberRole,
    Metric,
    ObjectType,
    Rating,
    ResponseStatus,
)
from src.scale.repositories.memory_store import InMemoryDocumentStore

DEMO_GROUP_ID = "demo-group-1"
DEMO_CAPTAIN_ID = "demo-user-1"
FEATURED_GROUP_ID = "nba-best"

_AVATAR = "https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"

DEMO_METRICS = [
    ("metric-1", "Leadership", "Ability to guide and inspire others"),
    ("metric-2", "Creativity", "Innovative thinking and problem solving"),
    ("metric-3", "Communication", "Clear and effective communication skills"),
    ("metric-4", "Reliability", "Dependable and consistent performance"),
    ("metric-5", "Technical Skill", "Domain expertise and technical abilities"),
]

# (object id, rater id, name, role, score range per metric)
DEMO_PEOPLE: List[Tuple[str, str, str, str, List[Tuple[int, int]]]] = [
    ("member-1", "demo-user-1", "Alex Chen", "Team Lead",
     [(75, 95), (55, 75), (70, 85), (80, 95), (50, 70)]),
    ("member-2", "demo-user-2", "Sarah Johnson", "UX Designer",
     [(45, 65), (80, 98), (85, 98), (60, 75), (55, 70)]),
    ("member-3", "demo-user-3", "Marcus Williams", "Senior Engineer",
     [(35, 55), (60, 75), (40, 60), (85, 98), (90, 100)]),
    ("member-4", "demo-user-4", "Emily Davis", "Product Manager",
     [(60, 80), (65, 80), (70, 85), (70, 85), (65, 80)]),
    ("member-5", "demo-user-5", "James Taylor", "QA Engineer",
     [(50, 70), (30, 50), (55, 70), (90, 100), (70, 85)]),
    ("member-6", "demo-user-6", "Olivia Martinez", "Frontend Developer",
     [(55, 75), (70, 90), (75, 90), (65, 80), (60, 80)]),
]

FEATURED_METRICS = [
    ("scoring", "Scoring", "Points per game and scoring efficiency", "", ["Player"]),
    ("defense", "Defense", "Defensive impact and ability", "", ["Player"]),
    ("playmaking", "Playmaking", "Assists and court vision", "", ["Player"]),
    ("team-chemistry", "Team Chemistry", "How well the team plays together", "", ["Team"]),
    ("championship-potential", "Championship Potential", "Likelihood to win it all", "%", ["Team"]),
]

# (name, category, center score)
FEATURED_ITEMS = [
    ("Nikola Jokic", "Player", 90),
    ("Shai Gilgeous-Alexander", "Player", 86),
    ("Giannis Antetokounmpo", "Player", 84),
    ("Luka Doncic", "Player", 80),
    ("Victor Wembanyama", "Player", 74),
    ("Oklahoma City Thunder", "Team", 85),
    ("Boston Celtics", "Team", 78),
    ("Denver Nuggets", "Team", 72),
]


def _demo_group(now: datetime) -> Tuple[Group, List[GroupObject], List[GroupMember]]:
    group = Group(
        id=DEMO_GROUP_ID,
        name="Product Team Alpha",
        description="Our core product development team for the flagship application",
        captain_id=DEMO_CAPTAIN_ID,
        metrics=[
            Metric(id=mid, name=name, description=desc, order=i)
            for i, (mid, name, desc) in enumerate(DEMO_METRICS)
        ],
        default_x_metric_id="metric-1",
        default_y_metric_id="metric-2",
        is_public=True,
        is_open=False,
        created_at=now - timedelta(days=60),
        updated_at=now - timedelta(days=7),
        last_activity_at=now - timedelta(days=1),
    )

    objects = []
    members = []
    for object_id, user_id, name, role, _ in DEMO_PEOPLE:
        seed = name.split()[0]
        objects.append(GroupObject(
            id=object_id,
            group_id=DEMO_GROUP_ID,
            name=name,
            description=role,
            image_url=_AVATAR.format(seed=seed),
            object_type=ObjectType.USER,
            claimed_by_id=user_id,
            claimed_by_name=name,
            claim_status=ClaimStatus.CLAIMED,
            created_at=group.created_at,
            updated_at=group.created_at,
        ))
        members.append(GroupMember(
            id=f"{DEMO_GROUP_ID}-{user_id}",
            group_id=DEMO_GROUP_ID,
            user_id=user_id,
            email=f"{seed.lower()}@example.com",
            name=name,
            image_url=_AVATAR.format(seed=seed),
            role=MemberRole.CAPTAIN if user_id == DEMO_CAPTAIN_ID else MemberRole.MEMBER,
            status=ResponseStatus.ACCEPTED,
            invited_at=group.created_at,
            responded_at=group.created_at,
        ))

    # An unclaimed profile with only a couple of ratings
    objects.append(GroupObject(
        id="member-7",
        group_id=DEMO_GROUP_ID,
        name="Pending User",
        object_type=ObjectType.USER,
        created_at=group.created_at,
        updated_at=group.created_at,
    ))
    return group, objects, members


def _featured_group(captain_id: str, now: datetime) -> Tuple[Group, List[GroupObject]]:
    group = Group(
        id=FEATURED_GROUP_ID,
        name="NBA's Best",
        description="Rating the best NBA players and teams across different metrics",
        captain_id=captain_id,
        item_categories=["Player", "Team"],
        metrics=[
            Metric(id=mid, name=name, description=desc, order=i, suffix=suffix, applicable_categories=cats)
            for i, (mid, name, desc, suffix, cats) in enumerate(FEATURED_METRICS)
        ],
        default_x_metric_id="defense",
        default_y_metric_id="scoring",
        captain_control_enabled=True,
        is_public=True,
        is_open=True,
        is_featured=True,
        view_count=1250,
        share_count=89,
        created_at=now - timedelta(days=30),
        updated_at=now - timedelta(days=7),
        last_activity_at=now - timedelta(days=7),
    )
    objects = [
        GroupObject(
            id=f"{FEATURED_GROUP_ID}-{i}",
            group_id=FEATURED_GROUP_ID,
            name=name,
            category=category,
            created_at=group.created_at,
            updated_at=group.created_at,
        )
        for i, (name, category, _) in enumerate(FEATURED_ITEMS)
    ]
    return group, objects


def _dump(models) -> List[Dict[str, Any]]:
    return [m.model_dump(mode="json") for m in models]


def _rating(group_id: str, metric_id: str, rater_id: str, object_id: str, value: float, when: datetime) -> Rating:
    return Rating(
        id=f"rating-{group_id}-{rater_id}-{object_id}-{metric_id}",
        group_id=group_id,
        metric_id=metric_id,
        rater_id=rater_id,
        target_object_id=object_id,
        value=value,
        created_at=when,
        updated_at=when,
    )


def build_demo_documents(seed: int = 42, captain_id: str = DEMO_CAPTAIN_ID) -> Dict[str, List[Dict[str, Any]]]:
    """
    Build store documents for the demo groups.

    Args:
        seed: RNG seed for the generated ratings
        captain_id: Captain of the featured group

    Returns:
        Mapping of collection name to documents, ready for
        ``InMemoryDocumentStore(initial=...)`` or ``DocumentStore.create``
    """
    rng = random.Random(seed)
    now = datetime.utcnow()

    group, objects, members = _demo_group(now)
    ratings: List[Rating] = []
    raters = [user_id for _, user_id, _, _, _ in DEMO_PEOPLE]
    rated_at = now - timedelta(days=3)
    for object_id, _, _, _, ranges in DEMO_PEOPLE:
        for rater_id in raters:
            for (metric_id, _, _), (low, high) in zip(DEMO_METRICS, ranges):
                ratings.append(_rating(DEMO_GROUP_ID, metric_id, rater_id, object_id,
                                       rng.randint(low, high), rated_at))
    for metric_id, _, _ in DEMO_METRICS[:2]:
        ratings.append(_rating(DEMO_GROUP_ID, metric_id, DEMO_CAPTAIN_ID, "member-7",
                               rng.randint(50, 60), rated_at))

    featured, featured_objects = _featured_group(captain_id, now)
    fan_ids = [f"fan-{i}" for i in range(1, 6)]
    for obj, (_, category, center) in zip(featured_objects, FEATURED_ITEMS):
        for metric in featured.metrics:
            if category not in metric.applicable_categories:
                continue
            for fan_id in fan_ids:
                value = max(0, min(100, center + rng.randint(-10, 10)))
                ratings.append(_rating(FEATURED_GROUP_ID, metric.id, fan_id, obj.id, value, rated_at))

    featured_ratings = sum(1 for r in ratings if r.group_id == FEATURED_GROUP_ID)
    group = group.model_copy(update={"rating_count": len(ratings) - featured_ratings})
    featured = featured.model_copy(update={"rating_count": featured_ratings})
    captain_member = GroupMember(
        id=f"{FEATURED_GROUP_ID}-{captain_id}",
        group_id=FEATURED_GROUP_ID,
        user_id=captain_id,
        name="Captain",
        role=MemberRole.CAPTAIN,
        status=ResponseStatus.ACCEPTED,
    )

    return {
        "groups": _dump([group, featured]),
        "objects": _dump(objects + featured_objects),
        "members": _dump(members + [captain_member]),
        "ratings": _dump(ratings),
    }


def create_demo_store(seed: int = 42) -> InMemoryDocumentStore:
    """In-memory store pre-loaded with the demo groups."""
    return InMemoryDocumentStore(initial=build_demo_documents(seed=seed))
