"""Pydantic models for Scale groups, objects, metrics and ratings."""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Literal

from pydantic import BaseModel, Field


MetricPrefix = Literal['', '#', '$', '€', '£']
MetricSuffix = Literal[
    '', '%', 'K', 'M', 'B', 'T',
    ' thousand', ' million', ' billion', ' trillion',
]

# Empty metric id selects the "None" axis (even spread instead of a metric)
NO_METRIC = ""


def _now() -> datetime:
    return datetime.utcnow()


class ObjectType(str, Enum):
    TEXT = "text"
    LINK = "link"
    USER = "user"  # claimable by a real user


class RatingMode(str, Enum):
    CAPTAIN = "captain"  # only the captain's rating counts
    GROUP = "group"  # average of all ratings


class ClaimStatus(str, Enum):
    UNCLAIMED = "unclaimed"
    PENDING = "pending"
    CLAIMED = "claimed"


class MemberRole(str, Enum):
    CAPTAIN = "captain"
    CO_CAPTAIN = "co-captain"
    MEMBER = "member"
    FOLLOWER = "follower"  # public-group follower, not a real member


class ResponseStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TokenStatus(str, Enum):
    PENDING = "pending"
    CLAIMED = "claimed"
    EXPIRED = "expired"


class Metric(BaseModel):
    """A rateable numeric dimension."""
    id: str
    name: str
    description: str = ""
    order: int = 0
    min_value: float = 0
    max_value: float = 100
    prefix: MetricPrefix = ''
    suffix: MetricSuffix = ''
    applicable_categories: List[str] = Field(default_factory=list)  # empty = all items

    @property
    def midpoint(self) -> float:
        return (self.min_value + self.max_value) / 2

    @property
    def span(self) -> float:
        return self.max_value - self.min_value

    def format_value(self, value: float, decimals: Optional[int] = None) -> str:
        """Render a value with the metric's prefix/suffix decorations."""
        if decimals is None:
            text = f"{value:g}"
        else:
            text = f"{value:.{decimals}f}"
        return f"{self.prefix}{text}{self.suffix}"


class Group(BaseModel):
    """A rating group owned by a captain."""
    id: str
    name: str
    description: str = ""
    captain_id: str
    co_captain_ids: List[str] = Field(default_factory=list)
    metrics: List[Metric] = Field(default_factory=list)
    item_categories: List[str] = Field(default_factory=list)  # e.g. ["Player", "Team"]

    # Axis selection: defaults can be changed by the viewer, locks cannot
    default_x_metric_id: Optional[str] = None
    default_y_metric_id: Optional[str] = None
    locked_x_metric_id: Optional[str] = None
    locked_y_metric_id: Optional[str] = None

    captain_control_enabled: bool = False
    is_public: bool = True
    is_open: bool = False
    is_featured: bool = False

    # Popularity tracking
    view_count: int = 0
    rating_count: int = 0
    share_count: int = 0
    last_activity_at: datetime = Field(default_factory=_now)

    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def ordered_metrics(self) -> List[Metric]:
        return sorted(self.metrics, key=lambda m: m.order)

    def get_metric(self, metric_id: Optional[str]) -> Optional[Metric]:
        if not metric_id:
            return None
        for metric in self.metrics:
            if metric.id == metric_id:
                return metric
        return None


class GroupObject(BaseModel):
    """A thing being rated: a person, a link or a text item."""
    id: str
    group_id: str
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    object_type: ObjectType = ObjectType.TEXT
    link_url: Optional[str] = None
    category: Optional[str] = None

    # Captain overrides, taking precedence over category defaults
    disabled_metric_ids: List[str] = Field(default_factory=list)
    enabled_metric_ids: List[str] = Field(default_factory=list)

    visible_in_graph: bool = True
    rating_mode: RatingMode = RatingMode.GROUP

    claimed_by_id: Optional[str] = None
    claimed_by_name: Optional[str] = None
    claimed_by_image_url: Optional[str] = None
    claim_status: ClaimStatus = ClaimStatus.UNCLAIMED

    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def is_claimed_user(self) -> bool:
        return self.object_type == ObjectType.USER and self.claim_status == ClaimStatus.CLAIMED

    @property
    def display_name(self) -> str:
        if self.is_claimed_user and self.claimed_by_name:
            return self.claimed_by_name
        return self.name

    @property
    def display_image(self) -> Optional[str]:
        if self.is_claimed_user and self.claimed_by_image_url:
            return self.claimed_by_image_url
        return self.image_url


class GroupMember(BaseModel):
    """A real user belonging to (or following) a group."""
    id: str
    group_id: str
    user_id: str
    email: str = ""
    name: str = ""
    image_url: Optional[str] = None
    role: MemberRole = MemberRole.MEMBER
    status: ResponseStatus = ResponseStatus.PENDING
    invited_at: datetime = Field(default_factory=_now)
    responded_at: Optional[datetime] = None


class Rating(BaseModel):
    """One rater's value for one metric of one object."""
    id: str
    group_id: str
    metric_id: str
    rater_id: str
    target_object_id: str
    value: float
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def key(self) -> tuple:
        return (self.rater_id, self.metric_id, self.target_object_id)


class AggregatedScore(BaseModel):
    """Derived projection of the ratings for one (object, metric) pair."""
    object_id: str
    metric_id: str
    average_value: float = 0.0
    total_ratings: int = 0

    @property
    def is_rated(self) -> bool:
        return self.total_ratings > 0


class Invitation(BaseModel):
    id: str
    group_id: str
    group_name: str
    email: str
    invited_by: str
    invited_by_name: str = ""
    status: ResponseStatus = ResponseStatus.PENDING
    created_at: datetime = Field(default_factory=_now)
    responded_at: Optional[datetime] = None


class ClaimRequest(BaseModel):
    id: str
    group_id: str
    object_id: str
    claimant_id: str
    status: ReviewStatus = ReviewStatus.PENDING
    created_at: datetime = Field(default_factory=_now)
    responded_at: Optional[datetime] = None


class ClaimToken(BaseModel):
    id: str
    group_id: str
    object_id: str
    email: Optional[str] = None  # None for shareable links
    token: str
    created_by: str
    status: TokenStatus = TokenStatus.PENDING
    created_at: datetime = Field(default_factory=_now)
    claimed_at: Optional[datetime] = None
    claimed_by: Optional[str] = None


class PendingObject(BaseModel):
    """Object submitted by a non-captain, awaiting approval."""
    id: str
    group_id: str
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    object_type: ObjectType = ObjectType.TEXT
    link_url: Optional[str] = None
    category: Optional[str] = None
    submitted_by: str
    submitted_by_name: str = ""
    status: ReviewStatus = ReviewStatus.PENDING
    created_at: datetime = Field(default_factory=_now)
    responded_at: Optional[datetime] = None
    responded_by: Optional[str] = None


class UserIdentity(BaseModel):
    """Identity supplied by the external authentication provider."""
    id: str
    name: str = ""
    email: str = ""
    image_url: Optional[str] = None


def create_default_metric(
    name: str,
    description: str = "",
    order: int = 0,
    applicable_categories: Optional[List[str]] = None,
) -> dict:
    """Metric fields (without id) with the default 0-100 range."""
    return {
        "name": name,
        "description": description,
        "order": order,
        "min_value": 0,
        "max_value": 100,
        "prefix": "",
        "suffix": "",
        "applicable_categories": list(applicable_categories or []),
    }


def metric_applies_to_object(metric: Metric, obj: GroupObject) -> bool:
    """
    Check whether a metric applies to an object.

    Precedence: explicit disable > explicit enable > category default.
    """
    if metric.id in obj.disabled_metric_ids:
        return False
    if metric.id in obj.enabled_metric_ids:
        return True
    if not metric.applicable_categories:
        return True
    if not obj.category:
        return True
    return obj.category in metric.applicable_categories


def is_captain(group: Group, user_id: Optional[str]) -> bool:
    """Captain or co-captain."""
    if not user_id:
        return False
    return group.captain_id == user_id or user_id in group.co_captain_ids


def _is_accepted_member(user_id: str, members: List[GroupMember]) -> bool:
    return any(
        m.user_id == user_id
        and m.status == ResponseStatus.ACCEPTED
        and m.role != MemberRole.FOLLOWER
        for m in members
    )


def can_user_rate(group: Group, user_id: Optional[str], members: List[GroupMember]) -> bool:
    """Open groups accept any signed-in rater; closed groups only members."""
    if not user_id:
        return False
    if group.is_open:
        return True
    if is_captain(group, user_id):
        return True
    return _is_accepted_member(user_id, members)


def can_user_view(group: Group, user_id: Optional[str], members: List[GroupMember]) -> bool:
    """Public groups are visible to anyone; private groups to members only."""
    if group.is_public:
        return True
    if not user_id:
        return False
    if is_captain(group, user_id):
        return True
    return _is_accepted_member(user_id, members)
