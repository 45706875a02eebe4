"""
Read-boundary normalization of stored records.

Older documents predate fields such as ``ratingMode``, ``disabledMetricIds``
or ``coCaptainIds``, and some were written with camelCase keys or legacy
names (``creatorId``, ``targetMemberId``, ``clerkId``). Every record read from
the document store passes through one of the ``normalize_*`` functions here,
so the rest of the code only ever sees current-shape models.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from src.scale.models import (
    ClaimRequest,
    ClaimStatus,
    ClaimToken,
    Group,
    GroupMember,
    GroupObject,
    Invitation,
    MemberRole,
    Metric,
    ObjectType,
    PendingObject,
    Rating,
    RatingMode,
    ResponseStatus,
    ReviewStatus,
    TokenStatus,
)

logger = logging.getLogger(__name__)

_VALID_PREFIXES = {'', '#', '$', '€', '£'}
_VALID_SUFFIXES = {'', '%', 'K', 'M', 'B', 'T', ' thousand', ' million', ' billion', ' trillion'}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def read_field(raw: Dict[str, Any], name: str, *legacy: str, default: Any = None) -> Any:
    """First non-None value among snake_case, camelCase and legacy keys."""
    for key in (name, _camel(name), *legacy):
        value = raw.get(key)
        if value is not None:
            return value
    return default


# Legacy names of fields that list queries filter on
LEGACY_KEYS: Dict[str, tuple] = {
    "target_object_id": ("targetMemberId", "target_member_id"),
    "user_id": ("clerkId", "clerk_id"),
    "claimant_id": ("claimantClerkId",),
}


def field_keys(name: str) -> List[str]:
    """Every key a stored document may use for ``name``, in read order."""
    return list(dict.fromkeys((name, _camel(name), *LEGACY_KEYS.get(name, ()))))


def matches_fields(raw: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    """
    Equality match of a raw document against snake_case filters.

    Each field is read the way the normalizers read it, so a ``groupId`` or
    ``targetMemberId`` document matches ``group_id`` / ``target_object_id``
    filters. A list-valued field matches if it contains the expected value.
    """
    for name, expected in (filters or {}).items():
        actual = read_field(raw, name, *LEGACY_KEYS.get(name, ()))
        if isinstance(actual, list) and not isinstance(expected, list):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


def _as_datetime(value: Any, default: Optional[datetime] = None) -> Optional[datetime]:
    if value is None:
        return default
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        # Epoch seconds, or milliseconds from JS clients
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
        except ValueError:
            logger.warning(f"Unparseable timestamp {value!r}, using default")
            return default
    # Store-native timestamp objects expose to_datetime()/to_date()
    for attr in ("to_datetime", "to_date", "ToDatetime"):
        converter = getattr(value, attr, None)
        if callable(converter):
            return converter()
    return default


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def _enum(enum_cls, value: Any, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


def normalize_metric(raw: Dict[str, Any], index: int = 0) -> Metric:
    min_value = _as_float(read_field(raw, "min_value"), 0.0)
    max_value = _as_float(read_field(raw, "max_value"), 100.0)
    prefix = read_field(raw, "prefix", default="")
    suffix = read_field(raw, "suffix", default="")
    return Metric(
        id=str(read_field(raw, "id", default=f"metric-{index}")),
        name=read_field(raw, "name", default=""),
        description=read_field(raw, "description", default=""),
        order=int(read_field(raw, "order", default=index)),
        min_value=min_value,
        max_value=max_value,
        prefix=prefix if prefix in _VALID_PREFIXES else "",
        suffix=suffix if suffix in _VALID_SUFFIXES else "",
        applicable_categories=_as_list(read_field(raw, "applicable_categories")),
    )


def normalize_group(raw: Dict[str, Any]) -> Group:
    """Group documents, including pre-captain ``creatorId`` ones."""
    created_at = _as_datetime(read_field(raw, "created_at"), datetime.utcnow())
    metrics = [normalize_metric(m, i) for i, m in enumerate(read_field(raw, "metrics", default=[]))]
    return Group(
        id=str(raw["id"]),
        name=read_field(raw, "name", default=""),
        description=read_field(raw, "description", default=""),
        captain_id=str(read_field(raw, "captain_id", "creatorId", "creator_id", default="")),
        co_captain_ids=_as_list(read_field(raw, "co_captain_ids")),
        metrics=sorted(metrics, key=lambda m: m.order),
        item_categories=_as_list(read_field(raw, "item_categories")),
        default_x_metric_id=read_field(raw, "default_x_metric_id"),
        default_y_metric_id=read_field(raw, "default_y_metric_id"),
        locked_x_metric_id=read_field(raw, "locked_x_metric_id") or None,
        locked_y_metric_id=read_field(raw, "locked_y_metric_id") or None,
        captain_control_enabled=bool(read_field(raw, "captain_control_enabled", default=False)),
        is_public=bool(read_field(raw, "is_public", default=True)),
        is_open=bool(read_field(raw, "is_open", default=False)),
        is_featured=bool(read_field(raw, "is_featured", default=False)),
        view_count=int(read_field(raw, "view_count", default=0)),
        rating_count=int(read_field(raw, "rating_count", default=0)),
        share_count=int(read_field(raw, "share_count", default=0)),
        last_activity_at=_as_datetime(read_field(raw, "last_activity_at"), created_at),
        created_at=created_at,
        updated_at=_as_datetime(read_field(raw, "updated_at"), created_at),
    )


def normalize_object(raw: Dict[str, Any]) -> GroupObject:
    """Object documents; legacy member-shaped items use their display overrides."""
    created_at = _as_datetime(read_field(raw, "created_at", "invitedAt"), datetime.utcnow())
    claimed_by = read_field(raw, "claimed_by_id", "claimedByClerkId")
    claim_status = read_field(raw, "claim_status")
    if claim_status is None:
        claim_status = ClaimStatus.CLAIMED if claimed_by else ClaimStatus.UNCLAIMED
    return GroupObject(
        id=str(raw["id"]),
        group_id=str(read_field(raw, "group_id", default="")),
        name=read_field(raw, "name", "customName", default=""),
        description=read_field(raw, "description"),
        image_url=read_field(raw, "image_url", "customImageUrl", "placeholderImageUrl"),
        object_type=_enum(ObjectType, read_field(raw, "object_type", default="text"), ObjectType.TEXT),
        link_url=read_field(raw, "link_url"),
        category=read_field(raw, "category", "itemCategory"),
        disabled_metric_ids=_as_list(read_field(raw, "disabled_metric_ids")),
        enabled_metric_ids=_as_list(read_field(raw, "enabled_metric_ids")),
        # Only an explicit False hides an object
        visible_in_graph=read_field(raw, "visible_in_graph", default=True) is not False,
        rating_mode=_enum(RatingMode, read_field(raw, "rating_mode", default="group"), RatingMode.GROUP),
        claimed_by_id=claimed_by,
        claimed_by_name=read_field(raw, "claimed_by_name"),
        claimed_by_image_url=read_field(raw, "claimed_by_image_url"),
        claim_status=_enum(ClaimStatus, claim_status, ClaimStatus.UNCLAIMED),
        created_at=created_at,
        updated_at=_as_datetime(read_field(raw, "updated_at"), created_at),
    )


def normalize_rating(raw: Dict[str, Any]) -> Optional[Rating]:
    """Rating documents; returns None for records with no usable target or value."""
    target = read_field(raw, "target_object_id", *LEGACY_KEYS["target_object_id"])
    value = read_field(raw, "value")
    if target is None or value is None:
        logger.warning(f"Skipping rating {raw.get('id')!r} without target or value")
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Skipping rating {raw.get('id')!r} with non-numeric value {value!r}")
        return None
    created_at = _as_datetime(read_field(raw, "created_at"), datetime.utcnow())
    return Rating(
        id=str(raw["id"]),
        group_id=str(read_field(raw, "group_id", default="")),
        metric_id=str(read_field(raw, "metric_id", default="")),
        rater_id=str(read_field(raw, "rater_id", default="")),
        target_object_id=str(target),
        value=numeric,
        created_at=created_at,
        updated_at=_as_datetime(read_field(raw, "updated_at"), created_at),
    )


def normalize_member(raw: Dict[str, Any]) -> GroupMember:
    status = read_field(raw, "status", default="pending")
    if status == "placeholder":
        status = "pending"
    role = read_field(raw, "role")
    if role is None:
        role = "captain" if raw.get("isCaptain") or raw.get("isCreator") else "member"
    return GroupMember(
        id=str(raw["id"]),
        group_id=str(read_field(raw, "group_id", default="")),
        user_id=str(read_field(raw, "user_id", *LEGACY_KEYS["user_id"], default=raw["id"])),
        email=read_field(raw, "email", default=""),
        name=read_field(raw, "name", default=""),
        image_url=read_field(raw, "image_url"),
        role=_enum(MemberRole, role, MemberRole.MEMBER),
        status=_enum(ResponseStatus, status, ResponseStatus.PENDING),
        invited_at=_as_datetime(read_field(raw, "invited_at"), datetime.utcnow()),
        responded_at=_as_datetime(read_field(raw, "responded_at")),
    )


def normalize_invitation(raw: Dict[str, Any]) -> Invitation:
    return Invitation(
        id=str(raw["id"]),
        group_id=str(read_field(raw, "group_id", default="")),
        group_name=read_field(raw, "group_name", default=""),
        email=read_field(raw, "email", default=""),
        invited_by=str(read_field(raw, "invited_by", default="")),
        invited_by_name=read_field(raw, "invited_by_name", default=""),
        status=_enum(ResponseStatus, read_field(raw, "status", default="pending"), ResponseStatus.PENDING),
        created_at=_as_datetime(read_field(raw, "created_at"), datetime.utcnow()),
        responded_at=_as_datetime(read_field(raw, "responded_at")),
    )


def normalize_claim_request(raw: Dict[str, Any]) -> ClaimRequest:
    return ClaimRequest(
        id=str(raw["id"]),
        group_id=str(read_field(raw, "group_id", default="")),
        object_id=str(read_field(raw, "object_id", "placeholderMemberId", default="")),
        claimant_id=str(read_field(raw, "claimant_id", *LEGACY_KEYS["claimant_id"], default="")),
        status=_enum(ReviewStatus, read_field(raw, "status", default="pending"), ReviewStatus.PENDING),
        created_at=_as_datetime(read_field(raw, "created_at"), datetime.utcnow()),
        responded_at=_as_datetime(read_field(raw, "responded_at")),
    )


def normalize_claim_token(raw: Dict[str, Any]) -> ClaimToken:
    return ClaimToken(
        id=str(raw["id"]),
        group_id=str(read_field(raw, "group_id", default="")),
        object_id=str(read_field(raw, "object_id", default="")),
        email=read_field(raw, "email"),
        token=str(read_field(raw, "token", default="")),
        created_by=str(read_field(raw, "created_by", default="")),
        status=_enum(TokenStatus, read_field(raw, "status", default="pending"), TokenStatus.PENDING),
        created_at=_as_datetime(read_field(raw, "created_at"), datetime.utcnow()),
        claimed_at=_as_datetime(read_field(raw, "claimed_at")),
        claimed_by=read_field(raw, "claimed_by"),
    )


def normalize_pending_object(raw: Dict[str, Any]) -> PendingObject:
    return PendingObject(
        id=str(raw["id"]),
        group_id=str(read_field(raw, "group_id", default="")),
        name=read_field(raw, "name", default=""),
        description=read_field(raw, "description"),
        image_url=read_field(raw, "image_url"),
        object_type=_enum(ObjectType, read_field(raw, "object_type", default="text"), ObjectType.TEXT),
        link_url=read_field(raw, "link_url"),
        category=read_field(raw, "category"),
        submitted_by=str(read_field(raw, "submitted_by", default="")),
        submitted_by_name=read_field(raw, "submitted_by_name", default=""),
        status=_enum(ReviewStatus, read_field(raw, "status", default="pending"), ReviewStatus.PENDING),
        created_at=_as_datetime(read_field(raw, "created_at"), datetime.utcnow()),
        responded_at=_as_datetime(read_field(raw, "responded_at")),
        responded_by=read_field(raw, "responded_by"),
    )


def normalize_ratings(raws: Iterable[Dict[str, Any]]) -> List[Rating]:
    ratings = (normalize_rating(r) for r in raws)
    return [r for r in ratings if r is not None]
