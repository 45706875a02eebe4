"""
Rating Integrity Service

Maintenance for data written by older versions of the app, where the things
being rated were stored as placeholder members instead of objects:

- diagnose_ratings: count ratings that point at objects, at legacy
  placeholder members, or at nothing
- fix_ratings: re-point ratings from placeholders to the object with the
  same name in the same group
- migrate_placeholder_members: turn placeholder members into objects and
  re-point their ratings
- canonicalize_documents: rewrite legacy-shaped documents in current shape
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from src.scale.models import ObjectType
from src.scale.normalization import (
    LEGACY_KEYS,
    normalize_claim_request,
    normalize_claim_token,
    normalize_group,
    normalize_invitation,
    normalize_member,
    normalize_object,
    normalize_pending_object,
    normalize_rating,
    read_field,
)
from src.scale.repositories.scale_repository import (
    CLAIM_REQUESTS,
    CLAIM_TOKENS,
    GROUPS,
    INVITATIONS,
    MEMBERS,
    OBJECTS,
    PENDING_OBJECTS,
    RATINGS,
    ScaleRepository,
    to_document,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_STATUS = "placeholder"
SAMPLE_LIMIT = 10
REPORT_LIMIT = 20

NORMALIZERS: Dict[str, Callable[[Dict[str, Any]], Optional[BaseModel]]] = {
    GROUPS: normalize_group,
    OBJECTS: normalize_object,
    MEMBERS: normalize_member,
    RATINGS: normalize_rating,
    INVITATIONS: normalize_invitation,
    CLAIM_REQUESTS: normalize_claim_request,
    CLAIM_TOKENS: normalize_claim_token,
    PENDING_OBJECTS: normalize_pending_object,
}


class RatingRef(BaseModel):
    id: str
    group_id: str
    target_id: Optional[str] = None
    metric_id: Optional[str] = None
    value: Any = None


class NamedRef(BaseModel):
    id: str
    name: str
    group_id: str


class RatingDiagnosis(BaseModel):
    """Result of diagnose_ratings."""
    total_objects: int = 0
    total_placeholders: int = 0
    total_ratings: int = 0
    valid_ratings: int = 0
    orphaned_ratings: int = 0
    ratings_pointing_to_placeholders: int = 0
    ratings_for_deleted_metrics: int = 0
    objects: List[NamedRef] = Field(default_factory=list)
    placeholders: List[NamedRef] = Field(default_factory=list)
    orphaned_rating_samples: List[RatingRef] = Field(default_factory=list)
    placeholder_rating_samples: List[RatingRef] = Field(default_factory=list)
    message: str = ""


class RatingFix(BaseModel):
    rating_id: str
    old_target_id: str
    new_target_id: str
    matched_by_name: str


class UnfixableRating(BaseModel):
    rating_id: str
    target_id: Optional[str] = None
    reason: str


class FixReport(BaseModel):
    """Result of fix_ratings."""
    fixed_count: int = 0
    unfixable_count: int = 0
    fixes: List[RatingFix] = Field(default_factory=list)
    unfixable: List[UnfixableRating] = Field(default_factory=list)
    message: str = ""


class MigratedItem(BaseModel):
    name: str
    group_id: str
    old_id: str
    new_id: str


class MigrationReport(BaseModel):
    """Result of migrate_placeholder_members."""
    migrated_count: int = 0
    ratings_updated: int = 0
    migrated_items: List[MigratedItem] = Field(default_factory=list)
    id_mapping: Dict[str, str] = Field(default_factory=dict)
    dry_run: bool = False
    message: str = ""


def _rating_target(raw: Dict[str, Any]) -> Optional[str]:
    return read_field(raw, "target_object_id", *LEGACY_KEYS["target_object_id"])


def _group_of(raw: Dict[str, Any]) -> str:
    return str(read_field(raw, "group_id", default=""))


def _name_key(name: Optional[str]) -> str:
    return (name or "").strip().lower()


class IntegrityService:
    """Service for rating integrity diagnosis and repair."""

    def __init__(self, repository: ScaleRepository):
        self._repository = repository

    def _placeholders(self, group_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Placeholder members not yet migrated to objects."""
        members = self._repository.list_raw_documents(MEMBERS)
        return [
            m for m in members
            if read_field(m, "status") == PLACEHOLDER_STATUS
            and not read_field(m, "migrated_to_object_id")
            and (group_id is None or _group_of(m) == group_id)
        ]

    def _raw(self, collection: str, group_id: Optional[str] = None) -> List[Dict[str, Any]]:
        docs = self._repository.list_raw_documents(collection)
        if group_id is None:
            return docs
        return [d for d in docs if _group_of(d) == group_id]

    def diagnose_ratings(self, group_id: Optional[str] = None) -> RatingDiagnosis:
        """
        Classify every rating (optionally of one group) by what it points at.

        Args:
            group_id: Restrict to one group (None = whole store)

        Returns:
            RatingDiagnosis with counts and samples
        """
        objects = self._raw(OBJECTS, group_id)
        placeholders = self._placeholders(group_id)
        ratings = self._raw(RATINGS, group_id)
        groups = {g.id: g for g in (normalize_group(raw) for raw in self._raw(GROUPS))}

        object_ids = {str(o["id"]) for o in objects}
        placeholder_ids = {str(p["id"]) for p in placeholders}

        report = RatingDiagnosis(
            total_objects=len(objects),
            total_placeholders=len(placeholders),
            total_ratings=len(ratings),
            objects=[NamedRef(id=str(o["id"]), name=read_field(o, "name", default=""), group_id=_group_of(o))
                     for o in objects[:REPORT_LIMIT]],
            placeholders=[NamedRef(id=str(p["id"]), name=read_field(p, "name", default=""), group_id=_group_of(p))
                          for p in placeholders[:REPORT_LIMIT]],
        )

        for raw in ratings:
            target = _rating_target(raw)
            ref = RatingRef(
                id=str(raw["id"]),
                group_id=_group_of(raw),
                target_id=target,
                metric_id=read_field(raw, "metric_id"),
                value=read_field(raw, "value"),
            )
            if target in object_ids:
                report.valid_ratings += 1
                group = groups.get(ref.group_id)
                if group is not None and group.get_metric(ref.metric_id) is None:
                    report.ratings_for_deleted_metrics += 1
            elif target in placeholder_ids:
                report.ratings_pointing_to_placeholders += 1
                if len(report.placeholder_rating_samples) < SAMPLE_LIMIT:
                    report.placeholder_rating_samples.append(ref)
            else:
                report.orphaned_ratings += 1
                if len(report.orphaned_rating_samples) < SAMPLE_LIMIT:
                    report.orphaned_rating_samples.append(ref)

        if report.orphaned_ratings or report.ratings_pointing_to_placeholders:
            report.message = "Found ratings that do not match current items. Run fix-ratings to repair."
            logger.warning(
                f"Rating diagnosis: {report.orphaned_ratings} orphaned, "
                f"{report.ratings_pointing_to_placeholders} pointing to placeholders"
            )
        else:
            report.message = "All ratings are properly linked to items."
        return report

    def fix_ratings(self) -> FixReport:
        """Re-point ratings at placeholders to the same-named object in the same group."""
        objects = self._raw(OBJECTS)
        object_ids = {str(o["id"]) for o in objects}
        objects_by_group_and_name: Dict[str, Dict[str, str]] = {}
        for obj in objects:
            objects_by_group_and_name.setdefault(_group_of(obj), {})[_name_key(read_field(obj, "name"))] = str(obj["id"])

        placeholder_by_id = {str(p["id"]): p for p in self._placeholders()}
        report = FixReport()

        for raw in self._raw(RATINGS):
            target = _rating_target(raw)
            if target in object_ids:
                continue

            rating_id = str(raw["id"])
            placeholder = placeholder_by_id.get(target) if target else None
            if placeholder is None:
                report.unfixable_count += 1
                report.unfixable.append(UnfixableRating(
                    rating_id=rating_id,
                    target_id=target,
                    reason="Target ID not found in items or placeholders",
                ))
                continue

            group_id = _group_of(raw)
            name = read_field(placeholder, "name", default="")
            match = objects_by_group_and_name.get(group_id, {}).get(_name_key(name))
            if match is None:
                report.unfixable_count += 1
                report.unfixable.append(UnfixableRating(
                    rating_id=rating_id,
                    target_id=target,
                    reason=f'No matching item found for placeholder "{name}" in group {group_id}',
                ))
                continue

            self._repository.patch_raw_document(RATINGS, rating_id, {"target_object_id": match})
            report.fixed_count += 1
            report.fixes.append(RatingFix(
                rating_id=rating_id,
                old_target_id=target,
                new_target_id=match,
                matched_by_name=name,
            ))

        report.fixes = report.fixes[:REPORT_LIMIT]
        report.unfixable = report.unfixable[:REPORT_LIMIT]
        report.message = (
            f"Fixed {report.fixed_count} ratings. "
            f"{report.unfixable_count} ratings could not be automatically fixed."
        )
        logger.info(report.message)
        return report

    def migrate_placeholder_members(self, dry_run: bool = False) -> MigrationReport:
        """
        Convert legacy placeholder members into objects.

        Each migrated member is marked with ``migrated_to_object_id`` so a
        second run does not create duplicates.

        Args:
            dry_run: Only report what would be migrated

        Returns:
            MigrationReport with the old-to-new id mapping
        """
        report = MigrationReport(dry_run=dry_run)
        now = datetime.utcnow()

        for member in self._placeholders():
            old_id = str(member["id"])
            new_id = str(uuid.uuid4())
            report.id_mapping[old_id] = new_id
            report.migrated_items.append(MigratedItem(
                name=read_field(member, "name", default=""),
                group_id=_group_of(member),
                old_id=old_id,
                new_id=new_id,
            ))
            if dry_run:
                continue

            legacy = dict(member)
            legacy["id"] = new_id
            legacy.pop("status", None)
            legacy.setdefault("object_type", ObjectType.USER.value)
            legacy.setdefault("updated_at", now.isoformat())
            obj = normalize_object(legacy)
            self._repository.save_object(obj)
            self._repository.patch_raw_document(MEMBERS, old_id, {"migrated_to_object_id": new_id})

        report.migrated_count = len(report.migrated_items)

        for raw in self._raw(RATINGS):
            target = _rating_target(raw)
            if target and target in report.id_mapping:
                report.ratings_updated += 1
                if not dry_run:
                    self._repository.patch_raw_document(RATINGS, str(raw["id"]), {
                        "target_object_id": report.id_mapping[target],
                        "targetMemberId": report.id_mapping[target],
                    })

        verb = "Would migrate" if dry_run else "Migrated"
        report.message = (
            f"{verb} {report.migrated_count} placeholder members to items. "
            f"Updated {report.ratings_updated} ratings."
        )
        logger.info(report.message)
        return report

    def canonicalize_documents(self, collections: Optional[List[str]] = None) -> Dict[str, int]:
        """
        Rewrite documents in their current shape (snake_case keys, defaults filled).

        Placeholder members are left alone until migrated; ratings without a
        usable target or value are skipped.

        Returns:
            Number of rewritten documents per collection
        """
        rewritten: Dict[str, int] = {}
        for collection in collections or list(NORMALIZERS):
            normalizer = NORMALIZERS[collection]
            count = 0
            for raw in self._repository.list_raw_documents(collection):
                if collection == MEMBERS and read_field(raw, "status") == PLACEHOLDER_STATUS:
                    continue
                model = normalizer(raw)
                if model is None:
                    continue
                document = to_document(model)
                if document != raw:
                    self._repository.replace_raw_document(collection, str(raw["id"]), document)
                    count += 1
            rewritten[collection] = count
            logger.info(f"Canonicalized {count} documents in '{collection}'")
        return rewritten
