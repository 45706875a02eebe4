"""
Object Service

Manages the things being rated in a group: adding (directly by a captain, or
through the approval queue for other members), editing, visibility, rating
mode, per-object metric applicability and removal.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from src.scale.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from src.scale.models import (
    Group,
    GroupObject,
    ObjectType,
    PendingObject,
    RatingMode,
    ReviewStatus,
    UserIdentity,
    can_user_rate,
    is_captain,
    metric_applies_to_object,
)
from src.scale.protocols.blob_protocol import BlobStore
from src.scale.repositories.scale_repository import ScaleRepository
from src.scale.validation import validate_required

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {"name", "description", "image_url", "link_url", "category", "object_type"}
DISPLAY_FIELDS = {"name", "image_url"}


@dataclass
class ImageUpload:
    """Raw image bytes from an upload widget."""
    data: bytes
    filename: str
    content_type: str = "application/octet-stream"


class ObjectService:
    """Service for group objects."""

    def __init__(self, repository: ScaleRepository, blob_store: Optional[BlobStore] = None):
        """
        Initialize the object service.

        Args:
            repository: Scale repository
            blob_store: Optional blob store for object images
        """
        self._repository = repository
        self._blob_store = blob_store

    # --- Lookups ---

    def _load(self, object_id: str) -> Tuple[GroupObject, Group]:
        obj = self._repository.get_object(object_id)
        if obj is None:
            raise NotFoundError("object", object_id, "Item not found")
        group = self._repository.get_group(obj.group_id)
        if group is None:
            raise NotFoundError("group", obj.group_id, "Group not found")
        return obj, group

    def _load_group(self, group_id: str) -> Group:
        group = self._repository.get_group(group_id)
        if group is None:
            raise NotFoundError("group", group_id, "Group not found")
        return group

    def list_objects(self, group_id: str) -> List[GroupObject]:
        return self._repository.list_objects(group_id)

    # --- Helpers ---

    def upload_image(self, image: Optional[ImageUpload]) -> Optional[str]:
        """
        Upload an image, returning its URL.

        Upload failures are logged and return None so the surrounding create
        or update still goes through without the image.
        """
        if image is None or self._blob_store is None:
            return None
        try:
            return self._blob_store.upload(image.data, image.filename, image.content_type)
        except Exception as e:
            logger.warning(f"Image upload failed for {image.filename}, continuing without image: {e}")
            return None

    def _validate_fields(self, group: Group, fields: Dict[str, Any]) -> Dict[str, Any]:
        cleaned = dict(fields)
        if "name" in cleaned:
            cleaned["name"] = validate_required(cleaned["name"], "name")
        if "object_type" in cleaned:
            try:
                cleaned["object_type"] = ObjectType(cleaned["object_type"])
            except ValueError:
                raise ValidationError(f"Unknown item type: {cleaned['object_type']}", field="object_type")
        if cleaned.get("object_type") == ObjectType.LINK:
            cleaned["link_url"] = validate_required(cleaned.get("link_url"), "link_url")
        category = cleaned.get("category")
        if category:
            if group.item_categories and category not in group.item_categories:
                raise ValidationError(f"Unknown category: {category}", field="category")
        elif "category" in cleaned:
            cleaned["category"] = None
        return cleaned

    # --- Create ---

    def add_object(
        self,
        group_id: str,
        acting_user_id: str,
        name: str,
        object_type: ObjectType = ObjectType.TEXT,
        description: Optional[str] = None,
        link_url: Optional[str] = None,
        category: Optional[str] = None,
        image: Optional[ImageUpload] = None,
        image_url: Optional[str] = None,
    ) -> GroupObject:
        """
        Add an object directly (captains and co-captains).

        Args:
            group_id: Group ID
            acting_user_id: Captain adding the object
            name: Object name
            object_type: text, link or user
            description: Optional description
            link_url: Target URL for link objects
            category: Optional item category
            image: Optional image to upload
            image_url: Image URL to use when no upload is given

        Returns:
            The created GroupObject
        """
        group = self._load_group(group_id)
        if not is_captain(group, acting_user_id):
            raise PermissionDeniedError("Only the captain can add items directly")

        fields = self._validate_fields(group, {
            "name": name,
            "object_type": object_type,
            "link_url": link_url,
            "category": category,
        })
        uploaded = self.upload_image(image)

        now = datetime.utcnow()
        obj = GroupObject(
            id=str(uuid.uuid4()),
            group_id=group_id,
            name=fields["name"],
            description=(description or "").strip() or None,
            image_url=uploaded or image_url,
            object_type=fields["object_type"],
            link_url=fields.get("link_url"),
            category=fields.get("category"),
            created_at=now,
            updated_at=now,
        )
        self._repository.save_object(obj)
        logger.info(f"Added {obj.object_type.value} item '{obj.name}' to group {group_id}")
        return obj

    def submit_object(
        self,
        group_id: str,
        user: UserIdentity,
        name: str,
        object_type: ObjectType = ObjectType.TEXT,
        description: Optional[str] = None,
        link_url: Optional[str] = None,
        category: Optional[str] = None,
        image: Optional[ImageUpload] = None,
    ) -> PendingObject:
        """Submit an object for captain approval (non-captain members)."""
        group = self._load_group(group_id)
        members = self._repository.list_members(group_id, user_id=user.id)
        if not can_user_rate(group, user.id, members):
            raise PermissionDeniedError("Only members can suggest items")

        fields = self._validate_fields(group, {
            "name": name,
            "object_type": object_type,
            "link_url": link_url,
            "category": category,
        })
        pending = PendingObject(
            id=str(uuid.uuid4()),
            group_id=group_id,
            name=fields["name"],
            description=(description or "").strip() or None,
            image_url=self.upload_image(image),
            object_type=fields["object_type"],
            link_url=fields.get("link_url"),
            category=fields.get("category"),
            submitted_by=user.id,
            submitted_by_name=user.name,
        )
        self._repository.save_pending_object(pending)
        logger.info(f"Item '{pending.name}' submitted for approval in group {group_id} by {user.id}")
        return pending

    def list_pending_objects(self, group_id: str) -> List[PendingObject]:
        return self._repository.list_pending_objects(group_id=group_id, status=ReviewStatus.PENDING.value)

    def review_pending_object(self, pending_id: str, acting_user_id: str, approve: bool) -> Optional[GroupObject]:
        """
        Approve or reject a submitted object.

        Returns:
            The created GroupObject when approved, else None
        """
        pending = self._repository.get_pending_object(pending_id)
        if pending is None:
            raise NotFoundError("pending object", pending_id, "Submission not found")
        group = self._load_group(pending.group_id)
        if not is_captain(group, acting_user_id):
            raise PermissionDeniedError("Only the captain can review submissions")
        if pending.status != ReviewStatus.PENDING:
            raise ValidationError("This submission was already reviewed", field="status")

        now = datetime.utcnow()
        self._repository.update_pending_object(pending_id, {
            "status": ReviewStatus.APPROVED if approve else ReviewStatus.REJECTED,
            "responded_at": now,
            "responded_by": acting_user_id,
        })
        if not approve:
            logger.info(f"Rejected submission {pending_id}")
            return None

        obj = GroupObject(
            id=str(uuid.uuid4()),
            group_id=pending.group_id,
            name=pending.name,
            description=pending.description,
            image_url=pending.image_url,
            object_type=pending.object_type,
            link_url=pending.link_url,
            category=pending.category,
            created_at=now,
            updated_at=now,
        )
        self._repository.save_object(obj)
        logger.info(f"Approved submission {pending_id} as item {obj.id}")
        return obj

    # --- Update ---

    def update_object(
        self,
        object_id: str,
        acting_user_id: str,
        image: Optional[ImageUpload] = None,
        **fields: Any,
    ) -> GroupObject:
        """
        Edit an object's details.

        Claimed user objects keep the claimant's name and image unless the
        group has captain control enabled.
        """
        obj, group = self._load(object_id)
        if not is_captain(group, acting_user_id):
            raise PermissionDeniedError("Only the captain can edit items")

        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot edit: {', '.join(sorted(unknown))}", field="fields")
        if obj.is_claimed_user and not group.captain_control_enabled:
            if (set(fields) & DISPLAY_FIELDS) or image is not None:
                raise PermissionDeniedError("This item has been claimed; its owner controls the name and image")

        if "object_type" not in fields:
            fields["object_type"] = obj.object_type
            fields.setdefault("link_url", obj.link_url)
        updates = self._validate_fields(group, fields)
        uploaded = self.upload_image(image)
        if uploaded:
            updates["image_url"] = uploaded

        updates["updated_at"] = datetime.utcnow()
        self._repository.update_object(object_id, updates)
        return obj.model_copy(update=updates)

    def set_visibility(self, object_id: str, acting_user_id: str, visible: bool) -> GroupObject:
        return self._captain_update(object_id, acting_user_id, {"visible_in_graph": visible})

    def set_rating_mode(self, object_id: str, acting_user_id: str, mode: RatingMode) -> GroupObject:
        return self._captain_update(object_id, acting_user_id, {"rating_mode": RatingMode(mode)})

    def set_metric_enabled(self, object_id: str, acting_user_id: str, metric_id: str, enabled: bool) -> GroupObject:
        """
        Enable or disable one metric for one object.

        Enabling removes the metric from the disabled list and adds it to the
        enabled list (overriding category restrictions); disabling does the
        reverse.
        """
        obj, group = self._load(object_id)
        if group.get_metric(metric_id) is None:
            raise NotFoundError("metric", metric_id, "This metric no longer exists")

        disabled = list(obj.disabled_metric_ids)
        enabled_ids = list(obj.enabled_metric_ids)
        if enabled:
            disabled = [mid for mid in disabled if mid != metric_id]
            if metric_id not in enabled_ids:
                enabled_ids.append(metric_id)
        else:
            enabled_ids = [mid for mid in enabled_ids if mid != metric_id]
            if metric_id not in disabled:
                disabled.append(metric_id)

        return self._captain_update(object_id, acting_user_id, {
            "disabled_metric_ids": disabled,
            "enabled_metric_ids": enabled_ids,
        }, loaded=(obj, group))

    def toggle_metric(self, object_id: str, acting_user_id: str, metric_id: str) -> GroupObject:
        """Flip whether a metric applies to an object."""
        obj, group = self._load(object_id)
        metric = group.get_metric(metric_id)
        if metric is None:
            raise NotFoundError("metric", metric_id, "This metric no longer exists")
        currently = metric_applies_to_object(metric, obj)
        return self.set_metric_enabled(object_id, acting_user_id, metric_id, not currently)

    def _captain_update(
        self,
        object_id: str,
        acting_user_id: str,
        updates: Dict[str, Any],
        loaded: Optional[Tuple[GroupObject, Group]] = None,
    ) -> GroupObject:
        obj, group = loaded or self._load(object_id)
        if not is_captain(group, acting_user_id):
            raise PermissionDeniedError("Only the captain can change items")
        updates = dict(updates, updated_at=datetime.utcnow())
        self._repository.update_object(object_id, updates)
        return obj.model_copy(update=updates)

    # --- Delete ---

    def remove_object(self, object_id: str, acting_user_id: str) -> int:
        """
        Remove an object and its ratings and claim tokens.

        Returns:
            Number of ratings deleted
        """
        obj, group = self._load(object_id)
        if not is_captain(group, acting_user_id):
            raise PermissionDeniedError("Only the captain can remove items")

        ratings = self._repository.list_ratings(obj.group_id, target_object_id=object_id)
        for rating in ratings:
            self._repository.delete_rating(rating.id)
        for token in self._repository.list_claim_tokens(object_id=object_id):
            self._repository.delete_claim_token(token.id)
        self._repository.delete_object(object_id)
        logger.info(f"Removed item {object_id} from group {obj.group_id} ({len(ratings)} ratings)")
        return len(ratings)
