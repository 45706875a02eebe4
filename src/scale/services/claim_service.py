"""
Claim Service

Lets a real user take ownership of a user-type object, either through a
claim link created by the captain or by asking the captain to approve a
claim request. A claimed object shows the claimant's name and image.
"""

import logging
import secrets
import uuid
from datetime import datetime
from typing import List, Optional

from src.scale.exceptions import ClaimError, NotFoundError, PermissionDeniedError, ValidationError
from src.scale.models import (
    ClaimRequest,
    ClaimStatus,
    ClaimToken,
    Group,
    GroupMember,
    GroupObject,
    MemberRole,
    ObjectType,
    ResponseStatus,
    ReviewStatus,
    TokenStatus,
    UserIdentity,
    is_captain,
)
from src.scale.repositories.scale_repository import ScaleRepository
from src.scale.validation import validate_email

logger = logging.getLogger(__name__)

INVALID_LINK_MESSAGE = "Invalid or expired claim link"
ALREADY_CLAIMED_MESSAGE = "This item has already been claimed"
EXPIRED_LINK_MESSAGE = "This claim link has expired"


def claim_url(token: str, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/Claim?token={token}"


class ClaimService:
    """Service for claim links and claim requests."""

    def __init__(self, repository: ScaleRepository):
        self._repository = repository

    def _load_object(self, object_id: str) -> GroupObject:
        obj = self._repository.get_object(object_id)
        if obj is None:
            raise NotFoundError("object", object_id, "Item not found")
        return obj

    def _load_group(self, group_id: str) -> Group:
        group = self._repository.get_group(group_id)
        if group is None:
            raise NotFoundError("group", group_id, "Group not found")
        return group

    # --- Claim links ---

    def create_claim_token(
        self,
        group_id: str,
        object_id: str,
        created_by: str,
        email: Optional[str] = None,
    ) -> ClaimToken:
        """
        Create a claim link for a user-type object.

        Args:
            group_id: Group ID
            object_id: Object to be claimed
            created_by: Captain creating the link
            email: Optional address the link is meant for (None = shareable)

        Returns:
            ClaimToken; build the link with ``claim_url(token.token, base_url)``
        """
        group = self._load_group(group_id)
        if not is_captain(group, created_by):
            raise PermissionDeniedError("Only the captain can create claim links")
        obj = self._load_object(object_id)
        if obj.group_id != group_id:
            raise NotFoundError("object", object_id, "Item not found")
        if obj.object_type != ObjectType.USER:
            raise ValidationError("Only person items can be claimed", field="object_type")
        if obj.claim_status == ClaimStatus.CLAIMED:
            raise ClaimError(ALREADY_CLAIMED_MESSAGE)

        token = ClaimToken(
            id=str(uuid.uuid4()),
            group_id=group_id,
            object_id=object_id,
            email=validate_email(email) if email else None,
            token=secrets.token_urlsafe(24),
            created_by=created_by,
        )
        self._repository.save_claim_token(token)
        logger.info(f"Created claim link for item {object_id} in group {group_id}")
        return token

    def get_claim_token(self, token: str) -> ClaimToken:
        """
        Look up a claim link that can still be used.

        Raises:
            ClaimError: Unknown, already used or expired link
        """
        claim_token = self._repository.get_claim_token_by_token(token) if token else None
        if claim_token is None:
            raise ClaimError(INVALID_LINK_MESSAGE)
        if claim_token.status == TokenStatus.CLAIMED:
            raise ClaimError(ALREADY_CLAIMED_MESSAGE)
        if claim_token.status == TokenStatus.EXPIRED:
            raise ClaimError(EXPIRED_LINK_MESSAGE)
        return claim_token

    def claim_profile(self, token: str, user: UserIdentity) -> GroupObject:
        """
        Claim the object behind a link for the signed-in user.

        The user also becomes an accepted member of the group.

        Returns:
            The claimed GroupObject
        """
        claim_token = self.get_claim_token(token)
        obj = self._repository.get_object(claim_token.object_id)
        if obj is None:
            raise ClaimError(INVALID_LINK_MESSAGE)
        if obj.claim_status == ClaimStatus.CLAIMED:
            raise ClaimError(ALREADY_CLAIMED_MESSAGE)

        now = datetime.utcnow()
        claimed = self._mark_claimed(obj, user.id, user.name, user.image_url, now)
        self._repository.update_claim_token(claim_token.id, {
            "status": TokenStatus.CLAIMED,
            "claimed_at": now,
            "claimed_by": user.id,
        })
        self._expire_other_tokens(obj.id, keep_id=claim_token.id)
        self._ensure_member(obj.group_id, user, now)
        logger.info(f"{user.id} claimed item {obj.id} in group {obj.group_id}")
        return claimed

    def expire_claim_token(self, token_id: str, acting_user_id: str) -> None:
        claim_token = next(iter(self._repository.list_claim_tokens(id=token_id)), None)
        if claim_token is None:
            raise NotFoundError("claim token", token_id, INVALID_LINK_MESSAGE)
        group = self._load_group(claim_token.group_id)
        if not is_captain(group, acting_user_id):
            raise PermissionDeniedError("Only the captain can revoke claim links")
        self._repository.update_claim_token(token_id, {"status": TokenStatus.EXPIRED})

    def _expire_other_tokens(self, object_id: str, keep_id: str) -> None:
        for other in self._repository.list_claim_tokens(object_id=object_id, status=TokenStatus.PENDING.value):
            if other.id != keep_id:
                self._repository.update_claim_token(other.id, {"status": TokenStatus.EXPIRED})

    # --- Claim requests ---

    def create_claim_request(self, group_id: str, object_id: str, claimant: UserIdentity) -> ClaimRequest:
        """Ask the captain to assign a user-type object to the claimant."""
        obj = self._load_object(object_id)
        if obj.group_id != group_id:
            raise NotFoundError("object", object_id, "Item not found")
        if obj.object_type != ObjectType.USER:
            raise ValidationError("Only person items can be claimed", field="object_type")
        if obj.claim_status == ClaimStatus.CLAIMED:
            raise ClaimError(ALREADY_CLAIMED_MESSAGE)

        pending = self._repository.list_claim_requests(
            object_id=object_id, claimant_id=claimant.id, status=ReviewStatus.PENDING.value
        )
        if pending:
            return pending[0]

        request = ClaimRequest(
            id=str(uuid.uuid4()),
            group_id=group_id,
            object_id=object_id,
            claimant_id=claimant.id,
        )
        self._repository.save_claim_request(request)
        self._repository.update_object(object_id, {"claim_status": ClaimStatus.PENDING})
        logger.info(f"{claimant.id} requested to claim item {object_id}")
        return request

    def list_pending_requests(self, group_id: str) -> List[ClaimRequest]:
        return self._repository.list_claim_requests(group_id=group_id, status=ReviewStatus.PENDING.value)

    def respond_to_claim_request(
        self,
        request_id: str,
        acting_user_id: str,
        approve: bool,
        claimant_name: str = "",
        claimant_image_url: Optional[str] = None,
    ) -> Optional[GroupObject]:
        """
        Approve or reject a claim request.

        Returns:
            The claimed GroupObject when approved, else None
        """
        request = self._repository.get_claim_request(request_id)
        if request is None:
            raise NotFoundError("claim request", request_id, "Claim request not found")
        group = self._load_group(request.group_id)
        if not is_captain(group, acting_user_id):
            raise PermissionDeniedError("Only the captain can review claim requests")

        now = datetime.utcnow()
        self._repository.update_claim_request(request_id, {
            "status": ReviewStatus.APPROVED if approve else ReviewStatus.REJECTED,
            "responded_at": now,
        })

        obj = self._load_object(request.object_id)
        if not approve:
            if obj.claim_status == ClaimStatus.PENDING and not self._has_other_pending(request):
                self._repository.update_object(obj.id, {"claim_status": ClaimStatus.UNCLAIMED})
            logger.info(f"Rejected claim request {request_id}")
            return None

        if obj.claim_status == ClaimStatus.CLAIMED:
            raise ClaimError(ALREADY_CLAIMED_MESSAGE)
        claimed = self._mark_claimed(obj, request.claimant_id, claimant_name, claimant_image_url, now)
        self._ensure_member(
            obj.group_id,
            UserIdentity(id=request.claimant_id, name=claimant_name, image_url=claimant_image_url),
            now,
        )
        logger.info(f"Approved claim request {request_id}")
        return claimed

    def _has_other_pending(self, request: ClaimRequest) -> bool:
        return any(
            r.id != request.id
            for r in self._repository.list_claim_requests(
                object_id=request.object_id, status=ReviewStatus.PENDING.value
            )
        )

    # --- Shared ---

    def _mark_claimed(
        self,
        obj: GroupObject,
        user_id: str,
        name: str,
        image_url: Optional[str],
        now: datetime,
    ) -> GroupObject:
        updates = {
            "claimed_by_id": user_id,
            "claimed_by_name": name or None,
            "claimed_by_image_url": image_url,
            "claim_status": ClaimStatus.CLAIMED,
            "updated_at": now,
        }
        self._repository.update_object(obj.id, updates)
        return obj.model_copy(update=updates)

    def _ensure_member(self, group_id: str, user: UserIdentity, now: datetime) -> None:
        existing = self._repository.list_members(group_id, user_id=user.id)
        for member in existing:
            if member.status != ResponseStatus.ACCEPTED or member.role == MemberRole.FOLLOWER:
                self._repository.update_member(member.id, {
                    "status": ResponseStatus.ACCEPTED,
                    "role": MemberRole.MEMBER,
                    "responded_at": now,
                })
        if existing:
            return
        self._repository.save_member(GroupMember(
            id=str(uuid.uuid4()),
            group_id=group_id,
            user_id=user.id,
            email=user.email,
            name=user.name,
            image_url=user.image_url,
            role=MemberRole.MEMBER,
            status=ResponseStatus.ACCEPTED,
            invited_at=now,
            responded_at=now,
        ))
