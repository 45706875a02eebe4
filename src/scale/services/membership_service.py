"""
Membership Service

Invitations, joining open groups, following public groups and the listing of
a user's groups.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from src.scale.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from src.scale.models import (
    Group,
    GroupMember,
    Invitation,
    MemberRole,
    ResponseStatus,
    UserIdentity,
    is_captain,
)
from src.scale.repositories.scale_repository import ScaleRepository
from src.scale.validation import validate_email

logger = logging.getLogger(__name__)


class MembershipService:
    """Service for group membership."""

    def __init__(self, repository: ScaleRepository):
        self._repository = repository

    def _load_group(self, group_id: str) -> Group:
        group = self._repository.get_group(group_id)
        if group is None:
            raise NotFoundError("group", group_id, "Group not found")
        return group

    def _find_member(self, group_id: str, user_id: str) -> Optional[GroupMember]:
        members = self._repository.list_members(group_id, user_id=user_id)
        return members[0] if members else None

    def list_members(self, group_id: str, include_followers: bool = False) -> List[GroupMember]:
        members = self._repository.list_members(group_id)
        if include_followers:
            return members
        return [m for m in members if m.role != MemberRole.FOLLOWER]

    # --- Invitations ---

    def invite(self, group_id: str, inviter: UserIdentity, email: str) -> Invitation:
        """
        Invite someone by email.

        Returns the existing invitation when one is already pending for the
        same address.

        Raises:
            ValidationError: Malformed email
            PermissionDeniedError: Inviter is not a captain
        """
        email = validate_email(email)
        group = self._load_group(group_id)
        if not is_captain(group, inviter.id):
            raise PermissionDeniedError("Only the captain can invite members")

        for existing in self._repository.list_invitations(group_id=group_id, status=ResponseStatus.PENDING.value):
            if existing.email.lower() == email.lower():
                logger.info(f"Invitation for {email} to group {group_id} already pending")
                return existing

        invitation = Invitation(
            id=str(uuid.uuid4()),
            group_id=group_id,
            group_name=group.name,
            email=email,
            invited_by=inviter.id,
            invited_by_name=inviter.name,
        )
        self._repository.save_invitation(invitation)
        logger.info(f"Invited {email} to group {group_id}")
        return invitation

    def list_user_invitations(self, email: str) -> List[Invitation]:
        """Pending invitations for an email address (case-insensitive)."""
        wanted = (email or "").strip().lower()
        if not wanted:
            return []
        return [
            inv for inv in self._repository.list_invitations(status=ResponseStatus.PENDING.value)
            if inv.email.lower() == wanted
        ]

    def respond_to_invitation(self, invitation_id: str, user: UserIdentity, accept: bool) -> Optional[GroupMember]:
        """
        Accept or decline an invitation.

        Returns:
            The accepted GroupMember, or None when declined
        """
        invitation = self._repository.get_invitation(invitation_id)
        if invitation is None:
            raise NotFoundError("invitation", invitation_id, "Invitation not found")
        if invitation.email.lower() != (user.email or "").lower():
            raise PermissionDeniedError("This invitation was sent to a different email address")
        if invitation.status != ResponseStatus.PENDING:
            raise ValidationError("This invitation was already answered", field="status")

        now = datetime.utcnow()
        status = ResponseStatus.ACCEPTED if accept else ResponseStatus.DECLINED
        self._repository.update_invitation(invitation_id, {"status": status, "responded_at": now})
        if not accept:
            logger.info(f"{user.id} declined invitation {invitation_id}")
            return None

        self._load_group(invitation.group_id)
        member = self._upsert_member(invitation.group_id, user, MemberRole.MEMBER)
        logger.info(f"{user.id} joined group {invitation.group_id} via invitation")
        return member

    # --- Open groups and followers ---

    def join_group(self, group_id: str, user: UserIdentity) -> GroupMember:
        """Join an open group as a rating member."""
        group = self._load_group(group_id)
        if not group.is_open and not is_captain(group, user.id):
            raise PermissionDeniedError("This group is invite-only")
        return self._upsert_member(group_id, user, MemberRole.MEMBER)

    def follow_group(self, group_id: str, user: UserIdentity) -> GroupMember:
        """Follow a public group without becoming a rating member."""
        group = self._load_group(group_id)
        if not group.is_public:
            raise PermissionDeniedError("Private groups cannot be followed")
        existing = self._find_member(group_id, user.id)
        if existing is not None:
            return existing
        return self._upsert_member(group_id, user, MemberRole.FOLLOWER)

    def unfollow_group(self, group_id: str, user_id: str) -> bool:
        existing = self._find_member(group_id, user_id)
        if existing is None or existing.role != MemberRole.FOLLOWER:
            return False
        self._repository.delete_member(existing.id)
        logger.info(f"{user_id} unfollowed group {group_id}")
        return True

    def leave_group(self, group_id: str, user_id: str) -> None:
        group = self._load_group(group_id)
        if group.captain_id == user_id:
            raise PermissionDeniedError("The captain cannot leave the group")
        for member in self._repository.list_members(group_id, user_id=user_id):
            self._repository.delete_member(member.id)
        logger.info(f"{user_id} left group {group_id}")

    def remove_member(self, group_id: str, acting_user_id: str, member_id: str) -> None:
        group = self._load_group(group_id)
        if not is_captain(group, acting_user_id):
            raise PermissionDeniedError("Only the captain can remove members")
        member = self._repository.get_member(member_id)
        if member is None or member.group_id != group_id:
            raise NotFoundError("member", member_id, "Member not found")
        if member.user_id == group.captain_id:
            raise PermissionDeniedError("The captain cannot be removed")
        self._repository.delete_member(member_id)
        logger.info(f"Removed member {member_id} from group {group_id}")

    def _upsert_member(self, group_id: str, user: UserIdentity, role: MemberRole) -> GroupMember:
        now = datetime.utcnow()
        existing = self._find_member(group_id, user.id)
        if existing is not None:
            # A follower who joins is promoted; captains keep their role
            new_role = role if existing.role in (MemberRole.FOLLOWER, role) else existing.role
            updates = {"role": new_role, "status": ResponseStatus.ACCEPTED, "responded_at": now}
            self._repository.update_member(existing.id, updates)
            return existing.model_copy(update=updates)

        member = GroupMember(
            id=str(uuid.uuid4()),
            group_id=group_id,
            user_id=user.id,
            email=user.email,
            name=user.name,
            image_url=user.image_url,
            role=role,
            status=ResponseStatus.ACCEPTED,
            invited_at=now,
            responded_at=now,
        )
        self._repository.save_member(member)
        return member

    # --- Listing ---

    def list_user_groups(self, user_id: str, include_followed: bool = False) -> List[Group]:
        """
        Groups the user captains, co-captains or belongs to.

        Args:
            user_id: User ID
            include_followed: Also include groups the user only follows

        Returns:
            Groups ordered by most recent activity
        """
        groups = {g.id: g for g in self._repository.list_groups({"captain_id": user_id})}
        for group in self._repository.list_groups({"co_captain_ids": user_id}):
            groups.setdefault(group.id, group)

        for member in self._repository.list_members(user_id=user_id):
            if member.status != ResponseStatus.ACCEPTED or member.group_id in groups:
                continue
            if member.role == MemberRole.FOLLOWER and not include_followed:
                continue
            group = self._repository.get_group(member.group_id)
            if group is not None:
                groups[group.id] = group
            else:
                logger.warning(f"Membership {member.id} points to missing group {member.group_id}")

        return sorted(groups.values(), key=lambda g: g.last_activity_at, reverse=True)
