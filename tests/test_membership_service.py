"""
Tests for invitations, open groups, followers and permissions.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.scale.exceptions import PermissionDeniedError, ValidationError
from src.scale.models import MemberRole, ResponseStatus, can_user_rate, can_user_view

from conftest import make_group, make_member


class TestPermissions:
    """Tests for can_user_rate() and can_user_view()."""

    def test_open_group_any_signed_in_user(self):
        group = make_group(is_open=True)
        assert can_user_rate(group, "stranger", [])
        assert not can_user_rate(group, None, [])

    def test_closed_group_requires_accepted_member(self):
        group = make_group()
        assert can_user_rate(group, "captain", [])
        assert can_user_rate(group, "alice", [make_member("alice")])
        assert not can_user_rate(group, "alice", [make_member("alice", status=ResponseStatus.PENDING)])
        assert not can_user_rate(group, "alice", [make_member("alice", role=MemberRole.FOLLOWER)])

    def test_private_group_visibility(self):
        group = make_group(is_public=False)
        assert not can_user_view(group, None, [])
        assert not can_user_view(group, "stranger", [])
        assert can_user_view(group, "alice", [make_member("alice")])
        assert can_user_view(make_group(), None, [])


class TestInvitations:
    """Tests for invite() and respond_to_invitation()."""

    def test_duplicate_pending_invitation_reused(self, scale_app, team, captain):
        group, _ = team
        first = scale_app.members.invite(group.id, captain, "new@example.com")
        second = scale_app.members.invite(group.id, captain, "NEW@example.com")
        assert first.id == second.id

    def test_invalid_email(self, scale_app, team, captain):
        group, _ = team
        with pytest.raises(ValidationError):
            scale_app.members.invite(group.id, captain, "not-an-email")

    def test_member_cannot_invite(self, scale_app, team, alice):
        group, _ = team
        with pytest.raises(PermissionDeniedError):
            scale_app.members.invite(group.id, alice, "x@example.com")

    def test_wrong_recipient(self, scale_app, team, captain, bob):
        group, _ = team
        invitation = scale_app.members.invite(group.id, captain, "someone@example.com")
        with pytest.raises(PermissionDeniedError):
            scale_app.members.respond_to_invitation(invitation.id, bob, accept=True)

    def test_decline(self, scale_app, team, captain, bob):
        group, _ = team
        invitation = scale_app.members.invite(group.id, captain, bob.email)
        assert scale_app.members.list_user_invitations(bob.email)
        assert scale_app.members.respond_to_invitation(invitation.id, bob, accept=False) is None
        assert scale_app.members.list_user_invitations(bob.email) == []
        assert not any(m.user_id == bob.id for m in scale_app.members.list_members(group.id))

    def test_cannot_answer_twice(self, scale_app, team, captain, bob):
        group, _ = team
        invitation = scale_app.members.invite(group.id, captain, bob.email)
        scale_app.members.respond_to_invitation(invitation.id, bob, accept=True)
        with pytest.raises(ValidationError):
            scale_app.members.respond_to_invitation(invitation.id, bob, accept=False)


class TestOpenGroupsAndFollowers:
    """Tests for join_group(), follow_group(), leave_group()."""

    def test_join_closed_group_denied(self, scale_app, team, bob):
        group, _ = team
        with pytest.raises(PermissionDeniedError):
            scale_app.members.join_group(group.id, bob)

    def test_follower_promoted_on_join(self, scale_app, team, captain, bob):
        group, _ = team
        scale_app.members.follow_group(group.id, bob)
        scale_app.groups.update_settings(group.id, captain.id, is_open=True)
        member = scale_app.members.join_group(group.id, bob)
        assert member.role == MemberRole.MEMBER

    def test_followers_hidden_by_default(self, scale_app, team, bob):
        group, _ = team
        scale_app.members.follow_group(group.id, bob)
        assert bob.id not in [m.user_id for m in scale_app.members.list_members(group.id)]
        assert bob.id in [m.user_id for m in scale_app.members.list_members(group.id, include_followers=True)]
        assert scale_app.members.unfollow_group(group.id, bob.id)

    def test_captain_cannot_leave(self, scale_app, team, captain, alice):
        group, _ = team
        with pytest.raises(PermissionDeniedError):
            scale_app.members.leave_group(group.id, captain.id)
        scale_app.members.leave_group(group.id, alice.id)
        assert alice.id not in [m.user_id for m in scale_app.members.list_members(group.id)]


class TestUserGroups:
    """Tests for list_user_groups()."""

    def test_lists_captained_and_member_groups(self, scale_app, team, captain, alice, bob):
        group, _ = team
        other = scale_app.groups.create_group(bob, "Bob's group")
        scale_app.members.follow_group(other.id, alice)

        assert [g.id for g in scale_app.members.list_user_groups(alice.id)] == [group.id]
        followed = scale_app.members.list_user_groups(alice.id, include_followed=True)
        assert {g.id for g in followed} == {group.id, other.id}
        assert [g.id for g in scale_app.members.list_user_groups(captain.id)] == [group.id]
