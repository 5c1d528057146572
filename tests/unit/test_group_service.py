"""Unit tests for GroupApplicationService and MembershipService with mocked repos."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.rp_common.enums import MemberRole, MembershipStatus
from src.rp_common.errors import (
    AlreadyMemberError,
    GroupFullError,
    GroupNameExistsError,
    GroupNotJoinableError,
    GroupPermissionError,
    InvalidMembershipStateError,
    JoinRequestPendingError,
    LastAdminError,
    MembershipNotFoundError,
    NotGroupMemberError,
)
from src.rp_group.application.membership_service import MembershipService
from src.rp_group.application.service import GroupApplicationService
from src.rp_group.domain.events import (
    GroupDeletedEvent,
    GroupInvitationEvent,
    GroupJoinRequestEvent,
    GroupMemberJoinedEvent,
    GroupMemberLeftEvent,
    GroupRoleChangedEvent,
)
from src.rp_group.domain.models import Group, GroupMembership
from src.rp_user.domain.models import User


def _make_group(**kwargs) -> Group:
    defaults = dict(
        id="group-1", name="Friday Poker", description=None, privacy="PUBLIC",
        owner_id="owner-1", member_count=3, max_members=50,
        created_at=datetime.now(UTC),
    )
    defaults.update(kwargs)
    return Group(**defaults)


def _make_membership(**kwargs) -> GroupMembership:
    defaults = dict(
        id="mem-1", group_id="group-1", user_id="user-1",
        role=MemberRole.MEMBER.value, status=MembershipStatus.APPROVED.value,
        is_active=True, username="alice",
    )
    defaults.update(kwargs)
    return GroupMembership(**defaults)


def _make_user(user_id: str = "user-1", username: str = "alice") -> User:
    return User(
        id=user_id, username=username, email=f"{username}@example.com",
        display_name=None, credit_balance=100000,
    )


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def repo() -> AsyncMock:
    repo = AsyncMock()
    repo.save_membership.side_effect = lambda db, m: m
    return repo


@pytest.fixture
def user_repo() -> AsyncMock:
    user_repo = AsyncMock()
    user_repo.get_user.side_effect = lambda db, user_id: _make_user(user_id, f"u_{user_id}")
    return user_repo


@pytest.fixture
def bus() -> MagicMock:
    return MagicMock()


def _published(bus: MagicMock):
    bus.publish.assert_called_once()
    return bus.publish.call_args.args[0]


# ---------------------------------------------------------------------------
# GroupApplicationService
# ---------------------------------------------------------------------------


class TestCreateGroup:
    async def test_creator_becomes_admin(self, db, repo, user_repo, bus) -> None:
        repo.name_exists.return_value = False
        repo.create_group.return_value = _make_group(member_count=1)
        repo.create_membership.return_value = _make_membership(
            user_id="owner-1", role=MemberRole.ADMIN.value
        )
        svc = GroupApplicationService(repo=repo, user_repo=user_repo, bus=bus)

        resp = await svc.create_group(db, "owner-1", "  Friday Poker ", None, "PUBLIC", 50)

        repo.name_exists.assert_awaited_once_with(db, "Friday Poker")
        assert repo.create_membership.call_args.kwargs["role"] == "ADMIN"
        assert resp.is_member is True
        assert resp.user_role == "ADMIN"
        db.commit.assert_awaited_once()

    async def test_duplicate_name_rejected(self, db, repo, user_repo, bus) -> None:
        repo.name_exists.return_value = True
        svc = GroupApplicationService(repo=repo, user_repo=user_repo, bus=bus)

        with pytest.raises(GroupNameExistsError):
            await svc.create_group(db, "owner-1", "Friday Poker", None, "PUBLIC", 50)
        repo.create_group.assert_not_awaited()
        db.rollback.assert_awaited_once()

    async def test_blank_search_skips_repo(self, db, repo, user_repo, bus) -> None:
        svc = GroupApplicationService(repo=repo, user_repo=user_repo, bus=bus)
        assert await svc.search_groups(db, "  ", 10) == []
        repo.search_groups.assert_not_awaited()

    async def test_name_availability(self, db, repo, user_repo, bus) -> None:
        repo.name_exists.return_value = False
        svc = GroupApplicationService(repo=repo, user_repo=user_repo, bus=bus)
        resp = await svc.check_name_available(db, " New Crew ")
        assert resp.name == "New Crew"
        assert resp.available is True


class TestUpdateGroup:
    async def test_member_cannot_update(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.return_value = _make_membership()
        svc = GroupApplicationService(repo=repo, user_repo=user_repo, bus=bus)

        with pytest.raises(GroupPermissionError):
            await svc.update_group(db, "group-1", "user-1", {"description": "x"})
        repo.update_group.assert_not_awaited()

    async def test_non_member_rejected(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.return_value = None
        svc = GroupApplicationService(repo=repo, user_repo=user_repo, bus=bus)

        with pytest.raises(NotGroupMemberError):
            await svc.update_group(db, "group-1", "stranger", {"description": "x"})

    async def test_max_members_below_count(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group(member_count=10)
        repo.find_membership.return_value = _make_membership(role=MemberRole.ADMIN.value)
        svc = GroupApplicationService(repo=repo, user_repo=user_repo, bus=bus)

        with pytest.raises(InvalidMembershipStateError):
            await svc.update_group(db, "group-1", "user-1", {"max_members": 5})
        db.rollback.assert_awaited_once()

    async def test_admin_updates(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.return_value = _make_membership(role=MemberRole.ADMIN.value)
        repo.name_exists.return_value = False
        repo.update_group.return_value = _make_group(name="Saturday Poker")
        svc = GroupApplicationService(repo=repo, user_repo=user_repo, bus=bus)

        resp = await svc.update_group(db, "group-1", "user-1", {"name": " Saturday Poker "})

        repo.name_exists.assert_awaited_once_with(
            db, "Saturday Poker", exclude_group_id="group-1"
        )
        assert resp.name == "Saturday Poker"
        db.commit.assert_awaited_once()


class TestDeleteGroup:
    async def test_publishes_member_ids_after_commit(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.return_value = _make_membership(role=MemberRole.ADMIN.value)
        repo.list_active_member_ids.return_value = ["user-1", "user-2", "user-3"]
        svc = GroupApplicationService(repo=repo, user_repo=user_repo, bus=bus)

        await svc.delete_group(db, "group-1", "user-1")

        repo.deactivate_memberships.assert_awaited_once_with(db, "group-1")
        repo.soft_delete_group.assert_awaited_once_with(db, "group-1")
        db.commit.assert_awaited_once()
        event = _published(bus)
        assert isinstance(event, GroupDeletedEvent)
        assert event.member_ids == ["user-1", "user-2", "user-3"]
        assert event.deleted_by == "user-1"

    async def test_failure_publishes_nothing(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.return_value = _make_membership(role=MemberRole.ADMIN.value)
        repo.soft_delete_group.side_effect = RuntimeError("db down")
        svc = GroupApplicationService(repo=repo, user_repo=user_repo, bus=bus)

        with pytest.raises(RuntimeError):
            await svc.delete_group(db, "group-1", "user-1")
        db.rollback.assert_awaited_once()
        bus.publish.assert_not_called()


# ---------------------------------------------------------------------------
# MembershipService
# ---------------------------------------------------------------------------


def _membership_service(repo, user_repo, bus, notification_repo=None) -> MembershipService:
    return MembershipService(
        repo=repo,
        user_repo=user_repo,
        notification_repo=notification_repo or AsyncMock(),
        bus=bus,
    )


class TestJoinGroup:
    async def test_public_join_is_immediate(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.return_value = None
        repo.increment_member_count.return_value = True
        repo.create_membership.return_value = _make_membership(user_id="user-9")
        svc = _membership_service(repo, user_repo, bus)

        resp = await svc.join_group(db, "group-1", "user-9")

        assert resp.status == "APPROVED"
        assert repo.create_membership.call_args.kwargs["is_active"] is True
        event = _published(bus)
        assert isinstance(event, GroupMemberJoinedEvent)
        assert event.user_id == "user-9"

    async def test_private_join_creates_request(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group(privacy="PRIVATE")
        repo.find_membership.return_value = None
        repo.create_membership.return_value = _make_membership(
            user_id="user-9", status=MembershipStatus.PENDING.value, is_active=False
        )
        svc = _membership_service(repo, user_repo, bus)

        resp = await svc.join_group(db, "group-1", "user-9")

        assert resp.status == "PENDING"
        repo.increment_member_count.assert_not_awaited()
        event = _published(bus)
        assert isinstance(event, GroupJoinRequestEvent)
        assert event.requester_username == "u_user-9"

    async def test_full_group(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group(member_count=50)
        repo.find_membership.return_value = None
        repo.increment_member_count.return_value = False
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(GroupFullError):
            await svc.join_group(db, "group-1", "user-9")
        db.rollback.assert_awaited_once()
        bus.publish.assert_not_called()

    async def test_already_member(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.return_value = _make_membership()
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(AlreadyMemberError):
            await svc.join_group(db, "group-1", "user-1")

    async def test_pending_request_blocks_second(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group(privacy="PRIVATE")
        repo.find_membership.return_value = _make_membership(
            status=MembershipStatus.PENDING.value, is_active=False
        )
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(JoinRequestPendingError):
            await svc.join_group(db, "group-1", "user-1")

    async def test_deleted_group_not_joinable(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group(deleted_at=datetime.now(UTC))
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(GroupNotJoinableError):
            await svc.join_group(db, "group-1", "user-1")

    async def test_left_row_is_reused(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        left = _make_membership(status=MembershipStatus.LEFT.value, is_active=False)
        repo.find_membership.return_value = left
        repo.increment_member_count.return_value = True
        svc = _membership_service(repo, user_repo, bus)

        resp = await svc.join_group(db, "group-1", "user-1")

        repo.create_membership.assert_not_awaited()
        assert resp.id == "mem-1"
        assert left.is_active is True
        assert left.left_at is None


class TestJoinRequests:
    async def test_approve_clears_request_notifications(self, db, repo, user_repo, bus) -> None:
        notification_repo = AsyncMock()
        repo.get_group.return_value = _make_group(privacy="PRIVATE")
        repo.find_membership.return_value = _make_membership(
            user_id="admin-1", role=MemberRole.ADMIN.value
        )
        repo.get_membership.return_value = _make_membership(
            id="mem-9", user_id="user-9", status=MembershipStatus.PENDING.value,
            is_active=False,
        )
        repo.increment_member_count.return_value = True
        svc = _membership_service(repo, user_repo, bus, notification_repo)

        resp = await svc.approve_request(db, "group-1", "mem-9", "admin-1")

        assert resp.status == "APPROVED"
        notification_repo.delete_by_related_entity.assert_awaited_once_with(
            db, "mem-9", "GROUP_MEMBERSHIP", "GROUP_JOIN_REQUEST"
        )
        event = _published(bus)
        assert event.approved_by == "admin-1"
        assert event.was_invited is False

    async def test_member_cannot_approve(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group(privacy="PRIVATE")
        repo.find_membership.return_value = _make_membership()
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(GroupPermissionError):
            await svc.approve_request(db, "group-1", "mem-9", "user-1")

    async def test_deny_non_pending(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group(privacy="PRIVATE")
        repo.find_membership.return_value = _make_membership(role=MemberRole.OFFICER.value)
        repo.get_membership.return_value = _make_membership(id="mem-9", user_id="user-9")
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(InvalidMembershipStateError):
            await svc.deny_request(db, "group-1", "mem-9", "user-1")

    async def test_request_from_other_group(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.return_value = _make_membership(role=MemberRole.ADMIN.value)
        repo.get_membership.return_value = _make_membership(
            id="mem-9", group_id="group-2", status=MembershipStatus.PENDING.value
        )
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(MembershipNotFoundError):
            await svc.deny_request(db, "group-1", "mem-9", "user-1")


class TestLeaveAndRemove:
    async def test_last_admin_cannot_leave(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.return_value = _make_membership(role=MemberRole.ADMIN.value)
        repo.count_active_admins.return_value = 1
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(LastAdminError):
            await svc.leave_group(db, "group-1", "user-1")
        repo.decrement_member_count.assert_not_awaited()

    async def test_leave_deactivates(self, db, repo, user_repo, bus) -> None:
        membership = _make_membership()
        repo.get_group.return_value = _make_group()
        repo.find_membership.return_value = membership
        svc = _membership_service(repo, user_repo, bus)

        await svc.leave_group(db, "group-1", "user-1")

        assert membership.status == "LEFT"
        assert membership.is_active is False
        repo.decrement_member_count.assert_awaited_once_with(db, "group-1")
        event = _published(bus)
        assert isinstance(event, GroupMemberLeftEvent)
        assert event.was_kicked is False

    async def test_officer_cannot_remove_officer(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.side_effect = [
            _make_membership(user_id="off-1", role=MemberRole.OFFICER.value),
            _make_membership(user_id="off-2", role=MemberRole.OFFICER.value),
        ]
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(GroupPermissionError):
            await svc.remove_member(db, "group-1", "off-2", "off-1")

    async def test_cannot_remove_self(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.return_value = _make_membership(role=MemberRole.ADMIN.value)
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(GroupPermissionError):
            await svc.remove_member(db, "group-1", "user-1", "user-1")

    async def test_kick_publishes_reason(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.side_effect = [
            _make_membership(user_id="admin-1", role=MemberRole.ADMIN.value),
            _make_membership(id="mem-2", user_id="user-2", username="bob"),
        ]
        svc = _membership_service(repo, user_repo, bus)

        await svc.remove_member(db, "group-1", "user-2", "admin-1", reason="spam")

        event = _published(bus)
        assert event.was_kicked is True
        assert event.removed_by == "admin-1"
        assert event.reason == "spam"
        assert event.user_name == "bob"


class TestRoles:
    async def test_promotion(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.side_effect = [
            _make_membership(user_id="admin-1", role=MemberRole.ADMIN.value),
            _make_membership(user_id="user-2"),
        ]
        svc = _membership_service(repo, user_repo, bus)

        resp = await svc.change_role(db, "group-1", "user-2", MemberRole.OFFICER, "admin-1")

        assert resp.role == "OFFICER"
        event = _published(bus)
        assert isinstance(event, GroupRoleChangedEvent)
        assert event.was_promoted is True
        assert event.old_role == "MEMBER"

    async def test_only_admin_changes_roles(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.return_value = _make_membership(role=MemberRole.OFFICER.value)
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(GroupPermissionError):
            await svc.change_role(db, "group-1", "user-2", MemberRole.MEMBER, "user-1")

    async def test_same_role_rejected(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.side_effect = [
            _make_membership(user_id="admin-1", role=MemberRole.ADMIN.value),
            _make_membership(user_id="user-2"),
        ]
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(InvalidMembershipStateError):
            await svc.change_role(db, "group-1", "user-2", MemberRole.MEMBER, "admin-1")

    async def test_last_admin_demotion_blocked(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group()
        repo.find_membership.side_effect = [
            _make_membership(user_id="admin-1", role=MemberRole.ADMIN.value),
            _make_membership(user_id="admin-1", role=MemberRole.ADMIN.value),
        ]
        repo.count_active_admins.return_value = 1
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(LastAdminError):
            await svc.change_role(db, "group-1", "admin-1", MemberRole.MEMBER, "admin-1")


class TestInvitations:
    async def test_invite_creates_pending_row(self, db, repo, user_repo, bus) -> None:
        repo.get_group.return_value = _make_group(privacy="PRIVATE")
        repo.find_membership.side_effect = [_make_membership(), None]
        repo.create_membership.return_value = _make_membership(
            id="mem-7", user_id="user-7", status=MembershipStatus.PENDING.value,
            is_active=False, invited_by="user-1",
        )
        svc = _membership_service(repo, user_repo, bus)

        resp = await svc.invite_user(db, "group-1", "user-7", "user-1")

        assert resp.invited_by == "user-1"
        event = _published(bus)
        assert isinstance(event, GroupInvitationEvent)
        assert event.invited_user_id == "user-7"

    async def test_accept_activates(self, db, repo, user_repo, bus) -> None:
        invitation = _make_membership(
            id="mem-7", user_id="user-7", status=MembershipStatus.PENDING.value,
            is_active=False, invited_by="user-1",
        )
        repo.get_membership.return_value = invitation
        repo.get_group.return_value = _make_group(privacy="PRIVATE")
        repo.increment_member_count.return_value = True
        svc = _membership_service(repo, user_repo, bus)

        resp = await svc.accept_invitation(db, "mem-7", "user-7")

        assert resp.status == "APPROVED"
        assert resp.invited_by == "user-1"
        assert _published(bus).was_invited is True

    async def test_cannot_accept_someone_elses(self, db, repo, user_repo, bus) -> None:
        repo.get_membership.return_value = _make_membership(
            id="mem-7", user_id="user-7", status=MembershipStatus.PENDING.value,
            is_active=False, invited_by="user-1",
        )
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(MembershipNotFoundError):
            await svc.accept_invitation(db, "mem-7", "user-8")

    async def test_join_request_is_not_an_invitation(self, db, repo, user_repo, bus) -> None:
        repo.get_membership.return_value = _make_membership(
            id="mem-7", user_id="user-7", status=MembershipStatus.PENDING.value,
            is_active=False,
        )
        svc = _membership_service(repo, user_repo, bus)

        with pytest.raises(InvalidMembershipStateError):
            await svc.reject_invitation(db, "mem-7", "user-7")
