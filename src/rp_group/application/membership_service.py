"""MembershipService — joining, approvals, invitations, roles and removal.

Membership rows are unique per (group, user). A REJECTED or LEFT row is
reused when the same user asks to join again, so history never blocks a
later request.

Every state change commits first and publishes its event afterwards;
listeners therefore always see the committed membership.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_common.datetime_utils import utc_now
from src.rp_common.enums import MemberRole, MembershipStatus
from src.rp_common.errors import (
    AlreadyMemberError,
    GroupFullError,
    GroupNotFoundError,
    GroupNotJoinableError,
    GroupPermissionError,
    InvalidMembershipStateError,
    JoinRequestPendingError,
    LastAdminError,
    MembershipNotFoundError,
    NotGroupMemberError,
    UserNotFoundError,
)
from src.rp_common.event_bus import InMemoryEventBus, event_bus
from src.rp_group.application.schemas import MembershipResponse
from src.rp_group.domain.events import (
    GroupInvitationEvent,
    GroupJoinRequestEvent,
    GroupMemberJoinedEvent,
    GroupMemberLeftEvent,
    GroupRoleChangedEvent,
)
from src.rp_group.domain.models import ROLE_RANK, Group, GroupMembership
from src.rp_group.domain.repository import GroupRepositoryProtocol
from src.rp_group.infrastructure.persistence import GroupRepository
from src.rp_notification.application.service import NotificationService
from src.rp_notification.domain.repository import NotificationRepositoryProtocol
from src.rp_user.domain.models import User
from src.rp_user.domain.repository import UserRepositoryProtocol
from src.rp_user.infrastructure.persistence import UserRepository


class MembershipService:
    def __init__(
        self,
        repo: GroupRepositoryProtocol | None = None,
        user_repo: UserRepositoryProtocol | None = None,
        notification_repo: NotificationRepositoryProtocol | None = None,
        bus: InMemoryEventBus | None = None,
    ) -> None:
        self._repo: GroupRepositoryProtocol = repo or GroupRepository()
        self._user_repo: UserRepositoryProtocol = user_repo or UserRepository()
        self._notifications = NotificationService(notification_repo)
        self._bus = bus or event_bus

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _require_group(self, db: AsyncSession, group_id: str) -> Group:
        group = await self._repo.get_group(db, group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group

    async def _require_user(self, db: AsyncSession, user_id: str) -> User:
        user = await self._user_repo.get_user(db, user_id)
        if user is None or user.deleted_at is not None:
            raise UserNotFoundError(user_id)
        return user

    async def _require_member(
        self, db: AsyncSession, group_id: str, user_id: str
    ) -> GroupMembership:
        membership = await self._repo.find_membership(db, group_id, user_id)
        if membership is None or not membership.is_approved_member:
            raise NotGroupMemberError(group_id)
        return membership

    async def _require_moderator(
        self, db: AsyncSession, group_id: str, user_id: str
    ) -> GroupMembership:
        membership = await self._require_member(db, group_id, user_id)
        if not membership.can_moderate:
            raise GroupPermissionError("Only group admins and officers can do this")
        return membership

    async def _require_pending_request(
        self, db: AsyncSession, group_id: str, membership_id: str
    ) -> GroupMembership:
        membership = await self._repo.get_membership(db, membership_id)
        if membership is None or membership.group_id != group_id:
            raise MembershipNotFoundError(membership_id)
        if not membership.is_pending:
            raise InvalidMembershipStateError("Membership request is not pending")
        return membership

    async def is_member(self, db: AsyncSession, group_id: str, user_id: str) -> bool:
        membership = await self._repo.find_membership(db, group_id, user_id)
        return membership is not None and membership.is_approved_member

    async def get_role(self, db: AsyncSession, group_id: str, user_id: str) -> str | None:
        membership = await self._repo.find_membership(db, group_id, user_id)
        if membership is None or not membership.is_approved_member:
            return None
        return membership.role

    async def list_active_member_ids(self, db: AsyncSession, group_id: str) -> list[str]:
        return await self._repo.list_active_member_ids(db, group_id)

    async def list_admin_and_officer_ids(self, db: AsyncSession, group_id: str) -> list[str]:
        return await self._repo.list_admin_and_officer_ids(db, group_id)

    async def list_members(
        self, db: AsyncSession, group_id: str, viewer_id: str
    ) -> list[MembershipResponse]:
        group = await self._require_group(db, group_id)
        if not group.is_public:
            await self._require_member(db, group_id, viewer_id)
        members = await self._repo.list_members(db, group_id)
        return [MembershipResponse.from_domain(m) for m in members]

    async def list_pending_requests(
        self, db: AsyncSession, group_id: str, viewer_id: str
    ) -> list[MembershipResponse]:
        await self._require_group(db, group_id)
        await self._require_moderator(db, group_id, viewer_id)
        pending = await self._repo.list_pending_requests(db, group_id)
        return [MembershipResponse.from_domain(m) for m in pending]

    async def count_pending_requests(
        self, db: AsyncSession, group_id: str, viewer_id: str
    ) -> int:
        await self._require_group(db, group_id)
        await self._require_moderator(db, group_id, viewer_id)
        return await self._repo.count_pending_requests(db, group_id)

    async def list_my_invitations(
        self, db: AsyncSession, user_id: str
    ) -> list[MembershipResponse]:
        invitations = await self._repo.list_user_invitations(db, user_id)
        return [MembershipResponse.from_domain(m) for m in invitations]

    # ------------------------------------------------------------------
    # Joining
    # ------------------------------------------------------------------

    async def join_group(
        self, db: AsyncSession, group_id: str, user_id: str
    ) -> MembershipResponse:
        try:
            group = await self._require_group(db, group_id)
            if not group.is_joinable:
                raise GroupNotJoinableError(group_id)
            user = await self._require_user(db, user_id)

            existing = await self._repo.find_membership(db, group_id, user_id)
            if existing is not None:
                if existing.is_approved_member:
                    raise AlreadyMemberError()
                if existing.is_pending:
                    raise JoinRequestPendingError()

            if group.is_public:
                if not await self._repo.increment_member_count(db, group_id):
                    raise GroupFullError(group_id)
                membership = await self._activate(db, group_id, user_id, existing, invited_by=None)
            else:
                membership = await self._mark_pending(db, group_id, user_id, existing, invited_by=None)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if group.is_public:
            self._bus.publish(
                GroupMemberJoinedEvent(
                    group_id=group.id,
                    group_name=group.name,
                    group_privacy=group.privacy,
                    membership_id=membership.id,
                    user_id=user_id,
                    user_name=user.name,
                )
            )
        else:
            self._bus.publish(
                GroupJoinRequestEvent(
                    group_id=group.id,
                    group_name=group.name,
                    membership_id=membership.id,
                    requester_id=user_id,
                    requester_username=user.username,
                    requester_name=user.name,
                )
            )
        return MembershipResponse.from_domain(membership)

    async def _activate(
        self,
        db: AsyncSession,
        group_id: str,
        user_id: str,
        existing: GroupMembership | None,
        invited_by: str | None,
    ) -> GroupMembership:
        if existing is None:
            return await self._repo.create_membership(
                db,
                group_id,
                user_id,
                role=MemberRole.MEMBER.value,
                status=MembershipStatus.APPROVED.value,
                is_active=True,
                invited_by=invited_by,
            )
        existing.role = MemberRole.MEMBER.value
        existing.status = MembershipStatus.APPROVED.value
        existing.is_active = True
        existing.invited_by = invited_by
        existing.joined_at = utc_now()
        existing.left_at = None
        return await self._repo.save_membership(db, existing)

    async def _mark_pending(
        self,
        db: AsyncSession,
        group_id: str,
        user_id: str,
        existing: GroupMembership | None,
        invited_by: str | None,
    ) -> GroupMembership:
        if existing is None:
            return await self._repo.create_membership(
                db,
                group_id,
                user_id,
                role=MemberRole.MEMBER.value,
                status=MembershipStatus.PENDING.value,
                is_active=False,
                invited_by=invited_by,
            )
        existing.role = MemberRole.MEMBER.value
        existing.status = MembershipStatus.PENDING.value
        existing.is_active = False
        existing.invited_by = invited_by
        existing.left_at = None
        return await self._repo.save_membership(db, existing)

    async def _clear_join_request_notifications(
        self, db: AsyncSession, membership_id: str
    ) -> None:
        await self._notifications.delete_join_request_notifications(db, membership_id)

    async def approve_request(
        self, db: AsyncSession, group_id: str, membership_id: str, approver_id: str
    ) -> MembershipResponse:
        try:
            group = await self._require_group(db, group_id)
            await self._require_moderator(db, group_id, approver_id)
            pending = await self._require_pending_request(db, group_id, membership_id)

            if not await self._repo.increment_member_count(db, group_id):
                raise GroupFullError(group_id)
            membership = await self._activate(
                db, group_id, pending.user_id, pending, invited_by=pending.invited_by
            )
            await self._clear_join_request_notifications(db, membership_id)
            user = await self._user_repo.get_user(db, membership.user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        self._bus.publish(
            GroupMemberJoinedEvent(
                group_id=group.id,
                group_name=group.name,
                group_privacy=group.privacy,
                membership_id=membership.id,
                user_id=membership.user_id,
                user_name=user.name if user else (membership.username or "A new member"),
                was_invited=False,
                approved_by=approver_id,
            )
        )
        return MembershipResponse.from_domain(membership)

    async def deny_request(
        self, db: AsyncSession, group_id: str, membership_id: str, approver_id: str
    ) -> MembershipResponse:
        try:
            await self._require_group(db, group_id)
            await self._require_moderator(db, group_id, approver_id)
            membership = await self._require_pending_request(db, group_id, membership_id)

            membership.status = MembershipStatus.REJECTED.value
            membership.is_active = False
            await self._repo.save_membership(db, membership)
            await self._clear_join_request_notifications(db, membership_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return MembershipResponse.from_domain(membership)

    # ------------------------------------------------------------------
    # Leaving and removal
    # ------------------------------------------------------------------

    async def _deactivate(self, db: AsyncSession, membership: GroupMembership) -> None:
        membership.status = MembershipStatus.LEFT.value
        membership.is_active = False
        membership.left_at = utc_now()
        await self._repo.save_membership(db, membership)
        await self._repo.decrement_member_count(db, membership.group_id)

    async def leave_group(self, db: AsyncSession, group_id: str, user_id: str) -> None:
        try:
            group = await self._require_group(db, group_id)
            membership = await self._require_member(db, group_id, user_id)
            if membership.role == MemberRole.ADMIN:
                if await self._repo.count_active_admins(db, group_id) <= 1:
                    raise LastAdminError()
            await self._deactivate(db, membership)
            user = await self._user_repo.get_user(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        self._bus.publish(
            GroupMemberLeftEvent(
                group_id=group.id,
                group_name=group.name,
                user_id=user_id,
                user_name=user.name if user else (membership.username or "A member"),
                was_kicked=False,
            )
        )

    async def remove_member(
        self,
        db: AsyncSession,
        group_id: str,
        member_user_id: str,
        actor_id: str,
        reason: str | None = None,
    ) -> None:
        try:
            group = await self._require_group(db, group_id)
            actor = await self._require_moderator(db, group_id, actor_id)
            if member_user_id == actor_id:
                raise GroupPermissionError("Use leave to exit a group; you cannot remove yourself")
            target = await self._repo.find_membership(db, group_id, member_user_id)
            if target is None or not target.is_approved_member:
                raise MembershipNotFoundError(member_user_id)
            if actor.role == MemberRole.OFFICER and target.role != MemberRole.MEMBER:
                raise GroupPermissionError("Officers can only remove regular members")
            if target.role == MemberRole.ADMIN:
                if await self._repo.count_active_admins(db, group_id) <= 1:
                    raise LastAdminError()

            await self._deactivate(db, target)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        self._bus.publish(
            GroupMemberLeftEvent(
                group_id=group.id,
                group_name=group.name,
                user_id=member_user_id,
                user_name=target.display_name or target.username or "A member",
                was_kicked=True,
                removed_by=actor_id,
                reason=reason,
            )
        )

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    async def change_role(
        self,
        db: AsyncSession,
        group_id: str,
        member_user_id: str,
        new_role: MemberRole,
        actor_id: str,
    ) -> MembershipResponse:
        try:
            group = await self._require_group(db, group_id)
            actor = await self._require_member(db, group_id, actor_id)
            if actor.role != MemberRole.ADMIN:
                raise GroupPermissionError("Only group admins can change roles")
            target = await self._repo.find_membership(db, group_id, member_user_id)
            if target is None or not target.is_approved_member:
                raise MembershipNotFoundError(member_user_id)

            old_role = MemberRole(target.role)
            if old_role == new_role:
                raise InvalidMembershipStateError(f"Member already has role {new_role.value}")
            if old_role == MemberRole.ADMIN:
                if await self._repo.count_active_admins(db, group_id) <= 1:
                    raise LastAdminError()

            target.role = new_role.value
            await self._repo.save_membership(db, target)
            actor_user = await self._user_repo.get_user(db, actor_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        self._bus.publish(
            GroupRoleChangedEvent(
                group_id=group.id,
                group_name=group.name,
                user_id=member_user_id,
                old_role=old_role.value,
                new_role=new_role.value,
                changed_by=actor_id,
                changed_by_name=actor_user.name if actor_user else "A group admin",
                was_promoted=ROLE_RANK[new_role] > ROLE_RANK[old_role],
            )
        )
        return MembershipResponse.from_domain(target)

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def invite_user(
        self, db: AsyncSession, group_id: str, invited_user_id: str, inviter_id: str
    ) -> MembershipResponse:
        try:
            group = await self._require_group(db, group_id)
            if not group.is_joinable:
                raise GroupNotJoinableError(group_id)
            await self._require_member(db, group_id, inviter_id)
            inviter = await self._require_user(db, inviter_id)
            await self._require_user(db, invited_user_id)

            existing = await self._repo.find_membership(db, group_id, invited_user_id)
            if existing is not None:
                if existing.is_approved_member:
                    raise AlreadyMemberError()
                if existing.is_pending:
                    raise JoinRequestPendingError()
            membership = await self._mark_pending(
                db, group_id, invited_user_id, existing, invited_by=inviter_id
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        self._bus.publish(
            GroupInvitationEvent(
                group_id=group.id,
                group_name=group.name,
                membership_id=membership.id,
                inviter_id=inviter_id,
                inviter_name=inviter.name,
                invited_user_id=invited_user_id,
            )
        )
        return MembershipResponse.from_domain(membership)

    async def _require_own_invitation(
        self, db: AsyncSession, membership_id: str, user_id: str
    ) -> GroupMembership:
        membership = await self._repo.get_membership(db, membership_id)
        if membership is None or membership.user_id != user_id:
            raise MembershipNotFoundError(membership_id)
        if not membership.is_invitation:
            raise InvalidMembershipStateError("Membership is not a pending invitation")
        return membership

    async def accept_invitation(
        self, db: AsyncSession, membership_id: str, user_id: str
    ) -> MembershipResponse:
        try:
            invitation = await self._require_own_invitation(db, membership_id, user_id)
            group = await self._require_group(db, invitation.group_id)
            if not group.is_joinable:
                raise GroupNotJoinableError(group.id)
            if not await self._repo.increment_member_count(db, group.id):
                raise GroupFullError(group.id)
            membership = await self._activate(
                db, group.id, user_id, invitation, invited_by=invitation.invited_by
            )
            user = await self._user_repo.get_user(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        self._bus.publish(
            GroupMemberJoinedEvent(
                group_id=group.id,
                group_name=group.name,
                group_privacy=group.privacy,
                membership_id=membership.id,
                user_id=user_id,
                user_name=user.name if user else (membership.username or "A new member"),
                was_invited=True,
            )
        )
        return MembershipResponse.from_domain(membership)

    async def reject_invitation(
        self, db: AsyncSession, membership_id: str, user_id: str
    ) -> MembershipResponse:
        try:
            invitation = await self._require_own_invitation(db, membership_id, user_id)
            invitation.status = MembershipStatus.REJECTED.value
            invitation.is_active = False
            await self._repo.save_membership(db, invitation)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return MembershipResponse.from_domain(invitation)
