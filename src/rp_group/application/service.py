"""GroupApplicationService — group lifecycle.

Creating a group makes the creator its first ADMIN. Deleting a group is a
soft delete: memberships are deactivated and GroupDeletedEvent carries the
former member ids so listeners can still reach them.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_common.enums import MemberRole, MembershipStatus
from src.rp_common.errors import (
    GroupNameExistsError,
    GroupNotFoundError,
    GroupPermissionError,
    InvalidMembershipStateError,
    NotGroupMemberError,
)
from src.rp_common.event_bus import InMemoryEventBus, event_bus
from src.rp_group.application.schemas import GroupResponse, NameAvailabilityResponse
from src.rp_group.domain.events import GroupDeletedEvent
from src.rp_group.domain.models import Group, GroupMembership
from src.rp_group.domain.repository import GroupRepositoryProtocol
from src.rp_group.infrastructure.persistence import GroupRepository
from src.rp_user.domain.repository import UserRepositoryProtocol
from src.rp_user.infrastructure.persistence import UserRepository


class GroupApplicationService:
    def __init__(
        self,
        repo: GroupRepositoryProtocol | None = None,
        user_repo: UserRepositoryProtocol | None = None,
        bus: InMemoryEventBus | None = None,
    ) -> None:
        self._repo: GroupRepositoryProtocol = repo or GroupRepository()
        self._user_repo: UserRepositoryProtocol = user_repo or UserRepository()
        self._bus = bus or event_bus

    async def _require_group(self, db: AsyncSession, group_id: str) -> Group:
        group = await self._repo.get_group(db, group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group

    async def _require_admin(
        self, db: AsyncSession, group_id: str, user_id: str
    ) -> GroupMembership:
        membership = await self._repo.find_membership(db, group_id, user_id)
        if membership is None or not membership.is_approved_member:
            raise NotGroupMemberError(group_id)
        if membership.role != MemberRole.ADMIN:
            raise GroupPermissionError("Only group admins can perform this action")
        return membership

    async def create_group(
        self,
        db: AsyncSession,
        owner_id: str,
        name: str,
        description: str | None,
        privacy: str,
        max_members: int,
    ) -> GroupResponse:
        name = name.strip()
        try:
            if await self._repo.name_exists(db, name):
                raise GroupNameExistsError(name)
            group = await self._repo.create_group(
                db, name, description, privacy, owner_id, max_members
            )
            membership = await self._repo.create_membership(
                db,
                group.id,
                owner_id,
                role=MemberRole.ADMIN.value,
                status=MembershipStatus.APPROVED.value,
                is_active=True,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return GroupResponse.from_domain(group, membership)

    async def get_group(
        self, db: AsyncSession, group_id: str, viewer_id: str
    ) -> GroupResponse:
        group = await self._require_group(db, group_id)
        membership = await self._repo.find_membership(db, group_id, viewer_id)
        return GroupResponse.from_domain(group, membership)

    async def list_public_groups(
        self, db: AsyncSession, limit: int, offset: int
    ) -> list[GroupResponse]:
        groups = await self._repo.list_public_groups(db, limit, offset)
        return [GroupResponse.from_domain(g) for g in groups]

    async def list_my_groups(self, db: AsyncSession, user_id: str) -> list[GroupResponse]:
        groups = await self._repo.list_user_groups(db, user_id)
        responses = []
        for group in groups:
            membership = await self._repo.find_membership(db, group.id, user_id)
            responses.append(GroupResponse.from_domain(group, membership))
        return responses

    async def search_groups(
        self, db: AsyncSession, query: str, limit: int
    ) -> list[GroupResponse]:
        query = query.strip()
        if not query:
            return []
        groups = await self._repo.search_groups(db, query, limit)
        return [GroupResponse.from_domain(g) for g in groups]

    async def check_name_available(self, db: AsyncSession, name: str) -> NameAvailabilityResponse:
        name = name.strip()
        exists = await self._repo.name_exists(db, name)
        return NameAvailabilityResponse(name=name, available=not exists)

    async def update_group(
        self,
        db: AsyncSession,
        group_id: str,
        actor_id: str,
        changes: dict[str, Any],
    ) -> GroupResponse:
        try:
            group = await self._require_group(db, group_id)
            membership = await self._require_admin(db, group_id, actor_id)

            new_name = changes.get("name")
            if new_name is not None:
                changes["name"] = new_name.strip()
                if await self._repo.name_exists(db, changes["name"], exclude_group_id=group_id):
                    raise GroupNameExistsError(changes["name"])
            new_max = changes.get("max_members")
            if new_max is not None and new_max < group.member_count:
                raise InvalidMembershipStateError(
                    f"max_members cannot be below the current member count ({group.member_count})"
                )
            if "privacy" in changes and changes["privacy"] is not None:
                changes["privacy"] = str(getattr(changes["privacy"], "value", changes["privacy"]))

            updated = await self._repo.update_group(db, group_id, changes)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return GroupResponse.from_domain(updated, membership)

    async def delete_group(self, db: AsyncSession, group_id: str, actor_id: str) -> None:
        try:
            group = await self._require_group(db, group_id)
            await self._require_admin(db, group_id, actor_id)
            member_ids = await self._repo.list_active_member_ids(db, group_id)
            actor = await self._user_repo.get_user(db, actor_id)

            await self._repo.deactivate_memberships(db, group_id)
            await self._repo.soft_delete_group(db, group_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        self._bus.publish(
            GroupDeletedEvent(
                group_id=group.id,
                group_name=group.name,
                deleted_by=actor_id,
                deleted_by_name=actor.name if actor else "A group admin",
                member_ids=member_ids,
            )
        )
