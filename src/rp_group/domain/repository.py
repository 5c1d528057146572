"""Repository Protocol for groups and memberships."""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_group.domain.models import Group, GroupMembership


class GroupRepositoryProtocol(Protocol):
    # --- groups ---
    async def create_group(
        self,
        db: AsyncSession,
        name: str,
        description: str | None,
        privacy: str,
        owner_id: str,
        max_members: int,
    ) -> Group: ...

    async def get_group(self, db: AsyncSession, group_id: str) -> Group | None: ...

    async def name_exists(
        self, db: AsyncSession, name: str, exclude_group_id: str | None = None
    ) -> bool: ...

    async def list_public_groups(
        self, db: AsyncSession, limit: int, offset: int
    ) -> list[Group]: ...

    async def list_user_groups(self, db: AsyncSession, user_id: str) -> list[Group]: ...

    async def search_groups(self, db: AsyncSession, query: str, limit: int) -> list[Group]: ...

    async def update_group(
        self, db: AsyncSession, group_id: str, changes: dict[str, Any]
    ) -> Group: ...

    async def soft_delete_group(self, db: AsyncSession, group_id: str) -> None: ...

    async def increment_member_count(self, db: AsyncSession, group_id: str) -> bool: ...

    async def decrement_member_count(self, db: AsyncSession, group_id: str) -> None: ...

    # --- memberships ---
    async def create_membership(
        self,
        db: AsyncSession,
        group_id: str,
        user_id: str,
        role: str,
        status: str,
        is_active: bool,
        invited_by: str | None = None,
    ) -> GroupMembership: ...

    async def get_membership(
        self, db: AsyncSession, membership_id: str
    ) -> GroupMembership | None: ...

    async def find_membership(
        self, db: AsyncSession, group_id: str, user_id: str
    ) -> GroupMembership | None: ...

    async def save_membership(
        self, db: AsyncSession, membership: GroupMembership
    ) -> GroupMembership: ...

    async def list_members(self, db: AsyncSession, group_id: str) -> list[GroupMembership]: ...

    async def list_pending_requests(
        self, db: AsyncSession, group_id: str
    ) -> list[GroupMembership]: ...

    async def count_pending_requests(self, db: AsyncSession, group_id: str) -> int: ...

    async def list_user_invitations(
        self, db: AsyncSession, user_id: str
    ) -> list[GroupMembership]: ...

    async def count_active_admins(self, db: AsyncSession, group_id: str) -> int: ...

    async def list_active_member_ids(self, db: AsyncSession, group_id: str) -> list[str]: ...

    async def list_admin_and_officer_ids(
        self, db: AsyncSession, group_id: str
    ) -> list[str]: ...

    async def deactivate_memberships(self, db: AsyncSession, group_id: str) -> None: ...
