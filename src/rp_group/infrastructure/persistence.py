"""GroupRepository — concrete implementation of GroupRepositoryProtocol.

member_count changes are guarded in SQL: an increment matches 0 rows when
the group is already full, a decrement never goes below 0.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_common.datetime_utils import utc_now
from src.rp_common.enums import MembershipStatus
from src.rp_common.errors import GroupNotFoundError
from src.rp_group.domain.models import Group, GroupMembership

_GROUP_COLUMNS = """
    id, name, description, privacy, owner_id, member_count, max_members,
    is_active, deleted_at, created_at, updated_at
"""

_MEMBERSHIP_COLUMNS = """
    m.id, m.group_id, m.user_id, m.role, m.status, m.is_active,
    m.invited_by, m.joined_at, m.left_at, m.created_at,
    u.username, u.display_name
"""

_UPDATABLE_GROUP_FIELDS = ("name", "description", "privacy", "max_members")

# ---------------------------------------------------------------------------
# SQL: groups
# ---------------------------------------------------------------------------

_INSERT_GROUP_SQL = text(f"""
    INSERT INTO groups (name, description, privacy, owner_id, member_count, max_members)
    VALUES (:name, :description, :privacy, :owner_id, 1, :max_members)
    RETURNING {_GROUP_COLUMNS}
""")

_GET_GROUP_SQL = text(f"""
    SELECT {_GROUP_COLUMNS} FROM groups
    WHERE id = :group_id AND deleted_at IS NULL
""")

_NAME_EXISTS_SQL = text("""
    SELECT 1 FROM groups
    WHERE LOWER(name) = LOWER(:name)
      AND deleted_at IS NULL
      AND (CAST(:exclude_id AS UUID) IS NULL OR id <> CAST(:exclude_id AS UUID))
    LIMIT 1
""")

_LIST_PUBLIC_SQL = text(f"""
    SELECT {_GROUP_COLUMNS} FROM groups
    WHERE privacy = 'PUBLIC' AND is_active = TRUE AND deleted_at IS NULL
    ORDER BY member_count DESC, created_at DESC
    LIMIT :limit OFFSET :offset
""")

_LIST_USER_GROUPS_SQL = text("""
    SELECT g.id, g.name, g.description, g.privacy, g.owner_id, g.member_count,
           g.max_members, g.is_active, g.deleted_at, g.created_at, g.updated_at
    FROM groups g
    JOIN group_memberships m ON m.group_id = g.id
    WHERE m.user_id = :user_id
      AND m.is_active = TRUE
      AND m.status = 'APPROVED'
      AND g.deleted_at IS NULL
    ORDER BY g.name
""")

_SEARCH_GROUPS_SQL = text(f"""
    SELECT {_GROUP_COLUMNS} FROM groups
    WHERE deleted_at IS NULL
      AND is_active = TRUE
      AND privacy = 'PUBLIC'
      AND (name ILIKE :pattern OR description ILIKE :pattern)
    ORDER BY name
    LIMIT :limit
""")

_SOFT_DELETE_GROUP_SQL = text("""
    UPDATE groups SET deleted_at = NOW(), is_active = FALSE
    WHERE id = :group_id AND deleted_at IS NULL
""")

_INCREMENT_MEMBERS_SQL = text("""
    UPDATE groups SET member_count = member_count + 1
    WHERE id = :group_id AND member_count < max_members
    RETURNING member_count
""")

_DECREMENT_MEMBERS_SQL = text("""
    UPDATE groups SET member_count = GREATEST(member_count - 1, 0)
    WHERE id = :group_id
""")

# ---------------------------------------------------------------------------
# SQL: memberships
# ---------------------------------------------------------------------------

_INSERT_MEMBERSHIP_SQL = text("""
    INSERT INTO group_memberships
        (group_id, user_id, role, status, is_active, invited_by, joined_at)
    VALUES
        (:group_id, :user_id, :role, :status, :is_active, :invited_by,
         :joined_at)
    RETURNING id
""")

_GET_MEMBERSHIP_SQL = text(f"""
    SELECT {_MEMBERSHIP_COLUMNS}
    FROM group_memberships m JOIN users u ON u.id = m.user_id
    WHERE m.id = :membership_id
""")

_FIND_MEMBERSHIP_SQL = text(f"""
    SELECT {_MEMBERSHIP_COLUMNS}
    FROM group_memberships m JOIN users u ON u.id = m.user_id
    WHERE m.group_id = :group_id AND m.user_id = :user_id
""")

_SAVE_MEMBERSHIP_SQL = text("""
    UPDATE group_memberships
    SET role = :role,
        status = :status,
        is_active = :is_active,
        invited_by = :invited_by,
        joined_at = :joined_at,
        left_at = :left_at
    WHERE id = :membership_id
""")

_LIST_MEMBERS_SQL = text(f"""
    SELECT {_MEMBERSHIP_COLUMNS}
    FROM group_memberships m JOIN users u ON u.id = m.user_id
    WHERE m.group_id = :group_id
      AND m.is_active = TRUE
      AND m.status = 'APPROVED'
      AND u.deleted_at IS NULL
    ORDER BY CASE m.role WHEN 'ADMIN' THEN 0 WHEN 'OFFICER' THEN 1 ELSE 2 END,
             m.joined_at
""")

_LIST_PENDING_SQL = text(f"""
    SELECT {_MEMBERSHIP_COLUMNS}
    FROM group_memberships m JOIN users u ON u.id = m.user_id
    WHERE m.group_id = :group_id
      AND m.status = 'PENDING'
      AND m.invited_by IS NULL
    ORDER BY m.created_at
""")

_COUNT_PENDING_SQL = text("""
    SELECT COUNT(*) FROM group_memberships
    WHERE group_id = :group_id AND status = 'PENDING' AND invited_by IS NULL
""")

_LIST_INVITATIONS_SQL = text(f"""
    SELECT {_MEMBERSHIP_COLUMNS}
    FROM group_memberships m JOIN users u ON u.id = m.user_id
    WHERE m.user_id = :user_id
      AND m.status = 'PENDING'
      AND m.invited_by IS NOT NULL
    ORDER BY m.created_at DESC
""")

_COUNT_ADMINS_SQL = text("""
    SELECT COUNT(*) FROM group_memberships
    WHERE group_id = :group_id AND role = 'ADMIN'
      AND status = 'APPROVED' AND is_active = TRUE
""")

_ACTIVE_MEMBER_IDS_SQL = text("""
    SELECT user_id FROM group_memberships
    WHERE group_id = :group_id AND status = 'APPROVED' AND is_active = TRUE
""")

_MODERATOR_IDS_SQL = text("""
    SELECT user_id FROM group_memberships
    WHERE group_id = :group_id AND status = 'APPROVED' AND is_active = TRUE
      AND role IN ('ADMIN', 'OFFICER')
""")

_DEACTIVATE_MEMBERSHIPS_SQL = text("""
    UPDATE group_memberships
    SET is_active = FALSE,
        status = CASE WHEN status = 'APPROVED' THEN 'LEFT' ELSE 'REJECTED' END,
        left_at = NOW()
    WHERE group_id = :group_id AND (is_active = TRUE OR status = 'PENDING')
""")


def _row_to_group(row: object) -> Group:
    return Group(
        id=str(row.id),  # type: ignore[attr-defined]
        name=row.name,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        privacy=row.privacy,  # type: ignore[attr-defined]
        owner_id=str(row.owner_id),  # type: ignore[attr-defined]
        member_count=row.member_count,  # type: ignore[attr-defined]
        max_members=row.max_members,  # type: ignore[attr-defined]
        is_active=row.is_active,  # type: ignore[attr-defined]
        deleted_at=row.deleted_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_membership(row: object) -> GroupMembership:
    invited_by = row.invited_by  # type: ignore[attr-defined]
    return GroupMembership(
        id=str(row.id),  # type: ignore[attr-defined]
        group_id=str(row.group_id),  # type: ignore[attr-defined]
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        role=row.role,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        is_active=row.is_active,  # type: ignore[attr-defined]
        invited_by=str(invited_by) if invited_by is not None else None,
        joined_at=row.joined_at,  # type: ignore[attr-defined]
        left_at=row.left_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        username=row.username,  # type: ignore[attr-defined]
        display_name=row.display_name,  # type: ignore[attr-defined]
    )


class GroupRepository:
    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def create_group(
        self,
        db: AsyncSession,
        name: str,
        description: str | None,
        privacy: str,
        owner_id: str,
        max_members: int,
    ) -> Group:
        result = await db.execute(
            _INSERT_GROUP_SQL,
            {
                "name": name,
                "description": description,
                "privacy": privacy,
                "owner_id": owner_id,
                "max_members": max_members,
            },
        )
        return _row_to_group(result.fetchone())

    async def get_group(self, db: AsyncSession, group_id: str) -> Group | None:
        result = await db.execute(_GET_GROUP_SQL, {"group_id": group_id})
        row = result.fetchone()
        return _row_to_group(row) if row is not None else None

    async def name_exists(
        self, db: AsyncSession, name: str, exclude_group_id: str | None = None
    ) -> bool:
        result = await db.execute(
            _NAME_EXISTS_SQL, {"name": name.strip(), "exclude_id": exclude_group_id}
        )
        return result.fetchone() is not None

    async def list_public_groups(
        self, db: AsyncSession, limit: int, offset: int
    ) -> list[Group]:
        result = await db.execute(_LIST_PUBLIC_SQL, {"limit": limit, "offset": offset})
        return [_row_to_group(r) for r in result.fetchall()]

    async def list_user_groups(self, db: AsyncSession, user_id: str) -> list[Group]:
        result = await db.execute(_LIST_USER_GROUPS_SQL, {"user_id": user_id})
        return [_row_to_group(r) for r in result.fetchall()]

    async def search_groups(self, db: AsyncSession, query: str, limit: int) -> list[Group]:
        result = await db.execute(
            _SEARCH_GROUPS_SQL, {"pattern": f"%{query}%", "limit": limit}
        )
        return [_row_to_group(r) for r in result.fetchall()]

    async def update_group(
        self, db: AsyncSession, group_id: str, changes: dict[str, Any]
    ) -> Group:
        columns = [c for c in _UPDATABLE_GROUP_FIELDS if c in changes]
        if columns:
            # Column names come from _UPDATABLE_GROUP_FIELDS, never from input
            assignments = ", ".join(f"{c} = :{c}" for c in columns)
            stmt = text(f"""
                UPDATE groups SET {assignments}
                WHERE id = :group_id AND deleted_at IS NULL
            """)
            await db.execute(stmt, {"group_id": group_id, **{c: changes[c] for c in columns}})
        group = await self.get_group(db, group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group

    async def soft_delete_group(self, db: AsyncSession, group_id: str) -> None:
        await db.execute(_SOFT_DELETE_GROUP_SQL, {"group_id": group_id})

    async def increment_member_count(self, db: AsyncSession, group_id: str) -> bool:
        result = await db.execute(_INCREMENT_MEMBERS_SQL, {"group_id": group_id})
        return result.fetchone() is not None

    async def decrement_member_count(self, db: AsyncSession, group_id: str) -> None:
        await db.execute(_DECREMENT_MEMBERS_SQL, {"group_id": group_id})

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    async def create_membership(
        self,
        db: AsyncSession,
        group_id: str,
        user_id: str,
        role: str,
        status: str,
        is_active: bool,
        invited_by: str | None = None,
    ) -> GroupMembership:
        result = await db.execute(
            _INSERT_MEMBERSHIP_SQL,
            {
                "group_id": group_id,
                "user_id": user_id,
                "role": role,
                "status": status,
                "is_active": is_active,
                "invited_by": invited_by,
                "joined_at": utc_now() if status == MembershipStatus.APPROVED else None,
            },
        )
        membership_id = str(result.scalar_one())
        membership = await self.get_membership(db, membership_id)
        assert membership is not None
        return membership

    async def get_membership(
        self, db: AsyncSession, membership_id: str
    ) -> GroupMembership | None:
        result = await db.execute(_GET_MEMBERSHIP_SQL, {"membership_id": membership_id})
        row = result.fetchone()
        return _row_to_membership(row) if row is not None else None

    async def find_membership(
        self, db: AsyncSession, group_id: str, user_id: str
    ) -> GroupMembership | None:
        result = await db.execute(
            _FIND_MEMBERSHIP_SQL, {"group_id": group_id, "user_id": user_id}
        )
        row = result.fetchone()
        return _row_to_membership(row) if row is not None else None

    async def save_membership(
        self, db: AsyncSession, membership: GroupMembership
    ) -> GroupMembership:
        await db.execute(
            _SAVE_MEMBERSHIP_SQL,
            {
                "membership_id": membership.id,
                "role": membership.role,
                "status": membership.status,
                "is_active": membership.is_active,
                "invited_by": membership.invited_by,
                "joined_at": membership.joined_at,
                "left_at": membership.left_at,
            },
        )
        return membership

    async def list_members(self, db: AsyncSession, group_id: str) -> list[GroupMembership]:
        result = await db.execute(_LIST_MEMBERS_SQL, {"group_id": group_id})
        return [_row_to_membership(r) for r in result.fetchall()]

    async def list_pending_requests(
        self, db: AsyncSession, group_id: str
    ) -> list[GroupMembership]:
        result = await db.execute(_LIST_PENDING_SQL, {"group_id": group_id})
        return [_row_to_membership(r) for r in result.fetchall()]

    async def count_pending_requests(self, db: AsyncSession, group_id: str) -> int:
        result = await db.execute(_COUNT_PENDING_SQL, {"group_id": group_id})
        return int(result.scalar_one())

    async def list_user_invitations(
        self, db: AsyncSession, user_id: str
    ) -> list[GroupMembership]:
        result = await db.execute(_LIST_INVITATIONS_SQL, {"user_id": user_id})
        return [_row_to_membership(r) for r in result.fetchall()]

    async def count_active_admins(self, db: AsyncSession, group_id: str) -> int:
        result = await db.execute(_COUNT_ADMINS_SQL, {"group_id": group_id})
        return int(result.scalar_one())

    async def list_active_member_ids(self, db: AsyncSession, group_id: str) -> list[str]:
        result = await db.execute(_ACTIVE_MEMBER_IDS_SQL, {"group_id": group_id})
        return [str(r.user_id) for r in result.fetchall()]  # type: ignore[attr-defined]

    async def list_admin_and_officer_ids(
        self, db: AsyncSession, group_id: str
    ) -> list[str]:
        result = await db.execute(_MODERATOR_IDS_SQL, {"group_id": group_id})
        return [str(r.user_id) for r in result.fetchall()]  # type: ignore[attr-defined]

    async def deactivate_memberships(self, db: AsyncSession, group_id: str) -> None:
        await db.execute(_DEACTIVATE_MEMBERSHIPS_SQL, {"group_id": group_id})
