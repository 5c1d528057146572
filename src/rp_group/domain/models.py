"""Domain models for rp_group — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.rp_common.enums import GroupPrivacy, MemberRole, MembershipStatus

# Higher rank outranks lower; used to tell promotions from demotions
ROLE_RANK: dict[MemberRole, int] = {
    MemberRole.MEMBER: 0,
    MemberRole.OFFICER: 1,
    MemberRole.ADMIN: 2,
}


@dataclass
class Group:
    id: str
    name: str
    description: str | None
    privacy: str               # GroupPrivacy value
    owner_id: str
    member_count: int
    max_members: int
    is_active: bool = True
    deleted_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_joinable(self) -> bool:
        return self.is_active and self.deleted_at is None

    @property
    def is_full(self) -> bool:
        return self.member_count >= self.max_members

    @property
    def is_public(self) -> bool:
        return self.privacy == GroupPrivacy.PUBLIC


@dataclass
class GroupMembership:
    id: str
    group_id: str
    user_id: str
    role: str                  # MemberRole value
    status: str                # MembershipStatus value
    is_active: bool
    invited_by: str | None = None
    joined_at: datetime | None = None
    left_at: datetime | None = None
    created_at: datetime | None = None
    # Joined from users for member listings
    username: str | None = None
    display_name: str | None = None

    @property
    def is_approved_member(self) -> bool:
        return self.is_active and self.status == MembershipStatus.APPROVED

    @property
    def is_pending(self) -> bool:
        return self.status == MembershipStatus.PENDING

    @property
    def is_invitation(self) -> bool:
        return self.is_pending and self.invited_by is not None

    @property
    def can_moderate(self) -> bool:
        """ADMIN and OFFICER may approve requests and remove members."""
        return self.is_approved_member and self.role in (MemberRole.ADMIN, MemberRole.OFFICER)

    @property
    def is_admin(self) -> bool:
        return self.is_approved_member and self.role == MemberRole.ADMIN
