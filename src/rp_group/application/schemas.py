"""Pydantic schemas for the rp_group API."""

from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from src.rp_common.enums import GroupPrivacy, MemberRole
from src.rp_group.domain.models import Group, GroupMembership

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateGroupRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=50)
    description: str | None = Field(None, max_length=500)
    privacy: GroupPrivacy = GroupPrivacy.PUBLIC
    max_members: int = Field(50, ge=2, le=500)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Group name must be at least 3 characters")
        return v


class UpdateGroupRequest(BaseModel):
    name: str | None = Field(None, min_length=3, max_length=50)
    description: str | None = Field(None, max_length=500)
    privacy: GroupPrivacy | None = None
    max_members: int | None = Field(None, ge=2, le=500)


class RemoveMemberRequest(BaseModel):
    reason: str | None = Field(None, max_length=200)


class ChangeRoleRequest(BaseModel):
    role: MemberRole


class InviteUserRequest(BaseModel):
    user_id: UUID


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class GroupResponse(BaseModel):
    id: str
    name: str
    description: str | None
    privacy: str
    owner_id: str
    member_count: int
    max_members: int
    is_member: bool = False
    user_role: str | None = None
    created_at: str | None

    @classmethod
    def from_domain(
        cls, group: Group, membership: GroupMembership | None = None
    ) -> "GroupResponse":
        is_member = membership is not None and membership.is_approved_member
        return cls(
            id=group.id,
            name=group.name,
            description=group.description,
            privacy=group.privacy,
            owner_id=group.owner_id,
            member_count=group.member_count,
            max_members=group.max_members,
            is_member=is_member,
            user_role=membership.role if is_member and membership else None,
            created_at=group.created_at.isoformat() if group.created_at else None,
        )


class MembershipResponse(BaseModel):
    id: str
    group_id: str
    user_id: str
    username: str | None
    display_name: str | None
    role: str
    status: str
    is_active: bool
    invited_by: str | None
    joined_at: str | None

    @classmethod
    def from_domain(cls, m: GroupMembership) -> "MembershipResponse":
        return cls(
            id=m.id,
            group_id=m.group_id,
            user_id=m.user_id,
            username=m.username,
            display_name=m.display_name or m.username,
            role=m.role,
            status=m.status,
            is_active=m.is_active,
            invited_by=m.invited_by,
            joined_at=m.joined_at.isoformat() if m.joined_at else None,
        )


class NameAvailabilityResponse(BaseModel):
    name: str
    available: bool
