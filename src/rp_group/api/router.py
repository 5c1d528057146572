"""rp_group REST API — groups, join requests, invitations, roles.

All endpoints require JWT authentication.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_common.database import get_db_session
from src.rp_common.response import ApiResponse, ok
from src.rp_gateway.auth.dependencies import get_current_user
from src.rp_gateway.user.db_models import UserModel
from src.rp_group.application.membership_service import MembershipService
from src.rp_group.application.schemas import (
    ChangeRoleRequest,
    CreateGroupRequest,
    InviteUserRequest,
    UpdateGroupRequest,
)
from src.rp_group.application.service import GroupApplicationService

router = APIRouter(prefix="/groups", tags=["groups"])

_groups = GroupApplicationService()
_memberships = MembershipService()

CurrentUser = Annotated[UserModel, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_group(
    body: CreateGroupRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _groups.create_group(
        db,
        str(current_user.id),
        body.name,
        body.description,
        body.privacy.value,
        body.max_members,
    )
    return ok(request, data.model_dump(), "Group created")


@router.get("/public")
async def list_public_groups(
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    groups = await _groups.list_public_groups(db, limit, offset)
    return ok(request, [g.model_dump() for g in groups])


@router.get("/my")
async def list_my_groups(
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    groups = await _groups.list_my_groups(db, str(current_user.id))
    return ok(request, [g.model_dump() for g in groups])


@router.get("/search")
async def search_groups(
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    q: str = Query(..., min_length=1, max_length=50),
    limit: int = Query(20, ge=1, le=50),
) -> ApiResponse:
    groups = await _groups.search_groups(db, q, limit)
    return ok(request, [g.model_dump() for g in groups])


@router.get("/check-name")
async def check_name(
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    name: str = Query(..., min_length=1, max_length=50),
) -> ApiResponse:
    data = await _groups.check_name_available(db, name)
    return ok(request, data.model_dump())


@router.get("/invitations")
async def list_my_invitations(
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    items = await _memberships.list_my_invitations(db, str(current_user.id))
    return ok(request, [m.model_dump() for m in items])


@router.post("/invitations/{membership_id}/accept")
async def accept_invitation(
    membership_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _memberships.accept_invitation(db, str(membership_id), str(current_user.id))
    return ok(request, data.model_dump(), "Invitation accepted")


@router.post("/invitations/{membership_id}/reject")
async def reject_invitation(
    membership_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _memberships.reject_invitation(db, str(membership_id), str(current_user.id))
    return ok(request, data.model_dump(), "Invitation rejected")


@router.get("/{group_id}")
async def get_group(
    group_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _groups.get_group(db, str(group_id), str(current_user.id))
    return ok(request, data.model_dump())


@router.put("/{group_id}")
async def update_group(
    group_id: UUID,
    body: UpdateGroupRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    changes = body.model_dump(exclude_none=True)
    data = await _groups.update_group(db, str(group_id), str(current_user.id), changes)
    return ok(request, data.model_dump(), "Group updated")


@router.delete("/{group_id}")
async def delete_group(
    group_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    await _groups.delete_group(db, str(group_id), str(current_user.id))
    return ok(request, None, "Group deleted")


@router.post("/{group_id}/join")
async def join_group(
    group_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _memberships.join_group(db, str(group_id), str(current_user.id))
    message = "Joined group" if data.status == "APPROVED" else "Join request sent"
    return ok(request, data.model_dump(), message)


@router.post("/{group_id}/leave")
async def leave_group(
    group_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    await _memberships.leave_group(db, str(group_id), str(current_user.id))
    return ok(request, None, "Left group")


@router.get("/{group_id}/members")
async def list_members(
    group_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    members = await _memberships.list_members(db, str(group_id), str(current_user.id))
    return ok(request, [m.model_dump() for m in members])


@router.delete("/{group_id}/members/{user_id}")
async def remove_member(
    group_id: UUID,
    user_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    reason: str | None = Query(None, max_length=200),
) -> ApiResponse:
    await _memberships.remove_member(
        db, str(group_id), str(user_id), str(current_user.id), reason
    )
    return ok(request, None, "Member removed")


@router.put("/{group_id}/members/{user_id}/role")
async def change_role(
    group_id: UUID,
    user_id: UUID,
    body: ChangeRoleRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _memberships.change_role(
        db, str(group_id), str(user_id), body.role, str(current_user.id)
    )
    return ok(request, data.model_dump(), "Role updated")


@router.post("/{group_id}/invite")
async def invite_user(
    group_id: UUID,
    body: InviteUserRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _memberships.invite_user(
        db, str(group_id), str(body.user_id), str(current_user.id)
    )
    return ok(request, data.model_dump(), "Invitation sent")


@router.get("/{group_id}/requests")
async def list_pending_requests(
    group_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    items = await _memberships.list_pending_requests(db, str(group_id), str(current_user.id))
    return ok(request, [m.model_dump() for m in items])


@router.get("/{group_id}/requests/count")
async def count_pending_requests(
    group_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    count = await _memberships.count_pending_requests(db, str(group_id), str(current_user.id))
    return ok(request, {"count": count})


@router.post("/{group_id}/requests/{membership_id}/approve")
async def approve_request(
    group_id: UUID,
    membership_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _memberships.approve_request(
        db, str(group_id), str(membership_id), str(current_user.id)
    )
    return ok(request, data.model_dump(), "Request approved")


@router.post("/{group_id}/requests/{membership_id}/deny")
async def deny_request(
    group_id: UUID,
    membership_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _memberships.deny_request(
        db, str(group_id), str(membership_id), str(current_user.id)
    )
    return ok(request, data.model_dump(), "Request denied")
