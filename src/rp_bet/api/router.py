"""rp_bet REST API — bets, participation, resolution, fulfillment.

All endpoints require JWT authentication.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_bet.application.fulfillment_service import BetFulfillmentService
from src.rp_bet.application.participation_service import BetParticipationService
from src.rp_bet.application.resolution_service import BetResolutionService
from src.rp_bet.application.schemas import (
    AssignResolverRequest,
    CancelBetRequest,
    CreateBetRequest,
    LoserClaimRequest,
    ParticipationVoteRequest,
    PlaceBetRequest,
    PredictionVoteRequest,
    ResolutionVoteRequest,
    ResolveBetRequest,
    ResolveByWinnersRequest,
    UpdateBetRequest,
    WinnerConfirmRequest,
)
from src.rp_bet.application.service import BetApplicationService
from src.rp_common.database import get_db_session
from src.rp_common.enums import BetStatus
from src.rp_common.response import ApiResponse, ok
from src.rp_gateway.auth.dependencies import get_current_user
from src.rp_gateway.user.db_models import UserModel

router = APIRouter(prefix="/bets", tags=["bets"])

_participations = BetParticipationService()
_bets = BetApplicationService(participation_service=_participations)
_resolution = BetResolutionService(participation_service=_participations)
_fulfillment = BetFulfillmentService()

CurrentUser = Annotated[UserModel, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


# ---------------------------------------------------------------------------
# Bets
# ---------------------------------------------------------------------------


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_bet(
    body: CreateBetRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _bets.create_bet(db, str(current_user.id), body)
    return ok(request, data.model_dump(), "Bet created")


@router.get("/my")
async def list_my_bets(
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    bets = await _bets.list_my_bets(db, str(current_user.id), limit, offset)
    return ok(request, [b.model_dump() for b in bets])


@router.get("/created")
async def list_created_bets(
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    bets = await _bets.list_created_bets(db, str(current_user.id), limit, offset)
    return ok(request, [b.model_dump() for b in bets])


@router.get("/status/{bet_status}")
async def list_bets_by_status(
    bet_status: BetStatus,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    bets = await _bets.list_bets_by_status(db, str(current_user.id), bet_status, limit, offset)
    return ok(request, [b.model_dump() for b in bets])


@router.get("/insurance")
async def list_my_insurance(
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    items = await _participations.list_available_insurance(db, str(current_user.id))
    return ok(request, [i.model_dump() for i in items])


@router.get("/group/{group_id}")
async def list_group_bets(
    group_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    bet_status: BetStatus | None = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    bets = await _bets.list_group_bets(
        db, str(group_id), str(current_user.id), bet_status, limit, offset
    )
    return ok(request, [b.model_dump() for b in bets])


@router.get("/{bet_id}")
async def get_bet(
    bet_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _bets.get_bet(db, str(bet_id), str(current_user.id))
    return ok(request, data.model_dump())


@router.put("/{bet_id}")
async def update_bet(
    bet_id: UUID,
    body: UpdateBetRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    changes = body.model_dump(exclude_unset=True)
    data = await _bets.update_bet(db, str(bet_id), str(current_user.id), changes)
    return ok(request, data.model_dump(), "Bet updated")


@router.delete("/{bet_id}")
async def delete_bet(
    bet_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    await _bets.delete_bet(db, str(bet_id), str(current_user.id))
    return ok(request, None, "Bet deleted")


@router.post("/{bet_id}/close")
async def close_bet(
    bet_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _bets.close_bet(db, str(bet_id), str(current_user.id))
    return ok(request, data.model_dump(), "Bet closed")


@router.post("/{bet_id}/cancel")
async def cancel_bet(
    bet_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    body: CancelBetRequest | None = None,
) -> ApiResponse:
    reason = body.reason if body else None
    data = await _bets.cancel_bet(db, str(bet_id), reason, str(current_user.id))
    return ok(request, data.model_dump(), "Bet cancelled")


@router.get("/{bet_id}/stats")
async def get_bet_stats(
    bet_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _bets.get_bet_stats(db, str(bet_id))
    return ok(request, data.model_dump())


# ---------------------------------------------------------------------------
# Participation
# ---------------------------------------------------------------------------


@router.post("/{bet_id}/participate", status_code=status.HTTP_201_CREATED)
async def place_bet(
    bet_id: UUID,
    body: PlaceBetRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _participations.place_bet(
        db,
        str(current_user.id),
        str(bet_id),
        body.chosen_option,
        body.predicted_value,
        body.amount,
        str(body.insurance_item_id) if body.insurance_item_id else None,
    )
    return ok(request, data.model_dump(), "Bet placed")


@router.delete("/{bet_id}/participate")
async def cancel_participation(
    bet_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _participations.cancel_participation(db, str(current_user.id), str(bet_id))
    return ok(request, data.model_dump(), "Participation cancelled")


@router.get("/{bet_id}/participations")
async def list_participations(
    bet_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    items = await _participations.list_participations(db, str(bet_id))
    return ok(request, [p.model_dump() for p in items])


@router.get("/{bet_id}/participations/me")
async def get_my_participation(
    bet_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _participations.get_user_participation(db, str(bet_id), str(current_user.id))
    return ok(request, data.model_dump() if data else None)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


@router.post("/{bet_id}/resolve")
async def resolve_bet(
    bet_id: UUID,
    body: ResolveBetRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _resolution.resolve_bet(
        db, str(bet_id), str(current_user.id), body.outcome, body.reasoning
    )
    return ok(request, data.model_dump(), "Bet resolved")


@router.post("/{bet_id}/resolve/winners")
async def resolve_bet_by_winners(
    bet_id: UUID,
    body: ResolveByWinnersRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _resolution.resolve_bet_by_winners(
        db,
        str(bet_id),
        str(current_user.id),
        [str(u) for u in body.winner_user_ids],
        body.reasoning,
    )
    return ok(request, data.model_dump(), "Bet resolved")


@router.post("/{bet_id}/vote")
async def vote_on_resolution(
    bet_id: UUID,
    body: ResolutionVoteRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _resolution.vote_on_resolution(
        db, str(bet_id), str(current_user.id), body.outcome, body.reasoning
    )
    return ok(request, data.model_dump(), "Vote recorded")


@router.post("/{bet_id}/vote/prediction")
async def vote_on_prediction(
    bet_id: UUID,
    body: PredictionVoteRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _resolution.vote_on_prediction(
        db,
        str(bet_id),
        str(current_user.id),
        [str(u) for u in body.winner_user_ids],
        body.reasoning,
    )
    return ok(request, data.model_dump(), "Vote recorded")


@router.post("/{bet_id}/vote/participation")
async def vote_on_participation(
    bet_id: UUID,
    body: ParticipationVoteRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _resolution.vote_on_participation(
        db, str(bet_id), str(current_user.id), str(body.participation_id), body.is_correct
    )
    return ok(request, data.model_dump(), "Vote recorded")


@router.get("/{bet_id}/votes")
async def get_vote_counts(
    bet_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _resolution.get_vote_counts(db, str(bet_id))
    return ok(request, data.model_dump())


@router.get("/{bet_id}/can-resolve")
async def can_resolve(
    bet_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _resolution.can_user_resolve(db, str(bet_id), str(current_user.id))
    return ok(request, data.model_dump())


@router.get("/{bet_id}/resolvers")
async def list_resolvers(
    bet_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    items = await _resolution.list_resolvers(db, str(bet_id))
    return ok(request, [r.model_dump() for r in items])


@router.post("/{bet_id}/resolvers", status_code=status.HTTP_201_CREATED)
async def assign_resolver(
    bet_id: UUID,
    body: AssignResolverRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _resolution.assign_resolver(
        db, str(bet_id), str(current_user.id), str(body.user_id), body.can_vote_only
    )
    return ok(request, data.model_dump(), "Resolver assigned")


@router.delete("/{bet_id}/resolvers/{user_id}")
async def revoke_resolver(
    bet_id: UUID,
    user_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    await _resolution.revoke_resolver(db, str(bet_id), str(current_user.id), str(user_id))
    return ok(request, None, "Resolver revoked")


# ---------------------------------------------------------------------------
# Fulfillment (social stakes)
# ---------------------------------------------------------------------------


@router.get("/{bet_id}/fulfillment")
async def get_fulfillment_details(
    bet_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _fulfillment.get_fulfillment_details(db, str(bet_id))
    return ok(request, data.model_dump())


@router.post("/{bet_id}/fulfillment/loser-claim")
async def loser_claim_fulfilled(
    bet_id: UUID,
    body: LoserClaimRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _fulfillment.loser_claim_fulfilled(
        db, str(bet_id), str(current_user.id), body.proof_url, body.proof_description
    )
    return ok(request, data.model_dump(), "Fulfillment claim recorded")


@router.post("/{bet_id}/fulfillment/winner-confirm")
async def winner_confirm_fulfilled(
    bet_id: UUID,
    body: WinnerConfirmRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _fulfillment.winner_confirm_fulfilled(
        db, str(bet_id), str(current_user.id), body.notes
    )
    return ok(request, data.model_dump(), "Fulfillment confirmed")
