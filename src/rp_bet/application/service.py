"""BetApplicationService — bet lifecycle: create, read, update, close, cancel, delete.

The creator gets a CREATOR placeholder participation (amount 0) on creation;
placing a bet later upgrades it in place. Events are published only after
the transaction commits.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_bet.application.participation_service import BetParticipationService
from src.rp_bet.application.schemas import (
    BetOptionResponse,
    BetResponse,
    BetStatsResponse,
    CancelBetResponse,
    CreateBetRequest,
)
from src.rp_bet.domain.events import BetCancelledEvent, BetCreatedEvent
from src.rp_bet.domain.models import MAX_OPTIONS, Bet
from src.rp_bet.domain.repository import BetRepositoryProtocol
from src.rp_bet.infrastructure.persistence import BetRepository
from src.rp_common.datetime_utils import ensure_utc, utc_now
from src.rp_common.enums import (
    BetStatus,
    BetType,
    FulfillmentStatus,
    ParticipationStatus,
    ResolutionMethod,
    StakeType,
)
from src.rp_common.errors import (
    BetAlreadyResolvedError,
    BetNotFoundError,
    BetNotOpenError,
    BetOperationError,
    GroupNotFoundError,
    InvalidBetError,
    NotBetCreatorError,
    NotGroupMemberError,
)
from src.rp_common.event_bus import InMemoryEventBus, event_bus
from src.rp_group.domain.repository import GroupRepositoryProtocol
from src.rp_group.infrastructure.persistence import GroupRepository
from src.rp_user.domain.repository import UserRepositoryProtocol
from src.rp_user.infrastructure.persistence import UserRepository

logger = logging.getLogger(__name__)

_OPTION_COUNTS = {
    BetType.BINARY: (2, 2),
    BetType.MULTIPLE_CHOICE: (2, MAX_OPTIONS),
    BetType.PREDICTION: (0, 0),
}


def _option_columns(options: list[str]) -> dict[str, str | None]:
    padded = list(options) + [None] * (MAX_OPTIONS - len(options))
    return {f"option_{i + 1}": text for i, text in enumerate(padded)}


class BetApplicationService:
    def __init__(
        self,
        repo: BetRepositoryProtocol | None = None,
        group_repo: GroupRepositoryProtocol | None = None,
        user_repo: UserRepositoryProtocol | None = None,
        participation_service: BetParticipationService | None = None,
        bus: InMemoryEventBus | None = None,
    ) -> None:
        self._repo: BetRepositoryProtocol = repo or BetRepository()
        self._group_repo: GroupRepositoryProtocol = group_repo or GroupRepository()
        self._user_repo: UserRepositoryProtocol = user_repo or UserRepository()
        self._participations = participation_service or BetParticipationService(
            repo=self._repo, user_repo=self._user_repo, group_repo=self._group_repo
        )
        self._bus = bus or event_bus

    async def _require_bet(self, db: AsyncSession, bet_id: str) -> Bet:
        bet = await self._repo.get_bet(db, bet_id)
        if bet is None or bet.deleted_at is not None:
            raise BetNotFoundError(bet_id)
        return bet

    async def _require_member(self, db: AsyncSession, group_id: str, user_id: str) -> None:
        membership = await self._group_repo.find_membership(db, group_id, user_id)
        if membership is None or not membership.is_approved_member:
            raise NotGroupMemberError(group_id)

    @staticmethod
    def _require_creator(bet: Bet, user_id: str) -> None:
        if bet.creator_id != user_id:
            raise NotBetCreatorError()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _validate_create(self, request: CreateBetRequest) -> None:
        now = utc_now()
        deadline = ensure_utc(request.betting_deadline)
        if deadline <= now:
            raise InvalidBetError("betting deadline must be in the future")
        if request.resolve_date is not None and ensure_utc(request.resolve_date) < deadline:
            raise InvalidBetError("resolve date cannot be before the betting deadline")

        low, high = _OPTION_COUNTS[request.bet_type]
        count = len(request.options)
        if not low <= count <= high:
            if request.bet_type == BetType.PREDICTION:
                raise InvalidBetError("prediction bets take no options")
            if low == high:
                raise InvalidBetError(f"{request.bet_type.value} bets need exactly {low} options")
            raise InvalidBetError(
                f"{request.bet_type.value} bets need between {low} and {high} options"
            )

        if request.stake_type == StakeType.CREDIT:
            if request.fixed_stake_amount is None and request.minimum_bet <= 0:
                raise InvalidBetError("credit bets need a fixed stake or a positive minimum bet")
            if request.maximum_bet is not None and request.maximum_bet < request.minimum_bet:
                raise InvalidBetError("maximum bet cannot be below the minimum bet")
        else:
            if not (request.social_stake_description or "").strip():
                raise InvalidBetError("social bets need a stake description")

        if request.resolution_method == ResolutionMethod.ASSIGNED_RESOLVERS and not request.resolver_ids:
            raise InvalidBetError("assigned-resolver bets need at least one resolver")

    async def create_bet(
        self, db: AsyncSession, creator_id: str, request: CreateBetRequest
    ) -> BetResponse:
        self._validate_create(request)
        group_id = str(request.group_id)
        resolver_ids = list(dict.fromkeys(str(r) for r in request.resolver_ids))
        is_social = request.stake_type == StakeType.SOCIAL

        try:
            group = await self._group_repo.get_group(db, group_id)
            if group is None:
                raise GroupNotFoundError(group_id)
            await self._require_member(db, group_id, creator_id)
            if request.resolution_method == ResolutionMethod.ASSIGNED_RESOLVERS:
                for resolver_id in resolver_ids:
                    membership = await self._group_repo.find_membership(db, group_id, resolver_id)
                    if membership is None or not membership.is_approved_member:
                        raise InvalidBetError(f"resolver {resolver_id} is not a group member")

            values: dict[str, Any] = {
                "group_id": group_id,
                "creator_id": creator_id,
                "title": request.title,
                "description": request.description,
                "bet_type": request.bet_type.value,
                "status": BetStatus.OPEN.value,
                "stake_type": request.stake_type.value,
                "resolution_method": request.resolution_method.value,
                "fixed_stake_amount": None if is_social else request.fixed_stake_amount,
                "minimum_bet": 0 if is_social else request.minimum_bet,
                "maximum_bet": None if is_social else request.maximum_bet,
                "social_stake_description": (
                    request.social_stake_description.strip()
                    if is_social and request.social_stake_description
                    else None
                ),
                "betting_deadline": ensure_utc(request.betting_deadline),
                "resolve_date": ensure_utc(request.resolve_date) if request.resolve_date else None,
                "minimum_votes_required": request.minimum_votes_required,
                "allow_creator_vote": request.allow_creator_vote,
                "stake_fulfillment_required": is_social,
                "fulfillment_status": FulfillmentStatus.PENDING.value if is_social else None,
                **_option_columns(request.options),
            }
            bet = await self._repo.insert_bet(db, values)
            await self._repo.insert_participation(
                db, bet.id, creator_id, ParticipationStatus.CREATOR.value
            )
            if request.resolution_method == ResolutionMethod.ASSIGNED_RESOLVERS:
                for resolver_id in resolver_ids:
                    await self._repo.add_resolver(db, bet.id, resolver_id, creator_id, False)
            creator = await self._user_repo.get_user(db, creator_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Bet created: bet=%s group=%s creator=%s", bet.id, group_id, creator_id)
        self._bus.publish(
            BetCreatedEvent(
                bet_id=bet.id,
                group_id=group_id,
                group_name=group.name,
                creator_id=creator_id,
                creator_name=creator.name if creator else "Someone",
                title=bet.title,
                bet_type=bet.bet_type,
                stake_type=bet.stake_type,
                betting_deadline=bet.betting_deadline,
            )
        )
        return BetResponse.from_domain(bet)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_bet(self, db: AsyncSession, bet_id: str, viewer_id: str) -> BetResponse:
        bet = await self._require_bet(db, bet_id)
        participation = await self._repo.find_participation(db, bet_id, viewer_id)
        return BetResponse.from_domain(bet, participation)

    async def _with_participation(
        self, db: AsyncSession, bets: list[Bet], viewer_id: str
    ) -> list[BetResponse]:
        responses = []
        for bet in bets:
            participation = await self._repo.find_participation(db, bet.id, viewer_id)
            responses.append(BetResponse.from_domain(bet, participation))
        return responses

    async def list_group_bets(
        self,
        db: AsyncSession,
        group_id: str,
        viewer_id: str,
        status: BetStatus | None,
        limit: int,
        offset: int,
    ) -> list[BetResponse]:
        await self._require_member(db, group_id, viewer_id)
        bets = await self._repo.list_group_bets(
            db, group_id, status.value if status else None, limit, offset
        )
        return await self._with_participation(db, bets, viewer_id)

    async def list_bets_by_status(
        self, db: AsyncSession, viewer_id: str, status: BetStatus, limit: int, offset: int
    ) -> list[BetResponse]:
        bets = await self._repo.list_bets_by_status(db, status.value, viewer_id, limit, offset)
        return await self._with_participation(db, bets, viewer_id)

    async def list_created_bets(
        self, db: AsyncSession, creator_id: str, limit: int, offset: int
    ) -> list[BetResponse]:
        bets = await self._repo.list_created_bets(db, creator_id, limit, offset)
        return await self._with_participation(db, bets, creator_id)

    async def list_my_bets(
        self, db: AsyncSession, user_id: str, limit: int, offset: int
    ) -> list[BetResponse]:
        bets = await self._repo.list_user_bets(db, user_id, limit, offset)
        return await self._with_participation(db, bets, user_id)

    async def get_bet_stats(self, db: AsyncSession, bet_id: str) -> BetStatsResponse:
        bet = await self._require_bet(db, bet_id)
        participations = await self._repo.list_participations(db, bet_id)
        return BetStatsResponse(
            bet_id=bet.id,
            status=bet.status,
            total_pool=bet.total_pool,
            total_participants=bet.total_participants,
            options=[
                BetOptionResponse(
                    number=i + 1,
                    text=text,
                    pool=bet.option_pools[i],
                    participants=bet.option_participants[i],
                )
                for i, text in enumerate(bet.options)
            ],
            active_participations=sum(1 for p in participations if p.is_active),
            cancelled_participations=sum(
                1 for p in participations if p.status == ParticipationStatus.CANCELLED
            ),
        )

    # ------------------------------------------------------------------
    # Update / close / cancel / delete
    # ------------------------------------------------------------------

    async def update_bet(
        self, db: AsyncSession, bet_id: str, actor_id: str, changes: dict[str, Any]
    ) -> BetResponse:
        try:
            bet = await self._require_bet(db, bet_id)
            self._require_creator(bet, actor_id)
            if not bet.is_open:
                raise BetNotOpenError(bet_id)

            columns: dict[str, Any] = {}
            if changes.get("title") is not None:
                columns["title"] = changes["title"].strip()
            if "description" in changes:
                columns["description"] = changes["description"]
            if changes.get("options") is not None:
                options = [o.strip() for o in changes["options"]]
                low, high = _OPTION_COUNTS[BetType(bet.bet_type)]
                if not low <= len(options) <= high or any(not o for o in options):
                    raise InvalidBetError("invalid options for this bet type")
                if bet.total_participants > 0 and len(options) != bet.option_count:
                    raise InvalidBetError("cannot change the number of options after bets were placed")
                columns.update(_option_columns(options))

            await self._repo.update_bet(db, bet_id, columns)
            updated = await self._require_bet(db, bet_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return BetResponse.from_domain(updated)

    async def close_bet(self, db: AsyncSession, bet_id: str, actor_id: str) -> BetResponse:
        try:
            bet = await self._require_bet(db, bet_id)
            self._require_creator(bet, actor_id)
            if not await self._repo.transition_status(
                db, bet_id, (BetStatus.OPEN.value,), BetStatus.CLOSED.value
            ):
                raise BetNotOpenError(bet_id)
            closed = await self._require_bet(db, bet_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return BetResponse.from_domain(closed)

    async def cancel_bet(
        self, db: AsyncSession, bet_id: str, reason: str | None, cancelled_by: str
    ) -> CancelBetResponse:
        try:
            bet = await self._require_bet(db, bet_id)
            self._require_creator(bet, cancelled_by)
            if bet.status == BetStatus.RESOLVED:
                raise BetAlreadyResolvedError(bet_id)
            if bet.status == BetStatus.CANCELLED:
                raise BetOperationError("Bet is already cancelled")
            if not await self._repo.mark_cancelled(db, bet_id, reason):
                raise BetOperationError("Bet can no longer be cancelled")
            refunds = await self._participations.refund_all_participations(db, bet)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Bet cancelled: bet=%s refunds=%d", bet_id, len(refunds))
        self._bus.publish(
            BetCancelledEvent(
                bet_id=bet.id,
                group_id=bet.group_id,
                group_name=bet.group_name or "",
                title=bet.title,
                cancelled_by=cancelled_by,
                reason=reason,
                refunds=refunds,
            )
        )
        return CancelBetResponse(
            bet_id=bet.id, status=BetStatus.CANCELLED.value, reason=reason, refunds=refunds
        )

    async def delete_bet(self, db: AsyncSession, bet_id: str, actor_id: str) -> None:
        try:
            bet = await self._require_bet(db, bet_id)
            self._require_creator(bet, actor_id)
            if bet.status in (BetStatus.OPEN, BetStatus.CLOSED) and bet.total_participants > 0:
                raise BetOperationError("Cancel the bet before deleting it")
            await self._repo.soft_delete_bet(db, bet_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
