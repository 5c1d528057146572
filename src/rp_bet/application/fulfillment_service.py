"""BetFulfillmentService — tracking real-world settlement of social stakes.

Losers claim they have paid up; winners confirm it. The bet's fulfillment
status follows the number of winner confirmations.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_bet.application.schemas import (
    ConfirmationResponse,
    FulfillmentDetailsResponse,
    FulfillmentLoser,
    FulfillmentStatusResponse,
    FulfillmentWinner,
    LoserClaimResponse,
)
from src.rp_bet.domain.events import BetFulfillmentSubmittedEvent
from src.rp_bet.domain.fulfillment import calculate_fulfillment_status
from src.rp_bet.domain.models import Bet, BetParticipation
from src.rp_bet.domain.repository import BetRepositoryProtocol, FulfillmentRepositoryProtocol
from src.rp_bet.infrastructure.fulfillment_repository import FulfillmentRepository
from src.rp_bet.infrastructure.persistence import BetRepository
from src.rp_common.datetime_utils import utc_now
from src.rp_common.enums import BetStatus, FulfillmentStatus, ParticipationStatus
from src.rp_common.errors import AlreadyConfirmedError, BetNotFoundError, FulfillmentError
from src.rp_common.event_bus import InMemoryEventBus, event_bus


class BetFulfillmentService:
    def __init__(
        self,
        repo: BetRepositoryProtocol | None = None,
        fulfillment_repo: FulfillmentRepositoryProtocol | None = None,
        bus: InMemoryEventBus | None = None,
    ) -> None:
        self._repo: BetRepositoryProtocol = repo or BetRepository()
        self._fulfillments: FulfillmentRepositoryProtocol = (
            fulfillment_repo or FulfillmentRepository()
        )
        self._bus = bus or event_bus

    async def _require_fulfillable_bet(self, db: AsyncSession, bet_id: str) -> Bet:
        bet = await self._repo.get_bet(db, bet_id)
        if bet is None or bet.deleted_at is not None:
            raise BetNotFoundError(bet_id)
        if bet.status != BetStatus.RESOLVED:
            raise FulfillmentError("Bet must be resolved before fulfillment")
        if not bet.stake_fulfillment_required:
            raise FulfillmentError("Bet does not require stake fulfillment")
        if bet.outcome is None:
            raise FulfillmentError("Bet has no outcome")
        return bet

    async def _participation_with_status(
        self, db: AsyncSession, bet_id: str, user_id: str, status: ParticipationStatus
    ) -> BetParticipation:
        participation = await self._repo.find_participation(db, bet_id, user_id)
        if participation is None or participation.status != status:
            role = "losers" if status == ParticipationStatus.LOST else "winners"
            raise FulfillmentError(f"Only {role} of this bet can do that")
        return participation

    async def loser_claim_fulfilled(
        self,
        db: AsyncSession,
        bet_id: str,
        loser_id: str,
        proof_url: str | None = None,
        proof_description: str | None = None,
    ) -> LoserClaimResponse:
        try:
            bet = await self._require_fulfillable_bet(db, bet_id)
            loser = await self._participation_with_status(
                db, bet_id, loser_id, ParticipationStatus.LOST
            )
            claim = await self._fulfillments.upsert_loser_claim(
                db, bet_id, loser_id, proof_url, proof_description
            )
            participations = await self._repo.list_participations(db, bet_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        settled = (ParticipationStatus.WON, ParticipationStatus.LOST, ParticipationStatus.DRAW)
        self._bus.publish(
            BetFulfillmentSubmittedEvent(
                bet_id=bet.id,
                title=bet.title,
                loser_id=loser_id,
                loser_name=loser.name,
                participant_ids=[
                    p.user_id
                    for p in participations
                    if p.status in settled and p.user_id != loser_id
                ],
            )
        )
        return LoserClaimResponse.from_domain(claim)

    async def winner_confirm_fulfilled(
        self, db: AsyncSession, bet_id: str, winner_id: str, notes: str | None = None
    ) -> FulfillmentStatusResponse:
        try:
            await self._require_fulfillable_bet(db, bet_id)
            await self._participation_with_status(db, bet_id, winner_id, ParticipationStatus.WON)
            if await self._fulfillments.confirmation_exists(db, bet_id, winner_id):
                raise AlreadyConfirmedError()
            await self._fulfillments.insert_confirmation(db, bet_id, winner_id, notes)

            participations = await self._repo.list_participations(db, bet_id)
            winners = sum(1 for p in participations if p.status == ParticipationStatus.WON)
            confirmations = await self._fulfillments.count_confirmations(db, bet_id)
            status = calculate_fulfillment_status(winners, confirmations)
            all_confirmed_at = utc_now() if status == FulfillmentStatus.FULFILLED else None
            await self._repo.set_fulfillment_status(db, bet_id, status.value, all_confirmed_at)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return FulfillmentStatusResponse(
            bet_id=bet_id,
            fulfillment_status=status.value,
            confirmations=confirmations,
            winners=winners,
        )

    async def get_fulfillment_details(
        self, db: AsyncSession, bet_id: str
    ) -> FulfillmentDetailsResponse:
        bet = await self._require_fulfillable_bet(db, bet_id)
        participations = await self._repo.list_participations(db, bet_id)
        confirmations = await self._fulfillments.list_confirmations(db, bet_id)
        claims = {c.loser_id: c for c in await self._fulfillments.list_loser_claims(db, bet_id)}
        confirmed = {c.winner_id for c in confirmations}

        winners = [
            FulfillmentWinner(user_id=p.user_id, name=p.name, confirmed=p.user_id in confirmed)
            for p in participations
            if p.status == ParticipationStatus.WON
        ]
        losers = [
            FulfillmentLoser(
                user_id=p.user_id,
                name=p.name,
                claim=LoserClaimResponse.from_domain(claims[p.user_id]) if p.user_id in claims else None,
            )
            for p in participations
            if p.status == ParticipationStatus.LOST
        ]
        return FulfillmentDetailsResponse(
            bet_id=bet.id,
            social_stake_description=bet.social_stake_description,
            fulfillment_status=bet.fulfillment_status,
            all_winners_confirmed_at=(
                bet.all_winners_confirmed_at.isoformat() if bet.all_winners_confirmed_at else None
            ),
            winners=winners,
            losers=losers,
            confirmations=[ConfirmationResponse.from_domain(c) for c in confirmations],
        )
