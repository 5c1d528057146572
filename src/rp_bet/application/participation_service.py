"""BetParticipationService — placing, cancelling and settling participations.

Credit movements go through UserRepository inside the caller's transaction,
so a failed bet placement or settlement never leaves credits half-moved.
place_bet/cancel_participation commit themselves; settle_participations and
refund_all_participations run inside the resolving/cancelling transaction
owned by BetResolutionService/BetApplicationService.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_bet.application.schemas import InsuranceItemResponse, ParticipationResponse
from src.rp_bet.domain.fulfillment import calculate_fulfillment_status
from src.rp_bet.domain.models import Bet, BetParticipation
from src.rp_bet.domain.repository import (
    BetRepositoryProtocol,
    InsuranceRepositoryProtocol,
    VoteRepositoryProtocol,
)
from src.rp_bet.domain.settlement import SettlementSummary, plan_settlement
from src.rp_bet.infrastructure.insurance_repository import InsuranceRepository
from src.rp_bet.infrastructure.persistence import BetRepository
from src.rp_bet.infrastructure.vote_repository import VoteRepository
from src.rp_common.credits import calculate_payout
from src.rp_common.datetime_utils import utc_now
from src.rp_common.enums import (
    BetOutcome,
    FulfillmentStatus,
    InsuranceTier,
    ParticipationStatus,
)
from src.rp_common.errors import (
    AlreadyParticipatingError,
    BetNotFoundError,
    BetNotOpenError,
    BetParticipationError,
    InsuranceError,
    NotGroupMemberError,
    ParticipationNotFoundError,
)
from src.rp_group.domain.repository import GroupRepositoryProtocol
from src.rp_group.infrastructure.persistence import GroupRepository
from src.rp_user.domain.repository import UserRepositoryProtocol
from src.rp_user.infrastructure.persistence import UserRepository

logger = logging.getLogger(__name__)


class BetParticipationService:
    def __init__(
        self,
        repo: BetRepositoryProtocol | None = None,
        user_repo: UserRepositoryProtocol | None = None,
        group_repo: GroupRepositoryProtocol | None = None,
        insurance_repo: InsuranceRepositoryProtocol | None = None,
        vote_repo: VoteRepositoryProtocol | None = None,
    ) -> None:
        self._repo: BetRepositoryProtocol = repo or BetRepository()
        self._user_repo: UserRepositoryProtocol = user_repo or UserRepository()
        self._group_repo: GroupRepositoryProtocol = group_repo or GroupRepository()
        self._insurance_repo: InsuranceRepositoryProtocol = insurance_repo or InsuranceRepository()
        self._votes: VoteRepositoryProtocol = vote_repo or VoteRepository()

    async def _require_bet(self, db: AsyncSession, bet_id: str) -> Bet:
        bet = await self._repo.get_bet(db, bet_id)
        if bet is None or bet.deleted_at is not None:
            raise BetNotFoundError(bet_id)
        return bet

    # ------------------------------------------------------------------
    # Placing and cancelling
    # ------------------------------------------------------------------

    async def place_bet(
        self,
        db: AsyncSession,
        user_id: str,
        bet_id: str,
        chosen_option: int | None,
        predicted_value: str | None,
        amount: int,
        insurance_item_id: str | None = None,
    ) -> ParticipationResponse:
        try:
            bet = await self._require_bet(db, bet_id)
            if not bet.accepts_bets_at(utc_now()):
                raise BetNotOpenError(bet_id)

            membership = await self._group_repo.find_membership(db, bet.group_id, user_id)
            if membership is None or not membership.is_approved_member:
                raise NotGroupMemberError(bet.group_id)

            participation = await self._repo.find_participation(db, bet_id, user_id)
            if participation is not None and participation.is_active:
                raise AlreadyParticipatingError()

            option, prediction = self._validate_choice(bet, chosen_option, predicted_value)
            stake = self._validate_amount(bet, amount)

            if participation is None:
                participation = await self._repo.insert_participation(
                    db, bet_id, user_id, ParticipationStatus.ACTIVE.value
                )

            if stake > 0:
                await self._user_repo.deduct_credits(
                    db, user_id, stake, f"Bet placed: {bet.title}", bet_id
                )

            participation.status = ParticipationStatus.ACTIVE.value
            participation.chosen_option = option
            participation.predicted_value = prediction
            participation.amount = stake
            participation.insurance_item_id = None
            participation.insurance_refund_percentage = None
            participation.insurance_refund_amount = 0
            if option is not None:
                participation.potential_winnings = calculate_payout(
                    bet.total_pool + stake, stake, bet.pool_for(option) + stake
                )
            else:
                participation.potential_winnings = stake

            if insurance_item_id is not None:
                await self._apply_insurance(db, bet, participation, insurance_item_id)

            await self._repo.save_participation(db, participation)
            await self._repo.adjust_pool(db, bet_id, option, stake, 1)
            await self._user_repo.increment_active_bets(db, user_id)
            if bet.uses_voting:
                await self._repo.add_resolver(db, bet_id, user_id, None, True)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Bet placed: bet=%s user=%s amount=%d", bet_id, user_id, stake)
        return ParticipationResponse.from_domain(participation)

    @staticmethod
    def _validate_choice(
        bet: Bet, chosen_option: int | None, predicted_value: str | None
    ) -> tuple[int | None, str | None]:
        if bet.is_prediction:
            value = (predicted_value or "").strip()
            if not value:
                raise BetParticipationError("A prediction value is required")
            return None, value
        if chosen_option is None or not bet.has_option(chosen_option):
            raise BetParticipationError(
                f"chosen_option must be between 1 and {bet.option_count}"
            )
        return chosen_option, None

    @staticmethod
    def _validate_amount(bet: Bet, amount: int) -> int:
        if bet.is_social:
            return 0
        if bet.fixed_stake_amount is not None:
            if amount != bet.fixed_stake_amount:
                raise BetParticipationError(
                    f"This bet requires a stake of exactly {bet.fixed_stake_amount}"
                )
            return amount
        if amount <= 0 or amount < bet.minimum_bet:
            raise BetParticipationError(f"Minimum bet is {bet.minimum_bet}")
        if bet.maximum_bet is not None and amount > bet.maximum_bet:
            raise BetParticipationError(f"Maximum bet is {bet.maximum_bet}")
        return amount

    async def _apply_insurance(
        self,
        db: AsyncSession,
        bet: Bet,
        participation: BetParticipation,
        item_id: str,
    ) -> None:
        if not bet.is_credit:
            raise InsuranceError("Insurance only applies to credit bets")
        item = await self._insurance_repo.get_item(db, item_id)
        if item is None or item.user_id != participation.user_id:
            raise InsuranceError("Insurance item not found")
        if not item.is_usable:
            raise InsuranceError("Insurance item has no uses left")
        if not await self._insurance_repo.consume_use(db, item_id, participation.user_id):
            raise InsuranceError("Insurance item has no uses left")
        participation.insurance_item_id = item.id
        participation.insurance_refund_percentage = InsuranceTier(item.tier).refund_percentage

    async def cancel_participation(
        self, db: AsyncSession, user_id: str, bet_id: str
    ) -> ParticipationResponse:
        try:
            bet = await self._require_bet(db, bet_id)
            if not bet.accepts_bets_at(utc_now()):
                raise BetNotOpenError(bet_id)
            participation = await self._repo.find_participation(db, bet_id, user_id)
            if participation is None or not participation.is_active:
                raise ParticipationNotFoundError(f"bet {bet_id}, user {user_id}")

            stake = participation.amount
            option = participation.chosen_option
            if bet.is_credit and stake > 0:
                await self._user_repo.add_credits(
                    db, user_id, stake, f"Bet cancelled: {bet.title}", bet_id
                )
            if participation.insurance_item_id is not None:
                await self._insurance_repo.restore_use(db, participation.insurance_item_id)

            # The creator keeps their placeholder so they can bet again
            if user_id == bet.creator_id:
                participation.status = ParticipationStatus.CREATOR.value
            else:
                participation.status = ParticipationStatus.CANCELLED.value
            participation.amount = 0
            participation.chosen_option = None
            participation.predicted_value = None
            participation.potential_winnings = 0
            participation.insurance_item_id = None
            participation.insurance_refund_percentage = None

            await self._repo.save_participation(db, participation)
            await self._repo.adjust_pool(db, bet_id, option, -stake, -1)
            await self._user_repo.decrement_active_bets(db, user_id)
            if bet.uses_voting:
                await self._repo.deactivate_resolver(db, bet_id, user_id)
                await self._votes.delete_votes_by_voter(db, bet_id, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return ParticipationResponse.from_domain(participation)

    # ------------------------------------------------------------------
    # Settlement (runs inside the caller's transaction)
    # ------------------------------------------------------------------

    async def settle_participations(
        self,
        db: AsyncSession,
        bet: Bet,
        outcome: BetOutcome,
        verdicts: dict[str, ParticipationStatus] | None = None,
    ) -> SettlementSummary:
        """Apply the settlement plan: row updates, credits, statistics."""
        participations = await self._repo.list_participations(db, bet.id)
        summary = plan_settlement(participations, outcome, verdicts)
        now = utc_now()

        for line in summary.lines:
            p = line.participation
            p.status = line.status.value
            p.actual_winnings = line.winnings
            p.insurance_refund_amount = line.insurance_refund
            p.settled_at = now
            await self._repo.save_participation(db, p)

            if bet.is_credit:
                if line.winnings > 0:
                    await self._user_repo.add_credits(
                        db, p.user_id, line.winnings, f"Bet won: {bet.title}", bet.id
                    )
                if line.insurance_refund > 0:
                    await self._user_repo.add_credits(
                        db, p.user_id, line.insurance_refund,
                        f"Insurance refund: {bet.title}", bet.id,
                    )
                if line.refund > 0:
                    await self._user_repo.add_credits(
                        db, p.user_id, line.refund, f"Bet draw refund: {bet.title}", bet.id
                    )

            if line.status == ParticipationStatus.WON:
                await self._user_repo.record_win(db, p.user_id)
            elif line.status == ParticipationStatus.LOST:
                await self._user_repo.record_loss(db, p.user_id)
            await self._user_repo.decrement_active_bets(db, p.user_id)

        if bet.stake_fulfillment_required:
            # No winners means nobody is owed a stake
            status = calculate_fulfillment_status(len(summary.winner_ids), 0)
            all_confirmed_at = now if status == FulfillmentStatus.FULFILLED else None
            await self._repo.set_fulfillment_status(db, bet.id, status.value, all_confirmed_at)
            bet.fulfillment_status = status.value
            bet.all_winners_confirmed_at = all_confirmed_at

        logger.info(
            "Bet settled: bet=%s outcome=%s winners=%d losers=%d draws=%d",
            bet.id,
            outcome.value,
            len(summary.winner_ids),
            len(summary.loser_ids),
            len(summary.draw_ids),
        )
        return summary

    async def refund_all_participations(self, db: AsyncSession, bet: Bet) -> dict[str, int]:
        """Refund every ACTIVE participation; returns {user_id: refunded_amount}."""
        refunds: dict[str, int] = {}
        participations = await self._repo.list_participations(db, bet.id)
        now = utc_now()
        for p in participations:
            if not p.is_active:
                continue
            refund = p.amount if bet.is_credit else 0
            if refund > 0:
                await self._user_repo.add_credits(
                    db, p.user_id, refund, f"Bet refund: {bet.title}", bet.id
                )
            if p.insurance_item_id is not None:
                await self._insurance_repo.restore_use(db, p.insurance_item_id)
            p.status = ParticipationStatus.REFUNDED.value
            p.settled_at = now
            await self._repo.save_participation(db, p)
            await self._user_repo.decrement_active_bets(db, p.user_id)
            refunds[p.user_id] = refund
        return refunds

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_participations(
        self, db: AsyncSession, bet_id: str
    ) -> list[ParticipationResponse]:
        await self._require_bet(db, bet_id)
        participations = await self._repo.list_participations(db, bet_id)
        return [
            ParticipationResponse.from_domain(p)
            for p in participations
            if not p.is_creator_placeholder
        ]

    async def get_user_participation(
        self, db: AsyncSession, bet_id: str, user_id: str
    ) -> ParticipationResponse | None:
        await self._require_bet(db, bet_id)
        participation = await self._repo.find_participation(db, bet_id, user_id)
        if participation is None:
            return None
        return ParticipationResponse.from_domain(participation)

    # ------------------------------------------------------------------
    # Insurance
    # ------------------------------------------------------------------

    async def list_available_insurance(
        self, db: AsyncSession, user_id: str
    ) -> list[InsuranceItemResponse]:
        items = await self._insurance_repo.list_available(db, user_id)
        return [InsuranceItemResponse.from_domain(i) for i in items]

    async def grant_insurance(
        self, db: AsyncSession, user_id: str, tier: InsuranceTier, uses: int = 1
    ) -> InsuranceItemResponse:
        if uses <= 0:
            raise InsuranceError("uses must be positive")
        try:
            item = await self._insurance_repo.insert_item(db, user_id, tier.value, uses)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return InsuranceItemResponse.from_domain(item)
