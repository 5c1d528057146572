"""BetResolutionService — direct resolution, consensus voting and resolver management.

Resolution paths:
  SELF                creator resolves with an outcome
  ASSIGNED_RESOLVERS  an active resolver without can_vote_only resolves
  PARTICIPANT_VOTE    participants (auto-added resolvers) vote; the bet
                      resolves once every active resolver has voted

Prediction bets resolve either by winner selection (one ballot of winner
ids per voter) or by per-participation correctness votes.

Every path marks the bet RESOLVED, settles participations, commits and only
then publishes BetResolvedEvent.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_bet.application.participation_service import BetParticipationService
from src.rp_bet.application.schemas import (
    CanResolveResponse,
    ResolutionResultResponse,
    ResolverResponse,
    VoteCountsResponse,
    VoteResultResponse,
)
from src.rp_bet.domain.events import BetResolvedEvent
from src.rp_bet.domain.models import Bet, BetParticipation
from src.rp_bet.domain.repository import BetRepositoryProtocol, VoteRepositoryProtocol
from src.rp_bet.domain.resolution import (
    consensus_reached,
    expected_participation_votes,
    outcome_for_verdicts,
    participation_verdict,
    prediction_winner_verdicts,
    tally_outcome_votes,
)
from src.rp_bet.domain.settlement import SettlementSummary
from src.rp_bet.infrastructure.persistence import BetRepository
from src.rp_bet.infrastructure.vote_repository import VoteRepository
from src.rp_common.enums import BetOutcome, BetStatus, ParticipationStatus, ResolutionMethod
from src.rp_common.errors import (
    BetAlreadyResolvedError,
    BetNotFoundError,
    BetResolutionError,
    NotAuthorizedToResolveError,
    NotBetCreatorError,
    NotGroupMemberError,
)
from src.rp_common.event_bus import InMemoryEventBus, event_bus
from src.rp_group.domain.repository import GroupRepositoryProtocol
from src.rp_group.infrastructure.persistence import GroupRepository

logger = logging.getLogger(__name__)


def _result(bet: Bet, outcome: BetOutcome, summary: SettlementSummary) -> ResolutionResultResponse:
    return ResolutionResultResponse(
        bet_id=bet.id,
        outcome=outcome.value,
        winner_ids=summary.winner_ids,
        loser_ids=summary.loser_ids,
        draw_ids=summary.draw_ids,
        payouts=summary.payouts,
    )


class BetResolutionService:
    def __init__(
        self,
        repo: BetRepositoryProtocol | None = None,
        vote_repo: VoteRepositoryProtocol | None = None,
        group_repo: GroupRepositoryProtocol | None = None,
        participation_service: BetParticipationService | None = None,
        bus: InMemoryEventBus | None = None,
    ) -> None:
        self._repo: BetRepositoryProtocol = repo or BetRepository()
        self._votes: VoteRepositoryProtocol = vote_repo or VoteRepository()
        self._group_repo: GroupRepositoryProtocol = group_repo or GroupRepository()
        self._participations = participation_service or BetParticipationService(
            repo=self._repo, group_repo=self._group_repo, vote_repo=self._votes
        )
        self._bus = bus or event_bus

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def get_bet_for_resolution(self, db: AsyncSession, bet_id: str) -> Bet:
        bet = await self._repo.get_bet(db, bet_id)
        if bet is None or bet.deleted_at is not None:
            raise BetNotFoundError(bet_id)
        if bet.status == BetStatus.RESOLVED:
            raise BetAlreadyResolvedError(bet_id)
        if bet.status == BetStatus.CANCELLED:
            raise BetResolutionError("Cannot resolve a cancelled bet")
        return bet

    async def _can_resolve_independently(self, db: AsyncSession, bet: Bet, user_id: str) -> bool:
        if bet.resolution_method == ResolutionMethod.SELF:
            return bet.creator_id == user_id
        if bet.resolution_method == ResolutionMethod.ASSIGNED_RESOLVERS:
            resolver = await self._repo.find_resolver(db, bet.id, user_id)
            return resolver is not None and resolver.is_active and not resolver.can_vote_only
        return False

    async def _can_vote(self, db: AsyncSession, bet: Bet, user_id: str) -> bool:
        if bet.creator_id == user_id and bet.allow_creator_vote:
            return True
        resolver = await self._repo.find_resolver(db, bet.id, user_id)
        return resolver is not None and resolver.is_active

    async def _require_independent_resolver(
        self, db: AsyncSession, bet: Bet, user_id: str
    ) -> None:
        if bet.resolution_method == ResolutionMethod.PARTICIPANT_VOTE:
            raise BetResolutionError("This bet is resolved by participant voting")
        if bet.resolution_method == ResolutionMethod.SELF and bet.creator_id != user_id:
            raise NotAuthorizedToResolveError("Only the bet creator can resolve this bet")
        if not await self._can_resolve_independently(db, bet, user_id):
            raise NotAuthorizedToResolveError()

    @staticmethod
    def _active_participations(participations: list[BetParticipation]) -> list[BetParticipation]:
        return [p for p in participations if p.is_active]

    async def _finalize(
        self,
        db: AsyncSession,
        bet: Bet,
        outcome: BetOutcome,
        resolved_by: str | None,
        verdicts: dict[str, ParticipationStatus] | None = None,
    ) -> SettlementSummary:
        """Mark resolved and settle, inside the caller's transaction."""
        if not await self._repo.mark_resolved(db, bet.id, outcome.value, resolved_by):
            raise BetAlreadyResolvedError(bet.id)
        return await self._participations.settle_participations(db, bet, outcome, verdicts)

    def _publish_resolved(
        self,
        bet: Bet,
        outcome: BetOutcome,
        summary: SettlementSummary,
        resolved_by: str | None,
    ) -> None:
        logger.info("Bet resolved: bet=%s outcome=%s by=%s", bet.id, outcome.value, resolved_by)
        self._bus.publish(
            BetResolvedEvent(
                bet_id=bet.id,
                group_id=bet.group_id,
                title=bet.title,
                outcome=outcome.value,
                winner_ids=summary.winner_ids,
                loser_ids=summary.loser_ids,
                draw_ids=summary.draw_ids,
                payouts=summary.payouts,
                resolved_by=resolved_by,
            )
        )

    # ------------------------------------------------------------------
    # Direct resolution
    # ------------------------------------------------------------------

    async def resolve_bet(
        self,
        db: AsyncSession,
        bet_id: str,
        resolver_id: str,
        outcome: BetOutcome,
        reasoning: str | None = None,
    ) -> ResolutionResultResponse:
        try:
            bet = await self.get_bet_for_resolution(db, bet_id)
            await self._require_independent_resolver(db, bet, resolver_id)
            option = outcome.option_number
            if option is not None and not bet.has_option(option):
                raise BetResolutionError(f"Bet has no option {option}")
            summary = await self._finalize(db, bet, outcome, resolver_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        self._publish_resolved(bet, outcome, summary, resolver_id)
        return _result(bet, outcome, summary)

    async def resolve_bet_by_winners(
        self,
        db: AsyncSession,
        bet_id: str,
        resolver_id: str,
        winner_user_ids: list[str],
        reasoning: str | None = None,
    ) -> ResolutionResultResponse:
        winners = set(winner_user_ids)
        try:
            bet = await self.get_bet_for_resolution(db, bet_id)
            await self._require_independent_resolver(db, bet, resolver_id)
            if not winners:
                raise BetResolutionError("At least one winner must be selected")
            participants = {
                p.user_id
                for p in self._active_participations(await self._repo.list_participations(db, bet_id))
            }
            unknown = winners - participants
            if unknown:
                raise BetResolutionError(
                    f"Not participants in this bet: {', '.join(sorted(unknown))}"
                )
            verdicts = {uid: ParticipationStatus.WON for uid in winners}
            outcome = BetOutcome.OPTION_1
            summary = await self._finalize(db, bet, outcome, resolver_id, verdicts)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        self._publish_resolved(bet, outcome, summary, resolver_id)
        return _result(bet, outcome, summary)

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    async def vote_on_resolution(
        self,
        db: AsyncSession,
        bet_id: str,
        voter_id: str,
        outcome: BetOutcome,
        reasoning: str | None = None,
    ) -> VoteResultResponse:
        try:
            bet = await self.get_bet_for_resolution(db, bet_id)
            if bet.is_prediction:
                raise BetResolutionError("Prediction bets are voted on by selecting winners")
            if not await self._can_vote(db, bet, voter_id):
                raise NotAuthorizedToResolveError("User is not authorized to vote on this bet")
            option = outcome.option_number
            if option is not None and not bet.has_option(option):
                raise BetResolutionError(f"Bet has no option {option}")
            await self._votes.upsert_outcome_vote(db, bet_id, voter_id, outcome.value, reasoning)
            resolution = await self._try_resolve(db, bet, voter_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return self._vote_result(bet, resolution, voter_id)

    async def vote_on_prediction(
        self,
        db: AsyncSession,
        bet_id: str,
        voter_id: str,
        winner_user_ids: list[str],
        reasoning: str | None = None,
    ) -> VoteResultResponse:
        winners = list(dict.fromkeys(winner_user_ids))
        try:
            bet = await self.get_bet_for_resolution(db, bet_id)
            if not bet.is_prediction:
                raise BetResolutionError("Winner selection votes are only for prediction bets")
            if not await self._can_vote(db, bet, voter_id):
                raise NotAuthorizedToResolveError("User is not authorized to vote on this bet")
            participants = {
                p.user_id
                for p in self._active_participations(await self._repo.list_participations(db, bet_id))
            }
            unknown = set(winners) - participants
            if unknown:
                raise BetResolutionError(
                    f"Not participants in this bet: {', '.join(sorted(unknown))}"
                )
            vote = await self._votes.upsert_outcome_vote(db, bet_id, voter_id, None, reasoning)
            await self._votes.replace_vote_winners(db, vote.id, winners)
            resolution = await self._try_resolve(db, bet, voter_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return self._vote_result(bet, resolution, voter_id)

    async def vote_on_participation(
        self,
        db: AsyncSession,
        bet_id: str,
        voter_id: str,
        participation_id: str,
        is_correct: bool,
    ) -> VoteResultResponse:
        try:
            bet = await self.get_bet_for_resolution(db, bet_id)
            if not bet.is_prediction:
                raise BetResolutionError("Correctness votes are only for prediction bets")
            if not await self._can_vote(db, bet, voter_id):
                raise NotAuthorizedToResolveError("User is not authorized to vote on this bet")
            participation = await self._repo.get_participation(db, participation_id)
            if participation is None or participation.bet_id != bet_id:
                raise BetResolutionError("Participation does not belong to this bet")
            if not participation.is_active:
                raise BetResolutionError("Participation is not active")
            if participation.user_id == voter_id:
                raise BetResolutionError("Resolvers cannot vote on their own prediction")
            await self._votes.upsert_participation_vote(
                db, bet_id, participation_id, voter_id, is_correct
            )
            resolution = await self._try_resolve(db, bet, voter_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return self._vote_result(bet, resolution, voter_id)

    def _vote_result(
        self,
        bet: Bet,
        resolution: tuple[BetOutcome, SettlementSummary] | None,
        voter_id: str | None,
    ) -> VoteResultResponse:
        if resolution is None:
            return VoteResultResponse(bet_id=bet.id, resolved=False)
        outcome, summary = resolution
        self._publish_resolved(bet, outcome, summary, voter_id)
        return VoteResultResponse(bet_id=bet.id, resolved=True, result=_result(bet, outcome, summary))

    async def _try_resolve(
        self, db: AsyncSession, bet: Bet, triggering_user_id: str | None
    ) -> tuple[BetOutcome, SettlementSummary] | None:
        """Resolve when every active resolver has voted; no commit here."""
        active_resolvers = await self._repo.list_active_resolvers(db, bet.id)
        resolver_count = len(active_resolvers)

        if not bet.is_prediction:
            raw_counts = await self._votes.count_votes_by_outcome(db, bet.id)
            counts = {BetOutcome(k): v for k, v in raw_counts.items()}
            if not consensus_reached(sum(counts.values()), resolver_count):
                return None
            outcome = tally_outcome_votes(counts)
            summary = await self._finalize(db, bet, outcome, triggering_user_id)
            return outcome, summary

        participations = self._active_participations(
            await self._repo.list_participations(db, bet.id)
        )
        participant_ids = [p.user_id for p in participations]

        correctness_votes = await self._votes.count_participation_votes(db, bet.id)
        if correctness_votes > 0:
            expected = expected_participation_votes(
                participant_ids, [r.user_id for r in active_resolvers]
            )
            if correctness_votes < expected:
                return None
            distribution = await self._votes.participation_vote_distribution(db, bet.id)
            verdicts = {
                p.user_id: participation_verdict(*distribution.get(p.id, (0, 0)))
                for p in participations
            }
        else:
            ballots = [v for v in await self._votes.list_votes(db, bet.id) if v.voted_outcome is None]
            if not consensus_reached(len(ballots), resolver_count):
                return None
            verdicts = prediction_winner_verdicts(
                participant_ids, [v.winner_user_ids for v in ballots]
            )

        outcome = outcome_for_verdicts(verdicts)
        summary = await self._finalize(db, bet, outcome, triggering_user_id, verdicts)
        return outcome, summary

    async def check_and_resolve(
        self, db: AsyncSession, bet: Bet, triggering_user_id: str | None = None
    ) -> bool:
        """Resolve a voting bet if consensus is in; returns True when resolved."""
        try:
            resolution = await self._try_resolve(db, bet, triggering_user_id)
            if resolution is None:
                await db.rollback()
                return False
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        outcome, summary = resolution
        self._publish_resolved(bet, outcome, summary, triggering_user_id)
        return True

    # ------------------------------------------------------------------
    # Resolver management
    # ------------------------------------------------------------------

    async def assign_resolver(
        self,
        db: AsyncSession,
        bet_id: str,
        assigner_id: str,
        user_id: str,
        can_vote_only: bool = False,
    ) -> ResolverResponse:
        try:
            bet = await self.get_bet_for_resolution(db, bet_id)
            if bet.creator_id != assigner_id:
                raise NotBetCreatorError()
            if bet.resolution_method != ResolutionMethod.ASSIGNED_RESOLVERS:
                raise BetResolutionError("Bet does not use assigned resolvers")
            membership = await self._group_repo.find_membership(db, bet.group_id, user_id)
            if membership is None or not membership.is_approved_member:
                raise NotGroupMemberError(bet.group_id)
            existing = await self._repo.find_resolver(db, bet_id, user_id)
            if existing is not None and existing.is_active:
                raise BetResolutionError("User is already assigned as resolver")
            resolver = await self._repo.add_resolver(db, bet_id, user_id, assigner_id, can_vote_only)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return ResolverResponse.from_domain(resolver)

    async def revoke_resolver(
        self, db: AsyncSession, bet_id: str, revoker_id: str, user_id: str
    ) -> None:
        try:
            bet = await self.get_bet_for_resolution(db, bet_id)
            if bet.creator_id != revoker_id:
                raise NotBetCreatorError()
            if bet.resolution_method != ResolutionMethod.ASSIGNED_RESOLVERS:
                raise BetResolutionError("Bet does not use assigned resolvers")
            if not await self._repo.deactivate_resolver(db, bet_id, user_id):
                raise BetResolutionError("Resolver assignment not found")
            await self._votes.delete_votes_by_voter(db, bet_id, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def _require_bet(self, db: AsyncSession, bet_id: str) -> Bet:
        bet = await self._repo.get_bet(db, bet_id)
        if bet is None or bet.deleted_at is not None:
            raise BetNotFoundError(bet_id)
        return bet

    async def list_resolvers(self, db: AsyncSession, bet_id: str) -> list[ResolverResponse]:
        await self._require_bet(db, bet_id)
        resolvers = await self._repo.list_active_resolvers(db, bet_id)
        return [ResolverResponse.from_domain(r) for r in resolvers]

    async def get_vote_counts(self, db: AsyncSession, bet_id: str) -> VoteCountsResponse:
        await self._require_bet(db, bet_id)
        counts = await self._votes.count_votes_by_outcome(db, bet_id)
        resolvers = await self._repo.count_active_resolvers(db, bet_id)
        return VoteCountsResponse(
            bet_id=bet_id,
            counts=counts,
            total_votes=sum(counts.values()),
            active_resolvers=resolvers,
        )

    async def can_user_resolve(
        self, db: AsyncSession, bet_id: str, user_id: str
    ) -> CanResolveResponse:
        bet = await self._require_bet(db, bet_id)
        if bet.status in (BetStatus.RESOLVED, BetStatus.CANCELLED):
            return CanResolveResponse(bet_id=bet_id, can_resolve=False, can_vote=False)
        return CanResolveResponse(
            bet_id=bet_id,
            can_resolve=await self._can_resolve_independently(db, bet, user_id),
            can_vote=await self._can_vote(db, bet, user_id),
        )
