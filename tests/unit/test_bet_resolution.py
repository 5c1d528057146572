"""Unit tests for resolution, fulfillment and the scheduled bet jobs."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.rp_bet.application.fulfillment_service import BetFulfillmentService
from src.rp_bet.application.resolution_service import BetResolutionService
from src.rp_bet.application.scheduled_tasks import BetScheduledTaskService, register_jobs
from src.rp_bet.domain.events import (
    BetAwaitingResolutionEvent,
    BetDeadlineApproachingEvent,
    BetDeadlineReachedEvent,
    BetFulfillmentSubmittedEvent,
    BetResolutionDeadlineApproachingEvent,
    BetResolvedEvent,
)
from src.rp_bet.domain.models import Bet, BetParticipation, BetResolutionVote, BetResolver
from src.rp_bet.domain.settlement import plan_settlement
from src.rp_common.enums import BetOutcome, ParticipationStatus
from src.rp_common.errors import (
    AlreadyConfirmedError,
    BetAlreadyResolvedError,
    BetResolutionError,
    FulfillmentError,
    NotAuthorizedToResolveError,
)


def _make_bet(**kwargs) -> Bet:
    defaults = dict(
        id="bet-1", group_id="group-1", creator_id="creator-1", title="Derby",
        description=None, bet_type="BINARY", status="CLOSED", stake_type="CREDIT",
        resolution_method="SELF",
        betting_deadline=datetime.now(UTC) - timedelta(hours=1),
        options=["Home", "Away"], group_name="Friday Poker",
    )
    defaults.update(kwargs)
    return Bet(**defaults)


def _p(user_id: str, status: str = "ACTIVE", **kwargs) -> BetParticipation:
    return BetParticipation(
        id=f"p-{user_id}", bet_id="bet-1", user_id=user_id, status=status,
        amount=kwargs.pop("amount", 1000), **kwargs,
    )


def _resolver(user_id: str, can_vote_only: bool = False) -> BetResolver:
    return BetResolver(
        id=f"r-{user_id}", bet_id="bet-1", user_id=user_id, assigned_by="creator-1",
        can_vote_only=can_vote_only,
    )


def _settle_for_real(db, bet, outcome, verdicts=None):
    return plan_settlement(
        [_p("a", chosen_option=1), _p("b", chosen_option=2)], outcome, verdicts
    )


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def repo() -> AsyncMock:
    repo = AsyncMock()
    repo.mark_resolved.return_value = True
    return repo


@pytest.fixture
def votes() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def participations() -> AsyncMock:
    participations = AsyncMock()
    participations.settle_participations.side_effect = _settle_for_real
    return participations


@pytest.fixture
def bus() -> MagicMock:
    return MagicMock()


@pytest.fixture
def resolution(repo, votes, participations, bus) -> BetResolutionService:
    return BetResolutionService(
        repo=repo, vote_repo=votes, group_repo=AsyncMock(),
        participation_service=participations, bus=bus,
    )


# ---------------------------------------------------------------------------
# Direct resolution
# ---------------------------------------------------------------------------


class TestResolveBet:
    async def test_creator_resolves_self_bet(self, db, repo, participations, bus, resolution) -> None:
        repo.get_bet.return_value = _make_bet()

        result = await resolution.resolve_bet(db, "bet-1", "creator-1", BetOutcome.OPTION_1)

        repo.mark_resolved.assert_awaited_once_with(db, "bet-1", "OPTION_1", "creator-1")
        participations.settle_participations.assert_awaited_once()
        db.commit.assert_awaited_once()
        assert result.winner_ids == ["a"]
        assert result.payouts == {"a": 2000}
        event = bus.publish.call_args.args[0]
        assert isinstance(event, BetResolvedEvent)
        assert event.resolved_by == "creator-1"

    async def test_non_creator_rejected(self, db, repo, resolution) -> None:
        repo.get_bet.return_value = _make_bet()
        with pytest.raises(NotAuthorizedToResolveError):
            await resolution.resolve_bet(db, "bet-1", "user-2", BetOutcome.OPTION_1)
        repo.mark_resolved.assert_not_awaited()

    async def test_already_resolved(self, db, repo, resolution) -> None:
        repo.get_bet.return_value = _make_bet(status="RESOLVED")
        with pytest.raises(BetAlreadyResolvedError):
            await resolution.resolve_bet(db, "bet-1", "creator-1", BetOutcome.OPTION_1)

    async def test_cancelled_bet(self, db, repo, resolution) -> None:
        repo.get_bet.return_value = _make_bet(status="CANCELLED")
        with pytest.raises(BetResolutionError):
            await resolution.resolve_bet(db, "bet-1", "creator-1", BetOutcome.DRAW)

    async def test_unknown_option(self, db, repo, resolution) -> None:
        repo.get_bet.return_value = _make_bet()
        with pytest.raises(BetResolutionError):
            await resolution.resolve_bet(db, "bet-1", "creator-1", BetOutcome.OPTION_3)

    async def test_voting_bet_cannot_resolve_directly(self, db, repo, resolution) -> None:
        repo.get_bet.return_value = _make_bet(resolution_method="PARTICIPANT_VOTE")
        with pytest.raises(BetResolutionError):
            await resolution.resolve_bet(db, "bet-1", "creator-1", BetOutcome.OPTION_1)

    async def test_vote_only_resolver_cannot_resolve(self, db, repo, resolution) -> None:
        repo.get_bet.return_value = _make_bet(resolution_method="ASSIGNED_RESOLVERS")
        repo.find_resolver.return_value = _resolver("user-2", can_vote_only=True)
        with pytest.raises(NotAuthorizedToResolveError):
            await resolution.resolve_bet(db, "bet-1", "user-2", BetOutcome.OPTION_1)

    async def test_assigned_resolver_resolves(self, db, repo, bus, resolution) -> None:
        repo.get_bet.return_value = _make_bet(resolution_method="ASSIGNED_RESOLVERS")
        repo.find_resolver.return_value = _resolver("user-2")

        await resolution.resolve_bet(db, "bet-1", "user-2", BetOutcome.OPTION_2)
        assert bus.publish.call_args.args[0].outcome == "OPTION_2"

    async def test_lost_race_rolls_back(self, db, repo, bus, resolution) -> None:
        repo.get_bet.return_value = _make_bet()
        repo.mark_resolved.return_value = False
        with pytest.raises(BetAlreadyResolvedError):
            await resolution.resolve_bet(db, "bet-1", "creator-1", BetOutcome.OPTION_1)
        db.rollback.assert_awaited_once()
        bus.publish.assert_not_called()

    async def test_winners_must_be_participants(self, db, repo, resolution) -> None:
        repo.get_bet.return_value = _make_bet()
        repo.list_participations.return_value = [_p("a"), _p("b")]
        with pytest.raises(BetResolutionError):
            await resolution.resolve_bet_by_winners(db, "bet-1", "creator-1", ["a", "zed"])

    async def test_winners_become_verdicts(self, db, repo, participations, resolution) -> None:
        repo.get_bet.return_value = _make_bet()
        repo.list_participations.return_value = [_p("a"), _p("b")]

        await resolution.resolve_bet_by_winners(db, "bet-1", "creator-1", ["b"])

        verdicts = participations.settle_participations.call_args.args[3]
        assert verdicts == {"b": ParticipationStatus.WON}


# ---------------------------------------------------------------------------
# Voting
# ---------------------------------------------------------------------------


class TestVoting:
    async def test_waits_for_every_resolver(self, db, repo, votes, bus, resolution) -> None:
        repo.get_bet.return_value = _make_bet(resolution_method="PARTICIPANT_VOTE")
        repo.list_active_resolvers.return_value = [_resolver(u) for u in ("a", "b", "c")]
        votes.count_votes_by_outcome.return_value = {"OPTION_1": 2}

        result = await resolution.vote_on_resolution(db, "bet-1", "creator-1", BetOutcome.OPTION_1)

        assert result.resolved is False
        votes.upsert_outcome_vote.assert_awaited_once_with(db, "bet-1", "creator-1", "OPTION_1", None)
        repo.mark_resolved.assert_not_awaited()
        bus.publish.assert_not_called()
        db.commit.assert_awaited_once()

    async def test_last_vote_resolves(self, db, repo, votes, bus, resolution) -> None:
        repo.get_bet.return_value = _make_bet(resolution_method="PARTICIPANT_VOTE")
        repo.list_active_resolvers.return_value = [_resolver(u) for u in ("a", "b")]
        votes.count_votes_by_outcome.return_value = {"OPTION_2": 2}

        result = await resolution.vote_on_resolution(db, "bet-1", "creator-1", BetOutcome.OPTION_2)

        assert result.resolved is True
        assert result.result.outcome == "OPTION_2"
        assert isinstance(bus.publish.call_args.args[0], BetResolvedEvent)

    async def test_tie_resolves_as_draw(self, db, repo, votes, resolution) -> None:
        repo.get_bet.return_value = _make_bet(resolution_method="PARTICIPANT_VOTE")
        repo.list_active_resolvers.return_value = [_resolver(u) for u in ("a", "b")]
        votes.count_votes_by_outcome.return_value = {"OPTION_1": 1, "OPTION_2": 1}

        result = await resolution.vote_on_resolution(db, "bet-1", "creator-1", BetOutcome.OPTION_1)

        assert result.result.outcome == "DRAW"

    async def test_outsider_cannot_vote(self, db, repo, resolution) -> None:
        repo.get_bet.return_value = _make_bet(resolution_method="PARTICIPANT_VOTE")
        repo.find_resolver.return_value = None
        with pytest.raises(NotAuthorizedToResolveError):
            await resolution.vote_on_resolution(db, "bet-1", "stranger", BetOutcome.OPTION_1)

    async def test_creator_vote_can_be_disabled(self, db, repo, resolution) -> None:
        repo.get_bet.return_value = _make_bet(
            resolution_method="PARTICIPANT_VOTE", allow_creator_vote=False
        )
        repo.find_resolver.return_value = None
        with pytest.raises(NotAuthorizedToResolveError):
            await resolution.vote_on_resolution(db, "bet-1", "creator-1", BetOutcome.OPTION_1)

    async def test_prediction_winner_ballots(
        self, db, repo, votes, participations, resolution
    ) -> None:
        repo.get_bet.return_value = _make_bet(
            bet_type="PREDICTION", options=[], resolution_method="PARTICIPANT_VOTE"
        )
        repo.list_participations.return_value = [_p("a"), _p("b")]
        repo.list_active_resolvers.return_value = [_resolver("a"), _resolver("b")]
        repo.find_resolver.return_value = _resolver("a")
        votes.upsert_outcome_vote.return_value = BetResolutionVote(
            id="v-1", bet_id="bet-1", voter_id="a", voted_outcome=None
        )
        votes.count_participation_votes.return_value = 0
        votes.list_votes.return_value = [
            BetResolutionVote(id="v-1", bet_id="bet-1", voter_id="a", voted_outcome=None,
                              winner_user_ids=["b"]),
            BetResolutionVote(id="v-2", bet_id="bet-1", voter_id="b", voted_outcome=None,
                              winner_user_ids=["b"]),
        ]

        result = await resolution.vote_on_prediction(db, "bet-1", "a", ["b"])

        votes.replace_vote_winners.assert_awaited_once_with(db, "v-1", ["b"])
        assert result.resolved is True
        verdicts = participations.settle_participations.call_args.args[3]
        assert verdicts == {"a": ParticipationStatus.LOST, "b": ParticipationStatus.WON}

    async def test_no_vote_on_own_prediction(self, db, repo, resolution) -> None:
        repo.get_bet.return_value = _make_bet(bet_type="PREDICTION", options=[])
        repo.find_resolver.return_value = _resolver("a")
        repo.get_participation.return_value = _p("a")
        with pytest.raises(BetResolutionError):
            await resolution.vote_on_participation(db, "bet-1", "a", "p-a", True)

    async def test_correctness_votes_wait_for_every_resolver(
        self, db, repo, votes, bus, resolution
    ) -> None:
        repo.get_bet.return_value = _make_bet(
            bet_type="PREDICTION", options=[], resolution_method="PARTICIPANT_VOTE"
        )
        repo.find_resolver.return_value = _resolver("c")
        repo.get_participation.return_value = _p("a")
        repo.list_participations.return_value = [_p("a"), _p("b"), _p("c")]
        repo.list_active_resolvers.return_value = [_resolver(u) for u in ("a", "b", "c")]
        # Three resolvers each judge the two other predictions
        votes.count_participation_votes.return_value = 5

        result = await resolution.vote_on_participation(db, "bet-1", "c", "p-a", True)

        assert result.resolved is False
        votes.upsert_participation_vote.assert_awaited_once_with(db, "bet-1", "p-a", "c", True)
        votes.participation_vote_distribution.assert_not_awaited()
        repo.mark_resolved.assert_not_awaited()
        bus.publish.assert_not_called()

    async def test_correctness_votes_settle_each_prediction(
        self, db, repo, votes, participations, bus, resolution
    ) -> None:
        repo.get_bet.return_value = _make_bet(
            bet_type="PREDICTION", options=[], resolution_method="PARTICIPANT_VOTE"
        )
        repo.find_resolver.return_value = _resolver("c")
        repo.get_participation.return_value = _p("a")
        repo.list_participations.return_value = [_p("a"), _p("b"), _p("c")]
        repo.list_active_resolvers.return_value = [_resolver(u) for u in ("a", "b", "c")]
        votes.count_participation_votes.return_value = 6
        votes.participation_vote_distribution.return_value = {
            "p-a": (2, 0),
            "p-b": (0, 2),
            "p-c": (1, 1),
        }

        result = await resolution.vote_on_participation(db, "bet-1", "c", "p-a", True)

        assert result.resolved is True
        votes.list_votes.assert_not_awaited()
        repo.mark_resolved.assert_awaited_once_with(db, "bet-1", "OPTION_1", "c")
        verdicts = participations.settle_participations.call_args.args[3]
        assert verdicts == {
            "a": ParticipationStatus.WON,
            "b": ParticipationStatus.LOST,
            "c": ParticipationStatus.DRAW,
        }
        assert isinstance(bus.publish.call_args.args[0], BetResolvedEvent)

    async def test_all_rejected_predictions_resolve_as_draw(
        self, db, repo, votes, participations, resolution
    ) -> None:
        repo.get_bet.return_value = _make_bet(
            bet_type="PREDICTION", options=[], resolution_method="PARTICIPANT_VOTE"
        )
        repo.find_resolver.return_value = _resolver("b")
        repo.get_participation.return_value = _p("a")
        repo.list_participations.return_value = [_p("a"), _p("b")]
        repo.list_active_resolvers.return_value = [_resolver("a"), _resolver("b")]
        votes.count_participation_votes.return_value = 2
        votes.participation_vote_distribution.return_value = {"p-a": (0, 1), "p-b": (0, 1)}

        result = await resolution.vote_on_participation(db, "bet-1", "b", "p-a", False)

        assert result.result.outcome == "DRAW"
        verdicts = participations.settle_participations.call_args.args[3]
        assert verdicts == {"a": ParticipationStatus.LOST, "b": ParticipationStatus.LOST}

    async def test_check_and_resolve_without_consensus(
        self, db, repo, votes, bus, resolution
    ) -> None:
        repo.list_active_resolvers.return_value = [_resolver("a"), _resolver("b")]
        votes.count_votes_by_outcome.return_value = {"OPTION_1": 1}

        resolved = await resolution.check_and_resolve(
            db, _make_bet(resolution_method="PARTICIPANT_VOTE")
        )

        assert resolved is False
        db.rollback.assert_awaited_once()
        bus.publish.assert_not_called()


class TestResolverManagement:
    async def test_revoke_discards_votes(self, db, repo, votes, resolution) -> None:
        repo.get_bet.return_value = _make_bet(resolution_method="ASSIGNED_RESOLVERS")
        repo.deactivate_resolver.return_value = True

        await resolution.revoke_resolver(db, "bet-1", "creator-1", "r1")

        repo.deactivate_resolver.assert_awaited_once_with(db, "bet-1", "r1")
        votes.delete_votes_by_voter.assert_awaited_once_with(db, "bet-1", "r1")
        db.commit.assert_awaited_once()

    async def test_remaining_resolver_decides_after_revoke(
        self, db, repo, votes, resolution
    ) -> None:
        bet = _make_bet(resolution_method="ASSIGNED_RESOLVERS", allow_creator_vote=False)
        repo.get_bet.return_value = bet
        repo.deactivate_resolver.return_value = True
        ballots = {"r1": "OPTION_1"}
        votes.delete_votes_by_voter.side_effect = lambda db, bet_id, voter: ballots.pop(voter)
        votes.upsert_outcome_vote.side_effect = (
            lambda db, bet_id, voter, outcome, reasoning: ballots.__setitem__(voter, outcome)
        )
        votes.count_votes_by_outcome.side_effect = lambda db, bet_id: {
            o: list(ballots.values()).count(o) for o in set(ballots.values())
        }

        await resolution.revoke_resolver(db, "bet-1", "creator-1", "r1")
        repo.find_resolver.return_value = _resolver("r2", can_vote_only=True)
        repo.list_active_resolvers.return_value = [_resolver("r2", can_vote_only=True)]
        result = await resolution.vote_on_resolution(db, "bet-1", "r2", BetOutcome.OPTION_2)

        assert result.resolved is True
        assert result.result.outcome == "OPTION_2"

    async def test_revoke_unknown_resolver(self, db, repo, votes, resolution) -> None:
        repo.get_bet.return_value = _make_bet(resolution_method="ASSIGNED_RESOLVERS")
        repo.deactivate_resolver.return_value = False

        with pytest.raises(BetResolutionError):
            await resolution.revoke_resolver(db, "bet-1", "creator-1", "r1")

        votes.delete_votes_by_voter.assert_not_awaited()
        db.rollback.assert_awaited_once()


# ---------------------------------------------------------------------------
# Fulfillment
# ---------------------------------------------------------------------------


def _social_bet(**kwargs) -> Bet:
    defaults = dict(
        status="RESOLVED", stake_type="SOCIAL", outcome="OPTION_1",
        stake_fulfillment_required=True, fulfillment_status="PENDING",
        social_stake_description="Loser buys pizza",
    )
    defaults.update(kwargs)
    return _make_bet(**defaults)


class TestFulfillment:
    async def test_requires_resolved_bet(self, db, repo, bus) -> None:
        repo.get_bet.return_value = _social_bet(status="CLOSED")
        svc = BetFulfillmentService(repo=repo, fulfillment_repo=AsyncMock(), bus=bus)
        with pytest.raises(FulfillmentError):
            await svc.loser_claim_fulfilled(db, "bet-1", "b")

    async def test_credit_bet_has_no_fulfillment(self, db, repo, bus) -> None:
        repo.get_bet.return_value = _social_bet(stake_fulfillment_required=False)
        svc = BetFulfillmentService(repo=repo, fulfillment_repo=AsyncMock(), bus=bus)
        with pytest.raises(FulfillmentError):
            await svc.get_fulfillment_details(db, "bet-1")

    async def test_only_losers_claim(self, db, repo, bus) -> None:
        repo.get_bet.return_value = _social_bet()
        repo.find_participation.return_value = _p("a", status="WON")
        svc = BetFulfillmentService(repo=repo, fulfillment_repo=AsyncMock(), bus=bus)
        with pytest.raises(FulfillmentError):
            await svc.loser_claim_fulfilled(db, "bet-1", "a")

    async def test_loser_claim_notifies_other_participants(self, db, repo, bus) -> None:
        fulfillments = AsyncMock()
        fulfillments.upsert_loser_claim.return_value = MagicMock(
            loser_id="b", proof_url=None, proof_description="Paid", claimed_at=None
        )
        repo.get_bet.return_value = _social_bet()
        repo.find_participation.return_value = _p("b", status="LOST", username="bob")
        repo.list_participations.return_value = [
            _p("a", status="WON"), _p("b", status="LOST"), _p("c", status="CANCELLED"),
        ]
        svc = BetFulfillmentService(repo=repo, fulfillment_repo=fulfillments, bus=bus)

        resp = await svc.loser_claim_fulfilled(db, "bet-1", "b", proof_description="Paid")

        assert resp.proof_description == "Paid"
        event = bus.publish.call_args.args[0]
        assert isinstance(event, BetFulfillmentSubmittedEvent)
        assert event.participant_ids == ["a"]
        assert event.loser_name == "bob"

    async def test_winner_confirm_progresses_status(self, db, repo, bus) -> None:
        fulfillments = AsyncMock()
        fulfillments.confirmation_exists.return_value = False
        fulfillments.count_confirmations.return_value = 1
        repo.get_bet.return_value = _social_bet()
        repo.find_participation.return_value = _p("a", status="WON")
        repo.list_participations.return_value = [
            _p("a", status="WON"), _p("c", status="WON"), _p("b", status="LOST"),
        ]
        svc = BetFulfillmentService(repo=repo, fulfillment_repo=fulfillments, bus=bus)

        resp = await svc.winner_confirm_fulfilled(db, "bet-1", "a", "Pizza was great")

        assert resp.fulfillment_status == "PARTIALLY_FULFILLED"
        assert resp.winners == 2
        repo.set_fulfillment_status.assert_awaited_once_with(
            db, "bet-1", "PARTIALLY_FULFILLED", None
        )

    async def test_double_confirm_rejected(self, db, repo, bus) -> None:
        fulfillments = AsyncMock()
        fulfillments.confirmation_exists.return_value = True
        repo.get_bet.return_value = _social_bet()
        repo.find_participation.return_value = _p("a", status="WON")
        svc = BetFulfillmentService(repo=repo, fulfillment_repo=fulfillments, bus=bus)

        with pytest.raises(AlreadyConfirmedError):
            await svc.winner_confirm_fulfilled(db, "bet-1", "a")
        fulfillments.insert_confirmation.assert_not_awaited()


# ---------------------------------------------------------------------------
# Scheduled jobs
# ---------------------------------------------------------------------------


def _session_factory(db: AsyncMock) -> MagicMock:
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = db
    return factory


def _published_types(bus: MagicMock) -> list[type]:
    return [type(call.args[0]) for call in bus.publish.call_args_list]


class TestScheduledTasks:
    def _service(self, db, repo, bus, resolution_service=None) -> BetScheduledTaskService:
        return BetScheduledTaskService(
            session_factory=_session_factory(db),
            repo=repo,
            resolution_service=resolution_service or AsyncMock(),
            bus=bus,
        )

    async def test_close_expired_bets(self, db, repo, bus) -> None:
        repo.find_open_bets_past_deadline.return_value = [_make_bet(id="b1"), _make_bet(id="b2")]
        # b2 was closed concurrently
        repo.transition_status.side_effect = [True, False]

        closed = await self._service(db, repo, bus).close_expired_bets()

        assert closed == 1
        assert _published_types(bus) == [BetDeadlineReachedEvent]

    async def test_one_failure_does_not_stop_the_job(self, db, repo, bus) -> None:
        repo.find_open_bets_past_deadline.return_value = [_make_bet(id="b1"), _make_bet(id="b2")]
        repo.transition_status.side_effect = [RuntimeError("deadlock"), True]

        closed = await self._service(db, repo, bus).close_expired_bets()

        assert closed == 1
        db.rollback.assert_awaited_once()

    async def test_voting_bet_auto_resolved(self, db, repo, bus) -> None:
        resolution_service = AsyncMock()
        resolution_service.check_and_resolve.return_value = True
        repo.find_closed_bets_past_resolve_date.return_value = [
            _make_bet(resolution_method="PARTICIPANT_VOTE")
        ]

        processed = await self._service(db, repo, bus, resolution_service).process_resolvable_bets()

        assert processed == 1
        bus.publish.assert_not_called()

    async def test_unresolved_bet_awaits_resolution(self, db, repo, bus) -> None:
        repo.find_closed_bets_past_resolve_date.return_value = [
            _make_bet(resolution_method="ASSIGNED_RESOLVERS")
        ]
        repo.list_active_resolvers.return_value = [_resolver("r1"), _resolver("r2")]

        await self._service(db, repo, bus).process_resolvable_bets()

        event = bus.publish.call_args.args[0]
        assert isinstance(event, BetAwaitingResolutionEvent)
        assert event.resolver_ids == ["r1", "r2"]

    async def test_betting_reminders(self, db, repo, bus) -> None:
        now = datetime.now(UTC)
        day = _make_bet(id="day", status="OPEN", betting_deadline=now + timedelta(hours=24))
        hour = _make_bet(id="hour", status="OPEN", betting_deadline=now + timedelta(hours=1))
        repo.find_open_bets_closing_between.side_effect = [[day], [hour], []]

        sent = await self._service(db, repo, bus).notify_betting_deadlines()

        assert sent == 2
        events = [call.args[0] for call in bus.publish.call_args_list]
        assert [(e.bet_id, e.hours_remaining) for e in events] == [("day", 24), ("hour", 1)]
        assert all(isinstance(e, BetDeadlineApproachingEvent) for e in events)
        repo.mark_reminder_sent.assert_any_await(db, "day", "betting_reminder_24h_sent_at")
        repo.mark_reminder_sent.assert_any_await(db, "hour", "betting_reminder_1h_sent_at")

    async def test_already_reminded_bets_skipped(self, db, repo, bus) -> None:
        now = datetime.now(UTC)
        day = _make_bet(
            status="OPEN", betting_deadline=now + timedelta(hours=24),
            betting_reminder_24h_sent_at=now,
        )
        repo.find_open_bets_closing_between.side_effect = [[day], [], []]

        assert await self._service(db, repo, bus).notify_betting_deadlines() == 0
        repo.mark_reminder_sent.assert_not_awaited()

    async def test_urgent_fallback(self, db, repo, bus) -> None:
        soon = _make_bet(
            status="OPEN", betting_deadline=datetime.now(UTC) + timedelta(minutes=20)
        )
        repo.find_open_bets_closing_between.side_effect = [[], [], [soon]]

        await self._service(db, repo, bus).notify_betting_deadlines()

        event = bus.publish.call_args.args[0]
        assert event.is_urgent is True
        assert event.hours_remaining == 1

    async def test_resolution_reminder(self, db, repo, bus) -> None:
        resolve_date = datetime.now(UTC) + timedelta(hours=1)
        bet = _make_bet(resolve_date=resolve_date)
        repo.find_bets_resolving_between.side_effect = [[], [bet], []]

        await self._service(db, repo, bus).notify_resolution_deadlines()

        event = bus.publish.call_args.args[0]
        assert isinstance(event, BetResolutionDeadlineApproachingEvent)
        assert event.resolve_date == resolve_date

    def test_register_jobs(self) -> None:
        scheduler = MagicMock()
        register_jobs(scheduler, MagicMock())

        ids = [call.kwargs["id"] for call in scheduler.add_job.call_args_list]
        assert ids == [
            "bets-close-expired",
            "bets-process-resolvable",
            "bets-resolution-reminders",
            "bets-betting-reminders",
        ]
