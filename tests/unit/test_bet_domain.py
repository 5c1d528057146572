"""Pure-function tests for rp_bet.domain: vote tallies, settlement, fulfillment."""

from datetime import UTC, datetime, timedelta

from src.rp_bet.domain.fulfillment import calculate_fulfillment_status
from src.rp_bet.domain.models import Bet, BetParticipation
from src.rp_bet.domain.resolution import (
    consensus_reached,
    expected_participation_votes,
    outcome_for_verdicts,
    participation_verdict,
    prediction_winner_verdicts,
    tally_outcome_votes,
)
from src.rp_bet.domain.settlement import decide_by_option, plan_settlement
from src.rp_common.enums import BetOutcome, FulfillmentStatus, ParticipationStatus

WON = ParticipationStatus.WON
LOST = ParticipationStatus.LOST
DRAW = ParticipationStatus.DRAW


def _p(user_id: str, amount: int, option: int | None = 1, **kwargs) -> BetParticipation:
    defaults = dict(
        id=f"p-{user_id}", bet_id="bet-1", user_id=user_id,
        status=ParticipationStatus.ACTIVE.value, amount=amount, chosen_option=option,
    )
    defaults.update(kwargs)
    return BetParticipation(**defaults)


class TestBetModel:
    def _bet(self, **kwargs) -> Bet:
        defaults = dict(
            id="bet-1", group_id="group-1", creator_id="user-1", title="Who wins?",
            description=None, bet_type="MULTIPLE_CHOICE", status="OPEN",
            stake_type="CREDIT", resolution_method="BET_CREATOR",
            betting_deadline=datetime.now(UTC) + timedelta(hours=1),
            options=["Red", "Blue", "Green"],
        )
        defaults.update(kwargs)
        return Bet(**defaults)

    def test_has_option_bounds(self) -> None:
        bet = self._bet()
        assert bet.has_option(1) and bet.has_option(3)
        assert not bet.has_option(0)
        assert not bet.has_option(4)

    def test_accepts_bets_before_deadline_only(self) -> None:
        bet = self._bet()
        assert bet.accepts_bets_at(datetime.now(UTC)) is True
        assert bet.accepts_bets_at(bet.betting_deadline) is False

    def test_closed_bet_rejects(self) -> None:
        assert self._bet(status="CLOSED").accepts_bets_at(datetime.now(UTC)) is False


class TestTallyOutcomeVotes:
    def test_single_leader(self) -> None:
        votes = {BetOutcome.OPTION_1: 3, BetOutcome.OPTION_2: 1}
        assert tally_outcome_votes(votes) is BetOutcome.OPTION_1

    def test_tie_is_draw(self) -> None:
        votes = {BetOutcome.OPTION_1: 2, BetOutcome.OPTION_2: 2}
        assert tally_outcome_votes(votes) is BetOutcome.DRAW

    def test_no_votes_is_draw(self) -> None:
        assert tally_outcome_votes({}) is BetOutcome.DRAW
        assert tally_outcome_votes({BetOutcome.OPTION_1: 0}) is BetOutcome.DRAW

    def test_draw_votes_can_win(self) -> None:
        votes = {BetOutcome.DRAW: 2, BetOutcome.OPTION_2: 1}
        assert tally_outcome_votes(votes) is BetOutcome.DRAW

    def test_consensus_needs_every_resolver(self) -> None:
        assert consensus_reached(2, 3) is False
        assert consensus_reached(3, 3) is True


class TestPredictionVerdicts:
    def test_majority_wins(self) -> None:
        verdicts = prediction_winner_verdicts(
            ["a", "b", "c"], [["a"], ["a", "b"], ["a"]]
        )
        assert verdicts == {"a": WON, "b": LOST, "c": LOST}

    def test_even_split_is_draw(self) -> None:
        verdicts = prediction_winner_verdicts(["a", "b"], [["a"], ["b"]])
        assert verdicts == {"a": DRAW, "b": DRAW}

    def test_no_voters_all_lose(self) -> None:
        assert prediction_winner_verdicts(["a"], []) == {"a": LOST}

    def test_participation_verdict(self) -> None:
        assert participation_verdict(2, 1) is WON
        assert participation_verdict(1, 1) is DRAW
        assert participation_verdict(1, 2) is LOST
        assert participation_verdict(0, 0) is DRAW

    def test_expected_votes_skip_own_prediction(self) -> None:
        # three resolvers, one of whom also predicted
        assert expected_participation_votes(["a", "x", "y"], ["a", "b", "c"]) == 8

    def test_outcome_for_verdicts(self) -> None:
        assert outcome_for_verdicts({"a": WON, "b": LOST}) is BetOutcome.OPTION_1
        assert outcome_for_verdicts({"a": DRAW, "b": LOST}) is BetOutcome.DRAW


class TestPlanSettlement:
    def test_pool_split_pro_rata(self) -> None:
        parts = [_p("a", 10000, 1), _p("b", 5000, 1), _p("c", 15000, 2)]
        summary = plan_settlement(parts, BetOutcome.OPTION_1)

        assert summary.payouts == {"a": 20000, "b": 10000}
        assert summary.loser_ids == ["c"]

    def test_draw_refunds_everyone(self) -> None:
        parts = [_p("a", 10000, 1), _p("b", 5000, 2)]
        summary = plan_settlement(parts, BetOutcome.DRAW)

        assert summary.draw_ids == ["a", "b"]
        assert [ln.refund for ln in summary.lines] == [10000, 5000]
        assert summary.payouts == {}

    def test_insured_loser_gets_refund(self) -> None:
        parts = [
            _p("a", 10000, 1),
            _p("b", 10000, 2, insurance_item_id="ins-1", insurance_refund_percentage=50),
        ]
        summary = plan_settlement(parts, BetOutcome.OPTION_1)

        loser = next(ln for ln in summary.lines if ln.participation.user_id == "b")
        assert loser.status is LOST
        assert loser.insurance_refund == 5000
        assert loser.credit_amount == 5000

    def test_verdict_draws_leave_the_pool(self) -> None:
        parts = [_p("a", 10000, None), _p("b", 10000, None), _p("c", 10000, None)]
        summary = plan_settlement(
            parts, BetOutcome.OPTION_1, verdicts={"a": WON, "b": DRAW}
        )

        assert summary.payouts == {"a": 20000}
        assert summary.draw_ids == ["b"]
        # missing from verdicts -> LOST
        assert summary.loser_ids == ["c"]

    def test_only_active_participations_settle(self) -> None:
        parts = [
            _p("a", 10000, 1),
            _p("creator", 0, None, status=ParticipationStatus.CREATOR.value),
            _p("gone", 5000, 1, status=ParticipationStatus.REFUNDED.value),
        ]
        summary = plan_settlement(parts, BetOutcome.OPTION_1)
        assert [ln.participation.user_id for ln in summary.lines] == ["a"]

    def test_payout_never_exceeds_pool(self) -> None:
        parts = [_p("a", 1, 1), _p("b", 1, 1), _p("c", 1, 1), _p("d", 10000, 2)]
        summary = plan_settlement(parts, BetOutcome.OPTION_1)
        assert sum(summary.payouts.values()) <= 10003

    def test_decide_by_option(self) -> None:
        assert decide_by_option(_p("a", 1, 2), BetOutcome.OPTION_2) is WON
        assert decide_by_option(_p("a", 1, 2), BetOutcome.OPTION_1) is LOST
        assert decide_by_option(_p("a", 1, 2), BetOutcome.DRAW) is DRAW


class TestFulfillmentStatus:
    def test_no_winners_is_fulfilled(self) -> None:
        assert calculate_fulfillment_status(0, 0) is FulfillmentStatus.FULFILLED

    def test_progression(self) -> None:
        assert calculate_fulfillment_status(3, 0) is FulfillmentStatus.PENDING
        assert calculate_fulfillment_status(3, 2) is FulfillmentStatus.PARTIALLY_FULFILLED
        assert calculate_fulfillment_status(3, 3) is FulfillmentStatus.FULFILLED
