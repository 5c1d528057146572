"""Vote tallying rules for consensus resolution."""

from collections.abc import Iterable, Mapping

from src.rp_common.enums import BetOutcome, ParticipationStatus


def consensus_reached(total_votes: int, active_resolvers: int) -> bool:
    """All resolvers have voted (creators voting without a resolver row count too)."""
    return total_votes >= active_resolvers


def tally_outcome_votes(vote_counts: Mapping[BetOutcome, int]) -> BetOutcome:
    """Single top outcome wins; no votes or a tie at the top is a DRAW."""
    counts = {outcome: n for outcome, n in vote_counts.items() if n > 0}
    if not counts:
        return BetOutcome.DRAW
    top = max(counts.values())
    leaders = [outcome for outcome, n in counts.items() if n == top]
    if len(leaders) != 1:
        return BetOutcome.DRAW
    return leaders[0]


def prediction_winner_verdicts(
    participant_ids: Iterable[str],
    winner_votes: Iterable[Iterable[str]],
) -> dict[str, ParticipationStatus]:
    """Per-participant verdict from resolvers' winner selections.

    Each element of `winner_votes` is one voter's set of chosen winners.
    Named by more than half of the voters -> WON; by exactly half of an
    even, non-zero voter count -> DRAW; otherwise LOST.
    """
    ballots = [set(v) for v in winner_votes]
    voters = len(ballots)
    verdicts: dict[str, ParticipationStatus] = {}
    for user_id in participant_ids:
        votes_for = sum(1 for ballot in ballots if user_id in ballot)
        if voters > 0 and votes_for * 2 > voters:
            verdicts[user_id] = ParticipationStatus.WON
        elif voters > 0 and voters % 2 == 0 and votes_for * 2 == voters:
            verdicts[user_id] = ParticipationStatus.DRAW
        else:
            verdicts[user_id] = ParticipationStatus.LOST
    return verdicts


def participation_verdict(correct: int, incorrect: int) -> ParticipationStatus:
    """Correctness votes on one prediction: >50% WON, =50% DRAW, <50% LOST, none DRAW."""
    total = correct + incorrect
    if total == 0:
        return ParticipationStatus.DRAW
    if correct * 2 > total:
        return ParticipationStatus.WON
    if correct * 2 == total:
        return ParticipationStatus.DRAW
    return ParticipationStatus.LOST


def expected_participation_votes(
    participant_ids: Iterable[str], resolver_ids: Iterable[str]
) -> int:
    """Every resolver votes on every participation except their own."""
    resolvers = set(resolver_ids)
    total = 0
    for user_id in participant_ids:
        total += len(resolvers) - (1 if user_id in resolvers else 0)
    return total


def outcome_for_verdicts(verdicts: Mapping[str, ParticipationStatus]) -> BetOutcome:
    """OPTION_1 stands in for "somebody won" on prediction bets."""
    if any(v == ParticipationStatus.WON for v in verdicts.values()):
        return BetOutcome.OPTION_1
    return BetOutcome.DRAW
