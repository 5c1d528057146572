"""Settlement planning — decide each participation's result and payout.

Planning is pure; BetParticipationService applies the plan (credits,
statistics, row updates) inside the resolving transaction.

Pool split: stakes of DRAW participations are returned first, the rest of
the pool goes to winners pro rata to their stakes (floor division). Losers
keep nothing except an insurance refund.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field

from src.rp_bet.domain.models import BetParticipation
from src.rp_common.credits import calculate_insurance_refund, calculate_payout
from src.rp_common.enums import BetOutcome, ParticipationStatus


@dataclass
class SettlementLine:
    participation: BetParticipation
    status: ParticipationStatus
    winnings: int = 0
    insurance_refund: int = 0
    refund: int = 0

    @property
    def credit_amount(self) -> int:
        """Credits returned to the user for CREDIT stakes."""
        return self.winnings + self.insurance_refund + self.refund


@dataclass
class SettlementSummary:
    lines: list[SettlementLine] = field(default_factory=list)

    def _ids(self, status: ParticipationStatus) -> list[str]:
        return [ln.participation.user_id for ln in self.lines if ln.status == status]

    @property
    def winner_ids(self) -> list[str]:
        return self._ids(ParticipationStatus.WON)

    @property
    def loser_ids(self) -> list[str]:
        return self._ids(ParticipationStatus.LOST)

    @property
    def draw_ids(self) -> list[str]:
        return self._ids(ParticipationStatus.DRAW)

    @property
    def payouts(self) -> dict[str, int]:
        return {
            ln.participation.user_id: ln.winnings
            for ln in self.lines
            if ln.status == ParticipationStatus.WON
        }


def decide_by_option(
    participation: BetParticipation, outcome: BetOutcome
) -> ParticipationStatus:
    if outcome == BetOutcome.DRAW:
        return ParticipationStatus.DRAW
    if participation.chosen_option == outcome.option_number:
        return ParticipationStatus.WON
    return ParticipationStatus.LOST


def plan_settlement(
    participations: list[BetParticipation],
    outcome: BetOutcome,
    verdicts: Mapping[str, ParticipationStatus] | None = None,
) -> SettlementSummary:
    """Build the settlement for every ACTIVE participation.

    Args:
        participations: All participations of the bet; only ACTIVE ones settle.
        outcome: The bet outcome.
        verdicts: Explicit per-user results (winner selection, prediction
                  votes). Users missing from it lose. When None, results
                  come from each participation's chosen option.
    """
    active = [p for p in participations if p.is_active]
    statuses: dict[str, ParticipationStatus] = {}
    for p in active:
        if verdicts is None:
            statuses[p.id] = decide_by_option(p, outcome)
        else:
            statuses[p.id] = verdicts.get(p.user_id, ParticipationStatus.LOST)

    total_pool = sum(p.amount for p in active)
    draw_pool = sum(p.amount for p in active if statuses[p.id] == ParticipationStatus.DRAW)
    winning_pool = sum(p.amount for p in active if statuses[p.id] == ParticipationStatus.WON)
    distributable = total_pool - draw_pool

    summary = SettlementSummary()
    for p in active:
        status = statuses[p.id]
        line = SettlementLine(participation=p, status=status)
        if status == ParticipationStatus.WON:
            line.winnings = calculate_payout(distributable, p.amount, winning_pool)
        elif status == ParticipationStatus.LOST:
            if p.has_insurance:
                line.insurance_refund = calculate_insurance_refund(
                    p.amount, p.insurance_refund_percentage or 0
                )
        else:
            line.refund = p.amount
        summary.lines.append(line)
    return summary
