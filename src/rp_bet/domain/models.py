"""Domain models for rp_bet — pure dataclasses, no SQLAlchemy dependency.

All credit amounts are integer hundredths of a credit.
"""

from dataclasses import dataclass, field
from datetime import datetime

from src.rp_common.enums import (
    BetStatus,
    BetType,
    ParticipationStatus,
    ResolutionMethod,
    StakeType,
)

MAX_OPTIONS = 4


@dataclass
class Bet:
    id: str
    group_id: str
    creator_id: str
    title: str
    description: str | None
    bet_type: str                      # BetType value
    status: str                        # BetStatus value
    stake_type: str                    # StakeType value
    resolution_method: str             # ResolutionMethod value
    betting_deadline: datetime
    options: list[str] = field(default_factory=list)
    resolve_date: datetime | None = None
    fixed_stake_amount: int | None = None
    minimum_bet: int = 0
    maximum_bet: int | None = None
    social_stake_description: str | None = None
    minimum_votes_required: int = 1
    allow_creator_vote: bool = True
    outcome: str | None = None         # BetOutcome value
    total_pool: int = 0
    total_participants: int = 0
    option_pools: list[int] = field(default_factory=lambda: [0] * MAX_OPTIONS)
    option_participants: list[int] = field(default_factory=lambda: [0] * MAX_OPTIONS)
    stake_fulfillment_required: bool = False
    fulfillment_status: str | None = None
    all_winners_confirmed_at: datetime | None = None
    cancellation_reason: str | None = None
    resolution_reminder_24h_sent_at: datetime | None = None
    resolution_reminder_1h_sent_at: datetime | None = None
    betting_reminder_24h_sent_at: datetime | None = None
    betting_reminder_1h_sent_at: datetime | None = None
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    deleted_at: datetime | None = None
    created_at: datetime | None = None
    # Joined from groups for notifications and listings
    group_name: str | None = None

    @property
    def option_count(self) -> int:
        return len(self.options)

    @property
    def is_open(self) -> bool:
        return self.status == BetStatus.OPEN

    @property
    def is_prediction(self) -> bool:
        return self.bet_type == BetType.PREDICTION

    @property
    def is_credit(self) -> bool:
        return self.stake_type == StakeType.CREDIT

    @property
    def is_social(self) -> bool:
        return self.stake_type == StakeType.SOCIAL

    @property
    def uses_voting(self) -> bool:
        return self.resolution_method == ResolutionMethod.PARTICIPANT_VOTE

    def has_option(self, option: int) -> bool:
        return 1 <= option <= self.option_count

    def pool_for(self, option: int) -> int:
        return self.option_pools[option - 1]

    def accepts_bets_at(self, now: datetime) -> bool:
        return self.is_open and now < self.betting_deadline


@dataclass
class BetParticipation:
    id: str
    bet_id: str
    user_id: str
    status: str                        # ParticipationStatus value
    amount: int = 0
    chosen_option: int | None = None
    predicted_value: str | None = None
    potential_winnings: int = 0
    actual_winnings: int = 0
    insurance_item_id: str | None = None
    insurance_refund_percentage: int | None = None
    insurance_refund_amount: int = 0
    settled_at: datetime | None = None
    created_at: datetime | None = None
    # Joined from users for listings
    username: str | None = None
    display_name: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == ParticipationStatus.ACTIVE

    @property
    def is_creator_placeholder(self) -> bool:
        return self.status == ParticipationStatus.CREATOR

    @property
    def has_insurance(self) -> bool:
        return self.insurance_item_id is not None and bool(self.insurance_refund_percentage)

    @property
    def name(self) -> str:
        return self.display_name or self.username or self.user_id


@dataclass
class BetResolver:
    id: str
    bet_id: str
    user_id: str
    assigned_by: str | None
    can_vote_only: bool = False
    is_active: bool = True
    created_at: datetime | None = None


@dataclass
class BetResolutionVote:
    id: str
    bet_id: str
    voter_id: str
    voted_outcome: str | None          # BetOutcome value; None for winner-selection votes
    winner_user_ids: list[str] = field(default_factory=list)
    reasoning: str | None = None
    created_at: datetime | None = None


@dataclass
class PredictionResolutionVote:
    id: str
    bet_id: str
    participation_id: str
    voter_id: str
    is_correct: bool
    created_at: datetime | None = None


@dataclass
class BetFulfillment:
    id: str
    bet_id: str
    winner_id: str
    notes: str | None = None
    confirmed_at: datetime | None = None


@dataclass
class LoserFulfillmentClaim:
    id: str
    bet_id: str
    loser_id: str
    proof_url: str | None = None
    proof_description: str | None = None
    claimed_at: datetime | None = None


@dataclass
class InsuranceItem:
    id: str
    user_id: str
    tier: str                          # InsuranceTier value
    uses_remaining: int
    is_active: bool = True
    created_at: datetime | None = None

    @property
    def is_usable(self) -> bool:
        return self.is_active and self.uses_remaining > 0
