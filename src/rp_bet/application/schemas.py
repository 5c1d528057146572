"""Pydantic schemas for the rp_bet API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from src.rp_bet.domain.models import (
    MAX_OPTIONS,
    Bet,
    BetFulfillment,
    BetParticipation,
    BetResolver,
    InsuranceItem,
    LoserFulfillmentClaim,
)
from src.rp_common.enums import BetOutcome, BetType, InsuranceTier, ResolutionMethod, StakeType


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateBetRequest(BaseModel):
    group_id: UUID
    title: str = Field(..., min_length=3, max_length=200)
    description: str | None = Field(None, max_length=1000)
    bet_type: BetType
    stake_type: StakeType = StakeType.CREDIT
    resolution_method: ResolutionMethod = ResolutionMethod.SELF
    options: list[str] = Field(default_factory=list, max_length=MAX_OPTIONS)
    fixed_stake_amount: int | None = Field(None, ge=1)
    minimum_bet: int = Field(0, ge=0)
    maximum_bet: int | None = Field(None, ge=1)
    social_stake_description: str | None = Field(None, max_length=500)
    betting_deadline: datetime
    resolve_date: datetime | None = None
    minimum_votes_required: int = Field(1, ge=1)
    allow_creator_vote: bool = True
    resolver_ids: list[UUID] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Title must be at least 3 characters")
        return v

    @field_validator("options")
    @classmethod
    def strip_options(cls, v: list[str]) -> list[str]:
        options = [o.strip() for o in v]
        if any(not o or len(o) > 100 for o in options):
            raise ValueError("Options must be 1-100 characters")
        return options


class UpdateBetRequest(BaseModel):
    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, max_length=1000)
    options: list[str] | None = Field(None, max_length=MAX_OPTIONS)


class CancelBetRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class PlaceBetRequest(BaseModel):
    chosen_option: int | None = Field(None, ge=1, le=MAX_OPTIONS)
    predicted_value: str | None = Field(None, max_length=500)
    amount: int = Field(0, ge=0)
    insurance_item_id: UUID | None = None


class ResolveBetRequest(BaseModel):
    outcome: BetOutcome
    reasoning: str | None = Field(None, max_length=1000)


class ResolveByWinnersRequest(BaseModel):
    winner_user_ids: list[UUID] = Field(..., min_length=1)
    reasoning: str | None = Field(None, max_length=1000)


class ResolutionVoteRequest(BaseModel):
    outcome: BetOutcome
    reasoning: str | None = Field(None, max_length=1000)


class PredictionVoteRequest(BaseModel):
    winner_user_ids: list[UUID] = Field(default_factory=list)
    reasoning: str | None = Field(None, max_length=1000)


class ParticipationVoteRequest(BaseModel):
    participation_id: UUID
    is_correct: bool


class AssignResolverRequest(BaseModel):
    user_id: UUID
    can_vote_only: bool = False


class GrantInsuranceRequest(BaseModel):
    user_id: UUID
    tier: InsuranceTier
    uses: int = Field(1, ge=1, le=100)


class LoserClaimRequest(BaseModel):
    proof_url: str | None = Field(None, max_length=500)
    proof_description: str | None = Field(None, max_length=1000)


class WinnerConfirmRequest(BaseModel):
    notes: str | None = Field(None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ParticipationResponse(BaseModel):
    id: str
    bet_id: str
    user_id: str
    username: str | None
    display_name: str | None
    chosen_option: int | None
    predicted_value: str | None
    amount: int
    status: str
    potential_winnings: int
    actual_winnings: int
    insurance_item_id: str | None
    insurance_refund_percentage: int | None
    insurance_refund_amount: int
    settled_at: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, p: BetParticipation) -> "ParticipationResponse":
        return cls(
            id=p.id,
            bet_id=p.bet_id,
            user_id=p.user_id,
            username=p.username,
            display_name=p.display_name or p.username,
            chosen_option=p.chosen_option,
            predicted_value=p.predicted_value,
            amount=p.amount,
            status=p.status,
            potential_winnings=p.potential_winnings,
            actual_winnings=p.actual_winnings,
            insurance_item_id=p.insurance_item_id,
            insurance_refund_percentage=p.insurance_refund_percentage,
            insurance_refund_amount=p.insurance_refund_amount,
            settled_at=_iso(p.settled_at),
            created_at=_iso(p.created_at),
        )


class BetOptionResponse(BaseModel):
    number: int
    text: str
    pool: int
    participants: int


class BetResponse(BaseModel):
    id: str
    group_id: str
    group_name: str | None
    creator_id: str
    title: str
    description: str | None
    bet_type: str
    status: str
    stake_type: str
    resolution_method: str
    options: list[BetOptionResponse]
    fixed_stake_amount: int | None
    minimum_bet: int
    maximum_bet: int | None
    social_stake_description: str | None
    betting_deadline: str
    resolve_date: str | None
    minimum_votes_required: int
    allow_creator_vote: bool
    outcome: str | None
    total_pool: int
    total_participants: int
    stake_fulfillment_required: bool
    fulfillment_status: str | None
    cancellation_reason: str | None
    resolved_at: str | None
    created_at: str | None
    my_participation: ParticipationResponse | None = None

    @classmethod
    def from_domain(
        cls, bet: Bet, participation: BetParticipation | None = None
    ) -> "BetResponse":
        options = [
            BetOptionResponse(
                number=i + 1,
                text=text,
                pool=bet.option_pools[i],
                participants=bet.option_participants[i],
            )
            for i, text in enumerate(bet.options)
        ]
        return cls(
            id=bet.id,
            group_id=bet.group_id,
            group_name=bet.group_name,
            creator_id=bet.creator_id,
            title=bet.title,
            description=bet.description,
            bet_type=bet.bet_type,
            status=bet.status,
            stake_type=bet.stake_type,
            resolution_method=bet.resolution_method,
            options=options,
            fixed_stake_amount=bet.fixed_stake_amount,
            minimum_bet=bet.minimum_bet,
            maximum_bet=bet.maximum_bet,
            social_stake_description=bet.social_stake_description,
            betting_deadline=bet.betting_deadline.isoformat(),
            resolve_date=_iso(bet.resolve_date),
            minimum_votes_required=bet.minimum_votes_required,
            allow_creator_vote=bet.allow_creator_vote,
            outcome=bet.outcome,
            total_pool=bet.total_pool,
            total_participants=bet.total_participants,
            stake_fulfillment_required=bet.stake_fulfillment_required,
            fulfillment_status=bet.fulfillment_status,
            cancellation_reason=bet.cancellation_reason,
            resolved_at=_iso(bet.resolved_at),
            created_at=_iso(bet.created_at),
            my_participation=(
                ParticipationResponse.from_domain(participation) if participation else None
            ),
        )


class BetStatsResponse(BaseModel):
    bet_id: str
    status: str
    total_pool: int
    total_participants: int
    options: list[BetOptionResponse]
    active_participations: int
    cancelled_participations: int


class CancelBetResponse(BaseModel):
    bet_id: str
    status: str
    reason: str | None
    refunds: dict[str, int]


class ResolutionResultResponse(BaseModel):
    bet_id: str
    outcome: str
    winner_ids: list[str]
    loser_ids: list[str]
    draw_ids: list[str]
    payouts: dict[str, int]


class VoteResultResponse(BaseModel):
    bet_id: str
    vote_recorded: bool = True
    resolved: bool
    result: ResolutionResultResponse | None = None


class VoteCountsResponse(BaseModel):
    bet_id: str
    counts: dict[str, int]
    total_votes: int
    active_resolvers: int


class ResolverResponse(BaseModel):
    id: str
    bet_id: str
    user_id: str
    assigned_by: str | None
    can_vote_only: bool
    is_active: bool

    @classmethod
    def from_domain(cls, r: BetResolver) -> "ResolverResponse":
        return cls(
            id=r.id,
            bet_id=r.bet_id,
            user_id=r.user_id,
            assigned_by=r.assigned_by,
            can_vote_only=r.can_vote_only,
            is_active=r.is_active,
        )


class CanResolveResponse(BaseModel):
    bet_id: str
    can_resolve: bool
    can_vote: bool


class InsuranceItemResponse(BaseModel):
    id: str
    tier: str
    refund_percentage: int
    uses_remaining: int
    is_active: bool

    @classmethod
    def from_domain(cls, item: InsuranceItem) -> "InsuranceItemResponse":
        return cls(
            id=item.id,
            tier=item.tier,
            refund_percentage=InsuranceTier(item.tier).refund_percentage,
            uses_remaining=item.uses_remaining,
            is_active=item.is_active,
        )


class LoserClaimResponse(BaseModel):
    loser_id: str
    proof_url: str | None
    proof_description: str | None
    claimed_at: str | None

    @classmethod
    def from_domain(cls, c: LoserFulfillmentClaim) -> "LoserClaimResponse":
        return cls(
            loser_id=c.loser_id,
            proof_url=c.proof_url,
            proof_description=c.proof_description,
            claimed_at=_iso(c.claimed_at),
        )


class ConfirmationResponse(BaseModel):
    winner_id: str
    notes: str | None
    confirmed_at: str | None

    @classmethod
    def from_domain(cls, f: BetFulfillment) -> "ConfirmationResponse":
        return cls(winner_id=f.winner_id, notes=f.notes, confirmed_at=_iso(f.confirmed_at))


class FulfillmentWinner(BaseModel):
    user_id: str
    name: str
    confirmed: bool


class FulfillmentLoser(BaseModel):
    user_id: str
    name: str
    claim: LoserClaimResponse | None = None


class FulfillmentDetailsResponse(BaseModel):
    bet_id: str
    social_stake_description: str | None
    fulfillment_status: str | None
    all_winners_confirmed_at: str | None
    winners: list[FulfillmentWinner]
    losers: list[FulfillmentLoser]
    confirmations: list[ConfirmationResponse]


class FulfillmentStatusResponse(BaseModel):
    bet_id: str
    fulfillment_status: str
    confirmations: int
    winners: int
