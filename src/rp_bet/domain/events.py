"""Bet domain events, published on the in-process bus after commit."""

from datetime import datetime

from src.rp_common.event_bus import BaseEvent


class BetCreatedEvent(BaseEvent):
    event_type: str = "BET_CREATED"
    bet_id: str
    group_id: str
    group_name: str
    creator_id: str
    creator_name: str
    title: str
    bet_type: str
    stake_type: str
    betting_deadline: datetime


class BetCancelledEvent(BaseEvent):
    event_type: str = "BET_CANCELLED"
    bet_id: str
    group_id: str
    group_name: str
    title: str
    cancelled_by: str
    reason: str | None = None
    refunds: dict[str, int]


class BetResolvedEvent(BaseEvent):
    event_type: str = "BET_RESOLVED"
    bet_id: str
    group_id: str
    title: str
    outcome: str
    winner_ids: list[str]
    loser_ids: list[str]
    draw_ids: list[str]
    payouts: dict[str, int]
    resolved_by: str | None = None


class BetDeadlineReachedEvent(BaseEvent):
    event_type: str = "BET_DEADLINE_REACHED"
    bet_id: str
    group_id: str
    title: str
    creator_id: str


class BetAwaitingResolutionEvent(BaseEvent):
    event_type: str = "BET_AWAITING_RESOLUTION"
    bet_id: str
    group_id: str
    title: str
    creator_id: str
    resolution_method: str
    resolver_ids: list[str]


class BetResolutionDeadlineApproachingEvent(BaseEvent):
    event_type: str = "BET_RESOLUTION_DEADLINE_APPROACHING"
    bet_id: str
    group_id: str
    title: str
    creator_id: str
    resolution_method: str
    resolve_date: datetime
    hours_remaining: int


class BetDeadlineApproachingEvent(BaseEvent):
    event_type: str = "BET_DEADLINE_APPROACHING"
    bet_id: str
    group_id: str
    group_name: str
    title: str
    betting_deadline: datetime
    hours_remaining: int
    is_urgent: bool = False


class BetFulfillmentSubmittedEvent(BaseEvent):
    event_type: str = "BET_FULFILLMENT_SUBMITTED"
    bet_id: str
    title: str
    loser_id: str
    loser_name: str
    participant_ids: list[str]
