"""Repository Protocols for rp_bet.

Unit tests inject mocks that conform to these Protocols.
"""

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_bet.domain.models import (
    Bet,
    BetFulfillment,
    BetParticipation,
    BetResolutionVote,
    BetResolver,
    InsuranceItem,
    LoserFulfillmentClaim,
)


class BetRepositoryProtocol(Protocol):
    # --- bets ---
    async def insert_bet(self, db: AsyncSession, values: dict[str, Any]) -> Bet: ...

    async def get_bet(self, db: AsyncSession, bet_id: str) -> Bet | None: ...

    async def list_group_bets(
        self, db: AsyncSession, group_id: str, status: str | None, limit: int, offset: int
    ) -> list[Bet]: ...

    async def list_bets_by_status(
        self, db: AsyncSession, status: str, user_id: str, limit: int, offset: int
    ) -> list[Bet]: ...

    async def list_created_bets(
        self, db: AsyncSession, creator_id: str, limit: int, offset: int
    ) -> list[Bet]: ...

    async def list_user_bets(
        self, db: AsyncSession, user_id: str, limit: int, offset: int
    ) -> list[Bet]: ...

    async def update_bet(self, db: AsyncSession, bet_id: str, changes: dict[str, Any]) -> None: ...

    async def transition_status(
        self, db: AsyncSession, bet_id: str, from_statuses: tuple[str, ...], to_status: str
    ) -> bool: ...

    async def mark_cancelled(self, db: AsyncSession, bet_id: str, reason: str | None) -> bool: ...

    async def mark_resolved(
        self, db: AsyncSession, bet_id: str, outcome: str, resolved_by: str | None
    ) -> bool: ...

    async def soft_delete_bet(self, db: AsyncSession, bet_id: str) -> None: ...

    async def adjust_pool(
        self, db: AsyncSession, bet_id: str, option: int | None, amount: int, participants: int
    ) -> None: ...

    async def set_fulfillment_status(
        self,
        db: AsyncSession,
        bet_id: str,
        status: str,
        all_confirmed_at: datetime | None,
    ) -> None: ...

    async def mark_reminder_sent(self, db: AsyncSession, bet_id: str, reminder: str) -> None: ...

    async def find_open_bets_past_deadline(
        self, db: AsyncSession, now: datetime
    ) -> list[Bet]: ...

    async def find_closed_bets_past_resolve_date(
        self, db: AsyncSession, now: datetime
    ) -> list[Bet]: ...

    async def find_bets_resolving_between(
        self, db: AsyncSession, start: datetime, end: datetime
    ) -> list[Bet]: ...

    async def find_open_bets_closing_between(
        self, db: AsyncSession, start: datetime, end: datetime
    ) -> list[Bet]: ...

    # --- participations ---
    async def insert_participation(
        self, db: AsyncSession, bet_id: str, user_id: str, status: str
    ) -> BetParticipation: ...

    async def get_participation(
        self, db: AsyncSession, participation_id: str
    ) -> BetParticipation | None: ...

    async def find_participation(
        self, db: AsyncSession, bet_id: str, user_id: str
    ) -> BetParticipation | None: ...

    async def list_participations(
        self, db: AsyncSession, bet_id: str
    ) -> list[BetParticipation]: ...

    async def save_participation(
        self, db: AsyncSession, participation: BetParticipation
    ) -> BetParticipation: ...

    # --- resolvers ---
    async def add_resolver(
        self,
        db: AsyncSession,
        bet_id: str,
        user_id: str,
        assigned_by: str | None,
        can_vote_only: bool,
    ) -> BetResolver: ...

    async def deactivate_resolver(self, db: AsyncSession, bet_id: str, user_id: str) -> bool: ...

    async def find_resolver(
        self, db: AsyncSession, bet_id: str, user_id: str
    ) -> BetResolver | None: ...

    async def list_active_resolvers(self, db: AsyncSession, bet_id: str) -> list[BetResolver]: ...

    async def count_active_resolvers(self, db: AsyncSession, bet_id: str) -> int: ...


class VoteRepositoryProtocol(Protocol):
    async def upsert_outcome_vote(
        self,
        db: AsyncSession,
        bet_id: str,
        voter_id: str,
        outcome: str | None,
        reasoning: str | None,
    ) -> BetResolutionVote: ...

    async def replace_vote_winners(
        self, db: AsyncSession, vote_id: str, winner_user_ids: list[str]
    ) -> None: ...

    async def count_votes_by_outcome(self, db: AsyncSession, bet_id: str) -> dict[str, int]: ...

    async def list_votes(self, db: AsyncSession, bet_id: str) -> list[BetResolutionVote]: ...

    async def upsert_participation_vote(
        self,
        db: AsyncSession,
        bet_id: str,
        participation_id: str,
        voter_id: str,
        is_correct: bool,
    ) -> None: ...

    async def participation_vote_distribution(
        self, db: AsyncSession, bet_id: str
    ) -> dict[str, tuple[int, int]]: ...

    async def count_participation_votes(self, db: AsyncSession, bet_id: str) -> int: ...

    async def delete_votes_by_voter(self, db: AsyncSession, bet_id: str, voter_id: str) -> int: ...


class FulfillmentRepositoryProtocol(Protocol):
    async def upsert_loser_claim(
        self,
        db: AsyncSession,
        bet_id: str,
        loser_id: str,
        proof_url: str | None,
        proof_description: str | None,
    ) -> LoserFulfillmentClaim: ...

    async def list_loser_claims(
        self, db: AsyncSession, bet_id: str
    ) -> list[LoserFulfillmentClaim]: ...

    async def confirmation_exists(self, db: AsyncSession, bet_id: str, winner_id: str) -> bool: ...

    async def insert_confirmation(
        self, db: AsyncSession, bet_id: str, winner_id: str, notes: str | None
    ) -> BetFulfillment: ...

    async def count_confirmations(self, db: AsyncSession, bet_id: str) -> int: ...

    async def list_confirmations(self, db: AsyncSession, bet_id: str) -> list[BetFulfillment]: ...


class InsuranceRepositoryProtocol(Protocol):
    async def get_item(self, db: AsyncSession, item_id: str) -> InsuranceItem | None: ...

    async def consume_use(self, db: AsyncSession, item_id: str, user_id: str) -> bool: ...

    async def restore_use(self, db: AsyncSession, item_id: str) -> None: ...

    async def list_available(self, db: AsyncSession, user_id: str) -> list[InsuranceItem]: ...

    async def insert_item(
        self, db: AsyncSession, user_id: str, tier: str, uses: int
    ) -> InsuranceItem: ...
