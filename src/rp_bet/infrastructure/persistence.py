"""BetRepository — bets, participations and resolvers.

Status changes are atomic UPDATE ... WHERE status IN (...) statements; a
result of 0 rows means another request already moved the bet on.

Transaction ownership: the calling application service commits.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_bet.domain.models import MAX_OPTIONS, Bet, BetParticipation, BetResolver

_BET_COLUMNS = """
    b.id, b.group_id, b.creator_id, b.title, b.description, b.bet_type, b.status,
    b.stake_type, b.resolution_method,
    b.option_1, b.option_2, b.option_3, b.option_4,
    b.fixed_stake_amount, b.minimum_bet, b.maximum_bet, b.social_stake_description,
    b.betting_deadline, b.resolve_date, b.minimum_votes_required, b.allow_creator_vote,
    b.outcome, b.total_pool, b.total_participants,
    b.pool_option_1, b.pool_option_2, b.pool_option_3, b.pool_option_4,
    b.participants_option_1, b.participants_option_2,
    b.participants_option_3, b.participants_option_4,
    b.stake_fulfillment_required, b.fulfillment_status, b.all_winners_confirmed_at,
    b.cancellation_reason,
    b.resolution_reminder_24h_sent_at, b.resolution_reminder_1h_sent_at,
    b.betting_reminder_24h_sent_at, b.betting_reminder_1h_sent_at,
    b.resolved_at, b.resolved_by, b.deleted_at, b.created_at,
    g.name AS group_name
"""

_BET_FROM = "FROM bets b JOIN groups g ON g.id = b.group_id"

_INSERT_COLUMNS = (
    "group_id", "creator_id", "title", "description", "bet_type", "status",
    "stake_type", "resolution_method",
    "option_1", "option_2", "option_3", "option_4",
    "fixed_stake_amount", "minimum_bet", "maximum_bet", "social_stake_description",
    "betting_deadline", "resolve_date", "minimum_votes_required", "allow_creator_vote",
    "stake_fulfillment_required", "fulfillment_status",
)

_UPDATABLE_COLUMNS = ("title", "description", "option_1", "option_2", "option_3", "option_4")

REMINDER_COLUMNS = (
    "resolution_reminder_24h_sent_at",
    "resolution_reminder_1h_sent_at",
    "betting_reminder_24h_sent_at",
    "betting_reminder_1h_sent_at",
)

_PARTICIPATION_COLUMNS = """
    p.id, p.bet_id, p.user_id, p.chosen_option, p.predicted_value, p.amount, p.status,
    p.potential_winnings, p.actual_winnings, p.insurance_item_id,
    p.insurance_refund_percentage, p.insurance_refund_amount, p.settled_at, p.created_at,
    u.username, u.display_name
"""

_RESOLVER_COLUMNS = "id, bet_id, user_id, assigned_by, can_vote_only, is_active, created_at"

# ---------------------------------------------------------------------------
# SQL: bets
# ---------------------------------------------------------------------------

_INSERT_BET_SQL = text(f"""
    INSERT INTO bets ({", ".join(_INSERT_COLUMNS)})
    VALUES ({", ".join(f":{c}" for c in _INSERT_COLUMNS)})
    RETURNING id
""")

_GET_BET_SQL = text(f"SELECT {_BET_COLUMNS} {_BET_FROM} WHERE b.id = :bet_id")

_LIST_GROUP_BETS_SQL = text(f"""
    SELECT {_BET_COLUMNS} {_BET_FROM}
    WHERE b.group_id = :group_id
      AND b.deleted_at IS NULL
      AND (CAST(:status AS VARCHAR) IS NULL OR b.status = :status)
    ORDER BY b.created_at DESC
    LIMIT :limit OFFSET :offset
""")

_LIST_BY_STATUS_SQL = text(f"""
    SELECT {_BET_COLUMNS} {_BET_FROM}
    WHERE b.status = :status
      AND b.deleted_at IS NULL
      AND EXISTS (
          SELECT 1 FROM group_memberships m
          WHERE m.group_id = b.group_id AND m.user_id = :user_id
            AND m.status = 'APPROVED' AND m.is_active = TRUE
      )
    ORDER BY b.betting_deadline
    LIMIT :limit OFFSET :offset
""")

_LIST_CREATED_SQL = text(f"""
    SELECT {_BET_COLUMNS} {_BET_FROM}
    WHERE b.creator_id = :creator_id AND b.deleted_at IS NULL
    ORDER BY b.created_at DESC
    LIMIT :limit OFFSET :offset
""")

_LIST_USER_BETS_SQL = text(f"""
    SELECT {_BET_COLUMNS} {_BET_FROM}
    JOIN bet_participations p ON p.bet_id = b.id
    WHERE p.user_id = :user_id
      AND p.status NOT IN ('CANCELLED', 'CREATOR')
      AND b.deleted_at IS NULL
    ORDER BY b.created_at DESC
    LIMIT :limit OFFSET :offset
""")

_TRANSITION_SQL = text("""
    UPDATE bets SET status = :to_status
    WHERE id = :bet_id AND status = ANY(CAST(:from_statuses AS VARCHAR[]))
    RETURNING id
""")

_CANCEL_SQL = text("""
    UPDATE bets SET status = 'CANCELLED', cancellation_reason = :reason
    WHERE id = :bet_id AND status IN ('OPEN', 'CLOSED')
    RETURNING id
""")

_RESOLVE_SQL = text("""
    UPDATE bets
    SET status = 'RESOLVED', outcome = :outcome, resolved_at = NOW(), resolved_by = :resolved_by
    WHERE id = :bet_id AND status IN ('OPEN', 'CLOSED')
    RETURNING id
""")

_SOFT_DELETE_SQL = text("UPDATE bets SET deleted_at = NOW() WHERE id = :bet_id")

_SET_FULFILLMENT_SQL = text("""
    UPDATE bets
    SET fulfillment_status = :status,
        all_winners_confirmed_at = :all_confirmed_at
    WHERE id = :bet_id
""")

_OPEN_PAST_DEADLINE_SQL = text(f"""
    SELECT {_BET_COLUMNS} {_BET_FROM}
    WHERE b.status = 'OPEN' AND b.deleted_at IS NULL AND b.betting_deadline <= :now
    ORDER BY b.betting_deadline
""")

_CLOSED_PAST_RESOLVE_SQL = text(f"""
    SELECT {_BET_COLUMNS} {_BET_FROM}
    WHERE b.status = 'CLOSED' AND b.deleted_at IS NULL
      AND b.resolve_date IS NOT NULL AND b.resolve_date <= :now
    ORDER BY b.resolve_date
""")

_RESOLVING_BETWEEN_SQL = text(f"""
    SELECT {_BET_COLUMNS} {_BET_FROM}
    WHERE b.status IN ('OPEN', 'CLOSED') AND b.deleted_at IS NULL
      AND b.resolve_date > :start AND b.resolve_date <= :end
    ORDER BY b.resolve_date
""")

_CLOSING_BETWEEN_SQL = text(f"""
    SELECT {_BET_COLUMNS} {_BET_FROM}
    WHERE b.status = 'OPEN' AND b.deleted_at IS NULL
      AND b.betting_deadline > :start AND b.betting_deadline <= :end
    ORDER BY b.betting_deadline
""")

# ---------------------------------------------------------------------------
# SQL: participations
# ---------------------------------------------------------------------------

_INSERT_PARTICIPATION_SQL = text("""
    INSERT INTO bet_participations (bet_id, user_id, status)
    VALUES (:bet_id, :user_id, :status)
    RETURNING id
""")

_GET_PARTICIPATION_SQL = text(f"""
    SELECT {_PARTICIPATION_COLUMNS}
    FROM bet_participations p JOIN users u ON u.id = p.user_id
    WHERE p.id = :participation_id
""")

_FIND_PARTICIPATION_SQL = text(f"""
    SELECT {_PARTICIPATION_COLUMNS}
    FROM bet_participations p JOIN users u ON u.id = p.user_id
    WHERE p.bet_id = :bet_id AND p.user_id = :user_id
""")

_LIST_PARTICIPATIONS_SQL = text(f"""
    SELECT {_PARTICIPATION_COLUMNS}
    FROM bet_participations p JOIN users u ON u.id = p.user_id
    WHERE p.bet_id = :bet_id
    ORDER BY p.created_at
""")

_SAVE_PARTICIPATION_SQL = text("""
    UPDATE bet_participations
    SET chosen_option = :chosen_option,
        predicted_value = :predicted_value,
        amount = :amount,
        status = :status,
        potential_winnings = :potential_winnings,
        actual_winnings = :actual_winnings,
        insurance_item_id = :insurance_item_id,
        insurance_refund_percentage = :insurance_refund_percentage,
        insurance_refund_amount = :insurance_refund_amount,
        settled_at = :settled_at
    WHERE id = :participation_id
""")

# ---------------------------------------------------------------------------
# SQL: resolvers
# ---------------------------------------------------------------------------

_UPSERT_RESOLVER_SQL = text(f"""
    INSERT INTO bet_resolvers (bet_id, user_id, assigned_by, can_vote_only)
    VALUES (:bet_id, :user_id, :assigned_by, :can_vote_only)
    ON CONFLICT (bet_id, user_id) DO UPDATE
        SET is_active = TRUE,
            can_vote_only = EXCLUDED.can_vote_only,
            assigned_by = EXCLUDED.assigned_by
    RETURNING {_RESOLVER_COLUMNS}
""")

_DEACTIVATE_RESOLVER_SQL = text("""
    UPDATE bet_resolvers SET is_active = FALSE
    WHERE bet_id = :bet_id AND user_id = :user_id AND is_active = TRUE
    RETURNING id
""")

_FIND_RESOLVER_SQL = text(f"""
    SELECT {_RESOLVER_COLUMNS} FROM bet_resolvers
    WHERE bet_id = :bet_id AND user_id = :user_id
""")

_LIST_RESOLVERS_SQL = text(f"""
    SELECT {_RESOLVER_COLUMNS} FROM bet_resolvers
    WHERE bet_id = :bet_id AND is_active = TRUE
    ORDER BY created_at
""")

_COUNT_RESOLVERS_SQL = text("""
    SELECT COUNT(*) FROM bet_resolvers WHERE bet_id = :bet_id AND is_active = TRUE
""")


def _opt_str(value: object) -> str | None:
    return str(value) if value is not None else None


def _row_to_bet(row: object) -> Bet:
    r: Any = row
    options = [o for o in (r.option_1, r.option_2, r.option_3, r.option_4) if o]
    return Bet(
        id=str(r.id),
        group_id=str(r.group_id),
        creator_id=str(r.creator_id),
        title=r.title,
        description=r.description,
        bet_type=r.bet_type,
        status=r.status,
        stake_type=r.stake_type,
        resolution_method=r.resolution_method,
        betting_deadline=r.betting_deadline,
        options=options,
        resolve_date=r.resolve_date,
        fixed_stake_amount=r.fixed_stake_amount,
        minimum_bet=r.minimum_bet,
        maximum_bet=r.maximum_bet,
        social_stake_description=r.social_stake_description,
        minimum_votes_required=r.minimum_votes_required,
        allow_creator_vote=r.allow_creator_vote,
        outcome=r.outcome,
        total_pool=r.total_pool,
        total_participants=r.total_participants,
        option_pools=[r.pool_option_1, r.pool_option_2, r.pool_option_3, r.pool_option_4],
        option_participants=[
            r.participants_option_1,
            r.participants_option_2,
            r.participants_option_3,
            r.participants_option_4,
        ],
        stake_fulfillment_required=r.stake_fulfillment_required,
        fulfillment_status=r.fulfillment_status,
        all_winners_confirmed_at=r.all_winners_confirmed_at,
        cancellation_reason=r.cancellation_reason,
        resolution_reminder_24h_sent_at=r.resolution_reminder_24h_sent_at,
        resolution_reminder_1h_sent_at=r.resolution_reminder_1h_sent_at,
        betting_reminder_24h_sent_at=r.betting_reminder_24h_sent_at,
        betting_reminder_1h_sent_at=r.betting_reminder_1h_sent_at,
        resolved_at=r.resolved_at,
        resolved_by=_opt_str(r.resolved_by),
        deleted_at=r.deleted_at,
        created_at=r.created_at,
        group_name=r.group_name,
    )


def _row_to_participation(row: object) -> BetParticipation:
    return BetParticipation(
        id=str(row.id),  # type: ignore[attr-defined]
        bet_id=str(row.bet_id),  # type: ignore[attr-defined]
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        chosen_option=row.chosen_option,  # type: ignore[attr-defined]
        predicted_value=row.predicted_value,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        potential_winnings=row.potential_winnings,  # type: ignore[attr-defined]
        actual_winnings=row.actual_winnings,  # type: ignore[attr-defined]
        insurance_item_id=_opt_str(row.insurance_item_id),  # type: ignore[attr-defined]
        insurance_refund_percentage=row.insurance_refund_percentage,  # type: ignore[attr-defined]
        insurance_refund_amount=row.insurance_refund_amount,  # type: ignore[attr-defined]
        settled_at=row.settled_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        username=row.username,  # type: ignore[attr-defined]
        display_name=row.display_name,  # type: ignore[attr-defined]
    )


def _row_to_resolver(row: object) -> BetResolver:
    return BetResolver(
        id=str(row.id),  # type: ignore[attr-defined]
        bet_id=str(row.bet_id),  # type: ignore[attr-defined]
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        assigned_by=_opt_str(row.assigned_by),  # type: ignore[attr-defined]
        can_vote_only=row.can_vote_only,  # type: ignore[attr-defined]
        is_active=row.is_active,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class BetRepository:
    # ------------------------------------------------------------------
    # Bets
    # ------------------------------------------------------------------

    async def insert_bet(self, db: AsyncSession, values: dict[str, Any]) -> Bet:
        params = {c: values.get(c) for c in _INSERT_COLUMNS}
        result = await db.execute(_INSERT_BET_SQL, params)
        bet_id = str(result.scalar_one())
        bet = await self.get_bet(db, bet_id)
        assert bet is not None
        return bet

    async def get_bet(self, db: AsyncSession, bet_id: str) -> Bet | None:
        result = await db.execute(_GET_BET_SQL, {"bet_id": bet_id})
        row = result.fetchone()
        return _row_to_bet(row) if row is not None else None

    async def list_group_bets(
        self, db: AsyncSession, group_id: str, status: str | None, limit: int, offset: int
    ) -> list[Bet]:
        result = await db.execute(
            _LIST_GROUP_BETS_SQL,
            {"group_id": group_id, "status": status, "limit": limit, "offset": offset},
        )
        return [_row_to_bet(r) for r in result.fetchall()]

    async def list_bets_by_status(
        self, db: AsyncSession, status: str, user_id: str, limit: int, offset: int
    ) -> list[Bet]:
        result = await db.execute(
            _LIST_BY_STATUS_SQL,
            {"status": status, "user_id": user_id, "limit": limit, "offset": offset},
        )
        return [_row_to_bet(r) for r in result.fetchall()]

    async def list_created_bets(
        self, db: AsyncSession, creator_id: str, limit: int, offset: int
    ) -> list[Bet]:
        result = await db.execute(
            _LIST_CREATED_SQL, {"creator_id": creator_id, "limit": limit, "offset": offset}
        )
        return [_row_to_bet(r) for r in result.fetchall()]

    async def list_user_bets(
        self, db: AsyncSession, user_id: str, limit: int, offset: int
    ) -> list[Bet]:
        result = await db.execute(
            _LIST_USER_BETS_SQL, {"user_id": user_id, "limit": limit, "offset": offset}
        )
        return [_row_to_bet(r) for r in result.fetchall()]

    async def update_bet(self, db: AsyncSession, bet_id: str, changes: dict[str, Any]) -> None:
        columns = [c for c in _UPDATABLE_COLUMNS if c in changes]
        if not columns:
            return
        # Column names come from _UPDATABLE_COLUMNS, never from input
        assignments = ", ".join(f"{c} = :{c}" for c in columns)
        stmt = text(f"UPDATE bets SET {assignments} WHERE id = :bet_id")
        await db.execute(stmt, {"bet_id": bet_id, **{c: changes[c] for c in columns}})

    async def transition_status(
        self, db: AsyncSession, bet_id: str, from_statuses: tuple[str, ...], to_status: str
    ) -> bool:
        result = await db.execute(
            _TRANSITION_SQL,
            {"bet_id": bet_id, "from_statuses": list(from_statuses), "to_status": to_status},
        )
        return result.fetchone() is not None

    async def mark_cancelled(self, db: AsyncSession, bet_id: str, reason: str | None) -> bool:
        result = await db.execute(_CANCEL_SQL, {"bet_id": bet_id, "reason": reason})
        return result.fetchone() is not None

    async def mark_resolved(
        self, db: AsyncSession, bet_id: str, outcome: str, resolved_by: str | None
    ) -> bool:
        result = await db.execute(
            _RESOLVE_SQL, {"bet_id": bet_id, "outcome": outcome, "resolved_by": resolved_by}
        )
        return result.fetchone() is not None

    async def soft_delete_bet(self, db: AsyncSession, bet_id: str) -> None:
        await db.execute(_SOFT_DELETE_SQL, {"bet_id": bet_id})

    async def adjust_pool(
        self, db: AsyncSession, bet_id: str, option: int | None, amount: int, participants: int
    ) -> None:
        """Add `amount` and `participants` (either may be negative) to the bet totals."""
        assignments = [
            "total_pool = GREATEST(total_pool + :amount, 0)",
            "total_participants = GREATEST(total_participants + :participants, 0)",
        ]
        if option is not None:
            if not 1 <= option <= MAX_OPTIONS:
                raise ValueError(f"option out of range: {option}")
            assignments.append(f"pool_option_{option} = GREATEST(pool_option_{option} + :amount, 0)")
            assignments.append(
                f"participants_option_{option} = "
                f"GREATEST(participants_option_{option} + :participants, 0)"
            )
        stmt = text(f"UPDATE bets SET {', '.join(assignments)} WHERE id = :bet_id")
        await db.execute(stmt, {"bet_id": bet_id, "amount": amount, "participants": participants})

    async def set_fulfillment_status(
        self,
        db: AsyncSession,
        bet_id: str,
        status: str,
        all_confirmed_at: datetime | None,
    ) -> None:
        await db.execute(
            _SET_FULFILLMENT_SQL,
            {"bet_id": bet_id, "status": status, "all_confirmed_at": all_confirmed_at},
        )

    async def mark_reminder_sent(self, db: AsyncSession, bet_id: str, reminder: str) -> None:
        if reminder not in REMINDER_COLUMNS:
            raise ValueError(f"unknown reminder column: {reminder}")
        await db.execute(text(f"UPDATE bets SET {reminder} = NOW() WHERE id = :bet_id"), {"bet_id": bet_id})

    async def find_open_bets_past_deadline(self, db: AsyncSession, now: datetime) -> list[Bet]:
        result = await db.execute(_OPEN_PAST_DEADLINE_SQL, {"now": now})
        return [_row_to_bet(r) for r in result.fetchall()]

    async def find_closed_bets_past_resolve_date(
        self, db: AsyncSession, now: datetime
    ) -> list[Bet]:
        result = await db.execute(_CLOSED_PAST_RESOLVE_SQL, {"now": now})
        return [_row_to_bet(r) for r in result.fetchall()]

    async def find_bets_resolving_between(
        self, db: AsyncSession, start: datetime, end: datetime
    ) -> list[Bet]:
        result = await db.execute(_RESOLVING_BETWEEN_SQL, {"start": start, "end": end})
        return [_row_to_bet(r) for r in result.fetchall()]

    async def find_open_bets_closing_between(
        self, db: AsyncSession, start: datetime, end: datetime
    ) -> list[Bet]:
        result = await db.execute(_CLOSING_BETWEEN_SQL, {"start": start, "end": end})
        return [_row_to_bet(r) for r in result.fetchall()]

    # ------------------------------------------------------------------
    # Participations
    # ------------------------------------------------------------------

    async def insert_participation(
        self, db: AsyncSession, bet_id: str, user_id: str, status: str
    ) -> BetParticipation:
        result = await db.execute(
            _INSERT_PARTICIPATION_SQL, {"bet_id": bet_id, "user_id": user_id, "status": status}
        )
        participation = await self.get_participation(db, str(result.scalar_one()))
        assert participation is not None
        return participation

    async def get_participation(
        self, db: AsyncSession, participation_id: str
    ) -> BetParticipation | None:
        result = await db.execute(_GET_PARTICIPATION_SQL, {"participation_id": participation_id})
        row = result.fetchone()
        return _row_to_participation(row) if row is not None else None

    async def find_participation(
        self, db: AsyncSession, bet_id: str, user_id: str
    ) -> BetParticipation | None:
        result = await db.execute(_FIND_PARTICIPATION_SQL, {"bet_id": bet_id, "user_id": user_id})
        row = result.fetchone()
        return _row_to_participation(row) if row is not None else None

    async def list_participations(self, db: AsyncSession, bet_id: str) -> list[BetParticipation]:
        result = await db.execute(_LIST_PARTICIPATIONS_SQL, {"bet_id": bet_id})
        return [_row_to_participation(r) for r in result.fetchall()]

    async def save_participation(
        self, db: AsyncSession, participation: BetParticipation
    ) -> BetParticipation:
        await db.execute(
            _SAVE_PARTICIPATION_SQL,
            {
                "participation_id": participation.id,
                "chosen_option": participation.chosen_option,
                "predicted_value": participation.predicted_value,
                "amount": participation.amount,
                "status": participation.status,
                "potential_winnings": participation.potential_winnings,
                "actual_winnings": participation.actual_winnings,
                "insurance_item_id": participation.insurance_item_id,
                "insurance_refund_percentage": participation.insurance_refund_percentage,
                "insurance_refund_amount": participation.insurance_refund_amount,
                "settled_at": participation.settled_at,
            },
        )
        return participation

    # ------------------------------------------------------------------
    # Resolvers
    # ------------------------------------------------------------------

    async def add_resolver(
        self,
        db: AsyncSession,
        bet_id: str,
        user_id: str,
        assigned_by: str | None,
        can_vote_only: bool,
    ) -> BetResolver:
        result = await db.execute(
            _UPSERT_RESOLVER_SQL,
            {
                "bet_id": bet_id,
                "user_id": user_id,
                "assigned_by": assigned_by,
                "can_vote_only": can_vote_only,
            },
        )
        return _row_to_resolver(result.fetchone())

    async def deactivate_resolver(self, db: AsyncSession, bet_id: str, user_id: str) -> bool:
        result = await db.execute(_DEACTIVATE_RESOLVER_SQL, {"bet_id": bet_id, "user_id": user_id})
        return result.fetchone() is not None

    async def find_resolver(
        self, db: AsyncSession, bet_id: str, user_id: str
    ) -> BetResolver | None:
        result = await db.execute(_FIND_RESOLVER_SQL, {"bet_id": bet_id, "user_id": user_id})
        row = result.fetchone()
        return _row_to_resolver(row) if row is not None else None

    async def list_active_resolvers(self, db: AsyncSession, bet_id: str) -> list[BetResolver]:
        result = await db.execute(_LIST_RESOLVERS_SQL, {"bet_id": bet_id})
        return [_row_to_resolver(r) for r in result.fetchall()]

    async def count_active_resolvers(self, db: AsyncSession, bet_id: str) -> int:
        result = await db.execute(_COUNT_RESOLVERS_SQL, {"bet_id": bet_id})
        return int(result.scalar_one())
