"""BetScheduledTaskService — periodic bet housekeeping run by APScheduler.

Jobs:
  close_expired_bets          OPEN bets past their betting deadline -> CLOSED
  process_resolvable_bets     CLOSED bets past their resolve date: voting bets
                              try consensus, the rest notify resolvers
  notify_resolution_deadlines 24h / 1h reminders before resolve_date
  notify_betting_deadlines    24h / 1h reminders before betting_deadline

Each job opens its own session. A failure on one bet is logged and the job
moves on to the next bet.
"""

import logging
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.rp_bet.application.resolution_service import BetResolutionService
from src.rp_bet.domain.events import (
    BetAwaitingResolutionEvent,
    BetDeadlineApproachingEvent,
    BetDeadlineReachedEvent,
    BetResolutionDeadlineApproachingEvent,
)
from src.rp_bet.domain.models import Bet
from src.rp_bet.domain.repository import BetRepositoryProtocol
from src.rp_bet.infrastructure.persistence import BetRepository
from src.rp_common.database import async_session_factory
from src.rp_common.datetime_utils import utc_now
from src.rp_common.enums import BetStatus
from src.rp_common.event_bus import InMemoryEventBus, event_bus

logger = logging.getLogger("rp.scheduler")

# Reminder windows around the nominal 24h and 1h marks
_DAY_WINDOW = (timedelta(hours=23, minutes=45), timedelta(hours=24, minutes=15))
_HOUR_WINDOW = (timedelta(minutes=45), timedelta(hours=1, minutes=15))


class BetScheduledTaskService:
    def __init__(
        self,
        session_factory: Callable[[], Any] | None = None,
        repo: BetRepositoryProtocol | None = None,
        resolution_service: BetResolutionService | None = None,
        bus: InMemoryEventBus | None = None,
    ) -> None:
        self._session_factory = session_factory or async_session_factory
        self._repo: BetRepositoryProtocol = repo or BetRepository()
        self._resolution = resolution_service or BetResolutionService(repo=self._repo)
        self._bus = bus or event_bus

    # ------------------------------------------------------------------
    # Betting deadline
    # ------------------------------------------------------------------

    async def close_expired_bets(self) -> int:
        closed = 0
        async with self._session_factory() as db:
            bets = await self._repo.find_open_bets_past_deadline(db, utc_now())
            for bet in bets:
                try:
                    ok = await self._repo.transition_status(
                        db, bet.id, (BetStatus.OPEN.value,), BetStatus.CLOSED.value
                    )
                    await db.commit()
                except Exception:
                    await db.rollback()
                    logger.error("Failed to close bet %s", bet.id, exc_info=True)
                    continue
                if ok:
                    closed += 1
                    self._bus.publish(
                        BetDeadlineReachedEvent(
                            bet_id=bet.id,
                            group_id=bet.group_id,
                            title=bet.title,
                            creator_id=bet.creator_id,
                        )
                    )
        if closed:
            logger.info("Closed %d expired bets", closed)
        return closed

    # ------------------------------------------------------------------
    # Resolution deadline
    # ------------------------------------------------------------------

    async def process_resolvable_bets(self) -> int:
        processed = 0
        async with self._session_factory() as db:
            bets = await self._repo.find_closed_bets_past_resolve_date(db, utc_now())
            for bet in bets:
                try:
                    await self._process_resolution_deadline(db, bet)
                    processed += 1
                except Exception:
                    await db.rollback()
                    logger.error(
                        "Failed to process resolution deadline for bet %s", bet.id, exc_info=True
                    )
        return processed

    async def _process_resolution_deadline(self, db: AsyncSession, bet: Bet) -> None:
        if bet.uses_voting:
            if await self._resolution.check_and_resolve(db, bet, None):
                logger.info("Bet %s auto-resolved by participant vote", bet.id)
                return
            logger.info("Bet %s passed its resolve date without consensus", bet.id)
        resolvers = await self._repo.list_active_resolvers(db, bet.id)
        self._bus.publish(
            BetAwaitingResolutionEvent(
                bet_id=bet.id,
                group_id=bet.group_id,
                title=bet.title,
                creator_id=bet.creator_id,
                resolution_method=bet.resolution_method,
                resolver_ids=[r.user_id for r in resolvers],
            )
        )

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    async def notify_resolution_deadlines(self) -> int:
        return await self._send_reminders(
            finder=self._repo.find_bets_resolving_between,
            day_column="resolution_reminder_24h_sent_at",
            hour_column="resolution_reminder_1h_sent_at",
            publish=self._publish_resolution_reminder,
        )

    async def notify_betting_deadlines(self) -> int:
        return await self._send_reminders(
            finder=self._repo.find_open_bets_closing_between,
            day_column="betting_reminder_24h_sent_at",
            hour_column="betting_reminder_1h_sent_at",
            publish=self._publish_betting_reminder,
        )

    async def _send_reminders(
        self,
        finder: Callable[..., Any],
        day_column: str,
        hour_column: str,
        publish: Callable[[Bet, int, bool], None],
    ) -> int:
        now = utc_now()
        sent = 0
        async with self._session_factory() as db:
            # 24 hour reminders
            for bet in await finder(db, now + _DAY_WINDOW[0], now + _DAY_WINDOW[1]):
                if getattr(bet, day_column) is not None:
                    continue
                if await self._stamp(db, bet, day_column):
                    publish(bet, 24, False)
                    sent += 1

            # 1 hour reminders
            for bet in await finder(db, now + _HOUR_WINDOW[0], now + _HOUR_WINDOW[1]):
                if getattr(bet, hour_column) is not None:
                    continue
                if await self._stamp(db, bet, hour_column):
                    publish(bet, 1, False)
                    sent += 1

            # Urgent fallback: under an hour left and no reminder at all yet
            for bet in await finder(db, now, now + timedelta(hours=1)):
                if getattr(bet, day_column) is not None or getattr(bet, hour_column) is not None:
                    continue
                if await self._stamp(db, bet, hour_column):
                    publish(bet, 1, True)
                    sent += 1
        if sent:
            logger.info("Sent %d deadline reminders (%s)", sent, hour_column)
        return sent

    async def _stamp(self, db: AsyncSession, bet: Bet, column: str) -> bool:
        try:
            await self._repo.mark_reminder_sent(db, bet.id, column)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.error("Failed to record %s for bet %s", column, bet.id, exc_info=True)
            return False
        setattr(bet, column, utc_now())
        return True

    def _publish_resolution_reminder(self, bet: Bet, hours: int, urgent: bool) -> None:
        if bet.resolve_date is None:
            return
        self._bus.publish(
            BetResolutionDeadlineApproachingEvent(
                bet_id=bet.id,
                group_id=bet.group_id,
                title=bet.title,
                creator_id=bet.creator_id,
                resolution_method=bet.resolution_method,
                resolve_date=bet.resolve_date,
                hours_remaining=hours,
            )
        )

    def _publish_betting_reminder(self, bet: Bet, hours: int, urgent: bool) -> None:
        self._bus.publish(
            BetDeadlineApproachingEvent(
                bet_id=bet.id,
                group_id=bet.group_id,
                group_name=bet.group_name or "",
                title=bet.title,
                betting_deadline=bet.betting_deadline,
                hours_remaining=hours,
                is_urgent=urgent or hours <= 1,
            )
        )


def register_jobs(scheduler: AsyncIOScheduler, service: BetScheduledTaskService) -> None:
    """Add the bet housekeeping jobs to an AsyncIOScheduler."""
    jobs = [
        ("bets-close-expired", service.close_expired_bets, settings.CLOSE_EXPIRED_INTERVAL_SECONDS),
        (
            "bets-process-resolvable",
            service.process_resolvable_bets,
            settings.PROCESS_RESOLVABLE_INTERVAL_SECONDS,
        ),
        (
            "bets-resolution-reminders",
            service.notify_resolution_deadlines,
            settings.REMINDER_INTERVAL_SECONDS,
        ),
        (
            "bets-betting-reminders",
            service.notify_betting_deadlines,
            settings.REMINDER_INTERVAL_SECONDS,
        ),
    ]
    for job_id, func, seconds in jobs:
        scheduler.add_job(
            func,
            IntervalTrigger(seconds=seconds),
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Registered job %s (every %ds)", job_id, seconds)
