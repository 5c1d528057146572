"""Subscriber logic for bet-domain events: turn each event into notifications."""

import logging

from src.rp_bet.domain.events import (
    BetAwaitingResolutionEvent,
    BetCancelledEvent,
    BetCreatedEvent,
    BetDeadlineApproachingEvent,
    BetFulfillmentSubmittedEvent,
    BetResolutionDeadlineApproachingEvent,
    BetResolvedEvent,
)
from src.rp_bet.domain.repository import BetRepositoryProtocol
from src.rp_bet.infrastructure.persistence import BetRepository
from src.rp_common.credits import credits_to_display
from src.rp_common.enums import (
    NotificationPriority,
    NotificationType,
    ParticipationStatus,
    ResolutionMethod,
)
from src.rp_group.domain.repository import GroupRepositoryProtocol
from src.rp_group.infrastructure.persistence import GroupRepository
from src.rp_notification.event_handlers.notifier import Notifier

logger = logging.getLogger("rp.listener.bet")

_BET_ENTITY = "BET"


def bet_url(bet_id: str) -> str:
    return f"/bets/{bet_id}"


class BetEventHandlers:
    def __init__(
        self,
        notifier: Notifier | None = None,
        bet_repo: BetRepositoryProtocol | None = None,
        group_repo: GroupRepositoryProtocol | None = None,
    ) -> None:
        self._notifier = notifier or Notifier()
        self._bet_repo: BetRepositoryProtocol = bet_repo or BetRepository()
        self._group_repo: GroupRepositoryProtocol = group_repo or GroupRepository()

    async def on_bet_created(self, event: BetCreatedEvent) -> None:
        async with self._notifier.session() as db:
            member_ids = await self._group_repo.list_active_member_ids(db, event.group_id)
            recipients = [uid for uid in member_ids if uid != event.creator_id]
            sent = await self._notifier.notify_many(
                db,
                recipients,
                notification_type=NotificationType.BET_CREATED,
                title=f"New Bet in {event.group_name}",
                message=f"{event.creator_name} created a bet: {event.title}",
                action_url=bet_url(event.bet_id),
                related_entity_id=event.bet_id,
                related_entity_type=_BET_ENTITY,
            )
        logger.info("BET_CREATED bet=%s notified=%d", event.bet_id, sent)

    async def on_bet_cancelled(self, event: BetCancelledEvent) -> None:
        message = f'The bet "{event.title}" was cancelled'
        if event.reason:
            message += f": {event.reason}"
        async with self._notifier.session() as db:
            sent = 0
            for user_id, refund in event.refunds.items():
                if user_id == event.cancelled_by:
                    continue
                body = message
                if refund > 0:
                    body += f". {credits_to_display(refund)} credits refunded."
                if await self._notifier.notify(
                    db,
                    user_id,
                    notification_type=NotificationType.BET_CANCELLED,
                    title=f"Bet Cancelled: {event.group_name}",
                    message=body,
                    priority=NotificationPriority.HIGH,
                    action_url=bet_url(event.bet_id),
                    related_entity_id=event.bet_id,
                    related_entity_type=_BET_ENTITY,
                ):
                    sent += 1
        logger.info("BET_CANCELLED bet=%s notified=%d", event.bet_id, sent)

    async def on_resolution_deadline_approaching(
        self, event: BetResolutionDeadlineApproachingEvent
    ) -> None:
        if event.hours_remaining <= 1:
            title = "Urgent: Bet Resolution Needed in 1 Hour"
            priority = NotificationPriority.HIGH
        else:
            title = f"Bet Resolution Reminder: {event.title}"
            priority = NotificationPriority.NORMAL
        message = (
            f'"{event.title}" must be resolved within {event.hours_remaining} hour'
            f'{"" if event.hours_remaining == 1 else "s"}'
        )
        async with self._notifier.session() as db:
            recipients = [event.creator_id]
            if event.resolution_method == ResolutionMethod.ASSIGNED_RESOLVERS:
                resolvers = await self._bet_repo.list_active_resolvers(db, event.bet_id)
                recipients = [r.user_id for r in resolvers if not r.can_vote_only] or recipients
            await self._notifier.notify_many(
                db,
                recipients,
                notification_type=NotificationType.BET_RESOLUTION_REMINDER,
                title=title,
                message=message,
                priority=priority,
                action_url=bet_url(event.bet_id),
                related_entity_id=event.bet_id,
                related_entity_type=_BET_ENTITY,
            )

    async def on_betting_deadline_approaching(self, event: BetDeadlineApproachingEvent) -> None:
        if event.hours_remaining <= 1 or event.is_urgent:
            title = "Last Call: Bet Closing in 1 Hour"
            priority = NotificationPriority.HIGH
        else:
            title = f"Bet Closing Soon in {event.group_name}"
            priority = NotificationPriority.NORMAL
        message = f'Betting on "{event.title}" closes soon. Place your bet before it\'s too late!'
        async with self._notifier.session() as db:
            member_ids = await self._group_repo.list_active_member_ids(db, event.group_id)
            participations = await self._bet_repo.list_participations(db, event.bet_id)
            already_in = {
                p.user_id for p in participations if p.status == ParticipationStatus.ACTIVE
            }
            sent = await self._notifier.notify_many(
                db,
                [uid for uid in member_ids if uid not in already_in],
                notification_type=NotificationType.BET_DEADLINE,
                title=title,
                message=message,
                priority=priority,
                action_url=bet_url(event.bet_id),
                related_entity_id=event.bet_id,
                related_entity_type=_BET_ENTITY,
            )
        logger.info("BET_DEADLINE_APPROACHING bet=%s notified=%d", event.bet_id, sent)

    async def on_awaiting_resolution(self, event: BetAwaitingResolutionEvent) -> None:
        async with self._notifier.session() as db:
            await self._notifier.notify_many(
                db,
                [event.creator_id, *event.resolver_ids],
                notification_type=NotificationType.BET_RESOLUTION_REMINDER,
                title=f"Bet Awaiting Resolution: {event.title}",
                message=f'The resolve date for "{event.title}" has passed. Please resolve it.',
                priority=NotificationPriority.HIGH,
                action_url=bet_url(event.bet_id),
                related_entity_id=event.bet_id,
                related_entity_type=_BET_ENTITY,
            )

    async def on_bet_resolved(self, event: BetResolvedEvent) -> None:
        winners = set(event.winner_ids)
        async with self._notifier.session() as db:
            for user_id in dict.fromkeys([*event.winner_ids, *event.loser_ids, *event.draw_ids]):
                if user_id == event.resolved_by:
                    continue
                if user_id in winners:
                    payout = event.payouts.get(user_id, 0)
                    message = f'You won "{event.title}"!'
                    if payout > 0:
                        message += f" {credits_to_display(payout)} credits added to your balance."
                    await self._notifier.notify(
                        db,
                        user_id,
                        notification_type=NotificationType.BET_RESULT,
                        title=f"You Won: {event.title}",
                        message=message,
                        priority=NotificationPriority.HIGH,
                        action_url=bet_url(event.bet_id),
                        related_entity_id=event.bet_id,
                        related_entity_type=_BET_ENTITY,
                    )
                else:
                    outcome = "ended in a draw" if user_id in event.draw_ids else "did not go your way"
                    await self._notifier.notify(
                        db,
                        user_id,
                        notification_type=NotificationType.BET_RESULT,
                        title=f"Bet Resolved: {event.title}",
                        message=f'"{event.title}" {outcome}.',
                        action_url=bet_url(event.bet_id),
                        related_entity_id=event.bet_id,
                        related_entity_type=_BET_ENTITY,
                    )

    async def on_fulfillment_submitted(self, event: BetFulfillmentSubmittedEvent) -> None:
        async with self._notifier.session() as db:
            await self._notifier.notify_many(
                db,
                [uid for uid in event.participant_ids if uid != event.loser_id],
                notification_type=NotificationType.BET_FULFILLMENT_SUBMITTED,
                title="Fulfillment Submitted",
                message=f'{event.loser_name} says they fulfilled their stake for "{event.title}"',
                priority=NotificationPriority.HIGH,
                action_url=bet_url(event.bet_id),
                related_entity_id=event.bet_id,
                related_entity_type=_BET_ENTITY,
            )
