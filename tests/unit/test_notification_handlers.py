"""Unit tests for the Notifier, the bet/group event handlers and their registration."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.rp_bet.domain.events import (
    BetCancelledEvent,
    BetCreatedEvent,
    BetDeadlineApproachingEvent,
    BetFulfillmentSubmittedEvent,
    BetResolutionDeadlineApproachingEvent,
    BetResolvedEvent,
)
from src.rp_bet.domain.models import BetParticipation, BetResolver
from src.rp_common.enums import NotificationPriority, NotificationType
from src.rp_common.event_bus import InMemoryEventBus
from src.rp_group.domain.events import (
    GroupDeletedEvent,
    GroupJoinRequestEvent,
    GroupMemberJoinedEvent,
    GroupMemberLeftEvent,
)
from src.rp_notification.event_handlers.bet_handlers import BetEventHandlers
from src.rp_notification.event_handlers.group_handlers import GroupEventHandlers
from src.rp_notification.event_handlers.notifier import Notifier
from src.rp_notification.event_handlers.registry import register_event_handlers


def _session_factory(db: AsyncMock) -> MagicMock:
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = db
    return factory


class _RecordingNotifier:
    """Stand-in for Notifier that records every notify call."""

    def __init__(self) -> None:
        self.db = AsyncMock()
        self.calls: list[dict] = []
        self._factory = _session_factory(self.db)

    def session(self):
        return self._factory()

    async def notify(self, db, user_id, **kwargs) -> bool:
        self.calls.append({"user_id": user_id, **kwargs})
        return True

    async def notify_many(self, db, user_ids, **kwargs) -> int:
        sent = 0
        for user_id in dict.fromkeys(user_ids):
            if await self.notify(db, user_id, **kwargs):
                sent += 1
        return sent

    def recipients(self) -> list[str]:
        return [c["user_id"] for c in self.calls]

    def for_user(self, user_id: str) -> dict:
        return next(c for c in self.calls if c["user_id"] == user_id)


@pytest.fixture
def notifier() -> _RecordingNotifier:
    return _RecordingNotifier()


@pytest.fixture
def bet_repo() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def group_repo() -> AsyncMock:
    return AsyncMock()


# ---------------------------------------------------------------------------
# Notifier
# ---------------------------------------------------------------------------


class TestNotifier:
    def _notifier(self, should_receive: bool = True):
        users = AsyncMock()
        users.should_receive.return_value = should_receive
        notifications = AsyncMock()
        notifications.create_notification.return_value = MagicMock(id=1)
        dispatcher = AsyncMock()
        notifier = Notifier(
            session_factory=MagicMock(), notifications=notifications,
            users=users, dispatcher=dispatcher,
        )
        return notifier, notifications, dispatcher

    async def test_stores_then_dispatches(self) -> None:
        notifier, notifications, dispatcher = self._notifier()
        db = AsyncMock()

        ok = await notifier.notify(
            db, "user-1", notification_type=NotificationType.BET_RESULT,
            title="You Won", message="Nice",
        )

        assert ok is True
        notifications.create_notification.assert_awaited_once()
        dispatcher.send_to_user.assert_awaited_once_with(
            db, "user-1", notifications.create_notification.return_value
        )

    async def test_disabled_type_skipped(self) -> None:
        notifier, notifications, dispatcher = self._notifier(should_receive=False)

        ok = await notifier.notify(
            AsyncMock(), "user-1", notification_type=NotificationType.BET_CREATED,
            title="t", message="m",
        )

        assert ok is False
        notifications.create_notification.assert_not_awaited()
        dispatcher.send_to_user.assert_not_awaited()

    async def test_one_failure_does_not_stop_the_rest(self) -> None:
        notifier, notifications, _ = self._notifier()
        notifications.create_notification.side_effect = [RuntimeError("db"), MagicMock(id=2)]

        sent = await notifier.notify_many(
            AsyncMock(), ["user-1", "user-2"], notification_type=NotificationType.GROUP_DELETED,
            title="t", message="m",
        )

        assert sent == 1

    async def test_notify_many_dedupes(self) -> None:
        notifier, notifications, _ = self._notifier()
        sent = await notifier.notify_many(
            AsyncMock(), ["user-1", "user-1", "user-2"],
            notification_type=NotificationType.BET_RESOLUTION_REMINDER, title="t", message="m",
        )
        assert sent == 2
        assert notifications.create_notification.await_count == 2


# ---------------------------------------------------------------------------
# Bet handlers
# ---------------------------------------------------------------------------


class TestBetHandlers:
    async def test_bet_created_skips_creator(self, notifier, bet_repo, group_repo) -> None:
        group_repo.list_active_member_ids.return_value = ["creator-1", "a", "b"]
        handlers = BetEventHandlers(notifier=notifier, bet_repo=bet_repo, group_repo=group_repo)

        await handlers.on_bet_created(
            BetCreatedEvent(
                bet_id="bet-1", group_id="group-1", group_name="Friday Poker",
                creator_id="creator-1", creator_name="Carol", title="Derby",
                bet_type="BINARY", stake_type="CREDIT",
                betting_deadline=datetime.now(UTC) + timedelta(days=1),
            )
        )

        assert notifier.recipients() == ["a", "b"]
        call = notifier.for_user("a")
        assert call["title"] == "New Bet in Friday Poker"
        assert call["action_url"] == "/bets/bet-1"
        assert call["related_entity_type"] == "BET"

    async def test_cancelled_mentions_refund(self, notifier, bet_repo, group_repo) -> None:
        handlers = BetEventHandlers(notifier=notifier, bet_repo=bet_repo, group_repo=group_repo)

        await handlers.on_bet_cancelled(
            BetCancelledEvent(
                bet_id="bet-1", group_id="group-1", group_name="Friday Poker",
                title="Derby", cancelled_by="creator-1", reason="Rained out",
                refunds={"creator-1": 1000, "a": 2550, "b": 0},
            )
        )

        assert notifier.recipients() == ["a", "b"]
        assert notifier.for_user("a")["message"] == (
            'The bet "Derby" was cancelled: Rained out. 25.50 credits refunded.'
        )
        assert "refunded" not in notifier.for_user("b")["message"]
        assert notifier.for_user("a")["priority"] == NotificationPriority.HIGH

    async def test_resolved_messages(self, notifier, bet_repo, group_repo) -> None:
        handlers = BetEventHandlers(notifier=notifier, bet_repo=bet_repo, group_repo=group_repo)

        await handlers.on_bet_resolved(
            BetResolvedEvent(
                bet_id="bet-1", group_id="group-1", title="Derby", outcome="OPTION_1",
                winner_ids=["a"], loser_ids=["b", "creator-1"], draw_ids=[],
                payouts={"a": 20000}, resolved_by="creator-1",
            )
        )

        assert notifier.recipients() == ["a", "b"]
        assert notifier.for_user("a")["title"] == "You Won: Derby"
        assert "200.00 credits" in notifier.for_user("a")["message"]
        assert notifier.for_user("b")["message"] == '"Derby" did not go your way.'

    async def test_draw_message(self, notifier, bet_repo, group_repo) -> None:
        handlers = BetEventHandlers(notifier=notifier, bet_repo=bet_repo, group_repo=group_repo)
        await handlers.on_bet_resolved(
            BetResolvedEvent(
                bet_id="bet-1", group_id="group-1", title="Derby", outcome="DRAW",
                winner_ids=[], loser_ids=[], draw_ids=["a"], payouts={},
            )
        )
        assert notifier.for_user("a")["message"] == '"Derby" ended in a draw.'

    async def test_urgent_resolution_reminder_to_resolvers(
        self, notifier, bet_repo, group_repo
    ) -> None:
        bet_repo.list_active_resolvers.return_value = [
            BetResolver(id="r1", bet_id="bet-1", user_id="judge", assigned_by="creator-1"),
            BetResolver(id="r2", bet_id="bet-1", user_id="voter", assigned_by="creator-1",
                        can_vote_only=True),
        ]
        handlers = BetEventHandlers(notifier=notifier, bet_repo=bet_repo, group_repo=group_repo)

        await handlers.on_resolution_deadline_approaching(
            BetResolutionDeadlineApproachingEvent(
                bet_id="bet-1", group_id="group-1", title="Derby", creator_id="creator-1",
                resolution_method="ASSIGNED_RESOLVERS",
                resolve_date=datetime.now(UTC) + timedelta(hours=1), hours_remaining=1,
            )
        )

        assert notifier.recipients() == ["judge"]
        assert notifier.for_user("judge")["title"] == "Urgent: Bet Resolution Needed in 1 Hour"
        assert notifier.for_user("judge")["priority"] == NotificationPriority.HIGH

    async def test_daily_resolution_reminder_to_creator(
        self, notifier, bet_repo, group_repo
    ) -> None:
        handlers = BetEventHandlers(notifier=notifier, bet_repo=bet_repo, group_repo=group_repo)
        await handlers.on_resolution_deadline_approaching(
            BetResolutionDeadlineApproachingEvent(
                bet_id="bet-1", group_id="group-1", title="Derby", creator_id="creator-1",
                resolution_method="SELF",
                resolve_date=datetime.now(UTC) + timedelta(hours=24), hours_remaining=24,
            )
        )
        assert notifier.recipients() == ["creator-1"]
        assert notifier.for_user("creator-1")["title"] == "Bet Resolution Reminder: Derby"

    async def test_betting_deadline_skips_participants(
        self, notifier, bet_repo, group_repo
    ) -> None:
        group_repo.list_active_member_ids.return_value = ["a", "b", "c"]
        bet_repo.list_participations.return_value = [
            BetParticipation(id="p-a", bet_id="bet-1", user_id="a", status="ACTIVE"),
            BetParticipation(id="p-b", bet_id="bet-1", user_id="b", status="CANCELLED"),
        ]
        handlers = BetEventHandlers(notifier=notifier, bet_repo=bet_repo, group_repo=group_repo)

        await handlers.on_betting_deadline_approaching(
            BetDeadlineApproachingEvent(
                bet_id="bet-1", group_id="group-1", group_name="Friday Poker", title="Derby",
                betting_deadline=datetime.now(UTC) + timedelta(hours=24), hours_remaining=24,
            )
        )

        assert notifier.recipients() == ["b", "c"]
        assert notifier.for_user("b")["title"] == "Bet Closing Soon in Friday Poker"
        assert notifier.for_user("b")["notification_type"] == NotificationType.BET_DEADLINE

    async def test_fulfillment_skips_loser(self, notifier, bet_repo, group_repo) -> None:
        handlers = BetEventHandlers(notifier=notifier, bet_repo=bet_repo, group_repo=group_repo)
        await handlers.on_fulfillment_submitted(
            BetFulfillmentSubmittedEvent(
                bet_id="bet-1", title="Derby", loser_id="b", loser_name="Bob",
                participant_ids=["a", "b", "c"],
            )
        )
        assert notifier.recipients() == ["a", "c"]
        assert notifier.for_user("a")["message"].startswith("Bob says")


# ---------------------------------------------------------------------------
# Group handlers
# ---------------------------------------------------------------------------


class TestGroupHandlers:
    async def test_join_request_goes_to_moderators(self, notifier, group_repo) -> None:
        group_repo.list_admin_and_officer_ids.return_value = ["admin-1", "officer-1"]
        handlers = GroupEventHandlers(notifier=notifier, group_repo=group_repo)

        await handlers.on_join_request(
            GroupJoinRequestEvent(
                group_id="group-1", group_name="Friday Poker", membership_id="mem-9",
                requester_id="user-9", requester_username="dave", requester_name="Dave",
            )
        )

        assert notifier.recipients() == ["admin-1", "officer-1"]
        call = notifier.for_user("admin-1")
        assert call["related_entity_id"] == "mem-9"
        assert call["related_entity_type"] == "GROUP_MEMBERSHIP"
        assert call["action_url"] == "/groups/group-1/requests"

    async def test_member_joined_after_approval(self, notifier, group_repo) -> None:
        group_repo.list_active_member_ids.return_value = ["admin-1", "a", "user-9"]
        handlers = GroupEventHandlers(notifier=notifier, group_repo=group_repo)

        await handlers.on_member_joined(
            GroupMemberJoinedEvent(
                group_id="group-1", group_name="Friday Poker", group_privacy="PRIVATE",
                membership_id="mem-9", user_id="user-9", user_name="Dave",
                approved_by="admin-1",
            )
        )

        assert notifier.recipients() == ["a", "user-9"]
        assert notifier.for_user("a")["priority"] == NotificationPriority.LOW
        assert notifier.for_user("user-9")["message"] == (
            "Your request to join Friday Poker was approved"
        )

    async def test_kicked_member_told_reason(self, notifier, group_repo) -> None:
        group_repo.list_active_member_ids.return_value = ["admin-1", "a"]
        handlers = GroupEventHandlers(notifier=notifier, group_repo=group_repo)

        await handlers.on_member_left(
            GroupMemberLeftEvent(
                group_id="group-1", group_name="Friday Poker", user_id="user-9",
                user_name="Dave", was_kicked=True, removed_by="admin-1", reason="spam",
            )
        )

        assert notifier.recipients() == ["a", "user-9"]
        assert notifier.for_user("a")["title"] == "Member Removed from Friday Poker"
        assert notifier.for_user("user-9")["message"] == "You were removed from Friday Poker: spam"

    async def test_group_deleted_skips_deleter(self, notifier, group_repo) -> None:
        handlers = GroupEventHandlers(notifier=notifier, group_repo=group_repo)
        await handlers.on_group_deleted(
            GroupDeletedEvent(
                group_id="group-1", group_name="Friday Poker", deleted_by="admin-1",
                deleted_by_name="Ann", member_ids=["admin-1", "a", "b"],
            )
        )
        assert notifier.recipients() == ["a", "b"]


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_subscribes_every_event_type(self) -> None:
        bus = MagicMock(spec=InMemoryEventBus)
        register_event_handlers(bus, bet_handlers=MagicMock(), group_handlers=MagicMock())

        event_types = {call.args[0] for call in bus.subscribe.call_args_list}
        assert event_types == {
            "BET_CREATED",
            "BET_CANCELLED",
            "BET_RESOLUTION_DEADLINE_APPROACHING",
            "BET_DEADLINE_APPROACHING",
            "BET_AWAITING_RESOLUTION",
            "BET_RESOLVED",
            "BET_FULFILLMENT_SUBMITTED",
            "GROUP_JOIN_REQUEST",
            "GROUP_INVITATION",
            "GROUP_MEMBER_JOINED",
            "GROUP_MEMBER_LEFT",
            "GROUP_ROLE_CHANGED",
            "GROUP_DELETED",
        }
        assert all(call.kwargs["concurrency"] == 1 for call in bus.subscribe.call_args_list)
