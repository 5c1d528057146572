"""Central registration entrypoint for notification subscribers."""

from src.rp_common.event_bus import InMemoryEventBus
from src.rp_notification.event_handlers.bet_handlers import BetEventHandlers
from src.rp_notification.event_handlers.group_handlers import GroupEventHandlers


def register_event_handlers(
    bus: InMemoryEventBus,
    bet_handlers: BetEventHandlers | None = None,
    group_handlers: GroupEventHandlers | None = None,
) -> None:
    bets = bet_handlers or BetEventHandlers()
    groups = group_handlers or GroupEventHandlers()

    bus.subscribe("BET_CREATED", bets.on_bet_created, handler_name="notify_bet_created", concurrency=1)
    bus.subscribe("BET_CANCELLED", bets.on_bet_cancelled, handler_name="notify_bet_cancelled", concurrency=1)
    bus.subscribe(
        "BET_RESOLUTION_DEADLINE_APPROACHING",
        bets.on_resolution_deadline_approaching,
        handler_name="notify_resolution_deadline",
        concurrency=1,
    )
    bus.subscribe(
        "BET_DEADLINE_APPROACHING",
        bets.on_betting_deadline_approaching,
        handler_name="notify_betting_deadline",
        concurrency=1,
    )
    bus.subscribe(
        "BET_AWAITING_RESOLUTION",
        bets.on_awaiting_resolution,
        handler_name="notify_awaiting_resolution",
        concurrency=1,
    )
    bus.subscribe("BET_RESOLVED", bets.on_bet_resolved, handler_name="notify_bet_resolved", concurrency=1)
    bus.subscribe(
        "BET_FULFILLMENT_SUBMITTED",
        bets.on_fulfillment_submitted,
        handler_name="notify_fulfillment_submitted",
        concurrency=1,
    )

    bus.subscribe("GROUP_JOIN_REQUEST", groups.on_join_request, handler_name="notify_join_request", concurrency=1)
    bus.subscribe("GROUP_INVITATION", groups.on_invitation, handler_name="notify_invitation", concurrency=1)
    bus.subscribe("GROUP_MEMBER_JOINED", groups.on_member_joined, handler_name="notify_member_joined", concurrency=1)
    bus.subscribe("GROUP_MEMBER_LEFT", groups.on_member_left, handler_name="notify_member_left", concurrency=1)
    bus.subscribe("GROUP_ROLE_CHANGED", groups.on_role_changed, handler_name="notify_role_changed", concurrency=1)
    bus.subscribe("GROUP_DELETED", groups.on_group_deleted, handler_name="notify_group_deleted", concurrency=1)
