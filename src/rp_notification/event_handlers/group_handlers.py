"""Subscriber logic for group-domain events."""

import logging

from src.rp_common.enums import GroupPrivacy, NotificationPriority, NotificationType
from src.rp_group.domain.events import (
    GroupDeletedEvent,
    GroupInvitationEvent,
    GroupJoinRequestEvent,
    GroupMemberJoinedEvent,
    GroupMemberLeftEvent,
    GroupRoleChangedEvent,
)
from src.rp_group.domain.repository import GroupRepositoryProtocol
from src.rp_group.infrastructure.persistence import GroupRepository
from src.rp_notification.application.service import MEMBERSHIP_ENTITY_TYPE
from src.rp_notification.event_handlers.notifier import Notifier

logger = logging.getLogger("rp.listener.group")

_GROUP_ENTITY = "GROUP"


def group_url(group_id: str) -> str:
    return f"/groups/{group_id}"


class GroupEventHandlers:
    def __init__(
        self,
        notifier: Notifier | None = None,
        group_repo: GroupRepositoryProtocol | None = None,
    ) -> None:
        self._notifier = notifier or Notifier()
        self._group_repo: GroupRepositoryProtocol = group_repo or GroupRepository()

    async def on_join_request(self, event: GroupJoinRequestEvent) -> None:
        async with self._notifier.session() as db:
            admin_ids = await self._group_repo.list_admin_and_officer_ids(db, event.group_id)
            sent = await self._notifier.notify_many(
                db,
                admin_ids,
                notification_type=NotificationType.GROUP_JOIN_REQUEST,
                title=f"Join Request for {event.group_name}",
                message=f"{event.requester_name} (@{event.requester_username}) wants to join your group",
                priority=NotificationPriority.HIGH,
                action_url=f"{group_url(event.group_id)}/requests",
                related_entity_id=event.membership_id,
                related_entity_type=MEMBERSHIP_ENTITY_TYPE,
            )
        logger.info("GROUP_JOIN_REQUEST group=%s notified=%d", event.group_id, sent)

    async def on_invitation(self, event: GroupInvitationEvent) -> None:
        async with self._notifier.session() as db:
            await self._notifier.notify(
                db,
                event.invited_user_id,
                notification_type=NotificationType.GROUP_INVITE,
                title=f"Group Invitation: {event.group_name}",
                message=f"{event.inviter_name} invited you to join {event.group_name}",
                action_url=group_url(event.group_id),
                related_entity_id=event.membership_id,
                related_entity_type=MEMBERSHIP_ENTITY_TYPE,
            )

    async def on_member_joined(self, event: GroupMemberJoinedEvent) -> None:
        if event.group_privacy == GroupPrivacy.PRIVATE and not event.was_invited:
            welcome = f"Your request to join {event.group_name} was approved"
        else:
            welcome = f"You are now a member of {event.group_name}"
        async with self._notifier.session() as db:
            member_ids = await self._group_repo.list_active_member_ids(db, event.group_id)
            sent = await self._notifier.notify_many(
                db,
                [uid for uid in member_ids if uid not in (event.user_id, event.approved_by)],
                notification_type=NotificationType.GROUP_JOINED,
                title=f"New Member in {event.group_name}",
                message=f"{event.user_name} joined {event.group_name}",
                priority=NotificationPriority.LOW,
                action_url=group_url(event.group_id),
                related_entity_id=event.group_id,
                related_entity_type=_GROUP_ENTITY,
            )
            await self._notifier.notify(
                db,
                event.user_id,
                notification_type=NotificationType.GROUP_JOINED,
                title=f"Welcome to {event.group_name}",
                message=welcome,
                action_url=group_url(event.group_id),
                related_entity_id=event.group_id,
                related_entity_type=_GROUP_ENTITY,
            )
        logger.info("GROUP_MEMBER_JOINED group=%s notified=%d", event.group_id, sent)

    async def on_member_left(self, event: GroupMemberLeftEvent) -> None:
        if event.was_kicked:
            title = f"Member Removed from {event.group_name}"
            message = f"{event.user_name} was removed from {event.group_name}"
        else:
            title = f"Member Left {event.group_name}"
            message = f"{event.user_name} left {event.group_name}"
        async with self._notifier.session() as db:
            member_ids = await self._group_repo.list_active_member_ids(db, event.group_id)
            await self._notifier.notify_many(
                db,
                [uid for uid in member_ids if uid not in (event.user_id, event.removed_by)],
                notification_type=NotificationType.GROUP_LEFT,
                title=title,
                message=message,
                priority=NotificationPriority.LOW,
                action_url=group_url(event.group_id),
                related_entity_id=event.group_id,
                related_entity_type=_GROUP_ENTITY,
            )
            if event.was_kicked:
                kicked_message = f"You were removed from {event.group_name}"
                if event.reason:
                    kicked_message += f": {event.reason}"
                await self._notifier.notify(
                    db,
                    event.user_id,
                    notification_type=NotificationType.GROUP_LEFT,
                    title=f"Removed from {event.group_name}",
                    message=kicked_message,
                    priority=NotificationPriority.HIGH,
                    related_entity_id=event.group_id,
                    related_entity_type=_GROUP_ENTITY,
                )

    async def on_role_changed(self, event: GroupRoleChangedEvent) -> None:
        verb = "promoted" if event.was_promoted else "changed"
        async with self._notifier.session() as db:
            await self._notifier.notify(
                db,
                event.user_id,
                notification_type=NotificationType.GROUP_ROLE_CHANGED,
                title=f"Role Changed: {event.group_name}",
                message=(
                    f"{event.changed_by_name} {verb} your role from "
                    f"{event.old_role.lower()} to {event.new_role.lower()}"
                ),
                action_url=group_url(event.group_id),
                related_entity_id=event.group_id,
                related_entity_type=_GROUP_ENTITY,
            )

    async def on_group_deleted(self, event: GroupDeletedEvent) -> None:
        async with self._notifier.session() as db:
            sent = await self._notifier.notify_many(
                db,
                [uid for uid in event.member_ids if uid != event.deleted_by],
                notification_type=NotificationType.GROUP_DELETED,
                title=f"Group Deleted: {event.group_name}",
                message=f'{event.deleted_by_name} deleted the group "{event.group_name}"',
                priority=NotificationPriority.HIGH,
                related_entity_id=event.group_id,
                related_entity_type=_GROUP_ENTITY,
            )
        logger.info("GROUP_DELETED group=%s notified=%d", event.group_id, sent)
