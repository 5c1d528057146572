"""Group domain events, published on the in-process bus after commit."""

from src.rp_common.event_bus import BaseEvent


class GroupJoinRequestEvent(BaseEvent):
    event_type: str = "GROUP_JOIN_REQUEST"
    group_id: str
    group_name: str
    membership_id: str
    requester_id: str
    requester_username: str
    requester_name: str


class GroupInvitationEvent(BaseEvent):
    event_type: str = "GROUP_INVITATION"
    group_id: str
    group_name: str
    membership_id: str
    inviter_id: str
    inviter_name: str
    invited_user_id: str


class GroupMemberJoinedEvent(BaseEvent):
    event_type: str = "GROUP_MEMBER_JOINED"
    group_id: str
    group_name: str
    group_privacy: str
    membership_id: str
    user_id: str
    user_name: str
    was_invited: bool = False
    approved_by: str | None = None


class GroupMemberLeftEvent(BaseEvent):
    event_type: str = "GROUP_MEMBER_LEFT"
    group_id: str
    group_name: str
    user_id: str
    user_name: str
    was_kicked: bool = False
    removed_by: str | None = None
    reason: str | None = None


class GroupRoleChangedEvent(BaseEvent):
    event_type: str = "GROUP_ROLE_CHANGED"
    group_id: str
    group_name: str
    user_id: str
    old_role: str
    new_role: str
    changed_by: str
    changed_by_name: str
    was_promoted: bool


class GroupDeletedEvent(BaseEvent):
    event_type: str = "GROUP_DELETED"
    group_id: str
    group_name: str
    deleted_by: str
    deleted_by_name: str
    member_ids: list[str]
