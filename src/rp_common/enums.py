"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


# --- Users ---

class TransactionType(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


# --- Groups ---

class GroupPrivacy(str, Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"


class MemberRole(str, Enum):
    ADMIN = "ADMIN"
    OFFICER = "OFFICER"
    MEMBER = "MEMBER"


class MembershipStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    LEFT = "LEFT"


# --- Bets ---

class BetType(str, Enum):
    BINARY = "BINARY"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    PREDICTION = "PREDICTION"


class BetStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class StakeType(str, Enum):
    CREDIT = "CREDIT"
    SOCIAL = "SOCIAL"


class ResolutionMethod(str, Enum):
    SELF = "SELF"
    ASSIGNED_RESOLVERS = "ASSIGNED_RESOLVERS"
    PARTICIPANT_VOTE = "PARTICIPANT_VOTE"


class BetOutcome(str, Enum):
    OPTION_1 = "OPTION_1"
    OPTION_2 = "OPTION_2"
    OPTION_3 = "OPTION_3"
    OPTION_4 = "OPTION_4"
    DRAW = "DRAW"

    @property
    def option_number(self) -> int | None:
        """1-4 for OPTION_n, None for DRAW."""
        if self is BetOutcome.DRAW:
            return None
        return int(self.value.rsplit("_", 1)[1])

    @classmethod
    def for_option(cls, option: int) -> "BetOutcome":
        return cls(f"OPTION_{option}")


class ParticipationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    WON = "WON"
    LOST = "LOST"
    DRAW = "DRAW"
    CREATOR = "CREATOR"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class FulfillmentStatus(str, Enum):
    PENDING = "PENDING"
    PARTIALLY_FULFILLED = "PARTIALLY_FULFILLED"
    FULFILLED = "FULFILLED"


class InsuranceTier(str, Enum):
    """Insurance item tiers and the share of a lost stake they refund."""
    BASIC = "BASIC"
    PREMIUM = "PREMIUM"
    ELITE = "ELITE"

    @property
    def refund_percentage(self) -> int:
        return _INSURANCE_REFUND_PCT[self]


_INSURANCE_REFUND_PCT = {
    InsuranceTier.BASIC: 25,
    InsuranceTier.PREMIUM: 50,
    InsuranceTier.ELITE: 75,
}


# --- Notifications ---

class NotificationType(str, Enum):
    BET_CREATED = "BET_CREATED"
    BET_CANCELLED = "BET_CANCELLED"
    BET_RESULT = "BET_RESULT"
    BET_DEADLINE = "BET_DEADLINE"
    BET_RESOLUTION_REMINDER = "BET_RESOLUTION_REMINDER"
    BET_FULFILLMENT_SUBMITTED = "BET_FULFILLMENT_SUBMITTED"
    GROUP_JOIN_REQUEST = "GROUP_JOIN_REQUEST"
    GROUP_INVITE = "GROUP_INVITE"
    GROUP_JOINED = "GROUP_JOINED"
    GROUP_LEFT = "GROUP_LEFT"
    GROUP_ROLE_CHANGED = "GROUP_ROLE_CHANGED"
    GROUP_DELETED = "GROUP_DELETED"
    SYSTEM_ANNOUNCEMENT = "SYSTEM_ANNOUNCEMENT"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"
