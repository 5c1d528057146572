"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Group
  3xxx: Bet
  4xxx: Participation / Insurance
  5xxx: Resolution
  6xxx: Fulfillment
  7xxx: Notification
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Username already exists", 409)


class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid username or password", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Refresh token is invalid or expired", 401)


class UserNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(1006, f"User not found: {user_id}", 404)


class InsufficientCreditsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            1007,
            f"Insufficient credits: required {required}, available {available}",
            422,
        )


class InvalidAmountError(AppError):
    def __init__(self, amount: int) -> None:
        super().__init__(1008, f"Amount must be positive, got {amount}", 422)


# --- 2xxx: Group ---

class GroupNotFoundError(AppError):
    def __init__(self, group_id: str) -> None:
        super().__init__(2001, f"Group not found: {group_id}", 404)


class GroupNotJoinableError(AppError):
    def __init__(self, group_id: str) -> None:
        super().__init__(2002, f"Group is not accepting members: {group_id}", 422)


class GroupFullError(AppError):
    def __init__(self, group_id: str) -> None:
        super().__init__(2003, f"Group has reached its member limit: {group_id}", 422)


class AlreadyMemberError(AppError):
    def __init__(self) -> None:
        super().__init__(2004, "User is already a member of this group", 409)


class JoinRequestPendingError(AppError):
    def __init__(self) -> None:
        super().__init__(2005, "A join request or invitation is already pending", 409)


class NotGroupMemberError(AppError):
    def __init__(self, group_id: str) -> None:
        super().__init__(2006, f"Not a member of group {group_id}", 403)


class GroupPermissionError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2007, detail, 403)


class MembershipNotFoundError(AppError):
    def __init__(self, membership_id: str) -> None:
        super().__init__(2008, f"Membership not found: {membership_id}", 404)


class InvalidMembershipStateError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2009, detail, 422)


class LastAdminError(AppError):
    def __init__(self) -> None:
        super().__init__(2010, "Group must keep at least one admin", 422)


class GroupNameExistsError(AppError):
    def __init__(self, name: str) -> None:
        super().__init__(2011, f"Group name already taken: {name}", 409)


# --- 3xxx: Bet ---

class BetNotFoundError(AppError):
    def __init__(self, bet_id: str) -> None:
        super().__init__(3001, f"Bet not found: {bet_id}", 404)


class BetNotOpenError(AppError):
    def __init__(self, bet_id: str) -> None:
        super().__init__(3002, f"Bet is not open: {bet_id}", 422)


class InvalidBetError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3003, f"Invalid bet: {detail}", 422)


class NotBetCreatorError(AppError):
    def __init__(self) -> None:
        super().__init__(3004, "Only the bet creator can perform this action", 403)


class BetAlreadyResolvedError(AppError):
    def __init__(self, bet_id: str) -> None:
        super().__init__(3005, f"Bet is already resolved: {bet_id}", 422)


class BetOperationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3006, detail, 422)


# --- 4xxx: Participation / Insurance ---

class BetParticipationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, detail, 422)


class AlreadyParticipatingError(AppError):
    def __init__(self) -> None:
        super().__init__(4002, "User has already placed a bet", 409)


class ParticipationNotFoundError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4003, f"Participation not found: {detail}", 404)


class InsuranceError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4004, detail, 422)


# --- 5xxx: Resolution ---

class BetResolutionError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5001, detail, 422)


class NotAuthorizedToResolveError(AppError):
    def __init__(self, detail: str = "User is not authorized to resolve this bet") -> None:
        super().__init__(5002, detail, 403)


# --- 6xxx: Fulfillment ---

class FulfillmentError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(6001, detail, 422)


class AlreadyConfirmedError(AppError):
    def __init__(self) -> None:
        super().__init__(6002, "Winner has already confirmed fulfillment", 409)


# --- 7xxx: Notification ---

class NotificationNotFoundError(AppError):
    def __init__(self, notification_id: int) -> None:
        super().__init__(7001, f"Notification not found: {notification_id}", 404)


class NotificationAccessDeniedError(AppError):
    def __init__(self) -> None:
        super().__init__(7002, "Notification belongs to another user", 403)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
