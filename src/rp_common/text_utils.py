"""Notification text helpers."""

TITLE_MAX_LENGTH = 100
MESSAGE_MAX_LENGTH = 500


def truncate(text: str, limit: int) -> str:
    """Cut text to `limit` characters, ending in '...' when shortened."""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def truncate_title(title: str) -> str:
    return truncate(title, TITLE_MAX_LENGTH)


def truncate_message(message: str) -> str:
    return truncate(message, MESSAGE_MAX_LENGTH)
