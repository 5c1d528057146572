"""Keyset pagination cursors for BIGSERIAL-keyed lists (notifications, credit transactions).

A cursor is the last id the client has seen, wrapped so clients treat it as
opaque. Anything that does not decode is treated as "start from the top".
"""

import base64
import json


def cursor_encode(last_id: int) -> str:
    return base64.urlsafe_b64encode(json.dumps({"id": last_id}).encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    if not cursor:
        return None
    try:
        return int(json.loads(base64.urlsafe_b64decode(cursor.encode()))["id"])
    except (ValueError, KeyError, TypeError):
        return None
