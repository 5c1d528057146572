"""PresenceService — where a user currently is in the app.

One Redis hash per user, `presence:{user_id}`, expiring after
PRESENCE_TTL_SECONDS. Clients refresh it with heartbeats; a missing key
means the user is inactive.
"""

import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis

from config.settings import settings
from src.rp_common.datetime_utils import utc_now
from src.rp_common.redis_client import get_redis
from src.rp_notification.domain.models import PresenceInfo

logger = logging.getLogger("rp.presence")

INACTIVE = "inactive"


def presence_key(user_id: str) -> str:
    return f"presence:{user_id}"


class PresenceService:
    def __init__(
        self,
        redis_getter: Callable[[], Awaitable[aioredis.Redis]] | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        self._get_redis = redis_getter or get_redis
        self._ttl = ttl_seconds or settings.PRESENCE_TTL_SECONDS

    async def update(
        self,
        user_id: str,
        state: str,
        screen: str | None = None,
        chat_id: str | None = None,
    ) -> PresenceInfo:
        redis = await self._get_redis()
        key = presence_key(user_id)
        if state == INACTIVE:
            await redis.delete(key)
            return PresenceInfo(user_id=user_id, state=INACTIVE)

        last_seen = utc_now().isoformat()
        mapping = {"state": state, "screen": screen or "", "chat_id": chat_id or "", "last_seen": last_seen}
        async with redis.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            pipe.hset(key, mapping=mapping)
            pipe.expire(key, self._ttl)
            await pipe.execute()
        logger.debug("Presence user=%s state=%s screen=%s", user_id, state, screen)
        return PresenceInfo(
            user_id=user_id, state=state, screen=screen, chat_id=chat_id, last_seen=last_seen
        )

    async def heartbeat(self, user_id: str) -> bool:
        """Extend the TTL; False when there is no presence to extend."""
        redis = await self._get_redis()
        key = presence_key(user_id)
        if not await redis.exists(key):
            return False
        async with redis.pipeline(transaction=True) as pipe:
            pipe.hset(key, "last_seen", utc_now().isoformat())
            pipe.expire(key, self._ttl)
            await pipe.execute()
        return True

    async def get(self, user_id: str) -> PresenceInfo:
        redis = await self._get_redis()
        data = await redis.hgetall(presence_key(user_id))
        if not data:
            return PresenceInfo(user_id=user_id, state=INACTIVE)
        return PresenceInfo(
            user_id=user_id,
            state=data.get("state") or INACTIVE,
            screen=data.get("screen") or None,
            chat_id=data.get("chat_id") or None,
            last_seen=data.get("last_seen") or None,
        )

    async def is_active(self, user_id: str) -> bool:
        return (await self.get(user_id)).is_active

    async def is_viewing_chat(self, user_id: str, chat_id: str) -> bool:
        presence = await self.get(user_id)
        return presence.is_active and presence.chat_id == chat_id

    async def remove(self, user_id: str) -> None:
        redis = await self._get_redis()
        await redis.delete(presence_key(user_id))
