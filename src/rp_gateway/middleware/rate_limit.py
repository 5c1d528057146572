"""Fixed-window rate limiting backed by Redis INCR + EXPIRE.

Rules:
  - Auth endpoints (/api/v1/auth/*): AUTH_RATE_LIMIT_PER_MINUTE per client IP
  - Everything else: RATE_LIMIT_PER_MINUTE per client IP

Key pattern: "ratelimit:{client}:{group}:{window}". A Redis outage never
blocks traffic; the request passes and the failure is logged.
"""

import logging
import time

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from config.settings import settings
from src.rp_common.errors import RateLimitError
from src.rp_common.redis_client import get_redis
from src.rp_common.response import error_response

logger = logging.getLogger("rp.request")

_WINDOW_SECONDS = 60
_EXEMPT_PATHS = ("/health", "/docs", "/openapi.json", "/api/v1/ws")


def _client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if not settings.RATE_LIMIT_ENABLED or path.startswith(_EXEMPT_PATHS):
            return await call_next(request)

        if path.startswith("/api/v1/auth"):
            group, limit = "auth", settings.AUTH_RATE_LIMIT_PER_MINUTE
        else:
            group, limit = "api", settings.RATE_LIMIT_PER_MINUTE

        window = int(time.time()) // _WINDOW_SECONDS
        key = f"ratelimit:{_client_key(request)}:{group}:{window}"
        try:
            redis = await get_redis()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, _WINDOW_SECONDS)
        except Exception:
            logger.warning("Rate limit check failed for %s", path, exc_info=True)
            return await call_next(request)

        if count > limit:
            exc = RateLimitError()
            resp = error_response(exc.code, exc.message)
            resp.request_id = getattr(request.state, "request_id", resp.request_id)
            retry_after = _WINDOW_SECONDS - int(time.time()) % _WINDOW_SECONDS
            return JSONResponse(
                status_code=exc.http_status,
                content=resp.model_dump(),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
