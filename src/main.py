"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from src.rp_bet.api.router import router as bet_router
from src.rp_bet.application.scheduled_tasks import BetScheduledTaskService, register_jobs
from src.rp_common.database import check_database, dispose_engine
from src.rp_common.errors import AppError
from src.rp_common.event_bus import event_bus
from src.rp_common.redis_client import check_redis, close_redis
from src.rp_common.response import error_response
from src.rp_gateway.api.router import router as auth_router
from src.rp_gateway.middleware.rate_limit import RateLimitMiddleware
from src.rp_gateway.middleware.request_log import RequestLogMiddleware
from src.rp_group.api.router import router as group_router
from src.rp_notification.api.presence_router import router as presence_router
from src.rp_notification.api.router import router as notification_router
from src.rp_notification.api.ws_router import router as ws_router
from src.rp_notification.event_handlers.registry import register_event_handlers
from src.rp_notification.infrastructure.websocket_manager import websocket_manager
from src.rp_user.api.router import router as user_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger("rp.app")

APP_VERSION = "0.1.0"

scheduler = AsyncIOScheduler()

register_event_handlers(event_bus)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, start bus, WebSocket heartbeat and scheduler."""
    await check_database()
    await check_redis()
    await event_bus.start()
    await websocket_manager.start()
    if settings.SCHEDULER_ENABLED:
        register_jobs(scheduler, BetScheduledTaskService())
        scheduler.start()
        logger.info("Background scheduler started")
    yield
    if scheduler.running:
        scheduler.shutdown(wait=False)
    await websocket_manager.stop()
    await event_bus.stop()
    await dispose_engine()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version=APP_VERSION,
    lifespan=lifespan,
)


# Added last so it runs first and stamps request_id before rate limiting.
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(auth_router, prefix="/api/v1")
app.include_router(user_router, prefix="/api/v1")
app.include_router(group_router, prefix="/api/v1")
app.include_router(bet_router, prefix="/api/v1")
app.include_router(notification_router, prefix="/api/v1")
app.include_router(presence_router, prefix="/api/v1")
app.include_router(ws_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": APP_VERSION}
