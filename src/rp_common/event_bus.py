"""In-process event bus for after-commit domain events.

Services publish once their transaction has committed; subscribers run on
their own worker tasks with their own DB sessions, so a slow or failing
listener never affects the request that produced the event.

Each subscription owns a bounded queue and `concurrency` workers. A handler
exception is logged and counted, then the worker moves on.
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from config.settings import settings
from src.rp_common.datetime_utils import utc_now

logger = logging.getLogger("rp.event_bus")


class BaseEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str
    occurred_at: datetime = Field(default_factory=utc_now)
    source: str = "api"


AsyncEventHandler = Callable[[Any], Awaitable[None]]


@dataclass
class _Subscription:
    event_type: str
    handler_name: str
    handler: AsyncEventHandler
    concurrency: int
    queue: asyncio.Queue
    workers: list[asyncio.Task] = field(default_factory=list)
    handled_total: int = 0
    failed_total: int = 0
    dropped_total: int = 0


class InMemoryEventBus:
    def __init__(
        self,
        *,
        ingress_maxsize: int,
        handler_maxsize: int,
        default_concurrency: int = 1,
    ) -> None:
        self._ingress_maxsize = max(1, int(ingress_maxsize))
        self._handler_maxsize = max(1, int(handler_maxsize))
        self._default_concurrency = max(1, int(default_concurrency))

        self._ingress: asyncio.Queue | None = None
        self._subscriptions: dict[str, list[_Subscription]] = defaultdict(list)
        self._dispatcher_task: asyncio.Task | None = None
        self._running = False

        self._published = 0
        self._handled = 0
        self._failed = 0
        self._dropped = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        # Queues are bound to the running loop, so they are created here
        self._ingress = asyncio.Queue(maxsize=self._ingress_maxsize)
        for subs in self._subscriptions.values():
            for sub in subs:
                sub.queue = asyncio.Queue(maxsize=self._handler_maxsize)
        self._running = True
        for subs in self._subscriptions.values():
            for sub in subs:
                sub.workers.extend(self._spawn_workers(sub))
        self._dispatcher_task = asyncio.create_task(self._dispatch_loop(), name="event_bus_dispatcher")
        logger.info("Event bus started")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        tasks: list[asyncio.Task] = []
        if self._dispatcher_task is not None:
            tasks.append(self._dispatcher_task)
            self._dispatcher_task = None
        for subs in self._subscriptions.values():
            for sub in subs:
                tasks.extend(sub.workers)
                sub.workers.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Event bus stopped")

    def subscribe(
        self,
        event_type: str,
        handler: AsyncEventHandler,
        *,
        handler_name: str,
        concurrency: int | None = None,
    ) -> None:
        worker_count = max(1, int(concurrency or self._default_concurrency))
        sub = _Subscription(
            event_type=event_type,
            handler_name=handler_name,
            handler=handler,
            concurrency=worker_count,
            queue=asyncio.Queue(maxsize=self._handler_maxsize),
        )
        self._subscriptions[event_type].append(sub)
        if self._running:
            sub.workers.extend(self._spawn_workers(sub))

    def publish(self, event: BaseEvent) -> None:
        """Queue an event for delivery. Never blocks; drops when the bus is full or stopped."""
        if not self._running or self._ingress is None:
            self._dropped += 1
            logger.warning("Event bus not running; dropping event_type=%s", event.event_type)
            return
        try:
            self._ingress.put_nowait(event)
            self._published += 1
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning("Event bus ingress queue full; dropping event_type=%s", event.event_type)

    def stats(self) -> dict[str, Any]:
        per_handler: dict[str, dict[str, Any]] = {}
        for event_type, subs in self._subscriptions.items():
            for sub in subs:
                per_handler[f"{event_type}:{sub.handler_name}"] = {
                    "concurrency": sub.concurrency,
                    "queue_depth": sub.queue.qsize(),
                    "handled_total": sub.handled_total,
                    "failed_total": sub.failed_total,
                    "dropped_total": sub.dropped_total,
                }
        return {
            "running": self._running,
            "published_total": self._published,
            "handled_total": self._handled,
            "failed_total": self._failed,
            "dropped_total": self._dropped,
            "ingress_queue_depth": self._ingress.qsize() if self._ingress else 0,
            "per_handler": per_handler,
        }

    async def _dispatch_loop(self) -> None:
        assert self._ingress is not None
        while self._running:
            event = await self._ingress.get()
            for sub in self._subscriptions.get(event.event_type, []):
                try:
                    sub.queue.put_nowait(event)
                except asyncio.QueueFull:
                    self._dropped += 1
                    sub.dropped_total += 1
                    logger.warning(
                        "Event bus handler queue full; dropping event_type=%s handler=%s",
                        event.event_type,
                        sub.handler_name,
                    )

    def _spawn_workers(self, sub: _Subscription) -> list[asyncio.Task]:
        return [
            asyncio.create_task(
                self._handler_loop(sub),
                name=f"event_bus_{sub.event_type}_{sub.handler_name}_{idx}",
            )
            for idx in range(sub.concurrency)
        ]

    async def _handler_loop(self, sub: _Subscription) -> None:
        while self._running:
            event = await sub.queue.get()
            try:
                await sub.handler(event)
                self._handled += 1
                sub.handled_total += 1
            except Exception as exc:
                self._failed += 1
                sub.failed_total += 1
                logger.error(
                    "Event handler failed event_id=%s event_type=%s handler=%s error=%s",
                    event.event_id,
                    event.event_type,
                    sub.handler_name,
                    str(exc),
                    exc_info=True,
                )


event_bus = InMemoryEventBus(
    ingress_maxsize=settings.EVENT_BUS_INGRESS_MAXSIZE,
    handler_maxsize=settings.EVENT_BUS_HANDLER_MAXSIZE,
    default_concurrency=settings.EVENT_BUS_HANDLER_CONCURRENCY,
)
