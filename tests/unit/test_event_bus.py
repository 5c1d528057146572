"""Unit tests for the in-process event bus."""

import asyncio

from src.rp_common.event_bus import BaseEvent, InMemoryEventBus


class _PingEvent(BaseEvent):
    event_type: str = "PING"
    value: int = 0


async def _drain(bus: InMemoryEventBus, expected: int, attr: str = "handled_total") -> None:
    for _ in range(100):
        if bus.stats()[attr] >= expected:
            return
        await asyncio.sleep(0.01)


class TestInMemoryEventBus:
    async def test_delivers_to_subscriber(self) -> None:
        bus = InMemoryEventBus(ingress_maxsize=10, handler_maxsize=10)
        received: list[int] = []

        async def handler(event: _PingEvent) -> None:
            received.append(event.value)

        bus.subscribe("PING", handler, handler_name="collect")
        await bus.start()
        try:
            bus.publish(_PingEvent(value=7))
            await _drain(bus, 1)
        finally:
            await bus.stop()

        assert received == [7]

    async def test_fans_out_to_every_subscriber(self) -> None:
        bus = InMemoryEventBus(ingress_maxsize=10, handler_maxsize=10)
        calls: list[str] = []

        async def first(event: _PingEvent) -> None:
            calls.append("first")

        async def second(event: _PingEvent) -> None:
            calls.append("second")

        bus.subscribe("PING", first, handler_name="first")
        bus.subscribe("PING", second, handler_name="second")
        await bus.start()
        try:
            bus.publish(_PingEvent())
            await _drain(bus, 2)
        finally:
            await bus.stop()

        assert sorted(calls) == ["first", "second"]

    async def test_ignores_other_event_types(self) -> None:
        bus = InMemoryEventBus(ingress_maxsize=10, handler_maxsize=10)
        calls: list[str] = []

        async def handler(event: BaseEvent) -> None:
            calls.append(event.event_type)

        bus.subscribe("OTHER", handler, handler_name="other")
        await bus.start()
        try:
            bus.publish(_PingEvent())
            await asyncio.sleep(0.05)
        finally:
            await bus.stop()

        assert calls == []

    async def test_handler_failure_is_counted_not_raised(self) -> None:
        bus = InMemoryEventBus(ingress_maxsize=10, handler_maxsize=10)
        received: list[int] = []

        async def flaky(event: _PingEvent) -> None:
            if event.value == 1:
                raise RuntimeError("boom")
            received.append(event.value)

        bus.subscribe("PING", flaky, handler_name="flaky")
        await bus.start()
        try:
            bus.publish(_PingEvent(value=1))
            bus.publish(_PingEvent(value=2))
            await _drain(bus, 1)
            await _drain(bus, 1, attr="failed_total")
        finally:
            await bus.stop()

        stats = bus.stats()
        assert stats["failed_total"] == 1
        assert received == [2]

    def test_publish_when_stopped_drops(self) -> None:
        bus = InMemoryEventBus(ingress_maxsize=10, handler_maxsize=10)
        bus.publish(_PingEvent())
        stats = bus.stats()
        assert stats["dropped_total"] == 1
        assert stats["published_total"] == 0

    async def test_full_ingress_drops(self) -> None:
        bus = InMemoryEventBus(ingress_maxsize=1, handler_maxsize=1)
        await bus.start()
        try:
            # The dispatcher has not run yet, so the second publish finds the queue full
            bus.publish(_PingEvent())
            bus.publish(_PingEvent())
            assert bus.stats()["dropped_total"] == 1
        finally:
            await bus.stop()

    async def test_start_and_stop_idempotent(self) -> None:
        bus = InMemoryEventBus(ingress_maxsize=10, handler_maxsize=10)
        await bus.start()
        await bus.start()
        assert bus.running is True
        await bus.stop()
        await bus.stop()
        assert bus.running is False

    def test_event_defaults(self) -> None:
        event = _PingEvent()
        assert event.event_id
        assert event.occurred_at.tzinfo is not None
        assert event.source == "api"
