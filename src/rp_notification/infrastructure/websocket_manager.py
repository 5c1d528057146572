"""Process-local WebSocket connection manager for notification push.

Connections are indexed by user; a user may hold several (phone + tablet).
A heartbeat loop pings every connection and drops the ones that fail.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from fastapi import WebSocket

from config.settings import settings
from src.rp_common.datetime_utils import utc_now

logger = logging.getLogger("rp.websocket")


class TooManyConnectionsError(RuntimeError):
    pass


@dataclass
class ManagedConnection:
    connection_id: str
    user_id: str
    websocket: WebSocket
    connected_at: datetime
    last_seen_at: datetime


class WebSocketManager:
    def __init__(self, *, max_connections: int, heartbeat_seconds: int) -> None:
        self._max_connections = max(1, int(max_connections))
        self._heartbeat_seconds = max(1, int(heartbeat_seconds))
        self._connections: dict[str, ManagedConnection] = {}
        self._by_user: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()
        self._heartbeat_task: asyncio.Task | None = None
        self._running = False
        self._sent_total = 0
        self._send_failures = 0
        self._dropped_connections = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        async with self._lock:
            if self._running:
                return
            self._running = True
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name="ws_heartbeat")
            logger.info("WebSocket manager started")

    async def stop(self) -> None:
        async with self._lock:
            if not self._running:
                return
            self._running = False
            if self._heartbeat_task is not None:
                self._heartbeat_task.cancel()
                try:
                    await self._heartbeat_task
                except asyncio.CancelledError:
                    pass
                self._heartbeat_task = None
            self._connections.clear()
            self._by_user.clear()
            logger.info("WebSocket manager stopped")

    async def connect(self, websocket: WebSocket, *, user_id: str) -> str:
        async with self._lock:
            if len(self._connections) >= self._max_connections:
                raise TooManyConnectionsError("max_connections_exceeded")
            await websocket.accept()
            connection_id = str(uuid.uuid4())
            now = utc_now()
            self._connections[connection_id] = ManagedConnection(
                connection_id=connection_id,
                user_id=str(user_id),
                websocket=websocket,
                connected_at=now,
                last_seen_at=now,
            )
            self._by_user.setdefault(str(user_id), set()).add(connection_id)
        logger.info("WS connected user=%s (%d total)", user_id, len(self._connections))
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        async with self._lock:
            conn = self._connections.pop(connection_id, None)
            if conn is None:
                return
            ids = self._by_user.get(conn.user_id)
            if ids is not None:
                ids.discard(connection_id)
                if not ids:
                    del self._by_user[conn.user_id]

    async def touch(self, connection_id: str) -> None:
        async with self._lock:
            conn = self._connections.get(connection_id)
            if conn:
                conn.last_seen_at = utc_now()

    def is_connected(self, user_id: str) -> bool:
        return bool(self._by_user.get(str(user_id)))

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> int:
        """Send to every connection of `user_id`; returns the number delivered."""
        async with self._lock:
            connections = [
                self._connections[cid]
                for cid in self._by_user.get(str(user_id), set())
                if cid in self._connections
            ]

        delivered = 0
        dead_ids: list[str] = []
        for conn in connections:
            try:
                await conn.websocket.send_json(message)
                delivered += 1
            except Exception:
                dead_ids.append(conn.connection_id)
                self._send_failures += 1
                logger.warning(
                    "WS send failed user=%s connection=%s", user_id, conn.connection_id, exc_info=True
                )

        for conn_id in dead_ids:
            await self.disconnect(conn_id)
            self._dropped_connections += 1
        self._sent_total += delivered
        return delivered

    def stats(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "active_connections": len(self._connections),
            "connected_users": len(self._by_user),
            "max_connections": self._max_connections,
            "heartbeat_seconds": self._heartbeat_seconds,
            "sent_total": self._sent_total,
            "send_failures": self._send_failures,
            "dropped_connections": self._dropped_connections,
        }

    async def ping_all(self) -> int:
        """Ping every connection once and drop the dead ones; returns drops."""
        async with self._lock:
            connections = list(self._connections.values())
        dead_ids: list[str] = []
        for conn in connections:
            try:
                await conn.websocket.send_json({"type": "ping", "data": {"ts": utc_now().isoformat()}})
            except Exception:
                dead_ids.append(conn.connection_id)
        for conn_id in dead_ids:
            await self.disconnect(conn_id)
            self._dropped_connections += 1
        return len(dead_ids)

    async def _heartbeat_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._heartbeat_seconds)
            await self.ping_all()


websocket_manager = WebSocketManager(
    max_connections=settings.WS_MAX_CONNECTIONS,
    heartbeat_seconds=settings.WS_HEARTBEAT_SECONDS,
)
