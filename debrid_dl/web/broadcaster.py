"""
Fans registry snapshots out to connected WebSocket clients and keeps each
connection honest with a periodic ping.
"""

import asyncio
import json
import logging
import uuid
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from aiohttp import web

from debrid_dl.core.registry import JobRegistry

log = logging.getLogger(__name__)


@dataclass
class Connection:
    """One open client WebSocket and its liveness state."""

    ws: web.WebSocketResponse
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    alive: bool = True
    probe_task: Optional[asyncio.Task] = field(default=None, repr=False)


class Broadcaster:
    """
    Maintains the set of open connections.

    Every ``ping_interval`` seconds each connection is pinged; one that has not
    answered the previous ping with a pong is closed. While downloads are
    running, a snapshot is pushed to everyone every ``progress_interval``
    seconds so byte counters advance without per-chunk broadcasts.
    """

    def __init__(
        self,
        registry: JobRegistry,
        ping_interval: float = 30.0,
        progress_interval: float = 1.0,
    ):
        self.registry = registry
        self.ping_interval = ping_interval
        self.progress_interval = progress_interval
        self.connections: Dict[str, Connection] = {}
        self._sampler_task: Optional[asyncio.Task] = None

    def register(self, ws: web.WebSocketResponse) -> str:
        """Tracks a newly opened connection and starts its liveness probe."""
        conn = Connection(ws=ws)
        conn.probe_task = asyncio.create_task(self._probe_loop(conn))
        self.connections[conn.id] = conn
        log.debug(f"Client {conn.id} connected ({len(self.connections)} open)")
        return conn.id

    def unregister(self, conn_id: str) -> None:
        """Forgets a connection and stops its probe. Safe to call twice."""
        conn = self.connections.pop(conn_id, None)
        if conn is None:
            return
        if conn.probe_task and conn.probe_task is not asyncio.current_task():
            conn.probe_task.cancel()
        log.debug(f"Client {conn_id} disconnected ({len(self.connections)} open)")

    def mark_alive(self, conn_id: str) -> None:
        """Records a pong from the client."""
        if conn := self.connections.get(conn_id):
            conn.alive = True

    async def send_to_one(self, conn_id: str, payload: Any) -> bool:
        """Sends a payload to one connection; returns False if it is gone."""
        conn = self.connections.get(conn_id)
        if conn is None:
            return False
        return await self._send(conn, json.dumps(payload))

    async def send_to_all(self, payload: Any) -> None:
        """Sends a payload to every open connection."""
        if not self.connections:
            return
        data = json.dumps(payload)
        await asyncio.gather(
            *(self._send(conn, data) for conn in list(self.connections.values()))
        )

    async def send_status(self, conn_id: str) -> bool:
        return await self.send_to_one(conn_id, self.registry.snapshot())

    async def broadcast_status(self) -> None:
        """Pushes the full registry snapshot to every client."""
        await self.send_to_all(self.registry.snapshot())

    async def start(self) -> None:
        """Starts the periodic progress sampler."""
        if self._sampler_task is None or self._sampler_task.done():
            self._sampler_task = asyncio.create_task(self._sample_progress())

    async def stop(self) -> None:
        """Stops the sampler and closes every open connection."""
        if self._sampler_task:
            self._sampler_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._sampler_task
            self._sampler_task = None

        for conn in list(self.connections.values()):
            self.unregister(conn.id)
            await conn.ws.close(code=1001, message=b"Server shutdown")

    async def _send(self, conn: Connection, data: str) -> bool:
        if conn.ws.closed:
            self.unregister(conn.id)
            return False
        try:
            await conn.ws.send_str(data)
            return True
        except (ConnectionError, RuntimeError) as e:
            log.warning(f"Dropping client {conn.id}: send failed ({e})")
            self.unregister(conn.id)
            return False

    async def _probe_loop(self, conn: Connection) -> None:
        while not conn.ws.closed:
            await asyncio.sleep(self.ping_interval)
            if conn.ws.closed:
                break
            if not conn.alive:
                log.warning(f"Client {conn.id} did not answer ping, closing connection")
                self.unregister(conn.id)
                await conn.ws.close(code=1001, message=b"Ping timeout")
                return
            conn.alive = False
            try:
                await conn.ws.ping()
            except (ConnectionError, RuntimeError) as e:
                log.warning(f"Ping to client {conn.id} failed: {e}")
                self.unregister(conn.id)
                await conn.ws.close()
                return

    async def _sample_progress(self) -> None:
        while True:
            await asyncio.sleep(self.progress_interval)
            if self.connections and self.registry.has_active_downloads:
                await self.broadcast_status()
