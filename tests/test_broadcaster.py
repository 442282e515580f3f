"""
Unit tests for the connection broadcaster using an in-memory WebSocket stand-in.
"""

import asyncio
import json

import pytest

from debrid_dl.core.registry import JobRegistry
from debrid_dl.web.broadcaster import Broadcaster


class FakeWebSocket:
    """Records what the broadcaster sends; can be told to fail sends."""

    def __init__(self, fail_send: bool = False):
        self.closed = False
        self.fail_send = fail_send
        self.sent = []
        self.pings = 0
        self.close_code = None

    async def send_str(self, data):
        if self.fail_send:
            raise ConnectionResetError("Cannot write to closing transport")
        self.sent.append(json.loads(data))

    async def ping(self, message=b""):
        self.pings += 1

    async def close(self, *, code=1000, message=b""):
        self.closed = True
        self.close_code = code


@pytest.fixture
async def broadcaster():
    b = Broadcaster(JobRegistry(), ping_interval=0.02, progress_interval=0.02)
    yield b
    await b.stop()


async def test_send_to_one_and_all(broadcaster):
    a, b = FakeWebSocket(), FakeWebSocket()
    a_id = broadcaster.register(a)
    broadcaster.register(b)

    assert await broadcaster.send_to_one(a_id, {"hello": 1}) is True
    await broadcaster.send_to_all({"hello": 2})

    assert a.sent == [{"hello": 1}, {"hello": 2}]
    assert b.sent == [{"hello": 2}]


async def test_send_to_unknown_connection(broadcaster):
    assert await broadcaster.send_to_one("nope", {}) is False


async def test_failed_send_drops_connection(broadcaster):
    good, bad = FakeWebSocket(), FakeWebSocket(fail_send=True)
    broadcaster.register(good)
    bad_id = broadcaster.register(bad)

    await broadcaster.send_to_all({"x": 1})

    assert bad_id not in broadcaster.connections
    assert good.sent == [{"x": 1}]


async def test_unanswered_ping_closes_connection(broadcaster, wait_until):
    ws = FakeWebSocket()
    conn_id = broadcaster.register(ws)

    await wait_until(lambda: ws.closed, timeout=2)

    assert ws.pings == 1
    assert ws.close_code == 1001
    assert conn_id not in broadcaster.connections


async def test_answered_pings_keep_connection_open(broadcaster):
    ws = FakeWebSocket()
    conn_id = broadcaster.register(ws)

    async def answer_pings():
        seen = 0
        while True:
            if ws.pings > seen:
                seen = ws.pings
                broadcaster.mark_alive(conn_id)
            await asyncio.sleep(0.002)

    responder = asyncio.create_task(answer_pings())
    await asyncio.sleep(0.15)
    responder.cancel()

    assert not ws.closed
    assert ws.pings >= 3


async def test_unregister_is_idempotent(broadcaster):
    conn_id = broadcaster.register(FakeWebSocket())

    broadcaster.unregister(conn_id)
    broadcaster.unregister(conn_id)

    assert broadcaster.connections == {}


async def test_progress_sampled_only_while_downloading(broadcaster, wait_until):
    ws = FakeWebSocket()
    broadcaster.ping_interval = 60
    broadcaster.register(ws)
    await broadcaster.start()

    await asyncio.sleep(0.1)
    assert ws.sent == []

    job = broadcaster.registry.add("http://example.test/a.bin")
    broadcaster.registry.start_download(job.id, "http://cdn.test/a.bin", "/tmp/a.bin")
    job.bytes_written = 42

    await wait_until(lambda: len(ws.sent) >= 2)
    assert ws.sent[-1]["downloading"][0]["bytesWritten"] == 42


async def test_stop_closes_connections(broadcaster):
    ws = FakeWebSocket()
    broadcaster.register(ws)

    await broadcaster.stop()

    assert ws.closed
    assert broadcaster.connections == {}
