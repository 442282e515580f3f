"""
Shared pytest fixtures for the debrid-dl test suite.

This module provides:
- A fake debrid API and CDN served by an aiohttp test server
- A wiring of registry, clients and pipeline against those fakes
- A polling helper for conditions reached asynchronously
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from debrid_dl.api.client import DebridAPIClient
from debrid_dl.core.pipeline import Pipeline
from debrid_dl.core.registry import JobRegistry
from debrid_dl.transfer.downloader import Downloader


@dataclass
class FakeServices:
    """Knobs and recordings for the fake debrid API and CDN."""

    server: Optional[TestServer] = None
    files: Dict[str, bytes] = field(default_factory=dict)
    unrestrict_status: int = 200
    unrestrict_body: Optional[Union[str, bytes]] = None
    unrestrict_delay: float = 0.0
    filename: Optional[str] = None
    send_content_length: bool = True
    stream_gate: Optional[asyncio.Event] = None
    truncate_at: Optional[int] = None
    stall_seconds: float = 0.0
    requests: List[Dict[str, Any]] = field(default_factory=list)

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    @property
    def api_base_url(self) -> str:
        return self.url("/rest/1.0/")


SERVICES_KEY = web.AppKey("services", FakeServices)


async def _unrestrict(request: web.Request) -> web.Response:
    services = request.app[SERVICES_KEY]
    form = await request.post()
    services.requests.append(
        {"authorization": request.headers.get("Authorization"), "form": dict(form)}
    )
    if services.unrestrict_delay:
        await asyncio.sleep(services.unrestrict_delay)

    if services.unrestrict_body is not None:
        body = services.unrestrict_body
        return web.Response(
            status=services.unrestrict_status,
            body=body.encode() if isinstance(body, str) else body,
            content_type="application/json",
        )
    if services.unrestrict_status != 200:
        return web.json_response(
            {"error": "bad_token", "error_code": 8}, status=services.unrestrict_status
        )

    name = form["link"].rstrip("/").rsplit("/", 1)[-1]
    body = {"id": "ABC123", "link": form["link"], "download": services.url(f"/cdn/{name}")}
    if services.filename:
        body["filename"] = services.filename
    return web.json_response(body)


async def _cdn(request: web.Request) -> web.StreamResponse:
    services = request.app[SERVICES_KEY]
    data = services.files.get(request.match_info["name"])
    if data is None:
        return web.Response(status=404, text="not found")

    resp = web.StreamResponse()
    if services.send_content_length:
        resp.content_length = len(data)
    await resp.prepare(request)

    if services.truncate_at is not None:
        # Declared length is never reached; drop the connection mid-body.
        await resp.write(data[: services.truncate_at])
        request.transport.close()
        return resp

    if services.stall_seconds:
        await resp.write(data[: len(data) // 2])
        await asyncio.sleep(services.stall_seconds)
        await resp.write(data[len(data) // 2 :])
    elif services.stream_gate is None:
        await resp.write(data)
    else:
        half = len(data) // 2
        await resp.write(data[:half])
        await services.stream_gate.wait()
        await resp.write(data[half:])
    await resp.write_eof()
    return resp


@pytest.fixture
async def services(aiohttp_server):
    """Provide a running fake debrid API (``/rest/1.0/``) and CDN (``/cdn/``)."""
    fake = FakeServices()
    app = web.Application()
    app[SERVICES_KEY] = fake
    app.router.add_post("/rest/1.0/unrestrict/link", _unrestrict)
    app.router.add_get("/cdn/{name}", _cdn)
    fake.server = await aiohttp_server(app)
    yield fake
    if fake.stream_gate is not None:
        fake.stream_gate.set()


@dataclass
class Engine:
    registry: JobRegistry
    api_client: DebridAPIClient
    downloader: Downloader
    pipeline: Pipeline
    snapshots: List[Dict[str, Any]]


@pytest.fixture
async def engine(services):
    """Provide a registry + pipeline wired to the fake services, recording broadcasts."""
    registry = JobRegistry(max_errors=5)
    api_client = DebridAPIClient(services.api_base_url, "secret-token", request_timeout=2)
    downloader = Downloader(request_timeout=2, chunk_size=4096)
    snapshots: List[Dict[str, Any]] = []

    async def record():
        snapshots.append(registry.snapshot())

    pipeline = Pipeline(registry, api_client, downloader, notify=record)
    yield Engine(registry, api_client, downloader, pipeline, snapshots)

    await pipeline.shutdown()
    await api_client.close()
    await downloader.close()


@pytest.fixture
def wait_until() -> Callable:
    """Provide an async helper that polls a predicate until it holds."""

    async def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not reached before timeout")
            await asyncio.sleep(0.01)

    return _wait_until
