"""
The aiohttp application: WebSocket endpoint, client message dispatch, and the
small fixed set of page assets.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from aiohttp import WSMsgType, web
from pydantic import ValidationError

from debrid_dl.api.client import DebridAPIClient
from debrid_dl.core.pipeline import Pipeline
from debrid_dl.core.registry import JobRegistry
from debrid_dl.exceptions import DebridError, InvalidMessageError
from debrid_dl.models.config import ServerConfig
from debrid_dl.models.job import Batch
from debrid_dl.transfer.downloader import Downloader
from debrid_dl.transfer.postprocess import PostProcessor, build_post_processor

from .broadcaster import Broadcaster

log = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"
PAGE_NAME = "index.html"
ASSET_TYPES = {
    "index.html": "text/html",
    "client.js": "text/javascript",
    "style.css": "text/css",
}

CONFIG_KEY = web.AppKey("config", ServerConfig)
REGISTRY_KEY = web.AppKey("registry", JobRegistry)
PIPELINE_KEY = web.AppKey("pipeline", Pipeline)
BROADCASTER_KEY = web.AppKey("broadcaster", Broadcaster)
API_CLIENT_KEY = web.AppKey("api_client", DebridAPIClient)
DOWNLOADER_KEY = web.AppKey("downloader", Downloader)
ASSETS_KEY = web.AppKey("assets", dict)


def parse_message(raw: str, default_save_dir: str = "") -> Tuple[str, Any]:
    """
    Classifies a client text frame.

    Returns one of ``("status", None)``, ``("remove", identifier)`` or
    ``("submit", Batch)``.

    Raises:
        InvalidMessageError: For anything that is not one of those shapes.
    """
    if raw.strip() == "getStatus":
        return "status", None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidMessageError("Message is not valid JSON.") from e

    if data == "getStatus":
        return "status", None
    if not isinstance(data, dict):
        raise InvalidMessageError("Message must be a JSON object.")

    if "remove" in data:
        identifier = data["remove"]
        if not isinstance(identifier, str) or not identifier.strip():
            raise InvalidMessageError("'remove' must be a non-empty string.")
        return "remove", identifier.strip()

    if "links" in data:
        if not data.get("saveLoc") and default_save_dir:
            data = {**data, "saveLoc": default_save_dir}
        try:
            return "submit", Batch.model_validate(data)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
            raise InvalidMessageError(f"Invalid submission ({fields or 'body'}).") from e

    if data.get("getStatus"):
        return "status", None

    raise InvalidMessageError("Unknown message type.")


async def handle_message(app: web.Application, conn_id: str, raw: str) -> None:
    """Dispatches one client message and answers with the current snapshot."""
    broadcaster = app[BROADCASTER_KEY]
    try:
        kind, value = parse_message(raw, app[CONFIG_KEY].default_save_dir)
    except InvalidMessageError as e:
        log.warning(f"Ignoring message from client {conn_id}: {e}")
        await broadcaster.send_to_one(conn_id, {"error": str(e)})
        await broadcaster.send_status(conn_id)
        return

    if kind == "remove":
        job = app[REGISTRY_KEY].cancel(value)
        if job is not None:
            log.info(f"[yellow]Removed[/yellow] {job.item}")
            await broadcaster.broadcast_status()
            return

    elif kind == "submit":
        try:
            jobs = await app[PIPELINE_KEY].submit(value)
        except DebridError as e:
            log.error(f"[red]✗ Rejected batch:[/] {e}")
            await broadcaster.send_to_one(conn_id, {"error": str(e)})
        else:
            if jobs:
                # submit() already broadcast to every client
                return

    await broadcaster.send_status(conn_id)


async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    """Serves one client connection for its whole lifetime."""
    ws = web.WebSocketResponse(autoping=False)
    await ws.prepare(request)

    broadcaster = request.app[BROADCASTER_KEY]
    conn_id = broadcaster.register(ws)
    try:
        await broadcaster.send_status(conn_id)
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                await handle_message(request.app, conn_id, msg.data)
            elif msg.type == WSMsgType.PING:
                await ws.pong(msg.data)
            elif msg.type == WSMsgType.PONG:
                broadcaster.mark_alive(conn_id)
            elif msg.type == WSMsgType.ERROR:
                log.warning(f"Client {conn_id} connection error: {ws.exception()}")
    finally:
        broadcaster.unregister(conn_id)
    return ws


async def asset_handler(request: web.Request) -> web.StreamResponse:
    """Serves the fixed page assets; the page URL also accepts WebSocket upgrades."""
    if request.headers.get("Upgrade", "").lower() == "websocket":
        return await websocket_handler(request)

    file_name = os.path.basename(request.path)
    if request.path.endswith("/") or file_name in ("", "index.html", "index.htm"):
        file_name = PAGE_NAME

    assets = request.app[ASSETS_KEY]
    if file_name not in assets:
        log.warning(f"Client requested an unknown file: '{request.path}'")
        return web.Response(status=404, text="404 Not Found\n")

    return web.Response(body=assets[file_name], content_type=ASSET_TYPES[file_name])


def _read_assets() -> Dict[str, bytes]:
    return {name: (STATIC_DIR / name).read_bytes() for name in ASSET_TYPES}


async def _on_startup(app: web.Application) -> None:
    app[ASSETS_KEY].update(await asyncio.to_thread(_read_assets))
    await app[BROADCASTER_KEY].start()


async def _on_shutdown(app: web.Application) -> None:
    await app[PIPELINE_KEY].shutdown()
    await app[BROADCASTER_KEY].stop()


async def _on_cleanup(app: web.Application) -> None:
    await app[API_CLIENT_KEY].close()
    await app[DOWNLOADER_KEY].close()
    log.debug("HTTP sessions closed.")


def create_app(
    config: ServerConfig,
    api_client: Optional[DebridAPIClient] = None,
    downloader: Optional[Downloader] = None,
    post_processor: Optional[PostProcessor] = None,
) -> web.Application:
    """
    Builds the application and wires the job engine together.

    The collaborators are created from ``config`` unless supplied.
    """
    registry = JobRegistry(max_errors=config.max_errors)
    api_client = api_client or DebridAPIClient(
        config.api_base_url, config.api_token, config.request_timeout
    )
    downloader = downloader or Downloader(
        request_timeout=config.request_timeout, chunk_size=config.chunk_size
    )
    if post_processor is None:
        post_processor = build_post_processor(config.post_process_command)

    broadcaster = Broadcaster(
        registry,
        ping_interval=config.ping_interval,
        progress_interval=config.progress_interval,
    )
    pipeline = Pipeline(
        registry,
        api_client,
        downloader,
        notify=broadcaster.broadcast_status,
        post_processor=post_processor,
    )

    app = web.Application()
    app[CONFIG_KEY] = config
    app[REGISTRY_KEY] = registry
    app[PIPELINE_KEY] = pipeline
    app[BROADCASTER_KEY] = broadcaster
    app[API_CLIENT_KEY] = api_client
    app[DOWNLOADER_KEY] = downloader
    app[ASSETS_KEY] = {}

    app.router.add_get("/ws", websocket_handler)
    app.router.add_get("/{tail:.*}", asset_handler)

    app.on_startup.append(_on_startup)
    app.on_shutdown.append(_on_shutdown)
    app.on_cleanup.append(_on_cleanup)
    return app


def run_server(config: ServerConfig, access_log: bool = False) -> None:
    """Runs the server until interrupted."""
    app = create_app(config)
    log.info(
        f"Server [bold]{config.server_name}[/bold] listening on "
        f"[cyan]http://{config.host}:{config.port}[/cyan]"
    )
    web.run_app(
        app,
        host=config.host,
        port=config.port,
        print=None,
        access_log=logging.getLogger("aiohttp.access") if access_log else None,
    )
