"""
Web Layer.

This package serves the browser client: the WebSocket status channel and the
static page assets.
"""

from .broadcaster import Broadcaster
from .server import create_app, run_server

__all__ = ["Broadcaster", "create_app", "run_server"]
