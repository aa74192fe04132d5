"""Resource subscription tracking and update notifications."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from threading import Lock
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.lowlevel.server import request_ctx

LOGGER = logging.getLogger(__name__)


class ResourceNotifier:
    """Remembers which sessions subscribed to which URIs and tells them when a report changes."""

    def __init__(self, mcp: FastMCP | None = None) -> None:
        self._subscribers: dict[str, set[Any]] = defaultdict(set)
        self._lock = Lock()
        if mcp is not None:
            self._register_handlers(mcp)

    def _register_handlers(self, mcp: FastMCP) -> None:
        server = mcp._mcp_server

        @server.subscribe_resource()
        async def subscribe_resource(uri) -> None:
            context = request_ctx.get(None)
            if context is not None:
                self.subscribe(str(uri), context.session)

        @server.unsubscribe_resource()
        async def unsubscribe_resource(uri) -> None:
            context = request_ctx.get(None)
            if context is not None:
                self.unsubscribe(str(uri), context.session)

    def subscribe(self, uri: str, session: Any) -> None:
        with self._lock:
            self._subscribers[uri].add(session)

    def unsubscribe(self, uri: str, session: Any) -> None:
        with self._lock:
            sessions = self._subscribers.get(uri)
            if not sessions:
                return
            sessions.discard(session)
            if not sessions:
                self._subscribers.pop(uri, None)

    def subscribed_uris(self) -> list[str]:
        with self._lock:
            return sorted(self._subscribers)

    async def notify_resource_updated(self, uri: str) -> None:
        with self._lock:
            sessions = list(self._subscribers.get(uri, set()))
        for session in sessions:
            try:
                await session.send_resource_updated(uri)
            except Exception as error:
                LOGGER.warning("resource notification failed: uri=%s error=%s", uri, error)
                self.unsubscribe(uri, session)

    def notify_resource_updated_sync(self, uri: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.create_task(self.notify_resource_updated(uri))
