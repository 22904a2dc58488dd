"""
ASGI adapter - bridges the ASGI protocol to Application.handle_async().

Supports HTTP and lifespan scopes. WebSocket connections are refused.
"""

from typing import Any, Callable, Dict
import asyncio
import logging

from .faults.domains import ApplicationNotBootedFault
from .request import Request


class ASGIAdapter:
    """
    ASGI application adapter.
    Converts ASGI events to Tessera Request/Response.
    """

    __slots__ = ("app", "logger")

    def __init__(self, app: Any):
        self.app = app
        self.logger = logging.getLogger("tessera.asgi")

    async def __call__(self, scope: Dict[str, Any], receive: Callable, send: Callable):
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        elif scope_type == "websocket":
            await send({"type": "websocket.close", "code": 1000})

    async def handle_http(self, scope: Dict[str, Any], receive: Callable, send: Callable):
        body = await self._read_body(receive)
        request = Request.from_scope(scope, body)

        if not self.app.booted:
            response = self.app.dispatcher.error_response(ApplicationNotBootedFault(), request)
        else:
            response = await self.app.handle_async(request)

        if request.method == "HEAD":
            response.content = b""
        await response.send_asgi(send)

    @staticmethod
    async def _read_body(receive: Callable) -> bytes:
        chunks = []
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                break
        return b"".join(chunks)

    async def handle_lifespan(self, scope: Dict[str, Any], receive: Callable, send: Callable):
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                if self.app.booted:
                    await send({"type": "lifespan.startup.complete"})
                else:
                    await send({
                        "type": "lifespan.startup.failed",
                        "message": "Application must be booted before serving",
                    })
                    return
            elif message["type"] == "lifespan.shutdown":
                try:
                    # Off the event loop: shutdown hooks may run coroutines to completion
                    await asyncio.to_thread(self.app.shutdown)
                except Exception as exc:
                    self.logger.error("Shutdown failed: %s", exc, exc_info=exc)
                    await send({"type": "lifespan.shutdown.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.shutdown.complete"})
                return
