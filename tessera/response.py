"""
Response - HTTP response value and result coercion.

Handlers may return anything; `Response.coerce()` converts results at
the transport boundary:
- Response instances pass through
- dict/list -> JSON
- None -> 204 No Content
- str/bytes -> text/plain or application/octet-stream
- anything else -> str() as text
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional
import json
import logging


logger = logging.getLogger("tessera.response")


def _json_default(o: Any) -> Any:
    if hasattr(o, "to_dict"):
        return o.to_dict()
    if hasattr(o, "__dict__"):
        return {k: v for k, v in vars(o).items() if not k.startswith("_")}
    return str(o)


class Response:
    """HTTP response."""

    __slots__ = ("content", "status", "headers", "media_type")

    def __init__(
        self,
        content: bytes | str = b"",
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
        media_type: Optional[str] = None,
    ):
        self.content = content.encode("utf-8") if isinstance(content, str) else content
        self.status = status
        self.headers: Dict[str, str] = dict(headers or {})
        self.media_type = media_type

    @classmethod
    def json(
        cls,
        data: Any,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
    ) -> "Response":
        body = json.dumps(data, default=_json_default, separators=(",", ":"))
        return cls(body, status=status, headers=headers, media_type="application/json")

    @classmethod
    def text(
        cls,
        content: str,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
    ) -> "Response":
        return cls(content, status=status, headers=headers, media_type="text/plain; charset=utf-8")

    @classmethod
    def empty(cls, status: int = 204) -> "Response":
        return cls(b"", status=status)

    @classmethod
    def coerce(cls, value: Any, status: int = 200) -> "Response":
        """Convert a handler result into a Response."""
        if isinstance(value, Response):
            return value
        if value is None:
            return cls.empty()
        if isinstance(value, (dict, list, tuple)):
            return cls.json(value, status=status)
        if isinstance(value, bytes):
            return cls(value, status=status, media_type="application/octet-stream")
        return cls.text(str(value), status=status)

    def json_body(self) -> Any:
        """Decode a JSON body (convenience for tests and clients)."""
        return json.loads(self.content) if self.content else None

    def header_items(self) -> list[tuple[bytes, bytes]]:
        """Raw header pairs for ASGI."""
        headers = dict(self.headers)
        if self.media_type and "content-type" not in {k.lower() for k in headers}:
            headers["content-type"] = self.media_type
        headers.setdefault("content-length", str(len(self.content)))
        return [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers.items()]

    async def send_asgi(self, send: Callable[[Dict[str, Any]], Any]) -> None:
        """Send this response over an ASGI `send` callable."""
        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": self.header_items(),
        })
        await send({"type": "http.response.body", "body": self.content})

    def __repr__(self) -> str:
        return f"Response(status={self.status}, media_type={self.media_type!r})"
