"""
Request - transport-neutral HTTP request value.

The dispatcher only needs method, path, headers, body and query; socket
handling belongs to the host integration (see tessera.asgi).
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlsplit
import json

from .faults.domains import BadRequestFault


class Headers(Mapping[str, str]):
    """Case-insensitive, read-only header mapping."""

    __slots__ = ("_items",)

    def __init__(self, items: Optional[Mapping[str, str] | List[Tuple[str, str]]] = None):
        pairs = items.items() if isinstance(items, Mapping) else (items or [])
        self._items: Dict[str, str] = {k.lower(): v for k, v in pairs}

    def __getitem__(self, key: str) -> str:
        return self._items[key.lower()]

    def __iter__(self):
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"Headers({self._items!r})"


class Request:
    """
    HTTP request.

    Attributes:
        method: Upper-case HTTP method
        path: Path without query string
        headers: Case-insensitive headers
        body: Raw body bytes
        query: Query parameters (last value wins; see query_list)
    """

    __slots__ = ("method", "path", "headers", "body", "_query_pairs", "query", "state")

    def __init__(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str] | List[Tuple[str, str]]] = None,
        body: bytes | str = b"",
        query: Optional[Mapping[str, Any] | str] = None,
    ):
        split = urlsplit(path)
        self.method = method.upper()
        self.path = split.path or "/"
        self.headers = headers if isinstance(headers, Headers) else Headers(headers)
        self.body = body.encode("utf-8") if isinstance(body, str) else body

        pairs: List[Tuple[str, str]] = parse_qsl(split.query, keep_blank_values=True)
        if isinstance(query, str):
            pairs.extend(parse_qsl(query, keep_blank_values=True))
        elif query:
            pairs.extend((k, str(v)) for k, v in query.items())
        self._query_pairs = pairs
        self.query: Dict[str, str] = dict(pairs)
        self.state: Dict[str, Any] = {}

    @classmethod
    def from_scope(cls, scope: Dict[str, Any], body: bytes = b"") -> "Request":
        """Build a Request from an ASGI HTTP scope."""
        headers = [
            (name.decode("latin-1"), value.decode("latin-1"))
            for name, value in scope.get("headers", [])
        ]
        return cls(
            scope["method"],
            scope.get("path", "/"),
            headers=headers,
            body=body,
            query=scope.get("query_string", b"").decode("latin-1"),
        )

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name, default)

    def query_param(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.query.get(key, default)

    def query_list(self, key: str) -> List[str]:
        """All values for a repeated query key."""
        return [v for k, v in self._query_pairs if k == key]

    def text(self) -> str:
        return self.body.decode("utf-8")

    def json(self) -> Any:
        """Parse the body as JSON."""
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except (ValueError, UnicodeDecodeError) as exc:
            raise BadRequestFault(f"Invalid JSON body: {exc}") from exc

    def __repr__(self) -> str:
        return f"Request({self.method} {self.path})"
