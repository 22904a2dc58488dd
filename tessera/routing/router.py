"""
Router - Route Table plus segment-trie matching.

Two-tier lookup:
1. Static route hash map: O(1) for routes with no placeholders
2. Per-method segment trie with backtracking for parameterized routes

Precedence: at every position a literal segment is tried before any
placeholder; placeholders are tried in registration order. Registration
order is therefore the tie-break between routes of identical shape.
"""

from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union
from contextlib import contextmanager
from dataclasses import dataclass
from urllib.parse import urlencode
import logging

from .pattern import PathPattern, Segment, compile_pattern, join_paths, normalize_path, split_path
from ..faults.domains import RouteNameNotFoundFault, RouterFrozenFault


logger = logging.getLogger("tessera.routing")

Target = Union[Tuple[Any, str], Callable[..., Any]]


@dataclass(frozen=True)
class RouteEntry:
    """
    Immutable (method, path pattern) -> handler mapping.

    Controller routes carry `controller` + `handler_name`; routes
    registered with a plain callable carry `endpoint` instead.
    """
    method: str
    path: str
    pattern: PathPattern
    controller: Any = None
    handler_name: Optional[str] = None
    endpoint: Optional[Callable[..., Any]] = None
    name: Optional[str] = None
    summary: str = ""
    status_code: int = 200

    @property
    def handler_label(self) -> str:
        if self.endpoint is not None:
            return getattr(self.endpoint, "__qualname__", repr(self.endpoint))
        controller = getattr(self.controller, "__name__", str(self.controller))
        return f"{controller}.{self.handler_name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "path": self.path,
            "handler": self.handler_label,
            "name": self.name,
        }


@dataclass
class RouteMatch:
    """Result of a successful route match."""
    route: RouteEntry
    params: Dict[str, Any]


class _TrieNode:
    """Segment trie node."""
    __slots__ = ("literals", "params", "route")

    def __init__(self):
        self.literals: Dict[str, "_TrieNode"] = {}
        self.params: Dict[Tuple[str, str], Tuple[Segment, "_TrieNode"]] = {}
        self.route: Optional[RouteEntry] = None


class Router:
    """
    Route Table for controller and endpoint routes.

    Mutated only during boot; `freeze()` makes it read-only so concurrent
    dispatch needs no locking.
    """

    def __init__(self):
        self._routes: List[RouteEntry] = []
        self._static: Dict[str, Dict[str, RouteEntry]] = {}
        self._tries: Dict[str, _TrieNode] = {}
        self._names: Dict[str, RouteEntry] = {}
        self._prefix_stack: List[str] = []
        self._frozen = False

    # ========================================================================
    # Registration
    # ========================================================================

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def add_route(
        self,
        method: str,
        path: str,
        controller: Any = None,
        handler_name: Optional[str] = None,
        *,
        endpoint: Optional[Callable[..., Any]] = None,
        name: Optional[str] = None,
        summary: str = "",
        status_code: int = 200,
    ) -> RouteEntry:
        """Append a Route Entry to the table."""
        method = method.upper()
        if self._prefix_stack:
            path = join_paths("/".join(self._prefix_stack), path)
        if self._frozen:
            raise RouterFrozenFault(method, path)
        if endpoint is None and (controller is None or not handler_name):
            raise ValueError("A route needs either a controller and handler name or an endpoint")

        pattern = compile_pattern(path)
        entry = RouteEntry(
            method=method,
            path=pattern.raw,
            pattern=pattern,
            controller=controller,
            handler_name=handler_name,
            endpoint=endpoint,
            name=name,
            summary=summary,
            status_code=status_code,
        )

        self._routes.append(entry)
        self._index(entry)
        if name:
            if name in self._names:
                logger.warning("Route name %r already used by %s %s", name,
                               self._names[name].method, self._names[name].path)
            self._names.setdefault(name, entry)

        logger.debug("Registered route %s %s -> %s", method, entry.path, entry.handler_label)
        return entry

    def _index(self, entry: RouteEntry) -> None:
        if entry.pattern.is_static:
            static = self._static.setdefault(entry.method, {})
            if entry.path in static:
                logger.warning("Duplicate route %s %s; first registration wins", entry.method, entry.path)
            static.setdefault(entry.path, entry)
            return

        node = self._tries.setdefault(entry.method, _TrieNode())
        for segment in entry.pattern.segments:
            if segment.is_param:
                shape = segment.shape
                if shape not in node.params:
                    node.params[shape] = (segment, _TrieNode())
                node = node.params[shape][1]
            else:
                node = node.literals.setdefault(segment.literal, _TrieNode())

        if node.route is not None:
            logger.warning("Duplicate route %s %s; first registration wins", entry.method, entry.path)
        else:
            node.route = entry

    def _add_target(self, method: str, path: str, target: Target, name: Optional[str]) -> RouteEntry:
        if isinstance(target, tuple):
            controller, handler_name = target
            return self.add_route(method, path, controller, handler_name, name=name)
        if callable(target):
            return self.add_route(method, path, endpoint=target, name=name)
        raise TypeError(f"Route target must be (Controller, 'method') or a callable, got {target!r}")

    def get(self, path: str, target: Target, name: Optional[str] = None) -> RouteEntry:
        return self._add_target("GET", path, target, name)

    def post(self, path: str, target: Target, name: Optional[str] = None) -> RouteEntry:
        return self._add_target("POST", path, target, name)

    def put(self, path: str, target: Target, name: Optional[str] = None) -> RouteEntry:
        return self._add_target("PUT", path, target, name)

    def patch(self, path: str, target: Target, name: Optional[str] = None) -> RouteEntry:
        return self._add_target("PATCH", path, target, name)

    def delete(self, path: str, target: Target, name: Optional[str] = None) -> RouteEntry:
        return self._add_target("DELETE", path, target, name)

    def any(self, path: str, target: Target) -> List[RouteEntry]:
        return [
            self._add_target(method, path, target, None)
            for method in ("GET", "POST", "PUT", "PATCH", "DELETE")
        ]

    @contextmanager
    def group(self, prefix: str) -> Iterator["Router"]:
        """
        Prefix every route registered inside the block.

        Example:
            with router.group("/admin"):
                router.get("/stats", stats)   # GET /admin/stats
        """
        self._prefix_stack.append(prefix.strip("/"))
        try:
            yield self
        finally:
            self._prefix_stack.pop()

    def add_controller(self, metadata) -> List[RouteEntry]:
        """Register every route of an extracted ControllerMetadata."""
        return [
            self.add_route(
                route.http_method,
                route.full_path,
                metadata.controller_class,
                route.handler_name,
                name=route.name,
                summary=route.summary,
                status_code=route.status_code,
            )
            for route in metadata.routes
        ]

    # ========================================================================
    # Matching
    # ========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Match a request method and path.

        Returns RouteMatch or None.
        """
        method = method.upper()
        norm_path = normalize_path(path)

        static = self._static.get(method)
        if static:
            hit = static.get(norm_path)
            if hit is not None:
                return RouteMatch(route=hit, params={})

        root = self._tries.get(method)
        if root is None:
            return None

        params: Dict[str, Any] = {}
        route = self._walk(root, split_path(norm_path), 0, params)
        if route is None:
            return None
        return RouteMatch(route=route, params=params)

    def _walk(
        self,
        node: _TrieNode,
        segments: List[str],
        index: int,
        params: Dict[str, Any],
    ) -> Optional[RouteEntry]:
        if index == len(segments):
            return node.route

        value = segments[index]
        child = node.literals.get(value)
        if child is not None:
            route = self._walk(child, segments, index + 1, params)
            if route is not None:
                return route

        for segment, child in node.params.values():
            if segment.is_path:
                ok, converted = segment.convert("/".join(segments[index:]))
                if ok and child.route is not None:
                    params[segment.param] = converted
                    return child.route
                continue

            ok, converted = segment.convert(value)
            if not ok:
                continue
            params[segment.param] = converted
            route = self._walk(child, segments, index + 1, params)
            if route is not None:
                return route
            del params[segment.param]

        return None

    # ========================================================================
    # Introspection
    # ========================================================================

    def routes(self) -> List[RouteEntry]:
        """All Route Entries in registration order."""
        return list(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def has_route(self, method: str, path: str) -> bool:
        return self.match(method, path) is not None

    def url_for(self, name: str, /, **params: Any) -> str:
        """
        Reverse URL generation.

        Parameters not used by the path are appended as a query string.
        """
        entry = self._names.get(name)
        if entry is None:
            raise RouteNameNotFoundFault(name)

        path_names = set(entry.pattern.param_names)
        url = entry.pattern.build({k: v for k, v in params.items() if k in path_names})
        query = {k: v for k, v in params.items() if k not in path_names}
        if query:
            url += "?" + urlencode(query)
        return url
