"""
Tessera Routing

Route table, segment-trie matching and request dispatch.
"""

from .pattern import PathPattern, Segment, compile_pattern, join_paths, normalize_path
from .router import RouteEntry, RouteMatch, Router
from .dispatcher import DispatchContext, Dispatcher, Middleware

__all__ = [
    "PathPattern",
    "Segment",
    "compile_pattern",
    "join_paths",
    "normalize_path",
    "RouteEntry",
    "RouteMatch",
    "Router",
    "DispatchContext",
    "Dispatcher",
    "Middleware",
]
