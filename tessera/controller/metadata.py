"""
Controller Metadata Extraction

Introspects a controller class for its prefix and the route annotations
attached by the method decorators.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
import inspect

from ..routing.pattern import join_paths


@dataclass(frozen=True)
class RouteMetadata:
    """
    Metadata for a single route (controller method).

    Attributes:
        http_method: GET, POST, etc.
        path_template: Sub-path as declared on the method
        full_path: Prefix + path_template, normalized
        handler_name: Method name
        name: Route name for reverse lookup
        summary: Short description
        status_code: Default status code
    """
    http_method: str
    path_template: str
    full_path: str
    handler_name: str
    name: str
    summary: str = ""
    status_code: int = 200


@dataclass
class ControllerMetadata:
    """Complete metadata for a controller class."""
    controller_class: type
    prefix: str
    routes: List[RouteMetadata] = field(default_factory=list)

    @property
    def class_name(self) -> str:
        return self.controller_class.__name__

    def get_route(self, method: str, path: str) -> Optional[RouteMetadata]:
        """Find route by method and path."""
        for route in self.routes:
            if route.http_method == method and route.full_path == path:
                return route
        return None


def _public_methods_in_declaration_order(cls: type) -> List[tuple[str, Any]]:
    # inspect.getmembers() sorts by name; route order must follow the source
    seen: Dict[str, None] = {}
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for name in vars(klass):
            seen.setdefault(name, None)

    methods = []
    for name in seen:
        if name.startswith('_'):
            continue
        attr = inspect.getattr_static(cls, name)
        if isinstance(attr, (staticmethod, classmethod)) or not inspect.isfunction(attr):
            continue
        methods.append((name, attr))
    return methods


def extract_controller_metadata(cls: type) -> ControllerMetadata:
    """
    Extract prefix and routes from a controller class.

    Routes are returned in method declaration order; a method carrying
    several decorators yields one route per decorator, in the order they
    were applied.
    """
    prefix = getattr(cls, 'prefix', '') or ''
    metadata = ControllerMetadata(controller_class=cls, prefix=prefix)

    for method_name, func in _public_methods_in_declaration_order(cls):
        for route_meta in getattr(func, '__route_metadata__', ()):
            metadata.routes.append(RouteMetadata(
                http_method=route_meta['http_method'],
                path_template=route_meta['path'],
                full_path=join_paths(prefix, route_meta['path']),
                handler_name=method_name,
                name=route_meta['name'] or f"{cls.__name__}.{method_name}",
                summary=route_meta['summary'],
                status_code=route_meta['status_code'],
            ))

    return metadata
