"""
Dispatcher - turns a matched route into a handler invocation.

Per request:
1. Match (method, path) against the Router -> DispatchContext
2. Resolve a fresh controller instance from the Container
3. Bind handler parameters (request, path params, query params, services)
4. Invoke the handler and return its result

Faults and handler exceptions are caught here and converted into an
error Response, so one failing request never affects the next.
"""

from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple
from dataclasses import dataclass
from types import MappingProxyType
import asyncio
import inspect
import logging

from .router import RouteEntry, Router
from ..di.core import Container, ResolveCtx
from ..di.providers import Dependency, extract_dependencies
from ..faults.core import Fault
from ..faults.domains import BadRequestFault, HandlerFault, RouteNotFoundFault
from ..request import Request
from ..response import Response


logger = logging.getLogger("tessera.dispatch")

_SCALAR_CASTS: Dict[type, Callable[[str], Any]] = {
    int: int,
    float: float,
    str: str,
}

_TRUE = frozenset(("1", "true", "yes", "on"))
_FALSE = frozenset(("0", "false", "no", "off"))


def _cast_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"not a boolean: {value!r}")


_SCALAR_CASTS[bool] = _cast_bool

Middleware = Callable[["Request", Callable[["Request"], Any]], Any]


@dataclass(frozen=True)
class DispatchContext:
    """
    Ephemeral per-request dispatch state.

    Owned by the Dispatcher for one request; `params` is read-only.
    """
    route: RouteEntry
    params: Mapping[str, Any]
    request: Request


class Dispatcher:
    """
    Request dispatcher.

    Args:
        router: Route table to match against
        container: Container resolving controllers and handler services
        middleware: Callables `(request, call_next) -> result`, outermost first
        debug: Expose non-public fault messages in error responses

    Example:
        def timing(request, call_next):
            started = time.monotonic()
            result = call_next(request)
            request.state["elapsed"] = time.monotonic() - started
            return result

        dispatcher = Dispatcher(router, container, middleware=[timing])
    """

    def __init__(
        self,
        router: Router,
        container: Container,
        *,
        middleware: Optional[List[Middleware]] = None,
        debug: bool = False,
    ):
        self.router = router
        self.container = container
        self.middleware: List[Middleware] = list(middleware or [])
        self.debug = debug

    def use(self, middleware: Middleware) -> None:
        """Append a middleware (innermost so far)."""
        self.middleware.append(middleware)

    # ========================================================================
    # Public API
    # ========================================================================

    def match(self, request: Request) -> DispatchContext:
        """Find the route for a request or raise RouteNotFoundFault."""
        found = self.router.match(request.method, request.path)
        if found is None:
            raise RouteNotFoundFault(request.method, request.path)
        return DispatchContext(
            route=found.route,
            params=MappingProxyType(dict(found.params)),
            request=request,
        )

    def dispatch(self, request: Request) -> Any:
        """
        Dispatch a request and return the handler's result.

        On failure an error Response is returned instead.
        Coroutine handlers are run to completion when no event loop is
        running; inside a loop use dispatch_async().
        """
        try:
            return self._chain(request, self._endpoint_sync, [])
        except Exception as exc:
            return self.error_response(exc, request)

    async def dispatch_async(self, request: Request) -> Any:
        """Dispatch a request, awaiting coroutine handlers and middleware."""
        try:
            result = self._chain(request, self._endpoint_async, [])
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            return self.error_response(exc, request)

    def handle(self, request: Request) -> Response:
        """Dispatch and coerce the result into a Response."""
        matched: List[DispatchContext] = []
        try:
            result = self._chain(request, self._endpoint_sync, matched)
            return Response.coerce(result, status=_status_of(matched))
        except Exception as exc:
            return self.error_response(exc, request)

    async def handle_async(self, request: Request) -> Response:
        """Async variant of handle()."""
        matched: List[DispatchContext] = []
        try:
            result = self._chain(request, self._endpoint_async, matched)
            if inspect.isawaitable(result):
                result = await result
            return Response.coerce(result, status=_status_of(matched))
        except Exception as exc:
            return self.error_response(exc, request)

    # ========================================================================
    # Execution
    # ========================================================================

    def _chain(self, request: Request, endpoint, matched: List[DispatchContext]) -> Any:
        def call(index: int, req: Request) -> Any:
            if index == len(self.middleware):
                return endpoint(req, matched)
            return self.middleware[index](req, lambda r: call(index + 1, r))

        return call(0, request)

    def _endpoint_sync(self, request: Request, matched: List[DispatchContext]) -> Any:
        ctx, result = self._execute(request)
        matched.append(ctx)
        if inspect.isawaitable(result):
            try:
                result = _run_sync(result)
            except (Fault, RuntimeError):
                raise
            except Exception as exc:
                raise HandlerFault(ctx.route.handler_label, exc) from exc
        return result

    async def _endpoint_async(self, request: Request, matched: List[DispatchContext]) -> Any:
        ctx, result = self._execute(request)
        matched.append(ctx)
        if inspect.isawaitable(result):
            try:
                result = await result
            except Fault:
                raise
            except Exception as exc:
                raise HandlerFault(ctx.route.handler_label, exc) from exc
        return result

    def _execute(self, request: Request) -> Tuple[DispatchContext, Any]:
        ctx = self.match(request)
        handler = self._resolve_handler(ctx)
        kwargs = self._bind_arguments(handler, ctx)

        try:
            return ctx, handler(**kwargs)
        except Fault:
            raise
        except Exception as exc:
            raise HandlerFault(ctx.route.handler_label, exc) from exc

    def _resolve_handler(self, ctx: DispatchContext) -> Callable[..., Any]:
        route = ctx.route
        if route.endpoint is not None:
            return route.endpoint

        # Transient binding: a fresh controller per request
        instance = self.container.resolve(route.controller)
        handler = getattr(instance, route.handler_name, None)
        if handler is None or not callable(handler):
            raise HandlerFault(
                route.handler_label,
                AttributeError(f"{type(instance).__name__} has no method {route.handler_name!r}"),
            )
        return handler

    def _bind_arguments(self, handler: Callable[..., Any], ctx: DispatchContext) -> Dict[str, Any]:
        request = ctx.request
        overrides: Dict[str, Any] = {}

        for dep in extract_dependencies(handler):
            token = dep.token

            if isinstance(token, type) and issubclass(token, Request):
                overrides[dep.name] = request
            elif token is DispatchContext:
                overrides[dep.name] = ctx
            elif dep.name in ctx.params:
                overrides[dep.name] = self._cast(dep, ctx.params[dep.name], "path")
            elif token is None and dep.name == "request":
                overrides[dep.name] = request
            elif dep.name in request.query and (token is None or token in _SCALAR_CASTS):
                overrides[dep.name] = self._cast(dep, request.query[dep.name], "query")
            elif token in _SCALAR_CASTS and not dep.has_default:
                raise BadRequestFault(
                    f"Missing required query parameter '{dep.name}'",
                    parameter=dep.name,
                )

        return self.container.resolve_arguments(
            handler,
            overrides,
            ResolveCtx(self.container),
            consumers=(ctx.route.controller,) if ctx.route.controller is not None else (),
        )

    @staticmethod
    def _cast(dep: Dependency, value: Any, source: str) -> Any:
        cast = _SCALAR_CASTS.get(dep.token) if isinstance(dep.token, type) else None
        if cast is None or not isinstance(value, str):
            return value
        try:
            return cast(value)
        except (TypeError, ValueError):
            raise BadRequestFault(
                f"Invalid value for {source} parameter '{dep.name}': expected {dep.token.__name__}",
                parameter=dep.name,
                source=source,
            ) from None

    # ========================================================================
    # Errors
    # ========================================================================

    def error_response(self, exc: Exception, request: Optional[Request] = None) -> Response:
        """Convert an exception into a response-shaped error value."""
        fault = exc if isinstance(exc, Fault) else HandlerFault("dispatch", exc)
        where = f"{request.method} {request.path}" if request is not None else "request"

        if fault.status >= 500:
            cause = fault.metadata.get("_cause")
            logger.error("%s failed: %s", where, fault, exc_info=cause or fault)
        else:
            logger.info("%s -> %s %s", where, fault.status, fault.code)

        expose = fault.public or self.debug
        payload = {
            "error": {
                "code": fault.code if expose else "INTERNAL_ERROR",
                "message": fault.message if expose else "Internal Server Error",
            }
        }
        return Response.json(payload, status=fault.status)


def _run_sync(awaitable: Awaitable[Any]) -> Any:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(_consume(awaitable))
    if inspect.iscoroutine(awaitable):
        awaitable.close()
    raise RuntimeError("dispatch() called from a running event loop; use await dispatch_async() instead")


async def _consume(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _status_of(matched: List[DispatchContext]) -> int:
    return matched[-1].route.status_code if matched else 200
