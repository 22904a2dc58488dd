"""
Dispatch (routing/dispatcher.py)

Tests the request path from route match to handler invocation: controller
resolution, parameter binding, error conversion and middleware.
"""

import asyncio
import json

import pytest

from tessera.controller import DELETE, GET, POST, Controller
from tessera.modules import module
from tessera.request import Request
from tessera.response import Response
from tessera.routing import DispatchContext, Dispatcher


# ============================================================================
# Sample application
# ============================================================================

class Logger:
    def __init__(self):
        self.lines = []

    def log(self, line: str):
        self.lines.append(line)


class PingController(Controller):
    instances = 0

    def __init__(self, logger: Logger):
        PingController.instances += 1
        self.logger = logger

    @GET("/ping")
    def ping(self):
        return "pong"


class ItemsController(Controller):
    prefix = "/items"

    def __init__(self, logger: Logger):
        self.logger = logger

    @GET("/{id:int}")
    def show(self, id: int, verbose: bool = False):
        return {"id": id, "verbose": verbose}

    @GET("/by-name/{name}")
    def by_name(self, name: str, request: Request):
        return {"name": name, "path": request.path}

    @GET("/search")
    def search(self, q: str, limit: int = 10):
        return {"q": q, "limit": limit}

    @POST("/", status_code=201)
    def create(self, request: Request, logger: Logger):
        payload = request.json()
        logger.log(f"created {payload['name']}")
        return {"created": payload["name"]}

    @GET("/context/{slug}")
    def context(self, ctx: DispatchContext):
        return {"route": ctx.route.name, "slug": ctx.params["slug"]}

    @DELETE("/{id:int}")
    def destroy(self, id: int):
        return None

    @GET("/boom")
    def boom(self):
        raise ValueError("database exploded")

    @GET("/async")
    async def later(self):
        await asyncio.sleep(0)
        return {"async": True}


@module(providers=[Logger], controllers=[PingController, ItemsController])
class RootModule:
    pass


@pytest.fixture
def dispatcher(loader, container, router):
    loader.load(RootModule)
    router.freeze()
    return Dispatcher(router, container)


def body(response: Response):
    return json.loads(response.content)


# ============================================================================
# Dispatch
# ============================================================================

class TestDispatch:

    def test_ping_returns_pong(self, dispatcher):
        assert dispatcher.dispatch(Request("GET", "/ping")) == "pong"

    def test_fresh_controller_per_request(self, dispatcher, container):
        PingController.instances = 0
        dispatcher.dispatch(Request("GET", "/ping"))
        dispatcher.dispatch(Request("GET", "/ping"))
        assert PingController.instances == 2

    def test_singleton_shared_across_requests(self, dispatcher, container):
        dispatcher.dispatch(Request("POST", "/items", body=json.dumps({"name": "a"})))
        dispatcher.dispatch(Request("POST", "/items", body=json.dumps({"name": "b"})))
        assert container.resolve(Logger).lines == ["created a", "created b"]

    def test_typed_path_param(self, dispatcher):
        assert dispatcher.dispatch(Request("GET", "/items/42")) == {"id": 42, "verbose": False}

    def test_query_param_cast(self, dispatcher):
        result = dispatcher.dispatch(Request("GET", "/items/42?verbose=true"))
        assert result == {"id": 42, "verbose": True}

    def test_request_injection(self, dispatcher):
        result = dispatcher.dispatch(Request("GET", "/items/by-name/lamp"))
        assert result == {"name": "lamp", "path": "/items/by-name/lamp"}

    def test_query_defaults(self, dispatcher):
        assert dispatcher.dispatch(Request("GET", "/items/search?q=lamp")) == {"q": "lamp", "limit": 10}
        assert dispatcher.dispatch(Request("GET", "/items/search", query={"q": "x", "limit": 3})) == {
            "q": "x",
            "limit": 3,
        }

    def test_dispatch_context_injection(self, dispatcher):
        result = dispatcher.dispatch(Request("GET", "/items/context/red"))
        assert result == {"route": "ItemsController.context", "slug": "red"}

    def test_coroutine_handler_run_to_completion(self, dispatcher):
        assert dispatcher.dispatch(Request("GET", "/items/async")) == {"async": True}


class TestErrors:

    def test_route_not_found(self, dispatcher):
        response = dispatcher.dispatch(Request("GET", "/nowhere"))
        assert isinstance(response, Response)
        assert response.status == 404
        assert body(response) == {
            "error": {"code": "ROUTE_NOT_FOUND", "message": "No route matches GET /nowhere"},
        }

    def test_handler_exception_becomes_500(self, dispatcher):
        response = dispatcher.dispatch(Request("GET", "/items/boom"))
        assert response.status == 500
        assert body(response)["error"] == {"code": "INTERNAL_ERROR", "message": "Internal Server Error"}

    def test_debug_exposes_fault_details(self, loader, container, router):
        loader.load(RootModule)
        debug_dispatcher = Dispatcher(router, container, debug=True)

        response = debug_dispatcher.dispatch(Request("GET", "/items/boom"))
        error = body(response)["error"]
        assert error["code"] == "HANDLER_FAILED"
        assert "database exploded" in error["message"]

    def test_dispatch_continues_after_failure(self, dispatcher):
        assert dispatcher.dispatch(Request("GET", "/items/boom")).status == 500
        assert dispatcher.dispatch(Request("GET", "/ping")) == "pong"

    def test_missing_query_param_is_bad_request(self, dispatcher):
        response = dispatcher.dispatch(Request("GET", "/items/search"))
        assert response.status == 400
        assert body(response)["error"]["code"] == "BAD_REQUEST"

    def test_invalid_query_cast_is_bad_request(self, dispatcher):
        response = dispatcher.dispatch(Request("GET", "/items/search?q=a&limit=many"))
        assert response.status == 400

    def test_invalid_json_body_is_bad_request(self, dispatcher):
        response = dispatcher.dispatch(Request("POST", "/items", body="{not json"))
        assert response.status == 400

    def test_unbound_controller_is_500(self, container, router):
        router.get("/orphan", (PingController, "ping"))
        response = Dispatcher(router, container).dispatch(Request("GET", "/orphan"))
        assert response.status == 500


class TestHandle:

    def test_route_status_code_applied(self, dispatcher):
        response = dispatcher.handle(Request("POST", "/items", body=json.dumps({"name": "a"})))
        assert response.status == 201
        assert body(response) == {"created": "a"}

    def test_none_becomes_204(self, dispatcher):
        assert dispatcher.handle(Request("DELETE", "/items/3")).status == 204

    def test_text_result(self, dispatcher):
        response = dispatcher.handle(Request("GET", "/ping"))
        assert response.content == b"pong"
        assert response.media_type.startswith("text/plain")

    @pytest.mark.asyncio
    async def test_handle_async_awaits_handlers(self, dispatcher):
        response = await dispatcher.handle_async(Request("GET", "/items/async"))
        assert body(response) == {"async": True}

    @pytest.mark.asyncio
    async def test_sync_dispatch_inside_loop_is_rejected(self, dispatcher):
        response = dispatcher.dispatch(Request("GET", "/items/async"))
        assert response.status == 500


class TestMiddleware:

    def test_middleware_order_and_result(self, dispatcher):
        calls = []

        def outer(request, call_next):
            calls.append("outer")
            result = call_next(request)
            return {"wrapped": result}

        def inner(request, call_next):
            calls.append("inner")
            return call_next(request)

        dispatcher.use(outer)
        dispatcher.use(inner)

        assert dispatcher.dispatch(Request("GET", "/ping")) == {"wrapped": "pong"}
        assert calls == ["outer", "inner"]

    def test_middleware_can_short_circuit(self, dispatcher):
        def deny(request, call_next):
            return Response.json({"denied": True}, status=403)

        dispatcher.use(deny)
        assert dispatcher.dispatch(Request("GET", "/ping")).status == 403

    def test_middleware_sees_errors_as_responses(self, dispatcher):
        seen = []

        def observe(request, call_next):
            try:
                return call_next(request)
            except Exception as exc:
                seen.append(type(exc).__name__)
                raise

        dispatcher.use(observe)
        response = dispatcher.dispatch(Request("GET", "/nowhere"))
        assert response.status == 404
        assert seen == ["RouteNotFoundFault"]

    @pytest.mark.asyncio
    async def test_async_middleware(self, dispatcher):
        async def tag(request, call_next):
            result = await call_next(request)
            return {"tagged": result}

        dispatcher.use(tag)
        assert await dispatcher.dispatch_async(Request("GET", "/items/async")) == {"tagged": {"async": True}}
