"""
Routing (routing/)

Tests path pattern compilation, route precedence, typed placeholders,
reverse URLs, groups and freezing.
"""

import pytest

from tessera.controller import GET, POST, Controller, controller, extract_controller_metadata
from tessera.faults import RouteNameNotFoundFault, RouterFrozenFault
from tessera.routing import Router, compile_pattern, join_paths, normalize_path


class UsersController(Controller):
    prefix = "/users"

    @GET("/")
    def index(self):
        return []

    @GET("/{id:int}", name="users.show")
    def show(self, id: int):
        return {"id": id}

    @POST("/")
    def create(self):
        return {}


@controller("/admin")
class AdminController:
    @GET("/stats")
    def stats(self):
        return {}

    def helper(self):
        return None


def endpoint():
    return "ok"


# ============================================================================
# Path patterns
# ============================================================================

class TestPathPatterns:

    def test_normalize_path(self):
        assert normalize_path("") == "/"
        assert normalize_path("users//42/") == "/users/42"

    def test_join_paths(self):
        assert join_paths("/users", "/") == "/users"
        assert join_paths("", "ping") == "/ping"
        assert join_paths("/api/", "/v1/items") == "/api/v1/items"

    def test_compile_static(self):
        pattern = compile_pattern("/users/list")
        assert pattern.is_static
        assert pattern.param_names == []

    def test_compile_typed_params(self):
        pattern = compile_pattern("/users/{id:int}/files/{rest:path}")
        assert pattern.param_names == ["id", "rest"]
        assert str(pattern.segments[1]) == "{id:int}"

    @pytest.mark.parametrize("path", [
        "/users/{id",
        "/users/{id:decimal}",
        "/users/{id}/{id}",
        "/files/{rest:path}/tail",
        "/users/x{id}",
    ])
    def test_malformed_patterns_rejected(self, path):
        with pytest.raises(ValueError):
            compile_pattern(path)

    def test_build(self):
        assert compile_pattern("/users/{id:int}").build({"id": 7}) == "/users/7"
        with pytest.raises(ValueError):
            compile_pattern("/users/{id}").build({})


# ============================================================================
# Matching
# ============================================================================

class TestMatching:

    def test_static_match(self, router):
        router.get("/ping", endpoint)
        match = router.match("GET", "/ping")
        assert match is not None
        assert match.params == {}

    def test_trailing_slash_and_case_insensitive_method(self, router):
        router.get("/ping", endpoint)
        assert router.match("get", "/ping/") is not None

    def test_method_must_match(self, router):
        router.get("/ping", endpoint)
        assert router.match("POST", "/ping") is None

    def test_no_match(self, router):
        router.get("/ping", endpoint)
        assert router.match("GET", "/pong") is None

    def test_literal_beats_placeholder_regardless_of_order(self, router):
        router.get("/users/{id}", endpoint, name="by_id")
        router.get("/users/admin", endpoint, name="admin")

        assert router.match("GET", "/users/admin").route.name == "admin"
        assert router.match("GET", "/users/42").params == {"id": "42"}

    def test_literal_segment_beats_placeholder_mid_path(self, router):
        router.get("/users/{id}/posts", endpoint, name="posts")
        router.get("/users/me/posts", endpoint, name="my_posts")
        assert router.match("GET", "/users/me/posts").route.name == "my_posts"

    def test_backtracks_from_literal_to_placeholder(self, router):
        router.get("/x/new/show", endpoint, name="literal")
        router.get("/x/{id}/edit", endpoint, name="param")

        match = router.match("GET", "/x/new/edit")
        assert match.route.name == "param"
        assert match.params == {"id": "new"}

    def test_first_registered_wins_for_identical_shape(self, router):
        router.get("/a/{x}", endpoint, name="first")
        router.get("/a/{y}", endpoint, name="second")
        assert router.match("GET", "/a/1").route.name == "first"

    def test_typed_placeholder_converts(self, router):
        router.get("/items/{id:int}", endpoint)
        router.get("/prices/{amount:float}", endpoint)

        assert router.match("GET", "/items/42").params == {"id": 42}
        assert router.match("GET", "/prices/9.5").params == {"amount": 9.5}

    def test_typed_placeholder_mismatch_falls_through(self, router):
        router.get("/items/{id:int}", endpoint, name="by_id")
        router.get("/items/{slug}", endpoint, name="by_slug")

        assert router.match("GET", "/items/7").route.name == "by_id"
        assert router.match("GET", "/items/red-shoes").route.name == "by_slug"

    def test_uuid_placeholder(self, router):
        router.get("/orders/{ref:uuid}", endpoint)
        assert router.match("GET", "/orders/123e4567-e89b-12d3-a456-426614174000") is not None
        assert router.match("GET", "/orders/not-a-uuid") is None

    def test_path_placeholder_takes_remainder(self, router):
        router.get("/files/{rest:path}", endpoint)
        assert router.match("GET", "/files/a/b/c.txt").params == {"rest": "a/b/c.txt"}

    def test_duplicate_route_keeps_first(self, router):
        first = router.get("/dup", endpoint)
        router.get("/dup", lambda: "second")
        assert router.match("GET", "/dup").route is first


# ============================================================================
# Registration
# ============================================================================

class TestRegistration:

    def test_controller_routes_in_declaration_order(self, router):
        router.add_controller(extract_controller_metadata(UsersController))
        assert [(r.method, r.path) for r in router.routes()] == [
            ("GET", "/users"),
            ("GET", "/users/{id:int}"),
            ("POST", "/users"),
        ]

    def test_default_route_name(self):
        metadata = extract_controller_metadata(UsersController)
        assert metadata.routes[0].name == "UsersController.index"
        assert metadata.routes[1].name == "users.show"

    def test_controller_decorator_prefix(self):
        metadata = extract_controller_metadata(AdminController)
        assert metadata.prefix == "/admin"
        assert [r.full_path for r in metadata.routes] == ["/admin/stats"]

    def test_tuple_target(self, router):
        entry = router.get("/users", (UsersController, "index"))
        assert entry.controller is UsersController
        assert entry.handler_name == "index"
        assert entry.handler_label == "UsersController.index"

    def test_any_registers_every_method(self, router):
        router.any("/hook", endpoint)
        assert {r.method for r in router.routes()} == {"GET", "POST", "PUT", "PATCH", "DELETE"}

    def test_group_prefix(self, router):
        with router.group("/api"):
            with router.group("v1"):
                router.get("/items", endpoint)
        router.get("/health", endpoint)

        assert [r.path for r in router.routes()] == ["/api/v1/items", "/health"]

    def test_invalid_target(self, router):
        with pytest.raises(TypeError):
            router.get("/bad", "not callable")

    def test_freeze_rejects_new_routes(self, router):
        router.get("/ping", endpoint)
        router.freeze()
        with pytest.raises(RouterFrozenFault):
            router.get("/pong", endpoint)
        assert router.match("GET", "/ping") is not None


class TestUrlFor:

    def test_url_for_substitutes_params(self, router):
        router.add_controller(extract_controller_metadata(UsersController))
        assert router.url_for("users.show", id=5) == "/users/5"

    def test_extra_params_become_query(self, router):
        router.add_controller(extract_controller_metadata(UsersController))
        assert router.url_for("users.show", id=5, tab="posts") == "/users/5?tab=posts"

    def test_unknown_name(self, router):
        with pytest.raises(RouteNameNotFoundFault):
            router.url_for("nope")

    def test_path_param_called_name(self, router):
        router.get("/tags/{name}", endpoint, name="tags.show")
        assert router.url_for("tags.show", name="red") == "/tags/red"
