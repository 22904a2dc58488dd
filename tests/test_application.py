"""
Application, service providers, configuration, ASGI and CLI.
"""

import json

import httpx
import pytest
from click.testing import CliRunner

from tessera import cli as cli_module
from tessera.application import Application
from tessera.config import ConfigLoader, TesseraConfig
from tessera.controller import GET, Controller
from tessera.di import Container
from tessera.faults import (
    ApplicationNotBootedFault,
    ConfigInvalidFault,
    ProviderDependencyFault,
    RouterFrozenFault,
)
from tessera.modules import module
from tessera.request import Request
from tessera.service_providers import ServiceProvider

from conftest import make_scope


# ============================================================================
# Sample application
# ============================================================================

class Greeter:
    def __init__(self, config: TesseraConfig):
        self.env = config.env
        self.closed = False

    def greet(self, name: str) -> str:
        return f"hello {name} from {self.env}"

    def close(self):
        self.closed = True


class GreetController(Controller):
    prefix = "/greet"

    def __init__(self, greeter: Greeter):
        self.greeter = greeter

    @GET("/{name}", name="greet")
    def greet(self, name: str):
        return {"message": self.greeter.greet(name)}

    @GET("/fail")
    def fail(self):
        raise RuntimeError("nope")


@module(providers=[Greeter], controllers=[GreetController])
class AppModule:
    pass


class RecordingProvider(ServiceProvider):
    events = []

    def register(self):
        RecordingProvider.events.append("register")
        self.instance("recorder.events", RecordingProvider.events)

    def boot(self):
        # Module providers are available by boot time
        greeter = self.container.resolve(Greeter)
        RecordingProvider.events.append(f"boot:{greeter.env}")


class DependentProvider(ServiceProvider):
    dependencies = (RecordingProvider,)

    def register(self):
        self.singleton("dependent", lambda c: "ready")


class Cache:
    pass


class CacheProvider(ServiceProvider):
    provides = ("cache",)
    defer = True
    registrations = 0
    boots = 0

    def register(self):
        CacheProvider.registrations += 1
        self.singleton("cache", lambda c: Cache())

    def boot(self):
        CacheProvider.boots += 1


@pytest.fixture(autouse=True)
def reset_recorders():
    RecordingProvider.events = []
    CacheProvider.registrations = 0
    CacheProvider.boots = 0


# ============================================================================
# Application
# ============================================================================

class TestApplication:

    def test_boot_and_handle(self, app):
        app.boot(AppModule)
        response = app.handle(Request("GET", "/greet/ada"))
        assert response.status == 200
        assert json.loads(response.content) == {"message": "hello ada from dev"}

    def test_dispatch_returns_raw_result(self, app):
        app.boot(AppModule)
        assert app.dispatch(Request("GET", "/greet/bob")) == {"message": "hello bob from dev"}

    def test_base_bindings(self, app):
        assert app.container.resolve("app") is app
        assert app.container.resolve(Container) is app.container
        assert app.container.resolve("router") is app.router
        assert app.container.resolve("config") is app.config

    def test_request_before_boot_rejected(self, app):
        with pytest.raises(ApplicationNotBootedFault):
            app.handle(Request("GET", "/greet/ada"))

    def test_boot_freezes_router(self, app):
        app.boot(AppModule)
        assert app.router.frozen
        with pytest.raises(RouterFrozenFault):
            app.router.get("/late", lambda: "late")
        with pytest.raises(RuntimeError):
            app.load(AppModule)

    def test_boot_twice_rejected(self, app):
        app.boot(AppModule)
        with pytest.raises(RuntimeError):
            app.boot()

    def test_url_for(self, app):
        app.boot(AppModule)
        assert app.url_for("greet", name="ada") == "/greet/ada"

    def test_autowire_from_config(self):
        app = Application(TesseraConfig(autowire=True))
        assert app.container.autowire is True

    def test_shutdown_closes_singletons(self, app):
        app.boot(AppModule)
        greeter = app.container.resolve(Greeter)
        app.shutdown()
        assert greeter.closed

    def test_middleware_via_application(self, app):
        app.use(lambda request, call_next: {"wrapped": call_next(request)})
        app.boot(AppModule)
        assert app.dispatch(Request("GET", "/greet/x")) == {"wrapped": {"message": "hello x from dev"}}

    def test_discover_loads_package_modules(self, app, tmp_path, monkeypatch):
        package = tmp_path / "greeting_pkg"
        package.mkdir()
        (package / "__init__.py").write_text("")
        (package / "status.py").write_text(
            "from tessera import GET, module\n"
            "\n"
            "class StatusController:\n"
            "    @GET(\"/status\")\n"
            "    def status(self):\n"
            "        return {\"ok\": True}\n"
            "\n"
            "@module(controllers=[StatusController])\n"
            "class StatusModule:\n"
            "    pass\n"
        )
        monkeypatch.syspath_prepend(str(tmp_path))

        found = app.discover("greeting_pkg")
        app.boot()
        assert [cls.__name__ for cls in found] == ["StatusModule"]
        assert app.dispatch(Request("GET", "/status")) == {"ok": True}


# ============================================================================
# Service providers
# ============================================================================

class TestServiceProviders:

    def test_register_then_boot_after_modules(self):
        app = Application(providers=[RecordingProvider])
        assert RecordingProvider.events == ["register"]

        app.boot(AppModule)
        assert RecordingProvider.events == ["register", "boot:dev"]
        assert app.provider_manager.is_booted(RecordingProvider)

    def test_register_twice_is_noop(self, app):
        app.register(RecordingProvider)
        app.register(RecordingProvider)
        assert RecordingProvider.events == ["register"]

    def test_missing_dependency(self, app):
        with pytest.raises(ProviderDependencyFault):
            app.register(DependentProvider)

    def test_dependency_satisfied(self, app):
        app.register(RecordingProvider)
        app.register(DependentProvider)
        assert app.container.resolve("dependent") == "ready"

    def test_rejects_non_provider(self, app):
        with pytest.raises(TypeError):
            app.register(Cache)

    def test_deferred_provider_registers_on_first_resolve(self, app):
        app.register(CacheProvider)
        assert CacheProvider.registrations == 0
        assert app.provider_manager.is_deferred(CacheProvider)

        app.boot(AppModule)
        cache = app.container.resolve("cache")
        assert isinstance(cache, Cache)
        assert app.container.resolve("cache") is cache
        assert CacheProvider.registrations == 1
        assert CacheProvider.boots == 1

    def test_deferred_provider_requires_provides(self, app):
        class Lazy(ServiceProvider):
            defer = True

            def register(self):
                pass

        with pytest.raises(TypeError):
            app.register(Lazy)


# ============================================================================
# Configuration
# ============================================================================

class TestConfig:

    def test_defaults(self, monkeypatch):
        for key in ("TESSERA_DEBUG", "TESSERA_PORT", "TESSERA_ENV"):
            monkeypatch.delenv(key, raising=False)
        config = ConfigLoader.load(env_file=None)
        assert config == TesseraConfig()

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("TESSERA_DEBUG", "true")
        monkeypatch.setenv("TESSERA_PORT", "9000")
        config = ConfigLoader.load(env_file=None)
        assert config.debug is True
        assert config.port == 9000

    def test_precedence(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("TESSERA_PORT=7000\nTESSERA_ENV=staging\nTESSERA_LOG_LEVEL=DEBUG\n")
        monkeypatch.setenv("TESSERA_PORT", "7100")

        config = ConfigLoader.load(env_file=str(env_file), overrides={"env": "prod"})
        assert config.port == 7100
        assert config.env == "prod"
        assert config.log_level == "DEBUG"

    def test_missing_env_file_ignored(self, tmp_path):
        config = ConfigLoader.load(env_file=str(tmp_path / "absent.env"))
        assert isinstance(config, TesseraConfig)

    def test_invalid_value(self, monkeypatch):
        monkeypatch.setenv("TESSERA_PORT", "eighty")
        with pytest.raises(ConfigInvalidFault):
            ConfigLoader.load(env_file=None)


# ============================================================================
# ASGI
# ============================================================================

class TestASGI:

    @pytest.mark.asyncio
    async def test_http_round_trip(self, app):
        app.boot(AppModule)
        transport = httpx.ASGITransport(app=app.asgi)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/greet/ada")
            missing = await client.get("/missing")
            failed = await client.get("/greet/fail")

        assert response.status_code == 200
        assert response.json() == {"message": "hello ada from dev"}
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == "ROUTE_NOT_FOUND"
        assert failed.status_code == 500

    @pytest.mark.asyncio
    async def test_not_booted_is_503(self, app):
        sent = []

        async def receive():
            return {"type": "http.request", "body": b"", "more_body": False}

        async def send(message):
            sent.append(message)

        await app.asgi(make_scope("GET", "/greet/ada"), receive, send)
        assert sent[0]["status"] == 503

    @pytest.mark.asyncio
    async def test_lifespan_shutdown(self, app):
        app.boot(AppModule)
        greeter = app.container.resolve(Greeter)
        messages = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])
        sent = []

        async def receive():
            return next(messages)

        async def send(message):
            sent.append(message["type"])

        await app.asgi({"type": "lifespan"}, receive, send)
        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]
        assert greeter.closed


# ============================================================================
# CLI
# ============================================================================

class TestCLI:

    def test_routes_command(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(cli_module.cli, ["routes", f"{__name__}:AppModule"])
        assert result.exit_code == 0, result.output
        assert "/greet/{name}" in result.output
        assert "GreetController.greet" in result.output

    def test_routes_with_bad_module(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(cli_module.cli, ["routes", "no_such_pkg:AppModule"])
        assert result.exit_code == 1

    def test_serve_runs_uvicorn(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        calls = {}

        def fake_run(asgi_app, **kwargs):
            calls["app"] = asgi_app
            calls.update(kwargs)

        monkeypatch.setattr(cli_module.uvicorn, "run", fake_run)
        result = CliRunner().invoke(cli_module.cli, ["serve", f"{__name__}:AppModule", "--port", "8123"])

        assert result.exit_code == 0, result.output
        assert calls["port"] == 8123
        assert calls["app"].app.booted
