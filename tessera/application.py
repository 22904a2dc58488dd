"""
Application - wires the container, router, module loader, dispatcher
and service providers together.

Example:
    app = Application()
    app.boot(AppModule)
    response = app.handle(Request("GET", "/ping"))
"""

from types import ModuleType
from typing import Any, Iterable, List, Optional, Type, Union
import logging

from .config import TesseraConfig
from .di.core import Container
from .faults.domains import ApplicationNotBootedFault
from .modules.descriptor import DescriptorRegistry, ModuleRef
from .modules.discovery import discover_modules
from .modules.loader import ModuleLoader
from .request import Request
from .response import Response
from .routing.dispatcher import Dispatcher, Middleware
from .routing.router import Router
from .service_providers import ProviderManager, ServiceProvider


logger = logging.getLogger("tessera.app")


class Application:
    """
    Application facade.

    Lifecycle:
        1. register(ServiceProvider) / use(middleware)
        2. boot(*modules): load modules, boot providers, freeze the router
        3. handle(request) / dispatch(request), or serve `app.asgi`
        4. shutdown()

    Args:
        config: Configuration (defaults to TesseraConfig())
        providers: Service provider classes to register immediately
        middleware: Dispatcher middleware, outermost first
        descriptors: Descriptor registry for modules declared without @module
    """

    def __init__(
        self,
        config: Optional[TesseraConfig] = None,
        *,
        providers: Iterable[Type[ServiceProvider]] = (),
        middleware: Iterable[Middleware] = (),
        descriptors: Optional[DescriptorRegistry] = None,
    ):
        self.config = config or TesseraConfig()
        self.container = Container(autowire=self.config.autowire)
        self.router = Router()
        self.loader = ModuleLoader(self.container, self.router, descriptors)
        self.dispatcher = Dispatcher(
            self.router,
            self.container,
            middleware=list(middleware),
            debug=self.config.debug,
        )
        self.provider_manager = ProviderManager(self)
        self._booted = False
        self._asgi = None

        self._register_base_bindings()
        for provider_cls in providers:
            self.register(provider_cls)

    def _register_base_bindings(self) -> None:
        container = self.container
        container.instance(Application, self)
        container.alias(Application, "app")
        container.instance(Container, container)
        container.instance(Router, self.router)
        container.alias(Router, "router")
        container.instance(TesseraConfig, self.config)
        container.alias(TesseraConfig, "config")
        container.instance(ModuleLoader, self.loader)
        container.instance(Dispatcher, self.dispatcher)

    # ========================================================================
    # Setup
    # ========================================================================

    @property
    def booted(self) -> bool:
        return self._booted

    def register(self, provider_cls: Type[ServiceProvider]) -> Optional[ServiceProvider]:
        """Register a service provider."""
        return self.provider_manager.register(provider_cls)

    def use(self, middleware: Middleware) -> None:
        """Add dispatcher middleware."""
        self.dispatcher.use(middleware)

    def load(self, module: ModuleRef) -> None:
        """Load a module before boot."""
        if self._booted:
            raise RuntimeError("Cannot load modules after boot; the route table is frozen")
        self.loader.load(module)

    def discover(self, package: Union[str, ModuleType]) -> List[type]:
        """Load every module class found in a package."""
        found = discover_modules(package, self.loader.descriptors)
        for module_cls in found:
            self.load(module_cls)
        return found

    def boot(self, *modules: ModuleRef) -> "Application":
        """
        Load root modules, boot service providers and freeze the router.

        Boot faults propagate; a failed boot leaves the application
        unbooted and it must be rebuilt.
        """
        if self._booted:
            raise RuntimeError("Application already booted")

        for module in modules:
            self.load(module)
        self.provider_manager.boot()
        self.router.freeze()
        self._booted = True

        logger.info(
            "Application booted: %d modules, %d routes",
            len(self.loader.loaded_modules()), len(self.router),
        )
        return self

    # ========================================================================
    # Requests
    # ========================================================================

    def _ensure_booted(self) -> None:
        if not self._booted:
            raise ApplicationNotBootedFault()

    def dispatch(self, request: Request) -> Any:
        """Dispatch and return the handler's raw result (or an error Response)."""
        self._ensure_booted()
        return self.dispatcher.dispatch(request)

    async def dispatch_async(self, request: Request) -> Any:
        self._ensure_booted()
        return await self.dispatcher.dispatch_async(request)

    def handle(self, request: Request) -> Response:
        """Dispatch and coerce the result into a Response."""
        self._ensure_booted()
        return self.dispatcher.handle(request)

    async def handle_async(self, request: Request) -> Response:
        self._ensure_booted()
        return await self.dispatcher.handle_async(request)

    def url_for(self, name: str, /, **params: Any) -> str:
        return self.router.url_for(name, **params)

    @property
    def asgi(self):
        """ASGI callable serving this application."""
        if self._asgi is None:
            from .asgi import ASGIAdapter
            self._asgi = ASGIAdapter(self)
        return self._asgi

    # ========================================================================
    # Shutdown
    # ========================================================================

    def shutdown(self) -> None:
        """Close resolved singletons in reverse resolution order."""
        logger.info("Shutting down application")
        self.container.shutdown()
