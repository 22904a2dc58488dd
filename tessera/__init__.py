"""
Tessera - module-driven dependency injection and routing.

Modules declare providers, controllers, imports and exports; the loader
turns the module graph into container bindings and a route table, and
the dispatcher serves requests against them.

Example:
    from tessera import Application, Controller, GET, module

    class PingController(Controller):
        @GET("/ping")
        def ping(self):
            return "pong"

    @module(controllers=[PingController])
    class AppModule:
        pass

    app = Application().boot(AppModule)
"""

__version__ = "0.1.0"

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    ModuleNotFoundFault,
    InvalidModuleDescriptorFault,
    ProviderInitializationFault,
    ProviderDependencyFault,
    RouteNotFoundFault,
    BadRequestFault,
    HandlerFault,
    ApplicationNotBootedFault,
)
from .di import (
    Container,
    Inject,
    inject,
    injectable,
    service,
    ServiceScope,
    BindingState,
    CircularDependencyFault,
    ProviderNotFoundFault,
    UnresolvableDependencyFault,
)
from .modules import ModuleDescriptor, ModuleLoader, discover_modules, module, provide
from .controller import Controller, GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS, route, controller
from .routing import DispatchContext, Dispatcher, Router
from .request import Request
from .response import Response
from .service_providers import ProviderManager, ServiceProvider
from .config import ConfigLoader, TesseraConfig
from .application import Application

__all__ = [
    "__version__",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "ModuleNotFoundFault",
    "InvalidModuleDescriptorFault",
    "ProviderInitializationFault",
    "ProviderDependencyFault",
    "RouteNotFoundFault",
    "BadRequestFault",
    "HandlerFault",
    "ApplicationNotBootedFault",
    # DI
    "Container",
    "Inject",
    "inject",
    "injectable",
    "service",
    "ServiceScope",
    "BindingState",
    "CircularDependencyFault",
    "ProviderNotFoundFault",
    "UnresolvableDependencyFault",
    # Modules
    "ModuleDescriptor",
    "ModuleLoader",
    "discover_modules",
    "module",
    "provide",
    # Controllers & routing
    "Controller",
    "GET",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "HEAD",
    "OPTIONS",
    "route",
    "controller",
    "DispatchContext",
    "Dispatcher",
    "Router",
    "Request",
    "Response",
    # Application
    "ProviderManager",
    "ServiceProvider",
    "ConfigLoader",
    "TesseraConfig",
    "Application",
]
