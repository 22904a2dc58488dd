"""
Tessera Faults - structured error handling.

Every error raised by the container, the module loader and the router is
a Fault: a typed exception with a stable code, a domain and an HTTP
status used when it reaches the dispatch boundary.
"""

from .core import Fault, FaultDomain, Severity
from .domains import (
    ConfigFault,
    ConfigInvalidFault,
    RegistryFault,
    ModuleNotFoundFault,
    InvalidModuleDescriptorFault,
    ProviderInitializationFault,
    ProviderDependencyFault,
    DIFault,
    RoutingFault,
    RouteNotFoundFault,
    BadRequestFault,
    RouterFrozenFault,
    RouteNameNotFoundFault,
    HandlerFault,
    ApplicationNotBootedFault,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigFault",
    "ConfigInvalidFault",
    "RegistryFault",
    "ModuleNotFoundFault",
    "InvalidModuleDescriptorFault",
    "ProviderInitializationFault",
    "ProviderDependencyFault",
    "DIFault",
    "RoutingFault",
    "RouteNotFoundFault",
    "BadRequestFault",
    "RouterFrozenFault",
    "RouteNameNotFoundFault",
    "HandlerFault",
    "ApplicationNotBootedFault",
]
