"""
Tessera Faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults
- REGISTRY faults (module graph, boot)
- DI faults (base class; concrete ones live in tessera.di.errors)
- ROUTING faults
- FLOW faults
- SYSTEM faults
"""

from typing import Any, Optional, Sequence

from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigFault(Fault):
    """Base class for configuration faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CONFIG,
            severity=Severity.FATAL,
            metadata=metadata,
        )


class ConfigInvalidFault(ConfigFault):
    """Configuration value is invalid."""

    def __init__(self, key: str, reason: str):
        super().__init__(
            code="CONFIG_INVALID",
            message=f"Configuration key '{key}' is invalid: {reason}",
            metadata={"key": key, "reason": reason},
        )


# ============================================================================
# REGISTRY Faults
# ============================================================================

class RegistryFault(Fault):
    """Base class for module graph and boot faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.REGISTRY,
            severity=Severity.FATAL,
            metadata=metadata,
        )


class ModuleNotFoundFault(RegistryFault):
    """Module identifier cannot be imported or carries no descriptor."""

    def __init__(self, module: str, reason: str = ""):
        message = f"Module '{module}' not found"
        if reason:
            message += f": {reason}"
        super().__init__(
            code="MODULE_NOT_FOUND",
            message=message,
            metadata={"module": module, "reason": reason},
        )


class InvalidModuleDescriptorFault(RegistryFault):
    """Module descriptor is missing or malformed."""

    def __init__(self, module: str, errors: Sequence[str]):
        self.errors = list(errors)
        super().__init__(
            code="INVALID_MODULE_DESCRIPTOR",
            message=f"Module '{module}' has an invalid descriptor: {'; '.join(self.errors)}",
            metadata={"module": module, "errors": self.errors},
        )


class ProviderInitializationFault(RegistryFault):
    """A provider raised while being constructed."""

    def __init__(self, provider: str, cause: BaseException, module: Optional[str] = None):
        self.cause = cause
        where = f" in module '{module}'" if module else ""
        super().__init__(
            code="PROVIDER_INITIALIZATION_FAILED",
            message=(
                f"Provider '{provider}'{where} failed to initialize: "
                f"{type(cause).__name__}: {cause}"
            ),
            metadata={"provider": provider, "module": module, "_cause": cause},
        )


class ProviderDependencyFault(RegistryFault):
    """Service provider depends on a provider that is not registered."""

    def __init__(self, provider: str, missing: str):
        super().__init__(
            code="PROVIDER_DEPENDENCY_MISSING",
            message=f"Service provider '{provider}' requires '{missing}' to be registered first",
            metadata={"provider": provider, "missing": missing},
        )


# ============================================================================
# DI Faults
# ============================================================================

class DIFault(Fault):
    """Base class for dependency injection faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.DI,
            severity=Severity.ERROR,
            metadata=metadata,
        )


# ============================================================================
# ROUTING Faults
# ============================================================================

class RoutingFault(Fault):
    """Base class for routing faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        public: bool = False,
        status: int = 500,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.ROUTING,
            severity=Severity.WARN if public else Severity.ERROR,
            public=public,
            status=status,
            metadata=metadata,
        )


class RouteNotFoundFault(RoutingFault):
    """No route matches the request method and path."""

    def __init__(self, method: str, path: str):
        super().__init__(
            code="ROUTE_NOT_FOUND",
            message=f"No route matches {method} {path}",
            public=True,
            status=404,
            metadata={"method": method, "path": path},
        )


class BadRequestFault(RoutingFault):
    """Request data could not be bound to a handler parameter."""

    def __init__(self, message: str, **metadata: Any):
        super().__init__(
            code="BAD_REQUEST",
            message=message,
            public=True,
            status=400,
            metadata=metadata,
        )


class RouterFrozenFault(RoutingFault):
    """Route registration attempted after the route table was frozen."""

    def __init__(self, method: str, path: str):
        super().__init__(
            code="ROUTER_FROZEN",
            message=f"Cannot register {method} {path}: route table is frozen after boot",
            metadata={"method": method, "path": path},
        )


class RouteNameNotFoundFault(RoutingFault):
    """url_for() called with an unknown route name."""

    def __init__(self, name: str):
        super().__init__(
            code="ROUTE_NAME_NOT_FOUND",
            message=f"No route named '{name}'",
            metadata={"name": name},
        )


# ============================================================================
# FLOW Faults
# ============================================================================

class HandlerFault(Fault):
    """A route handler raised a non-fault exception."""

    def __init__(self, handler: str, cause: BaseException):
        self.cause = cause
        super().__init__(
            code="HANDLER_FAILED",
            message=f"Handler '{handler}' raised {type(cause).__name__}: {cause}",
            domain=FaultDomain.FLOW,
            metadata={"handler": handler, "_cause": cause},
        )


# ============================================================================
# SYSTEM Faults
# ============================================================================

class ApplicationNotBootedFault(Fault):
    """Request received before module loading completed."""

    def __init__(self):
        super().__init__(
            code="APPLICATION_NOT_BOOTED",
            message="Application must be booted before it can dispatch requests",
            domain=FaultDomain.SYSTEM,
            status=503,
        )
