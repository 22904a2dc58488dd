"""
Service providers - imperative container setup with a register/boot lifecycle.

A ServiceProvider binds services in `register()` and wires them together
in `boot()`, which runs once every provider is registered and every
module is loaded. Deferred providers register lazily, the first time one
of the identifiers in `provides` is resolved.

Example:
    class CacheServiceProvider(ServiceProvider):
        provides = ("cache",)
        defer = True

        def register(self):
            self.singleton("cache", lambda c: MemoryCache())
"""

from typing import Any, Dict, List, Optional, Tuple, Type
import logging

from .di.core import Container, Identifier, token_name
from .faults.domains import ProviderDependencyFault


logger = logging.getLogger("tessera.providers")


class ServiceProvider:
    """
    Base class for service providers.

    Class attributes:
        dependencies: Provider classes that must be registered first
        provides: Identifiers bound by register() (required when deferred)
        defer: Register only when one of `provides` is first resolved
    """

    dependencies: Tuple[Type["ServiceProvider"], ...] = ()
    provides: Tuple[Identifier, ...] = ()
    defer: bool = False

    def __init__(self, app: Any):
        self.app = app

    @property
    def container(self) -> Container:
        return self.app.container

    def register(self) -> None:
        raise NotImplementedError(f"{type(self).__name__} must implement register()")

    def boot(self) -> None:
        pass

    # Shorthands for register()

    def bind(self, token: Identifier, concrete: Any = None) -> None:
        self.container.bind(token, concrete)

    def singleton(self, token: Identifier, concrete: Any = None) -> None:
        self.container.singleton(token, concrete)

    def instance(self, token: Identifier, value: Any) -> None:
        self.container.instance(token, value)

    def alias(self, token: Identifier, alias: str) -> None:
        self.container.alias(token, alias)


class ProviderManager:
    """
    Tracks service providers through registration and boot.

    Args:
        app: Application handed to each provider's constructor
    """

    def __init__(self, app: Any):
        self.app = app
        self._providers: Dict[type, ServiceProvider] = {}
        self._booted: List[type] = []
        self._deferred: Dict[type, ServiceProvider] = {}
        self._provider_map: Dict[Identifier, type] = {}
        self._booting_started = False
        app.container.add_missing_resolver(self._resolve_missing)

    def register(self, provider_cls: Type[ServiceProvider]) -> Optional[ServiceProvider]:
        """
        Register a provider class. Registering twice is a no-op.

        Raises:
            TypeError: Not a ServiceProvider subclass
            ProviderDependencyFault: A dependency is not registered yet
        """
        if provider_cls in self._providers or provider_cls in self._deferred:
            return self._providers.get(provider_cls) or self._deferred.get(provider_cls)
        if not (isinstance(provider_cls, type) and issubclass(provider_cls, ServiceProvider)):
            raise TypeError(f"{provider_cls!r} is not a ServiceProvider subclass")

        provider = provider_cls(self.app)

        if provider.defer:
            if not provider.provides:
                raise TypeError(f"Deferred provider {provider_cls.__name__} must declare 'provides'")
            self._deferred[provider_cls] = provider
            for token in provider.provides:
                self._provider_map[token] = provider_cls
            logger.debug("Deferred provider %s for %s", provider_cls.__name__,
                         ", ".join(token_name(t) for t in provider.provides))
            return provider

        self._check_dependencies(provider)
        provider.register()
        self._providers[provider_cls] = provider
        for token in provider.provides:
            self._provider_map[token] = provider_cls
        logger.debug("Registered provider %s", provider_cls.__name__)
        return provider

    def register_all(self, providers: List[Type[ServiceProvider]]) -> None:
        for provider_cls in providers:
            self.register(provider_cls)

    def boot(self) -> None:
        """Boot registered providers in registration order."""
        self._booting_started = True
        for provider_cls, provider in list(self._providers.items()):
            self._boot_one(provider_cls, provider)

    def _boot_one(self, provider_cls: type, provider: ServiceProvider) -> None:
        if provider_cls in self._booted:
            return
        provider.boot()
        self._booted.append(provider_cls)
        logger.debug("Booted provider %s", provider_cls.__name__)

    def _check_dependencies(self, provider: ServiceProvider) -> None:
        for dependency in provider.dependencies:
            if not self.is_registered(dependency):
                raise ProviderDependencyFault(type(provider).__name__, dependency.__name__)

    def _resolve_missing(self, container: Container, token: Identifier) -> bool:
        provider_cls = self._provider_map.get(token)
        if provider_cls is None or provider_cls not in self._deferred:
            return False

        provider = self._deferred.pop(provider_cls)
        self._check_dependencies(provider)
        provider.register()
        self._providers[provider_cls] = provider
        logger.debug("Loaded deferred provider %s for %s", provider_cls.__name__, token_name(token))

        if self._booting_started:
            self._boot_one(provider_cls, provider)
        return True

    # ========================================================================
    # Queries
    # ========================================================================

    def is_registered(self, provider_cls: type) -> bool:
        return provider_cls in self._providers

    def is_booted(self, provider_cls: type) -> bool:
        return provider_cls in self._booted

    def is_deferred(self, provider_cls: type) -> bool:
        return provider_cls in self._deferred

    def provider_for(self, token: Identifier) -> Optional[type]:
        return self._provider_map.get(token)

    def providers(self) -> List[ServiceProvider]:
        return list(self._providers.values())
