"""
Core DI types and the Container.

The Container is the Binding Registry: it maps identifiers (classes,
abstract base classes or string aliases) to bindings and resolves them,
introspecting constructors and recursing into their dependencies.

Resolution is synchronous. Nothing in this module blocks or performs I/O.
"""

from typing import (
    Any,
    Callable,
    Dict,
    Hashable,
    Iterable,
    List,
    Optional,
    Protocol,
    Tuple,
    TypeVar,
    runtime_checkable,
)
from dataclasses import dataclass, field
import asyncio
import difflib
import inspect
import logging
import threading
from contextvars import ContextVar

from .errors import CircularDependencyFault, ProviderNotFoundFault, UnresolvableDependencyFault
from .scopes import BindingState, ServiceScope
from ..faults.core import Fault
from ..faults.domains import DIFault, ProviderInitializationFault


logger = logging.getLogger("tessera.di")

# Resolution chain in progress for the current thread or task, so that
# producers calling container.resolve() stay on the same path.
_active_ctx: ContextVar[Optional["ResolveCtx"]] = ContextVar("tessera_resolve_ctx", default=None)

T = TypeVar("T")

Identifier = Hashable

# Built-in types never constructed by autowiring
PRIMITIVE_TYPES = frozenset((str, int, float, bool, bytes, complex, list, dict, tuple, set))


def token_name(token: Any) -> str:
    """Human-readable name for an identifier."""
    if isinstance(token, str):
        return token
    if isinstance(token, type):
        return f"{token.__module__}.{token.__qualname__}"
    qualname = getattr(token, "__qualname__", None)
    if qualname:
        return f"{getattr(token, '__module__', '?')}.{qualname}"
    return repr(token)


@dataclass(frozen=True, slots=True)
class ProviderMeta:
    """Compact, serializable provider metadata."""

    name: str
    kind: str  # "class", "factory", "value", "alias"
    scope: ServiceScope
    module: str = ""
    qualname: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "scope": self.scope.value,
            "module": self.module,
            "qualname": self.qualname,
        }


class ResolveCtx:
    """
    Context for one resolve() call chain.

    Tracks the resolution path for cycle detection and diagnostics.
    """
    __slots__ = ("container", "stack")

    def __init__(self, container: "Container", path: Optional[Iterable[Identifier]] = None):
        self.container = container
        self.stack: List[Identifier] = list(path or ())

    def push(self, token: Identifier) -> None:
        self.stack.append(token)

    def pop(self) -> None:
        self.stack.pop()

    def in_cycle(self, token: Identifier) -> bool:
        return token in self.stack

    @property
    def consumer(self) -> Optional[Identifier]:
        """Identifier currently being built, if any."""
        return self.stack[-1] if self.stack else None

    def get_trace(self) -> List[str]:
        return [token_name(t) for t in self.stack]


@runtime_checkable
class Provider(Protocol):
    """Provider protocol - how to produce a value for a binding."""

    @property
    def meta(self) -> ProviderMeta:
        ...

    def instantiate(self, ctx: ResolveCtx) -> Any:
        ...


@dataclass
class Binding:
    """
    A registered recipe for one identifier.

    `instance` is set at most once for singleton bindings.
    """

    token: Identifier
    provider: Provider
    scope: ServiceScope
    instance: Any = None
    state: BindingState = BindingState.UNRESOLVED
    error: Optional[BaseException] = None
    resolutions: int = 0
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def is_singleton(self) -> bool:
        return self.scope is ServiceScope.SINGLETON

    @property
    def is_cached(self) -> bool:
        return self.is_singleton and self.state is BindingState.RESOLVED


@dataclass(frozen=True)
class ContextualBinding:
    """When building `consumer`, resolve `needed` as `concrete` instead."""

    consumer: Identifier
    needed: Identifier
    concrete: Identifier


class ContextualBindingBuilder:
    """
    Fluent helper for contextual bindings.

    Example:
        container.when(ReportService).needs(Storage).give(S3Storage)
    """

    def __init__(self, container: "Container", consumers: Tuple[Identifier, ...]):
        self._container = container
        self._consumers = consumers
        self._needed: Optional[Identifier] = None

    def needs(self, needed: Identifier) -> "ContextualBindingBuilder":
        self._needed = needed
        return self

    def give(self, concrete: Identifier) -> None:
        if self._needed is None:
            raise ValueError("when(...).needs(...) must be called before give(...)")
        for consumer in self._consumers:
            self._container.add_contextual_binding(consumer, self._needed, concrete)


MissingResolver = Callable[["Container", Identifier], bool]


class Container:
    """
    DI Container - the Binding Registry plus resolution logic.

    Bindings are mutated during boot and treated as read-only afterwards.
    Building a singleton holds that binding's lock, so concurrent first
    resolutions construct it once.
    """

    __slots__ = (
        "_bindings",
        "_contextual",
        "_missing_resolvers",
        "_resolution_order",
        "autowire",
    )

    def __init__(self, *, autowire: bool = False):
        self._bindings: Dict[Identifier, Binding] = {}
        self._contextual: Dict[Tuple[Identifier, Identifier], Identifier] = {}
        self._missing_resolvers: List[MissingResolver] = []
        self._resolution_order: List[Binding] = []
        self.autowire = autowire

    # ========================================================================
    # Registration
    # ========================================================================

    def register(self, token: Identifier, provider: Provider, scope: ServiceScope | str) -> Binding:
        """Register a provider under `token`. Last registration wins."""
        scope = ServiceScope.coerce(scope)
        if token in self._bindings:
            logger.warning("Overriding binding for %s", token_name(token))
        binding = Binding(token=token, provider=provider, scope=scope)
        self._bindings[token] = binding
        logger.debug(
            "Registered %s binding %s (%s)",
            scope.value, token_name(token), provider.meta.kind,
        )
        return binding

    def bind(
        self,
        token: Identifier,
        concrete: Any = None,
        scope: ServiceScope | str = ServiceScope.TRANSIENT,
    ) -> Binding:
        """
        Bind an identifier.

        Args:
            token: Identifier to bind
            concrete: None (bind a class to itself), a class to construct,
                a string identifier to alias, or a producer callable
                receiving the container
            scope: singleton or transient

        Example:
            container.bind(UserRepository, SqlUserRepository, "singleton")
            container.bind("clock", lambda c: time.monotonic)
        """
        from .providers import AliasProvider, ClassProvider, FactoryProvider

        if concrete is None:
            concrete = token

        if isinstance(concrete, type):
            provider = ClassProvider(concrete, scope=scope)
        elif isinstance(concrete, str):
            if concrete == token:
                raise TypeError(f"Cannot bind string identifier {token!r} to itself")
            provider = AliasProvider(concrete)
        elif callable(concrete):
            provider = FactoryProvider(concrete, scope=scope)
        else:
            raise TypeError(
                f"Cannot bind {token_name(token)} to {concrete!r}: expected a class, "
                f"an identifier string or a producer callable (use instance() for values)"
            )

        return self.register(token, provider, scope)

    def singleton(self, token: Identifier, concrete: Any = None) -> Binding:
        """Shorthand for bind(..., scope=singleton)."""
        return self.bind(token, concrete, ServiceScope.SINGLETON)

    def instance(self, token: Identifier, value: Any) -> Binding:
        """Register a pre-built value. Resolution is a pure lookup."""
        from .providers import ValueProvider

        binding = self.register(token, ValueProvider(value), ServiceScope.SINGLETON)
        binding.instance = value
        binding.state = BindingState.RESOLVED
        return binding

    def alias(self, token: Identifier, alias: str) -> Binding:
        """Make `alias` resolve to whatever `token` resolves to."""
        from .providers import AliasProvider

        return self.register(alias, AliasProvider(token), ServiceScope.TRANSIENT)

    def add_contextual_binding(
        self,
        consumer: Identifier,
        needed: Identifier,
        concrete: Identifier,
    ) -> ContextualBinding:
        """Resolve `needed` as `concrete` only while building `consumer`."""
        self._contextual[(consumer, needed)] = concrete
        logger.debug(
            "Contextual binding: %s needs %s -> %s",
            token_name(consumer), token_name(needed), token_name(concrete),
        )
        return ContextualBinding(consumer, needed, concrete)

    def when(self, *consumers: Identifier) -> ContextualBindingBuilder:
        return ContextualBindingBuilder(self, consumers)

    def add_missing_resolver(self, resolver: MissingResolver) -> None:
        """
        Register a hook consulted when an identifier has no binding.

        The hook may register a binding and return True; resolution is
        then retried once.
        """
        self._missing_resolvers.append(resolver)

    # ========================================================================
    # Queries
    # ========================================================================

    def bound(self, token: Identifier) -> bool:
        return token in self._bindings

    has = bound

    def resolved(self, token: Identifier) -> bool:
        binding = self._bindings.get(token)
        return binding is not None and binding.state is BindingState.RESOLVED

    def state(self, token: Identifier) -> Optional[BindingState]:
        binding = self._bindings.get(token)
        return binding.state if binding is not None else None

    def get_binding(self, token: Identifier) -> Optional[Binding]:
        return self._bindings.get(token)

    def identifiers(self) -> List[Identifier]:
        """Bound identifiers in registration order."""
        return list(self._bindings)

    def contextual_target(self, consumer: Identifier, needed: Identifier) -> Optional[Identifier]:
        return self._contextual.get((consumer, needed))

    def describe(self) -> List[Dict[str, Any]]:
        """Binding table for diagnostics."""
        return [
            {
                "token": token_name(b.token),
                "state": b.state.value,
                **b.provider.meta.to_dict(),
                "scope": b.scope.value,
            }
            for b in self._bindings.values()
        ]

    # ========================================================================
    # Resolution
    # ========================================================================

    def resolve(
        self,
        token: Identifier,
        resolution_path: Optional[Iterable[Identifier]] = None,
    ) -> Any:
        """
        Resolve an identifier to a value.

        Args:
            token: Identifier to resolve
            resolution_path: Identifiers already being built by the caller

        Raises:
            ProviderNotFoundFault: No binding for token
            CircularDependencyFault: token already on the resolution path
            UnresolvableDependencyFault: A constructor parameter cannot be satisfied
        """
        active = _active_ctx.get()
        if resolution_path is None and active is not None and active.container is self:
            return self._resolve(token, active)

        ctx = ResolveCtx(self, resolution_path)
        reset_token = _active_ctx.set(ctx)
        try:
            return self._resolve(token, ctx)
        finally:
            _active_ctx.reset(reset_token)

    def make(self, token: Identifier, **parameters: Any) -> Any:
        """
        Build a fresh value with named constructor overrides.

        The result is never cached, whatever the binding scope.
        """
        if not parameters:
            return self.resolve(token)

        from .providers import ClassProvider

        binding = self._lookup(token, ResolveCtx(self))
        provider = binding.provider
        if not isinstance(provider, ClassProvider):
            raise TypeError(
                f"make() parameters are only supported for class bindings, "
                f"{token_name(token)} is a {provider.meta.kind} binding"
            )

        ctx = ResolveCtx(self)
        ctx.push(token)
        reset_token = _active_ctx.set(ctx)
        try:
            return provider.build(ctx, parameters)
        finally:
            _active_ctx.reset(reset_token)
            ctx.pop()

    def call(
        self,
        func: Callable[..., T],
        overrides: Optional[Dict[str, Any]] = None,
        *,
        resolution_path: Optional[Iterable[Identifier]] = None,
    ) -> T:
        """
        Invoke a callable, injecting its typed parameters.

        Parameters named in `overrides` take those values; the rest are
        resolved from the container or fall back to their defaults.
        """
        ctx = ResolveCtx(self, resolution_path)
        reset_token = _active_ctx.set(ctx)
        try:
            kwargs = self.resolve_arguments(func, overrides, ctx)
        finally:
            _active_ctx.reset(reset_token)
        return func(**kwargs)

    def resolve_arguments(
        self,
        func: Callable[..., Any],
        overrides: Optional[Dict[str, Any]],
        ctx: ResolveCtx,
        consumers: Tuple[Identifier, ...] = (),
    ) -> Dict[str, Any]:
        """Resolve keyword arguments for `func` (used by providers and call())."""
        from .providers import extract_dependencies

        overrides = overrides or {}
        owner = getattr(func, "__qualname__", repr(func))
        kwargs: Dict[str, Any] = {}
        for dep in extract_dependencies(func):
            if dep.name in overrides:
                kwargs[dep.name] = overrides[dep.name]
                continue
            value = self._resolve_dependency(dep, ctx, consumers, owner)
            if value is not _USE_DEFAULT:
                kwargs[dep.name] = value
        return kwargs

    def _resolve_dependency(self, dep, ctx: ResolveCtx, consumers, owner: str) -> Any:
        if dep.token is None:
            if dep.has_default:
                return _USE_DEFAULT
            raise UnresolvableDependencyFault(dep.name, owner)

        for consumer in consumers:
            target = self._contextual.get((consumer, dep.token))
            if target is not None:
                return self._resolve(target, ctx, contextual=True)

        if self._can_resolve(dep.token):
            return self._resolve(dep.token, ctx)
        if dep.has_default:
            return _USE_DEFAULT
        raise UnresolvableDependencyFault(dep.name, owner, token_name(dep.token))

    def _can_resolve(self, token: Identifier) -> bool:
        if token in self._bindings:
            return True
        return self._try_missing(token) or self._autowirable(token)

    def _autowirable(self, token: Identifier) -> bool:
        return self.autowire and self._constructible(token)

    @staticmethod
    def _constructible(token: Identifier) -> bool:
        return (
            isinstance(token, type)
            and token not in PRIMITIVE_TYPES
            and not inspect.isabstract(token)
        )

    def _try_missing(self, token: Identifier) -> bool:
        for resolver in self._missing_resolvers:
            if resolver(self, token) and token in self._bindings:
                return True
        return False

    def _lookup(self, token: Identifier, ctx: ResolveCtx, build_unbound: bool = False) -> Binding:
        binding = self._bindings.get(token)
        if binding is not None:
            return binding
        if self._try_missing(token):
            return self._bindings[token]
        if self._autowirable(token) or (build_unbound and self._constructible(token)):
            logger.debug("Autowiring %s", token_name(token))
            return self.bind(token)

        candidates = difflib.get_close_matches(
            token_name(token), [token_name(t) for t in self._bindings], n=3,
        )
        requested_by = token_name(ctx.consumer) if ctx.consumer is not None else None
        raise ProviderNotFoundFault(token_name(token), requested_by, candidates)

    def _resolve(self, token: Identifier, ctx: ResolveCtx, contextual: bool = False) -> Any:
        consumer = ctx.consumer
        if consumer is not None:
            target = self._contextual.get((consumer, token))
            if target is not None:
                token, contextual = target, True

        # Check before recursing: the path is the only guard against unbounded recursion
        if ctx.in_cycle(token):
            start = ctx.stack.index(token)
            path = [token_name(t) for t in ctx.stack[start:]] + [token_name(token)]
            raise CircularDependencyFault(path)

        binding = self._lookup(token, ctx, build_unbound=contextual)

        if binding.is_cached:
            return binding.instance
        if not binding.is_singleton:
            return self._instantiate(binding, ctx)

        # Other threads wait here while one builds the singleton
        with binding.lock:
            if binding.is_cached:
                return binding.instance
            if binding.state is BindingState.FAILED:
                raise ProviderInitializationFault(token_name(token), binding.error)
            if binding.state is BindingState.RESOLVING:
                # Re-entered by the thread holding the lock under a fresh resolution path
                raise CircularDependencyFault(ctx.get_trace() + [token_name(token)])
            return self._instantiate(binding, ctx)

    def _instantiate(self, binding: Binding, ctx: ResolveCtx) -> Any:
        token = binding.token
        singleton = binding.is_singleton
        if singleton:
            binding.state = BindingState.RESOLVING

        ctx.push(token)
        try:
            instance = binding.provider.instantiate(ctx)
        except Fault:
            if singleton:
                binding.state = BindingState.UNRESOLVED
            raise
        except Exception as exc:
            if singleton:
                binding.state = BindingState.FAILED
                binding.error = exc
            raise
        finally:
            ctx.pop()

        binding.resolutions += 1
        if singleton:
            binding.instance = instance
            binding.state = BindingState.RESOLVED
            self._resolution_order.append(binding)
            logger.debug("Resolved singleton %s", token_name(token))
        else:
            binding.state = BindingState.RESOLVED
        return instance

    # ========================================================================
    # Shutdown
    # ========================================================================

    def shutdown(self) -> None:
        """
        Close resolved singletons in reverse resolution order.

        Instances exposing `close()` or `shutdown()` have it called.
        Coroutine results are run to completion when no loop is running.
        """
        while self._resolution_order:
            binding = self._resolution_order.pop()
            if binding.provider.meta.kind == "value":
                continue
            instance = binding.instance
            for hook_name in ("shutdown", "close"):
                hook = getattr(instance, hook_name, None)
                if callable(hook):
                    try:
                        result = hook()
                        if inspect.isawaitable(result):
                            asyncio.run(_await(result))
                    except Exception:
                        logger.exception("Error shutting down %s", token_name(binding.token))
                    break


async def _await(awaitable):
    return await awaitable


class _UseDefault:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<use default>"


_USE_DEFAULT = _UseDefault()


__all__ = [
    "Binding",
    "BindingState",
    "Container",
    "ContextualBinding",
    "ContextualBindingBuilder",
    "DIFault",
    "Identifier",
    "Provider",
    "ProviderMeta",
    "ResolveCtx",
    "token_name",
]
