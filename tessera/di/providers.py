"""
Provider implementations for different instantiation strategies.
"""

from typing import Any, Callable, Dict, List, Optional, Type, TypeVar, Union
from typing import Annotated, get_args, get_origin, get_type_hints
from dataclasses import dataclass
import inspect
import types

from .core import _USE_DEFAULT, Identifier, ProviderMeta, ResolveCtx
from .decorators import Inject
from .scopes import ServiceScope


T = TypeVar("T")

_EMPTY = inspect.Parameter.empty


@dataclass(frozen=True)
class Dependency:
    """One injectable parameter of a constructor or callable."""

    name: str
    token: Optional[Identifier]
    default: Any = _EMPTY

    @property
    def has_default(self) -> bool:
        return self.default is not _EMPTY


def _unwrap_annotation(annotation: Any) -> Optional[Identifier]:
    """
    Reduce a parameter annotation to the identifier to resolve.

    - Annotated[T, Inject("token")] -> "token"
    - Annotated[T, ...] -> T
    - Optional[T] -> T
    """
    if annotation is _EMPTY:
        return None

    origin = get_origin(annotation)
    if origin is Annotated:
        base, *metadata = get_args(annotation)
        for meta in metadata:
            if isinstance(meta, Inject) and meta.token is not None:
                return meta.token
        return _unwrap_annotation(base)

    if origin is Union or origin is types.UnionType:
        members = [a for a in get_args(annotation) if a is not type(None)]
        if len(members) == 1:
            return _unwrap_annotation(members[0])

    return annotation


def extract_dependencies(target: Callable[..., Any]) -> List[Dependency]:
    """
    Extract injectable parameters from a class constructor or callable.

    *args/**kwargs are skipped. Bound methods do not report `self`.
    """
    if isinstance(target, type):
        if target.__init__ is object.__init__:
            return []
        hint_source = target.__init__
    else:
        hint_source = target

    try:
        sig = inspect.signature(target)
    except (TypeError, ValueError):
        return []

    try:
        hints = get_type_hints(hint_source, include_extras=True)
    except Exception:
        # Unresolvable forward references: fall back to raw annotations
        hints = {}

    deps = []
    for name, param in sig.parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        annotation = hints.get(name, param.annotation)
        deps.append(Dependency(name=name, token=_unwrap_annotation(annotation), default=param.default))
    return deps


def _meta_for(obj: Any, kind: str, scope: ServiceScope, name: Optional[str] = None) -> ProviderMeta:
    return ProviderMeta(
        name=name or getattr(obj, "__name__", kind),
        kind=kind,
        scope=scope,
        module=getattr(obj, "__module__", "") or "",
        qualname=getattr(obj, "__qualname__", "") or "",
    )


class ClassProvider:
    """
    Provider that instantiates a class by resolving constructor dependencies.
    """

    __slots__ = ("_meta", "_cls", "_dependencies")

    def __init__(self, cls: Type[T], scope: ServiceScope | str = ServiceScope.TRANSIENT):
        self._cls = cls
        self._dependencies: Optional[List[Dependency]] = None
        self._meta = _meta_for(cls, "class", ServiceScope.coerce(scope))

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    @property
    def cls(self) -> type:
        return self._cls

    @property
    def dependencies(self) -> List[Dependency]:
        # Extracted lazily so forward references defined after binding resolve
        if self._dependencies is None:
            self._dependencies = extract_dependencies(self._cls)
        return self._dependencies

    def instantiate(self, ctx: ResolveCtx) -> Any:
        return self.build(ctx)

    def build(self, ctx: ResolveCtx, overrides: Optional[Dict[str, Any]] = None) -> Any:
        """Resolve constructor dependencies and instantiate."""
        container = ctx.container
        overrides = overrides or {}
        consumers = (ctx.consumer, self._cls) if ctx.consumer is not self._cls else (self._cls,)
        owner = f"{self._cls.__qualname__}.__init__"

        kwargs: Dict[str, Any] = {}
        for dep in self.dependencies:
            if dep.name in overrides:
                kwargs[dep.name] = overrides[dep.name]
                continue
            value = container._resolve_dependency(dep, ctx, consumers, owner)
            if value is not _USE_DEFAULT:
                kwargs[dep.name] = value

        return self._cls(**kwargs)

    def __repr__(self) -> str:
        return f"ClassProvider({self._cls.__qualname__}, scope={self._meta.scope.value})"


class FactoryProvider:
    """
    Provider that calls a producer function.

    Producers taking a positional parameter receive the container.
    """

    __slots__ = ("_meta", "_factory", "_takes_container")

    def __init__(
        self,
        factory: Callable[..., Any],
        scope: ServiceScope | str = ServiceScope.TRANSIENT,
        name: Optional[str] = None,
    ):
        self._factory = factory
        self._takes_container = _accepts_positional(factory)
        self._meta = _meta_for(factory, "factory", ServiceScope.coerce(scope), name)

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    def instantiate(self, ctx: ResolveCtx) -> Any:
        if self._takes_container:
            return self._factory(ctx.container)
        return self._factory()

    def __repr__(self) -> str:
        return f"FactoryProvider({self._meta.qualname or self._meta.name})"


class ValueProvider:
    """Provider that returns a pre-bound constant value."""

    __slots__ = ("_meta", "_value")

    def __init__(self, value: Any, name: Optional[str] = None):
        self._value = value
        self._meta = ProviderMeta(
            name=name or type(value).__name__,
            kind="value",
            scope=ServiceScope.SINGLETON,
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    def instantiate(self, ctx: ResolveCtx) -> Any:
        return self._value


class AliasProvider:
    """Provider that aliases one identifier to another."""

    __slots__ = ("_meta", "_target")

    def __init__(self, target: Identifier):
        self._target = target
        self._meta = ProviderMeta(
            name=f"alias:{getattr(target, '__name__', target)}",
            kind="alias",
            scope=ServiceScope.TRANSIENT,
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    @property
    def target(self) -> Identifier:
        return self._target

    def instantiate(self, ctx: ResolveCtx) -> Any:
        return ctx.container._resolve(self._target, ctx)


def _accepts_positional(func: Callable[..., Any]) -> bool:
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return True
    return any(
        p.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
            inspect.Parameter.VAR_POSITIONAL,
        )
        for p in sig.parameters.values()
    )
