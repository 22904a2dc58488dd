"""
Decorators and injection markers for ergonomic DI usage.
"""

from typing import Any, Callable, Hashable, Optional, Type, TypeVar
from dataclasses import dataclass

from .scopes import ServiceScope


T = TypeVar("T")


@dataclass(frozen=True)
class Inject:
    """
    Injection metadata marker.

    Usage:
        def __init__(self, db: Annotated[Database, Inject("db.readonly")]):
            ...
    """

    token: Optional[Hashable] = None


def inject(token: Optional[Hashable] = None) -> Inject:
    """
    Create injection metadata.

    Args:
        token: Explicit identifier to resolve instead of the annotated type

    Example:
        def __init__(self, clock: Annotated[Callable, inject("clock")]):
            ...
    """
    return Inject(token=token)


def injectable(
    cls: Optional[Type[T]] = None,
    *,
    scope: ServiceScope | str = ServiceScope.SINGLETON,
) -> Any:
    """
    Mark a class as injectable and set its default scope.

    The scope is used when the class is listed as a module provider.

    Example:
        @injectable(scope="transient")
        class RequestClock:
            ...
    """
    resolved_scope = ServiceScope.coerce(scope)

    def decorator(target: Type[T]) -> Type[T]:
        target.__di_scope__ = resolved_scope  # type: ignore[attr-defined]
        return target

    if cls is not None:
        return decorator(cls)
    return decorator


def scope_of(cls: Any, default: ServiceScope = ServiceScope.SINGLETON) -> ServiceScope:
    """Scope declared via @injectable, or `default`."""
    return getattr(cls, "__di_scope__", default)


# Convenience alias
service: Callable[..., Any] = injectable
