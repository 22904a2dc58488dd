"""
Tessera Dependency Injection

Synchronous DI container with explicit scopes and contextual bindings.

Key Features:
- Singleton and transient scopes, pre-built instances and aliases
- Constructor introspection with recursive resolution
- Cycle detection with the full resolution path
- Contextual bindings scoped to one consumer
- Strict unresolvable-parameter policy (no silent None)
"""

from .core import (
    Binding,
    Container,
    ContextualBinding,
    Provider,
    ProviderMeta,
    ResolveCtx,
    token_name,
)

from .providers import (
    AliasProvider,
    ClassProvider,
    Dependency,
    FactoryProvider,
    ValueProvider,
    extract_dependencies,
)

from .scopes import (
    BindingState,
    ServiceScope,
)

from .decorators import (
    Inject,
    inject,
    injectable,
    scope_of,
    service,
)

from .errors import (
    CircularDependencyFault,
    ProviderNotFoundFault,
    UnresolvableDependencyFault,
)

__all__ = [
    # Core types
    "Binding",
    "Container",
    "ContextualBinding",
    "Provider",
    "ProviderMeta",
    "ResolveCtx",
    "token_name",

    # Providers
    "AliasProvider",
    "ClassProvider",
    "Dependency",
    "FactoryProvider",
    "ValueProvider",
    "extract_dependencies",

    # Scopes
    "BindingState",
    "ServiceScope",

    # Decorators
    "Inject",
    "inject",
    "injectable",
    "scope_of",
    "service",

    # Errors
    "CircularDependencyFault",
    "ProviderNotFoundFault",
    "UnresolvableDependencyFault",
]
