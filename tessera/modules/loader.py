"""
Module Loader - turns a module graph into container bindings and routes.

load(M):
1. Already loaded (or being loaded further up the import chain) -> no-op
2. Load every import first, so imported providers exist before this
   module's providers and controllers are registered
3. Validate exports against own providers and imported modules
4. Register providers (default singleton) and resolve each one eagerly
5. Register controllers as transient bindings and mount their routes
6. Mark M loaded
"""

from typing import Any, Dict, FrozenSet, List, Optional, Set
import abc
import importlib
import inspect
import logging

from .descriptor import DescriptorRegistry, ModuleDescriptor, ModuleRef, ProviderSpec
from ..controller.metadata import extract_controller_metadata
from ..di.core import Container, Identifier, token_name
from ..di.decorators import scope_of
from ..di.scopes import ServiceScope
from ..faults.core import Fault
from ..faults.domains import (
    InvalidModuleDescriptorFault,
    ModuleNotFoundFault,
    ProviderInitializationFault,
)
from ..routing.router import Router


logger = logging.getLogger("tessera.modules")


def import_module_ref(ref: ModuleRef) -> type:
    """
    Resolve a module reference to its class.

    Accepts a class, "package.module:ClassName" or "package.module.ClassName".

    Raises:
        ModuleNotFoundFault: The reference cannot be imported
    """
    if isinstance(ref, type):
        return ref

    if ":" in ref:
        module_path, _, attr = ref.partition(":")
    else:
        module_path, _, attr = ref.rpartition(".")
    if not module_path or not attr:
        raise ModuleNotFoundFault(ref, "expected 'package.module:ClassName'")

    try:
        py_module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ModuleNotFoundFault(ref, str(exc)) from exc

    target = py_module
    for part in attr.split("."):
        target = getattr(target, part, None)
        if target is None:
            raise ModuleNotFoundFault(ref, f"'{module_path}' has no attribute '{attr}'")
    if not isinstance(target, type):
        raise ModuleNotFoundFault(ref, f"'{ref}' is not a class")
    return target


def _abstract_bases(cls: type) -> List[type]:
    """Abstract base classes a provider class implements."""
    return [
        base for base in cls.__mro__[1:]
        if isinstance(base, abc.ABCMeta) and base is not abc.ABC and inspect.isabstract(base)
    ]


class ModuleLoader:
    """
    Loads modules into a Container and a Router, each at most once.

    Args:
        container: Binding Registry receiving providers and controllers
        router: Route Table receiving controller routes
        descriptors: Descriptor lookup (defaults to @module attributes)
    """

    def __init__(
        self,
        container: Container,
        router: Router,
        descriptors: Optional[DescriptorRegistry] = None,
    ):
        self.container = container
        self.router = router
        self.descriptors = descriptors or DescriptorRegistry()
        self._loaded: Dict[type, ModuleDescriptor] = {}
        self._in_progress: Set[type] = set()

    # ========================================================================
    # Loading
    # ========================================================================

    def load(self, module: ModuleRef) -> None:
        """
        Load a module and, first, everything it imports.

        Raises:
            ModuleNotFoundFault: Unimportable reference or class without descriptor
            InvalidModuleDescriptorFault: Malformed descriptor or invalid exports
            ProviderInitializationFault: A provider raised while being constructed
        """
        module_cls = import_module_ref(module)
        if module_cls in self._loaded or module_cls in self._in_progress:
            return

        descriptor = self.descriptors.lookup(module_cls)
        if descriptor is None:
            raise ModuleNotFoundFault(module_cls.__qualname__, "class has no @module descriptor")
        errors = descriptor.validate()
        if errors:
            raise InvalidModuleDescriptorFault(module_cls.__qualname__, errors)

        logger.debug("Loading module %s", module_cls.__qualname__)
        self._in_progress.add(module_cls)
        try:
            imported = [import_module_ref(ref) for ref in descriptor.imports]
            for imported_cls in imported:
                self.load(imported_cls)

            self._validate_exports(module_cls, descriptor, imported)

            for entry in descriptor.providers:
                self._register_provider(entry, module_cls)

            for controller_cls in descriptor.controllers:
                self._register_controller(controller_cls)
        finally:
            self._in_progress.discard(module_cls)

        self._loaded[module_cls] = descriptor
        logger.debug(
            "Loaded module %s (%d providers, %d controllers)",
            module_cls.__qualname__, len(descriptor.providers), len(descriptor.controllers),
        )

    def _validate_exports(
        self,
        module_cls: type,
        descriptor: ModuleDescriptor,
        imported: List[type],
    ) -> None:
        allowed: Set[Any] = set(descriptor.provider_tokens)
        allowed.update(imported)
        for imported_cls in imported:
            imported_descriptor = self.descriptors.lookup(imported_cls)
            if imported_descriptor is not None:
                allowed.update(imported_descriptor.exports)

        invalid = [
            f"exports: {token_name(token)} is neither provided nor re-exported by {module_cls.__qualname__}"
            for token in descriptor.exports
            if token not in allowed
        ]
        if invalid:
            raise InvalidModuleDescriptorFault(module_cls.__qualname__, invalid)

    def _register_provider(self, entry: Any, module_cls: type) -> None:
        spec = entry if isinstance(entry, ProviderSpec) else ProviderSpec(token=entry, use_class=entry)
        token = spec.token
        kind = spec.kind

        if kind == "value":
            self.container.instance(token, spec.use_value)
        elif kind == "existing":
            self.container.alias(spec.use_existing, token)
        elif kind == "factory":
            self.container.bind(token, spec.use_factory, spec.scope or ServiceScope.SINGLETON)
        else:
            scope = spec.scope or scope_of(spec.use_class, ServiceScope.SINGLETON)
            self.container.bind(token, spec.use_class, scope)

        # Eager: constructor side effects happen at boot, not on first use
        try:
            self.container.resolve(token)
        except Fault:
            raise
        except Exception as exc:
            logger.error(
                "Provider %s of module %s failed to initialize",
                token_name(token), module_cls.__qualname__, exc_info=exc,
            )
            raise ProviderInitializationFault(token_name(token), exc, module_cls.__qualname__) from exc

        if kind == "class":
            for base in _abstract_bases(spec.use_class):
                if base == token or self.container.bound(base):
                    continue
                self.container.alias(token, base)
                logger.debug("Bound %s as implementation of %s", token_name(token), base.__qualname__)

    def _register_controller(self, controller_cls: type) -> None:
        self.container.bind(controller_cls, controller_cls, ServiceScope.TRANSIENT)
        metadata = extract_controller_metadata(controller_cls)
        self.router.add_controller(metadata)
        logger.debug(
            "Mounted controller %s at '%s' (%d routes)",
            controller_cls.__qualname__, metadata.prefix or "/", len(metadata.routes),
        )

    # ========================================================================
    # Queries
    # ========================================================================

    def is_loaded(self, module: ModuleRef) -> bool:
        return import_module_ref(module) in self._loaded

    def loaded_modules(self) -> List[type]:
        """Loaded module classes in load order (imports before importers)."""
        return list(self._loaded)

    def metadata(self, module: ModuleRef) -> Optional[ModuleDescriptor]:
        """Descriptor of a loaded module, or None."""
        return self._loaded.get(import_module_ref(module))

    def exported(self, module: ModuleRef) -> FrozenSet[Identifier]:
        """Identifiers exported by a loaded module."""
        descriptor = self.metadata(module)
        if descriptor is None:
            return frozenset()
        return frozenset(descriptor.exports)
