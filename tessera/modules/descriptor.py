"""
Module descriptors.

A module is a class carrying a ModuleDescriptor: the providers it
registers, the controllers it mounts, the modules it imports and the
identifiers it exports.

Example:
    @module(
        imports=[DatabaseModule],
        providers=[UserRepository, provide("clock", use_value=time.monotonic)],
        controllers=[UsersController],
        exports=[UserRepository],
    )
    class UsersModule:
        pass
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union
from dataclasses import dataclass, field
import logging

from ..di.core import Identifier, token_name
from ..di.scopes import ServiceScope
from ..faults.domains import InvalidModuleDescriptorFault


logger = logging.getLogger("tessera.modules")

MODULE_ATTR = "__module_descriptor__"

ModuleRef = Union[type, str]


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<missing>"


MISSING = _Missing()


@dataclass(frozen=True)
class ProviderSpec:
    """
    Explicit provider declaration.

    Exactly one of `use_class`, `use_factory`, `use_value` or
    `use_existing` is set.
    """
    token: Identifier
    use_class: Optional[type] = None
    use_factory: Optional[Callable[..., Any]] = None
    use_value: Any = MISSING
    use_existing: Optional[Identifier] = None
    scope: Optional[ServiceScope] = None

    @property
    def kind(self) -> str:
        if self.use_value is not MISSING:
            return "value"
        if self.use_existing is not None:
            return "existing"
        if self.use_factory is not None:
            return "factory"
        return "class"


def provide(
    token: Identifier,
    *,
    use_class: Optional[type] = None,
    use_factory: Optional[Callable[..., Any]] = None,
    use_value: Any = MISSING,
    use_existing: Optional[Identifier] = None,
    scope: Optional[Union[ServiceScope, str]] = None,
) -> ProviderSpec:
    """
    Declare a provider bound under an explicit identifier.

    With no `use_*` argument the identifier must be a class and is bound
    to itself.
    """
    given = [
        name for name, value in (
            ("use_class", use_class),
            ("use_factory", use_factory),
            ("use_existing", use_existing),
        )
        if value is not None
    ]
    if use_value is not MISSING:
        given.append("use_value")

    if len(given) > 1:
        raise ValueError(f"provide({token_name(token)}) accepts one of use_class/use_factory/"
                         f"use_value/use_existing, got {', '.join(given)}")
    if not given:
        if not isinstance(token, type):
            raise ValueError(f"provide({token!r}) needs use_class, use_factory, use_value or use_existing")
        use_class = token

    return ProviderSpec(
        token=token,
        use_class=use_class,
        use_factory=use_factory,
        use_value=use_value,
        use_existing=use_existing,
        scope=ServiceScope.coerce(scope) if scope is not None else None,
    )


ProviderEntry = Union[type, ProviderSpec]


@dataclass(frozen=True)
class ModuleDescriptor:
    """Immutable module metadata."""
    name: str
    providers: Tuple[ProviderEntry, ...] = ()
    controllers: Tuple[type, ...] = ()
    imports: Tuple[ModuleRef, ...] = ()
    exports: Tuple[Any, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def provider_tokens(self) -> List[Identifier]:
        """Identifiers registered by this module's providers."""
        return [p.token if isinstance(p, ProviderSpec) else p for p in self.providers]

    def validate(self) -> List[str]:
        """Structural checks. Returns a list of error messages."""
        errors: List[str] = []

        seen_tokens = set()
        for index, entry in enumerate(self.providers):
            if isinstance(entry, ProviderSpec):
                token = entry.token
            elif isinstance(entry, type):
                token = entry
            else:
                errors.append(f"providers[{index}]: expected a class or provide(...), got {entry!r}")
                continue
            if token in seen_tokens:
                errors.append(f"providers[{index}]: duplicate provider {token_name(token)}")
            seen_tokens.add(token)

        seen_controllers = set()
        for index, ctrl in enumerate(self.controllers):
            if not isinstance(ctrl, type):
                errors.append(f"controllers[{index}]: expected a class, got {ctrl!r}")
                continue
            if ctrl in seen_controllers:
                errors.append(f"controllers[{index}]: duplicate controller {ctrl.__name__}")
            seen_controllers.add(ctrl)

        for index, imported in enumerate(self.imports):
            if not isinstance(imported, (type, str)):
                errors.append(f"imports[{index}]: expected a module class or import string, got {imported!r}")
            elif isinstance(imported, str) and not imported.strip():
                errors.append(f"imports[{index}]: empty import string")

        for index, exported in enumerate(self.exports):
            if not isinstance(exported, (type, str)):
                errors.append(f"exports[{index}]: expected an identifier, got {exported!r}")

        return errors


def module(
    cls: Optional[type] = None,
    *,
    providers: Iterable[ProviderEntry] = (),
    controllers: Iterable[type] = (),
    imports: Iterable[ModuleRef] = (),
    exports: Iterable[Any] = (),
    **metadata: Any,
):
    """
    Class decorator declaring a module.

    Raises:
        InvalidModuleDescriptorFault: The declaration is malformed
    """
    def decorator(target: type) -> type:
        descriptor = ModuleDescriptor(
            name=target.__qualname__,
            providers=tuple(providers),
            controllers=tuple(controllers),
            imports=tuple(imports),
            exports=tuple(exports),
            metadata=dict(metadata),
        )
        errors = descriptor.validate()
        if errors:
            raise InvalidModuleDescriptorFault(target.__qualname__, errors)
        setattr(target, MODULE_ATTR, descriptor)
        return target

    if cls is not None:
        return decorator(cls)
    return decorator


class DescriptorRegistry:
    """
    Descriptors keyed by module class.

    Explicit registrations take precedence over the `@module` attribute;
    the attribute is only honoured on the class that declares it, so
    subclasses of a module are not modules themselves.
    """

    def __init__(self):
        self._descriptors: Dict[type, ModuleDescriptor] = {}

    def register(self, module_cls: type, descriptor: ModuleDescriptor) -> None:
        errors = descriptor.validate()
        if errors:
            raise InvalidModuleDescriptorFault(module_cls.__qualname__, errors)
        if module_cls in self._descriptors:
            logger.warning("Replacing descriptor for module %s", module_cls.__qualname__)
        self._descriptors[module_cls] = descriptor

    def lookup(self, module_cls: type) -> Optional[ModuleDescriptor]:
        descriptor = self._descriptors.get(module_cls)
        if descriptor is not None:
            return descriptor
        descriptor = vars(module_cls).get(MODULE_ATTR)
        if isinstance(descriptor, ModuleDescriptor):
            return descriptor
        return None

    def __contains__(self, module_cls: type) -> bool:
        return self.lookup(module_cls) is not None


def is_module(obj: Any) -> bool:
    """True for classes decorated with @module."""
    return isinstance(obj, type) and isinstance(vars(obj).get(MODULE_ATTR), ModuleDescriptor)
