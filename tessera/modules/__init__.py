"""
Tessera Modules

Declarative module descriptors and the loader that turns a module
import graph into container bindings and route table entries.
"""

from .descriptor import (
    MODULE_ATTR,
    DescriptorRegistry,
    ModuleDescriptor,
    ProviderSpec,
    is_module,
    module,
    provide,
)
from .loader import ModuleLoader, import_module_ref
from .discovery import discover_modules

__all__ = [
    "MODULE_ATTR",
    "DescriptorRegistry",
    "ModuleDescriptor",
    "ProviderSpec",
    "is_module",
    "module",
    "provide",
    "ModuleLoader",
    "import_module_ref",
    "discover_modules",
]
