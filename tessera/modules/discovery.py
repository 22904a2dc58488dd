"""
Package discovery for @module classes.
"""

from types import ModuleType
from typing import List, Optional, Union
import importlib
import inspect
import logging
import pkgutil

from .descriptor import DescriptorRegistry, is_module


logger = logging.getLogger("tessera.modules.discovery")


def discover_modules(
    package: Union[str, ModuleType],
    descriptors: Optional[DescriptorRegistry] = None,
) -> List[type]:
    """
    Import a package and its submodules and collect module classes.

    Classes are returned in discovery order: the package itself first,
    then submodules as pkgutil walks them, each module's classes in
    definition order. A class re-exported from another module is only
    reported where it is defined.

    Import errors propagate; a broken submodule is a boot failure.
    """
    root = importlib.import_module(package) if isinstance(package, str) else package

    py_modules = [root]
    if hasattr(root, "__path__"):
        for info in pkgutil.walk_packages(root.__path__, root.__name__ + "."):
            py_modules.append(importlib.import_module(info.name))

    found: List[type] = []
    for py_module in py_modules:
        for _, obj in _classes_in_definition_order(py_module):
            if obj.__module__ != py_module.__name__ or obj in found:
                continue
            if is_module(obj) or (descriptors is not None and obj in descriptors):
                found.append(obj)

    logger.debug("Discovered %d modules in %s", len(found), root.__name__)
    return found


def _classes_in_definition_order(py_module: ModuleType):
    # vars() preserves definition order; inspect.getmembers() sorts by name
    return [(name, obj) for name, obj in vars(py_module).items() if inspect.isclass(obj)]
