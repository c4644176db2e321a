"""
Dependency sorter.

Orders modules so that each one runs after every module it depends on.
Dependencies no module provides are reported as unmet; the container's base
state must supply them.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Tuple

from .errors import CircularDependency
from .module import Module

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SortResult:
    """
    Result of sorting.

    Fields:
        sorted_modules: Modules in dependency order
        unmet_dependencies: Keys depended upon but not provided, first occurrence order
    """
    sorted_modules: Tuple[Module, ...]
    unmet_dependencies: Tuple[Any, ...]


def sort_modules(modules_by_provides: Mapping[Any, Module]) -> SortResult:
    """
    Kahn-style topological sort, stable with respect to registration order.

    Each round takes every remaining module whose dependencies are no longer
    remaining. A module listing its own key is not blocked by itself.

    Args:
        modules_by_provides: Modules keyed by their provides key, in registration order

    Returns:
        SortResult

    Raises:
        CircularDependency: If some modules can never be scheduled
    """
    remaining: List[Any] = list(modules_by_provides.keys())
    sorted_keys: List[Any] = []

    while remaining:
        pending = set(remaining)
        ready = [
            key for key in remaining
            if all(dep == key or dep not in pending for dep in modules_by_provides[key].depends)
        ]
        if not ready:
            raise CircularDependency(remaining)

        ready_set = set(ready)
        remaining = [key for key in remaining if key not in ready_set]
        sorted_keys.extend(ready)

    sorted_modules = tuple(modules_by_provides[key] for key in sorted_keys)

    unmet: List[Any] = []
    seen = set()
    for module in sorted_modules:
        for dep in module.depends:
            if dep in seen:
                continue
            seen.add(dep)
            if dep not in modules_by_provides:
                unmet.append(dep)

    if unmet:
        logger.debug("Unmet dependencies: %s", ", ".join(str(k) for k in unmet))

    return SortResult(sorted_modules=sorted_modules, unmet_dependencies=tuple(unmet))
