"""
Exception types for the modular reducer engine.
"""

from typing import Any, Iterable, Optional, Tuple


def _describe(keys: Iterable[Any]) -> str:
    return ", ".join(str(k) for k in keys)


class ModularError(Exception):
    """Base class for all engine errors."""
    pass


class InvalidModule(ModularError):
    """Raised when a module definition violates the module contract."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(f"Invalid Module: {message}")
        self.field = field


class CircularDependency(ModularError):
    """Raised when registered modules have no valid topological order."""

    def __init__(self, keys: Iterable[Any]) -> None:
        self.keys: Tuple[Any, ...] = tuple(keys)
        super().__init__(f"Invalid Circular Dependency: {_describe(self.keys)}")


class MissingExternalDependency(ModularError):
    """Raised when an unmet dependency is not supplied by base state or externals."""

    def __init__(self, keys: Iterable[Any]) -> None:
        self.keys: Tuple[Any, ...] = tuple(keys)
        super().__init__(
            "Missing dependencies: the initial state or base reducer must provide "
            f"external dependencies {_describe(self.keys)}"
        )


class DispatchError(ModularError):
    """Raised when the container is dispatched to from inside a reducer."""
    pass
