"""
Module contract.

A module owns one slice of the state tree (``provides``), reads other slices
(``depends``) and transitions its own slice with a pure function:

    transition(slice_state, event, snapshot) -> next_state | Pure | WithEffect

Definitions may be Module instances, mappings, or any object exposing the
fields as attributes (a Python module works). ``reducer`` is accepted for
``transition`` and ``requires`` for ``depends``.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

from .errors import InvalidModule
from .keys import SliceKey, is_valid_key

Transition = Callable[[Any, Any, Mapping[Any, Any]], Any]

PRIVATE_MODULE = "private-module"


def _first(lookup: Callable[[str], Any], names: Sequence[str]) -> Any:
    for name in names:
        value = lookup(name)
        if value is not None:
            return value
    return None


@dataclass(frozen=True, eq=False)
class Module:
    """
    Normalized module definition.

    Fields:
        provides: Slice key this module owns
        transition: Pure slice transition function
        depends: Slice keys this module reads but does not own
        api: Named side-channel functions exposed to consumers
        key: Identifier of the module (defaults to provides)
        source: Definition object this module was built from
    """
    provides: Any
    transition: Transition
    depends: Tuple[Any, ...] = ()
    api: Mapping[str, Callable[..., Any]] = field(default_factory=dict)
    key: Any = None
    source: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.key is None:
            object.__setattr__(self, "key", self.provides)
        if self.depends is None:
            object.__setattr__(self, "depends", ())
        elif isinstance(self.depends, list):
            object.__setattr__(self, "depends", tuple(self.depends))
        if isinstance(self.api, dict):
            object.__setattr__(self, "api", MappingProxyType(dict(self.api)))
        if self.source is None:
            object.__setattr__(self, "source", self)

    def matches(self, candidate: Any) -> bool:
        """True when candidate is this module, its definition, or its key."""
        if candidate is self or candidate is self.source:
            return True
        if isinstance(candidate, (str, SliceKey)):
            return candidate == self.key or candidate == self.provides
        return False

    @classmethod
    def from_definition(cls, definition: Any) -> "Module":
        """
        Normalize a definition into a Module.

        Raises:
            InvalidModule: If definition is not an object or has no transition
        """
        if isinstance(definition, Module):
            return definition
        if definition is None or isinstance(definition, (str, bytes, int, float, bool)):
            raise InvalidModule(f"expected object, got {type(definition).__name__}")

        if isinstance(definition, Mapping):
            lookup = definition.get
        else:
            def lookup(name: str) -> Any:
                return getattr(definition, name, None)

        transition = _first(lookup, ("transition", "reducer"))
        if transition is None:
            raise InvalidModule("`transition` is required", field="transition")

        provides = lookup("provides")
        if provides is None or provides == "":
            provides = private_key()

        depends = _first(lookup, ("depends", "requires"))
        api = lookup("api")

        return cls(
            provides=provides,
            transition=transition,
            depends=depends if depends is not None else (),
            api=api if api is not None else {},
            key=lookup("key"),
            source=definition,
        )


def validate_module(module: Module) -> Module:
    """
    Check a normalized module against the contract.

    Returns:
        The module, unchanged

    Raises:
        InvalidModule: Naming the malformed field
    """
    if not is_valid_key(module.provides):
        raise InvalidModule(
            f"`provides` must be a non-empty string or SliceKey, got {module.provides!r}",
            field="provides",
        )

    if not callable(module.transition):
        raise InvalidModule(
            f"`transition` must be callable, got {type(module.transition).__name__}",
            field="transition",
        )

    if not isinstance(module.depends, tuple):
        raise InvalidModule(
            f"`depends` must be a list of slice keys, got {type(module.depends).__name__}",
            field="depends",
        )
    for dependency in module.depends:
        if not is_valid_key(dependency):
            raise InvalidModule(
                f"`depends` entries must be non-empty strings or SliceKeys, got {dependency!r}",
                field="depends",
            )

    if not isinstance(module.api, Mapping):
        raise InvalidModule(
            f"`api` must be a mapping of name to function, got {type(module.api).__name__}",
            field="api",
        )
    for name, fn in module.api.items():
        if not isinstance(name, str) or not callable(fn):
            raise InvalidModule(f"`api.{name}` must be a function", field="api")

    return module


def private_key(name: Optional[str] = None) -> SliceKey:
    """Fresh SliceKey for a module that does not name its slice."""
    return SliceKey(name or PRIVATE_MODULE)
