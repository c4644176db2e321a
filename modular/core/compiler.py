"""
Graph reducer compiler.

Turns a dependency-sorted list of modules into one transition function over the
container state. Each event decodes the state, folds every module over its own
slice in sorted order, re-encodes, and collects effects.

The fold order is the only ordering guarantee: a module always sees the values
its dependencies produced for the same event.
"""

import logging
from collections import ChainMap
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..metrics import track_compile
from .codec import IDENTITY_CODEC, StateCodec
from .config import DEVELOPMENT, EngineConfig
from .effects import NO_EFFECT, optimize_batch, unwrap
from .module import Module
from .sorter import sort_modules

logger = logging.getLogger(__name__)

_EMPTY: Mapping[Any, Any] = MappingProxyType({})


class DependencySnapshot(Mapping):
    """
    Read-only view of the slices a module may read.

    When restricted, only the module's declared dependencies and its own slice
    are visible; reading anything else raises KeyError. ``api(key)`` returns
    the api mapping of the module providing ``key``.
    """

    def __init__(
        self,
        slices: Mapping[Any, Any],
        apis: Mapping[Any, Mapping[str, Any]],
        allowed: Optional[FrozenSet[Any]] = None,
    ) -> None:
        self._slices = slices
        self._apis = apis
        self._allowed = allowed

    def _check(self, key: Any) -> None:
        if self._allowed is not None and key not in self._allowed:
            raise KeyError(f"undeclared dependency: {key!r}")

    def __getitem__(self, key: Any) -> Any:
        self._check(key)
        return self._slices[key]

    def __iter__(self) -> Iterator[Any]:
        for key in self._slices:
            if self._allowed is None or key in self._allowed:
                yield key

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def api(self, key: Any) -> Mapping[str, Any]:
        self._check(key)
        return self._apis.get(key, _EMPTY)

    @property
    def restricted(self) -> bool:
        return self._allowed is not None

    def __repr__(self) -> str:
        return f"DependencySnapshot({dict(self.items())!r})"


@dataclass(frozen=True)
class StepResult:
    """
    Result of one transition.

    Fields:
        state: Next container state
        effect: Optimized effect description (NO_EFFECT, one effect, or Batch)
    """
    state: Any
    effect: Any = NO_EFFECT


class GraphReducer:
    """
    Compiled transition function for a fixed, sorted module list.

    Usage:
        reducer = compile_graph(sort_modules(modules).sorted_modules, IDENTITY_CODEC)
        next_state = reducer(state, event)
        result = reducer.step(state, event)  # also carries the effect
    """

    def __init__(
        self,
        modules: Sequence[Module],
        codec: StateCodec = IDENTITY_CODEC,
        restrict_snapshots: bool = True,
    ) -> None:
        self.modules: Tuple[Module, ...] = tuple(modules)
        self.codec = codec
        self.restrict_snapshots = restrict_snapshots
        self._apis: Dict[Any, Mapping[str, Any]] = {m.provides: m.api for m in self.modules}
        self._scopes: Dict[Any, Tuple[Any, ...]] = {
            m.provides: tuple(dict.fromkeys(m.depends + (m.provides,))) for m in self.modules
        }

    def _snapshot(
        self, module: Module, acc: Dict[Any, Any], external: Mapping[Any, Any]
    ) -> DependencySnapshot:
        if not self.restrict_snapshots:
            return DependencySnapshot(ChainMap(acc, external), self._apis)

        scope = self._scopes[module.provides]
        slices: Dict[Any, Any] = {}
        for key in scope:
            if key in acc:
                slices[key] = acc[key]
            elif key in external:
                slices[key] = external[key]
        return DependencySnapshot(slices, self._apis, frozenset(scope))

    def step(self, state: Any, event: Any, external: Optional[Mapping[Any, Any]] = None) -> StepResult:
        """
        Apply event to state across all modules.

        Args:
            state: Container state
            event: Event to apply
            external: Slices supplied from outside the container state

        Returns:
            StepResult; state is returned as-is when there are no modules
        """
        if not self.modules:
            return StepResult(state=state, effect=NO_EFFECT)

        external = external if external is not None else _EMPTY
        acc: Dict[Any, Any] = dict(self.codec.decode(state))
        effects: List[Any] = []

        for module in self.modules:
            snapshot = self._snapshot(module, acc, external)
            result = module.transition(acc.get(module.provides), event, snapshot)
            next_slice, effect = unwrap(result)
            acc[module.provides] = next_slice
            if effect is not NO_EFFECT:
                effects.append(effect)

        return StepResult(state=self.codec.encode(state, acc), effect=optimize_batch(effects))

    def __call__(self, state: Any, event: Any, external: Optional[Mapping[Any, Any]] = None) -> Any:
        return self.step(state, event, external).state


def compile_graph(
    sorted_modules: Sequence[Module],
    codec: StateCodec = IDENTITY_CODEC,
    restrict_snapshots: bool = True,
) -> GraphReducer:
    """Compile sorted modules into a GraphReducer."""
    return GraphReducer(sorted_modules, codec=codec, restrict_snapshots=restrict_snapshots)


@dataclass(frozen=True)
class CompiledEngine:
    """
    Sorted modules and their compiled reducer for one registry snapshot.

    Fields:
        sorted_modules: Modules in fold order
        unmet_dependencies: Keys the container must supply
        reducer: Compiled transition function
        generation: Registry generation this engine was built from
    """
    sorted_modules: Tuple[Module, ...]
    unmet_dependencies: Tuple[Any, ...]
    reducer: GraphReducer
    generation: int = 0

    def missing_dependencies(
        self, base_state: Any, external: Optional[Mapping[Any, Any]] = None
    ) -> Tuple[Any, ...]:
        """Unmet keys present in neither the decoded base state nor external."""
        if not self.unmet_dependencies:
            return ()
        plain = self.reducer.codec.decode(base_state)
        external = external if external is not None else _EMPTY
        return tuple(k for k in self.unmet_dependencies if k not in plain and k not in external)


def build_engine(
    modules: Sequence[Module],
    codec: StateCodec = IDENTITY_CODEC,
    config: EngineConfig = DEVELOPMENT,
    generation: int = 0,
) -> CompiledEngine:
    """
    Sort and compile modules.

    Raises:
        CircularDependency: If modules cannot be ordered
    """
    by_provides = {m.provides: m for m in modules}
    result = sort_modules(by_provides)
    reducer = compile_graph(
        result.sorted_modules, codec=codec, restrict_snapshots=config.snapshots_restricted
    )
    track_compile()
    logger.debug(
        "Compiled engine generation %d: %s",
        generation,
        " -> ".join(str(m.provides) for m in result.sorted_modules) or "(empty)",
    )
    return CompiledEngine(
        sorted_modules=result.sorted_modules,
        unmet_dependencies=result.unmet_dependencies,
        reducer=reducer,
        generation=generation,
    )
