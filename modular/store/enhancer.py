"""
Composition enhancer.

Wraps a container so that its reducer is the compiled module graph, and adds
add_module / remove_module / get_module to the container surface. Each
membership change swaps in a new registry snapshot and installs a reducer
bound to it; an event already being reduced finishes against the old snapshot.
"""

import threading
from types import MappingProxyType
from typing import Any, Callable, Iterable, List, Mapping, Optional

from ..core.codec import IDENTITY_CODEC, StateCodec
from ..core.config import DEVELOPMENT, EngineConfig
from ..core.effects import NO_EFFECT
from ..core.errors import CircularDependency, MissingExternalDependency
from ..core.module import Module
from ..core.registry import ModuleRegistry
from ..logging_config import get_logger
from ..metrics import track_contract_violation, track_dispatch_duration
from .container import Container, Listener, Reducer

EffectRunner = Callable[[Any, Callable[[Any], Any]], Any]

logger = get_logger(__name__)


def pass_through(state: Any, event: Any) -> Any:
    return state


class ModularStore(Container):
    """
    Container whose reducer is composed from registered modules.

    Usage:
        store = create_store(base_reducer, {}, modular_enhancer())
        store.add_module(todo_module)
        store.dispatch(Event("ADD_TODO", {"text": "write tests"}))
    """

    def __init__(
        self,
        store: Container,
        base_reducer: Optional[Reducer] = None,
        codec: StateCodec = IDENTITY_CODEC,
        config: EngineConfig = DEVELOPMENT,
        external: Optional[Mapping[Any, Any]] = None,
        effect_runner: Optional[EffectRunner] = None,
    ) -> None:
        """
        Args:
            store: Underlying container
            base_reducer: Reducer run before the modules on every event
            codec: Translation between container state and the plain slice tree
            config: Engine configuration
            external: Slices supplied from outside the container state
            effect_runner: Called with (effect, dispatch) after each dispatch
        """
        self._store = store
        self._base_reducer = base_reducer
        self._external: Mapping[Any, Any] = MappingProxyType(dict(external or {}))
        self._effect_runner = effect_runner
        self._registry = ModuleRegistry(codec=codec, config=config)
        self._lock = threading.RLock()
        self._pending_effects: List[Any] = []
        self.last_effect: Any = NO_EFFECT

        with self._lock:
            self._install(self._registry)
        self._flush_effects()

    @property
    def registry(self) -> ModuleRegistry:
        """Current registry snapshot."""
        return self._registry

    def _make_reducer(self, registry: ModuleRegistry) -> Reducer:
        base = self._base_reducer
        external = self._external
        check = registry.config.check_external_dependencies
        engine = registry.engine

        def reducer(state: Any, event: Any) -> Any:
            base_state = base(state, event) if base is not None else state

            if check:
                missing = engine.missing_dependencies(base_state, external)
                if missing:
                    track_contract_violation("MissingExternalDependency")
                    logger.error(
                        "Missing external dependencies: %s", ", ".join(str(k) for k in missing)
                    )
                    raise MissingExternalDependency(missing)

            with track_dispatch_duration():
                result = engine.reducer.step(base_state, event, external)
            self._pending_effects.append(result.effect)
            return result.state

        return reducer

    def _install(self, registry: ModuleRegistry) -> None:
        try:
            reducer = self._make_reducer(registry)
        except CircularDependency as e:
            track_contract_violation("CircularDependency")
            logger.error(str(e))
            raise
        self._store.replace_reducer(reducer)

    def _swap(self, registry: ModuleRegistry) -> None:
        """Make registry current; restore the previous one if installing fails."""
        previous = self._registry
        if registry is previous:
            return

        self._registry = registry
        try:
            self._install(registry)
        except Exception:
            self._registry = previous
            self._drop_effects()
            self._install(previous)
            raise

        get_logger(__name__, trace_id=f"generation-{registry.generation}").info(
            "Installed reducer for %d module(s)", len(registry)
        )

    def _drop_effects(self) -> None:
        self._pending_effects = []

    def _settle(self, operation: Callable[[], Any]) -> Any:
        """Run a container operation, then hand its effects to the runner."""
        try:
            result = operation()
        except Exception:
            # effects of a failed operation are discarded
            self._drop_effects()
            raise
        self._flush_effects()
        return result

    def _flush_effects(self) -> None:
        pending, self._pending_effects = self._pending_effects, []
        for effect in pending:
            self.last_effect = effect
            if self._effect_runner is not None and effect is not NO_EFFECT:
                self._effect_runner(effect, self.dispatch)

    def dispatch(self, event: Any) -> Any:
        return self._settle(lambda: self._store.dispatch(event))

    def get_state(self) -> Any:
        return self._store.get_state()

    def get_slice(self, key: Any) -> Any:
        """Read one slice through the codec."""
        return self._registry.codec.get(self.get_state(), key)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._store.subscribe(listener)

    def replace_reducer(self, reducer: Optional[Reducer]) -> None:
        """
        Replace the base reducer run before the modules.

        Restores the previous base reducer if the new one cannot be installed.
        """
        candidate = reducer if callable(reducer) else None

        def replace() -> None:
            with self._lock:
                previous = self._base_reducer
                if candidate is previous:
                    return
                self._base_reducer = candidate
                try:
                    self._install(self._registry)
                except Exception:
                    self._base_reducer = previous
                    self._drop_effects()
                    self._install(self._registry)
                    raise

        self._settle(replace)

    def get_module(self, key_or_definition: Any) -> Optional[Module]:
        return self._registry.get_module(key_or_definition)

    def add_module(self, definition: Any) -> Optional[Module]:
        """
        Register a module and install the recompiled reducer.

        Returns:
            The registered module (the existing one if already present)

        Raises:
            InvalidModule: If the definition violates the contract
            CircularDependency: If the module closes a dependency cycle
            MissingExternalDependency: If the new graph has unsupplied dependencies
        """

        def add() -> Optional[Module]:
            with self._lock:
                registry = self._registry.add_module(definition)
                self._swap(registry)
                module = registry.get_module(definition)
                if module is None:
                    module = registry.get_module(Module.from_definition(definition).provides)
                return module

        return self._settle(add)

    def add_modules(self, definitions: Iterable[Any]) -> List[Optional[Module]]:
        """Register several modules with a single recompile, so order does not matter."""
        definitions = list(definitions)

        def add_all() -> List[Optional[Module]]:
            with self._lock:
                registry = self._registry
                for definition in definitions:
                    registry = registry.add_module(definition)
                self._swap(registry)
                return [registry.get_module(d) for d in definitions]

        return self._settle(add_all)

    def remove_module(self, key_or_definition: Any) -> Optional[Module]:
        """
        Unregister a module. The slice value stays in the state tree.

        Returns:
            The removed module or None if nothing matched
        """

        def remove() -> Optional[Module]:
            with self._lock:
                module = self._registry.get_module(key_or_definition)
                if module is not None:
                    self._swap(self._registry.remove_module(module))
                return module

        return self._settle(remove)

    def remove_all_modules(self) -> None:
        def remove_all() -> None:
            with self._lock:
                self._swap(self._registry.remove_all_modules())

        self._settle(remove_all)


def modular_enhancer(
    codec: StateCodec = IDENTITY_CODEC,
    config: EngineConfig = DEVELOPMENT,
    external: Optional[Mapping[Any, Any]] = None,
    effect_runner: Optional[EffectRunner] = None,
) -> Callable[[Callable[..., Container]], Callable[..., ModularStore]]:
    """
    Store enhancer for modular reducers.

    The underlying container is created with a pass-through reducer; the reducer
    given to create_store becomes the base reducer run before the modules.
    """

    def enhancer(factory: Callable[..., Container]) -> Callable[..., ModularStore]:
        def create(reducer: Optional[Reducer] = None, initial_state: Any = None) -> ModularStore:
            store = factory(pass_through, initial_state)
            return ModularStore(
                store,
                base_reducer=reducer,
                codec=codec,
                config=config,
                external=external,
                effect_runner=effect_runner,
            )

        return create

    return enhancer
