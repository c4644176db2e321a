"""
Module registry.

Persistent collection of active modules. Every structural change returns a new
registry; the old one, and any engine compiled from it, stays valid. No-op
changes return the same instance.
"""

import logging
from typing import Any, Iterator, Optional, Sequence, Tuple

from ..metrics import set_registered_modules, track_contract_violation
from .codec import IDENTITY_CODEC, StateCodec
from .compiler import CompiledEngine, build_engine
from .config import DEVELOPMENT, EngineConfig
from .errors import InvalidModule
from .module import Module, validate_module

logger = logging.getLogger(__name__)


class ModuleRegistry:
    """
    Immutable registry of modules in registration order.

    Usage:
        registry = ModuleRegistry()
        registry = registry.add_module({"provides": "a", "transition": reduce_a})
        next_state = registry.engine.reducer(state, event)
    """

    def __init__(
        self,
        modules: Sequence[Module] = (),
        codec: StateCodec = IDENTITY_CODEC,
        config: EngineConfig = DEVELOPMENT,
        generation: int = 0,
    ) -> None:
        self._modules: Tuple[Module, ...] = tuple(modules)
        self._codec = codec
        self._config = config
        self._generation = generation
        self._engine: Optional[CompiledEngine] = None

    @property
    def modules(self) -> Tuple[Module, ...]:
        return self._modules

    @property
    def codec(self) -> StateCodec:
        return self._codec

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def engine(self) -> CompiledEngine:
        """
        Compiled engine for this snapshot, built on first access.

        Raises:
            CircularDependency: If modules cannot be ordered
        """
        if self._engine is None:
            self._engine = build_engine(
                self._modules, codec=self._codec, config=self._config, generation=self._generation
            )
        return self._engine

    def _derive(self, modules: Tuple[Module, ...]) -> "ModuleRegistry":
        set_registered_modules(len(modules))
        return ModuleRegistry(
            modules, codec=self._codec, config=self._config, generation=self._generation + 1
        )

    def get_module(self, key_or_definition: Any) -> Optional[Module]:
        """
        Find a registered module.

        Args:
            key_or_definition: Module key, provides key, Module, or source definition

        Returns:
            Module or None if not registered
        """
        for module in self._modules:
            if module.matches(key_or_definition):
                return module
        return None

    def add_module(self, definition: Any) -> "ModuleRegistry":
        """
        Register a module.

        Returns:
            self when the definition or its provides key is already registered,
            otherwise a new registry

        Raises:
            InvalidModule: If the definition violates the contract (skipped in production)
        """
        if any(m is definition or m.source is definition for m in self._modules):
            return self

        try:
            module = Module.from_definition(definition)
            if self._config.validate_modules:
                validate_module(module)
        except InvalidModule:
            track_contract_violation("InvalidModule")
            raise

        for registered in self._modules:
            if registered.provides == module.provides:
                if registered.source is not module.source:
                    logger.warning(
                        "Slice %s already provided by another module, ignoring", module.provides
                    )
                return self

        logger.debug("Adding module %s (depends: %s)", module.provides, list(module.depends))
        return self._derive(self._modules + (module,))

    def remove_module(self, key_or_definition: Any) -> "ModuleRegistry":
        """
        Unregister a module.

        Returns:
            self when nothing matches, otherwise a new registry
        """
        module = self.get_module(key_or_definition)
        if module is None:
            return self

        logger.debug("Removing module %s", module.provides)
        return self._derive(tuple(m for m in self._modules if m is not module))

    def remove_all_modules(self) -> "ModuleRegistry":
        if not self._modules:
            return self
        return self._derive(())

    def __len__(self) -> int:
        return len(self._modules)

    def __iter__(self) -> Iterator[Module]:
        return iter(self._modules)

    def __contains__(self, key_or_definition: Any) -> bool:
        return self.get_module(key_or_definition) is not None

    def __repr__(self) -> str:
        keys = ", ".join(str(m.provides) for m in self._modules)
        return f"ModuleRegistry(generation={self._generation}, modules=[{keys}])"
