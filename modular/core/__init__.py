"""
Core composition primitives.

This module provides the engine behind modular reducer composition:
- Module: Normalized module contract and validation
- Sorter: Dependency ordering and unmet dependency detection
- Codec: Translation between container state and the plain slice tree
- Compiler: One transition function folded over sorted modules
- Registry: Persistent set of active modules with lazy compilation
- Effects: Effect-carrying transition results
"""

from .errors import (
    ModularError,
    InvalidModule,
    CircularDependency,
    MissingExternalDependency,
    DispatchError,
)
from .keys import SliceKey, is_valid_key
from .events import Event, INIT, REPLACE
from .effects import Pure, WithEffect, Batch, NO_EFFECT, loop, optimize_batch
from .config import EngineConfig, DEVELOPMENT, PRODUCTION
from .module import Module, validate_module
from .sorter import SortResult, sort_modules
from .codec import StateCodec, IdentityCodec, MergingCodec, IDENTITY_CODEC
from .compiler import (
    DependencySnapshot,
    StepResult,
    GraphReducer,
    CompiledEngine,
    compile_graph,
    build_engine,
)
from .registry import ModuleRegistry

__all__ = [
    "ModularError",
    "InvalidModule",
    "CircularDependency",
    "MissingExternalDependency",
    "DispatchError",
    "SliceKey",
    "is_valid_key",
    "Event",
    "INIT",
    "REPLACE",
    "Pure",
    "WithEffect",
    "Batch",
    "NO_EFFECT",
    "loop",
    "optimize_batch",
    "EngineConfig",
    "DEVELOPMENT",
    "PRODUCTION",
    "Module",
    "validate_module",
    "SortResult",
    "sort_modules",
    "StateCodec",
    "IdentityCodec",
    "MergingCodec",
    "IDENTITY_CODEC",
    "DependencySnapshot",
    "StepResult",
    "GraphReducer",
    "CompiledEngine",
    "compile_graph",
    "build_engine",
    "ModuleRegistry",
]
