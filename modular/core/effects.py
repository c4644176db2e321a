"""
Effect-carrying transition results.

A module's transition returns either a bare next state, Pure(next_state), or
WithEffect(next_state, effect). Effects are opaque descriptions handed to an
external effect runner; this package never executes them.
"""

from dataclasses import dataclass
from typing import Any, Sequence, Tuple


@dataclass(frozen=True)
class Pure:
    """Next slice state with no side effect."""
    state: Any


@dataclass(frozen=True)
class WithEffect:
    """Next slice state paired with an effect description."""
    state: Any
    effect: Any


@dataclass(frozen=True)
class Batch:
    """Several effects to be run in fold order."""
    effects: Tuple[Any, ...]


class _NoEffect:
    __slots__ = ()

    def __repr__(self) -> str:
        return "NO_EFFECT"

    def __bool__(self) -> bool:
        return False


NO_EFFECT = _NoEffect()


def loop(state: Any, effect: Any) -> WithEffect:
    """Shorthand for WithEffect(state, effect)."""
    return WithEffect(state, effect)


def unwrap(result: Any) -> Tuple[Any, Any]:
    """
    Split a transition result into (next_state, effect).

    The effect is NO_EFFECT unless the result is a WithEffect, whose effect is
    forwarded as-is, None included.
    """
    if isinstance(result, WithEffect):
        return result.state, result.effect
    if isinstance(result, Pure):
        return result.state, NO_EFFECT
    return result, NO_EFFECT


def optimize_batch(effects: Sequence[Any]) -> Any:
    """
    Collapse collected effects.

    Returns:
        NO_EFFECT for none, the effect itself for one, Batch otherwise
    """
    if len(effects) == 0:
        return NO_EFFECT
    if len(effects) == 1:
        return effects[0]
    return Batch(tuple(effects))

