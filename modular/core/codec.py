"""
State codecs.

A codec translates between the container's native state and the plain dict the
engine folds over. Decode must keep every key the engine touches; encode must
write back only the plain tree's keys.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping


class StateCodec(ABC):
    """Pair of functions mapping container state to and from a plain tree."""

    @abstractmethod
    def decode(self, state: Any) -> Mapping[Any, Any]:
        ...

    @abstractmethod
    def encode(self, state: Any, plain: Dict[Any, Any]) -> Any:
        ...

    def get(self, state: Any, key: Any) -> Any:
        """Read one slice from container state. Implementations may override."""
        return self.decode(state).get(key)


class IdentityCodec(StateCodec):
    """Container state already is the plain tree."""

    def decode(self, state: Any) -> Mapping[Any, Any]:
        return {} if state is None else state

    def encode(self, state: Any, plain: Dict[Any, Any]) -> Any:
        return plain


class MergingCodec(StateCodec):
    """
    Codec for mapping-shaped containers that must not be replaced wholesale.

    Encode merges the plain tree over the previous container state, so keys the
    engine never saw survive, then rebuilds the container value with factory.

    Usage:
        codec = MergingCodec(factory=MappingProxyType)
    """

    def __init__(self, factory: Callable[[Dict[Any, Any]], Any] = dict) -> None:
        self.factory = factory

    def decode(self, state: Any) -> Mapping[Any, Any]:
        return {} if state is None else dict(state)

    def encode(self, state: Any, plain: Dict[Any, Any]) -> Any:
        merged = {} if state is None else dict(state)
        merged.update(plain)
        return self.factory(merged)

    def get(self, state: Any, key: Any) -> Any:
        return None if state is None else state.get(key)


IDENTITY_CODEC = IdentityCodec()
