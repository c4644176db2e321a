"""
Slice keys.

A slice is named either by a plain string or by a SliceKey, which behaves like
a unique symbol: two SliceKeys are never equal unless they are the same object.
"""

from typing import Any, Union


class SliceKey:
    """
    Unique, identity-compared slice key.

    Usage:
        TODOS = SliceKey("todos")
        module = Module(provides=TODOS, transition=reduce_todos)
    """

    __slots__ = ("name",)

    def __init__(self, name: str = "") -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"SliceKey({self.name!r})"

    def __str__(self) -> str:
        return f"SliceKey({self.name})"


Key = Union[str, SliceKey]


def is_valid_key(candidate: Any) -> bool:
    """Keys are non-empty strings or SliceKey instances."""
    if isinstance(candidate, SliceKey):
        return True
    return isinstance(candidate, str) and bool(candidate)
