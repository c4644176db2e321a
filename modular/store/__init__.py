"""
State containers and the composition enhancer.

- Container: Abstract container contract (dispatch, get_state, subscribe, replace_reducer)
- Store: In-memory container
- ModularStore: Container whose reducer is composed from registered modules
- modular_enhancer: Enhancer producing a ModularStore from create_store
"""

from .container import Container, Store, create_store
from .enhancer import ModularStore, modular_enhancer, pass_through

__all__ = [
    "Container",
    "Store",
    "create_store",
    "ModularStore",
    "modular_enhancer",
    "pass_through",
]
