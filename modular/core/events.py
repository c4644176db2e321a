"""
Event model.

Events are immutable records dispatched into the composed transition function.
Modules switch on ``event.type``; anything else about the event is payload.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

# Dispatched by the container itself
INIT = "@@modular/INIT"
REPLACE = "@@modular/REPLACE"


@dataclass(frozen=True)
class Event:
    """
    Immutable event record.

    Fields:
        type: Event type (e.g., "ADD_TODO"); a string or any hashable tag
        payload: Event-specific data
        meta: Metadata (origin, correlation ids, etc.)
    """
    type: Any
    payload: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

