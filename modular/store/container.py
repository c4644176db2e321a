"""
State container interface and in-memory implementation.

The enhancer only relies on the Container contract; Store is the minimal
container used when no other is supplied.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

from ..core.errors import DispatchError
from ..core.events import INIT, REPLACE, Event

Reducer = Callable[[Any, Any], Any]
Listener = Callable[[], None]
Enhancer = Callable[[Callable[..., "Container"]], Callable[..., "Container"]]


class Container(ABC):
    """
    Abstract state container.

    Implementations must guarantee:
    - dispatch runs the installed reducer to completion before returning
    - listeners are notified after the state has been replaced
    - replace_reducer takes effect for the next dispatched event
    """

    @abstractmethod
    def dispatch(self, event: Any) -> Any:
        ...

    @abstractmethod
    def get_state(self) -> Any:
        ...

    @abstractmethod
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Function that removes the listener
        """
        ...

    @abstractmethod
    def replace_reducer(self, reducer: Reducer) -> None:
        ...


class Store(Container):
    """
    In-memory container.

    Dispatches INIT on creation and REPLACE whenever the reducer is replaced,
    so newly installed reducers can materialize their initial state.
    """

    def __init__(self, reducer: Reducer, initial_state: Any = None) -> None:
        self._reducer = reducer
        self._state = initial_state
        self._listeners: List[Listener] = []
        self._dispatching = False
        self._lock = threading.RLock()
        self.dispatch(Event(type=INIT))

    def dispatch(self, event: Any) -> Any:
        """
        Run the reducer over event and notify listeners.

        Raises:
            DispatchError: If called from inside the reducer
        """
        with self._lock:
            if self._dispatching:
                raise DispatchError("Reducers may not dispatch events")
            self._dispatching = True
            try:
                self._state = self._reducer(self._state, event)
            finally:
                self._dispatching = False
            listeners = list(self._listeners)

        for listener in listeners:
            listener()
        return event

    def get_state(self) -> Any:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def replace_reducer(self, reducer: Reducer) -> None:
        with self._lock:
            self._reducer = reducer
        self.dispatch(Event(type=REPLACE))


def create_store(
    reducer: Reducer, initial_state: Any = None, enhancer: Optional[Enhancer] = None
) -> Container:
    """
    Create a container, optionally through an enhancer.

    Usage:
        store = create_store(base_reducer, {}, modular_enhancer())
    """
    if enhancer is not None:
        return enhancer(create_store)(reducer, initial_state)
    return Store(reducer, initial_state)
