"""
Tests for the composition enhancer and the in-memory container.
"""

import threading
from types import MappingProxyType

import pytest

from modular.core.codec import MergingCodec
from modular.core.config import PRODUCTION
from modular.core.effects import NO_EFFECT, Batch, WithEffect
from modular.core.errors import (
    CircularDependency,
    DispatchError,
    InvalidModule,
    MissingExternalDependency,
)
from modular.core.events import INIT, REPLACE, Event
from modular.store import ModularStore, Store, create_store, modular_enhancer
from modular.tests.sample_modules import ALL, COUNTER, CYCLE, DOUBLED, INCREMENT, increment


def base_reducer(state, event):
    return {} if state is None else state


def _store(**kwargs):
    return create_store(base_reducer, None, modular_enhancer(**kwargs))


def test_container_dispatches_init_and_replace():
    seen = []

    def recorder(state, event):
        seen.append(event.type)
        return state

    store = Store(recorder, {"a": 1})
    store.replace_reducer(recorder)

    assert seen == [INIT, REPLACE]
    assert store.get_state() == {"a": 1}


def test_container_subscribe_and_unsubscribe():
    store = Store(lambda s, e: (s or 0) + 1)
    calls = []

    unsubscribe = store.subscribe(lambda: calls.append(store.get_state()))
    store.dispatch(Event(type="tick"))
    unsubscribe()
    store.dispatch(Event(type="tick"))

    assert calls == [2]
    assert store.get_state() == 3


def test_container_rejects_dispatch_from_reducer():
    holder = {}

    def reentrant(state, event):
        if event.type == "go":
            holder["store"].dispatch(Event(type="nested"))
        return state

    store = Store(reentrant)
    holder["store"] = store

    with pytest.raises(DispatchError):
        store.dispatch(Event(type="go"))


def test_enhancer_returns_modular_store_with_base_state():
    store = _store()

    assert isinstance(store, ModularStore)
    assert store.get_state() == {}


def test_adding_module_materializes_slice():
    store = _store()

    store.add_module(COUNTER)

    assert store.get_state() == {"counter": 0}


def test_dispatch_runs_modules_in_dependency_order():
    store = _store()
    store.add_modules(ALL)

    store.dispatch(increment())
    store.dispatch(increment())

    assert store.get_state() == {"counter": 2, "doubled": 4, "audit": [1, 2]}


def test_add_module_returns_registered_module():
    store = _store()

    module = store.add_module(COUNTER)

    assert module.provides == "counter"
    assert store.add_module(COUNTER) is module
    assert store.get_module("counter") is module


def test_add_module_twice_keeps_registry():
    store = _store()
    store.add_module(COUNTER)
    registry = store.registry

    store.add_module(COUNTER)

    assert store.registry is registry


def test_missing_dependency_rolls_back():
    """Adding a module whose dependency nobody supplies fails and leaves the store as it was."""
    store = _store()
    store.add_module(COUNTER)
    registry = store.registry

    with pytest.raises(MissingExternalDependency, match="locale") as exc:
        store.add_module({"provides": "greeting", "depends": ["locale"], "reducer": lambda s, e, d: s})

    assert exc.value.keys == ("locale",)
    assert store.registry is registry
    store.dispatch(increment())
    assert store.get_state() == {"counter": 1}


def test_external_dependencies_satisfy_unmet_keys():
    captured = {}

    def greeting(state, event, deps):
        captured["locale"] = deps["locale"]
        return "hello"

    store = _store(external={"locale": "en"})
    store.add_module({"provides": "greeting", "depends": ["locale"], "reducer": greeting})

    assert store.get_state() == {"greeting": "hello"}
    assert captured["locale"] == "en"


def test_base_state_satisfies_unmet_keys():
    store = create_store(
        lambda state, event: state if state is not None else {"locale": "fr"},
        None,
        modular_enhancer(),
    )

    store.add_module({"provides": "greeting", "depends": ["locale"], "reducer": lambda s, e, d: d["locale"]})

    assert store.get_state() == {"locale": "fr", "greeting": "fr"}


def test_production_skips_missing_dependency_check():
    store = _store(config=PRODUCTION)

    store.add_module({"provides": "greeting", "depends": ["locale"], "reducer": lambda s, e, d: d.get("locale")})

    assert store.get_state() == {"greeting": None}


def test_cycle_rejected_without_installing():
    store = _store()
    store.add_module(COUNTER)
    registry = store.registry

    with pytest.raises(CircularDependency):
        store.add_modules(CYCLE)

    assert store.registry is registry
    store.dispatch(increment())
    assert store.get_state() == {"counter": 1}


def test_invalid_module_rejected():
    store = _store()

    with pytest.raises(InvalidModule):
        store.add_module({"provides": "a"})

    assert len(store.registry) == 0


def test_remove_module_keeps_slice_value():
    store = _store()
    store.add_modules([COUNTER, DOUBLED])
    store.dispatch(increment())

    removed = store.remove_module("doubled")
    store.dispatch(increment())

    assert removed.provides == "doubled"
    assert store.get_state() == {"counter": 2, "doubled": 2}
    assert store.remove_module("doubled") is None


def test_remove_all_modules_stops_transitions():
    store = _store()
    store.add_modules(ALL)
    store.remove_all_modules()
    before = store.get_state()

    store.dispatch(increment())

    assert store.get_state() is before


def test_effects_handed_to_runner():
    ran = []

    def runner(effect, dispatch):
        ran.append(effect)

    store = _store(effect_runner=runner)
    store.add_modules(ALL)
    store.dispatch(increment())

    assert ran == [("log", 1)]
    assert store.last_effect == ("log", 1)


def test_runner_may_dispatch_follow_up_events():
    def runner(effect, dispatch):
        if effect == "again":
            dispatch(Event(type="follow-up"))

    def ping(state, event, deps):
        if event.type == "ping":
            return WithEffect("pinged", "again")
        if event.type == "follow-up":
            return "followed"
        return state

    store = _store(effect_runner=runner)
    store.add_module({"provides": "ping", "reducer": ping})
    store.dispatch(Event(type="ping"))

    assert store.get_state() == {"ping": "followed"}
    assert store.last_effect is NO_EFFECT


def test_batched_effects_reach_runner():
    ran = []
    store = _store(effect_runner=lambda effect, dispatch: ran.append(effect))
    store.add_modules([
        {"provides": "a", "reducer": lambda s, e, d: WithEffect(1, "a") if e.type == "go" else s},
        {"provides": "b", "depends": ["a"], "reducer": lambda s, e, d: WithEffect(2, "b") if e.type == "go" else s},
    ])

    store.dispatch(Event(type="go"))

    assert ran == [Batch(("a", "b"))]


def test_registration_inside_reducer_rejected():
    """Reducers cannot change the module graph while an event is being reduced."""
    holder = {}

    def registering(state, event, deps):
        if event.type == "register":
            holder["store"].add_module(DOUBLED)
        return "done"

    store = _store()
    holder["store"] = store
    store.add_modules([COUNTER, {"provides": "registrar", "depends": ["counter"], "reducer": registering}])

    with pytest.raises(DispatchError):
        store.dispatch(Event(type="register"))

    assert store.get_module("doubled") is None


def test_in_flight_event_completes_against_its_snapshot():
    """A module added while another thread is reducing only sees the next event."""
    entered = threading.Event()
    release = threading.Event()
    calls = []

    def gate(state, event, deps):
        if event.type == "slow":
            entered.set()
            release.wait(5)
        return "passed"

    def late(state, event, deps):
        calls.append(event.type)
        return deps["counter"]

    store = _store()
    store.add_modules([COUNTER, {"provides": "gate", "reducer": gate}])

    slow = threading.Thread(target=store.dispatch, args=(Event(type="slow"),))
    slow.start()
    assert entered.wait(5)

    late_module = {"provides": "late", "depends": ["counter"], "reducer": late}
    adder = threading.Thread(target=store.add_module, args=(late_module,))
    adder.start()
    adder.join(0.1)
    release.set()
    slow.join(5)
    adder.join(5)

    assert calls == [REPLACE]

    store.dispatch(increment())

    assert calls == [REPLACE, INCREMENT]
    assert store.get_state()["late"] == 1


def test_subscribers_notified():
    store = _store()
    calls = []
    store.subscribe(lambda: calls.append(store.get_state().get("counter")))

    store.add_module(COUNTER)
    store.dispatch(increment())

    assert calls == [0, 1]


def test_replace_base_reducer():
    store = _store()
    store.add_module(COUNTER)

    store.replace_reducer(lambda state, event: dict(state, base="seen"))

    assert store.get_state() == {"counter": 0, "base": "seen"}


def test_merging_codec_store():
    store = create_store(
        None,
        MappingProxyType({"router": "/"}),
        modular_enhancer(codec=MergingCodec(factory=MappingProxyType)),
    )

    store.add_module(COUNTER)
    store.dispatch(increment())

    assert isinstance(store.get_state(), MappingProxyType)
    assert dict(store.get_state()) == {"router": "/", "counter": 1}
    assert store.get_slice("counter") == 1


def test_modular_store_wraps_any_container():
    inner = Store(lambda state, event: state, {"seed": True})
    store = ModularStore(inner, codec=MergingCodec())

    store.add_module(COUNTER)

    assert inner.get_state() == {"seed": True, "counter": 0}


def test_failed_base_reducer_replacement_rolls_back():
    """A base reducer that stops supplying an unmet key is rejected and the old one kept."""
    store = create_store(lambda state, event: {"locale": "en"} if state is None else state, None, modular_enhancer())
    store.add_module({"provides": "greeting", "depends": ["locale"], "reducer": lambda s, e, d: d["locale"]})

    with pytest.raises(MissingExternalDependency, match="locale"):
        store.replace_reducer(lambda state, event: {})

    store.dispatch(Event(type="tick"))

    assert store.get_state() == {"locale": "en", "greeting": "en"}


def test_missing_dependency_checked_before_modules_run():
    """No module transitions for an event whose unmet dependencies are absent."""
    calls = []

    def recorder(state, event, deps):
        calls.append(event.type)
        return len(calls)

    def forgetful(state, event):
        if event.type == "forget":
            return {k: v for k, v in state.items() if k != "locale"}
        return state

    store = create_store(forgetful, {"locale": "en"}, modular_enhancer())
    store.add_modules([
        {"provides": "recorder", "reducer": recorder},
        {"provides": "greeting", "depends": ["locale"], "reducer": lambda s, e, d: d["locale"]},
    ])
    before = store.get_state()

    with pytest.raises(MissingExternalDependency):
        store.dispatch(Event(type="forget"))

    assert "forget" not in calls
    assert store.get_state() is before


def test_listener_failure_discards_event_effects():
    """Effects of a dispatch that raised are not delivered with the next event."""
    ran = []
    failures = {"remaining": 1}

    def flaky_listener():
        if failures["remaining"]:
            failures["remaining"] -= 1
            raise RuntimeError("listener failed")

    def echo(state, event, deps):
        if event.type in ("first", "second"):
            return WithEffect(event.type, event.type)
        return state

    store = _store(effect_runner=lambda effect, dispatch: ran.append(effect))
    store.add_module({"provides": "echo", "reducer": echo})
    store.subscribe(flaky_listener)

    with pytest.raises(RuntimeError, match="listener failed"):
        store.dispatch(Event(type="first"))
    store.dispatch(Event(type="second"))

    assert ran == ["second"]
    assert store.get_state() == {"echo": "second"}
