import threading

import pytest

from servicestats.callback_values import (
    CallbackEntry,
    CallbackValuesMap,
    DynamicCounters,
    DynamicStrings,
)


def test_register_and_get_value():
    m = CallbackValuesMap()
    m.register_callback("a", lambda: 7)
    assert m.get_value("a") == 7
    assert m.get_value("missing") is None
    assert m.get_value("missing", 42) == 42


def test_get_values_sorted_by_name():
    m = CallbackValuesMap()
    m.register_callback("zeta", lambda: 1)
    m.register_callback("alpha", lambda: 2)
    m.register_callback("mid", lambda: 3)
    values = m.get_values()
    assert values == {"alpha": 2, "mid": 3, "zeta": 1}
    assert list(values) == sorted(values)


def test_values_are_computed_on_each_read():
    m = CallbackValuesMap()
    state = {"n": 0}

    def cob():
        state["n"] += 1
        return state["n"]

    m.register_callback("c", cob)
    first = m.get_value("c")
    second = m.get_value("c")
    assert second == first + 1


def test_register_replaces_previous():
    m = CallbackValuesMap()
    m.register_callback("a", lambda: "old")
    m.register_callback("a", lambda: "new")
    assert m.get_value("a") == "new"
    assert len(m) == 1


def test_contains_keys_and_len():
    m = CallbackValuesMap()
    assert len(m) == 0
    m.register_callback("b", lambda: 1)
    m.register_callback("a", lambda: 2)
    assert "a" in m
    assert "c" not in m
    assert m.keys() == ["a", "b"]
    assert len(m) == 2


def test_unregister():
    m = CallbackValuesMap()
    m.register_callback("a", lambda: 1)
    assert m.unregister_callback("a") is True
    assert m.unregister_callback("a") is False
    assert "a" not in m
    assert m.get_values() == {}


def test_get_callback_entry_detached_after_unregister():
    m = CallbackValuesMap()
    m.register_callback("a", lambda: 5)
    entry = m.get_callback("a")
    assert entry.get_value() == 5
    m.unregister_callback("a")
    with pytest.raises(LookupError):
        entry.get_value()
    assert m.get_callback("a") is None


def test_clear_detaches_all_entries():
    m = CallbackValuesMap()
    m.register_callback("a", lambda: 1)
    m.register_callback("b", lambda: 2)
    entries = [m.get_callback("a"), m.get_callback("b")]
    m.clear()
    assert len(m) == 0
    for entry in entries:
        with pytest.raises(LookupError):
            entry.get_value()


def test_callback_entry_clear():
    entry = CallbackEntry(lambda: "x")
    assert entry.get_value() == "x"
    entry.clear()
    with pytest.raises(LookupError):
        entry.get_value()


def test_callback_may_use_map_from_other_thread():
    m = CallbackValuesMap()
    done = []

    def cob():
        t = threading.Thread(
            target=lambda: (m.register_callback("other", lambda: 2), done.append(1))
        )
        t.start()
        t.join(timeout=5)
        return 1

    m.register_callback("self", cob)
    assert m.get_value("self") == 1
    assert done == [1]
    assert "other" in m


def test_dynamic_counters():
    counters = DynamicCounters()
    counters.register_callback("requests", lambda: 10)
    counters.register_callback("errors", lambda: 3)
    assert counters.get_counters() == {"errors": 3, "requests": 10}
    assert counters.get_counter("requests") == 10
    assert counters.get_counter("nope") is None
    assert counters.get_counter("nope", -1) == -1


def test_dynamic_strings():
    strings = DynamicStrings()
    strings.register_callback("version", lambda: "v1")
    assert strings.get_values() == {"version": "v1"}