"""Tests for TrackedSelector and get_current_value."""

import logging

import pytest

from trackfx import (
    FrozenDict,
    SelectorEvaluationError,
    TrackedSelector,
    get_current_value,
    proxy,
    set_stability_check,
)


@pytest.fixture
def stability_check():
    set_stability_check(True)
    yield
    set_stability_check(__debug__)


class _TaggingStore:
    """Store double that treats every dict as observable."""

    def subscribe_key(self, obj, key, callback):
        return lambda: None

    def is_observable(self, value):
        return isinstance(value, dict)

    def snapshot(self, value):
        return ("snapshot", tuple(sorted(value)))


class TestGetCurrentValue:
    def test_plain_value(self):
        state = proxy({"count": 3})
        assert TrackedSelector(state, lambda s: s.count).get_current_value() == 3

    def test_observable_result_is_snapshotted(self):
        state = proxy({"user": {"name": "A"}})
        value = TrackedSelector(state, lambda s: s.user).get_current_value()
        assert isinstance(value, FrozenDict)
        assert value == {"name": "A"}
        state.user.name = "B"
        assert value.name == "A"

    def test_unchanged_state_returns_same_object(self):
        state = proxy({"user": {"name": "A"}, "count": 0})
        select = TrackedSelector(state, lambda s: s.user)
        first = select.get_current_value()
        assert select.get_current_value() is first
        state.count = 1
        assert select.get_current_value() is first
        state.user.name = "B"
        assert select.get_current_value() is not first

    def test_selector_sees_raw_root(self):
        state = proxy({"user": {"name": "A"}})
        seen = []
        get_current_value(state, lambda s: seen.append(s))
        assert seen and all(item is state for item in seen)

    def test_error_wrapped(self):
        def _broken(s):
            raise KeyError("missing")

        with pytest.raises(SelectorEvaluationError) as info:
            get_current_value(proxy({}), _broken)
        assert isinstance(info.value.__cause__, KeyError)

    def test_uses_injected_store(self):
        root = {"b": 1, "a": 2}
        value = get_current_value(root, lambda s: s, store=_TaggingStore())
        assert value == ("snapshot", ("a", "b"))

    def test_module_shortcut(self):
        state = proxy({"a": 1, "b": 2})
        assert get_current_value(state, lambda s: s.a + s.b) == 3


class TestSubscribe:
    def test_subscribe_then_read(self):
        state = proxy({"count": 0, "other": 0})
        source = TrackedSelector(state, lambda s: s.count)
        values = []
        unsubscribe = source.subscribe(lambda: values.append(source.get_current_value()))
        state.other = 1
        state.count = 5
        state.count = 6
        assert values == [5, 6]
        unsubscribe()
        state.count = 7
        assert values == [5, 6]

    def test_repr(self):
        def select_count(s):
            return s.count

        assert repr(TrackedSelector(proxy({}), select_count)) == "TrackedSelector(select_count)"


class TestStabilityCheck:
    def test_warns_on_unstable_selector(self, stability_check, caplog):
        state = proxy({"count": 0})
        with caplog.at_level(logging.WARNING, logger="trackfx.selector"):
            get_current_value(state, lambda s: [s.count])
        assert any("different object" in r.getMessage() for r in caplog.records)

    def test_stable_selectors_are_quiet(self, stability_check, caplog):
        state = proxy({"a": 1000, "b": 2000, "user": {"name": "A"}, "name": "x"})
        with caplog.at_level(logging.WARNING, logger="trackfx.selector"):
            get_current_value(state, lambda s: s.a + s.b)
            get_current_value(state, lambda s: s.user)
            get_current_value(state, lambda s: (s.name, s.a))
            get_current_value(state, lambda s: None)
        assert caplog.records == []

    def test_recommended_selector_is_stable(self, stability_check, caplog):
        state = proxy({"todos": [{"title": "a"}]})
        with caplog.at_level(logging.WARNING, logger="trackfx.selector"):
            value = get_current_value(state, lambda s: s.todos)
        assert caplog.records == []
        assert value == [{"title": "a"}]

    def test_warning_names_a_non_clashing_key(self, stability_check, caplog):
        state = proxy({"todos": None})
        with caplog.at_level(logging.WARNING, logger="trackfx.selector"):
            get_current_value(state, lambda s: s.todos or [])
        message = caplog.records[0].getMessage()
        assert "s.todos" in message
        assert "s.items" not in message

    def test_disabled(self, caplog):
        set_stability_check(False)
        try:
            with caplog.at_level(logging.WARNING, logger="trackfx.selector"):
                get_current_value(proxy({}), lambda s: [])
        finally:
            set_stability_check(__debug__)
        assert caplog.records == []

    def test_selector_called_once_when_disabled(self):
        calls = []
        set_stability_check(False)
        try:
            get_current_value(proxy({}), lambda s: calls.append(1))
        finally:
            set_stability_check(__debug__)
        assert calls == [1]
