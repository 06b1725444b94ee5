"""Tests for trackfx.textual — Textual integration layer."""

import threading

import pytest
from textual.css.query import NoMatches

from trackfx import FrozenDict, proxy
from trackfx import textual as stx


class _MockApp:
    """Minimal mock matching the Textual App interface stx needs."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self._call_from_thread_log = []

    def call_from_thread(self, fn, *args):
        self._call_from_thread_log.append((fn, args))
        fn(*args)


class TestBind:
    def test_fires_when_safe(self):
        app = _MockApp()
        state = proxy({"count": 1})
        effects = []
        stx.bind(app, state, lambda s: s.count, effects.append)
        state.count = 2
        assert effects == [2]

    def test_skips_when_not_running(self):
        app = _MockApp(is_running=False)
        state = proxy({"count": 1})
        effects = []
        stx.bind(app, state, lambda s: s.count, effects.append)
        state.count = 2
        assert effects == []

    def test_skips_during_pause(self):
        app = _MockApp()
        state = proxy({"count": 1})
        effects = []
        stx.bind(app, state, lambda s: s.count, effects.append)
        with stx.pause(app):
            state.count = 2
        assert effects == []
        state.count = 3
        assert effects == [3]

    def test_only_delivers_changed_values(self):
        app = _MockApp()
        state = proxy({"count": 1})
        effects = []
        stx.bind(app, state, lambda s: s.count > 5, effects.append)
        state.count = 2
        state.count = 3
        assert effects == []
        state.count = 6
        assert effects == [True]

    def test_untracked_keys_ignored(self):
        app = _MockApp()
        state = proxy({"count": 1, "name": "x"})
        effects = []
        stx.bind(app, state, lambda s: s.count, effects.append)
        state.name = "y"
        assert effects == []

    def test_follows_structural_changes(self):
        app = _MockApp()
        state = proxy({"user": {"name": "A"}})
        effects = []
        stx.bind(app, state, lambda s: s.user.name, effects.append)
        state.user = {"name": "B"}
        state.user.name = "C"
        assert effects == ["B", "C"]

    def test_delivers_snapshots(self):
        app = _MockApp()
        state = proxy({"user": {"name": "A"}})
        effects = []
        stx.bind(app, state, lambda s: s.user, effects.append)
        state.user = {"name": "B"}
        assert len(effects) == 1
        assert isinstance(effects[0], FrozenDict)
        assert effects[0] == {"name": "B"}

    def test_fire_immediately(self):
        app = _MockApp()
        state = proxy({"count": 1})
        effects = []
        stx.bind(app, state, lambda s: s.count, effects.append, fire_immediately=True)
        assert effects == [1]

    def test_catches_nomatch(self):
        """NoMatches from widget queries are silently swallowed."""
        app = _MockApp()
        state = proxy({"count": 1})

        def _raise_nomatch(v):
            raise NoMatches("StatusFooter")

        # Should not raise
        unsubscribe = stx.bind(app, state, lambda s: s.count, _raise_nomatch)
        state.count = 2
        unsubscribe()

    def test_propagates_real_errors(self):
        """Non-NoMatches exceptions propagate normally."""
        app = _MockApp()
        state = proxy({"count": 1})

        def _raise_value_error(v):
            raise ValueError("boom")

        stx.bind(app, state, lambda s: s.count, _raise_value_error)
        with pytest.raises(ValueError, match="boom"):
            state.count = 2

    def test_unsubscribe_stops(self):
        app = _MockApp()
        state = proxy({"count": 1})
        effects = []
        unsubscribe = stx.bind(app, state, lambda s: s.count, effects.append)
        state.count = 2
        unsubscribe()
        unsubscribe()
        state.count = 3
        assert effects == [2]

    def test_thread_marshal(self):
        """Changes from a background thread use call_from_thread."""
        app = _MockApp()
        state = proxy({"count": 1})
        effects = []
        stx.bind(app, state, lambda s: s.count, effects.append)

        def _bg():
            state.count = 2

        t = threading.Thread(target=_bg)
        t.start()
        t.join()

        assert effects == [2]
        assert len(app._call_from_thread_log) >= 1


class TestPause:
    def test_pause_restores_on_exception(self):
        app = _MockApp()
        assert stx.is_safe(app)

        with pytest.raises(RuntimeError):
            with stx.pause(app):
                assert not stx.is_safe(app)
                raise RuntimeError("oops")

        # Restored despite exception
        assert stx.is_safe(app)

    def test_pause_does_not_mutate_app(self):
        """// [LAW:no-shared-mutable-globals] pause state lives in the module, not on the app."""
        app = _MockApp()
        attrs_before = set(vars(app))
        with stx.pause(app):
            attrs_during = set(vars(app))
        assert attrs_before == attrs_during

    def test_multiple_apps_independent(self):
        """Pausing one app does not affect another."""
        app_a = _MockApp()
        app_b = _MockApp()
        with stx.pause(app_a):
            assert not stx.is_safe(app_a)
            assert stx.is_safe(app_b)
