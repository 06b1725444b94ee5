"""Bind tracked selectors to Textual widgets. Opt-in: requires textual.

// [LAW:single-enforcer] Safety guard, dedup, NoMatches and thread marshalling
//   all live in bind(); effects are plain value -> widget updates.
// [LAW:locality-or-seam] The only module that imports textual; the tracking
//   engine knows nothing about apps or widgets.
// [LAW:no-shared-mutable-globals] _paused_apps is owned here and changed only
//   through pause(); an id is present exactly while its pause() block runs.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from trackfx.selector import TrackedSelector

# id(app) of every app inside a pause() block.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Hold back bound effects while widgets are being swapped out."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """True when effects may query the widget tree of app."""
    return app.is_running and id(app) not in _paused_apps


def bind(app, root, selector, effect, *, store=None, fire_immediately=False):
    """Push selector(root) into a widget whenever what it reads changes.

    effect(value) receives the current value, snapshotted when it is an
    observable object, and only when it differs from the last delivered
    value. Changes skipped while the app is paused or not running are
    delivered on the next change after that.

    Returns the unsubscribe function.
    """
    source = TrackedSelector(root, selector, store=store)
    _main = threading.get_ident()
    last = [source.get_current_value()]

    def _guarded():
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_deliver)
        else:
            _deliver()

    def _deliver():
        value = source.get_current_value()
        previous = last[0]
        if value is previous or value == previous:
            return
        last[0] = value
        _safe(value)

    def _safe(value):
        try:
            effect(value)
        except NoMatches:
            pass

    unsubscribe = source.subscribe(_guarded)
    if fire_immediately and is_safe(app):
        _safe(last[0])
    return unsubscribe
