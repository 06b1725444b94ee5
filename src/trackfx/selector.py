"""Tracked selectors — the value side of a tracked subscription.

A host that re-renders on change needs two things: a way to be told that
something changed, and a way to read the current value. TrackedSelector
pairs them over one (root, selector, store):

- subscribe(callback) is subscribe_tracked() and returns the unsubscribe.
- get_current_value() runs the selector on the live root, untracked. If the
  result is itself an observable object it is snapshotted, so callers never
  hold a live mutable reference.

Comparing successive values is the host's job. To make that comparison
meaningful the selector has to return the same object for the same state;
with the stability check on, get_current_value() warns when it does not.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

from trackfx.errors import SelectorEvaluationError
from trackfx.store import ObservableStore, ProxyStore
from trackfx.tracked import _name, subscribe_tracked

logger = logging.getLogger("trackfx.selector")

T = TypeVar("T")
R = TypeVar("R")

# Off under `python -O`, like assertions.
_stability_check: bool = __debug__

_VALUE_TYPES = (str, bytes, int, float, complex, bool, tuple, frozenset, type(None))

_UNSTABLE_MESSAGE = (
    "Selector %s returned a different object on two calls in a row. "
    "A selector must return the same value for the same state, otherwise "
    "every read looks like a change. Return the stored object and build "
    "derived defaults outside the selector: "
    "`lambda s: s.todos` rather than `lambda s: s.todos or []`."
)


def set_stability_check(enabled: bool) -> None:
    """Enable or disable the unstable-selector warning.

    Defaults to on, and to off when Python runs with -O.
    """
    global _stability_check
    _stability_check = enabled


def _same(a: object, b: object) -> bool:
    if a is b:
        return True
    return isinstance(a, _VALUE_TYPES) and type(a) is type(b) and a == b


class TrackedSelector(Generic[T, R]):
    """subscribe()/get_current_value() pair for one selector over one root."""

    __slots__ = ("_root", "_selector", "_store")

    def __init__(
        self,
        root: T,
        selector: Callable[[T], R],
        *,
        store: ObservableStore | None = None,
    ) -> None:
        self._root = root
        self._selector = selector
        self._store = store if store is not None else ProxyStore()

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call callback() when a value the selector reads changes."""
        return subscribe_tracked(self._root, self._selector, callback, store=self._store)

    def get_current_value(self) -> R:
        """Evaluate the selector against the live root, without tracking."""
        value = self._read()
        if _stability_check and not _same(value, self._read()):
            logger.warning(_UNSTABLE_MESSAGE, _name(self._selector))
        if self._store.is_observable(value):
            return self._store.snapshot(value)
        return value

    def _read(self) -> R:
        try:
            return self._selector(self._root)
        except Exception as exc:
            raise SelectorEvaluationError(
                f"selector {_name(self._selector)} raised {exc!r}"
            ) from exc

    def __repr__(self) -> str:
        return f"TrackedSelector({_name(self._selector)})"


def get_current_value(
    root: T, selector: Callable[[T], R], *, store: ObservableStore | None = None
) -> R:
    """One-off untracked read of selector(root), snapshotted if observable."""
    return TrackedSelector(root, selector, store=store).get_current_value()
