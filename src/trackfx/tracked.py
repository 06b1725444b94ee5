"""Tracked subscriptions — listen to exactly what a selector reads.

subscribe_tracked(root, selector, callback) runs selector(root) through a
Tracked view, opens one store listener per (object, key) pair it read, and
calls callback() whenever one of those values changes.

The listener set is rebuilt from scratch on every change: the selector is
re-run, the previous SubscriptionSet is cancelled and a new one opened
before callback() fires. Replacing an object on the tracked path, or a
branch in the selector that now reads different fields, therefore never
leaves stale or missing listeners behind. Rebuilding everything instead of
diffing the two access sets costs one cancel and one subscribe per tracked
pair per change.

State lives on the TrackedSubscription instance. Nothing is shared between
two subscriptions, even over the same root.
"""

from __future__ import annotations

import enum
import functools
import logging
from typing import Callable, Generic, TypeVar

from trackfx._tracking import AccessRecorder, AccessSet
from trackfx.errors import SelectorEvaluationError, SubscriptionOpenError
from trackfx.store import ObservableStore, ProxyStore
from trackfx.subscription import SubscriptionSet
from trackfx.tracker import track

logger = logging.getLogger("trackfx.tracked")

T = TypeVar("T")


class TrackingStatus(enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"
    REBUILDING = "rebuilding"
    TORN_DOWN = "torn_down"


def _name(fn: Callable) -> str:
    return getattr(fn, "__name__", repr(fn))


class TrackedSubscription(Generic[T]):
    """Keeps store listeners in step with what selector reads on root."""

    __slots__ = (
        "_root",
        "_selector",
        "_callback",
        "_store",
        "_recorder",
        "_subscriptions",
        "_status",
    )

    def __init__(
        self,
        root: T,
        selector: Callable[[T], object],
        callback: Callable[[], None],
        *,
        store: ObservableStore | None = None,
    ) -> None:
        self._root = root
        self._selector = selector
        self._callback = callback
        self._store = store if store is not None else ProxyStore()
        self._recorder = AccessRecorder()
        self._subscriptions = SubscriptionSet(self._store)
        self._status = TrackingStatus.IDLE

    @property
    def status(self) -> TrackingStatus:
        return self._status

    @property
    def subscription_count(self) -> int:
        """Number of (object, key) listeners currently open."""
        return len(self._subscriptions)

    def start(self) -> Callable[[], None]:
        """Run the first tracking pass and open listeners. Returns dispose."""
        if self._status is not TrackingStatus.IDLE:
            raise RuntimeError(f"cannot start a {self._status.value} subscription")
        accesses = self._evaluate()
        if self._status is TrackingStatus.TORN_DOWN:
            return self.dispose
        self._install(accesses)
        logger.debug(
            "Tracking %s: %d keys", _name(self._selector), len(self._subscriptions)
        )
        return self.dispose

    def rebuild(self) -> None:
        """Re-run the selector and replace every listener.

        If the selector raises, the current listeners stay in place.
        """
        if self._status is TrackingStatus.IDLE:
            raise RuntimeError("cannot rebuild a subscription that was never started")
        if self._status is TrackingStatus.TORN_DOWN:
            return
        old_count = len(self._subscriptions)
        self._status = TrackingStatus.REBUILDING
        try:
            accesses = self._evaluate()
        finally:
            if self._status is TrackingStatus.REBUILDING:
                self._status = TrackingStatus.ACTIVE
        if self._status is TrackingStatus.TORN_DOWN:
            # dispose() ran inside the selector.
            return
        self._install(accesses)
        logger.debug(
            "Rebuilt %s: %d->%d keys",
            _name(self._selector), old_count, len(self._subscriptions),
        )

    def dispose(self) -> None:
        """Cancel all listeners. Further calls and late events are no-ops."""
        if self._status is TrackingStatus.TORN_DOWN:
            return
        self._status = TrackingStatus.TORN_DOWN
        self._subscriptions.cancel_all()
        logger.debug("Disposed tracking of %s", _name(self._selector))

    def _evaluate(self) -> AccessSet:
        with self._recorder.recording() as accesses:
            try:
                self._selector(track(self._root, self._recorder, self._store))
            except Exception as exc:
                raise SelectorEvaluationError(
                    f"selector {_name(self._selector)} raised {exc!r}"
                ) from exc
        return accesses

    def _install(self, accesses: AccessSet) -> None:
        previous = self._subscriptions
        subscriptions = SubscriptionSet(self._store)
        # Swap before cancelling so a re-entrant rebuild sees the new set.
        self._subscriptions = subscriptions
        previous.cancel_all()
        try:
            subscriptions.open(
                accesses, functools.partial(self._on_key_change, subscriptions)
            )
        except SubscriptionOpenError:
            subscriptions.cancel_all()
            raise
        self._status = TrackingStatus.ACTIVE

    def _on_key_change(self, subscriptions: SubscriptionSet) -> None:
        if self._status is TrackingStatus.TORN_DOWN:
            return
        if subscriptions.cancelled or subscriptions is not self._subscriptions:
            # Late delivery to a listener that a rebuild already retired.
            return
        self.rebuild()
        if self._status is not TrackingStatus.TORN_DOWN:
            self._callback()

    def __repr__(self) -> str:
        return (
            f"TrackedSubscription({_name(self._selector)}, "
            f"{self._status.value}, {len(self._subscriptions)} keys)"
        )


def subscribe_tracked(
    root: T,
    selector: Callable[[T], object],
    callback: Callable[[], None],
    *,
    store: ObservableStore | None = None,
) -> Callable[[], None]:
    """Call callback() whenever something selector(root) reads changes.

    Returns an unsubscribe function; calling it more than once is harmless.

    Usage:
        state = proxy({"user": {"name": "John"}, "theme": "dark"})
        log = []

        unsubscribe = subscribe_tracked(
            state, lambda s: s.user.name, lambda: log.append(state.user.name)
        )
        state.theme = "light"          # not read by the selector
        # log == []
        state.user = {"name": "Jane"}  # replaces the tracked object
        # log == ["Jane"]
        state.user.name = "Bob"        # the new object is tracked
        # log == ["Jane", "Bob"]

        unsubscribe()
    """
    return TrackedSubscription(root, selector, callback, store=store).start()
