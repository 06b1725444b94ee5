"""Subscription sets — one store listener per tracked (object, key) pair.

A SubscriptionSet is opened once from an AccessSet and cancelled once, as a
whole. Handles are kept as soon as the store returns them, so a failure
halfway through open() never loses the listeners already registered.
"""

from __future__ import annotations

from typing import Callable

from trackfx._tracking import AccessSet
from trackfx.errors import SubscriptionOpenError
from trackfx.store import ObservableStore

Disposer = Callable[[], None]


class SubscriptionSet:
    """Cancellation handles for the listeners opened from one AccessSet."""

    __slots__ = ("_store", "_handles", "_cancelled")

    def __init__(self, store: ObservableStore) -> None:
        self._store = store
        self._handles: list[Disposer] = []
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        """True once cancel_all() ran. Listeners of a cancelled set are stale."""
        return self._cancelled

    def open(self, accesses: AccessSet, on_change: Callable[[], None]) -> None:
        """Subscribe on_change to every (object, key) pair in accesses."""
        if self._cancelled:
            raise RuntimeError("cannot open a cancelled SubscriptionSet")
        for obj, key in accesses:
            try:
                handle = self._store.subscribe_key(obj, key, on_change)
            except Exception as exc:
                raise SubscriptionOpenError(obj, key) from exc
            self._handles.append(handle)

    def cancel_all(self) -> None:
        """Invoke every handle exactly once. Safe to call repeatedly."""
        if self._cancelled:
            return
        self._cancelled = True
        # Detach first: a handle may re-enter through a store callback.
        handles, self._handles = self._handles, []
        errors = []
        for handle in handles:
            try:
                handle()
            except Exception as exc:
                errors.append(exc)
        if errors:
            raise errors[0]

    def __len__(self) -> int:
        return len(self._handles)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else f"{len(self._handles)} open"
        return f"SubscriptionSet({state})"
