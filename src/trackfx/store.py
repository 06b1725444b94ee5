"""Store — the observable-state service a tracked subscription listens to.

The tracking engine never reaches for a global store. Each subscription is
handed an ObservableStore and only uses these three operations on it.
ProxyStore is the implementation backed by trackfx.observable proxies; any
other reactive container can be plugged in by providing the same methods.
"""

from __future__ import annotations

from typing import Any, Callable, Hashable, Protocol, runtime_checkable

from trackfx import observable


@runtime_checkable
class ObservableStore(Protocol):
    """Narrow interface to an external observable-state store."""

    def subscribe_key(
        self, obj: object, key: Hashable, callback: Callable[[], None]
    ) -> Callable[[], None]:
        """Call callback() whenever obj[key] changes. Returns a canceller."""
        ...

    def is_observable(self, value: object) -> bool:
        """Is value part of this store's observable graph?"""
        ...

    def snapshot(self, value: Any) -> Any:
        """Immutable point-in-time copy of an observable value."""
        ...


class ProxyStore:
    """ObservableStore backed by proxy()/ProxyDict/ProxyList."""

    __slots__ = ()

    def subscribe_key(
        self, obj: object, key: Hashable, callback: Callable[[], None]
    ) -> Callable[[], None]:
        return observable.subscribe_key(obj, key, callback)

    def is_observable(self, value: object) -> bool:
        return observable.is_proxy(value)

    def snapshot(self, value: Any) -> Any:
        return observable.snapshot(value)

    def __repr__(self) -> str:
        return "ProxyStore()"
