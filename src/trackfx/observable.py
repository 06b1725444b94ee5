"""Proxy state — observable dicts and lists that notify on mutation.

proxy() turns plain dicts and lists into ProxyDict/ProxyList, recursively.
Every mutation bumps the proxy's version and synchronously notifies the
listeners registered on that proxy. Values assigned into a proxy are
proxied too, so the whole reachable graph stays observable.

subscribe_key() narrows an object listener down to one key: the callback
fires only when the value read at that key actually changes. snapshot()
takes an immutable deep copy for handing out to consumers; while nothing
reachable from the proxy changes, it keeps returning the same copy.

This is the store trackfx ships with. The tracking engine only sees it
through trackfx.store.ObservableStore.
"""

from __future__ import annotations

import itertools
from collections.abc import Mapping, MutableMapping, MutableSequence, Sequence
from typing import Any, Callable, Hashable, Iterator

from trackfx._tracking import KEYS, LENGTH, TrackKey

Listener = Callable[[], None]
Disposer = Callable[[], None]

_MISSING = TrackKey("MISSING")

# itertools.count is thread-safe (C-level GIL atomic)
_version_counter = itertools.count(1)

_INTERNAL = frozenset({"_version", "_listeners", "_snapshot", "_data", "_items"})


class _ProxyBase:
    __slots__ = ("_version", "_listeners", "_snapshot")

    def _init_proxy(self) -> None:
        object.__setattr__(self, "_version", next(_version_counter))
        object.__setattr__(self, "_listeners", [])
        object.__setattr__(self, "_snapshot", None)

    def _notify(self) -> None:
        """Bump the version and call every listener registered on this proxy."""
        object.__setattr__(self, "_version", next(_version_counter))
        # Copy: listeners may unsubscribe or subscribe during delivery.
        for listener in list(self._listeners):
            listener()


def _changed(old: object, new: object) -> bool:
    return old is not new and old != new


class ProxyDict(_ProxyBase):
    """An observable dict. Keys are readable as items or as attributes.

    Subclasses may declare @property getters computed from their keys:

        class Cart(ProxyDict):
            @property
            def total(self):
                return sum(line.price for line in self.lines)
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping | None = None, **kwargs: Any) -> None:
        self._init_proxy()
        object.__setattr__(self, "_data", {})
        memo: dict[int, Any] = {}
        if data is not None:
            memo[id(data)] = self
            for key, value in data.items():
                self._data[key] = _convert(value, memo)
        for key, value in kwargs.items():
            self._data[key] = _convert(value, memo)

    # --- Read operations ---

    def __getitem__(self, key: Hashable) -> Any:
        return self._data[key]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__") or name in _INTERNAL:
            raise AttributeError(name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(
                f"{type(self).__name__} has no key {name!r}"
            ) from None

    def get(self, key: Hashable, default: Any = None) -> Any:
        return self._data.get(key, default)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._data)

    def keys(self):
        return self._data.keys()

    def values(self):
        return self._data.values()

    def items(self):
        return self._data.items()

    # --- Write operations (notify) ---

    def __setitem__(self, key: Hashable, value: Any) -> None:
        value = proxy(value)
        old = self._data.get(key, _MISSING)
        self._data[key] = value
        if _changed(old, value):
            self._notify()

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _INTERNAL or isinstance(getattr(type(self), name, None), property):
            object.__setattr__(self, name, value)
        else:
            self[name] = value

    def __delitem__(self, key: Hashable) -> None:
        del self._data[key]
        self._notify()

    def __delattr__(self, name: str) -> None:
        try:
            del self[name]
        except KeyError:
            raise AttributeError(name) from None

    def pop(self, key: Hashable, *args: Any) -> Any:
        had_key = key in self._data
        result = self._data.pop(key, *args)
        if had_key:
            self._notify()
        return result

    def update(self, other: Mapping | None = None, **kwargs: Any) -> None:
        changed = False
        for key, value in dict(other or {}, **kwargs).items():
            value = proxy(value)
            old = self._data.get(key, _MISSING)
            self._data[key] = value
            changed = changed or _changed(old, value)
        if changed:
            self._notify()

    def setdefault(self, key: Hashable, default: Any = None) -> Any:
        if key not in self._data:
            self._data[key] = proxy(default)
            self._notify()
        return self._data[key]

    def clear(self) -> None:
        if self._data:
            self._data.clear()
            self._notify()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"


class ProxyList(_ProxyBase):
    """An observable list."""

    __slots__ = ("_items",)

    def __init__(self, items: Sequence | None = None) -> None:
        self._init_proxy()
        object.__setattr__(self, "_items", [])
        if items is not None:
            memo: dict[int, Any] = {id(items): self}
            self._items.extend(_convert(item, memo) for item in items)

    # --- Read operations ---

    def __getitem__(self, index: int | slice) -> Any:
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def index(self, item: object, *args: int) -> int:
        return self._items.index(item, *args)

    def count(self, item: object) -> int:
        return self._items.count(item)

    # --- Write operations (notify) ---

    def __setitem__(self, index: int | slice, value: Any) -> None:
        if isinstance(index, slice):
            self._items[index] = [proxy(item) for item in value]
            self._notify()
            return
        value = proxy(value)
        old = self._items[index]
        self._items[index] = value
        if _changed(old, value):
            self._notify()

    def __delitem__(self, index: int | slice) -> None:
        del self._items[index]
        self._notify()

    def append(self, item: Any) -> None:
        self._items.append(proxy(item))
        self._notify()

    def extend(self, items) -> None:
        self._items.extend(proxy(item) for item in items)
        self._notify()

    def insert(self, index: int, item: Any) -> None:
        self._items.insert(index, proxy(item))
        self._notify()

    def pop(self, index: int = -1) -> Any:
        result = self._items.pop(index)
        self._notify()
        return result

    def remove(self, item: Any) -> None:
        self._items.remove(item)
        self._notify()

    def clear(self) -> None:
        if self._items:
            self._items.clear()
            self._notify()

    def __repr__(self) -> str:
        return f"ProxyList({self._items!r})"


MutableMapping.register(ProxyDict)
MutableSequence.register(ProxyList)


def proxy(value: Any) -> Any:
    """Make value observable: dicts become ProxyDict, lists become ProxyList.

    Nested containers are converted too and shared or self-referencing
    containers keep their shape. Proxies and everything else are returned
    unchanged.
    """
    return _convert(value, {})


def _convert(value: Any, memo: dict[int, Any]) -> Any:
    if isinstance(value, _ProxyBase) or not isinstance(value, (dict, list)):
        return value
    found = memo.get(id(value))
    if found is not None:
        return found
    if isinstance(value, dict):
        result = ProxyDict()
        memo[id(value)] = result
        result._data.update((key, _convert(item, memo)) for key, item in value.items())
    else:
        result = ProxyList()
        memo[id(value)] = result
        result._items.extend(_convert(item, memo) for item in value)
    return result


def get_version(value: object) -> int | None:
    """The proxy's current version, or None when value is not a proxy."""
    if isinstance(value, _ProxyBase):
        return value._version
    return None


def is_proxy(value: object) -> bool:
    return get_version(value) is not None


def subscribe(obj: object, listener: Listener) -> Disposer:
    """Call listener() after every mutation of obj. Returns a disposer."""
    if not isinstance(obj, _ProxyBase):
        raise TypeError(f"cannot subscribe to non-proxy {type(obj).__name__}")
    obj._listeners.append(listener)

    def _unsubscribe() -> None:
        try:
            obj._listeners.remove(listener)
        except ValueError:
            pass  # already removed

    return _unsubscribe


def read_key(obj: object, key: Hashable) -> Any:
    """Read the current value at key, as subscribe_key() compares it."""
    if key is LENGTH:
        return len(obj)
    if key is KEYS:
        return tuple(obj.keys()) if isinstance(obj, ProxyDict) else tuple(range(len(obj)))
    try:
        return obj[key]
    except (KeyError, IndexError, TypeError):
        pass
    if isinstance(key, str):
        try:
            return getattr(obj, key)
        except AttributeError:
            pass
    return _MISSING


def subscribe_key(obj: object, key: Hashable, callback: Listener) -> Disposer:
    """Call callback() whenever the value at obj[key] changes.

    The value is re-read after every mutation of obj and compared with the
    previous one, so property getters, LENGTH and KEYS work like plain keys.
    """
    if not isinstance(obj, _ProxyBase):
        raise TypeError(f"cannot subscribe to non-proxy {type(obj).__name__}")
    last = [read_key(obj, key)]

    def _on_change() -> None:
        current = read_key(obj, key)
        if not _changed(last[0], current):
            return
        last[0] = current
        callback()

    return subscribe(obj, _on_change)


# ─── Snapshots ───────────────────────────────────────────────────────────────


class FrozenDict(Mapping):
    """Immutable snapshot of a ProxyDict. Keys are readable as attributes."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping | None = None) -> None:
        object.__setattr__(self, "_data", dict(data) if data else {})

    def __getitem__(self, key: Hashable) -> Any:
        return self._data[key]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__") or name == "_data":
            raise AttributeError(name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(name) from None

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __setattr__(self, name: str, value: Any) -> None:
        raise TypeError("snapshots are immutable")

    def __delattr__(self, name: str) -> None:
        raise TypeError("snapshots are immutable")

    def __repr__(self) -> str:
        return f"FrozenDict({self._data!r})"


class FrozenList(Sequence):
    """Immutable snapshot of a ProxyList."""

    __slots__ = ("_items",)

    def __init__(self, items=None) -> None:
        object.__setattr__(self, "_items", list(items) if items else [])

    def __getitem__(self, index: int | slice) -> Any:
        if isinstance(index, slice):
            return FrozenList(self._items[index])
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (FrozenList, list, tuple)):
            return self._items == list(other)
        return NotImplemented

    __hash__ = None

    def __setattr__(self, name: str, value: Any) -> None:
        raise TypeError("snapshots are immutable")

    def __repr__(self) -> str:
        return f"FrozenList({self._items!r})"


def snapshot(obj: object) -> Any:
    """Immutable deep copy of a proxy. Shared and cyclic references are kept.

    The copy is cached on the proxy against the versions of every proxy
    reachable from it, so an unchanged graph returns the same object and
    callers can compare successive snapshots with `is`.
    """
    if not isinstance(obj, _ProxyBase):
        raise TypeError(f"cannot snapshot non-proxy {type(obj).__name__}")
    versions = _reachable_versions(obj)
    cached = obj._snapshot
    if cached is not None and cached[0] == versions:
        return cached[1]
    frozen = _freeze(obj, {})
    object.__setattr__(obj, "_snapshot", (versions, frozen))
    return frozen


def _children(value: _ProxyBase) -> list:
    items = value._data.values() if isinstance(value, ProxyDict) else value._items
    return [item for item in items if isinstance(item, _ProxyBase)]


def _reachable_versions(obj: _ProxyBase) -> tuple[int, ...]:
    # Notifications are shallow, so a nested change only bumps the nested
    # proxy: the whole reachable graph has to be compared.
    seen: set[int] = set()
    versions = []
    stack = [obj]
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        versions.append(node._version)
        stack.extend(reversed(_children(node)))
    return tuple(versions)


def _freeze(value: Any, memo: dict[int, Any]) -> Any:
    if not isinstance(value, _ProxyBase):
        return value
    found = memo.get(id(value))
    if found is not None:
        return found
    if isinstance(value, ProxyDict):
        frozen = FrozenDict()
        memo[id(value)] = frozen
        frozen._data.update((key, _freeze(item, memo)) for key, item in value._data.items())
    else:
        frozen = FrozenList()
        memo[id(value)] = frozen
        frozen._items.extend(_freeze(item, memo) for item in value._items)
    return frozen
