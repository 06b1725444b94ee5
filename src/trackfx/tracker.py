"""Tracking views — read interception over arbitrary nested objects.

track(target, recorder) returns a Tracked view of target. Every read on the
view (attribute, item, len, iteration, membership) is reported to the
recorder as an (object, key) pair before the real value is returned. When
that value is itself a container or a plain object, it is wrapped in a new
view on the way out, so a chain like ``s.user.name`` records
``(s, "user")`` and then ``(s.user, "name")``.

Wrapping is lazy and per read. Nothing is cached and nothing is wrapped
eagerly, so a cyclic graph costs only as many wraps as the selector
performs reads. Once the recorder stops recording, values come back raw.

Given a store, the view only records reads on objects the store can
observe and only wraps values it can observe. Anything else (a plain class
instance held in proxy state, say) is handed back raw: replacing it is
still seen through the key that holds it.
"""

from __future__ import annotations

import enum
import functools
from collections.abc import Mapping, Sequence, Sized
from typing import TYPE_CHECKING, Any, Hashable, Iterator

from trackfx._tracking import KEYS, LENGTH, AccessRecorder

if TYPE_CHECKING:
    from trackfx.store import ObservableStore

# Immutable values: replacing one is seen through the key that holds it.
_ATOMIC = (str, bytes, bytearray, int, float, complex, tuple, frozenset, enum.Enum)


def _is_traversable(value: object) -> bool:
    """Values worth wrapping: containers and plain objects with attributes."""
    if value is None or isinstance(value, _ATOMIC) or callable(value):
        return False
    return isinstance(value, (Mapping, Sequence)) or hasattr(value, "__dict__")


class Tracked:
    """A read-recording view over target."""

    __slots__ = ("_tracked_target", "_tracked_recorder", "_tracked_store")

    def __init__(
        self,
        target: object,
        recorder: AccessRecorder,
        store: ObservableStore | None = None,
    ) -> None:
        object.__setattr__(self, "_tracked_target", target)
        object.__setattr__(self, "_tracked_recorder", recorder)
        object.__setattr__(self, "_tracked_store", store)

    def _tracked_observable(self, value: object) -> bool:
        store = self._tracked_store
        return store is None or store.is_observable(value)

    def _tracked_wrap(self, value: Any) -> Any:
        if (
            self._tracked_recorder.active
            and _is_traversable(value)
            and self._tracked_observable(value)
        ):
            return Tracked(value, self._tracked_recorder, self._tracked_store)
        return value

    def _tracked_record(self, key: Hashable) -> None:
        if self._tracked_observable(self._tracked_target):
            self._tracked_recorder.record(self._tracked_target, key)

    # --- Reads (record, then wrap) ---

    def __getattr__(self, name: str) -> Any:
        target = self._tracked_target
        if name.startswith("__"):
            return getattr(target, name)
        readers = _MAPPING_READERS if isinstance(target, Mapping) else (
            _SEQUENCE_READERS if isinstance(target, Sequence) else None
        )
        if readers is not None and name in readers:
            return functools.partial(readers[name], self)
        # Getters run against the raw target: only the receiver and name count.
        self._tracked_record(name)
        return self._tracked_wrap(getattr(target, name))

    def __getitem__(self, key: Any) -> Any:
        target = self._tracked_target
        if isinstance(key, slice) and isinstance(target, Sequence):
            self._tracked_record(LENGTH)
            for index in range(*key.indices(len(target))):
                self._tracked_record(index)
            return [self._tracked_wrap(item) for item in target[key]]
        self._tracked_record(key)
        return self._tracked_wrap(target[key])

    def __len__(self) -> int:
        self._tracked_record(LENGTH)
        return len(self._tracked_target)

    def __bool__(self) -> bool:
        target = self._tracked_target
        if isinstance(target, Sized):
            self._tracked_record(LENGTH)
            return len(target) > 0
        return bool(target)

    def __iter__(self) -> Iterator[Any]:
        target = self._tracked_target
        if isinstance(target, Mapping):
            self._tracked_record(KEYS)
            return iter(list(target))
        if isinstance(target, Sequence):
            return self._iter_sequence()
        self._tracked_record(KEYS)
        return (self._tracked_wrap(item) for item in target)

    def _iter_sequence(self) -> Iterator[Any]:
        self._tracked_record(LENGTH)
        for index in range(len(self._tracked_target)):
            yield self[index]

    def __contains__(self, item: object) -> bool:
        target = self._tracked_target
        if isinstance(target, Mapping):
            self._tracked_record(item)
            return item in target
        if isinstance(target, Sequence):
            item = unwrap(item)
            return any(_same(unwrap(value), item) for value in self)
        self._tracked_record(KEYS)
        return item in target

    # --- Writes are forwarded untracked ---

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self._tracked_target, name, unwrap(value))

    def __delattr__(self, name: str) -> None:
        delattr(self._tracked_target, name)

    def __setitem__(self, key: Any, value: Any) -> None:
        self._tracked_target[key] = unwrap(value)

    def __delitem__(self, key: Any) -> None:
        del self._tracked_target[key]

    # --- Identity follows the target ---

    def __eq__(self, other: object) -> bool:
        return self._tracked_target == unwrap(other)

    def __hash__(self) -> int:
        return hash(self._tracked_target)

    def __repr__(self) -> str:
        return f"Tracked({self._tracked_target!r})"


def _same(a: object, b: object) -> bool:
    return a is b or a == b


def _mapping_get(view: Tracked, key: Hashable, default: Any = None) -> Any:
    view._tracked_record(key)
    return view._tracked_wrap(view._tracked_target.get(key, default))


def _mapping_keys(view: Tracked) -> list:
    view._tracked_record(KEYS)
    return list(view._tracked_target.keys())


def _mapping_values(view: Tracked) -> list:
    return [view[key] for key in _mapping_keys(view)]


def _mapping_items(view: Tracked) -> list:
    return [(key, view[key]) for key in _mapping_keys(view)]


def _sequence_index(view: Tracked, item: object) -> int:
    item = unwrap(item)
    for index, value in enumerate(view):
        if _same(unwrap(value), item):
            return index
    raise ValueError(f"{item!r} is not in sequence")


def _sequence_count(view: Tracked, item: object) -> int:
    item = unwrap(item)
    return sum(1 for value in view if _same(unwrap(value), item))


_MAPPING_READERS = {
    "get": _mapping_get,
    "keys": _mapping_keys,
    "values": _mapping_values,
    "items": _mapping_items,
}

_SEQUENCE_READERS = {
    "index": _sequence_index,
    "count": _sequence_count,
}


def track(
    target: object, recorder: AccessRecorder, store: ObservableStore | None = None
) -> Tracked:
    """Wrap target so reads on it are reported to recorder.

    With store given, only objects store.is_observable() accepts are
    recorded and wrapped.
    """
    return Tracked(target, recorder, store)


def unwrap(value: Any) -> Any:
    """The raw object behind a Tracked view; anything else unchanged."""
    if isinstance(value, Tracked):
        return value._tracked_target
    return value
