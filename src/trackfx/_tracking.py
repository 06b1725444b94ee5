"""Access recording — which (object, key) pairs a selector read.

An AccessRecorder is owned by exactly one tracked subscription. Its
``active`` flag is the tracking state: it is on only for the synchronous
extent of one selector call, and every read that reaches ``record()``
outside that window is dropped.

Keys are any hashable value. LENGTH and KEYS are sentinel keys for the two
reads that have no natural key: the size of a container and its key set.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Hashable, Iterator


class TrackKey:
    """Sentinel key for reads that are not a plain attribute or item."""

    __slots__ = ("_name",)

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name


LENGTH = TrackKey("LENGTH")
KEYS = TrackKey("KEYS")


class AccessSet:
    """Mapping from object identity to the keys read on that object.

    Objects are keyed by id() so unhashable containers can be tracked. The
    set keeps each object alive for its own lifetime only.
    """

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: dict[int, tuple[object, set[Hashable]]] = {}

    def add(self, obj: object, key: Hashable) -> None:
        entry = self._entries.get(id(obj))
        if entry is None:
            entry = self._entries[id(obj)] = (obj, set())
        entry[1].add(key)

    def keys_for(self, obj: object) -> frozenset[Hashable]:
        entry = self._entries.get(id(obj))
        return frozenset(entry[1]) if entry is not None else frozenset()

    def objects(self) -> list[object]:
        return [obj for obj, _ in self._entries.values()]

    def __iter__(self) -> Iterator[tuple[object, Hashable]]:
        for obj, keys in self._entries.values():
            for key in keys:
                yield obj, key

    def __len__(self) -> int:
        return sum(len(keys) for _, keys in self._entries.values())

    def __contains__(self, pair: tuple[object, Hashable]) -> bool:
        obj, key = pair
        entry = self._entries.get(id(obj))
        return entry is not None and key in entry[1]

    def __repr__(self) -> str:
        return f"AccessSet({len(self._entries)} objects, {len(self)} keys)"


class AccessRecorder:
    """Collects reads into a fresh AccessSet per recording pass."""

    __slots__ = ("active", "_accesses")

    def __init__(self) -> None:
        self.active = False
        self._accesses: AccessSet | None = None

    def record(self, obj: object, key: Hashable) -> None:
        """Add (obj, key) to the current pass. No-op when not recording."""
        if self.active and self._accesses is not None:
            self._accesses.add(obj, key)

    @contextmanager
    def recording(self) -> Iterator[AccessSet]:
        """Record reads made inside the block into a new AccessSet.

        Nested passes restore the outer pass on exit.
        """
        previous = (self.active, self._accesses)
        accesses = AccessSet()
        self._accesses = accesses
        self.active = True
        try:
            yield accesses
        finally:
            self.active, self._accesses = previous
