"""trackfx error hierarchy.

All trackfx-specific errors inherit from TrackfxError for easy catching.
Double teardown and late notifications are not errors; they are no-ops.
"""

from __future__ import annotations


class TrackfxError(Exception):
    """Base error for all trackfx operations."""


class SelectorEvaluationError(TrackfxError):
    """The selector raised while being evaluated.

    The original exception is available as ``__cause__``.
    """


class SubscriptionOpenError(TrackfxError):
    """The store refused to open a listener for a tracked (object, key) pair."""

    def __init__(self, obj: object, key: object) -> None:
        super().__init__(f"could not subscribe to key {key!r} on {type(obj).__name__}")
        self.obj = obj
        self.key = key
