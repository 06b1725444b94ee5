"""trackfx: fine-grained, self-rebuilding subscriptions over observable state."""

from importlib.metadata import version as _version

__version__ = _version("trackfx")

from trackfx._tracking import KEYS, LENGTH, AccessRecorder, AccessSet
from trackfx.errors import SelectorEvaluationError, SubscriptionOpenError, TrackfxError
from trackfx.observable import (
    FrozenDict,
    FrozenList,
    ProxyDict,
    ProxyList,
    get_version,
    is_proxy,
    proxy,
    snapshot,
    subscribe,
    subscribe_key,
)
from trackfx.store import ObservableStore, ProxyStore
from trackfx.tracker import Tracked, track, unwrap
from trackfx.subscription import SubscriptionSet
from trackfx.tracked import TrackedSubscription, TrackingStatus, subscribe_tracked
from trackfx.selector import TrackedSelector, get_current_value, set_stability_check
# textual NOT auto-imported — opt-in only

__all__ = [
    "AccessRecorder",
    "AccessSet",
    "KEYS",
    "LENGTH",
    "TrackfxError",
    "SelectorEvaluationError",
    "SubscriptionOpenError",
    "proxy",
    "ProxyDict",
    "ProxyList",
    "FrozenDict",
    "FrozenList",
    "subscribe",
    "subscribe_key",
    "snapshot",
    "is_proxy",
    "get_version",
    "ObservableStore",
    "ProxyStore",
    "Tracked",
    "track",
    "unwrap",
    "SubscriptionSet",
    "TrackedSubscription",
    "TrackingStatus",
    "subscribe_tracked",
    "TrackedSelector",
    "get_current_value",
    "set_stability_check",
]
