# ============================================================================
# CACHE PRIMITIVES
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core - Injectable process-lifetime caches
# PURPOSE: TTL cache and run-once memo with a replaceable clock
# CREATED: 04 OCT 2026
# ============================================================================
"""
Cache Primitives

Warm Function App workers keep module state between invocations. Anything
cached there goes through these components so tests can swap the clock and
reset state between cases.

Usage:
    cache = TtlCache()
    token = cache.get_or_refresh(
        f"installation:{installation_id}",
        ttl=lambda tok: tok.seconds_until_expiry(clock) - 300,
        loader=lambda: client.create_installation_token(installation_id),
    )

    once = RunOnce()
    once.run(image_reconciler.reconcile)   # runs
    once.run(image_reconciler.reconcile)   # returns first result
"""

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, Optional, Protocol, TypeVar, Union

T = TypeVar("T")


class Clock(Protocol):
    """Time source. Both methods must agree."""

    def now(self) -> datetime:
        ...

    def monotonic(self) -> float:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


@dataclass
class _Entry:
    value: Any
    expires_at: float


TtlSpec = Union[float, int, Callable[[Any], float]]


class TtlCache:
    """
    Key/value cache with per-entry expiry.

    `ttl` is either a number of seconds or a callable that derives the
    lifetime from the freshly loaded value (for tokens carrying their own
    expiry). A non-positive lifetime means the value is returned but not
    kept.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or SystemClock()
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock.monotonic():
                del self._entries[key]
                return None
            return entry.value

    def get_or_refresh(self, key: str, ttl: TtlSpec, loader: Callable[[], T]) -> T:
        """Return the cached value for key, loading and storing it when absent or expired."""
        cached = self.get(key)
        if cached is not None:
            return cached

        value = loader()
        lifetime = ttl(value) if callable(ttl) else float(ttl)
        if lifetime > 0:
            with self._lock:
                self._entries[key] = _Entry(value, self._clock.monotonic() + lifetime)
        return value

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RunOnce(Generic[T]):
    """
    Memo for an action that must run at most once per process.

    The action is marked as started before it runs. If it raises, the
    exception propagates to the first caller and later callers get None.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._started = False
        self._result: Optional[T] = None

    @property
    def has_run(self) -> bool:
        return self._started

    def run(self, action: Callable[[], T]) -> Optional[T]:
        with self._lock:
            if self._started:
                return self._result
            self._started = True
        result = action()
        self._result = result
        return result

    def reset(self) -> None:
        """Forget the previous run (for testing)."""
        with self._lock:
            self._started = False
            self._result = None


__all__ = [
    "Clock",
    "SystemClock",
    "TtlCache",
    "RunOnce",
]
