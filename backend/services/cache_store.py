"""
Intake CRM - Process-wide cache

Two stores:
  - SlotCache: one named slot holding the latest normalized portal rows
  - TokenCache: keyed entries (intake tokens), each with its own expiry

Values are replaced wholesale under a lock; readers never see a half-written
entry. Expired entries read as absent.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


class TokenCache:
    """Keyed in-memory cache with per-entry TTL."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._store: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._store[key]
                return None
            return value

    def put(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            now = self._clock()
            expired = [k for k, (expires_at, _) in self._store.items() if expires_at <= now]
            for k in expired:
                del self._store[k]
            self._store[key] = (now + ttl_seconds, value)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


class SlotCache:
    """A single named slot: get / put / invalidate, last write wins."""

    def __init__(self, name: str, store: Optional[TokenCache] = None):
        self.name = name
        self._store = store if store is not None else TokenCache()

    def get(self) -> Optional[Any]:
        return self._store.get(self.name)

    def put(self, value: Any, ttl_seconds: float) -> None:
        self._store.put(self.name, value, ttl_seconds)

    def invalidate(self) -> None:
        self._store.invalidate(self.name)


CUSTOMER_LATEST_SLOT = "proxy:customer_latest:normalized"
INTAKE_PREFIX = "intake:"

customer_latest_cache = SlotCache(CUSTOMER_LATEST_SLOT)
intake_tokens = TokenCache()


def reset_caches() -> None:
    """Drop every cached entry (tests, manual flush)."""
    customer_latest_cache.invalidate()
    intake_tokens.clear()
