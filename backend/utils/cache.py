# backend/utils/cache.py
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """
    Process-local key/value store with per-entry expiry.

    Created once at application startup (see main.py) and handed to the
    services that need it. Every operation holds one lock, which makes
    `take_if` (read, compare, delete) atomic for concurrent callers.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str):
        # Must be called with the lock held
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    def put(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._data[key] = (value, self._clock() + ttl)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._live(key)
            return default if entry is None else entry[0]

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def pop(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return default
            del self._data[key]
            return entry[0]

    def take_if(self, key: str, predicate: Callable[[Any], bool]) -> Tuple[bool, bool]:
        """Delete the entry when predicate(value) holds. Returns (present, taken)."""
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return False, False
            if not predicate(entry[0]):
                return True, False
            del self._data[key]
            return True, True

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [k for k, (_, expires_at) in self._data.items() if now >= expires_at]
            for k in expired:
                del self._data[k]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return self._live(key) is not None
