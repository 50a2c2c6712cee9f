import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class _Entry:
    value: Any
    stored_at: float
    ttl: float


class TTLCache:
    """Small in-process cache with per-entry expiry.

    Instances are passed explicitly to the services that want memoization;
    nothing in the engine reaches for a shared instance.
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def _expired(self, entry: _Entry, now: float) -> bool:
        return now - entry.stored_at > entry.ttl

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._expired(entry, self._clock()):
                self._entries.pop(key, None)
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        entry = _Entry(
            value=value,
            stored_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )
        with self._lock:
            self._entries[key] = entry

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            stale = [
                key for key, entry in self._entries.items() if self._expired(entry, now)
            ]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def get_or_compute(
        self, key: str, compute: Callable[[], Any], ttl: Optional[float] = None
    ) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = compute()
        self.set(key, value, ttl)
        return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def make_key(prefix: str, *parts: object) -> str:
        return ":".join([prefix, *(str(part) for part in parts)])
