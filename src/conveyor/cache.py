import time
from typing import Union

from .types import CacheEntry, Response

DEFAULT_TTL = 300.0


class ResponseCache:
    """Memoizes successful GET responses for a fixed TTL.

    Entries are evicted lazily on lookup; there is no background sweep, no size
    bound and no LRU ordering. A refresh overwrites the entry wholesale.
    """

    def __init__(self, ttl: float = DEFAULT_TTL):
        if ttl <= 0:
            raise ValueError("cache ttl must be positive")
        self.ttl = ttl
        self._entries: dict[str, CacheEntry] = {}

    def _now(self) -> float:
        return time.time()

    def get(self, key: str) -> Union[Response, None]:
        self.invalidate_if_expired(key)
        entry = self._entries.get(key)
        return entry.response if entry is not None else None

    def set(self, key: str, response: Response) -> None:
        self._entries[key] = CacheEntry(response=response, expires_at=self._now() + self.ttl)

    def invalidate_if_expired(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is not None and self._now() >= entry.expires_at:
            del self._entries[key]
            return True
        return False

    def invalidate_prefix(self, path: str) -> int:
        # keys are path + JSON params, so the params always start with "{"
        stale = [k for k in self._entries if k.startswith(path + "{")]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
