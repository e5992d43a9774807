"""Process-local content cache.

Best-effort accelerator in front of the artifact store and the remote
reader; every read path has a durable fallback.
"""

import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, Optional

from services.weblink.types import WeblinkData

logger = logging.getLogger(__name__)


class ContentCache:
    """In-memory LRU cache from canonical URL to fetched/parsed content.

    Entries are copied on the way in and on the way out, so callers never
    share mutable state with the cache.
    """

    def __init__(self, max_size: int = 1000):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._entries: "OrderedDict[str, WeblinkData]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, url: str) -> Optional[WeblinkData]:
        """Get a copy of the cached entry, or None on a miss."""
        with self._lock:
            entry = self._entries.get(url)
            if entry is None:
                self.misses += 1
                return None
            # Move to end (most recently used)
            self._entries.move_to_end(url)
            self.hits += 1
            return entry.copy()

    def set(self, url: str, data: WeblinkData) -> None:
        """Insert or overwrite an entry, evicting the least recently used one if full."""
        with self._lock:
            if url in self._entries:
                self._entries.move_to_end(url)
            elif len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Content cache evicted {evicted}")
            self._entries[url] = data.copy()

    def delete(self, url: str) -> bool:
        """Delete key from cache."""
        with self._lock:
            return self._entries.pop(url, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, url: str) -> bool:
        with self._lock:
            return url in self._entries

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total = self.hits + self.misses
        return {
            'size': self.size(),
            'max_size': self.max_size,
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': self.hits / total if total else 0.0,
        }
