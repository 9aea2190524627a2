"""
URL-keyed in-memory store with insertion-time expiry.

Used for response deduplication (values are pending futures or settled
responses) and for tracking pages already visited during a site crawl.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple, Union

from yarl import URL


def url_key(url: Union[str, URL]) -> str:
    """
    Normalize a URL into a cache key.

    The fragment is never sent to a server, so it is dropped; an empty path
    on an absolute URL is the same resource as ``/``.
    """
    if not isinstance(url, URL):
        url = URL(str(url))

    url = url.with_fragment(None)

    if url.host:
        key = str(url.origin()) + url.raw_path
        if url.raw_query_string:
            key += '?' + url.raw_query_string
        return key

    return str(url)


class UrlCache:
    """
    Stores one value per URL, expiring ``expiry_time`` seconds after it was
    set. Reading an entry does not extend its life.
    """

    def __init__(self, expiry_time: float = 3600.0,
                 clock: Callable[[], float] = time.monotonic):
        self.expiry_time = expiry_time
        self.clock = clock
        self.logger = logging.getLogger(__name__)

        self._entries: Dict[str, Tuple[Any, float]] = {}

        self.stats = {
            'hits': 0,
            'misses': 0,
            'expired': 0,
            'sets': 0
        }

    def get(self, url: Union[str, URL]) -> Optional[Any]:
        """Return the stored value, or None when absent or expired."""
        key = url_key(url)
        entry = self._entries.get(key)

        if entry is None:
            self.stats['misses'] += 1
            return None

        value, stored_at = entry
        if self.clock() - stored_at >= self.expiry_time:
            del self._entries[key]
            self.stats['expired'] += 1
            self.stats['misses'] += 1
            self.logger.debug(f"Cache entry expired: {key}")
            return None

        self.stats['hits'] += 1
        return value

    def set(self, url: Union[str, URL], value: Any):
        """Store ``value``, always overwriting any previous entry."""
        self._entries[url_key(url)] = (value, self.clock())
        self.stats['sets'] += 1

    def contains(self, url: Union[str, URL]) -> bool:
        """Whether a live entry exists for ``url``."""
        return self.get(url) is not None

    def clear(self):
        """Remove every entry."""
        self._entries.clear()

    def __len__(self) -> int:
        now = self.clock()
        return sum(1 for _, stored_at in self._entries.values()
                   if now - stored_at < self.expiry_time)

    def get_stats(self) -> Dict[str, int]:
        """Get cache statistics."""
        return {**self.stats, 'entries': len(self._entries)}
