"""
Concurrent, cache-aware URL checker.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from .check_url import check_url
from .errors import InvalidUrlError
from .events import Handlers
from .fetcher import HttpClient
from .link import Link, UrlLike, is_link
from .request_queue import RequestQueue
from ..storage.url_cache import UrlCache
from ..utils.config import CheckerOptions


def make_options(options: Union[CheckerOptions, Mapping[str, Any], None]) -> CheckerOptions:
    """Accept ready options, a mapping of option names, or None for defaults."""
    if isinstance(options, CheckerOptions):
        return options
    return CheckerOptions.from_dict(options)


class UrlChecker:
    """
    Checks enqueued URLs (or links) concurrently.

    Signals: ``link(link, custom_data)`` for every checked link and ``end()``
    whenever the queue drains.
    """

    def __init__(self, options: Union[CheckerOptions, Mapping[str, Any], None] = None,
                 handlers: Optional[Handlers] = None,
                 client: Optional[HttpClient] = None,
                 cache: Optional[UrlCache] = None):
        self.options = make_options(options)
        self.handlers = handlers or Handlers()
        self.logger = logging.getLogger(__name__)

        self._owns_client = client is None
        self.client = client or HttpClient(self.options)
        self.cache = cache if cache is not None else UrlCache(self.options.cache_expiry_time)

        self.link_queue = RequestQueue(
            self._check_item,
            self._on_end,
            max_sockets=self.options.max_sockets,
            max_sockets_per_host=self.options.max_sockets_per_host,
            rate_limit=self.options.rate_limit
        )

        self.stats = {
            'links_checked': 0,
            'links_broken': 0,
            'links_cached': 0
        }

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def enqueue(self, url: Union[UrlLike, Link], custom_data: Any = None) -> int:
        """
        Queue a URL (or an already-resolved :class:`Link`) for checking.

        Returns:
            Queue item id, usable with :meth:`dequeue`

        Raises:
            InvalidUrlError: If the URL is not absolute or cannot be parsed
        """
        link = url if is_link(url) else Link.create().resolve(url)

        if link.url.rebased is None:
            raise InvalidUrlError(url if not is_link(url) else link.url.original)

        return self.link_queue.enqueue(link.url.rebased, (link, custom_data))

    def dequeue(self, item_id: int) -> bool:
        return self.link_queue.dequeue(item_id)

    def pause(self):
        self.link_queue.pause()

    def resume(self):
        self.link_queue.resume()

    def num_active_links(self) -> int:
        return self.link_queue.num_active()

    def num_queued_links(self) -> int:
        return self.link_queue.num_queued()

    def clear_cache(self):
        self.cache.clear()

    async def _check_item(self, url, data):
        link, custom_data = data

        await check_url(link, self.client, self.cache, self.options)

        self.stats['links_checked'] += 1
        if link.broken:
            self.stats['links_broken'] += 1
        if link.http.cached:
            self.stats['links_cached'] += 1

        self.logger.debug(f"Checked {url}: broken={link.broken} ({link.broken_reason})")
        self.handlers.emit('link', link, custom_data)

    def _on_end(self):
        self.handlers.emit('end')

    async def close(self):
        """Stop in-flight checks and release the connection pool, if owned."""
        await self.link_queue.cancel()
        if self._owns_client:
            await self.client.close()

    def get_stats(self) -> Dict[str, Any]:
        """Get checker statistics."""
        return {
            **self.stats,
            'queue': self.link_queue.get_stats(),
            'cache': self.cache.get_stats(),
            'http': self.client.get_stats()
        }
