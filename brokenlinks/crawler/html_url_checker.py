"""
Fetches pages one at a time and checks the links of each.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from yarl import URL

from .errors import InvalidUrlError, LinkCheckerError
from .events import Handlers
from .fetcher import HttpClient, SimpleResponse, stream_html
from .html_checker import HtmlChecker
from .link import Link, UrlLike, parse_url
from .request_queue import RequestQueue
from .robots import RobotDirectives
from .url_checker import make_options
from ..storage.url_cache import UrlCache
from ..utils.config import CheckerOptions


@dataclass
class PageContext:
    """State of one page being checked."""
    url: URL
    custom_data: Any
    done: asyncio.Future
    response: Optional[SimpleResponse] = None


class HtmlUrlChecker:
    """
    Checks the links of enqueued HTML pages. Pages are fetched strictly one
    after another; the links of a page are checked concurrently.

    Signals:
        html(tree, robots, response, page_url, custom_data)
        junk(link, custom_data), link(link, custom_data)
        page(error, page_url, custom_data): once per page; error is None on success
        end(): when the page queue drains
        filter_link(link, custom_data)
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

        self.html_checker = HtmlChecker(
            self.options,
            Handlers(
                html=self._on_html,
                junk=self._on_junk,
                link=self._on_link,
                complete=self._on_complete,
                filter_link=self._on_filter_link
            ),
            client=self.client,
            cache=self.cache
        )

        self.page_queue = RequestQueue(
            self._check_page,
            self._on_end,
            max_sockets=1,
            rate_limit=self.options.rate_limit
        )

        self.stats = {
            'pages_checked': 0,
            'pages_failed': 0
        }

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def enqueue(self, page_url: UrlLike, custom_data: Any = None) -> int:
        """
        Queue a page.

        Raises:
            InvalidUrlError: If ``page_url`` is not an absolute URL
        """
        url = parse_url(page_url)
        if url is None:
            raise InvalidUrlError(page_url)

        return self.page_queue.enqueue(url, custom_data)

    def dequeue(self, item_id: int) -> bool:
        return self.page_queue.dequeue(item_id)

    def pause(self):
        self.html_checker.pause()
        self.page_queue.pause()

    def resume(self):
        self.html_checker.resume()
        self.page_queue.resume()

    def num_pages(self) -> int:
        """Number of pages active or queued."""
        return len(self.page_queue)

    def num_active_links(self) -> int:
        return self.html_checker.num_active_links()

    def num_queued_links(self) -> int:
        return self.html_checker.num_queued_links()

    def clear_cache(self):
        self.html_checker.clear_cache()

    async def _check_page(self, url: URL, custom_data: Any):
        page = PageContext(url=url, custom_data=custom_data,
                           done=asyncio.get_running_loop().create_future())

        try:
            result = await stream_html(url, self.client, self.cache, self.options)
        except LinkCheckerError as e:
            self.logger.debug(f"Page {url} failed: {e}")
            self._complete_page(page, e)
            return

        page.response = result.response

        # Header directives, which in-document directives are layered on
        robots = RobotDirectives(self.options.user_agent)
        robots_header = result.response.headers.get('x-robots-tag')
        if robots_header is not None:
            robots.header(robots_header)

        if not self.html_checker.scan(result.body, result.response.url, robots, page):
            self._complete_page(page, LinkCheckerError("A scan is already in progress"))
            return

        await page.done

    def _complete_page(self, page: PageContext, error: Optional[Exception]):
        self.stats['pages_checked'] += 1
        if error is not None:
            self.stats['pages_failed'] += 1

        self.handlers.emit('page', error, page.url, page.custom_data)

        if not page.done.done():
            page.done.set_result(None)

    def _on_html(self, tree, robots: RobotDirectives, page: PageContext):
        self.handlers.emit('html', tree, robots, page.response, page.url, page.custom_data)

    def _on_junk(self, link: Link, page: PageContext):
        self.handlers.emit('junk', link, page.custom_data)

    def _on_link(self, link: Link, page: PageContext):
        self.handlers.emit('link', link, page.custom_data)

    def _on_complete(self, page: PageContext):
        self._complete_page(page, None)

    def _on_filter_link(self, link: Link, page: PageContext) -> Optional[str]:
        return self.handlers.emit('filter_link', link, page.custom_data)

    def _on_end(self):
        self.handlers.emit('end')

    async def close(self):
        """Stop checking and release the connection pool, if owned."""
        await self.page_queue.cancel()
        await self.html_checker.close()
        if self._owns_client:
            await self.client.close()

    def get_stats(self):
        """Get checker statistics."""
        return {**self.stats, 'links': self.html_checker.url_checker.get_stats()}
