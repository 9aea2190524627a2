"""
Recursive site crawler: checks every page reachable through internal links.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from yarl import URL

from .errors import InvalidUrlError, RequestError
from .events import Handlers
from .fetcher import HttpClient, SimpleResponse
from .html_url_checker import HtmlUrlChecker
from .link import Link, UrlLike, parse_url
from .reasons import UNFOLLOWABLE_REASONS
from .request_queue import RequestQueue
from .robots import RobotDirectives, RobotsTxt, get_robots_txt
from .tags import RECURSIVE_TAGS, is_link_attr
from .url_checker import make_options
from ..storage.url_cache import UrlCache, url_key
from ..utils.config import CheckerOptions


@dataclass
class SiteContext:
    """State of one site being crawled."""
    url: URL
    custom_data: Any
    done: asyncio.Future
    robots_txt: Optional[RobotsTxt] = None
    pages_completed: int = 0
    error: Optional[Exception] = None


class SiteChecker:
    """
    Crawls enqueued sites one at a time, checking the links of every
    internal page reachable from the first page. Each distinct page is
    fetched once per site.

    Signals: everything :class:`HtmlUrlChecker` emits, plus
        robots(robots_txt, custom_data): when a site's robots.txt is retrieved
        site(error, site_url, custom_data): once per site; error is the first
            page's error, if any
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

        # Pages checked during the current site
        self.visited = UrlCache(self.options.cache_expiry_time)

        self.html_url_checker = HtmlUrlChecker(
            self.options,
            Handlers(
                html=self._on_html,
                junk=self._on_junk,
                link=self._on_link,
                page=self._on_page,
                end=self._on_pages_end,
                filter_link=self._on_filter_link
            ),
            client=self.client,
            cache=cache
        )

        self.site_queue = RequestQueue(
            self._check_site,
            self._on_end,
            max_sockets=1,
            rate_limit=self.options.rate_limit
        )

        self._site: Optional[SiteContext] = None

        self.stats = {
            'sites_checked': 0,
            'pages_enqueued': 0
        }

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def enqueue(self, first_page_url: UrlLike, custom_data: Any = None) -> int:
        """
        Queue a site, identified by the URL of its first page.

        Raises:
            InvalidUrlError: If ``first_page_url`` is not an absolute URL
        """
        url = parse_url(first_page_url)
        if url is None:
            raise InvalidUrlError(first_page_url)

        return self.site_queue.enqueue(url, custom_data)

    def dequeue(self, item_id: int) -> bool:
        return self.site_queue.dequeue(item_id)

    def pause(self):
        self.html_url_checker.pause()
        self.site_queue.pause()

    def resume(self):
        self.html_url_checker.resume()
        self.site_queue.resume()

    def num_sites(self) -> int:
        """Number of sites active or queued."""
        return len(self.site_queue)

    def num_pages(self) -> int:
        return self.html_url_checker.num_pages()

    def num_active_links(self) -> int:
        return self.html_url_checker.num_active_links()

    def num_queued_links(self) -> int:
        return self.html_url_checker.num_queued_links()

    def clear_cache(self):
        # Visited pages are kept, or the current crawl would revisit them
        self.html_url_checker.clear_cache()

    async def _check_site(self, url: URL, custom_data: Any):
        site = SiteContext(url=url, custom_data=custom_data,
                           done=asyncio.get_running_loop().create_future())
        self._site = site

        # A site may be checked again by enqueuing it again
        self.visited.clear()

        if self.options.honor_robot_exclusions:
            try:
                site.robots_txt = await get_robots_txt(url, self.client)
                self.handlers.emit('robots', site.robots_txt, custom_data)
            except RequestError as e:
                # Connectivity problems are reported by the first page instead
                self.logger.warning(f"Could not fetch robots.txt for {url}: {e}")
                site.robots_txt = RobotsTxt.unrestricted()
        else:
            site.robots_txt = RobotsTxt.unrestricted()

        self.logger.info(f"Checking site {url}")
        self._enqueue_page(site, url)

        await site.done

    def _enqueue_page(self, site: SiteContext, url: URL):
        # Links to the page from within itself are not followed
        self.visited.set(url, True)
        self.stats['pages_enqueued'] += 1
        self.html_url_checker.enqueue(url, site)

    def _is_allowed(self, site: SiteContext, link: Link) -> bool:
        if not self.options.honor_robot_exclusions or link.url.rebased is None:
            return True
        return site.robots_txt.is_allowed(self.options.user_agent, link.url.rebased)

    def _maybe_enqueue_page(self, link: Link, site: SiteContext) -> bool:
        if link.excluded and link.excluded_reason in UNFOLLOWABLE_REASONS:
            return False

        recursive_tags = RECURSIVE_TAGS[self.options.filter_level]
        if (not is_link_attr(recursive_tags, link.html.tag_name, link.html.attr_name) or
                link.broken is True or
                link.internal is not True or
                link.url.rebased is None or
                self.visited.contains(link.url.rebased) or
                not self._is_allowed(site, link)):
            return False

        if link.url.redirected is not None and self.visited.contains(link.url.redirected):
            # The destination was already checked, so every hop leading to it counts as checked
            for redirect in link.http.response.redirects:
                self.visited.set(redirect.url, True)
            return False

        self._enqueue_page(site, link.url.rebased)
        return True

    def _on_html(self, tree, robots: RobotDirectives, response: SimpleResponse,
                 page_url: URL, site: SiteContext):
        if url_key(response.url) != url_key(page_url):
            self.visited.set(response.url, True)
            for redirect in response.redirects:
                self.visited.set(redirect.url, True)

        self.handlers.emit('html', tree, robots, response, page_url, site.custom_data)

    def _on_junk(self, link: Link, site: SiteContext):
        self.handlers.emit('junk', link, site.custom_data)
        self._maybe_enqueue_page(link, site)

    def _on_link(self, link: Link, site: SiteContext):
        self.handlers.emit('link', link, site.custom_data)
        self._maybe_enqueue_page(link, site)

    def _on_filter_link(self, link: Link, site: SiteContext) -> Optional[str]:
        if link.internal is True and not self._is_allowed(site, link):
            return 'BLC_ROBOTS'
        return self.handlers.emit('filter_link', link, site.custom_data)

    def _on_page(self, error: Optional[Exception], page_url: URL, site: SiteContext):
        self.handlers.emit('page', error, page_url, site.custom_data)

        site.pages_completed += 1
        if site.pages_completed == 1:
            site.error = error

    def _on_pages_end(self):
        site = self._site
        if site is None or site.done.done():
            return

        self._site = None
        self.stats['sites_checked'] += 1
        self.logger.info(f"Finished site {site.url} ({site.pages_completed} pages)")

        self.handlers.emit('site', site.error, site.url, site.custom_data)
        site.done.set_result(None)

    def _on_end(self):
        # Reduce memory usage
        self.visited.clear()
        self.handlers.emit('end')

    async def close(self):
        """Stop crawling and release the connection pool, if owned."""
        await self.site_queue.cancel()
        await self.html_url_checker.close()
        if self._owns_client:
            await self.client.close()

    def get_stats(self):
        """Get crawler statistics."""
        return {**self.stats, 'pages': self.html_url_checker.get_stats()}
