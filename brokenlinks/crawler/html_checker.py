"""
Scans one HTML document: scrapes its links, filters them and checks the rest.
"""

import asyncio
import fnmatch
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from .errors import InvalidUrlError
from .events import Handlers
from .fetcher import HttpClient
from .link import Link, UrlLike
from .parser import HtmlSource, parse_html, scrape_html
from .robots import NOFOLLOW, NOIMAGEINDEX, NOINDEX, RobotDirectives
from .tags import IMAGE_ATTRS, TAGS, is_link_attr
from .url_checker import UrlChecker, make_options
from ..storage.url_cache import UrlCache
from ..utils.config import CheckerOptions


def match_url(url: Optional[str], keywords: Iterable[str]) -> bool:
    """Whether ``url`` contains any keyword literally or matches it as a glob."""
    if url is None:
        return False

    for keyword in keywords:
        if keyword in url or fnmatch.fnmatchcase(url, keyword):
            return True

    return False


@dataclass
class ScanContext:
    """State of one :meth:`HtmlChecker.scan` call."""
    base_url: Optional[UrlLike]
    robots: RobotDirectives
    custom_data: Any = None
    excluded: int = 0
    parsed: bool = False
    completed: bool = False
    task: Optional[asyncio.Task] = None


class HtmlChecker:
    """
    Checks the links of a single HTML document.

    Signals:
        html(tree, robots, custom_data): after parsing
        junk(link, custom_data): for every excluded link
        link(link, custom_data): for every checked link
        complete(custom_data): once parsing and every check have finished
        filter_link(link, custom_data): return a reason string to exclude a link
    """

    def __init__(self, options: Union[CheckerOptions, Mapping[str, Any], None] = None,
                 handlers: Optional[Handlers] = None,
                 client: Optional[HttpClient] = None,
                 cache: Optional[UrlCache] = None):
        self.options = make_options(options)
        self.handlers = handlers or Handlers()
        self.logger = logging.getLogger(__name__)

        self.url_checker = UrlChecker(
            self.options,
            Handlers(link=self._on_link, end=self._on_links_end),
            client=client,
            cache=cache
        )

        self._scan: Optional[ScanContext] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def active(self) -> bool:
        """Whether a scan is in progress."""
        return self._scan is not None

    def scan(self, html: HtmlSource, base_url: Optional[UrlLike],
             robots: Optional[RobotDirectives] = None, custom_data: Any = None) -> bool:
        """
        Start scanning ``html``, whose links are relative to ``base_url``.

        Must be called from a running event loop. Results are delivered
        through the handlers.

        Args:
            html: Markup as a string, bytes, or an async iterable of chunks
            base_url: URL of the document
            robots: Directives already known for the document (e.g. from
                an X-Robots-Tag header); in-document directives are added to it
            custom_data: Passed through to every signal

        Returns:
            False (and does nothing) if a scan is already in progress
        """
        if self._scan is not None:
            return False

        if not isinstance(html, (str, bytes)) and not hasattr(html, '__aiter__'):
            raise TypeError(f"Invalid HTML input: {type(html).__name__}")

        if not isinstance(robots, RobotDirectives):
            robots = RobotDirectives(self.options.user_agent)

        ctx = ScanContext(base_url=base_url, robots=robots, custom_data=custom_data)
        self._scan = ctx

        ctx.task = asyncio.get_running_loop().create_task(self._run_scan(ctx, html))
        return True

    async def _run_scan(self, ctx: ScanContext, html: HtmlSource):
        try:
            tree = await parse_html(html, self.options.html_parser)
            links = scrape_html(tree, ctx.base_url, ctx.robots)
        except Exception as e:
            self.logger.exception(f"Could not parse HTML of {ctx.base_url}: {e}")
            ctx.parsed = True
            self._complete(ctx)
            return

        self.handlers.emit('html', tree, ctx.robots, ctx.custom_data)

        for link in links:
            self._maybe_enqueue_link(link, ctx)

        ctx.parsed = True

        # No links found or all links already checked
        if self.url_checker.num_active_links() == 0 and self.url_checker.num_queued_links() == 0:
            self._complete(ctx)

    def _complete(self, ctx: ScanContext):
        if ctx.completed:
            return

        ctx.completed = True
        if self._scan is ctx:
            self._scan = None

        self.handlers.emit('complete', ctx.custom_data)

    def _maybe_enqueue_link(self, link: Link, ctx: ScanContext):
        excluded_reason = self._excluded_reason(link, ctx)

        if excluded_reason is not None:
            link.html.offset_index = ctx.excluded
            ctx.excluded += 1
            link.excluded = True
            link.excluded_reason = excluded_reason

            self.handlers.emit('junk', link, ctx.custom_data)
            return

        link.html.offset_index = link.html.index - ctx.excluded
        link.excluded = False

        try:
            self.url_checker.enqueue(link, ctx)
        except InvalidUrlError:
            link.broken = True
            link.broken_reason = 'BLC_INVALID'
            self.handlers.emit('link', link, ctx.custom_data)

    def _excluded_reason(self, link: Link, ctx: ScanContext) -> Optional[str]:
        options = self.options
        tag_name = link.html.tag_name
        attr_name = link.html.attr_name
        url = link.url.rebased

        if not is_link_attr(TAGS[options.filter_level], tag_name, attr_name):
            return 'BLC_HTML'
        if options.exclude_external_links and link.internal is False:
            return 'BLC_EXTERNAL'
        if options.exclude_internal_links and link.internal is True:
            return 'BLC_INTERNAL'
        if options.exclude_links_to_same_page and link.same_page is True:
            return 'BLC_SAMEPAGE'
        if url is not None and url.scheme in options.excluded_schemes:
            return 'BLC_SCHEME'

        if options.honor_robot_exclusions:
            if ctx.robots.has_any((NOFOLLOW, NOINDEX)):
                return 'BLC_ROBOTS'

            if ctx.robots.has(NOIMAGEINDEX) and is_link_attr(IMAGE_ATTRS, tag_name, attr_name):
                return 'BLC_ROBOTS'

            rel = (link.html.attrs or {}).get('rel')
            if rel is not None and NOFOLLOW in rel.lower().split():
                return 'BLC_ROBOTS'

        if match_url(None if url is None else str(url), options.excluded_keywords):
            return 'BLC_KEYWORD'

        custom_reason = self.handlers.emit('filter_link', link, ctx.custom_data)
        if isinstance(custom_reason, str):
            return custom_reason

        return None

    def _on_link(self, link: Link, ctx: ScanContext):
        self.handlers.emit('link', link, ctx.custom_data)

    def _on_links_end(self):
        ctx = self._scan
        if ctx is not None and ctx.parsed:
            self._complete(ctx)

    def clear_cache(self):
        self.url_checker.clear_cache()

    def pause(self):
        self.url_checker.pause()

    def resume(self):
        self.url_checker.resume()

    def num_active_links(self) -> int:
        return self.url_checker.num_active_links()

    def num_queued_links(self) -> int:
        return self.url_checker.num_queued_links()

    async def close(self):
        """Abandon the current scan and release resources."""
        ctx = self._scan
        self._scan = None
        if ctx is not None and ctx.task is not None and not ctx.task.done():
            ctx.task.cancel()
            await asyncio.gather(ctx.task, return_exceptions=True)

        await self.url_checker.close()
