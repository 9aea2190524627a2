#!/usr/bin/env python3
"""
Command line entry point: check the links of a page or a whole site.
"""

import asyncio
import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from brokenlinks import __version__
from brokenlinks.crawler.events import Handlers
from brokenlinks.crawler.html_url_checker import HtmlUrlChecker
from brokenlinks.crawler.reasons import describe
from brokenlinks.crawler.site_checker import SiteChecker
from brokenlinks.utils.config import Config, load_config
from brokenlinks.utils.logger import get_link_logger, log_system_info, setup_logging
from brokenlinks.utils.monitoring import MetricsCollector


class LinkCheckerApp:
    """Main application class for the link checker."""

    def __init__(self, config: Config, recursive: bool = False, as_json: bool = False,
                 verbose: bool = False):
        self.config = config
        self.recursive = recursive
        self.as_json = as_json
        self.verbose = verbose

        self.logger = logging.getLogger(__name__)
        self.link_logger = get_link_logger(__name__)
        self.metrics = MetricsCollector(
            enable_prometheus=config.monitoring.metrics_enabled,
            prometheus_port=config.monitoring.prometheus_port
        )

        self.checker = None
        self.broken_links = 0
        self._finished: Optional[asyncio.Event] = None

    def _handlers(self) -> Handlers:
        return Handlers(
            link=self._on_link,
            junk=self._on_junk,
            page=self._on_page,
            site=self._on_site,
            end=self._on_end
        )

    def _on_link(self, link, custom_data):
        self.metrics.record_link(link, self.checker.num_queued_links())
        self.link_logger.log_link(link, str(link.base.resolved))

        if link.broken:
            self.broken_links += 1

        if link.broken or self.verbose:
            self._report(link)

    def _on_junk(self, link, custom_data):
        self.metrics.record_junk(link)
        if self.verbose:
            self._report(link)

    def _on_page(self, error, page_url, custom_data):
        self.metrics.record_page(error)
        self.link_logger.log_page(error, str(page_url))

        if error is not None:
            print(f"Page {page_url}: {error}", file=sys.stderr)

    def _on_site(self, error, site_url, custom_data):
        self.metrics.record_site()
        self.logger.info(f"Site {site_url} finished")

    def _on_end(self):
        self._finished.set()

    def _report(self, link):
        if self.as_json:
            print(json.dumps(link.to_dict(), default=str))
            return

        if link.excluded:
            status = f"SKIPPED ({describe(link.excluded_reason)})"
        elif link.broken:
            status = f"BROKEN  ({describe(link.broken_reason)})"
        else:
            status = "OK"
        print(f"{status:<40} {link.url.original}  (on {link.base.resolved})")

    def _setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._finished.set)
            except NotImplementedError:
                # Not supported on Windows event loops
                pass

    async def run(self, url: str) -> int:
        """Check ``url`` and return the process exit status."""
        self._finished = asyncio.Event()
        self._setup_signal_handlers()
        self.metrics.start_prometheus_server()

        checker_class = SiteChecker if self.recursive else HtmlUrlChecker

        async with checker_class(self.config.checker, self._handlers()) as checker:
            self.checker = checker
            checker.enqueue(url, url)
            self.logger.info(f"Checking {'site' if self.recursive else 'page'} {url}")

            await self._finished.wait()

        summary = self.metrics.get_summary()
        self.logger.info(f"Summary: {summary['counts']} in {summary['runtime_seconds']:.1f}s")
        print(f"{summary['counts']['links']} links checked, {self.broken_links} broken, "
              f"{summary['counts']['excluded']} excluded", file=sys.stderr)

        return 1 if self.broken_links else 0


def build_config(args: argparse.Namespace) -> Config:
    """Load the configuration file, if any, and apply command line overrides."""
    config = load_config(args.config) if args.config else Config()

    overrides = {}
    if args.filter_level is not None:
        overrides['filter_level'] = args.filter_level
    if args.exclude:
        overrides['excluded_keywords'] = tuple(config.checker.excluded_keywords) + tuple(args.exclude)
    if args.exclude_external:
        overrides['exclude_external_links'] = True
    if args.exclude_internal:
        overrides['exclude_internal_links'] = True
    if args.get:
        overrides['request_method'] = 'get'
    if args.user_agent:
        overrides['user_agent'] = args.user_agent

    if overrides:
        config.checker = config.checker.replace(**overrides)

    if args.verbose:
        config.logging.level = 'DEBUG'

    return config


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Find broken links in a web page or a whole site",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py https://example.com/                 # Check one page
  python main.py https://example.com/ --recursive     # Crawl the whole site
  python main.py https://example.com/ --config my_config.yaml
  python main.py https://example.com/ --exclude '*.pdf' --exclude-external
        """
    )

    parser.add_argument('url', help='URL of the page (or first page of the site) to check')
    parser.add_argument('-r', '--recursive', action='store_true',
                        help='Recursively check every internal page')
    parser.add_argument('--config', help='Path to a YAML configuration file')
    parser.add_argument('--filter-level', type=int, choices=range(4),
                        help='Which tags and attributes are checked (0-3)')
    parser.add_argument('--exclude', action='append', metavar='KEYWORD',
                        help='Skip links containing or matching KEYWORD (repeatable)')
    parser.add_argument('--exclude-external', action='store_true',
                        help='Skip links to other sites')
    parser.add_argument('--exclude-internal', action='store_true',
                        help='Skip links to the same site')
    parser.add_argument('--get', action='store_true',
                        help='Check links with GET instead of HEAD')
    parser.add_argument('--user-agent', help='User-Agent header to send')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Report every link, not only broken ones')
    parser.add_argument('--json', action='store_true',
                        help='Report links as JSON lines')
    parser.add_argument('--version', action='version', version=f'brokenlinks {__version__}')

    args = parser.parse_args()

    if args.config and not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.", file=sys.stderr)
        return 2

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.logging)
    log_system_info()

    app = LinkCheckerApp(config, recursive=args.recursive, as_json=args.json, verbose=args.verbose)
    try:
        return asyncio.run(app.run(args.url))
    except ValueError as e:
        # Includes InvalidUrlError for a malformed URL argument
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
