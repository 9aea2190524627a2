"""Pytest configuration, fixture web server and signal collectors."""

import asyncio
from collections import Counter
from typing import Any, Dict, List, Tuple

import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from brokenlinks.crawler.events import Handlers


def html(body: str, head: str = '') -> bytes:
    return f"<!DOCTYPE html><html><head>{head}</head><body>{body}</body></html>".encode()


# path -> (status, headers, body)
PAGES: Dict[str, Tuple[int, Dict[str, str], bytes]] = {
    '/index.html': (200, {'Content-Type': 'text/html'}, html(
        '<a href="/page1.html">page 1</a>'
        '<a href="/404.html">missing</a>'
        '<a href="/redirect/1">redirect</a>'
    )),
    '/page1.html': (200, {'Content-Type': 'text/html'}, html(
        '<a href="/index.html">home</a>'
        '<a href="/page2.html">page 2</a>'
    )),
    '/page2.html': (200, {'Content-Type': 'text/html'}, html(
        '<a href="/page1.html">page 1</a>'
    )),
    '/no-head.html': (200, {'Content-Type': 'text/html'}, html('no HEAD here')),
    '/robots-header.html': (200, {'Content-Type': 'text/html', 'X-Robots-Tag': 'nofollow'}, html(
        '<a href="/page1.html">page 1</a>'
    )),
    '/image.png': (200, {'Content-Type': 'image/png'}, b'\x89PNG\r\n\x1a\n'),
    '/robots.txt': (200, {'Content-Type': 'text/plain'}, b'User-agent: *\nDisallow: /private/\n'),
    '/private/secret.html': (200, {'Content-Type': 'text/html'}, html('secret')),
    '/robots-site/index.html': (200, {'Content-Type': 'text/html'}, html(
        '<a href="/private/secret.html">secret</a>'
        '<a href="/page2.html">page 2</a>'
    )),
}

REDIRECTS = {
    '/redirect/1': '/redirect/2',
    '/redirect/2': '/page1.html',
}


async def _handle(request: web.Request) -> web.Response:
    request.app['requests'].append((request.method, request.path))

    if request.path in REDIRECTS:
        return web.Response(status=302, headers={'Location': REDIRECTS[request.path]})

    if request.path == '/no-head.html' and request.method == 'HEAD':
        return web.Response(status=405)

    if request.path in PAGES:
        status, headers, body = PAGES[request.path]
        return web.Response(status=status, headers=headers, body=body)

    return web.Response(status=404, content_type='text/html', body=html('not found'))


class FixtureServer:
    """A local web site, recording every request it receives."""

    def __init__(self, server: TestServer):
        self.server = server

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    @property
    def requests(self) -> List[Tuple[str, str]]:
        return self.server.app['requests']

    def count(self, method: str, path: str) -> int:
        return Counter(self.requests)[(method, path)]


@pytest_asyncio.fixture
async def server():
    """Start the fixture site on a free local port."""
    app = web.Application()
    app['requests'] = []
    app.router.add_route('*', '/{tail:.*}', _handle)

    test_server = TestServer(app, host='127.0.0.1')
    await test_server.start_server()
    try:
        yield FixtureServer(test_server)
    finally:
        await test_server.close()


class Collector:
    """Records every signal a checker emits."""

    def __init__(self, done_signal: str = 'end'):
        self.done_signal = done_signal
        self.links: List[Any] = []
        self.junk: List[Any] = []
        self.pages: List[Tuple[Any, Any, Any]] = []
        self.sites: List[Tuple[Any, Any, Any]] = []
        self.html: List[Tuple[Any, ...]] = []
        self.robots: List[Any] = []
        self.completes: List[Any] = []
        self.ends = 0
        self.done = asyncio.get_running_loop().create_future()

    def _finish(self, signal: str):
        if signal == self.done_signal and not self.done.done():
            self.done.set_result(None)

    def handlers(self, **overrides) -> Handlers:
        def on_link(link, custom_data):
            self.links.append((link, custom_data))

        def on_junk(link, custom_data):
            self.junk.append((link, custom_data))

        def on_html(*args):
            self.html.append(args)

        def on_page(error, page_url, custom_data):
            self.pages.append((error, page_url, custom_data))

        def on_site(error, site_url, custom_data):
            self.sites.append((error, site_url, custom_data))
            self._finish('site')

        def on_robots(robots_txt, custom_data):
            self.robots.append(robots_txt)

        def on_complete(custom_data):
            self.completes.append(custom_data)
            self._finish('complete')

        def on_end():
            self.ends += 1
            self._finish('end')

        slots = dict(link=on_link, junk=on_junk, html=on_html, page=on_page, site=on_site,
                     robots=on_robots, complete=on_complete, end=on_end)
        slots.update(overrides)
        return Handlers(**slots)

    async def wait(self, timeout: float = 10.0):
        await asyncio.wait_for(asyncio.shield(self.done), timeout)
        # Let any signal that would wrongly follow the final one arrive
        await asyncio.sleep(0.05)

    def link_urls(self) -> List[str]:
        return [str(link.url.rebased) for link, _ in self.links]

    def sorted_links(self):
        return [link for link, _ in sorted(self.links, key=lambda item: item[0].html.index)]
