"""Tests for checking the links of fetched HTML pages."""

import pytest
from yarl import URL

from brokenlinks.crawler.errors import ExpectedHtmlError, HtmlRetrievalError, InvalidUrlError
from brokenlinks.crawler.html_url_checker import HtmlUrlChecker
from brokenlinks.crawler.robots import NOFOLLOW

from conftest import Collector


async def check_pages(server, paths, options=None, **overrides):
    collector = Collector()
    async with HtmlUrlChecker(options, collector.handlers(**overrides)) as checker:
        for path in paths:
            checker.enqueue(server.url(path), path)
        await collector.wait()
    return collector


class TestHtmlUrlChecker:
    @pytest.mark.asyncio
    async def test_page_links(self, server):
        collector = await check_pages(server, ['/index.html'])

        assert sorted(collector.link_urls()) == sorted([
            server.url('/page1.html'), server.url('/404.html'), server.url('/redirect/1')
        ])
        assert all(custom_data == '/index.html' for _, custom_data in collector.links)

        broken = {str(link.url.rebased): link.broken for link, _ in collector.links}
        assert broken[server.url('/404.html')] is True
        assert broken[server.url('/page1.html')] is False

        assert collector.pages == [(None, URL(server.url('/index.html')), '/index.html')]
        assert collector.ends == 1
        assert server.count('GET', '/index.html') == 1

    @pytest.mark.asyncio
    async def test_html_signal(self, server):
        """The html signal carries the tree, directives, response and page URL."""
        collector = await check_pages(server, ['/index.html'])

        assert len(collector.html) == 1
        tree, robots, response, page_url, custom_data = collector.html[0]
        assert tree.find('a')['href'] == '/page1.html'
        assert not robots.has(NOFOLLOW)
        assert response.status == 200
        assert response.headers['content-type'].startswith('text/html')
        assert page_url == URL(server.url('/index.html'))
        assert custom_data == '/index.html'

    @pytest.mark.asyncio
    async def test_page_not_found(self, server):
        collector = await check_pages(server, ['/missing.html'])

        error, page_url, _ = collector.pages[0]
        assert isinstance(error, HtmlRetrievalError)
        assert error.code == 404
        assert page_url == URL(server.url('/missing.html'))
        assert collector.links == []
        assert collector.html == []

    @pytest.mark.asyncio
    async def test_not_html(self, server):
        collector = await check_pages(server, ['/image.png'])

        error, _, _ = collector.pages[0]
        assert isinstance(error, ExpectedHtmlError)
        assert error.content_type == 'image/png'
        assert collector.links == []

    @pytest.mark.asyncio
    async def test_robots_header(self, server):
        """X-Robots-Tag: nofollow excludes every link of the page."""
        collector = await check_pages(server, ['/robots-header.html'])

        assert collector.links == []
        assert [link.excluded_reason for link, _ in collector.junk] == ['BLC_ROBOTS']
        assert collector.pages[0][0] is None
        assert server.count('HEAD', '/page1.html') == 0

    @pytest.mark.asyncio
    async def test_pages_in_order(self, server):
        """Pages are checked one after another, each reported once."""
        collector = await check_pages(server, ['/page1.html', '/missing.html', '/page2.html'])

        assert [custom_data for _, _, custom_data in collector.pages] == [
            '/page1.html', '/missing.html', '/page2.html'
        ]
        assert [error is None for error, _, _ in collector.pages] == [True, False, True]
        assert collector.ends == 1

    @pytest.mark.asyncio
    async def test_page_response_is_cached(self, server):
        """Links to an already fetched page reuse its response."""
        collector = await check_pages(server, ['/page1.html', '/page2.html'])

        [(link, _)] = [item for item in collector.links if item[1] == '/page2.html']
        assert link.url.rebased == URL(server.url('/page1.html'))
        assert link.http.cached is True
        assert link.http.response.status == 200
        assert server.count('HEAD', '/page1.html') == 0

    @pytest.mark.asyncio
    async def test_filter_link_receives_page_data(self, server):
        seen = []

        def filter_link(link, custom_data):
            seen.append(custom_data)
            return 'CUSTOM'

        collector = await check_pages(server, ['/page2.html'], filter_link=filter_link)

        assert seen == ['/page2.html']
        assert [link.excluded_reason for link, _ in collector.junk] == ['CUSTOM']

    @pytest.mark.asyncio
    async def test_invalid_page_url(self):
        async with HtmlUrlChecker() as checker:
            with pytest.raises(InvalidUrlError):
                checker.enqueue('page.html')
            assert checker.num_pages() == 0

    @pytest.mark.asyncio
    async def test_num_pages(self, server):
        collector = Collector()
        async with HtmlUrlChecker(None, collector.handlers()) as checker:
            checker.pause()
            checker.enqueue(server.url('/page1.html'))
            checker.enqueue(server.url('/page2.html'))
            assert checker.num_pages() == 2

            checker.resume()
            await collector.wait()
            assert checker.num_pages() == 0
            assert checker.get_stats()['pages_checked'] == 2

    @pytest.mark.asyncio
    async def test_link_checks_share_page_cache(self, server):
        """Page fetches and link checks use one cache, cleared together."""
        collector = Collector()
        async with HtmlUrlChecker(None, collector.handlers()) as checker:
            assert checker.html_checker.url_checker.cache is checker.cache

            checker.enqueue(server.url('/page1.html'))
            await collector.wait()
            assert checker.cache.get(server.url('/page1.html')) is not None

            checker.clear_cache()
            assert checker.cache.get(server.url('/page1.html')) is None
