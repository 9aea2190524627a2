"""Tests for recursive site crawling."""

import pytest
from aiohttp.test_utils import unused_port
from yarl import URL

from brokenlinks.crawler.errors import HtmlRetrievalError, InvalidUrlError, RequestError
from brokenlinks.crawler.site_checker import SiteChecker

from conftest import Collector


async def crawl(server, path, options=None, **overrides):
    collector = Collector()
    async with SiteChecker(options, collector.handlers(**overrides)) as checker:
        checker.enqueue(server.url(path), 'site')
        await collector.wait()
    return collector


class TestSiteChecker:
    @pytest.mark.asyncio
    async def test_crawl_terminates_on_cycles(self, server):
        """Pages linking to each other are each fetched once."""
        collector = await crawl(server, '/index.html')

        for path in ('/index.html', '/page1.html', '/page2.html'):
            assert server.count('GET', path) == 1, path

        assert sorted(str(page_url) for _, page_url, _ in collector.pages) == sorted(
            server.url(path) for path in ('/index.html', '/page1.html', '/page2.html')
        )
        assert collector.sites == [(None, URL(server.url('/index.html')), 'site')]
        assert collector.ends == 1
        assert all(custom_data == 'site' for _, custom_data in collector.links)

    @pytest.mark.asyncio
    async def test_broken_links_found(self, server):
        collector = await crawl(server, '/index.html')

        broken = [str(link.url.rebased) for link, _ in collector.links if link.broken]
        assert broken == [server.url('/404.html')]
        assert server.count('GET', '/404.html') == 0

    @pytest.mark.asyncio
    async def test_redirect_to_visited_page(self, server):
        """A redirect to an already visited page is not fetched, and its hops count as visited."""
        visited = {}

        def on_site(error, site_url, custom_data):
            visited.update({
                path: checker.visited.contains(server.url(path))
                for path in ('/redirect/1', '/redirect/2', '/page1.html')
            })
            collector.sites.append((error, site_url, custom_data))

        collector = Collector()
        async with SiteChecker(None, collector.handlers(site=on_site)) as checker:
            checker.enqueue(server.url('/index.html'))
            await collector.wait()

        assert server.count('GET', '/redirect/1') == 0
        assert server.count('GET', '/redirect/2') == 0
        assert visited == {'/redirect/1': True, '/redirect/2': True, '/page1.html': True}

        # Visited pages are forgotten once every site is done
        assert len(checker.visited) == 0

    @pytest.mark.asyncio
    async def test_robots_txt_disallow(self, server):
        """Internal pages disallowed by robots.txt are neither checked nor crawled."""
        collector = await crawl(server, '/robots-site/index.html')

        junk = {str(link.url.rebased): link.excluded_reason for link, _ in collector.junk}
        assert junk[server.url('/private/secret.html')] == 'BLC_ROBOTS'
        assert server.count('GET', '/private/secret.html') == 0
        assert server.count('HEAD', '/private/secret.html') == 0

        assert len(collector.robots) == 1
        assert collector.robots[0].url == URL(server.url('/robots.txt'))

    @pytest.mark.asyncio
    async def test_robots_txt_ignored(self, server):
        await crawl(server, '/robots-site/index.html', {'honor_robot_exclusions': False})

        assert server.count('GET', '/robots.txt') == 0
        assert server.count('GET', '/private/secret.html') == 1

    @pytest.mark.asyncio
    async def test_keyword_before_robots_txt(self, server):
        """A link excluded by keyword and by robots.txt reports the keyword."""
        collector = await crawl(server, '/robots-site/index.html', {'excluded_keywords': ['secret']})

        junk = {str(link.url.rebased): link.excluded_reason for link, _ in collector.junk}
        assert junk[server.url('/private/secret.html')] == 'BLC_KEYWORD'

    @pytest.mark.asyncio
    async def test_first_page_error(self, server):
        collector = await crawl(server, '/missing.html')

        error, site_url, custom_data = collector.sites[0]
        assert isinstance(error, HtmlRetrievalError)
        assert error.code == 404
        assert site_url == URL(server.url('/missing.html'))
        assert custom_data == 'site'
        assert collector.links == []

    @pytest.mark.asyncio
    async def test_unreachable_site(self):
        collector = Collector()
        async with SiteChecker(None, collector.handlers()) as checker:
            checker.enqueue(f'http://127.0.0.1:{unused_port()}/')
            await collector.wait()

        error, _, _ = collector.sites[0]
        assert isinstance(error, RequestError)
        assert error.code == 'ECONNREFUSED'
        assert collector.robots == []
        assert collector.ends == 1

    @pytest.mark.asyncio
    async def test_sites_in_order(self, server):
        collector = Collector()
        async with SiteChecker(None, collector.handlers()) as checker:
            checker.pause()
            checker.enqueue(server.url('/page2.html'), 'first')
            checker.enqueue(server.url('/missing.html'), 'second')
            assert checker.num_sites() == 2

            checker.resume()
            await collector.wait()
            assert checker.num_sites() == 0

        assert [custom_data for _, _, custom_data in collector.sites] == ['first', 'second']
        assert collector.ends == 1

    @pytest.mark.asyncio
    async def test_invalid_site_url(self):
        async with SiteChecker() as checker:
            with pytest.raises(InvalidUrlError):
                checker.enqueue('/index.html')
