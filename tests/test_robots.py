"""Tests for robots directives and robots.txt handling."""

import pytest
from yarl import URL

from brokenlinks.crawler.errors import RequestError
from brokenlinks.crawler.fetcher import HttpClient
from brokenlinks.crawler.robots import NOFOLLOW, NOIMAGEINDEX, NOINDEX, RobotDirectives, RobotsTxt, get_robots_txt
from brokenlinks.utils.config import CheckerOptions


class TestRobotDirectives:
    def test_meta_robots(self):
        robots = RobotDirectives('brokenlinks/1.0')
        robots.meta('robots', 'noindex, nofollow')

        assert robots.has(NOINDEX)
        assert robots.has(NOFOLLOW)
        assert not robots.has(NOIMAGEINDEX)

    def test_none_means_noindex_nofollow(self):
        robots = RobotDirectives()
        robots.meta('ROBOTS', 'none')
        assert robots.has_any([NOFOLLOW]) and robots.has(NOINDEX)

    def test_bot_specific_meta(self):
        """Directives for a named bot apply only to that bot's user agent."""
        robots = RobotDirectives('brokenlinks/1.0')
        robots.meta('googlebot', 'nofollow')
        assert not robots.has(NOFOLLOW)

        googlebot = RobotDirectives('Mozilla/5.0 (compatible; Googlebot/2.1)')
        googlebot.meta('googlebot', 'nofollow')
        assert googlebot.has(NOFOLLOW)

    def test_header(self):
        robots = RobotDirectives('brokenlinks/1.0')
        robots.header('noimageindex, unavailable_after: 25 Jun 2010 15:00:00 PST')

        assert robots.has(NOIMAGEINDEX)
        assert not robots.has(NOFOLLOW)

    def test_header_for_other_bot(self):
        robots = RobotDirectives('brokenlinks/1.0')
        robots.header('googlebot: nofollow')
        assert not robots.has(NOFOLLOW)

    def test_is_bot(self):
        assert RobotDirectives.is_bot('Googlebot')
        assert not RobotDirectives.is_bot('description')


class TestRobotsTxt:
    def test_disallow(self):
        robots_txt = RobotsTxt('http://example.com/robots.txt',
                               'User-agent: *\nDisallow: /private/\n')

        assert robots_txt.is_allowed('brokenlinks', 'http://example.com/public.html')
        assert not robots_txt.is_allowed('brokenlinks', 'http://example.com/private/a.html')

    def test_unrestricted(self):
        assert RobotsTxt.unrestricted().is_allowed('brokenlinks', 'http://example.com/private/')


class TestGetRobotsTxt:
    @pytest.mark.asyncio
    async def test_fetches_origin_robots_txt(self, server):
        async with HttpClient(CheckerOptions()) as client:
            robots_txt = await get_robots_txt(URL(server.url('/deep/page.html')), client)

        assert robots_txt.url == URL(server.url('/robots.txt'))
        assert not robots_txt.is_allowed('brokenlinks', server.url('/private/secret.html'))
        assert server.count('GET', '/robots.txt') == 1

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        from aiohttp.test_utils import unused_port

        async with HttpClient(CheckerOptions()) as client:
            with pytest.raises(RequestError) as info:
                await get_robots_txt(URL(f'http://127.0.0.1:{unused_port()}/'), client)

        assert info.value.code == 'ECONNREFUSED'
