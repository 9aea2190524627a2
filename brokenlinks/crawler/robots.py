"""
Robots exclusion: page directives (meta tags, X-Robots-Tag headers) and robots.txt.
"""

import logging
from typing import Iterable, Optional, Set, Union, TYPE_CHECKING
from urllib.robotparser import RobotFileParser
from yarl import URL

if TYPE_CHECKING:
    from .fetcher import HttpClient


NOFOLLOW = 'nofollow'
NOINDEX = 'noindex'
NOIMAGEINDEX = 'noimageindex'

# Directive names that may be followed by a colon and a value
_VALUED_DIRECTIVES = frozenset({'unavailable_after', 'max-snippet', 'max-image-preview', 'max-video-preview'})


class RobotDirectives:
    """
    Aggregate of the robots directives that apply to one page.

    Directives addressed to a specific crawler (``<meta name="googlebot">``,
    ``X-Robots-Tag: googlebot: noindex``) only apply when that crawler's name
    appears in ``user_agent``.
    """

    KNOWN_BOTS = frozenset({
        'adsbot-google', 'applebot', 'baiduspider', 'bingbot', 'duckduckbot',
        'facebookexternalhit', 'googlebot', 'googlebot-image', 'googlebot-news',
        'googlebot-video', 'ia_archiver', 'mediapartners-google', 'msnbot',
        'slurp', 'teoma', 'twitterbot', 'yahoo-slurp', 'yandex', 'yandexbot'
    })

    def __init__(self, user_agent: str = ''):
        self.user_agent = user_agent.lower()
        self.directives: Set[str] = set()
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def is_bot(name: str) -> bool:
        """Whether ``name`` is a recognized crawler user-agent token."""
        return name.strip().lower() in RobotDirectives.KNOWN_BOTS

    def _applies_to(self, name: str) -> bool:
        name = name.strip().lower()
        return name == 'robots' or (bool(name) and name in self.user_agent)

    def _add(self, token: str):
        token = token.strip().lower()
        if not token:
            return

        if token == 'none':
            self.directives.update((NOINDEX, NOFOLLOW))
        else:
            self.directives.add(token.split(':', 1)[0].strip())

    def meta(self, name: str, content: str):
        """Add the directives of a ``<meta name content>`` element."""
        if not self._applies_to(name):
            return

        for token in content.split(','):
            self._add(token)

    def header(self, value: str):
        """Add the directives of an ``X-Robots-Tag`` header value."""
        bot: Optional[str] = None

        for part in value.split(','):
            part = part.strip()
            if ':' in part:
                prefix, rest = part.split(':', 1)
                if prefix.strip().lower() not in _VALUED_DIRECTIVES:
                    bot = prefix.strip().lower()
                    part = rest

            if bot is None or bot in self.user_agent:
                self._add(part)

        self.logger.debug(f"X-Robots-Tag {value!r} -> {sorted(self.directives)}")

    def has(self, directive: str) -> bool:
        return directive.lower() in self.directives

    def has_any(self, directives: Iterable[str]) -> bool:
        return any(self.has(directive) for directive in directives)

    def __repr__(self) -> str:
        return f"RobotDirectives({sorted(self.directives)!r})"


class RobotsTxt:
    """A parsed robots.txt file."""

    def __init__(self, url: Optional[Union[str, URL]] = None, content: str = ''):
        self.url = None if url is None else URL(str(url))
        self.content = content
        self._parser = RobotFileParser()
        if url is not None:
            self._parser.set_url(str(url))
        self._parser.parse(content.splitlines())

    @classmethod
    def unrestricted(cls, url: Optional[Union[str, URL]] = None) -> 'RobotsTxt':
        """A robots.txt that allows everything."""
        return cls(url, '')

    def is_allowed(self, user_agent: str, url: Union[str, URL]) -> bool:
        """Whether ``user_agent`` may crawl ``url``."""
        return self._parser.can_fetch(user_agent, str(url))

    def __repr__(self) -> str:
        return f"RobotsTxt({str(self.url)!r})"


async def get_robots_txt(url: URL, client: 'HttpClient') -> RobotsTxt:
    """
    Fetch and parse the robots.txt of ``url``'s origin.

    A missing file (any non-2xx status) allows everything.

    Raises:
        RequestError: If robots.txt could not be requested at all
    """
    robots_url = url.origin().with_path('/robots.txt')

    result = await client.request(robots_url, 'get',
                                  read_body=lambda response: 200 <= response.status <= 299)

    if result.body is None:
        return RobotsTxt.unrestricted(robots_url)

    return RobotsTxt(robots_url, result.body)
