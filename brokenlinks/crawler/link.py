"""
Link data model and URL resolution.

A :class:`Link` represents one reference discovered in a document (or enqueued
directly) together with everything learned about it while it is resolved,
filtered and checked.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union, TYPE_CHECKING

from yarl import URL

if TYPE_CHECKING:
    from .fetcher import SimpleResponse


UrlLike = Union[str, URL]

# Schemes that cannot exist without a host
_HOST_SCHEMES = frozenset({'http', 'https', 'ftp', 'ws', 'wss'})


def parse_url(value: Optional[UrlLike], base: Optional[URL] = None) -> Optional[URL]:
    """
    Parse ``value`` as a URL, resolved against ``base`` when one is given.

    Returns None for anything that does not produce an absolute URL, so that
    callers can encode "unparseable" as data rather than handle exceptions.
    """
    if value is None:
        return None

    try:
        url = value if isinstance(value, URL) else URL(str(value))
        if base is not None:
            url = base.join(url)
    except (TypeError, ValueError):
        return None

    if not url.scheme:
        return None
    if url.scheme in _HOST_SCHEMES and not url.host:
        return None

    return url


def origin(url: URL) -> Tuple[str, Optional[str], Optional[int]]:
    """Scheme, host and (effective) port of a URL."""
    return url.scheme, url.host, url.port


@dataclass
class LinkUrl:
    """The different forms of a link's URL."""
    original: Optional[str] = None
    resolved: Optional[URL] = None
    rebased: Optional[URL] = None
    redirected: Optional[URL] = None


@dataclass
class LinkBase:
    """The base URL a link was resolved against."""
    resolved: Optional[URL] = None
    rebased: Optional[URL] = None


@dataclass
class LinkHtml:
    """Where, and in what element, a link was found."""
    index: Optional[int] = None
    offset_index: Optional[int] = None
    location: Optional[Dict[str, Union[int, str]]] = None
    selector: Optional[str] = None
    tag_name: Optional[str] = None
    attr_name: Optional[str] = None
    attrs: Optional[Dict[str, str]] = None
    tag: Optional[str] = None
    text: Optional[str] = None
    base: Optional[str] = None


@dataclass
class LinkHttp:
    """The response received for a link."""
    response: Optional['SimpleResponse'] = None
    cached: Optional[bool] = None


@dataclass
class Link:
    """One discovered or enqueued reference and its check state."""
    url: LinkUrl = field(default_factory=LinkUrl)
    base: LinkBase = field(default_factory=LinkBase)
    html: LinkHtml = field(default_factory=LinkHtml)
    http: LinkHttp = field(default_factory=LinkHttp)
    internal: Optional[bool] = None
    same_page: Optional[bool] = None
    broken: Optional[bool] = None
    broken_reason: Optional[str] = None
    excluded: Optional[bool] = None
    excluded_reason: Optional[str] = None

    @classmethod
    def create(cls) -> 'Link':
        """Create an empty link."""
        return cls()

    def resolve(self, url: Optional[UrlLike], base_url: Optional[UrlLike] = None) -> 'Link':
        """
        Resolve ``url`` against ``base_url`` and, when the document declared
        one (``html.base``), against its ``<base href>`` as well.

        Args:
            url: The URL as found, either a string or a :class:`yarl.URL`
            base_url: The URL of the document the link was found in

        Returns:
            The same link, for chaining
        """
        self.url.original = None if url is None else str(url)

        self.base.resolved = parse_url(base_url)
        if self.html.base is not None:
            # The <base> value is itself relative to the document
            self.base.rebased = parse_url(self.html.base, self.base.resolved) or self.base.resolved
        else:
            self.base.rebased = self.base.resolved

        self.url.resolved = parse_url(url, self.base.resolved)
        self.url.rebased = parse_url(url, self.base.rebased)

        self._relate(self.url.rebased)
        return self

    def redirect(self, url: UrlLike) -> 'Link':
        """Record the final URL after HTTP redirects and re-evaluate locality."""
        self.url.redirected = parse_url(url)
        self._relate(self.url.redirected)
        return self

    def _relate(self, target: Optional[URL]):
        page = self.base.resolved

        if target is None or page is None:
            self.internal = False
            self.same_page = False
            return

        self.internal = origin(target) == origin(page)

        # A fragment-only difference is still the same page
        self.same_page = (
            self.internal and
            target.raw_path == page.raw_path and
            target.raw_query_string == page.raw_query_string
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        def href(value):
            return None if value is None else str(value)

        response = self.http.response
        return {
            'url': {
                'original': self.url.original,
                'resolved': href(self.url.resolved),
                'rebased': href(self.url.rebased),
                'redirected': href(self.url.redirected),
            },
            'base': {
                'resolved': href(self.base.resolved),
                'rebased': href(self.base.rebased),
            },
            'html': {
                'index': self.html.index,
                'offset_index': self.html.offset_index,
                'location': self.html.location,
                'selector': self.html.selector,
                'tag_name': self.html.tag_name,
                'attr_name': self.html.attr_name,
                'attrs': self.html.attrs,
                'tag': self.html.tag,
                'text': self.html.text,
                'base': self.html.base,
            },
            'http': {
                'cached': self.http.cached,
                'response': None if response is None else response.to_dict(),
            },
            'internal': self.internal,
            'same_page': self.same_page,
            'broken': self.broken,
            'broken_reason': self.broken_reason,
            'excluded': self.excluded,
            'excluded_reason': self.excluded_reason,
        }


def is_link(obj: Any) -> bool:
    """Tell an already-built :class:`Link` apart from raw URL input."""
    return isinstance(obj, Link)
