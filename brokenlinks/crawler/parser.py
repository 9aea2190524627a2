"""
HTML parsing and link scraping.
"""

import re
import logging
from html import escape
from typing import AsyncIterable, Dict, Iterator, List, Optional, Tuple, Union
from bs4 import BeautifulSoup, Tag

from .link import Link, UrlLike
from .robots import RobotDirectives
from .tags import MAX_FILTER_LEVEL, TAGS


logger = logging.getLogger(__name__)

HtmlSource = Union[str, bytes, AsyncIterable[Union[str, bytes]]]

# Every element/attribute pair any filter level recognizes
_ALL_TAGS = TAGS[MAX_FILTER_LEVEL]

# "5; url=next.html", "0;URL='next.html'", "3 next.html"
_META_REFRESH = re.compile(r"^\s*[\d.]*\s*[;,\s]\s*(?:url\s*=\s*|(?!url\s*=))(\S.*?)\s*$", re.IGNORECASE)

# Only one of each per document, so no :nth-child() is needed
_UNIQUE_ELEMENTS = frozenset({'html', 'head', 'body'})


async def parse_html(source: HtmlSource, parser: str = 'html5lib') -> BeautifulSoup:
    """
    Parse HTML into a tree.

    Args:
        source: A string, bytes, or an async iterable of string/bytes chunks
        parser: BeautifulSoup tree builder name (``html5lib`` or ``lxml``)

    Raises:
        TypeError: For any other kind of input
    """
    if isinstance(source, (str, bytes)):
        markup = source
    elif hasattr(source, '__aiter__'):
        chunks = [chunk async for chunk in source]
        if chunks and isinstance(chunks[0], bytes):
            markup = b''.join(chunks)
        else:
            markup = ''.join(chunks)
    else:
        raise TypeError(f"Invalid HTML input: {type(source).__name__}")

    # Keep attribute values such as rel="nofollow noopener" as plain strings
    return BeautifulSoup(markup, parser, multi_valued_attributes=None)


def walk(node: Tag) -> Iterator[Tag]:
    """Yield ``node`` and its descendant elements in document order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        children = [child for child in current.children if isinstance(child, Tag)]
        stack.extend(reversed(children))


def find_root(document: Tag) -> Optional[Tag]:
    """Find the ``<html>`` element (the first element child of the document)."""
    if not isinstance(document, BeautifulSoup):
        return document
    return next((child for child in document.children if isinstance(child, Tag)), None)


def find_preliminaries(root: Tag, robots: Optional[RobotDirectives]) -> Optional[str]:
    """
    Find the first ``<base href>`` value and feed robot ``<meta>`` elements
    into ``robots``. Both may appear anywhere in the document.
    """
    base = None

    for element in walk(root):
        if element.name == 'base':
            href = element.get('href')
            if base is None and href is not None:
                base = href.strip()

        elif element.name == 'meta' and robots is not None:
            name = element.get('name')
            content = element.get('content')
            if name is not None and content is not None:
                name = name.strip().lower()
                if name not in ('description', 'keywords'):
                    if name == 'robots' or RobotDirectives.is_bot(name):
                        robots.meta(name, content)

        if base is not None and robots is None:
            break

    return base


def parse_meta_refresh(content: str) -> Optional[str]:
    """Extract the URL from a ``<meta http-equiv="refresh">`` content value."""
    match = _META_REFRESH.match(content)
    if match is None:
        return None

    url = match.group(1)
    if len(url) >= 2 and url[0] in '"\'':
        url = url[1:-1] if url[-1] == url[0] else url[1:]

    return url.strip() or None


def parse_srcset(value: str) -> List[str]:
    """Extract the image candidate URLs of a ``srcset`` value."""
    urls = []
    position = 0
    length = len(value)

    while position < length:
        while position < length and (value[position].isspace() or value[position] == ','):
            position += 1
        if position >= length:
            break

        start = position
        while position < length and not value[position].isspace():
            position += 1
        url = value[start:position]

        if url.endswith(','):
            url = url.rstrip(',')
        else:
            # Skip the descriptors, which may contain commas inside parentheses
            depth = 0
            while position < length:
                char = value[position]
                if char == '(':
                    depth += 1
                elif char == ')':
                    depth -= 1
                elif char == ',' and depth <= 0:
                    break
                position += 1

        if url:
            urls.append(url)

    return urls


def _attr_urls(element: Tag, attr_name: str, value: str) -> List[str]:
    if attr_name == 'content':
        if element.name == 'meta' and element.get('http-equiv', '').strip().lower() == 'refresh':
            url = parse_meta_refresh(value)
            return [] if url is None else [url]
        return []

    if attr_name == 'ping':
        return [url.strip() for url in value.split(',') if url.strip()]

    if attr_name == 'srcset':
        return parse_srcset(value)

    # A valid URL potentially surrounded by spaces
    return [value.strip()]


def find_links(root: Tag) -> Iterator[Tuple[Tag, str, str]]:
    """Yield ``(element, attr_name, url)`` for every recognized link attribute."""
    for element in walk(root):
        attr_names = _ALL_TAGS.get(element.name)
        if attr_names is None:
            continue

        for attr_name, value in element.attrs.items():
            if attr_name in attr_names and value is not None:
                for url in _attr_urls(element, attr_name, value):
                    yield element, attr_name, url


def _nth_index(element: Tag) -> int:
    return 1 + sum(1 for sibling in element.previous_siblings if isinstance(sibling, Tag))


def get_selector(element: Tag) -> str:
    """Build a CSS selector that matches ``element``."""
    parts = []
    node = element

    while isinstance(node, Tag) and not isinstance(node, BeautifulSoup):
        name = node.name
        if name not in _UNIQUE_ELEMENTS:
            name += f":nth-child({_nth_index(node)})"
        parts.append(name)
        node = node.parent

    return ' > '.join(reversed(parts))


def get_text(element: Tag) -> Optional[str]:
    """Visible text of an element with whitespace condensed, None if it has no children."""
    if not element.contents:
        return None
    return ' '.join(element.get_text().split())


def get_location(element: Tag, attr_name: str) -> Optional[Dict[str, Union[int, str]]]:
    """
    Source position of the start tag holding a link attribute.

    Tree builders only record where an element starts, so the position is that
    of the tag, and ``attribute`` names the attribute the link was read from.
    None when the tree builder records no positions (lxml).
    """
    if element.sourceline is None:
        return None
    return {'line': element.sourceline, 'column': element.sourcepos, 'attribute': attr_name}


def stringify_tag(element: Tag) -> str:
    """Serialize an element's start tag."""
    attrs = ''.join(f' {name}="{escape(value, quote=True)}"' for name, value in element.attrs.items())
    return f"<{element.name}{attrs}>"


def scrape_html(document: Tag, page_url: Optional[UrlLike],
                robots: Optional[RobotDirectives] = None) -> List[Link]:
    """
    Scrape a parsed document for links, in document order.

    Args:
        document: Tree returned by :func:`parse_html`
        page_url: URL of the document, used to resolve relative links
        robots: Aggregate that robot ``<meta>`` directives are added to

    Returns:
        List of resolved (but not yet filtered or checked) links
    """
    root = find_root(document)
    if root is None:
        return []

    base = find_preliminaries(root, robots)
    links = []

    for element, attr_name, url in find_links(root):
        link = Link.create()
        link.html.attrs = dict(element.attrs)
        link.html.attr_name = attr_name
        link.html.base = base
        link.html.index = len(links)
        link.html.location = get_location(element, attr_name)
        link.html.selector = get_selector(element)
        link.html.tag = stringify_tag(element)
        link.html.tag_name = element.name
        link.html.text = get_text(element)

        link.resolve(url, page_url)
        links.append(link)

    logger.debug(f"Scraped {len(links)} links from {page_url}")
    return links
