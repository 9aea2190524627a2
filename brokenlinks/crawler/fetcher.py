"""
HTTP transport over an owned aiohttp session.
"""

import asyncio
import errno
import logging
import re
import socket
import ssl
import aiohttp
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Union, TYPE_CHECKING
from aiohttp import ClientSession, ClientTimeout, ClientError
from yarl import URL

from .errors import ExpectedHtmlError, HtmlRetrievalError, LinkCheckerError, RequestError
from ..storage.url_cache import url_key

if TYPE_CHECKING:
    from ..storage.url_cache import UrlCache
    from ..utils.config import CheckerOptions


_ERRNO_PATTERN = re.compile(r'\[Errno (-?\d+)\]')


@dataclass
class SimpleResponse:
    """Snapshot of an HTTP response, detached from the connection."""
    url: URL
    status: int
    status_text: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    redirects: List['SimpleResponse'] = field(default_factory=list)

    @classmethod
    def from_response(cls, response: aiohttp.ClientResponse) -> 'SimpleResponse':
        """Simplify a response and each of the redirects that led to it."""
        simplified = cls._simplify(response)
        simplified.redirects = [cls._simplify(hop) for hop in response.history]
        return simplified

    @classmethod
    def _simplify(cls, response: aiohttp.ClientResponse) -> 'SimpleResponse':
        headers: Dict[str, str] = {}
        for name, value in response.headers.items():
            name = name.lower()
            # Repeated headers are combined, as an HTTP/1.1 proxy would
            headers[name] = f"{headers[name]}, {value}" if name in headers else value

        return cls(
            url=response.url,
            status=response.status,
            status_text=response.reason,
            headers=headers
        )

    def clone(self) -> 'SimpleResponse':
        """Deep copy, so that a cached snapshot cannot be mutated through a link."""
        return replace(
            self,
            headers=dict(self.headers),
            redirects=[redirect.clone() for redirect in self.redirects]
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'url': str(self.url),
            'status': self.status,
            'status_text': self.status_text,
            'headers': dict(self.headers),
            'redirects': [redirect.to_dict() for redirect in self.redirects]
        }


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    response: SimpleResponse
    body: Optional[str] = None
    encoding: Optional[str] = None


def error_code(error: BaseException) -> Optional[str]:
    """
    Identify a transport failure by its errno-style name.

    Returns:
        A name such as ``ECONNREFUSED``, ``ENOTFOUND`` or ``SSL``, or None
        when the failure is not recognized
    """
    if isinstance(error, asyncio.TimeoutError):
        return 'ETIMEDOUT'

    if isinstance(error, (aiohttp.ClientSSLError, ssl.SSLError)):
        return 'SSL'

    if isinstance(error, aiohttp.ServerDisconnectedError):
        return 'ECONNRESET'

    if isinstance(error, aiohttp.ClientConnectorError):
        os_error = error.os_error
        if isinstance(os_error, socket.gaierror):
            return 'EAI_AGAIN' if os_error.errno == socket.EAI_AGAIN else 'ENOTFOUND'
        if os_error.errno:
            return errno.errorcode.get(os_error.errno)

        # Happy-eyeballs failures wrap several errors without an errno
        match = _ERRNO_PATTERN.search(str(error))
        if match:
            return errno.errorcode.get(abs(int(match.group(1))))
        return None

    if isinstance(error, OSError) and error.errno:
        return errno.errorcode.get(error.errno)

    return None


def check_errors(response: SimpleResponse) -> Optional[LinkCheckerError]:
    """
    Return the error that prevents ``response`` from being scanned as HTML.

    A missing content-type is tolerated, since the header is optional.
    """
    if response.status < 200 or response.status > 299:
        return HtmlRetrievalError(response.status)

    content_type = response.headers.get('content-type')
    if content_type is not None and not content_type.strip().lower().startswith('text/html'):
        return ExpectedHtmlError(content_type, response.status)

    return None


class HttpClient:
    """
    Issues HEAD/GET requests through one lazily-created ``ClientSession``.

    The session and its connection pool belong to this object and are
    released by :meth:`close`.
    """

    def __init__(self, options: 'CheckerOptions'):
        self.options = options
        self.logger = logging.getLogger(__name__)

        self.session: Optional[ClientSession] = None

        # Statistics
        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'retried_405': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def start(self) -> ClientSession:
        """Initialize the session."""
        if self.session is None:
            timeout = ClientTimeout(total=self.options.request_timeout)
            headers = {'User-Agent': self.options.user_agent}

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                trust_env=True,
                connector=aiohttp.TCPConnector(
                    limit=self.options.max_sockets or 100,
                    limit_per_host=0,
                    ttl_dns_cache=300,
                    use_dns_cache=True,
                    ssl=False  # accept self-signed certificates
                )
            )
            self.logger.debug("HTTP session started")

        return self.session

    async def close(self):
        """Close the session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug("HTTP session closed")

    async def request(self, url: Union[str, URL], method: str = 'head',
                      read_body: Union[bool, Callable[[SimpleResponse], bool]] = False) -> FetchResult:
        """
        Request a URL, following redirects.

        Args:
            url: Absolute URL to request
            method: ``head`` or ``get``
            read_body: Whether to download the body of a GET response; a
                callable decides from the response snapshot

        Returns:
            FetchResult with the response snapshot and, if read, the body

        Raises:
            RequestError: On any transport failure
        """
        session = await self.start()
        method = method.lower()
        self.stats['total_requests'] += 1

        try:
            async with session.request(method.upper(), url, allow_redirects=True) as response:
                simplified = SimpleResponse.from_response(response)
                body = None
                encoding = None

                if method == 'get' and read_body:
                    if not callable(read_body) or read_body(simplified):
                        body = await self._read_content_safely(response)
                        encoding = response.charset

        except (ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            self.stats['failed_requests'] += 1
            code = error_code(e)
            self.logger.debug(f"{method.upper()} {url} failed ({code}): {e!r}")
            raise RequestError(str(e) or type(e).__name__, code) from e

        self.stats['successful_requests'] += 1
        self.logger.debug(f"{method.upper()} {url}: {simplified.status}")
        return FetchResult(response=simplified, body=body, encoding=encoding)

    async def fetch(self, url: Union[str, URL], method: str = 'head',
                    read_body: Union[bool, Callable[[SimpleResponse], bool]] = False) -> FetchResult:
        """Request a URL, retrying a refused HEAD once as GET when configured to."""
        result = await self.request(url, method, read_body)

        if (result.response.status == 405 and method.lower() == 'head' and
                self.options.retry_405_head):
            self.stats['retried_405'] += 1
            self.logger.debug(f"HEAD not allowed, retrying with GET: {url}")
            result = await self.request(url, 'get', read_body)

        return result

    async def _read_content_safely(self, response: aiohttp.ClientResponse) -> str:
        """
        Read response content with a size limit.

        Raises:
            RequestError: If the body is larger than ``max_content_size``
        """
        max_size = self.options.max_content_size

        content_length = response.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > max_size:
            self.logger.warning(f"Content too large ({content_length} bytes): {response.url}")
            raise RequestError(f"Content too large: {content_length} bytes")

        # Read content in chunks to respect size limit
        content_bytes = b''
        async for chunk in response.content.iter_chunked(8192):
            content_bytes += chunk
            if len(content_bytes) > max_size:
                self.logger.warning(f"Content exceeded size limit during reading: {response.url}")
                raise RequestError(f"Content exceeded {max_size} bytes")

        self.stats['total_bytes_downloaded'] += len(content_bytes)

        # Decode content
        encoding = response.charset or 'utf-8'
        try:
            return content_bytes.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            # Try common encodings
            for fallback_encoding in ['utf-8', 'cp1252']:
                try:
                    return content_bytes.decode(fallback_encoding)
                except UnicodeDecodeError:
                    continue

            # If all else fails, decode with errors ignored
            return content_bytes.decode('utf-8', errors='ignore')

    def get_stats(self) -> Dict[str, int]:
        """Get client statistics."""
        return self.stats.copy()


async def stream_html(url: URL, client: HttpClient, cache: 'UrlCache',
                      options: 'CheckerOptions') -> FetchResult:
    """
    GET a page for its HTML.

    With response caching enabled, a pending future is stored for ``url``
    before the request is sent and resolved to the response snapshot (or the
    transport error) afterwards; a redirected response is also stored under
    its final URL.

    Raises:
        RequestError: On transport failure
        HtmlRetrievalError: On a non-2xx status
        ExpectedHtmlError: On a non-HTML content-type
    """
    future: Optional[asyncio.Future] = None
    if options.cache_responses:
        future = asyncio.get_running_loop().create_future()
        cache.set(url, future)

    try:
        result = await client.request(url, 'get', read_body=lambda response: check_errors(response) is None)
    except Exception as e:
        if future is not None and not future.done():
            future.set_result(e if isinstance(e, RequestError) else RequestError(str(e)))
        raise

    response = result.response
    if future is not None:
        future.set_result(response)
        if url_key(response.url) != url_key(url):
            cache.set(response.url, response)

    error = check_errors(response)
    if error is not None:
        raise error

    return result
