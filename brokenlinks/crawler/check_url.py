"""
Check a single link, using the response cache to avoid duplicate requests.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Union, TYPE_CHECKING
from yarl import URL

from .errors import RequestError
from .fetcher import HttpClient, SimpleResponse
from .link import Link, origin
from .reasons import REASONS
from ..storage.url_cache import UrlCache, url_key

if TYPE_CHECKING:
    from ..utils.config import CheckerOptions


logger = logging.getLogger(__name__)

Outcome = Union[SimpleResponse, RequestError]


def is_redirect(response_url: URL, url: URL) -> bool:
    """
    Whether ``response_url`` is a different resource than ``url``.

    Only scheme, host, port and path are compared, so a response that differs
    in its query or fragment alone does not count as a redirect.
    """
    return origin(response_url) != origin(url) or response_url.path != url.path


def copy_response_data(response: Outcome, link: Link, options: 'CheckerOptions'):
    """Copy a response (or transport error), fresh or cached, into ``link``."""
    if isinstance(response, SimpleResponse):
        if response.status < 200 or response.status > 299:
            link.broken = True
            link.broken_reason = f"HTTP_{response.status}"
        else:
            link.broken = False

        # Cached snapshots are shared between links
        link.http.response = response.clone() if options.cache_responses else response

        if is_redirect(response.url, link.url.rebased):
            link.redirect(response.url)
    else:
        link.broken = True

        reason = f"ERRNO_{response.code}"
        link.broken_reason = reason if response.code and reason in REASONS else 'BLC_UNKNOWN'


async def _settle(value) -> Outcome:
    if isinstance(value, asyncio.Future):
        # Shielded so that one cancelled waiter does not cancel the others
        return await asyncio.shield(value)
    return value


def _cache_outcome(response: SimpleResponse, url: URL, cache: UrlCache):
    if url_key(response.url) != url_key(url):
        cache.set(response.url, response)

    # Each hop resolves to the same final response, seen from that hop onwards
    for index, hop in enumerate(response.redirects):
        if cache.get(hop.url) is None:
            cache.set(hop.url, replace(response, redirects=response.redirects[index:]))


async def _check_http_url(link: Link, client: HttpClient, cache: UrlCache,
                          options: 'CheckerOptions') -> Link:
    url = link.url.rebased

    future = None
    if options.cache_responses:
        # Visible to concurrent lookups before the request settles
        future = asyncio.get_running_loop().create_future()
        cache.set(url, future)

    try:
        result = await client.fetch(url, options.request_method)
        response: Outcome = result.response
    except RequestError as e:
        response = e
    except BaseException as e:
        if future is not None:
            future.set_result(RequestError(str(e) or type(e).__name__))
        raise

    if future is not None:
        if isinstance(response, SimpleResponse):
            _cache_outcome(response, url, cache)
        future.set_result(response)

    copy_response_data(response, link, options)
    link.http.cached = False
    return link


async def check_url(link: Link, client: HttpClient, cache: UrlCache,
                    options: 'CheckerOptions') -> Link:
    """
    Decide whether ``link`` is broken.

    Returns:
        The same link, with ``broken``, ``broken_reason`` and ``http`` filled in
    """
    url = link.url.rebased
    if url is None or url.scheme not in options.accepted_schemes:
        link.broken = True
        link.broken_reason = 'BLC_INVALID'
        return link

    if options.cache_responses:
        cached = cache.get(url)
        if cached is not None:
            response = await _settle(cached)
            copy_response_data(response, link, options)
            link.http.cached = True
            logger.debug(f"Cache hit for {url}")
            return link

    return await _check_http_url(link, client, cache, options)
