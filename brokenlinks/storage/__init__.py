"""
In-memory storage for response deduplication and visited pages.
"""

from .url_cache import UrlCache, url_key

__all__ = ['UrlCache', 'url_key']
