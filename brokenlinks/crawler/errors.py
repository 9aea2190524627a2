"""
Exception types raised or reported by the checkers.
"""

from typing import Optional

from .reasons import HTML_RETRIEVAL, expected_html


class LinkCheckerError(Exception):
    """Base class for all checker errors."""


class InvalidUrlError(LinkCheckerError, ValueError):
    """Raised synchronously when a caller enqueues a malformed absolute URL."""

    def __init__(self, url):
        self.url = url
        super().__init__(f"Invalid URL: {url!r}")


class RequestError(LinkCheckerError):
    """
    A transport-level failure (refused connection, DNS failure, timeout...).

    ``code`` is an errno-style name such as ``ECONNREFUSED`` when the failure
    could be identified, otherwise None.
    """

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        super().__init__(message)


class HtmlRetrievalError(LinkCheckerError):
    """The page responded with a status outside of 200-299."""

    def __init__(self, status: int):
        self.code = status
        super().__init__(HTML_RETRIEVAL)


class ExpectedHtmlError(LinkCheckerError):
    """The page responded with a content-type other than text/html."""

    def __init__(self, content_type: Optional[str], status: int):
        self.content_type = content_type
        self.code = status
        super().__init__(expected_html(content_type))
