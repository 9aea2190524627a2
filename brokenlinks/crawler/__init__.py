"""
Link checking core components.
"""

from .errors import LinkCheckerError, InvalidUrlError, RequestError, HtmlRetrievalError, ExpectedHtmlError
from .events import Handlers
from .link import Link
from .url_checker import UrlChecker
from .html_checker import HtmlChecker
from .html_url_checker import HtmlUrlChecker
from .site_checker import SiteChecker

__all__ = [
    'LinkCheckerError', 'InvalidUrlError', 'RequestError', 'HtmlRetrievalError', 'ExpectedHtmlError',
    'Handlers', 'Link',
    'UrlChecker', 'HtmlChecker', 'HtmlUrlChecker', 'SiteChecker'
]
