"""
brokenlinks

Find broken links in HTML documents, web pages and whole sites.
"""

__version__ = "1.0.0"
__description__ = "Asynchronous broken link checker and site crawler"

from .crawler.events import Handlers
from .crawler.html_checker import HtmlChecker
from .crawler.html_url_checker import HtmlUrlChecker
from .crawler.link import Link
from .crawler.reasons import REASONS
from .crawler.site_checker import SiteChecker
from .crawler.url_checker import UrlChecker
from .utils.config import CheckerOptions

__all__ = [
    'Handlers', 'Link', 'REASONS', 'CheckerOptions',
    'UrlChecker', 'HtmlChecker', 'HtmlUrlChecker', 'SiteChecker'
]
