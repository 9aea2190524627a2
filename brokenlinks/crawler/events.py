"""
Observer interface shared by every checker.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)

Callback = Optional[Callable[..., Any]]


@dataclass
class Handlers:
    """
    Named callback slots, one per signal. Unset slots are ignored.

    Each checker documents the arguments it passes to the slots it uses;
    ``filter_link`` is the only slot whose return value is read (a reason
    string excludes the link).
    """
    link: Callback = None
    junk: Callback = None
    html: Callback = None
    page: Callback = None
    site: Callback = None
    robots: Callback = None
    complete: Callback = None
    end: Callback = None
    filter_link: Callback = None

    def emit(self, signal: str, *args) -> Any:
        """Call the ``signal`` slot, if set, and return its result."""
        callback = getattr(self, signal)
        if callback is None:
            return None

        try:
            return callback(*args)
        except Exception as e:
            logger.exception(f"Error in {signal!r} handler: {e}")
            return None
