"""
Logging utilities for the link checker command line.
"""

import logging
import logging.handlers
import json
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING
from datetime import datetime, timezone

if TYPE_CHECKING:
    from .config import LoggingConfig


# Record attributes set through LinkLogAdapter
LINK_FIELDS = ('url', 'page_url', 'reason', 'event_type')

# Libraries whose own logging drowns out the link report
NOISY_LIBRARIES = ('aiohttp', 'asyncio', 'html5lib', 'chardet')


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'location': f"{record.module}:{record.funcName}:{record.lineno}"
        }

        for key in LINK_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class LinkLogAdapter(logging.LoggerAdapter):
    """Logger adapter that attaches link and page context to records."""

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs

    def log_link(self, link, page_url: Optional[str] = None):
        """Broken links are warnings, working ones only show up at debug level."""
        if link.broken:
            level, event_type, label = logging.WARNING, 'broken_link', 'BROKEN'
        else:
            level, event_type, label = logging.DEBUG, 'link', 'OK'

        self.log(level, f"{label} {link.url.original} ({link.broken_reason})", extra={
            'url': link.url.original,
            'page_url': page_url,
            'reason': link.broken_reason,
            'event_type': event_type
        })

    def log_page(self, error: Optional[Exception], page_url: str):
        extra = {'url': page_url, 'event_type': 'page'}
        if error is None:
            self.info(f"Page {page_url} checked", extra=extra)
        else:
            self.error(f"Page {page_url} could not be checked: {error}", extra=extra)


class LibraryNoiseFilter(logging.Filter):
    """Drop records from third-party loggers below WARNING."""

    def __init__(self, libraries: Iterable[str] = NOISY_LIBRARIES):
        super().__init__()
        self.prefixes = tuple(libraries)

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.WARNING or not record.name.startswith(self.prefixes)


def _build_handlers(config: 'LoggingConfig') -> List[logging.Handler]:
    # stdout is reserved for the link report
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(config.level.upper())
    handlers: List[logging.Handler] = [console]

    if config.file:
        log_file = Path(config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        rotating = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=20 * 1024 * 1024,
            backupCount=3,
            encoding='utf-8'
        )
        rotating.setLevel(logging.DEBUG)
        handlers.append(rotating)

    return handlers


def setup_logging(config: 'LoggingConfig', filter_libraries: bool = True) -> logging.Logger:
    """
    Configure the root logger from the ``logging`` section of the configuration.

    Console output goes to stderr at the configured level; the log file, when
    one is configured, receives everything from DEBUG up.

    Returns:
        The root logger
    """
    formatter = JSONFormatter() if config.json else logging.Formatter(config.format)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG if config.file else config.level.upper())

    for handler in _build_handlers(config):
        handler.setFormatter(formatter)
        if filter_libraries:
            handler.addFilter(LibraryNoiseFilter())
        root_logger.addHandler(handler)

    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.debug(f"Logging to {config.file or 'stderr only'} at {config.level} (json={config.json})")
    return root_logger


def get_link_logger(name: str, **extra_context) -> LinkLogAdapter:
    """Get a logger whose records carry ``extra_context`` plus per-call link fields."""
    return LinkLogAdapter(logging.getLogger(name), extra_context)


def log_system_info():
    """Log the interpreter and host the checker runs on."""
    import platform
    import psutil

    logger = logging.getLogger(__name__)

    memory_gb = psutil.virtual_memory().total / 1024 ** 3
    logger.debug(f"Python {platform.python_version()} on {platform.platform()}, "
                 f"{psutil.cpu_count()} CPUs, {memory_gb:.1f} GB memory")
