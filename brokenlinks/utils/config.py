"""
Configuration management for the link checkers.
"""

import yaml
import logging
from pathlib import Path
from typing import Any, FrozenSet, Iterable, Mapping, Optional, Tuple
from dataclasses import dataclass, field, fields

from .. import __version__


DEFAULT_USER_AGENT = f"brokenlinks/{__version__} (+python aiohttp)"

# camelCase names accepted for compatibility with option bags written for
# other link checkers
_ALIASES = {
    'acceptedSchemes': 'accepted_schemes',
    'excludedSchemes': 'excluded_schemes',
    'excludedKeywords': 'excluded_keywords',
    'excludeExternalLinks': 'exclude_external_links',
    'excludeInternalLinks': 'exclude_internal_links',
    'excludeLinksToSamePage': 'exclude_links_to_same_page',
    'filterLevel': 'filter_level',
    'honorRobotExclusions': 'honor_robot_exclusions',
    'cacheResponses': 'cache_responses',
    'cacheExpiryTime': 'cache_expiry_time',
    'maxSockets': 'max_sockets',
    'maxSocketsPerHost': 'max_sockets_per_host',
    'rateLimit': 'rate_limit',
    'requestMethod': 'request_method',
    'retry405Head': 'retry_405_head',
    'userAgent': 'user_agent',
    'requestTimeout': 'request_timeout',
    'maxContentSize': 'max_content_size',
    'htmlParser': 'html_parser',
}


def _schemes(values: Iterable[str]) -> FrozenSet[str]:
    """Normalize schemes to lower case without a trailing colon."""
    if isinstance(values, str):
        values = [values]
    return frozenset(value.strip().lower().rstrip(':') for value in values)


@dataclass(frozen=True)
class CheckerOptions:
    """Immutable, validated options shared by every checker layer."""
    accepted_schemes: FrozenSet[str] = frozenset({'http', 'https'})
    excluded_schemes: FrozenSet[str] = frozenset({'data', 'geo', 'javascript', 'mailto', 'sms', 'tel'})
    excluded_keywords: Tuple[str, ...] = ()
    exclude_external_links: bool = False
    exclude_internal_links: bool = False
    exclude_links_to_same_page: bool = True
    filter_level: int = 1
    honor_robot_exclusions: bool = True
    cache_responses: bool = True
    cache_expiry_time: float = 3600.0
    max_sockets: Optional[int] = None
    max_sockets_per_host: Optional[int] = 1
    rate_limit: float = 0.0
    request_method: str = 'head'
    retry_405_head: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = 30.0
    max_content_size: int = 10 * 1024 * 1024
    html_parser: str = 'html5lib'

    def __post_init__(self):
        # Frozen: normalized values are written through object.__setattr__
        object.__setattr__(self, 'accepted_schemes', _schemes(self.accepted_schemes))
        object.__setattr__(self, 'excluded_schemes', _schemes(self.excluded_schemes))
        if isinstance(self.excluded_keywords, str):
            object.__setattr__(self, 'excluded_keywords', (self.excluded_keywords,))
        else:
            object.__setattr__(self, 'excluded_keywords', tuple(self.excluded_keywords))
        object.__setattr__(self, 'request_method', str(self.request_method).lower())
        object.__setattr__(self, 'html_parser', str(self.html_parser).lower())

        self._validate()

    def _validate(self):
        """Validate option values."""
        if self.filter_level not in (0, 1, 2, 3):
            raise ValueError("filter_level must be 0, 1, 2 or 3")

        if self.request_method not in ('head', 'get'):
            raise ValueError("request_method must be 'head' or 'get'")

        if self.cache_expiry_time < 0:
            raise ValueError("cache_expiry_time must be non-negative")

        if self.rate_limit < 0:
            raise ValueError("rate_limit must be non-negative")

        if self.max_sockets is not None and self.max_sockets < 1:
            raise ValueError("max_sockets must be at least 1")

        if self.max_sockets_per_host is not None and self.max_sockets_per_host < 1:
            raise ValueError("max_sockets_per_host must be at least 1")

        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

        if self.html_parser not in ('html5lib', 'lxml'):
            raise ValueError("html_parser must be 'html5lib' or 'lxml'")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]] = None) -> 'CheckerOptions':
        """
        Create options from a mapping of snake_case or camelCase keys.

        Raises:
            ValueError: For unknown keys or invalid values
        """
        if data is None:
            return cls()

        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown option: {key}")
            kwargs[name] = value

        return cls(**kwargs)

    def replace(self, **changes) -> 'CheckerOptions':
        """Return a copy with some options changed."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(changes)
        return CheckerOptions(**values)


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = 'INFO'
    file: str = 'logs/brokenlinks.log'
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class Config:
    """Main configuration class."""
    checker: CheckerOptions = field(default_factory=CheckerOptions)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            config_data = yaml.safe_load(file) or {}

        if not isinstance(config_data, dict):
            raise ValueError(f"Configuration file must contain a mapping: {self.config_path}")

        self._config = Config(
            checker=CheckerOptions.from_dict(config_data.get('checker') or {}),
            logging=LoggingConfig(**(config_data.get('logging') or {})),
            monitoring=MonitoringConfig(**(config_data.get('monitoring') or {}))
        )

        self._validate_config()
        return self._config

    def _validate_config(self):
        """Validate configuration values."""
        if not self._config:
            raise ValueError("Configuration not loaded")

        level = self._config.logging.level.upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f"Unknown logging level: {self._config.logging.level}")

        if not 0 < self._config.monitoring.prometheus_port < 65536:
            raise ValueError("prometheus_port must be a valid TCP port")

        logging.getLogger(__name__).debug("Configuration validation passed")

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()
