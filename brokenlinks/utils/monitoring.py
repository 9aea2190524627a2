"""
Prometheus metrics for link checking.
"""

import time
import logging
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server


class MetricsCollector:
    """Counts checked links, pages and sites."""

    def __init__(self, enable_prometheus: bool = False, prometheus_port: int = 8000,
                 registry: Optional[CollectorRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.enable_prometheus = enable_prometheus
        self.prometheus_port = prometheus_port
        self.start_time = time.time()

        self.registry = registry or CollectorRegistry()

        self.links_total = Counter(
            'brokenlinks_links_total',
            'Links checked, by outcome',
            ['outcome'],
            registry=self.registry
        )
        self.broken_links_total = Counter(
            'brokenlinks_broken_links_total',
            'Broken links, by reason',
            ['reason'],
            registry=self.registry
        )
        self.excluded_links_total = Counter(
            'brokenlinks_excluded_links_total',
            'Excluded links, by reason',
            ['reason'],
            registry=self.registry
        )
        self.pages_total = Counter(
            'brokenlinks_pages_total',
            'Pages checked, by outcome',
            ['outcome'],
            registry=self.registry
        )
        self.sites_total = Counter(
            'brokenlinks_sites_total',
            'Sites crawled',
            registry=self.registry
        )
        self.queued_links = Gauge(
            'brokenlinks_queued_links',
            'Links waiting to be checked',
            registry=self.registry
        )

        # Plain counters for the summary
        self.counts = {
            'links': 0,
            'broken': 0,
            'cached': 0,
            'excluded': 0,
            'pages': 0,
            'pages_failed': 0,
            'sites': 0
        }

    def start_prometheus_server(self):
        """Start Prometheus metrics HTTP server."""
        if not self.enable_prometheus:
            return

        try:
            start_http_server(self.prometheus_port, registry=self.registry)
            self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def record_link(self, link, queued: int = 0):
        """Record a checked link."""
        self.counts['links'] += 1
        if link.http.cached:
            self.counts['cached'] += 1

        if link.broken:
            self.counts['broken'] += 1
            self.links_total.labels(outcome='broken').inc()
            self.broken_links_total.labels(reason=link.broken_reason or 'BLC_UNKNOWN').inc()
        else:
            self.links_total.labels(outcome='ok').inc()

        self.queued_links.set(queued)

    def record_junk(self, link):
        """Record an excluded link."""
        self.counts['excluded'] += 1
        self.excluded_links_total.labels(reason=link.excluded_reason).inc()

    def record_page(self, error: Optional[Exception]):
        """Record a completed page."""
        self.counts['pages'] += 1
        if error is not None:
            self.counts['pages_failed'] += 1
            self.pages_total.labels(outcome='failed').inc()
        else:
            self.pages_total.labels(outcome='ok').inc()

    def record_site(self):
        """Record a completed site."""
        self.counts['sites'] += 1
        self.sites_total.inc()

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        runtime = time.time() - self.start_time

        return {
            'runtime_seconds': runtime,
            'counts': dict(self.counts),
            'rates': {
                'links_per_second': self.counts['links'] / runtime if runtime > 0 else 0,
            }
        }
