"""
Monitoring and metrics collection for the probing engine.
"""

import time
import logging
from typing import Dict, Optional, Any

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, start_http_server


class ProbeMetrics:
    """Collects probe counters, mirrored into a Prometheus registry."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.registry = registry or CollectorRegistry()
        self.start_time = time.time()
        self.counts: Dict[str, int] = {
            'responses': 0,
            'retries': 0,
            'failures': 0,
            'filtered': 0,
            'written': 0,
        }

        self.responses_total = Counter(
            'reqprobe_responses_total',
            'HTTP responses received, by status class',
            ['status_class'],
            registry=self.registry
        )
        self.retries_total = Counter(
            'reqprobe_retries_total',
            'Send attempts that failed and were retried',
            registry=self.registry
        )
        self.failures_total = Counter(
            'reqprobe_failures_total',
            'Requests that exhausted every attempt',
            registry=self.registry
        )
        self.filtered_total = Counter(
            'reqprobe_filtered_total',
            'Responses suppressed by filters',
            registry=self.registry
        )
        self.written_total = Counter(
            'reqprobe_records_written_total',
            'Records written to the output sink',
            registry=self.registry
        )
        self.response_time = Histogram(
            'reqprobe_response_time_seconds',
            'Time until response headers were received',
            registry=self.registry
        )
        self.in_flight = Gauge(
            'reqprobe_in_flight_units',
            'Units of work currently executing',
            registry=self.registry
        )

    def start_server(self, port: int):
        """Start the Prometheus exporter."""
        start_http_server(port, registry=self.registry)
        self.logger.info(f"Prometheus metrics server started on port {port}")

    def record_response(self, status_code: int, elapsed: float):
        self.counts['responses'] += 1
        self.responses_total.labels(status_class=f"{status_code // 100}xx").inc()
        self.response_time.observe(elapsed)

    def record_retry(self):
        self.counts['retries'] += 1
        self.retries_total.inc()

    def record_failure(self):
        self.counts['failures'] += 1
        self.failures_total.inc()

    def record_filtered(self):
        self.counts['filtered'] += 1
        self.filtered_total.inc()

    def record_written(self):
        self.counts['written'] += 1
        self.written_total.inc()

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all counters."""
        runtime = time.time() - self.start_time
        return {
            'runtime_seconds': runtime,
            'counts': dict(self.counts),
            'responses_per_second': self.counts['responses'] / runtime if runtime > 0 else 0,
        }
