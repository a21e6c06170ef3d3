"""Self-monitoring metrics for the writer."""
from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server
import logging

logger = logging.getLogger(__name__)

OUTCOME_SUCCESS = "success"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_ERROR = "error"


class WriterMetrics:
    """Counters and timings for remote writes."""

    def __init__(self, registry=None, prefix="rulewriter_"):
        if registry is None:
            # Use a custom registry to avoid exporting default Python/process metrics
            registry = CollectorRegistry()
        self.registry = registry

        self.writes_total = Counter(
            f"{prefix}writes_total",
            "Total number of remote write calls by outcome",
            ["outcome"],
            registry=registry
        )

        self.points_written_total = Counter(
            f"{prefix}points_written_total",
            "Total number of points sent to the remote write endpoint",
            registry=registry
        )

        self.write_duration_seconds = Histogram(
            f"{prefix}write_duration_seconds",
            "Duration of remote write calls in seconds",
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=registry
        )

    def record_write(self, outcome: str, points: int, duration: float):
        """Record the outcome of one write call."""
        self.writes_total.labels(outcome=outcome).inc()
        if outcome != OUTCOME_ERROR:
            self.points_written_total.inc(points)
        self.write_duration_seconds.observe(duration)

    def serve(self, port: int, addr: str = "0.0.0.0"):
        """Expose the registry over HTTP."""
        start_http_server(port, addr=addr, registry=self.registry)
        logger.info(f"Self-metrics listening on {addr}:{port}/metrics")
