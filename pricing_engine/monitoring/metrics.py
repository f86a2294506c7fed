"""
Prometheus Metrics

Defines and exports metrics for the quote API and the jobs worker.
"""

from prometheus_client import Counter, Histogram
import structlog

logger = structlog.get_logger()

# Singleton metrics instance
_metrics: "Metrics | None" = None


class Metrics:
    """
    Prometheus metrics for the pricing engine.

    Tracks:
    - Jobs consumed from the channel, by type and outcome
    - Job handler duration
    - Quotes created / failed per commit
    - Callback deliveries
    - Record store read retries
    """

    def __init__(self):
        """Initialize Prometheus metrics."""
        self.jobs_total = Counter(
            "pricing_engine_jobs_total",
            "Total jobs consumed from the jobs channel",
            ["job_type", "outcome"],
        )

        self.job_duration_seconds = Histogram(
            "pricing_engine_job_duration_seconds",
            "Job handler duration in seconds",
            ["job_type"],
            buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
        )

        self.quotes_total = Counter(
            "pricing_engine_quotes_total",
            "Quotes processed by commit outcome",
            ["path", "outcome"],
        )

        self.callbacks_total = Counter(
            "pricing_engine_callbacks_total",
            "Callback deliveries by outcome",
            ["outcome"],
        )

        self.query_retries_total = Counter(
            "pricing_engine_query_retries_total",
            "Record store read retries by reason",
            ["reason"],
        )

    def track_job(self, job_type: str, outcome: str, duration: float | None = None) -> None:
        """Track a consumed job."""
        self.jobs_total.labels(job_type=job_type, outcome=outcome).inc()
        if duration is not None:
            self.job_duration_seconds.labels(job_type=job_type).observe(duration)

    def track_quotes(self, path: str, succeeded: int, failed: int) -> None:
        """Track quote outcomes for the sync or batch path."""
        if succeeded:
            self.quotes_total.labels(path=path, outcome="created").inc(succeeded)
        if failed:
            self.quotes_total.labels(path=path, outcome="failed").inc(failed)

    def track_callback(self, outcome: str) -> None:
        self.callbacks_total.labels(outcome=outcome).inc()

    def track_query_retry(self, reason: str) -> None:
        self.query_retries_total.labels(reason=reason).inc()


def get_metrics() -> Metrics:
    """Get or create the singleton metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = Metrics()
    return _metrics
