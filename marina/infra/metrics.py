import logging

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)


class Metrics:
    def __init__(self, enabled: bool = False) -> None:
        self._configure(enabled)

    def _configure(self, enabled: bool) -> None:
        self.enabled = enabled
        self.registry = CollectorRegistry(auto_describe=True)
        if not enabled:
            self.payment_schedules = None
            self.payment_schedule_items = None
            self.payment_status_transitions = None
            self.bookings = None
            self.job_errors = None
            return

        self.payment_schedules = Counter(
            "payment_schedules_total",
            "Payment schedules by plan and result.",
            ["plan", "result"],
            registry=self.registry,
        )
        self.payment_schedule_items = Histogram(
            "payment_schedule_items",
            "Number of payment obligations per materialized schedule.",
            buckets=(1, 2, 3, 4, 6, 8, 12, 13),
            registry=self.registry,
        )
        self.payment_status_transitions = Counter(
            "payment_status_transitions_total",
            "Payment status changes by target status.",
            ["status"],
            registry=self.registry,
        )
        self.bookings = Counter(
            "bookings_total",
            "Booking lifecycle events by action.",
            ["action"],
            registry=self.registry,
        )
        self.job_errors = Counter(
            "job_errors_total",
            "Background job failures by job name.",
            ["job"],
            registry=self.registry,
        )

    def record_payment_schedule(self, plan: str, result: str, items: int | None = None) -> None:
        if not self.enabled or self.payment_schedules is None:
            return
        self.payment_schedules.labels(plan=plan or "unknown", result=result or "unknown").inc()
        if items is not None and self.payment_schedule_items is not None:
            self.payment_schedule_items.observe(max(0, items))

    def record_payment_status(self, status: str, count: int = 1) -> None:
        if not self.enabled or self.payment_status_transitions is None:
            return
        if count <= 0:
            return
        self.payment_status_transitions.labels(status=status).inc(count)

    def record_booking(self, action: str, count: int = 1) -> None:
        if not self.enabled or self.bookings is None:
            return
        if count <= 0:
            return
        self.bookings.labels(action=action).inc(count)

    def record_job_error(self, job: str) -> None:
        if not self.enabled or self.job_errors is None:
            return
        self.job_errors.labels(job=job).inc()

    def render(self) -> tuple[bytes, str]:
        if not self.enabled:
            return b"metrics_disabled 1\n", "text/plain; version=0.0.4"
        try:
            return generate_latest(self.registry), CONTENT_TYPE_LATEST
        except Exception:  # noqa: BLE001
            logger.exception("metrics_render_failed")
            return b"metrics_render_failed 1\n", "text/plain; version=0.0.4"


metrics = Metrics(enabled=False)


def configure_metrics(enabled: bool) -> Metrics:
    metrics._configure(enabled)
    return metrics
