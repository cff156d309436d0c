from __future__ import annotations

import logging
from typing import Any, Protocol

from marina.infra.metrics import Metrics, metrics as default_metrics

logger = logging.getLogger(__name__)

DEPOSIT_RULE_RESOLVED = "deposit_rule_resolved"
DEPOSIT_RULE_AMBIGUOUS = "deposit_rule_ambiguous"
SCHEDULE_COMPUTED = "payment_schedule_computed"
SCHEDULE_VALIDATION_FAILED = "payment_schedule_validation_failed"
SCHEDULE_TOTAL_MISMATCH = "payment_schedule_total_mismatch"
SCHEDULE_MATERIALIZED = "payment_schedule_materialized"


class ScheduleObserver(Protocol):
    def emit(self, event: str, *, level: int = logging.INFO, **fields: Any) -> None: ...


class LoggingScheduleObserver:
    def __init__(self, log: logging.Logger | None = None, metrics: Metrics | None = None) -> None:
        self._logger = log or logger
        self._metrics = metrics or default_metrics

    def emit(self, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
        self._logger.log(level, event, extra={"extra": {"event": event, **fields}})
        plan = str(fields.get("plan") or "unknown")
        if event == SCHEDULE_MATERIALIZED:
            self._metrics.record_payment_schedule(plan, "created", items=fields.get("items"))
        elif event == SCHEDULE_VALIDATION_FAILED:
            self._metrics.record_payment_schedule(plan, "rejected")
        elif event == SCHEDULE_TOTAL_MISMATCH:
            self._metrics.record_payment_schedule(plan, "mismatch")


def default_observer() -> ScheduleObserver:
    return LoggingScheduleObserver()
