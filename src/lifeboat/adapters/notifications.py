"""Notification sink that reports recovery lifecycle events as log records."""

from __future__ import annotations

import logging

from lifeboat.types import RecoveryExecution

logger = logging.getLogger(__name__)


class LoggingNotificationSink:
    """Writes each lifecycle event to a logger (``lifeboat.notifications`` by default)."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logging.getLogger("lifeboat.notifications")

    def on_started(self, execution: RecoveryExecution) -> None:
        self.log.info(
            "Disaster recovery started: %s (scenario=%s, severity=%s, source=%s)",
            execution.id,
            execution.scenario.name,
            execution.scenario.severity.value,
            execution.source.value,
        )

    def on_succeeded(self, execution: RecoveryExecution) -> None:
        self.log.info(
            "Disaster recovery completed: %s (%d/%d steps, %dms)",
            execution.id,
            execution.metrics.steps_completed,
            execution.metrics.steps_total,
            execution.metrics.total_duration_ms,
        )

    def on_partial(self, execution: RecoveryExecution, issues: list[str]) -> None:
        self.log.warning(
            "Disaster recovery partially completed: %s: %s",
            execution.id,
            "; ".join(issues),
        )

    def on_failed(self, execution: RecoveryExecution, error: BaseException) -> None:
        rolled_back = execution.rollback_plan is not None and execution.rollback_plan.success
        self.log.error(
            "Disaster recovery failed: %s: %s%s",
            execution.id,
            error,
            " (rolled back)" if rolled_back else "",
        )
