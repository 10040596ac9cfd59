"""Execution store: the process-wide registry of recovery executions.

Thread-safe keyed store with admission control per scenario and optional
eviction of finished executions.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from datetime import datetime, timedelta

from lifeboat.errors import ScenarioAlreadyRunningError
from lifeboat.types import RecoveryExecution

logger = logging.getLogger(__name__)


class ExecutionStore:
    """Id-keyed store of executions in insertion order.

    Admission is tracked separately from execution status: a scenario is
    "in flight" from ``admit`` until ``release``, whatever state the execution
    object ends up in.
    """

    def __init__(
        self,
        *,
        reject_concurrent: bool = True,
        max_finished: int | None = None,
    ) -> None:
        self.reject_concurrent = reject_concurrent
        self.max_finished = max_finished
        self._executions: dict[str, RecoveryExecution] = {}
        self._in_flight: dict[str, str] = {}  # scenario id -> execution id
        self._lock = threading.Lock()

    def admit(self, execution: RecoveryExecution) -> None:
        """Register an execution and mark its scenario in flight.

        Raises:
            ScenarioAlreadyRunningError: If the scenario is in flight and
                concurrent triggers are rejected
        """
        with self._lock:
            running = self._in_flight.get(execution.scenario_id)
            if running is not None and self.reject_concurrent:
                raise ScenarioAlreadyRunningError(execution.scenario_id, running)
            self._in_flight[execution.scenario_id] = execution.id
            self._executions[execution.id] = execution
            self._evict_locked()

    def release(self, execution: RecoveryExecution) -> None:
        """Mark the execution's scenario as no longer in flight."""
        with self._lock:
            if self._in_flight.get(execution.scenario_id) == execution.id:
                del self._in_flight[execution.scenario_id]

    def is_in_flight(self, scenario_id: str) -> bool:
        return scenario_id in self._in_flight

    def get(self, execution_id: str) -> RecoveryExecution | None:
        return self._executions.get(execution_id)

    def values(self) -> list[RecoveryExecution]:
        with self._lock:
            return list(self._executions.values())

    def __len__(self) -> int:
        return len(self._executions)

    def __iter__(self) -> Iterator[RecoveryExecution]:
        return iter(self.values())

    def prune(self, older_than: timedelta, now: datetime | None = None) -> int:
        """Drop finished executions that ended more than ``older_than`` ago.

        Returns:
            Number of executions removed
        """
        cutoff = (now or datetime.now()) - older_than
        with self._lock:
            stale = [
                e.id
                for e in self._executions.values()
                if self._is_finished(e) and e.end_time is not None and e.end_time < cutoff
            ]
            for execution_id in stale:
                del self._executions[execution_id]
        if stale:
            logger.info("Pruned %d finished executions", len(stale))
        return len(stale)

    def _is_finished(self, execution: RecoveryExecution) -> bool:
        if self._in_flight.get(execution.scenario_id) == execution.id:
            return False
        return execution.status.is_terminal or execution.end_time is not None

    def _evict_locked(self) -> None:
        if self.max_finished is None:
            return
        finished = [e.id for e in self._executions.values() if self._is_finished(e)]
        excess = len(finished) - self.max_finished
        for execution_id in finished[:max(excess, 0)]:
            del self._executions[execution_id]
            logger.debug("Evicted execution %s", execution_id)
