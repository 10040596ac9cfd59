"""Rollback engine: runs compensating steps after a failed forward run."""

from __future__ import annotations

import logging

from lifeboat.errors import RollbackExecutionError
from lifeboat.executor import StepExecutor
from lifeboat.types import RecoveryExecution, RecoveryStatus, RollbackPlan

logger = logging.getLogger(__name__)


class RollbackEngine:
    """Executes the registered scenario's ``rollback_steps`` strictly in list order.

    Unlike forward steps there is no dependency grouping. The first failing
    compensating step stops the rollback; the remaining ones never run.
    """

    def __init__(self, step_executor: StepExecutor) -> None:
        self.step_executor = step_executor

    async def run(
        self,
        execution: RecoveryExecution,
        reason: str = "Recovery procedure failed",
    ) -> RollbackPlan:
        """Compensate a failed execution.

        On success the plan is marked successful and the execution status
        becomes ROLLED_BACK.

        Raises:
            RollbackExecutionError: If a compensating step fails
        """
        plan = RollbackPlan(reason=reason, steps=execution.scenario.procedure.rollback_steps)
        execution.rollback_plan = plan
        plan.executed = True

        logger.info(
            "[%s] Executing rollback (%d steps): %s",
            execution.id,
            len(plan.steps),
            reason,
        )

        for step in plan.steps:
            try:
                await self.step_executor.run(step, execution, rollback=True)
            except Exception as e:
                plan.success = False
                plan.error = str(e)
                logger.error("[%s] Rollback failed at step %s: %s", execution.id, step.name, e)
                raise RollbackExecutionError(step.name, e) from e

        plan.success = True
        execution.status = RecoveryStatus.ROLLED_BACK
        logger.info("[%s] Rollback completed", execution.id)
        return plan
