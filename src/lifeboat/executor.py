"""Step executor: runs one recovery step through the command executor.

Each run appends an ExecutedStep to the execution's ledger before the command
is invoked, so failed steps are always recorded.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime

from lifeboat.config import ExecutorConfig, RetryConfig
from lifeboat.protocols import CommandExecutor
from lifeboat.types import ExecutedStep, RecoveryExecution, RecoveryStep, StepStatus

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 300_000

_DURATION_RE = re.compile(r"PT(\d+)([HMS])")
_UNIT_MS = {"H": 3_600_000, "M": 60_000, "S": 1_000}


def parse_timeout_ms(timeout: str | None, default_ms: int = DEFAULT_TIMEOUT_MS) -> int:
    """Parse the simplified duration notation ``PT<N><H|M|S>`` to milliseconds.

    Only the first number/unit pair is read. Anything unparseable yields
    ``default_ms``.

    Examples:
        >>> parse_timeout_ms("PT2H")
        7200000
        >>> parse_timeout_ms("not-a-duration")
        300000
    """
    if not timeout:
        return default_ms
    match = _DURATION_RE.search(timeout)
    if not match:
        return default_ms
    return int(match.group(1)) * _UNIT_MS[match.group(2)]


class StepExecutor:
    """Runs single steps and records them in the execution ledger.

    Steps marked ``retryable`` are re-invoked with backoff up to the attempt
    cap; all other steps fail on the first error.
    """

    def __init__(
        self,
        commands: CommandExecutor,
        config: ExecutorConfig | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        self.commands = commands
        self.config = config or ExecutorConfig()
        self.retry = retry or RetryConfig()

    async def run(
        self,
        step: RecoveryStep,
        execution: RecoveryExecution,
        *,
        rollback: bool = False,
    ) -> ExecutedStep:
        """Execute one step.

        Args:
            step: Step to run
            execution: Owning execution; receives the ledger entry
            rollback: Tag the ledger entry as a compensating step

        Returns:
            The completed ledger entry

        Raises:
            Exception: Whatever the command executor raised on the final attempt
        """
        timeout_ms = parse_timeout_ms(step.timeout, self.config.default_timeout_ms)
        executed = ExecutedStep(step=step, status=StepStatus.RUNNING, rollback=rollback)
        execution.steps.append(executed)

        max_attempts = self._max_attempts(step)
        attempt = 1
        while True:
            logger.info(
                "[%s] Executing %sstep %s (attempt %d/%d, timeout=%dms)",
                execution.id,
                "rollback " if rollback else "",
                step.name,
                attempt,
                max_attempts,
                timeout_ms,
            )
            try:
                output = await self.commands.execute(step.command, timeout_ms)
            except Exception as e:
                if attempt < max_attempts:
                    executed.status = StepStatus.RETRYING
                    executed.retry_count += 1
                    delay = self.retry.delay_seconds(attempt)
                    logger.warning(
                        "[%s] Step %s failed (%s); retrying in %.2fs",
                        execution.id,
                        step.name,
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)
                    executed.status = StepStatus.RUNNING
                    attempt += 1
                    continue

                executed.error = str(e)
                executed.status = StepStatus.FAILED
                executed.end_time = datetime.now()
                logger.error("[%s] Step %s failed: %s", execution.id, step.name, e)
                raise

            executed.output = output
            executed.status = StepStatus.COMPLETED
            executed.end_time = datetime.now()
            execution.metrics.steps_completed += 1
            logger.info("[%s] Step %s completed", execution.id, step.name)
            return executed

    def _max_attempts(self, step: RecoveryStep) -> int:
        if not step.retryable:
            return 1
        if step.max_attempts is not None:
            return max(1, step.max_attempts)
        return self.retry.max_attempts
