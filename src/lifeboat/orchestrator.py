"""Recovery orchestrator: the state machine that supervises a recovery run.

Flow for one trigger:
1. Resolve the scenario and apply procedure overrides
2. Register the execution (admission control) and notify start
3. Plan dependency levels
4. Run levels with fork/join; abort on the first failing level
5. Validate on success, compensate on failure
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from lifeboat.config import LifeboatConfig, get_config
from lifeboat.errors import (
    LifeboatError,
    RollbackExecutionError,
    StepExecutionError,
    StepFailure,
    UnresolvableDependenciesError,
)
from lifeboat.executor import StepExecutor, parse_timeout_ms
from lifeboat.protocols import CommandExecutor, DetectionProbe, NotificationSink, ScenarioSource
from lifeboat.registry import ScenarioRegistry, merge_procedure
from lifeboat.rollback import RollbackEngine
from lifeboat.scenarios import (
    CROSS_REGION_FAILOVER_ID,
    cross_region_failover_scenario,
)
from lifeboat.scheduler import DependencyScheduler
from lifeboat.store import ExecutionStore
from lifeboat.types import (
    DisasterScenario,
    RecoveryExecution,
    RecoveryMetrics,
    RecoveryStatus,
    RecoveryStep,
    StepStatus,
    TriggerSource,
    ValidationResult,
)
from lifeboat.validator import CompletionValidator

logger = logging.getLogger(__name__)


@dataclass
class DetectionReport:
    """Outcome of one detect-and-respond sweep."""

    triggered: list[str] = field(default_factory=list)
    """Scenario ids whose detection rules fired."""

    executions: dict[str, RecoveryExecution] = field(default_factory=dict)
    """Recoveries that returned normally."""

    failures: dict[str, LifeboatError] = field(default_factory=dict)
    """Recoveries that raised, keyed by scenario id."""


class RecoveryOrchestrator:
    """Supervises disaster recoveries end to end.

    Example:
        orchestrator = RecoveryOrchestrator(ShellCommandExecutor())
        orchestrator.load_scenarios(YamlScenarioSource("scenarios.yaml"))
        execution = await orchestrator.trigger_recovery("region_outage")
    """

    def __init__(
        self,
        commands: CommandExecutor,
        *,
        notifiers: Sequence[NotificationSink] = (),
        registry: ScenarioRegistry | None = None,
        store: ExecutionStore | None = None,
        config: LifeboatConfig | None = None,
    ) -> None:
        self.config = config or get_config()
        self.registry = registry or ScenarioRegistry()
        self.store = store or ExecutionStore(
            reject_concurrent=self.config.orchestrator.reject_concurrent_triggers,
            max_finished=self.config.history.max_finished_executions,
        )
        self.notifiers = list(notifiers)
        self.scheduler = DependencyScheduler()
        self.step_executor = StepExecutor(commands, self.config.executor, self.config.retry)
        self.validator = CompletionValidator(
            commands, self.config.validation, self.config.executor
        )
        self.rollback = RollbackEngine(self.step_executor)

    # =========================================================================
    # Scenario management
    # =========================================================================

    def register_scenario(self, scenario: DisasterScenario) -> None:
        self.registry.register(scenario)

    def load_scenarios(self, source: ScenarioSource) -> int:
        """Register every scenario a source supplies.

        Returns:
            Number of scenarios registered
        """
        count = 0
        for scenario in source.load():
            self.registry.register(scenario)
            count += 1
        logger.info("Loaded %d disaster scenarios", count)
        return count

    # =========================================================================
    # Public operations
    # =========================================================================

    async def trigger_recovery(
        self,
        scenario_id: str,
        source: TriggerSource | str = TriggerSource.MANUAL,
        overrides: Mapping[str, Any] | None = None,
    ) -> RecoveryExecution:
        """Run a scenario's recovery procedure.

        Args:
            scenario_id: Registered scenario to recover
            source: manual or automatic
            overrides: Partial procedure; each field replaces the registered one.
                Only the forward steps are taken from the merged procedure;
                rollback steps and validations always come from the
                registered scenario.

        Returns:
            The execution, status COMPLETED or PARTIALLY_COMPLETED

        Raises:
            UnknownScenarioError: Before any execution object exists
            ScenarioAlreadyRunningError: A recovery for this scenario is in flight
            UnresolvableDependenciesError: Before any step runs
            StepExecutionError: A level failed; rollback (if any) already ran
        """
        scenario = self.registry.get(scenario_id)
        procedure = merge_procedure(scenario.procedure, overrides)

        execution = RecoveryExecution(
            id=_recovery_id(scenario_id),
            scenario=scenario,
            procedure=procedure,
            source=TriggerSource(source),
            metrics=RecoveryMetrics(
                steps_total=len(procedure.steps),
                estimated_rto_ms=_estimated_rto_ms(scenario),
            ),
        )
        self.store.admit(execution)
        logger.info(
            "Starting disaster recovery %s for scenario %s (%s)",
            execution.id,
            scenario.name,
            execution.source.value,
        )

        try:
            return await self._supervise(execution)
        finally:
            self.store.release(execution)

    def get_recovery_status(self, execution_id: str | None = None) -> list[RecoveryExecution]:
        """Return one execution by id, or all registered executions."""
        if execution_id is not None:
            execution = self.store.get(execution_id)
            return [execution] if execution else []
        return self.store.values()

    async def test_recovery_procedures(self) -> dict[str, ValidationResult]:
        """Dry-run every registered scenario.

        Checks that each step graph can be scheduled and runs the scenario's
        validations. No recovery step is executed.
        """
        logger.info("Testing disaster recovery procedures...")
        results: dict[str, ValidationResult] = {}

        for scenario in self.registry:
            issues: list[str] = []
            for label, steps in (
                ("step", scenario.procedure.steps),
                ("rollback step", scenario.procedure.rollback_steps),
            ):
                duplicates = _duplicate_names(steps)
                if duplicates:
                    issues.append(f"Duplicate {label} names: {', '.join(duplicates)}")
            try:
                self.scheduler.plan(scenario.procedure.steps)
            except UnresolvableDependenciesError as e:
                issues.append(str(e))

            verdict = await self.validator.validate(scenario.procedure.validations)
            issues.extend(verdict.issues)
            results[scenario.id] = ValidationResult(ok=not issues, issues=tuple(issues))

        return results

    async def detect_and_respond(self, probe: DetectionProbe) -> DetectionReport:
        """Evaluate detection rules and trigger recoveries automatically.

        A scenario fires when any of its rules evaluates true. Scenarios are
        handled one after another; a failed recovery is recorded in the report
        and does not stop the sweep.
        """
        report = DetectionReport()

        for scenario in self.registry:
            fired = False
            for rule in scenario.detection_rules:
                if await probe.evaluate(scenario, rule):
                    fired = True
                    break
            if not fired:
                continue

            logger.warning("Disaster scenario detected: %s", scenario.name)
            report.triggered.append(scenario.id)
            try:
                report.executions[scenario.id] = await self.trigger_recovery(
                    scenario.id, TriggerSource.AUTOMATIC
                )
            except LifeboatError as e:
                logger.error("Automatic recovery for %s failed: %s", scenario.id, e)
                report.failures[scenario.id] = e

        return report

    async def execute_cross_region_failover(
        self,
        target_region: str,
        primary_region: str = "us-central1",
    ) -> RecoveryExecution:
        """Fail the whole stack over to ``target_region``."""
        logger.info("Initiating cross-region failover to %s", target_region)
        self.registry.replace(cross_region_failover_scenario(target_region, primary_region))
        return await self.trigger_recovery(CROSS_REGION_FAILOVER_ID, TriggerSource.MANUAL)

    # =========================================================================
    # State machine
    # =========================================================================

    async def _supervise(self, execution: RecoveryExecution) -> RecoveryExecution:
        await self._notify("on_started", execution)
        procedure = execution.procedure

        try:
            levels = self.scheduler.plan(procedure.steps)
        except UnresolvableDependenciesError as e:
            logger.error("[%s] Cannot schedule procedure: %s", execution.id, e)
            execution.error = str(e)
            execution.end_time = datetime.now()
            _finalize_metrics(execution)
            await self._notify("on_failed", execution, e)
            raise

        try:
            await self._run_levels(execution, levels)
        except StepExecutionError as e:
            await self._fail(execution, e)
            raise

        verdict = await self.validator.validate(execution.scenario.procedure.validations)
        execution.end_time = datetime.now()

        if verdict.ok:
            execution.status = RecoveryStatus.COMPLETED
            _finalize_metrics(execution)
            logger.info("Disaster recovery completed successfully: %s", execution.id)
            await self._notify("on_succeeded", execution)
        else:
            execution.status = RecoveryStatus.PARTIALLY_COMPLETED
            execution.validation_issues = list(verdict.issues)
            _finalize_metrics(execution)
            logger.warning(
                "Disaster recovery partially completed: %s (%s)",
                execution.id,
                "; ".join(verdict.issues),
            )
            await self._notify("on_partial", execution, list(verdict.issues))

        return execution

    async def _run_levels(
        self,
        execution: RecoveryExecution,
        levels: list[list[RecoveryStep]],
    ) -> None:
        """Run levels in order; every step of a level settles before the next."""
        cap = self.config.orchestrator.max_parallel_steps
        semaphore = asyncio.Semaphore(cap) if cap else None

        for index, level in enumerate(levels):
            logger.info(
                "[%s] Level %d/%d: %s",
                execution.id,
                index + 1,
                len(levels),
                ", ".join(step.name for step in level),
            )
            results = await asyncio.gather(
                *(self._run_step(step, execution, semaphore) for step in level),
                return_exceptions=True,
            )

            failures: list[StepFailure] = []
            for step, result in zip(level, results, strict=True):
                if isinstance(result, Exception):
                    failures.append(StepFailure(step.name, result))
                elif isinstance(result, BaseException):
                    raise result

            if failures:
                raise StepExecutionError(index, failures, len(level))

    async def _run_step(
        self,
        step: RecoveryStep,
        execution: RecoveryExecution,
        semaphore: asyncio.Semaphore | None,
    ) -> None:
        if semaphore is None:
            await self.step_executor.run(step, execution)
            return
        async with semaphore:
            await self.step_executor.run(step, execution)

    async def _fail(self, execution: RecoveryExecution, error: StepExecutionError) -> None:
        logger.error("Disaster recovery failed: %s: %s", execution.id, error)
        execution.status = RecoveryStatus.FAILED
        execution.error = str(error)
        execution.end_time = datetime.now()

        if execution.scenario.procedure.rollback_steps:
            logger.info("Initiating rollback for recovery: %s", execution.id)
            try:
                await self.rollback.run(execution, reason=f"Recovery procedure failed: {error}")
            except RollbackExecutionError as rollback_error:
                # The original failure is what the caller sees
                error.rollback_error = rollback_error
                logger.error(
                    "Rollback failed for recovery %s: %s", execution.id, rollback_error
                )
            execution.end_time = datetime.now()

        _finalize_metrics(execution)
        await self._notify("on_failed", execution, error)

    async def _notify(self, event: str, execution: RecoveryExecution, *args: Any) -> None:
        """Deliver a lifecycle event to every sink; sink errors are logged only."""
        for sink in self.notifiers:
            handler = getattr(sink, event, None)
            if handler is None:
                continue
            try:
                result = handler(execution, *args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Notification %s failed for recovery %s", event, execution.id
                )


# =============================================================================
# Helpers
# =============================================================================


def _recovery_id(scenario_id: str) -> str:
    timestamp = datetime.now().isoformat().replace(":", "-").replace(".", "-")
    return f"recovery_{scenario_id}_{timestamp}_{uuid4().hex[:6]}"


def _estimated_rto_ms(scenario: DisasterScenario) -> int | None:
    if not scenario.estimated_rto:
        return None
    return parse_timeout_ms(scenario.estimated_rto, 0) or None


def _duplicate_names(steps: Sequence[RecoveryStep]) -> list[str]:
    seen: set[str] = set()
    duplicates: list[str] = []
    for step in steps:
        if step.name in seen and step.name not in duplicates:
            duplicates.append(step.name)
        seen.add(step.name)
    return duplicates


def _finalize_metrics(execution: RecoveryExecution) -> None:
    metrics = execution.metrics
    end = execution.end_time or datetime.now()
    duration_ms = int((end - execution.start_time).total_seconds() * 1000)
    metrics.total_duration_ms = duration_ms
    metrics.actual_rto_ms = duration_ms
    if metrics.estimated_rto_ms is not None:
        metrics.rto_met = duration_ms <= metrics.estimated_rto_ms

    completed = sum(
        1 for s in execution.forward_steps if s.status is StepStatus.COMPLETED
    )
    if metrics.steps_total:
        metrics.success_rate = completed / metrics.steps_total
    else:
        metrics.success_rate = 1.0 if execution.status is RecoveryStatus.COMPLETED else 0.0
