"""Type definitions for the recovery engine.

Procedure definitions (steps, validations, scenarios) are frozen dataclasses:
once a scenario is registered it never changes. Execution ledgers
(ExecutedStep, RecoveryExecution, RollbackPlan) are mutable and owned by the
orchestrator, the step executor and the rollback engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Severity(Enum):
    """Scenario severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TriggerSource(Enum):
    """Who asked for the recovery."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"


class StepStatus(Enum):
    """Status of a single executed step."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    RETRYING = "retrying"


class RecoveryStatus(Enum):
    """Lifecycle status of a recovery execution.

    IN_PROGRESS is the only non-terminal state.
    """

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIALLY_COMPLETED = "partially_completed"
    ROLLED_BACK = "rolled_back"

    @property
    def is_terminal(self) -> bool:
        return self is not RecoveryStatus.IN_PROGRESS


class ValidationKind(Enum):
    """What a post-recovery validation checks."""

    DATA_INTEGRITY = "data_integrity"
    FUNCTIONAL = "functional"
    PERFORMANCE = "performance"


class DetectionKind(Enum):
    """How a detection rule decides a scenario is happening."""

    HEALTH_CHECK = "health_check"
    METRIC_THRESHOLD = "metric_threshold"
    ERROR_RATE = "error_rate"
    MANUAL_TRIGGER = "manual_trigger"


# =============================================================================
# Procedure definitions (immutable)
# =============================================================================


@dataclass(frozen=True, slots=True)
class RecoveryStep:
    """One command in a recovery procedure."""

    name: str
    """Unique within its procedure."""

    command: str
    """Opaque command handed to the command executor."""

    timeout: str = "PT5M"
    """Duration in PT<N><H|M|S> notation."""

    dependencies: tuple[str, ...] = ()
    """Names of steps that must complete before this one starts."""

    parallel_hint: bool = False
    """Descriptive only. Concurrency comes from the dependency topology."""

    retryable: bool = False
    """Whether a failed attempt may be re-invoked with backoff."""

    max_attempts: int | None = None
    """Per-step attempt cap; falls back to the retry config when None."""


@dataclass(frozen=True, slots=True)
class ValidationCheck:
    """A post-recovery check run by the completion validator."""

    name: str
    command: str
    kind: ValidationKind = ValidationKind.FUNCTIONAL
    threshold: Any = None
    """Expected measurements. Only compared when threshold enforcement is on."""


@dataclass(frozen=True, slots=True)
class RecoveryProcedure:
    """Declarative recovery procedure."""

    description: str = ""
    steps: tuple[RecoveryStep, ...] = ()
    rollback_steps: tuple[RecoveryStep, ...] = ()
    """Compensating steps, executed strictly in list order."""

    validations: tuple[ValidationCheck, ...] = ()

    @property
    def step_names(self) -> list[str]:
        return [s.name for s in self.steps]


@dataclass(frozen=True, slots=True)
class DetectionRule:
    """Condition under which a scenario triggers automatically."""

    kind: DetectionKind
    condition: Any = None
    threshold: float | None = None
    duration: str | None = None


@dataclass(frozen=True, slots=True)
class DisasterScenario:
    """A named disaster and the procedure that recovers from it."""

    id: str
    name: str
    procedure: RecoveryProcedure
    severity: Severity = Severity.HIGH
    description: str = ""
    estimated_rto: str = ""
    """Recovery Time Objective. Descriptive; never enforced."""

    estimated_rpo: str = ""
    """Recovery Point Objective. Descriptive; never enforced."""

    detection_rules: tuple[DetectionRule, ...] = ()


# =============================================================================
# Execution ledgers (mutable)
# =============================================================================


@dataclass(slots=True)
class ExecutedStep:
    """Ledger entry for one step, created when its execution begins."""

    step: RecoveryStep
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    status: StepStatus = StepStatus.PENDING
    output: str | None = None
    error: str | None = None
    retry_count: int = 0
    rollback: bool = False
    """True for compensating steps run by the rollback engine."""

    @property
    def duration_ms(self) -> int | None:
        if self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds() * 1000)


@dataclass(slots=True)
class RecoveryMetrics:
    """Counters and timings for one execution."""

    steps_total: int = 0
    steps_completed: int = 0
    total_duration_ms: int = 0
    actual_rto_ms: int = 0
    estimated_rto_ms: int | None = None
    rto_met: bool | None = None
    success_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "stepsTotal": self.steps_total,
            "stepsCompleted": self.steps_completed,
            "totalDuration": self.total_duration_ms,
            "actualRTO": self.actual_rto_ms,
            "estimatedRTO": self.estimated_rto_ms,
            "rtoMet": self.rto_met,
            "successRate": self.success_rate,
        }


@dataclass(slots=True)
class RollbackPlan:
    """Compensation attempt attached to a failed execution."""

    reason: str
    steps: tuple[RecoveryStep, ...]
    executed: bool = False
    success: bool = False
    error: str | None = None


@dataclass(slots=True)
class RecoveryExecution:
    """One supervised run of a scenario's procedure."""

    id: str
    scenario: DisasterScenario
    procedure: RecoveryProcedure
    """Effective procedure: the scenario's procedure with overrides applied."""

    source: TriggerSource = TriggerSource.MANUAL
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    status: RecoveryStatus = RecoveryStatus.IN_PROGRESS
    steps: list[ExecutedStep] = field(default_factory=list)
    metrics: RecoveryMetrics = field(default_factory=RecoveryMetrics)
    rollback_plan: RollbackPlan | None = None
    validation_issues: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def scenario_id(self) -> str:
        return self.scenario.id

    @property
    def forward_steps(self) -> list[ExecutedStep]:
        return [s for s in self.steps if not s.rollback]

    @property
    def rollback_steps(self) -> list[ExecutedStep]:
        return [s for s in self.steps if s.rollback]

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON export."""
        return {
            "id": self.id,
            "scenarioId": self.scenario.id,
            "source": self.source.value,
            "status": self.status.value,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat() if self.end_time else None,
            "steps": [
                {
                    "name": s.step.name,
                    "status": s.status.value,
                    "rollback": s.rollback,
                    "retryCount": s.retry_count,
                    "durationMs": s.duration_ms,
                    "output": s.output,
                    "error": s.error,
                }
                for s in self.steps
            ],
            "metrics": self.metrics.to_dict(),
            "rollbackPlan": (
                {
                    "reason": self.rollback_plan.reason,
                    "steps": [s.name for s in self.rollback_plan.steps],
                    "executed": self.rollback_plan.executed,
                    "success": self.rollback_plan.success,
                }
                if self.rollback_plan
                else None
            ),
            "validationIssues": list(self.validation_issues),
            "error": self.error,
        }


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Verdict of the completion validator."""

    ok: bool
    issues: tuple[str, ...] = ()
