"""Lifeboat - Disaster Recovery Orchestration.

Runs declarative recovery procedures: dependency-ordered steps executed in
parallel levels, compensating rollback on failure, and post-recovery
validation.
"""

from lifeboat.config import LifeboatConfig, get_config, load_config, reset_config
from lifeboat.errors import (
    CircularDependencyError,
    CommandExecutionError,
    CommandTimeoutError,
    ConfigError,
    ErrorCode,
    LifeboatError,
    MissingDependencyError,
    RollbackExecutionError,
    ScenarioAlreadyRunningError,
    StepExecutionError,
    StepFailure,
    UnknownScenarioError,
    UnresolvableDependenciesError,
)
from lifeboat.orchestrator import DetectionReport, RecoveryOrchestrator
from lifeboat.protocols import CommandExecutor, DetectionProbe, NotificationSink, ScenarioSource
from lifeboat.registry import ScenarioRegistry
from lifeboat.scheduler import DependencyScheduler
from lifeboat.store import ExecutionStore
from lifeboat.types import (
    DetectionKind,
    DetectionRule,
    DisasterScenario,
    ExecutedStep,
    RecoveryExecution,
    RecoveryMetrics,
    RecoveryProcedure,
    RecoveryStatus,
    RecoveryStep,
    RollbackPlan,
    Severity,
    StepStatus,
    TriggerSource,
    ValidationCheck,
    ValidationKind,
    ValidationResult,
)

__version__ = "0.1.0"

__all__ = [
    # Orchestration
    "RecoveryOrchestrator",
    "DetectionReport",
    "ScenarioRegistry",
    "DependencyScheduler",
    "ExecutionStore",
    # Collaborators
    "CommandExecutor",
    "NotificationSink",
    "ScenarioSource",
    "DetectionProbe",
    # Types
    "DisasterScenario",
    "RecoveryProcedure",
    "RecoveryStep",
    "ValidationCheck",
    "DetectionRule",
    "DetectionKind",
    "ValidationKind",
    "Severity",
    "TriggerSource",
    "RecoveryExecution",
    "ExecutedStep",
    "RecoveryMetrics",
    "RollbackPlan",
    "RecoveryStatus",
    "StepStatus",
    "ValidationResult",
    # Errors
    "LifeboatError",
    "ErrorCode",
    "UnknownScenarioError",
    "UnresolvableDependenciesError",
    "CircularDependencyError",
    "MissingDependencyError",
    "StepExecutionError",
    "StepFailure",
    "RollbackExecutionError",
    "ScenarioAlreadyRunningError",
    "CommandExecutionError",
    "CommandTimeoutError",
    "ConfigError",
    # Config
    "LifeboatConfig",
    "get_config",
    "load_config",
    "reset_config",
]
