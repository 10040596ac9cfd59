"""Lifeboat error system.

Provides structured error handling with:
- Numeric error codes for programmatic handling
- User-friendly messages
- Recovery hints for operators
- Context for debugging
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Numeric error codes organized by category.

    Format: XYYY where X = category, YYY = specific error

    Categories:
        1xxx - Scenario errors
        2xxx - Scheduling errors
        3xxx - Step/command execution errors
        4xxx - Validation errors
        5xxx - Rollback errors
        6xxx - Runtime errors
        7xxx - Configuration errors
    """

    # 1xxx - Scenario Errors
    SCENARIO_NOT_FOUND = 1001
    SCENARIO_ALREADY_REGISTERED = 1002
    SCENARIO_INVALID_OVERRIDE = 1003

    # 2xxx - Scheduling Errors
    DEPENDENCIES_UNRESOLVABLE = 2001
    DEPENDENCY_CYCLE = 2002
    DEPENDENCY_MISSING = 2003

    # 3xxx - Execution Errors
    STEPS_FAILED = 3001
    COMMAND_FAILED = 3002
    COMMAND_TIMEOUT = 3003

    # 4xxx - Validation Errors
    VALIDATION_FAILED = 4001

    # 5xxx - Rollback Errors
    ROLLBACK_FAILED = 5001

    # 6xxx - Runtime Errors
    RUNTIME_ALREADY_RUNNING = 6001

    # 7xxx - Configuration Errors
    CONFIG_INVALID = 7001

    @property
    def category(self) -> str:
        """Get the error category name."""
        prefix = self.value // 1000
        return {
            1: "scenario",
            2: "scheduling",
            3: "execution",
            4: "validation",
            5: "rollback",
            6: "runtime",
            7: "config",
        }.get(prefix, "unknown")

    @property
    def is_recoverable(self) -> bool:
        """Whether retrying the same request could plausibly succeed."""
        non_recoverable = {
            ErrorCode.SCENARIO_NOT_FOUND,
            ErrorCode.SCENARIO_INVALID_OVERRIDE,
            ErrorCode.DEPENDENCIES_UNRESOLVABLE,
            ErrorCode.DEPENDENCY_CYCLE,
            ErrorCode.DEPENDENCY_MISSING,
            ErrorCode.CONFIG_INVALID,
        }
        return self not in non_recoverable


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.SCENARIO_NOT_FOUND: "Unknown disaster scenario: {scenario_id}",
    ErrorCode.SCENARIO_ALREADY_REGISTERED: "Scenario '{scenario_id}' is already registered.",
    ErrorCode.SCENARIO_INVALID_OVERRIDE: "Invalid procedure override: {detail}",
    ErrorCode.DEPENDENCIES_UNRESOLVABLE: "Unresolvable step dependencies among: {pending}",
    ErrorCode.DEPENDENCY_CYCLE: "Circular dependency detected: {chain}",
    ErrorCode.DEPENDENCY_MISSING: "Step '{step}' depends on unknown steps: {missing}",
    ErrorCode.STEPS_FAILED: "{failed}/{total} steps failed",
    ErrorCode.COMMAND_FAILED: "Command failed: {detail}",
    ErrorCode.COMMAND_TIMEOUT: "Command timed out after {timeout_ms}ms: {command}",
    ErrorCode.VALIDATION_FAILED: "Validation failed: {name}",
    ErrorCode.ROLLBACK_FAILED: "Rollback step '{step}' failed: {detail}",
    ErrorCode.RUNTIME_ALREADY_RUNNING: (
        "Recovery for scenario '{scenario_id}' is already in progress."
    ),
    ErrorCode.CONFIG_INVALID: "Invalid configuration for '{key}': {detail}",
}


RECOVERY_HINTS: dict[ErrorCode, list[str]] = {
    ErrorCode.SCENARIO_NOT_FOUND: [
        "Check the scenario id against the registered scenarios",
        "Load scenario definitions before triggering a recovery",
    ],
    ErrorCode.DEPENDENCY_CYCLE: [
        "Remove one dependency edge from the cycle: {chain}",
    ],
    ErrorCode.DEPENDENCY_MISSING: [
        "Add the missing steps or fix the dependency names of '{step}'",
    ],
    ErrorCode.RUNTIME_ALREADY_RUNNING: [
        "Wait for the running recovery to finish, then trigger again",
        "Inspect it with get_recovery_status()",
    ],
    ErrorCode.ROLLBACK_FAILED: [
        "Inspect the execution ledger and complete the compensation manually",
    ],
}


class LifeboatError(Exception):
    """Base error type for all Lifeboat errors.

    Example:
        >>> err = LifeboatError(
        ...     code=ErrorCode.SCENARIO_NOT_FOUND,
        ...     context={"scenario_id": "region_outage"},
        ... )
        >>> print(err)
        [LB-1001] Unknown disaster scenario: region_outage
    """

    def __init__(
        self,
        code: ErrorCode,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        self.code = code
        self.context = context or {}
        self.cause = cause
        super().__init__(str(self))

    @property
    def message(self) -> str:
        """Get the formatted user-friendly message."""
        template = ERROR_MESSAGES.get(self.code, "An error occurred: {detail}")
        try:
            return template.format(**self.context)
        except KeyError:
            return template

    @property
    def recovery_hints(self) -> list[str]:
        """Get recovery suggestions for this error."""
        formatted = []
        for hint in RECOVERY_HINTS.get(self.code, []):
            try:
                formatted.append(hint.format(**self.context))
            except KeyError:
                formatted.append(hint)
        return formatted

    @property
    def is_recoverable(self) -> bool:
        return self.code.is_recoverable

    @property
    def category(self) -> str:
        return self.code.category

    @property
    def error_id(self) -> str:
        """Get the error ID string (e.g., 'LB-2002')."""
        return f"LB-{self.code.value}"

    def __str__(self) -> str:
        return f"[{self.error_id}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, context={self.context!r})"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for logging/API responses."""
        return {
            "error_id": self.error_id,
            "code": self.code.value,
            "category": self.category,
            "message": self.message,
            "recoverable": self.is_recoverable,
            "recovery_hints": self.recovery_hints,
            "context": self.context,
        }


# =============================================================================
# Scenario errors
# =============================================================================


class UnknownScenarioError(LifeboatError):
    """Raised when a scenario id is not registered."""

    def __init__(self, scenario_id: str) -> None:
        self.scenario_id = scenario_id
        super().__init__(ErrorCode.SCENARIO_NOT_FOUND, {"scenario_id": scenario_id})


# =============================================================================
# Scheduling errors
# =============================================================================


class UnresolvableDependenciesError(LifeboatError):
    """Raised when no further level can be formed from the remaining steps."""

    def __init__(
        self,
        pending: list[str] | None = None,
        code: ErrorCode = ErrorCode.DEPENDENCIES_UNRESOLVABLE,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.pending = sorted(pending or [])
        ctx = {"pending": ", ".join(self.pending)}
        ctx.update(context or {})
        super().__init__(code, ctx)


class CircularDependencyError(UnresolvableDependenciesError):
    """Raised when step dependencies form a cycle."""

    def __init__(self, cycle: list[str], pending: list[str] | None = None) -> None:
        self.cycle = cycle
        chain = " → ".join(cycle + cycle[:1])
        super().__init__(
            pending or cycle,
            ErrorCode.DEPENDENCY_CYCLE,
            {"chain": chain},
        )


class MissingDependencyError(UnresolvableDependenciesError):
    """Raised when a step depends on a step that is not in the procedure."""

    def __init__(
        self, step_name: str, missing: set[str], pending: list[str] | None = None
    ) -> None:
        self.step_name = step_name
        self.missing = missing
        super().__init__(
            pending or [step_name],
            ErrorCode.DEPENDENCY_MISSING,
            {"step": step_name, "missing": sorted(missing)},
        )


# =============================================================================
# Execution errors
# =============================================================================


class CommandExecutionError(LifeboatError):
    """Raised by command executors when a command fails."""

    def __init__(
        self,
        command: str,
        detail: str = "",
        exit_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.command = command
        self.exit_code = exit_code
        super().__init__(
            ErrorCode.COMMAND_FAILED,
            {"command": command, "detail": detail or command, "exit_code": exit_code},
            cause,
        )


class CommandTimeoutError(LifeboatError):
    """Raised by command executors when a command exceeds its timeout."""

    def __init__(self, command: str, timeout_ms: int) -> None:
        self.command = command
        self.timeout_ms = timeout_ms
        super().__init__(
            ErrorCode.COMMAND_TIMEOUT,
            {"command": command, "timeout_ms": timeout_ms},
        )


@dataclass(frozen=True, slots=True)
class StepFailure:
    """One failed step inside a level."""

    step_name: str
    error: BaseException


class StepExecutionError(LifeboatError):
    """Raised when one or more steps of a level fail."""

    def __init__(self, level_index: int, failures: list[StepFailure], total: int) -> None:
        self.level_index = level_index
        self.failures = failures
        self.total = total
        self.rollback_error: RollbackExecutionError | None = None
        super().__init__(
            ErrorCode.STEPS_FAILED,
            {
                "failed": len(failures),
                "total": total,
                "level": level_index,
                "steps": [f.step_name for f in failures],
            },
            failures[0].error if failures else None,
        )

    @property
    def failed_steps(self) -> list[str]:
        return [f.step_name for f in self.failures]


class RollbackExecutionError(LifeboatError):
    """Raised when a compensating step fails."""

    def __init__(self, step_name: str, cause: BaseException) -> None:
        self.step_name = step_name
        super().__init__(
            ErrorCode.ROLLBACK_FAILED,
            {"step": step_name, "detail": str(cause)},
            cause,
        )


# =============================================================================
# Runtime and configuration errors
# =============================================================================


class ScenarioAlreadyRunningError(LifeboatError):
    """Raised when a scenario is triggered while a recovery for it is in flight."""

    def __init__(self, scenario_id: str, execution_id: str | None = None) -> None:
        self.scenario_id = scenario_id
        self.execution_id = execution_id
        super().__init__(
            ErrorCode.RUNTIME_ALREADY_RUNNING,
            {"scenario_id": scenario_id, "execution_id": execution_id},
        )


class ConfigError(LifeboatError):
    """Raised for invalid configuration or scenario definitions."""

    def __init__(self, key: str, detail: str, cause: BaseException | None = None) -> None:
        super().__init__(ErrorCode.CONFIG_INVALID, {"key": key, "detail": detail}, cause)


def override_error(detail: str) -> LifeboatError:
    """Create a SCENARIO_INVALID_OVERRIDE error."""
    return LifeboatError(ErrorCode.SCENARIO_INVALID_OVERRIDE, {"detail": detail})


def already_registered(scenario_id: str) -> LifeboatError:
    """Create a SCENARIO_ALREADY_REGISTERED error."""
    return LifeboatError(ErrorCode.SCENARIO_ALREADY_REGISTERED, {"scenario_id": scenario_id})


def validation_failed(name: str) -> LifeboatError:
    """Create a VALIDATION_FAILED error for one post-recovery check."""
    return LifeboatError(ErrorCode.VALIDATION_FAILED, {"name": name})
