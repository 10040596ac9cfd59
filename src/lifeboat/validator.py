"""Completion validator: post-recovery checks producing a pass/fail verdict."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from lifeboat.config import ExecutorConfig, ValidationConfig
from lifeboat.errors import validation_failed
from lifeboat.protocols import CommandExecutor
from lifeboat.types import ValidationCheck, ValidationResult

logger = logging.getLogger(__name__)

_BOUND_KEYS = frozenset({"min", "max", "eq"})


class CompletionValidator:
    """Runs each validation command and collects issues.

    A command that raises is an issue. Thresholds are metadata unless
    ``enforce_thresholds`` is enabled, in which case the command output is
    read as a JSON object and compared key by key.
    """

    def __init__(
        self,
        commands: CommandExecutor,
        config: ValidationConfig | None = None,
        executor_config: ExecutorConfig | None = None,
    ) -> None:
        self.commands = commands
        self.config = config or ValidationConfig()
        self.timeout_ms = (executor_config or ExecutorConfig()).validation_timeout_ms

    async def validate(self, validations: Sequence[ValidationCheck]) -> ValidationResult:
        """Run all validations sequentially.

        Returns:
            ValidationResult with ok=True when no issues were found
        """
        issues: list[str] = []

        for check in validations:
            try:
                output = await self.commands.execute(check.command, self.timeout_ms)
            except Exception as e:
                logger.warning("Validation %s failed: %s", check.name, e)
                issues.append(validation_failed(check.name).message)
                continue

            if self.config.enforce_thresholds and check.threshold is not None:
                detail = compare_threshold(output, check.threshold)
                if detail:
                    logger.warning("Validation %s outside threshold: %s", check.name, detail)
                    issues.append(f"{validation_failed(check.name).message} ({detail})")

        return ValidationResult(ok=not issues, issues=tuple(issues))


def compare_threshold(output: str, threshold: Any) -> str | None:
    """Compare measured output against a threshold.

    ``threshold`` is either a mapping of measurement name to expectation or a
    single expectation applied to the whole output. An expectation that is a
    mapping with ``min``/``max``/``eq`` keys is a bound check; any other value
    must match exactly.

    Returns:
        None when the output satisfies the threshold, otherwise a short reason
    """
    try:
        measured = json.loads(output) if output and output.strip() else None
    except json.JSONDecodeError:
        return "output is not JSON"

    if isinstance(threshold, Mapping) and not _is_bound(threshold):
        if not isinstance(measured, Mapping):
            return "output is not a JSON object"
        for key, expected in threshold.items():
            if key not in measured:
                return f"missing measurement '{key}'"
            reason = _check(measured[key], expected)
            if reason:
                return f"{key} {reason}"
        return None

    return _check(measured, threshold)


def _is_bound(value: Any) -> bool:
    return isinstance(value, Mapping) and bool(value) and set(value) <= _BOUND_KEYS


def _check(actual: Any, expected: Any) -> str | None:
    if _is_bound(expected):
        if "eq" in expected and actual != expected["eq"]:
            return f"= {actual!r}, expected {expected['eq']!r}"
        try:
            if "min" in expected and actual < expected["min"]:
                return f"= {actual!r} below min {expected['min']!r}"
            if "max" in expected and actual > expected["max"]:
                return f"= {actual!r} above max {expected['max']!r}"
        except TypeError:
            return f"= {actual!r} is not comparable"
        return None
    if actual != expected:
        return f"= {actual!r}, expected {expected!r}"
    return None
