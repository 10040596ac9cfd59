"""Collaborator interfaces consumed by the recovery engine.

The engine never talks to infrastructure directly. Commands, notifications,
scenario definitions and detection signals all come through these protocols.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from lifeboat.types import DetectionRule, DisasterScenario, RecoveryExecution


@runtime_checkable
class CommandExecutor(Protocol):
    """Runs one command against real infrastructure.

    Implementations raise CommandExecutionError on failure and
    CommandTimeoutError when ``timeout_ms`` elapses. Timeout enforcement is
    entirely the executor's responsibility.
    """

    async def execute(self, command: str, timeout_ms: int) -> str:
        """Run ``command`` and return its output."""
        ...


@runtime_checkable
class NotificationSink(Protocol):
    """Observer for recovery lifecycle events.

    Calls are fire-and-forget: errors raised here are logged and never change
    the outcome of a recovery. Methods may be plain functions or coroutines.
    """

    def on_started(self, execution: RecoveryExecution) -> object: ...

    def on_succeeded(self, execution: RecoveryExecution) -> object: ...

    def on_partial(self, execution: RecoveryExecution, issues: list[str]) -> object: ...

    def on_failed(self, execution: RecoveryExecution, error: BaseException) -> object: ...


@runtime_checkable
class ScenarioSource(Protocol):
    """Supplies scenario definitions at process start."""

    def load(self) -> Iterable[DisasterScenario]: ...


@runtime_checkable
class DetectionProbe(Protocol):
    """Evaluates a scenario's detection rules against live signals."""

    async def evaluate(self, scenario: DisasterScenario, rule: DetectionRule) -> bool: ...
