"""Pytest fixtures for Lifeboat tests."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Iterator

import pytest

from lifeboat.config import LifeboatConfig, RetryConfig, reset_config
from lifeboat.errors import CommandExecutionError
from lifeboat.orchestrator import RecoveryOrchestrator
from lifeboat.types import (
    DisasterScenario,
    RecoveryExecution,
    RecoveryProcedure,
    RecoveryStep,
    ValidationCheck,
)


class ScriptedCommandExecutor:
    """In-memory command executor.

    Records every call, fails commands listed in ``failures`` (a count limits
    how many times), sleeps per-command ``delays`` and tracks the peak number
    of commands running at once.
    """

    def __init__(
        self,
        outputs: dict[str, str] | None = None,
        failures: dict[str, int | None] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.outputs = dict(outputs or {})
        self.failures = dict(failures or {})
        self.delays = dict(delays or {})
        self.calls: list[tuple[str, int]] = []
        self.started: list[str] = []
        self.finished: list[str] = []
        self.running = 0
        self.peak = 0

    def fail(self, command: str, times: int | None = None) -> None:
        """Make ``command`` fail ``times`` times (forever when None)."""
        self.failures[command] = times

    @property
    def commands(self) -> list[str]:
        return [c for c, _ in self.calls]

    async def execute(self, command: str, timeout_ms: int) -> str:
        self.calls.append((command, timeout_ms))
        self.started.append(command)
        self.running += 1
        self.peak = max(self.peak, self.running)
        try:
            await asyncio.sleep(self.delays.get(command, 0))
            if command in self.failures:
                remaining = self.failures[command]
                if remaining is None or remaining > 0:
                    if remaining is not None:
                        self.failures[command] = remaining - 1
                    raise CommandExecutionError(command, f"{command} exploded")
            return self.outputs.get(command, f"ok: {command}")
        finally:
            self.running -= 1
            self.finished.append(command)


class RecordingNotificationSink:
    """Notification sink that records (event, execution id, payload) tuples."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, object]] = []

    @property
    def names(self) -> list[str]:
        return [e[0] for e in self.events]

    def on_started(self, execution: RecoveryExecution) -> None:
        self.events.append(("started", execution.id, execution.status))

    def on_succeeded(self, execution: RecoveryExecution) -> None:
        self.events.append(("succeeded", execution.id, execution.status))

    def on_partial(self, execution: RecoveryExecution, issues: list[str]) -> None:
        self.events.append(("partial", execution.id, list(issues)))

    async def on_failed(self, execution: RecoveryExecution, error: BaseException) -> None:
        self.events.append(("failed", execution.id, error))


def make_step(name: str, *deps: str, **kwargs) -> RecoveryStep:
    """Step whose command is its own name."""
    return RecoveryStep(name=name, command=kwargs.pop("command", name), dependencies=deps, **kwargs)


def make_scenario(
    scenario_id: str = "db_outage",
    steps: tuple[RecoveryStep, ...] = (),
    rollback: tuple[RecoveryStep, ...] = (),
    validations: tuple[ValidationCheck, ...] = (),
    **kwargs,
) -> DisasterScenario:
    return DisasterScenario(
        id=scenario_id,
        name=scenario_id.replace("_", " ").title(),
        procedure=RecoveryProcedure(
            description=f"Recover from {scenario_id}",
            steps=steps,
            rollback_steps=rollback,
            validations=validations,
        ),
        **kwargs,
    )


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path) -> Iterator[None]:
    """Keep tests away from real config files and LIFEBOAT_* variables."""
    for key in list(os.environ):
        if key.startswith("LIFEBOAT_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config() -> LifeboatConfig:
    """Default config with instant retries."""
    return LifeboatConfig(retry=RetryConfig(max_attempts=3, backoff_ms=(0,)))


@pytest.fixture
def commands() -> ScriptedCommandExecutor:
    return ScriptedCommandExecutor()


@pytest.fixture
def sink() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def orchestrator(commands, sink, config) -> RecoveryOrchestrator:
    return RecoveryOrchestrator(commands, notifiers=[sink], config=config)
