"""Tests for the rollback engine."""

import pytest

from conftest import ScriptedCommandExecutor, make_scenario, make_step
from lifeboat.errors import RollbackExecutionError
from lifeboat.executor import StepExecutor
from lifeboat.rollback import RollbackEngine
from lifeboat.types import RecoveryExecution, RecoveryStatus, StepStatus


def failed_execution(*rollback_names: str) -> RecoveryExecution:
    scenario = make_scenario(
        steps=(make_step("forward"),),
        rollback=tuple(make_step(n) for n in rollback_names),
    )
    return RecoveryExecution(
        id="recovery_test",
        scenario=scenario,
        procedure=scenario.procedure,
        status=RecoveryStatus.FAILED,
    )


class TestRollbackEngine:
    """Tests for RollbackEngine.run."""

    @pytest.mark.asyncio
    async def test_runs_in_list_order(self):
        """Compensation is strictly sequential in declaration order."""
        commands = ScriptedCommandExecutor(delays={"undo_a": 0.02})
        execution = failed_execution("undo_a", "undo_b", "undo_c")

        plan = await RollbackEngine(StepExecutor(commands)).run(execution)

        assert commands.commands == ["undo_a", "undo_b", "undo_c"]
        assert commands.peak == 1
        assert plan.executed is True
        assert plan.success is True
        assert execution.rollback_plan is plan
        assert execution.status == RecoveryStatus.ROLLED_BACK

    @pytest.mark.asyncio
    async def test_steps_tagged_as_rollback(self):
        execution = failed_execution("undo")
        await RollbackEngine(StepExecutor(ScriptedCommandExecutor())).run(execution)

        [entry] = execution.steps
        assert entry.rollback is True
        assert entry.status == StepStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failure_stops_rollback(self):
        """The first failing compensating step halts the rest."""
        commands = ScriptedCommandExecutor(failures={"undo_b": None})
        execution = failed_execution("undo_a", "undo_b", "undo_c")

        with pytest.raises(RollbackExecutionError) as exc:
            await RollbackEngine(StepExecutor(commands)).run(execution)

        assert exc.value.step_name == "undo_b"
        assert commands.commands == ["undo_a", "undo_b"]
        assert execution.rollback_plan.executed is True
        assert execution.rollback_plan.success is False
        assert "undo_b exploded" in execution.rollback_plan.error
        assert execution.status == RecoveryStatus.FAILED

    @pytest.mark.asyncio
    async def test_reason_recorded(self):
        execution = failed_execution("undo")
        plan = await RollbackEngine(StepExecutor(ScriptedCommandExecutor())).run(
            execution, reason="level 2 failed"
        )
        assert plan.reason == "level 2 failed"
        assert [s.name for s in plan.steps] == ["undo"]
