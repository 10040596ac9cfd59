"""Tests for post-recovery validation and threshold comparison."""

import json

import pytest

from conftest import ScriptedCommandExecutor
from lifeboat.config import ExecutorConfig, ValidationConfig
from lifeboat.types import ValidationCheck, ValidationKind
from lifeboat.validator import CompletionValidator, compare_threshold


def check(name: str, threshold=None) -> ValidationCheck:
    return ValidationCheck(name=name, command=f"check-{name}", threshold=threshold)


class TestCompletionValidator:
    """Tests for CompletionValidator.validate."""

    @pytest.mark.asyncio
    async def test_no_validations_is_ok(self):
        result = await CompletionValidator(ScriptedCommandExecutor()).validate([])
        assert result.ok is True
        assert result.issues == ()

    @pytest.mark.asyncio
    async def test_all_pass(self):
        commands = ScriptedCommandExecutor()
        result = await CompletionValidator(commands).validate([check("a"), check("b")])
        assert result.ok is True
        assert commands.commands == ["check-a", "check-b"]

    @pytest.mark.asyncio
    async def test_failing_check_becomes_issue(self):
        """A raising command is an issue; later checks still run."""
        commands = ScriptedCommandExecutor(failures={"check-a": None})
        result = await CompletionValidator(commands).validate([check("a"), check("b")])

        assert result.ok is False
        assert result.issues == ("Validation failed: a",)
        assert commands.commands == ["check-a", "check-b"]

    @pytest.mark.asyncio
    async def test_fixed_validation_timeout(self):
        """Validations use the configured validation timeout, not step timeouts."""
        commands = ScriptedCommandExecutor()
        validator = CompletionValidator(
            commands, executor_config=ExecutorConfig(validation_timeout_ms=1500)
        )
        await validator.validate([check("a")])
        assert commands.calls == [("check-a", 1500)]

    @pytest.mark.asyncio
    async def test_default_validation_timeout(self):
        commands = ScriptedCommandExecutor()
        await CompletionValidator(commands).validate([check("a")])
        assert commands.calls == [("check-a", 30_000)]

    @pytest.mark.asyncio
    async def test_thresholds_ignored_by_default(self):
        """Threshold is metadata unless enforcement is on."""
        commands = ScriptedCommandExecutor(outputs={"check-a": "definitely not json"})
        result = await CompletionValidator(commands).validate(
            [check("a", threshold={"statusCode": 200})]
        )
        assert result.ok is True

    @pytest.mark.asyncio
    async def test_thresholds_enforced(self):
        commands = ScriptedCommandExecutor(
            outputs={
                "check-http": json.dumps({"statusCode": 503}),
                "check-data": json.dumps({"errorRate": 0.001}),
            }
        )
        validator = CompletionValidator(commands, ValidationConfig(enforce_thresholds=True))
        result = await validator.validate(
            [
                check("http", threshold={"statusCode": 200}),
                check("data", threshold={"errorRate": {"max": 0.01}}),
            ]
        )
        assert result.ok is False
        assert len(result.issues) == 1
        assert result.issues[0].startswith("Validation failed: http (statusCode")

    @pytest.mark.asyncio
    async def test_validation_kind_does_not_matter(self):
        commands = ScriptedCommandExecutor()
        checks = [
            ValidationCheck(name=k.value, command="x", kind=k) for k in ValidationKind
        ]
        result = await CompletionValidator(commands).validate(checks)
        assert result.ok is True
        assert len(commands.calls) == len(ValidationKind)


class TestCompareThreshold:
    """Tests for compare_threshold."""

    def test_equality_match(self):
        assert compare_threshold('{"statusCode": 200}', {"statusCode": 200}) is None

    def test_equality_mismatch(self):
        reason = compare_threshold('{"statusCode": 500}', {"statusCode": 200})
        assert reason == "statusCode = 500, expected 200"

    def test_bounds(self):
        assert compare_threshold('{"p99": 120}', {"p99": {"max": 200}}) is None
        assert "above max" in compare_threshold('{"p99": 250}', {"p99": {"max": 200}})
        assert "below min" in compare_threshold('{"rps": 5}', {"rps": {"min": 10}})

    def test_scalar_threshold_against_whole_output(self):
        assert compare_threshold("0.5", {"max": 1}) is None
        assert compare_threshold('"healthy"', "healthy") is None

    def test_missing_measurement(self):
        assert compare_threshold('{"other": 1}', {"statusCode": 200}) == (
            "missing measurement 'statusCode'"
        )

    def test_non_json_output(self):
        assert compare_threshold("OK", {"statusCode": 200}) == "output is not JSON"

    def test_non_object_output(self):
        assert compare_threshold("[1, 2]", {"statusCode": 200}) == "output is not a JSON object"

    def test_incomparable_values(self):
        assert "not comparable" in compare_threshold('{"x": "fast"}', {"x": {"min": 1}})
