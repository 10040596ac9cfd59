"""Scenario sources: build DisasterScenario objects from YAML or plain dicts.

Document shape::

    scenarios:
      - id: region_outage
        name: Regional outage
        severity: critical
        estimatedRTO: PT4H
        detectionRules:
          - type: health_check
            condition: {endpoint: /health, consecutive_failures: 3}
        procedure:
          steps:
            - name: promote_replica
              command: db-promote --region=us-east1
              timeout: PT10M
              dependencies: []
          rollback: [...]
          validations: [...]

camelCase and snake_case keys are both accepted; ``recoveryProcedure`` and
``recovery_procedure`` are aliases of ``procedure``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

from lifeboat.errors import ConfigError
from lifeboat.types import (
    DetectionKind,
    DetectionRule,
    DisasterScenario,
    RecoveryProcedure,
    RecoveryStep,
    Severity,
    ValidationCheck,
    ValidationKind,
)

logger = logging.getLogger(__name__)


class StaticScenarioSource:
    """Scenarios from in-memory definitions (objects or raw mappings)."""

    def __init__(self, scenarios: Iterable[DisasterScenario | Mapping[str, Any]]) -> None:
        self._scenarios = list(scenarios)

    def load(self) -> list[DisasterScenario]:
        return [
            s if isinstance(s, DisasterScenario) else parse_scenario(s, where=f"scenarios[{i}]")
            for i, s in enumerate(self._scenarios)
        ]


class YamlScenarioSource:
    """Scenarios from a YAML file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> list[DisasterScenario]:
        """Parse the file.

        Raises:
            ConfigError: If the file is missing, not valid YAML, or malformed
        """
        if not self.path.exists():
            raise ConfigError(str(self.path), "scenario file not found")

        try:
            with open(self.path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(str(self.path), f"invalid YAML: {e}", e) from e

        scenarios = parse_document(data, where=str(self.path))
        logger.debug("Parsed %d scenarios from %s", len(scenarios), self.path)
        return scenarios


# =============================================================================
# Parsing
# =============================================================================


def parse_document(data: Any, where: str = "<document>") -> list[DisasterScenario]:
    """Parse a document holding a ``scenarios`` list (or a bare list)."""
    if isinstance(data, Mapping):
        data = data.get("scenarios")
    if not isinstance(data, list):
        raise ConfigError(where, "expected a 'scenarios' list")
    return [parse_scenario(item, where=f"{where}: scenarios[{i}]") for i, item in enumerate(data)]


def parse_scenario(data: Any, where: str = "<scenario>") -> DisasterScenario:
    """Build one DisasterScenario from a mapping."""
    data = _require_mapping(data, where)
    scenario_id = _require_str(data, "id", where)
    where = f"{where} ({scenario_id})"

    procedure_data = _require_mapping(
        _pick(data, "procedure", "recovery_procedure", "recoveryProcedure") or {},
        f"{where}.procedure",
    )
    procedure = RecoveryProcedure(
        description=str(procedure_data.get("description", "")),
        steps=_parse_steps(procedure_data.get("steps"), f"{where}.steps"),
        rollback_steps=_parse_steps(
            _pick(procedure_data, "rollback_steps", "rollbackSteps", "rollback"),
            f"{where}.rollback_steps",
        ),
        validations=_parse_validations(procedure_data.get("validations"), f"{where}.validations"),
    )

    return DisasterScenario(
        id=scenario_id,
        name=str(data.get("name", scenario_id)),
        description=str(data.get("description", "")),
        severity=_enum(Severity, data.get("severity", "high"), f"{where}.severity"),
        procedure=procedure,
        estimated_rto=str(_pick(data, "estimated_rto", "estimatedRTO") or ""),
        estimated_rpo=str(_pick(data, "estimated_rpo", "estimatedRPO") or ""),
        detection_rules=_parse_rules(
            _pick(data, "detection_rules", "detectionRules"), f"{where}.detection_rules"
        ),
    )


def _parse_steps(data: Any, where: str) -> tuple[RecoveryStep, ...]:
    steps = []
    for i, item in enumerate(_require_list(data, where)):
        loc = f"{where}[{i}]"
        item = _require_mapping(item, loc)
        deps = item.get("dependencies") or []
        if isinstance(deps, str) or not isinstance(deps, list):
            raise ConfigError(loc, "'dependencies' must be a list of step names")
        steps.append(
            RecoveryStep(
                name=_require_str(item, "name", loc),
                command=_require_str(item, "command", loc),
                timeout=str(item.get("timeout", "PT5M")),
                dependencies=tuple(str(d) for d in deps),
                parallel_hint=bool(_pick(item, "parallel_hint", "parallelHint", "parallel")),
                retryable=bool(item.get("retryable", False)),
                max_attempts=_number(
                    int, _pick(item, "max_attempts", "maxAttempts"), f"{loc}.max_attempts"
                ),
            )
        )
    return tuple(steps)


def _parse_validations(data: Any, where: str) -> tuple[ValidationCheck, ...]:
    checks = []
    for i, item in enumerate(_require_list(data, where)):
        loc = f"{where}[{i}]"
        item = _require_mapping(item, loc)
        checks.append(
            ValidationCheck(
                name=_require_str(item, "name", loc),
                command=_require_str(item, "command", loc),
                kind=_enum(ValidationKind, _pick(item, "kind", "type") or "functional", loc),
                threshold=item.get("threshold"),
            )
        )
    return tuple(checks)


def _parse_rules(data: Any, where: str) -> tuple[DetectionRule, ...]:
    rules = []
    for i, item in enumerate(_require_list(data, where)):
        loc = f"{where}[{i}]"
        item = _require_mapping(item, loc)
        kind = _pick(item, "kind", "type")
        if kind is None:
            raise ConfigError(loc, "missing 'type'")
        rules.append(
            DetectionRule(
                kind=_enum(DetectionKind, kind, loc),
                condition=item.get("condition"),
                threshold=_number(float, item.get("threshold"), f"{loc}.threshold"),
                duration=item.get("duration"),
            )
        )
    return tuple(rules)


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    """First present key wins."""
    for key in keys:
        if key in data:
            return data[key]
    return None


def _enum(enum_type: type, value: Any, where: str) -> Any:
    try:
        return enum_type(str(value).lower())
    except ValueError as e:
        allowed = ", ".join(m.value for m in enum_type)
        raise ConfigError(where, f"invalid value {value!r} (allowed: {allowed})", e) from e


def _require_mapping(data: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ConfigError(where, f"expected a mapping, got {type(data).__name__}")
    return data


def _require_list(data: Any, where: str) -> list:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ConfigError(where, f"expected a list, got {type(data).__name__}")
    return data


def _require_str(data: Mapping[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigError(where, f"missing or empty '{key}'")
    return value


def _number(cast: type, value: Any, where: str) -> Any:
    if value is None:
        return None
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(where, f"expected a number, got {value!r}", e) from e
