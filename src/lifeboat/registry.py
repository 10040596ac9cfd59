"""Scenario registry: id-keyed lookup of immutable scenario definitions."""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Iterator, Mapping
from typing import Any

from lifeboat.errors import UnknownScenarioError, already_registered, override_error
from lifeboat.types import DisasterScenario, RecoveryProcedure, RecoveryStep, ValidationCheck

logger = logging.getLogger(__name__)

_PROCEDURE_FIELDS = frozenset(f.name for f in dataclasses.fields(RecoveryProcedure))


class ScenarioRegistry:
    """Holds named recovery-procedure definitions.

    Thread-safe. Scenarios are frozen, so ``get`` hands out shared instances.
    """

    def __init__(self, scenarios: list[DisasterScenario] | None = None) -> None:
        self._scenarios: dict[str, DisasterScenario] = {}
        self._lock = threading.Lock()
        for scenario in scenarios or []:
            self.register(scenario)

    def register(self, scenario: DisasterScenario) -> None:
        """Register a scenario.

        Raises:
            LifeboatError: If the id is already registered
        """
        with self._lock:
            if scenario.id in self._scenarios:
                raise already_registered(scenario.id)
            self._scenarios[scenario.id] = scenario
        logger.debug(
            "Registered scenario %s (%d steps, %d rollback steps)",
            scenario.id,
            len(scenario.procedure.steps),
            len(scenario.procedure.rollback_steps),
        )

    def replace(self, scenario: DisasterScenario) -> DisasterScenario | None:
        """Register ``scenario``, replacing any definition with the same id.

        Executions already running keep the scenario they were started with.
        Returns the replaced scenario, if any.
        """
        with self._lock:
            previous = self._scenarios.get(scenario.id)
            self._scenarios[scenario.id] = scenario
        if previous is not None:
            logger.debug("Replaced scenario %s", scenario.id)
        return previous

    def get(self, scenario_id: str) -> DisasterScenario:
        """Look up a scenario.

        Raises:
            UnknownScenarioError: If no scenario has this id
        """
        scenario = self._scenarios.get(scenario_id)
        if scenario is None:
            raise UnknownScenarioError(scenario_id)
        return scenario

    def __contains__(self, scenario_id: str) -> bool:
        return scenario_id in self._scenarios

    def __len__(self) -> int:
        return len(self._scenarios)

    def __iter__(self) -> Iterator[DisasterScenario]:
        return iter(list(self._scenarios.values()))

    @property
    def ids(self) -> list[str]:
        return list(self._scenarios.keys())


def merge_procedure(
    procedure: RecoveryProcedure,
    overrides: Mapping[str, Any] | None,
) -> RecoveryProcedure:
    """Apply a partial-procedure override.

    Shallow merge: each supplied field replaces the registered field wholesale.
    Supplying ``steps`` replaces the entire step list; individual steps are
    never merged.

    Raises:
        LifeboatError: If an override names an unknown field or carries the
            wrong item types
    """
    if not overrides:
        return procedure

    unknown = set(overrides) - _PROCEDURE_FIELDS
    if unknown:
        raise override_error(f"unknown procedure fields {sorted(unknown)}")

    replacements: dict[str, Any] = {}
    for name, value in overrides.items():
        if name == "description":
            replacements[name] = str(value)
        elif name in ("steps", "rollback_steps"):
            replacements[name] = _coerce_items(name, value, RecoveryStep)
        else:
            replacements[name] = _coerce_items(name, value, ValidationCheck)

    return dataclasses.replace(procedure, **replacements)


def _coerce_items(name: str, value: Any, item_type: type) -> tuple:
    items = tuple(value or ())
    for item in items:
        if not isinstance(item, item_type):
            raise override_error(
                f"'{name}' must contain {item_type.__name__} items, got {type(item).__name__}"
            )
    return items
