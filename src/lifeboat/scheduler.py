"""Dependency scheduler: turns a step list into concurrently-executable levels.

Each level contains steps whose dependencies are all satisfied by earlier
levels. Step order inside a level follows the procedure's declaration order.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from lifeboat.errors import CircularDependencyError, MissingDependencyError
from lifeboat.types import RecoveryStep

logger = logging.getLogger(__name__)


class DependencyScheduler:
    """Topological leveling of recovery steps.

    ``parallel_hint`` is never consulted; concurrency comes purely from the
    dependency graph.
    """

    def plan(self, steps: Sequence[RecoveryStep]) -> list[list[RecoveryStep]]:
        """Group steps into execution levels.

        Args:
            steps: Steps of one procedure

        Returns:
            Ordered list of levels; each level may run concurrently

        Raises:
            MissingDependencyError: If a step depends on a name not in ``steps``
            CircularDependencyError: If the remaining steps form a cycle
        """
        satisfied: set[str] = set()
        pending = list(steps)
        levels: list[list[RecoveryStep]] = []

        while pending:
            level = [
                step for step in pending if all(dep in satisfied for dep in step.dependencies)
            ]

            if not level:
                raise self._diagnose(steps, pending)

            levels.append(level)
            satisfied.update(step.name for step in level)
            level_ids = {id(step) for step in level}
            pending = [step for step in pending if id(step) not in level_ids]

        logger.debug(
            "Planned %d steps into %d levels: %s",
            len(steps),
            len(levels),
            [[s.name for s in level] for level in levels],
        )
        return levels

    def _diagnose(
        self,
        steps: Sequence[RecoveryStep],
        pending: list[RecoveryStep],
    ) -> MissingDependencyError | CircularDependencyError:
        """Explain why no further level could be formed."""
        known = {step.name for step in steps}
        pending_names = [step.name for step in pending]

        for step in pending:
            missing = set(step.dependencies) - known
            if missing:
                return MissingDependencyError(step.name, missing, pending_names)

        edges = {step.name: tuple(step.dependencies) for step in pending}
        cycle = _detect_cycle(edges)
        return CircularDependencyError(cycle or pending_names[:3], pending_names)


def _detect_cycle(edges: dict[str, tuple[str, ...]]) -> list[str] | None:
    """Detect a cycle among ``edges`` using DFS."""
    WHITE, GRAY, BLACK = 0, 1, 2
    color = dict.fromkeys(edges, WHITE)
    parent: dict[str, str | None] = dict.fromkeys(edges)

    def dfs(node: str) -> list[str] | None:
        color[node] = GRAY
        for dep in edges.get(node, ()):
            if dep not in color:
                continue
            if color[dep] == GRAY:
                if dep == node:
                    return [node]
                cycle = [dep, node]
                curr = parent.get(node)
                while curr and curr != dep:
                    cycle.append(curr)
                    curr = parent.get(curr)
                return list(reversed(cycle))
            if color[dep] == WHITE:
                parent[dep] = node
                if result := dfs(dep):
                    return result
        color[node] = BLACK
        return None

    for node in edges:
        if color[node] == WHITE:
            if cycle := dfs(node):
                return cycle
    return None
