"""Tests for dependency leveling of recovery steps."""

import pytest
from hypothesis import given, settings, strategies as st

from conftest import make_step
from lifeboat.errors import (
    CircularDependencyError,
    ErrorCode,
    MissingDependencyError,
    UnresolvableDependenciesError,
)
from lifeboat.scheduler import DependencyScheduler, _detect_cycle


def names(levels):
    return [[s.name for s in level] for level in levels]


# =============================================================================
# Leveling
# =============================================================================


class TestPlan:
    """Tests for DependencyScheduler.plan."""

    def test_empty_procedure(self):
        """No steps means no levels."""
        assert DependencyScheduler().plan([]) == []

    def test_independent_steps_share_one_level(self):
        """Steps without dependencies all start together."""
        steps = [make_step("a"), make_step("b"), make_step("c")]
        assert names(DependencyScheduler().plan(steps)) == [["a", "b", "c"]]

    def test_linear_chain(self):
        """A → B → C yields one level per step regardless of declaration order."""
        steps = [make_step("c", "b"), make_step("b", "a"), make_step("a")]
        assert names(DependencyScheduler().plan(steps)) == [["a"], ["b"], ["c"]]

    def test_diamond(self):
        """A → B,C → D."""
        steps = [
            make_step("a"),
            make_step("b", "a"),
            make_step("c", "a"),
            make_step("d", "b", "c"),
        ]
        assert names(DependencyScheduler().plan(steps)) == [["a"], ["b", "c"], ["d"]]

    def test_declaration_order_within_level(self):
        """Steps inside a level keep procedure order."""
        steps = [make_step("z"), make_step("m"), make_step("a")]
        assert names(DependencyScheduler().plan(steps)) == [["z", "m", "a"]]

    def test_every_step_appears_exactly_once(self):
        """Levels partition the step list."""
        steps = [
            make_step("validate"),
            make_step("activate", "validate"),
            make_step("restore", "activate"),
            make_step("dns", "restore"),
            make_step("notify"),
        ]
        levels = DependencyScheduler().plan(steps)
        flat = [s.name for level in levels for s in level]
        assert sorted(flat) == sorted(s.name for s in steps)
        assert len(flat) == len(set(flat))

    def test_dependencies_precede_dependents(self):
        """Every dependency sits in a strictly earlier level."""
        steps = [
            make_step("a"),
            make_step("b", "a"),
            make_step("c"),
            make_step("d", "b", "c"),
            make_step("e", "a"),
        ]
        levels = DependencyScheduler().plan(steps)
        level_of = {s.name: i for i, level in enumerate(levels) for s in level}
        for step in steps:
            for dep in step.dependencies:
                assert level_of[dep] < level_of[step.name]

    def test_parallel_hint_is_ignored(self):
        """parallel_hint does not change leveling."""
        plain = [make_step("a"), make_step("b", "a")]
        hinted = [make_step("a", parallel_hint=True), make_step("b", "a", parallel_hint=True)]
        scheduler = DependencyScheduler()
        assert names(scheduler.plan(plain)) == names(scheduler.plan(hinted))


# =============================================================================
# Unresolvable graphs
# =============================================================================


class TestUnresolvable:
    """Cycles and missing dependencies."""

    def test_two_step_cycle(self):
        """A ↔ B raises a cycle error naming both steps."""
        steps = [make_step("a", "b"), make_step("b", "a")]
        with pytest.raises(CircularDependencyError) as exc:
            DependencyScheduler().plan(steps)
        assert set(exc.value.cycle) == {"a", "b"}
        assert exc.value.code == ErrorCode.DEPENDENCY_CYCLE

    def test_cycle_is_an_unresolvable_dependencies_error(self):
        """Callers catching the general kind still catch cycles."""
        steps = [make_step("a", "b"), make_step("b", "a")]
        with pytest.raises(UnresolvableDependenciesError):
            DependencyScheduler().plan(steps)

    def test_cycle_after_resolvable_prefix(self):
        """Only the stuck steps are reported as pending."""
        steps = [make_step("root"), make_step("x", "root", "y"), make_step("y", "x")]
        with pytest.raises(CircularDependencyError) as exc:
            DependencyScheduler().plan(steps)
        assert exc.value.pending == ["x", "y"]

    def test_self_dependency(self):
        """A step depending on itself is a one-step cycle."""
        with pytest.raises(CircularDependencyError) as exc:
            DependencyScheduler().plan([make_step("a", "a")])
        assert exc.value.cycle == ["a"]

    def test_missing_dependency(self):
        """Depending on a step not in the procedure."""
        steps = [make_step("a"), make_step("b", "ghost")]
        with pytest.raises(MissingDependencyError) as exc:
            DependencyScheduler().plan(steps)
        assert exc.value.step_name == "b"
        assert exc.value.missing == {"ghost"}
        assert isinstance(exc.value, UnresolvableDependenciesError)

    def test_missing_reported_before_cycle(self):
        """A definition error wins over a cycle among other steps."""
        steps = [make_step("a", "b"), make_step("b", "a"), make_step("c", "nope")]
        with pytest.raises(MissingDependencyError):
            DependencyScheduler().plan(steps)


class TestDetectCycle:
    """Tests for the DFS cycle finder."""

    def test_no_cycle(self):
        assert _detect_cycle({"a": (), "b": ("a",)}) is None

    def test_three_cycle(self):
        cycle = _detect_cycle({"a": ("c",), "b": ("a",), "c": ("b",)})
        assert cycle is not None
        assert set(cycle) == {"a", "b", "c"}


# =============================================================================
# Properties
# =============================================================================


@st.composite
def acyclic_steps(draw):
    """Random DAG: each step depends on a subset of earlier names, then shuffled."""
    count = draw(st.integers(min_value=0, max_value=15))
    step_names = [f"step_{i}" for i in range(count)]
    steps = []
    for i, name in enumerate(step_names):
        deps = draw(st.lists(st.sampled_from(step_names[:i]), unique=True)) if i else []
        steps.append(make_step(name, *deps))
    return draw(st.permutations(steps))


class TestPlanProperties:
    """Leveling invariants for any acyclic step list."""

    @given(steps=acyclic_steps())
    @settings(max_examples=200)
    def test_every_step_scheduled_once(self, steps) -> None:
        levels = DependencyScheduler().plan(steps)
        flat = [s.name for level in levels for s in level]

        assert sorted(flat) == sorted(s.name for s in steps)
        assert len(flat) == len(set(flat))
        assert all(level for level in levels)

    @given(steps=acyclic_steps())
    @settings(max_examples=200)
    def test_dependencies_in_strictly_earlier_level(self, steps) -> None:
        levels = DependencyScheduler().plan(steps)
        level_of = {s.name: i for i, level in enumerate(levels) for s in level}

        for step in steps:
            for dep in step.dependencies:
                assert level_of[dep] < level_of[step.name]
