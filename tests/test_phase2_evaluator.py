"""
Tests for condbind — Phase 2 Evaluator.

These tests verify:
1. Left-to-right, at-most-once evaluation with short-circuit on absence
2. Sequential visibility of bound names
3. Guard evaluation only after every step is present
4. Faults propagate unchanged
"""

from dataclasses import dataclass

import pytest

from condbind.domain import (
    BindingStep,
    Bound,
    EvaluationState,
    IllegalTransitionError,
    ShortCircuited,
    StepResultError,
)
from condbind.evaluator import (
    ConditionalBindingEvaluator,
    EvaluatorOptions,
    compile_plan,
    evaluate,
)
from condbind.presence import ABSENT, absent, from_optional, present


@dataclass(frozen=True)
class Person:
    name: str
    age: int


class CallCounter:
    """Wraps a value in a zero-arg expression and counts its calls."""

    def __init__(self, result):
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.result


# =============================================================================
# SHORT-CIRCUIT TESTS
# =============================================================================

class TestShortCircuit:
    """Test that the first absent step ends evaluation."""

    def test_absent_first_step_skips_side_effects(self):
        """[s0 absent, s1 side-effecting] -> ShortCircuited(0), s1 never runs."""
        side_effects = []

        def s1():
            side_effects.append("s1 ran")
            return present(1)

        guard_calls = []
        outcome = evaluate(
            [BindingStep("s0", lambda: ABSENT), BindingStep("s1", s1)],
            lambda: guard_calls.append("guard") or True,
        )

        assert outcome == ShortCircuited(0)
        assert side_effects == []
        assert guard_calls == []

    def test_short_circuit_reports_step_and_reason(self):
        outcome = evaluate(
            [
                BindingStep("a", lambda: present(1)),
                BindingStep("b", lambda: absent("lookup miss")),
            ],
            lambda a, b: True,
        )
        assert isinstance(outcome, ShortCircuited)
        assert outcome.at_step_index == 1
        assert outcome.step_name == "b"
        assert outcome.reason == "lookup miss"

    def test_short_circuit_trace(self):
        outcome = evaluate(
            [
                BindingStep("a", lambda: present(1)),
                BindingStep("b", lambda: ABSENT),
                BindingStep("c", lambda: present(3)),
            ],
            lambda: True,
        )
        assert outcome.trace == (
            EvaluationState.pending(0),
            EvaluationState.pending(1),
            EvaluationState.short_circuited(1),
        )

    def test_present_none_does_not_short_circuit(self):
        outcome = evaluate([BindingStep("a", lambda: present(None))], lambda a: a is None)
        assert outcome == Bound({"a": None}, True)


# =============================================================================
# SINGLE EVALUATION TESTS
# =============================================================================

class TestSingleEvaluation:
    """Each expression runs exactly once per evaluate() call."""

    def test_five_steps_each_called_once(self):
        counters = [CallCounter(present(i)) for i in range(5)]
        steps = [
            BindingStep(f"s{i}", counter, requires=())
            for i, counter in enumerate(counters)
        ]
        guard_calls = []

        def guard(s0, s4):
            guard_calls.append((s0, s4))
            return s0 < s4

        outcome = evaluate(steps, guard)

        assert outcome.takes_branch
        assert [c.calls for c in counters] == [1, 1, 1, 1, 1]
        assert guard_calls == [(0, 4)]

    def test_plan_reuse_runs_expressions_again(self):
        """A plan is reusable; each run is a separate evaluation."""
        counter = CallCounter(present(1))
        plan = compile_plan([BindingStep("a", counter, requires=())], lambda a: True)
        evaluator = ConditionalBindingEvaluator()

        evaluator.run(plan)
        evaluator.run(plan)

        assert counter.calls == 2


# =============================================================================
# VISIBILITY TESTS
# =============================================================================

class TestSequentialVisibility:
    """Later steps see earlier bindings."""

    def test_step_reads_earlier_binding(self):
        outcome = evaluate(
            [
                BindingStep("base", lambda: present(10)),
                BindingStep("double", lambda base: present(base * 2)),
                BindingStep("total", lambda base, double: present(base + double)),
            ],
            lambda total: total == 30,
        )
        assert outcome == Bound({"base": 10, "double": 20, "total": 30}, True)

    def test_kwargs_step_sees_only_earlier_names(self):
        seen = []

        def snapshot(**scope):
            seen.append(sorted(scope))
            return present(len(scope))

        evaluate(
            [
                BindingStep("a", lambda: present(1)),
                BindingStep("b", snapshot),
                BindingStep("c", lambda: present(3)),
            ],
            lambda: True,
            outer={"limit": 5},
        )
        assert seen == [["a", "limit"]]

    def test_outer_variables_in_scope(self):
        outcome = evaluate(
            [BindingStep("n", lambda start: present(start + 1))],
            lambda n, limit: n < limit,
            outer={"start": 1, "limit": 5},
        )
        assert outcome.takes_branch
        assert "start" not in outcome.environment

    def test_environment_not_shared_between_calls(self):
        steps = [BindingStep("a", lambda: present(1))]
        first = evaluate(steps, lambda: True)
        second = evaluate(steps, lambda: True)
        assert first.environment is not second.environment


# =============================================================================
# GUARD TESTS
# =============================================================================

class TestGuard:
    """Guard is reached only on full success."""

    def test_empty_steps_goes_straight_to_guard(self):
        outcome = evaluate([], lambda: True)

        assert isinstance(outcome, Bound)
        assert outcome.steps_consumed == 0
        assert outcome.trace == (
            EvaluationState.pending(0),
            EvaluationState.guard_evaluated(),
        )

    def test_full_trace_for_two_steps(self):
        outcome = evaluate(
            [BindingStep("a", lambda: present(1)), BindingStep("b", lambda: present(2))],
            lambda: False,
        )
        assert [str(s) for s in outcome.trace] == [
            "Pending(0)", "Pending(1)", "Pending(2)", "GuardEvaluated",
        ]

    def test_guard_value_is_not_coerced(self):
        """when-like use needs the raw subject."""
        outcome = evaluate([BindingStep("a", lambda: present("x"))], lambda a: a * 3)
        assert outcome.guard_value == "xxx"

    def test_evaluate_requires_guard(self):
        with pytest.raises(TypeError, match="requires a guard"):
            evaluate([])

    def test_plan_cannot_take_new_guard(self):
        plan = compile_plan([], lambda: True)
        with pytest.raises(TypeError, match="fixed by the BindingPlan"):
            evaluate(plan, lambda: False)


# =============================================================================
# END-TO-END IF-LIKE SCENARIOS
# =============================================================================

class TestAgeComparison:
    """The two-people comparison from the compound-if discussions."""

    def test_both_present_guard_true(self):
        people = [Person("ann", 30), Person("bob", 25)]
        outcome = evaluate(
            [
                BindingStep("p1", lambda: from_optional(people[0])),
                BindingStep("p2", lambda: from_optional(people[1])),
            ],
            lambda p1, p2: p1.age > p2.age,
        )
        assert isinstance(outcome, Bound)
        assert outcome.guard_value is True
        assert outcome.environment.p1.name == "ann"

    def test_second_absent_short_circuits(self):
        guard_calls = []

        def guard(p1, p2):
            guard_calls.append(1)
            return True

        outcome = evaluate(
            [
                BindingStep("p1", lambda: from_optional(Person("ann", 30))),
                BindingStep("p2", lambda: from_optional(None)),
            ],
            guard,
        )
        assert outcome == ShortCircuited(1)
        assert guard_calls == []
        assert not hasattr(outcome, "environment")


# =============================================================================
# FAULT AND OPTION TESTS
# =============================================================================

class TestFaults:
    """Faults are not caught by the evaluator."""

    def test_step_exception_propagates(self):
        def explode():
            raise ZeroDivisionError("boom")

        with pytest.raises(ZeroDivisionError, match="boom"):
            evaluate([BindingStep("a", explode)], lambda: True)

    def test_guard_exception_propagates(self):
        with pytest.raises(KeyError):
            evaluate([BindingStep("a", lambda: present({}))], lambda a: a["missing"])

    def test_bare_result_rejected_in_strict_mode(self):
        with pytest.raises(StepResultError) as exc:
            evaluate([BindingStep("a", lambda: 5)], lambda: True)
        assert exc.value.step_index == 0
        assert isinstance(exc.value, TypeError)

    def test_bare_none_rejected_in_strict_mode(self):
        """None is never absence on its own."""
        with pytest.raises(StepResultError, match="got NoneType"):
            evaluate([BindingStep("a", lambda: None)], lambda: True)

    def test_lenient_mode_wraps_bare_results(self):
        evaluator = ConditionalBindingEvaluator(EvaluatorOptions(strict_presence=False))
        outcome = evaluator.evaluate([BindingStep("a", lambda: 5)], lambda a: a == 5)
        assert outcome == Bound({"a": 5}, True)

    def test_trace_can_be_disabled(self):
        evaluator = ConditionalBindingEvaluator(EvaluatorOptions(record_trace=False))
        outcome = evaluator.evaluate([BindingStep("a", lambda: present(1))], lambda: True)
        assert outcome.trace == ()

    def test_illegal_transition_is_an_error(self):
        from condbind.evaluator import _Run

        run = _Run(total_steps=2, record_trace=True)
        with pytest.raises(IllegalTransitionError):
            run.advance(EvaluationState.guard_evaluated())
