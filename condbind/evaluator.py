"""
Conditional Binding Evaluator for condbind.

Evaluates an ordered list of binding steps followed by a guard.

Core principle (non-negotiable):
    Steps run left to right, each exactly once. The first Absent step
    ends evaluation: no later step and no guard is ever evaluated.

Outcomes:
    Bound(environment, guard_value) — all steps present, guard evaluated
    ShortCircuited(at_step_index)   — step at_step_index was absent

Faults raised by expressions are not caught here. They surface exactly
as they would if the expression were called directly.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from .domain import (
    EMPTY_ENVIRONMENT,
    BindingEnvironment,
    BindingStep,
    Bound,
    EvaluationOutcome,
    EvaluationState,
    IllegalTransitionError,
    ShortCircuited,
    StepResultError,
)
from .presence import Absent, Present
from .validation import (
    GUARD_LABEL,
    ExpressionReferences,
    inspect_references,
    validate_guard_visibility,
    validate_step_visibility,
    validate_unique_names,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

# Record the Pending -> ... -> terminal state trace on every outcome
DEFAULT_RECORD_TRACE = True

# Reject step results that are not Present/Absent
DEFAULT_STRICT_PRESENCE = True


@dataclass(frozen=True)
class EvaluatorOptions:
    """
    Fixed evaluator behaviour switches.

    record_trace:     attach the state trace to each outcome
    strict_presence:  raise StepResultError for non-Presence step results;
                      when off, a bare result is treated as Present(result)
    """
    record_trace: bool = DEFAULT_RECORD_TRACE
    strict_presence: bool = DEFAULT_STRICT_PRESENCE


DEFAULT_OPTIONS = EvaluatorOptions()


# =============================================================================
# BINDING PLAN
# =============================================================================

@dataclass(frozen=True)
class BindingPlan:
    """
    A validated sequence of steps plus a guard.

    Building a plan runs every construction-time check, so a BindingPlan
    that exists is known to be well formed. Plans hold no evaluation
    state and can be evaluated any number of times.
    """
    steps: tuple[BindingStep, ...]
    guard: Callable[..., Any]
    outer: Mapping[str, Any]
    step_references: tuple[ExpressionReferences, ...]
    guard_references: ExpressionReferences

    @property
    def step_names(self) -> tuple[str, ...]:
        return tuple(step.name for step in self.steps)

    def __len__(self) -> int:
        return len(self.steps)


def compile_plan(
    steps: Sequence[BindingStep],
    guard: Callable[..., Any],
    outer: Optional[Mapping[str, Any]] = None,
) -> BindingPlan:
    """
    Validate steps and guard, returning a reusable BindingPlan.

    Raises:
        BindingConfigurationError: On any misuse (see MisuseRule)
    """
    steps = tuple(steps)
    outer = dict(outer or {})
    outer_names = frozenset(outer)

    validate_unique_names(steps, outer_names)
    step_names = [step.name for step in steps]

    references: list[ExpressionReferences] = []
    for index, step in enumerate(steps):
        refs = inspect_references(
            step.expression, step.requires, label=repr(step.name), step_index=index,
        )
        validate_step_visibility(refs, index, step_names, outer_names)
        references.append(refs)

    guard_refs = inspect_references(guard, None, label=GUARD_LABEL)
    validate_guard_visibility(guard_refs, step_names, outer_names)

    return BindingPlan(
        steps=steps,
        guard=guard,
        outer=outer,
        step_references=tuple(references),
        guard_references=guard_refs,
    )


def validate_plan(
    steps: Sequence[BindingStep],
    guard: Callable[..., Any],
    outer: Optional[Mapping[str, Any]] = None,
) -> None:
    """Run every construction-time check without keeping the plan."""
    compile_plan(steps, guard, outer)


# =============================================================================
# EVALUATOR
# =============================================================================

class _Run:
    """Mutable per-call bookkeeping. Never outlives one evaluate() call."""

    def __init__(self, total_steps: int, record_trace: bool):
        self.total_steps = total_steps
        self.state = EvaluationState.pending(0)
        self.trace: list[EvaluationState] = [self.state] if record_trace else []
        self.record_trace = record_trace

    def advance(self, target: EvaluationState) -> None:
        if not self.state.can_advance_to(target, self.total_steps):
            raise IllegalTransitionError(f"{self.state} -> {target}")
        logger.debug("binding state %s -> %s", self.state, target)
        self.state = target
        if self.record_trace:
            self.trace.append(target)


class ConditionalBindingEvaluator:
    """
    Runs binding plans.

    The evaluator itself is stateless apart from its options; all
    per-call state lives in a fresh environment created by evaluate().
    """

    def __init__(self, options: Optional[EvaluatorOptions] = None):
        self.options = options or DEFAULT_OPTIONS

    def evaluate(
        self,
        steps: Sequence[BindingStep] | BindingPlan,
        guard: Optional[Callable[..., Any]] = None,
        outer: Optional[Mapping[str, Any]] = None,
    ) -> EvaluationOutcome:
        """
        Evaluate steps in order, then the guard.

        Accepts either raw steps plus a guard (validated eagerly, before
        any expression runs) or a precompiled BindingPlan.

        Returns:
            Bound when every step is present, ShortCircuited otherwise
        """
        if isinstance(steps, BindingPlan):
            if guard is not None or outer is not None:
                raise TypeError("guard and outer are fixed by the BindingPlan")
            plan = steps
        else:
            if guard is None:
                raise TypeError("evaluate() requires a guard")
            plan = compile_plan(steps, guard, outer)

        return self.run(plan)

    def run(self, plan: BindingPlan) -> EvaluationOutcome:
        """Evaluate a precompiled plan."""
        progress = _Run(len(plan), self.options.record_trace)
        environment = EMPTY_ENVIRONMENT

        for index, step in enumerate(plan.steps):
            scope = _scope(plan.outer, environment)
            result = plan.step_references[index].call(step.expression, scope)
            result = self._check_result(result, index, step.name)

            if isinstance(result, Absent):
                progress.advance(EvaluationState.short_circuited(index))
                logger.debug(
                    "step %d (%s) absent, short-circuiting: %s",
                    index, step.name, result.reason,
                )
                return ShortCircuited(
                    at_step_index=index,
                    step_name=step.name,
                    reason=result.reason,
                    trace=tuple(progress.trace),
                )

            environment = environment.extend(step.name, result.value)
            progress.advance(EvaluationState.pending(index + 1))

        guard_value = plan.guard_references.call(
            plan.guard, _scope(plan.outer, environment),
        )
        progress.advance(EvaluationState.guard_evaluated())

        return Bound(
            environment=environment,
            guard_value=guard_value,
            trace=tuple(progress.trace),
        )

    def _check_result(self, result: Any, index: int, name: str) -> Present | Absent:
        if isinstance(result, (Present, Absent)):
            return result
        if self.options.strict_presence:
            raise StepResultError(index, name, result)
        return Present(result)


def _scope(outer: Mapping[str, Any], environment: BindingEnvironment) -> dict[str, Any]:
    scope = dict(outer)
    scope.update(environment)
    return scope


# Module-level evaluator with default options
DEFAULT_EVALUATOR = ConditionalBindingEvaluator()


def evaluate(
    steps: Sequence[BindingStep] | BindingPlan,
    guard: Optional[Callable[..., Any]] = None,
    outer: Optional[Mapping[str, Any]] = None,
) -> EvaluationOutcome:
    """Evaluate with the default evaluator. See ConditionalBindingEvaluator."""
    return DEFAULT_EVALUATOR.evaluate(steps, guard, outer)
