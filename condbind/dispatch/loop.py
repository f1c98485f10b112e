"""
While-like Loop Driver for condbind.

Re-evaluates a binding plan once per iteration and runs the body while
the outcome is Bound(_, true).

Caller obligation:
    make_steps() must return FRESH steps each time it is called. The
    evaluator never re-runs an expression, so a step that reads a stream
    must be a new closure (or one that advances its own cursor).

Bindings from one iteration are visible only to that iteration's body.
Anything that must survive between iterations lives in the caller's
closures, not in the environment.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from ..domain import BindingStep, Bound, EvaluationOutcome, ShortCircuited
from ..evaluator import DEFAULT_EVALUATOR, ConditionalBindingEvaluator, compile_plan
from ..validation import inspect_body

logger = logging.getLogger(__name__)


class LoopLimitExceeded(RuntimeError):
    """Raised when a loop would run its body more than max_iterations times."""

    def __init__(self, max_iterations: int):
        self.max_iterations = max_iterations
        super().__init__(f"loop body would exceed {max_iterations} iterations")


@dataclass
class LoopReport:
    """
    Result of a while-like loop.

    outcomes has one entry per evaluation: every entering iteration,
    then the outcome that ended the loop.
    """
    iterations: int = 0
    outcomes: list[EvaluationOutcome] = field(default_factory=list)
    body_results: list[Any] = field(default_factory=list)

    @property
    def final_outcome(self) -> Optional[EvaluationOutcome]:
        return self.outcomes[-1] if self.outcomes else None

    @property
    def ended_by_absence(self) -> bool:
        return isinstance(self.final_outcome, ShortCircuited)

    @property
    def ended_by_guard(self) -> bool:
        return isinstance(self.final_outcome, Bound)


def while_bound(
    make_steps: Callable[[], Sequence[BindingStep]],
    guard: Callable[..., Any],
    body: Optional[Callable[..., Any]] = None,
    outer: Optional[Mapping[str, Any]] = None,
    max_iterations: Optional[int] = None,
    evaluator: Optional[ConditionalBindingEvaluator] = None,
) -> LoopReport:
    """
    Drive a while-like loop.

    Each iteration builds and validates a plan from make_steps(), so a
    misconfigured plan fails before its first expression runs.

    Raises:
        BindingConfigurationError: On misuse in steps, guard or body
        LoopLimitExceeded: If max_iterations is set and would be passed
    """
    evaluator = evaluator or DEFAULT_EVALUATOR
    report = LoopReport()

    while True:
        plan = compile_plan(make_steps(), guard, outer)
        body_refs = None
        if body is not None:
            body_refs = inspect_body(
                body, set(plan.outer) | set(plan.step_names), "loop body",
            )

        outcome = evaluator.run(plan)
        report.outcomes.append(outcome)

        if not outcome.takes_branch:
            logger.debug(
                "while_bound finished after %d iterations (%s)",
                report.iterations, type(outcome).__name__,
            )
            return report

        if max_iterations is not None and report.iterations >= max_iterations:
            raise LoopLimitExceeded(max_iterations)

        report.iterations += 1
        if body_refs is not None:
            scope = dict(plan.outer)
            scope.update(outcome.environment)
            report.body_results.append(body_refs.call(body, scope))
