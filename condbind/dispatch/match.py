"""
When-like Multi-way Dispatcher for condbind.

The guard produces a match subject instead of a boolean. Cases are
tried in order and the first match wins:

    Case(value, body)             — subject == value
    Case.any_of(values, body)     — subject in values
    Case.of_type(cls, body)       — isinstance(subject, cls)
    Case.where(predicate, body)   — predicate(subject) is truthy

No match falls through to the else-body. A ShortCircuited outcome has
no subject and goes straight to the else-body. Without an else-body,
both raise NoMatchingCaseError.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Sequence

from ..domain import BindingStep, Bound, EvaluationOutcome
from ..evaluator import DEFAULT_EVALUATOR, ConditionalBindingEvaluator, compile_plan
from ..validation import inspect_body

logger = logging.getLogger(__name__)


class NoMatchingCaseError(LookupError):
    """Raised when no case matches and no else-body was given."""

    def __init__(self, outcome: EvaluationOutcome):
        self.outcome = outcome
        if isinstance(outcome, Bound):
            message = f"no case matches subject {outcome.guard_value!r}"
        else:
            message = f"step {outcome.at_step_index} was absent and there is no else case"
        super().__init__(message)


class Case:
    """One `pattern -> body` clause. Case(value, body) matches by equality."""

    def __init__(self, value: Any, body: Callable[..., Any], label: str = ""):
        self._pattern: Callable[[Any], bool] = lambda subject: subject == value
        self.body = body
        self.label = label or repr(value)

    @classmethod
    def where(
        cls, predicate: Callable[[Any], bool], body: Callable[..., Any], label: str = "",
    ) -> Case:
        case = cls(None, body, label or getattr(predicate, "__name__", "predicate"))
        case._pattern = lambda subject: bool(predicate(subject))
        return case

    @classmethod
    def any_of(cls, values: Iterable[Any], body: Callable[..., Any]) -> Case:
        values = tuple(values)
        return cls.where(
            lambda subject: subject in values,
            body,
            label=", ".join(repr(v) for v in values),
        )

    @classmethod
    def of_type(cls, target: type, body: Callable[..., Any]) -> Case:
        return cls.where(
            lambda subject: isinstance(subject, target),
            body,
            label=f"is {target.__name__}",
        )

    def matches(self, subject: Any) -> bool:
        return self._pattern(subject)

    def __repr__(self) -> str:
        return f"Case({self.label})"


@dataclass(frozen=True)
class MatchResult:
    """
    Which case ran and what it returned.

    case_index is None when the else-body ran.
    """
    case_index: Optional[int]
    label: str
    value: Any
    outcome: EvaluationOutcome

    @property
    def matched_case(self) -> bool:
        return self.case_index is not None


def when_bound(
    steps: Sequence[BindingStep],
    subject: Callable[..., Any],
    cases: Iterable[Case],
    otherwise: Optional[Callable[..., Any]] = None,
    outer: Optional[Mapping[str, Any]] = None,
    evaluator: Optional[ConditionalBindingEvaluator] = None,
) -> MatchResult:
    """
    Bind steps, compute the subject, dispatch on the first matching case.

    Case bodies may read bound and outer names; the else-body only outer
    names. Every body is checked before anything runs.

    Raises:
        BindingConfigurationError: On misuse in steps, subject or bodies
        NoMatchingCaseError: If nothing matches and there is no else-body
    """
    evaluator = evaluator or DEFAULT_EVALUATOR
    cases = tuple(cases)
    plan = compile_plan(steps, subject, outer)
    outer_names = set(plan.outer)
    bound_names = outer_names | set(plan.step_names)

    case_refs = [
        inspect_body(case.body, bound_names, f"case {case.label}")
        for case in cases
    ]
    else_refs = (
        inspect_body(otherwise, outer_names, "else-body")
        if otherwise is not None else None
    )

    outcome = evaluator.run(plan)

    if isinstance(outcome, Bound):
        scope = dict(plan.outer)
        scope.update(outcome.environment)
        for index, case in enumerate(cases):
            if case.matches(outcome.guard_value):
                return MatchResult(
                    case_index=index,
                    label=case.label,
                    value=case_refs[index].call(case.body, scope),
                    outcome=outcome,
                )

    if else_refs is None:
        raise NoMatchingCaseError(outcome)

    logger.debug("when_bound fell through to else after %s", type(outcome).__name__)
    return MatchResult(
        case_index=None,
        label="else",
        value=else_refs.call(otherwise, plan.outer),
        outcome=outcome,
    )
