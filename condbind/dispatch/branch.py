"""
If-like Branch Dispatcher for condbind.

Two-way branching over one evaluation:
    Bound(_, true)   -> then-body, with every bound name in scope
    Bound(_, false)  -> else-body
    ShortCircuited   -> else-body

The else-body never sees the bindings. Values bound before an absent
step are discarded without the guard running.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from ..domain import BindingStep, EvaluationOutcome
from ..evaluator import DEFAULT_EVALUATOR, ConditionalBindingEvaluator, compile_plan
from ..presence import from_optional, is_presence
from ..validation import inspect_body

logger = logging.getLogger(__name__)


class Branch(Enum):
    THEN = "then"
    ELSE = "else"
    NONE = "none"  # else selected but no else-body given


@dataclass(frozen=True)
class BranchResult:
    """Which branch ran, what it returned, and the outcome behind it."""
    branch: Branch
    value: Any
    outcome: EvaluationOutcome

    @property
    def entered(self) -> bool:
        return self.branch is Branch.THEN


def if_bound(
    steps: Sequence[BindingStep],
    guard: Callable[..., Any],
    then: Callable[..., Any],
    otherwise: Optional[Callable[..., Any]] = None,
    outer: Optional[Mapping[str, Any]] = None,
    evaluator: Optional[ConditionalBindingEvaluator] = None,
) -> BranchResult:
    """
    Bind steps, test guard, run one branch.

    Both bodies are checked before anything runs: the then-body may read
    bound and outer names, the else-body only outer names.

    Raises:
        BindingConfigurationError: On misuse in steps, guard or bodies
    """
    evaluator = evaluator or DEFAULT_EVALUATOR
    plan = compile_plan(steps, guard, outer)
    outer_names = set(plan.outer)

    then_refs = inspect_body(then, outer_names | set(plan.step_names), "then-body")
    else_refs = (
        inspect_body(otherwise, outer_names, "else-body")
        if otherwise is not None else None
    )

    outcome = evaluator.run(plan)

    if outcome.takes_branch:
        scope = dict(plan.outer)
        scope.update(outcome.environment)
        return BranchResult(Branch.THEN, then_refs.call(then, scope), outcome)

    logger.debug("if_bound selected else branch after %s", type(outcome).__name__)
    if else_refs is None:
        return BranchResult(Branch.NONE, None, outcome)
    return BranchResult(Branch.ELSE, else_refs.call(otherwise, plan.outer), outcome)


def _constant(value: Any) -> Callable[[], Any]:
    def expression() -> Any:
        return value if is_presence(value) else from_optional(value)
    return expression


def let_all(
    values: Mapping[str, Any],
    block: Callable[..., Any],
    otherwise: Optional[Callable[..., Any]] = None,
    evaluator: Optional[ConditionalBindingEvaluator] = None,
) -> BranchResult:
    """
    Run block only when every value is present (a "multilet").

    Values are already computed: None or Absent counts as missing,
    Present(x) and any other object count as present. The block receives
    the unwrapped values by name.
    """
    steps = [
        BindingStep(name, _constant(value), requires=())
        for name, value in values.items()
    ]
    return if_bound(
        steps,
        guard=lambda: True,
        then=block,
        otherwise=otherwise,
        evaluator=evaluator,
    )
