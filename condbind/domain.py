"""
Core Domain Objects for condbind.

Domain Objects:
    BindingStep         — A named, ordered expression producing a Presence
    BindingEnvironment  — The read-only, extend-only map of bound names
    EvaluationState     — One state of the per-call state machine
    Bound               — Outcome: every step present, guard evaluated
    ShortCircuited      — Outcome: a step was absent, guard never reached

Misuse of the construct (bad names, forward references) is a
construction-time failure, raised as BindingConfigurationError with an
explicit MisuseRule. Absence is never an error.
"""

from __future__ import annotations

import functools
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Optional, Union

from .presence import Presence, from_optional


# =============================================================================
# MISUSE SYSTEM
# =============================================================================

class MisuseRule(Enum):
    """
    Construction-time rules. Any of these rejects the whole plan before
    a single expression runs:
    M1: Step name is not a valid identifier
    M2: Two steps share a name
    M3: Step name shadows an outer variable
    M4: Expression reads its own step's name
    M5: Expression reads a name bound by a later step
    M6: Expression reads a name that is never bound
    M7: Expression takes positional-only parameters
    M8: Expression signature cannot be inspected and no `requires` given
    M9: Expression is not callable
    """
    M1_INVALID_NAME = "invalid_name"
    M2_DUPLICATE_NAME = "duplicate_name"
    M3_SHADOWS_OUTER = "shadows_outer"
    M4_SELF_REFERENCE = "self_reference"
    M5_FORWARD_REFERENCE = "forward_reference"
    M6_UNKNOWN_NAME = "unknown_name"
    M7_POSITIONAL_PARAMETER = "positional_parameter"
    M8_UNINSPECTABLE_EXPRESSION = "uninspectable_expression"
    M9_NOT_CALLABLE = "not_callable"


class BindingConfigurationError(Exception):
    """Raised when a binding plan is rejected before evaluation."""

    def __init__(
        self,
        rule: MisuseRule,
        reason: str,
        step_index: Optional[int] = None,
        location: Optional[str] = None,
    ):
        self.rule = rule
        self.reason = reason
        self.step_index = step_index
        if step_index is not None:
            location = f"step {step_index}"
        self.location = location or "guard"
        super().__init__(f"[{rule.value}] {self.location}: {reason}")


class StepResultError(TypeError):
    """Raised when a step expression returns something other than a Presence."""

    def __init__(self, step_index: int, step_name: str, result: Any):
        self.step_index = step_index
        self.step_name = step_name
        self.result = result
        super().__init__(
            f"step {step_index} ({step_name!r}) must return Present or Absent, "
            f"got {type(result).__name__}"
        )


class IllegalTransitionError(RuntimeError):
    """Raised when the evaluation state machine is driven out of order."""
    pass


# =============================================================================
# BINDING STEP
# =============================================================================

@dataclass(frozen=True)
class BindingStep:
    """
    A named expression introducing one variable.

    The expression reads earlier bound names through its keyword
    parameters: ``BindingStep("p2", lambda p1: ...)`` may only follow a
    step named ``p1``. Pass ``requires`` to declare the names explicitly
    for callables whose signature cannot be inspected.
    """
    name: str
    expression: Callable[..., Presence]
    requires: Optional[tuple[str, ...]] = None

    @classmethod
    def of_optional(
        cls,
        name: str,
        expression: Callable[..., Any],
        requires: Optional[tuple[str, ...]] = None,
    ) -> BindingStep:
        """
        Build a step from an expression returning a plain Optional value.

        None results become Absent; everything else becomes Present.
        """
        # wraps() keeps the original signature visible to plan validation
        @functools.wraps(expression)
        def lifted(**scope: Any) -> Presence:
            return from_optional(expression(**scope), reason=f"{name} is None")

        return cls(
            name=name,
            expression=lifted,
            requires=tuple(requires) if requires is not None else None,
        )


# =============================================================================
# BINDING ENVIRONMENT
# =============================================================================

class BindingEnvironment(Mapping):
    """
    Ordered, read-only mapping of bound names to values.

    Never mutated: extend() returns a new environment with one more
    binding. Bound names are also readable as attributes when they do not
    collide with Mapping methods (``env.p1``).
    """

    __slots__ = ("_bindings",)

    def __init__(self, bindings: Optional[Mapping[str, Any]] = None):
        object.__setattr__(self, "_bindings", dict(bindings or {}))

    def extend(self, name: str, value: Any) -> BindingEnvironment:
        """Return a new environment with name bound to value."""
        if name in self._bindings:
            raise ValueError(f"{name!r} is already bound")
        extended = dict(self._bindings)
        extended[name] = value
        return BindingEnvironment(extended)

    def names(self) -> tuple[str, ...]:
        """Bound names in binding order."""
        return tuple(self._bindings)

    def as_dict(self) -> dict[str, Any]:
        """Return a copy of all bindings."""
        return dict(self._bindings)

    def __getitem__(self, name: str) -> Any:
        return self._bindings[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._bindings[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("BindingEnvironment is read-only")

    # copy and pickle rebuild through __init__, never through __setattr__
    def __reduce__(self):
        return (BindingEnvironment, (self._bindings,))

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in self._bindings.items())
        return f"BindingEnvironment({inner})"


EMPTY_ENVIRONMENT = BindingEnvironment()


# =============================================================================
# STATE MACHINE
# =============================================================================

class EvaluationPhase(Enum):
    PENDING = "pending"
    SHORT_CIRCUITED = "short_circuited"
    GUARD_EVALUATED = "guard_evaluated"


@dataclass(frozen=True)
class EvaluationState:
    """
    One state of a single evaluate() call.

    Pending(i) means step i is about to run. ShortCircuited(i) and
    GuardEvaluated are terminal.
    """
    phase: EvaluationPhase
    step_index: Optional[int] = None

    @classmethod
    def pending(cls, step_index: int) -> EvaluationState:
        return cls(EvaluationPhase.PENDING, step_index)

    @classmethod
    def short_circuited(cls, step_index: int) -> EvaluationState:
        return cls(EvaluationPhase.SHORT_CIRCUITED, step_index)

    @classmethod
    def guard_evaluated(cls) -> EvaluationState:
        return cls(EvaluationPhase.GUARD_EVALUATED)

    @property
    def is_terminal(self) -> bool:
        return self.phase is not EvaluationPhase.PENDING

    def can_advance_to(self, target: EvaluationState, total_steps: int) -> bool:
        """Check a transition against the state machine."""
        if self.is_terminal:
            return False

        i = self.step_index
        if target.phase is EvaluationPhase.PENDING:
            return target.step_index == i + 1 and target.step_index <= total_steps
        if target.phase is EvaluationPhase.SHORT_CIRCUITED:
            return target.step_index == i and i < total_steps
        return i == total_steps

    def __str__(self) -> str:
        if self.phase is EvaluationPhase.PENDING:
            return f"Pending({self.step_index})"
        if self.phase is EvaluationPhase.SHORT_CIRCUITED:
            return f"ShortCircuited({self.step_index})"
        return "GuardEvaluated"


# =============================================================================
# OUTCOMES
# =============================================================================

@dataclass(frozen=True)
class Bound:
    """
    Every step produced a value and the guard was evaluated.

    guard_value is a bool for if-like and while-like use, and an
    arbitrary match subject for when-like use.
    """
    environment: BindingEnvironment
    guard_value: Any
    trace: tuple[EvaluationState, ...] = field(default=(), compare=False)

    @property
    def takes_branch(self) -> bool:
        """True when an if-like or while-like body should run."""
        return bool(self.guard_value)

    @property
    def steps_consumed(self) -> int:
        return len(self.environment)


@dataclass(frozen=True)
class ShortCircuited:
    """
    Step at_step_index produced Absent. Later steps and the guard never ran.

    Values bound before the absent step are discarded with the outcome.
    """
    at_step_index: int
    step_name: str = field(default="", compare=False)
    reason: Optional[str] = field(default=None, compare=False)
    trace: tuple[EvaluationState, ...] = field(default=(), compare=False)

    @property
    def takes_branch(self) -> bool:
        return False

    @property
    def steps_consumed(self) -> int:
        return self.at_step_index


EvaluationOutcome = Union[Bound, ShortCircuited]


def explain_outcome(outcome: EvaluationOutcome) -> str:
    """Human-readable summary of an outcome and its state trace."""
    lines = []
    if isinstance(outcome, Bound):
        lines.append(f"Bound(guard={outcome.guard_value!r})")
        for name, value in outcome.environment.items():
            lines.append(f"  • {name} = {value!r}")
    else:
        lines.append(f"ShortCircuited({outcome.at_step_index})")
        if outcome.step_name:
            lines.append(f"  • absent step: {outcome.step_name}")
        if outcome.reason:
            lines.append(f"  • reason: {outcome.reason}")

    if outcome.trace:
        lines.append("  trace: " + " -> ".join(str(s) for s in outcome.trace))

    return "\n".join(lines)
