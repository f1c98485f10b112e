"""
Construction-time Validation for condbind.

This module rejects a binding plan before any expression runs. The
check is all-or-nothing: a plan is either fully valid or raises
BindingConfigurationError. There is no partially valid plan.

Rules enforced (see MisuseRule):
1. Every step name is a valid, non-keyword identifier
2. Step names are unique and never shadow outer variables
3. An expression reads only names bound before it (or outer names)
4. The guard reads only bound names or outer names
"""

from __future__ import annotations

import inspect
import keyword
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from .domain import (
    BindingConfigurationError,
    BindingStep,
    MisuseRule,
)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

# Label used in error messages for the guard expression
GUARD_LABEL = "guard"


# =============================================================================
# EXPRESSION REFERENCES
# =============================================================================

@dataclass(frozen=True)
class ExpressionReferences:
    """
    The names an expression reads from scope.

    names:         Every keyword parameter, in declaration order
    defaulted:     Parameters with a default; may be left unbound
    reads_all:     Expression takes **kwargs and receives the whole scope
    """
    names: tuple[str, ...]
    defaulted: frozenset[str] = frozenset()
    reads_all: bool = False

    def select(self, scope: Mapping[str, Any]) -> dict[str, Any]:
        """Pick the keyword arguments for one call out of scope."""
        if self.reads_all:
            return dict(scope)
        return {
            name: scope[name]
            for name in self.names
            if name in scope or name not in self.defaulted
        }

    def call(self, expression: Callable[..., Any], scope: Mapping[str, Any]) -> Any:
        """Invoke expression with the names it reads."""
        return expression(**self.select(scope))


def inspect_references(
    expression: Callable[..., Any],
    requires: Optional[Sequence[str]],
    label: str,
    step_index: Optional[int] = None,
) -> ExpressionReferences:
    """
    Work out which names an expression reads.

    An explicit `requires` wins. Otherwise the expression's signature is
    inspected: keyword-capable parameters are references, **kwargs means
    "read everything visible".

    Raises:
        BindingConfigurationError: M7, M8, M9
    """
    if not callable(expression):
        raise BindingConfigurationError(
            MisuseRule.M9_NOT_CALLABLE,
            f"{label} expression is {type(expression).__name__}, not callable",
            step_index,
            location=label,
        )

    if requires is not None:
        return ExpressionReferences(names=tuple(requires))

    try:
        signature = inspect.signature(expression)
    except (TypeError, ValueError):
        raise BindingConfigurationError(
            MisuseRule.M8_UNINSPECTABLE_EXPRESSION,
            f"cannot inspect signature of {label} expression; pass requires=",
            step_index,
            location=label,
        )

    names: list[str] = []
    defaulted: set[str] = set()
    reads_all = False

    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_KEYWORD:
            reads_all = True
        elif param.kind is inspect.Parameter.VAR_POSITIONAL:
            continue
        elif param.kind is inspect.Parameter.POSITIONAL_ONLY:
            raise BindingConfigurationError(
                MisuseRule.M7_POSITIONAL_PARAMETER,
                f"{label} expression parameter {param.name!r} is positional-only",
                step_index,
                location=label,
            )
        else:
            names.append(param.name)
            if param.default is not inspect.Parameter.empty:
                defaulted.add(param.name)

    return ExpressionReferences(
        names=tuple(names),
        defaulted=frozenset(defaulted),
        reads_all=reads_all,
    )


# =============================================================================
# NAME VALIDATION
# =============================================================================

def validate_step_name(name: str, step_index: int) -> None:
    """
    Validate that a step name can be used as a keyword argument.

    Raises:
        BindingConfigurationError: If name is empty or not an identifier (M1)
    """
    if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
        raise BindingConfigurationError(
            MisuseRule.M1_INVALID_NAME,
            f"step name {name!r} is not a valid identifier",
            step_index,
        )


def validate_unique_names(
    steps: Sequence[BindingStep],
    outer_names: frozenset[str],
) -> None:
    """
    Validate step names are unique and do not shadow outer variables.

    Raises:
        BindingConfigurationError: M1, M2, M3
    """
    seen: dict[str, int] = {}

    for index, step in enumerate(steps):
        validate_step_name(step.name, index)

        if step.name in seen:
            raise BindingConfigurationError(
                MisuseRule.M2_DUPLICATE_NAME,
                f"{step.name!r} is already bound by step {seen[step.name]}",
                index,
            )
        if step.name in outer_names:
            raise BindingConfigurationError(
                MisuseRule.M3_SHADOWS_OUTER,
                f"{step.name!r} shadows an outer variable",
                index,
            )
        seen[step.name] = index


# =============================================================================
# VISIBILITY VALIDATION
# =============================================================================

def validate_step_visibility(
    references: ExpressionReferences,
    step_index: int,
    step_names: Sequence[str],
    outer_names: frozenset[str],
) -> None:
    """
    Validate that a step only reads names bound before it.

    Raises:
        BindingConfigurationError: M4 (self), M5 (later step), M6 (unknown)
    """
    own_name = step_names[step_index]
    earlier = set(step_names[:step_index])
    later = set(step_names[step_index + 1:])

    for name in references.names:
        if name in earlier or name in outer_names:
            continue
        if name == own_name:
            raise BindingConfigurationError(
                MisuseRule.M4_SELF_REFERENCE,
                f"expression for {own_name!r} reads its own name",
                step_index,
            )
        if name in later:
            raise BindingConfigurationError(
                MisuseRule.M5_FORWARD_REFERENCE,
                f"expression for {own_name!r} reads {name!r}, "
                f"which is bound by step {list(step_names).index(name)}",
                step_index,
            )
        if name in references.defaulted:
            continue
        raise BindingConfigurationError(
            MisuseRule.M6_UNKNOWN_NAME,
            f"expression for {own_name!r} reads unknown name {name!r}",
            step_index,
        )


def validate_guard_visibility(
    references: ExpressionReferences,
    step_names: Sequence[str],
    outer_names: frozenset[str],
) -> None:
    """
    Validate that the guard only reads bound or outer names.

    Raises:
        BindingConfigurationError: If guard reads an unknown name (M6)
    """
    validate_reads(references, set(step_names) | outer_names, GUARD_LABEL)


def validate_reads(
    references: ExpressionReferences,
    visible_names: set[str] | frozenset[str],
    label: str,
) -> None:
    """
    Validate that a guard or branch body only reads visible names.

    Raises:
        BindingConfigurationError: If an unknown name is read (M6)
    """
    for name in references.names:
        if name in visible_names or name in references.defaulted:
            continue
        raise BindingConfigurationError(
            MisuseRule.M6_UNKNOWN_NAME,
            f"{label} reads unknown name {name!r}",
            location=label,
        )


def inspect_body(
    body: Callable[..., Any],
    visible_names: set[str] | frozenset[str],
    label: str,
) -> ExpressionReferences:
    """Inspect a branch body and check it only reads visible names."""
    references = inspect_references(body, None, label=label)
    validate_reads(references, visible_names, label)
    return references
