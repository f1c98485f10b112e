"""
Presence — The canonical "value or no value" contract for condbind.

SYSTEM INVARIANT:
    A binding step never signals absence with a bare None. Every step
    result is either Present(value) or Absent(reason). The evaluator
    refuses anything else.

Presence Types:
    Present — A value was produced (the value itself may be any object)
    Absent  — No value was produced; carries an optional audit reason
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union


@dataclass(frozen=True)
class Present:
    """
    A step result carrying a value.

    The wrapped value is allowed to be None: Present(None) is a real
    value, not absence. Use from_optional() when None should mean absent.
    """
    value: Any

    @property
    def is_present(self) -> bool:
        return True

    def map(self, fn: Callable[[Any], Any]) -> Present:
        """Apply fn to the wrapped value."""
        return Present(fn(self.value))

    def or_else(self, default: Any) -> Any:
        return self.value


@dataclass(frozen=True)
class Absent:
    """
    A step result with no value.

    The reason is for explanation only. Two Absent results compare
    equal regardless of reason.
    """
    reason: Optional[str] = None

    @property
    def is_present(self) -> bool:
        return False

    def map(self, fn: Callable[[Any], Any]) -> Absent:
        return self

    def or_else(self, default: Any) -> Any:
        return default

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Absent)

    def __hash__(self) -> int:
        return hash(Absent)


Presence = Union[Present, Absent]

ABSENT = Absent()


def is_presence(obj: object) -> bool:
    """Check whether obj is a Present or Absent result."""
    return isinstance(obj, (Present, Absent))


def present(value: Any) -> Present:
    """Factory function for a Present result."""
    return Present(value)


def absent(reason: Optional[str] = None) -> Absent:
    """Factory function for an Absent result with an audit reason."""
    if reason is None:
        return ABSENT
    return Absent(reason)


def from_optional(value: Any, reason: Optional[str] = None) -> Presence:
    """
    Convert a nullable value into a Presence.

    None becomes Absent, anything else becomes Present.
    """
    if value is None:
        return absent(reason or "value is None")
    return Present(value)


def safe_cast(value: Any, target: Union[type, tuple[type, ...]]) -> Presence:
    """
    Cast-or-absent, the equivalent of a safe cast (``as?``).

    Returns Present(value) when value is an instance of target,
    Absent otherwise. No conversion is attempted.
    """
    if isinstance(value, target):
        return Present(value)

    if isinstance(target, tuple):
        target_name = " | ".join(t.__name__ for t in target)
    else:
        target_name = target.__name__
    return Absent(f"{type(value).__name__} is not {target_name}")


def optional_result(fn: Callable[..., Any]) -> Callable[..., Presence]:
    """
    Decorator lifting an Optional-returning function into a
    Presence-returning one.

    The wrapped function keeps its signature, so its parameter names
    still declare which bound names it reads.
    """
    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Presence:
        return from_optional(
            fn(*args, **kwargs),
            reason=f"{getattr(fn, '__name__', 'expression')} returned None",
        )

    return wrapper
