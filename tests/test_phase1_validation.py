"""
Tests for condbind — Phase 1 Construction-time Validation.

These tests verify:
1. Misuse is rejected before any expression runs
2. Every rejection carries an explicit MisuseRule
3. Valid references are accepted
"""

import functools

import pytest

from condbind.domain import BindingConfigurationError, BindingStep, MisuseRule
from condbind.evaluator import compile_plan, evaluate, validate_plan
from condbind.presence import present


def counting(calls, name, value=1):
    """A zero-arg step expression that records when it runs."""
    def expression():
        calls.append(name)
        return present(value)
    return expression


# =============================================================================
# NAME RULES
# =============================================================================

class TestNameRules:
    """Test step-name validation."""

    @pytest.mark.parametrize("bad_name", ["", "1abc", "with space", "class"])
    def test_invalid_names_rejected(self, bad_name):
        with pytest.raises(BindingConfigurationError) as exc:
            validate_plan([BindingStep(bad_name, lambda: present(1))], lambda: True)
        assert exc.value.rule is MisuseRule.M1_INVALID_NAME
        assert exc.value.step_index == 0

    def test_duplicate_name_rejected(self):
        steps = [
            BindingStep("a", lambda: present(1)),
            BindingStep("a", lambda: present(2)),
        ]
        with pytest.raises(BindingConfigurationError) as exc:
            validate_plan(steps, lambda: True)
        assert exc.value.rule is MisuseRule.M2_DUPLICATE_NAME
        assert exc.value.step_index == 1

    def test_outer_shadowing_rejected(self):
        with pytest.raises(BindingConfigurationError) as exc:
            validate_plan(
                [BindingStep("limit", lambda: present(1))],
                lambda: True,
                outer={"limit": 10},
            )
        assert exc.value.rule is MisuseRule.M3_SHADOWS_OUTER


# =============================================================================
# VISIBILITY RULES
# =============================================================================

class TestVisibilityRules:
    """Test sequential visibility of bound names."""

    def test_earlier_name_accepted(self):
        plan = compile_plan(
            [
                BindingStep("a", lambda: present(1)),
                BindingStep("b", lambda a: present(a + 1)),
            ],
            lambda a, b: a < b,
        )
        assert plan.step_names == ("a", "b")
        assert plan.step_references[1].names == ("a",)

    def test_self_reference_rejected(self):
        with pytest.raises(BindingConfigurationError) as exc:
            validate_plan([BindingStep("a", lambda a: present(a))], lambda: True)
        assert exc.value.rule is MisuseRule.M4_SELF_REFERENCE

    def test_forward_reference_rejected(self):
        steps = [
            BindingStep("a", lambda b: present(b)),
            BindingStep("b", lambda: present(1)),
        ]
        with pytest.raises(BindingConfigurationError) as exc:
            validate_plan(steps, lambda: True)
        assert exc.value.rule is MisuseRule.M5_FORWARD_REFERENCE
        assert exc.value.step_index == 0
        assert "bound by step 1" in exc.value.reason

    def test_forward_reference_with_default_still_rejected(self):
        """A default value never hides a read of a later step."""
        steps = [
            BindingStep("a", lambda b=None: present(b)),
            BindingStep("b", lambda: present(1)),
        ]
        with pytest.raises(BindingConfigurationError) as exc:
            validate_plan(steps, lambda: True)
        assert exc.value.rule is MisuseRule.M5_FORWARD_REFERENCE

    def test_unknown_name_rejected(self):
        with pytest.raises(BindingConfigurationError) as exc:
            validate_plan([BindingStep("a", lambda nowhere: present(1))], lambda: True)
        assert exc.value.rule is MisuseRule.M6_UNKNOWN_NAME

    def test_unknown_name_with_default_accepted(self):
        plan = compile_plan([BindingStep("a", lambda scale=2: present(scale))], lambda: True)
        assert plan.step_references[0].defaulted == frozenset({"scale"})

    def test_outer_name_visible_to_steps_and_guard(self):
        validate_plan(
            [BindingStep("a", lambda limit: present(limit))],
            lambda a, limit: a <= limit,
            outer={"limit": 3},
        )

    def test_guard_unknown_name_rejected(self):
        with pytest.raises(BindingConfigurationError) as exc:
            validate_plan([BindingStep("a", lambda: present(1))], lambda zzz: True)
        assert exc.value.rule is MisuseRule.M6_UNKNOWN_NAME
        assert exc.value.step_index is None
        assert "guard" in str(exc.value)

    def test_explicit_requires_checked(self):
        steps = [BindingStep("a", lambda **kw: present(1), requires=("b",))]
        with pytest.raises(BindingConfigurationError) as exc:
            validate_plan(steps, lambda: True)
        assert exc.value.rule is MisuseRule.M6_UNKNOWN_NAME


# =============================================================================
# EXPRESSION SHAPE RULES
# =============================================================================

class TestExpressionShape:
    """Test rules about how expressions can be called."""

    def test_positional_only_rejected(self):
        def expression(a, /):
            return present(a)

        steps = [BindingStep("a", lambda: present(1)), BindingStep("b", expression)]
        with pytest.raises(BindingConfigurationError) as exc:
            validate_plan(steps, lambda: True)
        assert exc.value.rule is MisuseRule.M7_POSITIONAL_PARAMETER

    def test_uninspectable_without_requires_rejected(self):
        class Opaque:
            __signature__ = "not a signature"

            def __call__(self):
                return present(1)

        with pytest.raises(BindingConfigurationError) as exc:
            validate_plan([BindingStep("a", Opaque())], lambda: True)
        assert exc.value.rule is MisuseRule.M8_UNINSPECTABLE_EXPRESSION

    def test_not_callable_rejected(self):
        with pytest.raises(BindingConfigurationError) as exc:
            validate_plan([BindingStep("a", 42)], lambda: True)
        assert exc.value.rule is MisuseRule.M9_NOT_CALLABLE

    def test_kwargs_reads_whole_scope(self):
        plan = compile_plan(
            [
                BindingStep("a", lambda: present(1)),
                BindingStep("b", lambda **scope: present(sorted(scope))),
            ],
            lambda: True,
            outer={"z": 0},
        )
        assert plan.step_references[1].reads_all

    def test_partial_signature_is_inspected(self):
        def add(a, offset):
            return present(a + offset)

        validate_plan(
            [
                BindingStep("a", lambda: present(1)),
                BindingStep("b", functools.partial(add, offset=5)),
            ],
            lambda b: b > 0,
        )


# =============================================================================
# FAIL-FAST
# =============================================================================

class TestFailFast:
    """Misuse must surface before any expression executes."""

    def test_no_expression_runs_on_misuse(self):
        calls = []
        steps = [
            BindingStep("a", counting(calls, "a")),
            BindingStep("b", lambda later: present(later)),
            BindingStep("later", counting(calls, "later")),
        ]
        with pytest.raises(BindingConfigurationError):
            evaluate(steps, lambda: True)
        assert calls == []

    def test_error_message_names_rule_and_step(self):
        with pytest.raises(BindingConfigurationError, match=r"\[self_reference\] step 0"):
            validate_plan([BindingStep("a", lambda a: present(a))], lambda: True)
