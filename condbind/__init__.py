# condbind
# Compound conditional binding: bind in order, then branch

"""
Core invariant: a binding step runs at most once per evaluation, and the
first absent step ends the evaluation before any later step or the guard.

Modules:
    presence    — Present / Absent result type
    domain      — steps, environments, states and outcomes
    validation  — construction-time checks
    evaluator   — ConditionalBindingEvaluator
    dispatch    — if-like, while-like and when-like call sites
"""
