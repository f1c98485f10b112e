# Dispatch package for condbind
"""
Call-site adapters over the one ConditionalBindingEvaluator.

    if_bound    — two-way branch (ShortCircuited and false both go to else)
    let_all     — run a block only when every given value is present
    while_bound — loop driver, fresh steps per iteration
    when_bound  — ordered first-match dispatch over case clauses
"""
