"""
Property-based testing using Hypothesis.

This package contains property tests that verify mathematical invariants
hold across randomly generated inputs.

Modules:
    test_payoff_invariants: Vanilla payoff floor and call-put identity
    test_aggregation_invariants: Reduction is order- and partition-independent
    test_euler_invariants: Scalar and batch paths agree; zero-noise growth
"""
