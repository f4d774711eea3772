"""
Centralized tolerance framework for the Euler Monte Carlo pricer.

Tolerance Tiers:
    Tier 1 (Analytical): Deterministic results, machine precision
    Tier 2 (Stochastic): CLT-derived, Monte Carlo estimates
    Tier 3 (Golden): Stored benchmark comparisons

References:
    [T1] Higham (2002) "Accuracy and Stability of Numerical Algorithms"
    [T1] Glasserman (2003) Ch. 3-4 - Monte Carlo error bounds
    [T1] Kloeden & Platen (1992) - Weak order 1 of the Euler scheme
"""

import math
from typing import Final

# =============================================================================
# Tier 1: Analytical Tolerances (Deterministic)
# =============================================================================

#: Payoff evaluation and aggregation of exact inputs
PAYOFF_TOLERANCE: Final[float] = 1e-12

#: No-arbitrage bounds: price in [0, S*exp(-DT)] or [0, K*exp(-rT)]
ANTI_PATTERN_TOLERANCE: Final[float] = 1e-10

#: Put-call parity of the analytical benchmark
PUT_CALL_PARITY_TOLERANCE: Final[float] = 1e-8

#: Reduction order: merged partial sums vs single-pass sums
AGGREGATION_TOLERANCE: Final[float] = 1e-9


# =============================================================================
# Tier 2: Stochastic Tolerances (CLT-Derived)
# =============================================================================


def mc_tolerance(n_paths: int, sigma: float = 0.20, confidence: float = 3.0) -> float:
    """
    Half-width of a CLT band around a Monte Carlo mean.

    [T1] The mean of N payoffs with dispersion σ has standard error σ/√N,
    so ±3σ/√N covers the benchmark about 99.7% of the time.

    Parameters
    ----------
    n_paths : int
        Paths behind the estimate
    sigma : float
        Payoff standard deviation (a rough guess is enough)
    confidence : float
        Width of the band in standard errors

    Returns
    -------
    float
        Largest acceptable |estimate - benchmark|
    """
    if n_paths <= 0:
        raise ValueError(f"CRITICAL: n_paths must be > 0, got {n_paths}")
    return confidence * sigma / math.sqrt(n_paths)


#: Number of discounted standard errors an estimate may sit from its benchmark
MC_CONFIDENCE_MULTIPLE: Final[float] = 4.0

#: Absolute allowance for the O(dt) weak bias of explicit Euler at ~100 steps
EULER_BIAS_ALLOWANCE: Final[float] = 0.05

#: SE scaling check: SE(N) * sqrt(N) stable within this relative band
SE_SCALING_TOLERANCE: Final[float] = 0.15


# =============================================================================
# Tier 3: Golden Tolerances
# =============================================================================

#: Analytical reference values are stored to 5 decimal places
GOLDEN_ABSOLUTE_TOLERANCE: Final[float] = 1e-4


# =============================================================================
# Registry (lookup by name, e.g. from scripts)
# =============================================================================

TOLERANCE_REGISTRY: dict[str, float] = {
    # Tier 1: Analytical
    "payoff": PAYOFF_TOLERANCE,
    "anti_pattern": ANTI_PATTERN_TOLERANCE,
    "put_call_parity": PUT_CALL_PARITY_TOLERANCE,
    "aggregation": AGGREGATION_TOLERANCE,
    # Tier 2: Stochastic
    "mc_confidence_multiple": MC_CONFIDENCE_MULTIPLE,
    "euler_bias": EULER_BIAS_ALLOWANCE,
    "se_scaling": SE_SCALING_TOLERANCE,
    # Tier 3: Golden
    "golden_absolute": GOLDEN_ABSOLUTE_TOLERANCE,
}


def get_tolerance(name: str) -> float:
    """Look up a tolerance by its registry key; KeyError lists the valid keys."""
    try:
        return TOLERANCE_REGISTRY[name]
    except KeyError:
        available = ", ".join(sorted(TOLERANCE_REGISTRY))
        raise KeyError(f"Unknown tolerance {name!r}. Available: {available}") from None
