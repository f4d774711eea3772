"""
Validation framework for pricing results.

Provides HALT/WARN/PASS gates for validating Monte Carlo outputs:
- FiniteResultGate: Price and dispersion are finite
- NoArbitrageBoundsGate: Price within model-free bounds
- DegeneratePathGate: Share of paths that reached zero
- InvalidPathGate: Share of paths excluded as non-finite
- StandardErrorGate: Relative standard error
- BenchmarkAgreementGate: Agreement with an analytical price
"""

from euler_pricing.validation.gates import (
    BenchmarkAgreementGate,
    DegeneratePathGate,
    FiniteResultGate,
    GateResult,
    # Enums and Results
    GateStatus,
    InvalidPathGate,
    NoArbitrageBoundsGate,
    StandardErrorGate,
    # Engine
    ValidationEngine,
    # Base Gate
    ValidationGate,
    ValidationReport,
    ensure_valid,
    # Convenience Functions
    validate_pricing_result,
)

__all__ = [
    # Enums and Results
    "GateStatus",
    "GateResult",
    "ValidationReport",
    # Base Gate
    "ValidationGate",
    # Specific Gates
    "FiniteResultGate",
    "NoArbitrageBoundsGate",
    "DegeneratePathGate",
    "InvalidPathGate",
    "StandardErrorGate",
    "BenchmarkAgreementGate",
    # Engine
    "ValidationEngine",
    # Convenience Functions
    "validate_pricing_result",
    "ensure_valid",
]
