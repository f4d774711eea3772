"""
Analytical option pricing.

Provides:
- Black-Scholes call/put with continuous dividend yield
- Put-call parity check
"""

from euler_pricing.options.pricing.black_scholes import (
    black_scholes_call,
    black_scholes_price,
    black_scholes_put,
    put_call_parity_gap,
)

__all__ = [
    "black_scholes_call",
    "black_scholes_put",
    "black_scholes_price",
    "put_call_parity_gap",
]
