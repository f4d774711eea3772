"""
Centralized pytest fixtures for the euler-pricing test suite.

Fixture Categories:
1. Reference Options - The Duffy put and the builder's default call
2. Deterministic Sources - Fixed deviate streams for exact path checks
3. Pricing Engines - Seeded engines with small run sizes
"""

from typing import Sequence, Union

import numpy as np
import pytest

from euler_pricing.data.schemas import OptionConfiguration
from euler_pricing.options.payoffs.base import OptionType
from euler_pricing.options.simulation.monte_carlo import PricingEngine, SimulationConfig

# =============================================================================
# REFERENCE VALUES
# =============================================================================

#: Black-Scholes put for K=65, T=0.25, r=0.08, σ=0.3, S=60, D=0
REFERENCE_BS_PUT = 5.84628

#: Call with the same data, by put-call parity
REFERENCE_BS_CALL = 2.13337


# =============================================================================
# REFERENCE OPTIONS
# =============================================================================

def make_option(**overrides) -> OptionConfiguration:
    """Reference put, with any field overridden."""
    fields = {
        "strike": 65.0,
        "expiry": 0.25,
        "rate": 0.08,
        "volatility": 0.3,
        "spot": 60.0,
        "dividend": 0.0,
        "n_simulations": 50_000,
        "option_type": OptionType.PUT,
    }
    fields.update(overrides)
    return OptionConfiguration(**fields)


@pytest.fixture
def reference_put() -> OptionConfiguration:
    """In-the-money put from Duffy (2004), 50 000 paths."""
    return make_option()


@pytest.fixture
def reference_call() -> OptionConfiguration:
    """Reference data as a call."""
    return make_option(option_type=OptionType.CALL)


@pytest.fixture
def small_put() -> OptionConfiguration:
    """Reference put with few paths, for fast structural tests."""
    return make_option(n_simulations=2_000)


@pytest.fixture
def call_at_100() -> OptionConfiguration:
    """Call with strike 100, used for exact payoff checks."""
    return make_option(strike=100.0, spot=100.0, option_type=OptionType.CALL, n_simulations=1)


@pytest.fixture
def put_at_100() -> OptionConfiguration:
    """Put with strike 100, used for exact payoff checks."""
    return make_option(strike=100.0, spot=100.0, option_type=OptionType.PUT, n_simulations=1)


# =============================================================================
# DETERMINISTIC SOURCES
# =============================================================================

class SequenceSource:
    """
    Normal source that cycles through fixed deviates.

    Satisfies the same call/draw interface as NormalVariateSource, so paths
    driven by it are exactly predictable.
    """

    def __init__(self, values: Sequence[float]):
        self.values = np.asarray(values, dtype=np.float64)
        self.position = 0

    def __call__(self) -> float:
        z = self.values[self.position % self.values.size]
        self.position += 1
        return float(z)

    def draw(self, shape: Union[int, tuple[int, ...]]) -> np.ndarray:
        n = int(np.prod(shape))
        idx = (self.position + np.arange(n)) % self.values.size
        self.position += n
        return self.values[idx].reshape(shape)


@pytest.fixture
def sequence_source():
    """Factory for SequenceSource instances."""
    return SequenceSource


# =============================================================================
# PRICING ENGINES
# =============================================================================

@pytest.fixture
def seeded_engine() -> PricingEngine:
    """Single-worker engine, 100 steps, seed 42."""
    return PricingEngine(SimulationConfig(n_steps=100, n_workers=1, seed=42))
