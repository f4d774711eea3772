"""
Anti-pattern test: Monte Carlo prices against no-arbitrage relations.

[T1] 0 ≤ C ≤ S*e^(-qT),  0 ≤ P ≤ K*e^(-rT)
[T1] C - P = S*e^(-qT) - K*e^(-rT)

Monte Carlo prices satisfy these only up to sampling error, so each check
allows MC_CONFIDENCE_MULTIPLE standard errors plus the Euler bias allowance.
HALT if a violation exceeds that slack.
"""

import math

import pytest

from euler_pricing.config.tolerances import EULER_BIAS_ALLOWANCE, MC_CONFIDENCE_MULTIPLE
from euler_pricing.options.payoffs.base import OptionType
from euler_pricing.options.pricing.black_scholes import put_call_parity_gap
from euler_pricing.options.simulation.monte_carlo import PricingEngine, SimulationConfig
from euler_pricing.options.simulation.rng import EngineType

from conftest import make_option

SCENARIOS = {
    "reference": {},
    "dividend": {"dividend": 0.04},
    "deep_itm_put": {"strike": 90.0},
    "deep_otm_put": {"strike": 40.0},
    "long_dated": {"expiry": 2.0},
}


def _price_pair(overrides: dict, seed: int = 17):
    engine = PricingEngine(SimulationConfig(n_steps=100, n_workers=2, seed=seed))
    put = engine.price(make_option(option_type=OptionType.PUT, **overrides), EngineType.MERSENNE_TWISTER)
    call = engine.price(make_option(option_type=OptionType.CALL, **overrides), EngineType.MERSENNE_TWISTER)
    return call, put


class TestMonteCarloParity:
    """Call and put priced from the same seed share every path."""

    @pytest.mark.anti_pattern
    @pytest.mark.parametrize("name", list(SCENARIOS))
    def test_put_call_parity(self, name: str) -> None:
        """
        [T1] Per path, max(S-K,0) - max(K-S,0) = S - K, so the MC parity gap
        is df * (mean S(T) - forward), an O(SD(S(T))/√N) quantity.
        """
        overrides = SCENARIOS[name]
        call, put = _price_pair(overrides)
        option = make_option(**overrides)

        gap = put_call_parity_gap(
            call.price, put.price, option.spot, option.strike,
            option.rate, option.dividend, option.expiry,
        )
        terminal_sd = option.spot * option.volatility * math.sqrt(option.expiry) * 1.5
        slack = MC_CONFIDENCE_MULTIPLE * terminal_sd / math.sqrt(call.n_paths) + EULER_BIAS_ALLOWANCE

        assert abs(gap) < slack, (
            f"PUT-CALL PARITY VIOLATION ({name}):\n"
            f"  C - P gap = {gap:.6f}\n"
            f"  Allowed: {slack:.6f}"
        )

    @pytest.mark.anti_pattern
    def test_same_paths_for_call_and_put(self) -> None:
        """Both legs see identical degeneracy counts when seeded alike."""
        call, put = _price_pair({})
        assert call.degenerate_count == put.degenerate_count
        assert call.n_paths == put.n_paths


class TestMonteCarloBounds:
    """Prices stay inside the static no-arbitrage band."""

    @pytest.mark.anti_pattern
    @pytest.mark.parametrize("name", list(SCENARIOS))
    def test_bounds(self, name: str) -> None:
        overrides = SCENARIOS[name]
        call, put = _price_pair(overrides, seed=23)
        option = make_option(**overrides)

        call_cap = option.spot * math.exp(-option.dividend * option.expiry)
        put_cap = option.strike * option.discount_factor

        assert call.price >= 0.0
        assert put.price >= 0.0
        assert call.price <= call_cap + MC_CONFIDENCE_MULTIPLE * call.discounted_standard_error, (
            f"ARBITRAGE VIOLATION: call {call.price} > S*e^(-qT) {call_cap}"
        )
        assert put.price <= put_cap + MC_CONFIDENCE_MULTIPLE * put.discounted_standard_error, (
            f"ARBITRAGE VIOLATION: put {put.price} > K*e^(-rT) {put_cap}"
        )

    @pytest.mark.anti_pattern
    @pytest.mark.parametrize("name", list(SCENARIOS))
    def test_intrinsic_lower_bound(self, name: str) -> None:
        """[T1] European put ≥ max(K*e^(-rT) - S*e^(-qT), 0)."""
        overrides = SCENARIOS[name]
        _, put = _price_pair(overrides, seed=29)
        option = make_option(**overrides)

        intrinsic = max(
            option.strike * option.discount_factor - option.spot * math.exp(-option.dividend * option.expiry),
            0.0,
        )
        slack = MC_CONFIDENCE_MULTIPLE * put.discounted_standard_error + EULER_BIAS_ALLOWANCE
        assert put.price >= intrinsic - slack
