"""
Black-Scholes benchmark for the Euler Monte Carlo pricer.

The continuous-time price the Euler estimate converges to as NT and N grow.
Used by the golden and validation suites and by convergence_analysis().

References
----------
[T1] Black, F., & Scholes, M. (1973). The pricing of options and corporate liabilities.
[T1] Hull, J. C. (2018). Options, Futures, and Other Derivatives (10th ed.).
"""

import numpy as np
from scipy import stats

from euler_pricing.data.schemas import OptionConfiguration
from euler_pricing.options.payoffs.base import OptionType


def _calculate_d1_d2(
    spot: float,
    strike: float,
    rate: float,
    dividend: float,
    volatility: float,
    time_to_expiry: float,
) -> tuple[float, float]:
    """
    [T1] d1 = (ln(S/K) + (r - q + σ²/2)T) / (σ√T)
    [T1] d2 = d1 - σ√T
    """
    vol_sqrt_t = volatility * np.sqrt(time_to_expiry)

    d1 = (
        np.log(spot / strike) + (rate - dividend + 0.5 * volatility**2) * time_to_expiry
    ) / vol_sqrt_t

    return d1, d1 - vol_sqrt_t


def _validate_inputs(
    spot: float,
    strike: float,
    volatility: float,
    time_to_expiry: float,
) -> None:
    if spot <= 0:
        raise ValueError(f"CRITICAL: spot must be > 0, got {spot}")
    if strike <= 0:
        raise ValueError(f"CRITICAL: strike must be > 0, got {strike}")
    if volatility < 0:
        raise ValueError(f"CRITICAL: volatility must be >= 0, got {volatility}")
    if time_to_expiry < 0:
        raise ValueError(f"CRITICAL: time_to_expiry must be >= 0, got {time_to_expiry}")


def black_scholes_call(
    spot: float,
    strike: float,
    rate: float,
    dividend: float,
    volatility: float,
    time_to_expiry: float,
) -> float:
    """
    Price European call option using Black-Scholes.

    [T1] C = S*e^(-qT)*N(d1) - K*e^(-rT)*N(d2)

    Degenerate inputs reduce to intrinsic values: at T = 0 the payoff
    itself, at σ = 0 the discounted forward intrinsic value.

    Examples
    --------
    >>> round(black_scholes_call(100, 100, 0.05, 0.02, 0.20, 1.0), 2)
    9.23
    """
    _validate_inputs(spot, strike, volatility, time_to_expiry)

    if time_to_expiry == 0:
        return max(spot - strike, 0.0)

    discounted_spot = spot * np.exp(-dividend * time_to_expiry)
    discounted_strike = strike * np.exp(-rate * time_to_expiry)

    if volatility == 0:
        return float(max(discounted_spot - discounted_strike, 0.0))

    d1, d2 = _calculate_d1_d2(spot, strike, rate, dividend, volatility, time_to_expiry)

    return float(discounted_spot * stats.norm.cdf(d1) - discounted_strike * stats.norm.cdf(d2))


def black_scholes_put(
    spot: float,
    strike: float,
    rate: float,
    dividend: float,
    volatility: float,
    time_to_expiry: float,
) -> float:
    """
    Price European put option using Black-Scholes.

    [T1] P = K*e^(-rT)*N(-d2) - S*e^(-qT)*N(-d1)

    Examples
    --------
    >>> round(black_scholes_put(60, 65, 0.08, 0.0, 0.30, 0.25), 4)
    5.8463
    """
    _validate_inputs(spot, strike, volatility, time_to_expiry)

    if time_to_expiry == 0:
        return max(strike - spot, 0.0)

    discounted_spot = spot * np.exp(-dividend * time_to_expiry)
    discounted_strike = strike * np.exp(-rate * time_to_expiry)

    if volatility == 0:
        return float(max(discounted_strike - discounted_spot, 0.0))

    d1, d2 = _calculate_d1_d2(spot, strike, rate, dividend, volatility, time_to_expiry)

    return float(discounted_strike * stats.norm.cdf(-d2) - discounted_spot * stats.norm.cdf(-d1))


def black_scholes_price(option: OptionConfiguration) -> float:
    """
    Analytical price of the option described by a configuration.

    Parameters
    ----------
    option : OptionConfiguration
        Option to price (n_simulations is ignored)

    Returns
    -------
    float
        Black-Scholes price
    """
    pricer = black_scholes_call if option.option_type is OptionType.CALL else black_scholes_put
    return pricer(
        spot=option.spot,
        strike=option.strike,
        rate=option.rate,
        dividend=option.dividend,
        volatility=option.volatility,
        time_to_expiry=option.expiry,
    )


def put_call_parity_gap(
    call_price: float,
    put_price: float,
    spot: float,
    strike: float,
    rate: float,
    dividend: float,
    time_to_expiry: float,
) -> float:
    """
    Deviation from put-call parity.

    [T1] C - P = S*e^(-qT) - K*e^(-rT)

    Returns
    -------
    float
        (C - P) - (S*e^(-qT) - K*e^(-rT)); zero for consistent prices
    """
    forward_value = spot * np.exp(-dividend * time_to_expiry) - strike * np.exp(-rate * time_to_expiry)
    return float((call_price - put_price) - forward_value)
