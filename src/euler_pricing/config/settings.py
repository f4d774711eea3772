"""
Frozen configuration settings for the Euler Monte Carlo pricer.

All configuration is immutable (frozen dataclasses) to ensure reproducibility.
"""

import os
from dataclasses import dataclass, field

from euler_pricing.config.tolerances import (
    ANTI_PATTERN_TOLERANCE,
    EULER_BIAS_ALLOWANCE,
)

# =============================================================================
# Simulation Configuration
# =============================================================================

#: Environment variable naming the engine used when callers don't pick one
ENGINE_ENV_VAR = "EULER_PRICING_ENGINE"


def _resolve_default_engine() -> str:
    """
    Resolve the default engine description with environment variable override.

    Priority:
    1. EULER_PRICING_ENGINE environment variable (if set)
    2. Default: "Mersenne Twister"
    """
    env_engine = os.environ.get(ENGINE_ENV_VAR)
    if env_engine:
        return env_engine.strip()
    return "Mersenne Twister"


@dataclass(frozen=True)
class SimulationSettings:
    """
    Immutable simulation defaults.

    Attributes
    ----------
    n_steps : int
        Euler time steps per path
    n_simulations : int
        Number of simulated paths
    seed : int
        Run seed; per-worker streams are spawned from it
    batch_size : int
        Paths advanced together in one vectorized batch
    n_workers : int
        Concurrent workers (1 = run in the caller's thread)
    default_engine : str
        Description of the engine used when none is given.
        Override with EULER_PRICING_ENGINE environment variable.
    """

    n_steps: int = 100
    n_simulations: int = 50_000
    seed: int = 42
    batch_size: int = 2_048
    n_workers: int = 1
    default_engine: str = field(default_factory=_resolve_default_engine)

    # Progress is reported once per this many completed paths when verbose
    progress_interval: int = 10_000


# =============================================================================
# Option Defaults
# =============================================================================

@dataclass(frozen=True)
class DefaultOptionSettings:
    """
    Default option data handed to the configuration builder.

    Parameter ordering follows the builder: K, T, r, sig, S, NSIM, D, type.
    """

    strike: float = 100.0
    expiry: float = 0.25
    rate: float = 0.1
    volatility: float = 0.1
    spot: float = 110.0
    n_simulations: int = 100_000
    dividend: float = 0.0
    option_type: str = "call"


# =============================================================================
# Validation Configuration
# =============================================================================

@dataclass(frozen=True)
class ValidationSettings:
    """
    Immutable thresholds for the result validation gates.

    Attributes
    ----------
    max_degenerate_fraction : float
        Above this share of paths touching zero the result is flagged
    max_invalid_fraction : float
        Above this share of non-finite paths the result HALTs
    max_relative_error : float
        Standard error / price above this is flagged
    """

    max_degenerate_fraction: float = 0.01
    max_invalid_fraction: float = 0.001
    max_relative_error: float = 0.05
    halt_on_arbitrage: bool = True
    arbitrage_tolerance: float = ANTI_PATTERN_TOLERANCE
    euler_bias_allowance: float = EULER_BIAS_ALLOWANCE


# =============================================================================
# Master Configuration
# =============================================================================

@dataclass(frozen=True)
class Settings:
    """
    Master frozen configuration combining all sub-configs.

    Usage
    -----
    >>> from euler_pricing.config.settings import SETTINGS
    >>> SETTINGS.simulation.n_steps
    100
    """

    simulation: SimulationSettings = field(default_factory=SimulationSettings)
    option: DefaultOptionSettings = field(default_factory=DefaultOptionSettings)
    validation: ValidationSettings = field(default_factory=ValidationSettings)


# Singleton instance - import this
SETTINGS = Settings()
