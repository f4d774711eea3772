"""
euler-option-pricing: European option pricing by Monte Carlo over explicit Euler paths.

Quick Start
-----------
>>> from euler_pricing import OptionConfiguration, OptionType, PricingEngine, EngineType
>>> option = OptionConfiguration(
...     strike=65.0, expiry=0.25, rate=0.08, volatility=0.3,
...     spot=60.0, dividend=0.0, n_simulations=50_000,
...     option_type=OptionType.PUT,
... )
>>> result = PricingEngine().price(option, EngineType.MERSENNE_TWISTER, n_steps=100)

Version: 0.1.0
"""

__version__ = "0.1.0"

# =============================================================================
# Configuration
# =============================================================================
from euler_pricing.config.settings import SETTINGS
from euler_pricing.data.schemas import (
    FieldError,
    OptionConfiguration,
    OptionConfigurationBuilder,
)
from euler_pricing.errors import (
    ConfigurationError,
    EulerPricingError,
    NumericOverflowError,
    SimulationCancelled,
)
from euler_pricing.options.payoffs.base import OptionType

# =============================================================================
# Simulation
# =============================================================================
from euler_pricing.options.simulation import (
    AggregateStatistics,
    EngineType,
    ExecutionBackend,
    NonFinitePolicy,
    PayoffAggregator,
    PriceProcessModel,
    PricingEngine,
    PricingResult,
    SimulationConfig,
    build_normal_source,
    convergence_analysis,
    price_option,
    simulate_path,
    simulate_paths,
)

# =============================================================================
# Benchmarks and Validation
# =============================================================================
from euler_pricing.options.pricing import (
    black_scholes_call,
    black_scholes_price,
    black_scholes_put,
)
from euler_pricing.validation import ValidationEngine, ensure_valid, validate_pricing_result

__all__ = [
    # Version
    "__version__",
    # Config
    "SETTINGS",
    "OptionConfiguration",
    "OptionConfigurationBuilder",
    "FieldError",
    "OptionType",
    # Errors
    "EulerPricingError",
    "ConfigurationError",
    "NumericOverflowError",
    "SimulationCancelled",
    # Simulation
    "EngineType",
    "build_normal_source",
    "PriceProcessModel",
    "simulate_path",
    "simulate_paths",
    "AggregateStatistics",
    "PayoffAggregator",
    "NonFinitePolicy",
    "ExecutionBackend",
    "SimulationConfig",
    "PricingResult",
    "PricingEngine",
    "price_option",
    "convergence_analysis",
    # Benchmarks
    "black_scholes_call",
    "black_scholes_put",
    "black_scholes_price",
    # Validation
    "ValidationEngine",
    "validate_pricing_result",
    "ensure_valid",
]
