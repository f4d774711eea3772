"""
Monte Carlo simulation over explicit Euler paths.

Provides:
- Random engines and the standard normal variate source
- Price process coefficients and the Euler path simulator
- Payoff aggregation and the partitioned pricing engine
- Convergence analysis tools
"""

from euler_pricing.options.simulation.aggregation import (
    AggregateStatistics,
    NonFinitePolicy,
    PayoffAggregator,
)
from euler_pricing.options.simulation.euler import (
    PathBatch,
    PathOutcome,
    simulate_path,
    simulate_paths,
)
from euler_pricing.options.simulation.monte_carlo import (
    ExecutionBackend,
    PricingEngine,
    PricingResult,
    SimulationConfig,
    convergence_analysis,
    price_option,
    standard_error_scaling,
)
from euler_pricing.options.simulation.rng import (
    EngineType,
    NormalVariateSource,
    build_normal_source,
    spawn_worker_seeds,
)
from euler_pricing.options.simulation.sde import PriceProcessModel

__all__ = [
    # Random numbers
    "EngineType",
    "NormalVariateSource",
    "build_normal_source",
    "spawn_worker_seeds",
    # Paths
    "PriceProcessModel",
    "PathOutcome",
    "PathBatch",
    "simulate_path",
    "simulate_paths",
    # Aggregation
    "AggregateStatistics",
    "PayoffAggregator",
    "NonFinitePolicy",
    # Monte Carlo
    "ExecutionBackend",
    "SimulationConfig",
    "PricingResult",
    "PricingEngine",
    "price_option",
    "convergence_analysis",
    "standard_error_scaling",
]
