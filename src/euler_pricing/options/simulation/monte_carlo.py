"""
Monte Carlo option pricing engine for the explicit Euler scheme.

Orchestrates N independent path simulations:
- Splits N across workers, each with its own seeded normal source
- Simulates each worker's share in vectorized batches
- Keeps one private aggregate per worker, merged once in worker order
- Derives discounted price, standard deviation and standard error

[T1] MC converges to the analytical price at rate 1/√N, up to the O(dt)
weak bias of the Euler discretization.

Determinism: for a fixed seed, worker count and batch size, repeated runs
reproduce the same statistics bit-for-bit. Partials are merged by worker
index, never by completion order.

See: Glasserman (2003) "Monte Carlo Methods in Financial Engineering"
"""

import logging
import math
import threading
import time
from concurrent.futures import (
    FIRST_COMPLETED,
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    wait,
)
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

import numpy as np

from euler_pricing.config.settings import SETTINGS
from euler_pricing.data.schemas import OptionConfiguration
from euler_pricing.errors import ConfigurationError, NumericOverflowError, SimulationCancelled
from euler_pricing.options.payoffs.base import OptionType
from euler_pricing.options.simulation.aggregation import (
    AggregateStatistics,
    NonFinitePolicy,
    PayoffAggregator,
)
from euler_pricing.options.simulation.euler import simulate_paths
from euler_pricing.options.simulation.rng import (
    EngineSelector,
    EngineType,
    build_normal_source,
    engine_from_settings,
    resolve_engine,
    spawn_worker_seeds,
)
from euler_pricing.options.simulation.sde import PriceProcessModel

logger = logging.getLogger(__name__)

#: Seconds between cancellation checks while waiting on pool workers
_POLL_INTERVAL = 0.05


class ExecutionBackend(Enum):
    """Where worker partitions run."""

    SEQUENTIAL = "sequential"  # One after another in the caller's thread
    THREAD = "thread"  # ThreadPoolExecutor
    PROCESS = "process"  # ProcessPoolExecutor


@dataclass(frozen=True)
class SimulationConfig:
    """
    Run parameters for the pricing engine.

    Attributes
    ----------
    n_steps : int
        Euler time steps per path (NT)
    n_workers : int
        Number of partitions, each with its own random stream
    seed : int, optional
        Run seed; None draws fresh OS entropy (not reproducible)
    batch_size : int
        Paths advanced together in one vectorized batch; cancellation is
        checked between batches
    backend : ExecutionBackend
        How partitions are executed when n_workers > 1
    non_finite_policy : NonFinitePolicy
        Whether non-finite paths are excluded or abort the run
    verbose : bool
        Log progress and timing at INFO level
    """

    n_steps: int = SETTINGS.simulation.n_steps
    n_workers: int = SETTINGS.simulation.n_workers
    seed: Optional[int] = SETTINGS.simulation.seed
    batch_size: int = SETTINGS.simulation.batch_size
    backend: ExecutionBackend = ExecutionBackend.THREAD
    non_finite_policy: NonFinitePolicy = NonFinitePolicy.EXCLUDE
    verbose: bool = False

    def __post_init__(self) -> None:
        """Validate parameters."""
        for name in ("n_steps", "n_workers", "batch_size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
                raise ConfigurationError(f"CRITICAL: {name} must be a positive integer, got {value!r}")
        if self.seed is not None and (
            isinstance(self.seed, bool) or not isinstance(self.seed, (int, np.integer)) or self.seed < 0
        ):
            raise ConfigurationError(f"CRITICAL: seed must be None or an integer >= 0, got {self.seed!r}")
        if not isinstance(self.backend, ExecutionBackend):
            raise ConfigurationError(f"CRITICAL: backend must be an ExecutionBackend, got {self.backend!r}")
        if not isinstance(self.non_finite_policy, NonFinitePolicy):
            raise ConfigurationError(
                f"CRITICAL: non_finite_policy must be a NonFinitePolicy, got {self.non_finite_policy!r}"
            )


@dataclass(frozen=True)
class PricingResult:
    """
    Monte Carlo pricing result.

    Attributes
    ----------
    price : float
        Discounted mean payoff exp(-rT) * ΣpayoffT / N
    standard_deviation : float
        Standard deviation of the (undiscounted) payoff
    standard_error : float
        standard_deviation / √N
    degenerate_count : int
        Paths whose value reached zero or below at some step
    n_paths : int
        Paths that entered the estimate
    invalid_count : int
        Paths excluded for producing non-finite values
    discount_factor : float
        exp(-rT)
    n_steps : int
        Euler steps per path
    engine_description : str
        Random engine actually used
    execution_time_sec : float
        Wall-clock time of the run
    statistics : AggregateStatistics
        Raw sums the result was derived from
    """

    price: float
    standard_deviation: float
    standard_error: float
    degenerate_count: int
    n_paths: int
    invalid_count: int
    discount_factor: float
    n_steps: int
    engine_description: str
    execution_time_sec: float
    statistics: AggregateStatistics

    @classmethod
    def from_statistics(
        cls,
        statistics: AggregateStatistics,
        discount_factor: float,
        n_steps: int,
        engine_description: str,
        execution_time_sec: float = 0.0,
    ) -> "PricingResult":
        """Derive the price and dispersion measures from aggregated sums."""
        return cls(
            price=statistics.discounted_price(discount_factor),
            standard_deviation=statistics.standard_deviation,
            standard_error=statistics.standard_error,
            degenerate_count=statistics.n_degenerate,
            n_paths=statistics.n_paths,
            invalid_count=statistics.n_invalid,
            discount_factor=discount_factor,
            n_steps=n_steps,
            engine_description=engine_description,
            execution_time_sec=execution_time_sec,
            statistics=statistics,
        )

    @property
    def discounted_standard_error(self) -> float:
        """Standard error of the price itself: exp(-rT) * SE."""
        return self.discount_factor * self.standard_error

    @property
    def confidence_interval(self) -> tuple[float, float]:
        """95% confidence interval of the price (z = 1.96)."""
        half_width = 1.96 * self.discounted_standard_error
        return (self.price - half_width, self.price + half_width)

    @property
    def ci_width(self) -> float:
        """Width of 95% confidence interval."""
        lower, upper = self.confidence_interval
        return upper - lower

    @property
    def relative_error(self) -> float:
        """Relative standard error (discounted SE / price)."""
        if abs(self.price) < 1e-10:
            return float("inf")
        return self.discounted_standard_error / abs(self.price)

    @property
    def degenerate_fraction(self) -> float:
        """Share of recorded paths that reached zero or below."""
        if self.n_paths == 0:
            return 0.0
        return self.degenerate_count / self.n_paths


# =============================================================================
# Worker Partitions
# =============================================================================


@dataclass(frozen=True)
class PartitionTask:
    """Everything one worker needs to simulate its share of paths."""

    worker_index: int
    option: OptionConfiguration
    engine_type: EngineType
    seed: np.random.SeedSequence
    n_paths: int
    n_steps: int
    batch_size: int
    non_finite_policy: NonFinitePolicy


@dataclass(frozen=True)
class PartitionResult:
    """
    A worker's private aggregate.

    ``completed`` is False when the worker stopped early; the statistics
    then cover only the batches that finished.
    """

    worker_index: int
    statistics: AggregateStatistics
    completed: bool


def partition_paths(n_paths: int, n_workers: int) -> list[int]:
    """
    Split n_paths as evenly as possible; the first n_paths % n_workers get one extra.

    Examples
    --------
    >>> partition_paths(10, 3)
    [4, 3, 3]
    """
    if n_paths <= 0:
        raise ConfigurationError(f"CRITICAL: n_paths must be > 0, got {n_paths}")
    if n_workers <= 0:
        raise ConfigurationError(f"CRITICAL: n_workers must be > 0, got {n_workers}")
    base, extra = divmod(n_paths, n_workers)
    return [base + 1 if i < extra else base for i in range(n_workers)]


def run_partition(
    task: PartitionTask,
    should_stop: Optional[Callable[[], bool]] = None,
    on_progress: Optional[Callable[[int], None]] = None,
) -> PartitionResult:
    """
    Simulate one worker's share of paths into a private aggregate.

    The worker builds and owns its normal source; nothing random is shared.
    ``should_stop`` is consulted before every batch, so a stop only ever
    discards whole batches that have not started.
    """
    source, _ = build_normal_source(task.engine_type, task.seed)
    model = PriceProcessModel.from_configuration(task.option)
    aggregator = PayoffAggregator(task.option, task.non_finite_policy)

    remaining = task.n_paths
    while remaining > 0:
        if should_stop is not None and should_stop():
            return PartitionResult(task.worker_index, aggregator.statistics, completed=False)

        n = min(task.batch_size, remaining)
        batch = simulate_paths(
            model,
            source,
            spot=task.option.spot,
            expiry=task.option.expiry,
            n_steps=task.n_steps,
            n_paths=n,
        )
        aggregator.record_batch(batch)
        remaining -= n

        if on_progress is not None:
            on_progress(n)

    return PartitionResult(task.worker_index, aggregator.statistics, completed=True)


class _ProgressLogger:
    """Logs completed path counts every ``interval`` paths."""

    def __init__(self, total: int, interval: int):
        self.total = total
        self.interval = max(interval, 1)
        self._done = 0
        self._lock = threading.Lock()

    def __call__(self, n: int) -> None:
        with self._lock:
            before = self._done
            self._done += n
            if self._done // self.interval > before // self.interval or self._done == self.total:
                logger.info("  %d/%d paths simulated", self._done, self.total)


# =============================================================================
# Pricing Engine
# =============================================================================


class PricingEngine:
    """
    Monte Carlo pricing engine for European options under explicit Euler.

    Parameters
    ----------
    config : SimulationConfig, optional
        Run parameters; defaults come from SETTINGS.simulation

    Examples
    --------
    >>> option = OptionConfiguration(
    ...     strike=65.0, expiry=0.25, rate=0.08, volatility=0.3,
    ...     spot=60.0, dividend=0.0, n_simulations=50_000,
    ...     option_type=OptionType.PUT,
    ... )
    >>> engine = PricingEngine(SimulationConfig(n_steps=100, seed=42))
    >>> result = engine.price(option, EngineType.MERSENNE_TWISTER)
    >>> print(f"Price: {result.price:.4f} ± {result.discounted_standard_error:.4f}")
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config if config is not None else SimulationConfig()

    def price(
        self,
        option: OptionConfiguration,
        engine_type: Optional[EngineSelector] = None,
        n_steps: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PricingResult:
        """
        Price an option by simulating option.n_simulations Euler paths.

        Parameters
        ----------
        option : OptionConfiguration
            Validated option data and path count
        engine_type : EngineType, str, or int, optional
            Random engine; defaults to SETTINGS.simulation.default_engine
        n_steps : int, optional
            Euler steps per path; defaults to config.n_steps
        cancel_event : threading.Event, optional
            When set, workers stop before their next batch and the run
            raises SimulationCancelled

        Returns
        -------
        PricingResult
            Price, standard deviation, standard error and path counts

        Raises
        ------
        ConfigurationError
            Invalid option, n_steps, or engine; raised before any simulation
        NumericOverflowError
            Non-finite path under NonFinitePolicy.RAISE, or no finite path left
        SimulationCancelled
            The run was cancelled; carries the completed paths' statistics
        """
        start_time = time.time()
        config = self.config

        if not isinstance(option, OptionConfiguration):
            raise ConfigurationError(
                f"CRITICAL: option must be an OptionConfiguration, got {type(option).__name__}"
            )

        n_steps = config.n_steps if n_steps is None else n_steps
        if isinstance(n_steps, bool) or not isinstance(n_steps, (int, np.integer)) or n_steps <= 0:
            raise ConfigurationError(f"CRITICAL: n_steps must be a positive integer, got {n_steps!r}")

        engine = engine_from_settings() if engine_type is None else resolve_engine(engine_type)
        if not engine.is_known:
            raise ConfigurationError(f"CRITICAL: unknown random engine {engine_type!r}")

        tasks = self._build_tasks(option, engine, int(n_steps))

        if config.verbose:
            logger.info(
                "Pricing %s K=%s T=%s: %d paths x %d steps, %s, %d worker(s)",
                option.option_type.value,
                option.strike,
                option.expiry,
                option.n_simulations,
                n_steps,
                engine.description,
                len(tasks),
            )

        partials = self._run_tasks(tasks, cancel_event, option.n_simulations)

        # Single shared sink; partials enter in worker order
        sink = PayoffAggregator(option, config.non_finite_policy)
        for partial in sorted(partials, key=lambda p: p.worker_index):
            sink.merge(partial.statistics)
        statistics = sink.statistics

        if not all(p.completed for p in partials):
            raise SimulationCancelled(
                f"Simulation cancelled after {statistics.n_paths + statistics.n_invalid} "
                f"of {option.n_simulations} paths",
                statistics=statistics,
            )

        if statistics.n_paths == 0:
            raise NumericOverflowError(
                f"CRITICAL: all {statistics.n_invalid} simulated paths were non-finite"
            )

        execution_time = time.time() - start_time
        result = PricingResult.from_statistics(
            statistics,
            discount_factor=option.discount_factor,
            n_steps=int(n_steps),
            engine_description=engine.description,
            execution_time_sec=execution_time,
        )

        if config.verbose:
            logger.info(
                "Completed in %.2fs: price=%.6f SD=%.6f SE=%.6f, origin hit on %d path(s)",
                execution_time,
                result.price,
                result.standard_deviation,
                result.standard_error,
                result.degenerate_count,
            )

        return result

    def _build_tasks(
        self,
        option: OptionConfiguration,
        engine: EngineType,
        n_steps: int,
    ) -> list[PartitionTask]:
        """One task per worker with paths; worker i always gets seed child i."""
        config = self.config
        seeds = spawn_worker_seeds(config.seed, config.n_workers)
        shares = partition_paths(option.n_simulations, config.n_workers)

        return [
            PartitionTask(
                worker_index=i,
                option=option,
                engine_type=engine,
                seed=seeds[i],
                n_paths=share,
                n_steps=n_steps,
                batch_size=config.batch_size,
                non_finite_policy=config.non_finite_policy,
            )
            for i, share in enumerate(shares)
            if share > 0
        ]

    def _run_tasks(
        self,
        tasks: Sequence[PartitionTask],
        cancel_event: Optional[threading.Event],
        total_paths: int,
    ) -> list[PartitionResult]:
        config = self.config
        stop = threading.Event()

        def should_stop() -> bool:
            return stop.is_set() or (cancel_event is not None and cancel_event.is_set())

        progress = (
            _ProgressLogger(total_paths, SETTINGS.simulation.progress_interval)
            if config.verbose
            else None
        )

        if config.backend is ExecutionBackend.SEQUENTIAL or len(tasks) == 1:
            return [run_partition(task, should_stop, progress) for task in tasks]

        if config.backend is ExecutionBackend.THREAD:
            with ThreadPoolExecutor(max_workers=len(tasks)) as executor:
                futures = {
                    executor.submit(run_partition, task, should_stop, progress): task.worker_index
                    for task in tasks
                }
                return self._collect(futures, cancel_event, stop)

        # Callables and events don't cross process boundaries; pending
        # partitions are cancelled instead of stopped mid-way
        with ProcessPoolExecutor(max_workers=len(tasks)) as executor:
            futures = {executor.submit(run_partition, task): task.worker_index for task in tasks}
            return self._collect(futures, cancel_event, stop, executor)

    def _collect(
        self,
        futures: dict[Future, int],
        cancel_event: Optional[threading.Event],
        stop: threading.Event,
        executor: Optional[Executor] = None,
    ) -> list[PartitionResult]:
        """Wait for every partition, cancelling the rest on failure or request."""
        results: dict[int, PartitionResult] = {}
        pending = set(futures)

        while pending:
            done, pending = wait(pending, timeout=_POLL_INTERVAL, return_when=FIRST_COMPLETED)

            for future in done:
                worker_index = futures[future]
                if future.cancelled():
                    results[worker_index] = PartitionResult(
                        worker_index, AggregateStatistics(), completed=False
                    )
                    continue
                try:
                    partial = future.result()
                except Exception:
                    stop.set()
                    for other in pending:
                        other.cancel()
                    raise
                results[worker_index] = partial
                if self.config.verbose and executor is not None:
                    logger.info("  Worker %d finished %d paths", worker_index, partial.statistics.n_paths)

            if cancel_event is not None and cancel_event.is_set() and not stop.is_set():
                stop.set()
                for other in pending:
                    other.cancel()

        return [results[i] for i in sorted(results)]


# =============================================================================
# Convenience Functions
# =============================================================================


def price_option(
    spot: float,
    strike: float,
    rate: float,
    dividend: float,
    volatility: float,
    time_to_expiry: float,
    option_type: OptionType,
    n_paths: int = SETTINGS.simulation.n_simulations,
    n_steps: int = SETTINGS.simulation.n_steps,
    engine_type: Optional[EngineSelector] = None,
    seed: Optional[int] = SETTINGS.simulation.seed,
    n_workers: int = 1,
) -> PricingResult:
    """
    Convenience function to price a European option with Euler paths.

    Parameters
    ----------
    spot : float
        Current spot price
    strike : float
        Strike price
    rate : float
        Risk-free rate (decimal)
    dividend : float
        Dividend yield (decimal)
    volatility : float
        Volatility (decimal)
    time_to_expiry : float
        Time to expiry in years
    option_type : OptionType
        CALL or PUT
    n_paths : int
        Number of paths
    n_steps : int
        Euler steps per path
    engine_type : EngineType, str, or int, optional
        Random engine; defaults to the configured engine
    seed : int, optional
        Run seed
    n_workers : int, default 1
        Worker partitions

    Returns
    -------
    PricingResult
        Monte Carlo pricing result
    """
    option = OptionConfiguration(
        strike=strike,
        expiry=time_to_expiry,
        rate=rate,
        volatility=volatility,
        spot=spot,
        dividend=dividend,
        n_simulations=n_paths,
        option_type=option_type,
    )
    engine = PricingEngine(SimulationConfig(n_steps=n_steps, n_workers=n_workers, seed=seed))
    return engine.price(option, engine_type)


def convergence_analysis(
    option: OptionConfiguration,
    analytical_price: float,
    path_counts: Sequence[int] = (1_000, 5_000, 10_000, 50_000),
    n_steps: int = SETTINGS.simulation.n_steps,
    engine_type: Optional[EngineSelector] = None,
    seed: int = SETTINGS.simulation.seed,
) -> dict:
    """
    Analyze MC convergence to an analytical price.

    [T1] Standard error scales as 1/√N, so log(SE) vs log(N) has slope -0.5.

    Parameters
    ----------
    option : OptionConfiguration
        Option to price (its n_simulations is overridden)
    analytical_price : float
        Benchmark price, e.g. Black-Scholes
    path_counts : Sequence[int]
        Numbers of paths to test
    n_steps : int
        Euler steps per path
    engine_type : EngineType, str, or int, optional
        Random engine
    seed : int
        Run seed

    Returns
    -------
    dict
        Per-N rows plus estimated error and standard-error convergence rates
    """
    engine = PricingEngine(SimulationConfig(n_steps=n_steps, seed=seed))
    results = []

    for n in path_counts:
        mc_result = engine.price(option.with_simulations(n), engine_type)
        error = abs(mc_result.price - analytical_price)
        lower, upper = mc_result.confidence_interval

        results.append(
            {
                "n_paths": n,
                "mc_price": mc_result.price,
                "analytical_price": analytical_price,
                "absolute_error": error,
                "relative_error": error / analytical_price if analytical_price > 0 else float("inf"),
                "standard_error": mc_result.standard_error,
                "discounted_standard_error": mc_result.discounted_standard_error,
                "degenerate_count": mc_result.degenerate_count,
                "within_ci": lower <= analytical_price <= upper,
            }
        )

    return {
        "results": results,
        "convergence_rate": _estimate_convergence_rate(results, "absolute_error"),
        "standard_error_rate": _estimate_convergence_rate(results, "standard_error"),
    }


def _estimate_convergence_rate(results: list[dict], key: str) -> float:
    """
    Slope of log(results[key]) against log(n_paths).

    [T1] Theory predicts -0.5.
    """
    if len(results) < 2:
        return float("nan")

    log_n = np.log([r["n_paths"] for r in results])
    log_y = np.log([r[key] + 1e-10 for r in results])

    n = len(log_n)
    slope = (n * np.sum(log_n * log_y) - np.sum(log_n) * np.sum(log_y)) / (
        n * np.sum(log_n**2) - np.sum(log_n) ** 2
    )
    return float(slope)


def standard_error_scaling(results: Sequence[PricingResult]) -> list[float]:
    """SE * √N for each result; roughly constant when SE scales as 1/√N."""
    return [r.standard_error * math.sqrt(r.n_paths) for r in results]
