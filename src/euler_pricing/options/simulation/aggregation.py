"""
Payoff aggregation for Monte Carlo pricing.

Turns path outcomes into running sums from which the price and its
dispersion are derived:

[T1] price    = exp(-rT) * ΣpayoffT / N
[T1] variance = Σpayoff²T / N - (ΣpayoffT / N)²
[T1] SD       = sqrt(variance)
[T1] SE       = SD / sqrt(N)

The reduction only adds, so the statistics depend on the multiset of
payoffs and not on arrival order. Workers keep private partial aggregates
and merge them once at the end.
"""

import logging
import math
import threading
from dataclasses import dataclass, replace
from enum import Enum

import numpy as np

from euler_pricing.data.schemas import OptionConfiguration
from euler_pricing.errors import NumericOverflowError
from euler_pricing.options.simulation.euler import PathBatch, PathOutcome

logger = logging.getLogger(__name__)


class NonFinitePolicy(Enum):
    """What to do with a path that produced a non-finite value."""

    EXCLUDE = "exclude"  # Drop the path, count it as invalid, log a warning
    RAISE = "raise"  # Abort with NumericOverflowError


@dataclass(frozen=True)
class AggregateStatistics:
    """
    Immutable running sums over recorded paths.

    Attributes
    ----------
    sum_payoff : float
        ΣpayoffT over recorded paths
    sum_payoff_squared : float
        Σpayoff²T over recorded paths
    n_paths : int
        Number of recorded paths
    n_degenerate : int
        Recorded paths whose value reached zero or below at some step
    n_invalid : int
        Paths excluded for producing non-finite values
    """

    sum_payoff: float = 0.0
    sum_payoff_squared: float = 0.0
    n_paths: int = 0
    n_degenerate: int = 0
    n_invalid: int = 0

    def merge(self, other: "AggregateStatistics") -> "AggregateStatistics":
        """Combine two partial aggregates."""
        return AggregateStatistics(
            sum_payoff=self.sum_payoff + other.sum_payoff,
            sum_payoff_squared=self.sum_payoff_squared + other.sum_payoff_squared,
            n_paths=self.n_paths + other.n_paths,
            n_degenerate=self.n_degenerate + other.n_degenerate,
            n_invalid=self.n_invalid + other.n_invalid,
        )

    def __add__(self, other: "AggregateStatistics") -> "AggregateStatistics":
        if not isinstance(other, AggregateStatistics):
            return NotImplemented
        return self.merge(other)

    @property
    def mean_payoff(self) -> float:
        """Undiscounted sample mean of the payoff."""
        if self.n_paths == 0:
            return float("nan")
        return self.sum_payoff / self.n_paths

    @property
    def variance(self) -> float:
        """
        Population variance of the payoff.

        Floored at zero: when every payoff is identical the two terms cancel
        up to rounding.
        """
        if self.n_paths == 0:
            return float("nan")
        mean = self.sum_payoff / self.n_paths
        return max(self.sum_payoff_squared / self.n_paths - mean * mean, 0.0)

    @property
    def standard_deviation(self) -> float:
        """Standard deviation of the payoff."""
        return math.sqrt(self.variance)

    @property
    def standard_error(self) -> float:
        """Standard error of the mean payoff: SD / sqrt(N)."""
        if self.n_paths == 0:
            return float("nan")
        return self.standard_deviation / math.sqrt(self.n_paths)

    def discounted_price(self, discount_factor: float) -> float:
        """exp(-rT) * ΣpayoffT / N."""
        if self.n_paths == 0:
            return float("nan")
        return discount_factor * self.sum_payoff / self.n_paths


class PayoffAggregator:
    """
    Thread-safe sink for path outcomes of one option.

    Every update happens under a lock, so many workers may record into the
    same aggregator. Workers that keep a private aggregator and merge() it
    once avoid the contention entirely.

    Parameters
    ----------
    option : OptionConfiguration
        Option whose payoff is applied to terminal values
    non_finite_policy : NonFinitePolicy, default EXCLUDE
        Handling of paths with non-finite values

    Examples
    --------
    >>> aggregator = PayoffAggregator(option)
    >>> aggregator.record_path(150.0, touched_zero=False)
    50.0
    >>> aggregator.statistics.n_paths
    1
    """

    def __init__(
        self,
        option: OptionConfiguration,
        non_finite_policy: NonFinitePolicy = NonFinitePolicy.EXCLUDE,
    ):
        self.option = option
        self.non_finite_policy = non_finite_policy
        self._statistics = AggregateStatistics()
        self._lock = threading.Lock()

    @property
    def statistics(self) -> AggregateStatistics:
        """Snapshot of the aggregate."""
        with self._lock:
            return self._statistics

    def _reject_non_finite(self, n_invalid: int, detail: str) -> None:
        if self.non_finite_policy is NonFinitePolicy.RAISE:
            raise NumericOverflowError(f"CRITICAL: {detail}")
        logger.warning("Excluding %d non-finite path(s): %s", n_invalid, detail)

    def record_path(
        self,
        terminal_value: float,
        touched_zero: bool,
        finite: bool = True,
    ) -> float:
        """
        Apply the payoff to one terminal value and add it to the aggregate.

        Parameters
        ----------
        terminal_value : float
            Simulated value at expiry
        touched_zero : bool
            Whether the path reached zero or below at any step
        finite : bool, default True
            Whether every intermediate value of the path was finite

        Returns
        -------
        float
            The payoff recorded, or NaN when the path was excluded

        Raises
        ------
        NumericOverflowError
            Non-finite path under NonFinitePolicy.RAISE
        """
        if not finite or not math.isfinite(terminal_value):
            self._reject_non_finite(1, f"terminal value {terminal_value!r} is not finite")
            with self._lock:
                self._statistics = replace(self._statistics, n_invalid=self._statistics.n_invalid + 1)
            return float("nan")

        payoff = float(self.option.payoff(terminal_value))
        with self._lock:
            s = self._statistics
            self._statistics = AggregateStatistics(
                sum_payoff=s.sum_payoff + payoff,
                sum_payoff_squared=s.sum_payoff_squared + payoff * payoff,
                n_paths=s.n_paths + 1,
                n_degenerate=s.n_degenerate + int(bool(touched_zero)),
                n_invalid=s.n_invalid,
            )
        return payoff

    def record_outcome(self, outcome: PathOutcome) -> float:
        """Record a PathOutcome from simulate_path()."""
        return self.record_path(outcome.terminal_value, outcome.touched_zero, outcome.finite)

    def record_batch(self, batch: PathBatch) -> AggregateStatistics:
        """
        Record every path of a batch.

        Returns
        -------
        AggregateStatistics
            The batch's own contribution
        """
        valid = batch.finite & np.isfinite(batch.terminal_values)
        n_invalid = int(batch.n_paths - np.count_nonzero(valid))
        if n_invalid:
            self._reject_non_finite(
                n_invalid, f"{n_invalid} of {batch.n_paths} paths in batch are not finite"
            )

        payoffs = self.option.payoff(batch.terminal_values[valid])
        contribution = AggregateStatistics(
            sum_payoff=float(np.sum(payoffs)),
            sum_payoff_squared=float(np.sum(payoffs * payoffs)),
            n_paths=int(payoffs.size),
            n_degenerate=int(np.count_nonzero(batch.touched_zero[valid])),
            n_invalid=n_invalid,
        )
        self.merge(contribution)
        return contribution

    def merge(self, partial: AggregateStatistics) -> None:
        """Fold a partial aggregate (e.g. one worker's) into this one."""
        with self._lock:
            self._statistics = self._statistics.merge(partial)
