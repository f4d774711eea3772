"""
Exception hierarchy for the Euler Monte Carlo pricer.

Configuration problems are detected before any simulation work starts and
are never retried. Numeric problems are local to a path unless the run's
NonFinitePolicy escalates them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from euler_pricing.data.schemas import FieldError
    from euler_pricing.options.simulation.aggregation import AggregateStatistics


class EulerPricingError(Exception):
    """Base class for all pricer errors."""


class ConfigurationError(EulerPricingError, ValueError):
    """
    Invalid option data, run parameters, or engine selection.

    Attributes
    ----------
    field_errors : tuple[FieldError, ...]
        Per-field validation failures, when raised by the configuration builder
    """

    def __init__(self, message: str, field_errors: tuple["FieldError", ...] = ()):
        super().__init__(message)
        self.field_errors = field_errors


class NumericOverflowError(EulerPricingError, ArithmeticError):
    """A simulated path produced a non-finite value."""


class SimulationCancelled(EulerPricingError):
    """
    Run aborted between path batches.

    Attributes
    ----------
    statistics : AggregateStatistics
        Merged statistics of the fully completed paths only
    """

    def __init__(self, message: str, statistics: "AggregateStatistics"):
        super().__init__(message)
        self.statistics = statistics
