"""
Validation Gates - HALT/WARN/PASS checks on Monte Carlo pricing results.

A result flows through an ordered list of gates. Each gate inspects the
result (and optional context such as the option or an analytical price)
and returns a verdict:

- HALT: the result must not be used; the report carries the diagnostics
- WARN: usable, but something deserves attention (coarse grid, noisy estimate)
- PASS: nothing to report

Monte Carlo noise is not an error: bounds that compare a simulated price
against an exact value widen by a multiple of the discounted standard error.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from euler_pricing.config.settings import SETTINGS, ValidationSettings
from euler_pricing.config.tolerances import MC_CONFIDENCE_MULTIPLE
from euler_pricing.data.schemas import OptionConfiguration
from euler_pricing.options.payoffs.base import OptionType
from euler_pricing.options.simulation.monte_carlo import PricingResult

logger = logging.getLogger(__name__)


class GateStatus(Enum):
    """Verdict of one gate, ordered PASS < WARN < HALT."""
    PASS = "pass"
    HALT = "halt"
    WARN = "warn"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {GateStatus.PASS: 0, GateStatus.WARN: 1, GateStatus.HALT: 2}


@dataclass(frozen=True)
class GateResult:
    """
    Verdict of a single gate.

    Attributes
    ----------
    status : GateStatus
        PASS, WARN, or HALT
    gate_name : str
        Name of the gate that produced the verdict
    message : str
        Human-readable diagnosis
    value : Any, optional
        Quantity the gate measured
    threshold : Any, optional
        Limit the quantity was compared against
    """

    status: GateStatus
    gate_name: str
    message: str
    value: Optional[Any] = None
    threshold: Optional[Any] = None

    @property
    def passed(self) -> bool:
        """False only for HALT."""
        return self.status is not GateStatus.HALT

    def as_dict(self) -> dict:
        return {
            "gate": self.gate_name,
            "status": self.status.value,
            "message": self.message,
            "value": self.value,
            "threshold": self.threshold,
        }


@dataclass(frozen=True)
class ValidationReport:
    """
    Verdicts of every gate run on one result, in gate order.

    Attributes
    ----------
    results : tuple[GateResult, ...]
        One verdict per gate
    """

    results: tuple[GateResult, ...]

    def _with_status(self, status: GateStatus) -> list[GateResult]:
        return [r for r in self.results if r.status is status]

    @property
    def overall_status(self) -> GateStatus:
        """Most severe verdict; PASS for an empty report."""
        return max((r.status for r in self.results), key=lambda s: s.severity, default=GateStatus.PASS)

    @property
    def passed(self) -> bool:
        """True unless some gate HALTed."""
        return self.overall_status is not GateStatus.HALT

    @property
    def halted_gates(self) -> list[GateResult]:
        return self._with_status(GateStatus.HALT)

    @property
    def warned_gates(self) -> list[GateResult]:
        return self._with_status(GateStatus.WARN)

    def to_dict(self) -> dict:
        """JSON-ready summary, as printed by scripts/run_pricer.py --json."""
        return {
            "overall_status": self.overall_status.value,
            "passed": self.passed,
            "n_halted": len(self.halted_gates),
            "n_warned": len(self.warned_gates),
            "results": [r.as_dict() for r in self.results],
        }


# =============================================================================
# Gate Implementations
# =============================================================================

class ValidationGate:
    """
    One check on a PricingResult.

    Subclasses set ``name`` and override check(); the _pass/_warn/_halt
    helpers stamp the gate name onto the verdict.
    """

    name: str = "base_gate"

    def check(self, result: PricingResult, **context: Any) -> GateResult:
        """
        Inspect a pricing result.

        Parameters
        ----------
        result : PricingResult
            Result under inspection
        **context : Any
            Optional extras: ``option`` (OptionConfiguration) and
            ``analytical_price`` (float)

        Returns
        -------
        GateResult
        """
        raise NotImplementedError

    def _verdict(self, status: GateStatus, message: str, value: Any = None, threshold: Any = None) -> GateResult:
        return GateResult(status=status, gate_name=self.name, message=message, value=value, threshold=threshold)

    def _pass(self, message: str, value: Any = None, threshold: Any = None) -> GateResult:
        return self._verdict(GateStatus.PASS, message, value, threshold)

    def _warn(self, message: str, value: Any = None, threshold: Any = None) -> GateResult:
        return self._verdict(GateStatus.WARN, message, value, threshold)

    def _halt(self, message: str, value: Any = None, threshold: Any = None) -> GateResult:
        return self._verdict(GateStatus.HALT, message, value, threshold)


class FiniteResultGate(ValidationGate):
    """
    HALT when price, standard deviation or standard error is not finite.

    [T1] A finite sample of finite payoffs has finite moments.
    """

    name = "finite_result"

    def check(self, result: PricingResult, **context: Any) -> GateResult:
        fields = {
            "price": result.price,
            "standard_deviation": result.standard_deviation,
            "standard_error": result.standard_error,
        }
        bad = {name: value for name, value in fields.items() if not math.isfinite(value)}

        if bad:
            return self._halt(f"Non-finite statistics: {', '.join(bad)}", value=bad)
        return self._pass("All statistics finite")


class NoArbitrageBoundsGate(ValidationGate):
    """
    Check the price against model-free bounds.

    [T1] 0 <= C <= S*e^(-DT)
    [T1] 0 <= P <= K*e^(-rT)

    Requires ``option`` in the context; skipped otherwise. The upper bound is
    widened by MC_CONFIDENCE_MULTIPLE discounted standard errors.
    """

    name = "no_arbitrage_bounds"

    def __init__(
        self,
        tolerance: float = SETTINGS.validation.arbitrage_tolerance,
        halt_on_violation: bool = SETTINGS.validation.halt_on_arbitrage,
    ):
        """
        Parameters
        ----------
        tolerance : float
            Absolute slack applied to both bounds
        halt_on_violation : bool
            HALT on violation if True, WARN otherwise
        """
        self.tolerance = tolerance
        self.halt_on_violation = halt_on_violation

    def check(self, result: PricingResult, **context: Any) -> GateResult:
        option: Optional[OptionConfiguration] = context.get("option")
        if option is None:
            return self._pass("No option in context, skipping")

        reject = self._halt if self.halt_on_violation else self._warn

        if result.price < -self.tolerance:
            return reject(
                f"Price {result.price:.6f} is negative (arbitrage violation)",
                value=result.price,
                threshold=0.0,
            )

        if option.option_type is OptionType.CALL:
            bound = option.spot * math.exp(-option.dividend * option.expiry)
            label = "S*e^(-DT)"
        else:
            bound = option.strike * option.discount_factor
            label = "K*e^(-rT)"

        slack = self.tolerance
        if math.isfinite(result.discounted_standard_error):
            slack += MC_CONFIDENCE_MULTIPLE * result.discounted_standard_error

        if result.price > bound + slack:
            return reject(
                f"Price {result.price:.6f} exceeds {label} = {bound:.6f} (arbitrage violation)",
                value=result.price,
                threshold=bound,
            )

        return self._pass(f"Price within [0, {label}]", value=result.price, threshold=bound)


class DegeneratePathGate(ValidationGate):
    """
    Flag runs where many paths reached zero or below.

    [T1] Explicit Euler on GBM can step past the origin when σ√k is large;
    the exact process never does. A high share signals a too-coarse grid.
    """

    name = "degenerate_paths"

    def __init__(
        self,
        max_fraction: float = SETTINGS.validation.max_degenerate_fraction,
    ):
        self.max_fraction = max_fraction

    def check(self, result: PricingResult, **context: Any) -> GateResult:
        fraction = result.degenerate_fraction

        if fraction > self.max_fraction:
            return self._warn(
                f"{result.degenerate_count} of {result.n_paths} paths "
                f"({fraction:.2%}) reached zero; consider more time steps",
                value=fraction,
                threshold=self.max_fraction,
            )
        return self._pass(
            f"Degenerate paths {result.degenerate_count} ({fraction:.2%})", value=fraction
        )


class InvalidPathGate(ValidationGate):
    """
    Check how many paths were excluded for non-finite values.

    Any exclusion WARNs; more than ``max_fraction`` of all simulated paths HALTs.
    """

    name = "invalid_paths"

    def __init__(
        self,
        max_fraction: float = SETTINGS.validation.max_invalid_fraction,
    ):
        self.max_fraction = max_fraction

    def check(self, result: PricingResult, **context: Any) -> GateResult:
        if result.invalid_count == 0:
            return self._pass("No paths excluded", value=0.0)

        simulated = result.n_paths + result.invalid_count
        fraction = result.invalid_count / simulated

        if fraction > self.max_fraction:
            return self._halt(
                f"{result.invalid_count} of {simulated} paths ({fraction:.2%}) were non-finite",
                value=fraction,
                threshold=self.max_fraction,
            )
        return self._warn(
            f"{result.invalid_count} non-finite path(s) excluded",
            value=fraction,
            threshold=self.max_fraction,
        )


class StandardErrorGate(ValidationGate):
    """
    Flag estimates whose relative standard error is too large.

    [T1] SE ∝ 1/√N: quadrupling the paths halves the relative error.
    """

    name = "standard_error"

    def __init__(
        self,
        max_relative_error: float = SETTINGS.validation.max_relative_error,
    ):
        self.max_relative_error = max_relative_error

    def check(self, result: PricingResult, **context: Any) -> GateResult:
        if abs(result.price) < 1e-10:
            return self._pass("Price is zero, relative error undefined")

        relative = result.relative_error

        if relative > self.max_relative_error:
            needed = result.n_paths * (relative / self.max_relative_error) ** 2
            return self._warn(
                f"Relative SE {relative:.2%} exceeds {self.max_relative_error:.2%}; "
                f"about {math.ceil(needed)} paths needed",
                value=relative,
                threshold=self.max_relative_error,
            )
        return self._pass(f"Relative SE {relative:.2%}", value=relative)


class BenchmarkAgreementGate(ValidationGate):
    """
    Compare the price with an analytical benchmark.

    [T1] |MC - exact| <= z * discounted SE + Euler discretization bias

    Requires ``analytical_price`` in the context; skipped otherwise.
    """

    name = "benchmark_agreement"

    def __init__(
        self,
        confidence_multiple: float = MC_CONFIDENCE_MULTIPLE,
        bias_allowance: float = SETTINGS.validation.euler_bias_allowance,
    ):
        """
        Parameters
        ----------
        confidence_multiple : float
            Discounted standard errors of slack
        bias_allowance : float
            Absolute allowance for the O(k) weak error of the scheme
        """
        self.confidence_multiple = confidence_multiple
        self.bias_allowance = bias_allowance

    def check(self, result: PricingResult, **context: Any) -> GateResult:
        analytical_price = context.get("analytical_price")
        if analytical_price is None:
            return self._pass("No analytical price in context, skipping")

        error = abs(result.price - analytical_price)
        threshold = self.confidence_multiple * result.discounted_standard_error + self.bias_allowance

        if error > threshold:
            return self._halt(
                f"MC price {result.price:.6f} differs from benchmark "
                f"{analytical_price:.6f} by {error:.6f}",
                value=error,
                threshold=threshold,
            )
        return self._pass(f"Within {error:.6f} of benchmark", value=error, threshold=threshold)


# =============================================================================
# Validation Engine
# =============================================================================

class ValidationEngine:
    """
    Runs an ordered list of gates and collects their verdicts.

    Parameters
    ----------
    gates : list[ValidationGate], optional
        Gates to run, in order. Defaults to the six standard gates.
    settings : ValidationSettings, optional
        Thresholds for the standard gates (SETTINGS.validation if omitted)

    Examples
    --------
    >>> report = ValidationEngine().validate(result, option=option, analytical_price=5.84628)
    >>> [g.gate_name for g in report.halted_gates]
    []
    """

    def __init__(
        self,
        gates: Optional[list[ValidationGate]] = None,
        settings: Optional[ValidationSettings] = None,
    ):
        self.settings = settings if settings is not None else SETTINGS.validation
        self.gates = gates if gates is not None else self._default_gates()

    def _default_gates(self) -> list[ValidationGate]:
        s = self.settings
        return [
            FiniteResultGate(),
            NoArbitrageBoundsGate(s.arbitrage_tolerance, s.halt_on_arbitrage),
            DegeneratePathGate(s.max_degenerate_fraction),
            InvalidPathGate(s.max_invalid_fraction),
            StandardErrorGate(s.max_relative_error),
            BenchmarkAgreementGate(bias_allowance=s.euler_bias_allowance),
        ]

    def validate(self, result: PricingResult, **context: Any) -> ValidationReport:
        """
        Run every gate on ``result``; non-PASS verdicts are logged at WARNING.

        Context keywords are passed through to each gate unchanged.
        """
        verdicts = tuple(gate.check(result, **context) for gate in self.gates)
        for verdict in verdicts:
            if verdict.status is not GateStatus.PASS:
                logger.warning("%s %s: %s", verdict.status.name, verdict.gate_name, verdict.message)
        return ValidationReport(results=verdicts)

    def validate_and_raise(self, result: PricingResult, **context: Any) -> PricingResult:
        """
        Return ``result`` unchanged, or raise if any gate HALTs.

        Raises
        ------
        ValueError
            Listing the message of every HALTed gate
        """
        report = self.validate(result, **context)
        if report.passed:
            return result

        details = "\n".join(f"  - {g.gate_name}: {g.message}" for g in report.halted_gates)
        raise ValueError(f"CRITICAL: Validation failed. HALTs:\n{details}")


# =============================================================================
# Convenience Functions
# =============================================================================

def validate_pricing_result(result: PricingResult, **context: Any) -> ValidationReport:
    """
    Run the standard gates with default thresholds.

    Examples
    --------
    >>> report = validate_pricing_result(result, option=option)
    >>> report.overall_status
    <GateStatus.PASS: 'pass'>
    """
    return ValidationEngine().validate(result, **context)


def ensure_valid(result: PricingResult, **context: Any) -> PricingResult:
    """Standard gates; raise ValueError on any HALT, else return ``result``."""
    return ValidationEngine().validate_and_raise(result, **context)
