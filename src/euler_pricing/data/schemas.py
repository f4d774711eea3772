"""
Option configuration schema and its validating builder.

OptionConfiguration is immutable once built and is never mutated by the
simulation core. The builder collects fields one at a time: each setter
validates its own field and records a FieldError on rejection, and build()
returns a complete configuration or raises with every field error collected.
"""

import math
import numbers
from dataclasses import dataclass, field
from typing import Any, Union

from euler_pricing.config.settings import SETTINGS
from euler_pricing.errors import ConfigurationError
from euler_pricing.options.payoffs.base import ArrayOrFloat, OptionType, vanilla_payoff

# =============================================================================
# Option Configuration
# =============================================================================


@dataclass(frozen=True)
class OptionConfiguration:
    """
    Validated European option and simulation size.

    Attributes
    ----------
    strike : float
        Strike price K > 0
    expiry : float
        Time to expiry T >= 0 (years)
    rate : float
        Risk-free rate r >= 0 (annualized, decimal)
    volatility : float
        Volatility σ >= 0 (annualized, decimal)
    spot : float
        Initial underlying price S > 0
    dividend : float
        Dividend yield D >= 0 (annualized, decimal)
    n_simulations : int
        Number of simulated paths N >= 1
    option_type : OptionType
        CALL or PUT

    Examples
    --------
    >>> option = OptionConfiguration(
    ...     strike=65.0, expiry=0.25, rate=0.08, volatility=0.3,
    ...     spot=60.0, dividend=0.0, n_simulations=50_000,
    ...     option_type=OptionType.PUT,
    ... )
    >>> option.payoff(50.0)
    15.0
    """

    strike: float
    expiry: float
    rate: float
    volatility: float
    spot: float
    dividend: float
    n_simulations: int
    option_type: OptionType

    def __post_init__(self) -> None:
        """Validate parameters."""
        errors = validate_option_fields(
            strike=self.strike,
            expiry=self.expiry,
            rate=self.rate,
            volatility=self.volatility,
            spot=self.spot,
            dividend=self.dividend,
            n_simulations=self.n_simulations,
            option_type=self.option_type,
        )
        if errors:
            raise ConfigurationError(_format_field_errors(errors), field_errors=tuple(errors))

    @property
    def discount_factor(self) -> float:
        """Discount factor exp(-rT)."""
        return math.exp(-self.rate * self.expiry)

    def payoff(self, terminal: ArrayOrFloat) -> ArrayOrFloat:
        """Payoff of this option at the given terminal value(s)."""
        return vanilla_payoff(self.option_type, self.strike, terminal)

    def with_simulations(self, n_simulations: int) -> "OptionConfiguration":
        """Copy of this configuration with a different path count."""
        return OptionConfiguration(
            strike=self.strike,
            expiry=self.expiry,
            rate=self.rate,
            volatility=self.volatility,
            spot=self.spot,
            dividend=self.dividend,
            n_simulations=n_simulations,
            option_type=self.option_type,
        )


# =============================================================================
# Field Validation
# =============================================================================


@dataclass(frozen=True)
class FieldError:
    """A single rejected field value."""

    field: str
    value: Any
    message: str

    def __str__(self) -> str:
        return f"{self.field}={self.value!r}: {self.message}"


def _check_real(name: str, value: Any, errors: list[FieldError]) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        errors.append(FieldError(name, value, "must be a real number"))
        return False
    if not math.isfinite(value):
        errors.append(FieldError(name, value, "must be finite"))
        return False
    return True


def validate_option_fields(
    *,
    strike: Any,
    expiry: Any,
    rate: Any,
    volatility: Any,
    spot: Any,
    dividend: Any,
    n_simulations: Any,
    option_type: Any,
) -> list[FieldError]:
    """
    Validate every option field and return all failures.

    Returns
    -------
    list[FieldError]
        Empty when the fields form a valid OptionConfiguration
    """
    errors: list[FieldError] = []

    if _check_real("strike", strike, errors) and strike <= 0:
        errors.append(FieldError("strike", strike, "must be > 0"))
    if _check_real("expiry", expiry, errors) and expiry < 0:
        errors.append(FieldError("expiry", expiry, "must be >= 0"))
    if _check_real("rate", rate, errors) and rate < 0:
        errors.append(FieldError("rate", rate, "must be >= 0"))
    if _check_real("volatility", volatility, errors) and volatility < 0:
        errors.append(FieldError("volatility", volatility, "must be >= 0"))
    if _check_real("spot", spot, errors) and spot <= 0:
        errors.append(FieldError("spot", spot, "must be > 0"))
    if _check_real("dividend", dividend, errors) and dividend < 0:
        errors.append(FieldError("dividend", dividend, "must be >= 0"))

    if isinstance(n_simulations, bool) or not isinstance(n_simulations, numbers.Integral):
        errors.append(FieldError("n_simulations", n_simulations, "must be an integer"))
    elif n_simulations < 1:
        errors.append(FieldError("n_simulations", n_simulations, "must be >= 1"))

    if not isinstance(option_type, OptionType):
        errors.append(FieldError("option_type", option_type, "must be OptionType.CALL or OptionType.PUT"))

    return errors


def _format_field_errors(errors: list[FieldError]) -> str:
    return "CRITICAL: invalid option configuration:\n" + "\n".join(
        f"  - {e}" for e in errors
    )


# =============================================================================
# Builder
# =============================================================================

_FIELDS = (
    "strike",
    "expiry",
    "rate",
    "volatility",
    "spot",
    "n_simulations",
    "dividend",
    "option_type",
)


@dataclass
class OptionConfigurationBuilder:
    """
    Collects option fields one at a time and builds an OptionConfiguration.

    Each setter validates its field immediately. Rejected values are recorded
    and reported together by build(); a later valid value for the same field
    clears the earlier error.

    Examples
    --------
    >>> option = (
    ...     OptionConfigurationBuilder()
    ...     .set_strike(65.0).set_expiry(0.25).set_rate(0.08)
    ...     .set_volatility(0.3).set_spot(60.0).set_n_simulations(50_000)
    ...     .set_dividend(0.0).set_option_type("put")
    ...     .build()
    ... )
    >>> option.option_type
    <OptionType.PUT: 'put'>
    """

    _values: dict[str, Any] = field(default_factory=dict)
    _errors: dict[str, FieldError] = field(default_factory=dict)

    @classmethod
    def defaults(cls) -> "OptionConfigurationBuilder":
        """Builder pre-filled with the configured default option data."""
        d = SETTINGS.option
        return (
            cls()
            .set_strike(d.strike)
            .set_expiry(d.expiry)
            .set_rate(d.rate)
            .set_volatility(d.volatility)
            .set_spot(d.spot)
            .set_n_simulations(d.n_simulations)
            .set_dividend(d.dividend)
            .set_option_type(d.option_type)
        )

    @classmethod
    def from_configuration(cls, option: OptionConfiguration) -> "OptionConfigurationBuilder":
        """Builder pre-filled from an existing configuration."""
        builder = cls()
        for name in _FIELDS:
            builder._values[name] = getattr(option, name)
        return builder

    def _accept(self, name: str, value: Any, errors: list[FieldError]) -> "OptionConfigurationBuilder":
        own = [e for e in errors if e.field == name]
        if own:
            self._errors[name] = own[0]
            self._values.pop(name, None)
        else:
            self._errors.pop(name, None)
            self._values[name] = value
        return self

    def _validate_one(self, name: str, value: Any) -> list[FieldError]:
        # Validate a single field against otherwise-valid placeholders
        probe: dict[str, Any] = {
            "strike": 1.0,
            "expiry": 0.0,
            "rate": 0.0,
            "volatility": 0.0,
            "spot": 1.0,
            "dividend": 0.0,
            "n_simulations": 1,
            "option_type": OptionType.CALL,
        }
        probe[name] = value
        return validate_option_fields(**probe)

    def set_strike(self, value: float) -> "OptionConfigurationBuilder":
        return self._accept("strike", value, self._validate_one("strike", value))

    def set_expiry(self, value: float) -> "OptionConfigurationBuilder":
        return self._accept("expiry", value, self._validate_one("expiry", value))

    def set_rate(self, value: float) -> "OptionConfigurationBuilder":
        return self._accept("rate", value, self._validate_one("rate", value))

    def set_volatility(self, value: float) -> "OptionConfigurationBuilder":
        return self._accept("volatility", value, self._validate_one("volatility", value))

    def set_spot(self, value: float) -> "OptionConfigurationBuilder":
        return self._accept("spot", value, self._validate_one("spot", value))

    def set_n_simulations(self, value: int) -> "OptionConfigurationBuilder":
        return self._accept("n_simulations", value, self._validate_one("n_simulations", value))

    def set_dividend(self, value: float) -> "OptionConfigurationBuilder":
        return self._accept("dividend", value, self._validate_one("dividend", value))

    def set_option_type(self, value: Union[OptionType, str, int]) -> "OptionConfigurationBuilder":
        try:
            parsed = OptionType.parse(value)
        except ValueError as e:
            return self._accept("option_type", value, [FieldError("option_type", value, str(e))])
        return self._accept("option_type", parsed, [])

    @property
    def errors(self) -> list[FieldError]:
        """Field errors recorded so far, including missing fields."""
        missing = [
            FieldError(name, None, "is required")
            for name in _FIELDS
            if name not in self._values and name not in self._errors
        ]
        return [self._errors[n] for n in _FIELDS if n in self._errors] + missing

    @property
    def is_valid(self) -> bool:
        """True when build() would succeed."""
        return not self.errors

    def build(self) -> OptionConfiguration:
        """
        Build the configuration.

        Raises
        ------
        ConfigurationError
            Listing every rejected or missing field
        """
        errors = self.errors
        if errors:
            raise ConfigurationError(_format_field_errors(errors), field_errors=tuple(errors))
        return OptionConfiguration(**self._values)
