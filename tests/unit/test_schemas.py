"""
Tests for OptionConfiguration and OptionConfigurationBuilder.

Covers:
- Field validation with every failure collected
- Builder setters, error replacement, defaults
- Derived values (discount factor, payoff)
"""

import math

import numpy as np
import pytest

from euler_pricing.config.settings import SETTINGS
from euler_pricing.data.schemas import (
    FieldError,
    OptionConfiguration,
    OptionConfigurationBuilder,
    validate_option_fields,
)
from euler_pricing.errors import ConfigurationError
from euler_pricing.options.payoffs.base import OptionType

from conftest import make_option


class TestOptionConfiguration:
    """Construction-time validation."""

    def test_valid_configuration(self, reference_put):
        assert reference_put.strike == 65.0
        assert reference_put.option_type is OptionType.PUT

    def test_is_immutable(self, reference_put):
        with pytest.raises(AttributeError):
            reference_put.strike = 70.0

    @pytest.mark.parametrize(
        "field, value",
        [
            ("strike", 0.0),
            ("strike", -1.0),
            ("expiry", -0.1),
            ("rate", -0.01),
            ("volatility", -0.2),
            ("spot", 0.0),
            ("dividend", -0.01),
            ("n_simulations", 0),
            ("n_simulations", 2.5),
            ("strike", float("nan")),
            ("spot", float("inf")),
            ("option_type", "call"),
        ],
    )
    def test_rejects_invalid_field(self, field, value):
        with pytest.raises(ConfigurationError, match=field) as exc_info:
            make_option(**{field: value})
        assert [e.field for e in exc_info.value.field_errors] == [field]

    def test_collects_every_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            make_option(strike=-1.0, spot=-1.0, n_simulations=0)
        fields = {e.field for e in exc_info.value.field_errors}
        assert fields == {"strike", "spot", "n_simulations"}

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            make_option(strike=-1.0)

    def test_accepts_numpy_scalars(self):
        option = make_option(strike=np.float64(65.0), n_simulations=np.int64(10))
        assert option.n_simulations == 10

    def test_zero_expiry_and_volatility_allowed(self):
        option = make_option(expiry=0.0, volatility=0.0)
        assert option.discount_factor == 1.0

    def test_discount_factor(self, reference_put):
        assert reference_put.discount_factor == pytest.approx(math.exp(-0.08 * 0.25), rel=1e-15)

    def test_payoff_uses_option_type(self, reference_put, reference_call):
        assert reference_put.payoff(50.0) == 15.0
        assert reference_call.payoff(70.0) == 5.0

    def test_with_simulations(self, reference_put):
        smaller = reference_put.with_simulations(10)
        assert smaller.n_simulations == 10
        assert smaller.strike == reference_put.strike
        assert reference_put.n_simulations == 50_000


class TestValidateOptionFields:
    """The field validator returns errors instead of raising."""

    def test_valid_fields(self):
        errors = validate_option_fields(
            strike=1.0, expiry=1.0, rate=0.0, volatility=0.0, spot=1.0,
            dividend=0.0, n_simulations=1, option_type=OptionType.CALL,
        )
        assert errors == []

    def test_bool_is_not_a_number(self):
        errors = validate_option_fields(
            strike=True, expiry=1.0, rate=0.0, volatility=0.0, spot=1.0,
            dividend=0.0, n_simulations=True, option_type=OptionType.CALL,
        )
        assert {e.field for e in errors} == {"strike", "n_simulations"}

    def test_field_error_str(self):
        error = FieldError("strike", -1.0, "must be > 0")
        assert str(error) == "strike=-1.0: must be > 0"


class TestOptionConfigurationBuilder:
    """Field-by-field construction."""

    def _complete(self) -> OptionConfigurationBuilder:
        return (
            OptionConfigurationBuilder()
            .set_strike(65.0)
            .set_expiry(0.25)
            .set_rate(0.08)
            .set_volatility(0.3)
            .set_spot(60.0)
            .set_n_simulations(50_000)
            .set_dividend(0.0)
            .set_option_type("put")
        )

    def test_builds_configuration(self, reference_put):
        assert self._complete().build() == reference_put

    def test_missing_fields_reported(self):
        builder = OptionConfigurationBuilder().set_strike(65.0)
        assert not builder.is_valid
        missing = {e.field for e in builder.errors}
        assert "strike" not in missing
        assert "spot" in missing
        with pytest.raises(ConfigurationError, match="is required"):
            builder.build()

    def test_setter_records_error(self):
        builder = self._complete().set_volatility(-0.3)
        assert [e.field for e in builder.errors] == ["volatility"]
        with pytest.raises(ConfigurationError, match="volatility") as exc_info:
            builder.build()
        assert exc_info.value.field_errors[0].value == -0.3

    def test_later_valid_value_clears_error(self):
        builder = self._complete().set_spot(-1.0).set_spot(60.0)
        assert builder.is_valid
        assert builder.build().spot == 60.0

    def test_invalid_value_discards_earlier_valid_value(self):
        builder = self._complete().set_strike(-5.0)
        assert not builder.is_valid

    def test_option_type_integer_encoding(self):
        assert self._complete().set_option_type(1).build().option_type is OptionType.CALL
        assert self._complete().set_option_type(-1).build().option_type is OptionType.PUT

    def test_option_type_rejected(self):
        builder = self._complete().set_option_type("straddle")
        assert [e.field for e in builder.errors] == ["option_type"]

    def test_defaults(self):
        option = OptionConfigurationBuilder.defaults().build()
        d = SETTINGS.option
        assert option.strike == d.strike == 100.0
        assert option.spot == d.spot == 110.0
        assert option.n_simulations == d.n_simulations == 100_000
        assert option.option_type is OptionType.CALL

    def test_from_configuration_round_trip(self, reference_put):
        builder = OptionConfigurationBuilder.from_configuration(reference_put)
        assert builder.build() == reference_put
        assert builder.set_strike(70.0).build().strike == 70.0
