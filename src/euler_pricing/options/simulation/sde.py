"""
Price process coefficients for the Euler scheme.

[T1] SDE: dS = (r - D) S dt + σ S dW

The coefficients are time-homogeneous; t is accepted so that the simulator
can drive any drift/diffusion pair with the same signature.
"""

from dataclasses import dataclass

from euler_pricing.data.schemas import OptionConfiguration
from euler_pricing.options.payoffs.base import ArrayOrFloat


@dataclass(frozen=True)
class PriceProcessModel:
    """
    Drift and diffusion of the underlying under the pricing measure.

    Attributes
    ----------
    rate : float
        Risk-free rate (annualized, decimal)
    dividend : float
        Dividend yield (annualized, decimal)
    volatility : float
        Volatility (annualized, decimal)

    Examples
    --------
    >>> model = PriceProcessModel(rate=0.08, dividend=0.0, volatility=0.3)
    >>> model.drift(0.0, 60.0)
    4.8
    """

    rate: float
    dividend: float
    volatility: float

    @classmethod
    def from_configuration(cls, option: OptionConfiguration) -> "PriceProcessModel":
        """Model for the given option's rate, dividend yield and volatility."""
        return cls(rate=option.rate, dividend=option.dividend, volatility=option.volatility)

    def drift(self, t: float, s: ArrayOrFloat) -> ArrayOrFloat:
        """Drift term (r - D) * S."""
        return (self.rate - self.dividend) * s

    def diffusion(self, t: float, s: ArrayOrFloat) -> ArrayOrFloat:
        """Diffusion term σ * S."""
        return self.volatility * s
