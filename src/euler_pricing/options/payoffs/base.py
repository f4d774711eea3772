"""
Vanilla European option payoffs.

The payoff is the only place where simulated prices are floored at zero;
the discretization itself lets non-physical negative values propagate.
"""

from enum import Enum
from typing import Union

import numpy as np

ArrayOrFloat = Union[float, np.ndarray]


class OptionType(Enum):
    """Option type enumeration."""

    CALL = "call"
    PUT = "put"

    @property
    def sign(self) -> int:
        """Legacy integer encoding: +1 for a call, -1 for a put."""
        return 1 if self is OptionType.CALL else -1

    @classmethod
    def parse(cls, value: Union["OptionType", str, int]) -> "OptionType":
        """
        Parse an option type from an enum member, name, or integer code.

        Accepts "call"/"put" (any case), "C"/"P", and the integer codes
        1 (call) and -1 (put).

        Raises
        ------
        ValueError
            If the value names neither a call nor a put
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"CRITICAL: option type must be call or put, got {value!r}")
        if isinstance(value, (int, np.integer)):
            if value == 1:
                return cls.CALL
            if value == -1:
                return cls.PUT
            raise ValueError(f"CRITICAL: option type code must be 1 or -1, got {value}")
        if isinstance(value, str):
            text = value.strip().lower()
            if text in ("call", "c", "1", "+1"):
                return cls.CALL
            if text in ("put", "p", "-1"):
                return cls.PUT
        raise ValueError(f"CRITICAL: option type must be call or put, got {value!r}")


def vanilla_payoff(
    option_type: OptionType,
    strike: float,
    terminal: ArrayOrFloat,
) -> ArrayOrFloat:
    """
    European payoff at expiry.

    [T1] Call payoff: max(S(T) - K, 0)
    [T1] Put payoff:  max(K - S(T), 0)

    Parameters
    ----------
    option_type : OptionType
        CALL or PUT
    strike : float
        Strike price
    terminal : float or np.ndarray
        Terminal underlying value(s)

    Returns
    -------
    float or np.ndarray
        Payoff(s), same shape as ``terminal``

    Examples
    --------
    >>> vanilla_payoff(OptionType.CALL, 100.0, 150.0)
    50.0
    >>> vanilla_payoff(OptionType.PUT, 100.0, 80.0)
    20.0
    """
    if option_type is OptionType.CALL:
        payoff = np.maximum(terminal - strike, 0.0)
    else:
        payoff = np.maximum(strike - terminal, 0.0)

    if np.ndim(payoff) == 0:
        return float(payoff)
    return payoff
