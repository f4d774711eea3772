"""
Explicit Euler-Maruyama path simulation.

[T1] V(t+k) = V(t) + k * drift(t, V) + sqrt(k) * diffusion(t, V) * Z

The scheme neither clamps nor stops when V reaches zero or below: such
values keep propagating through the recursion and the path is only flagged
as degenerate. The payoff is the one place where values are floored.

simulate_paths() advances a batch of paths in lock-step with the same
floating-point operations, in the same order, as simulate_path(). Given the
same deviates (path-major: path i uses deviates i*NT .. (i+1)*NT - 1) both
produce bitwise identical terminal values.

See: Kloeden & Platen (1992) "Numerical Solution of SDEs", Ch. 9
See: Glasserman (2003) Ch. 6 - Discretization methods
"""

import math
from dataclasses import dataclass
from typing import Protocol

import numpy as np

from euler_pricing.errors import ConfigurationError
from euler_pricing.options.payoffs.base import ArrayOrFloat
from euler_pricing.options.simulation.rng import VariateSource


class ProcessModel(Protocol):
    """Drift/diffusion pair driving the scheme."""

    def drift(self, t: float, s: ArrayOrFloat) -> ArrayOrFloat:
        ...

    def diffusion(self, t: float, s: ArrayOrFloat) -> ArrayOrFloat:
        ...


@dataclass(frozen=True)
class PathOutcome:
    """
    Result of simulating one path.

    Attributes
    ----------
    terminal_value : float
        Value at expiry (may be negative or non-finite)
    touched_zero : bool
        Whether the value was <= 0 after any step
    finite : bool
        Whether every intermediate value was finite
    """

    terminal_value: float
    touched_zero: bool
    finite: bool = True


@dataclass(frozen=True)
class PathBatch:
    """
    Result of simulating a batch of paths.

    Attributes
    ----------
    terminal_values : np.ndarray
        Values at expiry, shape (n_paths,)
    touched_zero : np.ndarray
        Degeneracy flag per path, shape (n_paths,)
    finite : np.ndarray
        Finiteness flag per path, shape (n_paths,)
    """

    terminal_values: np.ndarray
    touched_zero: np.ndarray
    finite: np.ndarray

    @property
    def n_paths(self) -> int:
        """Number of paths."""
        return self.terminal_values.shape[0]

    @property
    def n_degenerate(self) -> int:
        """Number of paths that reached zero or below."""
        return int(np.count_nonzero(self.touched_zero))

    def outcome(self, path_idx: int) -> PathOutcome:
        """Single path of the batch as a PathOutcome."""
        if path_idx < 0 or path_idx >= self.n_paths:
            raise ValueError(f"CRITICAL: path_idx must be in [0, {self.n_paths}), got {path_idx}")
        return PathOutcome(
            terminal_value=float(self.terminal_values[path_idx]),
            touched_zero=bool(self.touched_zero[path_idx]),
            finite=bool(self.finite[path_idx]),
        )


def _check_grid(expiry: float, n_steps: int) -> None:
    if isinstance(n_steps, bool) or not isinstance(n_steps, (int, np.integer)):
        raise ConfigurationError(f"CRITICAL: n_steps must be an integer, got {n_steps!r}")
    if n_steps <= 0:
        raise ConfigurationError(f"CRITICAL: n_steps must be > 0, got {n_steps}")
    if not math.isfinite(expiry) or expiry < 0:
        raise ConfigurationError(f"CRITICAL: expiry must be finite and >= 0, got {expiry}")


def simulate_path(
    model: ProcessModel,
    source: VariateSource,
    spot: float,
    expiry: float,
    n_steps: int,
) -> PathOutcome:
    """
    Advance one path from time 0 to expiry.

    Parameters
    ----------
    model : ProcessModel
        Drift and diffusion coefficients
    source : VariateSource
        Standard normal deviates; one is consumed per step
    spot : float
        Initial value S(0)
    expiry : float
        Time to expiry in years
    n_steps : int
        Number of Euler steps NT

    Returns
    -------
    PathOutcome
        Terminal value, degeneracy flag and finiteness flag

    Raises
    ------
    ConfigurationError
        If n_steps <= 0 or expiry is negative

    Examples
    --------
    >>> model = PriceProcessModel(rate=0.08, dividend=0.0, volatility=0.3)
    >>> source, _ = build_normal_source(EngineType.MERSENNE_TWISTER, seed=1)
    >>> outcome = simulate_path(model, source, spot=60.0, expiry=0.25, n_steps=100)
    """
    _check_grid(expiry, n_steps)

    k = expiry / n_steps
    sqrt_k = math.sqrt(k)

    v = spot
    t = 0.0
    touched_zero = False
    finite = True

    for _ in range(n_steps):
        z = source()
        v = v + k * model.drift(t, v) + sqrt_k * model.diffusion(t, v) * z

        # Spurious values are recorded, never clamped
        if v <= 0.0:
            touched_zero = True
        if not math.isfinite(v):
            finite = False

        t += k

    return PathOutcome(terminal_value=float(v), touched_zero=touched_zero, finite=finite)


def simulate_paths(
    model: ProcessModel,
    source: VariateSource,
    spot: float,
    expiry: float,
    n_steps: int,
    n_paths: int,
) -> PathBatch:
    """
    Advance ``n_paths`` independent paths from time 0 to expiry.

    Deviates are drawn as one (n_paths, n_steps) block, so path i consumes
    the same deviates it would if the paths were simulated one after another
    with simulate_path().

    Parameters
    ----------
    model : ProcessModel
        Drift and diffusion coefficients
    source : VariateSource
        Standard normal deviates
    spot : float
        Initial value S(0)
    expiry : float
        Time to expiry in years
    n_steps : int
        Number of Euler steps NT
    n_paths : int
        Number of paths in the batch

    Returns
    -------
    PathBatch
        Terminal values and per-path flags
    """
    _check_grid(expiry, n_steps)
    if n_paths <= 0:
        raise ConfigurationError(f"CRITICAL: n_paths must be > 0, got {n_paths}")

    k = expiry / n_steps
    sqrt_k = math.sqrt(k)

    z = source.draw((n_paths, n_steps))

    v = np.full(n_paths, spot, dtype=np.float64)
    touched_zero = np.zeros(n_paths, dtype=bool)
    finite = np.ones(n_paths, dtype=bool)
    t = 0.0

    with np.errstate(over="ignore", invalid="ignore"):
        for step in range(n_steps):
            v = v + k * model.drift(t, v) + sqrt_k * model.diffusion(t, v) * z[:, step]
            touched_zero |= v <= 0.0
            finite &= np.isfinite(v)
            t += k

    return PathBatch(terminal_values=v, touched_zero=touched_zero, finite=finite)
