"""
Pseudo-random engines and the standard normal variate source.

Supports three engines, selected by EngineType:
- Mersenne Twister: NumPy MT19937 bit generator with ziggurat normals
- Lagged Fibonacci: additive generator x_n = x_{n-24} + x_{n-55} mod 2^32
- Linear Congruential: minimal standard x_n = 48271 x_{n-1} mod (2^31 - 1)

The two hand-built engines yield uniforms on the open interval (0, 1) which
are mapped to normals by the inverse normal CDF.

Every NormalVariateSource owns its engine outright. Streams for concurrent
workers are made independent by spawning child SeedSequences from one run
seed, so worker i always receives the same stream for a given seed.

See: Glasserman (2003) Ch. 2 - Generating random numbers
See: L'Ecuyer (1999) "Tables of linear congruential generators"
"""

import logging
from enum import Enum
from functools import lru_cache
from typing import Callable, Optional, Protocol, Union

import numpy as np
from scipy.special import ndtri

from euler_pricing.config.settings import SETTINGS
from euler_pricing.errors import ConfigurationError

logger = logging.getLogger(__name__)

SeedLike = Union[None, int, np.random.SeedSequence]
Sampler = Callable[[int], np.ndarray]


# =============================================================================
# Engine Selection
# =============================================================================


class EngineType(Enum):
    """
    Supported pseudo-random engines.

    Each member carries a numeric id and a human-readable description.
    UNKNOWN is what failed lookups return; it never produces numbers.
    """

    MERSENNE_TWISTER = (1, "Mersenne Twister")
    LAGGED_FIBONACCI = (2, "Lagged Fibonacci")
    LINEAR_CONGRUENTIAL = (3, "Linear Congruential")
    UNKNOWN = (4, "Unknown")

    def __init__(self, engine_id: int, description: str):
        self.engine_id = engine_id
        self.description = description

    def __str__(self) -> str:
        return self.description

    @property
    def is_known(self) -> bool:
        """True for every engine that can generate numbers."""
        return self is not EngineType.UNKNOWN

    @classmethod
    def from_description(cls, description: str) -> "EngineType":
        """
        Look up an engine by description (or member name), ignoring case.

        Returns UNKNOWN instead of raising when nothing matches.

        Examples
        --------
        >>> EngineType.from_description("Mersenne Twister")
        <EngineType.MERSENNE_TWISTER: (1, 'Mersenne Twister')>
        >>> EngineType.from_description("xorshift")
        <EngineType.UNKNOWN: (4, 'Unknown')>
        """
        if not isinstance(description, str):
            return cls.UNKNOWN
        key = " ".join(description.replace("_", " ").split()).lower()
        for member in cls:
            if not member.is_known:
                continue
            if key in (member.description.lower(), member.name.replace("_", " ").lower()):
                return member
        return cls.UNKNOWN

    @classmethod
    def from_id(cls, engine_id: int) -> "EngineType":
        """Look up an engine by numeric id. Returns UNKNOWN when nothing matches."""
        for member in cls:
            if member.is_known and member.engine_id == engine_id:
                return member
        return cls.UNKNOWN


EngineSelector = Union[EngineType, str, int]


def resolve_engine(selector: EngineSelector) -> EngineType:
    """Map an EngineType, description, or id onto an EngineType (possibly UNKNOWN)."""
    if isinstance(selector, EngineType):
        return selector
    if isinstance(selector, str):
        return EngineType.from_description(selector)
    if isinstance(selector, (int, np.integer)) and not isinstance(selector, bool):
        return EngineType.from_id(int(selector))
    return EngineType.UNKNOWN


# =============================================================================
# Seeding
# =============================================================================


def as_seed_sequence(seed: SeedLike) -> np.random.SeedSequence:
    """
    Normalize a seed into a fresh SeedSequence.

    A SeedSequence argument is rebuilt from its entropy and spawn key so that
    spawning from the result is repeatable however often it is called.
    """
    if isinstance(seed, np.random.SeedSequence):
        return np.random.SeedSequence(seed.entropy, spawn_key=seed.spawn_key)
    return np.random.SeedSequence(seed)


def spawn_worker_seeds(seed: SeedLike, n_workers: int) -> list[np.random.SeedSequence]:
    """
    Derive one independent seed per worker from a run seed.

    Worker i always receives child i, so a fixed seed and worker count give
    the same stream assignment on every run.
    """
    if n_workers <= 0:
        raise ConfigurationError(f"CRITICAL: n_workers must be > 0, got {n_workers}")
    return as_seed_sequence(seed).spawn(n_workers)


# =============================================================================
# Uniform Engines
# =============================================================================


@lru_cache(maxsize=None)
def _lcg_multiplier_powers(multiplier: int, modulus: int, n: int) -> np.ndarray:
    """a^1, a^2, ..., a^n mod m, so a block of n draws is one vector product."""
    powers = np.empty(n, dtype=np.uint64)
    p = 1
    for j in range(n):
        p = (p * multiplier) % modulus
        powers[j] = p
    powers.flags.writeable = False
    return powers


class LinearCongruentialEngine:
    """
    Minimal standard linear congruential generator.

    [T1] x_n = 48271 * x_{n-1} mod (2^31 - 1), uniforms x_n / (2^31 - 1).

    Blocks are generated as x_{n+j} = (a^j mod m) * x_n mod m; every product
    stays below 2^62 so uint64 arithmetic is exact.
    """

    MULTIPLIER = 48_271
    MODULUS = 2**31 - 1
    BLOCK = 4_096

    def __init__(self, seed: np.random.SeedSequence):
        state = int(seed.generate_state(1, dtype=np.uint64)[0]) % self.MODULUS
        self._state = state or 1
        self._powers = _lcg_multiplier_powers(self.MULTIPLIER, self.MODULUS, self.BLOCK)

    def random(self, size: int) -> np.ndarray:
        """Next ``size`` uniforms on (0, 1)."""
        words = np.empty(size, dtype=np.uint64)
        modulus = np.uint64(self.MODULUS)
        filled = 0
        while filled < size:
            count = min(self.BLOCK, size - filled)
            block = (self._powers[:count] * np.uint64(self._state)) % modulus
            words[filled:filled + count] = block
            self._state = int(block[-1])
            filled += count
        return words / float(self.MODULUS)


class LaggedFibonacciEngine:
    """
    Additive lagged Fibonacci generator with lags (24, 55).

    [T1] x_n = x_{n-24} + x_{n-55} mod 2^32 (Knuth, TAOCP Vol. 2, 3.2.2)

    Up to 24 new words depend only on words already in the 55-word history,
    so each block of 24 is one vector addition.
    """

    SHORT_LAG = 24
    LONG_LAG = 55
    WARMUP = 1_100

    def __init__(self, seed: np.random.SeedSequence):
        state = seed.generate_state(self.LONG_LAG, dtype=np.uint32)
        # At least one odd word is needed for the full period
        state[0] |= np.uint32(1)
        self._history = state
        self._next_words(self.WARMUP)

    def _next_words(self, size: int) -> np.ndarray:
        words = np.empty(size, dtype=np.uint32)
        history = self._history
        offset = self.LONG_LAG - self.SHORT_LAG
        filled = 0
        while filled < size:
            count = min(self.SHORT_LAG, size - filled)
            # uint32 addition wraps modulo 2^32
            new = history[offset:offset + count] + history[:count]
            words[filled:filled + count] = new
            history = np.concatenate((history[count:], new))
            filled += count
        self._history = history
        return words

    def random(self, size: int) -> np.ndarray:
        """Next ``size`` uniforms on (0, 1)."""
        return (self._next_words(size).astype(np.float64) + 0.5) / 2.0**32


def _inverse_normal_sampler(engine: Union[LinearCongruentialEngine, LaggedFibonacciEngine]) -> Sampler:
    def sample(size: int) -> np.ndarray:
        return ndtri(engine.random(size))

    return sample


# =============================================================================
# Normal Variate Source
# =============================================================================


class VariateSource(Protocol):
    """Anything that can hand out standard normal deviates one at a time or in blocks."""

    def __call__(self) -> float:
        ...

    def draw(self, shape: Union[int, tuple[int, ...]]) -> np.ndarray:
        ...


class NormalVariateSource:
    """
    Stream of independent N(0, 1) deviates backed by one engine.

    ``source()`` returns the next deviate; ``source.draw(shape)`` returns the
    next block of deviates in row-major order. Both read the same stream, so
    mixing them never skips or repeats a deviate, and the sequence does not
    depend on how it is chunked.

    Parameters
    ----------
    engine_type : EngineType
        Engine backing this source
    sampler : Callable[[int], np.ndarray]
        Returns the next n deviates of the engine's stream
    buffer_size : int, default 1024
        Deviates fetched at a time for single draws
    """

    def __init__(
        self,
        engine_type: EngineType,
        sampler: Sampler,
        buffer_size: int = 1_024,
    ):
        if buffer_size <= 0:
            raise ConfigurationError(f"CRITICAL: buffer_size must be > 0, got {buffer_size}")
        self.engine_type = engine_type
        self._sampler = sampler
        self._buffer_size = buffer_size
        self._buffer = np.empty(0, dtype=np.float64)
        self._position = 0

    @property
    def description(self) -> str:
        """Description of the backing engine."""
        return self.engine_type.description

    def __call__(self) -> float:
        if self._position >= self._buffer.size:
            self._buffer = np.asarray(self._sampler(self._buffer_size), dtype=np.float64)
            self._position = 0
        z = self._buffer[self._position]
        self._position += 1
        return float(z)

    def draw(self, shape: Union[int, tuple[int, ...]]) -> np.ndarray:
        """Next ``prod(shape)`` deviates, reshaped to ``shape``."""
        n = int(np.prod(shape))
        pending = self._buffer[self._position:]
        take = min(pending.size, n)
        self._position += take
        if take == n:
            block = pending[:n].copy()
        else:
            fresh = np.asarray(self._sampler(n - take), dtype=np.float64)
            block = np.concatenate((pending[:take], fresh))
        return block.reshape(shape)

    def __repr__(self) -> str:
        return f"NormalVariateSource(engine={self.description!r})"


def build_normal_source(
    selector: EngineSelector,
    seed: SeedLike = None,
    buffer_size: int = 1_024,
) -> tuple[NormalVariateSource, str]:
    """
    Construct and seed a normal variate source for the selected engine.

    Parameters
    ----------
    selector : EngineType, str, or int
        Engine to use (member, description, or id)
    seed : int or SeedSequence, optional
        Seed for this source; None draws fresh OS entropy
    buffer_size : int, default 1024
        Deviates fetched at a time for single draws

    Returns
    -------
    tuple[NormalVariateSource, str]
        The source and the description of the engine actually used

    Raises
    ------
    ConfigurationError
        If the selector does not resolve to a known engine

    Examples
    --------
    >>> source, desc = build_normal_source(EngineType.MERSENNE_TWISTER, seed=42)
    >>> desc
    'Mersenne Twister'
    >>> z = source()
    """
    engine_type = resolve_engine(selector)
    if not engine_type.is_known:
        available = ", ".join(e.description for e in EngineType if e.is_known)
        raise ConfigurationError(
            f"CRITICAL: unknown random engine {selector!r}. Available: {available}"
        )

    seed_seq = as_seed_sequence(seed)

    sampler: Sampler
    if engine_type is EngineType.MERSENNE_TWISTER:
        generator = np.random.Generator(np.random.MT19937(seed_seq))
        sampler = generator.standard_normal
    elif engine_type is EngineType.LAGGED_FIBONACCI:
        sampler = _inverse_normal_sampler(LaggedFibonacciEngine(seed_seq))
    else:
        sampler = _inverse_normal_sampler(LinearCongruentialEngine(seed_seq))

    logger.debug(
        "Built %s normal source (spawn_key=%s)", engine_type.description, seed_seq.spawn_key
    )
    return NormalVariateSource(engine_type, sampler, buffer_size), engine_type.description


def engine_from_settings(default: Optional[str] = None) -> EngineType:
    """
    Engine configured as the default, failing loudly when it is unknown.

    Raises
    ------
    ConfigurationError
        If the configured description names no engine
    """
    description = default if default is not None else SETTINGS.simulation.default_engine
    engine_type = EngineType.from_description(description)
    if not engine_type.is_known:
        raise ConfigurationError(
            f"CRITICAL: configured default engine {description!r} is not a known engine"
        )
    return engine_type
