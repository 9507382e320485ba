"""Deterministic pseudo-random generator used throughout the fuzzer."""

from __future__ import annotations

import math

__all__ = ["Random"]


class Random:
    """A minimal-standard (Park–Miller, multiplier 48271) linear congruential generator.

    Produces the same stream as the classic ``minstd_rand`` engine, so a given
    seed always yields the same sequence of values.
    """

    MODULUS = 2**31 - 1
    MULTIPLIER = 48271
    MIN = 1
    MAX = MODULUS - 1

    def __init__(self, seed: int) -> None:
        state = (seed & 0xFFFFFFFF) % self.MODULUS
        self._state = state or 1

    def next_value(self) -> int:
        """Advance the generator and return the raw value in [1, 2**31 - 2]."""
        self._state = (self._state * self.MULTIPLIER) % self.MODULUS
        return self._state

    def below(self, n: int) -> int:
        """Return a value in [0, n), or 0 when ``n`` is 0."""
        if n < 0:
            raise ValueError("n must not be negative")
        return self.next_value() % n if n else 0

    def between(self, low: int, high: int) -> int:
        """Return a value in the closed range [low, high]; ``low`` must be below ``high``."""
        if low >= high:
            raise ValueError(f"empty or degenerate range [{low}, {high}]")
        return self.below(high - low + 1) + low

    def rand_bool(self) -> int:
        """Return 0 or 1."""
        return self.next_value() % 2

    def skew_towards_last(self, n: int) -> int:
        """Return a value in [0, n) that is more likely to be close to ``n``."""
        return int(math.sqrt(self.below(n * n)))

    def canonical(self) -> float:
        """Return a float in [0.0, 1.0) built from two raw draws."""
        span = float(self.MAX - self.MIN + 1)
        total = 0.0
        scale = 1.0
        for _ in range(2):
            total += float(self.next_value() - self.MIN) * scale
            scale *= span
        result = total / scale
        if result >= 1.0:
            result = math.nextafter(1.0, 0.0)
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}(state={self._state})"