"""A fixed-size bit map addressed by hashed values."""

from __future__ import annotations

from typing import Iterator

__all__ = ["ValueBitMap"]


class ValueBitMap:
    """A map of 65536 bits; values are reduced modulo the map size."""

    MAP_SIZE_IN_BITS = 1 << 16
    MAP_PRIME_MOD = 65371  # Largest prime below MAP_SIZE_IN_BITS.

    def __init__(self) -> None:
        self._bits = 0

    def reset(self) -> None:
        """Clear all bits."""
        self._bits = 0

    def add_value(self, value: int) -> bool:
        """Set the bit for ``value``; return True if it was previously clear."""
        mask = 1 << (value % self.MAP_SIZE_IN_BITS)
        if self._bits & mask:
            return False
        self._bits |= mask
        return True

    def add_value_mod_prime(self, value: int) -> bool:
        """Like :meth:`add_value`, reducing ``value`` modulo a prime first."""
        return self.add_value(value % self.MAP_PRIME_MOD)

    def get(self, idx: int) -> bool:
        """Return whether bit ``idx`` is set."""
        if not 0 <= idx < self.MAP_SIZE_IN_BITS:
            raise IndexError(f"bit index {idx} out of range")
        return bool(self._bits >> idx & 1)

    def size_in_bits(self) -> int:
        return self.MAP_SIZE_IN_BITS

    def __iter__(self) -> Iterator[int]:
        """Yield the indices of set bits in ascending order."""
        bits = self._bits
        while bits:
            lowest = bits & -bits
            yield lowest.bit_length() - 1
            bits ^= lowest