"""Bit-twiddling helpers on fixed-width unsigned integers."""

from __future__ import annotations

__all__ = ["bswap", "clz64", "popcount64"]

_WIDTHS = (8, 16, 32, 64)
_MASK64 = (1 << 64) - 1


def _check_unsigned(value: int, width: int) -> None:
    if value < 0 or value >> width:
        raise ValueError(f"{value} does not fit in {width} unsigned bits")


def bswap(value: int, width: int) -> int:
    """Reverse the byte order of an unsigned ``width``-bit integer (8, 16, 32 or 64)."""
    if width not in _WIDTHS:
        raise ValueError(f"unsupported width {width}; expected one of {_WIDTHS}")
    _check_unsigned(value, width)
    return int.from_bytes(value.to_bytes(width // 8, "big"), "little")


def clz64(value: int) -> int:
    """Count leading zero bits of a 64-bit unsigned integer; 64 for zero."""
    _check_unsigned(value, 64)
    return 64 - value.bit_length()


def popcount64(value: int) -> int:
    """Count set bits of a 64-bit unsigned integer."""
    _check_unsigned(value, 64)
    return bin(value & _MASK64).count("1")