"""Split a fuzzer-supplied byte string into typed values, deterministically.

The same input consumed with the same sequence of calls always yields the
same values. Byte strings are taken from the front of the data; integers
(and everything built from them) are taken from the back.
"""

from __future__ import annotations

import math
import struct
import sys
from enum import Enum
from typing import Callable, Optional, Sequence, Type, TypeVar

__all__ = ["FuzzedDataProvider"]

_T = TypeVar("_T")
_E = TypeVar("_E", bound=Enum)

_INT_SIZES = (1, 2, 4, 8)
_FLOAT_SIZES = (4, 8)
_UINT64_MAX = (1 << 64) - 1
_FLOAT32_MAX = struct.unpack("<f", bytes.fromhex("ffff7f7f"))[0]


def _to_float32(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _check_int_size(size: int) -> None:
    if size not in _INT_SIZES:
        raise ValueError(f"unsupported integer size {size}; expected one of {_INT_SIZES}")


def _check_float_size(size: int) -> None:
    if size not in _FLOAT_SIZES:
        raise ValueError(f"unsupported float size {size}; expected one of {_FLOAT_SIZES}")


class FuzzedDataProvider:
    """Consume typed values from a byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._start = 0
        self._end = len(self._data)

    def remaining_bytes(self) -> int:
        """Number of bytes not yet consumed."""
        return self._end - self._start

    # Byte sequences, taken from the front.

    def _take_front(self, num_bytes: int) -> bytes:
        if num_bytes < 0:
            raise ValueError("num_bytes must not be negative")
        num_bytes = min(num_bytes, self.remaining_bytes())
        chunk = self._data[self._start:self._start + num_bytes]
        self._start += num_bytes
        return chunk

    def consume_bytes(self, num_bytes: int) -> bytes:
        """Return up to ``num_bytes`` bytes; fewer if the data runs out."""
        return self._take_front(num_bytes)

    def consume_bytes_with_terminator(self, num_bytes: int, terminator: int = 0) -> bytes:
        """Like :meth:`consume_bytes`, with ``terminator`` appended."""
        if not 0 <= terminator <= 0xFF:
            raise ValueError(f"terminator {terminator} is not a byte value")
        return self._take_front(num_bytes) + bytes([terminator])

    def consume_remaining_bytes(self) -> bytes:
        """Return every byte that is left."""
        return self._take_front(self.remaining_bytes())

    def consume_bytes_as_string(self, num_bytes: int) -> str:
        """Return up to ``num_bytes`` bytes as a string, one character per byte."""
        return self._take_front(num_bytes).decode("latin-1")

    def consume_random_length_string(self, max_length: Optional[int] = None) -> str:
        """Return a string of 0 to ``max_length`` characters.

        A backslash followed by a backslash yields one backslash; a backslash
        followed by anything else ends the string. Both bytes are consumed.
        """
        if max_length is None:
            max_length = self.remaining_bytes()
        if max_length < 0:
            raise ValueError("max_length must not be negative")
        out = bytearray()
        while len(out) < max_length and self.remaining_bytes():
            current = self._data[self._start]
            self._start += 1
            if current == 0x5C and self.remaining_bytes():
                current = self._data[self._start]
                self._start += 1
                if current != 0x5C:
                    break
            out.append(current)
        return out.decode("latin-1")

    def consume_remaining_bytes_as_string(self) -> str:
        """Return every byte that is left as a string."""
        return self.consume_bytes_as_string(self.remaining_bytes())

    def consume_into(self, buffer: bytearray, num_bytes: Optional[int] = None) -> int:
        """Copy up to ``num_bytes`` bytes into ``buffer``; return how many were copied."""
        view = memoryview(buffer).cast("B")
        if num_bytes is None:
            num_bytes = len(view)
        if num_bytes > len(view):
            raise ValueError(f"buffer of {len(view)} bytes cannot hold {num_bytes}")
        chunk = self._take_front(num_bytes)
        view[:len(chunk)] = chunk
        return len(chunk)

    # Integers, taken from the back.

    def consume_integral(self, size: int = 4, signed: bool = True) -> int:
        """Return an integer covering the whole range of a ``size``-byte type."""
        _check_int_size(size)
        bits = size * 8
        if signed:
            low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        else:
            low, high = 0, (1 << bits) - 1
        return self.consume_integral_in_range(low, high, size)

    def consume_integral_in_range(self, low: int, high: int, size: int = 8) -> int:
        """Return an integer in [low, high]; ``low`` when no data is left."""
        _check_int_size(size)
        if low > high:
            raise ValueError(f"low {low} is greater than high {high}")
        bits = size * 8
        if low < -(1 << (bits - 1)) or high >= 1 << bits:
            raise ValueError(f"range [{low}, {high}] does not fit in {size} bytes")
        span = high - low
        if span > _UINT64_MAX or span >> bits:
            raise ValueError(f"range [{low}, {high}] is too wide for {size} bytes")

        result = 0
        offset = 0
        while offset < bits and span >> offset and self.remaining_bytes():
            self._end -= 1
            result = (result << 8) | self._data[self._end]
            offset += 8

        if span != _UINT64_MAX:
            result %= span + 1
        return low + result

    def consume_bool(self) -> bool:
        """Return a bool from one byte; False when no data is left."""
        return bool(self.consume_integral(1, signed=False) & 1)

    def consume_enum(self, enum_type: Type[_E]) -> _E:
        """Return a member of an enum whose values run contiguously from 0."""
        values = [member.value for member in enum_type]
        if not values:
            raise ValueError(f"{enum_type.__name__} has no members")
        return enum_type(self.consume_integral_in_range(0, max(values), 4))

    def pick_value_in_array(self, values: Sequence[_T]) -> _T:
        """Return one element of a non-empty sequence."""
        if not values:
            raise ValueError("cannot pick from an empty sequence")
        return values[self.consume_integral_in_range(0, len(values) - 1, 8)]

    # Floating point.

    def consume_probability(self, size: int = 8) -> float:
        """Return a value in [0.0, 1.0]; 0.0 when no data is left.

        ``size`` 4 gives single precision from 32 bits, 8 double from 64 bits.
        """
        _check_float_size(size)
        if size == 4:
            raw = self.consume_integral(4, signed=False)
            return _to_float32(_to_float32(raw) / _to_float32(0xFFFFFFFF))
        raw = self.consume_integral(8, signed=False)
        return float(raw) / float(_UINT64_MAX)

    def consume_floating_point(self, size: int = 8) -> float:
        """Return a value between the lowest and highest finite value of the type."""
        _check_float_size(size)
        top = _FLOAT32_MAX if size == 4 else sys.float_info.max
        return self.consume_floating_point_in_range(-top, top, size)

    def consume_floating_point_in_range(self, low: float, high: float, size: int = 8) -> float:
        """Return a value in [low, high]; ``low`` when no data is left."""
        _check_float_size(size)
        rnd: Callable[[float], float]
        if size == 4:
            rnd = _to_float32
            top = _FLOAT32_MAX
        else:
            rnd = float
            top = sys.float_info.max
        low, high = rnd(low), rnd(high)
        if low > high:
            raise ValueError(f"low {low} is greater than high {high}")

        result = low
        if high > 0.0 and low < 0.0 and high > rnd(low + top):
            # high - low would overflow: use half of it and a coin flip.
            span = rnd(high / 2.0 - low / 2.0)
            if self.consume_bool():
                result = rnd(result + span)
        else:
            span = rnd(high - low)
        return rnd(result + rnd(span * self.consume_probability(size)))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(remaining={self.remaining_bytes()})"