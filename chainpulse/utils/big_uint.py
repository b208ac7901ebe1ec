"""
Arbitrary-precision unsigned integer value type.

Gas and value quantities are stored and transported as canonical decimal
strings ("0", "21000", "115792089237316195423570985008687907853269984665640564039457584007913129639935").
All arithmetic happens on Python ints, never on floats.
"""

from __future__ import annotations

import re
from functools import total_ordering
from typing import Any


_DECIMAL_RE = re.compile(r"^[0-9]+$")


@total_ordering
class BigUInt:
    """
    Immutable unsigned integer with a fixed decimal-string wire encoding.

    Examples:
        >>> str(BigUInt("21000") + BigUInt(79000))
        '100000'
        >>> BigUInt.parse(None)
        BigUInt('0')
    """

    __slots__ = ("_value",)

    def __init__(self, value: int | str | BigUInt = 0) -> None:
        if isinstance(value, BigUInt):
            parsed = value._value
        elif isinstance(value, bool):
            raise TypeError("BigUInt does not accept booleans")
        elif isinstance(value, int):
            parsed = value
        elif isinstance(value, str):
            text = value.strip()
            if not _DECIMAL_RE.match(text):
                raise ValueError(f"Not an unsigned decimal string: {value!r}")
            parsed = int(text)
        else:
            raise TypeError(f"Unsupported BigUInt source: {type(value).__name__}")

        if parsed < 0:
            raise ValueError(f"BigUInt cannot be negative: {parsed}")
        self._value = parsed

    @classmethod
    def parse(cls, value: Any) -> BigUInt:
        """Parse an optional wire value; None and empty strings read as zero."""
        if value is None or value == "":
            return cls(0)
        if isinstance(value, BigUInt):
            return value
        return cls(value)

    @classmethod
    def sum(cls, values: Any) -> BigUInt:
        """Sum an iterable of wire values, skipping None."""
        total = 0
        for value in values:
            if value is None:
                continue
            total += cls.parse(value)._value
        return cls(total)

    def __int__(self) -> int:
        return self._value

    def __str__(self) -> str:
        return str(self._value)

    def __repr__(self) -> str:
        return f"BigUInt('{self._value}')"

    def __hash__(self) -> int:
        return hash(self._value)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BigUInt):
            return self._value == other._value
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == other
        return NotImplemented

    def __lt__(self, other: object) -> bool:
        if isinstance(other, BigUInt):
            return self._value < other._value
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value < other
        return NotImplemented

    def __add__(self, other: object) -> BigUInt:
        if isinstance(other, BigUInt):
            return BigUInt(self._value + other._value)
        if isinstance(other, (int, str)) and not isinstance(other, bool):
            return BigUInt(self._value + BigUInt(other)._value)
        return NotImplemented

    __radd__ = __add__

    def __bool__(self) -> bool:
        return self._value != 0

    def __copy__(self) -> BigUInt:
        return self

    def __deepcopy__(self, memo: dict) -> BigUInt:
        return self


ZERO = BigUInt(0)


def big_add(a: str, b: str) -> str:
    """
    Add two unsigned decimal strings.

    Args:
        a: Non-negative decimal string
        b: Non-negative decimal string

    Returns:
        Decimal string of the exact sum
    """
    return str(BigUInt(a) + BigUInt(b))
