"""
Column types shared by analytics models.
"""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator

from chainpulse.utils.big_uint import BigUInt


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class BigUIntType(TypeDecorator):
    """
    Arbitrary-precision unsigned integer stored as its canonical decimal string.

    uint256 does not fit NUMERIC on every backend, and sums are done in
    Python on BigUInt, so the column only needs exact round-tripping.
    """

    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str | None:
        if value is None:
            return None
        return str(BigUInt.parse(value))

    def process_result_value(self, value: Any, dialect: Any) -> BigUInt | None:
        if value is None:
            return None
        return BigUInt(value)
