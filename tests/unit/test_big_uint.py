"""
Unit tests for the arbitrary-precision gas value type.

Tests cover:
- Decimal-string addition against Python int arithmetic
- Parsing of optional wire values
- Rejection of negative and malformed input
"""

import copy
import random

import pytest

from chainpulse.utils.big_uint import ZERO, BigUInt, big_add


class TestBigAdd:
    """Test decimal-string addition."""

    def test_small_values(self):
        """Test addition of small values."""
        assert big_add("21000", "79000") == "100000"

    def test_zero_identity(self):
        """Test zero is the additive identity."""
        assert big_add("0", "12345") == "12345"
        assert big_add("12345", "0") == "12345"

    def test_beyond_64_bits(self):
        """Test values beyond 64 bits do not overflow or lose precision."""
        max_u64 = str(2**64 - 1)
        assert big_add(max_u64, "1") == str(2**64)

    def test_max_uint256(self):
        """Test addition at the uint256 range."""
        max_u256 = 2**256 - 1
        assert big_add(str(max_u256), str(max_u256)) == str(2 * max_u256)

    def test_matches_int_arithmetic(self):
        """Test random pairs against Python int addition."""
        rng = random.Random(20240115)
        for _ in range(200):
            bits = rng.choice([8, 32, 64, 65, 128, 256])
            a = rng.getrandbits(bits)
            b = rng.getrandbits(bits)
            assert big_add(str(a), str(b)) == str(a + b)


class TestBigUIntParsing:
    """Test parsing of optional wire values."""

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_reads_as_zero(self, value):
        """Test None and empty string parse to zero."""
        assert BigUInt.parse(value) == ZERO

    def test_parse_keeps_instance(self):
        """Test parsing a BigUInt returns it unchanged."""
        value = BigUInt(42)
        assert BigUInt.parse(value) is value

    def test_sum_skips_none(self):
        """Test sum ignores missing values."""
        assert BigUInt.sum(["1", None, 2, BigUInt("3")]) == 6

    @pytest.mark.parametrize("value", ["-1", "1.5", "0x10", "abc"])
    def test_malformed_string_rejected(self, value):
        """Test non-decimal strings are rejected."""
        with pytest.raises(ValueError):
            BigUInt(value)

    def test_negative_int_rejected(self):
        """Test negative ints are rejected."""
        with pytest.raises(ValueError):
            BigUInt(-5)

    def test_bool_rejected(self):
        """Test booleans are not accepted as integers."""
        with pytest.raises(TypeError):
            BigUInt(True)


class TestBigUIntBehaviour:
    """Test value semantics."""

    def test_comparison(self):
        """Test ordering against BigUInt and int."""
        assert BigUInt(1) < BigUInt(2)
        assert BigUInt(3) > 2
        assert BigUInt("7") == 7

    def test_string_encoding(self):
        """Test canonical decimal-string encoding."""
        assert str(BigUInt("0021000")) == "21000"
        assert repr(BigUInt(5)) == "BigUInt('5')"

    def test_truthiness(self):
        """Test zero is falsy."""
        assert not ZERO
        assert BigUInt(1)

    def test_deepcopy_returns_same_instance(self):
        """Test immutable values are shared by copies."""
        value = BigUInt(10**30)
        assert copy.deepcopy(value) is value
