"""
Assembler Values
================

All arithmetic in the assembler is done on 32-bit signed integers that
wrap around silently, like C ``int32_t`` arithmetic on a two's complement
machine: ``0x7FFFFFFF + 1 == -0x80000000`` and ``0xFFFFFFFF + 1 == 0``.

Values are narrowed only when they are written to the output:

| Size | Accepted range      | Encoding        |
|------|---------------------|-----------------|
| 1    | -128 .. 255         | one byte        |
| 2    | -32768 .. 65535     | little-endian   |
"""

from typing import Optional

from possum_asm.errors import SourceLocation, ValueRangeError


INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1
MASK32 = 0xFFFFFFFF

# Accepted (min, max, name) per emitted size
SIZE_RANGES = {
    1: (-0x80, 0xFF, "byte"),
    2: (-0x8000, 0xFFFF, "word"),
}


def wrap32(value: int) -> int:
    """Wrap an arbitrary integer into the signed 32-bit range."""
    value &= MASK32
    if value & 0x80000000:
        return value - (1 << 32)
    return value


def to_unsigned32(value: int) -> int:
    """Return the 32-bit two's complement bit pattern of a value."""
    return value & MASK32


def encode_value(
    value: int,
    size: int,
    location: Optional[SourceLocation] = None,
) -> bytes:
    """
    Encode a resolved value as ``size`` little-endian bytes.

    Args:
        value: The resolved value
        size: 1 for a byte, 2 for a word
        location: Source location for error reporting

    Returns:
        The encoded bytes

    Raises:
        ValueRangeError: If the value does not fit in the requested size
    """
    low, high, name = SIZE_RANGES[size]
    if not low <= value <= high:
        raise ValueRangeError(
            f"value {value} does not fit in a {name}",
            location,
            hint=f"a {name} holds values from {low} to {high}",
        )
    return (value & ((1 << (8 * size)) - 1)).to_bytes(size, "little")
