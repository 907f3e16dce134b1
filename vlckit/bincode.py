"""Compact binary encoding of integers and integer maps.

Integers use a variable-length form: values below 251 take one byte;
larger values take a marker byte (251, 252, 253 or 254) followed by a
little-endian integer of 2, 4, 8 or 16 bytes.
"""

from __future__ import annotations

from collections.abc import Mapping

_U16_MAX = 0xFFFF
_U32_MAX = 0xFFFF_FFFF
_U64_MAX = 2**64 - 1
_U128_MAX = 2**128 - 1


def encode_varint(value: int) -> bytes:
    """Encode an unsigned integer of up to 128 bits."""
    if value < 0 or value > _U128_MAX:
        raise ValueError(f"value out of range for unsigned 128-bit integer: {value}")
    if value < 251:
        return bytes([value])
    if value <= _U16_MAX:
        return b"\xfb" + value.to_bytes(2, "little")
    if value <= _U32_MAX:
        return b"\xfc" + value.to_bytes(4, "little")
    if value <= _U64_MAX:
        return b"\xfd" + value.to_bytes(8, "little")
    return b"\xfe" + value.to_bytes(16, "little")


def _encode_u64(value: int) -> bytes:
    if value < 0 or value > _U64_MAX:
        raise ValueError(f"value out of range for unsigned 64-bit integer: {value}")
    return encode_varint(value)


def encode_u64_map(mapping: Mapping[int, int]) -> bytes:
    """Encode a map of unsigned 64-bit integers, entries in key order."""
    parts = [_encode_u64(len(mapping))]
    for key, value in sorted(mapping.items()):
        parts.append(_encode_u64(key))
        parts.append(_encode_u64(value))
    return b"".join(parts)