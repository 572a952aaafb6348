"""Bit-level readers for the fixed-layout payloads."""

from __future__ import annotations

from libremon.core.errors import MalformedPayloadError


def _check_range(buffer: bytes, start_bit: int, bit_count: int) -> None:
    if start_bit < 0 or bit_count <= 0:
        raise MalformedPayloadError(
            f"Invalid bit range: start={start_bit}, count={bit_count}"
        )
    if start_bit + bit_count > len(buffer) * 8:
        raise MalformedPayloadError(
            f"Bit range {start_bit}..{start_bit + bit_count} exceeds buffer of {len(buffer)} bytes"
        )


def bits_to_int(buffer: bytes, byte_offset: int, bit_offset: int, bit_count: int) -> int:
    """Extract ``bit_count`` bits starting ``bit_offset`` bits into ``buffer[byte_offset]``.

    Bits are packed low bits first, so a field spanning two bytes takes the
    whole low byte and the masked remainder of the next one.
    """
    if byte_offset < 0 or bit_offset < 0:
        raise MalformedPayloadError(
            f"Invalid offsets: byte_offset={byte_offset}, bit_offset={bit_offset}"
        )
    start = byte_offset * 8 + bit_offset
    _check_range(buffer, start, bit_count)
    first = start // 8
    last = (start + bit_count - 1) // 8
    window = int.from_bytes(buffer[first : last + 1], "little")
    return (window >> (start - first * 8)) & ((1 << bit_count) - 1)


def masked_big_endian(buffer: bytes, byte_offset: int, high_mask: int) -> int:
    """Read ``(buffer[i] & high_mask) << 8 | buffer[i + 1]``."""
    _check_range(buffer, byte_offset * 8, 16)
    return ((buffer[byte_offset] & high_mask) << 8) | buffer[byte_offset + 1]


def read_u16_le(buffer: bytes, byte_offset: int) -> int:
    return bits_to_int(buffer, byte_offset, 0, 16)


def read_u16_be(buffer: bytes, byte_offset: int) -> int:
    return masked_big_endian(buffer, byte_offset, 0xFF)


def read_i16_le(buffer: bytes, byte_offset: int) -> int:
    value = read_u16_le(buffer, byte_offset)
    return value - 0x10000 if value & 0x8000 else value


def hex_string(data: bytes, separator: str = "") -> str:
    return separator.join(f"{b:02X}" for b in data)
