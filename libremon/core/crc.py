"""CRC-16 used by the sensor FRAM regions.

Reflected CCITT polynomial with a 0xFFFF seed. The register is bit-reversed
at the end and stored little-endian in the first two bytes of each region.
"""

from __future__ import annotations

_POLYNOMIAL = 0x8408
CRC_SEED = 0xFFFF


def _build_table() -> tuple[int, ...]:
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            crc = (crc >> 1) ^ _POLYNOMIAL if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_TABLE = _build_table()


def _reverse16(value: int) -> int:
    result = 0
    for _ in range(16):
        result = (result << 1) | (value & 1)
        value >>= 1
    return result


def crc16(data: bytes, seed: int = CRC_SEED) -> int:
    """Return the CRC as it compares against ``region[0] << 8 | region[1]``."""
    crc = seed
    for byte in data:
        crc = (crc >> 8) ^ _TABLE[(crc ^ byte) & 0xFF]
    reversed_crc = _reverse16(crc)
    return ((reversed_crc & 0xFF) << 8) | (reversed_crc >> 8)


def has_valid_crc16_in_first_two_bytes(region: bytes) -> bool:
    if len(region) < 3:
        return False
    enclosed = (region[0] << 8) | region[1]
    return crc16(region[2:]) == enclosed


def crc16_prefix(protected: bytes) -> bytes:
    """Two leading bytes that make ``prefix + protected`` a valid region."""
    value = crc16(protected)
    return bytes([value >> 8, value & 0xFF])
