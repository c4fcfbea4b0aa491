"""CRC-16 checksum used by the NDS cartridge header (reflected polynomial 0xA001)."""

from __future__ import annotations

__all__ = ["crc16"]

_POLY = 0xA001
_INITIAL = 0xFFFF


def _make_table() -> tuple[int, ...]:
    table = []
    for value in range(256):
        for _ in range(8):
            value = (value >> 1) ^ _POLY if value & 1 else value >> 1
        table.append(value)
    return tuple(table)


_TABLE = _make_table()


def crc16(data: bytes | bytearray | memoryview, crc: int = _INITIAL) -> int:
    """Return the CRC-16 of ``data``, continuing from ``crc`` (0xFFFF by default)."""
    crc &= 0xFFFF
    for byte in bytes(data):
        crc = (crc >> 8) ^ _TABLE[(crc ^ byte) & 0xFF]
    return crc