"""The 512-byte NDS cartridge header."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from .crc import crc16

__all__ = ["NdsHeader", "HEADER_SIZE", "CRC_SPAN"]

HEADER_SIZE = 512
CRC_SPAN = 0x15E

_U32_FIELDS = {
    "arm9_rom_offset": 0x20,
    "arm9_entry_address": 0x24,
    "arm9_ram_address": 0x28,
    "arm9_size": 0x2C,
    "arm7_rom_offset": 0x30,
    "arm7_entry_address": 0x34,
    "arm7_ram_address": 0x38,
    "arm7_size": 0x3C,
    "fnt_offset": 0x40,
    "fnt_size": 0x44,
    "fat_offset": 0x48,
    "fat_size": 0x4C,
    "arm9_overlay_offset": 0x50,
    "arm9_overlay_size": 0x54,
    "arm7_overlay_offset": 0x58,
    "arm7_overlay_size": 0x5C,
    "banner_offset": 0x68,
}
_HEADER_CRC_OFFSET = 0x15E

_ALIGNMENT_RULES = (
    ("arm9_rom_offset", 4096),
    ("arm7_rom_offset", 512),
    ("banner_offset", 512),
    ("fnt_offset", 4),
    ("fat_offset", 4),
)


@dataclass
class NdsHeader:
    """Decoded header fields; bytes not modelled here are kept in ``raw``."""

    arm9_rom_offset: int = 0
    arm9_entry_address: int = 0
    arm9_ram_address: int = 0
    arm9_size: int = 0
    arm7_rom_offset: int = 0
    arm7_entry_address: int = 0
    arm7_ram_address: int = 0
    arm7_size: int = 0
    fnt_offset: int = 0
    fnt_size: int = 0
    fat_offset: int = 0
    fat_size: int = 0
    arm9_overlay_offset: int = 0
    arm9_overlay_size: int = 0
    arm7_overlay_offset: int = 0
    arm7_overlay_size: int = 0
    banner_offset: int = 0
    header_crc: int = 0
    raw: bytes = field(default=bytes(HEADER_SIZE), repr=False)

    @classmethod
    def from_bytes(cls, data: bytes | bytearray | memoryview) -> NdsHeader:
        """Decode the first 512 bytes of ``data``."""
        raw = bytes(data[:HEADER_SIZE])
        if len(raw) < HEADER_SIZE:
            raise ValueError(
                f"header needs {HEADER_SIZE} bytes, got {len(raw)}; is this an NDS ROM?"
            )
        values = {name: struct.unpack_from("<I", raw, offset)[0] for name, offset in _U32_FIELDS.items()}
        (header_crc,) = struct.unpack_from("<H", raw, _HEADER_CRC_OFFSET)
        return cls(**values, header_crc=header_crc, raw=raw)

    def to_bytes(self) -> bytes:
        """Encode the header back into 512 bytes."""
        buffer = bytearray(self.raw)
        for name, offset in _U32_FIELDS.items():
            struct.pack_into("<I", buffer, offset, getattr(self, name) & 0xFFFFFFFF)
        struct.pack_into("<H", buffer, _HEADER_CRC_OFFSET, self.header_crc & 0xFFFF)
        return bytes(buffer)

    def compute_crc(self) -> int:
        """Return the CRC-16 over the header's first 0x15E bytes."""
        return crc16(self.to_bytes()[:CRC_SPAN])

    def validate(self) -> None:
        """Raise ValueError if a section offset breaks its required alignment."""
        for name, alignment in _ALIGNMENT_RULES:
            value = getattr(self, name)
            if value % alignment:
                raise ValueError(
                    f"ROM check failed: {name} % {alignment} != 0 ({name} = {value:08X})"
                )