"""Browsing and patching the file system of an NDS ROM image."""

from __future__ import annotations

import enum
import io
import os
import struct
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import BinaryIO, Union

from .header import HEADER_SIZE, NdsHeader
from .partition import PartitionList

__all__ = [
    "NdsRomError",
    "DirKind",
    "Entry",
    "NdsRom",
    "split_path",
    "ROOT",
    "MAX_ROM_SIZE",
]

MAX_ROM_SIZE = 1024 * 1024 * 1024
RESERVED_HEAD = 0x4000
BANNER_SIZE = 0x840
COPY_CHUNK = 1024 * 1024

_OVERLAY = struct.Struct("<8I")
_OVERLAY_FILE_ID = 6
_FILE_REC = struct.Struct("<2I")
_DIR_REC = struct.Struct("<IHH")
_DIR_ID = struct.Struct("<H")


class NdsRomError(Exception):
    """Raised when a ROM cannot be opened, read or patched."""


class DirKind(enum.Enum):
    """The three kinds of directory the ROM tree is made of."""

    ROOT = "root"
    OVERLAY = "overlay"
    DATA = "data"


@dataclass(frozen=True)
class Entry:
    """A file or directory found in the ROM.

    ``fat_position`` is the absolute position of the file's FAT record,
    or None for the ARM binaries, which are described by the header.
    """

    name: str
    is_dir: bool
    kind: DirKind | None = None
    dir_id: int = 0
    file_id_in_rom: int = 0
    file_id_in_dir: int = 0
    rom_offset: int = 0
    size: int = 0
    fat_position: int | None = None
    fnt_offset: int = 0


ROOT = Entry(name="", is_dir=True, kind=DirKind.ROOT)

Source = Union[bytes, bytearray, memoryview, str, "os.PathLike[str]", BinaryIO]


def split_path(path: str) -> list[str]:
    """Split a ``/``-separated ROM path into its non-empty components."""
    return [part for part in path.split("/") if part]


def _fold(name: str) -> bytes | None:
    try:
        return name.encode("latin-1").lower()
    except UnicodeEncodeError:
        return None


@contextmanager
def _open_source(source: Source) -> Iterator[BinaryIO]:
    if isinstance(source, (bytes, bytearray, memoryview)):
        yield io.BytesIO(bytes(source))
    elif isinstance(source, (str, os.PathLike)):
        try:
            stream = open(source, "rb")
        except OSError as exc:
            raise NdsRomError(f"failed to open {os.fspath(source)!r}") from exc
        with stream:
            yield stream
    else:
        yield source


class NdsRom:
    """An opened NDS ROM image.

    ``writable`` may be True (read-write required), False (read-only) or
    None (read-write if possible, otherwise read-only).
    """

    def __init__(self, path: str | os.PathLike[str], writable: bool | None = None) -> None:
        self.path = os.fspath(path)
        self.header = NdsHeader()
        self.rom_size = 0
        self.partitions: PartitionList | None = None
        self.can_write = False
        self._fh: BinaryIO | None = None
        self._open(writable)
        try:
            self._load()
        except BaseException:
            self.close()
            raise

    def _open(self, writable: bool | None) -> None:
        if writable is None:
            modes = ("r+b", "rb")
        elif writable:
            modes = ("r+b",)
        else:
            modes = ("rb",)
        last_error: OSError | None = None
        for mode in modes:
            try:
                self._fh = open(self.path, mode)
            except OSError as exc:
                last_error = exc
                continue
            self.can_write = mode == "r+b"
            return
        raise NdsRomError(f"failed to open file {self.path!r}") from last_error

    def _load(self) -> None:
        assert self._fh is not None
        data = self._fh.read(HEADER_SIZE)
        if len(data) != HEADER_SIZE:
            raise NdsRomError("failed to read the header; is this an NDS ROM?")
        size = os.fstat(self._fh.fileno()).st_size
        if size > MAX_ROM_SIZE:
            raise NdsRomError("the ROM file is larger than 1 GiB")
        self.header = NdsHeader.from_bytes(data)
        try:
            self.header.validate()
        except ValueError as exc:
            raise NdsRomError(str(exc)) from exc
        self.rom_size = size

        parts = PartitionList(size)
        reservations = (
            (0, RESERVED_HEAD, "header area"),
            (self.header.fnt_offset, self.header.fnt_size, "FNT"),
            (self.header.fat_offset, self.header.fat_size, "FAT"),
            (self.header.banner_offset, BANNER_SIZE, "banner"),
        )
        for pos, length, what in reservations:
            if not parts.alloc_pos(pos, length):
                raise NdsRomError(f"not enough ROM space for the {what}")
        self.partitions = parts
        self._reserve_files(ROOT)

    def _reserve_files(self, directory: Entry) -> None:
        assert self.partitions is not None
        for entry in self.iter_dir(directory):
            if entry.is_dir:
                self._reserve_files(entry)
            elif entry.size and not self.partitions.alloc_pos(entry.rom_offset, entry.size):
                raise NdsRomError(
                    f"not enough ROM space for {entry.name!r} at {entry.rom_offset:08X}; "
                    "is the ROM damaged?"
                )

    @property
    def is_open(self) -> bool:
        return self._fh is not None

    def close(self) -> None:
        """Close the image; further access raises NdsRomError."""
        if self._fh is not None:
            self._fh.close()
            self._fh = None
        self.rom_size = 0
        self.partitions = None

    def __enter__(self) -> NdsRom:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -- low-level access -------------------------------------------------

    def _require_open(self) -> BinaryIO:
        if self._fh is None:
            raise NdsRomError("no ROM is open")
        return self._fh

    def _read_at(self, pos: int, size: int, what: str) -> bytes:
        fh = self._require_open()
        fh.seek(pos)
        data = fh.read(size)
        if len(data) != size:
            raise NdsRomError(f"failed to read {what} at {pos:08X}")
        return data

    def _write_at(self, pos: int, data: bytes, what: str) -> None:
        fh = self._require_open()
        fh.seek(pos)
        if fh.write(data) != len(data):
            raise NdsRomError(f"failed to write {what} at {pos:08X}")

    def _read_file_rec(self, pos: int) -> tuple[int, int]:
        top, bottom = _FILE_REC.unpack(self._read_at(pos, _FILE_REC.size, "FAT record"))
        if top % 4:
            raise NdsRomError(f"file check failed: top % 4 != 0 (top = {top:08X})")
        if bottom < top:
            raise NdsRomError(
                f"file check failed: bottom < top (top = {top:08X}, bottom = {bottom:08X})"
            )
        return top, bottom

    # -- directory records -------------------------------------------------

    def _root_entry(self, index: int) -> Entry | None:
        h = self.header
        if index == 0:
            return Entry("arm9.bin", False, rom_offset=h.arm9_rom_offset, size=h.arm9_size)
        if index == 1:
            return Entry(
                "arm7.bin", False, file_id_in_dir=1, rom_offset=h.arm7_rom_offset, size=h.arm7_size
            )
        if index == 2:
            return Entry("overlay", True, kind=DirKind.OVERLAY)
        if index == 3:
            return Entry("data", True, kind=DirKind.DATA)
        return None

    def _overlay_location(self, index: int) -> int | None:
        count9 = self.header.arm9_overlay_size // _OVERLAY.size
        if index >= count9:
            index -= count9
            count7 = self.header.arm7_overlay_size // _OVERLAY.size
            if index >= count7:
                return None
            base = self.header.arm7_overlay_offset
        else:
            base = self.header.arm9_overlay_offset
        return base + index * _OVERLAY.size

    def _overlay_fat_position(self, table_pos: int) -> tuple[int, int]:
        fields = _OVERLAY.unpack(self._read_at(table_pos, _OVERLAY.size, "overlay entry"))
        file_id = fields[_OVERLAY_FILE_ID]
        return file_id, self.header.fat_offset + file_id * _FILE_REC.size

    def _overlay_entry(self, index: int) -> Entry | None:
        table_pos = self._overlay_location(index)
        if table_pos is None:
            return None
        file_id, fat_pos = self._overlay_fat_position(table_pos)
        top, bottom = self._read_file_rec(fat_pos)
        return Entry(
            name=f"overlay_{index:04d}.bin",
            is_dir=False,
            file_id_in_rom=file_id,
            file_id_in_dir=index & 0xFFFF,
            rom_offset=top,
            size=bottom - top,
            fat_position=fat_pos,
        )

    def _data_entry(self, dir_id: int, file_id: int, offset: int) -> tuple[Entry | None, int]:
        fnt = self.header.fnt_offset
        entry_start, top_file_id, _ = _DIR_REC.unpack(
            self._read_at(fnt + dir_id * _DIR_REC.size, _DIR_REC.size, "directory record")
        )
        pos = fnt + entry_start + offset
        info = self._read_at(pos, 1, "FNT entry")[0]
        if info == 0:
            return None, offset
        is_dir = bool(info & 0x80)
        length = info & 0x7F
        name = self._read_at(pos + 1, length, "FNT entry name").decode("latin-1")
        next_offset = offset + length + 1
        if is_dir:
            (sub_id,) = _DIR_ID.unpack(self._read_at(pos + 1 + length, _DIR_ID.size, "directory id"))
            entry = Entry(name, True, kind=DirKind.DATA, dir_id=sub_id & 0xFFF, fnt_offset=offset)
            return entry, next_offset + _DIR_ID.size
        in_rom = (file_id + top_file_id) & 0xFFFF
        fat_pos = self.header.fat_offset + in_rom * _FILE_REC.size
        top, bottom = self._read_file_rec(fat_pos)
        entry = Entry(
            name=name,
            is_dir=False,
            file_id_in_rom=in_rom,
            file_id_in_dir=file_id,
            rom_offset=top,
            size=bottom - top,
            fat_position=fat_pos,
            fnt_offset=offset,
        )
        return entry, next_offset

    def _next(self, directory: Entry, offset: int, file_id: int) -> tuple[Entry | None, int]:
        if directory.kind is DirKind.ROOT:
            return self._root_entry(offset), offset + 1
        if directory.kind is DirKind.OVERLAY:
            return self._overlay_entry(offset), offset + 1
        if directory.kind is DirKind.DATA:
            return self._data_entry(directory.dir_id, file_id, offset)
        raise NdsRomError(f"unknown directory kind {directory.kind!r}")

    def _as_directory(self, directory: Entry | str) -> Entry:
        if isinstance(directory, str):
            return self.resolve(directory)
        if not directory.is_dir:
            raise NdsRomError(f"{directory.name!r} is a file, not a directory")
        return directory

    # -- public browsing ---------------------------------------------------

    def iter_dir(self, directory: Entry | str) -> Iterator[Entry]:
        """Yield the entries of ``directory`` in on-disk order."""
        self._require_open()
        directory = self._as_directory(directory)
        offset = 0
        file_id = 0
        while True:
            entry, offset = self._next(directory, offset, file_id)
            if entry is None:
                return
            yield entry
            if not entry.is_dir:
                file_id += 1

    def list_dir(self, path: str = "") -> list[Entry]:
        """Return the entries of the directory at ``path``."""
        return list(self.iter_dir(self.resolve(path)))

    def find(self, directory: Entry | str, name: str) -> Entry | None:
        """Return the entry of ``directory`` named ``name`` (ASCII case-insensitive), or None."""
        self._require_open()
        target = _fold(name)
        if target is None:
            return None
        for entry in self.iter_dir(directory):
            if _fold(entry.name) == target:
                return entry
        return None

    def resolve(self, path: str) -> Entry:
        """Return the directory entry at ``path``; raise NdsRomError if there is none."""
        self._require_open()
        current = ROOT
        for part in split_path(path):
            entry = self.find(current, part)
            if entry is None:
                raise NdsRomError(f"no entry {part!r} in path {path!r}")
            if not entry.is_dir:
                raise NdsRomError(f"path {path!r} passes through the file {part!r}")
            current = entry
        return current

    # -- patching ----------------------------------------------------------

    def _reallocate(self, new_size: int, align: int, old_pos: int, old_size: int) -> int:
        parts = self.partitions
        assert parts is not None
        if not parts.free(old_pos):
            raise NdsRomError(f"internal error: no allocated block at {old_pos:08X}")
        if parts.alloc_pos(old_pos, new_size):
            return old_pos
        start = 0 if old_pos < self.header.banner_offset else self.header.banner_offset
        new_pos = parts.alloc(new_size, align, start)
        if new_pos is None:
            parts.alloc_pos(old_pos, old_size)
            raise NdsRomError("not enough free space in the ROM")
        return new_pos

    def _write_file_rec(self, fat_pos: int, entry: Entry) -> None:
        bottom = entry.rom_offset + entry.size
        if bottom > 0xFFFFFFFF:
            raise NdsRomError("file end lies beyond 0xFFFFFFFF")
        top_old, bottom_old = _FILE_REC.unpack(self._read_at(fat_pos, _FILE_REC.size, "FAT record"))
        if (top_old, bottom_old) != (entry.rom_offset, bottom):
            self._write_at(fat_pos, _FILE_REC.pack(entry.rom_offset, bottom), "FAT record")

    def _update_record(self, directory: Entry, entry: Entry) -> None:
        if directory.kind is DirKind.ROOT:
            if entry.file_id_in_dir == 0:
                offset_field, size_field = "arm9_rom_offset", "arm9_size"
            elif entry.file_id_in_dir == 1:
                offset_field, size_field = "arm7_rom_offset", "arm7_size"
            else:
                raise NdsRomError("only arm9.bin and arm7.bin can be replaced in the root")
            h = self.header
            if (getattr(h, offset_field), getattr(h, size_field)) != (entry.rom_offset, entry.size):
                setattr(h, offset_field, entry.rom_offset)
                setattr(h, size_field, entry.size)
                h.header_crc = h.compute_crc()
                self._write_at(0, h.to_bytes(), "header")
        elif directory.kind is DirKind.OVERLAY:
            table_pos = self._overlay_location(entry.file_id_in_dir)
            if table_pos is None:
                raise NdsRomError(f"overlay {entry.file_id_in_dir} does not exist")
            _, fat_pos = self._overlay_fat_position(table_pos)
            self._write_file_rec(fat_pos, entry)
        elif directory.kind is DirKind.DATA:
            if entry.fat_position is None:
                raise NdsRomError(f"{entry.name!r} has no FAT record")
            self._write_file_rec(entry.fat_position, entry)
        else:
            raise NdsRomError(f"unknown directory kind {directory.kind!r}")

    def import_file(self, directory: Entry | str, source: Source, name: str) -> Entry:
        """Replace the contents of the existing file ``name`` in ``directory``.

        ``source`` is bytes, a path or a binary file object read from its
        current position. Returns the updated entry.
        """
        fh = self._require_open()
        if not self.can_write:
            raise NdsRomError("the ROM is opened read-only")
        directory = self._as_directory(directory)
        target = self.find(directory, name)
        if target is None:
            raise NdsRomError(f"adding new files is not supported: {name!r}")
        if target.is_dir:
            raise NdsRomError(f"a directory named {name!r} already exists")

        with _open_source(source) as stream:
            start = stream.tell()
            end = stream.seek(0, io.SEEK_END)
            stream.seek(start)
            size = end - start
            if size > MAX_ROM_SIZE:
                raise NdsRomError("files larger than 1 GiB cannot be imported")

            if directory.kind is DirKind.ROOT:
                align = 4096 if target.file_id_in_dir == 0 else 512
            else:
                align = 4
            new_pos = self._reallocate(size, align, target.rom_offset, target.size)

            fh.seek(new_pos)
            remaining = size
            while remaining:
                chunk = stream.read(min(remaining, COPY_CHUNK))
                if not chunk:
                    raise NdsRomError("failed to read the source file")
                if fh.write(chunk) != len(chunk):
                    raise NdsRomError("failed to write data into the ROM")
                remaining -= len(chunk)

        updated = replace(target, rom_offset=new_pos, size=size)
        self._update_record(directory, updated)
        fh.flush()
        return updated