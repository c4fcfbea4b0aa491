"""Command-line front end for browsing and patching NDS ROM file systems."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Sequence

from .rom import Entry, NdsRom, NdsRomError

__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "COLUMNS",
    "format_entry",
    "parent_path",
    "join_path",
    "import_file_path",
    "import_dir_path",
    "title",
    "main",
]

APP_NAME = "ndsfs"
APP_VERSION = "1.0"
COLUMNS = ("Name", "ID", "Offset", "Size", "Header", "Info")


def format_entry(entry: Entry) -> tuple[str, str, str, str, str, str]:
    """Return the listing columns for ``entry``: name, id, offset, size, header, info."""
    if entry.is_dir:
        return (entry.name, f"Dir({entry.dir_id})", "", "", "", "")
    return (
        entry.name,
        str(entry.file_id_in_rom),
        f"{entry.rom_offset:08X}",
        str(entry.size),
        "",
        "",
    )


def parent_path(path: str) -> str:
    """Return ``path`` with its last ``/`` component removed."""
    pos = path.rfind("/")
    return "" if pos == -1 else path[:pos]


def join_path(path: str, name: str) -> str:
    """Append ``name`` to the ROM path ``path``."""
    return f"{path}/{name}"


def import_file_path(
    rom: NdsRom,
    source: str | os.PathLike[str],
    rom_dir: Entry | str,
    name: str | None = None,
) -> Entry:
    """Replace a file in ``rom_dir`` with the host file ``source``.

    The ROM file name defaults to the base name of ``source``.
    """
    if not name:
        name = os.path.basename(os.fspath(source))
        if not name:
            raise NdsRomError(f"cannot derive a file name from {os.fspath(source)!r}")
    return rom.import_file(rom_dir, source, name)


def import_dir_path(
    rom: NdsRom,
    source: str | os.PathLike[str],
    rom_dir: str = "",
) -> list[tuple[str, NdsRomError]]:
    """Import every file below the host directory ``source`` into ``rom_dir``.

    Sub-directories go to the ROM directories of the same name. Failures do
    not stop the import; they are returned as ``(host path, error)`` pairs.
    """
    directory = rom.resolve(rom_dir)
    failures: list[tuple[str, NdsRomError]] = []
    with os.scandir(source) as scan:
        items = sorted(scan, key=lambda item: item.name)
    for item in items:
        try:
            if item.is_dir():
                failures.extend(import_dir_path(rom, item.path, join_path(rom_dir, item.name)))
            else:
                import_file_path(rom, item.path, directory, item.name)
        except NdsRomError as exc:
            failures.append((item.path, exc))
    return failures


def title(writable: bool | None = None) -> str:
    """Return the application title, noting the access mode when one is known."""
    text = f"{APP_NAME} v{APP_VERSION}"
    if writable is None:
        return text
    return text + (" [write mode]" if writable else " [read-only mode]")


def _print_table(rows: list[tuple[str, ...]]) -> None:
    widths = [max(len(row[col]) for row in rows) for col in range(len(COLUMNS))]
    for row in rows:
        print("  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip())


def _cmd_ls(args: argparse.Namespace) -> int:
    with NdsRom(args.rom, writable=False) as rom:
        entries = rom.list_dir(args.path)
        print(title(rom.can_write))
        print(f"/{args.path.strip('/')}")
        _print_table([COLUMNS, *(format_entry(entry) for entry in entries)])
    return 0


def _cmd_import(args: argparse.Namespace) -> int:
    status = 0
    with NdsRom(args.rom, writable=True) as rom:
        print(title(rom.can_write))
        for source in args.sources:
            try:
                if os.path.isdir(source):
                    for failed, exc in import_dir_path(rom, source, args.dir):
                        print(f"{failed}: {exc}", file=sys.stderr)
                        status = 1
                elif os.path.isfile(source):
                    entry = import_file_path(rom, source, rom.resolve(args.dir))
                    print(f"imported {source} -> {entry.name} ({entry.size} bytes at {entry.rom_offset:08X})")
                else:
                    print(f"{source}: no such file or directory", file=sys.stderr)
                    status = 1
            except NdsRomError as exc:
                print(f"{source}: {exc}", file=sys.stderr)
                status = 1
    return status


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; return the exit status."""
    parser = argparse.ArgumentParser(prog=APP_NAME, description="Browse and patch NDS ROM file systems.")
    commands = parser.add_subparsers(dest="command", required=True)

    ls = commands.add_parser("ls", help="list a directory of the ROM")
    ls.add_argument("rom", help="ROM image")
    ls.add_argument("path", nargs="?", default="", help="directory inside the ROM")
    ls.set_defaults(handler=_cmd_ls)

    imp = commands.add_parser("import", help="replace ROM files with host files")
    imp.add_argument("rom", help="ROM image")
    imp.add_argument("sources", nargs="+", help="host files or directories")
    imp.add_argument("-d", "--dir", default="", help="target directory inside the ROM")
    imp.set_defaults(handler=_cmd_import)

    args = parser.parse_args(argv)
    try:
        return args.handler(args)
    except NdsRomError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())