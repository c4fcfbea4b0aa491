# ndsfs

`ndsfs` reads the file system of a Nintendo DS ROM image (`.nds`) and can
write replacement files back into it.

A ROM is shown as a small tree:

- the root holds `arm9.bin`, `arm7.bin` and two directories, `overlay` and `data`;
- `overlay` lists the ARM9 overlays and then the ARM7 overlays, named
  `overlay_0000.bin`, `overlay_0001.bin`, and so on;
- `data` is the game's own file tree, read from its name table (FNT) and its
  allocation table (FAT).

Paths inside the ROM are separated by `/`, and name lookups ignore ASCII case.

When a file is replaced, the new data stays at the file's old offset if there
is room there. Otherwise it goes into the lowest free gap with the right
alignment: 4096 bytes for `arm9.bin`, 512 for `arm7.bin` and 4 for every other
file. The search starts at the beginning of the image for files that lie
before the banner, and at the banner for files that lie after it. The table
that points at the file is then updated: the FAT record for overlays and data
files, the header for `arm9.bin` and `arm7.bin`, in which case the header CRC
is computed again.

When a ROM is opened, its header is checked: the ARM9 offset must be a
multiple of 4096, the ARM7 and banner offsets multiples of 512, and the FNT
and FAT offsets multiples of 4. Images larger than 1 GiB are refused.

## Installation

```
pip install .
```

The package has no dependencies outside the standard library and needs
Python 3.10 or later.

## Command line

The package installs a command called `ndsfs` with two subcommands.

List a directory of the ROM (the root if no path is given). The ROM is opened
read-only:

```
ndsfs ls game.nds data/sound
```

The listing has the columns Name, ID, Offset, Size, Header and Info. A
directory shows `Dir(<id>)` in the ID column. A file shows its file id, its
offset in hexadecimal and its size in bytes. The Header and Info columns are
left empty.

Replace files in the ROM with host files:

```
ndsfs import game.nds new_file.bin other_dir -d data/sound
```

`-d`/`--dir` names the target directory inside the ROM (the root by default).
A host file replaces the ROM file with the same base name. A host directory is
walked in name order, and each sub-directory goes to the ROM directory of the
same name. Failures are printed to standard error and do not stop the other
imports. The exit status is 1 if anything failed.

Run `ndsfs --help` to see all options.

## Library use

```python
from ndsfs.rom import NdsRom, NdsRomError
from ndsfs.cli import format_entry

with NdsRom("game.nds", writable=True) as rom:
    for entry in rom.list_dir("data"):
        print(format_entry(entry))

    directory = rom.resolve("data")
    with open("replacement.bin", "rb") as source:
        rom.import_file(directory, source, "some_file.bin")
```

`NdsRom(path, writable=None)` opens the image read-write if it can and
read-only otherwise. `writable=True` requires read-write access, and
`writable=False` opens read-only. The `can_write` attribute tells which mode
was used.

- `resolve(path)` returns the directory `Entry` at a path.
- `iter_dir(directory)` and `list_dir(path)` give the entries of a directory.
- `find(directory, name)` returns a single entry, or `None`.
- `import_file(directory, source, name)` replaces an existing file and
  returns the updated entry. The source may be bytes, a host path or a binary
  file object; a file object is read from its current position.

Anything that goes wrong raises `NdsRomError`. This covers a damaged header,
a path that does not exist, a ROM with no room left, and a write to a ROM that
was opened read-only.

`ndsfs.cli` also provides helpers used by the command:

- `import_file_path` replaces one file from a host path.
- `import_dir_path` imports a whole host directory and returns its failures
  as `(host path, error)` pairs.
- `parent_path` and `join_path` handle ROM paths.
- `title` returns the application title.

Lower-level pieces can also be used on their own:

- `ndsfs.header.NdsHeader` reads and writes the 512-byte header, checks its
  alignment rules and computes its CRC.
- `ndsfs.crc.crc16` is the CRC-16 that the header uses.
- `ndsfs.partition.PartitionList` keeps track of which byte ranges of the
  image are in use.

## What it does not do

- Files can only be replaced. New files cannot be added, and files and
  directories cannot be deleted or renamed.
- The image never grows. A replacement that does not fit into free space
  inside the image fails.
- There is no command or function that extracts files from the ROM to the
  host.
- There is only the command line; there is no graphical browser.

## Running the tests

```
pip install .[test]
pytest
```