"""The HDF5 superblock and the entry points for loading a file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .dataobject import read_dataobject
from .model import DataObject
from .reader import (
    InvalidFormatError,
    ReadError,
    Reader,
    UnsupportedFormatError,
)

SIGNATURE = b"\x89HDF\r\n\x1a\n"


@dataclass
class Superblock:
    """The superblock fields and the root group object read from it."""

    version: int = 0
    size_of_offsets: int = 0
    size_of_lengths: int = 0
    base_address: int = 0
    superblock_extension_address: int = 0
    end_of_file_address: int = 0
    root_group_object_header_address: int = 0
    dataobject: DataObject = field(default_factory=DataObject)


def _check_sizes(reader: Reader, superblock: Superblock) -> None:
    offsets, lengths = superblock.size_of_offsets, superblock.size_of_lengths
    if not (2 <= offsets <= 8 and 2 <= lengths <= 8):
        raise UnsupportedFormatError(
            f"size of offsets and length is invalid: {offsets} {lengths}"
        )
    reader.size_of_offsets = offsets
    reader.size_of_lengths = lengths


def _read_root(reader: Reader, superblock: Superblock) -> None:
    address = superblock.root_group_object_header_address
    try:
        reader.seek(address)
    except ReadError as exc:
        raise ReadError(f"cannot seek to first object at {address:#x}") from exc
    superblock.dataobject = read_dataobject(reader, None)


def _read_version_2_or_3(reader: Reader, superblock: Superblock) -> None:
    superblock.size_of_offsets = reader.getc() & 0xFF
    superblock.size_of_lengths = reader.getc() & 0xFF
    if reader.getc() < 0:  # file consistency flags
        raise ReadError("truncated superblock")
    _check_sizes(reader, superblock)

    offsets = superblock.size_of_offsets
    superblock.base_address = reader.read_value(offsets)
    superblock.superblock_extension_address = reader.read_value(offsets)
    superblock.end_of_file_address = reader.read_value(offsets)
    superblock.root_group_object_header_address = reader.read_value(offsets)

    if superblock.base_address != 0:
        raise UnsupportedFormatError("base address is not null")
    if superblock.end_of_file_address != reader.seek(0, os.SEEK_END):
        raise InvalidFormatError("file size mismatch")
    _read_root(reader, superblock)


def _read_version_0_or_1(reader: Reader, superblock: Superblock) -> None:
    # free space, root group symbol table, reserved, shared header versions
    for _ in range(4):
        if reader.getc() != 0:
            raise InvalidFormatError("unsupported superblock component version")
    superblock.size_of_offsets = reader.getc() & 0xFF
    superblock.size_of_lengths = reader.getc() & 0xFF
    if reader.getc() != 0:
        raise InvalidFormatError("reserved superblock byte is not zero")
    _check_sizes(reader, superblock)

    reader.read_value(2)  # group leaf node K
    reader.read_value(2)  # group internal node K
    if reader.read_value(4) != 0:
        raise UnsupportedFormatError("File Consistency Flags are not zero")
    if superblock.version == 1:
        reader.read_value(2)  # indexed storage internal node K
        reader.read_value(2)  # reserved

    offsets = superblock.size_of_offsets
    superblock.base_address = reader.read_value(offsets)
    if superblock.base_address != 0:
        raise UnsupportedFormatError("base address is not null")
    reader.read_value(offsets)  # free space info address
    superblock.end_of_file_address = reader.read_value(offsets)
    reader.read_value(offsets)  # driver information block address
    reader.read_value(offsets)  # link name offset
    superblock.root_group_object_header_address = reader.read_value(offsets)

    cache_type = reader.read_value(4)
    if cache_type not in (0, 1, 2):
        raise UnsupportedFormatError(f"cache type must be 0, 1 or 2 not {cache_type}")

    # older writers leave a mismatching end of file address; it is tolerated
    reader.seek(0, os.SEEK_END)
    _read_root(reader, superblock)


def read_superblock(reader: Reader) -> Superblock:
    """Read the superblock at the start of the data and the root group object."""
    reader.seek(0)
    if reader.read(8) != SIGNATURE:
        raise InvalidFormatError("file does not have correct signature")

    superblock = Superblock(version=reader.getc())
    match superblock.version:
        case 0 | 1:
            _read_version_0_or_1(reader, superblock)
        case 2 | 3:
            _read_version_2_or_3(reader, superblock)
        case version:
            raise InvalidFormatError(
                f"superblock must have version 0, 1, 2 or 3 but has {version}"
            )
    return superblock


def load(path: str | os.PathLike[str]) -> Superblock:
    """Parse the HDF5 file at ``path``."""
    return read_superblock(Reader.from_path(path))


def load_bytes(data: bytes | bytearray | memoryview) -> Superblock:
    """Parse an HDF5 file held in memory."""
    return read_superblock(Reader(data))