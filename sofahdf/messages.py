"""Object header messages describing shape, type, links and fill values."""

from __future__ import annotations

import os

from .model import DataSpace, DataType, LinkInfo
from .reader import (
    InvalidFormatError,
    ReadError,
    Reader,
    UnsupportedFormatError,
)

_MAX_DIMENSION_SIZE = 1000000
_MAX_COMPOUND_NAME_V3 = 0x1000
_MAX_COMPOUND_NAME_V1 = 256
_COMPOUND_V1_SKIP = 3 + 4 + 4 + 4 * 4


def read_nil(reader: Reader, length: int) -> None:
    """Skip a NIL message of ``length`` bytes."""
    reader.seek(length, os.SEEK_CUR)


def _read_sizes(reader: Reader, target: list[int], count: int, limit: int | None) -> None:
    for i in range(count):
        value = reader.read_value(reader.size_of_lengths)
        if limit is not None and value > limit:
            raise InvalidFormatError("dimension_size is too large")
        if i < len(target):
            target[i] = value


def read_dataspace(reader: Reader) -> DataSpace:
    """Read a dataspace message (version 1 or 2)."""
    version = reader.getc()
    ds = DataSpace()
    ds.dimensionality = reader.getc() & 0xFF
    if ds.dimensionality > 4:
        raise InvalidFormatError("dimensionality must be lower than 5")
    ds.flags = reader.getc() & 0xFF

    if version == 1:
        reader.read_value(5)
        _read_sizes(reader, ds.dimension_size, ds.dimensionality, _MAX_DIMENSION_SIZE)
    elif version == 2:
        ds.type = reader.getc() & 0xFF
        _read_sizes(reader, ds.dimension_size, ds.dimensionality, None)
    else:
        raise InvalidFormatError(
            f"dataspace message must have version 1 or 2 but is {version}"
        )

    if ds.flags & 1:
        _read_sizes(reader, ds.dimension_max_size, ds.dimensionality, None)
    if version == 1 and ds.flags & 2:
        raise InvalidFormatError("permutation in OHDR not supported")
    return ds


def read_link_info(reader: Reader) -> LinkInfo:
    """Read a link info message."""
    if reader.getc() != 0:
        raise UnsupportedFormatError("link info message must have version 0")
    li = LinkInfo()
    li.flags = reader.getc() & 0xFF
    if li.flags & 1:
        li.maximum_creation_index = reader.read_value(8)
    li.fractal_heap_address = reader.read_value(reader.size_of_offsets)
    li.address_btree_index = reader.read_value(reader.size_of_offsets)
    if li.flags & 2:
        li.address_btree_order = reader.read_value(reader.size_of_offsets)
    return li


def _check_float(dt: DataType) -> None:
    if dt.bit_offset != 0 or dt.mantissa_location != 0:
        raise UnsupportedFormatError("unsupported float layout")
    if dt.bit_precision == 32:
        expected = (23, 8, 23, 127)
    elif dt.bit_precision == 64:
        expected = (52, 11, 52, 1023)
    else:
        raise UnsupportedFormatError(f"unsupported float precision {dt.bit_precision}")
    actual = (dt.exponent_location, dt.exponent_size, dt.mantissa_size, dt.exponent_bias)
    if actual != expected:
        raise UnsupportedFormatError("unsupported float layout")


def _read_name_v3(reader: Reader) -> str:
    name = bytearray()
    for _ in range(_MAX_COMPOUND_NAME_V3 - 1):
        c = reader.getc()
        if c < 0:
            raise ReadError("truncated compound member name")
        if c == 0:
            break
        name.append(c)
    return name.decode("utf-8", "replace")


def _read_name_v1(reader: Reader) -> str:
    name = bytearray()
    while True:
        if len(name) == _MAX_COMPOUND_NAME_V1:
            raise InvalidFormatError("compound member name too long")
        c = reader.getc()
        if c < 0:
            raise ReadError("truncated compound member name")
        if c == 0:
            break
        name.append(c)
    reader.seek((7 - len(name)) & 7, os.SEEK_CUR)
    return name.decode("utf-8", "replace")


def _read_compound(reader: Reader, dt: DataType) -> None:
    members = dt.class_bit_field & 0xFFFF
    match dt.class_and_version >> 4:
        case 3:
            offset_bytes = (dt.size.bit_length() + 7) // 8
            for _ in range(members):
                _read_name_v3(reader)
                for _ in range(offset_bytes):
                    reader.getc()
                _read_datatype_into(reader, DataType())
        case 1:
            for _ in range(members):
                _read_name_v1(reader)
                reader.read_value(4)  # member offset
                if reader.getc() != 0:
                    raise InvalidFormatError("COMPOUND v1 with dimension not supported")
                reader.seek(_COMPOUND_V1_SKIP, os.SEEK_CUR)
                _read_datatype_into(reader, DataType())
        case version:
            raise InvalidFormatError(
                f"datatype message must have version 1 or 3 not {version}"
            )


def _read_datatype_into(reader: Reader, dt: DataType) -> None:
    dt.class_and_version = reader.getc() & 0xFF
    if dt.class_and_version & 0xF0 not in (0x10, 0x30):
        raise UnsupportedFormatError(
            f"datatype message must have version 1 not {dt.class_and_version >> 4}"
        )
    dt.class_bit_field = reader.read_value(3)
    dt.size = reader.read_value(4)
    if dt.size > 64:
        raise UnsupportedFormatError(f"datatype size {dt.size} too large")

    match dt.class_and_version & 0xF:
        case 0:  # fixed point
            dt.bit_offset = reader.read_value(2)
            dt.bit_precision = reader.read_value(2)
        case 1:  # floating point
            dt.bit_offset = reader.read_value(2)
            dt.bit_precision = reader.read_value(2)
            dt.exponent_location = reader.getc() & 0xFF
            dt.exponent_size = reader.getc() & 0xFF
            dt.mantissa_location = reader.getc() & 0xFF
            dt.mantissa_size = reader.getc() & 0xFF
            dt.exponent_bias = reader.read_value(4)
            _check_float(dt)
        case 3 | 7:  # string, reference
            pass
        case 6:
            _read_compound(reader, dt)
        case 9:  # variable length list of the following type
            dt.list_size = dt.size
            _read_datatype_into(reader, dt)
        case kind:
            raise UnsupportedFormatError(f"datatype message has unknown class {kind}")


def read_datatype(reader: Reader) -> DataType:
    """Read a datatype message, including nested compound and list types."""
    dt = DataType()
    try:
        _read_datatype_into(reader, dt)
    except RecursionError as exc:
        raise InvalidFormatError("datatype nesting too deep") from exc
    return dt


def _read_data_fill_1_or_2(reader: Reader) -> None:
    space_allocation_time = reader.getc()
    fill_value_write_time = reader.getc()
    fill_value_defined = reader.getc()
    if min(space_allocation_time, fill_value_write_time, fill_value_defined) < 0:
        raise ReadError("truncated fill value message")
    if (
        (space_allocation_time & ~1) != 2
        or fill_value_write_time != 2
        or (fill_value_defined & ~1) != 0
    ):
        raise InvalidFormatError(
            f"unsupported fill value message {space_allocation_time} "
            f"{fill_value_write_time} {fill_value_defined}"
        )
    if fill_value_defined > 0:
        size = reader.read_value(4)
        reader.seek(size, os.SEEK_CUR)


def _read_data_fill_3(reader: Reader) -> None:
    flags = reader.getc() & 0xFF
    if flags & (1 << 5):
        size = reader.read_value(4)
        reader.seek(size, os.SEEK_CUR)


def read_data_fill(reader: Reader) -> None:
    """Read and skip a fill value message (versions 1 to 3)."""
    version = reader.getc()
    if version in (1, 2):
        _read_data_fill_1_or_2(reader)
    elif version == 3:
        _read_data_fill_3(reader)
    else:
        raise InvalidFormatError(
            f"fill value message must have version 1, 2 or 3 not {version}"
        )


def read_data_fill_old(reader: Reader) -> None:
    """Read and skip an old-style fill value message."""
    size = reader.read_value(4)
    reader.seek(size, os.SEEK_CUR)