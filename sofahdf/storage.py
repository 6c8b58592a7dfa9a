"""Object header messages about data storage, groups, filters and attributes."""

from __future__ import annotations

import os
from math import prod

from .chunks import read_tree
from .model import AttributeInfo, DataObject, GroupInfo
from .reader import (
    InvalidFormatError,
    ReadError,
    Reader,
    UnsupportedFormatError,
)

_MAX_DATA_SIZE = 0x10000000
_MAX_LAYOUT_DIMENSIONALITY = 5
_MAX_TREE_DIMENSIONALITY = 4
_MAX_FILTERS = 32
_MAX_CLIENT_VALUES = 0x1000
_SUPPORTED_FILTERS = (1, 2)  # deflate, shuffle


def _read_contiguous(reader: Reader, dataobject: DataObject) -> None:
    address = reader.read_value(reader.size_of_offsets)
    size = reader.read_value(reader.size_of_lengths)
    if not reader.valid_address(address):
        return
    with reader.restore_position():
        reader.seek(address)
        dataobject.data = None
        if size > _MAX_DATA_SIZE:
            raise InvalidFormatError(f"contiguous data of {size} bytes is too large")
        payload = reader.read(size)
        if len(payload) != size:
            raise ReadError("truncated contiguous data")
        dataobject.data = bytearray(payload)


def _read_chunked(reader: Reader, dataobject: DataObject) -> None:
    dimensionality = reader.getc() & 0xFF
    if not 1 <= dimensionality <= _MAX_LAYOUT_DIMENSIONALITY:
        raise InvalidFormatError(
            f"data layout 2: invalid dimensionality {dimensionality}"
        )
    address = reader.read_value(reader.size_of_offsets)
    chunk = dataobject.datalayout_chunk
    for i in range(dimensionality):
        chunk[i] = reader.read_value(4)

    ds = dataobject.ds
    size = chunk[dimensionality - 1] * prod(ds.dimension_size[:ds.dimensionality])

    if not reader.valid_address(address) or dimensionality > _MAX_TREE_DIMENSIONALITY:
        return
    with reader.restore_position():
        reader.seek(address)
        if dataobject.data is None:
            if size > _MAX_DATA_SIZE:
                raise InvalidFormatError(f"chunked data of {size} bytes is too large")
            dataobject.data = bytearray(size)
        read_tree(reader, dataobject)


def read_data_layout(reader: Reader, dataobject: DataObject) -> None:
    """Read a data layout message (version 3) and load the data it points to."""
    if reader.getc() != 3:
        raise InvalidFormatError("data layout message must have version 3")
    layout_class = reader.getc()
    match layout_class:
        case 1:
            _read_contiguous(reader, dataobject)
        case 2:
            _read_chunked(reader, dataobject)
        case _:
            raise InvalidFormatError(
                f"data layout message has unknown layout class {layout_class}"
            )


def read_group_info(reader: Reader) -> GroupInfo:
    """Read a group info message."""
    if reader.getc() != 0:
        raise UnsupportedFormatError("group info message must have version 0")
    gi = GroupInfo()
    gi.flags = reader.getc() & 0xFF
    if gi.flags & 1:
        gi.maximum_compact_value = reader.read_value(2)
        gi.minimum_dense_value = reader.read_value(2)
    if gi.flags & 2:
        gi.number_of_entries = reader.read_value(2)
        gi.length_of_entries = reader.read_value(2)
    return gi


def _read_filter_id(reader: Reader) -> int:
    filter_id = reader.read_value(2)
    if filter_id not in _SUPPORTED_FILTERS:
        raise InvalidFormatError(
            f"filter pipeline message contains unsupported filter: {filter_id}"
        )
    return filter_id


def _read_client_values(reader: Reader) -> int:
    count = reader.read_value(2)
    if count > _MAX_CLIENT_VALUES:
        raise UnsupportedFormatError(f"too many filter client values: {count}")
    return count


def _read_filters_v1(reader: Reader, filters: int) -> list[int]:
    if reader.read_value(6) != 0:
        raise InvalidFormatError("reserved values not zero")
    ids = []
    for _ in range(filters):
        ids.append(_read_filter_id(reader))
        name_length = reader.read_value(2)
        reader.read_value(2)  # flags
        count = reader.read_value(2)
        if name_length > 0:
            reader.seek(((name_length - 1) & ~7) + 8, os.SEEK_CUR)
        if count > _MAX_CLIENT_VALUES:
            raise UnsupportedFormatError(f"too many filter client values: {count}")
        for _ in range(count + (count & 1)):
            reader.read_value(4)
    return ids


def _read_filters_v2(reader: Reader, filters: int) -> list[int]:
    ids = []
    for _ in range(filters):
        ids.append(_read_filter_id(reader))
        reader.read_value(2)  # flags
        for _ in range(_read_client_values(reader)):
            reader.read_value(4)
    return ids


def read_filter_pipeline(reader: Reader) -> list[int]:
    """Read a filter pipeline message and return the filter identifiers in order."""
    version = reader.getc()
    filters = reader.getc()
    if version < 0 or filters < 0:
        raise ReadError("truncated filter pipeline message")
    if filters > _MAX_FILTERS:
        raise InvalidFormatError(
            f"filter pipeline message has too many filters: {filters}"
        )
    match version:
        case 1:
            return _read_filters_v1(reader, filters)
        case 2:
            return _read_filters_v2(reader, filters)
        case _:
            raise InvalidFormatError(
                f"filter pipeline message must have version 1 or 2 not {version}"
            )


def read_attribute_info(reader: Reader) -> AttributeInfo:
    """Read an attribute info message."""
    if reader.getc() != 0:
        raise UnsupportedFormatError("attribute info message must have version 0")
    ai = AttributeInfo()
    ai.flags = reader.getc() & 0xFF
    if ai.flags & 1:
        ai.maximum_creation_index = reader.read_value(2)
    ai.fractal_heap_address = reader.read_value(reader.size_of_offsets)
    ai.attribute_name_btree = reader.read_value(reader.size_of_offsets)
    if ai.flags & 2:
        ai.attribute_creation_order_btree = reader.read_value(reader.size_of_offsets)
    return ai