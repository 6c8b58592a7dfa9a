"""Chunked dataset storage addressed by version 1 B-trees."""

from __future__ import annotations

import os
from math import prod

from .gunzip import gunzip
from .model import DataObject, DataSpace
from .reader import (
    InternalError,
    InvalidFormatError,
    Reader,
    UnsupportedFormatError,
)

_MAX_ENTRIES = 0x1000
_MAX_ELEMENTS = 0x100000
_MAX_ELEMENT_SIZE = 0x10


def _element_positions(
    ds: DataSpace, chunk: list[int], start: list[int], elements: int
) -> list[int | None]:
    """Map each element of a chunk to its index in the dataset, or None."""
    sx, sy, sz = ds.dimension_size[:3]
    dy, dz = chunk[1], chunk[2]
    positions: list[int | None] = []
    match ds.dimensionality:
        case 1:
            for x in range(elements):
                px = x + start[0]
                positions.append(px if px < sx else None)
        case 2:
            for x in range(elements):
                py = x % dy + start[1]
                px = x // dy + start[0]
                positions.append(px * sy + py if py < sy and px < sx else None)
        case 3:
            dzy = dz * dy
            szy = sz * sy
            for x in range(elements):
                pz = x % dz + start[2]
                py = (x // dz) % dy + start[1]
                px = x // dzy + start[0]
                inside = pz < sz and py < sy and px < sx
                positions.append(px * szy + py * sz + pz if inside else None)
        case _:
            raise InternalError(f"invalid dimensionality {ds.dimensionality}")
    return positions


def _scatter(
    dataobject: DataObject, output: bytes, start: list[int], elements: int, size: int
) -> None:
    """Copy a byte-shuffled chunk into the dataset buffer."""
    positions = _element_positions(
        dataobject.ds, dataobject.datalayout_chunk, start, elements
    )
    data = dataobject.data
    if data is None:
        return
    limit = len(data)
    for b in range(size):
        plane = output[b * elements:(b + 1) * elements]
        for pos, value in zip(positions, plane):
            if pos is None:
                continue
            j = pos * size + b
            if 0 <= j < limit:
                data[j] = value


def read_tree(reader: Reader, dataobject: DataObject) -> None:
    """Read the chunk B-tree at the current position into ``dataobject.data``."""
    ds = dataobject.ds
    if ds.dimensionality > 3:
        raise InvalidFormatError("TREE dimensions > 3")
    if reader.read(4) != b"TREE":
        raise InvalidFormatError("cannot read signature of TREE")

    node_type = reader.getc() & 0xFF
    reader.getc()  # node level
    entries_used = reader.read_value(2)
    if entries_used > _MAX_ENTRIES:
        raise UnsupportedFormatError("too many TREE entries")
    reader.read_value(reader.size_of_offsets)  # left sibling
    reader.read_value(reader.size_of_offsets)  # right sibling

    chunk = dataobject.datalayout_chunk
    elements = prod(chunk[:ds.dimensionality])
    size = chunk[ds.dimensionality]
    if (
        elements <= 0
        or size <= 0
        or elements >= _MAX_ELEMENTS
        or size > _MAX_ELEMENT_SIZE
    ):
        raise InvalidFormatError(f"invalid chunk of {elements} elements of size {size}")
    total = elements * size

    for _ in range(entries_used * 2):
        if node_type == 0:
            reader.read_value(reader.size_of_lengths)  # key
            continue

        size_of_chunk = reader.read_value(4)
        if reader.read_value(4):
            raise InvalidFormatError("TREE all filters must be enabled")
        start = [reader.read_value(8) for _ in range(ds.dimensionality)]
        if reader.read_value(8):
            break
        child_pointer = reader.read_value(reader.size_of_offsets)

        with reader.restore_position():
            reader.seek(child_pointer)
            compressed = reader.read(size_of_chunk)
            if len(compressed) != size_of_chunk:
                raise InvalidFormatError("truncated chunk")
            output = gunzip(compressed, total)
            if len(output) != total:
                raise InvalidFormatError(
                    f"chunk inflated to {len(output)} bytes instead of {total}"
                )
            _scatter(dataobject, output, start, elements, size)

    reader.seek(4, os.SEEK_CUR)  # checksum