"""Decoding of attribute and dataset values stored inline in object headers."""

from __future__ import annotations

import os
from math import prod

from .gcol import gcol_read
from .model import DataObject, DataSpace, DataType
from .reader import (
    HDFError,
    InternalError,
    ReadError,
    Reader,
    UnsupportedFormatError,
)


def _reference_name(reader: Reader, address: int, reference: int) -> str:
    target = reader.find_object(address)
    if target is not None and target.name is not None:
        return target.name
    return f"REF{reference:08X}"


def read_data_var(reader: Reader, data: DataObject, dt: DataType) -> None:
    """Read one value of type ``dt`` into ``data``.

    Strings replace ``data.string``; references are resolved to object names
    and appended to it, separated by commas. Other types are skipped.
    """
    gcol = 0
    if dt.list_size:
        extra = dt.list_size - dt.size
        if extra == 8:
            reader.read_value(4)
            gcol = reader.read_value(4)
        else:
            gcol = reader.read_value(extra)

    match dt.class_and_version & 0xF:
        case 0 | 6:  # fixed point, compound
            reader.seek(dt.size, os.SEEK_CUR)
        case 3:  # string
            raw = reader.read(dt.size)
            if len(raw) != dt.size:
                raise ReadError("truncated string value")
            data.string = raw.split(b"\0", 1)[0].decode("utf-8", "replace")
        case 7:  # reference
            reader.read_value(4)
            reference = reader.read_value(dt.size - 4)
            try:
                address = gcol_read(reader, gcol, reference)
            except HDFError:
                return
            name = _reference_name(reader, address, reference)
            data.string = f"{data.string},{name}" if data.string else name
        case kind:
            raise InternalError(f"data reader unknown type {kind}")


def read_data(reader: Reader, data: DataObject, dt: DataType, ds: DataSpace) -> None:
    """Read every element described by ``ds`` with :func:`read_data_var`."""
    if ds.dimensionality == 0:
        ds.dimension_size[0] = 1
    dims = max(ds.dimensionality, 1)
    kept = len(ds.dimension_size)
    if dims > kept and all(ds.dimension_size):
        raise UnsupportedFormatError(f"dataspace of {dims} dimensions")
    count = prod(ds.dimension_size[:min(dims, kept)]) if dims <= kept else 0
    for _ in range(count):
        read_data_var(reader, data, dt)