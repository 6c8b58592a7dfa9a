"""Global heap collections and the references stored in them."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .reader import (
    HDFError,
    InvalidFormatError,
    Reader,
    UnsupportedFormatError,
)


@dataclass
class GlobalHeapObject:
    heap_object_index: int
    object_size: int
    address: int
    value: int


def read_gcol(reader: Reader) -> list[GlobalHeapObject]:
    """Read the collection at the current position into ``reader.global_heap``."""
    if reader.read(4) != b"GCOL":
        raise InvalidFormatError("cannot read signature of global heap collection")
    if reader.getc() != 1:
        raise InvalidFormatError("object GCOL must have version 1")
    if reader.read(3).__len__() != 3:
        raise InvalidFormatError("truncated global heap collection")

    address = reader.tell()
    collection_size = reader.read_value(reader.size_of_lengths)
    if collection_size > 0x400000000:
        raise InvalidFormatError("collection_size is too large")
    end = address + collection_size - 8

    found: list[GlobalHeapObject] = []
    while reader.tell() <= end - 8 - reader.size_of_lengths:
        index = reader.read_value(2)
        if index == 0:
            break
        reader.read_value(2)  # reference count
        reader.seek(4, os.SEEK_CUR)
        object_size = reader.read_value(reader.size_of_lengths)
        if object_size > 8:
            raise UnsupportedFormatError(f"global heap object of size {object_size}")
        value = reader.read_value(object_size)
        obj = GlobalHeapObject(index, object_size, address, value)
        reader.global_heap.append(obj)
        found.append(obj)
    return found


def _lookup(reader: Reader, gcol: int, reference: int) -> GlobalHeapObject | None:
    for obj in reversed(reader.global_heap):
        if obj.address == gcol or obj.heap_object_index == reference:
            return obj
    return None


def gcol_read(reader: Reader, gcol: int, reference: int) -> int:
    """Return the value stored for ``reference`` in the collection at ``gcol``.

    The collection is read on first use; the reader position is kept.
    """
    obj = _lookup(reader, gcol, reference)
    if obj is None:
        with reader.restore_position():
            reader.seek(gcol)
            try:
                read_gcol(reader)
            except HDFError:
                pass
        obj = _lookup(reader, gcol, reference)
        if obj is None:
            raise InvalidFormatError(f"unknown gcol {gcol:#x} {reference}")
    return obj.value