"""Fractal heaps holding the attributes and links of an object header."""

from __future__ import annotations

import math
import os
from typing import Callable

from .model import Attribute, DataObject, FractalHeap
from .reader import (
    InvalidFormatError,
    ReadError,
    Reader,
    UnsupportedFormatError,
)

ReadChild = Callable[[Reader, str], DataObject]

_MAX_NAME_LENGTH = 0x100
_MAX_VALUE_LENGTH = 0x1000
_MAX_OFFSET = 0x10000000
_MAX_ENCODED_LENGTH = 0x8000
_MAX_RECURSION = 20

_TYPE3_MAGIC = 0x0000040008
_TYPE3_MARKER = 0x00000013
_VALUE_ABSENT = 0x000000020200
_VALUE_PRESENT = 0x000000020000
_VALUE_EMPTY = 0x20000020000

_LINK_OBJECT = 0x00000000
_ATTRIBUTE_KINDS = (0x00080008, 0x00040008)
_ATTRIBUTE_WITH_VALUE = 0x00000001
_ATTRIBUTE_WITHOUT_VALUE = 0x02000002


def _text(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", "replace")


def _byte_count(value: int) -> int:
    """Number of bytes needed for values of ``log2(value)`` bits."""
    if value <= 0:
        raise InvalidFormatError(f"invalid fractal heap size {value}")
    return math.ceil(math.log2(value) / 8)


def _log2i(value: int) -> int:
    if value <= 0:
        raise InvalidFormatError(f"invalid fractal heap block size {value}")
    return math.floor(math.log2(value) + 0.5)


def _read_exact(reader: Reader, n: int, what: str) -> bytes:
    raw = reader.read(n)
    if len(raw) != n:
        raise ReadError(f"truncated {what}")
    return raw


def _read_type3(reader: Reader, dataobject: DataObject, length: int) -> bool:
    """Read a name/value pair; return False when the entry is not understood."""
    if reader.read_value(5) != _TYPE3_MAGIC:
        raise UnsupportedFormatError("FHDB type 3 unsupported values")
    name = _text(_read_exact(reader, length, "attribute name"))
    if reader.read_value(4) != _TYPE3_MARKER:
        raise UnsupportedFormatError("FHDB type 3 unsupported values")
    value_length = reader.read_value(2)
    if value_length > _MAX_VALUE_LENGTH:
        raise UnsupportedFormatError("FHDB type 3 value too long")

    kind = reader.read_value(6)
    if kind == _VALUE_ABSENT:
        value: str | None = None
    elif kind == _VALUE_PRESENT:
        value = _text(_read_exact(reader, value_length, "attribute value"))
    elif kind == _VALUE_EMPTY:
        value = ""
    else:
        return False
    dataobject.attributes.insert(0, Attribute(name, value))
    return True


def _read_link(
    reader: Reader, dataobject: DataObject, read_child: ReadChild
) -> None:
    if reader.read_value(2) != 0:
        raise InvalidFormatError("FHDB type 1 link with unknown field")
    name_length = reader.getc()
    if name_length < 0:
        raise ReadError("truncated link name")
    if name_length > _MAX_NAME_LENGTH:
        raise InvalidFormatError("link name too long")
    name = _text(_read_exact(reader, name_length, "link name"))
    address = reader.read_value(reader.size_of_offsets)
    with reader.restore_position():
        reader.seek(address)
        child = read_child(reader, name)
    dataobject.directory.insert(0, child)


def _read_attribute_name(reader: Reader) -> str:
    collected = bytearray()
    for i in range(_MAX_NAME_LENGTH):
        c = reader.getc()
        if c < 0 or i == _MAX_NAME_LENGTH - 1:
            raise ReadError("attribute name too long or truncated")
        if c == 0x13:
            break
        collected.append(c)
    end = collected.find(0)
    if end < 0:
        raise InvalidFormatError("attribute name is not terminated")
    return collected[:end].decode("utf-8", "replace")


def _read_attribute(reader: Reader, dataobject: DataObject) -> None:
    name = _read_attribute_name(reader)
    if reader.read_value(3) != 0:
        raise UnsupportedFormatError("FHDB type 1 unsupported values: 3 bytes")
    value_length = reader.read_value(4)
    if value_length > _MAX_VALUE_LENGTH:
        raise UnsupportedFormatError("FHDB type 1 unsupported values: length")
    kind = reader.read_value(8) & 0xFFFFFFFF
    if kind not in (_ATTRIBUTE_WITH_VALUE, _ATTRIBUTE_WITHOUT_VALUE):
        raise UnsupportedFormatError(f"FHDB type 1 unsupported values: {kind:#x}")
    if kind == _ATTRIBUTE_WITHOUT_VALUE:
        value_length = 0
    value = _text(_read_exact(reader, value_length, "attribute value"))
    dataobject.attributes.insert(0, Attribute(name, value))


def _read_direct_block(
    reader: Reader,
    dataobject: DataObject,
    heap: FractalHeap,
    read_child: ReadChild,
) -> None:
    if reader.recursive_counter >= _MAX_RECURSION:
        raise InvalidFormatError("fractal heap nesting too deep")
    reader.recursive_counter += 1

    if reader.read(4) != b"FHDB":
        raise InvalidFormatError("cannot read signature of fractal heap direct block")
    if reader.getc() != 0:
        raise UnsupportedFormatError("object FHDB must have version 0")
    reader.seek(reader.size_of_offsets, os.SEEK_CUR)  # heap header address
    reader.read_value((heap.maximum_heap_size + 7) // 8)  # block offset
    if heap.flags & 2:
        reader.seek(4, os.SEEK_CUR)

    offset_size = _byte_count(heap.maximum_heap_size)
    length_size = _byte_count(min(heap.maximum_direct_block_size, heap.maximum_size))

    while True:
        entry_type = reader.getc() & 0xFF
        offset = reader.read_value(offset_size)
        length = reader.read_value(length_size)
        if offset > _MAX_OFFSET or length > _MAX_OFFSET:
            raise UnsupportedFormatError("fractal heap entry too large")

        if entry_type == 0:
            break
        if entry_type == 3:
            if not _read_type3(reader, dataobject, length):
                return
        elif entry_type == 1:
            kind = reader.read_value(4)
            if kind == _LINK_OBJECT:
                _read_link(reader, dataobject, read_child)
            elif kind in _ATTRIBUTE_KINDS:
                _read_attribute(reader, dataobject)
            else:
                raise UnsupportedFormatError(
                    f"FHDB type 1 unsupported values {kind:08X}"
                )
        else:
            return

    reader.recursive_counter -= 1


def _read_indirect_block(
    reader: Reader,
    dataobject: DataObject,
    heap: FractalHeap,
    iblock_size: int,
    read_child: ReadChild,
) -> None:
    if reader.read(4) != b"FHIB":
        raise InvalidFormatError("cannot read signature of fractal heap indirect block")
    if reader.getc() != 0:
        raise UnsupportedFormatError("object FHIB must have version 0")
    reader.read_value(reader.size_of_offsets)  # heap header address
    if reader.read_value((heap.maximum_heap_size + 7) // 8):
        raise UnsupportedFormatError("FHIB block offset is not 0")

    start = _log2i(heap.starting_block_size)
    nrows = _log2i(iblock_size) - start + 1
    max_dblock_rows = _log2i(heap.maximum_direct_block_size) - start + 2
    direct = min(nrows, max_dblock_rows) * heap.table_width
    indirect = direct - max_dblock_rows * heap.table_width

    for _ in range(direct):
        address = reader.read_value(reader.size_of_offsets)
        if heap.encoded_length > 0:
            reader.read_value(reader.size_of_lengths)  # filtered size
            reader.read_value(4)  # filter mask
        if reader.valid_address(address):
            with reader.restore_position():
                reader.seek(address)
                _read_direct_block(reader, dataobject, heap, read_child)

    for _ in range(max(indirect, 0)):
        address = reader.read_value(reader.size_of_offsets)
        if reader.valid_address(address):
            with reader.restore_position():
                reader.seek(address)
                _read_indirect_block(
                    reader, dataobject, heap, iblock_size * 2, read_child
                )


def read_fractal_heap(
    reader: Reader, dataobject: DataObject, read_child: ReadChild
) -> FractalHeap:
    """Read the fractal heap at the current position.

    Attributes found in the heap are added to ``dataobject.attributes`` and
    linked objects, read with ``read_child(reader, name)`` at their address,
    to ``dataobject.directory``; both newest first.
    """
    if reader.read(4) != b"FRHP":
        raise UnsupportedFormatError("cannot read signature of fractal heap")
    if reader.getc() != 0:
        raise UnsupportedFormatError("object fractal heap must have version 0")

    lengths = reader.size_of_lengths
    offsets = reader.size_of_offsets
    heap = FractalHeap()
    heap.heap_id_length = reader.read_value(2)
    heap.encoded_length = reader.read_value(2)
    if heap.encoded_length > _MAX_ENCODED_LENGTH:
        raise UnsupportedFormatError("fractal heap filter information too long")
    heap.flags = reader.getc() & 0xFF
    heap.maximum_size = reader.read_value(4)
    heap.next_huge_object_id = reader.read_value(lengths)
    heap.btree_address_of_huge_objects = reader.read_value(offsets)
    heap.free_space = reader.read_value(lengths)
    heap.address_free_space = reader.read_value(offsets)
    heap.amount_managed_space = reader.read_value(lengths)
    heap.amount_allocated_space = reader.read_value(lengths)
    heap.offset_managed_space = reader.read_value(lengths)
    heap.number_managed_objects = reader.read_value(lengths)
    heap.size_huge_objects = reader.read_value(lengths)
    heap.number_huge_objects = reader.read_value(lengths)
    heap.size_tiny_objects = reader.read_value(lengths)
    heap.number_tiny_objects = reader.read_value(lengths)
    heap.table_width = reader.read_value(2)
    heap.starting_block_size = reader.read_value(lengths)
    heap.maximum_direct_block_size = reader.read_value(lengths)
    heap.maximum_heap_size = reader.read_value(2)
    heap.starting_row = reader.read_value(2)
    heap.address_of_root_block = reader.read_value(offsets)
    heap.current_row = reader.read_value(2)

    if heap.encoded_length > 0:
        heap.size_of_filtered_block = reader.read_value(lengths)
        heap.filter_mask = reader.read_value(4)
        heap.filter_information = _read_exact(
            reader, heap.encoded_length, "filter information"
        )

    reader.seek(4, os.SEEK_CUR)  # checksum

    if heap.number_huge_objects:
        raise UnsupportedFormatError("cannot handle huge objects")
    if heap.number_tiny_objects:
        raise UnsupportedFormatError("cannot handle tiny objects")

    if reader.valid_address(heap.address_of_root_block):
        reader.seek(heap.address_of_root_block)
        if heap.current_row:
            _read_indirect_block(
                reader, dataobject, heap, heap.starting_block_size, read_child
            )
        else:
            _read_direct_block(reader, dataobject, heap, read_child)
    return heap