"""Object headers: their messages, attributes and linked child objects."""

from __future__ import annotations

import os

from .fractalheap import read_fractal_heap
from .messages import (
    read_data_fill,
    read_data_fill_old,
    read_dataspace,
    read_datatype,
    read_link_info,
    read_nil,
)
from .model import Attribute, DataObject
from .reader import (
    HDFError,
    InternalError,
    InvalidFormatError,
    ReadError,
    Reader,
    UnsupportedFormatError,
)
from .storage import (
    read_attribute_info,
    read_data_layout,
    read_filter_pipeline,
    read_group_info,
)
from .values import read_data

_MAX_NAME_SIZE = 0x1000
_MAX_CONTINUATION_OFFSET = 0x2000000
_MAX_CONTINUATION_LENGTH = 0x10000000
_MAX_CONTINUATIONS = 25
_MAX_CHUNK_SIZE = 0x1000000
_ALLOWED_MESSAGE_FLAGS = 5

_FLAG_CREATION_ORDER = 1 << 2
_FLAG_UNSUPPORTED = 1 << 4
_FLAG_TIMESTAMPS = 1 << 5


def _text(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", "replace")


def read_attribute(reader: Reader, dataobject: DataObject) -> Attribute:
    """Read an attribute message and add the attribute to ``dataobject`` first."""
    version = reader.getc()
    if version not in (1, 3):
        raise InvalidFormatError("attribute message must have version 1 or 3")

    flags = reader.getc() & 0xFF
    name_size = reader.read_value(2)
    datatype_size = reader.read_value(2)
    dataspace_size = reader.read_value(2)
    if version == 3:
        reader.getc()  # name character set encoding

    if name_size > _MAX_NAME_SIZE:
        raise InvalidFormatError(f"attribute name of {name_size} bytes is too long")
    raw = reader.read(name_size)
    if len(raw) != name_size:
        raise ReadError("truncated attribute name")
    if version == 1:
        reader.seek((8 - name_size) & 7, os.SEEK_CUR)
    name = _text(raw)

    if version == 3 and flags & 3:
        raise InvalidFormatError("attribute message must not have any flags set")

    value = DataObject()
    try:
        value.dt = read_datatype(reader)
    except HDFError as exc:
        raise InvalidFormatError(f"attribute {name!r}: bad datatype: {exc}") from exc
    if version == 1:
        reader.seek((8 - datatype_size) & 7, os.SEEK_CUR)

    try:
        value.ds = read_dataspace(reader)
    except HDFError as exc:
        raise InvalidFormatError(f"attribute {name!r}: bad dataspace: {exc}") from exc
    if version == 1:
        reader.seek((8 - dataspace_size) & 7, os.SEEK_CUR)

    try:
        read_data(reader, value, value.dt, value.ds)
    except HDFError as exc:
        raise InvalidFormatError(f"attribute {name!r}: bad data: {exc}") from exc

    attribute = Attribute(name, value.string)
    dataobject.attributes.insert(0, attribute)
    return attribute


def _read_ochk(reader: Reader, dataobject: DataObject, end: int) -> None:
    if reader.read(4) != b"OCHK":
        raise InvalidFormatError("cannot read signature of OCHK")
    read_messages(reader, dataobject, end - 4)  # without checksum


def _read_continuation(reader: Reader, dataobject: DataObject) -> None:
    offset = reader.read_value(reader.size_of_offsets)
    length = reader.read_value(reader.size_of_lengths)
    if offset > _MAX_CONTINUATION_OFFSET or length > _MAX_CONTINUATION_LENGTH:
        raise UnsupportedFormatError("continuation block out of range")
    if reader.recursive_counter >= _MAX_CONTINUATIONS:
        raise UnsupportedFormatError("too many nested continuation blocks")
    reader.recursive_counter += 1
    with reader.restore_position():
        reader.seek(offset)
        _read_ochk(reader, dataobject, offset + length)


def _read_message(reader: Reader, dataobject: DataObject, kind: int, size: int) -> None:
    match kind:
        case 0:
            read_nil(reader, size)
        case 1:
            dataobject.ds = read_dataspace(reader)
        case 2:
            dataobject.li = read_link_info(reader)
        case 3:
            dataobject.dt = read_datatype(reader)
        case 4:
            read_data_fill_old(reader)
        case 5:
            read_data_fill(reader)
        case 8:
            read_data_layout(reader, dataobject)
        case 10:
            dataobject.gi = read_group_info(reader)
        case 11:
            read_filter_pipeline(reader)
        case 12:
            read_attribute(reader, dataobject)
        case 16:
            _read_continuation(reader, dataobject)
        case 21:
            dataobject.ai = read_attribute_info(reader)
        case _:
            raise UnsupportedFormatError(f"unknown header message of type {kind}")


def read_messages(reader: Reader, dataobject: DataObject, end_of_messages: int) -> None:
    """Read header messages up to ``end_of_messages`` and skip the checksum after it."""
    # the final gap may be up to three bytes long
    while reader.tell() < end_of_messages - 4:
        kind = reader.getc() & 0xFF
        size = reader.read_value(2)
        flags = reader.getc() & 0xFF
        if flags & ~_ALLOWED_MESSAGE_FLAGS:
            raise UnsupportedFormatError(f"unsupported header message flags {flags:02X}")
        if dataobject.flags & _FLAG_CREATION_ORDER:
            reader.seek(2, os.SEEK_CUR)

        end = reader.tell() + size
        _read_message(reader, dataobject, kind, size)
        if reader.tell() != end:
            raise InternalError(
                f"header message length mismatch by {reader.tell() - end}"
            )

    reader.seek(end_of_messages + 4)


def read_dataobject(reader: Reader, name: str | None) -> DataObject:
    """Read the object header at the current position, with its heaps and children."""
    dataobject = DataObject(name=name, address=reader.tell())

    if reader.read(4) != b"OHDR":
        raise InvalidFormatError("cannot read signature of data object")
    if reader.getc() != 2:
        raise UnsupportedFormatError("object OHDR must have version 2")

    dataobject.flags = reader.getc() & 0xFF
    if dataobject.flags & _FLAG_TIMESTAMPS:
        reader.seek(16, os.SEEK_CUR)
    if dataobject.flags & _FLAG_UNSUPPORTED:
        raise UnsupportedFormatError(
            f"OHDR: unsupported flags bit 4: {dataobject.flags:02X}"
        )

    size_of_chunk = reader.read_value(1 << (dataobject.flags & 3))
    if size_of_chunk > _MAX_CHUNK_SIZE:
        raise UnsupportedFormatError(f"object header of {size_of_chunk} bytes")

    read_messages(reader, dataobject, reader.tell() + size_of_chunk)

    if reader.valid_address(dataobject.ai.fractal_heap_address):
        reader.seek(dataobject.ai.fractal_heap_address)
        dataobject.attributes_heap = read_fractal_heap(
            reader, dataobject, read_dataobject
        )

    if reader.valid_address(dataobject.li.fractal_heap_address):
        reader.seek(dataobject.li.fractal_heap_address)
        dataobject.objects_heap = read_fractal_heap(reader, dataobject, read_dataobject)

    reader.objects.append(dataobject)
    return dataobject


def release_dataobject(reader: Reader, dataobject: DataObject) -> None:
    """Forget ``dataobject`` and its children and drop everything they hold."""
    for child in dataobject.directory:
        release_dataobject(reader, child)
    dataobject.directory.clear()
    dataobject.attributes.clear()
    dataobject.data = None
    dataobject.string = None
    reader.objects[:] = [obj for obj in reader.objects if obj is not dataobject]