import zlib

import pytest

from sofahdf.model import DataObject
from sofahdf.reader import (
    InvalidFormatError,
    ReadError,
    Reader,
    UnsupportedFormatError,
)
from sofahdf.storage import (
    read_attribute_info,
    read_data_layout,
    read_filter_pipeline,
    read_group_info,
)

UNDEFINED = (1 << 64) - 1


def u16(v):
    return v.to_bytes(2, "little")


def u32(v):
    return v.to_bytes(4, "little")


def u64(v):
    return v.to_bytes(8, "little")


# group info


def test_group_info_all_fields():
    data = bytes([0, 3]) + u16(16) + u16(32) + u16(5) + u16(8)
    reader = Reader(data)
    gi = read_group_info(reader)
    assert (gi.flags, gi.maximum_compact_value, gi.minimum_dense_value) == (3, 16, 32)
    assert (gi.number_of_entries, gi.length_of_entries) == (5, 8)
    assert reader.tell() == len(data)


def test_group_info_no_flags_reads_two_bytes():
    reader = Reader(bytes([0, 0, 0xAA]))
    gi = read_group_info(reader)
    assert gi.flags == 0
    assert reader.tell() == 2


def test_group_info_wrong_version():
    with pytest.raises(UnsupportedFormatError):
        read_group_info(Reader(bytes([1, 0])))


# attribute info


def test_attribute_info_plain():
    data = bytes([0, 0]) + u64(0x240) + u64(0x2D2)
    reader = Reader(data)
    ai = read_attribute_info(reader)
    assert ai.fractal_heap_address == 0x240
    assert ai.attribute_name_btree == 0x2D2
    assert ai.attribute_creation_order_btree == 0
    assert reader.tell() == len(data)


def test_attribute_info_with_flags():
    data = bytes([0, 3]) + u16(7) + u64(0x240) + u64(0x2D2) + u64(0x2F8)
    reader = Reader(data)
    ai = read_attribute_info(reader)
    assert ai.maximum_creation_index == 7
    assert ai.attribute_creation_order_btree == 0x2F8
    assert reader.tell() == len(data)


def test_attribute_info_wrong_version():
    with pytest.raises(UnsupportedFormatError):
        read_attribute_info(Reader(bytes([2, 0]) + u64(0) * 2))


# filter pipeline

SHUFFLE_V1 = u16(2) + u16(8) + u16(1) + u16(1) + b"shuffle\0" + u32(8) + u32(0)
DEFLATE_V1 = u16(1) + u16(8) + u16(1) + u16(1) + b"deflate\0" + u32(1) + u32(0)


def test_filter_pipeline_v1_shuffle_deflate():
    data = bytes([1, 2]) + bytes(6) + SHUFFLE_V1 + DEFLATE_V1
    reader = Reader(data)
    assert read_filter_pipeline(reader) == [2, 1]
    assert reader.tell() == len(data)


def test_filter_pipeline_v1_reserved_not_zero():
    data = bytes([1, 1]) + bytes([0, 0, 1, 0, 0, 0]) + DEFLATE_V1
    with pytest.raises(InvalidFormatError):
        read_filter_pipeline(Reader(data))


def test_filter_pipeline_v2():
    data = (
        bytes([2, 2])
        + u16(1) + u16(0) + u16(1) + u32(6)
        + u16(2) + u16(0) + u16(0)
    )
    reader = Reader(data)
    assert read_filter_pipeline(reader) == [1, 2]
    assert reader.tell() == len(data)


def test_filter_pipeline_unsupported_filter():
    data = bytes([2, 1]) + u16(3) + u16(0) + u16(0)
    with pytest.raises(InvalidFormatError):
        read_filter_pipeline(Reader(data))


def test_filter_pipeline_too_many_client_values():
    data = bytes([2, 1]) + u16(1) + u16(0) + u16(0x1001)
    with pytest.raises(UnsupportedFormatError):
        read_filter_pipeline(Reader(data))


def test_filter_pipeline_too_many_filters():
    with pytest.raises(InvalidFormatError):
        read_filter_pipeline(Reader(bytes([2, 33])))


def test_filter_pipeline_unknown_version():
    with pytest.raises(InvalidFormatError):
        read_filter_pipeline(Reader(bytes([3, 0])))


def test_filter_pipeline_truncated():
    with pytest.raises(ReadError):
        read_filter_pipeline(Reader(bytes([2])))


# data layout


def test_contiguous_layout_loads_data():
    payload = b"hello world!"
    header = bytes([3, 1]) + u64(18) + u64(len(payload))
    reader = Reader(header + payload)
    obj = DataObject()
    read_data_layout(reader, obj)
    assert obj.data == bytearray(payload)
    assert reader.tell() == len(header)


def test_contiguous_layout_undefined_address():
    reader = Reader(bytes([3, 1]) + u64(UNDEFINED) + u64(4))
    obj = DataObject()
    read_data_layout(reader, obj)
    assert obj.data is None
    assert reader.tell() == 18


def test_contiguous_layout_too_large():
    reader = Reader(bytes([3, 1]) + u64(18) + u64(0x10000001) + b"xx")
    with pytest.raises(InvalidFormatError):
        read_data_layout(reader, DataObject())


def test_contiguous_layout_truncated():
    reader = Reader(bytes([3, 1]) + u64(18) + u64(10) + b"abc")
    with pytest.raises(ReadError):
        read_data_layout(reader, DataObject())


def test_layout_wrong_version():
    with pytest.raises(InvalidFormatError):
        read_data_layout(Reader(bytes([2, 1]) + bytes(16)), DataObject())


def test_layout_unknown_class():
    with pytest.raises(InvalidFormatError):
        read_data_layout(Reader(bytes([3, 0]) + bytes(16)), DataObject())


@pytest.mark.parametrize("dimensionality", [0, 6])
def test_chunked_layout_invalid_dimensionality(dimensionality):
    data = bytes([3, 2, dimensionality]) + u64(UNDEFINED) + bytes(24)
    with pytest.raises(InvalidFormatError):
        read_data_layout(Reader(data), DataObject())


def test_chunked_layout_undefined_address_keeps_chunks():
    data = bytes([3, 2, 3]) + u64(UNDEFINED) + u32(2) + u32(5) + u32(8)
    reader = Reader(data)
    obj = DataObject()
    read_data_layout(reader, obj)
    assert obj.datalayout_chunk[:3] == [2, 5, 8]
    assert obj.data is None
    assert reader.tell() == len(data)


def test_chunked_layout_reads_tree():
    values = b"\x01\x02\x03\x04"
    compressed = zlib.compress(values)
    message = bytes([3, 2, 2]) + u64(19) + u32(4) + u32(1)
    tree = b"TREE" + bytes([1, 0]) + u16(1) + u64(UNDEFINED) + u64(UNDEFINED)
    entry_end = u32(0) + u32(0) + u64(0) + u64(1)
    chunk_address = (
        len(message) + len(tree) + (4 + 4 + 8 + 8 + 8) + len(entry_end) + 4
    )
    entry = u32(len(compressed)) + u32(0) + u64(0) + u64(0) + u64(chunk_address)
    data = message + tree + entry + entry_end + bytes(4) + compressed
    assert len(message) == 19

    obj = DataObject()
    obj.ds.dimensionality = 1
    obj.ds.dimension_size[0] = 4
    reader = Reader(data)
    read_data_layout(reader, obj)
    assert obj.data == bytearray(values)
    assert reader.tell() == len(message)