import pytest

from sofahdf.dataobject import (
    read_attribute,
    read_dataobject,
    read_messages,
    release_dataobject,
)
from sofahdf.model import Attribute, DataObject
from sofahdf.reader import (
    InternalError,
    InvalidFormatError,
    Reader,
    UnsupportedFormatError,
)

UNDEFINED = b"\xff" * 8


def u(value, size):
    return value.to_bytes(size, "little")


def message(kind, body, flags=0, order=False):
    return (
        bytes([kind])
        + u(len(body), 2)
        + bytes([flags])
        + (b"\0\0" if order else b"")
        + body
    )


def ohdr(messages, flags=0, timestamps=b""):
    payload = b"".join(messages)
    return (
        b"OHDR"
        + bytes([2, flags])
        + timestamps
        + u(len(payload), 1 << (flags & 3))
        + payload
        + b"\0" * 4
    )


def string_type(size):
    return bytes([0x13, 0, 0, 0]) + u(size, 4)


SCALAR_V2 = bytes([2, 0, 0, 0])
SCALAR_V1 = bytes([1, 0, 0]) + b"\0" * 5


def attribute_v3(name, value, flags=0, datatype=None):
    raw = name.encode()
    dt = datatype if datatype is not None else string_type(len(value))
    return (
        bytes([3, flags])
        + u(len(raw), 2)
        + u(len(dt), 2)
        + u(len(SCALAR_V2), 2)
        + b"\0"
        + raw
        + dt
        + SCALAR_V2
        + value.encode()
    )


def attribute_v1(name, value):
    raw = name.encode() + b"\0"
    dt = string_type(len(value))
    padded = raw + b"\0" * ((8 - len(raw)) & 7)
    return (
        bytes([1, 0])
        + u(len(raw), 2)
        + u(len(dt), 2)
        + u(len(SCALAR_V1), 2)
        + padded
        + dt
        + SCALAR_V1
        + value.encode()
    )


def test_object_with_attribute():
    data = ohdr([message(12, attribute_v3("Conventions", "SOFA"))])
    reader = Reader(data)
    obj = read_dataobject(reader, "root")
    assert obj.name == "root"
    assert obj.address == 0
    assert obj.attributes == [Attribute("Conventions", "SOFA")]
    assert obj.attribute("Conventions").value == "SOFA"
    assert reader.objects == [obj]
    assert reader.tell() == len(data)


def test_attributes_are_newest_first():
    data = ohdr(
        [
            message(12, attribute_v3("Conventions", "SOFA")),
            message(12, attribute_v3("Version", "0.6")),
        ]
    )
    obj = read_dataobject(Reader(data), None)
    assert [a.name for a in obj.attributes] == ["Version", "Conventions"]


def test_version1_attribute_with_padding():
    data = ohdr([message(12, attribute_v1("DataType", "FIR"))])
    obj = read_dataobject(Reader(data), None)
    assert obj.attributes == [Attribute("DataType", "FIR")]


def test_dataspace_and_datatype_messages():
    dataspace = bytes([2, 1, 0, 1]) + u(3, 8)
    datatype = (
        bytes([0x11, 0, 0, 0])
        + u(8, 4)
        + u(0, 2)
        + u(64, 2)
        + bytes([52, 11, 0, 52])
        + u(1023, 4)
    )
    obj = read_dataobject(Reader(ohdr([message(1, dataspace), message(3, datatype)])), None)
    assert obj.ds.dimensionality == 1
    assert obj.ds.dimension_size[0] == 3
    assert obj.dt.size == 8
    assert obj.dt.bit_precision == 64
    assert obj.dt.exponent_bias == 1023


def test_contiguous_data_layout():
    payload = bytes(range(1, 17))

    def build(address):
        layout = bytes([3, 1]) + u(address, 8) + u(len(payload), 8)
        return ohdr([message(8, layout)])

    header = build(len(build(0)))
    obj = read_dataobject(Reader(header + payload), None)
    assert bytes(obj.data) == payload


def test_link_info_with_undefined_heap():
    body = bytes([0, 0]) + UNDEFINED + UNDEFINED
    obj = read_dataobject(Reader(ohdr([message(2, body)])), None)
    assert obj.li.fractal_heap_address == (1 << 64) - 1
    assert obj.directory == []


def test_group_info_and_fill_messages():
    group_info = bytes([0, 2]) + u(4, 2) + u(16, 2)
    fill = bytes([3, 0])
    obj = read_dataobject(Reader(ohdr([message(10, group_info), message(5, fill)])), None)
    assert obj.gi.number_of_entries == 4
    assert obj.gi.length_of_entries == 16


def test_timestamps_are_skipped():
    data = ohdr(
        [message(12, attribute_v3("Title", "x"))], flags=0x20, timestamps=b"\x01" * 16
    )
    obj = read_dataobject(Reader(data), None)
    assert obj.attribute("Title").value == "x"
    assert obj.flags == 0x20


def test_creation_order_field_is_skipped():
    data = ohdr([message(12, attribute_v3("Title", "x"), order=True)], flags=0x04)
    obj = read_dataobject(Reader(data), None)
    assert obj.attributes == [Attribute("Title", "x")]


def test_two_byte_chunk_size():
    data = ohdr([message(12, attribute_v3("Title", "abc"))], flags=0x01)
    obj = read_dataobject(Reader(data), None)
    assert obj.attribute("Title").value == "abc"


def test_continuation_block():
    ochk_messages = message(12, attribute_v3("Comment", "cont"))
    ochk = b"OCHK" + ochk_messages + b"\0" * 4

    def build(offset):
        return ohdr([message(16, u(offset, 8) + u(len(ochk), 8))])

    header = build(len(build(0)))
    reader = Reader(header + ochk)
    obj = read_dataobject(reader, None)
    assert obj.attributes == [Attribute("Comment", "cont")]
    assert reader.tell() == len(header)
    assert reader.recursive_counter == 1


def test_continuation_recursion_limit():
    reader = Reader(ohdr([message(16, u(100, 8) + u(16, 8))]))
    reader.recursive_counter = 25
    with pytest.raises(UnsupportedFormatError):
        read_dataobject(reader, None)


def test_continuation_bad_signature():
    bad = b"XXXX" + b"\0" * 8

    def build(offset):
        return ohdr([message(16, u(offset, 8) + u(len(bad), 8))])

    header = build(len(build(0)))
    with pytest.raises(InvalidFormatError):
        read_dataobject(Reader(header + bad), None)


def test_bad_signature():
    with pytest.raises(InvalidFormatError):
        read_dataobject(Reader(b"OHDX" + b"\0" * 12), None)


def test_wrong_version():
    data = bytearray(ohdr([]))
    data[4] = 1
    with pytest.raises(UnsupportedFormatError):
        read_dataobject(Reader(bytes(data)), None)


def test_unsupported_object_flag():
    with pytest.raises(UnsupportedFormatError):
        read_dataobject(Reader(ohdr([], flags=0x10)), None)


def test_unknown_message_type():
    with pytest.raises(UnsupportedFormatError):
        read_dataobject(Reader(ohdr([message(99, b"\0" * 4)])), None)


def test_unsupported_message_flags():
    with pytest.raises(UnsupportedFormatError):
        read_dataobject(Reader(ohdr([message(0, b"\0" * 4, flags=2)])), None)


def test_nil_message_with_allowed_flags():
    data = ohdr([message(0, b"\0" * 6, flags=1), message(12, attribute_v3("A", "b"))])
    obj = read_dataobject(Reader(data), None)
    assert obj.attributes == [Attribute("A", "b")]


def test_message_length_mismatch():
    with pytest.raises(InternalError):
        read_dataobject(Reader(ohdr([message(10, bytes([0, 0, 0, 0]))])), None)


def test_read_messages_directly():
    msgs = message(12, attribute_v3("Name", "value"))
    reader = Reader(msgs + b"\0" * 4)
    obj = DataObject()
    read_messages(reader, obj, len(msgs))
    assert obj.attributes == [Attribute("Name", "value")]
    assert reader.tell() == len(msgs) + 4


def test_read_attribute_returns_attribute():
    obj = DataObject()
    attribute = read_attribute(Reader(attribute_v3("Units", "metre")), obj)
    assert attribute == Attribute("Units", "metre")
    assert obj.attributes[0] is attribute


def test_read_attribute_bad_version():
    with pytest.raises(InvalidFormatError):
        read_attribute(Reader(bytes([2, 0]) + b"\0" * 16), DataObject())


def test_read_attribute_flags_not_allowed():
    with pytest.raises(InvalidFormatError):
        read_attribute(Reader(attribute_v3("A", "b", flags=1)), DataObject())


def test_read_attribute_bad_datatype_is_invalid_format():
    bad_type = bytes([0x1F, 0, 0, 0]) + u(4, 4)
    with pytest.raises(InvalidFormatError):
        read_attribute(Reader(attribute_v3("A", "abcd", datatype=bad_type)), DataObject())


def test_release_dataobject():
    reader = Reader(ohdr([message(12, attribute_v3("Conventions", "SOFA"))]))
    obj = read_dataobject(reader, None)
    child = DataObject(name="child", address=1234)
    obj.directory.append(child)
    reader.objects.append(child)

    release_dataobject(reader, obj)
    assert reader.objects == []
    assert obj.attributes == []
    assert obj.directory == []
    assert reader.find_object(1234) is None