"""Version 2 B-tree headers and their leaf records."""

from __future__ import annotations

from dataclasses import dataclass, field

from .reader import InvalidFormatError, Reader, UnsupportedFormatError


@dataclass
class Type5Record:
    """A link name record of a version 2 B-tree."""

    hash_of_name: int
    heap_id: int


@dataclass
class BTree:
    type: int = 0
    node_size: int = 0
    record_size: int = 0
    depth: int = 0
    split_percent: int = 0
    merge_percent: int = 0
    root_node_address: int = 0
    number_of_records: int = 0
    total_number: int = 0
    records: list[Type5Record] = field(default_factory=list)


def _read_leaf(reader: Reader, number_of_records: int) -> list[Type5Record]:
    if reader.read(4) != b"BTLF":
        raise InvalidFormatError("cannot read signature of BTLF")
    if reader.getc() != 0:
        raise InvalidFormatError("object BTLF must have version 0")
    record_type = reader.getc() & 0xFF

    records: list[Type5Record] = []
    for _ in range(number_of_records):
        match record_type:
            case 5:
                hash_of_name = reader.read_value(4)
                records.append(Type5Record(hash_of_name, reader.read_value(7)))
            case 6:
                reader.read_value(8)  # creation order
                reader.read_value(7)  # heap id
            case 8:
                reader.read_value(8)  # heap id
                reader.getc()  # message flags
                reader.read_value(4)  # creation order
                reader.read_value(4)  # hash of name
            case 9:
                reader.read_value(8)  # heap id
                reader.getc()  # message flags
                reader.read_value(4)  # creation order
            case _:
                raise InvalidFormatError(f"object BTLF has unknown type {record_type}")
    return records


def read_btree(reader: Reader) -> BTree:
    """Read a B-tree header at the current position and its root leaf."""
    if reader.read(4) != b"BTHD":
        raise InvalidFormatError("cannot read signature of BTHD")
    if reader.getc() != 0:
        raise InvalidFormatError("object BTHD must have version 0")

    btree = BTree()
    btree.type = reader.getc() & 0xFF
    btree.node_size = reader.read_value(4)
    btree.record_size = reader.read_value(2)
    btree.depth = reader.read_value(2)
    btree.split_percent = reader.getc() & 0xFF
    btree.merge_percent = reader.getc() & 0xFF
    btree.root_node_address = reader.read_value(reader.size_of_offsets)
    btree.number_of_records = reader.read_value(2)
    if btree.number_of_records > 0x1000:
        raise UnsupportedFormatError("too many B-tree records")
    btree.total_number = reader.read_value(reader.size_of_lengths)
    if btree.total_number > 0x10000000:
        raise InvalidFormatError("B-tree total number of records is too large")

    reader.seek(btree.root_node_address)
    btree.records = _read_leaf(reader, btree.number_of_records)
    return btree