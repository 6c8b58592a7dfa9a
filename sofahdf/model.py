"""Data structures filled in while parsing an HDF5 file."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Attribute:
    """A named attribute; ``value`` is None when it carries no text."""

    name: str
    value: str | None = None


@dataclass
class DataSpace:
    """Shape of a dataset or attribute (at most four dimensions are kept)."""

    dimension_size: list[int] = field(default_factory=lambda: [0] * 4)
    dimension_max_size: list[int] = field(default_factory=lambda: [0] * 4)
    dimensionality: int = 0
    flags: int = 0
    type: int = 0


@dataclass
class DataType:
    """Element type of a dataset or attribute."""

    class_and_version: int = 0
    class_bit_field: int = 0
    size: int = 0
    bit_offset: int = 0
    bit_precision: int = 0
    exponent_location: int = 0
    exponent_size: int = 0
    mantissa_location: int = 0
    mantissa_size: int = 0
    exponent_bias: int = 0
    list_size: int = 0


@dataclass
class LinkInfo:
    flags: int = 0
    maximum_creation_index: int = 0
    fractal_heap_address: int = 0
    address_btree_index: int = 0
    address_btree_order: int = 0


@dataclass
class GroupInfo:
    flags: int = 0
    maximum_compact_value: int = 0
    minimum_dense_value: int = 0
    number_of_entries: int = 0
    length_of_entries: int = 0


@dataclass
class AttributeInfo:
    flags: int = 0
    maximum_creation_index: int = 0
    fractal_heap_address: int = 0
    attribute_name_btree: int = 0
    attribute_creation_order_btree: int = 0


@dataclass
class FractalHeap:
    """Header fields of a fractal heap."""

    flags: int = 0
    heap_id_length: int = 0
    encoded_length: int = 0
    table_width: int = 0
    maximum_heap_size: int = 0
    starting_row: int = 0
    current_row: int = 0
    maximum_size: int = 0
    filter_mask: int = 0
    next_huge_object_id: int = 0
    btree_address_of_huge_objects: int = 0
    free_space: int = 0
    address_free_space: int = 0
    amount_managed_space: int = 0
    amount_allocated_space: int = 0
    offset_managed_space: int = 0
    number_managed_objects: int = 0
    size_huge_objects: int = 0
    number_huge_objects: int = 0
    size_tiny_objects: int = 0
    number_tiny_objects: int = 0
    starting_block_size: int = 0
    maximum_direct_block_size: int = 0
    address_of_root_block: int = 0
    size_of_filtered_block: int = 0
    filter_information: bytes = b""


@dataclass
class DataObject:
    """An object header with everything read from its messages.

    ``attributes`` and ``directory`` hold the newest entry first.
    """

    name: str | None = None
    address: int = 0
    flags: int = 0
    dt: DataType = field(default_factory=DataType)
    ds: DataSpace = field(default_factory=DataSpace)
    li: LinkInfo = field(default_factory=LinkInfo)
    gi: GroupInfo = field(default_factory=GroupInfo)
    ai: AttributeInfo = field(default_factory=AttributeInfo)
    objects_heap: FractalHeap = field(default_factory=FractalHeap)
    attributes_heap: FractalHeap = field(default_factory=FractalHeap)
    datalayout_chunk: list[int] = field(default_factory=lambda: [0] * 5)
    attributes: list[Attribute] = field(default_factory=list)
    directory: list[DataObject] = field(default_factory=list)
    data: bytearray | None = None
    string: str | None = None

    def attribute(self, name: str) -> Attribute | None:
        """Return the first attribute called ``name``, if any."""
        return next((a for a in self.attributes if a.name == name), None)

    def child(self, name: str) -> DataObject | None:
        """Return the first child object called ``name``, if any."""
        return next((d for d in self.directory if d.name == name), None)