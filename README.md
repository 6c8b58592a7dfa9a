# sofahdf

A small, dependency-free reader for the subset of HDF5 that AES69 SOFA
files (spatially oriented acoustic data, such as HRTFs) are stored in.
It uses only the Python standard library.

It parses the superblock (versions 0 to 3), version 2 object headers and
their messages (dataspace, datatype, data layout, fill value, filter
pipeline, group info, link info, attribute info, attributes and header
continuations), fractal heaps, global heap collections and
deflate-compressed chunked data. What comes out is a tree of data objects
with their attributes and raw data bytes. Version 2 B-tree headers can be
read separately.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Usage

Load a file from disk, or from bytes already in memory:

```python
from sofahdf.superblock import load, load_bytes

superblock = load("subject.sofa")

with open("subject.sofa", "rb") as fh:
    superblock = load_bytes(fh.read())
```

The returned `Superblock` holds the superblock fields (`version`,
`size_of_offsets`, `size_of_lengths`, `end_of_file_address`,
`root_group_object_header_address`, ...) and the root group in
`dataobject`. Each `DataObject` has a `name`, a list of `attributes`, a
list of child objects in `directory`, its dataspace `ds` and datatype
`dt`, and, for datasets, its raw bytes in `data` (a `bytearray`, or
`None` when the object stores no data):

```python
root = superblock.dataobject

conventions = root.attribute("Conventions")
if conventions is not None:
    print(conventions.value)              # e.g. "SOFA"

ir = root.child("Data.IR")
if ir is not None and ir.data is not None:
    print(ir.ds.dimension_size, len(ir.data))
```

`DataObject.attribute(name)` returns the first `Attribute` with that name,
or `None`. An `Attribute` has a `name` and a `value`, which is a string or
`None`. Reference attributes such as `DIMENSION_LIST` are resolved to the
names of the objects they point to, joined by commas.
`DataObject.child(name)` returns the first child object with that name,
or `None`. Attributes and children are listed newest first.

## Errors

Parsing errors are raised as exceptions from `sofahdf.reader`, all derived
from `HDFError`:

- `InvalidFormatError`: the data does not follow the format.
- `UnsupportedFormatError`: a valid feature that this reader does not handle.
- `ReadError`: the data ends early or a seek falls outside it.
- `InternalError`: an inconsistency found while reading, such as a header
  message whose length does not match its content.

`load` also lets `OSError` through when the file cannot be read.

```python
from sofahdf.reader import HDFError
from sofahdf.superblock import load

try:
    load("broken.sofa")
except HDFError as exc:
    print(f"cannot read file: {exc}")
```

## Lower-level access

`sofahdf.reader.Reader` is a positioned view on the bytes of a file
(`read`, `getc`, `seek`, `tell`, `read_value` for little-endian
integers, and `restore_position`, a context manager that returns to the
current position). It also carries the state shared while parsing: the
offset and length sizes, the data objects read so far and the global heap
objects seen.

Each format structure has its own reader, working on a `Reader`
positioned at that structure:

- `sofahdf.superblock.read_superblock`
- `sofahdf.dataobject.read_dataobject`, `read_messages`, `read_attribute`
- `sofahdf.fractalheap.read_fractal_heap`
- `sofahdf.gcol.read_gcol` and `gcol_read`
- `sofahdf.btree.read_btree`
- `sofahdf.chunks.read_tree`
- the single-message readers in `sofahdf.messages` and `sofahdf.storage`

```python
from sofahdf.reader import Reader
from sofahdf.superblock import read_superblock

with open("subject.sofa", "rb") as fh:
    reader = Reader(fh.read())
superblock = read_superblock(reader)
print(len(reader.objects))
```

`sofahdf.dataobject.release_dataobject` drops a data object and its
children from a reader.

## What it does not do

- It only reads; it cannot write or modify files.
- It returns raw bytes for dataset contents. It does not decode them into
  numbers or arrays, and it does not interpret the SOFA conventions (no
  HRTF checks, normalisation, resampling, lookup or interpolation).
- Only the deflate and shuffle filters are accepted, and only the HDF5
  features that SOFA files use are supported.
- There is no command-line tool.