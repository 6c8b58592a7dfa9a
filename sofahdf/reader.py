"""Random-access byte reader for HDF5 files and the errors raised while parsing."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from .gcol import GlobalHeapObject
    from .model import DataObject

_MASK64 = (1 << 64) - 1


class HDFError(Exception):
    """Base class of all errors raised while reading an HDF5 file."""


class InvalidFormatError(HDFError):
    """The file does not follow the HDF5 format."""


class UnsupportedFormatError(HDFError):
    """The file uses an HDF5 feature that is not supported."""


class ReadError(HDFError):
    """Data could not be read or a position could not be reached."""


class InternalError(HDFError):
    """The parser reached an inconsistent state."""


class Reader:
    """A positioned view on the bytes of an HDF5 file.

    Besides the cursor it carries the state shared while parsing one file:
    the offset and length sizes from the superblock, every data object read
    so far, the global heap objects seen and a recursion counter.
    """

    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self._data = bytes(data)
        self._pos = 0
        self.size_of_offsets = 8
        self.size_of_lengths = 8
        self.objects: list[DataObject] = []
        self.global_heap: list[GlobalHeapObject] = []
        self.recursive_counter = 0

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> Reader:
        """Create a reader over the whole content of the file at ``path``."""
        return cls(Path(path).read_bytes())

    def __len__(self) -> int:
        return len(self._data)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes; fewer are returned at the end of the data."""
        if n < 0:
            raise ValueError("cannot read a negative number of bytes")
        chunk = self._data[self._pos:self._pos + n]
        self._pos += len(chunk)
        return chunk

    def getc(self) -> int:
        """Read one byte, or return -1 at the end of the data."""
        if self._pos >= len(self._data):
            return -1
        value = self._data[self._pos]
        self._pos += 1
        return value

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """Move the cursor and return the new position."""
        if whence == os.SEEK_SET:
            target = offset
        elif whence == os.SEEK_CUR:
            target = self._pos + offset
        elif whence == os.SEEK_END:
            target = len(self._data) + offset
        else:
            raise ValueError(f"invalid whence {whence}")
        if target < 0 or target > len(self._data):
            raise ReadError(f"cannot seek to position {target:#x}")
        self._pos = target
        return target

    def tell(self) -> int:
        """Return the current position."""
        return self._pos

    def read_value(self, size: int) -> int:
        """Read a little-endian unsigned integer of ``size`` bytes."""
        if size < 0:
            raise InvalidFormatError(f"invalid value size {size}")
        chunk = self.read(size)
        if len(chunk) != size:
            raise ReadError(f"cannot read {size} bytes at {self._pos - len(chunk):#x}")
        return int.from_bytes(chunk, "little") & _MASK64

    def valid_address(self, address: int) -> bool:
        """Tell whether ``address`` is defined and points into the data."""
        undefined = (1 << (8 * self.size_of_offsets)) - 1
        return 0 < address < len(self._data) and address != undefined

    @contextmanager
    def restore_position(self) -> Iterator[int]:
        """Return to the current position when the block is left."""
        saved = self._pos
        try:
            yield saved
        finally:
            self._pos = saved

    def find_object(self, address: int) -> DataObject | None:
        """Return the most recently read data object at ``address``."""
        for obj in reversed(self.objects):
            if obj.address == address:
                return obj
        return None