"""Certain types used across the package."""

from __future__ import annotations

from array import array
from mmap import mmap
from os import PathLike
from typing import TYPE_CHECKING, Any, Protocol, Union

if TYPE_CHECKING:
    ReadOnlyBuffer = bytes
    WriteableBuffer = Union[bytearray, memoryview, array[Any], mmap]
    ReadableBuffer = Union[ReadOnlyBuffer, WriteableBuffer]

    StrPath = Union[str, PathLike[str]]


__all__ = [
    'NoneType',
    'StrPath',
    'ReadOnlyBuffer',
    'WriteableBuffer',
    'ReadableBuffer',
    'ByteSource',
    'ByteSink',
    'ByteStore',
]


NoneType = type(None)


# noinspection PyPropertyDefinition
class ByteSource(Protocol):
    """Seekable source of bytes, e.g. a disk image."""

    def read_at(self, offset: int, size: int) -> bytes:
        """Read ``size`` bytes starting at byte ``offset``."""
        ...

    @property
    def size(self) -> int:
        """Size of the source in bytes."""
        ...


# noinspection PyPropertyDefinition
class ByteSink(Protocol):
    """Seekable sink of bytes, e.g. a writable disk image."""

    def write_at(self, offset: int, b: ReadableBuffer) -> None:
        """Write ``b`` starting at byte ``offset``."""
        ...

    @property
    def size(self) -> int:
        """Size of the sink in bytes."""
        ...


class ByteStore(ByteSource, ByteSink, Protocol):
    """Seekable source and sink of bytes, e.g. a disk image opened for writing."""
