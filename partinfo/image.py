"""Disk image access.

An image represents either a file or block device holding the raw bytes of a disk,
or a buffer in memory. Both can serve as byte source and byte sink of the ``mbr``
and ``gpt`` codecs.
"""

from __future__ import annotations

import logging
import os
from stat import S_ISBLK, S_ISREG
from types import TracebackType
from typing import TYPE_CHECKING, Any

from . import gpt, mbr
from .base import TruncatedInputError, ValidationError, check_sector_size

if TYPE_CHECKING:
    from .typing import ByteSource, ReadableBuffer, StrPath

__all__ = ["Image", "MemoryImage", "read_table"]


log = logging.getLogger(__name__)


if hasattr(os, "pread") and hasattr(os, "pwrite"):
    _read = os.pread
    _write = os.pwrite
else:

    def _read(fd: int, size: int, pos: int) -> bytes:
        """Read `size` bytes from file descriptor `fd` starting at byte `pos`."""
        os.lseek(fd, pos, os.SEEK_SET)
        return os.read(fd, size)

    def _write(fd: int, b: ReadableBuffer, pos: int) -> int:
        """Write raw bytes `b` to file descriptor `fd` starting at byte `pos`."""
        os.lseek(fd, pos, os.SEEK_SET)
        return os.write(fd, b)


def _check_range(offset: int, size: int, limit: int) -> bool:
    if offset < 0:
        raise ValueError("Offset must be zero or positive")
    if size < 0:
        raise ValueError("Amount of bytes must be zero or positive")
    return offset + size <= limit


class Image:
    """File or block device holding a disk image.

    Offsets are in bytes; the codecs translate LBAs using the sector size passed to
    them.

    Do not use `__init__` directly, use `Image.open()` or `Image.new()` instead.
    """

    def __init__(
        self, fd: int, path: StrPath, size: int, device: bool, writable: bool
    ):
        self._fd = fd
        self._path = str(path)
        self._size = size
        self._device = device
        self._writable = writable
        self._closed = False

        log.info(f"Opened image {self}")
        log.info(f"{self} - Size: {size} bytes")

    @classmethod
    def new(cls, path: StrPath, size: int) -> Image:
        """Create a new, zero-filled image of `size` bytes at `path`.

        The file must not exist yet.
        """
        if size <= 0:
            raise ValueError("Image size must be greater than 0")

        flags = os.O_CREAT | os.O_EXCL | os.O_RDWR | getattr(os, "O_BINARY", 0)
        fd = os.open(path, flags, 0o666)
        try:
            os.truncate(fd, size)
            return cls(fd, path, size, False, True)
        except BaseException:
            os.close(fd)
            raise

    @classmethod
    def open(cls, path: StrPath, *, readonly: bool = True) -> Image:
        """Open block device or image file at `path`."""
        read_write_flag = os.O_RDONLY if readonly else os.O_RDWR
        flags = read_write_flag | getattr(os, "O_BINARY", 0)
        fd = os.open(path, flags)

        try:
            stat = os.fstat(fd)

            if S_ISBLK(stat.st_mode):
                size = os.lseek(fd, 0, os.SEEK_END)
                return cls(fd, path, size, True, not readonly)

            if S_ISREG(stat.st_mode):
                return cls(fd, path, stat.st_size, False, not readonly)

            raise ValueError("File is neither a block device nor a regular file")

        except BaseException:
            os.close(fd)
            raise

    def read_at(self, offset: int, size: int) -> bytes:
        """Read `size` bytes from the image starting at byte `offset`."""
        self.check_closed()

        if not _check_range(offset, size, self._size):
            raise TruncatedInputError(
                f"Cannot read {size} bytes at offset {offset} of image of "
                f"{self._size} bytes"
            )
        if size == 0:
            return b""

        b = _read(self._fd, size, offset)

        if len(b) != size:
            raise TruncatedInputError(
                f"Did not read the expected amount of bytes (expected {size} bytes, "
                f"got {len(b)} bytes)"
            )
        return b

    def write_at(self, offset: int, b: ReadableBuffer) -> None:
        """Write raw bytes `b` to the image starting at byte `offset`."""
        self.check_closed()
        self.check_writable()

        if not isinstance(b, memoryview):
            b = memoryview(b).cast("B")
        size = b.nbytes

        if not _check_range(offset, size, self._size):
            raise ValueError(
                f"Cannot write {size} bytes at offset {offset} of image of "
                f"{self._size} bytes"
            )
        if size == 0:
            return

        bytes_written = _write(self._fd, b, offset)

        if bytes_written != size:
            raise ValueError(
                f"Did not write the expected amount of bytes (expected {size} "
                f"bytes, wrote {bytes_written} bytes)"
            )

    def flush(self) -> None:
        """Flush write buffers of the underlying file or block device."""
        self.check_closed()
        os.fsync(self._fd)

    def close(self) -> None:
        """Close the underlying file or block device.

        This method has no effect if the image is already closed.
        """
        if self._closed:
            return
        os.close(self._fd)
        self._closed = True
        log.info(f"Closed image {self}")

    def __enter__(self) -> Image:
        """Context management protocol."""
        self.check_closed()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType,
    ) -> None:
        """Context management protocol."""
        self.close()

    @property
    def device(self) -> bool:
        """Whether the image resides on a block device instead of a file."""
        return self._device

    @property
    def size(self) -> int:
        """Size of the image in bytes."""
        return self._size

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def writable(self) -> bool:
        """Whether the underlying file or block device supports writing."""
        self.check_closed()
        return self._writable

    def check_closed(self) -> None:
        """Raise `ValueError` if the underlying file or block device is closed."""
        if self._closed:
            raise ValueError("I/O operation on closed image")

    def check_writable(self) -> None:
        """Raise `ValueError` if the underlying file or block device is read-only."""
        if not self._writable:
            raise ValueError("Image is not writable")

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Image):
            return self._path == other._path
        return NotImplemented

    def __str__(self) -> str:
        return self._path

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._path!r})"


class MemoryImage:
    """Disk image held in a `bytearray`.

    The buffer is used as is, writes modify it in place.
    """

    def __init__(self, buffer: bytearray):
        self._buffer = buffer

    @classmethod
    def new(cls, size: int) -> MemoryImage:
        """Create a new, zero-filled image of `size` bytes."""
        if size <= 0:
            raise ValueError("Image size must be greater than 0")
        return cls(bytearray(size))

    def read_at(self, offset: int, size: int) -> bytes:
        """Read `size` bytes from the image starting at byte `offset`."""
        if not _check_range(offset, size, len(self._buffer)):
            raise TruncatedInputError(
                f"Cannot read {size} bytes at offset {offset} of image of "
                f"{len(self._buffer)} bytes"
            )
        return bytes(self._buffer[offset : offset + size])

    def write_at(self, offset: int, b: ReadableBuffer) -> None:
        """Write raw bytes `b` to the image starting at byte `offset`."""
        view = memoryview(b).cast("B")
        if not _check_range(offset, view.nbytes, len(self._buffer)):
            raise ValueError(
                f"Cannot write {view.nbytes} bytes at offset {offset} of image of "
                f"{len(self._buffer)} bytes"
            )
        self._buffer[offset : offset + view.nbytes] = view

    @property
    def size(self) -> int:
        """Size of the image in bytes."""
        return len(self._buffer)

    @property
    def buffer(self) -> bytearray:
        return self._buffer

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({len(self._buffer)})"


def read_table(source: ByteSource, sector_size: int) -> gpt.Table | mbr.Table | None:
    """Try to read a partition table from `source`.

    A GUID partition table is preferred, its primary copy over its secondary copy.
    Otherwise, an MBR with a valid boot signature is returned. If no partition
    table can be parsed, the image is considered unpartitioned and `None` is
    returned.
    """
    check_sector_size(sector_size)
    table: gpt.Table | mbr.Table | None = None

    for copy in gpt.Copy:
        try:
            table = gpt.Table.from_source(source, copy, sector_size)
        except ValidationError as e:
            log.debug(f"{source!r} - No {copy.value} GPT: {e}")
            continue
        break

    if table is None:
        try:
            table = mbr.Table.from_source(source, sector_size)
        except ValidationError as e:
            log.debug(f"{source!r} - No MBR: {e}")
        else:
            if not table.is_valid:
                table = None

    if table is None:
        log.info(f"{source!r} - No valid partition table found")
    else:
        log.info(f"{source!r} - Found partition table {table!r}")
    return table
