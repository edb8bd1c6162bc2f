"""CRC32 checksums as used by GUID partition tables.

The variant is CRC-32/ISO-HDLC: reflected polynomial 0xEDB88320, initial value and
final XOR 0xFFFFFFFF. This is what ``zlib.crc32`` computes.
"""

from __future__ import annotations

import zlib
from typing import TYPE_CHECKING, Iterable

from .layout import GPT_HEADER_CRC32_OFFSET

if TYPE_CHECKING:
    from .typing import ReadableBuffer

__all__ = ['crc32', 'header_crc32', 'partition_array_crc32']


CRC32_SIZE = 4


def crc32(data: ReadableBuffer, value: int = 0) -> int:
    """Return the CRC32 of ``data``.

    ``value`` is the checksum of preceding data when computing a running checksum.
    """
    return zlib.crc32(data, value) & 0xFFFFFFFF


def header_crc32(header: ReadableBuffer) -> int:
    """Return the CRC32 of a GPT header.

    ``header`` must hold exactly the number of bytes given by the header size field
    of the header. The checksum field itself is treated as zero.
    """
    view = memoryview(header).cast('B')
    end = GPT_HEADER_CRC32_OFFSET + CRC32_SIZE
    if view.nbytes < end:
        raise ValueError(
            f'GPT header must be at least {end} bytes long, got {view.nbytes} bytes'
        )
    value = crc32(view[:GPT_HEADER_CRC32_OFFSET])
    value = crc32(b'\x00' * CRC32_SIZE, value)
    return crc32(view[end:], value)


def partition_array_crc32(entries: Iterable[ReadableBuffer]) -> int:
    """Return the CRC32 of a partition entry array given as its raw slots.

    Empty slots must be included; the result equals the CRC32 of the concatenated
    slots.
    """
    value = 0
    for entry in entries:
        value = crc32(entry, value)
    return value
