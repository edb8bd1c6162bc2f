"""Wire layouts of the MBR and GPT on-disk structures.

All multi-byte integers are little-endian. GUIDs use the mixed-endian on-disk
form. See https://uefi.org/specifications, chapter 5.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from typing_extensions import Annotated

from .bytestruct import ByteStruct

__all__ = [
    'MbrPartitionEntryLayout',
    'MbrLayout',
    'GptHeaderLayout',
    'GptPartitionEntryLayout',
    'MBR_SIZE',
    'MBR_PARTITION_ENTRY_SIZE',
    'GPT_HEADER_SIZE',
    'GPT_PARTITION_ENTRY_SIZE',
    'GPT_HEADER_CRC32_OFFSET',
]


@dataclass(frozen=True)
class MbrPartitionEntryLayout(ByteStruct):
    """Classical MBR partition entry.

    CHS addresses are kept as the raw three bytes found on disk.
    """

    status: Annotated[int, 1]  # bit 7 set means bootable
    chs_start: Annotated[bytes, 3]
    type: Annotated[int, 1]
    chs_end: Annotated[bytes, 3]
    start_lba: Annotated[int, 4]
    length_lba: Annotated[int, 4]


@dataclass(frozen=True)
class MbrLayout(ByteStruct):
    """Classical master boot record."""

    boot_code: Annotated[bytes, 446]
    entry_1: MbrPartitionEntryLayout
    entry_2: MbrPartitionEntryLayout
    entry_3: MbrPartitionEntryLayout
    entry_4: MbrPartitionEntryLayout
    signature: Annotated[bytes, 2]


@dataclass(frozen=True)
class GptHeaderLayout(ByteStruct):
    """GPT header, without the zeroed rest of its sector."""

    signature: Annotated[bytes, 8]
    revision: Annotated[int, 4]
    header_size: Annotated[int, 4]
    header_crc32: Annotated[int, 4]
    reserved: Annotated[bytes, 4]
    header_lba: Annotated[int, 8]
    alternate_header_lba: Annotated[int, 8]
    first_usable_lba: Annotated[int, 8]
    last_usable_lba: Annotated[int, 8]
    disk_guid: Annotated[UUID, 16]
    partition_array_lba: Annotated[int, 8]
    partition_entries_count: Annotated[int, 4]
    partition_entry_size: Annotated[int, 4]
    partition_array_crc32: Annotated[int, 4]


@dataclass(frozen=True)
class GptPartitionEntryLayout(ByteStruct):
    """GPT partition entry.

    Entries larger than 128 bytes are allowed by the standard; the bytes after the
    first 128 are not part of this layout.
    """

    type: Annotated[UUID, 16]
    guid: Annotated[UUID, 16]
    start_lba: Annotated[int, 8]
    end_lba: Annotated[int, 8]  # inclusive
    attributes: Annotated[int, 8]
    name: Annotated[str, 72, 'utf-16le']  # 36 UTF-16 code units


MBR_SIZE = len(MbrLayout)  # 512
MBR_PARTITION_ENTRY_SIZE = len(MbrPartitionEntryLayout)  # 16
GPT_HEADER_SIZE = len(GptHeaderLayout)  # 92
GPT_PARTITION_ENTRY_SIZE = len(GptPartitionEntryLayout)  # 128
GPT_HEADER_CRC32_OFFSET = GptHeaderLayout.offset_of('header_crc32')  # 16
