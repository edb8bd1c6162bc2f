"""MBR partitioning.

See https://en.wikipedia.org/wiki/Master_boot_record.
See https://wiki.osdev.org/Partition_Table.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Iterable

from .base import TruncatedInputError, check_sector_size
from .layout import MBR_SIZE, MbrLayout, MbrPartitionEntryLayout
from .table import check_overlapping

if TYPE_CHECKING:
    from .typing import ByteSink, ByteSource

__all__ = ['Table', 'PartitionEntry', 'PartitionType']


log = logging.getLogger(__name__)


BOOT_CODE_SIZE = 446
PARTITION_ENTRIES_COUNT = 4

SIGNATURE = b'\x55\xaa'
STATUS_ACTIVE = 0x80
STATUS_INACTIVE = 0x00

FOUR_BYTE_MAX = 0xFFFFFFFF

# CHS addressing is only done for the typical logical geometry of 255 heads and 63
# sectors per track exposed by virtually all drives nowadays.
HEADS = 255
SECTORS_PER_TRACK = 63
CHS_OVERFLOW = (1023, 255, 63)  # used for addresses >= CHS_LIMIT

# First LBA which cannot be expressed, circa 8 GiB at 512 bytes per sector.
# (1023, 254, 63) is reserved as well, hence the -1.
CHS_LIMIT = (2**10) * HEADS * SECTORS_PER_TRACK - 1


def _chs_address(lba: int) -> bytes:
    """Return the three-byte cylinder-head-sector address of ``lba`` as used in MBR
    partition entries.

    +---+---+---+---+---+---+---+---+
    |            head 7-0           |  byte 1
    +-------+-----------------------+
    | c 9-8 |        sec 5-0        |  byte 2
    +-------+-----------------------+
    |            cyl 7-0            |  byte 3
    +---+---+---+---+---+---+---+---+
    """
    if lba < 0:
        raise ValueError('LBA must be zero or positive')

    if lba >= CHS_LIMIT:
        cylinder, head, sector = CHS_OVERFLOW
    else:
        # heads == tracks per cylinder
        cylinder, rem = divmod(lba, SECTORS_PER_TRACK * HEADS)
        head, sector = divmod(rem, SECTORS_PER_TRACK)
        sector += 1

    return bytes((head, ((cylinder & 0x300) >> 2) | sector, cylinder & 0xFF))


class PartitionType(IntEnum):
    """Common MBR partition type."""

    EMPTY = 0x00
    FAT12 = 0x01
    FAT16 = 0x04
    EXTENDED_CHS = 0x05
    FAT16B = 0x06
    NTFS = 0x07
    FAT32_CHS = 0x0B
    FAT32_LBA = 0x0C
    FAT16B_LBA = 0x0E
    EXTENDED_LBA = 0x0F
    LINUX_SWAP = 0x82
    LINUX = 0x83
    LINUX_EXTENDED = 0x85
    LINUX_LVM = 0x8E
    HFS = 0xAF
    GPT_PROTECTIVE = 0xEE
    EFI_SYSTEM = 0xEF


class PartitionEntry:
    """MBR partition entry.

    Do not use ``__init__`` directly, use ``PartitionEntry.new()``,
    ``PartitionEntry.new_empty()`` or ``PartitionEntry.from_bytes()`` instead.
    """

    SIZE = len(MbrPartitionEntryLayout)

    def __init__(self, layout: MbrPartitionEntryLayout):
        self._layout = layout

    @classmethod
    def new(
        cls,
        start_lba: int,
        length_lba: int,
        type_: PartitionType | int,
        *,
        bootable: bool = False,
    ) -> PartitionEntry:
        """New non-empty partition entry.

        CHS addresses are derived from the LBA bounds.
        """
        type_int = int(type_)

        if type_int == PartitionType.EMPTY:
            raise ValueError(
                'Use PartitionEntry.new_empty() to create an empty partition entry'
            )
        if not 0 <= type_int <= 0xFF:
            raise ValueError(
                f'Invalid partition type {hex(type_int)}, must be a 1-byte value'
            )

        # LBA 0 is invalid because the partition table resides at LBA 0
        if not 0 < start_lba <= FOUR_BYTE_MAX:
            raise ValueError(
                f'Invalid partition starting sector {start_lba}, must be a 4-byte '
                f'value greater than 0'
            )
        if not 0 < length_lba <= FOUR_BYTE_MAX:
            raise ValueError(
                f'Invalid partition length {length_lba} sectors, must be a 4-byte '
                f'value greater than 0'
            )

        layout = MbrPartitionEntryLayout(
            status=STATUS_ACTIVE if bootable else STATUS_INACTIVE,
            chs_start=_chs_address(start_lba),
            type=type_int,
            chs_end=_chs_address(start_lba + length_lba - 1),
            start_lba=start_lba,
            length_lba=length_lba,
        )
        return cls(layout)

    @classmethod
    def new_empty(cls) -> PartitionEntry:
        """New empty / unused partition entry."""
        return cls.from_bytes(b'\x00' * cls.SIZE)

    @classmethod
    def from_bytes(cls, b: bytes) -> PartitionEntry:
        """Parse partition entry from ``bytes``.

        All fields, including CHS addresses, are kept as found.
        """
        return cls(MbrPartitionEntryLayout.from_bytes(b))

    def __bytes__(self) -> bytes:
        """Get ``bytes`` representation of partition entry."""
        return bytes(self._layout)

    @property
    def status(self) -> int:
        return self._layout.status

    @property
    def bootable(self) -> bool:
        return bool(self._layout.status & STATUS_ACTIVE)  # only check bit 7

    @property
    def chs_start(self) -> bytes:
        """Raw CHS address of the first sector."""
        return self._layout.chs_start

    @property
    def chs_end(self) -> bytes:
        """Raw CHS address of the last sector."""
        return self._layout.chs_end

    @property
    def start_lba(self) -> int:
        """Starting sector of the partition. Inclusive."""
        return self._layout.start_lba

    @property
    def length_lba(self) -> int:
        """Length of the partition in logical sectors."""
        return self._layout.length_lba

    @property
    def end_lba(self) -> int:
        """Ending sector of the partition. Inclusive."""
        return self._layout.start_lba + self._layout.length_lba - 1

    @property
    def type(self) -> int:
        """Partition type."""
        return self._layout.type

    @property
    def empty(self) -> bool:
        """Whether the partition entry is considered empty / unused."""
        return self._layout.type == PartitionType.EMPTY or self._layout.length_lba == 0

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, PartitionEntry):
            return self._layout == other._layout
        return NotImplemented

    def __repr__(self) -> str:
        return (
            f'mbr.{self.__class__.__name__}(start_lba={self.start_lba}, '
            f'end_lba={self.end_lba}, type={hex(self.type)}, '
            f'bootable={self.bootable})'
        )


class Table:
    """Classical master boot record holding an MBR partition table.

    The boot signature is recorded as found; ``is_valid`` tells whether it matches.

    Do not use ``__init__`` directly, use ``Table.new()``, ``Table.new_protective()``
    or ``Table.from_bytes()`` instead.
    """

    SIZE = MBR_SIZE

    def __init__(self, layout: MbrLayout):
        self._layout = layout
        layouts = (layout.entry_1, layout.entry_2, layout.entry_3, layout.entry_4)
        self._entries = tuple(PartitionEntry(entry) for entry in layouts)

    @classmethod
    def new(
        cls, partitions: Iterable[PartitionEntry], *, boot_code: bytes = b''
    ) -> Table:
        """New partition table with a valid boot signature.

        Up to four partition entries may be passed; the remaining slots are filled
        with empty entries.
        """
        entries = list(partitions)

        if len(entries) > PARTITION_ENTRIES_COUNT:
            raise ValueError(
                f'Can only create a maximum of {PARTITION_ENTRIES_COUNT} partitions, '
                f'got {len(entries)} partition entries'
            )
        if len(boot_code) > BOOT_CODE_SIZE:
            raise ValueError(
                f'MBR boot code can be at most {BOOT_CODE_SIZE} bytes long, got '
                f'{len(boot_code)} bytes'
            )
        # only warn to allow for hybrid MBRs
        check_overlapping(entries, warn=True)

        empty_count = PARTITION_ENTRIES_COUNT - len(entries)
        entries += [PartitionEntry.new_empty()] * empty_count
        # skipcq: PYL-W0212
        # noinspection PyProtectedMember
        layout = MbrLayout(
            boot_code.ljust(BOOT_CODE_SIZE, b'\x00'),
            *(entry._layout for entry in entries),
            SIGNATURE,
        )
        return cls(layout)

    @classmethod
    def new_protective(cls, sectors_count: int, sector_size: int) -> Table:
        """New protective MBR for a GPT disk of ``sectors_count`` logical sectors.

        The only partition covers the disk starting at LBA 1, capped at the largest
        size a 4-byte sector count can express.
        """
        check_sector_size(sector_size)
        if sectors_count < 2:
            raise ValueError(
                f'Disk must have at least 2 sectors, got {sectors_count} sectors'
            )
        length_lba = min(sectors_count - 1, FOUR_BYTE_MAX)
        entry = PartitionEntry.new(1, length_lba, PartitionType.GPT_PROTECTIVE)
        return cls.new((entry,))

    @classmethod
    def from_bytes(cls, b: bytes) -> Table:
        """Parse master boot record from ``bytes``.

        Only the first 512 bytes are used, so a whole sector may be passed. An
        invalid boot signature is recorded, not rejected.
        """
        if len(b) < cls.SIZE:
            raise TruncatedInputError(
                f'MBR must be {cls.SIZE} bytes long, got {len(b)} bytes'
            )
        table = cls(MbrLayout.from_bytes(b[: cls.SIZE]))
        if not table.is_valid:
            log.debug(f'Invalid MBR signature {table.signature!r}')
        return table

    @classmethod
    def from_source(cls, source: ByteSource, sector_size: int) -> Table:
        """Parse master boot record from LBA 0 of ``source``."""
        check_sector_size(sector_size)
        return cls.from_bytes(source.read_at(0, sector_size))

    def __bytes__(self) -> bytes:
        """Get ``bytes`` representation of master boot record."""
        return bytes(self._layout)

    def write(self, sink: ByteSink, sector_size: int) -> None:
        """Write master boot record to LBA 0 of ``sink``, filling the rest of the
        sector with zeroes.
        """
        check_sector_size(sector_size)
        sink.write_at(0, bytes(self).ljust(sector_size, b'\x00'))
        log.debug(f'Wrote {self!r}')

    @property
    def entries(self) -> tuple[PartitionEntry, ...]:
        """All four partition entries in slot order, including empty ones."""
        return self._entries

    @property
    def partitions(self) -> tuple[PartitionEntry, ...]:
        """Non-empty partition entries in slot order."""
        return tuple(entry for entry in self._entries if not entry.empty)

    @property
    def boot_code(self) -> bytes:
        return self._layout.boot_code

    @property
    def signature(self) -> bytes:
        return self._layout.signature

    @property
    def is_valid(self) -> bool:
        """Whether the boot signature is ``0x55 0xAA``."""
        return self._layout.signature == SIGNATURE

    @property
    def is_protective(self) -> bool:
        """Whether this is a protective MBR preceding a GUID partition table."""
        return any(p.type == PartitionType.GPT_PROTECTIVE for p in self.partitions)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Table):
            return self._layout == other._layout
        return NotImplemented

    def __repr__(self) -> str:
        return f'mbr.{self.__class__.__name__}({len(self.partitions)})'
