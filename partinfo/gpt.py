"""GPT partitioning.

A GUID partition table exists twice on a disk: the primary copy has its header at
LBA 1 followed by the partition entry array, the secondary (backup) copy has its
header at the last LBA of the disk preceded by its own partition entry array. Each
header carries a CRC32 of itself and a CRC32 of its partition entry array.

See https://uefi.org/specifications.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import replace
from enum import Enum, Flag
from typing import TYPE_CHECKING, Any, Iterable, NamedTuple
from uuid import UUID, uuid4

from . import mbr
from .base import (
    InvalidSignatureError,
    TruncatedInputError,
    ValidationError,
    ValidationWarning,
    check_sector_size,
    is_power_of_two,
)
from .crc import header_crc32, partition_array_crc32
from .layout import (
    GPT_HEADER_SIZE,
    GPT_PARTITION_ENTRY_SIZE,
    GptHeaderLayout,
    GptPartitionEntryLayout,
)
from .table import check_bounds, check_overlapping

if TYPE_CHECKING:
    from .typing import ByteSink, ByteSource

__all__ = [
    'Copy',
    'Table',
    'EncodedTable',
    'PartitionEntry',
    'PartitionAttributes',
    'PartitionType',
]


log = logging.getLogger(__name__)


PRIMARY_HEADER_LBA = 1

SIGNATURE = b'EFI PART'
REVISION = 0x00010000  # 1.0
HEADER_SIZE = GPT_HEADER_SIZE
RESERVED = b'\x00' * 4
MIN_PARTITION_ENTRIES = 128
MAX_PARTITION_ARRAY_SIZE = 1 << 24  # 16 MiB, 131072 entries of 128 bytes

PARTITION_NAME_MAX_LEN = 36  # 36 characters, 72 bytes with encoding UTF-16LE
EIGHT_BYTE_MAX = (1 << 64) - 1


def _partition_array_sectors(entries_count: int, entry_size: int, lss: int) -> int:
    """Return how many whole sectors a partition entry array of ``entries_count``
    entries of ``entry_size`` bytes occupies, given a logical sector size of ``lss``.
    """
    return -(-entries_count * entry_size // lss)


def _read_sectors(source: ByteSource, lba: int, count: int, lss: int) -> bytes:
    """Read ``count`` sectors starting at ``lba`` from ``source``."""
    size = count * lss
    b = source.read_at(lba * lss, size)
    if len(b) != size:
        raise TruncatedInputError(
            f'Expected {size} bytes at LBA {lba}, got {len(b)} bytes'
        )
    return b


class Copy(Enum):
    """Copy of a GUID partition table on a disk."""

    PRIMARY = 'primary'
    SECONDARY = 'secondary'


class PartitionType(Enum):
    """Common GPT partition type."""

    UNUSED = UUID('00000000-0000-0000-0000-000000000000')
    MBR_PARTITION_SCHEME = UUID('024DEE41-33E7-11D3-9D69-0008C781F39F')
    EFI_SYSTEM_PARTITION = UUID('C12A7328-F81F-11D2-BA4B-00A0C93EC93B')
    BIOS_BOOT = UUID('21686148-6449-6E6F-744E-656564454649')

    MICROSOFT_BASIC_DATA = UUID('EBD0A0A2-B9E5-4433-87C0-68B6B72699C7')
    MICROSOFT_RESERVED = UUID('E3C9E316-0B5C-4DB8-817D-F92DF00215AE')
    MICROSOFT_RECOVERY = UUID('DE94BBA4-06D1-4D40-A16A-BFD50179D6AC')
    MICROSOFT_LDM_METADATA = UUID('5808C8AA-7E8F-42E0-85D2-E1E90434CFB3')
    MICROSOFT_LDM_DATA = UUID('AF9B60A0-1431-4F62-BC68-3311714A69AD')

    LINUX_FILESYSTEM = UUID('0FC63DAF-8483-4772-8E79-3D69D8477DE4')
    LINUX_SWAP = UUID('0657FD6D-A4AB-43C4-84E5-0933C84B4F4F')
    LINUX_LVM = UUID('E6D6D379-F507-44C2-A23C-238F2A3DF928')
    LINUX_RAID = UUID('A19D880F-05FC-4D3B-A006-743F0F84911E')
    LINUX_ROOT_X86_64 = UUID('4F68BCE3-E8CD-4DB1-96E7-FBCAF984B709')
    LINUX_ROOT_ARM64 = UUID('B921B045-1DF0-41C3-AF44-4C6F280D3FAE')

    APPLE_HFS_PLUS = UUID('48465300-0000-11AA-AA11-00306543ECAC')
    APPLE_APFS = UUID('7C3457EF-0000-11AA-AA11-00306543ECAC')


class PartitionAttributes(Flag):
    """GPT partition attribute flags.

    - Bits 0-2 are defined for all partition types.
    - Bits 3-47 are reserved for future use.
    - Bits 48-63 are defined by the individual partition type. The ones listed here
        are those of Microsoft basic data partitions.
    """

    REQUIRED = 1 << 0  # required for the platform to function
    EFI_IGNORE = 1 << 1  # file system mappings will not be created
    LEGACY_BIOS_BOOTABLE = 1 << 2  # equivalent of MBR active flag
    READ_ONLY = 1 << 60
    SHADOW_COPY = 1 << 61
    HIDDEN = 1 << 62
    NO_DRIVE_LETTER = 1 << 63


class PartitionEntry:
    """GPT partition entry.

    Do not use ``__init__`` directly, use ``PartitionEntry.new()``,
    ``PartitionEntry.new_empty()`` or ``PartitionEntry.from_bytes()`` instead.
    """

    SIZE = GPT_PARTITION_ENTRY_SIZE

    def __init__(self, layout: GptPartitionEntryLayout, tail: bytes = b''):
        self._layout = layout
        self._tail = tail

    @classmethod
    def new(
        cls,
        start_lba: int,
        length_lba: int,
        type_: PartitionType | UUID,
        *,
        attributes: PartitionAttributes | int = 0,
        guid: UUID | None = None,
        name: str = '',
    ) -> PartitionEntry:
        """New non-empty partition entry.

        ``PartitionType.UNUSED`` must not be passed as ``type_``, use
        ``PartitionEntry.new_empty()`` instead.
        """
        type_uuid = type_.value if isinstance(type_, PartitionType) else type_
        if type_uuid == PartitionType.UNUSED.value:
            raise ValueError(
                'Use PartitionEntry.new_empty() to create an empty partition entry'
            )

        if isinstance(attributes, PartitionAttributes):
            attributes = attributes.value

        end_lba = start_lba + length_lba - 1

        if length_lba <= 0:
            raise ValueError(
                f'Invalid partition length {length_lba} sectors, must be greater than 0'
            )
        if not 2 < start_lba <= EIGHT_BYTE_MAX:
            raise ValueError(
                f'Invalid partition starting sector {start_lba}, must be an 8-byte '
                f'value greater than 2'
            )
        if end_lba > EIGHT_BYTE_MAX:
            raise ValueError(
                f'Invalid partition ending sector {end_lba}, must be an 8-byte value'
            )
        if not 0 <= attributes <= EIGHT_BYTE_MAX:
            raise ValueError(
                f'Invalid partition attributes {hex(attributes)}, must be an 8-byte '
                f'value'
            )
        name = name.rstrip('\x00')
        if len(name) > PARTITION_NAME_MAX_LEN:
            raise ValueError(
                f'Partition name must not be longer than {PARTITION_NAME_MAX_LEN} '
                f'characters, got {name!r}'
            )

        layout = GptPartitionEntryLayout(
            type=type_uuid,
            guid=uuid4() if guid is None else guid,
            start_lba=start_lba,
            end_lba=end_lba,
            attributes=attributes,
            name=name,
        )
        return cls(layout)

    @classmethod
    def new_empty(cls) -> PartitionEntry:
        """New empty / unused partition entry."""
        return cls.from_bytes(b'\x00' * cls.SIZE)

    @classmethod
    def from_bytes(cls, b: bytes) -> PartitionEntry:
        """Parse partition entry from ``bytes``.

        Entries may be longer than 128 bytes; only the first 128 bytes are parsed.
        The remaining bytes are kept as ``tail`` and written back unchanged.
        Bounds are not checked here, see ``Table.from_source()``.
        """
        if len(b) < cls.SIZE:
            raise TruncatedInputError(
                f'GPT partition entry must be a minimum of {cls.SIZE} bytes long, '
                f'got {len(b)} bytes'
            )
        layout = GptPartitionEntryLayout.from_bytes(b[: cls.SIZE])
        return cls(layout, bytes(b[cls.SIZE :]))

    def __bytes__(self) -> bytes:
        """Get ``bytes`` representation of partition entry, including ``tail``."""
        return bytes(self._layout) + self._tail

    def has_attribute(self, attribute: PartitionAttributes) -> bool:
        """Whether the attribute flag ``attribute`` is set."""
        return self._layout.attributes & attribute.value == attribute.value

    @property
    def start_lba(self) -> int:
        """Starting sector of the partition. Inclusive."""
        return self._layout.start_lba

    @property
    def end_lba(self) -> int:
        """Ending sector of the partition. Inclusive."""
        return self._layout.end_lba

    @property
    def length_lba(self) -> int:
        """Length of the partition in logical sectors."""
        return self._layout.end_lba - self._layout.start_lba + 1

    @property
    def type(self) -> UUID:
        """Partition type GUID."""
        return self._layout.type

    @property
    def empty(self) -> bool:
        """Whether the partition entry is considered empty / unused."""
        return self._layout.type == PartitionType.UNUSED.value

    @property
    def attributes(self) -> int:
        """Raw 64-bit attribute flags."""
        return self._layout.attributes

    @property
    def guid(self) -> UUID:
        """Unique partition GUID."""
        return self._layout.guid

    @property
    def name(self) -> str:
        return self._layout.name

    @property
    def tail(self) -> bytes:
        """Bytes of the entry following its first 128 bytes, if the entry was parsed
        from a larger slot.
        """
        return self._tail

    @property
    def required(self) -> bool:
        return self.has_attribute(PartitionAttributes.REQUIRED)

    @property
    def efi_ignore(self) -> bool:
        return self.has_attribute(PartitionAttributes.EFI_IGNORE)

    @property
    def legacy_bios_bootable(self) -> bool:
        return self.has_attribute(PartitionAttributes.LEGACY_BIOS_BOOTABLE)

    @property
    def read_only(self) -> bool:
        return self.has_attribute(PartitionAttributes.READ_ONLY)

    @property
    def shadow_copy(self) -> bool:
        return self.has_attribute(PartitionAttributes.SHADOW_COPY)

    @property
    def hidden(self) -> bool:
        return self.has_attribute(PartitionAttributes.HIDDEN)

    @property
    def no_drive_letter(self) -> bool:
        return self.has_attribute(PartitionAttributes.NO_DRIVE_LETTER)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, PartitionEntry):
            return self._layout == other._layout and self._tail == other._tail
        return NotImplemented

    def __repr__(self) -> str:
        return (
            f'gpt.{self.__class__.__name__}(start_lba={self.start_lba}, '
            f'end_lba={self.end_lba}, type={self.type!r}, '
            f'attributes={hex(self.attributes)}, guid={self.guid!r}, '
            f'name={self.name!r})'
        )


class EncodedTable(NamedTuple):
    """One copy of a GUID partition table in its on-disk form.

    - ``header_lba``: Sector the header belongs at.
    - ``header``: Header sector, zero-filled after the header.
    - ``partition_array_lba``: First sector of the partition entry array.
    - ``partition_array``: Partition entry array, zero-filled to whole sectors.
    """

    header_lba: int
    header: bytes
    partition_array_lba: int
    partition_array: bytes


class Table:
    """GUID partition table.

    The model describes one copy (``copy``) of the table, but the header LBAs are
    stored independently of it: ``primary_header_lba`` and ``secondary_header_lba``
    are swapped into the header's own and alternate LBA fields when encoding.

    Partitions are kept in on-disk order together with the index of the slot of the
    partition entry array they occupy (``slots``), so that empty slots in between
    survive re-encoding.

    ``header_checksum_valid`` and ``partition_array_checksum_valid`` describe the
    bytes the table was parsed from. They are ``True`` for new tables because
    checksums are always computed when encoding.

    Do not use ``__init__`` directly, use ``Table.new()`` or ``Table.from_source()``
    instead.
    """

    def __init__(
        self,
        partitions: Iterable[PartitionEntry],
        disk_guid: UUID,
        *,
        copy: Copy,
        primary_header_lba: int,
        secondary_header_lba: int,
        first_usable_lba: int,
        last_usable_lba: int,
        partition_array_lba: int,
        partition_entries_count: int,
        partition_entry_size: int = GPT_PARTITION_ENTRY_SIZE,
        revision: int = REVISION,
        header_size: int = HEADER_SIZE,
        slots: Iterable[int] | None = None,
        header_checksum_valid: bool = True,
        partition_array_checksum_valid: bool = True,
    ):
        partitions = tuple(partitions)
        slots = tuple(range(len(partitions)) if slots is None else slots)

        if any(p.empty for p in partitions):
            raise ValueError('Empty partition entries must not be passed')
        if len(slots) != len(partitions):
            raise ValueError(
                f'Got {len(slots)} slots for {len(partitions)} partition entries'
            )
        if any(a >= b for a, b in zip(slots, slots[1:])):
            raise ValueError('Slots must be strictly increasing')
        if slots and not (0 <= slots[0] and slots[-1] < partition_entries_count):
            raise ValueError(
                f'Slots must be in range (0, {partition_entries_count - 1})'
            )
        if partition_entry_size < PartitionEntry.SIZE or not is_power_of_two(
            partition_entry_size
        ):
            raise ValueError(
                f'Partition entry size must be a power of 2 of at least '
                f'{PartitionEntry.SIZE} bytes, got {partition_entry_size} bytes'
            )
        if header_size < HEADER_SIZE:
            raise ValueError(
                f'Header size must be at least {HEADER_SIZE} bytes, got {header_size}'
            )

        self._partitions = partitions
        self._slots = slots
        self._disk_guid = disk_guid
        self._copy = copy
        self._primary_header_lba = primary_header_lba
        self._secondary_header_lba = secondary_header_lba
        self._first_usable_lba = first_usable_lba
        self._last_usable_lba = last_usable_lba
        self._partition_array_lba = partition_array_lba
        self._partition_entries_count = partition_entries_count
        self._partition_entry_size = partition_entry_size
        self._revision = revision
        self._header_size = header_size
        self._header_checksum_valid = header_checksum_valid
        self._partition_array_checksum_valid = partition_array_checksum_valid

    @classmethod
    def new(
        cls,
        partitions: Iterable[PartitionEntry],
        disk_size: int,
        sector_size: int,
        *,
        disk_guid: UUID | None = None,
        partition_entries_count: int = MIN_PARTITION_ENTRIES,
    ) -> Table:
        """New partition table for a disk of ``disk_size`` bytes.

        The primary header is placed at LBA 1 followed by its partition entry array,
        the secondary header at the last LBA preceded by its partition entry array.
        Everything in between is usable by partitions.
        """
        check_sector_size(sector_size)
        # strip empty partition entries
        partitions = tuple(p for p in partitions if not p.empty)

        if partition_entries_count < len(partitions):
            raise ValueError(
                f'Partition entry array of {partition_entries_count} entries cannot '
                f'hold {len(partitions)} partitions'
            )

        array_sectors = _partition_array_sectors(
            partition_entries_count, PartitionEntry.SIZE, sector_size
        )
        last_lba = disk_size // sector_size - 1
        first_usable_lba = PRIMARY_HEADER_LBA + 1 + array_sectors
        last_usable_lba = last_lba - array_sectors - 1

        if first_usable_lba > last_usable_lba:
            raise ValueError(
                f'Disk of {disk_size} bytes is too small for a GUID partition table '
                f'with {partition_entries_count} partition entries'
            )

        check_overlapping(partitions)
        for partition in partitions:
            check_bounds(partition, first_usable_lba, last_usable_lba)

        return cls(
            partitions,
            uuid4() if disk_guid is None else disk_guid,
            copy=Copy.PRIMARY,
            primary_header_lba=PRIMARY_HEADER_LBA,
            secondary_header_lba=last_lba,
            first_usable_lba=first_usable_lba,
            last_usable_lba=last_usable_lba,
            partition_array_lba=PRIMARY_HEADER_LBA + 1,
            partition_entries_count=partition_entries_count,
        )

    @classmethod
    def from_source(
        cls,
        source: ByteSource,
        copy: Copy,
        sector_size: int,
        *,
        disk_size: int | None = None,
    ) -> Table:
        """Parse copy ``copy`` of the partition table found on ``source``.

        ``disk_size`` defaults to the size of ``source``; it locates the secondary
        header at the last LBA.

        Raises ``InvalidSignatureError`` if the header signature does not match and
        ``TruncatedInputError`` if ``source`` is too small. Checksum mismatches do not
        raise, they are reported through ``header_checksum_valid`` and
        ``partition_array_checksum_valid``.
        """
        check_sector_size(sector_size)
        lss = sector_size
        if disk_size is None:
            disk_size = source.size

        sectors_count = disk_size // lss
        if sectors_count < 3:
            raise TruncatedInputError(
                f'Disk of {disk_size} bytes is too small to hold a GUID partition '
                f'table'
            )
        last_lba = sectors_count - 1
        header_lba = PRIMARY_HEADER_LBA if copy is Copy.PRIMARY else last_lba
        if copy is Copy.PRIMARY:
            expected_alternate_lba = last_lba
        else:
            expected_alternate_lba = PRIMARY_HEADER_LBA

        header_sector = _read_sectors(source, header_lba, 1, lss)
        header = GptHeaderLayout.from_bytes(header_sector[:HEADER_SIZE])

        if header.signature != SIGNATURE:
            raise InvalidSignatureError(
                f'Invalid GPT signature {header.signature!r} at LBA {header_lba}'
            )
        if not HEADER_SIZE <= header.header_size <= lss:
            raise ValidationError(
                f'Header size specified in GPT header must be in range '
                f'({HEADER_SIZE}, {lss}), got {header.header_size}'
            )
        entry_size = header.partition_entry_size
        if entry_size < PartitionEntry.SIZE or not is_power_of_two(entry_size):
            raise ValidationError(
                f'GPT partition entry size must be a power of 2 of at least '
                f'{PartitionEntry.SIZE} bytes, got {entry_size} bytes'
            )

        header_checksum_valid = (
            header_crc32(header_sector[: header.header_size]) == header.header_crc32
        )

        if header.revision != REVISION:
            warnings.warn(
                f'Unknown GPT header revision {hex(header.revision)}',
                ValidationWarning,
            )
        if header.reserved != RESERVED:
            warnings.warn(
                'Reserved bytes of GPT header are not zero', ValidationWarning
            )
        if header.header_lba != header_lba:
            warnings.warn(
                f'GPT header at LBA {header_lba} claims to be at LBA '
                f'{header.header_lba}',
                ValidationWarning,
            )
        if header.alternate_header_lba != expected_alternate_lba:
            warnings.warn(
                f'Alternate GPT header expected at LBA {expected_alternate_lba}, '
                f'header points to LBA {header.alternate_header_lba}',
                ValidationWarning,
            )

        # partition entry array
        entries_count = header.partition_entries_count
        array_lba = header.partition_array_lba
        array_size = entries_count * entry_size
        array_sectors = _partition_array_sectors(entries_count, entry_size, lss)

        if array_lba + array_sectors > sectors_count:
            raise TruncatedInputError(
                f'Partition entry array of {array_sectors} sectors at LBA {array_lba} '
                f'exceeds disk of {sectors_count} sectors'
            )
        if array_size > MAX_PARTITION_ARRAY_SIZE:
            raise ValidationError(
                f'Partition entry array of {array_size} bytes exceeds the maximum of '
                f'{MAX_PARTITION_ARRAY_SIZE} bytes'
            )
        # last sector might not be fully filled with partition entries
        partition_array = _read_sectors(source, array_lba, array_sectors, lss)
        raw_slots = [
            partition_array[start : start + entry_size]
            for start in range(0, array_size, entry_size)
        ]
        partition_array_checksum_valid = (
            partition_array_crc32(raw_slots) == header.partition_array_crc32
        )

        partitions: list[PartitionEntry] = []
        slots: list[int] = []
        for slot, entry_bytes in enumerate(raw_slots):
            entry = PartitionEntry.from_bytes(entry_bytes)
            if not entry.empty:
                partitions.append(entry)
                slots.append(slot)

        for partition in partitions:
            check_bounds(
                partition, header.first_usable_lba, header.last_usable_lba, warn=True
            )
        check_overlapping(partitions, warn=True)

        if not header_checksum_valid:
            log.debug(f'CRC32 of {copy.value} GPT header does not match')
        if not partition_array_checksum_valid:
            log.debug(f'CRC32 of {copy.value} GPT partition entry array does not match')

        # the copy read determines its own location
        if copy is Copy.PRIMARY:
            primary_header_lba = header_lba
            secondary_header_lba = header.alternate_header_lba
        else:
            primary_header_lba = header.alternate_header_lba
            secondary_header_lba = header_lba

        table = cls(
            partitions,
            header.disk_guid,
            copy=copy,
            primary_header_lba=primary_header_lba,
            secondary_header_lba=secondary_header_lba,
            first_usable_lba=header.first_usable_lba,
            last_usable_lba=header.last_usable_lba,
            partition_array_lba=array_lba,
            partition_entries_count=entries_count,
            partition_entry_size=entry_size,
            revision=header.revision,
            header_size=header.header_size,
            slots=slots,
            header_checksum_valid=header_checksum_valid,
            partition_array_checksum_valid=partition_array_checksum_valid,
        )
        log.debug(f'Parsed {table!r}')
        return table

    def partition_array(self) -> bytes:
        """Get ``bytes`` of the partition entry array, every entry at its slot.

        The result is exactly ``partition_entries_count * partition_entry_size``
        bytes long, which is what the partition entry array CRC32 covers.
        """
        return b''.join(self._raw_slots())

    def _raw_slots(self) -> list[bytes]:
        """Get every slot of the partition entry array, empty ones included.

        Entries are zero padded to the entry size, entries parsed from a larger slot
        keep their trailing bytes.
        """
        entry_size = self._partition_entry_size
        empty = b'\x00' * entry_size
        raw_slots = [empty] * self._partition_entries_count
        for slot, partition in zip(self._slots, self._partitions):
            raw_slots[slot] = bytes(partition)[:entry_size].ljust(entry_size, b'\x00')
        return raw_slots

    def encode(self, copy: Copy, sector_size: int) -> EncodedTable:
        """Get the on-disk form of copy ``copy`` of the partition table.

        Both CRC32 values are computed from the encoded bytes, so the result is
        always self-consistent. The partition entry array location stored in the
        table is used if the table describes ``copy``; otherwise the array is placed
        right after the primary header or right before the secondary header.
        """
        check_sector_size(sector_size)
        lss = sector_size
        if self._header_size > lss:
            raise ValueError(
                f'Header size {self._header_size} exceeds sector size of {lss} bytes'
            )

        raw_slots = self._raw_slots()
        partition_array = b''.join(raw_slots)
        array_sectors = _partition_array_sectors(
            self._partition_entries_count, self._partition_entry_size, lss
        )

        if copy is Copy.PRIMARY:
            header_lba = self._primary_header_lba
            alternate_header_lba = self._secondary_header_lba
            default_array_lba = header_lba + 1
        else:
            header_lba = self._secondary_header_lba
            alternate_header_lba = self._primary_header_lba
            default_array_lba = header_lba - array_sectors

        if copy is self._copy:
            array_lba = self._partition_array_lba
        else:
            array_lba = default_array_lba
        if array_lba < 0:
            raise ValueError(
                f'Partition entry array of {array_sectors} sectors does not fit '
                f'before LBA {header_lba}'
            )

        header = GptHeaderLayout(
            signature=SIGNATURE,
            revision=self._revision,
            header_size=self._header_size,
            header_crc32=0,  # placeholder (!)
            reserved=RESERVED,
            header_lba=header_lba,
            alternate_header_lba=alternate_header_lba,
            first_usable_lba=self._first_usable_lba,
            last_usable_lba=self._last_usable_lba,
            disk_guid=self._disk_guid,
            partition_array_lba=array_lba,
            partition_entries_count=self._partition_entries_count,
            partition_entry_size=self._partition_entry_size,
            partition_array_crc32=partition_array_crc32(raw_slots),
        )
        header_sector = bytes(header).ljust(lss, b'\x00')
        header = replace(
            header, header_crc32=header_crc32(header_sector[: self._header_size])
        )
        header_sector = bytes(header).ljust(lss, b'\x00')

        return EncodedTable(
            header_lba,
            header_sector,
            array_lba,
            partition_array.ljust(array_sectors * lss, b'\x00'),
        )

    def write(self, sink: ByteSink, copy: Copy, sector_size: int) -> EncodedTable:
        """Write copy ``copy`` of the partition table to ``sink``.

        The partition entry array is written before the header. Returns what was
        written.
        """
        encoded = self.encode(copy, sector_size)
        array_offset = encoded.partition_array_lba * sector_size
        sink.write_at(array_offset, encoded.partition_array)
        sink.write_at(encoded.header_lba * sector_size, encoded.header)
        log.debug(
            f'Wrote {copy.value} GPT header at LBA {encoded.header_lba}, partition '
            f'entry array at LBA {encoded.partition_array_lba}'
        )
        return encoded

    def write_disk(
        self, sink: ByteSink, sector_size: int, *, protective_mbr: bool = True
    ) -> None:
        """Write both copies of the partition table to ``sink`` and, by default, a
        protective MBR to LBA 0.

        The secondary header of the table must be at the last LBA of ``sink``.
        """
        check_sector_size(sector_size)
        sectors_count = sink.size // sector_size
        if self._secondary_header_lba != sectors_count - 1:
            raise ValueError(
                f'Secondary GPT header at LBA {self._secondary_header_lba} does not '
                f'match the last LBA {sectors_count - 1} of a disk of {sink.size} '
                f'bytes'
            )
        if protective_mbr:
            protective = mbr.Table.new_protective(sectors_count, sector_size)
            protective.write(sink, sector_size)
        self.write(sink, Copy.PRIMARY, sector_size)
        self.write(sink, Copy.SECONDARY, sector_size)

    def mirrors(self, other: Table) -> bool:
        """Whether ``other`` agrees with this table on everything except the copy it
        describes and its partition entry array location.
        """
        return (
            self._disk_guid == other._disk_guid
            and self._partitions == other._partitions
            and self._slots == other._slots
            and self._primary_header_lba == other._primary_header_lba
            and self._secondary_header_lba == other._secondary_header_lba
            and self._first_usable_lba == other._first_usable_lba
            and self._last_usable_lba == other._last_usable_lba
            and self._partition_entries_count == other._partition_entries_count
            and self._partition_entry_size == other._partition_entry_size
        )

    def has_valid_signature(self) -> bool:
        """Whether the table carries the ``EFI PART`` signature.

        Parsing fails for any other signature, so this is always ``True``.
        """
        return self.signature == SIGNATURE

    @property
    def signature(self) -> bytes:
        return SIGNATURE

    @property
    def copy(self) -> Copy:
        """Copy of the partition table this object describes."""
        return self._copy

    @property
    def partitions(self) -> tuple[PartitionEntry, ...]:
        """Non-empty partition entries in on-disk order."""
        return self._partitions

    @property
    def slots(self) -> tuple[int, ...]:
        """Slot index of each partition within the partition entry array."""
        return self._slots

    @property
    def disk_guid(self) -> UUID:
        return self._disk_guid

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def header_size(self) -> int:
        return self._header_size

    @property
    def primary_header_lba(self) -> int:
        return self._primary_header_lba

    @property
    def secondary_header_lba(self) -> int:
        return self._secondary_header_lba

    @property
    def header_lba(self) -> int:
        """Location of the header of the copy this object describes."""
        if self._copy is Copy.PRIMARY:
            return self._primary_header_lba
        return self._secondary_header_lba

    @property
    def alternate_header_lba(self) -> int:
        """Location of the header of the other copy."""
        if self._copy is Copy.PRIMARY:
            return self._secondary_header_lba
        return self._primary_header_lba

    @property
    def first_usable_lba(self) -> int:
        return self._first_usable_lba

    @property
    def last_usable_lba(self) -> int:
        return self._last_usable_lba

    @property
    def partition_array_lba(self) -> int:
        """Location of the partition entry array of the copy this object
        describes.
        """
        return self._partition_array_lba

    @property
    def partition_entries_count(self) -> int:
        return self._partition_entries_count

    @property
    def partition_entry_size(self) -> int:
        return self._partition_entry_size

    @property
    def header_checksum_valid(self) -> bool:
        """Whether the header CRC32 matched when the table was parsed."""
        return self._header_checksum_valid

    @property
    def partition_array_checksum_valid(self) -> bool:
        """Whether the partition entry array CRC32 matched when the table was
        parsed.
        """
        return self._partition_array_checksum_valid

    @property
    def checksums_valid(self) -> bool:
        return self._header_checksum_valid and self._partition_array_checksum_valid

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Table):
            return (
                self.mirrors(other)
                and self._copy is other._copy
                and self._partition_array_lba == other._partition_array_lba
                and self._revision == other._revision
                and self._header_size == other._header_size
            )
        return NotImplemented

    def __repr__(self) -> str:
        return (
            f'gpt.{self.__class__.__name__}({len(self._partitions)}, '
            f'disk_guid={self._disk_guid!r}, copy={self._copy.value!r})'
        )
