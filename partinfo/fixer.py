"""Checking and repairing both copies of a GUID partition table.

Each copy is read on its own. Its own header fields and partition entries are
authoritative for its content; the checksums are recomputed from them, so a copy
whose only defect is a stale checksum is repaired without touching anything else.
Copies whose content diverges are reported, not reconciled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, Mapping, Union

from .base import (
    InternalRoundTripError,
    NoValidTableError,
    ValidationError,
    check_sector_size,
)
from .gpt import PRIMARY_HEADER_LBA, Copy, Table

if TYPE_CHECKING:
    from .typing import ByteSource, ByteStore

__all__ = ['CopyReport', 'RepairReport', 'read_copies', 'check', 'repair']


log = logging.getLogger(__name__)


ReadResult = Union[Table, ValidationError]


@dataclass(frozen=True)
class CopyReport:
    """Outcome of checking or repairing one copy of a GUID partition table.

    ``read``, ``error`` and both checksum flags describe the copy as it was found.
    ``repaired`` tells whether the copy was rewritten and ``verified`` whether the
    rewritten copy read back with valid checksums.
    """

    copy: Copy
    read: bool
    error: ValidationError | None = None
    header_checksum_valid: bool = False
    partition_array_checksum_valid: bool = False
    repaired: bool = False
    verified: bool = False

    @property
    def ok(self) -> bool:
        """Whether the copy is now readable with valid checksums."""
        if self.repaired:
            return self.verified
        return (
            self.read
            and self.header_checksum_valid
            and self.partition_array_checksum_valid
        )


@dataclass(frozen=True)
class RepairReport:
    """Outcome of checking or repairing both copies of a GUID partition table.

    ``consistent`` tells whether both copies could be read and agree with each
    other on their content.
    """

    primary: CopyReport
    secondary: CopyReport
    consistent: bool

    def __getitem__(self, copy: Copy) -> CopyReport:
        return self.primary if copy is Copy.PRIMARY else self.secondary

    @property
    def ok(self) -> bool:
        return self.primary.ok and self.secondary.ok and self.consistent


def _copy_report(
    copy: Copy, result: ReadResult, *, repaired: bool = False, verified: bool = False
) -> CopyReport:
    if isinstance(result, Table):
        return CopyReport(
            copy,
            True,
            header_checksum_valid=result.header_checksum_valid,
            partition_array_checksum_valid=result.partition_array_checksum_valid,
            repaired=repaired,
            verified=verified,
        )
    return CopyReport(copy, False, error=result, repaired=repaired, verified=verified)


def _consistent(tables: Mapping[Copy, ReadResult]) -> bool:
    primary = tables[Copy.PRIMARY]
    secondary = tables[Copy.SECONDARY]
    if not isinstance(primary, Table) or not isinstance(secondary, Table):
        return False
    if not primary.mirrors(secondary):
        log.warning(f'GPT copies diverge: {primary!r} and {secondary!r}')
        return False
    return True


def read_copies(
    source: ByteSource, sector_size: int, *, disk_size: int | None = None
) -> Dict[Copy, ReadResult]:
    """Read both copies of the GUID partition table on ``source`` independently.

    Returns a mapping of each copy to its table or to the ``ValidationError`` that
    prevented reading it.
    """
    check_sector_size(sector_size)
    copies: dict[Copy, ReadResult] = {}
    for copy in Copy:
        try:
            copies[copy] = Table.from_source(
                source, copy, sector_size, disk_size=disk_size
            )
        except ValidationError as e:
            log.debug(f'Cannot read {copy.value} GPT: {e}')
            copies[copy] = e
    return copies


def check(
    source: ByteSource, sector_size: int, *, disk_size: int | None = None
) -> RepairReport:
    """Check both copies of the GUID partition table on ``source`` without
    writing anything.
    """
    copies = read_copies(source, sector_size, disk_size=disk_size)
    for copy, result in copies.items():
        if isinstance(result, Table) and not result.checksums_valid:
            log.warning(f'Checksum mismatch in {copy.value} GPT')
    return RepairReport(
        _copy_report(Copy.PRIMARY, copies[Copy.PRIMARY]),
        _copy_report(Copy.SECONDARY, copies[Copy.SECONDARY]),
        _consistent(copies),
    )


def repair(
    target: ByteStore,
    sector_size: int,
    copies: Iterable[Copy] = (Copy.PRIMARY, Copy.SECONDARY),
    *,
    sources: Mapping[Copy, Table] | None = None,
    disk_size: int | None = None,
) -> RepairReport:
    """Rewrite the requested copies of the GUID partition table on ``target`` with
    freshly computed checksums.

    ``target`` must be readable as well. Each copy is rewritten from the table
    given for it in ``sources``, by default from its own content as read from
    ``target``. Passing the primary table as source of the secondary copy rebuilds
    a lost backup. Copies that can neither be read nor have a source are left
    untouched.

    Raises ``NoValidTableError`` if neither copy can be read and
    ``InternalRoundTripError`` if a rewritten copy does not read back with valid
    checksums.
    """
    check_sector_size(sector_size)
    if disk_size is None:
        disk_size = target.size
    copies = tuple(copies)
    sources = {} if sources is None else dict(sources)

    found = read_copies(target, sector_size, disk_size=disk_size)
    if not any(isinstance(result, Table) for result in found.values()):
        raise NoValidTableError(
            f'Neither copy of the GUID partition table can be read (primary: '
            f'{found[Copy.PRIMARY]}, secondary: {found[Copy.SECONDARY]})'
        )

    last_lba = disk_size // sector_size - 1
    after: dict[Copy, ReadResult] = dict(found)
    reports: dict[Copy, CopyReport] = {}

    for copy in Copy:
        result = found[copy]
        table = sources.get(copy, result)

        if copy not in copies or not isinstance(table, Table):
            if copy in copies:
                log.warning(f'No table to repair {copy.value} GPT from')
            reports[copy] = _copy_report(copy, result)
            continue

        if isinstance(result, Table) and not result.checksums_valid:
            log.warning(f'Checksum mismatch in {copy.value} GPT')

        expected_lba = PRIMARY_HEADER_LBA if copy is Copy.PRIMARY else last_lba
        header_lba = table.encode(copy, sector_size).header_lba
        if header_lba != expected_lba:
            raise ValueError(
                f'{copy.value.capitalize()} GPT header belongs at LBA {expected_lba}, '
                f'table places it at LBA {header_lba}'
            )
        table.write(target, copy, sector_size)
        log.info(f'Rewrote {copy.value} GPT at LBA {header_lba}')

        try:
            written = Table.from_source(target, copy, sector_size, disk_size=disk_size)
        except ValidationError as e:
            raise InternalRoundTripError(
                f'Rewritten {copy.value} GPT cannot be read back'
            ) from e
        if not written.checksums_valid:
            raise InternalRoundTripError(
                f'Rewritten {copy.value} GPT does not read back with valid checksums'
            )

        after[copy] = written
        reports[copy] = _copy_report(copy, result, repaired=True, verified=True)

    return RepairReport(
        reports[Copy.PRIMARY], reports[Copy.SECONDARY], _consistent(after)
    )
