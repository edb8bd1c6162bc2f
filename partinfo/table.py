"""Partition entry protocol shared by the ``mbr`` and ``gpt`` modules and checks of
partition bounds.
"""

from __future__ import annotations

import warnings
from typing import Iterable, Protocol

from .base import BoundsError, BoundsWarning

__all__ = ['PartitionEntry', 'check_bounds', 'check_overlapping']


# noinspection PyPropertyDefinition
class PartitionEntry(Protocol):
    """Partition entry in a partition table."""

    @property
    def start_lba(self) -> int:
        """Starting sector of the partition. Inclusive."""
        ...

    @property
    def end_lba(self) -> int:
        """Ending sector of the partition. Inclusive."""
        ...

    @property
    def empty(self) -> bool:
        """Whether the partition entry is considered empty / unused."""
        ...


def _fail(message: str, warn: bool) -> None:
    if warn:
        warnings.warn(message, BoundsWarning, stacklevel=3)
    else:
        raise BoundsError(message)


def check_overlapping(
    partitions: Iterable[PartitionEntry], *, warn: bool = False
) -> None:
    """Check that the bounds of non-empty partitions don't overlap with each other.

    By default, ``BoundsError`` is raised if any partitions are found to overlap. If
    ``warn`` is ``True``, ``BoundsWarning`` is emitted instead.
    """
    used = sorted(
        (p for p in partitions if not p.empty), key=lambda p: p.start_lba
    )
    for previous, partition in zip(used, used[1:]):
        if partition.start_lba <= previous.end_lba:
            _fail(
                f'Partition with bounds (LBA {partition.start_lba}, LBA '
                f'{partition.end_lba}) overlaps partition with bounds (LBA '
                f'{previous.start_lba}, LBA {previous.end_lba})',
                warn,
            )
            return


def check_bounds(
    partition: PartitionEntry, min_lba: int, max_lba: int, *, warn: bool = False
) -> None:
    """Check if a partition's bounds fall within the range of ``(min_lba, max_lba)``.

    Both ``min_lba`` and ``max_lba`` are *inclusive*.

    By default, ``BoundsError`` is raised if the partition doesn't fall within the
    range. If ``warn`` is ``True``, ``BoundsWarning`` is emitted instead.
    """
    start = partition.start_lba
    end = partition.end_lba

    if start < min_lba or end > max_lba or start > end:
        _fail(
            f'Partition with bounds (LBA {start}, LBA {end}) does not fall within '
            f'the allowed range of (LBA {min_lba}, LBA {max_lba})',
            warn,
        )
