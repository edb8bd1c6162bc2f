"""Tests for the ``fixer`` module."""

from uuid import UUID

import pytest

from partinfo import fixer
from partinfo.base import (
    InternalRoundTripError,
    InvalidSignatureError,
    NoValidTableError,
)
from partinfo.gpt import Copy, PartitionEntry, Table
from partinfo.image import MemoryImage

from .conftest import SAMPLE_LAST_USABLE_LBA, gpt_disk_size, sample_partition


class DiscardingImage(MemoryImage):
    """``MemoryImage`` silently dropping all writes."""

    def write_at(self, offset, b):
        pass


def sectors(image: MemoryImage, lba: int, count: int, sector_size: int) -> bytes:
    return bytes(image.buffer[lba * sector_size : (lba + count) * sector_size])


def test_read_copies(sample_table, gpt_image, sector_size):
    """Test that both copies are read independently."""
    gpt_image.buffer[sector_size : sector_size * 2] = b'\x00' * sector_size
    copies = fixer.read_copies(gpt_image, sector_size)

    assert isinstance(copies[Copy.PRIMARY], InvalidSignatureError)
    assert isinstance(copies[Copy.SECONDARY], Table)
    assert copies[Copy.SECONDARY].mirrors(sample_table)


class TestCheck:
    """Tests for ``check()``."""

    def test_healthy(self, gpt_image, sector_size):
        report = fixer.check(gpt_image, sector_size)

        assert report.ok
        assert report.consistent
        for copy in Copy:
            assert report[copy].copy is copy
            assert report[copy].read
            assert report[copy].error is None
            assert report[copy].header_checksum_valid
            assert report[copy].partition_array_checksum_valid
            assert not report[copy].repaired

    def test_stale_checksum(self, gpt_image, sector_size):
        """Test that a stale checksum is reported without writing anything."""
        gpt_image.buffer[sector_size + 88 : sector_size + 92] = b'\x00' * 4
        before = bytes(gpt_image.buffer)
        report = fixer.check(gpt_image, sector_size)

        assert not report.ok
        assert report.primary.read
        assert not report.primary.partition_array_checksum_valid
        assert not report.primary.header_checksum_valid
        assert report.secondary.ok
        assert bytes(gpt_image.buffer) == before

    def test_divergent(self, sample_table, gpt_image, sector_size):
        """Test that copies which disagree are reported as inconsistent."""
        other = Table.new(
            [sample_partition(100, 10)],
            gpt_image.size,
            sector_size,
            disk_guid=sample_table.disk_guid,
        )
        other.write(gpt_image, Copy.SECONDARY, sector_size)
        report = fixer.check(gpt_image, sector_size)

        assert report.primary.ok
        assert report.secondary.ok
        assert not report.consistent
        assert not report.ok


class TestRepair:
    """Tests for ``repair()``."""

    def test_stale_partition_array_checksum(self, sample_table, gpt_image, sector_size):
        """Test repairing a primary copy whose partition entry array checksum was
        zeroed.
        """
        gpt_image.buffer[sector_size + 88 : sector_size + 92] = b'\x00' * 4
        array_sectors = -(-128 * 128 // sector_size)
        secondary_lba = sample_table.secondary_header_lba
        secondary_array_lba = secondary_lba - array_sectors
        secondary_before = sectors(
            gpt_image, secondary_array_lba, array_sectors + 1, sector_size
        )

        report = fixer.repair(gpt_image, sector_size, [Copy.PRIMARY])

        assert report.primary.repaired
        assert report.primary.verified
        assert not report.primary.partition_array_checksum_valid  # as found
        assert not report.secondary.repaired
        assert report.consistent
        assert report.ok

        primary = Table.from_source(gpt_image, Copy.PRIMARY, sector_size)
        assert primary.header_checksum_valid
        assert primary.partition_array_checksum_valid
        assert primary == sample_table
        # the secondary copy is left untouched
        assert secondary_before == sectors(
            gpt_image, secondary_array_lba, array_sectors + 1, sector_size
        )

    def test_large_entries_kept(self, sample_table, sector_size):
        """Test that repairing a table with entries larger than 128 bytes keeps the
        trailing bytes of every entry.
        """
        tail = bytearray(128)
        tail[72:76] = b'VEND'
        entry = PartitionEntry.from_bytes(bytes(sample_partition(64, 128)) + tail)
        table = Table(
            (entry,),
            sample_table.disk_guid,
            copy=Copy.PRIMARY,
            primary_header_lba=sample_table.primary_header_lba,
            secondary_header_lba=sample_table.secondary_header_lba,
            first_usable_lba=sample_table.first_usable_lba,
            last_usable_lba=sample_table.last_usable_lba,
            partition_array_lba=sample_table.partition_array_lba,
            partition_entries_count=64,
            partition_entry_size=256,
        )
        image = MemoryImage.new((table.secondary_header_lba + 1) * sector_size)
        table.write_disk(image, sector_size)
        marker = 2 * sector_size + 200
        # stale partition entry array checksum of the primary copy
        image.buffer[sector_size + 88 : sector_size + 92] = b'\x00' * 4

        report = fixer.repair(image, sector_size, [Copy.PRIMARY])

        assert report.primary.verified
        assert report.ok
        assert image.buffer[marker : marker + 4] == b'VEND'
        primary = Table.from_source(image, Copy.PRIMARY, sector_size)
        assert primary.checksums_valid
        assert primary.partitions[0].tail == bytes(tail)

    def test_repair_both(self, sample_table, gpt_image, sector_size):
        """Test that repairing copies with correct checksums keeps them as they
        are.
        """
        before = bytes(gpt_image.buffer)
        report = fixer.repair(gpt_image, sector_size)

        assert report.ok
        assert report.primary.repaired
        assert report.secondary.repaired
        assert bytes(gpt_image.buffer) == before

    def test_rebuild_secondary(self, sample_table, gpt_image, sector_size):
        """Test rebuilding a destroyed secondary copy from the primary copy."""
        secondary_lba = sample_table.secondary_header_lba
        gpt_image.buffer[secondary_lba * sector_size :] = b'\x00' * sector_size

        report = fixer.repair(
            gpt_image,
            sector_size,
            [Copy.SECONDARY],
            sources={Copy.SECONDARY: sample_table},
        )

        assert not report.secondary.read
        assert isinstance(report.secondary.error, InvalidSignatureError)
        assert report.secondary.repaired
        assert report.secondary.verified
        assert report.ok

        secondary = Table.from_source(gpt_image, Copy.SECONDARY, sector_size)
        assert secondary.mirrors(sample_table)
        assert secondary.checksums_valid

    def test_lost_secondary_without_source(self, sample_table, gpt_image, sector_size):
        """Test that a copy which can neither be read nor has a source is left
        alone.
        """
        secondary_lba = sample_table.secondary_header_lba
        gpt_image.buffer[secondary_lba * sector_size :] = b'\x00' * sector_size

        report = fixer.repair(gpt_image, sector_size)

        assert report.primary.ok
        assert not report.secondary.repaired
        assert not report.secondary.ok
        assert isinstance(report.secondary.error, InvalidSignatureError)
        assert not report.consistent
        assert not report.ok

    def test_divergent_not_reconciled(self, sample_table, gpt_image, sector_size):
        """Test that each copy is repaired from its own content."""
        other = Table.new(
            [sample_partition(100, 10)],
            gpt_image.size,
            sector_size,
            disk_guid=UUID(int=7),
        )
        other.write(gpt_image, Copy.SECONDARY, sector_size)
        report = fixer.repair(gpt_image, sector_size)

        assert report.primary.verified
        assert report.secondary.verified
        assert not report.consistent

        secondary = Table.from_source(gpt_image, Copy.SECONDARY, sector_size)
        assert secondary.disk_guid == UUID(int=7)

    def test_no_valid_table(self, sector_size):
        image = MemoryImage.new(gpt_disk_size(SAMPLE_LAST_USABLE_LBA, sector_size))
        with pytest.raises(NoValidTableError):
            fixer.repair(image, sector_size)

    def test_source_for_other_disk(self, gpt_image, sector_size):
        """Test that a source placing the header elsewhere than the target expects
        it is rejected before anything is written.
        """
        bigger = Table.new(
            [sample_partition(64, 10)], gpt_image.size + sector_size, sector_size
        )
        before = bytes(gpt_image.buffer)
        with pytest.raises(ValueError):
            fixer.repair(
                gpt_image,
                sector_size,
                [Copy.SECONDARY],
                sources={Copy.SECONDARY: bigger},
            )
        assert bytes(gpt_image.buffer) == before

    def test_round_trip_failure(self, gpt_image, sector_size):
        """Test that a rewritten copy which does not read back with valid
        checksums is reported as an internal error.
        """
        gpt_image.buffer[sector_size + 88 : sector_size + 92] = b'\x00' * 4
        image = DiscardingImage(gpt_image.buffer)

        with pytest.raises(InternalRoundTripError):
            fixer.repair(image, sector_size, [Copy.PRIMARY])
