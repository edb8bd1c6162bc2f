"""Fixtures used across the test suite."""

import os
from pathlib import Path
from tempfile import mkstemp
from uuid import UUID

import pytest

from partinfo import gpt
from partinfo.image import MemoryImage

DISK_GUID = UUID('11111111-2222-3333-4444-555555555555')
PARTITION_GUID = UUID('66666666-7777-8888-9999-AAAAAAAAAAAA')
SAMPLE_LAST_USABLE_LBA = 255


@pytest.fixture
def tempfile():
    """Fixture providing a new temporary file for testing purposes.

    Returns a ``pathlib.Path`` object representing the path of the temporary file.
    """
    fd, path_str = mkstemp()
    os.close(fd)  # we are going to use a Path object instead
    path = Path(path_str)
    yield path
    path.unlink(missing_ok=True)  # clean up


@pytest.fixture
def new_tempfile(tempfile):
    """Fixture providing a path for a file which does not exist yet."""
    tempfile.unlink()
    return tempfile


def sample_partition(
    start_lba: int = 2048, length_lba: int = 204800, **kwargs
) -> gpt.PartitionEntry:
    """Return a basic data partition, by default spanning LBA 2048 to 206847."""
    kwargs.setdefault('guid', PARTITION_GUID)
    kwargs.setdefault('name', 'DATA')
    return gpt.PartitionEntry.new(
        start_lba, length_lba, gpt.PartitionType.MICROSOFT_BASIC_DATA, **kwargs
    )


def gpt_disk_size(last_usable_lba: int, sector_size: int, entries: int = 128) -> int:
    """Return the size of a disk whose last usable LBA is ``last_usable_lba`` when
    partitioned with a GUID partition table of ``entries`` partition entries.
    """
    array_sectors = -(-entries * gpt.PartitionEntry.SIZE // sector_size)
    return (last_usable_lba + array_sectors + 2) * sector_size


@pytest.fixture(params=[512, 4096], ids=['512', '4096'])
def sector_size(request):
    """Fixture providing the common logical sector sizes."""
    return request.param


@pytest.fixture
def sample_table(sector_size):
    """Fixture providing a GUID partition table with a single basic data partition
    spanning LBA 64 to 191 on a small disk.
    """
    disk_size = gpt_disk_size(SAMPLE_LAST_USABLE_LBA, sector_size)
    partition = sample_partition(64, 128)
    return gpt.Table.new([partition], disk_size, sector_size, disk_guid=DISK_GUID)


@pytest.fixture
def gpt_image(sample_table, sector_size):
    """Fixture providing a ``MemoryImage`` partitioned with ``sample_table``,
    including a protective MBR.
    """
    disk_size = (sample_table.secondary_header_lba + 1) * sector_size
    image = MemoryImage.new(disk_size)
    sample_table.write_disk(image, sector_size)
    return image
