"""Tests for the ``image`` module."""

import pytest

from partinfo import gpt, mbr
from partinfo.base import TruncatedInputError
from partinfo.image import Image, MemoryImage, read_table


class TestImage:
    """Tests for ``Image``."""

    def test_new(self, new_tempfile):
        """Test that a new image is zero-filled and has the requested size."""
        with Image.new(new_tempfile, 4096) as image:
            assert image.size == 4096
            assert not image.device
            assert image.writable
            assert image.read_at(0, 4096) == b'\x00' * 4096
        assert image.closed
        assert new_tempfile.stat().st_size == 4096

    def test_new_existing(self, tempfile):
        with pytest.raises(FileExistsError):
            Image.new(tempfile, 4096)

    def test_new_empty(self, new_tempfile):
        with pytest.raises(ValueError):
            Image.new(new_tempfile, 0)
        assert not new_tempfile.exists()

    def test_read_write(self, new_tempfile):
        with Image.new(new_tempfile, 4096) as image:
            image.write_at(1000, b'partinfo')
            image.write_at(4090, bytearray(b'\x01' * 6))
            image.flush()

        with Image.open(new_tempfile) as image:
            assert image.read_at(1000, 8) == b'partinfo'
            assert image.read_at(4090, 6) == b'\x01' * 6
            assert image.read_at(4096, 0) == b''

    @pytest.mark.parametrize(['offset', 'size'], [(4096, 1), (4000, 97), (0, 4097)])
    def test_read_out_of_bounds(self, new_tempfile, offset, size):
        with Image.new(new_tempfile, 4096) as image:
            with pytest.raises(TruncatedInputError):
                image.read_at(offset, size)

    @pytest.mark.parametrize(['offset', 'size'], [(4096, 1), (4000, 97), (0, 4097)])
    def test_write_out_of_bounds(self, new_tempfile, offset, size):
        with Image.new(new_tempfile, 4096) as image:
            with pytest.raises(ValueError):
                image.write_at(offset, b'\x00' * size)
            assert image.size == 4096

    def test_negative_arguments(self, new_tempfile):
        with Image.new(new_tempfile, 4096) as image:
            with pytest.raises(ValueError):
                image.read_at(-1, 1)
            with pytest.raises(ValueError):
                image.read_at(0, -1)
            with pytest.raises(ValueError):
                image.write_at(-1, b'\x00')

    def test_readonly(self, tempfile):
        tempfile.write_bytes(b'\x00' * 512)
        with Image.open(tempfile) as image:
            assert not image.writable
            with pytest.raises(ValueError):
                image.write_at(0, b'\x01')

        with Image.open(tempfile, readonly=False) as image:
            image.write_at(0, b'\x01')
        assert tempfile.read_bytes()[:1] == b'\x01'

    def test_closed(self, new_tempfile):
        image = Image.new(new_tempfile, 512)
        image.close()
        image.close()  # no effect
        with pytest.raises(ValueError):
            image.read_at(0, 1)
        with pytest.raises(ValueError):
            with image:
                pass


class TestMemoryImage:
    """Tests for ``MemoryImage``."""

    def test_read_write(self):
        buffer = bytearray(1024)
        image = MemoryImage(buffer)
        image.write_at(512, b'\xaa' * 4)

        assert image.size == 1024
        assert buffer[512:516] == b'\xaa' * 4  # modified in place
        assert image.read_at(510, 4) == b'\x00\x00\xaa\xaa'

    def test_out_of_bounds(self):
        image = MemoryImage.new(1024)
        with pytest.raises(TruncatedInputError):
            image.read_at(1020, 8)
        with pytest.raises(ValueError):
            image.write_at(1020, b'\x00' * 8)
        assert image.size == 1024


class TestReadTable:
    """Tests for ``read_table()``."""

    def test_gpt(self, sample_table, gpt_image, sector_size):
        table = read_table(gpt_image, sector_size)
        assert isinstance(table, gpt.Table)
        assert table == sample_table

    def test_gpt_secondary(self, sample_table, gpt_image, sector_size):
        """Test that the secondary copy is used if the primary copy is lost."""
        gpt_image.buffer[sector_size : sector_size * 2] = b'\x00' * sector_size
        table = read_table(gpt_image, sector_size)

        assert isinstance(table, gpt.Table)
        assert table.copy is gpt.Copy.SECONDARY
        assert table.mirrors(sample_table)

    def test_mbr(self, sector_size):
        image = MemoryImage.new(64 * sector_size)
        entry = mbr.PartitionEntry.new(1, 63, mbr.PartitionType.LINUX)
        mbr.Table.new([entry]).write(image, sector_size)

        table = read_table(image, sector_size)
        assert isinstance(table, mbr.Table)
        assert table.partitions == (entry,)

    def test_none(self, sector_size):
        image = MemoryImage.new(64 * sector_size)
        assert read_table(image, sector_size) is None

    def test_tiny(self):
        assert read_table(MemoryImage.new(100), 512) is None
