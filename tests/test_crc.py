"""Tests for the ``crc`` module."""

import zlib

import pytest

from partinfo.crc import crc32, header_crc32, partition_array_crc32


@pytest.mark.parametrize(
    ['data', 'expected'],
    [
        (b'', 0),
        (b'123456789', 0xCBF43926),
        (b'The quick brown fox jumps over the lazy dog', 0x414FA339),
        (b'\x00' * 32, 0x190A55AD),
    ],
)
def test_crc32_vectors(data, expected):
    """Test ``crc32()`` against known CRC-32/ISO-HDLC check values."""
    assert crc32(data) == expected


def test_crc32_running():
    """Test that a running checksum equals the checksum of the concatenation."""
    assert crc32(b'56789', crc32(b'1234')) == crc32(b'123456789')


def test_crc32_buffer_types():
    """Test that any bytes-like object is accepted."""
    assert crc32(bytearray(b'123456789')) == 0xCBF43926
    assert crc32(memoryview(b'123456789')) == 0xCBF43926


class TestHeaderCrc32:
    """Tests for ``header_crc32()``."""

    def test_checksum_field_excluded(self):
        """Test that the value of bytes 16 to 19 does not affect the checksum."""
        header = bytearray(range(92))
        expected = header_crc32(header)
        for value in (b'\x00\x00\x00\x00', b'\xff\xff\xff\xff', b'\x12\x34\x56\x78'):
            header[16:20] = value
            assert header_crc32(header) == expected

    def test_equals_zeroed_crc32(self):
        """Test that the checksum equals the plain CRC32 with the field zeroed."""
        header = bytearray(range(92))
        zeroed = bytes(header[:16]) + b'\x00' * 4 + bytes(header[20:])
        assert header_crc32(header) == zlib.crc32(zeroed)

    @pytest.mark.parametrize('index', [0, 15, 20, 91])
    def test_other_bytes_included(self, index):
        """Test that every byte outside of the checksum field affects the checksum."""
        header = bytearray(92)
        expected = header_crc32(header)
        header[index] = 1
        assert header_crc32(header) != expected

    @pytest.mark.parametrize('size', [0, 16, 19])
    def test_too_short(self, size):
        """Test that a buffer not covering the checksum field is rejected."""
        with pytest.raises(ValueError):
            header_crc32(b'\x00' * size)


class TestPartitionArrayCrc32:
    """Tests for ``partition_array_crc32()``."""

    def test_equals_concatenation(self):
        """Test that the checksum over slots equals the checksum of their
        concatenation.
        """
        slots = [bytes([i]) * 128 for i in range(4)]
        assert partition_array_crc32(slots) == crc32(b''.join(slots))

    def test_empty_slots_matter(self):
        """Test that trailing empty slots change the checksum."""
        slot = b'\x01' * 128
        empty = b'\x00' * 128
        assert partition_array_crc32([slot]) != partition_array_crc32([slot, empty])

    def test_no_slots(self):
        assert partition_array_crc32([]) == 0
