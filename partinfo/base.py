"""Exception classes and helper functions used across ``partinfo``."""

from __future__ import annotations

__all__ = [
    'ValidationError',
    'ValidationWarning',
    'TruncatedInputError',
    'InvalidSignatureError',
    'NoValidTableError',
    'UnsupportedSectorSizeError',
    'InternalRoundTripError',
    'BoundsError',
    'BoundsWarning',
    'MIN_LSS',
    'check_sector_size',
    'is_power_of_two',
]


MIN_LSS = 512  # every supported sector size is a multiple of this


class ValidationError(ValueError):
    """Exception raised if an object representing a specific structure -- for example
    a partition table header -- cannot be created because the data to be parsed as
    the structure does not conform to the standard of the structure.
    """


class ValidationWarning(UserWarning):
    """Warning emitted if a value found in a structure does not conform to the
    standard of the structure but might still be usable.
    """


class TruncatedInputError(ValidationError):
    """Exception raised if fewer bytes are available than the structure to parse
    requires.
    """


class InvalidSignatureError(ValidationError):
    """Exception raised if the signature of a structure does not match."""


class NoValidTableError(ValidationError):
    """Exception raised if neither copy of a GUID partition table can be read."""


class UnsupportedSectorSizeError(ValueError):
    """Exception raised if a sector size is not a positive multiple of 512 bytes."""


class InternalRoundTripError(RuntimeError):
    """Exception raised if a partition table that was just written does not read
    back with valid checksums.

    This indicates a bug in the codec and is never expected in correct operation.
    """


class BoundsError(ValueError):
    """Exception raised if the bounds of a partition are considered illegal."""


class BoundsWarning(UserWarning):
    """Warning emitted if the bounds of a partition are considered illegal."""


def check_sector_size(sector_size: int) -> None:
    """Raise ``UnsupportedSectorSizeError`` if ``sector_size`` is not a positive
    multiple of 512 bytes.
    """
    if sector_size <= 0 or sector_size % MIN_LSS != 0:
        raise UnsupportedSectorSizeError(
            f'Sector size must be a positive multiple of {MIN_LSS} bytes, got '
            f'{sector_size}'
        )


def is_power_of_two(value: int) -> bool:
    """Check if ``value`` is a power of two.

    ``value`` must be an ``int`` greater than zero.

    Returns whether ``value`` can be expressed as 2 to the power of x, with x being
    an integer greater than or equal to zero.
    """
    if value <= 0:
        raise ValueError('Value must be greater than 0')
    return value & (value - 1) == 0
