"""MBR and GPT partition table reading, writing and checksum repair.

Many concepts based on ``diskfs`` (see https://github.com/thunze/diskfs).
"""

from . import fixer, gpt, mbr
from .image import Image, MemoryImage, read_table

__all__ = ["fixer", "gpt", "mbr", "Image", "MemoryImage", "read_table"]
