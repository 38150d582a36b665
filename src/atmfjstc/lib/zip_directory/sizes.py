import sys

from typing import Optional

from .errors import SizeOverflowError


MAX_NATIVE_SIZE: int = sys.maxsize
"""The largest size or offset that can be used to index a buffer on this platform"""


def to_native_size(value: int, meaning: Optional[str] = None) -> int:
    """
    Checks that a (potentially 64-bit) size or offset read from an archive can be used to index a buffer on this
    platform, and returns it unchanged.

    Raises:
        SizeOverflowError: If the value exceeds `MAX_NATIVE_SIZE`. The value is never truncated.
    """
    if value < 0:
        raise ValueError(f"Sizes and offsets cannot be negative (got {value})")
    if value > MAX_NATIVE_SIZE:
        raise SizeOverflowError(value, MAX_NATIVE_SIZE, meaning)

    return value
