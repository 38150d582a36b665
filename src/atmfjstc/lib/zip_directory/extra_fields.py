"""
Utilities for handling the ZIP "extra field" of central directory entries.

Only the Zip64 extended information header is interpreted, as it is needed to recover the real sizes and offsets of
large entries. Other headers are passed through as raw (header ID, payload) pairs.
"""

import logging

from typing import Iterator, Tuple, Optional

from .BufferCursor import BufferCursor, BufferCursorFormatError
from .enums import ZIP64_SENTINEL_16, ZIP64_SENTINEL_32, ZIP64_EXTENDED_INFO_HEADER_ID
from .errors import MalformedRecordError
from .records import Zip64ExtendedInfo


_log = logging.getLogger(__name__)


def iter_extra_fields(data: memoryview, position: Optional[int] = None) -> Iterator[Tuple[int, memoryview]]:
    """
    Splits an extra field into its headers.

    Args:
        data: The raw extra field.
        position: The position of the extra field in the archive, used in error messages.

    Returns:
        An iterator of (header ID, payload) pairs. Payloads are borrowed from `data`.

    Raises:
        MalformedRecordError: If a header is truncated.
    """

    cursor = BufferCursor(data)

    try:
        while not cursor.eof():
            header_id = cursor.read_uint16('extra header ID')
            length = cursor.read_uint16('extra header length')

            yield header_id, cursor.read_amount(length, f"extra header 0x{header_id:04x}")
    except BufferCursorFormatError as e:
        raise MalformedRecordError('extra field', position, str(e)) from e


def parse_zip64_extended_info(
    extra_field: memoryview, uncompressed_size: int, compressed_size: int, local_header_offset: int, disk_number: int,
    position: Optional[int] = None,
) -> Optional[Zip64ExtendedInfo]:
    """
    Recovers the 64-bit values of an entry from its Zip64 extended information extra field.

    The field only contains values for those standard fields that hold the sentinel (0xFFFFFFFF, or 0xFFFF for the disk
    number), in the order: uncompressed size, compressed size, local header offset, disk number.

    Returns:
        A `Zip64ExtendedInfo`, or None if no field holds a sentinel or the entry has no Zip64 header (in which case the
        sentinel is taken to be a genuine value).

    Raises:
        MalformedRecordError: If the Zip64 header is too short to hold the values it is required to.
    """

    needs = (
        uncompressed_size == ZIP64_SENTINEL_32,
        compressed_size == ZIP64_SENTINEL_32,
        local_header_offset == ZIP64_SENTINEL_32,
        disk_number == ZIP64_SENTINEL_16,
    )

    if not any(needs):
        return None

    payload = next(
        (value for header_id, value in iter_extra_fields(extra_field, position)
         if header_id == ZIP64_EXTENDED_INFO_HEADER_ID),
        None
    )
    if payload is None:
        _log.debug("Entry at %s has sentinel values but no Zip64 extra header", position)
        return None

    cursor = BufferCursor(payload)

    try:
        return Zip64ExtendedInfo(
            uncompressed_size=cursor.read_uint64('Zip64 uncompressed size') if needs[0] else None,
            compressed_size=cursor.read_uint64('Zip64 compressed size') if needs[1] else None,
            local_header_offset=cursor.read_uint64('Zip64 local header offset') if needs[2] else None,
            disk_number=cursor.read_uint32('Zip64 disk number') if needs[3] else None,
        )
    except BufferCursorFormatError as e:
        raise MalformedRecordError('Zip64 extended information extra field', position, str(e)) from e
