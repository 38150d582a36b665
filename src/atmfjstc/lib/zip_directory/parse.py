"""
Locators and parsers for the records that make up the metadata section of a ZIP archive.

The functions here work on an in-memory buffer (typically a memory-mapped file) and never copy variable-length data:
all comments, names etc. in the returned records are borrowed from the buffer. They do not keep any state between
calls, so several of them can run on the same buffer at the same time.

The top-level entry point is `read_zip_directory`. The other functions handle one record each and can be used to build
alternative readers (e.g. for forensic analysis of broken archives).
"""

import logging

from typing import Optional, Iterator

from .BufferCursor import BufferCursor, BufferType, BufferCursorFormatError, BufferCursorWrongMagicError
from .enums import EOCDR_MAGIC, ZIP64_EOCDR_MAGIC, ZIP64_EOCDR_LOCATOR_MAGIC, CENTRAL_DIRECTORY_MAGIC, ZipEntryFlags
from .errors import StructureNotFoundError, MalformedRecordError, InvalidMagicError, TextDecodingError, \
    SpannedArchiveError
from .extra_fields import parse_zip64_extended_info
from .records import EndOfCentralDirectory, Zip64EndOfCentralDirectoryLocator, Zip64EndOfCentralDirectory, \
    CentralDirectoryEntry, EntryNameText, Utf8Text, LegacyText, ZipDirectory
from .sizes import to_native_size


_log = logging.getLogger(__name__)


def read_zip_directory(buffer: BufferType) -> ZipDirectory:
    """
    Reads the whole metadata section of a ZIP archive.

    The End Of Central Directory record is located first. If any of its counts, sizes or offsets hold the Zip64
    sentinel values, the Zip64 locator and record are consulted for the real 64-bit values. Finally, the central
    directory entries are parsed, as many as the record declares.

    Args:
        buffer: The full content of the archive, e.g. an `mmap`. It must not be modified while the result is in use.

    Returns:
        A `ZipDirectory` object. Its variable-length fields borrow from `buffer`.

    Raises:
        ZipDirectoryError: Or rather, one of its subclasses, if the archive cannot be read.
    """

    eocdr_offset = find_eocdr(buffer)
    eocdr = parse_eocdr(buffer, eocdr_offset)

    _log.debug("Found End Of Central Directory record at %d", eocdr_offset)

    zip64_locator = None
    zip64_eocdr = None

    if eocdr.is_zip64_sentinel:
        zip64_locator = parse_zip64_locator(buffer, eocdr_offset - Zip64EndOfCentralDirectoryLocator.SIZE_IN_FILE)

        if zip64_locator is None:
            _log.debug("EOCDR holds Zip64 sentinel values, but there is no Zip64 locator; using them as-is")
        else:
            locator_offset = eocdr_offset - Zip64EndOfCentralDirectoryLocator.SIZE_IN_FILE
            zip64_eocdr_offset = find_zip64_eocdr(buffer, zip64_locator.zip64_eocdr_offset, locator_offset)
            zip64_eocdr = parse_zip64_eocdr(buffer, zip64_eocdr_offset, locator_offset)

            _log.debug("Found Zip64 End Of Central Directory record at %d", zip64_eocdr_offset)

    _check_single_disk(eocdr, zip64_locator, zip64_eocdr)

    if zip64_eocdr is not None:
        entry_count = zip64_eocdr.entries
        cd_size = to_native_size(zip64_eocdr.central_directory_size, 'central directory size')
        cd_offset = to_native_size(zip64_eocdr.central_directory_offset, 'central directory offset')
        cd_end = zip64_eocdr.offset
    else:
        entry_count = eocdr.entries
        cd_size = eocdr.central_directory_size
        cd_offset = eocdr.central_directory_offset
        cd_end = eocdr_offset

    # The directory normally ends right where the end record begins. Anything beyond the declared offset is data
    # prepended to the archive (e.g. a self-extractor stub).
    archive_offset = cd_end - cd_size - cd_offset
    if archive_offset < 0:
        raise MalformedRecordError(
            'End Of Central Directory record', eocdr_offset,
            f"central directory of {cd_size} bytes at offset {cd_offset} overlaps the end record at {cd_end}"
        )
    if archive_offset > 0:
        _log.debug("Archive is preceded by %d bytes of unrelated data", archive_offset)

    cd_start = archive_offset + cd_offset

    entries = tuple(iter_central_directory_entries(buffer, cd_start, cd_start + cd_size, entry_count))

    return ZipDirectory(
        eocdr=eocdr,
        zip64_locator=zip64_locator,
        zip64_eocdr=zip64_eocdr,
        entries=entries,
        archive_offset=archive_offset,
    )


def _check_single_disk(
    eocdr: EndOfCentralDirectory,
    zip64_locator: Optional[Zip64EndOfCentralDirectoryLocator],
    zip64_eocdr: Optional[Zip64EndOfCentralDirectory],
):
    if zip64_eocdr is not None:
        disk_number, disk_with_cd = zip64_eocdr.disk_number, zip64_eocdr.disk_with_central_directory
    else:
        disk_number, disk_with_cd = eocdr.disk_number, eocdr.disk_with_central_directory

    disks = zip64_locator.disks if zip64_locator is not None else None

    if disk_number != 0 or disk_with_cd != 0 or (disks is not None and disks > 1):
        raise SpannedArchiveError(disk_number, disk_with_cd, disks)


def find_eocdr(buffer: BufferType) -> int:
    """
    Finds the End Of Central Directory record by searching backwards from the end of the buffer.

    A backwards search is needed because the record is followed by the archive comment, whose length is not known
    until the record has been found.

    Returns:
        The position of the record's signature.

    Raises:
        StructureNotFoundError: If the signature does not occur anywhere in the buffer.
    """
    position = _search(buffer, EOCDR_MAGIC, 0, _buffer_size(buffer), backwards=True)

    if position == -1:
        raise StructureNotFoundError('End Of Central Directory record')

    return position


def parse_eocdr(buffer: BufferType, offset: int) -> EndOfCentralDirectory:
    """
    Parses the End Of Central Directory record starting at `offset`, including the archive comment that follows it.

    Raises:
        InvalidMagicError: If there is no EOCDR signature at `offset`.
        MalformedRecordError: If the record is truncated, or the comment is longer than the remaining data.
    """

    cursor = BufferCursor(buffer, offset)

    try:
        _expect_magic(cursor, EOCDR_MAGIC, 'End Of Central Directory record')
        disk_number, disk_with_central_directory, entries_on_this_disk, entries, central_directory_size, \
            central_directory_offset, comment_length = cursor.read_struct('HHHHIIH', 'EOCDR fixed fields')

        file_comment = cursor.read_amount(
            to_native_size(comment_length, 'archive comment length'), 'archive comment'
        )
    except BufferCursorFormatError as e:
        raise MalformedRecordError('End Of Central Directory record', offset, str(e)) from e

    return EndOfCentralDirectory(
        disk_number=disk_number,
        disk_with_central_directory=disk_with_central_directory,
        entries_on_this_disk=entries_on_this_disk,
        entries=entries,
        central_directory_size=central_directory_size,
        central_directory_offset=central_directory_offset,
        file_comment=file_comment,
        offset=offset,
    )


def parse_zip64_locator(buffer: BufferType, offset: int) -> Optional[Zip64EndOfCentralDirectoryLocator]:
    """
    Parses the Zip64 End Of Central Directory locator, which, if present, sits immediately before the standard EOCDR.

    Returns:
        The locator, or None if there is no locator signature at `offset` (most archives don't use Zip64).
    """

    if offset < 0:
        return None

    cursor = BufferCursor(buffer, offset)

    if cursor.bytes_remaining() < Zip64EndOfCentralDirectoryLocator.SIZE_IN_FILE:
        return None
    if not cursor.peek_magic(ZIP64_EOCDR_LOCATOR_MAGIC):
        return None

    cursor.skip_bytes(len(ZIP64_EOCDR_LOCATOR_MAGIC))

    disk_with_central_directory, zip64_eocdr_offset, disks = cursor.read_struct('IQI', 'Zip64 EOCDR locator')

    return Zip64EndOfCentralDirectoryLocator(
        disk_with_central_directory=disk_with_central_directory,
        zip64_eocdr_offset=zip64_eocdr_offset,
        disks=disks,
    )


def find_zip64_eocdr(buffer: BufferType, start: int, end: Optional[int] = None) -> int:
    """
    Finds the Zip64 End Of Central Directory record by searching forward from the offset given in the locator.

    Searching, instead of trusting the offset outright, accommodates writers that get the offset slightly wrong.

    Args:
        buffer: The archive buffer.
        start: The offset where the search begins, as recorded in the locator.
        end: Where to stop the search (normally the position of the locator).

    Returns:
        The position of the record's signature.

    Raises:
        StructureNotFoundError: If the signature is not found.
        SizeOverflowError: If `start` is too large to be a position on this platform.
    """

    start = to_native_size(start, 'Zip64 EOCDR offset')

    position = _search(
        buffer, ZIP64_EOCDR_MAGIC, start, _buffer_size(buffer) if end is None else end, backwards=False
    )

    if position == -1:
        raise StructureNotFoundError('Zip64 End Of Central Directory record')

    return position


def parse_zip64_eocdr(buffer: BufferType, offset: int, end: Optional[int] = None) -> Zip64EndOfCentralDirectory:
    """
    Parses the Zip64 End Of Central Directory record occupying the buffer from `offset` to `end`.

    The record declares its own size; this must agree exactly with the room available for it, and whatever follows the
    fixed fields becomes the record's extensible data.

    Raises:
        InvalidMagicError: If there is no Zip64 EOCDR signature at `offset`.
        MalformedRecordError: If the record is truncated or its declared size disagrees with the available data.
        SizeOverflowError: If the declared size cannot be represented on this platform.
    """

    record_name = 'Zip64 End Of Central Directory record'
    fixed_size = Zip64EndOfCentralDirectory.FIXED_SIZE_IN_FILE

    cursor = BufferCursor(buffer, offset, end)

    try:
        _expect_magic(cursor, ZIP64_EOCDR_MAGIC, record_name)
        declared_size, source_version, minimum_extract_version, disk_number, disk_with_central_directory, \
            entries_on_this_disk, entries, central_directory_size, central_directory_offset = \
            cursor.read_struct('QHHIIQQQQ', 'Zip64 EOCDR fixed fields')
    except BufferCursorFormatError as e:
        raise MalformedRecordError(record_name, offset, str(e)) from e

    declared_size = to_native_size(declared_size, 'Zip64 EOCDR size')

    # The declared size does not include the leading 12 bytes (signature and the size field itself)
    if declared_size + 12 < fixed_size:
        raise MalformedRecordError(
            record_name, offset, f"declared size {declared_size} is smaller than the fixed fields"
        )

    extensible_data_length = declared_size + 12 - fixed_size
    if cursor.bytes_remaining() != extensible_data_length:
        raise MalformedRecordError(
            record_name, offset,
            f"invalid extensible data length (declared: {extensible_data_length}, "
            f"available: {cursor.bytes_remaining()})"
        )

    return Zip64EndOfCentralDirectory(
        source_version=source_version,
        minimum_extract_version=minimum_extract_version,
        disk_number=disk_number,
        disk_with_central_directory=disk_with_central_directory,
        entries_on_this_disk=entries_on_this_disk,
        entries=entries,
        central_directory_size=central_directory_size,
        central_directory_offset=central_directory_offset,
        extensible_data=cursor.read_remainder(),
        offset=offset,
    )


def iter_central_directory_entries(
    buffer: BufferType, start: int, end: int, count: int
) -> Iterator[CentralDirectoryEntry]:
    """
    Parses `count` consecutive central directory entries occupying the buffer between `start` and `end`.

    Raises:
        MalformedRecordError: If the region lies outside the buffer, or an entry runs past its end.
        InvalidMagicError: If an entry is missing, e.g. because the directory holds fewer entries than declared.
    """

    if end > _buffer_size(buffer):
        raise MalformedRecordError(
            'central directory', start, f"directory ends at {end}, past the end of the data"
        )

    cursor = BufferCursor(buffer, start, end)

    for _ in range(count):
        yield parse_central_directory_entry(cursor)

    if not cursor.eof():
        _log.debug("%d bytes left in the central directory after the last entry", cursor.bytes_remaining())


def parse_central_directory_entry(cursor: BufferCursor) -> CentralDirectoryEntry:
    """
    Parses one central directory entry at the cursor, and advances the cursor past it, so that the next entry can be
    parsed in turn.

    Raises:
        InvalidMagicError: If there is no entry signature at the cursor.
        MalformedRecordError: If the entry's fixed fields or variable-length fields run past the end of the data.
        TextDecodingError: If the name is flagged as UTF-8, but isn't.
    """

    offset = cursor.tell()
    record_name = 'central directory entry'

    try:
        _expect_magic(cursor, CENTRAL_DIRECTORY_MAGIC, record_name)
        source_version, minimum_extract_version, flags, compression_method, last_mod_time, last_mod_date, crc32, \
            compressed_size, uncompressed_size, file_name_length, extra_field_length, file_comment_length, \
            disk_number, internal_file_attributes, external_file_attributes, local_header_offset = \
            cursor.read_struct('HHHHHHIIIHHHHHII', 'entry fixed fields')

        cursor.require(file_name_length + extra_field_length + file_comment_length, 'entry variable fields')

        raw_file_name = cursor.read_amount(file_name_length, 'file name')
        extra_field = cursor.read_amount(extra_field_length, 'extra field')
        file_comment = cursor.read_amount(file_comment_length, 'file comment')
    except BufferCursorFormatError as e:
        raise MalformedRecordError(record_name, offset, str(e)) from e

    encrypted = bool(flags & ZipEntryFlags.ENCRYPTED)
    is_utf8 = bool(flags & ZipEntryFlags.UTF8)

    file_name = decode_file_name(raw_file_name, is_utf8, offset)

    _log.debug("Entry for %r", file_name.text)

    return CentralDirectoryEntry(
        source_version=source_version,
        minimum_extract_version=minimum_extract_version,
        flags=flags,
        compression_method=compression_method,
        last_mod_time=last_mod_time,
        last_mod_date=last_mod_date,
        crc32=crc32,
        compressed_size=compressed_size,
        uncompressed_size=uncompressed_size,
        file_name_length=file_name_length,
        extra_field_length=extra_field_length,
        file_comment_length=file_comment_length,
        disk_number=disk_number,
        internal_file_attributes=internal_file_attributes,
        external_file_attributes=external_file_attributes,
        local_header_offset=local_header_offset,
        file_name=file_name,
        raw_file_name=raw_file_name,
        extra_field=extra_field,
        file_comment=file_comment,
        encrypted=encrypted,
        is_utf8=is_utf8,
        offset=offset,
        zip64_info=parse_zip64_extended_info(
            extra_field, uncompressed_size, compressed_size, local_header_offset, disk_number, position=offset
        ),
    )


def decode_file_name(raw_name: memoryview, is_utf8: bool, position: int = 0) -> EntryNameText:
    """
    Decodes an entry's file name according to its UTF-8 flag.

    UTF-8 names must be valid. Other names are interpreted in code page 437, in which every byte maps to a character,
    so they always decode. Bytes 0x00-0x1F and 0x7F are taken as the corresponding control characters rather than the
    IBM PC graphic symbols.

    Raises:
        TextDecodingError: If `is_utf8` is set but the name is not valid UTF-8.
    """

    if not is_utf8:
        return LegacyText(str(raw_name, 'cp437'))

    try:
        return Utf8Text(str(raw_name, 'utf-8'))
    except UnicodeDecodeError as e:
        raise TextDecodingError(position, bytes(raw_name)) from e


def _expect_magic(cursor: BufferCursor, magic: bytes, record_name: str):
    try:
        cursor.expect_magic(magic, f"{record_name} signature")
    except BufferCursorWrongMagicError as e:
        raise InvalidMagicError(record_name, e.position, e.expected_magic, e.found_magic) from e


def _buffer_size(buffer: BufferType) -> int:
    return buffer.nbytes if isinstance(buffer, memoryview) else len(buffer)


def _search(buffer: BufferType, magic: bytes, start: int, end: int, backwards: bool) -> int:
    if not isinstance(buffer, memoryview):
        # bytes, bytearray and mmap can all search in place
        return buffer.rfind(magic, start, end) if backwards else buffer.find(magic, start, end)

    view = BufferCursor(buffer).read_remainder()

    # Memoryviews can't search, so we go through them in chunks that overlap by just under the length of the magic
    overlap = len(magic) - 1
    chunk_starts = range(start, max(start, end - overlap), _SEARCH_CHUNK_SIZE)

    for chunk_start in (reversed(chunk_starts) if backwards else chunk_starts):
        chunk = bytes(view[chunk_start:min(end, chunk_start + _SEARCH_CHUNK_SIZE + overlap)])
        found = chunk.rfind(magic) if backwards else chunk.find(magic)

        if found != -1:
            return chunk_start + found

    return -1


_SEARCH_CHUNK_SIZE = 1 << 20
