"""
Data classes for the records that make up the metadata section of a ZIP archive.

All variable-length fields (comments, names, extra fields) are `memoryview` slices borrowed from the buffer the archive
was parsed from. They stay valid for as long as that buffer does. Use ``bytes(...)`` on them to obtain an independent
copy.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, Union

from .enums import ZipHostOS, ZipCompressionMethod, ZipInternalFileAttributes, ZIP64_SENTINEL_16, ZIP64_SENTINEL_32, \
    as_enum


@dataclass(frozen=True)
class EndOfCentralDirectory:
    """
    The standard End Of Central Directory record, found near the end of every ZIP archive.

    The `entries`, `entries_on_this_disk`, `central_directory_size` and `central_directory_offset` fields may hold the
    Zip64 sentinel values (0xFFFF / 0xFFFFFFFF), in which case the real values are found in the Zip64 EOCDR.
    """
    disk_number: int
    disk_with_central_directory: int
    entries_on_this_disk: int
    entries: int
    central_directory_size: int
    central_directory_offset: int
    file_comment: memoryview
    offset: int = 0

    FIXED_SIZE_IN_FILE = 22

    @property
    def is_zip64_sentinel(self) -> bool:
        return (
            (self.entries_on_this_disk == ZIP64_SENTINEL_16) or
            (self.entries == ZIP64_SENTINEL_16) or
            (self.central_directory_size == ZIP64_SENTINEL_32) or
            (self.central_directory_offset == ZIP64_SENTINEL_32)
        )


@dataclass(frozen=True)
class Zip64EndOfCentralDirectoryLocator:
    disk_with_central_directory: int
    zip64_eocdr_offset: int
    disks: int

    SIZE_IN_FILE = 20


@dataclass(frozen=True)
class Zip64EndOfCentralDirectory:
    source_version: int
    minimum_extract_version: int
    disk_number: int
    disk_with_central_directory: int
    entries_on_this_disk: int
    entries: int
    central_directory_size: int
    central_directory_offset: int
    extensible_data: memoryview
    offset: int = 0

    FIXED_SIZE_IN_FILE = 56


@dataclass(frozen=True)
class EntryNameText:
    """
    The decoded file name of a central directory entry. The concrete subclass tells which encoding was used.
    """
    text: str


@dataclass(frozen=True)
class Utf8Text(EntryNameText):
    """A file name stored as UTF-8 (general purpose flag bit 11 set)"""


@dataclass(frozen=True)
class LegacyText(EntryNameText):
    """A file name stored in the legacy IBM PC code page 437 (general purpose flag bit 11 clear)"""


@dataclass(frozen=True)
class Zip64ExtendedInfo:
    """
    The values recovered from the Zip64 extended information extra field (header ID 0x0001) of an entry. Only the
    values whose standard counterparts hold the sentinel are present in the field; the rest are None.
    """
    uncompressed_size: Optional[int] = None
    compressed_size: Optional[int] = None
    local_header_offset: Optional[int] = None
    disk_number: Optional[int] = None


@dataclass(frozen=True)
class CentralDirectoryEntry:
    """
    A single entry of the central directory, describing one stored file.

    Attributes:
        offset: The position of the entry's signature in the archive buffer.
        file_name: The decoded name, as a `Utf8Text` or `LegacyText`.
        raw_file_name: The name as stored in the archive.
        zip64_info: The contents of the Zip64 extended information extra field, if the entry has one and needs it.

    The other attributes mirror the fields of the record. Use the ``real_*`` properties to get sizes and offsets with
    any Zip64 values already substituted in.
    """
    source_version: int
    minimum_extract_version: int
    flags: int
    compression_method: int
    last_mod_time: int
    last_mod_date: int
    crc32: int
    compressed_size: int
    uncompressed_size: int
    file_name_length: int
    extra_field_length: int
    file_comment_length: int
    disk_number: int
    internal_file_attributes: int
    external_file_attributes: int
    local_header_offset: int
    file_name: EntryNameText
    raw_file_name: memoryview
    extra_field: memoryview
    file_comment: memoryview
    encrypted: bool
    is_utf8: bool
    offset: int = 0
    zip64_info: Optional[Zip64ExtendedInfo] = None

    FIXED_SIZE_IN_FILE = 46

    @property
    def name(self) -> str:
        return self.file_name.text

    @property
    def total_size_in_file(self) -> int:
        return self.FIXED_SIZE_IN_FILE + self.file_name_length + self.extra_field_length + self.file_comment_length

    @property
    def is_directory(self) -> bool:
        return self.name.endswith('/')

    @property
    def internal_attributes(self) -> ZipInternalFileAttributes:
        return ZipInternalFileAttributes(self.internal_file_attributes)

    @property
    def host_os(self) -> Union[ZipHostOS, int]:
        return as_enum(self.source_version >> 8, ZipHostOS)

    @property
    def compression(self) -> Union[ZipCompressionMethod, int]:
        return as_enum(self.compression_method, ZipCompressionMethod)

    @property
    def last_modified(self) -> Optional[datetime]:
        """
        The MS-DOS timestamp of the entry, or None if it does not represent a valid date. The time zone is unknown.
        """
        return dos_datetime_to_datetime(self.last_mod_date, self.last_mod_time)

    @property
    def real_uncompressed_size(self) -> int:
        return self._zip64_value('uncompressed_size', self.uncompressed_size)

    @property
    def real_compressed_size(self) -> int:
        return self._zip64_value('compressed_size', self.compressed_size)

    @property
    def real_local_header_offset(self) -> int:
        return self._zip64_value('local_header_offset', self.local_header_offset)

    @property
    def real_disk_number(self) -> int:
        return self._zip64_value('disk_number', self.disk_number)

    def _zip64_value(self, field: str, standard_value: int) -> int:
        if self.zip64_info is None:
            return standard_value

        value = getattr(self.zip64_info, field)

        return standard_value if value is None else value


@dataclass(frozen=True)
class ZipDirectory:
    """
    Everything that could be learned from the metadata section of a ZIP archive.

    Attributes:
        eocdr: The standard End Of Central Directory record.
        zip64_locator: The Zip64 EOCDR locator, if the archive needed and had one.
        zip64_eocdr: The Zip64 EOCDR, if the archive needed and had one.
        entries: The central directory entries, in the order they are stored.
        archive_offset: The number of bytes found in front of the archive proper (e.g. a self-extractor stub). Add this
            to the local header offsets in the entries to get positions in the buffer.
    """
    eocdr: EndOfCentralDirectory
    zip64_locator: Optional[Zip64EndOfCentralDirectoryLocator]
    zip64_eocdr: Optional[Zip64EndOfCentralDirectory]
    entries: Tuple[CentralDirectoryEntry, ...]
    archive_offset: int = 0

    @property
    def is_zip64(self) -> bool:
        return self.zip64_eocdr is not None

    @property
    def entry_count(self) -> int:
        return self.zip64_eocdr.entries if self.is_zip64 else self.eocdr.entries

    @property
    def central_directory_size(self) -> int:
        return self.zip64_eocdr.central_directory_size if self.is_zip64 else self.eocdr.central_directory_size

    @property
    def central_directory_offset(self) -> int:
        return self.zip64_eocdr.central_directory_offset if self.is_zip64 else self.eocdr.central_directory_offset

    @property
    def comment(self) -> memoryview:
        return self.eocdr.file_comment

    def local_header_position(self, entry: CentralDirectoryEntry) -> int:
        """
        The position of an entry's local file header in the archive buffer.
        """
        return self.archive_offset + entry.real_local_header_offset


def dos_datetime_to_datetime(dos_date: int, dos_time: int) -> Optional[datetime]:
    try:
        return datetime(
            1980 + (dos_date >> 9), (dos_date >> 5) & 0xf, dos_date & 0x1f,
            dos_time >> 11, (dos_time >> 5) & 0x3f, (dos_time & 0x1f) * 2,
        )
    except ValueError:
        return None
