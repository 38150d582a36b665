from typing import Optional


class ZipDirectoryError(Exception):
    """
    Base class for all exceptions signaling that the data does not form a readable ZIP central directory.
    """


class StructureNotFoundError(ZipDirectoryError):
    """
    Raised when the End Of Central Directory record (or its Zip64 counterpart) cannot be found at all. This usually means
    that the data is not a ZIP archive, or that it has been truncated.
    """

    structure: str

    def __init__(self, structure: str):
        super().__init__(f"Couldn't find {structure}")

        self.structure = structure


class MalformedRecordError(ZipDirectoryError):
    """
    Raised when a record was found, but its length fields are inconsistent with each other or with the available data.
    """

    record: str
    position: Optional[int]

    def __init__(self, record: str, position: Optional[int], details: str):
        where = f" at position {position}" if position is not None else ''
        super().__init__(f"Malformed {record}{where}: {details}")

        self.record = record
        self.position = position


class InvalidMagicError(ZipDirectoryError):
    """
    Raised when a record does not start with its expected signature. For central directory entries, this means that the
    directory is corrupt or that it contains fewer entries than declared.
    """

    record: str
    position: int
    expected_magic: bytes
    found_magic: bytes

    def __init__(self, record: str, position: int, expected_magic: bytes, found_magic: bytes):
        super().__init__(
            f"Invalid {record} at position {position}: expected signature 0x{expected_magic.hex()}, but found "
            f"0x{found_magic.hex()}"
        )

        self.record = record
        self.position = position
        self.expected_magic = expected_magic
        self.found_magic = found_magic


class TextDecodingError(ZipDirectoryError):
    """
    Raised when an entry's file name is flagged as UTF-8, but is not valid UTF-8.
    """

    position: int
    raw_text: bytes

    def __init__(self, position: int, raw_text: bytes):
        super().__init__(f"File name of the entry at position {position} is flagged as UTF-8, but is not valid UTF-8")

        self.position = position
        self.raw_text = raw_text


class SizeOverflowError(ZipDirectoryError):
    """
    Raised when a 64-bit size or offset stored in the archive is larger than what can be addressed on this platform.
    """

    value: int
    limit: int
    meaning: Optional[str]

    def __init__(self, value: int, limit: int, meaning: Optional[str]):
        super().__init__(
            f"Value {value}{f' for {meaning}' if meaning is not None else ''} exceeds the maximum addressable size "
            f"({limit})"
        )

        self.value = value
        self.limit = limit
        self.meaning = meaning


class SpannedArchiveError(ZipDirectoryError):
    """
    Raised when the archive declares that it is spread over multiple disks (split/spanned archive). Such archives cannot
    be read from a single buffer.
    """

    disk_number: int
    disk_with_central_directory: int
    disks: Optional[int]

    def __init__(self, disk_number: int, disk_with_central_directory: int, disks: Optional[int] = None):
        disks_text = f", {disks} disks in total" if disks is not None else ''
        super().__init__(
            f"Multi-disk archives are not supported (this is disk {disk_number}, central directory on disk "
            f"{disk_with_central_directory}{disks_text})"
        )

        self.disk_number = disk_number
        self.disk_with_central_directory = disk_with_central_directory
        self.disks = disks
