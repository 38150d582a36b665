"""
A reader for the metadata section of ZIP archives: the End Of Central Directory record, its Zip64 extensions, and the
central directory entries describing each stored file.

This is not a replacement for `zipfile`. It does not decompress, write or decrypt anything. Rather, it decodes the
directory structures exactly as stored, without trusting any size or offset taken from the file, which makes it
suitable for inspecting damaged or hostile archives, and as a base for building other readers.

The easiest way to use it is through `ZipDirectoryFile`::

    with ZipDirectoryFile('path/to/archive.zip') as zip_file:
        for entry in zip_file.directory.entries:
            print(entry.name, entry.real_uncompressed_size)

If the archive is already in memory, use `read_zip_directory` on the buffer directly. Note that the comments, names and
extra fields in the results are `memoryview` objects borrowed from the buffer, not copies.
"""

import mmap
import logging

from typing import BinaryIO, AnyStr, Union, Optional, ContextManager
from os import PathLike
from io import IOBase

from .errors import ZipDirectoryError, StructureNotFoundError, MalformedRecordError, InvalidMagicError, \
    TextDecodingError, SizeOverflowError, SpannedArchiveError
from .records import EndOfCentralDirectory, Zip64EndOfCentralDirectoryLocator, Zip64EndOfCentralDirectory, \
    CentralDirectoryEntry, EntryNameText, Utf8Text, LegacyText, Zip64ExtendedInfo, ZipDirectory
from .enums import ZipEntryFlags, ZipCompressionMethod, ZipHostOS, ZipInternalFileAttributes
from .parse import read_zip_directory, find_eocdr, parse_eocdr, parse_zip64_locator, find_zip64_eocdr, \
    parse_zip64_eocdr, parse_central_directory_entry, iter_central_directory_entries, decode_file_name
from .BufferCursor import BufferCursor


__version__ = '0.1.0'


_log = logging.getLogger(__name__)


class ZipDirectoryFile(ContextManager['ZipDirectoryFile']):
    """
    This class reads the directory of a ZIP archive stored in a file or file object.

    The file is memory-mapped and its directory read as soon as the object is constructed. The result is available in
    the `directory` attribute.

    A `ZipDirectoryFile` can be either opened and closed manually::

        zdf = ZipDirectoryFile("file.zip")
        print(zdf.directory.entries)
        zdf.close()

    or used as a context manager::

        with ZipDirectoryFile("file.zip") as zdf:
            print(zdf.directory.entries)

    The memory map backs all the comments, names and extra fields in the directory. Closing the file only closes the map
    once none of these remain in use.
    """

    _fileobj: Optional[BinaryIO] = None
    _fileobj_owned: bool = False
    _mapping: Optional[mmap.mmap] = None
    _directory: Optional[ZipDirectory] = None

    def __init__(self, path_or_fileobj: Union[PathLike, AnyStr, BinaryIO]):
        """
        Opens a ZIP archive and reads its directory.

        Args:
            path_or_fileobj: Either a filename, or an open file object (which must have a real file descriptor).

        Raises:
            ZipDirectoryError: Or rather, one of its subclasses, if the directory cannot be read.

        If a file object is passed, it will not be closed by `close()` or when the context ends.
        """

        if isinstance(path_or_fileobj, IOBase):
            self._fileobj = path_or_fileobj
        else:
            self._fileobj = open(path_or_fileobj, 'rb')
            self._fileobj_owned = True

        try:
            if self._file_size() > 0:
                self._mapping = mmap.mmap(self._fileobj.fileno(), 0, access=mmap.ACCESS_READ)

            self._directory = read_zip_directory(self._mapping if self._mapping is not None else b'')
        except BaseException:
            self.close()
            raise

    @property
    def directory(self) -> ZipDirectory:
        if self._directory is None:
            raise ValueError("The ZIP file has been closed")

        return self._directory

    @property
    def mapping(self) -> Optional[mmap.mmap]:
        """
        The memory map of the archive, e.g. for reading the local headers and data the entries point to. None if the file
        is empty.
        """
        return self._mapping

    def close(self):
        """
        Releases the memory map and, if it was opened by this object, the file.

        If views into the map are still alive elsewhere (e.g. an entry's `file_comment` kept by the caller), the map
        cannot be closed right away. It is then merely released, and will be closed once the last view is gone.
        """
        self._directory = None

        if self._mapping is not None:
            try:
                self._mapping.close()
            except BufferError:
                _log.debug("Memory map still has views in use, deferring its closure")

            self._mapping = None

        if self._fileobj_owned and (self._fileobj is not None) and not self._fileobj.closed:
            self._fileobj.close()

    def __enter__(self) -> 'ZipDirectoryFile':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _file_size(self) -> int:
        original_position = self._fileobj.tell()
        size = self._fileobj.seek(0, 2)
        self._fileobj.seek(original_position)

        return size
