"""
This module contains the `BufferCursor` class, an offset-tracking cursor over an in-memory byte region (e.g. a
memory-mapped file) that offers functions for extracting little-endian ints and borrowed slices of data.
"""

import struct

from typing import Optional, Union
from mmap import mmap


BufferType = Union[bytes, bytearray, memoryview, mmap]


class BufferCursor:
    """
    This class wraps an immutable view of a byte buffer and consumes it front to back.

    Unlike a file object based reader, it never copies data: `read_amount` returns `memoryview` slices that borrow from
    the original buffer. These remain valid as long as the buffer itself stays alive (and, for an `mmap`, open).

    All reads are bounds-checked against the end of the region the cursor was created for, which need not be the end
    of the underlying buffer.
    """

    _view: memoryview
    _position: int
    _end: int

    def __init__(self, buffer: BufferType, position: int = 0, end: Optional[int] = None):
        self._view = _as_readonly_view(buffer)

        total = len(self._view)
        end = total if end is None else end

        if not (0 <= position <= end <= total):
            raise ValueError(f"Invalid cursor range [{position}, {end}) for a buffer of {total} bytes")

        self._position = position
        self._end = end

    def tell(self) -> int:
        """
        The current position of the cursor, as an absolute offset into the underlying buffer.
        """
        return self._position

    def bytes_remaining(self) -> int:
        return self._end - self._position

    def eof(self) -> bool:
        return self._position >= self._end

    def require(self, n_bytes: int, meaning: Optional[str] = None) -> 'BufferCursor':
        """
        Checks that at least `n_bytes` are available without consuming anything.

        Raises:
            BufferCursorMissingDataError: If there are no bytes left at all.
            BufferCursorReadPastEndError: If there are some bytes left, but fewer than `n_bytes`.
        """

        if n_bytes < 0:
            raise ValueError("The number of bytes to require cannot be negative")

        available = self.bytes_remaining()

        if n_bytes > 0 and available == 0:
            raise BufferCursorMissingDataError(self._position, n_bytes, meaning)
        if available < n_bytes:
            raise BufferCursorReadPastEndError(self._position, n_bytes, available, meaning)

        return self

    def read_amount(self, n_bytes: int, meaning: Optional[str] = None) -> memoryview:
        """
        Consumes exactly `n_bytes` and returns them as a view borrowed from the underlying buffer.

        Args:
            n_bytes: The amount of bytes to read.
            meaning: An indication as to the meaning of the data being read (e.g. "file name"). It is used in the text
                of any exceptions that may be thrown.

        Raises:
            BufferCursorMissingDataError: If we are at the end of the region and no bytes are left at all.
            BufferCursorReadPastEndError: If some bytes are left, but fewer than `n_bytes`. The cursor is not advanced.
        """

        self.require(n_bytes, meaning)

        data = self._view[self._position:self._position + n_bytes]
        self._position += n_bytes

        return data

    def read_remainder(self) -> memoryview:
        return self.read_amount(self.bytes_remaining())

    def skip_bytes(self, n_bytes: int, meaning: Optional[str] = None):
        self.require(n_bytes, meaning)
        self._position += n_bytes

    def peek(self, n_bytes: int) -> bytes:
        """
        Returns up to `n_bytes` of the data at the current position, without consuming anything.
        """
        return bytes(self._view[self._position:min(self._end, self._position + n_bytes)])

    def peek_magic(self, magic: bytes) -> bool:
        """
        Checks whether the data at the current position starts with `magic`, without consuming anything. Returns False if
        there is not enough data left.
        """
        return self.peek(len(magic)) == magic

    def expect_magic(self, magic: bytes, meaning: Optional[str] = None):
        """
        Verifies that a specific bytes sequence ("magic") follows, and consumes it.

        Raises:
            BufferCursorWrongMagicError: If the data does not match the expected sequence, including when the region
                ends before the full magic. The cursor is not advanced.
        """

        found = self.peek(len(magic))
        if found != magic:
            raise BufferCursorWrongMagicError(self._position, magic, found, meaning or "magic")

        self._position += len(magic)

    def read_fixed_size_int(self, n_bytes: int, meaning: Optional[str] = None) -> int:
        """
        Reads an unsigned little-endian integer stored in a given number of bytes.

        Args:
            n_bytes: The number of bytes the int is stored over (e.g. a 32 bit int has 4 bytes). Must be at least 1.
            meaning: An indication as to the meaning of the data being read (e.g. "CRC-32"). It is used in the text of
                any exceptions that may be thrown.

        Returns:
            The parsed integer.

        Raises:
            BufferCursorMissingDataError: If we are at the end of the region and no bytes are left at all.
            BufferCursorReadPastEndError: If some bytes are left, but not enough for a complete int.
        """

        if n_bytes < 1:
            raise ValueError("Number of bytes in int must be at least 1")

        return int.from_bytes(self.read_amount(n_bytes, meaning=meaning or 'int'), byteorder='little', signed=False)

    def read_struct(self, struct_format: str, meaning: Optional[str] = None) -> tuple:
        """
        Reads structured data directly from the buffer, without copying it first.

        Args:
            struct_format: The format of the structured data, as per the Python `struct` package. Little-endian is
                assumed unless the format starts with a byte order specifier.
            meaning: An indication as to the meaning of the data being read (e.g. "entry header"). It is used in the
                text of any exceptions that may be thrown.

        Returns:
            The data in the structure, as a tuple.

        Raises:
            BufferCursorMissingDataError: If we are at the end of the region and no bytes are left at all.
            BufferCursorReadPastEndError: If some bytes are left, but not enough for the complete structure.
        """

        if struct_format == '':
            return ()
        if struct_format[0] not in '@=<>!':
            struct_format = '<' + struct_format

        size = struct.calcsize(struct_format)
        self.require(size, meaning or f"struct ({struct_format})")

        data = struct.unpack_from(struct_format, self._view, self._position)
        self._position += size

        return data

    def read_uint16(self, meaning: Optional[str] = None) -> int:
        return self.read_fixed_size_int(2, meaning)

    def read_uint32(self, meaning: Optional[str] = None) -> int:
        return self.read_fixed_size_int(4, meaning)

    def read_uint64(self, meaning: Optional[str] = None) -> int:
        return self.read_fixed_size_int(8, meaning)


def _as_readonly_view(buffer: BufferType) -> memoryview:
    if isinstance(buffer, str):
        raise TypeError("BufferCursor works on binary data, not text")

    view = memoryview(buffer)

    if view.ndim != 1 or view.format != 'B':
        view = view.cast('B')

    return view.toreadonly()


class BufferCursorFormatError(Exception):
    """
    This is used by the `BufferCursor` specifically to signal situations where the data does not match the expected
    format.
    """


class BufferCursorReadPastEndError(BufferCursorFormatError):
    position: int
    expected_length: int
    actual_length: int
    meaning: Optional[str]

    def __init__(self, position: int, expected_length: int, actual_length: int, meaning: Optional[str]):
        self.position = position
        self.expected_length = expected_length
        self.actual_length = actual_length
        self.meaning = meaning

        super().__init__(
            f"At position {position}, expected {expected_length} "
            f"bytes{f' for {meaning}' if meaning is not None else ''}"
            f", but only {actual_length} are available"
        )


class BufferCursorMissingDataError(BufferCursorReadPastEndError):
    def __init__(self, position: int, expected_length: int, meaning: Optional[str]):
        super().__init__(position, expected_length, 0, meaning)


class BufferCursorWrongMagicError(BufferCursorFormatError):
    position: int
    expected_magic: bytes
    found_magic: bytes
    meaning: Optional[str]

    def __init__(self, position: int, expected_magic: bytes, found_magic: bytes, meaning: Optional[str]):
        self.position = position
        self.expected_magic = expected_magic
        self.found_magic = found_magic
        self.meaning = meaning

        super().__init__(
            f"At position {position}, expected {meaning or 'magic'} 0x{expected_magic.hex()}, but found "
            f"0x{found_magic.hex()}"
        )
