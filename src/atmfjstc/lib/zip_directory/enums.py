from enum import IntEnum, IntFlag
from typing import Type, TypeVar, Union


EOCDR_MAGIC = b'PK\x05\x06'
ZIP64_EOCDR_MAGIC = b'PK\x06\x06'
ZIP64_EOCDR_LOCATOR_MAGIC = b'PK\x06\x07'
CENTRAL_DIRECTORY_MAGIC = b'PK\x01\x02'

ZIP64_SENTINEL_16 = 0xffff
ZIP64_SENTINEL_32 = 0xffffffff

ZIP64_EXTENDED_INFO_HEADER_ID = 0x0001


class ZipEntryFlags(IntFlag):
    ENCRYPTED = 1 << 0
    IMPLODE_8K_DICTIONARY = 1 << 1
    IMPLODE_3_SHANNON_TREES = 1 << 2
    DEFLATE_MAX_COMPRESSION = 1 << 1
    DEFLATE_FAST_COMPRESSION = 1 << 2
    DEFLATE_SUPERFAST_COMPRESSION = (1 << 1) | (1 << 2)
    LZMA_EOS_MARKER_USED = 1 << 1
    DEFERRED_CRC32 = 1 << 3
    ENHANCED_DEFLATE = 1 << 4
    PATCHED_DATA = 1 << 5
    STRONG_ENCRYPTION = 1 << 6
    UTF8 = 1 << 11
    ENHANCED_COMPRESSION = 1 << 12
    LOCAL_HEADER_MASKED = 1 << 13


class ZipInternalFileAttributes(IntFlag):
    LIKELY_TEXT_FILE = 1 << 0


class ZipHostOS(IntEnum):
    FAT = 0
    AMIGA = 1
    OPEN_VMS = 2
    UNIX = 3
    VM_CMS = 4
    ATARI_TOS = 5
    HPFS = 6
    MACINTOSH = 7
    Z_SYSTEM = 8
    CPM = 9
    TOPS_20 = 10
    NTFS = 11
    SMS_QDOS = 12
    RISC_OS = 13
    VFAT = 14
    MVS = 15
    BEOS = 16
    TANDEM = 17
    THEOS = 18
    OSX = 19
    ATHEOS = 30


class ZipCompressionMethod(IntEnum):
    STORE = 0
    SHRINK = 1
    REDUCE1 = 2
    REDUCE2 = 3
    REDUCE3 = 4
    REDUCE4 = 5
    IMPLODE = 6
    TOKENIZE = 7
    DEFLATE = 8
    DEFLATE64 = 9
    DCL_IMPLODE = 10
    BZIP2 = 12
    LZMA = 14
    ZOS_CMPSC = 16
    IBM_TERSE_NEW = 18
    IBM_LZ77 = 19
    ZSTANDARD_OLD = 20
    ZSTANDARD = 93
    MP3 = 94
    XZ = 95
    JPEG_VARIANT = 96
    WAVPACK = 97
    PPMD = 98
    AE_X_ENCRYPTION = 99


T = TypeVar('T')


def as_enum(raw_value: int, enum: Type[T]) -> Union[T, int]:
    """
    Converts a raw value to a member of `enum`, or returns it unchanged if it is not recognized.
    """
    try:
        return enum(raw_value)
    except ValueError:
        return raw_value
