"""
Prints the decoded directory of a ZIP archive, for inspection::

    python -m atmfjstc.lib.zip_directory [-v] archive.zip
"""

import sys
import logging

from argparse import ArgumentParser, Namespace
from typing import List, Optional, TextIO

from termcolor import cprint

from . import ZipDirectoryFile, ZipDirectoryError, ZipDirectory, CentralDirectoryEntry, ZipInternalFileAttributes


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)

    _init_console_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        with ZipDirectoryFile(args.file) as zip_file:
            print_directory(zip_file.directory, sys.stdout)
    except ZipDirectoryError as e:
        cprint(f"Couldn't read '{args.file}': {e}", 'red', attrs=['bold'], file=sys.stderr)
        return 1
    except OSError as e:
        cprint(f"Couldn't open '{args.file}': {e.strerror or e}", 'red', attrs=['bold'], file=sys.stderr)
        return 1

    return 0


def _parse_args(argv: Optional[List[str]]) -> Namespace:
    parser = ArgumentParser(prog='python -m atmfjstc.lib.zip_directory', description="Show the directory of a ZIP file")
    parser.add_argument('-v', '--verbose', action='store_true', help="show debug messages while parsing")
    parser.add_argument('file', help="the ZIP archive to inspect")

    return parser.parse_args(argv)


def _init_console_logging(level: int):
    logging.basicConfig(
        level=level,
        style='{',
        format='[{asctime}] {levelname}: {message}',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def print_directory(directory: ZipDirectory, out: TextIO):
    print(f"Format: {'Zip64' if directory.is_zip64 else 'standard'}", file=out)
    print(f"Entries: {directory.entry_count}", file=out)
    print(
        f"Central directory: {directory.central_directory_size} bytes at offset "
        f"{directory.central_directory_offset}",
        file=out
    )
    if directory.archive_offset > 0:
        print(f"Prepended data: {directory.archive_offset} bytes", file=out)
    if len(directory.comment) > 0:
        print(f"Comment: {bytes(directory.comment)!r}", file=out)

    for entry in directory.entries:
        print(format_entry(entry), file=out)


def format_entry(entry: CentralDirectoryEntry) -> str:
    compression = getattr(entry.compression, 'name', str(entry.compression))
    modified = entry.last_modified.isoformat(sep=' ') if entry.last_modified is not None else '-'
    markers = ''.join([
        'E' if entry.encrypted else '-',
        'U' if entry.is_utf8 else '-',
        'D' if entry.is_directory else '-',
        'T' if ZipInternalFileAttributes.LIKELY_TEXT_FILE in entry.internal_attributes else '-',
    ])

    return (
        f"{markers} {entry.real_uncompressed_size:>12} {entry.real_compressed_size:>12} {compression:<10} "
        f"{entry.crc32:08x} {modified:<19} @{entry.real_local_header_offset:<10} {entry.name}"
    )


if __name__ == '__main__':
    sys.exit(main())
