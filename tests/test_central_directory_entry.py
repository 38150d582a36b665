import unittest

from datetime import datetime

from atmfjstc.lib.zip_directory import BufferCursor, parse_central_directory_entry, decode_file_name, Utf8Text, \
    LegacyText, ZipCompressionMethod, ZipHostOS, ZipInternalFileAttributes, \
    MalformedRecordError, InvalidMagicError, TextDecodingError
from atmfjstc.lib.zip_directory.extra_fields import iter_extra_fields

from zip_builders import build_cd_entry, build_zip64_extra, build_eocdr


class ParseEntryTest(unittest.TestCase):
    def test_fields(self):
        data = build_cd_entry(
            b'dir/file.txt', flags=0x0008, extra=b'\x55\x54\x05\x00\x01\x00\x00\x00\x00', comment=b'a comment',
            compression=8, crc32=0xcafebabe, compressed_size=100, uncompressed_size=300, local_header_offset=1234,
            disk_number=0, source_version=0x0314, extract_version=20, mod_time=0x6b52, mod_date=0x5021,
            internal_attributes=1, external_attributes=0x81a40000,
        )
        entry = parse_central_directory_entry(BufferCursor(data))

        self.assertEqual(entry.source_version, 0x0314)
        self.assertEqual(entry.minimum_extract_version, 20)
        self.assertEqual(entry.flags, 0x0008)
        self.assertEqual(entry.compression_method, 8)
        self.assertEqual(entry.last_mod_time, 0x6b52)
        self.assertEqual(entry.last_mod_date, 0x5021)
        self.assertEqual(entry.crc32, 0xcafebabe)
        self.assertEqual(entry.compressed_size, 100)
        self.assertEqual(entry.uncompressed_size, 300)
        self.assertEqual(entry.file_name_length, 12)
        self.assertEqual(entry.extra_field_length, 9)
        self.assertEqual(entry.file_comment_length, 9)
        self.assertEqual(entry.disk_number, 0)
        self.assertEqual(entry.internal_file_attributes, 1)
        self.assertEqual(entry.external_file_attributes, 0x81a40000)
        self.assertEqual(entry.local_header_offset, 1234)
        self.assertEqual(entry.name, 'dir/file.txt')
        self.assertEqual(entry.raw_file_name, b'dir/file.txt')
        self.assertEqual(entry.extra_field, b'\x55\x54\x05\x00\x01\x00\x00\x00\x00')
        self.assertEqual(entry.file_comment, b'a comment')
        self.assertFalse(entry.encrypted)
        self.assertFalse(entry.is_utf8)
        self.assertIsNone(entry.zip64_info)
        self.assertEqual(entry.total_size_in_file, len(data))

    def test_derived_properties(self):
        entry = parse_central_directory_entry(BufferCursor(build_cd_entry(
            b'folder/', compression=8, source_version=0x0314, mod_time=0x6b52, mod_date=0x5021,
        )))

        self.assertTrue(entry.is_directory)
        self.assertEqual(entry.host_os, ZipHostOS.UNIX)
        self.assertEqual(entry.compression, ZipCompressionMethod.DEFLATE)
        self.assertEqual(entry.last_modified, datetime(2020, 1, 1, 13, 26, 36))

    def test_internal_attributes(self):
        text_entry = parse_central_directory_entry(BufferCursor(build_cd_entry(b'notes.txt', internal_attributes=1)))
        binary_entry = parse_central_directory_entry(BufferCursor(build_cd_entry(b'image.png')))

        self.assertIsInstance(text_entry.internal_attributes, ZipInternalFileAttributes)
        self.assertIn(ZipInternalFileAttributes.LIKELY_TEXT_FILE, text_entry.internal_attributes)
        self.assertNotIn(ZipInternalFileAttributes.LIKELY_TEXT_FILE, binary_entry.internal_attributes)

    def test_unknown_enums(self):
        entry = parse_central_directory_entry(BufferCursor(build_cd_entry(
            b'x', compression=77, source_version=0xc814,
        )))

        self.assertEqual(entry.compression, 77)
        self.assertEqual(entry.host_os, 200)

    def test_invalid_timestamp(self):
        entry = parse_central_directory_entry(BufferCursor(build_cd_entry(b'x', mod_date=0, mod_time=0)))

        self.assertIsNone(entry.last_modified)

    def test_consecutive(self):
        first = build_cd_entry(b'first', comment=b'c1')
        second = build_cd_entry(b'second', extra=b'\x00\x00\x00\x00')
        cursor = BufferCursor(first + second + build_eocdr())

        entry1 = parse_central_directory_entry(cursor)
        self.assertEqual(cursor.tell(), len(first))

        entry2 = parse_central_directory_entry(cursor)
        self.assertEqual(cursor.tell(), len(first) + len(second))

        self.assertEqual((entry1.name, entry1.offset), ('first', 0))
        self.assertEqual((entry2.name, entry2.offset), ('second', len(first)))

    def test_encrypted(self):
        entry = parse_central_directory_entry(BufferCursor(build_cd_entry(b'secret', flags=0x0001)))

        self.assertTrue(entry.encrypted)

    def test_wrong_magic(self):
        cursor = BufferCursor(build_eocdr())

        with self.assertRaises(InvalidMagicError) as ctx:
            parse_central_directory_entry(cursor)

        self.assertEqual(ctx.exception.found_magic, b'PK\x05\x06')

    def test_end_of_data(self):
        with self.assertRaises(InvalidMagicError):
            parse_central_directory_entry(BufferCursor(b''))

    def test_truncated_fixed_fields(self):
        with self.assertRaises(MalformedRecordError):
            parse_central_directory_entry(BufferCursor(build_cd_entry(b'name')[:40]))

    def test_variable_fields_past_end(self):
        data = build_cd_entry(b'name', comment=b'comment')

        with self.assertRaises(MalformedRecordError):
            parse_central_directory_entry(BufferCursor(data[:-1]))

    def test_name_length_past_end(self):
        data = build_cd_entry(b'name', name_length=0xffff)

        with self.assertRaises(MalformedRecordError):
            parse_central_directory_entry(BufferCursor(data))

    def test_region_bounded(self):
        data = build_cd_entry(b'name') + b'more bytes'

        with self.assertRaises(MalformedRecordError):
            parse_central_directory_entry(BufferCursor(data, 0, len(data) - 12))


class FileNameTest(unittest.TestCase):
    def test_utf8(self):
        raw = 'Ünïcödé/文件.txt'.encode('utf-8')
        entry = parse_central_directory_entry(BufferCursor(build_cd_entry(raw, flags=1 << 11)))

        self.assertTrue(entry.is_utf8)
        self.assertEqual(entry.file_name, Utf8Text(raw.decode('utf-8')))

    def test_invalid_utf8(self):
        with self.assertRaises(TextDecodingError) as ctx:
            parse_central_directory_entry(BufferCursor(build_cd_entry(b'bad\xff\xfe', flags=1 << 11)))

        self.assertEqual(ctx.exception.raw_text, b'bad\xff\xfe')

    def test_cp437(self):
        entry = parse_central_directory_entry(BufferCursor(build_cd_entry(b'\x80')))

        self.assertFalse(entry.is_utf8)
        self.assertEqual(entry.file_name, LegacyText('Ç'))

    def test_cp437_all_bytes(self):
        name = decode_file_name(memoryview(bytes(range(256))), is_utf8=False)

        self.assertIsInstance(name, LegacyText)
        self.assertEqual(len(name.text), 256)
        self.assertEqual(name.text[:0x20], ''.join(chr(i) for i in range(0x20)))
        self.assertEqual(name.text[0x7f], '\x7f')
        self.assertEqual(name.text[0xe1], 'ß')

    def test_cp437_not_utf8(self):
        self.assertEqual(decode_file_name(memoryview('é'.encode('utf-8')), is_utf8=False).text, '├⌐')

    def test_variants_differ(self):
        self.assertNotEqual(Utf8Text('abc'), LegacyText('abc'))


class Zip64ExtraTest(unittest.TestCase):
    def test_all_values(self):
        data = build_cd_entry(
            b'big', compressed_size=0xffffffff, uncompressed_size=0xffffffff, local_header_offset=0xffffffff,
            disk_number=0xffff, extra=build_zip64_extra(0x500000000, 0x400000000, 0x300000000, disk_number=0),
        )
        entry = parse_central_directory_entry(BufferCursor(data))

        self.assertEqual(entry.real_uncompressed_size, 0x500000000)
        self.assertEqual(entry.real_compressed_size, 0x400000000)
        self.assertEqual(entry.real_local_header_offset, 0x300000000)
        self.assertEqual(entry.real_disk_number, 0)

    def test_only_needed_values(self):
        data = build_cd_entry(
            b'big', compressed_size=10, uncompressed_size=20, local_header_offset=0xffffffff,
            extra=b'\x55\x54\x01\x00\x00' + build_zip64_extra(0x300000000),
        )
        entry = parse_central_directory_entry(BufferCursor(data))

        self.assertEqual(entry.zip64_info.local_header_offset, 0x300000000)
        self.assertIsNone(entry.zip64_info.compressed_size)
        self.assertEqual(entry.real_uncompressed_size, 20)
        self.assertEqual(entry.real_compressed_size, 10)
        self.assertEqual(entry.real_local_header_offset, 0x300000000)

    def test_sentinel_without_header(self):
        data = build_cd_entry(b'exactly 4GiB-1', uncompressed_size=0xffffffff)
        entry = parse_central_directory_entry(BufferCursor(data))

        self.assertIsNone(entry.zip64_info)
        self.assertEqual(entry.real_uncompressed_size, 0xffffffff)

    def test_header_too_short(self):
        data = build_cd_entry(
            b'big', compressed_size=0xffffffff, uncompressed_size=0xffffffff, extra=build_zip64_extra(0x500000000),
        )

        with self.assertRaises(MalformedRecordError):
            parse_central_directory_entry(BufferCursor(data))

    def test_truncated_extra_field(self):
        data = build_cd_entry(b'big', uncompressed_size=0xffffffff, extra=b'\x55\x54\x09\x00\x01')

        with self.assertRaises(MalformedRecordError):
            parse_central_directory_entry(BufferCursor(data))


class IterExtraFieldsTest(unittest.TestCase):
    def test_split(self):
        data = memoryview(b'\x01\x00\x02\x00ab' + b'\x55\x54\x00\x00' + b'\x75\x70\x01\x00c')

        self.assertEqual(
            [(header_id, bytes(value)) for header_id, value in iter_extra_fields(data)],
            [(0x0001, b'ab'), (0x5455, b''), (0x7075, b'c')]
        )

    def test_empty(self):
        self.assertEqual(list(iter_extra_fields(memoryview(b''))), [])

    def test_truncated_header(self):
        with self.assertRaises(MalformedRecordError):
            list(iter_extra_fields(memoryview(b'\x01\x00\x05\x00ab')))


if __name__ == '__main__':
    unittest.main()
