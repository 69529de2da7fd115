import enum
import struct

from fspak.lib.structures import EOF, FlagAccessMixin, Struct, StructReader

from .. import TestBase


class Point(Struct):
    def __init__(self, reader: StructReader, scale=1):
        self.x = reader.u16() * scale
        self.y = reader.u16() * scale


class Flags(FlagAccessMixin, enum.IntFlag):
    IsBinary = 1
    IsCompressed = 2


class TestStructures(TestBase):

    def test_reader_integers(self):
        data = struct.pack('<BHI', 0x7F, 0xBEEF, 0xDEADBEEF)
        reader = StructReader(data)
        self.assertEqual(reader.u8(), 0x7F)
        self.assertEqual(reader.u16(peek=True), 0xBEEF)
        self.assertEqual(reader.u16(), 0xBEEF)
        self.assertEqual(reader.u32(), 0xDEADBEEF)
        self.assertTrue(reader.eof)

    def test_reader_seek(self):
        reader = StructReader(bytes(range(10)))
        self.assertEqual(reader.seekset(-3), 7)
        self.assertEqual(reader.read(), bytes((7, 8, 9)))
        self.assertEqual(reader.seekset(100), 10)
        self.assertEqual(reader.remaining_bytes, 0)
        reader.seekset(2)
        reader.skip(3)
        self.assertEqual(reader.tell(), 5)
        self.assertEqual(reader.peek(2), bytes((5, 6)))
        self.assertEqual(reader.tell(), 5)

    def test_read_exactly_raises_eof(self):
        reader = StructReader(B'ABCDE')
        reader.skip(2)
        with self.assertRaises(EOF) as context:
            reader.read_exactly(5)
        self.assertEqual(context.exception.rest, B'CDE')
        self.assertEqual(context.exception.size, 5)
        self.assertIsInstance(context.exception, EOFError)
        with self.assertRaises(EOFError):
            StructReader(B'\x01').u32()

    def test_reader_from_reader(self):
        reader = StructReader(B'0123456789')
        reader.skip(4)
        clone = StructReader(reader)
        self.assertEqual(clone.read(2), B'45')
        self.assertEqual(reader.tell(), 4)

    def test_struct_parse(self):
        point = Point.Parse(struct.pack('<HHH', 3, 4, 5), scale=2)
        self.assertEqual((point.x, point.y), (6, 8))
        self.assertEqual(len(point), 4)

    def test_struct_parse_from_reader(self):
        reader = StructReader(struct.pack('<HHHH', 1, 2, 3, 4))
        first = Point.Parse(reader)
        second = Point.Parse(reader)
        self.assertEqual((first.x, first.y, second.x, second.y), (1, 2, 3, 4))
        self.assertTrue(reader.eof)

    def test_flag_access(self):
        flags = Flags(2)
        self.assertTrue(flags.IsCompressed)
        self.assertFalse(flags.IsBinary)
        self.assertEqual(repr(flags), 'IsCompressed')
