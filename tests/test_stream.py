import io
import unittest

from iso8211 import ByteCursor, UnexpectedEndOfStream


class _Trickle(io.RawIOBase):
    """Returns at most two bytes per read."""

    def __init__(self, data):
        self.data = data
        self.index = 0

    def readable(self):
        return True

    def read(self, n=-1):
        chunk = self.data[self.index:self.index + min(n, 2)]
        self.index += len(chunk)
        return chunk


class TestByteCursor(unittest.TestCase):

    def test_read_exact_advances_position(self):
        cursor = ByteCursor.from_bytes(b"abcdef")
        self.assertEqual(cursor.read_exact(2), b"ab")
        self.assertEqual(cursor.position(), 2)
        self.assertEqual(cursor.read_exact(4), b"cdef")
        self.assertEqual(cursor.position(), 6)

    def test_short_reads_are_joined(self):
        cursor = ByteCursor(_Trickle(b"0123456789"))
        self.assertEqual(cursor.read_exact(7), b"0123456")
        self.assertEqual(cursor.position(), 7)

    def test_end_of_stream(self):
        cursor = ByteCursor.from_bytes(b"abc")
        cursor.read_exact(1)
        with self.assertRaises(UnexpectedEndOfStream) as ctx:
            cursor.read_exact(5)
        self.assertEqual(ctx.exception.requested, 5)
        self.assertEqual(ctx.exception.received, 2)
        self.assertEqual(ctx.exception.position, 1)

    def test_empty_stream(self):
        cursor = ByteCursor.from_bytes(b"")
        with self.assertRaises(UnexpectedEndOfStream) as ctx:
            cursor.read_exact(24)
        self.assertEqual(ctx.exception.received, 0)

    def test_zero_length_read(self):
        cursor = ByteCursor.from_bytes(b"")
        self.assertEqual(cursor.read_exact(0), b"")
