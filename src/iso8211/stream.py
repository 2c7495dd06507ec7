import io

from .errors import UnexpectedEndOfStream


FT = 0x1e

FT_BYTE = b"\x1e"
UT_BYTE = b"\x1f"


class ByteCursor:
    """Forward-only reader over a binary stream.

    This is the only object that touches the underlying stream. It never
    seeks, so it works equally over files, sockets and in-memory buffers.
    """

    def __init__(self, stream, start_position: int = 0):
        self._stream = stream
        self._position = start_position

    @staticmethod
    def from_bytes(data: bytes):
        return ByteCursor(io.BytesIO(data))

    def position(self) -> int:
        return self._position

    def read_exact(self, length: int) -> bytes:
        if length < 0:
            raise ValueError("Cannot read a negative number of bytes: {}".format(length))
        chunks = []
        remaining = length
        while remaining > 0:
            chunk = self._stream.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        data = b"".join(chunks)
        self._position += len(data)
        if remaining > 0:
            raise UnexpectedEndOfStream(length, len(data), self._position - len(data))
        return data

    def read_byte(self) -> int:
        return self.read_exact(1)[0]
