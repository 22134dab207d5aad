"""
Named Binary Tag (NBT) Writer and Reader

NBT is a big-endian tagged tree format. Every named tag is encoded as:
- Type id (1 byte)
- Name: 16-bit length + UTF-8 bytes
- Payload (type dependent)

Only the tag types needed for block schematics are written; the reader
understands the full set so foreign files can be inspected.
"""

import struct
from typing import Any, Dict, List, Tuple, Union

from ..errors import NBTError


TAG_END = 0
TAG_BYTE = 1
TAG_SHORT = 2
TAG_INT = 3
TAG_LONG = 4
TAG_FLOAT = 5
TAG_DOUBLE = 6
TAG_BYTE_ARRAY = 7
TAG_STRING = 8
TAG_LIST = 9
TAG_COMPOUND = 10
TAG_INT_ARRAY = 11
TAG_LONG_ARRAY = 12

MAX_STRING_BYTES = 0xFFFF


class NBTWriter:
    """
    Builder over a growable byte buffer.

    Compounds are opened with begin_compound and closed with end_compound;
    getvalue refuses to return a stream with unclosed compounds.
    """

    def __init__(self):
        self._buffer = bytearray()
        self._depth = 0

    def _pack(self, fmt: str, value) -> bytes:
        try:
            return struct.pack(fmt, value)
        except struct.error as e:
            raise NBTError(f"Value {value!r} does not fit '{fmt}': {e}") from e

    # Primitive payloads

    def write_type(self, tag_type: int):
        self._buffer += self._pack(">B", tag_type)

    def write_byte(self, value: int):
        self._buffer += self._pack(">b", value)

    def write_short(self, value: int):
        self._buffer += self._pack(">h", value)

    def write_int(self, value: int):
        self._buffer += self._pack(">i", value)

    def write_long(self, value: int):
        self._buffer += self._pack(">q", value)

    def write_string(self, value: str):
        encoded = value.encode("utf-8")
        if len(encoded) > MAX_STRING_BYTES:
            raise NBTError(f"String too long for NBT ({len(encoded)} bytes)")
        self._buffer += self._pack(">H", len(encoded))
        self._buffer += encoded

    def write_bytes(self, data: Union[bytes, bytearray]):
        self._buffer += self._pack(">i", len(data))
        self._buffer += data

    # Named tags

    def write_header(self, tag_type: int, name: str):
        self.write_type(tag_type)
        self.write_string(name)

    def write_tag(self, tag_type: int, name: str, value: Any):
        """
        Write one named scalar, string or byte-array tag.

        Raises:
            NBTError: Unsupported tag type or value out of range
        """
        writers = {
            TAG_BYTE: self.write_byte,
            TAG_SHORT: self.write_short,
            TAG_INT: self.write_int,
            TAG_LONG: self.write_long,
            TAG_STRING: self.write_string,
            TAG_BYTE_ARRAY: self.write_bytes,
        }
        if tag_type not in writers:
            raise NBTError(f"Unsupported tag type: {tag_type}")

        self.write_header(tag_type, name)
        writers[tag_type](value)

    def write_empty_list(self, name: str, element_type: int = TAG_COMPOUND):
        self.write_header(TAG_LIST, name)
        self.write_type(element_type)
        self.write_int(0)

    def begin_compound(self, name: str):
        self.write_header(TAG_COMPOUND, name)
        self._depth += 1

    def end_compound(self):
        if self._depth == 0:
            raise NBTError("end_compound without matching begin_compound")
        self.write_type(TAG_END)
        self._depth -= 1

    def getvalue(self) -> bytes:
        if self._depth != 0:
            raise NBTError(f"{self._depth} compound(s) left open")
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)


class _Buf:
    __slots__ = ("b", "o")

    def __init__(self, b: bytes):
        self.b = b
        self.o = 0

    def read(self, fmt: str, size: int):
        data = self.read_bytes(size)
        return struct.unpack(fmt, data)[0]

    def read_bytes(self, n: int) -> bytes:
        if n < 0:
            raise NBTError("negative length")
        if self.o + n > len(self.b):
            raise NBTError("unexpected EOF")
        v = self.b[self.o:self.o + n]
        self.o += n
        return v

    def read_string(self) -> str:
        ln = self.read(">H", 2)
        return self.read_bytes(ln).decode("utf-8", errors="strict")


_SCALARS = {
    TAG_BYTE: (">b", 1),
    TAG_SHORT: (">h", 2),
    TAG_INT: (">i", 4),
    TAG_LONG: (">q", 8),
    TAG_FLOAT: (">f", 4),
    TAG_DOUBLE: (">d", 8),
}


def _read_payload(tag: int, buf: _Buf):
    if tag in _SCALARS:
        return buf.read(*_SCALARS[tag])
    if tag == TAG_BYTE_ARRAY:
        return buf.read_bytes(buf.read(">i", 4))
    if tag == TAG_STRING:
        return buf.read_string()
    if tag == TAG_LIST:
        inner = buf.read(">B", 1)
        ln = buf.read(">i", 4)
        if ln < 0:
            raise NBTError("negative list length")
        return [_read_payload(inner, buf) for _ in range(ln)]
    if tag == TAG_COMPOUND:
        out = {}
        while True:
            t = buf.read(">B", 1)
            if t == TAG_END:
                return out
            name = buf.read_string()
            out[name] = _read_payload(t, buf)
    if tag == TAG_INT_ARRAY:
        ln = buf.read(">i", 4)
        return [buf.read(">i", 4) for _ in range(ln)]
    if tag == TAG_LONG_ARRAY:
        ln = buf.read(">i", 4)
        return [buf.read(">q", 8) for _ in range(ln)]
    raise NBTError(f"Unknown tag type: {tag}")


def read_nbt(data: bytes) -> Tuple[str, Dict[str, Any]]:
    """
    Parse an uncompressed NBT stream with a compound root.

    Returns:
        (root name, root compound as dict in stream order)
    """
    buf = _Buf(data)
    tag = buf.read(">B", 1)
    if tag != TAG_COMPOUND:
        raise NBTError(f"Root tag must be a compound, got type {tag}")
    name = buf.read_string()
    return name, _read_payload(TAG_COMPOUND, buf)


def tag_order(data: bytes) -> List[Tuple[int, str]]:
    """(type, name) of every direct child of the root compound, in order."""
    buf = _Buf(data)
    if buf.read(">B", 1) != TAG_COMPOUND:
        raise NBTError("Root tag must be a compound")
    buf.read_string()

    order = []
    while True:
        t = buf.read(">B", 1)
        if t == TAG_END:
            return order
        name = buf.read_string()
        order.append((t, name))
        _read_payload(t, buf)
