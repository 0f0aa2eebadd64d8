"""Typed TLV field codec used for the fuzzing corpus.

Every field is framed by a one-byte tag. Booleans and integers carry a
fixed-width payload; blobs and text carry an 8-byte little-endian length
prefix followed by the raw body::

    bool  : tag(1) value(1)
    int   : tag(1) value(4, signed)
    blob  : tag(1) length(8) body(length)
    text  : tag(1) length(8) body(length)

Decoded values live in fixed-capacity ``bytearray`` storage so that a
decoded record never aliases the input buffer and never grows beyond the
declared bound of its field.
"""
from __future__ import annotations

import struct
from typing import Union

__all__ = [
    "BOOL_FORMAT",
    "INT_FORMAT",
    "LEN_FORMAT",
    "MAXBLOB",
    "MAXSTR",
    "TAG_SIZE",
    "Blob",
    "EncodeOverflow",
    "MalformedInput",
    "Text",
    "TlvError",
    "TlvReader",
    "TlvWriter",
    "read_blob",
    "read_bool",
    "read_int",
    "read_text",
    "write_blob",
    "write_bool",
    "write_int",
    "write_text",
]

MAXSTR = 255
MAXBLOB = 4096
TAG_SIZE = 1

BOOL_FORMAT = struct.Struct("<B")
INT_FORMAT = struct.Struct("<i")
LEN_FORMAT = struct.Struct("<Q")

BytesLike = Union[bytes, bytearray, memoryview]


class TlvError(Exception):
    """Base exception for TLV codec failures."""


class MalformedInput(TlvError):
    """Tag mismatch, truncation or bound violation while decoding."""


class EncodeOverflow(TlvError):
    """An encode step would exceed the destination capacity or a field bound."""


class Blob:
    """Opaque byte field backed by fixed-capacity storage."""

    __slots__ = ("body", "len")

    def __init__(self, capacity: int = MAXBLOB, value: BytesLike = b""):
        self.body = bytearray(capacity)
        self.len = 0
        self.set(value)

    @property
    def capacity(self) -> int:
        return len(self.body)

    def set(self, value: BytesLike) -> None:
        n = len(value)
        if n > self.capacity:
            raise EncodeOverflow(
                f"{n} bytes exceed blob capacity of {self.capacity}"
            )
        self.body[:n] = value
        self.len = n

    def __bytes__(self) -> bytes:
        return bytes(self.body[: self.len])

    def __len__(self) -> int:
        return self.len

    def __eq__(self, other):
        if isinstance(other, Blob):
            return self.capacity == other.capacity and bytes(self) == bytes(other)
        return NotImplemented

    def __repr__(self):
        return f"Blob(capacity={self.capacity}, len={self.len})"


class Text:
    """NUL-terminated string field backed by fixed-capacity storage.

    The logical value is everything before the first NUL, mirroring the way
    the credential API consumes C strings.
    """

    __slots__ = ("body",)

    def __init__(self, value: BytesLike = b"", capacity: int = MAXSTR):
        self.body = bytearray(capacity)
        self.set(value)

    @property
    def capacity(self) -> int:
        return len(self.body)

    @property
    def value(self) -> bytes:
        end = self.body.find(0)
        if end < 0:
            end = len(self.body)
        return bytes(self.body[:end])

    def set(self, value: BytesLike) -> None:
        n = len(value)
        if n > self.capacity - 1:
            raise EncodeOverflow(
                f"{n} bytes exceed string capacity of {self.capacity - 1}"
            )
        self.body[:n] = value
        self.body[n] = 0

    def __str__(self) -> str:
        return self.value.decode("utf-8", "replace")

    def __len__(self) -> int:
        return len(self.value)

    def __eq__(self, other):
        if isinstance(other, Text):
            return self.capacity == other.capacity and self.value == other.value
        return NotImplemented

    def __repr__(self):
        return f"Text({self.value!r})"


class TlvReader:
    """Input cursor over an encoded record."""

    def __init__(self, data: BytesLike):
        self._view = memoryview(bytes(data))
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._view) - self._pos

    def expect_tag(self, tag: int) -> None:
        if self.remaining < 1:
            raise MalformedInput(f"truncated before tag 0x{tag:02x}")
        found = self._view[self._pos]
        if found != tag:
            raise MalformedInput(f"expected tag 0x{tag:02x}, found 0x{found:02x}")
        self._pos += 1

    def take(self, n: int) -> memoryview:
        if n > self.remaining:
            raise MalformedInput(f"need {n} bytes, {self.remaining} remaining")
        chunk = self._view[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def unpack(self, fmt: struct.Struct) -> int:
        return fmt.unpack(self.take(fmt.size))[0]


class TlvWriter:
    """Output cursor over a fixed-capacity buffer."""

    def __init__(self, capacity: int):
        self._buf = bytearray(capacity)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._buf) - self._pos

    def put(self, tag: int, *chunks: bytes) -> None:
        needed = TAG_SIZE + sum(len(c) for c in chunks)
        if needed > self.remaining:
            raise EncodeOverflow(
                f"tag 0x{tag:02x} needs {needed} bytes, {self.remaining} remaining"
            )
        self._buf[self._pos] = tag
        self._pos += 1
        for chunk in chunks:
            self._buf[self._pos : self._pos + len(chunk)] = chunk
            self._pos += len(chunk)

    def getvalue(self) -> bytes:
        return bytes(self._buf[: self._pos])


def write_bool(w: TlvWriter, tag: int, value: bool) -> None:
    w.put(tag, BOOL_FORMAT.pack(1 if value else 0))


def read_bool(r: TlvReader, tag: int) -> bool:
    r.expect_tag(tag)
    return r.unpack(BOOL_FORMAT) != 0


def write_int(w: TlvWriter, tag: int, value: int) -> None:
    try:
        payload = INT_FORMAT.pack(value)
    except struct.error as e:
        raise EncodeOverflow(f"tag 0x{tag:02x}: {e}") from e
    w.put(tag, payload)


def read_int(r: TlvReader, tag: int) -> int:
    r.expect_tag(tag)
    return r.unpack(INT_FORMAT)


def write_blob(w: TlvWriter, tag: int, blob: Blob) -> None:
    if blob.len > blob.capacity:
        raise EncodeOverflow(f"tag 0x{tag:02x}: blob length exceeds capacity")
    w.put(tag, LEN_FORMAT.pack(blob.len), bytes(blob))


def read_blob(r: TlvReader, tag: int, capacity: int = MAXBLOB) -> Blob:
    r.expect_tag(tag)
    n = r.unpack(LEN_FORMAT)
    if n > capacity:
        raise MalformedInput(f"tag 0x{tag:02x}: length {n} exceeds {capacity}")
    return Blob(capacity, r.take(n))


def write_text(w: TlvWriter, tag: int, text: Text) -> None:
    value = text.value
    if len(value) > text.capacity - 1:
        raise EncodeOverflow(f"tag 0x{tag:02x}: string length exceeds capacity")
    w.put(tag, LEN_FORMAT.pack(len(value)), value)


def read_text(r: TlvReader, tag: int, capacity: int = MAXSTR) -> Text:
    r.expect_tag(tag)
    n = r.unpack(LEN_FORMAT)
    if n > capacity - 1:
        raise MalformedInput(f"tag 0x{tag:02x}: length {n} exceeds {capacity - 1}")
    body = r.take(n)
    if b"\x00" in body.tobytes():
        raise MalformedInput(f"tag 0x{tag:02x}: embedded NUL in string")
    return Text(body, capacity)
