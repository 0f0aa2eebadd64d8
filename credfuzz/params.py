"""Canonical TLV record holding every credential-creation parameter."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum, unique
from typing import Optional, Tuple, Union

from .tlv import (
    BOOL_FORMAT,
    INT_FORMAT,
    LEN_FORMAT,
    MAXBLOB,
    MAXSTR,
    TAG_SIZE,
    Blob,
    EncodeOverflow,
    MalformedInput,
    Text,
    TlvReader,
    TlvWriter,
    read_blob,
    read_bool,
    read_int,
    read_text,
    write_blob,
    write_bool,
    write_int,
    write_text,
)

__all__ = [
    "ENCODE_BUFFER_SIZE",
    "FIELDS",
    "MAXCDH",
    "CodecError",
    "CredParams",
    "DecodeResult",
    "EncodeResult",
    "FieldKind",
    "FieldSpec",
    "Tag",
    "decode_params",
    "encode_params",
    "encoded_size",
]

logger = logging.getLogger(__name__)

MAXCDH = 32
ENCODE_BUFFER_SIZE = 4096


@unique
class Tag(IntEnum):
    TYPE = 0x01
    CDH = 0x02  # client data hash
    RP_ID = 0x03
    RP_NAME = 0x04
    AUTHDATA = 0x05
    EXT = 0x06
    RK = 0x07
    UV = 0x08
    X509 = 0x09
    SIG = 0x0A
    FMT = 0x0B


class FieldKind(Enum):
    BOOL = "bool"
    INT = "int"
    BLOB = "blob"
    TEXT = "text"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    tag: Tag
    kind: FieldKind
    capacity: int = 0


# Wire order. Decoding expects exactly this sequence of tags.
FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("type", Tag.TYPE, FieldKind.BOOL),
    FieldSpec("cdh", Tag.CDH, FieldKind.BLOB, MAXCDH),
    FieldSpec("rp_id", Tag.RP_ID, FieldKind.TEXT, MAXSTR),
    FieldSpec("rp_name", Tag.RP_NAME, FieldKind.TEXT, MAXSTR),
    FieldSpec("authdata", Tag.AUTHDATA, FieldKind.BLOB, MAXBLOB),
    FieldSpec("ext", Tag.EXT, FieldKind.INT),
    FieldSpec("rk", Tag.RK, FieldKind.BOOL),
    FieldSpec("uv", Tag.UV, FieldKind.BOOL),
    FieldSpec("x509", Tag.X509, FieldKind.BLOB, MAXBLOB),
    FieldSpec("sig", Tag.SIG, FieldKind.BLOB, MAXBLOB),
    FieldSpec("fmt", Tag.FMT, FieldKind.BOOL),
)


@dataclass
class CredParams:
    """Typed view of one fuzzer input.

    ``type`` selects ES256 (True) or RS256 (False) and ``fmt`` selects the
    "packed" (True) or "fido-u2f" (False) attestation format.
    """

    type: bool = False
    cdh: Blob = field(default_factory=lambda: Blob(MAXCDH))
    rp_id: Text = field(default_factory=Text)
    rp_name: Text = field(default_factory=Text)
    authdata: Blob = field(default_factory=Blob)
    ext: int = 0
    rk: bool = False
    uv: bool = False
    x509: Blob = field(default_factory=Blob)
    sig: Blob = field(default_factory=Blob)
    fmt: bool = False


@unique
class CodecError(IntEnum):
    MALFORMED_INPUT = 1
    ENCODE_OVERFLOW = 2


@dataclass
class DecodeResult:
    params: Optional[CredParams] = None
    error: Optional[CodecError] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class EncodeResult:
    data: bytes = b""
    error: Optional[CodecError] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    def __len__(self) -> int:
        return len(self.data)


_READERS = {
    FieldKind.BOOL: lambda r, entry: read_bool(r, entry.tag),
    FieldKind.INT: lambda r, entry: read_int(r, entry.tag),
    FieldKind.BLOB: lambda r, entry: read_blob(r, entry.tag, entry.capacity),
    FieldKind.TEXT: lambda r, entry: read_text(r, entry.tag, entry.capacity),
}

_WRITERS = {
    FieldKind.BOOL: write_bool,
    FieldKind.INT: write_int,
    FieldKind.BLOB: write_blob,
    FieldKind.TEXT: write_text,
}


def decode_params(data: Union[bytes, bytearray, memoryview]) -> DecodeResult:
    """Decode a canonical TLV record.

    Every field must be present, in order, and within its bound. The first
    failure aborts the decode; the caller only learns that the input is
    malformed.
    """

    reader = TlvReader(data)
    values = {}
    try:
        for entry in FIELDS:
            values[entry.name] = _READERS[entry.kind](reader, entry)
    except MalformedInput as e:
        return DecodeResult(error=CodecError.MALFORMED_INPUT, reason=str(e))
    return DecodeResult(params=CredParams(**values))


def encode_params(
    params: CredParams, capacity: int = ENCODE_BUFFER_SIZE
) -> EncodeResult:
    """Encode ``params`` into at most ``capacity`` bytes."""

    writer = TlvWriter(capacity)
    try:
        for entry in FIELDS:
            _WRITERS[entry.kind](writer, entry.tag, getattr(params, entry.name))
    except EncodeOverflow as e:
        logger.debug("Encode overflow: %s", e)
        return EncodeResult(error=CodecError.ENCODE_OVERFLOW, reason=str(e))
    return EncodeResult(data=writer.getvalue())


def encoded_size(params: CredParams) -> int:
    """Number of bytes ``encode_params`` emits for ``params`` given room."""

    size = 0
    for entry in FIELDS:
        value = getattr(params, entry.name)
        if entry.kind is FieldKind.BOOL:
            size += TAG_SIZE + BOOL_FORMAT.size
        elif entry.kind is FieldKind.INT:
            size += TAG_SIZE + INT_FORMAT.size
        elif entry.kind is FieldKind.BLOB:
            size += TAG_SIZE + LEN_FORMAT.size + len(value)
        else:
            size += TAG_SIZE + LEN_FORMAT.size + len(value.value)
    return size
