from __future__ import annotations

import struct

import pytest

from credfuzz.params import (
    ENCODE_BUFFER_SIZE,
    FIELDS,
    CodecError,
    CredParams,
    Tag,
    decode_params,
    encode_params,
    encoded_size,
)
from credfuzz.tlv import MAXBLOB, Blob, Text


def _custom_params() -> CredParams:
    return CredParams(
        type=False,
        cdh=Blob(32, b"\x11" * 7),
        rp_id=Text(b"example.org"),
        rp_name=Text(b""),
        authdata=Blob(value=b"\x40"),
        ext=-123456,
        rk=True,
        uv=True,
        x509=Blob(),
        sig=Blob(value=bytes(range(256))),
        fmt=False,
    )


def test_fields_follow_tag_order():
    assert [entry.tag for entry in FIELDS] == list(Tag)
    assert len(FIELDS) == 11


@pytest.mark.parametrize("factory", [CredParams, _custom_params])
def test_roundtrip(factory):
    params = factory()
    encoded = encode_params(params)
    assert encoded.ok
    assert len(encoded) == encoded_size(params)

    decoded = decode_params(encoded.data)
    assert decoded.ok
    assert decoded.params == params


def test_encoded_size_of_empty_record():
    # 4 bools, 1 int, 4 blobs and 2 strings, each behind a one-byte tag.
    expected = 4 * (1 + 1) + (1 + 4) + 4 * (1 + 8) + 2 * (1 + 8)
    assert encoded_size(CredParams()) == expected == 67
    assert len(encode_params(CredParams())) == expected


def test_encoded_size_tracks_field_lengths(canonical_params):
    base = encoded_size(canonical_params)
    canonical_params.sig.set(b"\x01" * 10)
    canonical_params.rp_name.set(b"rp")
    size = encoded_size(canonical_params)
    assert size == base - 70 + 10 - 20 + 2
    assert size == len(encode_params(canonical_params))


def test_roundtrip_canonical(canonical_params):
    decoded = decode_params(encode_params(canonical_params).data)
    assert decoded.params == canonical_params


def test_every_truncation_is_rejected(canonical_params):
    data = encode_params(canonical_params).data
    for cut in range(len(data)):
        result = decode_params(data[:cut])
        assert not result.ok, cut
        assert result.error is CodecError.MALFORMED_INPUT
        assert result.params is None


def test_trailing_bytes_are_ignored(canonical_params):
    data = encode_params(canonical_params).data
    assert decode_params(data + b"\xff\xff").params == canonical_params


def test_out_of_order_fields_are_rejected():
    data = bytearray(encode_params(CredParams()).data)
    # Swap the leading TYPE tag for the trailing FMT tag.
    data[0] = Tag.FMT
    assert decode_params(bytes(data)).error is CodecError.MALFORMED_INPUT


def test_decode_rejects_oversized_client_data_hash():
    data = bytearray(encode_params(CredParams()).data)
    # type (2 bytes), then the cdh tag and its length prefix.
    assert data[2] == Tag.CDH
    data[3:11] = struct.pack("<Q", 33)
    data[11:11] = bytes(33)
    assert decode_params(bytes(data)).error is CodecError.MALFORMED_INPUT


def test_decode_normalises_boolean_fields():
    data = bytearray(encode_params(CredParams()).data)
    data[1] = 0x80
    result = decode_params(bytes(data))
    assert result.params.type is True
    assert encode_params(result.params).data[1] == 1


def test_decode_copies_input(canonical_params):
    data = bytearray(encode_params(canonical_params).data)
    params = decode_params(data).params
    data[:] = bytes(len(data))
    assert params == canonical_params


def test_encode_fails_when_buffer_too_small(canonical_params):
    size = encoded_size(canonical_params)
    assert encode_params(canonical_params, size).ok

    result = encode_params(canonical_params, size - 1)
    assert result.error is CodecError.ENCODE_OVERFLOW
    assert result.data == b""


def test_encode_fails_on_blob_beyond_capacity():
    params = CredParams()
    params.cdh.len = params.cdh.capacity + 1
    assert encode_params(params).error is CodecError.ENCODE_OVERFLOW


def test_blob_at_full_capacity_overflows_default_buffer():
    params = CredParams(authdata=Blob(value=bytes(MAXBLOB)))
    assert encoded_size(params) > ENCODE_BUFFER_SIZE
    assert encode_params(params).error is CodecError.ENCODE_OVERFLOW
    assert encode_params(params, encoded_size(params)).ok
