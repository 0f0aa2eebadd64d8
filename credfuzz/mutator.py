"""Structure-aware custom mutator.

Raw byte mutation of a tagged, length-prefixed record desynchronises the
stream almost immediately. Instead the record is decoded, every field is
mutated in its native storage through the engine's byte mutator, and the
result is encoded again so that every output is a well-formed record.
"""
from __future__ import annotations

import logging
from typing import Callable

from .cred import COSE_ES256, COSE_RS256, Credential, CredentialError
from .params import (
    ENCODE_BUFFER_SIZE,
    CredParams,
    decode_params,
    encode_params,
)
from .seed import canonical_seed
from .tlv import BOOL_FORMAT, INT_FORMAT, Blob, Text

__all__ = ["ByteMutator", "CredentialMutator"]

logger = logging.getLogger(__name__)

# (data, max_size) -> mutated data of at most max_size bytes, as atheris.Mutate.
ByteMutator = Callable[[bytes, int], bytes]


class CredentialMutator:
    """Mutates encoded :class:`~credfuzz.params.CredParams` records.

    :param mutate: The engine's byte-level mutation primitive.
    :param preflight: Check authenticator data with the credential object.
        Inputs it refuses are replaced by the seed, and mutations it
        refuses are rejected.
    """

    def __init__(self, mutate: ByteMutator, *, preflight: bool = False):
        self._mutate = mutate
        self.preflight = preflight

    def __call__(self, data: bytes, max_size: int, seed: int) -> bytes:
        """Atheris ``custom_mutator`` entry point."""

        buf = bytearray(data)
        n = self.mutate_buffer(buf, len(data), max_size, seed)
        if n == 0:
            return data
        return bytes(buf[:n])

    def mutate_buffer(
        self, buf: bytearray, size: int, max_size: int, seed: int
    ) -> int:
        """Mutate the record in ``buf[:size]`` in place.

        Returns the new length, or 0 when no well-formed mutation fits in
        ``max_size`` bytes. Nothing is written past ``max_size``.
        """

        result = decode_params(bytes(buf[:size]))
        if not result.ok:
            logger.debug("Input not decodable (%s); emitting seed", result.reason)
            return self._emit_seed(buf, max_size)

        params = result.params
        if self.preflight and not _authdata_accepted(params):
            logger.debug("Input authdata rejected by the target; emitting seed")
            return self._emit_seed(buf, max_size)

        self.mutate_params(params)
        if self.preflight and not _authdata_accepted(params):
            return 0

        encoded = encode_params(params, ENCODE_BUFFER_SIZE)
        if not encoded.ok or len(encoded) > max_size:
            logger.debug(
                "Rejected mutation (seed=%d): %s",
                seed,
                encoded.reason or f"{len(encoded)} > {max_size} bytes",
            )
            return 0

        buf[: len(encoded)] = encoded.data
        return len(encoded)

    def mutate_params(self, params: CredParams) -> None:
        """Mutate every field of ``params`` within its own bounds."""

        params.type = self._mutate_bool(params.type)
        params.ext = self._mutate_int(params.ext)
        params.rk = self._mutate_bool(params.rk)
        params.uv = self._mutate_bool(params.uv)
        params.fmt = self._mutate_bool(params.fmt)

        self._mutate_blob(params.authdata)
        self._mutate_blob(params.cdh)
        self._mutate_blob(params.x509)
        self._mutate_blob(params.sig)

        self._mutate_text(params.rp_id)
        self._mutate_text(params.rp_name)

    def _mutate_fixed(self, storage: bytearray) -> None:
        out = self._mutate(bytes(storage), len(storage))
        out = out[: len(storage)]
        storage[: len(out)] = out

    def _mutate_bool(self, value: bool) -> bool:
        storage = bytearray(BOOL_FORMAT.pack(1 if value else 0))
        self._mutate_fixed(storage)
        return BOOL_FORMAT.unpack(storage)[0] != 0

    def _mutate_int(self, value: int) -> int:
        storage = bytearray(INT_FORMAT.pack(value))
        self._mutate_fixed(storage)
        return INT_FORMAT.unpack(storage)[0]

    def _mutate_blob(self, blob: Blob) -> None:
        out = self._mutate(bytes(blob), blob.capacity)
        out = out[: blob.capacity]
        blob.body[: len(out)] = out
        blob.len = len(out)

    def _mutate_text(self, text: Text) -> None:
        limit = text.capacity - 1
        out = self._mutate(text.value, limit)
        out = out[:limit]
        text.body[: len(out)] = out
        text.body[len(out)] = 0

    def _emit_seed(self, buf: bytearray, max_size: int) -> int:
        data = canonical_seed()
        if len(data) > max_size:
            data = data[:max_size]
        buf[: len(data)] = data
        return len(data)


def _authdata_accepted(params: CredParams) -> bool:
    with Credential() as cred:
        try:
            cred.set_type(COSE_ES256 if params.type else COSE_RS256)
            cred.set_authdata(bytes(params.authdata))
        except CredentialError as e:
            logger.debug("Preflight rejected authdata: %s", e)
            return False
    return True
