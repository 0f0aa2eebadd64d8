"""Credential object exercised by the harness.

A small stateful wrapper over the python-fido2 registration primitives. It
is configured field by field, then :meth:`Credential.verify` checks the
relying party binding, the authenticator flags and extensions, and finally
the attestation statement using :mod:`fido2.attestation`.
"""
from __future__ import annotations

import logging
import struct
from functools import wraps
from typing import Mapping, Optional

import cbor2
from fido2.attestation import FidoU2FAttestation, PackedAttestation
from fido2.attestation.base import InvalidAttestation
from fido2.cose import ES256, RS256
from fido2.utils import sha256
from fido2.webauthn import AuthenticatorData, PublicKeyCredentialRpEntity

from .config import load_settings

__all__ = [
    "COSE_ES256",
    "COSE_RS256",
    "EXT_HMAC_SECRET",
    "FMT_FIDO_U2F",
    "FMT_PACKED",
    "Credential",
    "CredentialError",
    "InvalidArgument",
    "InvalidCredential",
    "init",
]

logger = logging.getLogger(__name__)

COSE_ES256 = ES256.ALGORITHM
COSE_RS256 = RS256.ALGORITHM

FMT_PACKED = PackedAttestation.FORMAT
FMT_FIDO_U2F = FidoU2FAttestation.FORMAT

EXT_HMAC_SECRET = 0x01

_EXTENSION_BITS = {"hmac-secret": EXT_HMAC_SECRET}
_ATTESTATIONS = {FMT_PACKED: PackedAttestation, FMT_FIDO_U2F: FidoU2FAttestation}

_initialized = False


def init(debug: Optional[bool] = None) -> None:
    """Process-wide setup. Safe to call any number of times."""

    global _initialized
    if _initialized:
        return

    if debug is None:
        debug = load_settings().debug
    if debug:
        for name in ("credfuzz", "fido2"):
            logging.getLogger(name).setLevel(logging.DEBUG)

    _initialized = True
    logger.debug("Credential library initialised (debug=%s)", debug)


class CredentialError(Exception):
    """Base exception for credential configuration and verification errors."""


class InvalidArgument(CredentialError):
    """A setter rejected its input."""


class InvalidCredential(CredentialError):
    """The configured credential failed verification."""


def _catch_builtins(f):
    """Map parse errors raised while decoding setter input to InvalidArgument."""

    @wraps(f)
    def inner(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (ValueError, KeyError, IndexError, struct.error) as e:
            raise InvalidArgument(e) from e

    return inner


def _extension_mask(auth_data: AuthenticatorData) -> int:
    extensions = auth_data.extensions or {}
    if not isinstance(extensions, Mapping):
        raise InvalidCredential("Extension data must be a CBOR map")
    mask = 0
    for name, value in extensions.items():
        bit = _EXTENSION_BITS.get(name)
        if bit is None:
            raise InvalidCredential(f"Unexpected extension in authenticator data: {name!r}")
        if value is True:
            mask |= bit
    return mask


class Credential:
    """Credential under construction, as returned by a make-credential call."""

    def __init__(self):
        self._reset()

    def _reset(self) -> None:
        self.type: Optional[int] = None
        self.fmt: Optional[str] = None
        self.cdh: Optional[bytes] = None
        self.rp: Optional[PublicKeyCredentialRpEntity] = None
        self.authdata_cbor: Optional[bytes] = None
        self.authdata: Optional[AuthenticatorData] = None
        self.ext = 0
        self.rk = False
        self.uv = False
        self.x509: Optional[bytes] = None
        self.sig: Optional[bytes] = None
        self.pubkey = b""
        self.id = b""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        self._reset()

    def set_type(self, alg: int) -> None:
        if alg not in (COSE_ES256, COSE_RS256):
            raise InvalidArgument(f"Unsupported COSE algorithm: {alg}")
        self.type = alg

    def set_fmt(self, fmt: str) -> None:
        if fmt not in _ATTESTATIONS:
            raise InvalidArgument(f"Unsupported attestation format: {fmt!r}")
        self.fmt = fmt

    def set_clientdata_hash(self, cdh: bytes) -> None:
        if not cdh:
            raise InvalidArgument("Client data hash must not be empty")
        self.cdh = bytes(cdh)

    def set_rp(self, rp_id: str, rp_name: Optional[str] = None) -> None:
        if rp_id is None:
            raise InvalidArgument("Relying party id is required")
        self.rp = PublicKeyCredentialRpEntity(name=rp_name or "", id=rp_id)

    @_catch_builtins
    def set_authdata(self, data: bytes) -> None:
        """Set CBOR-wrapped authenticator data from a make-credential response.

        The credential type must be set first; the attested public key must
        use that algorithm.
        """

        self.authdata_cbor = self.authdata = None
        self.pubkey = self.id = b""
        if self.type is None:
            raise InvalidArgument("Credential type must be set before authdata")
        if not data:
            raise InvalidArgument("Authenticator data must not be empty")

        try:
            raw = cbor2.loads(bytes(data))
        except cbor2.CBORDecodeError as e:
            raise InvalidArgument(f"Invalid CBOR: {e}") from e
        if not isinstance(raw, bytes):
            raise InvalidArgument("Authenticator data must be a CBOR byte string")

        try:
            auth_data = AuthenticatorData(raw)
        except (TypeError, AttributeError) as e:
            # Raised by fido2 when the COSE key or extensions are not a map.
            raise InvalidArgument(f"Invalid authenticator data: {e}") from e
        cred_data = auth_data.credential_data
        if cred_data is None:
            raise InvalidArgument("Authenticator data lacks attested credential data")
        alg = getattr(cred_data.public_key, "ALGORITHM", None)
        if alg != self.type:
            raise InvalidArgument(
                f"Public key algorithm {alg} does not match credential type {self.type}"
            )

        self.authdata_cbor = bytes(data)
        self.authdata = auth_data
        self.pubkey = cbor2.dumps(dict(cred_data.public_key))
        self.id = bytes(cred_data.credential_id)
        logger.debug(
            "Parsed authenticator data: flags=0x%02x, credential id %d bytes",
            auth_data.flags,
            len(self.id),
        )

    def set_extensions(self, ext: int) -> None:
        if ext & ~EXT_HMAC_SECRET:
            raise InvalidArgument(f"Unsupported extension mask: 0x{ext:x}")
        self.ext = ext

    def set_options(self, rk: bool, uv: bool) -> None:
        self.rk = bool(rk)
        self.uv = bool(uv)

    def set_x509(self, der: bytes) -> None:
        if not der:
            raise InvalidArgument("Certificate must not be empty")
        self.x509 = bytes(der)

    def set_sig(self, sig: bytes) -> None:
        if not sig:
            raise InvalidArgument("Signature must not be empty")
        self.sig = bytes(sig)

    def _statement(self):
        statement = {"sig": self.sig}
        if self.fmt == FMT_PACKED:
            statement["alg"] = self.type
        if self.x509 is not None:
            statement["x5c"] = [self.x509]
        return statement

    def verify(self) -> None:
        """Verify the configured credential.

        :raises InvalidArgument: A required field was never set.
        :raises InvalidCredential: The credential did not verify.
        """

        if (
            self.type is None
            or self.fmt is None
            or self.cdh is None
            or self.rp is None
            or self.authdata is None
            or self.sig is None
        ):
            raise InvalidArgument("Credential is missing required fields")
        if self.fmt == FMT_FIDO_U2F and self.x509 is None:
            raise InvalidArgument("fido-u2f attestation requires a certificate")

        auth_data = self.authdata
        rp_id_hash = sha256(self.rp.id.encode("utf-8", "surrogateescape"))
        if auth_data.rp_id_hash != rp_id_hash:
            raise InvalidCredential("Relying party id hash mismatch")
        if not auth_data.is_user_present():
            raise InvalidCredential("User presence flag not set")
        if self.uv and not auth_data.is_user_verified():
            raise InvalidCredential("User verification required but not performed")
        if _extension_mask(auth_data) != self.ext:
            raise InvalidCredential("Extension data does not match request")

        attestation = _ATTESTATIONS[self.fmt]()
        try:
            result = attestation.verify(self._statement(), auth_data, self.cdh)
        except InvalidAttestation as e:
            raise InvalidCredential(f"{self.fmt} attestation failed: {e}") from e
        logger.debug("Verified %s attestation: %s", self.fmt, result.attestation_type)
