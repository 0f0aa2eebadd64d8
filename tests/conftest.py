from __future__ import annotations

import os
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import cbor2
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from fido2.cose import ES256
from fido2.utils import sha256
from fido2.webauthn import AttestedCredentialData, AuthenticatorData

from credfuzz import cred
from credfuzz.params import CredParams
from credfuzz.seed import SEED_AUTHDATA, synthesize_params
from credfuzz.tlv import Blob, Text


class RandomByteMutator:
    """Deterministic stand-in for ``atheris.Mutate``."""

    def __init__(self, seed: int):
        self.rng = random.Random(seed)

    def __call__(self, data: bytes, max_size: int) -> bytes:
        out = bytearray(data[:max_size])
        op = self.rng.randrange(5)
        if op == 0 and out:
            out[self.rng.randrange(len(out))] ^= 1 << self.rng.randrange(8)
        elif op == 1 and len(out) < max_size:
            out.insert(self.rng.randint(0, len(out)), self.rng.randrange(256))
        elif op == 2 and out:
            del out[self.rng.randrange(len(out))]
        elif op == 3:
            del out[self.rng.randint(0, len(out)) :]
        else:
            room = max_size - len(out)
            out += bytes(self.rng.randrange(256) for _ in range(min(room, 8)))
        return bytes(out)


def identity_mutator(data: bytes, max_size: int) -> bytes:
    return data[:max_size]


# rp id hash, flags, counter, aaguid, credential id length, credential id
_SEED_COSE_KEY_OFFSET = 32 + 1 + 4 + 16 + 2 + 64


def seed_authdata_with_key(cose_key: bytes) -> bytes:
    """The canonical seed authdata with its COSE key replaced by ``cose_key``."""

    raw = cbor2.loads(SEED_AUTHDATA)
    return cbor2.dumps(raw[:_SEED_COSE_KEY_OFFSET] + cose_key)


@pytest.fixture
def canonical_params() -> CredParams:
    return synthesize_params()


@pytest.fixture
def fresh_init(monkeypatch):
    """Let a test observe the first call to ``cred.init``."""

    monkeypatch.setattr(cred, "_initialized", False)


def _attestation_name():
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "SE"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example Authenticators"),
            x509.NameAttribute(
                NameOID.ORGANIZATIONAL_UNIT_NAME, "Authenticator Attestation"
            ),
            x509.NameAttribute(NameOID.COMMON_NAME, "Example Attestation"),
        ]
    )


def make_attestation_certificate(private_key) -> bytes:
    now = datetime.now(timezone.utc)
    name = _attestation_name()
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(private_key, hashes.SHA256())
    )
    return certificate.public_bytes(serialization.Encoding.DER)


@dataclass
class Registration:
    """A freshly generated make-credential response."""

    rp_id: str
    cdh: bytes
    authdata: bytes  # CBOR wrapped
    raw_authdata: bytes
    credential_id: bytes
    public_key: ES256
    x509: Optional[bytes]
    sig: bytes
    fmt: str
    ext: int

    def to_params(self) -> CredParams:
        return CredParams(
            type=True,
            cdh=Blob(32, self.cdh),
            rp_id=Text(self.rp_id.encode()),
            rp_name=Text(b"Example RP"),
            authdata=Blob(value=self.authdata),
            ext=self.ext,
            rk=False,
            uv=False,
            x509=Blob(value=self.x509 or b""),
            sig=Blob(value=self.sig),
            fmt=self.fmt == cred.FMT_PACKED,
        )


def make_registration(
    fmt: str = cred.FMT_PACKED,
    *,
    rp_id: str = "localhost",
    self_attestation: bool = False,
    hmac_secret: bool = False,
    user_verified: bool = False,
) -> Registration:
    credential_key = ec.generate_private_key(ec.SECP256R1())
    public_key = ES256.from_cryptography_key(credential_key.public_key())
    credential_id = os.urandom(32)
    cred_data = AttestedCredentialData.create(bytes(16), credential_id, public_key)

    flags = AuthenticatorData.FLAG.UP | AuthenticatorData.FLAG.AT
    if user_verified:
        flags |= AuthenticatorData.FLAG.UV
    extensions = None
    if hmac_secret:
        flags |= AuthenticatorData.FLAG.ED
        extensions = {"hmac-secret": True}
    rp_id_hash = sha256(rp_id.encode())
    auth_data = AuthenticatorData.create(
        rp_id_hash, flags, 0, cred_data, extensions
    )
    cdh = os.urandom(32)

    if self_attestation:
        signer = credential_key
        certificate = None
    else:
        signer = ec.generate_private_key(ec.SECP256R1())
        certificate = make_attestation_certificate(signer)

    if fmt == cred.FMT_PACKED:
        message = bytes(auth_data) + cdh
    else:
        message = (
            b"\x00"
            + rp_id_hash
            + cdh
            + credential_id
            + b"\x04"
            + public_key[-2]
            + public_key[-3]
        )
    sig = signer.sign(message, ec.ECDSA(hashes.SHA256()))

    return Registration(
        rp_id=rp_id,
        cdh=cdh,
        authdata=cbor2.dumps(bytes(auth_data)),
        raw_authdata=bytes(auth_data),
        credential_id=credential_id,
        public_key=public_key,
        x509=certificate,
        sig=sig,
        fmt=fmt,
        ext=cred.EXT_HMAC_SECRET if hmac_secret else 0,
    )


@pytest.fixture
def packed_registration() -> Registration:
    return make_registration()
