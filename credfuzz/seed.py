"""Canonical credential-creation scenario used to seed the corpus.

When the mutator is handed something that does not decode, it replaces it
with this known-good record: an ES256 "packed" registration for
``localhost`` requesting hmac-secret, with realistic authenticator data,
attestation certificate and signature bytes.
"""
from __future__ import annotations

import hashlib
import logging
import os

from .cred import EXT_HMAC_SECRET
from .params import CredParams, encode_params
from .tlv import Blob, Text

__all__ = [
    "SEED_AUTHDATA",
    "SEED_CDH",
    "SEED_RP_ID",
    "SEED_RP_NAME",
    "SEED_SIG",
    "SEED_X509",
    "canonical_seed",
    "synthesize_params",
    "write_seed_corpus",
]

logger = logging.getLogger(__name__)

SEED_CDH = bytes.fromhex(
    "f96457e72d97f6bbddd7fb063762ea2620448e697c03f2312f99dcaf3e8a916b"
)

# CBOR byte string (0x58 0xc4) wrapping 196 bytes of authenticator data.
SEED_AUTHDATA = bytes.fromhex(
    "58c449960de5880e8c687434170f6476605b8fe4aeb9a28632c7995cf3ba831d"
    "97634100000000f8a011f38c0a4d15800617111f9edc7d004053fbdfaace63de"
    "c5fe47e652ebf35d53a8bf9dd6096b5e7fe00d5130856ada687085b0db080b83"
    "2cef44e23688ee76906e7b503e9aa0d63c34e383e7d1bd9f25a5010203262001"
    "215820175b27a656b2260c260c554278175d4cf8a2fd1bb954dfd5ebbf2264f5"
    "219ac6225820875f90e6fd71279febe30344bc8d49c61c313b72aed453b1fe5d"
    "e130fc2b1ed2"
)

SEED_X509 = bytes.fromhex(
    "308202e23081cb020101300d06092a864886f70d01010b0500301d311b301906"
    "03550403131259756269636f205532462054657374204341301e170d31343035"
    "31353132353835345a170d3134303631343132353835345a301d311b30190603"
    "550403131259756269636f2055324620546573742045453059301306072a8648"
    "ce3d020106082a8648ce3d03010703420004db0adbf521c75cce63dca6e1e825"
    "060d94e62754194f9d24af261abead99441f95a371910a3a20e73e915e13e8be"
    "38057ad57aa37e76908fafe28a94b630eb9d300d06092a864886f70d01010b05"
    "00038202010095406b50617dad84a3b4eb880fe3300f2da20a00d92504ee72fa"
    "67df58510f0b47029c3e41294a93ac2985892da47a813228577101efa8428816"
    "963791d5dfe08fc93c8db0cd897082ec79d3c678732932e5ab6cbd569fd54591"
    "cec1dd8d64dce99c1f5e3cd2af51a58218afe037e7329e760577027be624a031"
    "561bfd19c571d3f09ec073054ebc85b8539eefc5bc9c56a3bad9276abba97a40"
    "d7478b55726be3fe28497124f48ff42081ea38ff7c0a4fdf02823981823bca09"
    "ddcaaa0f27f5a483556c9a399b153a1663dc5bf9ac5bbcf79fbe0f8aa23c3113"
    "a33248ca5887f87ba0a10a6a6096935f5d269e631d09ae9a41e5bd0847fee509"
    "9b20fd12e2e6407fba4a6133660d0e73dbb0d5a29a9a170d3430856a42469eff"
    "348f5f876c35e7a84d35ebc141aa8ad2da19aa79a25f352ca0fd25d3f79d2518"
    "2dfab4bcbb07343c8d81bdf4e937db39e9d1455b20412f2d2722dc92748a92d5"
    "83fd09fb139be3397a6b5cfae6769ee0e4e3efadbcfd42459ad494d17e8da7d8"
    "05d5d362cf15cf947d1f5b582044209071be66e99aab743270531d69ed8766f4"
    "094fca2530c26379003cb19b393f00e0a888ef7a515be7bd4964da417b24c371"
    "22fdd1d120b33f97d397b2aa181c9e03777b5b7ef9a3a0d620812c388f9d25de"
    "e9c8f5dd6a479c65045a56e6c2ebf20297e1b9d8e124769f236239034bc8f734"
    "0749d6e74d9a"
)

SEED_SIG = bytes.fromhex(
    "304402205492283b833347566879b20c8480cc67278bfa48430d3cb402368797"
    "3edf2f6502201b561706e2260f6ae9a9709962eb3a041ac4a70328567ced4708"
    "68736ab6890d"
)

SEED_RP_ID = b"localhost"
SEED_RP_NAME = b"sweet home localhost"


def synthesize_params() -> CredParams:
    """Build a fresh, fully populated canonical parameter set."""

    return CredParams(
        type=True,
        cdh=Blob(32, SEED_CDH),
        rp_id=Text(SEED_RP_ID),
        rp_name=Text(SEED_RP_NAME),
        authdata=Blob(value=SEED_AUTHDATA),
        ext=EXT_HMAC_SECRET,
        rk=False,
        uv=False,
        x509=Blob(value=SEED_X509),
        sig=Blob(value=SEED_SIG),
        fmt=True,
    )


def canonical_seed() -> bytes:
    """Encoded form of :func:`synthesize_params`."""

    result = encode_params(synthesize_params())
    if not result.ok:  # pragma: no cover - constants always fit
        raise RuntimeError(f"Canonical seed does not encode: {result.reason}")
    return result.data


def write_seed_corpus(directory: str) -> str:
    """Store the canonical seed in ``directory`` and return its path.

    The file is named after the SHA-1 of its contents, like libFuzzer corpus
    entries, so repeated calls do not create duplicates.
    """

    data = canonical_seed()
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, hashlib.sha1(data).hexdigest())
    if not os.path.exists(path):
        with open(path, "wb") as f:
            f.write(data)
        logger.info("Wrote canonical seed (%d bytes) to %s", len(data), path)
    else:
        logger.debug("Canonical seed already present at %s", path)
    return path
