"""Test entry point: drive a decoded record through credential verification."""
from __future__ import annotations

import logging
from typing import Optional

from . import cred
from .cred import Credential, CredentialError
from .params import CredParams, decode_params

__all__ = ["consume", "run_params", "test_one_input"]

logger = logging.getLogger(__name__)


def consume(data: bytes) -> int:
    """Read every byte of ``data`` and return their xor."""

    x = 0
    for b in data:
        x ^= b
    return x


def _ignore(setter, *args) -> None:
    try:
        setter(*args)
    except CredentialError as e:
        logger.debug("%s rejected: %s", setter.__name__, e)


def _text(value: bytes) -> str:
    return value.decode("utf-8", "surrogateescape")


def run_params(params: CredParams) -> Optional[CredentialError]:
    """Configure and verify a credential from ``params``.

    Returns the verification error, or ``None`` if the credential verified.
    Exceptions other than :class:`~credfuzz.cred.CredentialError` propagate.
    """

    cred.init()

    error: Optional[CredentialError] = None
    with Credential() as c:
        _ignore(c.set_type, cred.COSE_ES256 if params.type else cred.COSE_RS256)
        _ignore(c.set_fmt, cred.FMT_PACKED if params.fmt else cred.FMT_FIDO_U2F)
        _ignore(c.set_clientdata_hash, bytes(params.cdh))
        _ignore(c.set_rp, _text(params.rp_id.value), _text(params.rp_name.value))
        _ignore(c.set_authdata, bytes(params.authdata))
        _ignore(c.set_extensions, params.ext)
        _ignore(c.set_options, params.rk, params.uv)
        _ignore(c.set_x509, bytes(params.x509))
        _ignore(c.set_sig, bytes(params.sig))

        try:
            c.verify()
        except CredentialError as e:
            error = e

        consume(c.pubkey)
        consume(c.id)

    return error


def test_one_input(data: bytes) -> None:
    """Fuzzer test entry point. Undecodable input is a no-op."""

    result = decode_params(data)
    if not result.ok:
        return
    run_params(result.params)


# Not a pytest test despite the name.
test_one_input.__test__ = False
