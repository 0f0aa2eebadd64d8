"""Atheris fuzzer for credential creation.

Usage::

    credfuzz-fuzz corpus/ -max_len=4096
    credfuzz-fuzz --no-mutator corpus/

All arguments other than the ones below are handed to libFuzzer.
"""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from .config import configure_logging, load_settings


def _parse_args(argv: List[str]):
    parser = argparse.ArgumentParser(
        prog="credfuzz-fuzz", description=__doc__.splitlines()[0], add_help=False
    )
    parser.add_argument(
        "--no-mutator",
        action="store_true",
        help="Use plain libFuzzer byte mutation instead of the structured mutator.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser.parse_known_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    argv = list(sys.argv if argv is None else argv)
    args, engine_args = _parse_args(argv[1:])
    settings = load_settings()
    logger = configure_logging(settings)

    import atheris

    with atheris.instrument_imports():
        from . import cred
        from .driver import test_one_input
        from .mutator import CredentialMutator

    cred.init(debug=args.debug or settings.debug)

    engine_argv = argv[:1] + engine_args
    if args.no_mutator:
        logger.info("Fuzzing without the structured mutator.")
        atheris.Setup(engine_argv, test_one_input)
    else:
        mutator = CredentialMutator(
            atheris.Mutate, preflight=settings.preflight_authdata
        )
        atheris.Setup(engine_argv, test_one_input, custom_mutator=mutator)
    atheris.Fuzz()


if __name__ == "__main__":  # pragma: no cover - CLI execution
    main()
