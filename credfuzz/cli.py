"""Corpus tooling for the credential fuzzer."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, NoReturn, Optional

from .config import configure_logging
from .driver import run_params
from .params import FIELDS, CredParams, FieldKind, decode_params, encoded_size
from .seed import write_seed_corpus

__all__ = ["describe_params", "main", "run"]


def describe_params(params: CredParams) -> Dict[str, Any]:
    """Return a JSON-friendly summary of ``params`` in wire order."""

    summary: Dict[str, Any] = {}
    for entry in FIELDS:
        value = getattr(params, entry.name)
        if entry.kind is FieldKind.BLOB:
            summary[entry.name] = {"length": len(value), "hex": bytes(value).hex()}
        elif entry.kind is FieldKind.TEXT:
            summary[entry.name] = value.value.decode("utf-8", "backslashreplace")
        else:
            summary[entry.name] = value
    summary["encodedSize"] = encoded_size(params)
    return summary


def _read(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _cmd_seed(args, logger: logging.Logger) -> int:
    path = write_seed_corpus(args.directory)
    logger.info("Canonical seed available at %s", path)
    return 0


def _cmd_describe(args, logger: logging.Logger) -> int:
    status = 0
    for path in args.files:
        result = decode_params(_read(path))
        if not result.ok:
            logger.error("%s: malformed entry (%s)", path, result.reason)
            status = 1
            continue
        print(json.dumps({"file": path, **describe_params(result.params)}, indent=2))
    return status


def _cmd_replay(args, logger: logging.Logger) -> int:
    for path in args.files:
        result = decode_params(_read(path))
        if not result.ok:
            logger.info("%s: skipped, malformed entry (%s)", path, result.reason)
            continue
        error = run_params(result.params)
        if error is None:
            logger.info("%s: credential verified", path)
        else:
            logger.info("%s: %s: %s", path, type(error).__name__, error)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="credfuzz", description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="Write the canonical seed into a corpus.")
    seed.add_argument("directory")
    seed.set_defaults(handler=_cmd_seed)

    describe = sub.add_parser("describe", help="Decode corpus entries as JSON.")
    describe.add_argument("files", nargs="+")
    describe.set_defaults(handler=_cmd_describe)

    replay = sub.add_parser("replay", help="Run corpus entries through the target.")
    replay.add_argument("files", nargs="+")
    replay.set_defaults(handler=_cmd_replay)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logger = configure_logging()

    try:
        return args.handler(args, logger)
    except OSError as exc:
        logger.error("%s", exc)
        return 1


def run() -> NoReturn:
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover - CLI execution
    run()
