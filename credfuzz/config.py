"""Environment driven settings for the fuzzing harness."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

__all__ = ["LOG_FORMAT", "Settings", "configure_logging", "load_settings"]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env_flag(environ: Mapping[str, str], name: str) -> Optional[bool]:
    """Return ``True`` or ``False`` when the named env var is explicitly set."""

    raw_value = environ.get(name)
    if raw_value is None:
        return None

    normalised = raw_value.strip().lower()
    if normalised in {"", "0", "false", "off", "no"}:
        return False
    return True


def _env_log_level(environ: Mapping[str, str], name: str, default: int) -> int:
    raw_value = environ.get(name)
    if not raw_value or not raw_value.strip():
        return default

    text = raw_value.strip()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    # getLevelName returns "Level X" for unknown names.
    if isinstance(level, int):
        return level
    return default


@dataclass(frozen=True)
class Settings:
    debug: bool = False
    log_level: int = logging.INFO
    preflight_authdata: bool = False


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read ``CREDFUZZ_*`` variables from ``environ`` (default ``os.environ``)."""

    if environ is None:
        environ = os.environ

    debug = bool(_env_flag(environ, "CREDFUZZ_DEBUG"))
    return Settings(
        debug=debug,
        log_level=logging.DEBUG
        if debug
        else _env_log_level(environ, "CREDFUZZ_LOG_LEVEL", logging.INFO),
        preflight_authdata=bool(_env_flag(environ, "CREDFUZZ_PREFLIGHT_AUTHDATA")),
    )


def configure_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Configure root logging for the command line entry points."""

    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    logger = logging.getLogger("credfuzz")
    logger.setLevel(settings.log_level)
    return logger
