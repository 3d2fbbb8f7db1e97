"""Shared logging helpers for multisource."""

from __future__ import annotations

import logging

# Loggers that report every upstream request at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore", "hishel")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    force: bool = False,
    quiet_http: bool = True,
) -> None:
    """Initialise the root logger with a terse format suitable for CLI output.

    ``level`` accepts either a numeric level or its name (``"DEBUG"``). With
    ``quiet_http`` the HTTP client libraries are held at WARNING so that a
    fan-out over many targets does not drown the fan-out log lines.
    """

    if isinstance(level, str):
        level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    if quiet_http and level < logging.WARNING:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
