from __future__ import annotations

import logging
import os
from typing import Optional

from pythonjsonlogger import jsonlogger

LOG_FORMAT_ENV = "STRUCTURE_BROWSER_LOG_FORMAT"
LOG_LEVEL_ENV = "STRUCTURE_BROWSER_LOG_LEVEL"

# Third-party loggers that are chatty at INFO (httpx logs every request)
_QUIET_LOGGERS = ("httpx", "httpcore")


def _build_formatter(format_mode: str) -> logging.Formatter:
    if format_mode == "plain":
        return logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    # extra={...} fields are inlined into the JSON object
    return jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={"levelname": "level", "name": "logger"},
    )


def configure_logging(
        level: Optional[int] = None,
        force_format: Optional[str] = None,
) -> None:
    """
    Configure the root logger for the search engine and the CLI.

    Format selection:
        1) force_format argument ("json" or "plain") if provided
        2) env var STRUCTURE_BROWSER_LOG_FORMAT
        3) default = "json"

    Level selection: the `level` argument, then STRUCTURE_BROWSER_LOG_LEVEL
    (a level name such as "DEBUG"), then INFO.
    """
    if force_format is not None:
        format_mode = force_format.lower()
    else:
        format_mode = os.getenv(LOG_FORMAT_ENV, "json").lower()

    if level is None:
        level_name = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler()
    handler.setFormatter(_build_formatter(format_mode))

    root.handlers.clear()
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
