"""Logging setup shared by every module.

Modules import ``logging`` from here so the handlers are configured exactly once:

    from neo_fuzzy.logger import logging

    logger = logging.getLogger(__name__)

Output goes to stderr (stdout is reserved for the MCP stdio transport) and, unless
disabled, to a debug log file under the temp directory.
"""

import logging
import os
import tempfile
from pathlib import Path

LOG_LEVEL_ENV_VAR = "NEO_FUZZY_LOG_LEVEL"
LOG_FILE_ENV_VAR = "NEO_FUZZY_LOG_FILE"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def default_log_file() -> Path:
    return Path(tempfile.gettempdir()) / "neo-fuzzy-log" / "debug.log"


def _resolve_log_file() -> Path | None:
    value = os.environ.get(LOG_FILE_ENV_VAR)
    if value is None:
        return default_log_file()
    if not value:
        return None
    return Path(value)


def configure_logging(name: str = "neo_fuzzy"):
    root = logging.getLogger(name)
    if root.handlers:
        return

    level = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO").upper()
    unknown_level = None
    try:
        root.setLevel(level)
    except ValueError:
        unknown_level = level
        root.setLevel(logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    log_file = _resolve_log_file()
    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            root.warning("Failed to open log file %s: %s", log_file, e)
        else:
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    if unknown_level is not None:
        root.warning("Unknown log level %s in %s, using INFO", unknown_level, LOG_LEVEL_ENV_VAR)


configure_logging()

__all__ = ["logging", "configure_logging", "default_log_file"]
