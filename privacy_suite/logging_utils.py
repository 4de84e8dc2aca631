from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import List

DEFAULT_LOG_PATH = "/var/log/privacy-suite.log"

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"


def _open_log_file(log_path: str) -> logging.FileHandler:
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path)
    except OSError:
        # Not root, or /var/log is read-only.
        return logging.FileHandler(Path.cwd() / "privacy-suite.log")


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    console_level: int = logging.WARNING,
) -> str:
    """Configure root logging for a privacy-suite run.

    Every snapshot, edit, command and rollback decision goes to the log file
    at ``level``. The console (stderr) only shows ``console_level`` and up so
    that command output on stdout stays readable; pass ``logging.INFO`` for a
    verbose run. When the requested path is not writable we fall back to
    ``./privacy-suite.log`` and report both paths.

    Returns the actual file path being used.
    """

    root = logging.getLogger()
    root.setLevel(min(level, console_level))

    # configure_logging() may be called once per CLI invocation and again by tests.
    if getattr(root, "_privacy_suite_configured", False):
        return getattr(root, "_privacy_suite_log_path", log_path)

    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    file_handler = _open_log_file(log_path)
    file_handler.setLevel(level)
    chosen_path = file_handler.baseFilename

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)

    handlers: List[logging.Handler] = [file_handler, console]
    for h in handlers:
        h.setFormatter(fmt)
        root.addHandler(h)

    setattr(root, "_privacy_suite_configured", True)
    setattr(root, "_privacy_suite_log_path", chosen_path)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
