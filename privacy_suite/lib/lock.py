from __future__ import annotations

import fcntl
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ..errors import LockError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_PATH = "/run/privacy-suite.lock"


@contextmanager
def single_instance(path: str = DEFAULT_LOCK_PATH) -> Iterator[None]:
    """Hold an exclusive host-wide lock for the duration of a transaction.

    Two transactions against the same host are never allowed to overlap; a
    second invocation fails immediately instead of waiting.
    """

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("a+", encoding="utf-8") as fh:
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            raise LockError(f"Another privacy-suite run holds {path}") from e
        fh.seek(0)
        fh.truncate()
        fh.write(f"{os.getpid()}\n")
        fh.flush()
        logger.debug("Acquired lock %s", path)
        try:
            yield
        finally:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
