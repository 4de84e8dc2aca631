from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Config files may carry bytes that are not valid UTF-8; they must round-trip untouched.
ENCODING_ERRORS = "surrogateescape"


def read_text_exact(path: str | Path) -> str:
    """Read a text file without newline translation."""

    with open(path, "r", encoding="utf-8", errors=ENCODING_ERRORS, newline="") as f:
        return f.read()


def _fsync_dir(directory: Path) -> None:
    try:
        dir_fd = os.open(str(directory), os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    finally:
        os.close(dir_fd)


def _match_owner_and_mode(tmp_path: Path, like: Optional[os.stat_result], default_mode: int) -> None:
    if like is None:
        os.chmod(tmp_path, default_mode)
        return
    os.chmod(tmp_path, like.st_mode & 0o7777)
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        os.chown(tmp_path, like.st_uid, like.st_gid)


def atomic_write_text(path: str | Path, text: str, *, mode: int = 0o644) -> None:
    """Replace ``path`` with ``text`` or leave it untouched.

    The new content goes to a temp file in the same directory which is then
    swapped in with os.replace. Permission bits (and ownership when running
    as root) follow the file being replaced.
    """

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    try:
        existing = p.stat()
    except FileNotFoundError:
        existing = None

    fd, tmp_name = tempfile.mkstemp(prefix=f".{p.name}.", dir=str(p.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", errors=ENCODING_ERRORS, newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        _match_owner_and_mode(tmp_path, existing, mode)
        os.replace(tmp_path, p)
        _fsync_dir(p.parent)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def atomic_copy(src: str | Path, dst: str | Path, *, mode: Optional[int] = None) -> None:
    """Copy ``src`` over ``dst`` atomically, keeping src metadata (copy2).

    ``mode`` overrides the permission bits of the result.
    """

    s = Path(src)
    d = Path(dst)
    if not s.is_file():
        raise FileNotFoundError(str(s))

    d.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{d.name}.", dir=str(d.parent))
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        shutil.copy2(s, tmp_path)
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, d)
        _fsync_dir(d.parent)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
    logger.debug("Copied %s -> %s", str(s), str(d))
