"""Idempotent line-level edits of ``key value`` style config files.

The files handled here (torrc, proxychains.conf, WireGuard interface files)
are treated as ordered line sequences. Every edit reads the whole file,
transforms the lines in memory and, if anything changed, swaps the new
content in atomically. An unchanged file is never rewritten.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Callable, List, Tuple

from ..errors import EditorIOError
from .files import atomic_write_text, read_text_exact

logger = logging.getLogger(__name__)


class EditOutcome(str, Enum):
    ADDED = "added"
    ALREADY_PRESENT = "already_present"
    UNCOMMENTED = "uncommented"
    NO_MATCH = "no_match"


def split_lines(text: str) -> List[str]:
    """Split on LF only, keeping terminators (CR stays part of the line)."""

    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def line_body(line: str) -> str:
    return line.rstrip("\r\n")


def _ending(line: str) -> str:
    return line[len(line_body(line)):]


def _load(path: str | Path) -> List[str]:
    try:
        return split_lines(read_text_exact(path))
    except OSError as e:
        raise EditorIOError(f"Cannot read {path}: {e}") from e


def _store(path: str | Path, lines: List[str]) -> None:
    try:
        atomic_write_text(path, "".join(lines))
    except OSError as e:
        raise EditorIOError(f"Cannot write {path}: {e}") from e


def _edit(path: str | Path, transform: Callable[[List[str]], Tuple[List[str], int]]) -> int:
    lines = _load(path)
    new_lines, changed = transform(lines)
    if changed:
        _store(path, new_lines)
    return changed


def ensure_line(path: str | Path, exact_line: str) -> EditOutcome:
    """Append ``exact_line`` unless a line already equals it exactly."""

    def transform(lines: List[str]) -> Tuple[List[str], int]:
        if any(line_body(line) == exact_line for line in lines):
            return lines, 0
        out = list(lines)
        if out and not out[-1].endswith("\n"):
            out[-1] += "\n"
        out.append(exact_line + "\n")
        return out, 1

    if _edit(path, transform):
        logger.info("Added line to %s: %s", str(path), exact_line)
        return EditOutcome.ADDED
    logger.info("Line already present in %s: %s", str(path), exact_line)
    return EditOutcome.ALREADY_PRESENT


def ensure_uncomment(path: str | Path, key_pattern: str) -> EditOutcome:
    """Uncomment every line matching ``^\\s*#\\s*(key_pattern.*)`` in place."""

    rx = re.compile(r"^\s*#\s*(" + key_pattern + r".*)")

    def transform(lines: List[str]) -> Tuple[List[str], int]:
        out: List[str] = []
        count = 0
        for line in lines:
            m = rx.match(line_body(line))
            if m:
                out.append(m.group(1) + _ending(line))
                count += 1
            else:
                out.append(line)
        return out, count

    count = _edit(path, transform)
    if count:
        logger.info("Uncommented %d line(s) for %s in %s", count, key_pattern, str(path))
        return EditOutcome.UNCOMMENTED
    return EditOutcome.NO_MATCH


def remove_matching(path: str | Path, pattern: str) -> int:
    """Delete every line matching ``pattern`` (re.search); returns the count."""

    rx = re.compile(pattern)

    def transform(lines: List[str]) -> Tuple[List[str], int]:
        kept = [line for line in lines if not rx.search(line_body(line))]
        return kept, len(lines) - len(kept)

    count = _edit(path, transform)
    if count:
        logger.info("Removed %d line(s) matching %r from %s", count, pattern, str(path))
    return count


def comment_matching(path: str | Path, pattern: str) -> int:
    """Comment out active lines matching ``pattern``; returns the count."""

    rx = re.compile(pattern)

    def transform(lines: List[str]) -> Tuple[List[str], int]:
        out: List[str] = []
        count = 0
        for line in lines:
            body = line_body(line)
            if rx.search(body) and not body.lstrip().startswith("#"):
                out.append("#" + line)
                count += 1
            else:
                out.append(line)
        return out, count

    count = _edit(path, transform)
    if count:
        logger.info("Commented %d line(s) matching %r in %s", count, pattern, str(path))
    return count


def set_directive(path: str | Path, key: str, value: str, *, uncomment: bool = True) -> EditOutcome:
    """Make ``key value`` the active setting for ``key``.

    Commented occurrences are uncommented first (so a stock config keeps its
    ordering), active ``key`` lines with a different value are removed, then
    the exact line is ensured.
    """

    desired = f"{key} {value}".rstrip()
    if uncomment:
        ensure_uncomment(path, re.escape(key) + r"(\s|$)")
    remove_matching(path, r"^\s*" + re.escape(key) + r"(\s|$)(?!\s*" + re.escape(value) + r"\s*$)")
    return ensure_line(path, desired)
