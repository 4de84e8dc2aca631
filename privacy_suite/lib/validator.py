from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from .directives import line_body, split_lines
from .files import read_text_exact

logger = logging.getLogger(__name__)

WIREGUARD_SECTIONS = ("Interface", "Peer")
WIREGUARD_KEYS: Dict[str, List[str]] = {"Interface": ["PrivateKey"], "Peer": ["PublicKey"]}

RequiredKeys = Union[Mapping[str, Sequence[str]], Sequence[str]]

# wg-quick accepts a trailing comment after a section header.
_SECTION_RX = re.compile(r"^\s*\[([^\]]+)\]\s*(?:[#;].*)?$")

# Lines before the first header belong to no section.
_PREAMBLE = ""


class RejectionKind(str, Enum):
    EMPTY_OR_MISSING = "empty_or_missing"
    MISSING_SECTION = "missing_section"
    MISSING_KEY = "missing_key"


@dataclass(frozen=True)
class ValidationOk:
    path: str

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejection:
    kind: RejectionKind
    path: str
    name: Optional[str] = None
    section: Optional[str] = None

    def __bool__(self) -> bool:
        return False

    @property
    def reason(self) -> str:
        if self.kind == RejectionKind.EMPTY_OR_MISSING:
            return f"{self.path}: file is empty, missing or unreadable"
        if self.kind == RejectionKind.MISSING_SECTION:
            return f"{self.path}: missing section [{self.name}]"
        where = f" in section [{self.section}]" if self.section else ""
        return f"{self.path}: missing key {self.name}{where}"


def _key_rx(key: str) -> "re.Pattern[str]":
    return re.compile(r"^\s*" + re.escape(key) + r"\s*(=|\s|$)")


def _sections(lines: Sequence[str]) -> Dict[str, List[str]]:
    """Group active (non-comment) lines under their ``[Section]`` header.

    A section repeated in the file (several ``[Peer]`` blocks) is merged.
    """

    out: Dict[str, List[str]] = {_PREAMBLE: []}
    current = _PREAMBLE
    for raw in lines:
        body = line_body(raw)
        stripped = body.strip()
        if not stripped or stripped.startswith("#") or stripped.startswith(";"):
            continue
        m = _SECTION_RX.match(body)
        if m:
            current = m.group(1).strip()
            out.setdefault(current, [])
            continue
        out[current].append(body)
    return out


def validate(
    path: str | Path,
    required_sections: Sequence[str],
    required_keys: RequiredKeys,
) -> Union[ValidationOk, Rejection]:
    """Structurally check a candidate config file. Never writes to it.

    ``required_keys`` is either a mapping of section -> keys (each key must
    appear inside that section) or a flat sequence of keys that may appear
    anywhere in the file.
    """

    p = str(path)
    try:
        text = read_text_exact(path)
    except OSError as e:
        logger.warning("Rejecting %s: %s", p, e)
        return Rejection(kind=RejectionKind.EMPTY_OR_MISSING, path=p)

    if not text.strip():
        logger.warning("Rejecting %s: empty file", p)
        return Rejection(kind=RejectionKind.EMPTY_OR_MISSING, path=p)

    sections = _sections(split_lines(text))

    for name in required_sections:
        if name not in sections:
            rejection = Rejection(kind=RejectionKind.MISSING_SECTION, path=p, name=name)
            logger.warning("Rejecting %s", rejection.reason)
            return rejection

    if isinstance(required_keys, Mapping):
        scoped = {section: list(keys) for section, keys in required_keys.items()}
    else:
        scoped = {None: list(required_keys)}

    for section, keys in scoped.items():
        if section is None:
            candidates = [line for body in sections.values() for line in body]
        elif section not in sections:
            rejection = Rejection(kind=RejectionKind.MISSING_SECTION, path=p, name=section)
            logger.warning("Rejecting %s", rejection.reason)
            return rejection
        else:
            candidates = sections[section]
        for key in keys:
            rx = _key_rx(key)
            if not any(rx.match(line) for line in candidates):
                rejection = Rejection(kind=RejectionKind.MISSING_KEY, path=p, name=key, section=section)
                logger.warning("Rejecting %s", rejection.reason)
                return rejection

    logger.info("Validated %s", p)
    return ValidationOk(path=p)


def validate_wireguard(path: str | Path) -> Union[ValidationOk, Rejection]:
    return validate(path, WIREGUARD_SECTIONS, WIREGUARD_KEYS)
