from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .command import run_cmd

logger = logging.getLogger(__name__)

Selection = Tuple[str, str]

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def parse_selections(text: str) -> List[Selection]:
    """Parse ``dpkg --get-selections`` output (name, whitespace, status)."""

    out: List[Selection] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2 or parts[0].startswith("#"):
            continue
        out.append((parts[0], parts[1]))
    return out


def format_selections(pairs: Iterable[Selection]) -> str:
    return "".join(f"{name}\t{status}\n" for name, status in pairs)


@dataclass(frozen=True)
class Dpkg:
    """dpkg/apt adapter for the host being configured."""

    dry_run: bool = False

    def get_selections(self) -> List[Selection]:
        r = run_cmd(["dpkg", "--get-selections"], dry_run=self.dry_run)
        return parse_selections(r.stdout)

    def clear_selections(self) -> None:
        run_cmd(["dpkg", "--clear-selections"], dry_run=self.dry_run)

    def set_selections(self, pairs: Sequence[Selection]) -> None:
        run_cmd(
            ["dpkg", "--set-selections"],
            input_text=format_selections(pairs),
            dry_run=self.dry_run,
        )

    def dselect_upgrade(self) -> None:
        run_cmd(["apt-get", "dselect-upgrade", "-y"], env=APT_ENV, dry_run=self.dry_run)

    def install(self, packages: Sequence[str], *, update: bool = True, upgrade: bool = False) -> None:
        """apt-get install; with ``upgrade`` only already-installed packages are upgraded."""

        if not packages:
            return
        if update:
            run_cmd(["apt-get", "update"], env=APT_ENV, dry_run=self.dry_run)
        extra = ["--only-upgrade"] if upgrade else []
        run_cmd(["apt-get", "install", "-y", *extra, *packages], env=APT_ENV, dry_run=self.dry_run)
        logger.info("%s packages: %s", "Upgraded" if upgrade else "Installed", ",".join(packages))
