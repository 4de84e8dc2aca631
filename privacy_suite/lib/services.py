from __future__ import annotations

import logging
from dataclasses import dataclass

from .command import run_cmd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Systemd:
    dry_run: bool = False

    def restart(self, unit: str) -> None:
        run_cmd(["systemctl", "restart", unit], dry_run=self.dry_run)

    def enable(self, unit: str) -> None:
        run_cmd(["systemctl", "enable", unit], dry_run=self.dry_run)

    def daemon_reload(self) -> None:
        run_cmd(["systemctl", "daemon-reload"], dry_run=self.dry_run)
