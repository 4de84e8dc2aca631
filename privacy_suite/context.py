from __future__ import annotations

from dataclasses import dataclass

from .lib.packages import Dpkg
from .lib.services import Systemd
from .settings import SuiteConfig
from .snapshot_store import SnapshotStore


@dataclass(frozen=True)
class RunContext:
    """Everything a transaction and its steps may touch, passed explicitly."""

    cfg: SuiteConfig
    store: SnapshotStore
    packages: Dpkg
    services: Systemd

    @property
    def dry_run(self) -> bool:
        return self.cfg.dry_run


def build_context(cfg: SuiteConfig) -> RunContext:
    packages = Dpkg(dry_run=cfg.dry_run)
    services = Systemd(dry_run=cfg.dry_run)
    store = SnapshotStore(
        cfg.backup_dir,
        cfg.watched_files,
        packages=packages,
        services=services,
        retention=cfg.snapshot_retention,
        package_scope=cfg.package_scope,
        managed_packages=cfg.managed_packages,
        dry_run=cfg.dry_run,
    )
    return RunContext(cfg=cfg, store=store, packages=packages, services=services)
