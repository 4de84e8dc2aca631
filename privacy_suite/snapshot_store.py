"""Point-in-time copies of the watched config files plus package selections.

On-disk layout, one directory per snapshot::

    <backup_dir>/<YYYYMMDD-HHMMSS-ffffff>/
        files/etc/tor/torrc          path-preserving verbatim copies
        package_states.txt           "<name>\\t<status>" per line
        manifest.json                written last; marks the snapshot complete

Directory names sort lexicographically in creation order. A directory
without a manifest (an interrupted create) is not a snapshot.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

from .errors import PrivacySuiteError, RestoreError, SnapshotError, SnapshotUnavailable
from .lib.files import atomic_copy, atomic_write_text
from .lib.packages import Selection, format_selections, parse_selections

logger = logging.getLogger(__name__)

FILES_DIR = "files"
SELECTIONS_FILE = "package_states.txt"
MANIFEST_FILE = "manifest.json"
ID_FORMAT = "%Y%m%d-%H%M%S-%f"

# Returned by create() in dry-run mode; nothing is written for it.
DRY_RUN_ID = "dry-run"

_ID_RX = re.compile(r"^\d{8}-\d{6}-\d{6}$")


class PackageManager(Protocol):
    def get_selections(self) -> List[Selection]:
        ...

    def clear_selections(self) -> None:
        ...

    def set_selections(self, pairs: Sequence[Selection]) -> None:
        ...

    def dselect_upgrade(self) -> None:
        ...


class ServiceManager(Protocol):
    def daemon_reload(self) -> None:
        ...


@dataclass(frozen=True)
class SnapshotInfo:
    id: str
    path: Path
    created_at: str
    files: List[str] = field(default_factory=list)
    # Watched files that did not exist when the snapshot was taken.
    absent: List[str] = field(default_factory=list)
    # Watched files that existed but could not be read.
    skipped: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RestoreReport:
    snapshot_id: str
    restored: List[str]
    removed: List[str]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _rel(path: Path) -> Path:
    return path.relative_to(path.anchor)


class SnapshotStore:
    def __init__(
        self,
        backup_dir: str,
        watched_files: Sequence[str],
        *,
        packages: PackageManager,
        services: ServiceManager,
        retention: Optional[int] = None,
        package_scope: str = "full",
        managed_packages: Sequence[str] = (),
        clock: Callable[[], datetime] = _utcnow,
        dry_run: bool = False,
    ) -> None:
        self.backup_dir = Path(backup_dir)
        self.watched_files = [Path(p).absolute() for p in watched_files]
        self.packages = packages
        self.services = services
        self.retention = retention
        self.package_scope = package_scope
        self.managed_packages = list(managed_packages)
        self._clock = clock
        self.dry_run = dry_run

    # -- create ---------------------------------------------------------

    def _new_dir(self) -> Path:
        stamp = self._clock()
        existing = self.list()
        if existing:
            newest = datetime.strptime(existing[0], ID_FORMAT)
            naive = stamp.replace(tzinfo=None)
            if naive <= newest:
                # Wall clock went backwards or two snapshots in one microsecond.
                stamp = newest + timedelta(microseconds=1)
        while True:
            candidate = self.backup_dir / stamp.strftime(ID_FORMAT)
            try:
                candidate.mkdir(parents=True, exist_ok=False)
                return candidate
            except FileExistsError:
                if not self.backup_dir.is_dir():
                    raise
                stamp += timedelta(microseconds=1)

    def create(self) -> str:
        """Capture the watched files and package selections; returns the id.

        In dry-run mode nothing is written under ``backup_dir``: package
        selections cannot be exported without running dpkg, and a snapshot
        with an empty selection list must never become ``latest()``.
        """

        if self.dry_run:
            logger.info("Would snapshot %d watched file(s) under %s", len(self.watched_files), str(self.backup_dir))
            return DRY_RUN_ID

        try:
            snap_dir = self._new_dir()
        except OSError as e:
            raise SnapshotError(f"Cannot create snapshot under {self.backup_dir}: {e}") from e

        snapshot_id = snap_dir.name
        files: List[str] = []
        absent: List[str] = []
        skipped: List[str] = []

        try:
            for src in self.watched_files:
                if not src.exists():
                    absent.append(str(src))
                    continue
                dst = snap_dir / FILES_DIR / _rel(src)
                try:
                    dst.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(src, dst)
                except OSError as e:
                    logger.warning("Snapshot %s: skipping unreadable %s (%s)", snapshot_id, str(src), e)
                    skipped.append(str(src))
                    continue
                files.append(str(src))

            selections = self.packages.get_selections()
            (snap_dir / SELECTIONS_FILE).write_text(format_selections(selections), encoding="utf-8")

            manifest = {
                "id": snapshot_id,
                "created_at": self._clock().isoformat(),
                "files": files,
                "absent": absent,
                "skipped": skipped,
                "package_count": len(selections),
            }
            atomic_write_text(snap_dir / MANIFEST_FILE, json.dumps(manifest, indent=2, sort_keys=True) + "\n")
        except (OSError, PrivacySuiteError) as e:
            shutil.rmtree(snap_dir, ignore_errors=True)
            raise SnapshotError(f"Snapshot {snapshot_id} failed: {e}") from e

        logger.info(
            "Snapshot created: %s (files=%d absent=%d skipped=%d packages=%d)",
            str(snap_dir),
            len(files),
            len(absent),
            len(skipped),
            len(selections),
        )

        if self.retention is not None:
            self.prune(self.retention)
        return snapshot_id

    # -- query ----------------------------------------------------------

    def list(self) -> List[str]:
        """Snapshot ids, newest first."""

        if not self.backup_dir.is_dir():
            return []
        ids = [
            d.name
            for d in self.backup_dir.iterdir()
            if d.is_dir() and _ID_RX.match(d.name) and (d / MANIFEST_FILE).is_file()
        ]
        return sorted(ids, reverse=True)

    def latest(self) -> str:
        ids = self.list()
        if not ids:
            raise SnapshotUnavailable(f"No snapshot found in {self.backup_dir}")
        return ids[0]

    def info(self, snapshot_id: str) -> SnapshotInfo:
        snap_dir = self.backup_dir / snapshot_id
        manifest_path = snap_dir / MANIFEST_FILE
        if not _ID_RX.match(snapshot_id) or not manifest_path.is_file():
            raise SnapshotUnavailable(f"No snapshot {snapshot_id} in {self.backup_dir}")
        data = json.loads(manifest_path.read_text(encoding="utf-8"))
        return SnapshotInfo(
            id=snapshot_id,
            path=snap_dir,
            created_at=str(data.get("created_at") or ""),
            files=list(data.get("files") or []),
            absent=list(data.get("absent") or []),
            skipped=list(data.get("skipped") or []),
        )

    # -- restore --------------------------------------------------------

    def restore(self, snapshot_id: Optional[str] = None) -> RestoreReport:
        """Put the host back to the state recorded in a snapshot (default: latest).

        Every recorded file is attempted; any failure (file or package
        convergence) is reported as a single RestoreError afterwards.
        """

        if self.dry_run:
            return self._dry_restore(snapshot_id)

        sid = snapshot_id or self.latest()
        info = self.info(sid)
        logger.warning("Restoring snapshot %s", sid)

        failures: List[str] = []
        restored: List[str] = []
        removed: List[str] = []

        for original in info.files:
            src = info.path / FILES_DIR / _rel(Path(original))
            try:
                atomic_copy(src, original)
                restored.append(original)
            except OSError as e:
                failures.append(f"{original}: {e}")

        for original in info.absent:
            p = Path(original)
            if not p.exists():
                continue
            try:
                p.unlink()
                removed.append(original)
            except OSError as e:
                failures.append(f"{original}: {e}")

        try:
            self._restore_packages(info)
            self.services.daemon_reload()
        except (OSError, PrivacySuiteError) as e:
            failures.append(f"packages: {e}")

        if failures:
            for failure in failures:
                logger.error("Restore %s: %s", sid, failure)
            raise RestoreError(sid, failures)

        logger.info("Restored snapshot %s (files=%d removed=%d)", sid, len(restored), len(removed))
        return RestoreReport(snapshot_id=sid, restored=restored, removed=removed)

    def _dry_restore(self, snapshot_id: Optional[str]) -> RestoreReport:
        if snapshot_id == DRY_RUN_ID:
            logger.info("Would roll back dry-run transaction (nothing was changed)")
            return RestoreReport(snapshot_id=DRY_RUN_ID, restored=[], removed=[])
        sid = snapshot_id or self.latest()
        info = self.info(sid)
        removed = [p for p in info.absent if Path(p).exists()]
        logger.info("Would restore snapshot %s (files=%d removed=%d)", sid, len(info.files), len(removed))
        return RestoreReport(snapshot_id=sid, restored=list(info.files), removed=removed)

    def _restore_packages(self, info: SnapshotInfo) -> None:
        recorded = parse_selections((info.path / SELECTIONS_FILE).read_text(encoding="utf-8"))
        if not recorded and self.package_scope == "full":
            # Clearing every selection and applying none would deinstall the whole host.
            raise SnapshotError(f"Snapshot {info.id} records no package selections; refusing full package restore")

        if self.package_scope == "managed":
            by_name = {name.split(":", 1)[0]: status for name, status in recorded}
            pairs = [(name, by_name.get(name, "deinstall")) for name in self.managed_packages]
            logger.info("Re-applying selections for %d managed package(s)", len(self.managed_packages))
            self.packages.set_selections(pairs)
        else:
            logger.info("Re-applying %d recorded package selection(s)", len(recorded))
            self.packages.clear_selections()
            self.packages.set_selections(recorded)
        self.packages.dselect_upgrade()

    # -- retention ------------------------------------------------------

    def prune(self, keep: int) -> List[str]:
        """Delete all but the newest ``keep`` snapshots; returns deleted ids."""

        if keep < 1:
            raise ValueError("keep must be >= 1")
        removed = self.list()[keep:]
        for sid in removed:
            shutil.rmtree(self.backup_dir / sid)
            logger.info("Pruned snapshot %s", sid)
        return removed
