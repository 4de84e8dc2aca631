from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/privacy-suite/config.yaml"

PACKAGE_SCOPES = {"full", "managed"}


def detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def load_mapping(path: str) -> Dict[str, Any]:
    """Load a JSON or YAML mapping; a missing file is an empty mapping."""

    p = Path(path)
    if not p.exists():
        return {}

    if detect_format(p) in {"yaml", "yml"}:
        try:
            import yaml  # type: ignore
        except Exception as e:  # pragma: no cover
            raise RuntimeError(
                "YAML config requested but PyYAML is not available. "
                "Use a JSON config or install PyYAML."
            ) from e
        try:
            data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"{path}: invalid YAML: {e}") from e
    else:
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"{path}: invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain an object/mapping, got {type(data)}")
    return data


def ensure_defaults(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Fill required keys with defaults (without overriding user values)."""

    raw.setdefault("backup_dir", "/etc/anonymizer/backups")
    raw.setdefault(
        "watched_files",
        [
            "/etc/proxychains.conf",
            "/etc/proxychains4.conf",
            "/etc/tor/torrc",
            "/etc/resolv.conf",
            "/etc/wireguard/wg0.conf",
        ],
    )
    raw.setdefault(
        "packages",
        ["tor", "torsocks", "proxychains4", "obfs4proxy", "firejail", "wireguard", "tcpdump"],
    )
    raw.setdefault("lock_path", "/run/privacy-suite.lock")
    raw.setdefault("dry_run", False)

    paths = raw.setdefault("paths", {})
    paths.setdefault("torrc", "/etc/tor/torrc")
    # proxychains-ng ships /etc/proxychains4.conf on Debian.
    paths.setdefault("proxychains", "/etc/proxychains4.conf")
    paths.setdefault("wireguard_dir", "/etc/wireguard")

    tor = raw.setdefault("tor", {})
    tor.setdefault("socks_port", 9050)
    tor.setdefault("control_port", 9051)
    tor.setdefault("trans_port", 9040)
    tor.setdefault("dns_port", 5353)
    tor.setdefault("virtual_addr_network", "10.192.0.0/10")
    tor.setdefault("obfs4proxy", "/usr/bin/obfs4proxy")
    tor.setdefault("service", "tor")

    snaps = raw.setdefault("snapshots", {})
    # None keeps every snapshot forever.
    snaps.setdefault("retention", None)
    snaps.setdefault("package_scope", "full")
    snaps.setdefault("managed_packages", [])

    return raw


@dataclass(frozen=True)
class SuiteConfig:
    raw: Dict[str, Any]

    @property
    def backup_dir(self) -> str:
        return str(self.raw.get("backup_dir") or "/etc/anonymizer/backups")

    @property
    def watched_files(self) -> List[str]:
        return [str(p) for p in (self.raw.get("watched_files") or [])]

    @property
    def packages(self) -> List[str]:
        return [str(p).strip() for p in (self.raw.get("packages") or []) if str(p).strip()]

    @property
    def lock_path(self) -> str:
        return str(self.raw.get("lock_path") or "/run/privacy-suite.lock")

    @property
    def dry_run(self) -> bool:
        return bool(self.raw.get("dry_run", False))

    @property
    def torrc(self) -> str:
        return str((self.raw.get("paths") or {}).get("torrc") or "/etc/tor/torrc")

    @property
    def proxychains_conf(self) -> str:
        return str((self.raw.get("paths") or {}).get("proxychains") or "/etc/proxychains4.conf")

    @property
    def wireguard_dir(self) -> str:
        return str((self.raw.get("paths") or {}).get("wireguard_dir") or "/etc/wireguard")

    @property
    def tor(self) -> Dict[str, Any]:
        return dict(self.raw.get("tor") or {})

    @property
    def tor_service(self) -> str:
        return str(self.tor.get("service") or "tor")

    @property
    def snapshot_retention(self) -> Optional[int]:
        value = (self.raw.get("snapshots") or {}).get("retention")
        if value is None:
            return None
        keep = int(value)
        if keep < 1:
            raise ValueError("snapshots.retention must be >= 1 or null")
        return keep

    @property
    def package_scope(self) -> str:
        scope = str((self.raw.get("snapshots") or {}).get("package_scope") or "full")
        if scope not in PACKAGE_SCOPES:
            raise ValueError(f"snapshots.package_scope must be one of {sorted(PACKAGE_SCOPES)}")
        return scope

    @property
    def managed_packages(self) -> List[str]:
        managed = (self.raw.get("snapshots") or {}).get("managed_packages") or []
        return [str(p) for p in managed] or self.packages

    def with_overrides(self, **overrides: Any) -> "SuiteConfig":
        raw = dict(self.raw)
        raw.update({k: v for k, v in overrides.items() if v is not None})
        return SuiteConfig(raw=raw)


def load_config(path: str) -> SuiteConfig:
    raw = ensure_defaults(load_mapping(path))
    logger.info("Loaded config from %s", path if Path(path).exists() else "<defaults>")
    return SuiteConfig(raw=raw)
