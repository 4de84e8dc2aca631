from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List

from ..lib.validator import WIREGUARD_KEYS, WIREGUARD_SECTIONS
from ..operations import Step
from ..settings import SuiteConfig

logger = logging.getLogger(__name__)

# Linux interface names: at most 15 chars, the set wg-quick accepts.
_IFACE_RX = re.compile(r"^[a-zA-Z0-9_=+.-]{1,15}$")


def interface_conf_path(cfg: SuiteConfig, interface: str) -> str:
    if not _IFACE_RX.match(interface):
        raise ValueError(f"Invalid WireGuard interface name: {interface!r}")
    return str(Path(cfg.wireguard_dir) / f"{interface}.conf")


def build_vpn_steps(cfg: SuiteConfig, source: str, *, interface: str = "wg0") -> List[Step]:
    """Validate a user-supplied WireGuard file, install it and bring it up."""

    dest = interface_conf_path(cfg, interface)
    unit = f"wg-quick@{interface}"
    steps = [
        Step(
            "validate_config",
            {
                "path": source,
                "sections": list(WIREGUARD_SECTIONS),
                "keys": {k: list(v) for k, v in WIREGUARD_KEYS.items()},
            },
        ),
        Step("install_file", {"src": source, "dest": dest, "mode": 0o600}),
        Step("enable_service", {"service": unit}),
        Step("restart_service", {"service": unit}),
    ]
    logger.info("Planned vpn flow: %s -> %s (%s)", source, dest, unit)
    return steps
