from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..operations import Step
from ..settings import SuiteConfig

logger = logging.getLogger(__name__)


def _port(torrc: str, key: str, value: object) -> List[Step]:
    # Stock torrc ships these commented out; keep their position, then make
    # sure our value is active too.
    return [
        Step("ensure_uncomment", {"path": torrc, "key": key}),
        Step("ensure_line", {"path": torrc, "line": f"{key} {value}"}),
    ]


def _bridge_line(raw: str) -> str:
    line = " ".join(str(raw).split())
    if line.lower().startswith("bridge "):
        line = line[len("bridge "):]
    return f"Bridge {line}"


def build_tor_steps(
    cfg: SuiteConfig,
    *,
    control_password: Optional[str] = None,
    transparent_proxy: bool = False,
    bridges: Sequence[str] = (),
    restart: bool = True,
) -> List[Step]:
    """Steps that configure torrc for SOCKS/control use.

    The caller resolves every choice (password, transparent proxy, bridge
    lines) up front.
    """

    torrc = cfg.torrc
    tor = cfg.tor

    steps: List[Step] = []
    steps += _port(torrc, "SocksPort", tor.get("socks_port", 9050))
    steps += _port(torrc, "ControlPort", tor.get("control_port", 9051))

    if control_password:
        steps.append(Step("set_hashed_control_password", {"path": torrc, "password": control_password}))

    if transparent_proxy:
        steps += _port(torrc, "TransPort", tor.get("trans_port", 9040))
        steps += _port(torrc, "DNSPort", tor.get("dns_port", 5353))
        steps.append(Step("set_directive", {"path": torrc, "key": "AutomapHostsOnResolve", "value": "1"}))
        steps.append(
            Step(
                "set_directive",
                {"path": torrc, "key": "VirtualAddrNetwork", "value": tor.get("virtual_addr_network", "10.192.0.0/10")},
            )
        )

    bridge_lines = [_bridge_line(b) for b in bridges if str(b).strip()]
    if bridge_lines:
        steps.append(Step("set_directive", {"path": torrc, "key": "UseBridges", "value": "1"}))
        steps.append(
            Step(
                "ensure_line",
                {"path": torrc, "line": f"ClientTransportPlugin obfs4 exec {tor.get('obfs4proxy', '/usr/bin/obfs4proxy')}"},
            )
        )
        for line in bridge_lines:
            steps.append(Step("ensure_line", {"path": torrc, "line": line}))

    if restart:
        steps.append(Step("restart_service", {"service": cfg.tor_service}))

    logger.info(
        "Planned tor flow: %d step(s) (control_password=%s transparent=%s bridges=%d)",
        len(steps),
        bool(control_password),
        transparent_proxy,
        len(bridge_lines),
    )
    return steps
