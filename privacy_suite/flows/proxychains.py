from __future__ import annotations

import logging
from typing import List, Optional

from ..operations import Step
from ..settings import SuiteConfig

logger = logging.getLogger(__name__)

CHAIN_MODES = ("strict_chain", "dynamic_chain", "random_chain", "round_robin_chain")


def build_proxychains_steps(
    cfg: SuiteConfig,
    *,
    chain_mode: str = "dynamic_chain",
    proxy_dns: bool = True,
    tor_proxy: Optional[str] = None,
) -> List[Step]:
    """Route proxychains through the local Tor SOCKS port.

    Exactly one chain mode is left active: the conflicting modes are
    commented out before the chosen one is uncommented/added.
    """

    if chain_mode not in CHAIN_MODES:
        raise ValueError(f"chain_mode must be one of {', '.join(CHAIN_MODES)}")

    conf = cfg.proxychains_conf
    others = [m for m in CHAIN_MODES if m != chain_mode]
    proxy = tor_proxy or f"socks5 127.0.0.1 {cfg.tor.get('socks_port', 9050)}"

    steps: List[Step] = [
        Step("comment_matching", {"path": conf, "pattern": r"^\s*(" + "|".join(others) + r")\s*$"}),
        Step("ensure_uncomment", {"path": conf, "key": chain_mode + r"\s*$"}),
        Step("ensure_line", {"path": conf, "line": chain_mode}),
    ]

    if proxy_dns:
        # proxychains4.conf also carries proxy_dns_old / proxy_dns_daemon.
        steps.append(Step("ensure_uncomment", {"path": conf, "key": r"proxy_dns\s*$"}))
        steps.append(Step("ensure_line", {"path": conf, "line": "proxy_dns"}))

    # The stock ProxyList points at Tor over socks4; it must go before ours is added.
    steps.append(Step("remove_matching", {"path": conf, "pattern": r"^\s*socks4\s+127\.0\.0\.1\s+9050\b"}))
    steps.append(Step("ensure_line", {"path": conf, "line": proxy}))

    logger.info("Planned proxychains flow: %d step(s) (mode=%s proxy=%s)", len(steps), chain_mode, proxy)
    return steps
