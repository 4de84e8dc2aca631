from __future__ import annotations

import logging
from typing import List

from ..operations import Step
from ..settings import SuiteConfig

logger = logging.getLogger(__name__)


def build_update_steps(cfg: SuiteConfig, *, verify: bool = False) -> List[Step]:
    """Upgrade the installed privacy stack in place and restart Tor."""

    steps = [
        Step("install_packages", {"packages": cfg.packages, "upgrade": True}),
        Step("restart_service", {"service": cfg.tor_service}),
    ]
    if verify:
        steps.append(Step("check_connectivity", {"probe": "tor"}))
    logger.info("Planned update flow: %d package(s), verify=%s", len(cfg.packages), verify)
    return steps
