from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..operations import Step
from ..settings import SuiteConfig
from .proxychains import build_proxychains_steps
from .tor import build_tor_steps

logger = logging.getLogger(__name__)


def build_install_steps(
    cfg: SuiteConfig,
    *,
    control_password: Optional[str] = None,
    transparent_proxy: bool = True,
    bridges: Sequence[str] = (),
    verify: bool = True,
) -> List[Step]:
    """Full stack: packages, torrc, proxychains, then end-to-end checks."""

    steps: List[Step] = [Step("install_packages", {"packages": cfg.packages})]
    steps += build_tor_steps(
        cfg,
        control_password=control_password,
        transparent_proxy=transparent_proxy,
        bridges=bridges,
    )
    steps += build_proxychains_steps(cfg)
    if verify:
        steps.append(Step("check_connectivity", {"probe": "tor"}))
        steps.append(Step("check_connectivity", {"probe": "proxychains"}))
    return steps
