from __future__ import annotations

import logging

from ..errors import OperationFailure
from .command import run_cmd

logger = logging.getLogger(__name__)

TOR_CHECK_URL = "https://check.torproject.org"
IP_ECHO_URL = "https://ifconfig.me"


def check_tor(*, dry_run: bool = False, timeout: float = 60.0) -> None:
    """Fail unless traffic through torsocks reaches the Tor check page as Tor."""

    r = run_cmd(["torsocks", "curl", "-s", TOR_CHECK_URL], check=False, dry_run=dry_run, timeout=timeout)
    if dry_run:
        return
    if r.returncode != 0 or "Congratulations" not in r.stdout:
        raise OperationFailure("Tor connectivity test failed")
    logger.info("Tor connectivity verified")


def check_proxychains(*, dry_run: bool = False, timeout: float = 60.0) -> None:
    r = run_cmd(["proxychains4", "-q", "curl", "-s", IP_ECHO_URL], check=False, dry_run=dry_run, timeout=timeout)
    if dry_run:
        return
    if r.returncode != 0:
        raise OperationFailure("Proxychains test failed")
    logger.info("Proxychains egress address: %s", r.stdout.strip())
