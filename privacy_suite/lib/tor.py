from __future__ import annotations

import logging

from ..errors import OperationFailure
from .command import run_cmd

logger = logging.getLogger(__name__)


def hash_password(password: str, *, dry_run: bool = False) -> str:
    """Return the ``16:...`` hash Tor expects for HashedControlPassword."""

    if dry_run:
        logger.info("Would hash control password with tor --hash-password")
        return "16:DRYRUN"
    r = run_cmd(["tor", "--hash-password", password], redact=True)
    lines = [ln.strip() for ln in r.stdout.splitlines() if ln.strip()]
    hashed = lines[-1] if lines else ""
    if not hashed.startswith("16:"):
        raise OperationFailure("Could not generate hashed password; is tor installed?")
    return hashed
