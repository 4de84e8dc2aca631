from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

from ..errors import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    dry_run: bool = False,
    timeout: float | None = None,
    redact: bool = False,
) -> CmdResult:
    """Run a host command with consistent logging.

    - Always logs the command (argv elided when ``redact`` is set).
    - dry_run logs but does not execute.
    - A missing binary or a timeout is reported as a CommandError so that
      callers only ever deal with one failure type.
    """

    argv_list = list(argv)
    shown = argv_list[0] + " <redacted>" if redact and argv_list else fmt_argv(argv_list)
    logger.info("CMD %s", shown)

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    try:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise CommandError(f"Command not found: {argv_list[0]}", returncode=127) from e
    except subprocess.TimeoutExpired as e:
        raise CommandError(f"Command timed out after {timeout}s: {shown}", returncode=124) from e

    if p.stdout and not redact:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())

    if check and p.returncode != 0:
        raise CommandError(
            f"Command failed ({p.returncode}): {shown}\n{p.stderr}",
            returncode=p.returncode,
            stderr=p.stderr,
        )

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)
