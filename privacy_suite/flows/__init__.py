from typing import List, Sequence

from ..operations import Step
from .install import build_install_steps
from .proxychains import CHAIN_MODES, build_proxychains_steps
from .tor import build_tor_steps
from .update import build_update_steps
from .vpn import build_vpn_steps, interface_conf_path

# Operations that write to the file named by their "path"/"dest" argument.
MUTATING_OPERATIONS = {
    "ensure_line": "path",
    "ensure_uncomment": "path",
    "remove_matching": "path",
    "comment_matching": "path",
    "set_directive": "path",
    "set_hashed_control_password": "path",
    "install_file": "dest",
}


def files_touched(steps: Sequence[Step]) -> List[str]:
    """Every file the steps may write, in first-use order."""

    out: List[str] = []
    for step in steps:
        arg = MUTATING_OPERATIONS.get(step.name)
        if arg is None:
            continue
        path = str(step.args.get(arg) or "")
        if path and path not in out:
            out.append(path)
    return out


__all__ = [
    "CHAIN_MODES",
    "MUTATING_OPERATIONS",
    "build_install_steps",
    "build_proxychains_steps",
    "build_tor_steps",
    "build_update_steps",
    "build_vpn_steps",
    "files_touched",
    "interface_conf_path",
]
