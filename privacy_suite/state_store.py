from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .lib.files import atomic_write_text
from .settings import detect_format, load_mapping

logger = logging.getLogger(__name__)

DEFAULT_STATE_PATH = "/var/lib/privacy-suite/state.json"

# Older run records are dropped past this many.
MAX_RUNS = 50


def load_state(path: str) -> Dict[str, Any]:
    return load_mapping(path)


def save_state(path: str, state: Dict[str, Any]) -> None:
    p = Path(path)
    if detect_format(p) in {"yaml", "yml"}:
        try:
            import yaml  # type: ignore
        except Exception as e:  # pragma: no cover
            raise RuntimeError(
                "YAML state requested but PyYAML is not available. "
                "Use JSON state or install PyYAML."
            ) from e
        text = yaml.safe_dump(state, sort_keys=False) + "\n"
    else:
        text = json.dumps(state, indent=2, sort_keys=True) + "\n"
    atomic_write_text(p, text)


def ensure_defaults(state: Dict[str, Any]) -> Dict[str, Any]:
    """Fill required keys with defaults (without overriding existing values)."""

    state.setdefault("version", 1)
    state.setdefault("runs", [])
    return state


def start_run(state: Dict[str, Any], *, command: str) -> Dict[str, Any]:
    run: Dict[str, Any] = {
        "command": command,
        "started_at": datetime.now(timezone.utc).isoformat(),
        "snapshot_id": None,
        "state": "idle",
        "ran_steps": [],
        "errors": [],
    }
    runs: List[Dict[str, Any]] = state.setdefault("runs", [])
    runs.append(run)
    del runs[:-MAX_RUNS]
    return run


def finish_run(
    run: Dict[str, Any],
    *,
    state: str,
    snapshot_id: Optional[str] = None,
    ran_steps: Optional[List[str]] = None,
    error: Optional[str] = None,
    step: Optional[str] = None,
) -> None:
    run["state"] = state
    run["finished_at"] = datetime.now(timezone.utc).isoformat()
    if snapshot_id is not None:
        run["snapshot_id"] = snapshot_id
    if ran_steps is not None:
        run["ran_steps"] = list(ran_steps)
    if error is not None:
        run.setdefault("errors", []).append({"step": step, "error": error})


def last_run(state: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    runs = state.get("runs") or []
    return runs[-1] if runs else None
