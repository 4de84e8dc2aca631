from __future__ import annotations

import argparse
import getpass
import json
import logging
import os
import sys
from typing import Callable, List, Optional

from .context import RunContext, build_context
from .errors import (
    LockError,
    PrivilegeError,
    PrivacySuiteError,
    RollbackFailed,
    SnapshotError,
    TransactionFailed,
    ValidationError,
)
from .flows import (
    CHAIN_MODES,
    build_install_steps,
    build_proxychains_steps,
    build_tor_steps,
    build_update_steps,
    build_vpn_steps,
    files_touched,
)
from .lib.lock import single_instance
from .lib.validator import Rejection, validate_wireguard
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .operations import Step
from .settings import DEFAULT_CONFIG_PATH, SuiteConfig, load_config
from .state_store import (
    DEFAULT_STATE_PATH,
    ensure_defaults,
    finish_run,
    last_run,
    load_state,
    save_state,
    start_run,
)
from .transaction import TransactionController, TransactionResult

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_FATAL = 2


def run_steps(
    *,
    cfg: SuiteConfig,
    steps: List[Step],
    command: str,
    state_path: str = DEFAULT_STATE_PATH,
) -> TransactionResult:
    """Run one guarded transaction, recording the outcome in the state file."""

    # Anything a step writes must be part of the snapshot, or rollback could not undo it.
    watched = cfg.watched_files + [f for f in files_touched(steps) if f not in cfg.watched_files]
    ctx = build_context(cfg.with_overrides(watched_files=watched))

    state = ensure_defaults(load_state(state_path))
    run = start_run(state, command=command)
    tx = TransactionController(ctx)

    try:
        with single_instance(cfg.lock_path):
            tx.begin()
            result = tx.run(steps)
        finish_run(run, state=result.state.value, snapshot_id=result.snapshot_id, ran_steps=result.ran_steps)
        return result
    except TransactionFailed as e:
        finish_run(
            run,
            state=tx.state.value,
            snapshot_id=e.snapshot_id,
            ran_steps=tx.ran_steps,
            error=str(e),
            step=e.step_name,
        )
        raise
    except Exception as e:
        logger.exception("privacy-suite %s failed", command)
        finish_run(run, state=tx.state.value, snapshot_id=tx.snapshot_id, ran_steps=tx.ran_steps, error=str(e))
        raise
    finally:
        save_state(state_path, state)


def _is_root() -> bool:
    return os.geteuid() == 0


def _control_password(args: argparse.Namespace) -> Optional[str]:
    if getattr(args, "control_password_stdin", False):
        return sys.stdin.readline().rstrip("\n") or None
    if getattr(args, "ask_control_password", False):
        return getpass.getpass("Control Password: ") or None
    return None


def cmd_tor(args: argparse.Namespace, cfg: SuiteConfig) -> int:
    steps = build_tor_steps(
        cfg,
        control_password=_control_password(args),
        transparent_proxy=bool(args.transparent),
        bridges=args.bridge or [],
    )
    result = run_steps(cfg=cfg, steps=steps, command="tor", state_path=args.state)
    print(f"Tor configured ({cfg.torrc}); snapshot {result.snapshot_id}")
    return EXIT_OK


def cmd_proxychains(args: argparse.Namespace, cfg: SuiteConfig) -> int:
    steps = build_proxychains_steps(cfg, chain_mode=args.chain_mode, proxy_dns=not args.no_proxy_dns)
    result = run_steps(cfg=cfg, steps=steps, command="proxychains", state_path=args.state)
    print(f"Proxychains configured ({cfg.proxychains_conf}); snapshot {result.snapshot_id}")
    return EXIT_OK


def cmd_vpn(args: argparse.Namespace, cfg: SuiteConfig) -> int:
    steps = build_vpn_steps(cfg, args.source, interface=args.interface)
    result = run_steps(cfg=cfg, steps=steps, command="vpn", state_path=args.state)
    print(f"WireGuard interface {args.interface} configured; snapshot {result.snapshot_id}")
    return EXIT_OK


def cmd_install(args: argparse.Namespace, cfg: SuiteConfig) -> int:
    steps = build_install_steps(
        cfg,
        control_password=_control_password(args),
        transparent_proxy=not args.no_transparent,
        bridges=args.bridge or [],
        verify=not args.no_verify,
    )
    result = run_steps(cfg=cfg, steps=steps, command="install", state_path=args.state)
    print(f"Installation complete; snapshot {result.snapshot_id}")
    return EXIT_OK


def cmd_update(args: argparse.Namespace, cfg: SuiteConfig) -> int:
    steps = build_update_steps(cfg, verify=bool(args.verify))
    result = run_steps(cfg=cfg, steps=steps, command="update", state_path=args.state)
    print(f"Components updated; snapshot {result.snapshot_id}")
    return EXIT_OK


def cmd_snapshot(args: argparse.Namespace, cfg: SuiteConfig) -> int:
    ctx = build_context(cfg)
    with single_instance(cfg.lock_path):
        sid = ctx.store.create()
    print(sid)
    return EXIT_OK


def cmd_snapshots(args: argparse.Namespace, cfg: SuiteConfig) -> int:
    ctx = build_context(cfg)
    for sid in ctx.store.list():
        info = ctx.store.info(sid)
        print(f"{sid}\t{len(info.files)} file(s)\t{info.created_at}")
    return EXIT_OK


def cmd_restore(args: argparse.Namespace, cfg: SuiteConfig) -> int:
    ctx: RunContext = build_context(cfg)
    state = ensure_defaults(load_state(args.state))
    run = start_run(state, command="restore")
    try:
        with single_instance(cfg.lock_path):
            report = ctx.store.restore(args.id)
        finish_run(run, state="restored", snapshot_id=report.snapshot_id)
    except PrivacySuiteError as e:
        finish_run(run, state="failed", snapshot_id=args.id, error=str(e))
        raise
    finally:
        save_state(args.state, state)
    print(f"Restored snapshot {report.snapshot_id} ({len(report.restored)} file(s))")
    return EXIT_OK


def cmd_validate(args: argparse.Namespace, cfg: SuiteConfig) -> int:
    outcome = validate_wireguard(args.source)
    if isinstance(outcome, Rejection):
        raise ValidationError(outcome)
    print(f"{args.source}: OK")
    return EXIT_OK


def cmd_status(args: argparse.Namespace, cfg: SuiteConfig) -> int:
    run = last_run(ensure_defaults(load_state(args.state)))
    print(json.dumps(run, indent=2, sort_keys=True) if run else "No runs recorded")
    return EXIT_OK


def _add_tor_options(sp: argparse.ArgumentParser) -> None:
    pw = sp.add_mutually_exclusive_group()
    pw.add_argument("--ask-control-password", action="store_true", help="Prompt for a Tor control password")
    pw.add_argument("--control-password-stdin", action="store_true", help="Read the control password from stdin")
    sp.add_argument("--bridge", action="append", help="Bridge line (repeatable), e.g. 'obfs4 1.2.3.4:443 FP cert=...'")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="privacy-suite")
    p.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Config file (json|yaml)")
    p.add_argument("--state", default=DEFAULT_STATE_PATH, help="Run state file (json|yaml)")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Log file")
    p.add_argument("--dry-run", action="store_true", help="Log host changes instead of making them")
    p.add_argument("-v", "--verbose", action="store_true", help="Show INFO logging on the console")

    sub = p.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("tor", help="Configure torrc")
    _add_tor_options(sp)
    sp.add_argument("--transparent", action="store_true", help="Enable TransPort/DNSPort/AutomapHostsOnResolve")
    sp.set_defaults(func=cmd_tor, mutating=True)

    sp = sub.add_parser("proxychains", help="Route proxychains through Tor")
    sp.add_argument("--chain-mode", default="dynamic_chain", choices=CHAIN_MODES)
    sp.add_argument("--no-proxy-dns", action="store_true")
    sp.set_defaults(func=cmd_proxychains, mutating=True)

    sp = sub.add_parser("vpn", help="Install a WireGuard interface config")
    sp.add_argument("source", help="WireGuard config to install")
    sp.add_argument("--interface", default="wg0")
    sp.set_defaults(func=cmd_vpn, mutating=True)

    sp = sub.add_parser("install", help="Install packages and configure the whole stack")
    _add_tor_options(sp)
    sp.add_argument("--no-transparent", action="store_true", help="Skip transparent proxy settings")
    sp.add_argument("--no-verify", action="store_true", help="Skip connectivity checks")
    sp.set_defaults(func=cmd_install, mutating=True)

    sp = sub.add_parser("update", help="Upgrade the installed packages and restart Tor")
    sp.add_argument("--verify", action="store_true", help="Run the Tor connectivity check afterwards")
    sp.set_defaults(func=cmd_update, mutating=True)

    sp = sub.add_parser("snapshot", help="Take a snapshot without changing anything")
    sp.set_defaults(func=cmd_snapshot, mutating=True)

    sp = sub.add_parser("snapshots", help="List snapshots, newest first")
    sp.set_defaults(func=cmd_snapshots)

    sp = sub.add_parser("restore", aliases=["undo"], help="Restore a snapshot (default: latest)")
    sp.add_argument("--id", default=None, help="Snapshot id (see 'snapshots')")
    sp.set_defaults(func=cmd_restore, mutating=True)

    sp = sub.add_parser("validate", help="Check a WireGuard config without installing it")
    sp.add_argument("source")
    sp.set_defaults(func=cmd_validate)

    sp = sub.add_parser("status", help="Show the last recorded run")
    sp.set_defaults(func=cmd_status)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    configure_logging(log_path=args.log, console_level=logging.INFO if (args.verbose or args.dry_run) else logging.WARNING)

    func: Callable[[argparse.Namespace, SuiteConfig], int] = args.func
    try:
        cfg = load_config(args.config)
        if args.dry_run:
            cfg = cfg.with_overrides(dry_run=True)
        if getattr(args, "mutating", False) and not cfg.dry_run and not _is_root():
            raise PrivilegeError(f"'{args.command}' changes the host; run as root (e.g. using sudo) or with --dry-run")
        return int(func(args, cfg))
    except (TransactionFailed, ValidationError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILED
    except (RollbackFailed, SnapshotError, LockError, PrivilegeError) as e:
        logger.critical("Fatal: %s", e)
        print(f"FATAL: {e}", file=sys.stderr)
        return EXIT_FATAL
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
