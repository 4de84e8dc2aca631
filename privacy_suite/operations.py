"""Named step operations and the ``execute(name, args)`` entry point.

Every operation returns a Result; failures of the delegated work surface as
``OperationFailed`` and malformed input as ``ValidationRejected``. The
Transaction Controller treats anything but ``Success`` as a rollback trigger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Sequence, Union

from .errors import OperationFailure, ValidationError
from .lib import connectivity, directives
from .lib.files import atomic_copy
from .lib.tor import hash_password
from .lib.validator import RequiredKeys, Rejection, validate

if TYPE_CHECKING:  # pragma: no cover
    from .context import RunContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success:
    detail: str = ""


@dataclass(frozen=True)
class ValidationRejected:
    reason: str


@dataclass(frozen=True)
class OperationFailed:
    message: str


Result = Union[Success, ValidationRejected, OperationFailed]


def failure_message(result: Result) -> str:
    if isinstance(result, ValidationRejected):
        return result.reason
    if isinstance(result, OperationFailed):
        return result.message
    return ""


@dataclass(frozen=True)
class Step:
    name: str
    args: Mapping[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        # Values may be secrets (control password); only keys are shown.
        return f"{self.name}({', '.join(sorted(self.args))})"


Operation = Callable[..., Result]

OPERATIONS: Dict[str, Operation] = {}


def operation(name: str) -> Callable[[Operation], Operation]:
    def register(fn: Operation) -> Operation:
        OPERATIONS[name] = fn
        return fn

    return register


def execute(ctx: "RunContext", name: str, args: Mapping[str, Any]) -> Result:
    fn = OPERATIONS.get(name)
    if fn is None:
        return OperationFailed(f"Unknown operation: {name}")
    try:
        return fn(ctx, **dict(args))
    except ValidationError as e:
        return ValidationRejected(e.rejection.reason)
    except (OperationFailure, OSError) as e:
        logger.error("Operation %s failed: %s", name, e)
        return OperationFailed(str(e))


def _dry(ctx: "RunContext", what: str) -> bool:
    if ctx.dry_run:
        logger.info("Would %s", what)
    return ctx.dry_run


# -- directive editor --------------------------------------------------------


@operation("ensure_line")
def op_ensure_line(ctx: "RunContext", *, path: str, line: str) -> Result:
    if _dry(ctx, f"ensure line in {path}: {line}"):
        return Success("dry_run")
    return Success(directives.ensure_line(path, line).value)


@operation("ensure_uncomment")
def op_ensure_uncomment(ctx: "RunContext", *, path: str, key: str) -> Result:
    if _dry(ctx, f"uncomment {key} in {path}"):
        return Success("dry_run")
    return Success(directives.ensure_uncomment(path, key).value)


@operation("remove_matching")
def op_remove_matching(ctx: "RunContext", *, path: str, pattern: str) -> Result:
    if _dry(ctx, f"remove lines matching {pattern!r} from {path}"):
        return Success("dry_run")
    return Success(f"removed={directives.remove_matching(path, pattern)}")


@operation("comment_matching")
def op_comment_matching(ctx: "RunContext", *, path: str, pattern: str) -> Result:
    if _dry(ctx, f"comment lines matching {pattern!r} in {path}"):
        return Success("dry_run")
    return Success(f"commented={directives.comment_matching(path, pattern)}")


@operation("set_directive")
def op_set_directive(ctx: "RunContext", *, path: str, key: str, value: str, uncomment: bool = True) -> Result:
    if _dry(ctx, f"set {key} {value} in {path}"):
        return Success("dry_run")
    return Success(directives.set_directive(path, key, str(value), uncomment=uncomment).value)


# -- validator ---------------------------------------------------------------


@operation("validate_config")
def op_validate_config(
    ctx: "RunContext",
    *,
    path: str,
    sections: Sequence[str],
    keys: RequiredKeys,
) -> Result:
    outcome = validate(path, sections, keys)
    if isinstance(outcome, Rejection):
        raise ValidationError(outcome)
    return Success("valid")


# -- delegated host operations ----------------------------------------------


@operation("install_file")
def op_install_file(ctx: "RunContext", *, src: str, dest: str, mode: int = 0o600) -> Result:
    if _dry(ctx, f"install {src} -> {dest} (mode {mode:o})"):
        return Success("dry_run")
    atomic_copy(src, dest, mode=mode)
    logger.info("Installed %s -> %s", src, dest)
    return Success(dest)


@operation("install_packages")
def op_install_packages(ctx: "RunContext", *, packages: Sequence[str], upgrade: bool = False) -> Result:
    ctx.packages.install(list(packages), upgrade=upgrade)
    return Success(",".join(packages))


@operation("restart_service")
def op_restart_service(ctx: "RunContext", *, service: str) -> Result:
    ctx.services.restart(service)
    return Success(service)


@operation("enable_service")
def op_enable_service(ctx: "RunContext", *, service: str) -> Result:
    ctx.services.enable(service)
    return Success(service)


@operation("set_hashed_control_password")
def op_set_hashed_control_password(ctx: "RunContext", *, password: str, path: str) -> Result:
    hashed = hash_password(password, dry_run=ctx.dry_run)
    if _dry(ctx, f"replace HashedControlPassword in {path}"):
        return Success("dry_run")
    directives.remove_matching(path, r"^HashedControlPassword")
    directives.ensure_line(path, f"HashedControlPassword {hashed}")
    return Success("hashed")


@operation("check_connectivity")
def op_check_connectivity(ctx: "RunContext", *, probe: str) -> Result:
    if probe == "tor":
        connectivity.check_tor(dry_run=ctx.dry_run)
    elif probe == "proxychains":
        connectivity.check_proxychains(dry_run=ctx.dry_run)
    else:
        return OperationFailed(f"Unknown connectivity probe: {probe}")
    return Success(probe)
