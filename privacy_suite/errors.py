from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .lib.validator import Rejection


class PrivacySuiteError(RuntimeError):
    pass


class OperationFailure(PrivacySuiteError):
    """A delegated step (install, restart, copy, edit) did not succeed."""


class CommandError(OperationFailure):
    def __init__(self, message: str, *, returncode: int, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class EditorIOError(OperationFailure):
    """A watched file could not be read or written."""


class ValidationError(PrivacySuiteError):
    def __init__(self, rejection: "Rejection") -> None:
        super().__init__(rejection.reason)
        self.rejection = rejection


class SnapshotError(PrivacySuiteError):
    pass


class SnapshotUnavailable(SnapshotError):
    """Rollback was required but there is nothing to roll back to."""


class RestoreError(SnapshotError):
    def __init__(self, snapshot_id: str, failures: list[str]) -> None:
        super().__init__(f"Snapshot {snapshot_id} restore incomplete: " + "; ".join(failures))
        self.snapshot_id = snapshot_id
        self.failures = failures


class TransactionError(PrivacySuiteError):
    pass


class TransactionFailed(TransactionError):
    def __init__(
        self,
        step_name: str,
        message: str,
        *,
        snapshot_id: Optional[str] = None,
        result: Any = None,
    ) -> None:
        super().__init__(f"Step {step_name} failed: {message} (rolled back to {snapshot_id})")
        self.step_name = step_name
        self.snapshot_id = snapshot_id
        # TransactionResult describing what ran before the failure.
        self.result = result


class RollbackFailed(TransactionError):
    pass


class LockError(PrivacySuiteError):
    pass


class PrivilegeError(PrivacySuiteError):
    """A command that changes the host was started without root privileges."""
