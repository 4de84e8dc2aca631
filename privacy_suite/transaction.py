from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, NoReturn, Optional, Sequence

from .errors import RollbackFailed, TransactionError, TransactionFailed
from .operations import OperationFailed, Result, Step, Success, execute, failure_message

if TYPE_CHECKING:  # pragma: no cover
    from .context import RunContext

logger = logging.getLogger(__name__)


class TxState(str, Enum):
    IDLE = "idle"
    SNAPSHOT_TAKEN = "snapshot_taken"
    RUNNING = "running"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class TransactionResult:
    snapshot_id: str
    state: TxState
    ran_steps: List[str] = field(default_factory=list)
    failed_step: Optional[str] = None
    failure: Optional[Result] = None


class TransactionController:
    """Guard an ordered list of steps with one snapshot.

    ``begin()`` takes the snapshot. ``run()`` executes the steps strictly in
    order; the first step that does not return Success rolls the host back
    to that snapshot and raises TransactionFailed. A rollback happens at
    most once per transaction.
    """

    def __init__(self, ctx: "RunContext") -> None:
        self.ctx = ctx
        self.state = TxState.IDLE
        self.snapshot_id: Optional[str] = None
        self.ran_steps: List[str] = []

    def begin(self) -> str:
        if self.state != TxState.IDLE:
            raise TransactionError(f"Transaction already started (state={self.state.value})")
        # SnapshotError propagates: no transaction runs without a safety snapshot.
        self.snapshot_id = self.ctx.store.create()
        self.state = TxState.SNAPSHOT_TAKEN
        logger.info("Transaction begun (snapshot=%s)", self.snapshot_id)
        return self.snapshot_id

    def run(self, steps: Sequence[Step]) -> TransactionResult:
        if self.state != TxState.SNAPSHOT_TAKEN:
            raise TransactionError(f"run() requires a fresh snapshot (state={self.state.value})")
        assert self.snapshot_id is not None

        self.state = TxState.RUNNING
        for index, step in enumerate(steps, start=1):
            logger.info("Running step %d/%d %s", index, len(steps), step.describe())
            try:
                result = execute(self.ctx, step.name, step.args)
            except Exception as e:
                # Unexpected errors still roll back; the original is chained.
                logger.exception("Step %s raised", step.describe())
                self._rollback(step, OperationFailed(f"{type(e).__name__}: {e}"))
            if not isinstance(result, Success):
                self._rollback(step, result)
            self.ran_steps.append(step.name)

        self.state = TxState.COMMITTED
        logger.info("Transaction committed (snapshot %s retained)", self.snapshot_id)
        return TransactionResult(
            snapshot_id=self.snapshot_id,
            state=self.state,
            ran_steps=list(self.ran_steps),
        )

    def _rollback(self, step: Step, result: Result) -> NoReturn:
        message = failure_message(result)
        self.state = TxState.ROLLED_BACK
        logger.warning("Step %s failed: %s; rolling back to %s", step.describe(), message, self.snapshot_id)
        try:
            self.ctx.store.restore(self.snapshot_id)
        except Exception as e:
            logger.critical("Rollback to %s failed: %s", self.snapshot_id, e)
            raise RollbackFailed(f"Rollback after {step.name} failed: {e}") from e
        raise TransactionFailed(
            step.name,
            message,
            snapshot_id=self.snapshot_id,
            result=TransactionResult(
                snapshot_id=self.snapshot_id or "",
                state=self.state,
                ran_steps=list(self.ran_steps),
                failed_step=step.name,
                failure=result,
            ),
        )


def run_transaction(ctx: "RunContext", steps: Sequence[Step]) -> TransactionResult:
    tx = TransactionController(ctx)
    tx.begin()
    return tx.run(steps)
