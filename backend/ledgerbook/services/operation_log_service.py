# Overview: Append-only step log for multi-write document operations.

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Operation, OperationStep
from ..store import StoreError
from ..time_utils import utcnow

"""
Operation log invariants (authoritative)

- One Operation row per create/update/delete invocation, written
  IN_PROGRESS before the first domain write (the intent record).
- One OperationStep row per numbered step, appended right after the
  step's store call returns (COMMITTED / SKIPPED) or raises (FAILED).
- Steps are never updated or deleted.
- The operation is closed as COMPLETED after the last step or FAILED at
  the failing step. A row still IN_PROGRESS means the process stopped
  mid-sequence; its COMMITTED steps say exactly what reached the store.
- No domain logic here.
"""

OPERATION_IN_PROGRESS = "IN_PROGRESS"
OPERATION_COMPLETED = "COMPLETED"
OPERATION_FAILED = "FAILED"

STEP_COMMITTED = "COMMITTED"
STEP_SKIPPED = "SKIPPED"
STEP_FAILED = "FAILED"

logger = logging.getLogger(__name__)


class StoreWriteFailure(Exception):
    """
    A numbered step's store call failed; the operation stopped there.

    Carries enough to tell the caller what was partially applied:
    which step failed, on which entity, and which steps had committed.
    """

    def __init__(
        self,
        *,
        operation_id: int | None,
        step: int,
        step_name: str,
        entity: str | None,
        committed_steps: list[str],
        cause: Exception,
    ):
        super().__init__(f"step {step} ({step_name}) failed on {entity or 'store'}: {cause}")
        self.operation_id = operation_id
        self.step = step
        self.step_name = step_name
        self.entity = entity
        self.committed_steps = list(committed_steps)
        self.cause = cause

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "step": self.step,
            "step_name": self.step_name,
            "entity": self.entity,
            "committed_steps": self.committed_steps,
            "partially_applied": bool(self.committed_steps),
            "cause": str(self.cause),
        }


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("operation", "write", str(exc)) from exc


def begin_operation(*, business_id: int, operation_type: str, document_id: int | None = None) -> Operation:
    op = Operation(
        business_id=business_id,
        operation_type=operation_type,
        document_id=document_id,
        status=OPERATION_IN_PROGRESS,
        started_at=utcnow(),
    )
    db.session.add(op)
    _commit()
    logger.info("operation %s started: %s business=%s document=%s",
                op.id, operation_type, business_id, document_id)
    return op


def append_step(
    operation_id: int,
    *,
    step: int,
    name: str,
    outcome: str,
    entity: str | None = None,
    entity_id: int | None = None,
    detail: Optional[str] = None,
) -> OperationStep:
    row = OperationStep(
        operation_id=operation_id,
        step=step,
        name=name,
        entity=entity,
        entity_id=entity_id,
        outcome=outcome,
        detail=detail,
        occurred_at=utcnow(),
    )
    db.session.add(row)
    _commit()
    return row


def attach_document(operation_id: int, document_id: int) -> None:
    op = db.session.get(Operation, operation_id)
    op.document_id = document_id
    _commit()


def complete_operation(operation_id: int) -> None:
    op = db.session.get(Operation, operation_id)
    op.status = OPERATION_COMPLETED
    op.finished_at = utcnow()
    _commit()
    logger.info("operation %s completed", operation_id)


def fail_operation(operation_id: int, *, step: int, error: str) -> None:
    op = db.session.get(Operation, operation_id)
    op.status = OPERATION_FAILED
    op.failed_step = step
    op.error = error
    op.finished_at = utcnow()
    _commit()
    logger.error("operation %s failed at step %s: %s", operation_id, step, error)


class StepLog:
    """
    Runs the numbered steps of one operation and records each of them.

    Callers invoke run() per step in order, then complete(). A StoreError
    from any step, or from the log's own writes, is recorded where the
    log is still reachable, the operation is failed and a
    StoreWriteFailure is raised.
    """

    def __init__(self, *, business_id: int, operation_type: str, document_id: int | None = None):
        self.operation_id = None
        self.committed: list[str] = []
        self.last_step = 0
        try:
            self.operation = begin_operation(
                business_id=business_id,
                operation_type=operation_type,
                document_id=document_id,
            )
        except StoreError as exc:
            raise self._failure(0, "begin_operation", "operation", exc) from exc
        self.operation_id = self.operation.id

    def run(self, step: int, name: str, entity: str | None, func, *, detail=None, returns_id: bool = False):
        """
        Execute one step. func returns the step's result; detail, when
        callable, is called with that result to build the logged detail.
        returns_id marks the result as the id of the row the step wrote.
        """
        self.last_step = step
        try:
            result = func()
        except StoreWriteFailure:
            raise
        except StoreError as exc:
            self._record_failure(step, name, entity, exc)
            raise self._failure(step, name, exc.entity or entity, exc) from exc

        entity_id = result if returns_id else None
        text = detail(result) if callable(detail) else detail
        self.committed.append(name)
        try:
            append_step(
                self.operation_id,
                step=step,
                name=name,
                outcome=STEP_COMMITTED,
                entity=entity,
                entity_id=entity_id,
                detail=text,
            )
        except StoreError as exc:
            raise self._failure(step, name, "operation", exc) from exc
        return result

    def attach(self, step: int, document_id: int) -> None:
        """Point the operation at the document an earlier step created."""
        try:
            attach_document(self.operation_id, document_id)
        except StoreError as exc:
            self._record_failure(step, "attach_document", "operation", exc)
            raise self._failure(step, "attach_document", "operation", exc) from exc

    def skip(self, step: int, name: str, entity: str | None, detail: str) -> None:
        self.last_step = step
        try:
            append_step(self.operation_id, step=step, name=name, outcome=STEP_SKIPPED, entity=entity, detail=detail)
        except StoreError as exc:
            raise self._failure(step, name, "operation", exc) from exc

    def _failure(self, step: int, name: str, entity: str | None, exc: StoreError) -> StoreWriteFailure:
        return StoreWriteFailure(
            operation_id=self.operation_id,
            step=step,
            step_name=name,
            entity=entity,
            committed_steps=self.committed,
            cause=exc,
        )

    def _record_failure(self, step: int, name: str, entity: str | None, exc: Exception) -> None:
        try:
            append_step(self.operation_id, step=step, name=name, outcome=STEP_FAILED, entity=entity, detail=str(exc))
            fail_operation(self.operation_id, step=step, error=str(exc))
        except StoreError:
            # The log itself is unreachable; the Operation stays IN_PROGRESS.
            logger.exception("could not record failure of operation %s step %s", self.operation_id, step)

    def complete(self) -> None:
        try:
            complete_operation(self.operation_id)
        except StoreError as exc:
            raise self._failure(self.last_step, "complete_operation", "operation", exc) from exc


def list_operations(business_id: int, status: str | None = None, limit: int = 50) -> list[Operation]:
    query = db.session.query(Operation).filter_by(business_id=business_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Operation.id.desc()).limit(limit).all()


def get_operation(operation_id: int) -> Operation | None:
    return db.session.get(Operation, operation_id)
