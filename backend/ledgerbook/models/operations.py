from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Operation(db.Model):
    """
    Durable intent record for one create/update/delete run.

    Written IN_PROGRESS before the first store write and closed as
    COMPLETED or FAILED. A row left IN_PROGRESS means the process died
    mid-sequence; its steps show what committed.

    document_id has no FK: the log outlives deleted documents.
    """
    __tablename__ = "operations"
    __table_args__ = (
        db.Index("ix_operations_business_status", "business_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, nullable=False, index=True)
    operation_type = db.Column(db.String(32), nullable=False)  # document.create, document.update, document.delete
    document_id = db.Column(db.Integer, nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="IN_PROGRESS", index=True)
    failed_step = db.Column(db.Integer, nullable=True)
    error = db.Column(db.Text, nullable=True)

    started_at = db.Column(db.DateTime(timezone=True), nullable=False)
    finished_at = db.Column(db.DateTime(timezone=True), nullable=True)

    steps = db.relationship(
        "OperationStep",
        backref="operation",
        lazy=True,
        order_by="OperationStep.id",
    )

    def to_dict(self, include_steps: bool = False) -> dict:
        data = {
            "id": self.id,
            "business_id": self.business_id,
            "operation_type": self.operation_type,
            "document_id": self.document_id,
            "status": self.status,
            "failed_step": self.failed_step,
            "error": self.error,
            "started_at": to_utc_z(self.started_at),
            "finished_at": to_utc_z(self.finished_at),
        }
        if include_steps:
            data["steps"] = [s.to_dict() for s in self.steps]
        return data


class OperationStep(db.Model):
    """One numbered step of an operation (append-only)."""
    __tablename__ = "operation_steps"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    operation_id = db.Column(db.Integer, db.ForeignKey("operations.id"), nullable=False, index=True)

    step = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(64), nullable=False)
    entity = db.Column(db.String(32), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)
    outcome = db.Column(db.String(16), nullable=False)  # COMMITTED, SKIPPED, FAILED
    detail = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "name": self.name,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "outcome": self.outcome,
            "detail": self.detail,
            "occurred_at": to_utc_z(self.occurred_at),
        }
