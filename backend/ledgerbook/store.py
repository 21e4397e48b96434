# Overview: Entity-scoped access to the relational store; one committed call per write.

from __future__ import annotations

"""
Ledgerbook store seam

The engine reaches its tables only through per-entity gateways exposing
insert / update / delete / select. Each write is committed on its own:
there is deliberately no unit of work spanning two entities, so every
numbered step of a document operation is exactly one gateway call.

- SQLAlchemy failures are rolled back and surface as StoreError.
- update(..., expected_version=N) is a compare-and-swap on version_id;
  losing the race raises StaleWriteError and changes nothing.
- Models with a version_id column always get it incremented on update.
"""

from sqlalchemy import update as sa_update
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .models import Item, Document, LineItem, Transaction


class StoreError(Exception):
    """A single store call failed."""

    def __init__(self, entity: str, action: str, message: str):
        super().__init__(f"{action} {entity} failed: {message}")
        self.entity = entity
        self.action = action


class StaleWriteError(StoreError):
    """Compare-and-swap update lost against a concurrent writer."""


class EntityGateway:
    def __init__(self, model, entity: str):
        self.model = model
        self.entity = entity

    @property
    def _versioned(self) -> bool:
        return hasattr(self.model, "version_id")

    def _fail(self, action: str, exc: Exception):
        db.session.rollback()
        raise StoreError(self.entity, action, str(exc)) from exc

    def get(self, row_id: int):
        try:
            return db.session.get(self.model, row_id)
        except SQLAlchemyError as exc:
            self._fail("select", exc)

    def select(self, *, order_by=None, **filters) -> list:
        try:
            query = db.session.query(self.model).filter_by(**filters)
            if order_by is not None:
                query = query.order_by(order_by)
            return query.order_by(self.model.id).all()
        except SQLAlchemyError as exc:
            self._fail("select", exc)

    def insert(self, fields: dict) -> int:
        try:
            row = self.model(**fields)
            db.session.add(row)
            db.session.commit()
            return row.id
        except SQLAlchemyError as exc:
            self._fail("insert", exc)

    def insert_many(self, rows: list[dict]) -> list[int]:
        """Insert several rows of this entity in one call."""
        try:
            objs = [self.model(**fields) for fields in rows]
            db.session.add_all(objs)
            db.session.commit()
            return [o.id for o in objs]
        except SQLAlchemyError as exc:
            self._fail("insert", exc)

    def update(self, row_id: int, fields: dict, *, expected_version: int | None = None) -> None:
        values = dict(fields)
        stmt = sa_update(self.model).where(self.model.id == row_id)
        if self._versioned:
            values["version_id"] = self.model.version_id + 1
            if expected_version is not None:
                stmt = stmt.where(self.model.version_id == expected_version)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)

        try:
            result = db.session.execute(stmt)
            if not result.rowcount:
                db.session.rollback()
                if expected_version is not None:
                    raise StaleWriteError(
                        self.entity, "update",
                        f"id={row_id} is no longer at version {expected_version}",
                    )
                raise StoreError(self.entity, "update", f"id={row_id} not found")
            db.session.commit()
        except SQLAlchemyError as exc:
            self._fail("update", exc)

    def delete(self, **filters) -> int:
        if not filters:
            raise StoreError(self.entity, "delete", "refusing to delete without a filter")
        try:
            count = (
                db.session.query(self.model)
                .filter_by(**filters)
                .delete(synchronize_session=False)
            )
            db.session.commit()
            return count
        except SQLAlchemyError as exc:
            self._fail("delete", exc)


class LedgerStore:
    """The set of entity gateways a ledger operation talks to."""

    def __init__(self):
        self.items = EntityGateway(Item, "item")
        self.documents = EntityGateway(Document, "document")
        self.line_items = EntityGateway(LineItem, "line_item")
        self.transactions = EntityGateway(Transaction, "transaction")
