# Overview: Applies signed stock deltas to inventory items for a document's line items.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Item
from ..store import LedgerStore, StoreError
from .concurrency import run_with_retry

"""
Stock reconciliation invariants (authoritative)

- Item.stock_quantity is a mutable aggregate: it equals the sum of the
  effects of every currently persisted document. It is never recomputed
  from scratch, so every document write/delete applies an exactly
  matching inverse delta when the document changes or disappears.
- Forward effect per unit is DocumentKind.direction(): SALE -1, PURCHASE +1.
  The reverse effect (undo on edit/delete) negates it.
- Lines without item_id are free text and have no stock effect.
- Items are processed one at a time, in line order. A failed write stops
  the call; earlier items stay written (no rollback across items).
- A referenced item that no longer exists is skipped and logged
  (StockReadMissing), never fatal.
- Each write is a compare-and-swap on Item.version_id. On conflict the
  item is re-read and the same delta re-applied, so two documents moving
  one item at the same time cannot lose an update.
"""

logger = logging.getLogger(__name__)


class StockReadMissing(Exception):
    """A line references an item that is not in the catalog any more."""

    def __init__(self, item_id: int):
        super().__init__(f"item {item_id} not found")
        self.item_id = item_id


class StockWriteError(StoreError):
    """An item write failed part-way through a reconciliation."""

    def __init__(self, item_id: int, applied: list[int], cause: StoreError):
        super().__init__(
            "item", "update",
            f"stock write for item {item_id} failed after items {applied or '[]'} were written: {cause}",
        )
        self.item_id = item_id
        self.applied = list(applied)


@dataclass
class StockDeltaResult:
    applied: list[dict] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)

    def describe(self) -> str:
        parts = [f"item {a['item_id']}: {a['delta']:+}" for a in self.applied]
        parts += [f"item {item_id}: skipped (missing)" for item_id in self.skipped]
        return "; ".join(parts) or "no stock lines"


def _cas_attempts() -> int:
    try:
        return int(current_app.config.get("STOCK_CAS_ATTEMPTS", 5))
    except RuntimeError:
        return 5


def _read_stock(store: LedgerStore, business_id: int, item_id: int) -> Item:
    item = store.items.get(item_id)
    if item is None or item.business_id != business_id:
        raise StockReadMissing(item_id)
    return item


def _write_delta(store: LedgerStore, business_id: int, item_id: int, delta: Decimal) -> Decimal:
    def _op():
        # Fresh snapshot each attempt: drop whatever the session cached.
        db.session.expire_all()
        item = _read_stock(store, business_id, item_id)
        new_stock = Decimal(item.stock_quantity or 0) + delta
        store.items.update(item_id, {"stock_quantity": new_stock}, expected_version=item.version_id)
        return new_stock

    return run_with_retry(_op, attempts=_cas_attempts())


def apply_delta(store: LedgerStore, business_id: int, lines, direction: int) -> StockDeltaResult:
    """
    Move stock by direction * quantity for every line with an item_id.

    lines: objects exposing item_id and quantity (inputs or stored rows).
    direction: kind.direction() for the forward effect, its negation to undo.
    """
    if direction not in (1, -1):
        raise ValueError("direction must be +1 or -1")

    result = StockDeltaResult()
    applied_ids: list[int] = []
    for line in lines:
        item_id = getattr(line, "item_id", None)
        if item_id is None:
            continue

        delta = Decimal(direction) * Decimal(line.quantity)
        try:
            new_stock = _write_delta(store, business_id, item_id, delta)
        except StockReadMissing as exc:
            logger.warning("stock delta %s skipped for business %s: %s", delta, business_id, exc)
            result.skipped.append(item_id)
            continue
        except StoreError as exc:
            raise StockWriteError(item_id, applied_ids, exc) from exc

        applied_ids.append(item_id)
        result.applied.append({"item_id": item_id, "delta": delta, "stock_quantity": new_stock})
        logger.debug("item %s stock %s -> %s", item_id, delta, new_stock)

    return result


def reverse_delta(store: LedgerStore, business_id: int, lines, direction: int) -> StockDeltaResult:
    """Undo apply_delta(lines, direction)."""
    return apply_delta(store, business_id, lines, -direction)


def list_low_stock(business_id: int) -> list[Item]:
    """Items at or below their minimum stock level, lowest first."""
    return (
        db.session.query(Item)
        .filter(Item.business_id == business_id, Item.stock_quantity <= Item.min_stock)
        .order_by(Item.stock_quantity, Item.id)
        .all()
    )
