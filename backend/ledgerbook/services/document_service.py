# Overview: Document lifecycle orchestration: create, edit and delete invoices and bills.

"""
Document Lifecycle Orchestrator

Keeps a document, its line items, the stock of the items it references and
the transactions that settle it consistent, on a store that commits every
call on its own. Each operation is a fixed sequence of store calls (the
numbered steps below), recorded in the operation log so a run that stops
half-way can be diagnosed. There is no automatic rollback and no retry.

CREATE
  1 totals  2 status from the settlement proposal  3 insert header
  4 insert lines  5 insert settlement transaction  6 forward stock delta
UPDATE
  1 reverse stock delta of the STORED lines  2 delete stored lines
  3 totals  4 net settled from existing transactions  5 update header
  6 insert new lines  7 forward stock delta of the new lines
DELETE
  1 reverse stock delta  2 delete transactions  3 delete lines
  4 delete header (last, so a failed delete leaves the document visible)

Steps 1-2 of CREATE and 3-4 of UPDATE are computations and are not
logged. Step 0, when present, allocates a document number.

Edits revert everything and reapply everything instead of diffing lines
by item: stock is always adjusted against what storage currently holds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Document, DocumentSequence, LineItem
from ..models.enums import DocumentKind, DocumentStatus
from ..store import LedgerStore, StoreError
from ..validation import (
    DocumentHeader,
    LineItemInput,
    SettlementProposal,
    ValidationFailure,
    parse_discount,
    parse_header,
    parse_line_items,
    parse_percent,
    parse_settlement,
)
from . import catalog_service, stock_service
from .operation_log_service import StepLog, StoreWriteFailure
from .settlement_service import net_settled
from .status_service import SettlementState, resolve_status
from .totals_service import DocumentTotals, calculate_line, calculate_totals

logger = logging.getLogger(__name__)

__all__ = [
    "DocumentNotFound",
    "StoreWriteFailure",
    "create_document",
    "update_document",
    "delete_document",
]


class DocumentNotFound(LookupError):
    """Raised when a document does not exist in the business."""
    pass


@dataclass(frozen=True)
class StoredLine:
    """What the stock reconciler needs from a persisted line."""
    item_id: Optional[int]
    quantity: Decimal


@dataclass
class DocumentResult:
    document: Document
    lines: list
    totals: DocumentTotals
    settlement: SettlementState
    operation_id: int
    stock: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "document": self.document.to_dict(),
            "lines": [line.to_dict() for line in self.lines],
            "totals": self.totals.to_dict(),
            "net_settled_cents": self.settlement.net_settled_cents,
            "operation_id": self.operation_id,
            "skipped_items": [i for result in self.stock for i in result.skipped],
        }


@dataclass
class DeleteResult:
    document_id: int
    operation_id: int
    transactions_removed: int
    lines_removed: int
    skipped_items: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "operation_id": self.operation_id,
            "transactions_removed": self.transactions_removed,
            "lines_removed": self.lines_removed,
            "skipped_items": list(self.skipped_items),
        }


# =============================================================================
# DOCUMENT NUMBERS
# =============================================================================

def next_document_number(*, business_id: int, kind: DocumentKind, pad: int | None = None) -> str:
    """
    Allocate the next document number for a business and kind (INV-0001, BILL-0001).

    Increments in a single UPDATE so two callers never get the same number.
    """
    kind = DocumentKind(kind)
    if pad is None:
        pad = int(current_app.config.get("DOCUMENT_NUMBER_PAD", 4))

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.business_id == business_id,
            DocumentSequence.kind == kind.value,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.session.execute(stmt)
        if result.rowcount:
            current = (
                db.session.query(DocumentSequence.next_number)
                .filter_by(business_id=business_id, kind=kind.value)
                .scalar()
            )
            number = current - 1
        else:
            db.session.add(DocumentSequence(business_id=business_id, kind=kind.value, next_number=2))
            try:
                db.session.flush()
                number = 1
            except IntegrityError:
                db.session.rollback()
                db.session.execute(stmt)
                current = (
                    db.session.query(DocumentSequence.next_number)
                    .filter_by(business_id=business_id, kind=kind.value)
                    .scalar()
                )
                number = current - 1
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("document_sequence", "update", str(exc)) from exc

    return f"{kind.number_prefix}-{str(number).zfill(pad)}"


# =============================================================================
# HELPERS
# =============================================================================

def _require_document(store: LedgerStore, business_id: int, document_id: int) -> Document:
    document = store.documents.get(document_id)
    if document is None or document.business_id != business_id:
        raise DocumentNotFound(f"Document {document_id} not found")
    return document


def _stored_lines(store: LedgerStore, document_id: int) -> list[StoredLine]:
    return [
        StoredLine(item_id=row.item_id, quantity=Decimal(row.quantity))
        for row in store.line_items.select(document_id=document_id, order_by=LineItem.position)
    ]


def _line_rows(business_id: int, document_id: int, lines: list[LineItemInput]) -> list[dict]:
    rows = []
    for position, line in enumerate(lines):
        amounts = calculate_line(line)
        rows.append({
            "document_id": document_id,
            "business_id": business_id,
            "item_id": line.item_id,
            "position": position,
            "description": line.description,
            "quantity": line.quantity,
            "rate_cents": line.rate_cents,
            "tax_percent": line.tax_percent,
            "amount_cents": amounts.amount_cents,
            "tax_cents": amounts.tax_cents,
            "purchase_price_cents": line.purchase_price_cents,
        })
    return rows


def _header_fields(header: DocumentHeader, totals: DocumentTotals, state: SettlementState) -> dict:
    return {
        "party_id": header.party_id,
        "date": header.date,
        "due_date": header.due_date,
        "discount_value": header.discount.value,
        "discount_type": header.discount.type.value,
        "invoice_tax_percent": header.invoice_tax_percent,
        "subtotal_cents": totals.subtotal_cents,
        "tax_cents": totals.tax_cents,
        "discount_cents": totals.discount_cents,
        "total_cents": totals.total_cents,
        "balance_cents": state.balance_cents,
        "status": state.status.value,
        "notes": header.notes,
        "attachments": list(header.attachments),
    }


def _validate_header(business_id: int, header) -> DocumentHeader:
    if not isinstance(header, DocumentHeader):
        header = parse_header(header or {})
    catalog_service.require_party(business_id, header.party_id)
    return header


def _stock_step(log: StepLog, step: int, name: str, func) -> stock_service.StockDeltaResult:
    result = log.run(step, name, "item", func, detail=lambda r: r.describe())
    if result.skipped:
        log.skip(step, "skip_missing_items", "item",
                 "items not in catalog: " + ", ".join(str(i) for i in result.skipped))
    return result


def preview_totals(line_items, discount=None, invoice_tax_percent=None) -> DocumentTotals:
    """Totals for an unsaved document; no store access."""
    return calculate_totals(
        parse_line_items(line_items),
        parse_discount(discount),
        parse_percent(invoice_tax_percent, "invoice_tax_percent"),
    )


# =============================================================================
# CREATE
# =============================================================================

def create_document(
    business_id: int,
    header,
    line_items,
    settlement=None,
    store: LedgerStore | None = None,
) -> DocumentResult:
    """
    Persist a new invoice or bill with its lines, optional settlement and stock effect.

    header: DocumentHeader or a dict accepted by parse_header.
    line_items: list of LineItemInput or dicts.
    settlement: optional {amount_cents, mode}; a proposal for ONE transaction.

    Raises ValidationFailure before any write, StoreWriteFailure if a step fails.
    A failure after the header insert leaves the header (and whatever else
    committed) in place.
    """
    store = store or LedgerStore()

    catalog_service.require_business(business_id)
    header = _validate_header(business_id, header)
    lines = parse_line_items(line_items)
    proposal: SettlementProposal | None = parse_settlement(settlement)
    if proposal is not None:
        catalog_service.require_mode(business_id, proposal.mode)
    kind = header.kind

    # 1-2. totals and status from the proposal
    totals = calculate_totals(lines, header.discount, header.invoice_tax_percent)
    state = resolve_status(totals.total_cents, proposal.amount_cents if proposal else 0)

    log = StepLog(business_id=business_id, operation_type="document.create")

    number = header.document_number
    if not number:
        number = log.run(0, "allocate_number", "document_sequence",
                         lambda: next_document_number(business_id=business_id, kind=kind),
                         detail=lambda n: n)

    # 3. header
    fields = _header_fields(header, totals, state)
    fields.update({
        "business_id": business_id,
        "kind": kind.value,
        "document_number": number,
    })
    document_id = log.run(3, "insert_header", "document",
                          lambda: store.documents.insert(fields), returns_id=True)
    log.attach(3, document_id)

    # 4. lines
    log.run(4, "insert_lines", "line_item",
            lambda: store.line_items.insert_many(_line_rows(business_id, document_id, lines)),
            detail=lambda ids: f"{len(ids)} line(s)")

    # 5. settlement transaction
    settle_amount = min(proposal.amount_cents, totals.total_cents) if proposal else 0
    if settle_amount > 0:
        description = f"{kind.label} {number}"
        if state.status is DocumentStatus.PARTIAL:
            description += " (Partial Payment)"
        log.run(5, "insert_settlement", "transaction", lambda: store.transactions.insert({
            "business_id": business_id,
            "party_id": header.party_id,
            "document_id": document_id,
            "amount_cents": settle_amount,
            "type": kind.settlement_type.value,
            "mode": proposal.mode,
            "date": header.date,
            "description": description,
        }), returns_id=True)
    else:
        log.skip(5, "insert_settlement", "transaction", "no settlement proposed")

    # 6. stock
    forward = _stock_step(log, 6, "apply_stock",
                          lambda: stock_service.apply_delta(store, business_id, lines, kind.direction()))

    log.complete()
    logger.info("%s %s created (document %s, total=%s, %s)",
                kind.label, number, document_id, totals.total_cents, state.status.value)

    return DocumentResult(
        document=store.documents.get(document_id),
        lines=store.line_items.select(document_id=document_id, order_by=LineItem.position),
        totals=totals,
        settlement=state,
        operation_id=log.operation_id,
        stock=[forward],
    )


# =============================================================================
# UPDATE
# =============================================================================

def update_document(
    business_id: int,
    document_id: int,
    header,
    line_items,
    store: LedgerStore | None = None,
) -> DocumentResult:
    """
    Replace a document's header and lines.

    Settlement is never touched here: the new status and balance come from
    the transactions already linked to the document. The kind is fixed.
    """
    store = store or LedgerStore()

    catalog_service.require_business(business_id)
    document = _require_document(store, business_id, document_id)
    kind = DocumentKind(document.kind)
    if not isinstance(header, DocumentHeader):
        header = parse_header(header or {}, kind=kind)
    elif header.kind is not kind:
        raise ValidationFailure("a document's kind cannot change", "kind")
    header = _validate_header(business_id, header)
    lines = parse_line_items(line_items)

    expected_version = document.version_id
    number = header.document_number or document.document_number
    old_lines = _stored_lines(store, document_id)

    log = StepLog(business_id=business_id, operation_type="document.update", document_id=document_id)

    # 1. revert the stored lines' stock effect
    reverted = _stock_step(log, 1, "reverse_stock",
                           lambda: stock_service.reverse_delta(store, business_id, old_lines, kind.direction()))

    # 2. drop the stored lines
    log.run(2, "delete_lines", "line_item",
            lambda: store.line_items.delete(document_id=document_id),
            detail=lambda count: f"{count} line(s)")

    # 3-4. totals, and status from what is actually settled
    totals = calculate_totals(lines, header.discount, header.invoice_tax_percent)
    settled = net_settled(store, store.documents.get(document_id))
    state = resolve_status(totals.total_cents, settled)

    # 5. header
    fields = _header_fields(header, totals, state)
    fields["document_number"] = number
    log.run(5, "update_header", "document",
            lambda: store.documents.update(document_id, fields, expected_version=expected_version),
            detail=f"{state.status.value} total={totals.total_cents} balance={state.balance_cents}")

    # 6. new lines
    log.run(6, "insert_lines", "line_item",
            lambda: store.line_items.insert_many(_line_rows(business_id, document_id, lines)),
            detail=lambda ids: f"{len(ids)} line(s)")

    # 7. apply the new lines' stock effect
    forward = _stock_step(log, 7, "apply_stock",
                          lambda: stock_service.apply_delta(store, business_id, lines, kind.direction()))

    log.complete()
    logger.info("%s %s updated (document %s, total=%s, settled=%s, %s)",
                kind.label, number, document_id, totals.total_cents, settled, state.status.value)

    return DocumentResult(
        document=store.documents.get(document_id),
        lines=store.line_items.select(document_id=document_id, order_by=LineItem.position),
        totals=totals,
        settlement=state,
        operation_id=log.operation_id,
        stock=[reverted, forward],
    )


# =============================================================================
# DELETE
# =============================================================================

def delete_document(business_id: int, document_id: int, store: LedgerStore | None = None) -> DeleteResult:
    """
    Remove a document, its transactions and lines, restoring stock first.

    The header goes last: if any earlier step fails the document is still
    there and the delete can be re-run.
    """
    store = store or LedgerStore()

    catalog_service.require_business(business_id)
    document = _require_document(store, business_id, document_id)
    kind = DocumentKind(document.kind)
    number = document.document_number
    old_lines = _stored_lines(store, document_id)

    log = StepLog(business_id=business_id, operation_type="document.delete", document_id=document_id)

    # 1. stock
    reverted = _stock_step(log, 1, "reverse_stock",
                           lambda: stock_service.reverse_delta(store, business_id, old_lines, kind.direction()))

    # 2-3. dependents
    txn_count = log.run(2, "delete_transactions", "transaction",
                        lambda: store.transactions.delete(document_id=document_id),
                        detail=lambda count: f"{count} transaction(s)")
    line_count = log.run(3, "delete_lines", "line_item",
                         lambda: store.line_items.delete(document_id=document_id),
                         detail=lambda count: f"{count} line(s)")

    # 4. header
    log.run(4, "delete_header", "document", lambda: store.documents.delete(id=document_id))

    log.complete()
    logger.info("%s %s deleted (document %s)", kind.label, number, document_id)

    return DeleteResult(
        document_id=document_id,
        operation_id=log.operation_id,
        transactions_removed=txn_count,
        lines_removed=line_count,
        skipped_items=list(reverted.skipped),
    )


# =============================================================================
# READS
# =============================================================================

def get_document(business_id: int, document_id: int, store: LedgerStore | None = None):
    """Return (document, lines, transactions)."""
    store = store or LedgerStore()
    document = _require_document(store, business_id, document_id)
    lines = store.line_items.select(document_id=document_id, order_by=LineItem.position)
    transactions = store.transactions.select(document_id=document_id)
    return document, lines, transactions


def list_documents(
    business_id: int,
    *,
    kind: str | None = None,
    status: str | None = None,
) -> list[Document]:
    query = db.session.query(Document).filter_by(business_id=business_id)
    if kind:
        query = query.filter_by(kind=DocumentKind(kind.upper()).value)
    if status:
        query = query.filter_by(status=DocumentStatus(status.upper()).value)
    return query.order_by(Document.date.desc(), Document.id.desc()).all()
