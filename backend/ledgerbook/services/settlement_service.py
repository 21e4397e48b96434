# Overview: Settlement ledger: transaction folds per document, per payment mode and per party.

"""
Settlement Ledger

Transactions are the only durable record of money moving. Two values are
derived from them and never stored or accepted from a caller:

- net settled for a document: signed sum of its linked transactions.
  SALE: RECEIPT counts +, PAYMENT (a refund) counts -.
  PURCHASE: PAYMENT counts +, RECEIPT counts -.
- balance per payment mode: sum(RECEIPT) - sum(PAYMENT), business-wide.

The "amount received" typed into a new-document form is only a proposal
for one transaction; once other transactions exist (recorded from the
payment screen) the fold is the truth.

Recording, editing or deleting a transaction linked to a document
re-derives that document's status and balance from the fold.

A party's ledger is a third fold: its opening balance, then every
document and transaction naming the party, in date order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date as date_type

from ..models import Document, Party, Transaction
from ..models.enums import DocumentKind, TransactionType
from ..store import LedgerStore, StoreError
from ..time_utils import to_iso_date, today
from ..validation import (
    ValidationFailure,
    parse_cents,
    parse_date,
    parse_optional_int,
    parse_transaction_type,
)
from . import catalog_service
from .operation_log_service import StepLog
from .status_service import SettlementState, resolve_status

logger = logging.getLogger(__name__)


class TransactionNotFound(LookupError):
    """Raised when a transaction does not exist in the business."""
    pass


# =============================================================================
# FOLDS
# =============================================================================

def fold_net_settled(kind: DocumentKind, transactions) -> int:
    kind = DocumentKind(kind)
    return sum(kind.signed(t.amount_cents, t.type) for t in transactions)


def fold_mode_balances(transactions) -> dict[str, int]:
    balances: dict[str, int] = {}
    for t in transactions:
        change = t.amount_cents if TransactionType(t.type) is TransactionType.RECEIPT else -t.amount_cents
        balances[t.mode] = balances.get(t.mode, 0) + change
    return balances


def net_settled(store: LedgerStore, document: Document) -> int:
    """Re-derive how much of a document is settled from its stored transactions."""
    transactions = store.transactions.select(document_id=document.id)
    return fold_net_settled(DocumentKind(document.kind), transactions)


def mode_balances(business_id: int, store: LedgerStore | None = None) -> dict[str, int]:
    """
    Balance of every payment mode for a business.

    Built-in and registered modes are always present (0 when unused);
    modes seen only on transactions are included as well.
    """
    store = store or LedgerStore()
    catalog_service.require_business(business_id)
    balances = {mode: 0 for mode in catalog_service.list_payment_modes(business_id)}
    balances.update(fold_mode_balances(store.transactions.select(business_id=business_id)))
    return balances


def mode_balance(business_id: int, mode: str, store: LedgerStore | None = None) -> int:
    store = store or LedgerStore()
    mode = str(mode).strip().upper()
    return fold_mode_balances(store.transactions.select(business_id=business_id, mode=mode)).get(mode, 0)


# =============================================================================
# DOCUMENT STATUS
# =============================================================================

def refresh_document_settlement(store: LedgerStore, document_id: int) -> SettlementState:
    """Recompute and persist a document's status and balance from its transactions."""
    document = store.documents.get(document_id)
    if document is None:
        raise StoreError("document", "select", f"id={document_id} not found")

    state = resolve_status(document.total_cents, net_settled(store, document))
    store.documents.update(
        document.id,
        {"status": state.status.value, "balance_cents": state.balance_cents},
        expected_version=document.version_id,
    )
    logger.info("document %s settlement refreshed: %s balance=%s",
                document_id, state.status.value, state.balance_cents)
    return state


# =============================================================================
# TRANSACTIONS
# =============================================================================

def _require_document(store: LedgerStore, business_id: int, document_id) -> Document | None:
    if document_id is None:
        return None
    document = store.documents.get(document_id)
    if document is None or document.business_id != business_id:
        raise ValidationFailure(f"document {document_id} not found", "document_id")
    return document


def _require_transaction(store: LedgerStore, business_id: int, transaction_id: int) -> Transaction:
    txn = store.transactions.get(transaction_id)
    if txn is None or txn.business_id != business_id:
        raise TransactionNotFound(f"Transaction {transaction_id} not found")
    return txn


def _positive_amount(value) -> int:
    amount = parse_cents(value, "amount_cents")
    if amount <= 0:
        raise ValidationFailure("amount_cents must be positive", "amount_cents")
    return amount


def record_transaction(
    business_id: int,
    *,
    amount_cents,
    type,
    mode,
    date=None,
    party_id=None,
    document_id=None,
    description: str | None = None,
    store: LedgerStore | None = None,
) -> Transaction:
    """
    Record a receipt or payment, optionally against a document.

    Steps: 1 insert transaction, 2 refresh the linked document (if any).
    """
    store = store or LedgerStore()
    catalog_service.require_business(business_id)

    txn_type = parse_transaction_type(type)
    amount = _positive_amount(amount_cents)
    mode_name = catalog_service.require_mode(business_id, mode)
    txn_date = parse_date(date, "date") or today()
    document = _require_document(store, business_id, parse_optional_int(document_id, "document_id"))
    party_id = parse_optional_int(party_id, "party_id")
    if party_id is None and document is not None:
        party_id = document.party_id
    catalog_service.require_party(business_id, party_id)

    fields = {
        "business_id": business_id,
        "party_id": party_id,
        "document_id": document.id if document else None,
        "amount_cents": amount,
        "type": txn_type.value,
        "mode": mode_name,
        "date": txn_date,
        "description": description,
    }

    log = StepLog(
        business_id=business_id,
        operation_type="transaction.create",
        document_id=fields["document_id"],
    )
    txn_id = log.run(1, "insert_transaction", "transaction", lambda: store.transactions.insert(fields), returns_id=True)
    if document is not None:
        log.run(2, "refresh_document", "document",
                lambda: refresh_document_settlement(store, document.id),
                detail=lambda s: f"{s.status.value} balance={s.balance_cents}")
    log.complete()
    return store.transactions.get(txn_id)


def update_transaction(
    business_id: int,
    transaction_id: int,
    changes: dict,
    store: LedgerStore | None = None,
) -> Transaction:
    """
    Edit amount, mode, date, description or party of a transaction.

    The type and the document link are fixed once recorded.
    """
    store = store or LedgerStore()
    catalog_service.require_business(business_id)
    txn = _require_transaction(store, business_id, transaction_id)
    document_id = txn.document_id

    fields = {}
    if "amount_cents" in changes:
        fields["amount_cents"] = _positive_amount(changes["amount_cents"])
    if "mode" in changes:
        fields["mode"] = catalog_service.require_mode(business_id, changes["mode"])
    if "date" in changes:
        fields["date"] = parse_date(changes["date"], "date", required=True)
    if "description" in changes:
        fields["description"] = changes["description"]
    if "party_id" in changes:
        party = catalog_service.require_party(
            business_id, parse_optional_int(changes["party_id"], "party_id"))
        fields["party_id"] = party.id if party else None
    if not fields:
        return txn

    log = StepLog(business_id=business_id, operation_type="transaction.update", document_id=document_id)
    log.run(1, "update_transaction", "transaction",
            lambda: store.transactions.update(transaction_id, fields))
    if document_id is not None:
        log.run(2, "refresh_document", "document",
                lambda: refresh_document_settlement(store, document_id),
                detail=lambda s: f"{s.status.value} balance={s.balance_cents}")
    log.complete()
    return store.transactions.get(transaction_id)


def delete_transaction(business_id: int, transaction_id: int, store: LedgerStore | None = None) -> None:
    store = store or LedgerStore()
    catalog_service.require_business(business_id)
    txn = _require_transaction(store, business_id, transaction_id)
    document_id = txn.document_id

    log = StepLog(business_id=business_id, operation_type="transaction.delete", document_id=document_id)
    log.run(1, "delete_transaction", "transaction",
            lambda: store.transactions.delete(id=transaction_id),
            detail=lambda count: f"{count} row(s)")
    if document_id is not None:
        log.run(2, "refresh_document", "document",
                lambda: refresh_document_settlement(store, document_id),
                detail=lambda s: f"{s.status.value} balance={s.balance_cents}")
    log.complete()


def list_transactions(
    business_id: int,
    *,
    document_id: int | None = None,
    mode: str | None = None,
    store: LedgerStore | None = None,
) -> list[Transaction]:
    store = store or LedgerStore()
    filters = {"business_id": business_id}
    if document_id is not None:
        filters["document_id"] = document_id
    if mode:
        filters["mode"] = str(mode).strip().upper()
    return store.transactions.select(**filters)


# =============================================================================
# PARTY LEDGER
# =============================================================================

DEBIT = "DEBIT"
CREDIT = "CREDIT"


@dataclass(frozen=True)
class LedgerEntry:
    date: date_type
    entry_type: str          # DOCUMENT or TRANSACTION
    reference_id: int
    description: str
    effect: str              # DEBIT raises what the party owes, CREDIT lowers it
    amount_cents: int
    balance_cents: int

    def to_dict(self) -> dict:
        return {
            "date": to_iso_date(self.date),
            "entry_type": self.entry_type,
            "reference_id": self.reference_id,
            "description": self.description,
            "effect": self.effect,
            "amount_cents": self.amount_cents,
            "balance_cents": self.balance_cents,
        }


@dataclass
class PartyLedger:
    party: Party
    opening_balance_cents: int
    entries: list

    @property
    def closing_balance_cents(self) -> int:
        if self.entries:
            return self.entries[-1].balance_cents
        return self.opening_balance_cents

    def to_dict(self) -> dict:
        return {
            "party": self.party.to_dict(),
            "opening_balance_cents": self.opening_balance_cents,
            "closing_balance_cents": self.closing_balance_cents,
            "entries": [e.to_dict() for e in self.entries],
        }


def _document_effect(document: Document) -> str:
    # SALE: the party received goods and owes us. PURCHASE: we owe the party.
    return DEBIT if DocumentKind(document.kind) is DocumentKind.SALE else CREDIT


def _transaction_effect(txn: Transaction) -> str:
    return CREDIT if TransactionType(txn.type) is TransactionType.RECEIPT else DEBIT


def party_ledger(business_id: int, party_id: int, store: LedgerStore | None = None) -> PartyLedger:
    """
    Dated history of everything that moved a party's balance.

    The running balance starts from the party's opening balance and is
    positive while the party owes the business (receivable), negative
    while the business owes the party (payable). On one date documents
    come before transactions, each in insertion order.
    """
    store = store or LedgerStore()
    catalog_service.require_business(business_id)
    party = catalog_service.get_party(business_id, party_id)

    rows = []
    for doc in store.documents.select(business_id=business_id, party_id=party.id):
        rows.append((doc.date, 0, doc.id, "DOCUMENT",
                     f"{DocumentKind(doc.kind).label} {doc.document_number}",
                     _document_effect(doc), doc.total_cents))
    for txn in store.transactions.select(business_id=business_id, party_id=party.id):
        rows.append((txn.date, 1, txn.id, "TRANSACTION",
                     txn.description or f"{TransactionType(txn.type).value.title()} ({txn.mode})",
                     _transaction_effect(txn), txn.amount_cents))
    rows.sort(key=lambda r: (r[0], r[1], r[2]))

    balance = party.opening_balance_cents or 0
    entries = []
    for entry_date, _, ref_id, entry_type, description, effect, amount in rows:
        balance += amount if effect == DEBIT else -amount
        entries.append(LedgerEntry(
            date=entry_date,
            entry_type=entry_type,
            reference_id=ref_id,
            description=description,
            effect=effect,
            amount_cents=amount,
            balance_cents=balance,
        ))
    return PartyLedger(party=party, opening_balance_cents=party.opening_balance_cents or 0, entries=entries)
