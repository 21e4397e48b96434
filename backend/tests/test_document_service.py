# Overview: Pytest coverage for the document lifecycle (create, edit, delete).

"""
Document Lifecycle Tests

Walks one SALE through create -> edit -> delete and checks that stock,
totals, status and transactions stay consistent at every stage, then
injects store failures at individual steps to check what is reported
and what is left behind.
"""

from decimal import Decimal

import pytest

from ledgerbook.extensions import db
from ledgerbook.models import Document, Item, LineItem, Operation, Transaction
from ledgerbook.services import document_service, operation_log_service, settlement_service
from ledgerbook.services.document_service import DocumentNotFound
from ledgerbook.services.operation_log_service import StoreWriteFailure
from ledgerbook.store import LedgerStore, StaleWriteError, StoreError
from ledgerbook.validation import ValidationFailure


HEADER = {"kind": "SALE", "date": "2024-01-10"}


def _lines(item_id, quantity=2):
    return [{"item_id": item_id, "quantity": quantity, "rate_cents": 5000, "tax_percent": 10}]


def _stock(item_id) -> Decimal:
    db.session.expire_all()
    return Decimal(db.session.get(Item, item_id).stock_quantity)


def _transactions(document_id):
    db.session.expire_all()
    return db.session.query(Transaction).filter_by(document_id=document_id).all()


def _operation(operation_id) -> Operation:
    db.session.expire_all()
    return db.session.get(Operation, operation_id)


def _failing(name):
    def _raise(*args, **kwargs):
        raise StoreError(name, "write", "database is locked")
    return _raise


class TestCreateDocument:
    def test_create_paid_sale(self, business, item):
        result = document_service.create_document(
            business.id, HEADER, _lines(item.id), settlement={"amount_cents": 11000, "mode": "CASH"})

        doc = result.document
        assert doc.subtotal_cents == 10000
        assert doc.tax_cents == 1000
        assert doc.total_cents == 11000
        assert doc.status == "PAID"
        assert doc.balance_cents == 0
        assert doc.document_number == "INV-0001"
        assert _stock(item.id) == Decimal("8")

        txns = _transactions(doc.id)
        assert len(txns) == 1
        assert txns[0].type == "RECEIPT"
        assert txns[0].amount_cents == 11000
        assert txns[0].mode == "CASH"
        assert txns[0].description == "Sale INV-0001"

    def test_create_partial_sale(self, business, item):
        result = document_service.create_document(
            business.id, HEADER, _lines(item.id), settlement={"amount_cents": 5000, "mode": "cash"})

        assert result.document.status == "PARTIAL"
        assert result.document.balance_cents == 6000
        txn = _transactions(result.document.id)[0]
        assert txn.amount_cents == 5000
        assert txn.description == "Sale INV-0001 (Partial Payment)"

    def test_unpaid_sale_writes_no_transaction(self, business, item):
        result = document_service.create_document(business.id, HEADER, _lines(item.id))

        assert result.document.status == "UNPAID"
        assert result.document.balance_cents == 11000
        assert _transactions(result.document.id) == []

        steps = {s.name: s.outcome for s in _operation(result.operation_id).steps}
        assert steps["insert_settlement"] == "SKIPPED"

    def test_unpaid_mode_means_no_settlement(self, business, item):
        result = document_service.create_document(
            business.id, HEADER, _lines(item.id), settlement={"amount_cents": 11000, "mode": "UNPAID"})
        assert result.document.status == "UNPAID"
        assert _transactions(result.document.id) == []

    def test_overpayment_is_capped_at_total(self, business, item):
        result = document_service.create_document(
            business.id, HEADER, _lines(item.id), settlement={"amount_cents": 20000, "mode": "CASH"})

        assert result.document.status == "PAID"
        assert _transactions(result.document.id)[0].amount_cents == 11000

    def test_purchase_adds_stock_and_is_settled_by_payment(self, business, item):
        result = document_service.create_document(
            business.id,
            {"kind": "PURCHASE", "date": "2024-01-10"},
            [{"item_id": item.id, "quantity": 5, "rate_cents": 3000}],
            settlement={"amount_cents": 15000, "mode": "BANK"},
        )

        assert result.document.document_number == "BILL-0001"
        assert result.document.status == "PAID"
        assert _stock(item.id) == Decimal("15")
        assert _transactions(result.document.id)[0].type == "PAYMENT"
        assert settlement_service.mode_balances(business.id)["BANK"] == -15000

    def test_numbers_are_sequential_per_kind(self, business, item):
        numbers = [
            document_service.create_document(business.id, HEADER, _lines(item.id, 1)).document.document_number
            for _ in range(3)
        ]
        assert numbers == ["INV-0001", "INV-0002", "INV-0003"]

    def test_explicit_number_is_kept(self, business, item):
        result = document_service.create_document(
            business.id, dict(HEADER, document_number="A/2024/17"), _lines(item.id))
        assert result.document.document_number == "A/2024/17"

    def test_free_text_line_and_missing_item(self, business, item):
        result = document_service.create_document(
            business.id,
            HEADER,
            [
                {"description": "Delivery", "quantity": 1, "rate_cents": 500},
                {"item_id": 99999, "quantity": 1, "rate_cents": 100},
                {"item_id": item.id, "quantity": 1, "rate_cents": 100},
            ],
        )

        assert result.document.subtotal_cents == 700
        assert _stock(item.id) == Decimal("9")
        assert result.to_dict()["skipped_items"] == [99999]
        assert [line.position for line in result.lines] == [0, 1, 2]

    def test_operation_log_records_every_step(self, business, item):
        result = document_service.create_document(
            business.id, HEADER, _lines(item.id), settlement={"amount_cents": 100, "mode": "CASH"})

        op = _operation(result.operation_id)
        assert op.status == "COMPLETED"
        assert op.document_id == result.document.id
        assert [(s.step, s.name, s.outcome) for s in op.steps] == [
            (0, "allocate_number", "COMMITTED"),
            (3, "insert_header", "COMMITTED"),
            (4, "insert_lines", "COMMITTED"),
            (5, "insert_settlement", "COMMITTED"),
            (6, "apply_stock", "COMMITTED"),
        ]
        assert op.steps[1].entity_id == result.document.id


class TestCreateValidation:
    @pytest.mark.parametrize("lines", [
        [],
        [{"item_id": 1, "quantity": 0, "rate_cents": 100}],
        [{"item_id": 1, "quantity": 1, "rate_cents": -1}],
        [{"quantity": 1, "rate_cents": 100}],
        [{"item_id": 1, "quantity": "1.2345", "rate_cents": 100}],
        [{"item_id": 1, "quantity": "1000000000", "rate_cents": 100}],
    ])
    def test_bad_lines_write_nothing(self, business, lines):
        with pytest.raises(ValidationFailure):
            document_service.create_document(business.id, HEADER, lines)

        assert db.session.query(Operation).count() == 0
        assert db.session.query(Document).count() == 0

    def test_bad_kind(self, business, item):
        with pytest.raises(ValidationFailure) as exc_info:
            document_service.create_document(business.id, {"kind": "QUOTE", "date": "2024-01-10"}, _lines(item.id))
        assert exc_info.value.field == "kind"

    def test_unknown_settlement_mode(self, business, item):
        with pytest.raises(ValidationFailure):
            document_service.create_document(
                business.id, HEADER, _lines(item.id), settlement={"amount_cents": 100, "mode": "CHEQUE"})
        assert _stock(item.id) == Decimal("10")

    def test_settlement_needs_amount(self, business, item):
        with pytest.raises(ValidationFailure):
            document_service.create_document(business.id, HEADER, _lines(item.id), settlement={"mode": "CASH"})

    def test_party_of_another_business(self, business, other_business, item):
        from ledgerbook.services import catalog_service
        stranger = catalog_service.create_party(other_business.id, "Stranger")
        with pytest.raises(ValidationFailure) as exc_info:
            document_service.create_document(business.id, dict(HEADER, party_id=stranger.id), _lines(item.id))
        assert exc_info.value.field == "party_id"

    def test_unknown_business(self, db_session):
        with pytest.raises(ValidationFailure):
            document_service.create_document(404, HEADER, [{"description": "x", "quantity": 1, "rate_cents": 1}])


class TestUpdateDocument:
    def test_edit_quantity_rederives_status_from_existing_transactions(self, business, item):
        created = document_service.create_document(
            business.id, HEADER, _lines(item.id, 2), settlement={"amount_cents": 11000, "mode": "CASH"})
        doc_id = created.document.id
        assert _stock(item.id) == Decimal("8")

        result = document_service.update_document(business.id, doc_id, HEADER, _lines(item.id, 4))

        assert result.document.total_cents == 22000
        assert result.document.status == "PARTIAL"
        assert result.document.balance_cents == 11000
        assert result.settlement.net_settled_cents == 11000
        assert _stock(item.id) == Decimal("6")

        # Settlement is untouched by edits
        txns = _transactions(doc_id)
        assert [(t.amount_cents, t.mode) for t in txns] == [(11000, "CASH")]

    def test_edit_replaces_lines(self, business, item, second_item):
        created = document_service.create_document(business.id, HEADER, _lines(item.id, 2))
        doc_id = created.document.id

        document_service.update_document(
            business.id, doc_id, HEADER,
            [{"item_id": second_item.id, "quantity": 1, "rate_cents": 2000}],
        )

        db.session.expire_all()
        lines = db.session.query(LineItem).filter_by(document_id=doc_id).all()
        assert [line.item_id for line in lines] == [second_item.id]
        assert _stock(item.id) == Decimal("10")
        assert _stock(second_item.id) == Decimal("4")

    def test_kind_cannot_change(self, business, item):
        created = document_service.create_document(business.id, HEADER, _lines(item.id, 2))

        result = document_service.update_document(
            business.id, created.document.id, {"kind": "PURCHASE", "date": "2024-01-11"}, _lines(item.id, 2))

        assert result.document.kind == "SALE"
        assert _stock(item.id) == Decimal("8")

    def test_number_is_kept_when_omitted(self, business, item):
        created = document_service.create_document(business.id, HEADER, _lines(item.id))
        result = document_service.update_document(business.id, created.document.id, HEADER, _lines(item.id, 1))
        assert result.document.document_number == "INV-0001"

    def test_version_is_bumped(self, business, item):
        created = document_service.create_document(business.id, HEADER, _lines(item.id))
        before = created.document.version_id
        result = document_service.update_document(business.id, created.document.id, HEADER, _lines(item.id, 1))
        assert result.document.version_id == before + 1

    def test_unknown_document(self, business):
        with pytest.raises(DocumentNotFound):
            document_service.update_document(business.id, 999, HEADER, [{"description": "x", "quantity": 1, "rate_cents": 1}])

    def test_document_of_another_business_not_found(self, business, other_business, item):
        created = document_service.create_document(business.id, HEADER, _lines(item.id))
        with pytest.raises(DocumentNotFound):
            document_service.update_document(other_business.id, created.document.id, HEADER, _lines(item.id))


class TestDeleteDocument:
    def test_delete_restores_stock_and_removes_transactions(self, business, item):
        created = document_service.create_document(
            business.id, HEADER, _lines(item.id, 2), settlement={"amount_cents": 11000, "mode": "CASH"})
        doc_id = created.document.id
        document_service.update_document(business.id, doc_id, HEADER, _lines(item.id, 4))
        assert _stock(item.id) == Decimal("6")

        result = document_service.delete_document(business.id, doc_id)

        assert result.transactions_removed == 1
        assert result.lines_removed == 1
        assert _stock(item.id) == Decimal("10")
        assert _transactions(doc_id) == []
        assert db.session.get(Document, doc_id) is None
        assert settlement_service.mode_balances(business.id)["CASH"] == 0

    def test_delete_unknown(self, business):
        with pytest.raises(DocumentNotFound):
            document_service.delete_document(business.id, 12345)

    def test_fractional_quantities_restore_stock_exactly(self, business, item):
        line = {"item_id": item.id, "quantity": "1.235", "rate_cents": 100}
        created = document_service.create_document(business.id, HEADER, [line])
        doc_id = created.document.id
        assert _stock(item.id) == Decimal("8.765")
        assert created.lines[0].amount_cents == 124

        document_service.update_document(business.id, doc_id, HEADER, [dict(line, quantity="0.5")])
        assert _stock(item.id) == Decimal("9.5")

        document_service.delete_document(business.id, doc_id)
        assert _stock(item.id) == Decimal("10")


class TestStoredHeaderScale:
    def test_stored_discount_and_tax_reproduce_stored_totals(self, business, item):
        header = dict(HEADER, discount={"value": "12.345", "type": "percent"}, invoice_tax_percent="5.0005")
        created = document_service.create_document(business.id, header, _lines(item.id))

        db.session.expire_all()
        doc = db.session.get(Document, created.document.id)
        assert Decimal(doc.discount_value) == Decimal("12.35")
        assert Decimal(doc.invoice_tax_percent) == Decimal("5.001")

        again = document_service.preview_totals(
            _lines(item.id),
            discount={"value": str(doc.discount_value), "type": doc.discount_type},
            invoice_tax_percent=str(doc.invoice_tax_percent),
        )
        assert again.discount_cents == doc.discount_cents
        assert again.total_cents == doc.total_cents


class TestStoreFailures:
    def test_line_insert_failure_reports_partial_application(self, business, item):
        store = LedgerStore()
        store.line_items.insert_many = _failing("line_item")

        with pytest.raises(StoreWriteFailure) as exc_info:
            document_service.create_document(
                business.id, HEADER, _lines(item.id), settlement={"amount_cents": 11000, "mode": "CASH"},
                store=store)

        failure = exc_info.value
        assert failure.step == 4
        assert failure.step_name == "insert_lines"
        assert failure.entity == "line_item"
        assert failure.committed_steps == ["allocate_number", "insert_header"]
        assert failure.to_dict()["partially_applied"] is True

        op = _operation(failure.operation_id)
        assert op.status == "FAILED"
        assert op.failed_step == 4
        assert [s.outcome for s in op.steps] == ["COMMITTED", "COMMITTED", "FAILED"]

        # The header stays; nothing after the failed step ran
        assert db.session.query(Document).count() == 1
        assert db.session.query(Transaction).count() == 0
        assert _stock(item.id) == Decimal("10")

    def test_stock_failure_after_settlement(self, business, item):
        store = LedgerStore()
        store.items.update = _failing("item")

        with pytest.raises(StoreWriteFailure) as exc_info:
            document_service.create_document(
                business.id, HEADER, _lines(item.id), settlement={"amount_cents": 11000, "mode": "CASH"},
                store=store)

        assert exc_info.value.step == 6
        assert "insert_settlement" in exc_info.value.committed_steps
        assert db.session.query(Transaction).count() == 1
        assert _stock(item.id) == Decimal("10")

    def test_header_conflict_on_edit(self, business, item):
        created = document_service.create_document(business.id, HEADER, _lines(item.id, 2))
        store = LedgerStore()

        def stale(*args, **kwargs):
            raise StaleWriteError("document", "update", "version moved")
        store.documents.update = stale

        with pytest.raises(StoreWriteFailure) as exc_info:
            document_service.update_document(business.id, created.document.id, HEADER, _lines(item.id, 4), store=store)

        assert exc_info.value.step == 5
        assert exc_info.value.committed_steps == ["reverse_stock", "delete_lines"]
        # Steps 1-2 committed: the stored lines are gone and their stock is back
        assert _stock(item.id) == Decimal("10")
        assert db.session.query(LineItem).count() == 0

    def test_failed_delete_leaves_header(self, business, item):
        created = document_service.create_document(
            business.id, HEADER, _lines(item.id, 2), settlement={"amount_cents": 11000, "mode": "CASH"})
        doc_id = created.document.id
        store = LedgerStore()
        store.documents.delete = _failing("document")

        with pytest.raises(StoreWriteFailure) as exc_info:
            document_service.delete_document(business.id, doc_id, store=store)

        assert exc_info.value.step == 4
        assert exc_info.value.committed_steps == ["reverse_stock", "delete_transactions", "delete_lines"]
        db.session.expire_all()
        assert db.session.get(Document, doc_id) is not None
        assert _transactions(doc_id) == []
        assert _stock(item.id) == Decimal("10")

    def test_log_write_failure_after_header_insert(self, business, item, monkeypatch):
        monkeypatch.setattr(operation_log_service, "attach_document", _failing("operation"))

        with pytest.raises(StoreWriteFailure) as exc_info:
            document_service.create_document(business.id, HEADER, _lines(item.id))

        failure = exc_info.value
        assert failure.step == 3
        assert failure.step_name == "attach_document"
        assert failure.entity == "operation"
        assert failure.committed_steps == ["allocate_number", "insert_header"]

        op = _operation(failure.operation_id)
        assert op.status == "FAILED"
        assert op.failed_step == 3
        assert db.session.query(Document).count() == 1
        assert db.session.query(LineItem).count() == 0
        assert _stock(item.id) == Decimal("10")

    def test_log_unreachable_before_first_write(self, business, item, monkeypatch):
        monkeypatch.setattr(operation_log_service, "begin_operation", _failing("operation"))

        with pytest.raises(StoreWriteFailure) as exc_info:
            document_service.create_document(business.id, HEADER, _lines(item.id))

        assert exc_info.value.operation_id is None
        assert exc_info.value.committed_steps == []
        assert exc_info.value.to_dict()["partially_applied"] is False
        assert db.session.query(Document).count() == 0
        assert _stock(item.id) == Decimal("10")


class TestPreview:
    def test_preview_writes_nothing(self, db_session):
        totals = document_service.preview_totals(
            [{"description": "x", "quantity": 2, "rate_cents": 5000, "tax_percent": 10}],
            discount={"value": 10, "type": "percent"},
            invoice_tax_percent=5,
        )
        assert totals.subtotal_cents == 10000
        assert totals.discount_cents == 1000
        assert totals.invoice_tax_cents == 450
        assert totals.total_cents == 10000 + 1000 + 450 - 1000
        assert db.session.query(Document).count() == 0
