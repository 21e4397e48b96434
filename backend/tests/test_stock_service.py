# Overview: Pytest coverage for stock reconciliation.

from decimal import Decimal

import pytest

from ledgerbook.extensions import db
from ledgerbook.models import Item
from ledgerbook.services import stock_service
from ledgerbook.services.stock_service import StockWriteError
from ledgerbook.store import LedgerStore, StoreError
from ledgerbook.validation import LineItemInput


def _line(item_id, quantity):
    return LineItemInput(quantity=Decimal(str(quantity)), rate_cents=100, item_id=item_id, description="x")


def _stock(item_id) -> Decimal:
    db.session.expire_all()
    return Decimal(db.session.get(Item, item_id).stock_quantity)


class TestApplyDelta:
    def test_sale_direction_removes_stock(self, business, item):
        result = stock_service.apply_delta(LedgerStore(), business.id, [_line(item.id, 2)], -1)

        assert _stock(item.id) == Decimal("8")
        assert result.applied[0]["item_id"] == item.id
        assert result.applied[0]["delta"] == Decimal("-2")
        assert result.skipped == []

    def test_purchase_direction_adds_stock(self, business, item):
        stock_service.apply_delta(LedgerStore(), business.id, [_line(item.id, "1.5")], 1)
        assert _stock(item.id) == Decimal("11.5")

    def test_round_trip_restores_stock(self, business, item, second_item):
        store = LedgerStore()
        lines = [_line(item.id, 3), _line(second_item.id, "0.25"), _line(item.id, 1)]

        stock_service.apply_delta(store, business.id, lines, -1)
        assert _stock(item.id) == Decimal("6")
        assert _stock(second_item.id) == Decimal("4.75")

        stock_service.reverse_delta(store, business.id, lines, -1)
        assert _stock(item.id) == Decimal("10")
        assert _stock(second_item.id) == Decimal("5")

    def test_free_text_lines_have_no_effect(self, business, item):
        free = LineItemInput(quantity=Decimal("4"), rate_cents=100, description="Labour")
        result = stock_service.apply_delta(LedgerStore(), business.id, [free], -1)

        assert result.applied == []
        assert result.skipped == []
        assert _stock(item.id) == Decimal("10")

    def test_missing_item_is_skipped(self, business, item):
        result = stock_service.apply_delta(
            LedgerStore(), business.id, [_line(99999, 1), _line(item.id, 1)], -1)

        assert result.skipped == [99999]
        assert _stock(item.id) == Decimal("9")
        assert "skipped" in result.describe()

    def test_item_of_another_business_is_skipped(self, business, other_business):
        from ledgerbook.services import catalog_service
        foreign = catalog_service.create_item(other_business.id, "Foreign", stock_quantity=5)

        result = stock_service.apply_delta(LedgerStore(), business.id, [_line(foreign.id, 1)], -1)

        assert result.skipped == [foreign.id]
        assert _stock(foreign.id) == Decimal("5")

    def test_invalid_direction(self, business, item):
        with pytest.raises(ValueError):
            stock_service.apply_delta(LedgerStore(), business.id, [_line(item.id, 1)], 2)

    def test_version_is_bumped_on_every_write(self, business, item):
        before = item.version_id
        stock_service.apply_delta(LedgerStore(), business.id, [_line(item.id, 1)], -1)
        db.session.expire_all()
        assert db.session.get(Item, item.id).version_id == before + 1


class TestConcurrency:
    def test_stale_write_is_retried_without_losing_either_delta(self, business, item):
        store = LedgerStore()
        original = store.items.update
        raced = []

        def racing_update(row_id, fields, *, expected_version=None):
            if not raced:
                raced.append(row_id)
                # Another writer moves the same item between our read and write
                other = LedgerStore()
                current = other.items.get(row_id)
                other.items.update(
                    row_id,
                    {"stock_quantity": Decimal(current.stock_quantity) + 7},
                    expected_version=current.version_id,
                )
            return original(row_id, fields, expected_version=expected_version)

        store.items.update = racing_update
        stock_service.apply_delta(store, business.id, [_line(item.id, 2)], -1)

        assert raced == [item.id]
        assert _stock(item.id) == Decimal("15")

    def test_failed_write_reports_items_already_applied(self, business, item, second_item):
        store = LedgerStore()
        original = store.items.update

        def failing_update(row_id, fields, *, expected_version=None):
            if row_id == second_item.id:
                raise StoreError("item", "update", "disk I/O error")
            return original(row_id, fields, expected_version=expected_version)

        store.items.update = failing_update
        with pytest.raises(StockWriteError) as exc_info:
            stock_service.apply_delta(store, business.id, [_line(item.id, 1), _line(second_item.id, 1)], -1)

        assert exc_info.value.item_id == second_item.id
        assert exc_info.value.applied == [item.id]
        # No rollback across items
        assert _stock(item.id) == Decimal("9")
        assert _stock(second_item.id) == Decimal("5")


def test_list_low_stock(business, item, second_item):
    assert stock_service.list_low_stock(business.id) == []

    stock_service.apply_delta(LedgerStore(), business.id, [_line(item.id, 8)], -1)

    low = stock_service.list_low_stock(business.id)
    assert [i.id for i in low] == [item.id]
