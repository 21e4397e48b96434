import pytest

from ledgerbook.models.enums import DocumentKind, DocumentStatus, TransactionType
from ledgerbook.services.status_service import resolve_status


@pytest.mark.parametrize(
    "total, settled, status, balance",
    [
        (11000, 11000, DocumentStatus.PAID, 0),
        (11000, 12000, DocumentStatus.PAID, 0),
        (11000, 5000, DocumentStatus.PARTIAL, 6000),
        (11000, 0, DocumentStatus.UNPAID, 11000),
        (11000, -500, DocumentStatus.UNPAID, 11500),
        (0, 0, DocumentStatus.PAID, 0),
    ],
)
def test_resolve_status(total, settled, status, balance):
    state = resolve_status(total, settled)
    assert state.status is status
    assert state.balance_cents == balance
    assert state.net_settled_cents == settled


def test_status_is_monotone_in_settled_amount():
    total = 10000
    ranks = [resolve_status(total, settled).status.rank for settled in range(-2000, 14000, 250)]
    assert ranks == sorted(ranks)


def test_balance_never_negative():
    for settled in (0, 9999, 10000, 10001, 50000):
        assert resolve_status(10000, settled).balance_cents >= 0


class TestDocumentKind:
    def test_direction(self):
        assert DocumentKind.SALE.direction() == -1
        assert DocumentKind.PURCHASE.direction() == 1

    def test_settlement_type(self):
        assert DocumentKind.SALE.settlement_type is TransactionType.RECEIPT
        assert DocumentKind.PURCHASE.settlement_type is TransactionType.PAYMENT

    def test_signed_refunds_count_against_the_document(self):
        assert DocumentKind.SALE.signed(100, "RECEIPT") == 100
        assert DocumentKind.SALE.signed(100, "PAYMENT") == -100
        assert DocumentKind.PURCHASE.signed(100, "PAYMENT") == 100
        assert DocumentKind.PURCHASE.signed(100, "RECEIPT") == -100
