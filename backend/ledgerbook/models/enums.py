from __future__ import annotations

from decimal import Decimal
from enum import Enum


class TransactionType(str, Enum):
    RECEIPT = "RECEIPT"
    PAYMENT = "PAYMENT"


class DocumentStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    DocumentStatus.UNPAID: 0,
    DocumentStatus.PARTIAL: 1,
    DocumentStatus.PAID: 2,
}


class DiscountType(str, Enum):
    PERCENT = "percent"
    FIXED = "fixed"


class DocumentKind(str, Enum):
    """
    Invoice (SALE) or bill (PURCHASE).

    Every sign convention that depends on the kind goes through this type:
    - direction(): forward stock effect per unit (-1 stock leaves, +1 arrives)
    - settlement_type: transaction type that settles the document
    - signed(): contribution of a linked transaction to net settled
    """
    SALE = "SALE"
    PURCHASE = "PURCHASE"

    def direction(self) -> int:
        return -1 if self is DocumentKind.SALE else 1

    @property
    def settlement_type(self) -> TransactionType:
        if self is DocumentKind.SALE:
            return TransactionType.RECEIPT
        return TransactionType.PAYMENT

    @property
    def number_prefix(self) -> str:
        return "INV" if self is DocumentKind.SALE else "BILL"

    @property
    def label(self) -> str:
        return "Sale" if self is DocumentKind.SALE else "Purchase"

    def signed(self, amount_cents: int, transaction_type) -> int:
        if TransactionType(transaction_type) is self.settlement_type:
            return amount_cents
        return -amount_cents


BUILTIN_PAYMENT_MODES = ("CASH", "BANK", "ONLINE")

ZERO = Decimal("0")
