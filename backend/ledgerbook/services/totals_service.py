# Overview: Pure totals/tax/discount computation for a document's line items.

from __future__ import annotations

from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP

from ..models.enums import DiscountType, ZERO
from ..validation import Discount

"""
Totals rules (authoritative)

- subtotal      = sum(quantity * rate)
- item tax      = sum(line amount * line tax% / 100)
- discount      = percent ? subtotal * value / 100 : value
- invoice tax   = (subtotal - discount) * invoice tax% / 100
- total tax     = item tax + invoice tax
- total         = subtotal + total tax - discount

Item tax is charged on the undiscounted line amount while invoice tax is
charged on the discounted subtotal; the two are added, never compounded.

Every cents value is rounded half-up to a whole cent where it is produced
(per line amount, per line tax, discount, invoice tax), so re-running on
the same input always gives the same integers.

Negative discount values and tax percentages are treated as 0.
"""

HUNDRED = Decimal("100")


def round_cents(value: Decimal) -> int:
    """Nearest whole cent, half-up."""
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _non_negative(value) -> Decimal:
    value = Decimal(value or 0)
    return value if value > 0 else ZERO


@dataclass(frozen=True)
class LineAmounts:
    amount_cents: int
    tax_cents: int


@dataclass(frozen=True)
class DocumentTotals:
    subtotal_cents: int
    item_tax_cents: int
    invoice_tax_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int
    # Display only, never persisted on the document
    cost_basis_cents: int
    projected_margin_cents: int

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_line(line) -> LineAmounts:
    amount = round_cents(Decimal(line.quantity) * Decimal(line.rate_cents))
    tax = round_cents(Decimal(amount) * _non_negative(line.tax_percent) / HUNDRED)
    return LineAmounts(amount_cents=amount, tax_cents=tax)


def calculate_totals(lines, discount: Discount | None = None, invoice_tax_percent=ZERO) -> DocumentTotals:
    """
    Compute a document's totals from its lines.

    lines: objects exposing quantity, rate_cents, tax_percent and
    (optionally) purchase_price_cents.
    """
    discount = discount or Discount()

    subtotal = 0
    item_tax = 0
    cost_basis = 0
    for line in lines:
        amounts = calculate_line(line)
        subtotal += amounts.amount_cents
        item_tax += amounts.tax_cents

        purchase_price = getattr(line, "purchase_price_cents", None) or 0
        cost_basis += round_cents(Decimal(line.quantity) * Decimal(purchase_price))

    discount_value = _non_negative(discount.value)
    if DiscountType(discount.type) is DiscountType.PERCENT:
        discount_cents = round_cents(Decimal(subtotal) * discount_value / HUNDRED)
    else:
        discount_cents = round_cents(discount_value)

    taxable_base = Decimal(subtotal - discount_cents)
    invoice_tax = round_cents(taxable_base * _non_negative(invoice_tax_percent) / HUNDRED)
    invoice_tax = max(0, invoice_tax)

    total_tax = item_tax + invoice_tax
    return DocumentTotals(
        subtotal_cents=subtotal,
        item_tax_cents=item_tax,
        invoice_tax_cents=invoice_tax,
        tax_cents=total_tax,
        discount_cents=discount_cents,
        total_cents=subtotal + total_tax - discount_cents,
        cost_basis_cents=cost_basis,
        projected_margin_cents=subtotal - cost_basis - discount_cents,
    )
