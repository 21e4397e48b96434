from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from .models.enums import DiscountType, DocumentKind, TransactionType, ZERO
from .time_utils import parse_iso_date


# Maximum money value: 9,999,999,999.99 (999,999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999_999

# Column scales. Values are brought to these scales before any total or
# stock delta is computed, so what is stored is exactly what was applied.
QUANTITY_PLACES = 3
MAX_LINE_QUANTITY = Decimal("999999999.999")      # line_items.quantity Numeric(12, 3)
MAX_STOCK_QUANTITY = Decimal("99999999999.999")   # items.stock_quantity Numeric(14, 3)
PERCENT_PLACES = 3
MAX_PERCENT = Decimal("9999.999")                 # Numeric(7, 3)
DISCOUNT_PLACES = 2
MAX_DISCOUNT_VALUE = Decimal("9999999999.99")     # documents.discount_value Numeric(12, 2)


class ValidationFailure(ValueError):
    """400-level input problem, raised before any store write."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


@dataclass(frozen=True)
class LineItemInput:
    quantity: Decimal
    rate_cents: int
    tax_percent: Decimal = ZERO
    item_id: Optional[int] = None
    description: str = ""
    purchase_price_cents: Optional[int] = None


@dataclass(frozen=True)
class Discount:
    value: Decimal = ZERO
    type: DiscountType = DiscountType.FIXED


@dataclass(frozen=True)
class DocumentHeader:
    kind: DocumentKind
    date: date
    party_id: Optional[int] = None
    document_number: Optional[str] = None
    due_date: Optional[date] = None
    discount: Discount = field(default_factory=Discount)
    invoice_tax_percent: Decimal = ZERO
    notes: Optional[str] = None
    attachments: tuple = ()


@dataclass(frozen=True)
class SettlementProposal:
    """What the user typed into "amount received/paid": a proposal for one transaction."""
    amount_cents: int
    mode: str


# =============================================================================
# SCALAR COERCION
# =============================================================================

def parse_decimal(value: Any, field_name: str, *, default: Decimal | None = None) -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise ValidationFailure(f"{field_name} is required", field_name)
    if isinstance(value, bool):
        raise ValidationFailure(f"{field_name} must be a number", field_name)
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationFailure(f"{field_name} must be a number", field_name)
    if not result.is_finite():
        raise ValidationFailure(f"{field_name} must be a finite number", field_name)
    return result


def parse_quantity(
    value: Any,
    field_name: str,
    *,
    default: Decimal | None = None,
    maximum: Decimal = MAX_LINE_QUANTITY,
) -> Decimal:
    """
    A stock quantity with at most three decimal places.

    Rejected rather than rounded: a quantity that moves stock must be
    stored exactly so the reverse delta cancels the forward one.
    """
    result = parse_decimal(value, field_name, default=default)
    if abs(result) > maximum:
        raise ValidationFailure(f"{field_name} is out of range", field_name)
    quantum = Decimal(1).scaleb(-QUANTITY_PLACES)
    if result != result.quantize(quantum):
        raise ValidationFailure(
            f"{field_name} allows at most {QUANTITY_PLACES} decimal places", field_name)
    return result.quantize(quantum)


def parse_scaled(
    value: Any,
    field_name: str,
    *,
    places: int,
    maximum: Decimal,
    default: Decimal | None = None,
) -> Decimal:
    """Decimal rounded half-up to a column's scale."""
    result = parse_decimal(value, field_name, default=default)
    if abs(result) > maximum:
        raise ValidationFailure(f"{field_name} is out of range", field_name)
    return result.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def parse_percent(value: Any, field_name: str) -> Decimal:
    return parse_scaled(value, field_name, places=PERCENT_PLACES, maximum=MAX_PERCENT, default=ZERO)


def parse_cents(value: Any, field_name: str, *, default: int | None = None) -> int:
    """Strict integer cents: rejects floats, decimals and scientific notation."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise ValidationFailure(f"{field_name} is required", field_name)

    if isinstance(value, bool):
        raise ValidationFailure(f"{field_name} must be an integer", field_name)
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower() or "." in stripped:
            raise ValidationFailure(f"{field_name} must be a plain integer number of cents", field_name)
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationFailure(f"{field_name} must be an integer", field_name)
    else:
        raise ValidationFailure(f"{field_name} must be an integer number of cents", field_name)

    if abs(result) > MAX_AMOUNT_CENTS:
        raise ValidationFailure(f"{field_name} is out of range", field_name)
    return result


def parse_optional_int(value: Any, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationFailure(f"{field_name} must be an id", field_name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailure(f"{field_name} must be an id", field_name)


def parse_date(value: Any, field_name: str, *, required: bool = False) -> Optional[date]:
    try:
        result = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationFailure(f"{field_name} must be an ISO-8601 date", field_name)
    if result is None and required:
        raise ValidationFailure(f"{field_name} is required", field_name)
    return result


def parse_kind(value: Any) -> DocumentKind:
    try:
        return DocumentKind(str(value).upper())
    except ValueError:
        raise ValidationFailure("kind must be SALE or PURCHASE", "kind")


def parse_transaction_type(value: Any) -> TransactionType:
    try:
        return TransactionType(str(value).upper())
    except ValueError:
        raise ValidationFailure("type must be RECEIPT or PAYMENT", "type")


def normalize_mode(value: Any) -> str:
    mode = str(value or "").strip().upper()
    if not mode:
        raise ValidationFailure("mode is required", "mode")
    if len(mode) > 64:
        raise ValidationFailure("mode is too long", "mode")
    return mode


# =============================================================================
# DOCUMENT PAYLOADS
# =============================================================================

def parse_line_items(raw_lines: Any) -> list[LineItemInput]:
    """
    Validate the line-item array submitted with a document.

    Each entry: {item_id?, description, quantity, rate_cents, tax_percent?,
    purchase_price_cents?}. At least one line is required; quantity must be
    positive (the document kind carries the direction).
    """
    if not isinstance(raw_lines, (list, tuple)) or not raw_lines:
        raise ValidationFailure("at least one line item is required", "line_items")

    lines = []
    for i, raw in enumerate(raw_lines):
        if isinstance(raw, LineItemInput):
            raw = raw.__dict__
        if not isinstance(raw, dict):
            raise ValidationFailure(f"line_items[{i}] must be an object", "line_items")

        prefix = f"line_items[{i}]"
        item_id = parse_optional_int(raw.get("item_id"), f"{prefix}.item_id")
        description = str(raw.get("description") or "").strip()
        if item_id is None and not description:
            raise ValidationFailure(f"{prefix} needs an item_id or a description", prefix)

        quantity = parse_quantity(raw.get("quantity"), f"{prefix}.quantity")
        if quantity <= 0:
            raise ValidationFailure(f"{prefix}.quantity must be positive", f"{prefix}.quantity")

        rate_cents = parse_cents(raw.get("rate_cents"), f"{prefix}.rate_cents")
        if rate_cents < 0:
            raise ValidationFailure(f"{prefix}.rate_cents cannot be negative", f"{prefix}.rate_cents")

        purchase_price = raw.get("purchase_price_cents")
        lines.append(LineItemInput(
            item_id=item_id,
            description=description[:255],
            quantity=quantity,
            rate_cents=rate_cents,
            tax_percent=parse_percent(raw.get("tax_percent"), f"{prefix}.tax_percent"),
            purchase_price_cents=(
                parse_cents(purchase_price, f"{prefix}.purchase_price_cents")
                if purchase_price is not None else None
            ),
        ))
    return lines


def parse_discount(raw: Any) -> Discount:
    if raw is None:
        return Discount()
    if isinstance(raw, Discount):
        raw = {"value": raw.value, "type": raw.type.value}
    if not isinstance(raw, dict):
        raise ValidationFailure("discount must be an object", "discount")
    try:
        discount_type = DiscountType(str(raw.get("type") or "fixed").lower())
    except ValueError:
        raise ValidationFailure("discount.type must be percent or fixed", "discount.type")
    return Discount(
        value=parse_scaled(raw.get("value"), "discount.value", places=DISCOUNT_PLACES,
                           maximum=MAX_DISCOUNT_VALUE, default=ZERO),
        type=discount_type,
    )


def parse_header(data: dict, *, kind: DocumentKind | None = None) -> DocumentHeader:
    """
    Validate document header fields.

    When kind is given (edits), the payload's kind is ignored: a document
    never changes between SALE and PURCHASE.
    """
    if kind is None:
        kind = parse_kind(data.get("kind"))

    attachments = data.get("attachments") or ()
    if not isinstance(attachments, (list, tuple)):
        raise ValidationFailure("attachments must be a list of URLs", "attachments")

    number = data.get("document_number")
    number = str(number).strip()[:64] if number is not None else None

    return DocumentHeader(
        kind=kind,
        date=parse_date(data.get("date"), "date", required=True),
        due_date=parse_date(data.get("due_date"), "due_date"),
        party_id=parse_optional_int(data.get("party_id"), "party_id"),
        document_number=number or None,
        discount=parse_discount(data.get("discount")),
        invoice_tax_percent=parse_percent(data.get("invoice_tax_percent"), "invoice_tax_percent"),
        notes=data.get("notes"),
        attachments=tuple(str(a) for a in attachments),
    )


def parse_settlement(raw: Any) -> Optional[SettlementProposal]:
    """
    Validate the optional {amount_cents, mode} proposal sent with a new document.

    None (or an UNPAID mode) means no settlement.
    """
    if raw is None:
        return None
    if isinstance(raw, SettlementProposal):
        return raw
    if not isinstance(raw, dict):
        raise ValidationFailure("settlement must be an object", "settlement")
    if str(raw.get("mode") or "").strip().upper() == "UNPAID":
        return None

    amount = parse_cents(raw.get("amount_cents"), "settlement.amount_cents")
    if amount < 0:
        raise ValidationFailure("settlement.amount_cents cannot be negative", "settlement.amount_cents")
    return SettlementProposal(amount_cents=amount, mode=normalize_mode(raw.get("mode")))
