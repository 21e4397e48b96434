# Overview: Businesses, parties, catalog items and payment modes.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Business, Party, Item, PaymentMode
from ..models.enums import BUILTIN_PAYMENT_MODES, ZERO
from ..validation import MAX_STOCK_QUANTITY, ValidationFailure, normalize_mode, parse_quantity

PARTY_TYPES = ("CUSTOMER", "SUPPLIER", "BOTH")


class CatalogError(LookupError):
    """Raised for catalog operation errors."""
    pass


# =============================================================================
# BUSINESSES
# =============================================================================

def create_business(name: str, code: str | None = None) -> Business:
    name = (name or "").strip()
    if not name:
        raise ValidationFailure("name is required", "name")

    business = Business(name=name, code=(code or "").strip().upper() or None)
    db.session.add(business)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationFailure(f"business code {code!r} already exists", "code")
    return business


def list_businesses() -> list[Business]:
    return db.session.query(Business).order_by(Business.id).all()


def require_business(business_id) -> Business:
    """Resolve the business every operation is explicitly scoped to."""
    if business_id is None:
        raise ValidationFailure("business_id is required", "business_id")
    business = db.session.get(Business, business_id)
    if business is None or not business.is_active:
        raise ValidationFailure(f"business {business_id} not found", "business_id")
    return business


# =============================================================================
# PARTIES
# =============================================================================

def create_party(business_id: int, name: str, party_type: str = "CUSTOMER",
                 phone: str | None = None, opening_balance_cents: int = 0) -> Party:
    require_business(business_id)
    name = (name or "").strip()
    if not name:
        raise ValidationFailure("name is required", "name")
    party_type = (party_type or "CUSTOMER").upper()
    if party_type not in PARTY_TYPES:
        raise ValidationFailure(f"type must be one of {PARTY_TYPES}", "type")

    party = Party(
        business_id=business_id,
        name=name,
        type=party_type,
        phone=phone,
        opening_balance_cents=opening_balance_cents or 0,
    )
    db.session.add(party)
    db.session.commit()
    return party


def list_parties(business_id: int, party_type: str | None = None) -> list[Party]:
    query = db.session.query(Party).filter_by(business_id=business_id)
    if party_type:
        query = query.filter(Party.type.in_([party_type.upper(), "BOTH"]))
    return query.order_by(Party.name).all()


def get_party(business_id: int, party_id: int) -> Party:
    party = db.session.get(Party, party_id)
    if party is None or party.business_id != business_id:
        raise CatalogError(f"Party {party_id} not found")
    return party


def require_party(business_id: int, party_id: int | None) -> Party | None:
    """None means walk-in / general; an id must belong to the business."""
    if party_id is None:
        return None
    party = db.session.get(Party, party_id)
    if party is None or party.business_id != business_id:
        raise ValidationFailure(f"party {party_id} not found", "party_id")
    return party


# =============================================================================
# ITEMS
# =============================================================================

def create_item(
    business_id: int,
    name: str,
    *,
    unit: str | None = None,
    stock_quantity=0,
    min_stock=0,
    selling_price_cents: int | None = None,
    purchase_price_cents: int | None = None,
) -> Item:
    """
    Create a catalog item with its opening stock.

    Opening stock is the only direct stock write outside document reconciliation.
    """
    require_business(business_id)
    name = (name or "").strip()
    if not name:
        raise ValidationFailure("name is required", "name")

    item = Item(
        business_id=business_id,
        name=name,
        unit=unit,
        stock_quantity=parse_quantity(stock_quantity, "stock_quantity", default=ZERO, maximum=MAX_STOCK_QUANTITY),
        min_stock=parse_quantity(min_stock, "min_stock", default=ZERO, maximum=MAX_STOCK_QUANTITY),
        selling_price_cents=selling_price_cents,
        purchase_price_cents=purchase_price_cents,
    )
    db.session.add(item)
    db.session.commit()
    return item


def list_items(business_id: int) -> list[Item]:
    return db.session.query(Item).filter_by(business_id=business_id).order_by(Item.name).all()


def delete_item(business_id: int, item_id: int) -> None:
    """
    Remove an item from the catalog.

    Historical lines keep their item_id; later reconciliations skip it.
    """
    item = db.session.get(Item, item_id)
    if item is None or item.business_id != business_id:
        raise CatalogError(f"Item {item_id} not found")
    db.session.delete(item)
    db.session.commit()


# =============================================================================
# PAYMENT MODES
# =============================================================================

def add_payment_mode(business_id: int, name: str) -> PaymentMode:
    """Register a custom mode (e.g. a named bank account). Names are stored upper-case."""
    require_business(business_id)
    mode_name = normalize_mode(name)
    if mode_name in BUILTIN_PAYMENT_MODES or mode_name == "UNPAID":
        raise ValidationFailure(f"{mode_name} is a reserved mode", "name")

    mode = PaymentMode(business_id=business_id, name=mode_name)
    db.session.add(mode)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationFailure(f"mode {mode_name} already exists", "name")
    return mode


def list_payment_modes(business_id: int) -> list[str]:
    """Built-in modes first, then custom ones by name."""
    custom = (
        db.session.query(PaymentMode.name)
        .filter_by(business_id=business_id)
        .order_by(PaymentMode.name)
        .all()
    )
    return list(BUILTIN_PAYMENT_MODES) + [row.name for row in custom]


def require_mode(business_id: int, mode) -> str:
    mode_name = normalize_mode(mode)
    if mode_name not in list_payment_modes(business_id):
        raise ValidationFailure(f"unknown payment mode {mode_name}", "mode")
    return mode_name
