from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Party(db.Model):
    """Customer or supplier a document or transaction can reference."""
    __tablename__ = "parties"
    __table_args__ = (
        db.Index("ix_parties_business_name", "business_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False, default="CUSTOMER")  # CUSTOMER, SUPPLIER, BOTH
    phone = db.Column(db.String(32), nullable=True)
    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "type": self.type,
            "phone": self.phone,
            "opening_balance_cents": self.opening_balance_cents,
            "created_at": to_utc_z(self.created_at),
        }


class Item(db.Model):
    """
    Inventory catalog entry.

    stock_quantity is a mutable aggregate, not a ledger: it holds the sum of
    the effects of every currently persisted document and is only ever
    moved by exact deltas. version_id guards each write (compare-and-swap).
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_business_name", "business_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(16), nullable=True)

    stock_quantity = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    min_stock = db.Column(db.Numeric(14, 3), nullable=False, default=0)

    selling_price_cents = db.Column(db.Integer, nullable=True)
    purchase_price_cents = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_quantity or 0) <= (self.min_stock or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "unit": self.unit,
            "stock_quantity": float(self.stock_quantity or 0),
            "min_stock": float(self.min_stock or 0),
            "is_low_stock": self.is_low_stock,
            "selling_price_cents": self.selling_price_cents,
            "purchase_price_cents": self.purchase_price_cents,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PaymentMode(db.Model):
    """Custom payment channel (a named bank account, wallet...). CASH/BANK/ONLINE are built in."""
    __tablename__ = "payment_modes"
    __table_args__ = (
        db.UniqueConstraint("business_id", "name", name="uq_payment_modes_business_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }
