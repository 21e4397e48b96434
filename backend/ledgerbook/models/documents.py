from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


class Document(db.Model):
    """
    Invoice (kind=SALE) or bill (kind=PURCHASE) header.

    Totals, status and balance are persisted for read efficiency but are
    always derived by the engine:
    - total_cents = subtotal_cents + tax_cents - discount_cents
    - balance_cents = max(0, total_cents - net settled from linked transactions)
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.Index("ix_documents_business_kind_date", "business_id", "kind", "date"),
        db.Index("ix_documents_document_number", "document_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    party_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=True, index=True)  # NULL = walk-in

    # Unique per business by convention only
    document_number = db.Column(db.String(64), nullable=False)
    kind = db.Column(db.String(16), nullable=False, index=True)  # SALE, PURCHASE

    date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=True)

    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(8), nullable=False, default="fixed")  # percent, fixed
    invoice_tax_percent = db.Column(db.Numeric(7, 3), nullable=False, default=0)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)  # item tax + invoice tax
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="UNPAID", index=True)  # UNPAID, PARTIAL, PAID

    notes = db.Column(db.Text, nullable=True)
    attachments = db.Column(db.JSON, nullable=False, default=list)  # URLs only

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Document id={self.id} kind={self.kind} number={self.document_number!r}>"

    @property
    def paid_cents(self) -> int:
        return max(0, (self.total_cents or 0) - (self.balance_cents or 0))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "party_id": self.party_id,
            "document_number": self.document_number,
            "kind": self.kind,
            "date": to_iso_date(self.date),
            "due_date": to_iso_date(self.due_date),
            "discount": {
                "value": float(self.discount_value or 0),
                "type": self.discount_type,
            },
            "invoice_tax_percent": float(self.invoice_tax_percent or 0),
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "balance_cents": self.balance_cents,
            "paid_cents": self.paid_cents,
            "status": self.status,
            "notes": self.notes,
            "attachments": list(self.attachments or []),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class LineItem(db.Model):
    """
    One priced row on a document.

    Owned by exactly one document and replaced wholesale on edit.
    item_id is NULL for free-text lines, which have no stock effect.
    """
    __tablename__ = "line_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    # No FK: a catalog item may be deleted while historical lines still reference it
    item_id = db.Column(db.Integer, nullable=True, index=True)

    position = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(255), nullable=False, default="")

    quantity = db.Column(db.Numeric(12, 3), nullable=False)  # always positive; direction comes from the kind
    rate_cents = db.Column(db.Integer, nullable=False)
    tax_percent = db.Column(db.Numeric(7, 3), nullable=False, default=0)

    amount_cents = db.Column(db.Integer, nullable=False)  # quantity * rate
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    purchase_price_cents = db.Column(db.Integer, nullable=True)  # cost snapshot for margin display

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "item_id": self.item_id,
            "position": self.position,
            "description": self.description,
            "quantity": float(self.quantity),
            "rate_cents": self.rate_cents,
            "tax_percent": float(self.tax_percent or 0),
            "amount_cents": self.amount_cents,
            "tax_cents": self.tax_cents,
            "purchase_price_cents": self.purchase_price_cents,
            "created_at": to_utc_z(self.created_at),
        }
