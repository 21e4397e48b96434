from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


class Transaction(db.Model):
    """
    Settlement event: money received (RECEIPT) or paid out (PAYMENT).

    Linked to a document through document_id, or a general entry when NULL.
    amount_cents is always positive; the sign comes from the type.
    Mode balances and a document's net settled amount are folds over
    these rows and are never stored.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_business_mode", "business_id", "mode"),
        db.Index("ix_transactions_business_date", "business_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    party_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=True, index=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False, index=True)  # RECEIPT, PAYMENT
    mode = db.Column(db.String(64), nullable=False)  # CASH, BANK, ONLINE or a custom mode

    date = db.Column(db.Date, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "party_id": self.party_id,
            "document_id": self.document_id,
            "amount_cents": self.amount_cents,
            "type": self.type,
            "mode": self.mode,
            "date": to_iso_date(self.date),
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }
