from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class OutboxStatus:
    PENDING = "PENDING"
    DONE = "DONE"
    FAILED = "FAILED"


class CommissionOutbox(db.Model):
    """
    Pending commission distribution for one affiliate purchase.

    Written in the same transaction as the purchase, then processed after
    commit. A failed distribution keeps the row in FAILED with the error
    text so `flask commissions process` can retry it.
    """
    __tablename__ = "commission_outbox"
    __table_args__ = (
        db.UniqueConstraint("purchase_id", name="uq_commission_outbox_purchase"),
        db.Index("ix_commission_outbox_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("company_purchases.id"), nullable=False)
    buyer_identity_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=False, index=True)
    buyer_kind = db.Column(db.String(16), nullable=False)
    cashback_amount = db.Column(db.Numeric(18, 6), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=OutboxStatus.PENDING, index=True)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    purchase = db.relationship("Purchase", backref=db.backref("commission_outbox", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "buyer_identity_id": self.buyer_identity_id,
            "buyer_kind": self.buyer_kind,
            "cashback_amount": float(self.cashback_amount),
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "processed_at": to_utc_z(self.processed_at) if self.processed_at else None,
        }


class CommissionCredit(db.Model):
    """
    Append-only commission credit.

    level 0 is the buyer, level 1 its direct sponsor. One credit per
    (purchase, level).
    """
    __tablename__ = "commission_credits"
    __table_args__ = (
        db.UniqueConstraint("purchase_id", "level", name="uq_commission_credits_purchase_level"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("company_purchases.id"), nullable=False, index=True)
    identity_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=False, index=True)
    level = db.Column(db.Integer, nullable=False)
    amount = db.Column(db.Numeric(14, 4), nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    identity = db.relationship("Identity", backref=db.backref("commission_credits", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "identity_id": self.identity_id,
            "level": self.level,
            "amount": float(self.amount),
            "occurred_at": to_utc_z(self.occurred_at),
        }
