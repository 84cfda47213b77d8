from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class CustomerCoupon(db.Model):
    """
    Customer identifier used at the till: the CPF itself (digits only).

    Created lazily on the customer's first purchase and reactivated if a
    purchase arrives for an inactive coupon.
    """
    __tablename__ = "customer_coupons"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    coupon_code = db.Column(db.String(11), nullable=False, unique=True, index=True)
    cpf = db.Column(db.String(11), nullable=False, index=True)
    identity_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=False, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    total_usage_count = db.Column(db.Integer, nullable=False, default=0)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    identity = db.relationship("Identity", backref=db.backref("coupons", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "coupon_code": self.coupon_code,
            "identity_id": self.identity_id,
            "is_active": self.is_active,
            "total_usage_count": self.total_usage_count,
            "last_used_at": to_utc_z(self.last_used_at) if self.last_used_at else None,
        }


class Purchase(db.Model):
    """
    Purchase ledger row.

    IMMUTABLE: cashback_percentage and cashback_generated are captured when
    the purchase is recorded and never recomputed, even if the company
    changes its percentage later. cashback_generated keeps six decimal
    places so value * percentage / 100 is stored exactly.
    """
    __tablename__ = "company_purchases"
    __table_args__ = (
        db.Index("ix_purchases_company_date", "company_id", "purchase_date"),
        db.Index("ix_purchases_coupon_date", "customer_coupon", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("company_cashiers.id"), nullable=False, index=True)
    customer_coupon_id = db.Column(db.Integer, db.ForeignKey("customer_coupons.id"), nullable=False, index=True)

    # Denormalized CPFs, as typed at the till (digits only)
    customer_coupon = db.Column(db.String(11), nullable=False)
    cashier_cpf = db.Column(db.String(11), nullable=False)

    purchase_value = db.Column(db.Numeric(12, 2), nullable=False)
    cashback_percentage = db.Column(db.Numeric(5, 2), nullable=False)
    cashback_generated = db.Column(db.Numeric(18, 6), nullable=False)

    # Business-time split of the moment the purchase was recorded
    purchase_date = db.Column(db.Date, nullable=False)
    purchase_time = db.Column(db.Time, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("purchases", lazy=True))
    cashier = db.relationship("Cashier", backref=db.backref("purchases", lazy=True))
    coupon = db.relationship("CustomerCoupon", backref=db.backref("purchases", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "cashier_id": self.cashier_id,
            "customer_coupon_id": self.customer_coupon_id,
            "customer_coupon": self.customer_coupon,
            "cashier_cpf": self.cashier_cpf,
            "purchase_value": float(self.purchase_value),
            "cashback_percentage": float(self.cashback_percentage),
            "cashback_generated": float(self.cashback_generated),
            "purchase_date": self.purchase_date.isoformat(),
            "purchase_time": self.purchase_time.strftime("%H:%M:%S"),
            "created_at": to_utc_z(self.created_at),
        }
