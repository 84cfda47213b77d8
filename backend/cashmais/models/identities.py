from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class IdentityKind:
    AFFILIATE = "AFFILIATE"
    CASHIER = "CASHIER"
    COMPANY = "COMPANY"
    PLAIN_USER = "PLAIN_USER"

    ALL = (AFFILIATE, CASHIER, COMPANY, PLAIN_USER)


class Identity(db.Model):
    """
    One row per person or account known to the platform.

    The `kind` discriminant tells affiliates (who take part in the referral
    network and earn commissions) apart from cashiers, company owners and
    plain customers. Everything that points at a person (coupons, cashiers,
    commission credits) uses identity_id.

    CPF is stored as 11 digits. It is unique per kind: the same person may
    be a cashier at one company and an affiliate customer elsewhere.
    """
    __tablename__ = "identities"
    __table_args__ = (
        db.UniqueConstraint("kind", "cpf", name="uq_identities_kind_cpf"),
        db.CheckConstraint(
            "kind IN (" + ", ".join(f"'{k}'" for k in IdentityKind.ALL) + ")",
            name="ck_identities_kind",
        ),
        db.Index("ix_identities_cpf_active", "cpf", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False, index=True)

    cpf = db.Column(db.String(11), nullable=True, index=True)
    full_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True, unique=True)

    # Affiliates may log in; other kinds authenticate through their own tables
    password_hash = db.Column(db.String(255), nullable=True)

    # Referral network: the affiliate who brought this one in
    sponsor_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    sponsor = db.relationship("Identity", remote_side=[id], backref=db.backref("referrals", lazy=True))

    @property
    def is_affiliate(self) -> bool:
        return self.kind == IdentityKind.AFFILIATE

    @property
    def display_name(self) -> str:
        return self.full_name or self.cpf or f"#{self.id}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "cpf": self.cpf,
            "full_name": self.full_name,
            "email": self.email,
            "sponsor_id": self.sponsor_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class AffiliateBalance(db.Model):
    """
    Running commission balance for an affiliate.

    Updated in the same transaction as the CommissionCredit rows it sums.
    """
    __tablename__ = "affiliate_balances"
    __table_args__ = (
        db.UniqueConstraint("identity_id", name="uq_affiliate_balances_identity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    identity_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=False, index=True)

    available_balance = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    total_earnings = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    identity = db.relationship("Identity", backref=db.backref("balance", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "available_balance": float(self.available_balance or 0),
            "total_earned": float(self.total_earnings or 0),
        }
