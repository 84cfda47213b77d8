from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Cashier(db.Model):
    """
    Point-of-sale operator who records purchases for exactly one company.

    A CPF can only be linked to one company at a time (unique cpf).
    Cashiers with purchases are blocked, never deleted.
    """
    __tablename__ = "company_cashiers"
    __table_args__ = (
        db.Index("ix_cashiers_company_active", "company_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    identity_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    cpf = db.Column(db.String(11), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_access_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("cashiers", lazy=True))
    identity = db.relationship("Identity", backref=db.backref("cashier_accounts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "cpf": self.cpf,
            "is_active": self.is_active,
            "last_access_at": to_utc_z(self.last_access_at) if self.last_access_at else None,
            "created_at": to_utc_z(self.created_at),
        }

    def to_session_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "cpf": self.cpf,
            "company_id": self.company_id,
            "company_name": self.company.nome_fantasia if self.company else None,
            "role": "cashier",
        }
