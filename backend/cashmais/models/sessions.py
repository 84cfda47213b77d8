from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class _SessionColumns:
    """
    Columns shared by the per-actor session tables.

    The plaintext token only ever lives in the client's cookie; the row keeps
    its SHA-256 hash. Expiry is checked when the session is looked up, so
    expired rows stay until logout, deactivation or `flask sessions cleanup`.
    """
    id = db.Column(db.Integer, primary_key=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expires_at": to_utc_z(self.expires_at),
            "created_at": to_utc_z(self.created_at),
        }


class CompanySession(_SessionColumns, db.Model):
    __tablename__ = "company_sessions"
    __table_args__ = {"sqlite_autoincrement": True}

    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    company = db.relationship("Company", backref=db.backref("sessions", lazy=True))

    @property
    def owner(self):
        return self.company


class CashierSession(_SessionColumns, db.Model):
    __tablename__ = "cashier_sessions"
    __table_args__ = {"sqlite_autoincrement": True}

    cashier_id = db.Column(db.Integer, db.ForeignKey("company_cashiers.id"), nullable=False, index=True)
    cashier = db.relationship("Cashier", backref=db.backref("sessions", lazy=True))

    @property
    def owner(self):
        return self.cashier


class AffiliateSession(_SessionColumns, db.Model):
    __tablename__ = "affiliate_sessions"
    __table_args__ = {"sqlite_autoincrement": True}

    identity_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=False, index=True)
    identity = db.relationship("Identity", backref=db.backref("sessions", lazy=True))

    @property
    def owner(self):
        return self.identity
