from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import format_cnpj


class Company(db.Model):
    """
    Tenant root: every cashier, purchase and cashback setting belongs to a company.

    CNPJ is stored as 14 digits; the mask is applied on output only.
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    razao_social = db.Column(db.String(255), nullable=False)
    nome_fantasia = db.Column(db.String(255), nullable=False)
    cnpj = db.Column(db.String(14), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    telefone = db.Column(db.String(32), nullable=False)
    responsavel = db.Column(db.String(255), nullable=False)
    endereco = db.Column(db.String(255), nullable=False, default="")
    site_instagram = db.Column(db.String(255), nullable=False, default="")

    # Bcrypt hashed password
    senha_hash = db.Column(db.String(255), nullable=False)

    # COMPANY identity of the account owner
    identity_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    identity = db.relationship("Identity", foreign_keys=[identity_id])

    def __repr__(self) -> str:
        return f"<Company id={self.id} nome_fantasia={self.nome_fantasia!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "razao_social": self.razao_social,
            "nome_fantasia": self.nome_fantasia,
            "cnpj": format_cnpj(self.cnpj),
            "email": self.email,
            "role": "company",
        }


class CompanyCashbackConfig(db.Model):
    """Cashback percentage applied to every purchase recorded by the company's cashiers."""
    __tablename__ = "company_cashback_config"
    __table_args__ = (
        db.UniqueConstraint("company_id", name="uq_cashback_config_company"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    cashback_percentage = db.Column(db.Numeric(5, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("cashback_config", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "company_id": self.company_id,
            "cashback_percentage": float(self.cashback_percentage),
            "updated_at": to_utc_z(self.updated_at),
        }
