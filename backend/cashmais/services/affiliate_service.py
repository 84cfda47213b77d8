# Overview: Service-layer operations for affiliates; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import AffiliateBalance, Company, Identity, IdentityKind, Purchase
from ..time_utils import to_utc_z
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    normalize_cpf,
    validate_payload,
)
from .auth_service import hash_password


STATEMENT_DEFAULT_LIMIT = 50
STATEMENT_MAX_LIMIT = 500

AFFILIATE_REGISTRATION_POLICY = ModelValidationPolicy(
    writable_fields={"cpf", "full_name", "email"},
    virtual_fields={"senha", "sponsor_cpf"},
    required_on_create={"cpf", "full_name", "email", "senha"},
    min_lengths={"cpf": 11, "full_name": 1, "senha": 6},
    max_lengths={"cpf": 14, "sponsor_cpf": 14},
    email_fields={"email"},
)


def register_affiliate(payload: dict) -> Identity:
    """
    Register an affiliate, optionally under a sponsor (by CPF).

    A PLAIN_USER with the same CPF is promoted in place, so the coupon and
    purchase history already linked to it carry over.
    """
    data = validate_payload(
        model=Identity,
        payload=payload,
        policy=AFFILIATE_REGISTRATION_POLICY,
        partial=False,
    )
    cpf = normalize_cpf(data["cpf"])
    email = data["email"].lower()

    if db.session.query(Identity.id).filter_by(kind=IdentityKind.AFFILIATE, cpf=cpf).first():
        raise ValidationError("CPF já cadastrado")
    if db.session.query(Identity.id).filter(Identity.email == email).first():
        raise ValidationError("Email já cadastrado")

    sponsor = None
    if data.get("sponsor_cpf"):
        sponsor_cpf = normalize_cpf(data["sponsor_cpf"])
        if sponsor_cpf == cpf:
            raise ValidationError("Você não pode ser seu próprio patrocinador")
        sponsor = db.session.query(Identity).filter_by(
            kind=IdentityKind.AFFILIATE, cpf=sponsor_cpf, is_active=True
        ).first()
        if sponsor is None:
            raise ValidationError("Patrocinador não encontrado")

    affiliate = db.session.query(Identity).filter_by(kind=IdentityKind.PLAIN_USER, cpf=cpf).first()
    if affiliate is None:
        affiliate = Identity(cpf=cpf)
        db.session.add(affiliate)

    affiliate.kind = IdentityKind.AFFILIATE
    affiliate.full_name = data["full_name"]
    affiliate.email = email
    affiliate.password_hash = hash_password(data["senha"])
    affiliate.sponsor = sponsor
    affiliate.is_active = True

    affiliate.balance = AffiliateBalance(available_balance=0, total_earnings=0)

    db.session.commit()
    return affiliate


def get_balance(affiliate: Identity) -> dict:
    balance = db.session.query(AffiliateBalance).filter_by(identity_id=affiliate.id).first()
    if balance is None:
        return {"available_balance": 0.0, "total_earned": 0.0}
    return balance.to_dict()


def get_statement(affiliate: Identity, limit: int | None = None) -> list[dict]:
    """Purchases made with the affiliate's CPF, newest first, with the company name."""
    if limit is None:
        limit = STATEMENT_DEFAULT_LIMIT
    limit = max(1, min(limit, STATEMENT_MAX_LIMIT))

    rows = (
        db.session.query(Purchase, Company.nome_fantasia)
        .join(Company, Purchase.company_id == Company.id)
        .filter(Purchase.customer_coupon == affiliate.cpf)
        .order_by(Purchase.purchase_date.desc(), Purchase.purchase_time.desc(), Purchase.id.desc())
        .limit(limit)
        .all()
    )

    return [
        {
            "purchase_id": purchase.id,
            "company_name": company_name,
            "transaction_date": purchase.purchase_date.isoformat(),
            "purchase_value": float(purchase.purchase_value),
            "cashback_value": float(purchase.cashback_generated),
        }
        for purchase, company_name in rows
    ]


def get_network(affiliate: Identity) -> dict:
    """
    Direct referrals of the affiliate.

    Only level 1 is populated; level2/level3 are always empty.
    """
    members = (
        db.session.query(Identity)
        .filter(Identity.sponsor_id == affiliate.id, Identity.kind == IdentityKind.AFFILIATE)
        .order_by(Identity.created_at.desc(), Identity.id.desc())
        .all()
    )

    return {
        "level1": [
            {
                "id": m.id,
                "cpf": m.cpf,
                "email": m.email,
                "full_name": m.full_name,
                "created_at": to_utc_z(m.created_at),
            }
            for m in members
        ],
        "level2": [],
        "level3": [],
    }


def create_plain_user(cpf: str, full_name: str | None = None) -> Identity:
    """Register a customer who earns cashback but takes no part in the network."""
    cpf = normalize_cpf(cpf)
    existing = db.session.query(Identity).filter(
        Identity.cpf == cpf,
        Identity.kind.in_([IdentityKind.PLAIN_USER, IdentityKind.AFFILIATE]),
    ).first()
    if existing is not None:
        raise ValidationError("CPF já cadastrado")

    user = Identity(kind=IdentityKind.PLAIN_USER, cpf=cpf, full_name=full_name, is_active=True)
    db.session.add(user)
    db.session.commit()
    return user
