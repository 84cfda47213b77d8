# Overview: Service-layer operations for companies; encapsulates business logic and database work.

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Company, CompanyCashbackConfig, Identity, IdentityKind
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    normalize_cnpj,
    parse_cashback_percentage,
    validate_payload,
)
from .auth_service import hash_password


COMPANY_REGISTRATION_POLICY = ModelValidationPolicy(
    writable_fields={
        "razao_social", "nome_fantasia", "cnpj", "email", "telefone",
        "responsavel", "endereco", "site_instagram",
    },
    virtual_fields={"senha"},
    required_on_create={
        "razao_social", "nome_fantasia", "cnpj", "email", "telefone",
        "responsavel", "senha",
    },
    min_lengths={"razao_social": 1, "nome_fantasia": 1, "cnpj": 14, "telefone": 10, "responsavel": 1, "senha": 6},
    # CNPJ may arrive masked (XX.XXX.XXX/XXXX-XX)
    max_lengths={"cnpj": 18},
    email_fields={"email"},
)


def register_company(payload: dict) -> Company:
    """
    Create a company with its default cashback config and COMPANY identity.

    Duplicate email or CNPJ raises ValidationError and writes nothing.
    """
    data = validate_payload(
        model=Company,
        payload=payload,
        policy=COMPANY_REGISTRATION_POLICY,
        partial=False,
    )

    email = data["email"].lower()
    cnpj = normalize_cnpj(data["cnpj"])

    if db.session.query(Company.id).filter(Company.email == email).first():
        raise ValidationError("Email já cadastrado")
    if db.session.query(Company.id).filter(Company.cnpj == cnpj).first():
        raise ValidationError("CNPJ já cadastrado")

    senha_hash = hash_password(data["senha"])

    identity = Identity(
        kind=IdentityKind.COMPANY,
        full_name=data["responsavel"],
        is_active=True,
    )
    company = Company(
        razao_social=data["razao_social"],
        nome_fantasia=data["nome_fantasia"],
        cnpj=cnpj,
        email=email,
        telefone=data["telefone"],
        responsavel=data["responsavel"],
        endereco=data.get("endereco") or "",
        site_instagram=data.get("site_instagram") or "",
        senha_hash=senha_hash,
        is_active=True,
        identity=identity,
    )
    company.cashback_config = CompanyCashbackConfig(
        cashback_percentage=Decimal(str(current_app.config["DEFAULT_CASHBACK_PERCENTAGE"])),
    )

    db.session.add(company)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email/CNPJ
        db.session.rollback()
        raise ValidationError("Email já cadastrado")

    return company


def get_cashback_percentage(company_id: int) -> Decimal:
    """Configured percentage, or DEFAULT_CASHBACK_PERCENTAGE when the company has none."""
    config = db.session.query(CompanyCashbackConfig).filter_by(company_id=company_id).first()
    if config is None:
        return Decimal(str(current_app.config["DEFAULT_CASHBACK_PERCENTAGE"]))
    return Decimal(config.cashback_percentage)


def set_cashback_percentage(company_id: int, value) -> Decimal:
    """Validate against MIN/MAX_CASHBACK_PERCENTAGE and upsert the company config."""
    pct = parse_cashback_percentage(
        value,
        minimum=current_app.config["MIN_CASHBACK_PERCENTAGE"],
        maximum=current_app.config["MAX_CASHBACK_PERCENTAGE"],
    )

    config = db.session.query(CompanyCashbackConfig).filter_by(company_id=company_id).first()
    if config is None:
        config = CompanyCashbackConfig(company_id=company_id, cashback_percentage=pct)
        db.session.add(config)
    else:
        config.cashback_percentage = pct

    db.session.commit()
    return pct


def list_companies() -> list[Company]:
    return db.session.query(Company).order_by(Company.id).all()
