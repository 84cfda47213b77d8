# Overview: Service-layer operations for cashiers; encapsulates business logic and database work.

"""
Cashier management for a company.

TENANT SCOPE: every lookup is filtered by company_id; a cashier id that
belongs to another company is reported as not found.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Cashier, Identity, IdentityKind, Purchase
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    normalize_cpf,
    validate_payload,
)
from . import session_service
from .auth_service import hash_password


CASHIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "cpf"},
    virtual_fields={"password"},
    required_on_create={"name", "cpf", "password"},
    min_lengths={"name": 1, "cpf": 11, "password": 6},
    # CPF may arrive masked (XXX.XXX.XXX-XX)
    max_lengths={"cpf": 14},
)

CASHIER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name"},
    virtual_fields={"password"},
    min_lengths={"name": 1, "password": 6},
)


def _cashier_identity(cpf: str, name: str) -> Identity:
    identity = db.session.query(Identity).filter_by(kind=IdentityKind.CASHIER, cpf=cpf).first()
    if identity is None:
        identity = Identity(kind=IdentityKind.CASHIER, cpf=cpf, full_name=name, is_active=True)
        db.session.add(identity)
    return identity


def create_cashier(company_id: int, payload: dict) -> Cashier:
    """
    Create a cashier for the company.

    - CPF already registered in this company: ValidationError
    - CPF linked to a cashier of another company: ConflictError
    """
    data = validate_payload(model=Cashier, payload=payload, policy=CASHIER_POLICY, partial=False)
    cpf = normalize_cpf(data["cpf"])

    existing = db.session.query(Cashier).filter_by(cpf=cpf).first()
    if existing is not None:
        if existing.company_id == company_id:
            raise ValidationError("CPF já cadastrado para esta empresa")
        raise ConflictError("CPF já vinculado a outra empresa")

    cashier = Cashier(
        company_id=company_id,
        identity=_cashier_identity(cpf, data["name"]),
        name=data["name"],
        cpf=cpf,
        password_hash=hash_password(data["password"]),
        is_active=True,
    )
    db.session.add(cashier)
    db.session.commit()
    return cashier


def list_cashiers(company_id: int) -> list[Cashier]:
    """All cashiers of the company, newest first."""
    return (
        db.session.query(Cashier)
        .filter_by(company_id=company_id)
        .order_by(Cashier.created_at.desc(), Cashier.id.desc())
        .all()
    )


def get_company_cashier(company_id: int, cashier_id: int) -> Cashier:
    cashier = db.session.query(Cashier).filter_by(id=cashier_id, company_id=company_id).first()
    if cashier is None:
        raise NotFoundError("Caixa não encontrado")
    return cashier


def update_cashier(company_id: int, cashier_id: int, payload: dict) -> Cashier:
    """Rename a cashier and/or set a new password."""
    cashier = get_company_cashier(company_id, cashier_id)
    if isinstance(payload, dict) and isinstance(payload.get("password"), str) and not payload["password"].strip():
        # Blank password field means "keep the current one"
        payload = {k: v for k, v in payload.items() if k != "password"}
    data = validate_payload(model=Cashier, payload=payload, policy=CASHIER_UPDATE_POLICY, partial=True)

    if data.get("name"):
        cashier.name = data["name"]
    if data.get("password"):
        cashier.password_hash = hash_password(data["password"])

    db.session.commit()
    return cashier


def toggle_cashier(company_id: int, cashier_id: int) -> Cashier:
    """
    Flip is_active.

    Blocking a cashier deletes all of its sessions in the same commit, so an
    open till is logged out on its next request.
    """
    cashier = get_company_cashier(company_id, cashier_id)
    cashier.is_active = not cashier.is_active

    if not cashier.is_active:
        session_service.delete_owner_sessions(session_service.CASHIER, cashier.id)

    db.session.commit()
    return cashier


def delete_cashier(company_id: int, cashier_id: int) -> None:
    """Delete a cashier with no purchases. Cashiers with purchases must be blocked instead."""
    cashier = get_company_cashier(company_id, cashier_id)

    has_purchases = db.session.query(Purchase.id).filter_by(cashier_id=cashier.id).first() is not None
    if has_purchases:
        raise ValidationError(
            "Não é possível excluir caixa com vendas registradas. Bloqueie ao invés de excluir."
        )

    session_service.delete_owner_sessions(session_service.CASHIER, cashier.id)
    db.session.delete(cashier)
    db.session.commit()
