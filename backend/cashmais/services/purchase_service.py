# Overview: Service-layer operations for purchases; encapsulates business logic and database work.

"""
Purchase Recorder

WHY: A cashier records a purchase against the customer's CPF (the coupon);
the company's cashback percentage is applied and the result is frozen on
the purchase row.

ATOMICITY: coupon resolution/creation, purchase insert, coupon usage
update and the commission outbox row are one transaction. Either all of
them are written or none. Commission distribution runs after commit and
can never fail the purchase.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import case
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Cashier,
    CommissionOutbox,
    CustomerCoupon,
    Identity,
    IdentityKind,
    OutboxStatus,
    Purchase,
)
from ..time_utils import business_now, utcnow
from ..validation import (
    ValidationError,
    clean_digits,
    format_brl,
    normalize_cpf,
    parse_purchase_value,
)
from . import commission_service, company_service, login_throttle_service
from .concurrency import RETRYABLE_ERRORS, lock_for_update, run_in_transaction


def calculate_cashback(purchase_value: Decimal, percentage: Decimal) -> Decimal:
    """value * percentage / 100, exact (no rounding)."""
    return Decimal(purchase_value) * Decimal(percentage) / Decimal(100)


def resolve_customer(cpf: str) -> Identity | None:
    """
    Active identity behind a CPF.

    An AFFILIATE wins; otherwise a PLAIN_USER, then any other active
    identity (e.g. a cashier of another company shopping as a customer).
    """
    affiliate = db.session.query(Identity).filter(
        Identity.kind == IdentityKind.AFFILIATE,
        Identity.cpf == cpf,
        Identity.is_active.is_(True),
    ).first()
    if affiliate is not None:
        return affiliate

    return (
        db.session.query(Identity)
        .filter(
            Identity.cpf == cpf,
            Identity.is_active.is_(True),
            Identity.kind != IdentityKind.AFFILIATE,
        )
        .order_by(case((Identity.kind == IdentityKind.PLAIN_USER, 0), else_=1), Identity.id)
        .first()
    )


def _resolve_coupon(cpf: str, identity_id: int) -> CustomerCoupon:
    coupon = lock_for_update(
        db.session.query(CustomerCoupon).filter_by(coupon_code=cpf)
    ).first()

    if coupon is None:
        coupon = CustomerCoupon(
            coupon_code=cpf,
            cpf=cpf,
            identity_id=identity_id,
            is_active=True,
            total_usage_count=0,
        )
        db.session.add(coupon)
        db.session.flush()
        return coupon

    if not coupon.is_active:
        coupon.is_active = True
    if coupon.identity_id != identity_id:
        # CPF now resolves to a different identity (e.g. registered as affiliate)
        coupon.identity_id = identity_id
    return coupon


def record_purchase(cashier: Cashier, payload: dict | None, ip_address: str | None = None) -> dict:
    """
    Record a purchase for the authenticated cashier.

    payload: {"customer_coupon": CPF (masked or not), "purchase_value": > 0}

    Returns {success, message, cashback_generated, customer_name, purchase_id}.
    Raises ValidationError for bad input, self-redeem or unknown customer.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("JSON inválido")

    raw_cpf = payload.get("customer_coupon")
    if not raw_cpf or not clean_digits(raw_cpf):
        raise ValidationError("CPF do cliente é obrigatório")
    cpf = normalize_cpf(raw_cpf)
    purchase_value = parse_purchase_value(payload.get("purchase_value"))

    cashier_id = cashier.id
    company_id = cashier.company_id
    cashier_cpf = cashier.cpf

    if cpf == cashier_cpf:
        login_throttle_service.record_self_redeem_attempt(cashier_id, cpf, ip_address)
        raise ValidationError("Você não pode usar seu próprio CPF")

    customer = resolve_customer(cpf)
    if customer is None:
        raise ValidationError("CPF não encontrado ou cliente inativo")

    customer_id = customer.id
    customer_kind = customer.kind
    customer_name = customer.display_name

    percentage = company_service.get_cashback_percentage(company_id)
    cashback = calculate_cashback(purchase_value, percentage)
    tz_name = current_app.config["BUSINESS_TIMEZONE"]

    def _record():
        coupon = _resolve_coupon(cpf, customer_id)
        local_now = business_now(tz_name)

        purchase = Purchase(
            company_id=company_id,
            cashier_id=cashier_id,
            customer_coupon_id=coupon.id,
            customer_coupon=cpf,
            cashier_cpf=cashier_cpf,
            purchase_value=purchase_value,
            cashback_percentage=percentage,
            cashback_generated=cashback,
            purchase_date=local_now.date(),
            purchase_time=local_now.time().replace(microsecond=0),
            created_at=utcnow(),
        )
        db.session.add(purchase)

        coupon.total_usage_count = (coupon.total_usage_count or 0) + 1
        coupon.last_used_at = utcnow()
        db.session.flush()

        outbox_id = None
        if customer_kind == IdentityKind.AFFILIATE:
            entry = CommissionOutbox(
                purchase_id=purchase.id,
                buyer_identity_id=customer_id,
                buyer_kind=customer_kind,
                cashback_amount=cashback,
                status=OutboxStatus.PENDING,
                attempts=0,
            )
            db.session.add(entry)
            db.session.flush()
            outbox_id = entry.id

        return purchase.id, outbox_id

    # IntegrityError: a concurrent first purchase created the same coupon
    purchase_id, outbox_id = run_in_transaction(
        _record, retry_on=RETRYABLE_ERRORS + (IntegrityError,)
    )

    if outbox_id is not None:
        try:
            commission_service.process_outbox_entry(outbox_id)
        except Exception:
            current_app.logger.warning(
                "Commission outbox entry %s left for retry", outbox_id, exc_info=True
            )
        commission = commission_service.preview_buyer_commission(cashback)
        message = (
            f"Compra registrada! Comissão de {format_brl(commission)} será creditada para "
            f"{customer_name} (cashback de {format_brl(cashback)} gerado)"
        )
    else:
        message = f"Compra registrada! Cashback de {format_brl(cashback)} creditado para {customer_name}"

    return {
        "success": True,
        "message": message,
        "cashback_generated": float(cashback),
        "customer_name": customer_name,
        "purchase_id": purchase_id,
    }
