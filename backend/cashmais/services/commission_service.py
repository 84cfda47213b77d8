# Overview: Service-layer operations for commissions; encapsulates business logic and database work.

"""
Commission Distributor

WHY: A purchase made with an affiliate's CPF earns a commission share for
the affiliate and its direct sponsor.

SPLIT (configurable):
- distributable pool = cashback * COMMISSION_DISTRIBUTABLE_RATE
- buyer (level 0)   = pool * COMMISSION_BUYER_RATE
- sponsor (level 1) = pool * COMMISSION_SPONSOR_RATE

Only the direct sponsor is paid; deeper levels are not walked.

DELIVERY: purchase_service writes a CommissionOutbox row in the purchase
transaction. process_outbox_entry distributes it in a transaction of its
own; a failure marks the row FAILED (never the purchase) and
`flask commissions process` retries it. Credits are unique per
(purchase, level), so a retry never pays twice.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app

from ..extensions import db
from ..models import (
    AffiliateBalance,
    CommissionCredit,
    CommissionOutbox,
    Identity,
    IdentityKind,
    OutboxStatus,
)
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction


CREDIT_QUANTUM = Decimal("0.0001")

BUYER_LEVEL = 0
SPONSOR_LEVEL = 1


@dataclass(frozen=True)
class CommissionRates:
    distributable: Decimal
    buyer: Decimal
    sponsor: Decimal

    @classmethod
    def from_config(cls) -> "CommissionRates":
        cfg = current_app.config
        return cls(
            distributable=Decimal(str(cfg["COMMISSION_DISTRIBUTABLE_RATE"])),
            buyer=Decimal(str(cfg["COMMISSION_BUYER_RATE"])),
            sponsor=Decimal(str(cfg["COMMISSION_SPONSOR_RATE"])),
        )

    def pool(self, cashback: Decimal) -> Decimal:
        return Decimal(cashback) * self.distributable

    def buyer_share(self, cashback: Decimal) -> Decimal:
        return (self.pool(cashback) * self.buyer).quantize(CREDIT_QUANTUM, rounding=ROUND_HALF_UP)

    def sponsor_share(self, cashback: Decimal) -> Decimal:
        return (self.pool(cashback) * self.sponsor).quantize(CREDIT_QUANTUM, rounding=ROUND_HALF_UP)


def preview_buyer_commission(cashback: Decimal) -> Decimal:
    """Commission the buyer will be credited for this cashback, as the distributor computes it."""
    return CommissionRates.from_config().buyer_share(cashback)


def _credit(identity: Identity, purchase_id: int, level: int, amount: Decimal) -> CommissionCredit:
    balance = lock_for_update(
        db.session.query(AffiliateBalance).filter_by(identity_id=identity.id)
    ).first()
    if balance is None:
        balance = AffiliateBalance(
            identity_id=identity.id,
            available_balance=Decimal("0"),
            total_earnings=Decimal("0"),
        )
        db.session.add(balance)

    balance.available_balance = Decimal(balance.available_balance or 0) + amount
    balance.total_earnings = Decimal(balance.total_earnings or 0) + amount

    credit = CommissionCredit(
        identity_id=identity.id,
        purchase_id=purchase_id,
        level=level,
        amount=amount,
        occurred_at=utcnow(),
    )
    db.session.add(credit)
    return credit


def distribute_network_commissions(
    purchase_id: int,
    buyer_identity_id: int,
    buyer_kind: str,
    cashback_amount: Decimal,
) -> list[CommissionCredit]:
    """
    Credit the buyer and its direct sponsor for one purchase.

    Does NOT commit. Returns the credits for the purchase; if credits
    already exist for it, they are returned unchanged.
    """
    if buyer_kind != IdentityKind.AFFILIATE:
        return []

    existing = db.session.query(CommissionCredit).filter_by(purchase_id=purchase_id).all()
    if existing:
        return existing

    buyer = db.session.get(Identity, buyer_identity_id)
    if buyer is None:
        raise LookupError(f"Buyer identity {buyer_identity_id} not found")

    rates = CommissionRates.from_config()
    credits = []

    buyer_amount = rates.buyer_share(cashback_amount)
    if buyer_amount > 0:
        credits.append(_credit(buyer, purchase_id, BUYER_LEVEL, buyer_amount))

    sponsor = buyer.sponsor
    if sponsor is not None and sponsor.is_active and sponsor.is_affiliate:
        sponsor_amount = rates.sponsor_share(cashback_amount)
        if sponsor_amount > 0:
            credits.append(_credit(sponsor, purchase_id, SPONSOR_LEVEL, sponsor_amount))

    return credits


def process_outbox_entry(entry_id: int) -> bool:
    """
    Distribute one outbox entry.

    Returns True when the entry is DONE. On failure the entry is marked
    FAILED with the error text and attempts incremented; the error is
    logged, not raised.
    """
    entry = db.session.get(CommissionOutbox, entry_id)
    if entry is None:
        return False
    if entry.status == OutboxStatus.DONE:
        return True

    purchase_id = entry.purchase_id
    buyer_identity_id = entry.buyer_identity_id
    buyer_kind = entry.buyer_kind
    cashback_amount = Decimal(entry.cashback_amount)

    def _distribute():
        distribute_network_commissions(purchase_id, buyer_identity_id, buyer_kind, cashback_amount)
        outbox = db.session.get(CommissionOutbox, entry_id)
        outbox.status = OutboxStatus.DONE
        outbox.attempts = (outbox.attempts or 0) + 1
        outbox.last_error = None
        outbox.processed_at = utcnow()

    try:
        run_in_transaction(_distribute)
        return True
    except Exception as exc:
        current_app.logger.exception("Commission distribution failed for purchase %s", purchase_id)
        outbox = db.session.get(CommissionOutbox, entry_id)
        outbox.status = OutboxStatus.FAILED
        outbox.attempts = (outbox.attempts or 0) + 1
        outbox.last_error = str(exc)[:2000] or type(exc).__name__
        db.session.commit()
        return False


def process_pending(limit: int = 100, max_attempts: int = 5) -> dict:
    """
    Retry PENDING and FAILED entries with fewer than max_attempts attempts, oldest first.

    Returns counts: {processed, succeeded, failed}.
    """
    entry_ids = [
        row.id
        for row in db.session.query(CommissionOutbox.id)
        .filter(
            CommissionOutbox.status.in_([OutboxStatus.PENDING, OutboxStatus.FAILED]),
            CommissionOutbox.attempts < max_attempts,
        )
        .order_by(CommissionOutbox.created_at.asc(), CommissionOutbox.id.asc())
        .limit(limit)
        .all()
    ]

    succeeded = 0
    for entry_id in entry_ids:
        if process_outbox_entry(entry_id):
            succeeded += 1

    current_app.logger.info(
        "Commission outbox run: %d processed, %d done", len(entry_ids), succeeded
    )

    return {
        "processed": len(entry_ids),
        "succeeded": succeeded,
        "failed": len(entry_ids) - succeeded,
    }
