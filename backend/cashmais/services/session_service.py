# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

WHY: Cookie sessions for the three actor types (company, cashier, affiliate).
Tokens are cryptographically secure, hashed in database, and time-limited.

Each actor type has its own session table with an owner FK. Everything
else (token minting, lookup, deletion, cleanup) is shared and driven by a
SessionKind descriptor.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Per-actor absolute timeout (COMPANY/CASHIER/AFFILIATE_SESSION_HOURS)
- Expiry enforced at lookup time; expired rows stay until logout,
  deactivation or `flask sessions cleanup`
- Owner (and a cashier's company) must be active for the session to count
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import (
    AffiliateSession,
    Cashier,
    CashierSession,
    Company,
    CompanySession,
    Identity,
    IdentityKind,
)
from ..time_utils import utcnow


@dataclass(frozen=True)
class SessionKind:
    """Wiring of one actor type to its session table, owner and cookie."""
    name: str
    model: type
    owner_model: type
    owner_fk: str
    cookie_name: str
    hours_config_key: str

    def lifetime(self) -> timedelta:
        return timedelta(hours=current_app.config[self.hours_config_key])


COMPANY = SessionKind(
    name="company",
    model=CompanySession,
    owner_model=Company,
    owner_fk="company_id",
    cookie_name="company_session",
    hours_config_key="COMPANY_SESSION_HOURS",
)
CASHIER = SessionKind(
    name="cashier",
    model=CashierSession,
    owner_model=Cashier,
    owner_fk="cashier_id",
    cookie_name="cashier_session",
    hours_config_key="CASHIER_SESSION_HOURS",
)
AFFILIATE = SessionKind(
    name="affiliate",
    model=AffiliateSession,
    owner_model=Identity,
    owner_fk="identity_id",
    cookie_name="affiliate_session",
    hours_config_key="AFFILIATE_SESSION_HOURS",
)

ALL_KINDS = (COMPANY, CASHIER, AFFILIATE)


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """Hash token for database storage using SHA-256."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(kind: SessionKind, owner_id: int):
    """
    Create new session for an owner of the given kind.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token in a cookie, database stores only the hash.
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = kind.model(
        token_hash=hash_token(plaintext_token),
        expires_at=now + kind.lifetime(),
        created_at=now,
    )
    setattr(session, kind.owner_fk, owner_id)

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(kind: SessionKind, token: str | None):
    """
    Resolve a session token to its owner.

    Returns the owner (Company, Cashier or Identity) or None if:
    - no token was presented
    - token is unknown or expired
    - owner is deactivated (or, for cashiers, the company is)
    - an affiliate session points at a non-affiliate identity

    Never raises for bad tokens: every failure is "unauthenticated".
    """
    if not token:
        return None

    session_model = kind.model
    owner_model = kind.owner_model

    query = (
        db.session.query(session_model)
        .join(owner_model, getattr(session_model, kind.owner_fk) == owner_model.id)
        .filter(
            session_model.token_hash == hash_token(token),
            session_model.expires_at > utcnow(),
            owner_model.is_active.is_(True),
        )
    )

    if kind is CASHIER:
        query = query.join(Company, Cashier.company_id == Company.id).filter(Company.is_active.is_(True))
    elif kind is AFFILIATE:
        query = query.filter(Identity.kind == IdentityKind.AFFILIATE)

    session = query.first()
    if not session:
        return None
    return session.owner


def delete_session(kind: SessionKind, token: str | None) -> bool:
    """
    Delete the session row for a token (logout).

    Returns True if a row was deleted, False if not found.
    """
    if not token:
        return False

    deleted = db.session.query(kind.model).filter(
        kind.model.token_hash == hash_token(token)
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted > 0


def delete_owner_sessions(kind: SessionKind, owner_id: int) -> int:
    """
    Delete every session of one owner.

    Does NOT commit: callers delete sessions in the same transaction as the
    change that invalidates them (deactivation, deletion).
    """
    return db.session.query(kind.model).filter(
        getattr(kind.model, kind.owner_fk) == owner_id
    ).delete(synchronize_session=False)


def cleanup_expired_sessions() -> dict[str, int]:
    """
    Delete expired sessions in all session tables.

    Returns count of sessions deleted per actor type.
    """
    now = utcnow()
    counts = {}
    for kind in ALL_KINDS:
        counts[kind.name] = db.session.query(kind.model).filter(
            kind.model.expires_at <= now
        ).delete(synchronize_session=False)

    db.session.commit()
    current_app.logger.info("Expired sessions deleted: %s", counts)
    return counts
