"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many failures, the identifier is temporarily locked.

SECURITY FEATURES:
- Tracks failed attempts per actor type + identifier (email, CNPJ or CPF)
- Lockout after MAX_FAILED_ATTEMPTS failures within LOCKOUT_WINDOW
- Lockout duration: LOCKOUT_DURATION minutes
- Uses security_events table for tracking
"""

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent
from ..time_utils import utcnow


# Configuration constants
MAX_FAILED_ATTEMPTS = 10  # Lock after 10 failed attempts
LOCKOUT_WINDOW = timedelta(minutes=15)  # Within 15 minutes
LOCKOUT_DURATION = timedelta(minutes=15)  # Lockout for 15 minutes


class ThrottledError(Exception):
    """Raised when an identifier is locked out; maps to HTTP 429."""

    def __init__(self, seconds_remaining: int | None):
        super().__init__("Muitas tentativas de login. Tente novamente mais tarde.")
        self.seconds_remaining = seconds_remaining


def get_recent_failed_attempts(actor_type: str, identifier: str) -> int:
    """Count LOGIN_FAILED events for the identifier within LOCKOUT_WINDOW."""
    cutoff = utcnow() - LOCKOUT_WINDOW

    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.actor_type == actor_type,
        SecurityEvent.identifier == identifier,
        SecurityEvent.occurred_at >= cutoff,
    ).count()


def is_account_locked(actor_type: str, identifier: str) -> tuple[bool, int | None]:
    """
    Check if an identifier is currently locked due to too many failed attempts.

    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    failed_count = get_recent_failed_attempts(actor_type, identifier)

    if failed_count >= MAX_FAILED_ATTEMPTS:
        most_recent = db.session.query(SecurityEvent).filter(
            SecurityEvent.event_type == "LOGIN_FAILED",
            SecurityEvent.actor_type == actor_type,
            SecurityEvent.identifier == identifier,
        ).order_by(SecurityEvent.occurred_at.desc()).first()

        if most_recent:
            lockout_end = most_recent.occurred_at + LOCKOUT_DURATION
            now = utcnow()

            if now < lockout_end:
                return True, int((lockout_end - now).total_seconds())

    return False, None


def ensure_not_locked(actor_type: str, identifier: str) -> None:
    locked, seconds_remaining = is_account_locked(actor_type, identifier)
    if locked:
        raise ThrottledError(seconds_remaining)


def record_failed_attempt(
    actor_type: str,
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials",
) -> int:
    """
    Record a failed login attempt.

    Returns the total number of recent failed attempts.
    """
    event = SecurityEvent(
        actor_type=actor_type,
        actor_id=None,
        event_type="LOGIN_FAILED",
        identifier=identifier,
        resource=f"/login/{actor_type}",
        success=False,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return get_recent_failed_attempts(actor_type, identifier)


def record_successful_login(
    actor_type: str,
    actor_id: int,
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Record a successful login.

    Old failed attempts are kept; they age out of LOCKOUT_WINDOW on their own.
    """
    event = SecurityEvent(
        actor_type=actor_type,
        actor_id=actor_id,
        event_type="LOGIN_SUCCESS",
        identifier=identifier,
        resource=f"/login/{actor_type}",
        success=True,
        reason=None,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()


def record_self_redeem_attempt(cashier_id: int, cpf: str, ip_address: str | None = None) -> None:
    """Audit a cashier trying to credit a purchase to their own CPF."""
    event = SecurityEvent(
        actor_type="cashier",
        actor_id=cashier_id,
        event_type="SELF_REDEEM_BLOCKED",
        identifier=cpf,
        resource="/api/caixa/compra",
        success=False,
        reason="Customer CPF equals cashier CPF",
        ip_address=ip_address,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()
