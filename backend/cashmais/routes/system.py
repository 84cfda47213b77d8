# backend/cashmais/routes/system.py
"""
System health endpoint.

Checks database connectivity and reports the commission outbox backlog.
"""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import CommissionOutbox, Company, OutboxStatus
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        company_count = db.session.query(Company).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"companies": company_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_commission_outbox_health() -> dict:
    """Degraded while FAILED entries are waiting for `flask commissions process`."""
    try:
        pending = db.session.query(CommissionOutbox).filter_by(status=OutboxStatus.PENDING).count()
        failed = db.session.query(CommissionOutbox).filter_by(status=OutboxStatus.FAILED).count()
    except Exception:
        current_app.logger.exception("Commission outbox health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "error": "Commission outbox error"}

    return {
        "status": "degraded" if failed else "healthy",
        "details": {"pending": pending, "failed": failed},
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    checks = {
        "database": check_database_health(),
        "commission_outbox": check_commission_outbox_health(),
    }

    statuses = {check["status"] for check in checks.values()}
    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "checks": checks,
    }, http_status
