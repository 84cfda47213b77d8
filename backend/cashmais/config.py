# backend/cashmais/config.py
from __future__ import annotations
import os


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cashmais.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cashmais.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 10)

    # Session lifetimes per actor
    COMPANY_SESSION_HOURS = _env_int("COMPANY_SESSION_HOURS", 24)
    CASHIER_SESSION_HOURS = _env_int("CASHIER_SESSION_HOURS", 8)
    AFFILIATE_SESSION_HOURS = _env_int("AFFILIATE_SESSION_HOURS", 24)

    # Cashback percentage bounds (company-configurable)
    DEFAULT_CASHBACK_PERCENTAGE = _env_float("DEFAULT_CASHBACK_PERCENTAGE", 5.0)
    MIN_CASHBACK_PERCENTAGE = _env_float("MIN_CASHBACK_PERCENTAGE", 1.0)
    MAX_CASHBACK_PERCENTAGE = _env_float("MAX_CASHBACK_PERCENTAGE", 20.0)

    # Commission split applied to the cashback of affiliate purchases
    COMMISSION_DISTRIBUTABLE_RATE = _env_float("COMMISSION_DISTRIBUTABLE_RATE", 0.70)
    COMMISSION_BUYER_RATE = _env_float("COMMISSION_BUYER_RATE", 0.10)
    COMMISSION_SPONSOR_RATE = _env_float("COMMISSION_SPONSOR_RATE", 0.10)

    # Purchase date/time fields are recorded in business time
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "America/Sao_Paulo")

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    }
