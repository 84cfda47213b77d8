# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Companies, cashiers and affiliates each log in with their own
identifier (email or CNPJ, CPF, CPF or email). Passwords are bcrypt
hashes; session tokens are managed separately (see session_service.py).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS)
- Minimum 6 characters required
- Inactive accounts never authenticate
"""

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import Cashier, Company, Identity, IdentityKind
from ..time_utils import utcnow
from ..validation import clean_digits


MIN_PASSWORD_LENGTH = 6


class PasswordValidationError(ValueError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str | None) -> None:
    """Raises PasswordValidationError if the password is shorter than 6 characters."""
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres"
        )


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for length before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 10))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str | None, password_hash: str | None) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for missing input or a malformed stored hash.
    """
    if not isinstance(password, str) or not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def authenticate_company(*, email: str | None = None, cnpj: str | None = None, password: str) -> Company | None:
    """
    Authenticate a company by email, or by CNPJ when no email is given.

    CNPJ may arrive masked; it is compared digits-only.
    """
    query = db.session.query(Company).filter(Company.is_active.is_(True))
    if email:
        query = query.filter(Company.email == email.strip().lower())
    elif cnpj:
        query = query.filter(Company.cnpj == clean_digits(cnpj))
    else:
        return None

    company = query.first()
    if company and verify_password(password, company.senha_hash):
        return company
    return None


def authenticate_cashier(cpf: str, password: str) -> Cashier | None:
    """
    Authenticate an active cashier of an active company by CPF.

    Updates last_access_at timestamp on successful authentication.
    """
    cashier = (
        db.session.query(Cashier)
        .join(Company, Cashier.company_id == Company.id)
        .filter(
            Cashier.cpf == clean_digits(cpf),
            Cashier.is_active.is_(True),
            Company.is_active.is_(True),
        )
        .first()
    )

    if cashier and verify_password(password, cashier.password_hash):
        cashier.last_access_at = utcnow()
        db.session.commit()
        return cashier
    return None


def authenticate_affiliate(identifier: str, password: str) -> Identity | None:
    """Authenticate an active affiliate by email (if it contains '@') or CPF."""
    query = db.session.query(Identity).filter(
        Identity.kind == IdentityKind.AFFILIATE,
        Identity.is_active.is_(True),
    )
    if "@" in identifier:
        query = query.filter(Identity.email == identifier.strip().lower())
    else:
        query = query.filter(Identity.cpf == clean_digits(identifier))

    affiliate = query.first()
    if affiliate and verify_password(password, affiliate.password_hash):
        return affiliate
    return None
