from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Purchases below one centavo are rejected
MIN_PURCHASE_VALUE = Decimal("0.01")
# R$ 99.999.999,99
MAX_PURCHASE_VALUE = Decimal("99999999.99")
# Money and percentage columns hold two decimal places
CENTS = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., CPF linked to another company)."""


class NotFoundError(LookupError):
    """404-level missing or cross-tenant resource."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: model columns clients are allowed to set
    - virtual_fields: accepted keys that are not columns (e.g. plaintext passwords)
    - required_on_create: fields required for POST
    - min_lengths: minimum string length per field
    - email_fields: fields that must look like an e-mail address
    """
    writable_fields: set[str]
    virtual_fields: set[str] = field(default_factory=set)
    required_on_create: set[str] = field(default_factory=set)
    min_lengths: dict[str, int] = field(default_factory=dict)
    max_lengths: dict[str, int] = field(default_factory=dict)
    email_fields: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(key: str, col, value: Any):
    if value is None:
        return None

    # Virtual fields are always plain strings
    if col is None:
        if not isinstance(value, str):
            raise ValidationError(f"{key} deve ser texto")
        return value.strip()

    coltype = col.type

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise ValidationError(f"{key} deve ser um número inteiro")

    if isinstance(coltype, Numeric):
        return parse_decimal(value, key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{key} deve ser verdadeiro ou falso")

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, str):
            raise ValidationError(f"{key} deve ser texto")
        return value.strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields + virtual_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only accepted fields.

    Unknown keys are ignored rather than rejected; browser forms post
    confirmation fields we have no use for.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("JSON inválido")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Campos obrigatórios ausentes: {', '.join(missing)}")

    cols = _columns_by_key(model)
    accepted = policy.writable_fields | policy.virtual_fields

    patch: dict = {}
    for k, raw in payload.items():
        if k not in accepted:
            continue
        col = cols.get(k) if k in policy.writable_fields else None

        if raw is None:
            if col is not None and not col.nullable:
                raise ValidationError(f"{k} não pode ser nulo")
            patch[k] = None
            continue

        val = _coerce_value(k, col, raw)

        if isinstance(val, str):
            min_len = policy.min_lengths.get(k)
            if min_len is not None and len(val) < min_len:
                raise ValidationError(f"{k} deve ter pelo menos {min_len} caracteres")

            max_len = policy.max_lengths.get(k)
            if max_len is None and col is not None and isinstance(col.type, String):
                max_len = col.type.length
            if max_len and len(val) > max_len:
                raise ValidationError(f"{k} excede o tamanho máximo de {max_len} caracteres")

            if k in policy.email_fields and not EMAIL_RE.match(val):
                raise ValidationError(f"{k} inválido")

        patch[k] = val

    return patch


# =============================================================================
# BRAZILIAN DOCUMENT NUMBERS
# =============================================================================

def clean_digits(value: str | None) -> str:
    """Remove formatting, keeping digits only."""
    if not value:
        return ""
    return "".join(filter(str.isdigit, str(value)))


def normalize_cpf(value: str | None) -> str:
    """CPF as stored: 11 digits, no mask."""
    cpf = clean_digits(value)
    if len(cpf) != 11:
        raise ValidationError("CPF deve ter 11 dígitos")
    return cpf


def normalize_cnpj(value: str | None) -> str:
    """CNPJ as stored: 14 digits, no mask."""
    cnpj = clean_digits(value)
    if len(cnpj) != 14:
        raise ValidationError("CNPJ deve ter 14 dígitos")
    return cnpj


def format_cnpj(cnpj: str) -> str:
    """Formats a CNPJ as XX.XXX.XXX/XXXX-XX"""
    digits = clean_digits(cnpj)
    if len(digits) != 14:
        return cnpj  # Returns the input untouched if it is not 14 digits

    return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"


def format_cpf(cpf: str) -> str:
    """Formats a CPF as XXX.XXX.XXX-XX"""
    digits = clean_digits(cpf)
    if len(digits) != 11:
        return cpf

    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"


# =============================================================================
# MONEY AND PERCENTAGES
# =============================================================================

def parse_decimal(value: Any, key: str) -> Decimal:
    # bool is an int subclass; "true" is never a valid amount
    if isinstance(value, bool):
        raise ValidationError(f"{key} deve ser um número")
    if isinstance(value, (int, float, Decimal)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"{key} deve ser um número")
    elif isinstance(value, str):
        stripped = value.strip().replace(",", ".")
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{key} deve ser um número")
    else:
        raise ValidationError(f"{key} deve ser um número")

    if not result.is_finite():
        raise ValidationError(f"{key} deve ser um número finito")
    return result


def parse_purchase_value(value: Any) -> Decimal:
    if value is None:
        raise ValidationError("purchase_value é obrigatório")
    amount = parse_decimal(value, "purchase_value")
    if amount < MIN_PURCHASE_VALUE:
        raise ValidationError("purchase_value deve ser maior que zero")
    if amount > MAX_PURCHASE_VALUE:
        raise ValidationError("purchase_value excede o valor máximo permitido")
    if amount != amount.quantize(CENTS):
        raise ValidationError("purchase_value deve ter no máximo 2 casas decimais")
    return amount.quantize(CENTS)


def parse_cashback_percentage(value: Any, *, minimum: float, maximum: float) -> Decimal:
    error = f"Percentual deve estar entre {minimum:g}% e {maximum:g}%"
    if value is None:
        raise ValidationError(error)
    try:
        pct = parse_decimal(value, "cashback_percentage")
    except ValidationError:
        raise ValidationError(error)
    if pct < Decimal(str(minimum)) or pct > Decimal(str(maximum)):
        raise ValidationError(error)
    if pct != pct.quantize(CENTS):
        raise ValidationError("Percentual deve ter no máximo 2 casas decimais")
    return pct.quantize(CENTS)


def format_brl(amount: Decimal | float) -> str:
    """R$ display string with two decimals and comma separator."""
    quantized = Decimal(str(amount)).quantize(CENTS, rounding=ROUND_HALF_UP)
    return f"R$ {quantized:.2f}".replace(".", ",")
