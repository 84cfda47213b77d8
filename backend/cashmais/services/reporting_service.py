# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

"""
Company reports.

Read-only. Every figure is folded from raw purchase rows at request time;
nothing is pre-aggregated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from ..extensions import db
from ..models import Cashier, Purchase
from ..time_utils import add_months, month_key


RECENT_PURCHASES_LIMIT = 100

PT_BR_MONTHS = ("jan", "fev", "mar", "abr", "mai", "jun", "jul", "ago", "set", "out", "nov", "dez")


class ReportError(ValueError):
    """Raised for invalid report parameters."""


@dataclass
class SalesTotals:
    sales_count: int = 0
    sales_value: Decimal = field(default_factory=lambda: Decimal("0"))
    cashback_generated: Decimal = field(default_factory=lambda: Decimal("0"))

    def add(self, purchase_value, cashback_generated) -> None:
        self.sales_count += 1
        self.sales_value += Decimal(purchase_value or 0)
        self.cashback_generated += Decimal(cashback_generated or 0)

    def to_dict(self) -> dict:
        return {
            "sales_count": self.sales_count,
            "sales_value": float(self.sales_value),
            "cashback_generated": float(self.cashback_generated),
        }


def month_label(d: date) -> str:
    """pt-BR short month label, e.g. 'mar/24'."""
    return f"{PT_BR_MONTHS[d.month - 1]}/{d.year % 100:02d}"


def get_recent_purchases(
    company_id: int,
    start: date | None = None,
    end: date | None = None,
    limit: int = RECENT_PURCHASES_LIMIT,
) -> list[dict]:
    """Latest purchases of the company with the cashier name, optionally within [start, end]."""
    if start and end and start > end:
        raise ReportError("Data inicial deve ser anterior à data final")

    query = (
        db.session.query(Purchase, Cashier.name)
        .join(Cashier, Purchase.cashier_id == Cashier.id)
        .filter(Purchase.company_id == company_id)
    )
    if start:
        query = query.filter(Purchase.purchase_date >= start)
    if end:
        query = query.filter(Purchase.purchase_date <= end)

    rows = (
        query.order_by(
            Purchase.purchase_date.desc(),
            Purchase.purchase_time.desc(),
            Purchase.id.desc(),
        )
        .limit(limit)
        .all()
    )

    result = []
    for purchase, cashier_name in rows:
        d = purchase.to_dict()
        d["cashier_name"] = cashier_name
        result.append(d)
    return result


def _purchase_rows(company_id: int, start: date | None = None):
    query = db.session.query(
        Purchase.purchase_date,
        Purchase.purchase_value,
        Purchase.cashback_generated,
    ).filter(Purchase.company_id == company_id)
    if start:
        query = query.filter(Purchase.purchase_date >= start)
    return query.all()


def get_statistics(company_id: int, month: date, cashback_percentage: Decimal) -> dict:
    """
    All-time and single-month totals.

    month is any date inside the month to report (normally its first day).
    """
    month_start = date(month.year, month.month, 1)
    next_month = add_months(month_start, 1)

    total = SalesTotals()
    monthly = SalesTotals()
    for purchase_date, purchase_value, cashback_generated in _purchase_rows(company_id):
        total.add(purchase_value, cashback_generated)
        if month_start <= purchase_date < next_month:
            monthly.add(purchase_value, cashback_generated)

    return {
        "total": total.to_dict(),
        "monthly": monthly.to_dict(),
        "cashback_percentage": float(cashback_percentage),
    }


def get_monthly_data(company_id: int, today: date, months: int = 6) -> list[dict]:
    """
    Trailing month buckets ending with today's month, ascending.

    Months without purchases are present with zero totals.
    """
    if months < 1:
        raise ReportError("months deve ser maior que zero")

    first_month = add_months(today, -(months - 1))
    buckets = {month_key(add_months(first_month, i)): SalesTotals() for i in range(months)}

    for purchase_date, purchase_value, cashback_generated in _purchase_rows(company_id, start=first_month):
        bucket = buckets.get(month_key(purchase_date))
        if bucket is not None:
            bucket.add(purchase_value, cashback_generated)

    result = []
    for i in range(months):
        month_start = add_months(first_month, i)
        key = month_key(month_start)
        result.append({
            "month": key,
            "label": month_label(month_start),
            **buckets[key].to_dict(),
        })
    return result
