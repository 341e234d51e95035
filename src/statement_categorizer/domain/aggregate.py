"""Expense totals for charts.

Only expenses (negative amounts) count; inflows are skipped entirely. Sums are
accumulated as ``Decimal`` so the result does not depend on input order.
"""

import datetime as dt
from collections.abc import Callable, Iterable
from decimal import Decimal

from statement_categorizer.models import Transaction


def format_month(value: dt.date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def _expense(tx: Transaction) -> Decimal | None:
    if tx.amount >= 0:
        return None
    return abs(Decimal(str(tx.amount)))


def _totals_by(
    transactions: Iterable[Transaction],
    key: Callable[[Transaction], str],
) -> dict[str, float]:
    totals: dict[str, Decimal] = {}
    for tx in transactions:
        expense = _expense(tx)
        if expense is None:
            continue
        bucket = key(tx)
        totals[bucket] = totals.get(bucket, Decimal(0)) + expense
    return {bucket: float(total) for bucket, total in totals.items()}


def totals_by_category(transactions: Iterable[Transaction]) -> dict[str, float]:
    return _totals_by(transactions, lambda tx: tx.category)


def totals_by_month(transactions: Iterable[Transaction]) -> dict[str, float]:
    return _totals_by(transactions, lambda tx: format_month(tx.date))


def total_spending(transactions: Iterable[Transaction]) -> float:
    total = Decimal(0)
    for tx in transactions:
        expense = _expense(tx)
        if expense is not None:
            total += expense
    return float(total)


def date_bounds(transactions: Iterable[Transaction]) -> tuple[dt.date, dt.date] | None:
    dates = [tx.date for tx in transactions]
    if not dates:
        return None
    return min(dates), max(dates)
