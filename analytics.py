from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional, Sequence

from config import get_settings
from models import Budget, Transaction
from periods import Period, current_month, month_key, month_label
from schemas import TransactionFilters

ZERO = Decimal("0")


def _label(category: object) -> str:
    return getattr(category, "value", category)


def valid_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [t for t in transactions if t is not None and t.amount and t.amount > 0]


def total_expenses(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.amount for t in valid_transactions(transactions)), ZERO)


def recent_transactions(
    transactions: Sequence[Transaction], limit: int = 5
) -> list[Transaction]:
    """First ``limit`` transactions in store order (newest first)."""
    return valid_transactions(transactions)[:limit]


def transactions_in_period(
    transactions: Iterable[Transaction], period: Period
) -> list[Transaction]:
    return [t for t in valid_transactions(transactions) if period.contains(t.date)]


def category_breakdown(
    transactions: Iterable[Transaction], month: Optional[str] = None
) -> dict[str, Decimal]:
    month = month or current_month()
    totals: dict[str, Decimal] = {}
    for txn in valid_transactions(transactions):
        if month_key(txn.date) != month:
            continue
        label = _label(txn.category)
        totals[label] = totals.get(label, ZERO) + txn.amount
    return totals


def category_totals(transactions: Iterable[Transaction]) -> list[dict[str, object]]:
    totals: dict[str, Decimal] = {}
    for txn in valid_transactions(transactions):
        label = _label(txn.category)
        totals[label] = totals.get(label, ZERO) + txn.amount
    return [{"name": name, "value": value} for name, value in totals.items()]


def monthly_expenses(transactions: Iterable[Transaction]) -> list[dict[str, object]]:
    totals: dict[str, Decimal] = {}
    for txn in valid_transactions(transactions):
        key = month_key(txn.date)
        totals[key] = totals.get(key, ZERO) + txn.amount
    return [
        {"name": month_label(key), "amount": totals[key]} for key in sorted(totals)
    ]


def budget_vs_actual(
    budgets: Iterable[Budget],
    transactions: Iterable[Transaction],
    month: Optional[str] = None,
) -> list[dict[str, object]]:
    """Compare the month's budgets with what was actually spent.

    Several budget records for the same category and month are summed rather
    than deduplicated. Categories without a budget for the month are omitted.
    """
    month = month or current_month()
    budget_sums: dict[str, Decimal] = {}
    for budget in budgets:
        if budget is None or budget.month != month:
            continue
        label = _label(budget.category)
        budget_sums[label] = budget_sums.get(label, ZERO) + budget.amount

    actuals = category_breakdown(transactions, month)
    return [
        {"category": category, "Budget": total, "Actual": actuals.get(category, ZERO)}
        for category, total in budget_sums.items()
    ]


def generate_insights(
    transactions: Sequence[Transaction],
    budgets: Sequence[Budget],
    month: Optional[str] = None,
    currency_symbol: Optional[str] = None,
) -> list[str]:
    month = month or current_month()
    insights: list[str] = []

    totals = category_breakdown(transactions, month)
    top = sorted(totals.items(), key=lambda item: item[1], reverse=True)[:2]
    if top:
        listed = " and ".join(
            f"{category} ({format_amount(amount, currency_symbol)})"
            for category, amount in top
        )
        insights.append(f"Your top spending categories this month are {listed}.")

    for row in budget_vs_actual(budgets, transactions, month):
        overspent = row["Actual"] - row["Budget"]
        if overspent > 0:
            insights.append(
                f"You've exceeded your {row['category']} budget by "
                f"{format_amount(overspent, currency_symbol)}!"
            )
    return insights


def format_amount(amount: object, currency_symbol: Optional[str] = None) -> str:
    symbol = get_settings().currency_symbol if currency_symbol is None else currency_symbol
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        value = ZERO
    if not value.is_finite():
        value = ZERO
    value = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{symbol}{value}"


def _amount_text(amount: Decimal) -> str:
    return format(amount.normalize(), "f")


def filter_transactions(
    transactions: Iterable[Transaction], filters: TransactionFilters
) -> list[Transaction]:
    query = (filters.query or "").strip().lower()
    matched: list[Transaction] = []
    for txn in transactions:
        if query and not (
            query in txn.description.lower()
            or query in _label(txn.category).lower()
            or query in _amount_text(txn.amount)
        ):
            continue
        if filters.category is not None and txn.category != filters.category:
            continue
        if filters.date_from is not None and txn.date < filters.date_from:
            continue
        if filters.date_to is not None and txn.date > filters.date_to:
            continue
        if filters.min_amount is not None and txn.amount < filters.min_amount:
            continue
        if filters.max_amount is not None and txn.amount > filters.max_amount:
            continue
        matched.append(txn)
    return matched
