import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from analytics import (
    budget_vs_actual,
    category_breakdown,
    format_amount,
    generate_insights,
    recent_transactions,
    total_expenses,
    transactions_in_period,
)
from config import configure_logging
from data_manager import DataManager
from models import Snapshot
from periods import current_month, resolve_period
from remote_store import RemoteStoreClient

logger = logging.getLogger(__name__)


def render_summary(
    snapshot: Snapshot,
    *,
    period: str = "all",
    start: Optional[str] = None,
    end: Optional[str] = None,
    month: Optional[str] = None,
) -> list[str]:
    month = month or current_month()
    if period == "all":
        # resolve_period ends "all" at today; future-dated records still count.
        selected = list(snapshot.transactions)
    else:
        selected = transactions_in_period(
            snapshot.transactions, resolve_period(period, start, end)
        )

    lines = [f"Total expenses: {format_amount(total_expenses(selected))}"]

    lines.append(f"Category breakdown ({month}):")
    breakdown = category_breakdown(snapshot.transactions, month)
    if breakdown:
        lines.extend(f"  {category}: {format_amount(amount)}" for category, amount in breakdown.items())
    else:
        lines.append("  No transactions this month")

    lines.append("Recent transactions:")
    recent = recent_transactions(snapshot.transactions)
    if recent:
        lines.extend(f"  {t.date.isoformat()} {t.description}: {format_amount(t.amount)}" for t in recent)
    else:
        lines.append("  No recent transactions")

    comparison = budget_vs_actual(snapshot.budgets, snapshot.transactions, month)
    if comparison:
        lines.append(f"Budget vs actual ({month}):")
        lines.extend(
            f"  {row['category']}: {format_amount(row['Actual'])} of {format_amount(row['Budget'])}"
            for row in comparison
        )

    insights = generate_insights(snapshot.transactions, snapshot.budgets, month)
    lines.append("Insights:")
    if insights:
        lines.extend(f"  - {insight}" for insight in insights)
    else:
        lines.append("  No insights available yet. Add more transactions to see insights.")
    return lines


async def run(
    base_url: Optional[str],
    *,
    period: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    client: Optional[RemoteStoreClient] = None,
) -> int:
    async with client or RemoteStoreClient(base_url) as store:
        manager = DataManager(store)
        result = await manager.fetch_all()
        if not result.ok:
            logger.error(f"summary_failed: error={result.error!r}")
            print(result.error, file=sys.stderr)
            return 1
        for line in render_summary(manager.snapshot, period=period, start=start, end=end):
            print(line)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Print an expense summary from the remote store.")
    parser.add_argument("--base-url", default=None, help="Remote store base URL")
    parser.add_argument(
        "--period",
        default="all",
        choices=["all", "this_month", "last_month", "custom"],
        help="Period used for the expense total",
    )
    parser.add_argument("--start", default=None, help="First day of a custom period (YYYY-MM-DD)")
    parser.add_argument("--end", default=None, help="Last day of a custom period (YYYY-MM-DD)")
    args = parser.parse_args(argv)
    if args.period == "custom":
        try:
            resolve_period(args.period, args.start, args.end)
        except ValueError as exc:
            parser.error(str(exc))
    configure_logging()
    return asyncio.run(
        run(args.base_url, period=args.period, start=args.start, end=args.end)
    )


if __name__ == "__main__":
    raise SystemExit(main())
