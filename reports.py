"""
reports.py
Read-only projections over the ledger and customer store (dashboard, charts, summaries).

Everything is recomputed from a full ledger scan on each call. Fine for a
single shop; a larger deployment would need a materialized daily rollup.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, timedelta
from decimal import Decimal

import pandas as pd

import customers
import ledger
from db import Store
from models import DashboardStats, Transaction


def _day(tx: Transaction) -> str:
    return tx.timestamp[:10]


def _revenue(transactions, prefix: str) -> Decimal:
    return sum((t.final_amount for t in transactions if t.timestamp.startswith(prefix)), Decimal("0.00"))


def dashboard_stats(store: Store, today: date | None = None) -> DashboardStats:
    today = today or date.today()
    transactions = ledger.list_all(store)
    day_key = today.isoformat()
    month_key = today.isoformat()[:7]

    return DashboardStats(
        daily_revenue=_revenue(transactions, day_key),
        monthly_revenue=_revenue(transactions, month_key),
        total_customers=customers.count(store),
        todays_washes=sum(1 for t in transactions if t.timestamp.startswith(day_key)),
    )


def revenue_by_day(store: Store, days: int = 7, today: date | None = None) -> pd.DataFrame:
    """Trailing ``days`` days (oldest first, today last), zero-filled."""
    today = today or date.today()
    window = [(today - timedelta(days=i)).isoformat() for i in range(days - 1, -1, -1)]
    totals = {d: Decimal("0.00") for d in window}
    for t in ledger.list_all(store):
        d = _day(t)
        if d in totals:
            totals[d] += t.final_amount

    return pd.DataFrame(
        {
            "day": window,
            "weekday": [date.fromisoformat(d).strftime("%a") for d in window],
            "revenue": [float(totals[d]) for d in window],
        }
    )


def revenue_summary_by_month(store: Store) -> pd.DataFrame:
    transactions = ledger.list_all(store)
    if not transactions:
        return pd.DataFrame(columns=["month", "revenue", "washes"])
    df = pd.DataFrame(
        {
            "month": [t.timestamp[:7] for t in transactions],
            "revenue": [float(t.final_amount) for t in transactions],
        }
    )
    out = df.groupby("month").agg(revenue=("revenue", "sum"), washes=("revenue", "size")).reset_index()
    return out.sort_values("month", ascending=False, ignore_index=True)


def service_counts(transactions) -> Counter:
    return Counter(item.name for t in transactions for item in t.items)


def popular_services(store: Store) -> pd.DataFrame:
    counts = service_counts(ledger.list_all(store))
    df = pd.DataFrame(counts.most_common(), columns=["service", "count"])
    return df


def points_audit(store: Store) -> pd.DataFrame:
    """
    Compare each stored balance with the ledger fold (sum of earned - redeemed).

    Returns only the customers that disagree; an empty frame means the two
    stores are consistent.
    """
    folded: dict[str, int] = {}
    for t in ledger.list_all(store):
        folded[t.customer_id] = folded.get(t.customer_id, 0) + t.points_earned - t.points_redeemed

    rows = []
    for c in customers.list_all(store):
        expected = folded.get(c.id, 0)
        if expected != c.points:
            rows.append({"customer_id": c.id, "name": c.name, "stored": c.points, "ledger": expected})
    return pd.DataFrame(rows, columns=["customer_id", "name", "stored", "ledger"])
