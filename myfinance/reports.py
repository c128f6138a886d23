"""
Report aggregation and CSV export.

Aggregates are recomputed from the snapshot on every call; nothing is cached.
"""
from __future__ import annotations
from datetime import date, datetime
from pathlib import Path
from typing import Sequence

import pandas as pd
from dateutil.relativedelta import relativedelta

from myfinance.models import FinanceState, Transaction, Card, CREDIT_CARD_CATEGORY
from myfinance.periods import filter_by_period, includes_card_spend, as_day, month_key
from myfinance.progress import (
    compute_progress, goal_type_label, total_card_used, percent_of, ProgressSnapshot,
)


def _total(transactions: Sequence[Transaction], t_type: str) -> float:
    return sum(t.amount for t in transactions if t.t_type == t_type)


def summarize(transactions: Sequence[Transaction], cards: Sequence[Card]) -> dict:
    """Dashboard totals. Outcome includes every card's current balance."""
    income = _total(transactions, "income")
    outcome = _total(transactions, "outcome") + total_card_used(cards)
    return {
        "income": income,
        "outcome": outcome,
        "balance": income - outcome,
        "committed_percent": percent_of(outcome, income),
    }


def category_summary(
        transactions: Sequence[Transaction],
        cards: Sequence[Card],
        include_card_spend: bool = True,
) -> tuple[dict[str, dict], float]:
    """Per-category ``{"total", "count"}`` over outcomes, and the outcome total.

    Card spend goes into the credit-card category as a single extra entry.
    The returned total only covers transactions.
    """
    categories: dict[str, dict] = {}
    outcomes = [t for t in transactions if t.t_type == "outcome"]

    for t in outcomes:
        entry = categories.setdefault(t.category, {"total": 0.0, "count": 0})
        entry["total"] += t.amount
        entry["count"] += 1

    if include_card_spend and any(card.used > 0 for card in cards):
        entry = categories.setdefault(CREDIT_CARD_CATEGORY, {"total": 0.0, "count": 0})
        entry["total"] += total_card_used(cards)
        entry["count"] += 1

    return categories, sum(t.amount for t in outcomes)


def top_categories(
        transactions: Sequence[Transaction],
        cards: Sequence[Card],
        include_card_spend: bool = True,
        limit: int = 5,
) -> list[tuple[str, float]]:
    categories, _ = category_summary(transactions, cards, include_card_spend)
    ranked = sorted(((name, data["total"]) for name, data in categories.items()),
                    key=lambda item: item[1], reverse=True)
    return ranked[:limit]


def monthly_expenses(
        transactions: Sequence[Transaction],
        now: date | datetime,
        months: int = 6,
) -> list[tuple[str, float]]:
    """Outcome totals for the last ``months`` calendar months, oldest first."""
    month_start = as_day(now).replace(day=1)
    keys = [month_key(month_start - relativedelta(months=i)) for i in range(months - 1, -1, -1)]
    totals = dict.fromkeys(keys, 0.0)

    for t in transactions:
        key = month_key(t.t_date)
        if t.t_type == "outcome" and key in totals:
            totals[key] += t.amount

    return list(totals.items())


def goal_comparison(state: FinanceState, selector, now: date | datetime) -> list[tuple[str, str, ProgressSnapshot]]:
    transactions = filter_by_period(state.transactions, selector, now)
    with_cards = includes_card_spend(selector)
    return [
        (goal.name, goal_type_label(goal), compute_progress(goal, transactions, state.cards, with_cards))
        for goal in state.goals
    ]


# ===== CSV EXPORT =====
def transactions_frame(transactions: Sequence[Transaction]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "date": t.t_date.isoformat(),
                "name": t.name,
                "type": t.t_type,
                "category": t.category,
                "amount": round(t.amount, 2),
                "status": t.status,
            }
            for t in transactions
        ],
        columns=["date", "name", "type", "category", "amount", "status"],
    )


def categories_frame(categories: dict[str, dict], total_expense: float) -> pd.DataFrame:
    rows = [
        {
            "category": name,
            "total": round(data["total"], 2),
            "count": data["count"],
            "percent": round(percent_of(data["total"], total_expense), 1),
        }
        for name, data in sorted(categories.items(), key=lambda item: item[1]["total"], reverse=True)
    ]
    return pd.DataFrame(rows, columns=["category", "total", "count", "percent"])


def goals_frame(comparison) -> pd.DataFrame:
    rows = [
        {
            "goal": name,
            "type": type_label,
            "current": round(progress.current, 2),
            "target": round(progress.target, 2),
            "percent": round(progress.percent, 1),
            "status": progress.status_label,
        }
        for name, type_label, progress in comparison
    ]
    return pd.DataFrame(rows, columns=["goal", "type", "current", "target", "percent", "status"])


def cards_frame(cards: Sequence[Card]) -> pd.DataFrame:
    rows = [
        {
            "name": c.name,
            "brand": c.brand,
            "limit": round(c.limit, 2),
            "used": round(c.used, 2),
            "available": round(c.available, 2),
            "percent_used": round(c.percent_used, 1),
            "closing_day": c.closing_day,
            "due_day": c.due_day,
        }
        for c in cards
    ]
    return pd.DataFrame(
        rows,
        columns=["name", "brand", "limit", "used", "available", "percent_used", "closing_day", "due_day"],
    )


def export_csvs(state: FinanceState, selector, now: date | datetime, output_dir: Path) -> dict[str, int]:
    """Write the report tables for ``selector`` and return the row count per file."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    transactions = filter_by_period(state.transactions, selector, now)
    categories, total_expense = category_summary(transactions, state.cards, includes_card_spend(selector))

    exports = {
        "transactions.csv": transactions_frame(transactions),
        "categories.csv": categories_frame(categories, total_expense),
        "goals.csv": goals_frame(goal_comparison(state, selector, now)),
        "cards.csv": cards_frame(state.cards),
    }
    written = {}
    for filename, df in exports.items():
        df.to_csv(output_dir / filename, index=False)
        written[filename] = len(df)
    return written
