"""Dashboard and per-month analytics assembled from the lower-level engines."""

from __future__ import annotations

import logging
from collections import Counter
from decimal import Decimal
from typing import Any, Dict, List

import pandas as pd

from .aggregation import aggregate_frame, category_breakdown, total_cents
from .budgets import classify_tier, usage_percent
from .config import RECENT_EXPENSES_LIMIT
from .db import FinanceStore
from .money import display_amount, percentage, round_display, round_half_up
from .validators import parse_month, resolve_today

logger = logging.getLogger(__name__)


def dashboard_summary(store: FinanceStore, owner_id: str, today: Any = None) -> Dict[str, Any]:
    """Current-month spend against the budgets active today."""
    day = resolve_today(today)
    month = pd.Period(day, freq='M')
    start, end = month.start_time.date(), month.end_time.date()

    expenses = store.fetch_expenses(owner_id, start, end)
    spent = total_cents(expenses)
    budget_total = sum(b.total_cents for b in store.current_budgets(owner_id, day))
    usage = round_half_up(percentage(spent, budget_total)) if budget_total > 0 else 0

    return {
        'period': str(month),
        'total_expenses': display_amount(spent),
        'expense_count': len(expenses),
        'total_budget': display_amount(budget_total),
        'budget_usage': usage,
        'recent_expenses': [e.to_dict() for e in store.recent_expenses(owner_id, RECENT_EXPENSES_LIMIT)],
        'category_breakdown': category_breakdown(aggregate_frame(expenses, 'category')),
    }


def _spending_by_category(expenses: pd.DataFrame, spent: int) -> List[Dict[str, Any]]:
    if expenses.empty:
        return []
    names = expenses['Category'].fillna('Uncategorized')
    totals = expenses.groupby(names)['Amount Cents'].sum().reset_index()
    totals.columns = ['category', 'cents']
    totals = totals.sort_values(['cents', 'category'], ascending=[False, True])
    return [
        {
            'category': row['category'],
            'amount': display_amount(int(row['cents'])),
            'percentage': round_half_up(percentage(int(row['cents']), spent)) if spent else 0,
        }
        for row in totals.to_dict('records')
    ]


def _category_comparison(store: FinanceStore, owner_id: str, expenses: pd.DataFrame,
                         start, end) -> List[Dict[str, Any]]:
    budgets = store.budgets_overlapping(owner_id, start, end)
    if not budgets:
        return []
    if expenses.empty:
        spent_by_category: Dict[int, int] = {}
    else:
        spent_by_category = {
            int(k): int(v) for k, v in expenses.groupby('Category ID')['Amount Cents'].sum().items()
        }
    rows = []
    for allocation in budgets[0].allocations:
        spent = spent_by_category.get(allocation.category_id, 0)
        pct = usage_percent(spent, allocation.amount_cents)
        rows.append({
            'category': allocation.category_name,
            'budget': display_amount(allocation.amount_cents),
            'spent': display_amount(spent),
            'percentage': round_display(pct, 1),
            'status': classify_tier(pct),
        })
    return rows


def monthly_summary(store: FinanceStore, owner_id: str, month: str) -> Dict[str, Any]:
    """Category shares, daily spend, budget comparison and headline stats for ``YYYY-MM``."""
    period = parse_month(month)
    start, end = period.start_time.date(), period.end_time.date()
    expenses = store.fetch_expenses(owner_id, start, end)
    spent = total_cents(expenses)

    by_category = _spending_by_category(expenses, spent)
    daily = aggregate_frame(expenses, 'day', start, end, fill_days=True)
    daily_spending = [{'date': bucket.bucket, 'amount': bucket.total} for bucket in daily]

    # earliest day wins ties
    busiest = max(daily, key=lambda b: b.total_cents)
    merchants = Counter()
    if not expenses.empty:
        merchants.update(d.strip() if isinstance(d, str) and d.strip() else 'Unknown'
                         for d in expenses['Description'])
    top_merchant = merchants.most_common(1)

    stats = {
        'busiest_day': {'date': busiest.bucket, 'amount': busiest.total},
        'top_category': {
            'name': by_category[0]['category'] if by_category else 'None',
            'amount': by_category[0]['amount'] if by_category else 0.0,
        },
        'most_frequent_merchant': {
            'name': top_merchant[0][0] if top_merchant else 'None',
            'count': top_merchant[0][1] if top_merchant else 0,
        },
        'average_transaction': (
            display_amount(round_half_up(Decimal(spent) / len(expenses))) if len(expenses) else 0.0
        ),
    }
    logger.debug("Monthly summary for %s %s: %d expenses", owner_id, period, len(expenses))
    return {
        'month': str(period),
        'spending_by_category': by_category,
        'daily_spending': daily_spending,
        'category_comparison': _category_comparison(store, owner_id, expenses, start, end),
        'stats': stats,
    }
