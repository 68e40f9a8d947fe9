"""Spending aggregation over expense records.

Every other analytic in the package starts here: expenses are fetched per
owner and date window and grouped by category, day or month. Sums are taken
over integer cents so totals are exact; conversion to two-decimal amounts
happens only in :meth:`SpendingBucket.to_dict`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from .config import UNKNOWN_CATEGORY
from .db import EXPENSE_COLUMNS, FinanceStore
from .errors import InvalidInput
from .models import Expense
from .money import display_amount
from .validators import parse_date

logger = logging.getLogger(__name__)

GROUP_BY_OPTIONS = ('category', 'day', 'month')


@dataclass
class SpendingBucket:
    bucket: Any
    total_cents: int
    count: int
    label: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None

    @property
    def total(self) -> float:
        return display_amount(self.total_cents)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'bucket': self.bucket, 'total': self.total, 'count': self.count}
        if self.label is not None:
            payload['label'] = self.label
        return payload


def _text_or(value: Any, default: str) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return default
    return str(value)


def expenses_to_frame(expenses: Iterable[Expense]) -> pd.DataFrame:
    """Build the same frame shape :meth:`FinanceStore.fetch_expenses` returns."""
    rows = [
        {
            'id': e.id,
            'owner_id': e.owner_id,
            'Category ID': e.category_id,
            'Category': e.category_name,
            'Color': None,
            'Icon': None,
            'Amount Cents': int(e.amount_cents),
            'Date': pd.Timestamp(e.occurred_at),
            'Description': e.description,
        }
        for e in expenses
    ]
    if not rows:
        return pd.DataFrame(columns=EXPENSE_COLUMNS)
    df = pd.DataFrame(rows, columns=EXPENSE_COLUMNS)
    df['Date'] = pd.to_datetime(df['Date'])
    df['Amount Cents'] = df['Amount Cents'].astype('int64')
    return df


def filter_by_date_range(expenses: pd.DataFrame, start_date: Optional[date] = None,
                         end_date: Optional[date] = None) -> pd.DataFrame:
    """Filter data by date range, both ends inclusive."""
    data = expenses
    if data.empty:
        return data
    if start_date:
        data = data[data['Date'] >= pd.Timestamp(start_date)]
    if end_date:
        data = data[data['Date'] <= pd.Timestamp(end_date)]
    return data


def total_cents(expenses: pd.DataFrame) -> int:
    if expenses.empty:
        return 0
    return int(expenses['Amount Cents'].sum())


def aggregate_frame(
    expenses: pd.DataFrame,
    group_by: str = 'category',
    start_date: Any = None,
    end_date: Any = None,
    fill_days: bool = False,
) -> List[SpendingBucket]:
    """Group an expense frame (as returned by :meth:`FinanceStore.fetch_expenses`).

    Category buckets are ordered by total descending with ties broken by
    category id; day and month buckets are chronological. With
    ``fill_days`` every calendar day between the bounds is emitted, zero
    days included.
    """
    if group_by not in GROUP_BY_OPTIONS:
        raise InvalidInput(f"group_by must be one of {', '.join(GROUP_BY_OPTIONS)}")
    start = parse_date(start_date, 'start date')
    end = parse_date(end_date, 'end date')
    if fill_days and (group_by != 'day' or start is None or end is None):
        raise InvalidInput("fill_days requires day grouping with both start and end dates")

    data = filter_by_date_range(expenses, start, end)

    if group_by == 'category':
        if data.empty:
            return []
        grouped = (
            data.groupby('Category ID', sort=False)
            .agg(
                total=('Amount Cents', 'sum'),
                count=('Amount Cents', 'size'),
                label=('Category', 'first'),
                color=('Color', 'first'),
                icon=('Icon', 'first'),
            )
            .reset_index()
            .sort_values(['total', 'Category ID'], ascending=[False, True])
        )
        return [
            SpendingBucket(
                bucket=int(row['Category ID']),
                total_cents=int(row['total']),
                count=int(row['count']),
                label=_text_or(row['label'], UNKNOWN_CATEGORY['name']),
                color=_text_or(row['color'], UNKNOWN_CATEGORY['color']),
                icon=_text_or(row['icon'], UNKNOWN_CATEGORY['icon']),
            )
            for row in grouped.to_dict('records')
        ]

    freq = 'D' if group_by == 'day' else 'M'
    if data.empty:
        if not fill_days:
            return []
        return [SpendingBucket(bucket=str(day), total_cents=0, count=0)
                for day in pd.period_range(pd.Timestamp(start), pd.Timestamp(end), freq='D')]

    periods = data['Date'].dt.to_period(freq)
    grouped = data.groupby(periods)['Amount Cents'].agg(['sum', 'size']).sort_index()
    if fill_days:
        days = pd.period_range(pd.Timestamp(start), pd.Timestamp(end), freq="D")
        grouped = grouped.reindex(days, fill_value=0)
    return [
        SpendingBucket(bucket=str(period), total_cents=int(row['sum']), count=int(row['size']))
        for period, row in grouped.iterrows()
    ]


def aggregate(
    store: FinanceStore,
    owner_id: str,
    start_date: Any = None,
    end_date: Any = None,
    group_by: str = 'category',
    fill_days: bool = False,
) -> List[SpendingBucket]:
    """Fetch an owner's expenses in ``[start_date, end_date]`` and group them."""
    if group_by not in GROUP_BY_OPTIONS:
        raise InvalidInput(f"group_by must be one of {', '.join(GROUP_BY_OPTIONS)}")
    expenses = store.fetch_expenses(owner_id, start_date, end_date)
    return aggregate_frame(expenses, group_by, start_date, end_date, fill_days=fill_days)


def category_breakdown(buckets: List[SpendingBucket]) -> List[Dict[str, Any]]:
    return [
        {
            'category': bucket.label,
            'category_id': bucket.bucket,
            'amount': bucket.total,
            'count': bucket.count,
            'color': bucket.color,
            'icon': bucket.icon,
        }
        for bucket in buckets
    ]


def spending_by_category(store: FinanceStore, owner_id: str, start_date: Any = None,
                         end_date: Any = None) -> List[Dict[str, Any]]:
    """Category totals for an owner, largest first."""
    buckets = aggregate(store, owner_id, start_date, end_date, group_by='category')
    logger.debug("Category breakdown for %s: %d categories", owner_id, len(buckets))
    return category_breakdown(buckets)
