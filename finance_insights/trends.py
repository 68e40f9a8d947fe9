"""Monthly spending trends and least-squares forecasting."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import DEFAULT_TREND_MONTHS, FORECAST_WINDOW, TREND_MONTHS_RANGE
from .db import FinanceStore
from .errors import InsufficientData
from .money import display_amount
from .validators import resolve_today, validate_months

logger = logging.getLogger(__name__)


def trailing_months(months: int, today: Any = None) -> pd.PeriodIndex:
    """The last ``months`` calendar months ending with the current one."""
    current = pd.Period(resolve_today(today), freq='M')
    return pd.period_range(end=current, periods=months, freq='M')


def monthly_trends(store: FinanceStore, owner_id: str, months: Any = DEFAULT_TREND_MONTHS,
                   today: Any = None) -> List[Dict[str, Any]]:
    """Per-month totals for the trailing window, oldest first, empty months as zero."""
    months = validate_months(months, TREND_MONTHS_RANGE)
    periods = trailing_months(months, today)
    start = periods[0].start_time.date()
    end = periods[-1].end_time.date()

    expenses = store.fetch_expenses(owner_id, start, end)
    if expenses.empty:
        grouped = pd.DataFrame({'sum': 0, 'size': 0}, index=periods)
    else:
        grouped = (
            expenses.groupby(expenses['Date'].dt.to_period('M'))['Amount Cents']
            .agg(['sum', 'size'])
            .reindex(periods, fill_value=0)
        )

    return [
        {
            'month': period.strftime('%b %Y'),
            'period': str(period),
            'total': display_amount(int(row['sum'])),
            'count': int(row['size']),
        }
        for period, row in grouped.iterrows()
    ]


def fit_line(series: Sequence[float]) -> Tuple[float, float]:
    """Ordinary least squares over x = 0..n-1; returns ``(slope, intercept)``."""
    y = np.asarray(series, dtype=float)
    n = len(y)
    if n < 2:
        raise InsufficientData(f"Need at least 2 data points to forecast, got {n}")
    x = np.arange(n, dtype=float)
    sum_x = x.sum()
    sum_y = y.sum()
    sum_xy = (x * y).sum()
    sum_x2 = (x * x).sum()
    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    return float(slope), float(intercept)


def linear_forecast(series: Sequence[float], periods: int = 1) -> List[float]:
    """Project ``periods`` values past the end of ``series``, floored at zero."""
    slope, intercept = fit_line(series)
    n = len(series)
    return [max(0.0, intercept + slope * (n + k)) for k in range(periods)]


def forecast_series(series: Sequence[float], horizon: int, window: int = FORECAST_WINDOW) -> List[float]:
    """Multi-step forecast built one step at a time.

    Starts from the last ``window`` points; each prediction is appended to
    the working series and the line is refitted before the next step.
    """
    values = [float(v) for v in list(series)[-window:]]
    if len(values) < 2:
        raise InsufficientData(f"Need at least 2 data points to forecast, got {len(values)}")
    predictions: List[float] = []
    for _ in range(horizon):
        predicted = linear_forecast(values, 1)[0]
        predictions.append(predicted)
        values.append(predicted)
    return predictions
