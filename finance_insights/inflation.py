"""Inflation snapshots, forecasts and their impact on budgets.

Rates are stored as percentages (``72.1`` means 72.1 %). Category-specific
rates are keyed by lower-cased category name and override the overall rate
when present. Money is scaled in cents with Decimal rates and rounded
half-up, so ``8000 * (1 + 72.1 / 100)`` is exactly ``13768.00``.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from .config import (
    DEFAULT_FORECAST_MONTHS,
    DEFAULT_HISTORY_MONTHS,
    FORECAST_MONTHS_RANGE,
    FORECAST_WINDOW,
    HISTORY_MONTHS_RANGE,
    LARGE_CHANGE_POINTS,
    TREND_DELTA_POINTS,
)
from .db import FinanceStore
from .errors import NoActiveBudget, NoInflationData, UpstreamUnavailable
from .models import Budget, InflationRecord
from .money import HUNDRED, display_amount, round_display, scale_cents, to_decimal
from .trends import forecast_series
from .validators import require_text, resolve_today, validate_months

logger = logging.getLogger(__name__)

# A zero-argument callable returning the latest upstream snapshot, raising
# UpstreamUnavailable when the provider cannot be reached.
InflationSource = Callable[[], InflationRecord]


def classify_trend(current: float, previous: Optional[float]) -> str:
    if previous is None:
        return 'stable'
    if current > previous + TREND_DELTA_POINTS:
        return 'up'
    if current < previous - TREND_DELTA_POINTS:
        return 'down'
    return 'stable'


def large_change(current: float, previous: Optional[float]) -> bool:
    """Flag (and log) a swing of at least ``LARGE_CHANGE_POINTS`` between snapshots."""
    if previous is None:
        return False
    change = current - previous
    if abs(change) >= LARGE_CHANGE_POINTS:
        logger.warning("Significant inflation change detected: %+.1f points", change)
        return True
    return False


def _require_latest(store: FinanceStore) -> InflationRecord:
    record = store.latest_inflation_record()
    if record is None:
        raise NoInflationData()
    return record


def current_inflation(store: FinanceStore, source: Optional[InflationSource] = None) -> InflationRecord:
    """Latest snapshot, from ``source`` when given, otherwise from the store."""
    if source is not None:
        try:
            return source()
        except UpstreamUnavailable as exc:
            logger.warning("Inflation source unavailable (%s); using stored data", exc.message)
    return _require_latest(store)


def inflation_history(store: FinanceStore, months: Any = DEFAULT_HISTORY_MONTHS,
                      today: Any = None) -> List[InflationRecord]:
    """Snapshots dated within the trailing ``months`` months, newest first."""
    months = validate_months(months, HISTORY_MONTHS_RANGE)
    since = (pd.Timestamp(resolve_today(today)) - pd.DateOffset(months=months)).date()
    records = store.inflation_records(since=since)
    logger.debug("%d inflation records since %s", len(records), since)
    return records


def inflation_forecast(store: FinanceStore, months: Any = DEFAULT_FORECAST_MONTHS) -> Dict[str, Any]:
    months = validate_months(months, FORECAST_MONTHS_RANGE)
    recent = store.inflation_records(limit=FORECAST_WINDOW)
    rates = [record.overall_rate for record in reversed(recent)]
    predictions = forecast_series(rates, months, window=FORECAST_WINDOW)
    return {'predictions': [round_display(p) for p in predictions], 'months': months}


def category_inflation_rate(store: FinanceStore, name: str) -> float:
    name = require_text(name, 'Category name')
    return _require_latest(store).rate_for(name)


def store_inflation_record(store: FinanceStore, record: InflationRecord) -> InflationRecord:
    store.upsert_inflation_record(record)
    logger.info("Stored inflation snapshot for %s: %.2f%% (%s)",
                record.date.isoformat(), record.overall_rate, record.trend)
    return record


def _impact_budget(store: FinanceStore, owner_id: str, budget_id: Optional[int], today: date) -> Budget:
    if budget_id is not None:
        budget = store.get_budget(budget_id, owner_id)
        if budget is None:
            raise NoActiveBudget("Budget not found for this user")
        return budget
    candidates = store.current_budgets(owner_id, today)
    if len(candidates) != 1:
        if candidates:
            logger.warning("%d active budgets cover %s for %s; pass a budget id",
                           len(candidates), today.isoformat(), owner_id)
            raise NoActiveBudget("Several active budgets found; specify which one")
        raise NoActiveBudget()
    return candidates[0]


def impact_for_budget(budget: Budget, record: InflationRecord) -> Dict[str, Any]:
    """Per-allocation cost increase of ``budget`` under ``record``'s rates."""
    category_impacts: List[Dict[str, Any]] = []
    total_impact_cents = 0
    for allocation in budget.allocations:
        rate = to_decimal(record.rate_for(allocation.category_name))
        adjusted_cents = scale_cents(allocation.amount_cents, 1 + rate / HUNDRED)
        impact_cents = adjusted_cents - allocation.amount_cents
        total_impact_cents += impact_cents
        category_impacts.append({
            'category': allocation.category_name,
            'rate': float(rate),
            'current_spending': display_amount(allocation.amount_cents),
            'adjusted_spending': display_amount(adjusted_cents),
            'impact': display_amount(impact_cents),
            'impact_percentage': round_display(Decimal(impact_cents) * HUNDRED / Decimal(allocation.amount_cents)),
        })
    return {
        'budget_id': budget.id,
        'inflation_date': record.date.isoformat(),
        'total_impact': display_amount(total_impact_cents),
        'category_impacts': category_impacts,
    }


def budget_impact(store: FinanceStore, owner_id: str, budget_id: Optional[int] = None,
                  now: Any = None) -> Dict[str, Any]:
    record = _require_latest(store)
    budget = _impact_budget(store, owner_id, budget_id, resolve_today(now))
    return impact_for_budget(budget, record)
