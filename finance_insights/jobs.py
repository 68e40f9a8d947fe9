"""Scheduled refresh jobs: inflation snapshot, deal scraping and deal expiry.

Each job is a plain function; ``run_job`` wraps one so a failure is logged
and the next scheduled run still happens. ``scripts/run_jobs.py`` runs them
once, for use from cron.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from .config import DEAL_STORES, FORECAST_WINDOW
from .db import FinanceStore
from .deals import store_deals
from .errors import InsufficientData, NoInflationData
from .inflation import (
    InflationSource,
    classify_trend,
    current_inflation,
    large_change,
    store_inflation_record,
)
from .models import InflationRecord
from .trends import forecast_series
from .validators import resolve_now, resolve_today

logger = logging.getLogger(__name__)

DealProvider = Callable[[Sequence[str]], Iterable[Mapping[str, Any]]]


def run_job(name: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run ``func`` and return its result, or ``None`` after logging a failure."""
    logger.info("Starting job %s", name)
    started = time.perf_counter()
    try:
        result = func(*args, **kwargs)
    except Exception:
        logger.exception("Job %s failed", name)
        return None
    logger.info("Job %s finished in %.2fs", name, time.perf_counter() - started)
    return result


def refresh_inflation(store: FinanceStore, source: Optional[InflationSource] = None,
                      today: Any = None) -> Optional[InflationRecord]:
    """Record today's inflation snapshot with trend and a one-step prediction."""
    day = resolve_today(today)
    try:
        latest = current_inflation(store, source)
    except NoInflationData:
        logger.warning("No inflation data retrieved from source")
        return None

    # without a source the latest snapshot is already stored; it is not its own predecessor
    skip = {day, latest.date}
    previous_records = [r for r in store.inflation_records(limit=FORECAST_WINDOW + 2) if r.date not in skip]
    previous = previous_records[0].overall_rate if previous_records else None
    trend = classify_trend(latest.overall_rate, previous)

    history = [r.overall_rate for r in reversed(previous_records[:FORECAST_WINDOW - 1])]
    history.append(latest.overall_rate)
    try:
        predicted: Optional[float] = forecast_series(history, 1)[0]
    except InsufficientData:
        logger.warning("Could not generate prediction (needs more historical data)")
        predicted = None

    record = InflationRecord(
        date=day,
        overall_rate=latest.overall_rate,
        trend=trend,
        category_rates=latest.category_rates,
        predicted_rate=predicted,
        source=latest.source,
    )
    store_inflation_record(store, record)
    large_change(latest.overall_rate, previous)
    return record


def refresh_deals(store: FinanceStore, provider: DealProvider,
                  stores: Sequence[str] = DEAL_STORES) -> int:
    deals: List[Mapping[str, Any]] = list(provider(list(stores)))
    if not deals:
        logger.warning("No deals found for %s", ", ".join(stores))
        return 0
    by_store = Counter(deal['store'] for deal in deals)
    logger.info("Fetched %d deals from %d stores: %s", len(deals), len(stores), dict(by_store))
    return store_deals(store, deals)


def expire_deals(store: FinanceStore, now: Any = None) -> int:
    count = store.deactivate_expired_deals(resolve_now(now))
    logger.info("Deactivated %d expired deals", count)
    return count
