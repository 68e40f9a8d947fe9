"""Tests for inflation history, forecasting and budget impact."""

from __future__ import annotations

import logging
from datetime import date

import pytest

from finance_insights import inflation
from finance_insights.errors import (
    InsufficientData,
    InvalidInput,
    NoActiveBudget,
    NoInflationData,
    UpstreamUnavailable,
)
from finance_insights.models import InflationRecord

OWNER = 'user-1'


def _record(day, rate, **kwargs):
    return InflationRecord(date=day, overall_rate=rate, **kwargs)


def _store_rates(store, rates, year=2024):
    for month, rate in enumerate(rates, start=1):
        store.upsert_inflation_record(_record(date(year, month, 1), rate))


def test_groceries_impact_uses_category_rate(store, groceries) -> None:
    store.upsert_inflation_record(_record(date(2024, 6, 1), 61.8, category_rates={'groceries': 72.1}))
    budget = store.add_budget(OWNER, 10000, '2024-06-01', '2024-06-30', allocations=[(groceries.id, 8000)])

    result = inflation.budget_impact(store, OWNER, now=date(2024, 6, 15))
    assert result['budget_id'] == budget.id
    assert result['total_impact'] == 5768.0
    assert result['category_impacts'] == [{
        'category': 'Groceries',
        'rate': 72.1,
        'current_spending': 8000.0,
        'adjusted_spending': 13768.0,
        'impact': 5768.0,
        'impact_percentage': 72.1,
    }]


def test_impact_falls_back_to_overall_rate(store, groceries, transport) -> None:
    store.upsert_inflation_record(_record(date(2024, 6, 1), 50.0, category_rates={'groceries': 72.1}))
    budget = store.add_budget(OWNER, 10000, '2024-06-01', '2024-06-30',
                              allocations=[(groceries.id, 100), (transport.id, 200)])

    result = inflation.budget_impact(store, OWNER, budget_id=budget.id)
    impacts = {row['category']: row['impact'] for row in result['category_impacts']}
    assert impacts == {'Groceries': 72.1, 'Transportation': 100.0}
    assert result['total_impact'] == 172.1


def test_zero_category_rate_is_respected(store, groceries) -> None:
    store.upsert_inflation_record(_record(date(2024, 6, 1), 50.0, category_rates={'groceries': 0}))
    budget = store.add_budget(OWNER, 100, '2024-06-01', '2024-06-30', allocations=[(groceries.id, 100)])
    assert inflation.budget_impact(store, OWNER, budget.id)['total_impact'] == 0.0


def test_impact_requires_inflation_data_first(store) -> None:
    with pytest.raises(NoInflationData):
        inflation.budget_impact(store, OWNER)


def test_impact_requires_exactly_one_active_budget(store, groceries) -> None:
    store.upsert_inflation_record(_record(date(2024, 6, 1), 50.0))
    with pytest.raises(NoActiveBudget):
        inflation.budget_impact(store, OWNER, now=date(2024, 6, 15))

    store.add_budget(OWNER, 100, '2024-06-01', '2024-06-30')
    store.add_budget(OWNER, 200, '2024-06-10', '2024-06-20')
    with pytest.raises(NoActiveBudget):
        inflation.budget_impact(store, OWNER, now=date(2024, 6, 15))
    with pytest.raises(NoActiveBudget):
        inflation.budget_impact(store, OWNER, budget_id=12345)


def test_current_inflation_prefers_source(store) -> None:
    store.upsert_inflation_record(_record(date(2024, 5, 1), 60.0))
    fresh = _record(date(2024, 6, 1), 61.8, source='upstream')
    assert inflation.current_inflation(store, lambda: fresh) is fresh


def test_current_inflation_falls_back_to_stored(store, caplog) -> None:
    store.upsert_inflation_record(_record(date(2024, 5, 1), 60.0))

    def broken():
        raise UpstreamUnavailable("timeout")

    with caplog.at_level(logging.WARNING, logger='finance_insights'):
        record = inflation.current_inflation(store, broken)
    assert record.overall_rate == 60.0
    assert 'using stored data' in caplog.text


def test_current_inflation_without_any_data(store) -> None:
    with pytest.raises(NoInflationData):
        inflation.current_inflation(store)


def test_history_window_and_order(store) -> None:
    _store_rates(store, [70.0, 68.0, 66.0, 64.0, 62.0, 60.0])
    history = inflation.inflation_history(store, 3, today=date(2024, 6, 15))
    assert [r.date for r in history] == [date(2024, 6, 1), date(2024, 5, 1), date(2024, 4, 1)]


@pytest.mark.parametrize('months', [0, 25])
def test_history_month_bounds(store, months) -> None:
    with pytest.raises(InvalidInput):
        inflation.inflation_history(store, months)


def test_forecast_uses_six_most_recent_records(store) -> None:
    # an old outlier in January is outside the window
    _store_rates(store, [500.0, 10.0, 12.0, 14.0, 16.0, 18.0, 20.0])
    assert inflation.inflation_forecast(store, 2) == {'predictions': [22.0, 24.0], 'months': 2}


def test_forecast_month_bounds_and_data(store) -> None:
    with pytest.raises(InvalidInput):
        inflation.inflation_forecast(store, 13)
    with pytest.raises(InsufficientData):
        inflation.inflation_forecast(store, 3)
    store.upsert_inflation_record(_record(date(2024, 1, 1), 50.0))
    with pytest.raises(InsufficientData):
        inflation.inflation_forecast(store, 3)


def test_category_inflation_rate(store) -> None:
    store.upsert_inflation_record(_record(date(2024, 6, 1), 61.8, category_rates={'groceries': 72.1}))
    assert inflation.category_inflation_rate(store, 'Groceries') == 72.1
    assert inflation.category_inflation_rate(store, 'electronics') == 61.8
    with pytest.raises(InvalidInput):
        inflation.category_inflation_rate(store, ' ')


@pytest.mark.parametrize(
    'current,previous,trend',
    [(65.0, 60.0, 'up'), (61.0, 60.0, 'stable'), (59.0, 60.0, 'stable'), (58.5, 60.0, 'down'), (60.0, None, 'stable')],
)
def test_classify_trend(current, previous, trend) -> None:
    assert inflation.classify_trend(current, previous) == trend


def test_large_change_is_logged(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger='finance_insights'):
        assert inflation.large_change(66.0, 61.0)
        assert not inflation.large_change(64.9, 61.0)
        assert not inflation.large_change(60.0, None)
    assert 'Significant inflation change' in caplog.text


def test_store_inflation_record_is_idempotent(store) -> None:
    record = _record(date(2024, 6, 1), 61.8)
    inflation.store_inflation_record(store, record)
    inflation.store_inflation_record(store, record)
    assert len(store.inflation_records()) == 1
