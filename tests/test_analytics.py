"""Tests for the dashboard overview and monthly summary."""

from __future__ import annotations

from datetime import date

import pytest

from finance_insights import analytics
from finance_insights.errors import InvalidInput

OWNER = 'user-1'
OTHER_OWNER = 'user-2'


def test_dashboard_summary_current_month(store, june_budget, groceries, transport) -> None:
    store.add_expense(OWNER, groceries.id, 120.50, '2024-06-03', 'Migros')
    store.add_expense(OWNER, transport.id, 30, '2024-06-10', 'Metro')
    store.add_expense(OWNER, groceries.id, 500, '2024-05-28', 'Migros')

    summary = analytics.dashboard_summary(store, OWNER, today=date(2024, 6, 15))
    assert summary['period'] == '2024-06'
    assert summary['total_expenses'] == 150.5
    assert summary['expense_count'] == 2
    assert summary['total_budget'] == 1000.0
    # 15.05% rounds to a whole percent
    assert summary['budget_usage'] == 15
    assert isinstance(summary['budget_usage'], int)
    assert [row['category'] for row in summary['category_breakdown']] == ['Groceries', 'Transportation']


def test_dashboard_recent_expenses_newest_first(store, groceries) -> None:
    for day in range(1, 13):
        store.add_expense(OWNER, groceries.id, day, date(2024, 6, day))
    recent = analytics.dashboard_summary(store, OWNER, today=date(2024, 6, 15))['recent_expenses']
    assert len(recent) == 10
    assert recent[0]['date'] == '2024-06-12'
    assert recent[-1]['date'] == '2024-06-03'


def test_dashboard_without_budget_or_expenses(store) -> None:
    summary = analytics.dashboard_summary(store, OWNER, today=date(2024, 6, 15))
    assert summary['total_expenses'] == 0.0
    assert summary['budget_usage'] == 0
    assert summary['recent_expenses'] == []
    assert summary['category_breakdown'] == []


def test_dashboard_ignores_other_owners(store, groceries) -> None:
    other = store.add_category(OTHER_OWNER, 'Groceries')
    store.add_expense(OTHER_OWNER, other.id, 999, '2024-06-03')
    assert analytics.dashboard_summary(store, OWNER, today=date(2024, 6, 15))['expense_count'] == 0


def test_monthly_summary_daily_series_covers_whole_month(store, groceries) -> None:
    store.add_expense(OWNER, groceries.id, 40, '2024-02-10')
    summary = analytics.monthly_summary(store, OWNER, '2024-02')
    daily = summary['daily_spending']
    assert len(daily) == 29
    assert daily[0] == {'date': '2024-02-01', 'amount': 0.0}
    assert daily[9] == {'date': '2024-02-10', 'amount': 40.0}


def test_monthly_summary_categories_and_stats(store, june_budget, groceries, transport) -> None:
    store.add_expense(OWNER, groceries.id, 300, '2024-06-03', 'Migros')
    store.add_expense(OWNER, groceries.id, 100, '2024-06-04', 'Migros')
    store.add_expense(OWNER, transport.id, 100, '2024-06-04', 'Taxi')

    summary = analytics.monthly_summary(store, OWNER, '2024-06')
    assert summary['month'] == '2024-06'
    assert summary['spending_by_category'] == [
        {'category': 'Groceries', 'amount': 400.0, 'percentage': 80},
        {'category': 'Transportation', 'amount': 100.0, 'percentage': 20},
    ]

    stats = summary['stats']
    assert stats['busiest_day'] == {'date': '2024-06-03', 'amount': 300.0}
    assert stats['top_category'] == {'name': 'Groceries', 'amount': 400.0}
    assert stats['most_frequent_merchant'] == {'name': 'Migros', 'count': 2}
    assert stats['average_transaction'] == pytest.approx(166.67)


def test_monthly_summary_budget_comparison(store, june_budget, groceries, transport) -> None:
    store.add_expense(OWNER, groceries.id, 380, '2024-06-03')
    store.add_expense(OWNER, transport.id, 250, '2024-06-04')
    comparison = analytics.monthly_summary(store, OWNER, '2024-06')['category_comparison']
    assert comparison == [
        {'category': 'Groceries', 'budget': 400.0, 'spent': 380.0, 'percentage': 95.0, 'status': 'warning'},
        {'category': 'Transportation', 'budget': 200.0, 'spent': 250.0, 'percentage': 125.0, 'status': 'over'},
    ]


def test_monthly_summary_empty_month(store) -> None:
    summary = analytics.monthly_summary(store, OWNER, '2024-04')
    assert summary['spending_by_category'] == []
    assert summary['category_comparison'] == []
    assert len(summary['daily_spending']) == 30
    assert summary['stats']['top_category'] == {'name': 'None', 'amount': 0.0}
    assert summary['stats']['most_frequent_merchant'] == {'name': 'None', 'count': 0}
    assert summary['stats']['average_transaction'] == 0.0


def test_monthly_summary_rejects_bad_month(store) -> None:
    with pytest.raises(InvalidInput):
        analytics.monthly_summary(store, OWNER, 'not-a-month')
