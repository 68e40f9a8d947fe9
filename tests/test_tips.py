"""Tests for savings tip personalisation and feedback."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from finance_insights import tips
from finance_insights.errors import NotFound

OWNER = 'user-1'
OTHER_OWNER = 'user-2'
TODAY = date(2024, 6, 15)


@pytest.fixture
def catalogue(store):
    created = datetime(2024, 1, 1)
    return {
        'retail': store.add_tip('Shop discount markets', 'Compare prices', 'RETAIL', 'HIGH', created_at=created),
        'transport': store.add_tip('Use public transport', 'Monthly pass', 'TRANSPORT', created_at=created),
        'dining': store.add_tip('Cook at home', 'Meal prep', 'DINING', created_at=created),
        'banking': store.add_tip('Use a deposit account', 'Earn interest', 'BANKING', 'LOW', created_at=created),
        'crypto': store.add_tip('Mind exchange fees', 'Fees add up', 'CRYPTO', created_at=created),
    }


def _titles(result):
    return [tip['title'] for tip in result]


def test_relevant_categories_follow_thresholds() -> None:
    spending = {'groceries': 500001, 'transportation': 200000, 'dining': 300001}
    assert tips.relevant_tip_categories(spending) == ['RETAIL', 'DINING', 'BANKING', 'CRYPTO']
    assert tips.relevant_tip_categories({}) == ['BANKING', 'CRYPTO']


def test_without_spending_only_general_tips(store, catalogue) -> None:
    result = tips.personalized_tips(store, OWNER, today=TODAY)
    # MEDIUM before LOW
    assert _titles(result) == ['Mind exchange fees', 'Use a deposit account']


def test_heavy_grocery_spending_unlocks_retail_tips(store, catalogue, groceries) -> None:
    store.add_expense(OWNER, groceries.id, 5200, '2024-06-01')
    result = tips.personalized_tips(store, OWNER, today=TODAY)
    assert _titles(result)[0] == 'Shop discount markets'
    assert 'Use public transport' not in _titles(result)


def test_old_spending_outside_last_month_ignored(store, catalogue, groceries) -> None:
    store.add_expense(OWNER, groceries.id, 9000, '2024-04-01')
    assert 'Shop discount markets' not in _titles(tips.personalized_tips(store, OWNER, today=TODAY))


def test_dismissed_tips_are_hidden_per_owner(store, catalogue) -> None:
    tips.dismiss_tip(store, OWNER, catalogue['crypto'].id)
    assert _titles(tips.personalized_tips(store, OWNER, today=TODAY)) == ['Use a deposit account']
    assert len(tips.personalized_tips(store, OTHER_OWNER, today=TODAY)) == 2


def test_result_is_capped(store) -> None:
    for i in range(15):
        store.add_tip(f'Tip {i}', 'General advice', 'BANKING')
    assert len(tips.personalized_tips(store, OWNER, today=TODAY)) == 10


def test_viewed_and_feedback_reflected(store, catalogue) -> None:
    banking = catalogue['banking'].id
    tips.mark_tip_viewed(store, OWNER, banking, now=datetime(2024, 6, 15, 9, 30))
    tips.submit_tip_feedback(store, OWNER, banking, helpful=False)

    by_id = {tip['id']: tip for tip in tips.personalized_tips(store, OWNER, today=TODAY)}
    assert by_id[banking]['viewed'] is True
    assert by_id[banking]['helpful'] is False
    assert by_id[catalogue['crypto'].id]['helpful'] is None
    assert store.user_tips(OWNER)[banking].viewed_at == datetime(2024, 6, 15, 9, 30)


def test_tip_effectiveness(store, catalogue) -> None:
    tip_id = catalogue['retail'].id
    tips.submit_tip_feedback(store, 'a', tip_id, True)
    tips.submit_tip_feedback(store, 'b', tip_id, True)
    tips.submit_tip_feedback(store, 'c', tip_id, False)
    tips.dismiss_tip(store, 'd', tip_id)

    assert tips.tip_effectiveness(store, tip_id) == {
        'total_views': 3,
        'helpful_votes': 2,
        'not_helpful_votes': 1,
        'dismissals': 1,
        'helpful_percentage': 67,
    }


def test_tip_effectiveness_without_feedback(store, catalogue) -> None:
    assert tips.tip_effectiveness(store, catalogue['dining'].id)['helpful_percentage'] == 0


@pytest.mark.parametrize('action', [
    lambda store: tips.mark_tip_viewed(store, OWNER, 999),
    lambda store: tips.submit_tip_feedback(store, OWNER, 999, True),
    lambda store: tips.dismiss_tip(store, OWNER, 999),
    lambda store: tips.tip_effectiveness(store, 999),
])
def test_unknown_tip(store, action) -> None:
    with pytest.raises(NotFound):
        action(store)


def test_all_tips_includes_every_active_category(store, catalogue) -> None:
    assert len(tips.all_tips(store)) == 5
