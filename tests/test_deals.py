"""Tests for the geo deal matcher and saved deals."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from finance_insights import deals
from finance_insights.errors import InvalidInput, NotFound
from finance_insights.models import Location

OWNER = 'user-1'
NOW = datetime(2024, 6, 15, 12, 0)
TAKSIM = (41.0082, 28.9784)


def _add(store, product, lat, lng, old=100, new=80, category='groceries', days=7, shop='Migros', **kwargs):
    return store.add_deal(product, shop, old, new, {'lat': lat, 'lng': lng},
                          NOW + timedelta(days=days), category=category, **kwargs)


def test_haversine_identity_and_symmetry() -> None:
    assert deals.haversine_km(41.0082, 28.9784, 41.0082, 28.9784) == 0.0
    a = deals.haversine_km(41.0082, 28.9784, 39.9334, 32.8597)
    b = deals.haversine_km(39.9334, 32.8597, 41.0082, 28.9784)
    assert a == b
    # Istanbul to Ankara is roughly 350 km as the crow flies
    assert 340 < a < 360


def test_haversine_vectorised() -> None:
    result = deals.haversine_km(0.0, 0.0, np.array([0.0, 0.0]), np.array([0.0, 1.0]))
    assert result.shape == (2,)
    assert result[0] == 0.0
    # one degree of longitude on the equator
    assert result[1] == pytest.approx(111.19, abs=0.01)


def test_istanbul_scenario(store) -> None:
    far = _add(store, 'Bread', 41.0100, 28.9800)
    near = _add(store, 'Olive oil', *TAKSIM)

    result = deals.nearby_deals(store, TAKSIM, 5, now=NOW)
    assert not result.fallback
    assert [m.deal.id for m in result] == [near.id, far.id]
    payload = result.to_dict()['deals']
    assert payload[0]['distance'] == 0.0
    assert payload[1]['distance'] == pytest.approx(0.2, abs=0.05)


def test_nearby_results_sorted_and_within_radius(store) -> None:
    for i, offset in enumerate([0.03, 0.001, 0.02, 0.2, 0.01]):
        _add(store, f'Item {i}', TAKSIM[0] + offset, TAKSIM[1])
    result = deals.nearby_deals(store, Location(*TAKSIM), 3, now=NOW)
    distances = [m.distance_km for m in result]
    assert distances == sorted(distances)
    assert all(d <= 3 for d in distances)
    assert len(result) == 3


def test_ties_broken_by_id(store) -> None:
    first = _add(store, 'A', *TAKSIM)
    second = _add(store, 'B', *TAKSIM)
    assert [m.deal.id for m in deals.nearby_deals(store, TAKSIM, 1, now=NOW)] == [first.id, second.id]


def test_expired_and_inactive_deals_hidden(store) -> None:
    _add(store, 'Expired', *TAKSIM, days=-1)
    _add(store, 'Inactive', *TAKSIM, is_active=False)
    live = _add(store, 'Live', *TAKSIM)
    assert [m.deal.id for m in deals.nearby_deals(store, TAKSIM, now=NOW)] == [live.id]


def test_fallback_when_user_is_far_away(store) -> None:
    for i in range(25):
        _add(store, f'Item {i}', TAKSIM[0] + i * 0.001, TAKSIM[1])
    # Ankara is well beyond the fallback distance
    result = deals.nearby_deals(store, (39.9334, 32.8597), 5, now=NOW)
    assert result.fallback
    assert len(result) == 20
    distances = [m.distance_km for m in result]
    assert distances == sorted(distances)


def test_no_fallback_when_nearest_is_moderately_far(store) -> None:
    _add(store, 'Olive oil', *TAKSIM)
    # roughly 50 km away: out of range but not far enough for the fallback
    result = deals.nearby_deals(store, (41.0082 + 0.45, 28.9784), 5, now=NOW)
    assert len(result) == 0
    assert not result.fallback


def test_no_deals_at_all(store) -> None:
    result = deals.nearby_deals(store, TAKSIM, now=NOW)
    assert result.deals == []
    assert result.fallback is False


@pytest.mark.parametrize('radius', [0, -1, 51, 'near'])
def test_radius_validation(store, radius) -> None:
    with pytest.raises(InvalidInput):
        deals.nearby_deals(store, TAKSIM, radius, now=NOW)


@pytest.mark.parametrize('point', [(91, 0), ('x', 0), {'lat': 0}, 'nowhere'])
def test_point_validation(store, point) -> None:
    with pytest.raises(InvalidInput):
        deals.nearby_deals(store, point, now=NOW)


def test_deals_by_category_orders_by_discount(store) -> None:
    small = _add(store, 'Bread', *TAKSIM, old=100, new=90, category='Groceries')
    big = _add(store, 'Oil', *TAKSIM, old=100, new=50, category='fresh groceries')
    _add(store, 'Soap', *TAKSIM, category='household')
    assert [d.id for d in deals.deals_by_category(store, 'GROCER', now=NOW)] == [big.id, small.id]
    with pytest.raises(InvalidInput):
        deals.deals_by_category(store, '')


def test_track_deal_is_idempotent(store) -> None:
    deal = _add(store, 'Oil', *TAKSIM)
    deals.track_deal(store, OWNER, deal.id, now=NOW)
    later = NOW + timedelta(hours=1)
    saved = deals.track_deal(store, OWNER, deal.id, now=later)
    assert saved.saved_at == later
    assert saved.used is False
    assert len(store.saved_deals(OWNER)) == 1


def test_track_missing_or_expired_deal(store) -> None:
    expired = _add(store, 'Old', *TAKSIM, days=-1)
    with pytest.raises(NotFound):
        deals.track_deal(store, OWNER, expired.id, now=NOW)
    with pytest.raises(NotFound):
        deals.track_deal(store, OWNER, 999, now=NOW)


def test_saved_deals_newest_first_and_hide_expired(store) -> None:
    short = _add(store, 'Short', *TAKSIM, days=1)
    first = _add(store, 'First', *TAKSIM)
    second = _add(store, 'Second', *TAKSIM)
    deals.track_deal(store, OWNER, short.id, now=NOW)
    deals.track_deal(store, OWNER, first.id, now=NOW + timedelta(minutes=1))
    deals.track_deal(store, OWNER, second.id, now=NOW + timedelta(minutes=2))

    visible = deals.saved_deals(store, OWNER, now=NOW + timedelta(days=2))
    assert [d['id'] for d in visible] == [second.id, first.id]


def test_mark_deal_used(store) -> None:
    deal = _add(store, 'Oil', *TAKSIM)
    with pytest.raises(NotFound):
        deals.mark_deal_used(store, OWNER, deal.id)
    deals.track_deal(store, OWNER, deal.id, now=NOW)
    deals.mark_deal_used(store, OWNER, deal.id)
    assert store.get_saved_deal(OWNER, deal.id).used is True


def test_store_deals_skips_duplicates(store) -> None:
    batch = [{
        'product': 'Oil', 'store': 'BİM', 'old_price': 280, 'new_price': 210,
        'location': {'lat': 41.0, 'lng': 29.0}, 'valid_until': NOW + timedelta(days=3),
    }]
    assert deals.store_deals(store, batch) == 1
    assert deals.store_deals(store, batch) == 0


def test_deal_to_dict_discount() -> None:
    deal = deals.Deal(id=1, product='Oil', store='Migros', old_price_cents=28000, new_price_cents=21000,
                      location=Location(*TAKSIM), valid_until=NOW)
    payload = deal.to_dict()
    assert payload['discount'] == 25.0
    assert payload['old_price'] == 280.0


def test_offset_aware_expiry_from_a_scraped_feed(store) -> None:
    now_utc = datetime.now(timezone.utc)
    deals.store_deals(store, [
        {'product': 'Oil', 'store': 'Migros', 'old_price': 280, 'new_price': 210,
         'location': {'lat': 41.0, 'lng': 29.0}, 'valid_until': (now_utc + timedelta(days=3)).isoformat()},
        {'product': 'Rice', 'store': 'BİM', 'old_price': 90, 'new_price': 60, 'category': 'groceries',
         'location': {'lat': 41.0, 'lng': 29.0}, 'valid_until': (now_utc - timedelta(hours=2)).isoformat()},
    ])

    assert [m.deal.product for m in deals.nearby_deals(store, (41.0, 29.0), 5)] == ['Oil']
    assert deals.nearby_deals(store, (41.0, 29.0), 5, now=now_utc).deals[0].deal.product == 'Oil'
    assert deals.deals_by_category(store, 'grocer') == []
    oil = store.active_deals()[0]
    deals.track_deal(store, OWNER, oil.id, now=now_utc)
    assert [d['product'] for d in deals.saved_deals(store, OWNER)] == ['Oil']
