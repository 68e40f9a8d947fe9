"""Store deals: proximity search, category lookup and per-user saved deals."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Tuple, Union

import numpy as np
import pandas as pd

from .config import DEFAULT_RADIUS_KM, EARTH_RADIUS_KM, FALLBACK_DISTANCE_KM, FALLBACK_LIMIT
from .db import FinanceStore
from .errors import InvalidInput, NotFound
from .models import Deal, Location, SavedDeal
from .money import round_display
from .validators import parse_point, require_text, resolve_now, validate_radius

logger = logging.getLogger(__name__)

PointLike = Union[Location, Tuple[Any, Any], Mapping[str, Any]]


def haversine_km(lat1, lng1, lat2, lng2):
    """Great-circle distance in kilometres.

    Accepts scalars or numpy arrays (broadcast together); scalar inputs
    give a plain float.
    """
    phi1, lam1, phi2, lam2 = (np.radians(np.asarray(v, dtype=float)) for v in (lat1, lng1, lat2, lng2))
    a = np.sin((phi2 - phi1) / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin((lam2 - lam1) / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    distance = EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    if np.ndim(distance) == 0:
        return float(distance)
    return distance


def _coerce_point(point: PointLike) -> Tuple[float, float]:
    if isinstance(point, Location):
        return point.lat, point.lng
    if isinstance(point, Mapping):
        return parse_point(point.get('lat'), point.get('lng'))
    try:
        lat, lng = point
    except (TypeError, ValueError) as exc:
        raise InvalidInput("Location must be a (lat, lng) pair") from exc
    return parse_point(lat, lng)


@dataclass
class DealMatch:
    deal: Deal
    distance_km: float

    def to_dict(self) -> Dict[str, Any]:
        payload = self.deal.to_dict()
        payload['distance'] = round_display(self.distance_km, 1)
        return payload


@dataclass
class NearbyDeals:
    deals: List[DealMatch] = field(default_factory=list)
    fallback: bool = False

    def __len__(self) -> int:
        return len(self.deals)

    def __iter__(self):
        return iter(self.deals)

    def to_dict(self) -> Dict[str, Any]:
        return {'deals': [m.to_dict() for m in self.deals], 'fallback': self.fallback}


def _visible_deals(store: FinanceStore, now: Any = None) -> List[Deal]:
    moment = resolve_now(now)
    return [deal for deal in store.active_deals() if deal.is_visible(moment)]


def nearby_deals(store: FinanceStore, point: PointLike, radius_km: Any = DEFAULT_RADIUS_KM,
                 now: Any = None) -> NearbyDeals:
    """Active deals within ``radius_km`` of ``point``, nearest first.

    When nothing is in range and even the closest deal is more than
    ``FALLBACK_DISTANCE_KM`` away, the ``FALLBACK_LIMIT`` closest deals are
    returned instead and ``fallback`` is set.
    """
    lat, lng = _coerce_point(point)
    radius = validate_radius(radius_km)
    deals = _visible_deals(store, now)
    if not deals:
        return NearbyDeals()

    frame = pd.DataFrame({
        'id': [d.id for d in deals],
        'lat': [d.location.lat for d in deals],
        'lng': [d.location.lng for d in deals],
    })
    frame['distance'] = haversine_km(lat, lng, frame['lat'].to_numpy(), frame['lng'].to_numpy())
    frame = frame.sort_values(['distance', 'id'], kind='mergesort').reset_index(drop=True)
    by_id = {d.id: d for d in deals}

    selected = frame[frame['distance'] <= radius]
    fallback = False
    if selected.empty and frame['distance'].iloc[0] > FALLBACK_DISTANCE_KM:
        logger.warning("Nearest deal is %.1f km from (%.4f, %.4f); returning %d closest deals",
                       frame['distance'].iloc[0], lat, lng, FALLBACK_LIMIT)
        selected = frame.head(FALLBACK_LIMIT)
        fallback = True

    matches = [DealMatch(deal=by_id[int(row['id'])], distance_km=float(row['distance']))
               for row in selected.to_dict('records')]
    logger.debug("%d deals within %.1f km of (%.4f, %.4f)", len(matches), radius, lat, lng)
    return NearbyDeals(deals=matches, fallback=fallback)


def deals_by_category(store: FinanceStore, name: str, now: Any = None) -> List[Deal]:
    """Visible deals whose category contains ``name``, biggest discount first."""
    needle = require_text(name, 'Category').casefold()
    matches = [d for d in _visible_deals(store, now) if d.category and needle in d.category.casefold()]
    return sorted(matches, key=lambda d: (-d.discount_percent, d.id))


def track_deal(store: FinanceStore, owner_id: str, deal_id: int, now: Any = None) -> SavedDeal:
    """Save a deal for a user; saving again only refreshes ``saved_at``."""
    moment = resolve_now(now)
    deal = store.get_deal(deal_id)
    if deal is None or not deal.is_visible(moment):
        raise NotFound("Deal not found or expired")
    store.upsert_saved_deal(owner_id, deal_id, moment)
    return store.get_saved_deal(owner_id, deal_id)


def saved_deals(store: FinanceStore, owner_id: str, now: Any = None) -> List[Dict[str, Any]]:
    moment = resolve_now(now)
    results = []
    for saved, deal in store.saved_deals(owner_id):
        if not deal.is_visible(moment):
            continue
        payload = deal.to_dict()
        payload['saved_at'] = saved.saved_at.isoformat()
        payload['used'] = saved.used
        results.append(payload)
    return results


def mark_deal_used(store: FinanceStore, owner_id: str, deal_id: int) -> None:
    if not store.mark_saved_deal_used(owner_id, deal_id):
        raise NotFound("Saved deal not found")


def store_deals(store: FinanceStore, deals: Iterable[Mapping[str, Any]]) -> int:
    """Persist scraped deals, skipping ones already known; returns the number added."""
    deals = list(deals)
    inserted = store.insert_deals(deals)
    logger.info("Stored %d new deals (%d skipped as duplicates)", inserted, len(deals) - inserted)
    return inserted
