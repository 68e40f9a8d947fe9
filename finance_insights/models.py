"""Domain records handed to and returned by the engine.

The store parses raw rows into these dataclasses once; JSON blobs
(deal locations, inflation category rates) are validated here so the
rest of the engine only ever sees typed values.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from .errors import InvalidInput
from .money import display_amount, round_display, to_decimal
from .validators import naive_local, parse_coordinate

TRENDS = ('up', 'down', 'stable')
TIP_PRIORITIES = ('HIGH', 'MEDIUM', 'LOW')


def _load_json(value: Any, what: str) -> Any:
    if isinstance(value, (bytes, str)):
        try:
            return json.loads(value)
        except json.JSONDecodeError as exc:
            raise InvalidInput(f"Malformed {what} JSON: {exc}") from exc
    return value


# ---------------------------------------------------------------------------
# JSON blobs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float
    address: Optional[str] = None

    @classmethod
    def from_json(cls, value: Any) -> 'Location':
        data = _load_json(value, 'location')
        if not isinstance(data, dict):
            raise InvalidInput("Location must be an object with lat and lng")
        address = data.get('address')
        if address is not None and not isinstance(address, str):
            raise InvalidInput("Location address must be a string")
        return cls(
            lat=parse_coordinate(data.get('lat'), 'latitude', 90.0),
            lng=parse_coordinate(data.get('lng'), 'longitude', 180.0),
            address=address,
        )

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'lat': self.lat, 'lng': self.lng}
        if self.address is not None:
            payload['address'] = self.address
        return payload


def parse_category_rates(value: Any) -> Dict[str, float]:
    """Parse a ``{category name: rate}`` blob, lower-casing names."""
    if value is None:
        return {}
    data = _load_json(value, 'category rates')
    if not isinstance(data, dict):
        raise InvalidInput("Category rates must be an object mapping names to rates")
    rates: Dict[str, float] = {}
    for name, rate in data.items():
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput(f"Invalid category name in rates: {name!r}")
        if isinstance(rate, bool) or not isinstance(rate, (int, float)):
            raise InvalidInput(f"Rate for '{name}' must be a number, got {rate!r}")
        rates[name.strip().lower()] = float(rate)
    return rates


# ---------------------------------------------------------------------------
# Spending
# ---------------------------------------------------------------------------


@dataclass
class Category:
    id: int
    owner_id: str
    name: str
    color: str = '#6b7280'
    icon: str = '📌'


@dataclass
class Expense:
    id: int
    owner_id: str
    category_id: int
    amount_cents: int
    occurred_at: date
    description: str = ''
    category_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.amount_cents <= 0:
            raise InvalidInput("Expense amount must be positive")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'category_id': self.category_id,
            'category': self.category_name,
            'amount': display_amount(self.amount_cents),
            'date': self.occurred_at.isoformat(),
            'description': self.description,
        }


@dataclass
class CategoryAllocation:
    category_id: int
    category_name: str
    amount_cents: int


@dataclass
class Budget:
    id: int
    owner_id: str
    total_cents: int
    start_date: date
    end_date: date
    is_active: bool = True
    name: Optional[str] = None
    allocations: Tuple[CategoryAllocation, ...] = ()

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def is_current(self, day: date) -> bool:
        return self.is_active and self.contains(day)


# ---------------------------------------------------------------------------
# Inflation
# ---------------------------------------------------------------------------


@dataclass
class InflationRecord:
    date: date
    overall_rate: float
    trend: str = 'stable'
    category_rates: Dict[str, float] = field(default_factory=dict)
    predicted_rate: Optional[float] = None
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if self.trend not in TRENDS:
            raise InvalidInput(f"Trend must be one of {', '.join(TRENDS)}")
        self.category_rates = parse_category_rates(self.category_rates)

    def rate_for(self, category_name: str) -> float:
        """Category-specific rate when one is recorded, otherwise the overall rate."""
        key = category_name.strip().lower()
        if key in self.category_rates:
            return self.category_rates[key]
        return self.overall_rate

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current_rate': self.overall_rate,
            'predicted_rate': self.predicted_rate,
            'trend': self.trend,
            'last_updated': self.date.isoformat(),
            'category_rates': dict(self.category_rates),
        }


# ---------------------------------------------------------------------------
# Deals
# ---------------------------------------------------------------------------


@dataclass
class Deal:
    id: int
    product: str
    store: str
    old_price_cents: int
    new_price_cents: int
    location: Location
    valid_until: datetime
    category: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True

    def __post_init__(self) -> None:
        if self.old_price_cents <= 0:
            raise InvalidInput("Deal old price must be positive")
        if self.new_price_cents < 0:
            raise InvalidInput("Deal new price cannot be negative")

    @property
    def discount_percent(self) -> Decimal:
        return (
            to_decimal(self.old_price_cents - self.new_price_cents)
            * 100
            / to_decimal(self.old_price_cents)
        )

    def is_visible(self, now: datetime) -> bool:
        return self.is_active and naive_local(self.valid_until) >= naive_local(now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'product': self.product,
            'store': self.store,
            'old_price': display_amount(self.old_price_cents),
            'new_price': display_amount(self.new_price_cents),
            'discount': round_display(self.discount_percent),
            'location': self.location.to_json(),
            'valid_until': self.valid_until.isoformat(),
            'category': self.category,
            'image_url': self.image_url,
            'is_active': self.is_active,
        }


@dataclass
class SavedDeal:
    owner_id: str
    deal_id: int
    saved_at: datetime
    used: bool = False


# ---------------------------------------------------------------------------
# Tips
# ---------------------------------------------------------------------------


@dataclass
class SavingsTip:
    id: int
    title: str
    description: str
    category: str
    priority: str = 'MEDIUM'
    icon: str = '💡'
    is_active: bool = True
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.priority not in TIP_PRIORITIES:
            raise InvalidInput(f"Tip priority must be one of {', '.join(TIP_PRIORITIES)}")


@dataclass
class UserTip:
    owner_id: str
    tip_id: int
    viewed: bool = False
    viewed_at: Optional[datetime] = None
    helpful: Optional[bool] = None
    dismissed: bool = False
