"""Input validation for values arriving from the transport layer."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Optional, Tuple

import pandas as pd

from .config import MAX_RADIUS_KM
from .errors import InvalidInput


def parse_coordinate(value: Any, name: str, limit: float) -> float:
    """Parse a latitude/longitude and check it lies within ``[-limit, limit]``."""
    if value is None or isinstance(value, bool):
        raise InvalidInput(f"Valid {name} is required")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"Valid {name} is required, got {value!r}") from exc
    if math.isnan(number) or math.isinf(number):
        raise InvalidInput(f"Valid {name} is required, got {value!r}")
    if not -limit <= number <= limit:
        raise InvalidInput(f"{name} must be between {-limit:g} and {limit:g}")
    return number


def parse_point(lat: Any, lng: Any) -> Tuple[float, float]:
    return parse_coordinate(lat, 'latitude', 90.0), parse_coordinate(lng, 'longitude', 180.0)


def validate_radius(radius: Any, maximum: float = MAX_RADIUS_KM) -> float:
    """Radius must be a number in ``(0, maximum]`` kilometres."""
    try:
        value = float(radius)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"Radius must be between 0 and {maximum:g} km") from exc
    if math.isnan(value) or value <= 0 or value > maximum:
        raise InvalidInput(f"Radius must be between 0 and {maximum:g} km")
    return value


def validate_months(months: Any, bounds: Tuple[int, int]) -> int:
    low, high = bounds
    if isinstance(months, bool):
        raise InvalidInput(f"Months parameter must be between {low} and {high}")
    try:
        value = int(months)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"Months parameter must be between {low} and {high}") from exc
    if value != months and not isinstance(months, str):
        # reject 2.5 silently becoming 2
        raise InvalidInput(f"Months parameter must be a whole number, got {months!r}")
    if not low <= value <= high:
        raise InvalidInput(f"Months parameter must be between {low} and {high}")
    return value


def parse_date(value: Any, name: str = 'date') -> Optional[date]:
    """Accept ``date``/``datetime``/ISO strings; ``None`` and blanks pass through."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    ts = pd.to_datetime(value, errors='coerce')
    if pd.isna(ts):
        raise InvalidInput(f"Invalid {name}: {value!r}")
    return ts.date()


def parse_month(value: str) -> pd.Period:
    """Parse a ``YYYY-MM`` month label."""
    try:
        return pd.Period(str(value), freq='M')
    except (ValueError, TypeError) as exc:
        raise InvalidInput(f"Month must look like YYYY-MM, got {value!r}") from exc


def require_text(value: Any, name: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(f"{name} is required")
    return str(value).strip()


def resolve_today(now: Any = None) -> date:
    """The reference day for "current" queries; defaults to today."""
    if now is None:
        return date.today()
    if isinstance(now, datetime):
        return now.date()
    if isinstance(now, date):
        return now
    parsed = parse_date(now, 'reference date')
    return parsed if parsed is not None else date.today()


def naive_local(moment: datetime) -> datetime:
    """Offset-aware timestamps become naive local time, matching ``datetime.now()``."""
    if isinstance(moment, pd.Timestamp):
        moment = moment.to_pydatetime()
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


def resolve_now(now: Any = None) -> datetime:
    if now is None:
        return datetime.now()
    if isinstance(now, datetime):
        return naive_local(now)
    if isinstance(now, date):
        return datetime.combine(now, datetime.min.time())
    ts = pd.to_datetime(now, errors='coerce')
    if pd.isna(ts):
        raise InvalidInput(f"Invalid timestamp: {now!r}")
    return naive_local(ts.to_pydatetime())
