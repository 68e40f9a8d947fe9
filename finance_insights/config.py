"""Configuration management for the finance insights engine.

This module centralizes all configuration values including paths,
thresholds, and environment variable overrides. Values from a local
``.env`` file are loaded before the environment is read.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Base project root - assumes this file is in finance_insights/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("FINSIGHT_DATA_DIR", _PROJECT_ROOT / "data"))

# Database
DB_PATH = Path(
    os.getenv("FINSIGHT_DB_PATH", DATA_DIR / "finance.db")
).resolve()

LOG_LEVEL = os.getenv("FINSIGHT_LOG_LEVEL", "INFO").upper()

# Budget tiers (percent of allocation used)
BUDGET_WARNING_PERCENT = 80
BUDGET_CRITICAL_PERCENT = 90
BUDGET_OVER_PERCENT = 100

# Forecasting
FORECAST_WINDOW = 6
TREND_MONTHS_RANGE = (1, 24)
HISTORY_MONTHS_RANGE = (1, 24)
FORECAST_MONTHS_RANGE = (1, 12)
DEFAULT_TREND_MONTHS = 6
DEFAULT_HISTORY_MONTHS = 6
DEFAULT_FORECAST_MONTHS = 3

# Inflation snapshots (percentage points)
TREND_DELTA_POINTS = 1.0
LARGE_CHANGE_POINTS = 5.0

# Geo matching
EARTH_RADIUS_KM = 6371.0
DEFAULT_RADIUS_KM = 5.0
MAX_RADIUS_KM = 50.0
FALLBACK_DISTANCE_KM = 100.0
FALLBACK_LIMIT = 20

# Dashboard / tips
RECENT_EXPENSES_LIMIT = 10
TIP_LIMIT = 10
DEAL_STORES = ('Migros', 'BİM', 'Şok', 'A101')

# Display defaults for categories that no longer resolve
UNKNOWN_CATEGORY = {'name': 'Unknown', 'color': '#6b7280', 'icon': '📌'}


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)


def get_db_path() -> str:
    """Get the database path as a string."""
    return str(DB_PATH)
