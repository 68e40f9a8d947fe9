#!/usr/bin/env python3
"""Populate a database with a demo user, budget, inflation history, deals and tips.

Dates are relative to today so the dashboard always has a current month
to show. Run against a fresh database; categories are unique per user.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from finance_insights.db import FinanceStore  # noqa: E402
from finance_insights.inflation import classify_trend  # noqa: E402
from finance_insights.logging_config import configure_logging  # noqa: E402
from finance_insights.models import InflationRecord  # noqa: E402

logger = logging.getLogger("finance_insights.seed")

DEMO_OWNER = 'demo-user'

CATEGORIES = [
    # name, icon, color, monthly allocation
    ('Groceries', '🛒', '#10B981', 8000),
    ('Transportation', '🚗', '#3B82F6', 5000),
    ('Entertainment', '🎬', '#8B5CF6', 3000),
    ('Utilities', '💡', '#F59E0B', 4000),
    ('Healthcare', '🏥', '#EF4444', 2000),
    ('Dining', '🍽️', '#EC4899', 4000),
]

EXPENSES = [
    # category, amount, day of month, description
    ('Groceries', 1200, 1, 'Weekly grocery shopping at Migros'),
    ('Groceries', 950, 5, 'Fresh produce and bakery'),
    ('Groceries', 1800, 8, 'Monthly bulk shopping'),
    ('Transportation', 2500, 2, 'Monthly fuel'),
    ('Transportation', 500, 3, 'Public transport card'),
    ('Entertainment', 800, 6, 'Cinema tickets and popcorn'),
    ('Entertainment', 650, 9, 'Concert tickets'),
    ('Utilities', 1200, 1, 'Electricity bill'),
    ('Utilities', 800, 1, 'Water bill'),
    ('Utilities', 600, 1, 'Internet bill'),
    ('Healthcare', 500, 4, 'Pharmacy - medications'),
    ('Dining', 450, 7, 'Dinner at Italian restaurant'),
    ('Dining', 320, 10, 'Lunch with colleagues'),
    ('Dining', 280, 11, 'Coffee and breakfast'),
]

# Oldest first; the last rate is the current month.
INFLATION_RATES = [75.45, 71.60, 61.78, 51.97, 49.38, 47.09]
CATEGORY_RATES = {'groceries': 72.1, 'transportation': 58.3, 'utilities': 64.0, 'dining': 68.9}

DEALS = [
    ('Olive oil (1L)', 'Migros', 280, 210, 41.0082, 28.9784, 'Taksim, İstanbul', 'groceries', 7),
    ('Fresh bread (5 pack)', 'BİM', 50, 35, 41.0154, 28.9784, 'Şişli, İstanbul', 'groceries', 3),
    ('Chicken breast (1kg)', 'Şok', 180, 144, 41.0422, 29.0094, 'Beşiktaş, İstanbul', 'groceries', 5),
    ('Laundry detergent (4kg)', 'A101', 320, 240, 40.9923, 29.0277, 'Kadıköy, İstanbul', 'household', 10),
    ('Toothpaste (2 pack)', 'Migros', 90, 63, 41.0766, 29.0122, 'Levent, İstanbul', 'personal care', 6),
]

TIPS = [
    ('Use a no-fee account', 'Move everyday spending to an account without monthly fees.', 'BANKING', 'HIGH', '🏦'),
    ('Avoid crypto FOMO', 'Only invest money you can afford to lose and avoid buying after spikes.', 'CRYPTO', 'HIGH', '🪙'),
    ('Shop weekly deals', 'Plan grocery runs around the weekly discount leaflets.', 'RETAIL', 'MEDIUM', '🛒'),
    ('Use public transport', 'A monthly transit card is usually cheaper than fuel and parking.', 'TRANSPORT', 'MEDIUM', '🚌'),
    ('Cook at home', 'Replacing two restaurant meals a week with home cooking adds up quickly.', 'DINING', 'LOW', '🍳'),
]


def seed(store: FinanceStore, owner_id: str = DEMO_OWNER, today: Optional[date] = None) -> None:
    today = today or date.today()
    month = pd.Period(today, freq='M')
    start, end = month.start_time.date(), month.end_time.date()

    categories = {}
    for name, icon, color, _ in CATEGORIES:
        categories[name] = store.add_category(owner_id, name, color=color, icon=icon)
    logger.info("Created %d categories", len(categories))

    for category, amount, day, description in EXPENSES:
        occurred = date(today.year, today.month, min(day, end.day))
        store.add_expense(owner_id, categories[category].id, amount, occurred, description)
    logger.info("Created %d expenses", len(EXPENSES))

    store.add_budget(
        owner_id,
        total_amount=30000,
        start_date=start,
        end_date=end,
        allocations=[(categories[name].id, amount) for name, _, _, amount in CATEGORIES],
        name=f"Monthly Budget - {month.strftime('%B')}",
    )

    previous = None
    for offset, rate in enumerate(INFLATION_RATES):
        snapshot = (month - (len(INFLATION_RATES) - 1 - offset)).start_time.date()
        store.upsert_inflation_record(InflationRecord(
            date=snapshot,
            overall_rate=rate,
            trend=classify_trend(rate, previous),
            category_rates=CATEGORY_RATES,
            source='TÜİK',
        ))
        previous = rate
    logger.info("Stored %d inflation snapshots", len(INFLATION_RATES))

    now = datetime.now().replace(microsecond=0)
    added = store.insert_deals([
        {
            'product': product,
            'store': shop,
            'old_price': old,
            'new_price': new,
            'location': {'lat': lat, 'lng': lng, 'address': address},
            'valid_until': now + timedelta(days=days),
            'category': category,
        }
        for product, shop, old, new, lat, lng, address, category, days in DEALS
    ])
    logger.info("Stored %d deals", added)

    for title, description, category, priority, icon in TIPS:
        store.add_tip(title, description, category, priority=priority, icon=icon)
    logger.info("Stored %d tips", len(TIPS))


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('--db', type=Path, default=None, help="SQLite database path")
    parser.add_argument('--owner', default=DEMO_OWNER)
    args = parser.parse_args(argv)

    configure_logging()
    store = FinanceStore(args.db)
    store.init_db()
    seed(store, args.owner)
    print(f"Seeded demo data for '{args.owner}' in {store.db_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
