#!/usr/bin/env python3
"""Run the scheduled refresh jobs once (cron friendly).

Examples::

    python scripts/run_jobs.py all --deals-file deals.json
    python scripts/run_jobs.py inflation --rate 61.8 --category-rates '{"groceries": 72.1}'
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from finance_insights import jobs  # noqa: E402
from finance_insights.db import FinanceStore  # noqa: E402
from finance_insights.errors import UpstreamUnavailable  # noqa: E402
from finance_insights.logging_config import configure_logging  # noqa: E402
from finance_insights.models import InflationRecord  # noqa: E402

JOB_NAMES = ('inflation', 'deals', 'expire')


def manual_inflation_source(rate: Optional[float], category_rates: Optional[str]):
    """Source returning a snapshot typed in on the command line."""
    if rate is None:
        return None

    def source() -> InflationRecord:
        return InflationRecord(
            date=date.today(),
            overall_rate=rate,
            category_rates=json.loads(category_rates) if category_rates else {},
            source='manual',
        )

    return source


def file_deal_provider(path: Optional[Path]):
    """Provider reading deal dicts from a JSON file, filtered to the requested stores."""

    def provider(stores: Sequence[str]) -> List[Dict[str, Any]]:
        if path is None:
            return []
        try:
            with path.open('r', encoding='utf-8') as handle:
                deals = json.load(handle)
        except OSError as exc:
            raise UpstreamUnavailable(f"Cannot read deals file {path}: {exc}") from exc
        return [deal for deal in deals if deal.get('store') in stores]

    return provider


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('job', choices=JOB_NAMES + ('all',), help="Job to run")
    parser.add_argument('--db', type=Path, default=None, help="SQLite database path")
    parser.add_argument('--rate', type=float, default=None, help="Overall inflation rate to record")
    parser.add_argument('--category-rates', default=None, help="JSON object of category rates")
    parser.add_argument('--deals-file', type=Path, default=None, help="JSON list of scraped deals")
    parser.add_argument('--log-level', default=None)
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    store = FinanceStore(args.db)
    store.init_db()

    selected = JOB_NAMES if args.job == 'all' else (args.job,)
    if 'inflation' in selected:
        jobs.run_job('inflation', jobs.refresh_inflation, store,
                     manual_inflation_source(args.rate, args.category_rates))
    if 'deals' in selected:
        jobs.run_job('deals', jobs.refresh_deals, store, file_deal_provider(args.deals_file))
    if 'expire' in selected:
        jobs.run_job('expire', jobs.expire_deals, store)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
