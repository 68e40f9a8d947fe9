"""Savings tips, personalised from recent spending, with per-user feedback."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from .config import TIP_LIMIT
from .db import FinanceStore
from .errors import NotFound
from .models import SavingsTip, UserTip
from .money import percentage, round_half_up, to_cents
from .validators import resolve_now, resolve_today

logger = logging.getLogger(__name__)

# (lower-cased expense category, monthly spend above which the tip category applies, tip category)
SPENDING_RULES = (
    ('groceries', 5000, 'RETAIL'),
    ('transportation', 2000, 'TRANSPORT'),
    ('dining', 3000, 'DINING'),
)
ALWAYS_SHOWN = ('BANKING', 'CRYPTO')


def tip_to_dict(tip: SavingsTip, interaction: Optional[UserTip] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        'id': tip.id,
        'title': tip.title,
        'description': tip.description,
        'icon': tip.icon,
        'priority': tip.priority,
        'category': tip.category,
        'is_active': tip.is_active,
        'viewed': bool(interaction and interaction.viewed),
        'helpful': interaction.helpful if interaction else None,
    }
    return payload


def all_tips(store: FinanceStore) -> List[SavingsTip]:
    return store.list_tips()


def spending_last_month(store: FinanceStore, owner_id: str, today: Any = None) -> Dict[str, int]:
    """Cents spent per lower-cased category name over the trailing month."""
    end = resolve_today(today)
    start = (pd.Timestamp(end) - pd.DateOffset(months=1)).date()
    expenses = store.fetch_expenses(owner_id, start, end)
    if expenses.empty:
        return {}
    names = expenses['Category'].fillna('').str.lower()
    totals = expenses.groupby(names)['Amount Cents'].sum()
    return {name: int(total) for name, total in totals.items()}


def relevant_tip_categories(spending: Dict[str, int]) -> List[str]:
    categories = [
        tip_category
        for name, threshold, tip_category in SPENDING_RULES
        if spending.get(name, 0) > to_cents(threshold)
    ]
    categories.extend(ALWAYS_SHOWN)
    return categories


def personalized_tips(store: FinanceStore, owner_id: str, today: Any = None) -> List[Dict[str, Any]]:
    """Up to ``TIP_LIMIT`` tips matching the owner's recent spending, dismissed ones removed."""
    categories = relevant_tip_categories(spending_last_month(store, owner_id, today))
    interactions = store.user_tips(owner_id)
    tips = []
    for tip in store.list_tips(categories):
        interaction = interactions.get(tip.id)
        if interaction is not None and interaction.dismissed:
            continue
        tips.append(tip_to_dict(tip, interaction))
    logger.debug("Personalised tips for %s from categories %s", owner_id, categories)
    return tips[:TIP_LIMIT]


def _require_tip(store: FinanceStore, tip_id: int) -> SavingsTip:
    tip = store.get_tip(tip_id)
    if tip is None:
        raise NotFound("Tip not found")
    return tip


def mark_tip_viewed(store: FinanceStore, owner_id: str, tip_id: int, now: Any = None) -> None:
    _require_tip(store, tip_id)
    viewed_at: datetime = resolve_now(now).replace(microsecond=0)
    store.upsert_user_tip(owner_id, tip_id, viewed=True, viewed_at=viewed_at)


def submit_tip_feedback(store: FinanceStore, owner_id: str, tip_id: int, helpful: bool) -> None:
    _require_tip(store, tip_id)
    store.upsert_user_tip(owner_id, tip_id, viewed=True, helpful=bool(helpful))


def dismiss_tip(store: FinanceStore, owner_id: str, tip_id: int) -> None:
    _require_tip(store, tip_id)
    store.upsert_user_tip(owner_id, tip_id, dismissed=True)


def tip_effectiveness(store: FinanceStore, tip_id: int) -> Dict[str, int]:
    _require_tip(store, tip_id)
    interactions = store.tip_interactions(tip_id)
    helpful = sum(1 for ut in interactions if ut.helpful is True)
    not_helpful = sum(1 for ut in interactions if ut.helpful is False)
    feedback = helpful + not_helpful
    return {
        'total_views': sum(1 for ut in interactions if ut.viewed),
        'helpful_votes': helpful,
        'not_helpful_votes': not_helpful,
        'dismissals': sum(1 for ut in interactions if ut.dismissed),
        'helpful_percentage': round_half_up(percentage(helpful, feedback)) if feedback else 0,
    }
