"""Budget status evaluation: spent vs. planned, tiers and alerts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from .aggregation import expenses_to_frame, filter_by_date_range, total_cents
from .config import BUDGET_CRITICAL_PERCENT, BUDGET_OVER_PERCENT, BUDGET_WARNING_PERCENT
from .db import FinanceStore
from .errors import InvalidBudget, NotFound
from .models import Budget, Expense
from .money import display_amount, percentage, round_display
from .validators import resolve_today

logger = logging.getLogger(__name__)

TIER_ON_TRACK = 'on_track'
TIER_WARNING = 'warning'
TIER_OVER = 'over'

SEVERITY_INFO = 'info'
SEVERITY_WARNING = 'warning'
SEVERITY_CRITICAL = 'critical'

ExpenseInput = Union[pd.DataFrame, Iterable[Expense]]


def usage_percent(spent_cents: int, planned_cents: int) -> Decimal:
    if planned_cents <= 0:
        raise InvalidBudget("Budget amount must be positive")
    return percentage(spent_cents, planned_cents)


def classify_tier(pct: Union[Decimal, float]) -> str:
    if pct >= BUDGET_OVER_PERCENT:
        return TIER_OVER
    if pct >= BUDGET_WARNING_PERCENT:
        return TIER_WARNING
    return TIER_ON_TRACK


def alert_severity(pct: Union[Decimal, float]) -> Optional[str]:
    """Severity of a budget alert, or ``None`` below the warning threshold."""
    if pct < BUDGET_WARNING_PERCENT:
        return None
    if classify_tier(pct) == TIER_OVER:
        return SEVERITY_CRITICAL
    if pct >= BUDGET_CRITICAL_PERCENT:
        return SEVERITY_WARNING
    return SEVERITY_INFO


@dataclass
class CategoryStatus:
    category_id: int
    category: str
    budget_cents: int
    spent_cents: int
    percentage: Decimal
    tier: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category_id': self.category_id,
            'category': self.category,
            'budget': display_amount(self.budget_cents),
            'spent': display_amount(self.spent_cents),
            'remaining': display_amount(self.budget_cents - self.spent_cents),
            'percentage': round_display(self.percentage, 1),
            'tier': self.tier,
        }


@dataclass
class BudgetStatus:
    budget: Budget
    spent_cents: int
    percentage: Decimal
    tier: str
    categories: List[CategoryStatus] = field(default_factory=list)

    @property
    def remaining_cents(self) -> int:
        return self.budget.total_cents - self.spent_cents

    @property
    def is_over_budget(self) -> bool:
        return self.spent_cents > self.budget.total_cents

    def to_dict(self) -> Dict[str, Any]:
        return {
            'budget_id': self.budget.id,
            'name': self.budget.name,
            'start_date': self.budget.start_date.isoformat(),
            'end_date': self.budget.end_date.isoformat(),
            'total_amount': display_amount(self.budget.total_cents),
            'spent': display_amount(self.spent_cents),
            'remaining': display_amount(self.remaining_cents),
            'percentage': round_display(self.percentage, 1),
            'tier': self.tier,
            'is_over_budget': self.is_over_budget,
            'categories': [c.to_dict() for c in self.categories],
        }


def evaluate_budget(budget: Budget, expenses: ExpenseInput) -> BudgetStatus:
    """Evaluate ``budget`` against a set of expenses.

    Only expenses dated inside the budget window count; each allocation
    is measured against the in-window expenses of its own category.
    """
    if budget.total_cents <= 0:
        raise InvalidBudget("Budget total must be positive")
    frame = expenses if isinstance(expenses, pd.DataFrame) else expenses_to_frame(expenses)
    window = filter_by_date_range(frame, budget.start_date, budget.end_date)

    spent = total_cents(window)
    pct = usage_percent(spent, budget.total_cents)

    categories: List[CategoryStatus] = []
    for allocation in budget.allocations:
        if window.empty:
            category_spent = 0
        else:
            category_spent = total_cents(window[window['Category ID'] == allocation.category_id])
        category_pct = usage_percent(category_spent, allocation.amount_cents)
        categories.append(
            CategoryStatus(
                category_id=allocation.category_id,
                category=allocation.category_name,
                budget_cents=allocation.amount_cents,
                spent_cents=category_spent,
                percentage=category_pct,
                tier=classify_tier(category_pct),
            )
        )
    return BudgetStatus(budget=budget, spent_cents=spent, percentage=pct,
                        tier=classify_tier(pct), categories=categories)


def _evaluate_stored(store: FinanceStore, budget: Budget) -> BudgetStatus:
    expenses = store.fetch_expenses(budget.owner_id, budget.start_date, budget.end_date)
    return evaluate_budget(budget, expenses)


def budget_status(store: FinanceStore, budget_id: int, owner_id: str) -> BudgetStatus:
    budget = store.get_budget(budget_id, owner_id)
    if budget is None:
        raise NotFound("Budget not found")
    return _evaluate_stored(store, budget)


def budget_alerts(store: FinanceStore, owner_id: str, now: Any = None) -> List[Dict[str, Any]]:
    """Alerts for current active budgets at or above the warning threshold."""
    today = resolve_today(now)
    alerts: List[Dict[str, Any]] = []
    for budget in store.current_budgets(owner_id, today):
        status = _evaluate_stored(store, budget)
        severity = alert_severity(status.percentage)
        if severity is None:
            continue
        alerts.append({
            'budget_id': budget.id,
            'budget_name': budget.name,
            'total_amount': display_amount(budget.total_cents),
            'spent': display_amount(status.spent_cents),
            'percentage': round_display(status.percentage, 1),
            'tier': status.tier,
            'is_over_budget': status.is_over_budget,
            'severity': severity,
        })
    logger.debug("%d budget alerts for %s", len(alerts), owner_id)
    return alerts


def budget_summary(store: FinanceStore, owner_id: str) -> Dict[str, Any]:
    """Usage of the most recently created active budget."""
    budgets = store.list_budgets(owner_id, active_only=True)
    if not budgets:
        return {
            'budget_id': None,
            'total_budget': 0.0,
            'total_spent': 0.0,
            'percentage': 0.0,
            'categories': [],
        }
    status = _evaluate_stored(store, budgets[0])
    return {
        'budget_id': status.budget.id,
        'total_budget': display_amount(status.budget.total_cents),
        'total_spent': display_amount(status.spent_cents),
        'percentage': round_display(status.percentage, 1),
        'categories': [
            {
                'category': c.category,
                'budget': display_amount(c.budget_cents),
                'spent': display_amount(c.spent_cents),
                'percentage': round_display(c.percentage, 1),
            }
            for c in status.categories
        ],
    }
