from datetime import date
from pathlib import Path
import sys

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from finance_insights.db import FinanceStore

OWNER = 'user-1'
OTHER_OWNER = 'user-2'


@pytest.fixture
def store(tmp_path):
    store = FinanceStore(tmp_path / 'insights.db')
    store.init_db()
    return store


@pytest.fixture
def groceries(store):
    return store.add_category(OWNER, 'Groceries', color='#10B981', icon='🛒')


@pytest.fixture
def transport(store):
    return store.add_category(OWNER, 'Transportation', color='#3B82F6', icon='🚗')


@pytest.fixture
def june_budget(store, groceries, transport):
    """1000.00 budget for June 2024 with groceries 400 / transport 200."""
    return store.add_budget(
        OWNER,
        1000,
        date(2024, 6, 1),
        date(2024, 6, 30),
        allocations=[(groceries.id, 400), (transport.id, 200)],
        name='June',
    )
