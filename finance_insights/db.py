from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .config import DB_PATH, UNKNOWN_CATEGORY
from .errors import InvalidBudget, InvalidInput, NotFound
from .models import (
    Budget,
    Category,
    CategoryAllocation,
    Deal,
    Expense,
    InflationRecord,
    Location,
    SavedDeal,
    SavingsTip,
    UserTip,
    parse_category_rates,
)
from .money import to_cents
from .validators import naive_local, parse_date

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    color TEXT,
    icon TEXT,
    UNIQUE (owner_id, name)
);

CREATE TABLE IF NOT EXISTS expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    category_id INTEGER NOT NULL REFERENCES categories (id),
    amount_cents INTEGER NOT NULL CHECK (amount_cents > 0),
    occurred_at TEXT NOT NULL,
    description TEXT,
    created_at TEXT
);

CREATE INDEX IF NOT EXISTS ix_expense_owner_date ON expenses (owner_id, occurred_at);
CREATE INDEX IF NOT EXISTS ix_expense_category ON expenses (category_id);

CREATE TABLE IF NOT EXISTS budgets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    name TEXT,
    total_cents INTEGER NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT
);

CREATE INDEX IF NOT EXISTS ix_budget_owner ON budgets (owner_id, is_active);

CREATE TABLE IF NOT EXISTS category_allocations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    budget_id INTEGER NOT NULL REFERENCES budgets (id) ON DELETE CASCADE,
    category_id INTEGER NOT NULL REFERENCES categories (id),
    amount_cents INTEGER NOT NULL,
    UNIQUE (budget_id, category_id)
);

CREATE TABLE IF NOT EXISTS inflation_records (
    date TEXT PRIMARY KEY,
    overall_rate REAL NOT NULL,
    predicted_rate REAL,
    trend TEXT NOT NULL,
    category_rates TEXT,
    source TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS deals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    product TEXT NOT NULL,
    store TEXT NOT NULL,
    old_price_cents INTEGER NOT NULL,
    new_price_cents INTEGER NOT NULL,
    location TEXT NOT NULL,
    valid_until TEXT NOT NULL,
    category TEXT,
    image_url TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT,
    UNIQUE (store, product, valid_until)
);

CREATE INDEX IF NOT EXISTS ix_deal_active ON deals (is_active, valid_until);

CREATE TABLE IF NOT EXISTS saved_deals (
    owner_id TEXT NOT NULL,
    deal_id INTEGER NOT NULL REFERENCES deals (id),
    saved_at TEXT NOT NULL,
    used INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (owner_id, deal_id)
);

CREATE TABLE IF NOT EXISTS savings_tips (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    icon TEXT,
    priority TEXT NOT NULL DEFAULT 'MEDIUM',
    category TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS user_tips (
    owner_id TEXT NOT NULL,
    tip_id INTEGER NOT NULL REFERENCES savings_tips (id),
    viewed INTEGER NOT NULL DEFAULT 0,
    viewed_at TEXT,
    helpful INTEGER,
    dismissed INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (owner_id, tip_id)
);
"""

EXPENSE_COLUMNS = [
    'id', 'owner_id', 'Category ID', 'Category', 'Color', 'Icon',
    'Amount Cents', 'Date', 'Description',
]

PRIORITY_ORDER_SQL = "CASE priority WHEN 'HIGH' THEN 0 WHEN 'MEDIUM' THEN 1 ELSE 2 END"

USER_TIP_FIELDS = ('viewed', 'viewed_at', 'helpful', 'dismissed')

DateLike = Union[date, datetime, str, None]


def _iso(value: Union[date, datetime, None]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat(timespec='seconds')
    return value.isoformat()


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return naive_local(value)
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    return naive_local(datetime.fromisoformat(str(value).replace('Z', '+00:00')))


def _now() -> str:
    return datetime.now().isoformat(timespec='seconds')


def _bool_or_none(value: Any) -> Optional[bool]:
    return None if value is None else bool(value)


class FinanceStore:
    """SQLite-backed reader and upserter handed to every engine operation.

    The store keeps no state besides the database path; each call opens its
    own connection, so one instance can be shared across threads.
    """

    def __init__(self, db_path: Union[str, Path, None] = None) -> None:
        self.db_path = Path(db_path or DB_PATH)

    # Connection -------------------------------------------------------------

    @contextmanager
    def connect(self, named_rows: bool = True) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        if named_rows:
            conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        logger.debug("Initialised schema at %s", self.db_path)

    # Categories & expenses --------------------------------------------------

    def add_category(self, owner_id: str, name: str, color: str = UNKNOWN_CATEGORY['color'],
                     icon: str = UNKNOWN_CATEGORY['icon']) -> Category:
        if not name or not name.strip():
            raise InvalidInput("Category name is required")
        with self.connect() as conn:
            try:
                cur = conn.execute(
                    "INSERT INTO categories (owner_id, name, color, icon) VALUES (?, ?, ?, ?)",
                    (owner_id, name.strip(), color, icon),
                )
            except sqlite3.IntegrityError as exc:
                raise InvalidInput(f"Category '{name}' already exists") from exc
            conn.commit()
            return Category(id=cur.lastrowid, owner_id=owner_id, name=name.strip(), color=color, icon=icon)

    def get_category(self, category_id: int, owner_id: str) -> Optional[Category]:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT id, owner_id, name, color, icon FROM categories WHERE id = ? AND owner_id = ?",
                (category_id, owner_id),
            ).fetchone()
        if row is None:
            return None
        return Category(id=row['id'], owner_id=row['owner_id'], name=row['name'],
                        color=row['color'], icon=row['icon'])

    def add_expense(self, owner_id: str, category_id: int, amount: Any, occurred_at: DateLike,
                    description: str = '') -> Expense:
        cents = to_cents(amount)
        if cents <= 0:
            raise InvalidInput("Expense amount must be positive")
        day = parse_date(occurred_at, 'expense date')
        if day is None:
            raise InvalidInput("Expense date is required")
        category = self.get_category(category_id, owner_id)
        if category is None:
            raise NotFound("Category not found")
        with self.connect() as conn:
            cur = conn.execute(
                "INSERT INTO expenses (owner_id, category_id, amount_cents, occurred_at, description, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (owner_id, category_id, cents, day.isoformat(), description, _now()),
            )
            conn.commit()
            expense_id = cur.lastrowid
        return Expense(id=expense_id, owner_id=owner_id, category_id=category_id, amount_cents=cents,
                       occurred_at=day, description=description, category_name=category.name)

    def fetch_expenses(
        self,
        owner_id: str,
        start_date: DateLike = None,
        end_date: DateLike = None,
        category_ids: Optional[Sequence[int]] = None,
    ) -> pd.DataFrame:
        """Owner-scoped expenses, both date bounds inclusive, oldest first."""
        where: List[str] = ["e.owner_id = ?"]
        params: List[Any] = [owner_id]

        start = parse_date(start_date, 'start date')
        end = parse_date(end_date, 'end date')
        if start:
            where.append("e.occurred_at >= ?")
            params.append(start.isoformat())
        if end:
            where.append("e.occurred_at <= ?")
            params.append(end.isoformat())
        if category_ids:
            where.append("e.category_id IN ({})".format(",".join(["?" for _ in category_ids])))
            params.extend(list(category_ids))

        sql = (
            "SELECT e.id, e.owner_id, e.category_id AS 'Category ID', c.name AS 'Category', "
            "c.color AS 'Color', c.icon AS 'Icon', e.amount_cents AS 'Amount Cents', "
            "e.occurred_at AS 'Date', e.description AS 'Description' "
            "FROM expenses e LEFT JOIN categories c ON c.id = e.category_id AND c.owner_id = e.owner_id "
            "WHERE " + " AND ".join(where) + " ORDER BY e.occurred_at ASC, e.id ASC"
        )
        with self.connect(named_rows=False) as conn:
            df = pd.read_sql_query(sql, conn, params=params)
        if df.empty:
            return pd.DataFrame(columns=EXPENSE_COLUMNS)
        df['Date'] = pd.to_datetime(df['Date'])
        df['Amount Cents'] = df['Amount Cents'].astype('int64')
        logger.debug("Fetched %d expenses for owner %s", len(df), owner_id)
        return df

    def recent_expenses(self, owner_id: str, limit: int) -> List[Expense]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT e.id, e.owner_id, e.category_id, e.amount_cents, e.occurred_at, e.description, "
                "c.name AS category_name FROM expenses e "
                "LEFT JOIN categories c ON c.id = e.category_id AND c.owner_id = e.owner_id "
                "WHERE e.owner_id = ? ORDER BY e.occurred_at DESC, e.id DESC LIMIT ?",
                (owner_id, limit),
            ).fetchall()
        return [
            Expense(
                id=row['id'],
                owner_id=row['owner_id'],
                category_id=row['category_id'],
                amount_cents=row['amount_cents'],
                occurred_at=date.fromisoformat(row['occurred_at']),
                description=row['description'] or '',
                category_name=row['category_name'],
            )
            for row in rows
        ]

    # Budgets ----------------------------------------------------------------

    def add_budget(
        self,
        owner_id: str,
        total_amount: Any,
        start_date: DateLike,
        end_date: DateLike,
        allocations: Iterable[Tuple[int, Any]] = (),
        name: Optional[str] = None,
        is_active: bool = True,
    ) -> Budget:
        """Create a budget with ``(category_id, amount)`` allocations."""
        total_cents = to_cents(total_amount)
        if total_cents <= 0:
            raise InvalidBudget("Budget total amount must be greater than zero")
        start = parse_date(start_date, 'start date')
        end = parse_date(end_date, 'end date')
        if start is None or end is None or end < start:
            raise InvalidInput("Budget needs a start date on or before its end date")

        prepared: List[Tuple[int, int]] = []
        for category_id, amount in allocations:
            cents = to_cents(amount)
            if cents <= 0:
                raise InvalidBudget("Category allocation must be greater than zero")
            if self.get_category(category_id, owner_id) is None:
                raise InvalidBudget(f"Category {category_id} does not belong to this user")
            prepared.append((category_id, cents))

        with self.connect() as conn:
            cur = conn.execute(
                "INSERT INTO budgets (owner_id, name, total_cents, start_date, end_date, is_active, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (owner_id, name, total_cents, start.isoformat(), end.isoformat(), int(is_active), _now()),
            )
            budget_id = cur.lastrowid
            conn.executemany(
                "INSERT INTO category_allocations (budget_id, category_id, amount_cents) VALUES (?, ?, ?)",
                [(budget_id, category_id, cents) for category_id, cents in prepared],
            )
            conn.commit()
        logger.info("Budget created: %s for user: %s", budget_id, owner_id)
        budget = self.get_budget(budget_id, owner_id)
        if budget is None:
            raise NotFound("Budget not found after insert")
        return budget

    def _load_allocations(self, conn: sqlite3.Connection, budget_ids: Sequence[int]) -> Dict[int, List[CategoryAllocation]]:
        if not budget_ids:
            return {}
        rows = conn.execute(
            "SELECT a.budget_id, a.category_id, a.amount_cents, c.name FROM category_allocations a "
            "JOIN categories c ON c.id = a.category_id "
            "WHERE a.budget_id IN ({}) ORDER BY a.id".format(",".join("?" for _ in budget_ids)),
            list(budget_ids),
        ).fetchall()
        grouped: Dict[int, List[CategoryAllocation]] = {}
        for row in rows:
            grouped.setdefault(row['budget_id'], []).append(
                CategoryAllocation(category_id=row['category_id'], category_name=row['name'],
                                   amount_cents=row['amount_cents'])
            )
        return grouped

    def _query_budgets(self, where: str, params: Sequence[Any]) -> List[Budget]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT id, owner_id, name, total_cents, start_date, end_date, is_active FROM budgets "
                f"WHERE {where} ORDER BY created_at DESC, id DESC",
                list(params),
            ).fetchall()
            allocations = self._load_allocations(conn, [row['id'] for row in rows])
        return [
            Budget(
                id=row['id'],
                owner_id=row['owner_id'],
                name=row['name'],
                total_cents=row['total_cents'],
                start_date=date.fromisoformat(row['start_date']),
                end_date=date.fromisoformat(row['end_date']),
                is_active=bool(row['is_active']),
                allocations=tuple(allocations.get(row['id'], [])),
            )
            for row in rows
        ]

    def get_budget(self, budget_id: int, owner_id: str) -> Optional[Budget]:
        budgets = self._query_budgets("id = ? AND owner_id = ?", (budget_id, owner_id))
        return budgets[0] if budgets else None

    def list_budgets(self, owner_id: str, active_only: bool = False) -> List[Budget]:
        if active_only:
            return self._query_budgets("owner_id = ? AND is_active = 1", (owner_id,))
        return self._query_budgets("owner_id = ?", (owner_id,))

    def current_budgets(self, owner_id: str, on: date) -> List[Budget]:
        """Active budgets whose window contains ``on``, newest first."""
        day = on.isoformat()
        return self._query_budgets(
            "owner_id = ? AND is_active = 1 AND start_date <= ? AND end_date >= ?",
            (owner_id, day, day),
        )

    def budgets_overlapping(self, owner_id: str, start: date, end: date) -> List[Budget]:
        return self._query_budgets(
            "owner_id = ? AND is_active = 1 AND start_date <= ? AND end_date >= ?",
            (owner_id, end.isoformat(), start.isoformat()),
        )

    # Inflation --------------------------------------------------------------

    def upsert_inflation_record(self, record: InflationRecord) -> None:
        """Insert or replace the snapshot for ``record.date``."""
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO inflation_records (date, overall_rate, predicted_rate, trend, category_rates, source, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (date) DO UPDATE SET overall_rate = excluded.overall_rate, "
                "predicted_rate = excluded.predicted_rate, trend = excluded.trend, "
                "category_rates = excluded.category_rates, source = excluded.source, "
                "updated_at = excluded.updated_at",
                (
                    record.date.isoformat(),
                    record.overall_rate,
                    record.predicted_rate,
                    record.trend,
                    json.dumps(record.category_rates, sort_keys=True),
                    record.source,
                    _now(),
                ),
            )
            conn.commit()

    @staticmethod
    def _row_to_inflation(row: Mapping[str, Any]) -> InflationRecord:
        return InflationRecord(
            date=date.fromisoformat(row['date']),
            overall_rate=float(row['overall_rate']),
            predicted_rate=None if row['predicted_rate'] is None else float(row['predicted_rate']),
            trend=row['trend'],
            category_rates=parse_category_rates(row['category_rates']),
            source=row['source'],
        )

    def inflation_records(self, since: Optional[date] = None, limit: Optional[int] = None) -> List[InflationRecord]:
        """Stored snapshots, newest first."""
        sql = "SELECT * FROM inflation_records"
        params: List[Any] = []
        if since is not None:
            sql += " WHERE date >= ?"
            params.append(since.isoformat())
        sql += " ORDER BY date DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_inflation(row) for row in rows]

    def latest_inflation_record(self) -> Optional[InflationRecord]:
        records = self.inflation_records(limit=1)
        return records[0] if records else None

    # Deals ------------------------------------------------------------------

    @staticmethod
    def _row_to_deal(row: Mapping[str, Any]) -> Deal:
        return Deal(
            id=row['id'],
            product=row['product'],
            store=row['store'],
            old_price_cents=row['old_price_cents'],
            new_price_cents=row['new_price_cents'],
            location=Location.from_json(row['location']),
            valid_until=_to_datetime(row['valid_until']),
            category=row['category'],
            image_url=row['image_url'],
            is_active=bool(row['is_active']),
        )

    def insert_deals(self, deals: Iterable[Mapping[str, Any]]) -> int:
        """Insert deal dicts, skipping ones already stored for the same store/product/expiry.

        Returns the number of rows inserted.
        """
        records: List[Tuple] = []
        for deal in deals:
            location = deal['location']
            if not isinstance(location, Location):
                location = Location.from_json(location)
            old_cents = to_cents(deal['old_price'])
            new_cents = to_cents(deal['new_price'])
            if old_cents <= 0 or new_cents < 0:
                raise InvalidInput(f"Invalid prices for deal '{deal.get('product')}'")
            valid_until = _to_datetime(deal['valid_until'])
            records.append((
                deal['product'],
                deal['store'],
                old_cents,
                new_cents,
                json.dumps(location.to_json()),
                _iso(valid_until),
                deal.get('category'),
                deal.get('image_url'),
                int(deal.get('is_active', True)),
                _now(),
            ))
        if not records:
            return 0
        with self.connect() as conn:
            before = conn.total_changes
            conn.executemany(
                "INSERT OR IGNORE INTO deals (product, store, old_price_cents, new_price_cents, location, "
                "valid_until, category, image_url, is_active, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                records,
            )
            conn.commit()
            return conn.total_changes - before

    def add_deal(self, product: str, store: str, old_price: Any, new_price: Any, location: Any,
                 valid_until: Any, category: Optional[str] = None, image_url: Optional[str] = None,
                 is_active: bool = True) -> Deal:
        self.insert_deals([{
            'product': product, 'store': store, 'old_price': old_price, 'new_price': new_price,
            'location': location, 'valid_until': valid_until, 'category': category,
            'image_url': image_url, 'is_active': is_active,
        }])
        with self.connect() as conn:
            row = conn.execute(
                "SELECT * FROM deals WHERE store = ? AND product = ? AND valid_until = ?",
                (store, product, _iso(_to_datetime(valid_until))),
            ).fetchone()
        return self._row_to_deal(row)

    def get_deal(self, deal_id: int) -> Optional[Deal]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM deals WHERE id = ?", (deal_id,)).fetchone()
        return None if row is None else self._row_to_deal(row)

    def active_deals(self) -> List[Deal]:
        """Deals flagged active; expiry against "now" is applied by the caller."""
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM deals WHERE is_active = 1 ORDER BY id").fetchall()
        return [self._row_to_deal(row) for row in rows]

    def deactivate_expired_deals(self, now: datetime) -> int:
        with self.connect() as conn:
            cur = conn.execute(
                "UPDATE deals SET is_active = 0 WHERE is_active = 1 AND valid_until < ?",
                (_iso(naive_local(now)),),
            )
            conn.commit()
            return cur.rowcount

    def upsert_saved_deal(self, owner_id: str, deal_id: int, saved_at: datetime) -> None:
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO saved_deals (owner_id, deal_id, saved_at, used) VALUES (?, ?, ?, 0) "
                "ON CONFLICT (owner_id, deal_id) DO UPDATE SET saved_at = excluded.saved_at",
                (owner_id, deal_id, _iso(saved_at)),
            )
            conn.commit()

    def get_saved_deal(self, owner_id: str, deal_id: int) -> Optional[SavedDeal]:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT owner_id, deal_id, saved_at, used FROM saved_deals WHERE owner_id = ? AND deal_id = ?",
                (owner_id, deal_id),
            ).fetchone()
        if row is None:
            return None
        return SavedDeal(owner_id=row['owner_id'], deal_id=row['deal_id'],
                         saved_at=_to_datetime(row['saved_at']), used=bool(row['used']))

    def saved_deals(self, owner_id: str) -> List[Tuple[SavedDeal, Deal]]:
        """Saved deal rows with their deals, newest saved first."""
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT s.owner_id AS s_owner, s.deal_id AS s_deal, s.saved_at AS s_saved, s.used AS s_used, d.* "
                "FROM saved_deals s JOIN deals d ON d.id = s.deal_id "
                "WHERE s.owner_id = ? ORDER BY s.saved_at DESC, s.deal_id DESC",
                (owner_id,),
            ).fetchall()
        return [
            (
                SavedDeal(owner_id=row['s_owner'], deal_id=row['s_deal'],
                          saved_at=_to_datetime(row['s_saved']), used=bool(row['s_used'])),
                self._row_to_deal(row),
            )
            for row in rows
        ]

    def mark_saved_deal_used(self, owner_id: str, deal_id: int) -> bool:
        with self.connect() as conn:
            cur = conn.execute(
                "UPDATE saved_deals SET used = 1 WHERE owner_id = ? AND deal_id = ?",
                (owner_id, deal_id),
            )
            conn.commit()
            return cur.rowcount > 0

    # Tips -------------------------------------------------------------------

    @staticmethod
    def _row_to_tip(row: Mapping[str, Any]) -> SavingsTip:
        return SavingsTip(
            id=row['id'],
            title=row['title'],
            description=row['description'],
            icon=row['icon'] or '💡',
            priority=row['priority'],
            category=row['category'],
            is_active=bool(row['is_active']),
            created_at=_to_datetime(row['created_at']),
        )

    def add_tip(self, title: str, description: str, category: str, priority: str = 'MEDIUM',
                icon: str = '💡', is_active: bool = True, created_at: Optional[datetime] = None) -> SavingsTip:
        tip = SavingsTip(id=0, title=title, description=description, category=category,
                         priority=priority, icon=icon, is_active=is_active,
                         created_at=created_at or datetime.now().replace(microsecond=0))
        with self.connect() as conn:
            cur = conn.execute(
                "INSERT INTO savings_tips (title, description, icon, priority, category, is_active, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (tip.title, tip.description, tip.icon, tip.priority, tip.category,
                 int(tip.is_active), _iso(tip.created_at)),
            )
            conn.commit()
            tip.id = cur.lastrowid
        return tip

    def get_tip(self, tip_id: int) -> Optional[SavingsTip]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM savings_tips WHERE id = ?", (tip_id,)).fetchone()
        return None if row is None else self._row_to_tip(row)

    def list_tips(self, categories: Optional[Sequence[str]] = None) -> List[SavingsTip]:
        """Active tips ordered by priority (HIGH first), newest first within a priority."""
        sql = "SELECT * FROM savings_tips WHERE is_active = 1"
        params: List[Any] = []
        if categories is not None:
            if not categories:
                return []
            sql += " AND category IN ({})".format(",".join("?" for _ in categories))
            params.extend(categories)
        sql += f" ORDER BY {PRIORITY_ORDER_SQL}, created_at DESC, id DESC"
        with self.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_tip(row) for row in rows]

    def upsert_user_tip(self, owner_id: str, tip_id: int, **fields: Any) -> None:
        """Create or update the (owner, tip) interaction row, touching only ``fields``."""
        unknown = set(fields) - set(USER_TIP_FIELDS)
        if unknown:
            raise InvalidInput(f"Unknown tip interaction fields: {', '.join(sorted(unknown))}")
        values: Dict[str, Any] = {}
        for key, value in fields.items():
            if key == 'viewed_at':
                values[key] = _iso(value)
            else:
                values[key] = None if value is None else int(bool(value))
        columns = ['owner_id', 'tip_id'] + list(values)
        placeholders = ", ".join("?" for _ in columns)
        if values:
            conflict = "DO UPDATE SET " + ", ".join(f"{key} = excluded.{key}" for key in values)
        else:
            conflict = "DO NOTHING"
        with self.connect() as conn:
            conn.execute(
                f"INSERT INTO user_tips ({', '.join(columns)}) VALUES ({placeholders}) "
                f"ON CONFLICT (owner_id, tip_id) {conflict}",
                [owner_id, tip_id] + list(values.values()),
            )
            conn.commit()

    @staticmethod
    def _row_to_user_tip(row: Mapping[str, Any]) -> UserTip:
        return UserTip(
            owner_id=row['owner_id'],
            tip_id=row['tip_id'],
            viewed=bool(row['viewed']),
            viewed_at=_to_datetime(row['viewed_at']),
            helpful=_bool_or_none(row['helpful']),
            dismissed=bool(row['dismissed']),
        )

    def user_tips(self, owner_id: str) -> Dict[int, UserTip]:
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM user_tips WHERE owner_id = ?", (owner_id,)).fetchall()
        return {row['tip_id']: self._row_to_user_tip(row) for row in rows}

    def tip_interactions(self, tip_id: int) -> List[UserTip]:
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM user_tips WHERE tip_id = ?", (tip_id,)).fetchall()
        return [self._row_to_user_tip(row) for row in rows]
