import os
import sys
from collections import Counter
from copy import deepcopy
from datetime import date, timedelta

import pytest
from postgrest.exceptions import APIError

# Ensure project root is on sys.path
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from coldstore import config  # noqa: E402
from coldstore.auth.session import Session  # noqa: E402
from coldstore.core.constants import (  # noqa: E402
    LOT_AVAILABLE,
    ROLE_ADMIN,
    ROLE_USER,
    ROLE_VIEWER,
    TABLE_KEYS,
)
from coldstore.models import StockItem  # noqa: E402
from coldstore.services.mirror import StoreMirror  # noqa: E402
from coldstore.services.store import SupabaseStore  # noqa: E402


class DummyResp:
    def __init__(self, data):
        self.data = data


class DummyQuery:
    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.op = None
        self.payload = None
        self.filters = []

    def select(self, fields="*"):
        self.op = "select"
        return self

    def insert(self, rows):
        self.op = "insert"
        self.payload = rows
        return self

    def update(self, values):
        self.op = "update"
        self.payload = values
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def _matches(self, row):
        return all(row.get(col) == val for col, val in self.filters)

    def execute(self):
        self.client.calls[(self.table, self.op)] += 1
        limit = self.client.fail_after.get((self.table, self.op))
        if limit is not None and self.client.calls[(self.table, self.op)] > limit:
            raise APIError({"message": f"{self.op} on {self.table} failed", "code": "500"})

        rows = self.client.tables.setdefault(self.table, [])
        if self.op == "select":
            return DummyResp([deepcopy(r) for r in rows if self._matches(r)])
        if self.op == "insert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            rows.extend(deepcopy(r) for r in new_rows)
            return DummyResp(deepcopy(new_rows))
        if self.op == "update":
            changed = []
            for row in rows:
                if self._matches(row):
                    row.update(deepcopy(self.payload))
                    changed.append(deepcopy(row))
            return DummyResp(changed)
        if self.op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self.client.tables[self.table] = [r for r in rows if not self._matches(r)]
            return DummyResp(removed)
        raise AssertionError(f"unsupported op {self.op}")


class DummyClient:
    """In-memory stand-in for the Supabase table API."""

    def __init__(self, tables=None):
        self.tables = {t: [] for t in TABLE_KEYS}
        self.tables.update(deepcopy(tables or {}))
        self.calls = Counter()
        self.fail_after = {}

    def table(self, name):
        return DummyQuery(self, name)

    def fail(self, table, op, after=0):
        """Make ``op`` on ``table`` raise once it has succeeded ``after`` times."""
        self.fail_after[(table, op)] = self.calls[(table, op)] + after


def make_lot(lot_id="L1", item_code="BEEF-MINCE", pcs=100, kgs=50.0, location="A1-01", **extra):
    values = dict(
        id=lot_id,
        item_code=item_code,
        pcs=pcs,
        kgs=kgs,
        expiry_date=(date.today() + timedelta(days=10)).isoformat(),
        location=location,
        entry_date="2024-01-01T00:00:00.000Z",
        status=LOT_AVAILABLE,
    )
    values.update(extra)
    return StockItem(**values)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep tests away from real secrets and the spreadsheet webhook."""
    for var in ("SUPABASE_URL", "SUPABASE_KEY", "SHEET_LOGGER_URL", "SETTINGS_PASSWORD"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(config, "_secrets_section", lambda: {})


@pytest.fixture
def client():
    return DummyClient()


@pytest.fixture
def store(client):
    return SupabaseStore(client)


@pytest.fixture
def mirror(store):
    m = StoreMirror()
    m.load(store)
    return m


@pytest.fixture
def stocked(client, store):
    """Mirror loaded with two available lots and one on hold."""

    def _build(*lots):
        lots = lots or (
            make_lot("L1"),
            make_lot("L2", "CHICKEN-BREAST", 40, 20.0, "B2-03"),
            make_lot("L3", "FISH-TUNA-LOIN", 10, 8.0, "C1-02", status="HOLD", hold_reason="Temp"),
        )
        client.tables["stock"] = [lot.to_row() for lot in lots]
        m = StoreMirror()
        m.load(store)
        return m

    return _build


@pytest.fixture
def admin():
    return Session("admin", ROLE_ADMIN)


@pytest.fixture
def user():
    return Session("alice", ROLE_USER)


@pytest.fixture
def viewer():
    return Session("victor", ROLE_VIEWER)
