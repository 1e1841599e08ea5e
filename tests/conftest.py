import itertools
import os
import sys
from types import SimpleNamespace

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from roof_estimator.engine import DEFAULT_PRICING_RULES


class FakeQuery:
    """Minimal stand-in for the postgrest query builder."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = 'select'
        self.payload = None
        self.filters = []
        self.orders = []
        self.max_rows = None

    def select(self, columns='*'):
        self.action = 'select'
        return self

    def insert(self, payload):
        self.action, self.payload = 'insert', payload
        return self

    def update(self, payload):
        self.action, self.payload = 'update', payload
        return self

    def upsert(self, payload, on_conflict='id'):
        self.action, self.payload = 'upsert', payload
        self.on_conflict = on_conflict
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def _matches(self, row):
        return all(row.get(column) == value for column, value in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.action, self.payload, list(self.filters)))
        error = self.db.errors.get((self.table, self.action)) or self.db.errors.get(self.table)
        if error:
            raise error

        rows = self.db.tables.setdefault(self.table, [])

        if self.action == 'insert':
            row = {'id': f"{self.table}-{next(self.db.ids)}", 'created_at': next(self.db.clock), **self.payload}
            rows.append(row)
            return SimpleNamespace(data=[dict(row)])

        if self.action == 'update':
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return SimpleNamespace(data=updated)

        if self.action == 'upsert':
            key = self.payload[self.on_conflict]
            for row in rows:
                if row.get(self.on_conflict) == key:
                    row.update(self.payload)
                    return SimpleNamespace(data=[dict(row)])
            rows.append(dict(self.payload))
            return SimpleNamespace(data=[dict(self.payload)])

        result = [dict(r) for r in rows if self._matches(r)]
        for column, desc in reversed(self.orders):
            result.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        if self.max_rows is not None:
            result = result[:self.max_rows]
        return SimpleNamespace(data=result)


class FakeAuth:
    def __init__(self, users):
        self.users = users

    def get_user(self, token):
        if token not in self.users:
            raise ValueError("invalid JWT")
        return SimpleNamespace(user=self.users[token])


class FakeSupabase:
    """In-memory tables keyed by name; ``errors`` maps table or (table, action) to an exception."""

    def __init__(self, tables=None):
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self.errors = {}
        self.calls = []
        self.ids = itertools.count(1)
        self.clock = (f"2026-01-01T00:00:{s:02d}" for s in itertools.count(1))
        self.auth = FakeAuth({})

    def table(self, name):
        return FakeQuery(self, name)


def rule_rows(rules=DEFAULT_PRICING_RULES):
    return [{'id': f"rule-{i}", **rule.to_dict()} for i, rule in enumerate(rules, start=1)]


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def rules_db():
    return FakeSupabase({'pricing_rules': rule_rows()})
