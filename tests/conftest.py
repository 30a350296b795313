"""
Shared fixtures for the marketplace test suite.

The Supabase client is replaced by ``FakeSupabase``: every table is a
MagicMock query builder whose chained filter methods return itself, so a test
only configures what ``execute()`` returns per table and inspects the calls
afterwards.
"""

import os
from unittest.mock import MagicMock

import pytest

# Settings require Supabase credentials; set them before importing the app.
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")

from fastapi.testclient import TestClient  # noqa: E402

from marketplace.auth import get_profile, get_user  # noqa: E402
from marketplace.db.supabase import get_supabase_client  # noqa: E402
from marketplace.main import app  # noqa: E402

CHAIN_METHODS = [
    "select", "eq", "neq", "in_", "or_", "is_", "order", "limit", "range",
    "contains", "insert", "update", "upsert", "delete",
]


def result(data=None, count=None):
    data = data if data is not None else []
    return MagicMock(data=data, count=len(data) if count is None else count)


def make_table(rows=None):
    query = MagicMock()
    for name in CHAIN_METHODS:
        getattr(query, name).return_value = query
    query.not_ = query
    query.execute.return_value = result(rows)
    return query


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.rpc = MagicMock()
        self.auth = MagicMock()

    def table(self, name):
        if name not in self.tables:
            self.tables[name] = make_table()
        return self.tables[name]

    def set_rows(self, name, rows):
        """Every execute() on the table returns ``rows``."""
        self.table(name).execute.return_value = result(rows)
        self.table(name).execute.side_effect = None

    def set_results(self, name, *row_lists):
        """Successive execute() calls on the table return the given row lists."""
        self.table(name).execute.side_effect = [result(rows) for rows in row_lists]


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def reader_profile():
    return {"id": "reader-1", "user_role": "reader", "email": "reader@example.com", "display_name": "Rita"}


@pytest.fixture
def writer_profile():
    return {"id": "writer-1", "user_role": "writer", "email": "writer@example.com", "display_name": "Walt"}


@pytest.fixture
def admin_profile():
    return {"id": "admin-1", "user_role": "admin", "email": "admin@example.com", "display_name": "Ada"}


@pytest.fixture
def make_client(supabase):
    """Build a TestClient authenticated as the given profile (or anonymous)."""

    def _make(profile=None):
        app.dependency_overrides[get_supabase_client] = lambda: supabase
        if profile is not None:
            app.dependency_overrides[get_profile] = lambda: profile
            app.dependency_overrides[get_user] = lambda: MagicMock(id=profile["id"], email=profile.get("email"))
        return TestClient(app)

    return _make


@pytest.fixture(autouse=True)
def cleanup_dependency_overrides():
    yield
    app.dependency_overrides.clear()
