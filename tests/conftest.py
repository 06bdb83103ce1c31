"""
Shared test fixtures.

The Supabase mock is an in-memory table store: filters really filter and
writes really persist, so read-modify-write code (the product map's
version check in particular) behaves as it would against the database.
"""

import os
import sys
from pathlib import Path

# Required settings must exist before config is imported
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("ENVIRONMENT", "development")

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import copy
import pytest
from unittest.mock import patch
from datetime import datetime, timezone
from typing import Any, Generator, Optional
from uuid import uuid4


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: int = None):
        self.data = data if data is not None else []
        if count is not None:
            self.count = count
        else:
            self.count = len(self.data) if isinstance(self.data, list) else (1 if self.data else 0)


class MockSupabaseQuery:
    """Chainable query builder executed against a MockSupabaseTable."""

    def __init__(self, table: "MockSupabaseTable", operation: str, payload: Any = None):
        self._table = table
        self._operation = operation
        self._payload = payload
        self._filters = []
        self._is_single = False
        self._limit = None

    def select(self, *args, **kwargs):
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self._filters.append(lambda row: row.get(column) in values)
        return self

    def single(self):
        self._is_single = True
        return self

    def order(self, column, **kwargs):
        return self

    def range(self, start, end):
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matches(self, row: dict) -> bool:
        return all(f(row) for f in self._filters)

    def execute(self) -> MockSupabaseResponse:
        table = self._table
        table.calls.append(self._operation)

        if table.error is not None:
            error, table.error = table.error, None
            raise error

        now = datetime.now(timezone.utc).isoformat()

        if self._operation == "insert":
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = []
            for item in items:
                row = copy.deepcopy(item)
                row.setdefault("id", str(uuid4()))
                row.setdefault("created_at", now)
                row.setdefault("updated_at", now)
                table.rows.append(row)
                inserted.append(copy.deepcopy(row))
            return MockSupabaseResponse(inserted)

        if self._operation == "upsert":
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            result = []
            for item in items:
                existing = next((r for r in table.rows if r.get("id") == item.get("id")), None)
                if existing is None:
                    row = copy.deepcopy(item)
                    row.setdefault("id", str(uuid4()))
                    table.rows.append(row)
                else:
                    existing.update(copy.deepcopy(item))
                    row = existing
                result.append(copy.deepcopy(row))
            return MockSupabaseResponse(result)

        matched = [row for row in table.rows if self._matches(row)]

        if self._operation == "update":
            for row in matched:
                row.update(copy.deepcopy(self._payload))
            return MockSupabaseResponse([copy.deepcopy(r) for r in matched])

        if self._operation == "delete":
            table.rows = [row for row in table.rows if not self._matches(row)]
            return MockSupabaseResponse([copy.deepcopy(r) for r in matched])

        if self._limit is not None:
            matched = matched[:self._limit]
        data = [copy.deepcopy(r) for r in matched]

        if self._is_single:
            return MockSupabaseResponse(data[0] if data else None)
        return MockSupabaseResponse(data)


class MockSupabaseTable:
    """One in-memory table."""

    def __init__(self, rows: Optional[list] = None):
        self.rows = copy.deepcopy(rows) if rows else []
        self.error: Optional[Exception] = None
        self.calls: list[str] = []

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self, "select")

    def insert(self, data):
        return MockSupabaseQuery(self, "insert", data)

    def upsert(self, data):
        return MockSupabaseQuery(self, "upsert", data)

    def update(self, data):
        return MockSupabaseQuery(self, "update", data)

    def delete(self):
        return MockSupabaseQuery(self, "delete")


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables: dict[str, MockSupabaseTable] = {}

    def set_table_data(self, table_name: str, data: list):
        """Replace the rows of a table."""
        self._tables[table_name] = MockSupabaseTable(data)

    def set_error(self, table_name: str, error: Exception):
        """Make the next query on a table raise."""
        self.table(table_name).error = error

    def rows(self, table_name: str) -> list:
        """Current rows of a table (live references)."""
        return self.table(table_name).rows

    def table(self, name: str) -> MockSupabaseTable:
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable()
        return self._tables[name]


# ===================
# FIXTURES
# ===================

SERVICE_MODULES_WITH_DB = [
    "services.product_service",
    "services.store_service",
    "services.product_map_service",
]

SERVICE_SINGLETONS = [
    ("services.product_service", "_product_service"),
    ("services.store_service", "_store_service"),
    ("services.product_map_service", "_product_map_service"),
    ("services.inventory_service", "_inventory_service"),
    ("services.allocation_service", "_allocation_service"),
    ("services.store_sync_service", "_store_sync_service"),
    ("services.bulk_sync_service", "_bulk_sync_service"),
]


@pytest.fixture(autouse=True)
def reset_service_singletons(monkeypatch):
    """Every test builds its services against its own mock database."""
    import importlib
    for module_name, attr in SERVICE_SINGLETONS:
        module = importlib.import_module(module_name)
        monkeypatch.setattr(module, attr, None)


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [MasterProductFactory.create()])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("products", [...])
            # Now any service using get_supabase_client() gets the mock
    """
    patches = [patch("config.database.get_supabase_client", return_value=mock_supabase)]
    patches += [
        patch(f"{module}.get_supabase_client", return_value=mock_supabase)
        for module in SERVICE_MODULES_WITH_DB
    ]
    for p in patches:
        p.start()
    try:
        yield mock_supabase
    finally:
        for p in reversed(patches):
            p.stop()


@pytest.fixture
def no_batch_delay(monkeypatch):
    """Bulk sync without the pause between batches."""
    from config import settings
    monkeypatch.setattr(settings, "bulk_sync_batch_delay_seconds", 0.0)


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("products", [...])
            response = test_client_with_mock_db.get("/api/sync/products/x/status")
    """
    from fastapi.testclient import TestClient
    from main import app

    yield TestClient(app)
