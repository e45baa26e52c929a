"""Shared test fixtures for tablegate tests."""
import pytest
from unittest.mock import AsyncMock

from tablegate.governance.models import CREATE_QUERIES, PermissionEntry, Table


PRINCIPAL = "analysts"
DATA_SOURCE = "warehouse"


def make_entry(
    scope,
    target,
    value,
    principal=PRINCIPAL,
    data_source_id=DATA_SOURCE,
    perm_type=CREATE_QUERIES,
):
    return PermissionEntry(
        principal=principal,
        data_source_id=data_source_id,
        scope_level=scope,
        scope_target=target,
        perm_type=perm_type,
        perm_value=value,
    )


@pytest.fixture
def mock_pool():
    """Mock database connection pool."""
    mock = AsyncMock()
    mock.execute_readonly = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def orders():
    return Table(id=1, name="orders", schema="public", data_source_id=DATA_SOURCE)


@pytest.fixture
def customers():
    return Table(id=2, name="customers", schema="public", data_source_id=DATA_SOURCE)


@pytest.fixture
def payments():
    return Table(id=3, name="payments", schema="finance", data_source_id=DATA_SOURCE)


@pytest.fixture
def catalog(orders, customers, payments):
    return [orders, customers, payments]


@pytest.fixture
def native_orders_entries():
    """orders has native access, customers query-builder only, payments nothing."""
    return [
        make_entry("table", 1, "query-builder-and-native"),
        make_entry("table", 2, "query-builder"),
    ]


@pytest.fixture
def sample_rows():
    return [
        {"id": 1, "customer_id": 10, "total": 99.5},
        {"id": 2, "customer_id": 11, "total": 12.0},
    ]
