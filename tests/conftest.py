"""Shared test fixtures."""

from datetime import date

import pytest

from src.audit import AuditLogger
from src.config import get_settings
from src.services.storage import SqlAuditStorage, SqlBalanceStorage, SqlClient


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep a developer's .env and APP_/DATABASE_ variables out of the tests."""
    monkeypatch.chdir(tmp_path)
    for var in (
        "DATABASE_URL",
        "DATABASE_ECHO",
        "DATABASE_CONNECT_ATTEMPTS",
        "APP_ACCOUNT_NAME",
        "APP_TIMEZONE",
        "APP_CURRENCY_SYMBOL",
        "APP_MAX_BALANCE_AMOUNT",
        "APP_PERSIST_AUDIT_EVENTS",
        "APP_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'balances.db'}"


@pytest.fixture
def sql_client(database_url):
    client = SqlClient(url=database_url, echo=False, connect_attempts=1)
    client.create_schema()
    yield client
    client.dispose()


@pytest.fixture
def balance_storage(sql_client) -> SqlBalanceStorage:
    return SqlBalanceStorage(sql_client)


@pytest.fixture
def audit_storage(sql_client) -> SqlAuditStorage:
    return SqlAuditStorage(sql_client)


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def unreachable_client(tmp_path):
    """A client whose database file lives in a directory that doesn't exist."""
    client = SqlClient(
        url=f"sqlite:///{tmp_path / 'missing' / 'nested' / 'balances.db'}",
        connect_attempts=1,
    )
    yield client
    client.dispose()


@pytest.fixture
def today() -> date:
    return date(2026, 2, 5)
