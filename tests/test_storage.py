"""Tests for the SQL storage layer against throwaway SQLite files."""

import asyncio
import threading
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from src.models.audit import AuditEventBuilder, AuditEventType
from src.services.storage import (
    ConnectionError,
    DuplicateEntryForDayError,
    DuplicateError,
    SqlAuditStorage,
    SqlBalanceStorage,
    SqlClient,
    StorageError,
)
from src.services.storage.sql import BalanceRecordRow


def count_rows(client: SqlClient) -> int:
    with client.session() as session:
        return session.scalar(select(func.count()).select_from(BalanceRecordRow))


class TestSqlClient:

    def test_connect_succeeds(self, sql_client):
        assert sql_client.connect() is sql_client.engine

    def test_connect_to_unreachable_database_raises(self, unreachable_client):
        with pytest.raises(ConnectionError):
            unreachable_client.connect()

    def test_create_schema_is_idempotent(self, sql_client):
        sql_client.create_schema()
        assert count_rows(sql_client) == 0


class TestSqlBalanceStorage:

    async def test_latest_balance_on_empty_store_is_none(self, balance_storage):
        assert await balance_storage.get_latest_balance() is None

    async def test_add_balance_inserts_one_row(self, balance_storage, sql_client, today):
        record = await balance_storage.add_balance(Decimal("12345.67"), today)

        assert record.amount == Decimal("12345.67")
        assert record.record_date == today
        assert count_rows(sql_client) == 1

        stored = await balance_storage.get_balance_for_date(today)
        assert stored.id == record.id
        assert stored.amount == Decimal("12345.67")

    async def test_amount_round_trips_exactly(self, balance_storage, today):
        await balance_storage.add_balance(Decimal("922337203685477.58"), today)
        stored = await balance_storage.get_latest_balance()
        assert stored.amount == Decimal("922337203685477.58")
        assert stored.amount.as_tuple().exponent == -2

    async def test_second_balance_same_day_is_rejected(self, balance_storage, sql_client, today):
        first = await balance_storage.add_balance(Decimal("100.00"), today)

        with pytest.raises(DuplicateEntryForDayError) as exc_info:
            await balance_storage.add_balance(Decimal("200.00"), today)

        assert exc_info.value.record_date == today
        assert today.isoformat() in str(exc_info.value)
        assert count_rows(sql_client) == 1
        stored = await balance_storage.get_balance_for_date(today)
        assert stored.id == first.id
        assert stored.amount == Decimal("100.00")

    async def test_duplicate_is_a_storage_error(self, balance_storage, today):
        await balance_storage.add_balance(Decimal("1.00"), today)
        with pytest.raises(DuplicateError):
            await balance_storage.add_balance(Decimal("1.00"), today)
        with pytest.raises(StorageError):
            await balance_storage.add_balance(Decimal("1.00"), today)

    async def test_latest_balance_is_newest_by_date(self, balance_storage, today):
        # Inserted out of order on purpose
        await balance_storage.add_balance(Decimal("300.00"), today)
        await balance_storage.add_balance(Decimal("100.00"), today - timedelta(days=2))
        await balance_storage.add_balance(Decimal("200.00"), today - timedelta(days=1))

        latest = await balance_storage.get_latest_balance()
        assert latest.record_date == today
        assert latest.amount == Decimal("300.00")

    async def test_list_recent_balances_newest_first(self, balance_storage, today):
        for offset in range(5):
            await balance_storage.add_balance(Decimal(offset), today - timedelta(days=offset))

        records = await balance_storage.list_recent_balances(limit=3)
        assert [r.record_date for r in records] == [
            today,
            today - timedelta(days=1),
            today - timedelta(days=2),
        ]

    async def test_get_balance_for_missing_date(self, balance_storage, today):
        assert await balance_storage.get_balance_for_date(today) is None

    async def test_unreachable_store_raises_connection_error(self, unreachable_client, today):
        storage = SqlBalanceStorage(unreachable_client)
        with pytest.raises(ConnectionError):
            await storage.get_latest_balance()
        with pytest.raises(ConnectionError):
            await storage.add_balance(Decimal("1.00"), today)

    def test_concurrent_writes_for_same_day(self, database_url, sql_client, today):
        """Two simultaneous submissions: exactly one wins."""
        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def submit(amount: str):
            client = SqlClient(url=database_url, connect_attempts=1)
            storage = SqlBalanceStorage(client)
            barrier.wait()
            try:
                asyncio.run(storage.add_balance(Decimal(amount), today))
                result = "saved"
            except DuplicateEntryForDayError:
                result = "duplicate"
            finally:
                client.dispose()
            with lock:
                outcomes.append(result)

        threads = [
            threading.Thread(target=submit, args=("100.00",)),
            threading.Thread(target=submit, args=("200.00",)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(outcomes) == ["duplicate", "saved"]
        assert count_rows(sql_client) == 1


class TestSqlAuditStorage:

    async def test_append_and_fetch_by_correlation_id(self, audit_storage):
        correlation_id = uuid4()
        submitted = AuditEventBuilder.balance_submitted("$1,000", correlation_id)
        rejected = AuditEventBuilder.input_rejected("$1,000", "nope", uuid4())

        assert await audit_storage.append_event(submitted) is True
        assert await audit_storage.append_event(rejected) is True

        events = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert len(events) == 1
        assert events[0].event_id == submitted.event_id
        assert events[0].event_type == AuditEventType.BALANCE_SUBMITTED
        assert events[0].details == {"raw_input": "$1,000"}
        assert events[0].is_user_action is True

    async def test_recent_events_newest_first(self, audit_storage):
        first = AuditEventBuilder.save_failed("boom", uuid4())
        second = AuditEventBuilder.save_failed("boom again", uuid4())
        second.timestamp = first.timestamp + timedelta(seconds=1)
        await audit_storage.append_event(first)
        await audit_storage.append_event(second)

        events = await audit_storage.get_recent_events(limit=10)
        assert [e.event_id for e in events] == [second.event_id, first.event_id]

    async def test_append_failure_returns_false(self, unreachable_client):
        storage = SqlAuditStorage(unreachable_client)
        event = AuditEventBuilder.save_failed("boom", uuid4())
        assert await storage.append_event(event) is False
