"""Tests for the read and update flows."""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from src.audit import AuditLogger, create_correlation_id
from src.models.audit import AuditEventType
from src.models.balance import BalanceReadStatus, BalanceRecord
from src.orchestrator import (
    BalanceReadFlow,
    BalanceUpdateFlow,
    create_app_components,
    today_in_timezone,
)
from src.services.storage import (
    ConnectionError,
    DuplicateEntryForDayError,
    SqlBalanceStorage,
    SqlClient,
    StorageError,
)
from src.services.storage.sql import BalanceRecordRow
from src.validation import BalanceInputValidator, InvalidInputError


def count_rows(client: SqlClient) -> int:
    with client.session() as session:
        return session.scalar(select(func.count()).select_from(BalanceRecordRow))


@pytest.fixture
def read_flow(balance_storage, audit_logger) -> BalanceReadFlow:
    return BalanceReadFlow(
        balance_storage=balance_storage,
        audit_logger=audit_logger,
        currency_symbol="$",
    )


@pytest.fixture
def update_flow(balance_storage, audit_logger, today) -> BalanceUpdateFlow:
    return BalanceUpdateFlow(
        balance_storage=balance_storage,
        validator=BalanceInputValidator(Decimal("922337203685477.58")),
        audit_logger=audit_logger,
        today_provider=lambda: today,
    )


async def event_types(audit_storage, correlation_id) -> set[AuditEventType]:
    events = await audit_storage.get_events_by_correlation_id(correlation_id)
    return {e.event_type for e in events}


class TestBalanceReadFlow:

    async def test_empty_store_returns_no_data(self, read_flow):
        current = await read_flow.get_current_balance()
        assert current.status == BalanceReadStatus.NO_DATA
        assert current.is_error is False
        assert current.display_text == "Current Balance: $0.00"

    async def test_returns_latest_balance(self, read_flow, balance_storage, today):
        await balance_storage.add_balance(Decimal("100.00"), today - timedelta(days=1))
        await balance_storage.add_balance(Decimal("12345.67"), today)

        current = await read_flow.get_current_balance()
        assert current.status == BalanceReadStatus.AVAILABLE
        assert current.amount == Decimal("12345.67")
        assert current.record_date == today
        assert current.display_text == "Current Balance: $12,345.67"

    async def test_read_is_audited(self, read_flow, audit_storage):
        correlation_id = create_correlation_id()
        await read_flow.get_current_balance(correlation_id=correlation_id)
        assert await event_types(audit_storage, correlation_id) == {AuditEventType.BALANCE_READ}

    async def test_unreachable_store_degrades_to_error(self, unreachable_client):
        flow = BalanceReadFlow(
            balance_storage=SqlBalanceStorage(unreachable_client),
            audit_logger=AuditLogger(),
            currency_symbol="$",
        )
        current = await flow.get_current_balance()
        assert current.status == BalanceReadStatus.ERROR
        assert current.display_text == "Current Balance: Error"
        assert current.error_message

    async def test_unexpected_failure_does_not_raise(self):
        storage = AsyncMock()
        storage.get_latest_balance.side_effect = RuntimeError("driver exploded")
        flow = BalanceReadFlow(balance_storage=storage, currency_symbol="$")

        current = await flow.get_current_balance()
        assert current.is_error is True
        assert current.error_message == "driver exploded"

    @pytest.mark.parametrize("error", [StorageError(), ConnectionError()])
    async def test_storage_error_without_message_does_not_raise(self, error):
        storage = AsyncMock()
        storage.get_latest_balance.side_effect = error
        flow = BalanceReadFlow(balance_storage=storage, currency_symbol="$")

        current = await flow.get_current_balance()
        assert current.is_error is True
        assert current.error_message == type(error).__name__
        assert current.display_text == "Current Balance: Error"

    async def test_no_storage_configured(self):
        flow = BalanceReadFlow(balance_storage=None, currency_symbol="$")
        current = await flow.get_current_balance()
        assert current.is_error is True

    async def test_list_recent_balances_swallows_storage_errors(self):
        storage = AsyncMock()
        storage.list_recent_balances.side_effect = StorageError("nope")
        flow = BalanceReadFlow(balance_storage=storage, currency_symbol="$")
        assert await flow.list_recent_balances() == []


class TestBalanceUpdateFlow:

    async def test_valid_write_inserts_one_record_for_today(self, update_flow, balance_storage, sql_client, today):
        record = await update_flow.submit_balance("$12,345.67")

        assert record.amount == Decimal("12345.67")
        assert record.record_date == today
        assert count_rows(sql_client) == 1
        stored = await balance_storage.get_balance_for_date(today)
        assert stored.amount == Decimal("12345.67")

    async def test_whole_number_is_stored_with_cents(self, update_flow):
        record = await update_flow.submit_balance("1000")
        assert record.amount == Decimal("1000.00")

    async def test_successful_write_is_audited(self, update_flow, audit_storage):
        correlation_id = create_correlation_id()
        await update_flow.submit_balance("$500", correlation_id=correlation_id)

        assert await event_types(audit_storage, correlation_id) == {
            AuditEventType.BALANCE_SUBMITTED,
            AuditEventType.BALANCE_SAVED,
        }

    @pytest.mark.parametrize("raw", ["", "$", "abc", "1.2.3"])
    async def test_invalid_input_writes_nothing(self, update_flow, sql_client, raw):
        with pytest.raises(InvalidInputError):
            await update_flow.submit_balance(raw)
        assert count_rows(sql_client) == 0

    async def test_oversized_input_never_reaches_storage(self, today):
        storage = AsyncMock()
        flow = BalanceUpdateFlow(
            balance_storage=storage,
            validator=BalanceInputValidator(Decimal("922337203685477.58")),
            today_provider=lambda: today,
        )
        with pytest.raises(InvalidInputError):
            await flow.submit_balance("$" + "9" * 27)
        storage.add_balance.assert_not_awaited()

    async def test_invalid_input_is_audited(self, update_flow, audit_storage):
        correlation_id = create_correlation_id()
        with pytest.raises(InvalidInputError):
            await update_flow.submit_balance("abc", correlation_id=correlation_id)

        assert await event_types(audit_storage, correlation_id) == {
            AuditEventType.BALANCE_SUBMITTED,
            AuditEventType.INPUT_REJECTED,
        }

    async def test_second_write_same_day_is_rejected(self, update_flow, balance_storage, sql_client, today):
        first = await update_flow.submit_balance("$100.00")

        correlation_id = create_correlation_id()
        with pytest.raises(DuplicateEntryForDayError):
            await update_flow.submit_balance("$999.99", correlation_id=correlation_id)

        assert count_rows(sql_client) == 1
        stored = await balance_storage.get_balance_for_date(today)
        assert stored.id == first.id
        assert stored.amount == Decimal("100.00")

    async def test_duplicate_is_audited(self, update_flow, audit_storage):
        await update_flow.submit_balance("$100.00")

        correlation_id = create_correlation_id()
        with pytest.raises(DuplicateEntryForDayError):
            await update_flow.submit_balance("$200.00", correlation_id=correlation_id)

        assert AuditEventType.DUPLICATE_ENTRY_REJECTED in await event_types(audit_storage, correlation_id)

    async def test_next_day_write_succeeds(self, balance_storage, audit_logger, today):
        days = iter([today, today + timedelta(days=1)])
        flow = BalanceUpdateFlow(
            balance_storage=balance_storage,
            validator=BalanceInputValidator(Decimal("1000000")),
            audit_logger=audit_logger,
            today_provider=lambda: next(days),
        )

        await flow.submit_balance("100")
        await flow.submit_balance("150")

        latest = await balance_storage.get_latest_balance()
        assert latest.record_date == today + timedelta(days=1)
        assert latest.amount == Decimal("150.00")

    async def test_unreachable_store_raises_connection_error(self, unreachable_client, today):
        flow = BalanceUpdateFlow(
            balance_storage=SqlBalanceStorage(unreachable_client),
            validator=BalanceInputValidator(Decimal("1000000")),
            today_provider=lambda: today,
        )
        with pytest.raises(ConnectionError):
            await flow.submit_balance("$100")

    async def test_no_storage_configured_raises_connection_error(self, today):
        flow = BalanceUpdateFlow(
            balance_storage=None,
            validator=BalanceInputValidator(Decimal("1000000")),
            today_provider=lambda: today,
        )
        with pytest.raises(ConnectionError, match="Storage not configured"):
            await flow.submit_balance("$100")

    async def test_other_storage_failure_is_audited_as_save_failed(self, audit_logger, audit_storage, today):
        storage = AsyncMock()
        storage.add_balance.side_effect = StorageError("disk full")
        flow = BalanceUpdateFlow(
            balance_storage=storage,
            validator=BalanceInputValidator(Decimal("1000000")),
            audit_logger=audit_logger,
            today_provider=lambda: today,
        )

        correlation_id = create_correlation_id()
        with pytest.raises(StorageError, match="disk full"):
            await flow.submit_balance("$100", correlation_id=correlation_id)

        assert AuditEventType.SAVE_FAILED in await event_types(audit_storage, correlation_id)

    async def test_storage_receives_quantized_amount_and_today(self, today):
        storage = AsyncMock()
        flow = BalanceUpdateFlow(
            balance_storage=storage,
            validator=BalanceInputValidator(Decimal("1000000")),
            today_provider=lambda: today,
        )
        storage.add_balance.side_effect = lambda amount, record_date: BalanceRecord(
            amount=amount, record_date=record_date
        )

        record = await flow.submit_balance(" $ 2.345 ")

        assert record.amount == Decimal("2.35")

        storage.add_balance.assert_awaited_once_with(Decimal("2.35"), today)


class TestTodayInTimezone:

    def test_local_date_without_timezone(self):
        assert today_in_timezone(None) == date.today()

    def test_named_timezone(self):
        assert isinstance(today_in_timezone("UTC"), date)


class TestCreateAppComponents:

    def test_builds_flows_against_sqlite(self, monkeypatch, database_url):
        monkeypatch.setenv("DATABASE_URL", database_url)
        read_flow, update_flow, client = create_app_components(use_storage=True)

        assert isinstance(read_flow, BalanceReadFlow)
        assert isinstance(update_flow, BalanceUpdateFlow)
        assert client is not None
        assert count_rows(client) == 0
        client.dispose()

    async def test_unreachable_database_still_builds_flows(self, unreachable_client):
        read_flow, update_flow, client = create_app_components(
            use_storage=True,
            client=unreachable_client,
        )
        assert client is None
        current = await read_flow.get_current_balance()
        assert current.is_error is True
        with pytest.raises(ConnectionError):
            await update_flow.submit_balance("$100")

    def test_without_storage(self):
        _, _, client = create_app_components(use_storage=False)
        assert client is None
