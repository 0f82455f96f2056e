"""
Main Orchestrator for Balance Updater

This module ties together all the components and defines the
two end-to-end flows:
1. Read (store → latest record → display value)
2. Update (operator text → normalized amount → insert for today)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Reading never raises; failures become an error indicator
- Nothing is written unless the input parses
- At most one balance per calendar day, decided by the store
- Every step is audited

No retries anywhere: a failed write is reported and the operator decides.
"""

from datetime import date, datetime
from typing import Callable, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog

from src.audit import AuditLogger, configure_logging, create_correlation_id
from src.config import get_settings
from src.models.balance import BalanceRecord, CurrentBalance, format_amount
from src.services.storage import (
    BalanceStorageInterface,
    ConnectionError,
    DuplicateEntryForDayError,
    SqlAuditStorage,
    SqlBalanceStorage,
    SqlClient,
    StorageError,
)
from src.validation import BalanceInputValidator, InvalidInputError


logger = structlog.get_logger(__name__)


def today_in_timezone(timezone: Optional[str] = None) -> date:
    """Current calendar day in the given IANA timezone, or local time."""
    if timezone:
        return datetime.now(ZoneInfo(timezone)).date()
    return date.today()


class BalanceReadFlow:
    """
    Reads the current balance for display.

    Contract:
    - Newest record → AVAILABLE with its amount
    - Empty store → NO_DATA (not an error)
    - Any failure → ERROR with a message; never raises
    """

    def __init__(
        self,
        balance_storage: Optional[BalanceStorageInterface],
        audit_logger: Optional[AuditLogger] = None,
        currency_symbol: Optional[str] = None,
    ):
        self._balance_storage = balance_storage
        self._audit_logger = audit_logger
        self._currency_symbol = currency_symbol or get_settings().app.currency_symbol

    async def get_current_balance(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> CurrentBalance:
        correlation_id = correlation_id or create_correlation_id()

        if self._balance_storage is None:
            return CurrentBalance.failed("Storage not configured", self._currency_symbol)

        try:
            record = await self._balance_storage.get_latest_balance()
        except ConnectionError as e:
            if self._audit_logger:
                await self._audit_logger.log_connection_failed(
                    operation="read",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                await self._audit_logger.log_balance_read_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return CurrentBalance.failed(str(e) or type(e).__name__, self._currency_symbol)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_balance_read_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return CurrentBalance.failed(str(e) or type(e).__name__, self._currency_symbol)
        except Exception as e:
            logger.exception("balance_read_crashed")
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"operation": "read"},
                    correlation_id=correlation_id,
                )
            return CurrentBalance.failed(str(e) or type(e).__name__, self._currency_symbol)

        if self._audit_logger:
            await self._audit_logger.log_balance_read(
                amount=str(record.amount) if record else None,
                record_date=record.record_date if record else None,
                correlation_id=correlation_id,
            )

        return CurrentBalance.from_record(record, self._currency_symbol)

    async def list_recent_balances(self, limit: int = 10) -> list[BalanceRecord]:
        """Recent history for display; empty on any storage failure."""
        if self._balance_storage is None:
            return []
        try:
            return await self._balance_storage.list_recent_balances(limit=limit)
        except StorageError as e:
            logger.warning("recent_balances_unavailable", error=str(e))
            return []


class BalanceUpdateFlow:
    """
    Writes a new balance for today.

    Flow:
    1. Submit → audit the raw operator text
    2. Parse → normalize, quantize to cents (InvalidInputError on failure)
    3. Insert → one row for today; the store rejects a second one
       (DuplicateEntryForDayError)

    Zero rows are written on every failure path.
    """

    def __init__(
        self,
        balance_storage: Optional[BalanceStorageInterface],
        validator: Optional[BalanceInputValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        today_provider: Optional[Callable[[], date]] = None,
    ):
        self._balance_storage = balance_storage
        self._validator = validator or BalanceInputValidator()
        self._audit_logger = audit_logger
        if today_provider is None:
            timezone = get_settings().app.timezone
            today_provider = lambda: today_in_timezone(timezone)  # noqa: E731
        self._today = today_provider

    async def submit_balance(
        self,
        raw_input: str,
        correlation_id: Optional[UUID] = None,
    ) -> BalanceRecord:
        """
        Parse the operator's text and insert it as today's balance.

        Returns:
            The saved BalanceRecord

        Raises:
            InvalidInputError: text is not a usable amount
            DuplicateEntryForDayError: today already has a balance
            ConnectionError: store unreachable
            StorageError: any other store failure
        """
        correlation_id = correlation_id or create_correlation_id()
        raw_input = raw_input if raw_input is not None else ""

        if self._audit_logger:
            await self._audit_logger.log_balance_submitted(
                raw_input=raw_input,
                correlation_id=correlation_id,
            )

        try:
            amount = self._validator.validate(raw_input)
        except InvalidInputError as e:
            if self._audit_logger:
                await self._audit_logger.log_input_rejected(
                    raw_input=raw_input,
                    reason=e.reason,
                    correlation_id=correlation_id,
                )
            raise

        if self._balance_storage is None:
            if self._audit_logger:
                await self._audit_logger.log_connection_failed(
                    operation="write",
                    error_message="Storage not configured",
                    correlation_id=correlation_id,
                )
            raise ConnectionError("Storage not configured")

        record_date = self._today()

        try:
            record = await self._balance_storage.add_balance(amount, record_date)
        except DuplicateEntryForDayError:
            if self._audit_logger:
                await self._audit_logger.log_duplicate_entry_rejected(
                    record_date=record_date,
                    amount=str(amount),
                    correlation_id=correlation_id,
                )
            raise
        except ConnectionError as e:
            if self._audit_logger:
                await self._audit_logger.log_connection_failed(
                    operation="write",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_balance_saved(
                record_id=record.id,
                amount=str(record.amount),
                record_date=record.record_date,
                correlation_id=correlation_id,
            )

        logger.info(
            "balance_updated",
            amount=format_amount(record.amount),
            record_date=record.record_date.isoformat(),
        )
        return record


def create_app_components(
    use_storage: bool = True,
    client: Optional[SqlClient] = None,
) -> tuple[BalanceReadFlow, BalanceUpdateFlow, Optional[SqlClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to connect to the database.
                    Set to False to run without storage (reads show an error).
        client: Pre-built client (tests pass one pointing at a temp database).

    Returns:
        (read_flow, update_flow, sql_client)
    """
    settings = get_settings().app
    configure_logging(settings.log_level)

    balance_storage = None
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            client = client or SqlClient()
            client.connect()
            if client.url.startswith("sqlite"):
                client.create_schema()
            balance_storage = SqlBalanceStorage(client)
            if settings.persist_audit_events:
                audit_logger = AuditLogger(SqlAuditStorage(client))
        except StorageError as e:
            # Storage not reachable - reads will show the error indicator
            logger.warning("storage_unavailable", error=str(e))
            client = None
            balance_storage = None
    else:
        client = None

    read_flow = BalanceReadFlow(
        balance_storage=balance_storage,
        audit_logger=audit_logger,
        currency_symbol=settings.currency_symbol,
    )
    update_flow = BalanceUpdateFlow(
        balance_storage=balance_storage,
        validator=BalanceInputValidator(settings.max_balance_amount),
        audit_logger=audit_logger,
        today_provider=lambda: today_in_timezone(settings.timezone),
    )

    return read_flow, update_flow, client
