"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Point the tool at SQLite, PostgreSQL or SQL Server without code changes
2. Use a throwaway database for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the operations we need for balance entry.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from src.models.balance import BalanceRecord
from src.models.audit import AuditEvent


class BalanceStorageInterface(ABC):
    """
    Abstract interface for balance storage operations.

    CRITICAL: Implementations must make the one-entry-per-day check and
    the insert a single atomic operation (e.g. a unique constraint),
    never a read followed by a separate write.
    """

    @abstractmethod
    async def get_latest_balance(self) -> Optional[BalanceRecord]:
        """
        Retrieve the most recent balance record.

        Returns:
            The newest record by record_date, or None if there are none

        Raises:
            ConnectionError: If the store cannot be reached
            StorageError: If the query fails
        """
        pass

    @abstractmethod
    async def add_balance(self, amount: Decimal, record_date: date) -> BalanceRecord:
        """
        Insert a balance record for a calendar day.

        Args:
            amount: Balance, already quantized to cents
            record_date: The day this balance belongs to

        Returns:
            The inserted record

        Raises:
            DuplicateEntryForDayError: If a record already exists for record_date
            ConnectionError: If the store cannot be reached
            StorageError: If the insert fails for any other reason
        """
        pass

    @abstractmethod
    async def get_balance_for_date(self, record_date: date) -> Optional[BalanceRecord]:
        """
        Retrieve the record for a specific day.

        Returns:
            The record if one exists, None otherwise
        """
        pass

    @abstractmethod
    async def list_recent_balances(self, limit: int = 10) -> list[BalanceRecord]:
        """
        List the most recent records.

        Args:
            limit: Maximum number of records to return

        Returns:
            Records, newest first
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one balance submission).

        Args:
            correlation_id: The correlation identifier

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Args:
            limit: Maximum number of events to return

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class DuplicateEntryForDayError(DuplicateError):
    """A balance record already exists for this calendar day."""

    def __init__(self, record_date: date):
        self.record_date = record_date
        super().__init__(
            f"A balance has already been entered for {record_date.isoformat()}. "
            "Only one entry per day is allowed."
        )


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
