"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of every manually entered balance
2. Debugging capability
3. A record of rejected and duplicate submissions

The audit logger:
- Is async to match the storage interface
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from datetime import date
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from src.services.storage import AuditStorageInterface


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure structlog for local JSON logging through the stdlib bridge.

    Call once at startup. Loggers are cached on first use and
    logging.basicConfig ignores later calls.
    """
    logging.basicConfig(format="%(message)s", level=log_level.upper())
    logging.getLogger().setLevel(log_level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit_log table (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_balance_read(
        self,
        amount: Optional[str],
        record_date: Optional[date],
        correlation_id: UUID,
    ) -> None:
        """Log a successful read (including the empty-store case)."""
        event = AuditEventBuilder.balance_read(
            amount=amount,
            record_date=record_date,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_balance_read_failed(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.balance_read_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_balance_submitted(
        self,
        raw_input: str,
        correlation_id: UUID,
    ) -> None:
        """Log operator submission."""
        event = AuditEventBuilder.balance_submitted(
            raw_input=raw_input,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_input_rejected(
        self,
        raw_input: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.input_rejected(
            raw_input=raw_input,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_duplicate_entry_rejected(
        self,
        record_date: date,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.duplicate_entry_rejected(
            record_date=record_date,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_balance_saved(
        self,
        record_id: UUID,
        amount: str,
        record_date: date,
        correlation_id: UUID,
    ) -> None:
        """Log balance save."""
        event = AuditEventBuilder.balance_saved(
            record_id=record_id,
            amount=amount,
            record_date=record_date,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_save_failed(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.save_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_connection_failed(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an unreachable store."""
        event = AuditEventBuilder.storage_connection_failed(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new operator action (e.g., one submission).
    Pass it through all subsequent operations.
    """
    return uuid4()
