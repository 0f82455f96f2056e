"""
Audit Models for Balance Updater

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of all operations
2. Debugging information when things go wrong
3. Accountability for every manually entered balance
4. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Both the read path and every outcome of the write path have their own type.
    """
    # Reader
    BALANCE_READ = "balance_read"
    BALANCE_READ_FAILED = "balance_read_failed"

    # Writer
    BALANCE_SUBMITTED = "balance_submitted"
    INPUT_REJECTED = "input_rejected"
    DUPLICATE_ENTRY_REJECTED = "duplicate_entry_rejected"
    BALANCE_SAVED = "balance_saved"
    SAVE_FAILED = "save_failed"

    # System events
    STORAGE_CONNECTION_FAILED = "storage_connection_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'balance_record')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one submission)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by the operator?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.balance_submitted(raw_input, correlation_id)
        event = AuditEventBuilder.balance_saved(record_id, amount, record_date, correlation_id)
    """

    @staticmethod
    def balance_read(
        amount: Optional[str],
        record_date: Optional[date],
        correlation_id: UUID
    ) -> AuditEvent:
        found = amount is not None
        return AuditEvent(
            event_type=AuditEventType.BALANCE_READ,
            severity=AuditSeverity.DEBUG,
            entity_type="balance_record",
            correlation_id=correlation_id,
            description=(
                f"Current balance read: {amount}" if found
                else "Current balance read: no records"
            ),
            details={
                "data_found": found,
                "amount": amount,
                "record_date": record_date.isoformat() if record_date else None,
            },
        )

    @staticmethod
    def balance_read_failed(
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_READ_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="balance_record",
            correlation_id=correlation_id,
            description="Current balance could not be read",
            error_message=error_message,
        )

    @staticmethod
    def balance_submitted(
        raw_input: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_SUBMITTED,
            entity_type="balance_record",
            correlation_id=correlation_id,
            description="Operator submitted a new balance",
            details={
                "raw_input": raw_input,
            },
            is_user_action=True,
        )

    @staticmethod
    def input_rejected(
        raw_input: str,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INPUT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="balance_record",
            correlation_id=correlation_id,
            description="Balance input rejected: not a valid amount",
            details={
                "raw_input": raw_input,
            },
            error_code="invalid_input",
            error_message=reason,
        )

    @staticmethod
    def duplicate_entry_rejected(
        record_date: date,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_ENTRY_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="balance_record",
            correlation_id=correlation_id,
            description=f"Balance already recorded for {record_date.isoformat()}",
            details={
                "record_date": record_date.isoformat(),
                "amount": amount,
            },
            error_code="duplicate_entry_for_day",
        )

    @staticmethod
    def balance_saved(
        record_id: UUID,
        amount: str,
        record_date: date,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_SAVED,
            entity_type="balance_record",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Balance saved: {amount} for {record_date.isoformat()}",
            details={
                "amount": amount,
                "record_date": record_date.isoformat(),
            },
        )

    @staticmethod
    def save_failed(
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="balance_record",
            correlation_id=correlation_id,
            description="Balance could not be saved",
            error_message=error_message,
        )

    @staticmethod
    def storage_connection_failed(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_CONNECTION_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Storage unreachable during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
