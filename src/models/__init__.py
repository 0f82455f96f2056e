"""
Data Models Package

This package contains all Pydantic models used in the Balance Updater system.
All data flowing through the system must conform to these schemas.
"""

from src.models.balance import (
    BalanceReadStatus,
    BalanceRecord,
    CurrentBalance,
    format_amount,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Balance models
    "BalanceReadStatus",
    "BalanceRecord",
    "CurrentBalance",
    "format_amount",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
