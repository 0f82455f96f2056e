"""Services package."""

from src.services.storage import (
    AuditStorageInterface,
    BalanceStorageInterface,
    ConnectionError,
    DuplicateEntryForDayError,
    DuplicateError,
    SqlAuditStorage,
    SqlBalanceStorage,
    SqlClient,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "BalanceStorageInterface",
    "ConnectionError",
    "DuplicateEntryForDayError",
    "DuplicateError",
    "SqlAuditStorage",
    "SqlBalanceStorage",
    "SqlClient",
    "StorageError",
]
