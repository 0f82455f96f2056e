"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements a SQLAlchemy-backed relational store, but designed to be swappable.
"""

from src.services.storage.interface import (
    AuditStorageInterface,
    BalanceStorageInterface,
    ConnectionError,
    DuplicateEntryForDayError,
    DuplicateError,
    StorageError,
)
from src.services.storage.sql import (
    Base,
    SqlAuditStorage,
    SqlBalanceStorage,
    SqlClient,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BalanceStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateEntryForDayError",
    "DuplicateError",
    "StorageError",
    # SQL implementation
    "Base",
    "SqlAuditStorage",
    "SqlBalanceStorage",
    "SqlClient",
]
