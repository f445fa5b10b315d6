"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the production backend; the in-memory backend serves
tests and local development.
"""

from duty_accounts.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    PersistenceBackendInterface,
    StorageError,
)
from duty_accounts.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBackend,
    GoogleSheetsClient,
    SheetLayout,
)
from duty_accounts.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBackend,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "PersistenceBackendInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBackend",
    "GoogleSheetsClient",
    "SheetLayout",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryBackend",
]
