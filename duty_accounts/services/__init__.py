"""Services package."""

from duty_accounts.services.lookup import (
    RazorpayIFSCLookup,
    RoutingCodeLookupInterface,
    RoutingCodeLookupResult,
)
from duty_accounts.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsBackend,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    InMemoryBackend,
    NotFoundError,
    PersistenceBackendInterface,
    StorageError,
)

__all__ = [
    # Lookup services
    "RazorpayIFSCLookup",
    "RoutingCodeLookupInterface",
    "RoutingCodeLookupResult",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBackend",
    "GoogleSheetsClient",
    "InMemoryAuditStorage",
    "InMemoryBackend",
    "NotFoundError",
    "PersistenceBackendInterface",
    "StorageError",
]
