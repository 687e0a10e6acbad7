"""
Storage Services Package

Provides the abstract repository/snapshot/audit interfaces, the in-memory
implementations and the snapshotting proxy.
"""

from ledger.services.storage.interface import (
    AccountRepository,
    AuditStorageInterface,
    CategoryRepository,
    DuplicateError,
    EntityRepository,
    NotFoundError,
    OperationRepository,
    SnapshotError,
    SnapshotWriter,
    StorageError,
)
from ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRepository,
    LedgerStore,
)
from ledger.services.storage.proxy import SnapshotRepositoryProxy

__all__ = [
    # Interfaces
    "AccountRepository",
    "AuditStorageInterface",
    "CategoryRepository",
    "EntityRepository",
    "OperationRepository",
    "SnapshotWriter",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "SnapshotError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRepository",
    "LedgerStore",
    # Proxies
    "SnapshotRepositoryProxy",
]
