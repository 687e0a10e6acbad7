"""
Abstract Storage Interface

Defines the contracts the rest of the ledger programs against:
- EntityRepository: one keyed, ordered collection per entity type
- SnapshotWriter: something that persists the whole state on request
- AuditStorageInterface: append-only sink for audit events

Importers only ever see EntityRepository, so an in-memory collection and
the snapshotting proxy around it are interchangeable.
"""

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar
from uuid import UUID

from ledger.errors import LedgerError
from ledger.models.audit import AuditEvent
from ledger.models.entities import Account, Category, LedgerEntity, Operation


T = TypeVar("T", bound=LedgerEntity)


class EntityRepository(ABC, Generic[T]):
    """
    Abstract keyed collection of ledger entities.

    Implementations must:
    - reject a second entity with an existing id (DuplicateError)
    - reject updates of unknown ids (NotFoundError)
    - keep insertion order in all(); update keeps the position,
      remove-then-add moves the entity to the end
    """

    entity_name: str = "entity"

    @abstractmethod
    def add(self, entity: T) -> None:
        """
        Add a new entity.

        Raises:
            DuplicateError: If an entity with the same id exists
        """
        pass

    @abstractmethod
    def exists(self, entity_id: int) -> bool:
        """Check whether an entity with this id is stored."""
        pass

    @abstractmethod
    def get(self, entity_id: int) -> Optional[T]:
        """
        Retrieve an entity by its id.

        Returns:
            The entity if found, None otherwise
        """
        pass

    @abstractmethod
    def update(self, entity: T) -> None:
        """
        Replace the stored entity that has the same id.

        Raises:
            NotFoundError: If no entity has this id
        """
        pass

    @abstractmethod
    def remove(self, entity_id: int) -> None:
        """Delete the entity if present. Unknown ids are ignored."""
        pass

    @abstractmethod
    def all(self) -> list[T]:
        """Snapshot of all entities in insertion order."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every entity."""
        pass

    def __len__(self) -> int:
        return len(self.all())


AccountRepository = EntityRepository[Account]
CategoryRepository = EntityRepository[Category]
OperationRepository = EntityRepository[Operation]


class SnapshotWriter(ABC):
    """Persists the current state of the whole ledger."""

    @abstractmethod
    def save(self) -> None:
        """
        Write a full snapshot.

        Raises:
            SnapshotError: If the snapshot could not be written
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        """All events of one correlated flow, in chronological order."""
        pass

    @abstractmethod
    def get_events_by_entity(self, entity_type: str, entity_id: int) -> list[AuditEvent]:
        """All events about one entity, in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass


class StorageError(LedgerError):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class SnapshotError(StorageError):
    """The snapshot could not be written."""
    pass
