"""
In-Memory Storage Implementation

The ledger keeps its whole dataset in memory. Each entity type lives in an
InMemoryRepository backed by a dict: dicts keep insertion order, replacing
the value of an existing key keeps its position, and deleting then
re-inserting a key moves it to the end. That is exactly the ordering the
exporters must reproduce ("as given, with new items appended").
"""

from typing import Optional
from uuid import UUID

from ledger.models.audit import AuditEvent
from ledger.models.entities import Account, Category, Operation
from ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    EntityRepository,
    NotFoundError,
    T,
)


class InMemoryRepository(EntityRepository[T]):
    """Insertion-ordered repository for one entity type."""

    def __init__(self, entity_name: str):
        self.entity_name = entity_name
        self._data: dict[int, T] = {}

    def add(self, entity: T) -> None:
        if entity.id in self._data:
            raise DuplicateError(f"{self.entity_name} already exists: {entity.id}")
        self._data[entity.id] = entity

    def exists(self, entity_id: int) -> bool:
        return entity_id in self._data

    def get(self, entity_id: int) -> Optional[T]:
        return self._data.get(entity_id)

    def update(self, entity: T) -> None:
        if entity.id not in self._data:
            raise NotFoundError(f"{self.entity_name} not found: {entity.id}")
        self._data[entity.id] = entity

    def remove(self, entity_id: int) -> None:
        self._data.pop(entity_id, None)

    def all(self) -> list[T]:
        return list(self._data.values())

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class LedgerStore:
    """
    The three entity collections of one ledger.

    Importers receive it (or a proxied view of it) as their target,
    exporters and analytics read from it.
    """

    def __init__(
        self,
        accounts: Optional[EntityRepository[Account]] = None,
        categories: Optional[EntityRepository[Category]] = None,
        operations: Optional[EntityRepository[Operation]] = None,
    ):
        self.accounts = accounts if accounts is not None else InMemoryRepository[Account]("account")
        self.categories = categories if categories is not None else InMemoryRepository[Category]("category")
        self.operations = operations if operations is not None else InMemoryRepository[Operation]("operation")

    def clear_all(self) -> None:
        """Empty all three collections."""
        self.operations.clear()
        self.categories.clear()
        self.accounts.clear()

    def counts(self) -> dict[str, int]:
        return {
            "accounts": len(self.accounts),
            "categories": len(self.categories),
            "operations": len(self.operations),
        }


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit trail kept in a list, oldest first."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    def get_events_by_entity(self, entity_type: str, entity_id: int) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]

    def __len__(self) -> int:
        return len(self._events)
