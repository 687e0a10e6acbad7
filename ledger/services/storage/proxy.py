"""
Snapshotting Repository Proxy

Wraps a repository so that every successful mutation (add, update, remove,
clear) is followed by a full snapshot of the ledger. Reads are delegated
unchanged. The proxy holds no state of its own.
"""

from typing import TYPE_CHECKING, Optional

from ledger.services.storage.interface import EntityRepository, SnapshotWriter, T

if TYPE_CHECKING:
    from ledger.audit.logger import AuditLogger


class SnapshotRepositoryProxy(EntityRepository[T]):
    """Repository decorator that persists the ledger after each change."""

    def __init__(
        self,
        inner: EntityRepository[T],
        snapshot: SnapshotWriter,
        audit_logger: Optional["AuditLogger"] = None,
    ):
        self._inner = inner
        self._snapshot = snapshot
        self._audit_logger = audit_logger
        self.entity_name = inner.entity_name

    def add(self, entity: T) -> None:
        self._inner.add(entity)
        if self._audit_logger:
            self._audit_logger.log_entity_added(self.entity_name, entity.id)
        self._snapshot.save()

    def exists(self, entity_id: int) -> bool:
        return self._inner.exists(entity_id)

    def get(self, entity_id: int) -> Optional[T]:
        return self._inner.get(entity_id)

    def update(self, entity: T) -> None:
        self._inner.update(entity)
        if self._audit_logger:
            self._audit_logger.log_entity_updated(self.entity_name, entity.id)
        self._snapshot.save()

    def remove(self, entity_id: int) -> None:
        existed = self._inner.exists(entity_id)
        self._inner.remove(entity_id)
        if existed and self._audit_logger:
            self._audit_logger.log_entity_removed(self.entity_name, entity_id)
        self._snapshot.save()

    def all(self) -> list[T]:
        return self._inner.all()

    def clear(self) -> None:
        self._inner.clear()
        if self._audit_logger:
            self._audit_logger.log_collection_cleared(self.entity_name)
        self._snapshot.save()

    def __len__(self) -> int:
        return len(self._inner)
