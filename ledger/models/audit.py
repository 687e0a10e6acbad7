"""
Audit Models for Personal Ledger

Every mutation, snapshot, import and export produces an audit event.
This provides:
1. Traceability of what changed and when
2. Debugging information when an import or a snapshot write fails
3. A record of reconciliation adjustments

Audit events are append-only.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Store mutations
    ENTITY_ADDED = "entity_added"
    ENTITY_UPDATED = "entity_updated"
    ENTITY_REMOVED = "entity_removed"
    COLLECTION_CLEARED = "collection_cleared"

    # Persistence
    SNAPSHOT_WRITTEN = "snapshot_written"
    SNAPSHOT_FAILED = "snapshot_failed"
    SNAPSHOT_LOADED = "snapshot_loaded"

    # Data exchange
    IMPORT_COMPLETED = "import_completed"
    IMPORT_FAILED = "import_failed"
    EXPORT_COMPLETED = "export_completed"

    # Analytics with side effects
    RECONCILE_APPLIED = "reconcile_applied"

    # System events
    OPERATION_TIMED = "operation_timed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
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
        description="Type of entity (e.g., 'account', 'category', 'operation')"
    )
    entity_id: Optional[int] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one import)"
    )

    description: str = Field(
        ...,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

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
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entity_added("account", 1)
        event = AuditEventBuilder.import_completed("csv", "data/", counts)
    """

    @staticmethod
    def entity_added(entity_type: str, entity_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_ADDED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type} {entity_id} added",
        )

    @staticmethod
    def entity_updated(entity_type: str, entity_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_UPDATED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type} {entity_id} replaced",
        )

    @staticmethod
    def entity_removed(entity_type: str, entity_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_REMOVED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type} {entity_id} removed",
        )

    @staticmethod
    def collection_cleared(entity_type: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTION_CLEARED,
            entity_type=entity_type,
            description=f"all {entity_type} records removed",
        )

    @staticmethod
    def snapshot_written(path: str, fmt: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_WRITTEN,
            severity=AuditSeverity.DEBUG,
            description=f"Snapshot written to {path}",
            details={"path": path, "format": fmt},
        )

    @staticmethod
    def snapshot_failed(path: str, fmt: str, error: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Snapshot write to {path} failed",
            details={"path": path, "format": fmt},
            error_message=error,
        )

    @staticmethod
    def snapshot_loaded(path: str, fmt: str, counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOADED,
            description=f"Snapshot loaded from {path}",
            details={"path": path, "format": fmt, **counts},
        )

    @staticmethod
    def import_completed(
        fmt: str,
        source: str,
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            correlation_id=correlation_id,
            description=f"Imported {fmt} from {source}",
            details={"format": fmt, "source": source, **counts},
        )

    @staticmethod
    def import_failed(
        fmt: str,
        source: str,
        error: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Import of {fmt} from {source} failed",
            details={"format": fmt, "source": source},
            error_message=error,
        )

    @staticmethod
    def export_completed(
        fmt: str,
        destination: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_COMPLETED,
            correlation_id=correlation_id,
            description=f"Exported {fmt} to {destination}",
            details={"format": fmt, "destination": destination},
        )

    @staticmethod
    def reconcile_applied(updated: int, total_abs_delta: float) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILE_APPLIED,
            severity=AuditSeverity.WARNING if updated else AuditSeverity.INFO,
            description=f"Declared balances replaced on {updated} account(s)",
            details={"updated": updated, "total_abs_delta": total_abs_delta},
        )

    @staticmethod
    def operation_timed(name: str, duration_ms: float, succeeded: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_TIMED,
            severity=AuditSeverity.DEBUG if succeeded else AuditSeverity.ERROR,
            description=f"{name} {'done' if succeeded else 'failed'} in {duration_ms:.3f} ms",
            details={"operation": name, "duration_ms": duration_ms, "succeeded": succeeded},
        )

