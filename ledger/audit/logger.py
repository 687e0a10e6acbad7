"""
Audit Logger

Every mutation, snapshot, import and export of the ledger is logged.
The audit logger:
- Always writes a structured local log line (structlog, JSON)
- Optionally appends the event to an audit storage
- Never lets a failing audit storage break the operation being audited
- Can time a block of work and log its duration
"""

import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional
from uuid import UUID, uuid4

import structlog

from ledger.models.audit import AuditEvent, AuditEventBuilder
from ledger.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Set the stdlib level every ledger logger inherits."""
    logging.getLogger("ledger").setLevel(level)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledger.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage is not None:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_entity_added(self, entity_type: str, entity_id: int) -> None:
        self.log(AuditEventBuilder.entity_added(entity_type, entity_id))

    def log_entity_updated(self, entity_type: str, entity_id: int) -> None:
        self.log(AuditEventBuilder.entity_updated(entity_type, entity_id))

    def log_entity_removed(self, entity_type: str, entity_id: int) -> None:
        self.log(AuditEventBuilder.entity_removed(entity_type, entity_id))

    def log_collection_cleared(self, entity_type: str) -> None:
        self.log(AuditEventBuilder.collection_cleared(entity_type))

    def log_snapshot_written(self, path: str, fmt: str) -> None:
        self.log(AuditEventBuilder.snapshot_written(path, fmt))

    def log_snapshot_failed(self, path: str, fmt: str, error: str) -> None:
        self.log(AuditEventBuilder.snapshot_failed(path, fmt, error))

    def log_snapshot_loaded(self, path: str, fmt: str, counts: dict[str, int]) -> None:
        self.log(AuditEventBuilder.snapshot_loaded(path, fmt, counts))

    def log_import_completed(
        self,
        fmt: str,
        source: str,
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a committed import with the number of records per type."""
        self.log(AuditEventBuilder.import_completed(fmt, source, counts, correlation_id))

    def log_import_failed(
        self,
        fmt: str,
        source: str,
        error: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.import_failed(fmt, source, error, correlation_id))

    def log_export_completed(
        self,
        fmt: str,
        destination: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.export_completed(fmt, destination, correlation_id))

    def log_reconcile_applied(self, updated: int, total_abs_delta: float) -> None:
        self.log(AuditEventBuilder.reconcile_applied(updated, total_abs_delta))

    @contextmanager
    def timed(self, name: str) -> Iterator[None]:
        """
        Time the enclosed block and log how long it took.

        Exceptions propagate unchanged; the failure is logged with the
        elapsed time before re-raising.
        """
        started = time.perf_counter()
        try:
            yield
        except Exception:
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            self.log(AuditEventBuilder.operation_timed(name, elapsed_ms, succeeded=False))
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        self.log(AuditEventBuilder.operation_timed(name, elapsed_ms, succeeded=True))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step action (e.g., import then export).
    """
    return uuid4()
