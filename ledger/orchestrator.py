"""
Main Orchestrator for Personal Ledger

Ties the store, the snapshotting proxies, the formats and the analytics
engine together behind one facade, the Ledger.

The orchestrator enforces the boundaries:
- An import is parsed completely before the store is touched
- A clean import clears and reloads under one snapshot, not one per record
- Exports and snapshots always serialize the full state
- Every call is timed and audited
"""

import functools
from contextlib import nullcontext
from pathlib import Path
from typing import Callable, Optional, TypeVar, Union

from ledger.audit import AuditLogger, configure_logging, create_correlation_id
from ledger.config import AnalyticsSettings, Settings, get_settings
from ledger.errors import LedgerError
from ledger.formats import (
    FormatKind,
    ImportResult,
    ImportTarget,
    detect_format,
    parse_format,
    parse_ledger,
    write_ledger,
)
from ledger.models.entities import Account, Category, Operation
from ledger.models.reports import (
    CategoryTotal,
    DanglingReference,
    MonthRow,
    ReconcileApplyResult,
    ReconcileReport,
    TopExpenseRow,
)
from ledger.queries import AnalyticsEngine
from ledger.services import editing
from ledger.services.editing import EditOutcome, TypeInput
from ledger.services.snapshot import FileSnapshotWriter
from ledger.services.storage import (
    AuditStorageInterface,
    LedgerStore,
    SnapshotRepositoryProxy,
)


F = TypeVar("F", bound=Callable)

PathLike = Union[str, Path]
FormatLike = Union[str, FormatKind]


def timed(name: str) -> Callable[[F], F]:
    """Time a Ledger method through its audit logger."""
    def decorator(method: F) -> F:
        @functools.wraps(method)
        def wrapper(self: "Ledger", *args, **kwargs):
            with self.audit_logger.timed(name):
                return method(self, *args, **kwargs)
        return wrapper
    return decorator


def _export_format(path: PathLike, fmt: Optional[FormatLike]) -> FormatKind:
    # a destination without extension is a CSV directory, even before it exists
    if fmt:
        return parse_format(fmt)
    if not Path(path).suffix:
        return FormatKind.CSV
    return detect_format(path)


class Ledger:
    """
    One personal ledger.

    The in-memory store is the single owner of every entity. When a
    snapshot writer is configured, all mutations go through snapshotting
    proxies so the autosave file follows every change.
    """

    def __init__(
        self,
        store: Optional[LedgerStore] = None,
        snapshot: Optional[FileSnapshotWriter] = None,
        audit_logger: Optional[AuditLogger] = None,
        analytics_settings: Optional[AnalyticsSettings] = None,
    ):
        """
        Args:
            store: The backing store; a new empty one when None
            snapshot: Autosave writer; it must serialize this same store
            audit_logger: Audit logger; local-only logging when None
            analytics_settings: Report defaults (epsilon, top expenses limit)
        """
        self._store = store or LedgerStore()
        self._snapshot = snapshot
        self._audit_logger = audit_logger or AuditLogger()
        analytics_settings = analytics_settings or AnalyticsSettings()
        self._epsilon = analytics_settings.reconcile_epsilon
        self._top_limit = analytics_settings.top_expenses_limit

        if snapshot is not None:
            self._view = ImportTarget(
                accounts=SnapshotRepositoryProxy(self._store.accounts, snapshot, self._audit_logger),
                categories=SnapshotRepositoryProxy(self._store.categories, snapshot, self._audit_logger),
                operations=SnapshotRepositoryProxy(self._store.operations, snapshot, self._audit_logger),
            )
        else:
            self._view = ImportTarget(
                accounts=self._store.accounts,
                categories=self._store.categories,
                operations=self._store.operations,
            )

        self._analytics = AnalyticsEngine(self._view)

    @property
    def store(self) -> LedgerStore:
        """The backing store. Mutating it directly bypasses autosave."""
        return self._store

    @property
    def view(self) -> ImportTarget:
        """The collections every ledger mutation goes through."""
        return self._view

    @property
    def snapshot(self) -> Optional[FileSnapshotWriter]:
        return self._snapshot

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def accounts(self) -> list[Account]:
        return self._view.accounts.all()

    @property
    def categories(self) -> list[Category]:
        return self._view.categories.all()

    @property
    def operations(self) -> list[Operation]:
        return self._view.operations.all()

    def _batch(self):
        return self._snapshot.suspended() if self._snapshot is not None else nullcontext()

    def _clear_view(self) -> None:
        self._view.operations.clear()
        self._view.categories.clear()
        self._view.accounts.clear()

    # -------------------------------------------------------------------------
    # Import / export
    # -------------------------------------------------------------------------

    @timed("import")
    def import_from(
        self,
        path: PathLike,
        fmt: Optional[FormatLike] = None,
        clean: bool = True,
    ) -> ImportResult:
        """
        Import a CSV directory/file, JSON or YAML document.

        Args:
            path: Source location
            fmt: Format; detected from the path when None
            clean: Replace the current data (True) or add to it (False)

        Returns:
            Number of records imported per type

        Raises:
            FormatError: If the source is missing or malformed (store untouched)
            DuplicateError: If an id repeats, within the source or, when
                accumulating, against the current data (store untouched)
        """
        correlation_id = create_correlation_id()
        kind = parse_format(fmt) if fmt else None

        try:
            kind = kind or detect_format(path)
            parsed = parse_ledger(kind, path)
            parsed.check_ids(None if clean else self._view)

            with self._batch():
                if clean:
                    self._clear_view()
                result = parsed.commit(self._view)
        except LedgerError as e:
            self._audit_logger.log_import_failed(
                kind.value if kind else "unknown", str(path), str(e), correlation_id,
            )
            raise

        self._audit_logger.log_import_completed(kind.value, str(path), result.as_dict(), correlation_id)
        return result

    @timed("export")
    def export_to(
        self,
        path: PathLike,
        fmt: Optional[FormatLike] = None,
        source: Optional[PathLike] = None,
        source_format: Optional[FormatLike] = None,
    ) -> FormatKind:
        """
        Write the full ledger to a file (JSON/YAML) or directory (CSV).

        When a source is given it is clean-imported first, which turns the
        call into a format conversion.

        Returns:
            The format written
        """
        correlation_id = create_correlation_id()
        if source is not None:
            self.import_from(source, source_format, clean=True)

        kind = _export_format(path, fmt)
        write_ledger(kind, path, self._store)
        self._audit_logger.log_export_completed(kind.value, str(path), correlation_id)
        return kind

    @timed("load_snapshot")
    def load_snapshot(self) -> Optional[ImportResult]:
        """
        Load the autosave snapshot, if there is one, replacing current data.

        Loading goes straight to the backing store, so it does not
        rewrite the snapshot it just read.

        Returns:
            Per-type counts, or None when no snapshot exists
        """
        if self._snapshot is None or not self._snapshot.path.exists():
            return None

        parsed = parse_ledger(self._snapshot.format, self._snapshot.path)
        parsed.check_ids()
        self._store.clear_all()
        result = parsed.commit(self._store)
        self._audit_logger.log_snapshot_loaded(
            str(self._snapshot.path), self._snapshot.format.value, result.as_dict(),
        )
        return result

    @timed("clear")
    def clear(self) -> None:
        """Remove every account, category and operation (one snapshot)."""
        with self._batch():
            self._clear_view()

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------

    @timed("category_totals")
    def category_totals(self) -> list[CategoryTotal]:
        return self._analytics.category_totals()

    @timed("reconcile")
    def reconcile(self) -> ReconcileReport:
        return self._analytics.reconcile()

    @timed("reconcile_apply")
    def reconcile_apply(self, epsilon: Optional[float] = None) -> ReconcileApplyResult:
        """Set declared balances to computed ones (one snapshot for the batch)."""
        with self._batch():
            result = self._analytics.reconcile_apply(self._epsilon if epsilon is None else epsilon)
        self._audit_logger.log_reconcile_applied(result.updated, result.total_abs_delta)
        return result

    @timed("monthly_totals")
    def monthly_totals(
        self,
        year: Optional[int] = None,
        account_id: Optional[int] = None,
        category_id: Optional[int] = None,
    ) -> list[MonthRow]:
        return self._analytics.monthly_totals(year=year, account_id=account_id, category_id=category_id)

    @timed("top_expenses")
    def top_expenses(
        self,
        limit: Optional[int] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> list[TopExpenseRow]:
        return self._analytics.top_expenses(
            limit=self._top_limit if limit is None else limit,
            date_from=date_from,
            date_to=date_to,
        )

    @timed("find_dangling_references")
    def find_dangling_references(self) -> list[DanglingReference]:
        return self._analytics.find_dangling_references()

    # -------------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------------

    @timed("create_account")
    def create_account(self, account_id: int, name: str, balance: float = 0.0) -> Account:
        return editing.create_account(self._view, account_id, name, balance)

    @timed("create_category")
    def create_category(self, category_id: int, type: TypeInput, name: str) -> Category:
        return editing.create_category(self._view, category_id, type, name)

    @timed("create_operation")
    def create_operation(
        self,
        operation_id: int,
        type: TypeInput,
        bank_account_id: int,
        category_id: int,
        amount: float,
        date: str,
        description: Optional[str] = None,
    ) -> Operation:
        return editing.create_operation(
            self._view, operation_id, type, bank_account_id, category_id, amount, date, description,
        )

    @timed("edit_account")
    def edit_account(
        self,
        account_id: int,
        name: Optional[str] = None,
        balance: Optional[float] = None,
    ) -> EditOutcome[Account]:
        return editing.edit_account(self._view, account_id, name=name, balance=balance)

    @timed("edit_category")
    def edit_category(
        self,
        category_id: int,
        type: Optional[TypeInput] = None,
        name: Optional[str] = None,
    ) -> EditOutcome[Category]:
        return editing.edit_category(self._view, category_id, type=type, name=name)

    @timed("edit_operation")
    def edit_operation(self, operation_id: int, **changes) -> EditOutcome[Operation]:
        return editing.edit_operation(self._view, operation_id, **changes)

    @timed("delete_account")
    def delete_account(self, account_id: int) -> None:
        editing.delete_account(self._view, account_id)

    @timed("delete_category")
    def delete_category(self, category_id: int) -> None:
        editing.delete_category(self._view, category_id)

    @timed("delete_operation")
    def delete_operation(self, operation_id: int) -> None:
        editing.delete_operation(self._view, operation_id)


def create_ledger(
    settings: Optional[Settings] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> Ledger:
    """
    Factory function to create a configured Ledger.

    Args:
        settings: Configuration; the cached environment settings when None
        audit_storage: Where audit events are appended besides the local log

    The snapshot is not loaded here; call load_snapshot() for that.
    """
    settings = settings or get_settings()
    storage_settings = settings.storage
    configure_logging(settings.app.log_level)

    audit_logger = AuditLogger(audit_storage)
    store = LedgerStore()

    snapshot = None
    if storage_settings.autosave:
        snapshot = FileSnapshotWriter(
            storage_settings.snapshot_path,
            store,
            fmt=storage_settings.snapshot_format,
            audit_logger=audit_logger,
            retries=storage_settings.write_retries,
        )

    return Ledger(
        store=store,
        snapshot=snapshot,
        audit_logger=audit_logger,
        analytics_settings=settings.analytics,
    )
