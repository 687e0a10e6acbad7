"""
File Snapshot Writer

Writes the whole ledger to one destination through the format registry.
The snapshotting proxies call save() after every mutation.

Transient OS errors (a locked file, a full buffer on a network share) are
retried with exponential backoff; when the attempts run out the failure
surfaces as SnapshotError.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional, Union

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger.formats.base import LedgerView
from ledger.formats.registry import EXTENSIONS, FormatKind, parse_format, write_ledger
from ledger.services.storage.interface import SnapshotError, SnapshotWriter

if TYPE_CHECKING:
    from ledger.audit.logger import AuditLogger


def resolve_snapshot_format(
    path: Union[str, Path],
    fmt: Optional[Union[str, FormatKind]] = None,
) -> FormatKind:
    """
    Format of a snapshot destination.

    An explicit format wins. Otherwise the extension decides and a path
    without a known extension is a CSV directory.
    """
    if fmt:
        return parse_format(fmt)
    return EXTENSIONS.get(Path(path).suffix.lower(), FormatKind.CSV)


class FileSnapshotWriter(SnapshotWriter):
    """
    Snapshot writer backed by a file (JSON/YAML) or a directory (CSV).

    Use suspended() around a batch of mutations to write once at the end
    instead of after every single change.
    """

    def __init__(
        self,
        path: Union[str, Path],
        store: LedgerView,
        fmt: Optional[Union[str, FormatKind]] = None,
        audit_logger: Optional["AuditLogger"] = None,
        retries: int = 3,
        backoff: float = 0.1,
    ):
        """
        Args:
            path: Snapshot destination
            store: The store to serialize (the unproxied one)
            fmt: Format override; inferred from the path when None
            audit_logger: Receives snapshot written/failed events
            retries: Attempts per save before giving up
            backoff: Multiplier of the exponential wait between attempts, in seconds
        """
        self._path = Path(path)
        self._store = store
        self._format = resolve_snapshot_format(path, fmt)
        self._audit_logger = audit_logger
        self._retries = max(1, retries)
        self._backoff = backoff
        self._suspended = 0
        self._dirty = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def format(self) -> FormatKind:
        return self._format

    @property
    def is_suspended(self) -> bool:
        return self._suspended > 0

    def save(self) -> None:
        """
        Write the snapshot now, or mark it pending while suspended.

        Raises:
            SnapshotError: If every attempt failed
        """
        if self._suspended:
            self._dirty = True
            return
        self._write()

    def _write(self) -> None:
        retrying = Retrying(
            retry=retry_if_exception_type(OSError),
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=self._backoff, max=2),
        )
        try:
            for attempt in retrying:
                with attempt:
                    write_ledger(self._format, self._path, self._store)
        except RetryError as e:
            error = e.last_attempt.exception()
            if self._audit_logger:
                self._audit_logger.log_snapshot_failed(str(self._path), self._format.value, str(error))
            raise SnapshotError(
                f"snapshot to {self._path} failed after {self._retries} attempts: {error}"
            ) from error

        self._dirty = False
        if self._audit_logger:
            self._audit_logger.log_snapshot_written(str(self._path), self._format.value)

    @contextmanager
    def suspended(self) -> Iterator[None]:
        """
        Defer writes until the outermost suspended() block exits.

        One snapshot is written on exit if anything was saved meanwhile,
        also when the block raised.
        """
        self._suspended += 1
        try:
            yield
        finally:
            self._suspended -= 1
            if not self._suspended and self._dirty:
                self._write()
