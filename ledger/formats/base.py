"""
Format Layer Building Blocks

Shared pieces of every reader and writer:
- the error taxonomy of the import/export pipeline
- ImportTarget: the three add-capable collections an import loads into
- ParsedLedger: the staging buffer a reader fills before anything is
  committed, so a malformed document never leaves a half-imported store
- ImportResult: per-type record counts of a committed import
- invariant number parsing and formatting helpers
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, TypeVar

from pydantic import ValidationError

from ledger.errors import LedgerError
from ledger.models.entities import Account, Category, LedgerEntity, Operation
from ledger.services.storage.interface import DuplicateError, EntityRepository


# =============================================================================
# ERRORS
# =============================================================================

class FormatError(LedgerError):
    """Base exception for import/export failures."""
    pass


class MalformedInputError(FormatError):
    """Bad number or enum token, missing column/field, unparseable document."""
    pass


class MissingSectionError(FormatError):
    """A required section (accounts/categories/operations) is absent."""
    pass


class SourceUnavailableError(FormatError):
    """The file or directory to import from does not exist or cannot be read."""
    pass


# =============================================================================
# TARGETS AND STAGING
# =============================================================================

@dataclass(frozen=True)
class ImportTarget:
    """
    Where an import writes to.

    Importers never clear the target; whether an import replaces or
    accumulates is the caller's decision.
    """
    accounts: EntityRepository[Account]
    categories: EntityRepository[Category]
    operations: EntityRepository[Operation]


class LedgerView(Protocol):
    """Anything exposing the three collections (a store or an ImportTarget)."""
    accounts: EntityRepository[Account]
    categories: EntityRepository[Category]
    operations: EntityRepository[Operation]


@dataclass(frozen=True)
class ImportResult:
    """Number of records of each type an import added."""
    accounts: int = 0
    categories: int = 0
    operations: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "accounts": self.accounts,
            "categories": self.categories,
            "operations": self.operations,
        }


@dataclass
class ParsedLedger:
    """Records parsed from one document, not yet committed."""
    accounts: list[Account] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    operations: list[Operation] = field(default_factory=list)

    def check_ids(self, target: Optional[LedgerView] = None) -> None:
        """
        Raise DuplicateError if an id repeats within the batch or, when a
        target is given, is already taken there.
        """
        for name, section, records in (
            ("account", "accounts", self.accounts),
            ("category", "categories", self.categories),
            ("operation", "operations", self.operations),
        ):
            repo = getattr(target, section) if target is not None else None
            seen: set[int] = set()
            for record in records:
                if record.id in seen or (repo is not None and repo.exists(record.id)):
                    raise DuplicateError(f"{name} already exists: {record.id}")
                seen.add(record.id)

    def commit(self, target: LedgerView) -> ImportResult:
        """
        Add every staged record to the target.

        Ids are checked first, so a duplicate raises DuplicateError
        before anything is added.
        """
        self.check_ids(target)

        for account in self.accounts:
            target.accounts.add(account)
        for category in self.categories:
            target.categories.add(category)
        for operation in self.operations:
            target.operations.add(operation)

        return ImportResult(
            accounts=len(self.accounts),
            categories=len(self.categories),
            operations=len(self.operations),
        )


# =============================================================================
# HELPERS
# =============================================================================

E = TypeVar("E", bound=LedgerEntity)


def build_entity(model: type[E], data: dict[str, Any], where: str) -> E:
    """
    Validate a raw record into an entity.

    Raises:
        MalformedInputError: naming the location and the offending fields
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}"
            for err in e.errors()
        )
        raise MalformedInputError(f"{where}: {problems}") from e


def parse_int(text: str, where: str) -> int:
    """Parse an integer written with the invariant convention."""
    value = text.strip()
    try:
        return int(value)
    except ValueError:
        raise MalformedInputError(f"{where}: expected an integer, got '{text}'") from None


def parse_float(text: str, where: str) -> float:
    """Parse a decimal number written with the invariant convention ('.' as point)."""
    value = text.strip()
    try:
        return float(value)
    except ValueError:
        raise MalformedInputError(f"{where}: expected a number, got '{text}'") from None


def format_number(value: Any) -> str:
    """
    Invariant text form of a number.

    Floats use the shortest representation that reads back to the same
    value, so text formats round-trip bit for bit.
    """
    if isinstance(value, float):
        return repr(value)
    return str(value)


def normalize_key(key: Any) -> str:
    """Lower-case a key and drop '_' and '-' (e.g. Bank_Account-Id -> bankaccountid)."""
    return str(key).replace("_", "").replace("-", "").lower()

