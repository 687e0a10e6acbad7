"""
Editing Helpers

Create, edit and delete single entities by id.

An edit loads the current record, merges only the supplied fields into a
new record and replaces the old one by id. The returned EditOutcome keeps
both versions and the list of fields that actually changed, so callers
can confirm exactly what happened.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar, Union

from ledger.formats.base import LedgerView
from ledger.models.entities import (
    Account,
    Category,
    LedgerEntity,
    Operation,
    OperationType,
    parse_operation_type,
)
from ledger.services.storage.interface import EntityRepository, NotFoundError


E = TypeVar("E", bound=LedgerEntity)

AMOUNT_TOLERANCE = 1e-9

TypeInput = Union[str, int, OperationType]


@dataclass(frozen=True)
class FieldChange:
    field: str
    old: Any
    new: Any


@dataclass(frozen=True)
class EditOutcome(Generic[E]):
    """Result of an edit: the record before and after, and what differed."""
    before: E
    after: E
    changes: list[FieldChange] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changes)

    @property
    def changed_fields(self) -> list[str]:
        return [c.field for c in self.changes]


def _values_differ(old: Any, new: Any) -> bool:
    if isinstance(old, float) and isinstance(new, float):
        return abs(old - new) > AMOUNT_TOLERANCE
    return old != new


def diff_entities(before: E, after: E) -> list[FieldChange]:
    """Fields whose values differ between two versions of a record, in field order."""
    changes = []
    for name in type(before).model_fields:
        old, new = getattr(before, name), getattr(after, name)
        if _values_differ(old, new):
            changes.append(FieldChange(field=name, old=old, new=new))
    return changes


def _edit(repo: EntityRepository[E], entity_id: int, **changes: Any) -> EditOutcome[E]:
    before = repo.get(entity_id)
    if before is None:
        raise NotFoundError(f"{repo.entity_name} not found: {entity_id}")

    after = before.with_changes(**changes)
    repo.update(after)
    return EditOutcome(before=before, after=after, changes=diff_entities(before, after))


def _type_or_none(value: Optional[TypeInput]) -> Optional[OperationType]:
    return None if value is None else parse_operation_type(value)


# =============================================================================
# CREATE
# =============================================================================

def create_account(store: LedgerView, account_id: int, name: str, balance: float = 0.0) -> Account:
    """
    Raises:
        DuplicateError: If the id is taken
    """
    account = Account(id=account_id, name=name, balance=balance)
    store.accounts.add(account)
    return account


def create_category(store: LedgerView, category_id: int, type: TypeInput, name: str) -> Category:
    category = Category(id=category_id, type=parse_operation_type(type), name=name)
    store.categories.add(category)
    return category


def create_operation(
    store: LedgerView,
    operation_id: int,
    type: TypeInput,
    bank_account_id: int,
    category_id: int,
    amount: float,
    date: str,
    description: Optional[str] = None,
) -> Operation:
    """
    Add a new operation.

    The referenced account and category are not checked; see
    find_dangling_references.

    Raises:
        DuplicateError: If the id is taken
    """
    operation = Operation(
        id=operation_id,
        type=parse_operation_type(type),
        bank_account_id=bank_account_id,
        category_id=category_id,
        amount=amount,
        date=date,
        description=description,
    )
    store.operations.add(operation)
    return operation


# =============================================================================
# EDIT
# =============================================================================

def edit_account(
    store: LedgerView,
    account_id: int,
    name: Optional[str] = None,
    balance: Optional[float] = None,
) -> EditOutcome[Account]:
    """
    Replace the given fields of an account; None leaves a field unchanged.

    Raises:
        NotFoundError: If no account has this id
    """
    return _edit(store.accounts, account_id, name=name, balance=balance)


def edit_category(
    store: LedgerView,
    category_id: int,
    type: Optional[TypeInput] = None,
    name: Optional[str] = None,
) -> EditOutcome[Category]:
    return _edit(store.categories, category_id, type=_type_or_none(type), name=name)


def edit_operation(
    store: LedgerView,
    operation_id: int,
    type: Optional[TypeInput] = None,
    bank_account_id: Optional[int] = None,
    category_id: Optional[int] = None,
    amount: Optional[float] = None,
    date: Optional[str] = None,
    description: Optional[str] = None,
) -> EditOutcome[Operation]:
    """
    Replace the given fields of an operation; None leaves a field unchanged.

    An empty description clears it.

    Raises:
        NotFoundError: If no operation has this id
    """
    return _edit(
        store.operations,
        operation_id,
        type=_type_or_none(type),
        bank_account_id=bank_account_id,
        category_id=category_id,
        amount=amount,
        date=date,
        description=description,
    )


# =============================================================================
# DELETE
# =============================================================================

def delete_account(store: LedgerView, account_id: int) -> None:
    store.accounts.remove(account_id)


def delete_category(store: LedgerView, category_id: int) -> None:
    store.categories.remove(category_id)


def delete_operation(store: LedgerView, operation_id: int) -> None:
    store.operations.remove(operation_id)
