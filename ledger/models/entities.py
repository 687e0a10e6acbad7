"""
Core Data Models for Personal Ledger

These models define the schemas of the three ledger entities: bank
accounts, categories and operations. Their field names are the snake_case
names used by every import/export format, so a parsed JSON or YAML record
validates straight into an entity.

Entities are frozen. An edit never mutates a record in place: it builds a
new record from the old one with some fields overridden (see with_changes)
and the repository replaces it by id.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS
# =============================================================================

class OperationType(str, Enum):
    """
    Kind of a category or an operation.

    The token values are the ones written to every export format.
    """
    INCOME = "income"
    EXPENSE = "expense"


# Numeric codes accepted by lenient readers (YAML documents written by
# tools that serialize the enum ordinal).
OPERATION_TYPE_CODES = {
    0: OperationType.INCOME,
    1: OperationType.EXPENSE,
}


def parse_operation_type(raw: Any) -> OperationType:
    """
    Parse an operation type token.

    Accepts an OperationType, the tokens "income"/"expense" (any case,
    surrounding whitespace ignored) or the integer codes 0/1.

    Raises:
        ValueError: If the value is not a known operation type
    """
    if isinstance(raw, OperationType):
        return raw
    if isinstance(raw, int) and not isinstance(raw, bool):
        try:
            return OPERATION_TYPE_CODES[raw]
        except KeyError:
            raise ValueError(f"unknown operation type: {raw}") from None
    if raw is None:
        raise ValueError("operation type is missing")

    token = str(raw).strip().lower()
    try:
        return OperationType(token)
    except ValueError:
        raise ValueError(f"unknown operation type: {token}") from None


# =============================================================================
# ENTITIES
# =============================================================================

class LedgerEntity(BaseModel):
    """Common configuration for the three entity types."""

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: int = Field(
        ...,
        description="Identifier, unique within the entity type"
    )

    def with_changes(self, **changes: Any):
        """
        Build a new record from this one with the given fields overridden.

        Fields passed as None are left unchanged. The result goes through
        full validation again, so normalization rules still apply.
        """
        data = self.model_dump()
        data.update({k: v for k, v in changes.items() if v is not None})
        return type(self).model_validate(data)


class Account(LedgerEntity):
    """
    A bank account.

    The balance is the user-declared value. It is not derived from
    operations and may drift from the computed balance until reconciled.
    """

    name: str = Field(
        ...,
        description="Account name"
    )
    balance: float = Field(
        ...,
        description="Declared balance"
    )


class Category(LedgerEntity):
    """A named income or expense bucket used to classify operations."""

    type: OperationType = Field(
        ...,
        description="Whether the category collects income or expenses"
    )
    name: str = Field(
        ...,
        description="Category name"
    )

    @field_validator('type', mode='before')
    @classmethod
    def coerce_type(cls, v: Any) -> OperationType:
        return parse_operation_type(v)


class Operation(LedgerEntity):
    """
    A dated monetary movement against one account and one category.

    The amount is a magnitude; its sign comes from the type. Account and
    category ids are plain foreign keys: nothing checks that they resolve.
    The date is kept as a "YYYY-MM-DD" string and compared lexicographically.
    """

    type: OperationType = Field(
        ...,
        description="Income or expense"
    )
    bank_account_id: int = Field(
        ...,
        description="Account the operation belongs to"
    )
    category_id: int = Field(
        ...,
        description="Category the operation is classified under"
    )
    amount: float = Field(
        ...,
        description="Amount (magnitude; sign implied by type)"
    )
    date: str = Field(
        ...,
        description="Operation date, YYYY-MM-DD"
    )
    description: Optional[str] = Field(
        default=None,
        description="Free text note; empty text is stored as absent"
    )

    @field_validator('type', mode='before')
    @classmethod
    def coerce_type(cls, v: Any) -> OperationType:
        return parse_operation_type(v)

    @field_validator('description')
    @classmethod
    def empty_description_is_absent(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @property
    def signed_amount(self) -> float:
        """Amount with the sign implied by the operation type."""
        return self.amount if self.type == OperationType.INCOME else -self.amount
