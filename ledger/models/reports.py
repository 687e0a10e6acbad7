"""
Report Models

Result rows produced by the analytics engine. They are plain value
objects: nothing here reads or writes the store.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ledger.models.entities import OperationType


class ReportRow(BaseModel):
    model_config = ConfigDict(frozen=True)


class CategoryTotal(ReportRow):
    """Income and expense sums of one category."""

    category_id: int
    name: str
    type: OperationType
    income: float = 0.0
    expense: float = 0.0


class ReconcileRow(ReportRow):
    """Declared versus computed balance of one account."""

    account_id: int
    name: str
    declared: float = Field(
        ...,
        description="Balance stored on the account"
    )
    computed: float = Field(
        ...,
        description="Income minus expense of the account's operations"
    )
    delta: float = Field(
        ...,
        description="declared - computed"
    )
    income: float
    expense: float


class ReconcileReport(ReportRow):
    """Reconciliation of every account plus global totals."""

    rows: list[ReconcileRow] = Field(default_factory=list)
    total_income: float = 0.0
    total_expense: float = 0.0

    @property
    def unbalanced(self) -> list[ReconcileRow]:
        """Rows whose declared balance differs from the computed one."""
        return [row for row in self.rows if row.delta != 0.0]


class ReconcileApplyResult(ReportRow):
    """Outcome of overwriting declared balances with computed ones."""

    updated: int = Field(
        ...,
        ge=0,
        description="Number of accounts whose balance was replaced"
    )
    total_abs_delta: float = Field(
        ...,
        ge=0.0,
        description="Sum of |declared - computed| over the updated accounts"
    )


class MonthRow(ReportRow):
    """Income and expense of one calendar month (key "YYYY-MM")."""

    month: str
    income: float = 0.0
    expense: float = 0.0

    @property
    def net(self) -> float:
        return self.income - self.expense


class TopExpenseRow(ReportRow):
    """Total expense of one category within the requested period."""

    category_id: int
    name: str
    expense: float


class DanglingReference(ReportRow):
    """An operation pointing at an account or category that does not exist."""

    operation_id: int
    field: Literal["bank_account_id", "category_id"]
    missing_id: int
