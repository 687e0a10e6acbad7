"""
Aggregation and Reconciliation Engine

Every report is computed from what is actually in the store at call time.
Nothing is cached and nothing is estimated.

Operations may point at accounts or categories that no longer exist.
Reports skip such operations instead of failing; find_dangling_references
lists them so the gap stays visible.

reconcile_apply is the only call with a side effect: it replaces accounts
through the repository's update, exactly like a manual edit.
"""

from typing import Optional

from ledger.formats.base import LedgerView
from ledger.models.entities import Account, OperationType
from ledger.models.reports import (
    CategoryTotal,
    DanglingReference,
    MonthRow,
    ReconcileApplyResult,
    ReconcileReport,
    ReconcileRow,
    TopExpenseRow,
)


DEFAULT_EPSILON = 1e-9
DEFAULT_TOP_LIMIT = 10


class AnalyticsEngine:
    """
    Read-only reports over a ledger store.

    GUARANTEES:
    - Missing account/category references are skipped, never raised
    - Row order is deterministic (ids or month keys ascending)
    """

    def __init__(self, store: LedgerView):
        self._store = store

    def category_totals(self) -> list[CategoryTotal]:
        """Income and expense sums for every category, including empty ones."""
        sums: dict[int, list[float]] = {c.id: [0.0, 0.0] for c in self._store.categories.all()}

        for op in self._store.operations.all():
            bucket = sums.get(op.category_id)
            if bucket is None:
                continue
            if op.type == OperationType.INCOME:
                bucket[0] += op.amount
            else:
                bucket[1] += op.amount

        return [
            CategoryTotal(
                category_id=c.id,
                name=c.name,
                type=c.type,
                income=sums[c.id][0],
                expense=sums[c.id][1],
            )
            for c in sorted(self._store.categories.all(), key=lambda c: c.id)
        ]

    def _account_sums(self) -> dict[int, list[float]]:
        sums: dict[int, list[float]] = {a.id: [0.0, 0.0] for a in self._store.accounts.all()}
        for op in self._store.operations.all():
            bucket = sums.get(op.bank_account_id)
            if bucket is None:
                continue
            if op.type == OperationType.INCOME:
                bucket[0] += op.amount
            else:
                bucket[1] += op.amount
        return sums

    def reconcile(self) -> ReconcileReport:
        """
        Compare each account's declared balance with income - expense of
        its operations.

        Global totals cover the operations of existing accounts only.
        """
        sums = self._account_sums()
        rows = []
        total_income = 0.0
        total_expense = 0.0

        for account in sorted(self._store.accounts.all(), key=lambda a: a.id):
            income, expense = sums[account.id]
            computed = income - expense
            rows.append(ReconcileRow(
                account_id=account.id,
                name=account.name,
                declared=account.balance,
                computed=computed,
                delta=account.balance - computed,
                income=income,
                expense=expense,
            ))
            total_income += income
            total_expense += expense

        return ReconcileReport(rows=rows, total_income=total_income, total_expense=total_expense)

    def reconcile_apply(self, epsilon: float = DEFAULT_EPSILON) -> ReconcileApplyResult:
        """
        Overwrite declared balances that differ from the computed ones by
        more than epsilon.

        A second call with no changes in between updates nothing.
        """
        updated = 0
        total_abs_delta = 0.0

        for row in self.reconcile().rows:
            if abs(row.delta) <= epsilon:
                continue
            account: Optional[Account] = self._store.accounts.get(row.account_id)
            if account is None:
                continue
            self._store.accounts.update(account.with_changes(balance=row.computed))
            updated += 1
            total_abs_delta += abs(row.delta)

        return ReconcileApplyResult(updated=updated, total_abs_delta=total_abs_delta)

    def monthly_totals(
        self,
        year: Optional[int] = None,
        account_id: Optional[int] = None,
        category_id: Optional[int] = None,
    ) -> list[MonthRow]:
        """
        Income and expense per "YYYY-MM" bucket, months ascending.

        Filters are combined with AND. With a year filter, dates whose
        first four characters are not a number are skipped.
        """
        buckets: dict[str, list[float]] = {}

        for op in self._store.operations.all():
            if account_id is not None and op.bank_account_id != account_id:
                continue
            if category_id is not None and op.category_id != category_id:
                continue
            if year is not None:
                head = op.date[:4]
                if len(head) < 4 or not head.isdigit() or int(head) != year:
                    continue
            if len(op.date) < 7:
                continue

            bucket = buckets.setdefault(op.date[:7], [0.0, 0.0])
            if op.type == OperationType.INCOME:
                bucket[0] += op.amount
            else:
                bucket[1] += op.amount

        return [
            MonthRow(month=month, income=income, expense=expense)
            for month, (income, expense) in sorted(buckets.items())
        ]

    def top_expenses(
        self,
        limit: int = DEFAULT_TOP_LIMIT,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> list[TopExpenseRow]:
        """
        Expense categories ranked by total expense in the (inclusive) date range.

        Categories whose expense sum is not positive are dropped; ties are
        broken by category id.
        """
        if limit <= 0:
            return []

        expense_categories = {
            c.id: c for c in self._store.categories.all()
            if c.type == OperationType.EXPENSE
        }
        sums: dict[int, float] = {}

        for op in self._store.operations.all():
            if op.type != OperationType.EXPENSE or op.category_id not in expense_categories:
                continue
            if date_from is not None and op.date < date_from:
                continue
            if date_to is not None and op.date > date_to:
                continue
            sums[op.category_id] = sums.get(op.category_id, 0.0) + op.amount

        ranked = sorted(
            ((cid, total) for cid, total in sums.items() if total > 0.0),
            key=lambda item: (-item[1], item[0]),
        )

        return [
            TopExpenseRow(category_id=cid, name=expense_categories[cid].name, expense=total)
            for cid, total in ranked[:limit]
        ]

    def find_dangling_references(self) -> list[DanglingReference]:
        """Operations whose account or category id does not resolve, in operation order."""
        dangling = []
        for op in self._store.operations.all():
            if not self._store.accounts.exists(op.bank_account_id):
                dangling.append(DanglingReference(
                    operation_id=op.id,
                    field="bank_account_id",
                    missing_id=op.bank_account_id,
                ))
            if not self._store.categories.exists(op.category_id):
                dangling.append(DanglingReference(
                    operation_id=op.id,
                    field="category_id",
                    missing_id=op.category_id,
                ))
        return dangling


def find_dangling_references(store: LedgerView) -> list[DanglingReference]:
    """Integrity report: operations referencing missing accounts or categories."""
    return AnalyticsEngine(store).find_dangling_references()
