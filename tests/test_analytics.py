"""
Tests for the aggregation and reconciliation engine.
"""

import pytest

from ledger.models.entities import Account, Category, Operation, OperationType
from ledger.queries import AnalyticsEngine, find_dangling_references
from ledger.services.storage import LedgerStore


INCOME = OperationType.INCOME
EXPENSE = OperationType.EXPENSE


def add_operation(store, op_id, type, amount, date, account_id=1, category_id=1):
    store.operations.add(Operation(
        id=op_id, type=type, bank_account_id=account_id, category_id=category_id,
        amount=amount, date=date,
    ))


@pytest.fixture
def store():
    return LedgerStore()


class TestReconcile:
    """Tests for declared versus computed balances."""

    def test_reconcile_example(self, store):
        """Test declared 100, income 50, expense 20 gives computed 30, delta 70."""
        store.accounts.add(Account(id=1, name="Main", balance=100.0))
        add_operation(store, 1, INCOME, 50.0, "2024-01-01")
        add_operation(store, 2, EXPENSE, 20.0, "2024-01-02")

        report = AnalyticsEngine(store).reconcile()

        row = report.rows[0]
        assert row.computed == 30.0
        assert row.delta == 70.0
        assert row.income == 50.0
        assert row.expense == 20.0
        assert report.total_income == 50.0
        assert report.total_expense == 20.0

    def test_rows_ordered_by_account_id(self, store):
        """Test ordering independent of insertion order."""
        for account_id in (3, 1, 2):
            store.accounts.add(Account(id=account_id, name=f"A{account_id}", balance=0.0))

        rows = AnalyticsEngine(store).reconcile().rows
        assert [r.account_id for r in rows] == [1, 2, 3]

    def test_dangling_account_is_skipped(self, store):
        """Test operations on a missing account do not count."""
        store.accounts.add(Account(id=1, name="Main", balance=0.0))
        add_operation(store, 1, INCOME, 10.0, "2024-01-01", account_id=99)

        report = AnalyticsEngine(store).reconcile()

        assert report.rows[0].computed == 0.0
        assert report.total_income == 0.0

    def test_negative_amount_reverses_the_sign(self, store):
        """Test that a negative expense increases the computed balance."""
        store.accounts.add(Account(id=1, name="Main", balance=0.0))
        add_operation(store, 1, EXPENSE, -5.0, "2024-01-01")

        assert AnalyticsEngine(store).reconcile().rows[0].computed == 5.0


class TestReconcileApply:
    """Tests for overwriting declared balances."""

    def test_apply_updates_drifting_accounts(self, store):
        """Test updated count and total absolute delta."""
        store.accounts.add(Account(id=1, name="Main", balance=100.0))
        store.accounts.add(Account(id=2, name="Exact", balance=0.0))
        add_operation(store, 1, INCOME, 50.0, "2024-01-01")
        add_operation(store, 2, EXPENSE, 20.0, "2024-01-02")

        result = AnalyticsEngine(store).reconcile_apply()

        assert result.updated == 1
        assert result.total_abs_delta == 70.0
        assert store.accounts.get(1).balance == 30.0
        assert store.accounts.get(1).name == "Main"

    def test_apply_is_idempotent(self, store):
        """Test a second apply changes nothing."""
        store.accounts.add(Account(id=1, name="Main", balance=100.0))
        add_operation(store, 1, INCOME, 0.1, "2024-01-01")
        add_operation(store, 2, INCOME, 0.2, "2024-01-01")
        engine = AnalyticsEngine(store)

        assert engine.reconcile_apply().updated == 1
        second = engine.reconcile_apply()
        assert second.updated == 0
        assert second.total_abs_delta == 0.0

    def test_epsilon_tolerance(self, store):
        """Test differences within epsilon are left alone."""
        store.accounts.add(Account(id=1, name="Main", balance=1e-12))
        assert AnalyticsEngine(store).reconcile_apply().updated == 0
        assert AnalyticsEngine(store).reconcile_apply(epsilon=1e-15).updated == 1

    def test_apply_keeps_account_order(self, store):
        """Test that updates replace accounts in place."""
        for account_id in (2, 1):
            store.accounts.add(Account(id=account_id, name=f"A{account_id}", balance=9.0))

        AnalyticsEngine(store).reconcile_apply()

        assert [a.id for a in store.accounts.all()] == [2, 1]


class TestCategoryTotals:
    """Tests for per-category sums."""

    def test_totals_include_empty_categories(self, store):
        """Test zero rows, both sums and id ordering."""
        store.categories.add(Category(id=2, type=EXPENSE, name="Food"))
        store.categories.add(Category(id=1, type=INCOME, name="Salary"))
        store.categories.add(Category(id=3, type=EXPENSE, name="Unused"))
        add_operation(store, 1, INCOME, 100.0, "2024-01-01", category_id=1)
        add_operation(store, 2, EXPENSE, 30.0, "2024-01-02", category_id=2)
        add_operation(store, 3, INCOME, 5.0, "2024-01-03", category_id=2)
        add_operation(store, 4, EXPENSE, 1.0, "2024-01-03", category_id=42)

        totals = AnalyticsEngine(store).category_totals()

        assert [t.category_id for t in totals] == [1, 2, 3]
        assert (totals[0].income, totals[0].expense) == (100.0, 0.0)
        assert (totals[1].income, totals[1].expense) == (5.0, 30.0)
        assert (totals[2].income, totals[2].expense) == (0.0, 0.0)


class TestMonthlyTotals:
    """Tests for per-month buckets."""

    def test_monthly_example(self, store):
        """Test one bucket with income 100 and expense 40."""
        add_operation(store, 1, INCOME, 100.0, "2024-01-15")
        add_operation(store, 2, EXPENSE, 40.0, "2024-01-20")

        months = AnalyticsEngine(store).monthly_totals()

        assert len(months) == 1
        assert months[0].month == "2024-01"
        assert months[0].income == 100.0
        assert months[0].expense == 40.0
        assert months[0].net == 60.0

    def test_months_ascending(self, store):
        """Test bucket ordering."""
        add_operation(store, 1, INCOME, 1.0, "2024-03-01")
        add_operation(store, 2, INCOME, 1.0, "2023-12-31")
        add_operation(store, 3, INCOME, 1.0, "2024-01-01")

        months = AnalyticsEngine(store).monthly_totals()
        assert [m.month for m in months] == ["2023-12", "2024-01", "2024-03"]

    def test_filters_are_combined(self, store):
        """Test year, account and category filters together."""
        add_operation(store, 1, INCOME, 1.0, "2024-01-01", account_id=1, category_id=1)
        add_operation(store, 2, INCOME, 2.0, "2024-01-02", account_id=2, category_id=1)
        add_operation(store, 3, INCOME, 4.0, "2024-01-03", account_id=1, category_id=2)
        add_operation(store, 4, INCOME, 8.0, "2023-01-03", account_id=1, category_id=1)

        months = AnalyticsEngine(store).monthly_totals(year=2024, account_id=1, category_id=1)

        assert [(m.month, m.income) for m in months] == [("2024-01", 1.0)]

    def test_short_and_odd_dates_are_skipped(self, store):
        """Test dates too short for a month key or a year."""
        add_operation(store, 1, INCOME, 1.0, "2024")
        add_operation(store, 2, INCOME, 2.0, "abcd-01-01")
        add_operation(store, 3, INCOME, 4.0, "2024-05-01")

        engine = AnalyticsEngine(store)
        assert [m.month for m in engine.monthly_totals()] == ["2024-05", "abcd-01"]
        assert [m.month for m in engine.monthly_totals(year=2024)] == ["2024-05"]


class TestTopExpenses:
    """Tests for the expense ranking."""

    def test_ranking_example(self, store):
        """Test sums 50, 0 and 30 rank as [50, 30]."""
        for category_id in (1, 2, 3):
            store.categories.add(Category(id=category_id, type=EXPENSE, name=f"C{category_id}"))
        add_operation(store, 1, EXPENSE, 50.0, "2024-01-01", category_id=1)
        add_operation(store, 2, EXPENSE, 0.0, "2024-01-01", category_id=2)
        add_operation(store, 3, EXPENSE, 30.0, "2024-01-01", category_id=3)

        top = AnalyticsEngine(store).top_expenses()

        assert [row.expense for row in top] == [50.0, 30.0]
        assert [row.category_id for row in top] == [1, 3]

    def test_negative_sums_are_dropped(self, store):
        """Test that a category whose expenses net below zero is not ranked."""
        store.categories.add(Category(id=1, type=EXPENSE, name="Food"))
        store.categories.add(Category(id=2, type=EXPENSE, name="Refunds"))
        add_operation(store, 1, EXPENSE, 50.0, "2024-01-01", category_id=1)
        add_operation(store, 2, EXPENSE, -5.0, "2024-01-01", category_id=2)

        top = AnalyticsEngine(store).top_expenses()

        assert [row.category_id for row in top] == [1]

    def test_ties_break_on_category_id(self, store):
        """Test equal sums are ordered by id."""
        for category_id in (5, 4):
            store.categories.add(Category(id=category_id, type=EXPENSE, name=f"C{category_id}"))
            add_operation(store, category_id, EXPENSE, 10.0, "2024-01-01", category_id=category_id)

        assert [row.category_id for row in AnalyticsEngine(store).top_expenses()] == [4, 5]

    def test_only_expenses_on_expense_categories(self, store):
        """Test income categories and income operations are ignored."""
        store.categories.add(Category(id=1, type=INCOME, name="Salary"))
        store.categories.add(Category(id=2, type=EXPENSE, name="Food"))
        add_operation(store, 1, EXPENSE, 99.0, "2024-01-01", category_id=1)
        add_operation(store, 2, INCOME, 99.0, "2024-01-01", category_id=2)
        add_operation(store, 3, EXPENSE, 5.0, "2024-01-01", category_id=2)

        top = AnalyticsEngine(store).top_expenses()

        assert [(row.category_id, row.expense) for row in top] == [(2, 5.0)]

    def test_date_range_is_inclusive(self, store):
        """Test from/to bounds on the ISO date string."""
        store.categories.add(Category(id=1, type=EXPENSE, name="Food"))
        for op_id, date in enumerate(["2024-01-01", "2024-01-15", "2024-01-31", "2024-02-01"], start=1):
            add_operation(store, op_id, EXPENSE, float(op_id), date)

        top = AnalyticsEngine(store).top_expenses(date_from="2024-01-15", date_to="2024-01-31")

        assert top[0].expense == 2.0 + 3.0

    def test_limit(self, store):
        """Test truncation and non-positive limits."""
        for category_id in (1, 2, 3):
            store.categories.add(Category(id=category_id, type=EXPENSE, name=f"C{category_id}"))
            add_operation(store, category_id, EXPENSE, float(category_id), "2024-01-01", category_id=category_id)

        engine = AnalyticsEngine(store)
        assert [row.category_id for row in engine.top_expenses(limit=2)] == [3, 2]
        assert engine.top_expenses(limit=0) == []


class TestDanglingReferences:
    """Tests for the integrity report."""

    def test_lists_missing_accounts_and_categories(self, store):
        """Test both kinds of dangling reference, in operation order."""
        store.accounts.add(Account(id=1, name="Main", balance=0.0))
        store.categories.add(Category(id=1, type=EXPENSE, name="Food"))
        add_operation(store, 10, EXPENSE, 1.0, "2024-01-01", account_id=1, category_id=1)
        add_operation(store, 11, EXPENSE, 1.0, "2024-01-01", account_id=7, category_id=8)
        add_operation(store, 12, EXPENSE, 1.0, "2024-01-01", account_id=1, category_id=9)

        dangling = find_dangling_references(store)

        assert [(d.operation_id, d.field, d.missing_id) for d in dangling] == [
            (11, "bank_account_id", 7),
            (11, "category_id", 8),
            (12, "category_id", 9),
        ]

    def test_clean_store(self, sample_store):
        """Test a store where every reference resolves."""
        assert find_dangling_references(sample_store) == []
