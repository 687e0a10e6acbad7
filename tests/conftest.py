"""
Shared fixtures for the Personal Ledger tests.

No test touches the network; files only live under pytest's tmp_path.
"""

import os

import pytest

from ledger.audit import AuditLogger
from ledger.config import get_settings
from ledger.models.entities import Account, Category, Operation, OperationType
from ledger.services.storage import InMemoryAuditStorage, LedgerStore


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Run every test in its own directory with no LEDGER_* overrides or .env file."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("LEDGER_"):
            monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def sample_store():
    """
    A small ledger with awkward text on purpose: delimiters, quotes,
    non-ASCII characters and a missing description.
    """
    store = LedgerStore()

    store.accounts.add(Account(id=1, name="Main", balance=100.0))
    store.accounts.add(Account(id=2, name="Savings; joint", balance=2500.1))
    store.accounts.add(Account(id=3, name="Épargne \"rainy day\"", balance=0.1 + 0.2))

    store.categories.add(Category(id=10, type=OperationType.INCOME, name="Salary"))
    store.categories.add(Category(id=11, type=OperationType.EXPENSE, name="Food, drinks"))
    store.categories.add(Category(id=12, type=OperationType.EXPENSE, name="Rent"))

    store.operations.add(Operation(
        id=100, type=OperationType.INCOME, bank_account_id=1, category_id=10,
        amount=1500.0, date="2024-01-05", description="January salary",
    ))
    store.operations.add(Operation(
        id=101, type=OperationType.EXPENSE, bank_account_id=1, category_id=11,
        amount=42.37, date="2024-01-06", description='Lunch at "Chez Paul", tip: 10%',
    ))
    store.operations.add(Operation(
        id=102, type=OperationType.EXPENSE, bank_account_id=2, category_id=12,
        amount=800.0, date="2024-02-01",
    ))
    store.operations.add(Operation(
        id=103, type=OperationType.EXPENSE, bank_account_id=1, category_id=11,
        amount=1e-7, date="2024-02-14", description="multi\nline; note",
    ))

    return store
