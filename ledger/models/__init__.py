"""
Data Models Package

This package contains all Pydantic models used in the Personal Ledger.
Entities, report rows and audit events all live here.
"""

from ledger.models.entities import (
    Account,
    Category,
    LedgerEntity,
    Operation,
    OperationType,
    parse_operation_type,
)
from ledger.models.reports import (
    CategoryTotal,
    DanglingReference,
    MonthRow,
    ReconcileApplyResult,
    ReconcileReport,
    ReconcileRow,
    TopExpenseRow,
)
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entities
    "Account",
    "Category",
    "LedgerEntity",
    "Operation",
    "OperationType",
    "parse_operation_type",
    # Reports
    "CategoryTotal",
    "DanglingReference",
    "MonthRow",
    "ReconcileApplyResult",
    "ReconcileReport",
    "ReconcileRow",
    "TopExpenseRow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
