"""
Personal Ledger - Source Package

In-memory ledger of bank accounts, categories and dated income/expense
operations, with CSV/JSON/YAML import and export, automatic snapshots
after every change, and reconciliation/aggregation reports.

PRINCIPLES:
1. Imports either commit completely or not at all
2. Exports always describe the full state
3. Reports never fail on dangling references
4. Every mutation is auditable
"""

__version__ = "1.0.0"
__author__ = "Personal Ledger Team"
