"""
Import/Export Formats Package

CSV (directory or sectioned file), JSON and YAML readers and writers,
dispatched through the format registry.
"""

from ledger.formats.base import (
    FormatError,
    ImportResult,
    ImportTarget,
    LedgerView,
    MalformedInputError,
    MissingSectionError,
    ParsedLedger,
    SourceUnavailableError,
)
from ledger.formats.registry import (
    FORMATS,
    FormatHandler,
    FormatKind,
    detect_format,
    parse_format,
    parse_ledger,
    read_ledger,
    write_ledger,
)

__all__ = [
    # Errors
    "FormatError",
    "MalformedInputError",
    "MissingSectionError",
    "SourceUnavailableError",
    # Import plumbing
    "ImportResult",
    "ImportTarget",
    "LedgerView",
    "ParsedLedger",
    # Registry
    "FORMATS",
    "FormatHandler",
    "FormatKind",
    "detect_format",
    "parse_format",
    "parse_ledger",
    "read_ledger",
    "write_ledger",
]
