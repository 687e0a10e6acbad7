"""Root of the ledger exception hierarchy."""


class LedgerError(Exception):
    """Base exception for every error raised by the ledger."""
    pass
