"""Ledger error taxonomy.

Every ledger operation either returns its success value or raises one of
these. ``kind`` is a stable machine-readable tag for callers that surface
errors to users.
"""

from __future__ import annotations


class LedgerError(Exception):
    kind: str = "ledger_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class ValidationError(LedgerError):
    """Caller-supplied data violates a precondition."""

    kind = "validation_error"


class NotFound(LedgerError):
    """Referenced trade does not exist (or is not visible to the caller)."""

    kind = "not_found"


class InvalidState(LedgerError):
    """Operation is not legal in the trade's current lifecycle state."""

    kind = "invalid_state"


class StoreUnavailable(LedgerError):
    """Transient infrastructure failure talking to the trade store."""

    kind = "store_unavailable"
