"""
clickrank.errors — Error Taxonomy
==================================

Every layer raises (or translates into) one of these.  Where each error is
allowed to surface:

* ``ValidationError`` — rejected locally, never written (decreasing total,
  negative amount, invalid threshold).
* ``AuthenticationError`` — the click aggregator refreshes credentials once
  and retries once before surfacing it.
* ``ConflictError`` — an optimistic-concurrency precondition failed on a
  power row.  The lifecycle manager turns it into ``False``.
* ``TransientStoreError`` — the store or network is unavailable.  Pending
  state is preserved and retried on the next natural cycle.
* ``NotFoundError`` — operating on a power or grant the user does not hold.
  Turned into ``False`` / empty by the services.
"""

from __future__ import annotations


class ProgressionError(Exception):
    """Base class for all clickrank errors."""

    retryable: bool = False

    def __init__(self, message: str = "", **details) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.details = details

    def __str__(self) -> str:
        if not self.details:
            return self.message
        extra = ", ".join(f"{k}={v!r}" for k, v in sorted(self.details.items()))
        return f"{self.message} ({extra})"


class ValidationError(ProgressionError):
    """Input rejected before anything was written."""

    def __init__(
        self, message: str = "", *, current_total: int | None = None, **details
    ) -> None:
        if current_total is not None:
            details["current_total"] = current_total
        super().__init__(message, **details)
        self.current_total = current_total


class AuthenticationError(ProgressionError):
    """Credentials missing, expired, or rejected."""


class ConflictError(ProgressionError):
    """A conditional write found the row in a different state than expected."""


class TransientStoreError(ProgressionError):
    """The Ledger (or the network in front of it) is temporarily unavailable."""

    retryable = True


class NotFoundError(ProgressionError):
    """The user does not hold the requested power or grant."""
