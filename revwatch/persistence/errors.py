"""Errors raised by persistence gateways."""

from __future__ import annotations


class PersistenceError(RuntimeError):
    """Base class for gateway failures."""


class TargetNotFoundError(PersistenceError):
    """Raised when a target id does not match a tracked version."""

    def __init__(self, target_id: str) -> None:
        """Initialise with the missing target id."""
        self.target_id = target_id
        super().__init__(f"Target not found: {target_id}")


class LedgerPrepareError(PersistenceError):
    """Raised when the transient update ledger cannot be prepared.

    This is the only scan-fatal failure: no worker starts without a ledger.
    """

    @classmethod
    def wrap(cls, exc: BaseException) -> LedgerPrepareError:
        """Return an error wrapping the storage failure ``exc``."""
        return cls(f"could not prepare update ledger: {exc}")


class TimezoneAwareRequiredError(ValueError):
    """Raised when a naive datetime is bound to a UTC timestamp column."""

    def __init__(self, context: str) -> None:
        """Attach a consistent message for the failing context."""
        super().__init__(f"{context} must be timezone aware")
