"""
Domain Errors

Error taxonomy shared by the booking and auction domains. Callers translate
these into transport-level responses (HTTP status codes, task results).

Rule violations found by the validator are *not* exceptions: ``validate``
returns them as a list. ``BookingRulesViolated`` only wraps that list when
an admission has to be aborted.
"""

from typing import Iterable, List


class DomainError(Exception):
    """Base class for all allocation-core errors."""


class BookingRulesViolated(DomainError):
    """Raised when a candidate booking fails one or more temporal rules."""

    def __init__(self, violations: Iterable[str]):
        self.violations: List[str] = list(violations)
        super().__init__("; ".join(self.violations) or "Booking rules violated")


class ConflictError(DomainError):
    """Raised when the requested dates overlap existing pending/approved bookings."""

    def __init__(self, message: str, conflicts: Iterable = ()):
        self.conflicts = list(conflicts)
        super().__init__(message)


class NotFoundError(DomainError):
    """Raised when an asset, booking or bid does not exist (or is not visible to the caller)."""


class StateError(DomainError):
    """Raised on an illegal auction_status / booking status transition."""


class ConcurrencyError(DomainError):
    """
    Raised when a stale write is detected inside an atomic section.

    The caller must retry the whole operation or surface a "please retry"
    response; it is never safe to ignore.
    """


class InvalidBidError(DomainError, ValueError):
    """Raised when bid amounts are malformed (non-positive, max below amount)."""
