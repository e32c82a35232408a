"""
Exceptions raised by the scheduler, the record store and the flows on top.
"""
from __future__ import annotations
from typing import Optional


class LeitnerError(Exception):
    """Base exception for all application errors."""
    pass


class ValidationError(LeitnerError):
    """Raised when an interval policy or user input is rejected.

    ``constraint`` names the rule that failed ("count", "integer", "positive",
    "increasing", "empty"), ``box`` the offending box level when there is one.
    """

    def __init__(self, message: str, constraint: str, box: Optional[int] = None):
        super().__init__(message)
        self.constraint = constraint
        self.box = box


class NotFoundError(LeitnerError):
    """Raised when a card or collection id does not exist."""

    def __init__(self, kind: str, ident: str):
        super().__init__(f"{kind} {ident!r} not found")
        self.kind = kind
        self.ident = ident


class StorageError(LeitnerError):
    """Raised when the local record store fails to read or write."""
    pass


class ReviewFinished(LeitnerError):
    """Raised when answering a review session that has no card on display."""
    pass
