"""Failure kinds raised by the production engine.

Domain methods raise Protean ``ValidationError`` (or one of the subclasses
below) so that handlers and tests can treat every rule violation the same
way. The engine facade later maps each class to an ``ErrorKind``.
"""

from protean.exceptions import ValidationError


class InvalidTransition(ValidationError):
    """The requested state change is not in the edge table for the current state."""


class GateNotSatisfied(ValidationError):
    """A funnel transition is blocked by an unmet precondition (first piece not approved)."""


class InsufficientStock(ValidationError):
    """A reservation could not be satisfied from available stock."""


class StorageError(Exception):
    """The underlying persistence is unavailable."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage unavailable during {operation}: {reason}")


# Exceptions raised by providers when the backing store cannot be reached
STORAGE_FAILURES = (ConnectionError, TimeoutError, OSError)
