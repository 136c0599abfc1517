"""Discriminated results returned by the engine facade.

Every inbound operation returns either ``Ok(value)`` or ``Err(error)``;
callers branch on ``result.ok`` (or ``isinstance``) and map
``error.kind`` to a user-facing message.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    VALIDATION_ERROR = "validation_error"
    INVALID_TRANSITION = "invalid_transition"
    GATE_NOT_SATISFIED = "gate_not_satisfied"
    INSUFFICIENT_STOCK = "insufficient_stock"
    NOT_FOUND = "not_found"
    STORAGE_ERROR = "storage_error"


@dataclass(frozen=True)
class EngineError:
    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.STORAGE_ERROR


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: EngineError

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise RuntimeError(f"Called unwrap() on a failed result: {self.error.kind.value}: {self.error.message}")


Result = Ok[T] | Err
