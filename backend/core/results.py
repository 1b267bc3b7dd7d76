from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INVALID_INPUT = "INVALID_INPUT"
    # Transition precondition not met on a non-terminal record
    INVALID_STATE = "INVALID_STATE"
    UNAUTHORIZED = "UNAUTHORIZED"
    ALREADY_FINALIZED = "ALREADY_FINALIZED"
    CONFLICT = "CONFLICT"
    STORAGE_ERROR = "STORAGE_ERROR"


@dataclass
class Result(Generic[T]):
    """
    Outcome of a service operation.

    Expected business conditions (missing price, wrong supervisor, terminal
    record...) come back as a failed Result with an ErrorKind instead of an
    exception. Callers translate the kind into their own transport response.
    """
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T = None, message: str = "") -> "Result[T]":
        return cls(value=value, message=message)

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> "Result[T]":
        return cls(error=error, message=message)
