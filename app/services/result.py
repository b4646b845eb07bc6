from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    INVALID_MONTHS = "invalid_months"
    BACKUP_FAILED = "backup_failed"
    BACKUP_WRITE_FAILED = "backup_write_failed"
    BACKUP_NOT_FOUND = "backup_not_found"
    BACKUP_UNREADABLE = "backup_unreadable"
    BACKUP_INVALID = "backup_invalid"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a maintenance operation (backup, restore, cleanup) that can fail for expected reasons."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str, code: ErrorCode) -> "Result[T]":
        return cls(ok=False, error=error, error_code=code)

    @classmethod
    def from_exception(cls, exc: Exception, code: ErrorCode) -> "Result[T]":
        return cls(ok=False, error=f"{type(exc).__name__}: {exc}", error_code=code)

    def __bool__(self) -> bool:
        return self.ok
