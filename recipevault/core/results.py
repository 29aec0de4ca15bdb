"""
Tagged results returned by every repository and service call.
Failures are data: callers branch on `is_ok` instead of catching exceptions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorCode(str, Enum):
    CONNECTION = "connection"
    NOT_AUTHENTICATED = "not_authenticated"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    MIGRATION = "migration"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RepoError:
    code: ErrorCode
    message: str

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message}


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    @property
    def error(self) -> None:
        return None

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: RepoError

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def value(self) -> None:
        return None

    def unwrap(self):
        raise ValueError(f"{self.error.code.value}: {self.error.message}")


Result = Union[Ok[T], Err]


def err(code: ErrorCode, message: str) -> Err:
    return Err(RepoError(code, message))


def not_authenticated() -> Err:
    return err(ErrorCode.NOT_AUTHENTICATED, "User not authenticated")
