"""Error taxonomy and the Result value returned by fetch and save operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorKind(Enum):
    MALFORMED_RECORD = "malformed_record"
    INVALID_RANGE = "invalid_range"
    PERSISTENCE_FAILURE = "persistence_failure"
    FETCH_FAILURE = "fetch_failure"
    SAVE_IN_PROGRESS = "save_in_progress"
    NO_SESSION = "no_session"
    STALE_RESULT = "stale_result"


class MalformedRecord(ValueError):
    """A single raw rate record could not be normalized."""


class InvalidRange(ValueError):
    """Edited value is not a finite number in [0, 100]."""


class PersistenceFailure(RuntimeError):
    """The persistence collaborator rejected or failed a save."""


@dataclass(frozen=True)
class Result:
    value: Any = None
    error: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None, message: str = "") -> "Result":
        return cls(value=value, message=message)

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> "Result":
        return cls(error=error, message=message)
