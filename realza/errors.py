# Result types and error taxonomy for the showing allocation engine.
# Expected business failures travel as Err values; only unexpected faults raise.
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Generic, TypeVar, Union

T = TypeVar("T")

logger = logging.getLogger("realza.errors")


class ErrorKind(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    INVALID_STATE = "invalid_state"
    ALREADY_CLAIMED = "already_claimed"
    TOO_EARLY = "too_early"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


class ShowingError(Exception):
    """Expected failure raised inside an engine operation.

    Never escapes an operation decorated with `returns_result`; it is converted
    to an `Err` carrying the same kind and message.
    """

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


def returns_result(func: Callable[..., Any]) -> Callable[..., Result[Any]]:
    """Wrap an operation so its return value becomes Ok and ShowingError becomes Err.

    The first positional argument must be the SQLAlchemy session; it is rolled
    back before an Err is returned so no partial write survives. Other
    exceptions also roll back and then propagate unchanged.
    """

    @wraps(func)
    def wrapper(db, *args, **kwargs):
        try:
            return Ok(func(db, *args, **kwargs))
        except ShowingError as exc:
            db.rollback()
            logger.info("operation.err", extra={"operation": func.__name__, "kind": exc.kind.value})
            return Err(exc.kind, exc.message)
        except Exception:
            db.rollback()
            raise

    return wrapper
