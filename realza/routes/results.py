# Translate engine results into HTTP responses.
from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status

from ..errors import Err, ErrorKind, Result

_STATUS_BY_KIND = {
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_STATE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.ALREADY_CLAIMED: status.HTTP_409_CONFLICT,
    ErrorKind.TOO_EARLY: status.HTTP_425_TOO_EARLY,
}


def unwrap(result: Result[Any]) -> Any:
    """Return the Ok value, or raise an HTTPException carrying the error kind and message."""
    if isinstance(result, Err):
        raise HTTPException(
            status_code=_STATUS_BY_KIND[result.kind],
            detail={"error": result.kind.value, "message": result.message},
        )
    return result.value
