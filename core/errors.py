# core/errors.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, TypeVar, Union

from fastapi import HTTPException, status


T = TypeVar("T")


# ========================================
# ❗ Error taxonomy
# ========================================
class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    INSUFFICIENT_ROLE = "insufficient_role"
    TIMER_ALREADY_RUNNING = "timer_already_running"
    FUTURE_DATE = "future_date"
    NOT_EDITABLE = "not_editable"
    VALIDATION_ERROR = "validation_error"
    QUOTA_EXCEEDED = "quota_exceeded"
    CONFLICT = "conflict"


STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.INSUFFICIENT_ROLE: status.HTTP_403_FORBIDDEN,
    ErrorKind.QUOTA_EXCEEDED: status.HTTP_403_FORBIDDEN,
    ErrorKind.TIMER_ALREADY_RUNNING: status.HTTP_409_CONFLICT,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_EDITABLE: status.HTTP_409_CONFLICT,
    ErrorKind.FUTURE_DATE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
}


# ========================================
# ✅ Service results
# ========================================
@dataclass
class Success(Generic[T]):
    value: T
    ok: bool = field(default=True, init=False)


@dataclass
class Failure:
    kind: ErrorKind
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    ok: bool = field(default=False, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, **self.details}


Result = Union[Success[T], Failure]


def not_found(entity: str) -> Failure:
    return Failure(ErrorKind.NOT_FOUND, f"{entity} not found")


def access_denied() -> Failure:
    return Failure(
        ErrorKind.ACCESS_DENIED,
        "Access denied. You are not a member of this workspace.",
    )


def validation_error(message: str, **details: Any) -> Failure:
    return Failure(ErrorKind.VALIDATION_ERROR, message, details)


# ========================================
# 🌐 HTTP boundary
# ========================================
def unwrap(result: "Result[T]") -> T:
    """Return the success value or raise the matching HTTPException."""
    if isinstance(result, Failure):
        raise HTTPException(
            status_code=STATUS_CODES.get(result.kind, status.HTTP_400_BAD_REQUEST),
            detail=result.to_dict(),
        )
    return result.value
