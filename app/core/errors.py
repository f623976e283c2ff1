"""Typed outcomes shared by the engines and the HTTP boundary.

Ordinary failures (permission denied, unknown entity, wrong state...) are
returned as ``Failure`` values. Exceptions are reserved for conditions the
caller cannot recover from.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from fastapi import HTTPException, status


class ErrorKind(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    CONFLICT = "CONFLICT"
    TRANSITION_NOT_ALLOWED = "TRANSITION_NOT_ALLOWED"


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    code: str
    message: str
    detail: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "code": self.code,
            "message": self.message,
            **({"detail": self.detail} if self.detail else {}),
        }


def unauthorized(code: str = "unauthorized", message: str = "Nao autenticado") -> Failure:
    return Failure(ErrorKind.UNAUTHORIZED, code, message)


def forbidden(code: str = "forbidden", message: str = "Permissao negada", /, **detail: Any) -> Failure:
    return Failure(ErrorKind.FORBIDDEN, code, message, detail)


def not_found(code: str = "not_found", message: str = "Registo nao encontrado", /, **detail: Any) -> Failure:
    return Failure(ErrorKind.NOT_FOUND, code, message, detail)


def invalid_state(code: str, message: str, state: str | None, /, **detail: Any) -> Failure:
    return Failure(ErrorKind.INVALID_STATE, code, message, {"state": state, **detail})


def validation_failed(code: str, message: str, /, **detail: Any) -> Failure:
    return Failure(ErrorKind.VALIDATION_FAILED, code, message, detail)


def conflict(code: str, message: str, /, **detail: Any) -> Failure:
    return Failure(ErrorKind.CONFLICT, code, message, detail)


def transition_not_allowed(state: str | None, action: str) -> Failure:
    return Failure(
        ErrorKind.TRANSITION_NOT_ALLOWED,
        "transition_not_allowed",
        "Transicao nao permitida",
        {"state": state, "action": action},
    )


class InvariantViolation(RuntimeError):
    """An internal invariant broke; never returned as an outcome."""


HTTP_STATUS_BY_KIND = {
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION_FAILED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.TRANSITION_NOT_ALLOWED: status.HTTP_400_BAD_REQUEST,
}


def raise_for_failure(result: Any) -> Any:
    if isinstance(result, Failure):
        raise HTTPException(status_code=HTTP_STATUS_BY_KIND[result.kind], detail=result.to_dict())
    return result
