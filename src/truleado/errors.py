"""
truleado.errors

Domain exceptions shared by the RBAC, workflow and service layers.

Responsibilities:
- Define the stable error codes exposed by the API contract.
- Carry structured details (entity ids, states, fields) alongside the message.
- Stay free of web-framework imports; the API layer maps codes to HTTP statuses.
"""

from __future__ import annotations

import enum
from typing import Any


class ErrorCode(enum.StrEnum):
    # Values are part of the public API contract.
    forbidden = "FORBIDDEN"
    invalid_state = "INVALID_STATE"
    insufficient_tokens = "INSUFFICIENT_TOKENS"
    not_found = "NOT_FOUND"
    validation_error = "VALIDATION_ERROR"
    unauthenticated = "UNAUTHENTICATED"
    internal_error = "INTERNAL_ERROR"


class DomainError(Exception):
    code: ErrorCode = ErrorCode.internal_error

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        # Drop unset keys so responses only carry meaningful context.
        self.details: dict[str, Any] = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": self.details}


class UnauthenticatedError(DomainError):
    code = ErrorCode.unauthenticated

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class ForbiddenError(DomainError):
    code = ErrorCode.forbidden

    def __init__(
        self, message: str = "You do not have permission to perform this action", **details: Any
    ) -> None:
        super().__init__(message, **details)


class NotFoundError(DomainError):
    code = ErrorCode.not_found

    def __init__(self, entity_type: str, entity_id: Any = None) -> None:
        message = (
            f"{entity_type} with ID {entity_id} not found"
            if entity_id is not None
            else f"{entity_type} not found"
        )
        super().__init__(
            message,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationFailed(DomainError):
    code = ErrorCode.validation_error

    def __init__(self, message: str, field: str | None = None, **details: Any) -> None:
        super().__init__(message, field=field, **details)
        self.field = field


class InvalidStateError(DomainError):
    code = ErrorCode.invalid_state

    def __init__(
        self,
        message: str,
        current_state: str | None = None,
        attempted_transition: str | None = None,
    ) -> None:
        super().__init__(
            message, current_state=current_state, attempted_transition=attempted_transition
        )
        self.current_state = current_state
        self.attempted_transition = attempted_transition


class InsufficientTokensError(DomainError):
    code = ErrorCode.insufficient_tokens

    def __init__(
        self,
        message: str = "Insufficient tokens to perform this analytics fetch",
        required: int = 1,
        available: int = 0,
    ) -> None:
        super().__init__(message, required=required, available=available)
        self.required = required
        self.available = available


class ExternalServiceError(DomainError):
    code = ErrorCode.internal_error

    def __init__(self, service: str, message: str | None = None) -> None:
        super().__init__(message or f"{service} request failed", service=service)
        self.service = service


# --- Module Notes -----------------------------------------------------------
# HTTP mapping lives in `api.errors`; services and RBAC raise these directly.
