from __future__ import annotations

from typing import Dict, List, Optional

ErrorDetail = List[Dict[str, str]]


class DomainError(Exception):
    """
    Base class for business-rule violations raised by aggregates.

    `detail` mirrors the `{"field", "reason"}` shape used by API error bodies.
    """

    code = "domain_error"

    def __init__(
        self,
        message: str,
        *,
        field: str = "__all__",
        code: Optional[str] = None,
        detail: Optional[ErrorDetail] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.detail: ErrorDetail = detail if detail is not None else [{"field": field, "reason": message}]

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "detail": self.detail}


class DomainValidationError(DomainError, ValueError):
    """Bad input to a factory or mutating method. Nothing is mutated."""

    code = "validation_error"


class InvalidOperationError(DomainError):
    """The aggregate or sub-entity is not in a state that permits the call."""

    code = "invalid_operation"


class TransitionError(InvalidOperationError):
    code = "invalid_transition"


class CapacityExceededError(InvalidOperationError):
    code = "capacity_exceeded"


class DuplicateEntryError(InvalidOperationError):
    code = "duplicate_entry"


class SubEntityNotFoundError(InvalidOperationError):
    code = "not_found"


class AggregateNotFoundError(DomainError):
    code = "not_found"


class ConcurrencyConflictError(DomainError):
    code = "concurrency_conflict"
