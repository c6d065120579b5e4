from .engine import allowed_sources, can_transition, check_transition, require_state
from .errors import (
    AggregateNotFoundError,
    CapacityExceededError,
    ConcurrencyConflictError,
    DomainError,
    DomainValidationError,
    DuplicateEntryError,
    InvalidOperationError,
    SubEntityNotFoundError,
    TransitionError,
)
from .registry import WORKFLOWS

__all__ = [
    "AggregateNotFoundError",
    "CapacityExceededError",
    "ConcurrencyConflictError",
    "DomainError",
    "DomainValidationError",
    "DuplicateEntryError",
    "InvalidOperationError",
    "SubEntityNotFoundError",
    "TransitionError",
    "WORKFLOWS",
    "allowed_sources",
    "can_transition",
    "check_transition",
    "require_state",
]
