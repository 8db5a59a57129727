"""Error taxonomy for reviewflow operations."""

from __future__ import annotations

from typing import Optional


class ReviewflowError(Exception):
    """Base class for all reviewflow errors."""

    retryable: bool = False

    def __init__(self, message: str, item_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.item_id = item_id

    def __str__(self) -> str:
        return self.message


class ValidationError(ReviewflowError):
    """Malformed input."""


class PermissionDenied(ReviewflowError):
    """The actor may not perform the requested action."""


class NotBrandAdmin(PermissionDenied):
    """Restart requires the brand's administrator."""


class StateError(ReviewflowError):
    """The action is illegal for the item's current state."""


class NoActiveWorkflowStep(StateError):
    pass


class WorkflowAlreadyComplete(StateError):
    pass


class NotRejected(StateError):
    pass


class ItemRejected(StateError):
    """The item was rejected and must be restarted before it can advance."""


class NotFoundError(ReviewflowError):
    pass


class ItemNotFound(NotFoundError):
    pass


class WorkflowNotFound(NotFoundError):
    pass


class ConflictError(ReviewflowError):
    """Lost the race for the item row. Safe to retry."""

    retryable = True


class DependencyError(ReviewflowError):
    """The backing store is unreachable."""



def require(value: Optional[str], name: str) -> str:
    """Return ``value`` stripped, or raise ``ValidationError`` if it is blank."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return str(value).strip()


__all__ = [
    "ReviewflowError",
    "ValidationError",
    "PermissionDenied",
    "NotBrandAdmin",
    "StateError",
    "NoActiveWorkflowStep",
    "WorkflowAlreadyComplete",
    "NotRejected",
    "ItemRejected",
    "NotFoundError",
    "ItemNotFound",
    "WorkflowNotFound",
    "ConflictError",
    "DependencyError",
    "require",
]
