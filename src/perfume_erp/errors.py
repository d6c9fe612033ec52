"""Domain error taxonomy raised by the transaction reducer.

Every error represents the rejection of a single attempted action. None of
them is fatal: the caller may pick another action or correct its input.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Optional

from .constants import ReasonCode


class DomainError(Exception):
    """Base class for rejections produced by the core."""

    code: str = ReasonCode.INVALID_INPUT

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> Dict[str, str]:
        """Serialize for presentation layers."""
        return {"code": self.code, "message": self.message}


class InsufficientStock(DomainError):
    """Raised when a variant cannot cover the requested quantity."""

    code = ReasonCode.INSUFFICIENT_STOCK

    def __init__(self, variant_id: str, display_name: str, requested: Decimal, available: Decimal) -> None:
        self.variant_id = variant_id
        self.display_name = display_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient available quantity for {display_name}: "
            f"requested {requested}, available {available}"
        )


class DuplicateName(DomainError):
    """Raised when a category name collides case-insensitively."""

    code = ReasonCode.DUPLICATE_NAME


class ReferentialBlock(DomainError):
    """Raised when a delete is blocked by an active reference."""

    code = ReasonCode.REFERENTIAL_BLOCK


class ConflictingState(DomainError):
    """Raised when the target entity is not in a state that allows the action."""

    code = ReasonCode.CONFLICTING_STATE


class NotFound(DomainError):
    """Raised when an action references an id absent from the current state."""

    code = ReasonCode.NOT_FOUND


class FormatError(DomainError):
    """Raised when a backup document is malformed."""

    code = ReasonCode.FORMAT_ERROR


__all__ = [
    "DomainError",
    "InsufficientStock",
    "DuplicateName",
    "ReferentialBlock",
    "ConflictingState",
    "NotFound",
    "FormatError",
]
