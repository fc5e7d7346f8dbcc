"""Tagged outcomes returned by every marketplace command."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from descuentosya.services.events import DomainEvent


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
    SOLD_OUT = "SOLD_OUT"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    ALREADY_USED = "ALREADY_USED"
    EXPIRED = "EXPIRED"
    WRONG_BUSINESS = "WRONG_BUSINESS"
    VALIDATION_ERROR = "VALIDATION_ERROR"


@dataclass
class CommandResult:
    """
    Either a success value or a tagged failure.

    ``events`` lists the domain events the command produced; they have
    already been handed to the notification dispatcher when the result is
    returned. ``details`` carries failure context for display, e.g. the
    original ``used_at`` of an already redeemed coupon.
    """

    success: bool
    message: str
    value: Optional[Any] = None
    error: Optional[ErrorKind] = None
    details: Dict[str, Any] = field(default_factory=dict)
    events: List[DomainEvent] = field(default_factory=list)

    @classmethod
    def ok(
        cls,
        message: str,
        value: Any = None,
        events: Optional[List[DomainEvent]] = None,
    ) -> "CommandResult":
        return cls(True, message, value=value, events=list(events or []))

    @classmethod
    def fail(
        cls,
        error: ErrorKind,
        message: str,
        value: Any = None,
        **details: Any,
    ) -> "CommandResult":
        return cls(False, message, value=value, error=error, details=details)

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.error is not None:
            payload["error"] = self.error.value
        if self.details:
            payload["details"] = self.details
        return payload
