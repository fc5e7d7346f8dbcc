from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class EventType(str, Enum):
    DEAL_SUBMITTED = "deal_submitted"
    DEAL_RESUBMITTED = "deal_resubmitted"
    DEAL_APPROVED = "deal_approved"
    DEAL_REJECTED = "deal_rejected"
    COUPON_CLAIMED = "coupon_claimed"
    COUPON_REDEEMED = "coupon_redeemed"
    BUSINESS_REGISTERED = "business_registered"
    BUSINESS_APPROVED = "business_approved"
    BUSINESS_REJECTED = "business_rejected"


@dataclass(frozen=True)
class DomainEvent:
    """A state change committed by a command, awaiting delivery."""

    event_type: EventType
    payload: Dict[str, Any]
    deal_id: Optional[int] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.event_type.value,
            "deal_id": self.deal_id,
            "payload": dict(self.payload),
            "occurred_at": self.occurred_at.isoformat(),
        }
