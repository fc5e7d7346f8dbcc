"""
Notification Service

Subscriber side of the marketplace outbox: commands hand their committed
DomainEvents to a NotificationDispatcher, which turns them into
user/business/admin facing notification records kept in memory.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Callable, Dict, Iterable, List, Optional, Any

from descuentosya.config import Config
from descuentosya.observability import increment_counter, record_event
from descuentosya.services.events import DomainEvent, EventType


class NotificationType(str, Enum):
    CLAIM = "claim"
    APPROVAL = "approval"
    REJECTION = "rejection"
    SYSTEM = "system"


@dataclass
class Notification:
    """Represents a single notification."""
    id: str
    recipient_id: str
    notification_type: NotificationType
    title: str
    message: str
    deal_id: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    read: bool = False
    read_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "type": self.notification_type.value,
            "title": self.title,
            "message": self.message,
            "deal_id": self.deal_id,
            "created_at": self.created_at.isoformat(),
            "read": self.read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
        }


class NotificationService:
    """
    In-memory notification store keyed by recipient.

    Recipients are user ids, ``business:<id>`` channels, or the admin
    channel. Each recipient keeps at most ``max_per_recipient`` entries,
    most recent first.
    """

    def __init__(self, max_per_recipient: int = Config.NOTIFICATIONS_MAX_PER_USER) -> None:
        self._notifications: Dict[str, List[Notification]] = defaultdict(list)
        self._notification_counter: int = 0
        self._max_per_recipient = max_per_recipient
        self._lock = Lock()
        self.logger = logging.getLogger(__name__)

    def add_notification(
        self,
        recipient_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        deal_id: Optional[int] = None,
    ) -> Notification:
        with self._lock:
            self._notification_counter += 1
            notification_id = f"notif_{self._notification_counter}_{int(datetime.now().timestamp())}"

            notification = Notification(
                id=notification_id,
                recipient_id=recipient_id,
                notification_type=notification_type,
                title=title,
                message=message,
                deal_id=deal_id,
            )

            inbox = self._notifications[recipient_id]
            inbox.insert(0, notification)
            if len(inbox) > self._max_per_recipient:
                del inbox[self._max_per_recipient:]

        increment_counter(
            "notifications_created_total",
            labels={"type": notification_type.value},
        )
        self.logger.info("Notification created for %s: %s", recipient_id, title)
        return notification

    def get_notifications(
        self,
        recipient_id: str,
        unread_only: bool = False,
        limit: Optional[int] = None,
    ) -> List[Notification]:
        with self._lock:
            notifications = list(self._notifications.get(recipient_id, []))

        if unread_only:
            notifications = [n for n in notifications if not n.read]
        if limit is not None:
            notifications = notifications[:limit]
        return notifications

    def get_unread_count(self, recipient_id: str) -> int:
        with self._lock:
            return sum(1 for n in self._notifications.get(recipient_id, []) if not n.read)

    def mark_as_read(self, recipient_id: str, notification_id: str) -> bool:
        """Only the recipient can mark its own notification; returns False otherwise."""
        with self._lock:
            for notification in self._notifications.get(recipient_id, []):
                if notification.id == notification_id:
                    if not notification.read:
                        notification.read = True
                        notification.read_at = datetime.now(timezone.utc)
                    return True
        return False

    def mark_all_as_read(self, recipient_id: str) -> int:
        count = 0
        now = datetime.now(timezone.utc)
        with self._lock:
            for notification in self._notifications.get(recipient_id, []):
                if not notification.read:
                    notification.read = True
                    notification.read_at = now
                    count += 1
        return count


# -----------------------------------------------------------------------------
# Event -> notification mapping
# -----------------------------------------------------------------------------

def _deal_submitted(event: DomainEvent, config: type[Config]) -> List[Dict[str, Any]]:
    payload = event.payload
    return [{
        "recipient_id": config.ADMIN_CHANNEL_ID,
        "notification_type": NotificationType.SYSTEM,
        "title": "New deal awaiting review",
        "message": f'{payload.get("business_name") or "A business"} submitted "{payload["title"]}" for approval.',
    }]


def _deal_resubmitted(event: DomainEvent, config: type[Config]) -> List[Dict[str, Any]]:
    payload = event.payload
    return [{
        "recipient_id": config.ADMIN_CHANNEL_ID,
        "notification_type": NotificationType.SYSTEM,
        "title": "Deal resubmitted",
        "message": f'"{payload["title"]}" was edited after rejection and is awaiting review again.',
    }]


def _deal_approved(event: DomainEvent, config: type[Config]) -> List[Dict[str, Any]]:
    payload = event.payload
    return [{
        "recipient_id": payload["business_channel"],
        "notification_type": NotificationType.APPROVAL,
        "title": "Deal approved",
        "message": f'Your deal "{payload["title"]}" was approved and is now visible to users.',
    }]


def _deal_rejected(event: DomainEvent, config: type[Config]) -> List[Dict[str, Any]]:
    payload = event.payload
    return [{
        "recipient_id": payload["business_channel"],
        "notification_type": NotificationType.REJECTION,
        "title": "Deal rejected",
        "message": payload["reason"],
    }]


def _coupon_claimed(event: DomainEvent, config: type[Config]) -> List[Dict[str, Any]]:
    payload = event.payload
    return [{
        "recipient_id": payload["user_id"],
        "notification_type": NotificationType.CLAIM,
        "title": "Coupon ready",
        "message": (
            f'Your coupon for "{payload["title"]}" is ready. '
            f'Show the QR code at {payload.get("business_name") or "the business"} to use it.'
        ),
    }]


def _business_registered(event: DomainEvent, config: type[Config]) -> List[Dict[str, Any]]:
    return [{
        "recipient_id": config.ADMIN_CHANNEL_ID,
        "notification_type": NotificationType.SYSTEM,
        "title": "New business awaiting review",
        "message": f'{event.payload["name"]} registered and is awaiting approval.',
    }]


def _business_approved(event: DomainEvent, config: type[Config]) -> List[Dict[str, Any]]:
    return [{
        "recipient_id": event.payload["business_channel"],
        "notification_type": NotificationType.APPROVAL,
        "title": "Business approved",
        "message": f'{event.payload["name"]} can now publish deals.',
    }]


def _business_rejected(event: DomainEvent, config: type[Config]) -> List[Dict[str, Any]]:
    return [{
        "recipient_id": event.payload["business_channel"],
        "notification_type": NotificationType.REJECTION,
        "title": "Business rejected",
        "message": event.payload["reason"],
    }]


_EVENT_HANDLERS: Dict[EventType, Callable[[DomainEvent, type[Config]], List[Dict[str, Any]]]] = {
    EventType.DEAL_SUBMITTED: _deal_submitted,
    EventType.DEAL_RESUBMITTED: _deal_resubmitted,
    EventType.DEAL_APPROVED: _deal_approved,
    EventType.DEAL_REJECTED: _deal_rejected,
    EventType.COUPON_CLAIMED: _coupon_claimed,
    EventType.BUSINESS_REGISTERED: _business_registered,
    EventType.BUSINESS_APPROVED: _business_approved,
    EventType.BUSINESS_REJECTED: _business_rejected,
}


class NotificationDispatcher:
    """
    Delivers committed domain events to the notification store.

    Delivery is fire-and-forget relative to the command that produced the
    events: a failing handler is logged and counted, never re-raised.
    """

    def __init__(
        self,
        notification_service: NotificationService,
        config: type[Config] = Config,
    ) -> None:
        self.notification_service = notification_service
        self.config = config
        self.logger = logging.getLogger(__name__)

    def dispatch(self, events: Iterable[DomainEvent]) -> List[Notification]:
        delivered: List[Notification] = []
        for event in events:
            record_event(event.event_type.value, event.to_dict())
            handler = _EVENT_HANDLERS.get(event.event_type)
            if handler is None:
                continue
            try:
                for entry in handler(event, self.config):
                    delivered.append(
                        self.notification_service.add_notification(deal_id=event.deal_id, **entry)
                    )
            except Exception:
                increment_counter(
                    "notification_dispatch_failures_total",
                    labels={"event": event.event_type.value},
                )
                self.logger.exception(
                    "Failed to deliver notification for %s",
                    event.event_type.value,
                    extra={"deal_id": event.deal_id},
                )
        return delivered
