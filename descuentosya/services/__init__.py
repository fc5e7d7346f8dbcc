from .results import CommandResult, ErrorKind
from .events import DomainEvent, EventType
from .locking import EntityLockRegistry
from .notification_service import NotificationDispatcher, NotificationService
from .approval_service import ApprovalService
from .catalog_service import CatalogService
from .coupon_service import CouponService
from .redemption_service import RedemptionService

# Read-side helpers
from .review_service import ReviewService
from .stats_service import StatsService

__all__ = [
    "CommandResult",
    "ErrorKind",
    "DomainEvent",
    "EventType",
    "EntityLockRegistry",
    "NotificationDispatcher",
    "NotificationService",
    "ApprovalService",
    "CatalogService",
    "CouponService",
    "RedemptionService",
    # Read-side
    "ReviewService",
    "StatsService",
]
