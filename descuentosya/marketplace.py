"""
Marketplace facade.

Wires the command and query services around one database session, one
notification store and one lock registry, and exposes the operations the
HTTP layer and scripts call. Build one per unit of work (the Flask app does
so per request); the notification store and lock registry are long lived
and shared across facades.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from descuentosya.config import Config
from descuentosya.models import Business, Coupon, CouponStatus, Deal, Review
from descuentosya.services.approval_service import ApprovalService
from descuentosya.services.catalog_service import CatalogService, NearbyDeal
from descuentosya.services.coupon_service import CouponService
from descuentosya.services.locking import EntityLockRegistry
from descuentosya.services.notification_service import (
    Notification,
    NotificationDispatcher,
    NotificationService,
)
from descuentosya.services.redemption_codes import RedemptionCodeGenerator
from descuentosya.services.redemption_service import RedemptionService
from descuentosya.services.results import CommandResult
from descuentosya.services.review_service import ReviewService
from descuentosya.services.stats_service import StatsService


class Marketplace:
    def __init__(
        self,
        db_session: Session,
        notifications: Optional[NotificationService] = None,
        locks: Optional[EntityLockRegistry] = None,
        config: type[Config] = Config,
        code_generator: Optional[RedemptionCodeGenerator] = None,
    ) -> None:
        self.db = db_session
        self.config = config
        self.notifications = notifications or NotificationService(config.NOTIFICATIONS_MAX_PER_USER)
        self.locks = locks if locks is not None else EntityLockRegistry()
        self.dispatcher = NotificationDispatcher(self.notifications, config=config)

        shared = {"dispatcher": self.dispatcher, "locks": self.locks, "config": config}
        self.approvals = ApprovalService(db_session, **shared)
        self.catalog = CatalogService(db_session, **shared)
        self.coupons = CouponService(db_session, code_generator=code_generator, **shared)
        self.redemptions = RedemptionService(db_session, **shared)
        self.reviews = ReviewService(db_session, **shared)
        self.stats = StatsService(db_session, **shared)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list_visible_deals(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[Deal]:
        return self.catalog.list_visible_deals(search=search, category=category, now=now)

    def list_nearby_deals(
        self,
        lat: float,
        lng: float,
        radius_km: Optional[float] = None,
        search: Optional[str] = None,
        category: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[NearbyDeal]:
        return self.catalog.list_nearby_deals(lat, lng, radius_km, search=search, category=category, now=now)

    def list_pending_deals(self) -> List[Deal]:
        return self.catalog.list_pending_deals()

    def get_deal(self, deal_id: int) -> Optional[Deal]:
        return self.catalog.get_deal(deal_id)

    def list_business_deals(self, business_id: int) -> List[Deal]:
        return self.catalog.list_business_deals(business_id)

    def get_coupons_for_user(self, user_id: str, status: Optional[CouponStatus | str] = None) -> List[Coupon]:
        return self.coupons.get_coupons_for_user(user_id, status)

    def get_coupons_for_business(self, business_id: int, status: Optional[CouponStatus | str] = None) -> List[Coupon]:
        return self.coupons.get_coupons_for_business(business_id, status)

    def has_claimed_deal(self, user_id: str, deal_id: int) -> bool:
        return self.coupons.has_claimed_deal(user_id, deal_id)

    def get_notifications(self, recipient_id: str, unread_only: bool = False) -> List[Notification]:
        return self.notifications.get_notifications(recipient_id, unread_only=unread_only)

    def get_unread_count(self, recipient_id: str) -> int:
        return self.notifications.get_unread_count(recipient_id)

    def get_business(self, business_id: int) -> Optional[Business]:
        return self.catalog.get_business(business_id)

    def list_businesses(self, status=None) -> List[Business]:
        return self.catalog.list_businesses(status)

    def get_reviews_for_deal(self, deal_id: int) -> List[Review]:
        return self.reviews.get_reviews_for_deal(deal_id)

    def rating_summary(self, deal_id: int) -> Dict[str, Any]:
        return self.reviews.rating_summary(deal_id)

    def business_stats(self, business_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        return self.stats.business_stats(business_id, now=now)

    def platform_stats(self) -> Dict[str, Any]:
        return self.stats.platform_stats()

    def total_saved(self, user_id: str) -> Decimal:
        return self.coupons.total_saved(user_id)

    # ------------------------------------------------------------------
    # Approval workflow
    # ------------------------------------------------------------------
    def submit_deal(self, business_id: int, now: Optional[datetime] = None, **payload: Any) -> CommandResult:
        return self.approvals.submit_deal(business_id, now=now, **payload)

    def create_approved_deal(self, business_id: int, now: Optional[datetime] = None, **payload: Any) -> CommandResult:
        return self.approvals.create_approved_deal(business_id, now=now, **payload)

    def update_deal(
        self,
        deal_id: int,
        changes: Dict[str, Any],
        owner_business_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> CommandResult:
        return self.approvals.update_deal(deal_id, changes, owner_business_id=owner_business_id, now=now)

    def approve_deal(self, deal_id: int) -> CommandResult:
        return self.approvals.approve_deal(deal_id)

    def reject_deal(self, deal_id: int, reason: str) -> CommandResult:
        return self.approvals.reject_deal(deal_id, reason)

    def toggle_pause(self, deal_id: int, owner_business_id: Optional[int] = None) -> CommandResult:
        return self.approvals.toggle_pause(deal_id, owner_business_id=owner_business_id)

    def toggle_featured(self, deal_id: int) -> CommandResult:
        return self.catalog.toggle_featured(deal_id)

    def delete_deal(self, deal_id: int, owner_business_id: Optional[int] = None) -> CommandResult:
        return self.catalog.delete_deal(deal_id, owner_business_id=owner_business_id)

    def register_business(self, **payload: Any) -> CommandResult:
        return self.catalog.register_business(**payload)

    def create_business(self, **payload: Any) -> CommandResult:
        return self.catalog.create_business(**payload)

    def update_business(self, business_id: int, changes: Dict[str, Any]) -> CommandResult:
        return self.catalog.update_business(business_id, changes)

    def delete_business(self, business_id: int) -> CommandResult:
        return self.catalog.delete_business(business_id)

    def approve_business(self, business_id: int) -> CommandResult:
        return self.approvals.approve_business(business_id)

    def reject_business(self, business_id: int, reason: str) -> CommandResult:
        return self.approvals.reject_business(business_id, reason)

    # ------------------------------------------------------------------
    # Coupons
    # ------------------------------------------------------------------
    def claim(self, deal_id: int, user_id: str, now: Optional[datetime] = None) -> CommandResult:
        return self.coupons.claim(deal_id, user_id, now=now)

    def redeem(
        self,
        code: str,
        redeeming_business_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> CommandResult:
        return self.redemptions.redeem(code, redeeming_business_id=redeeming_business_id, now=now)

    def redeem_by_id(self, coupon_id: int, now: Optional[datetime] = None) -> CommandResult:
        """Administrative override; not reachable from business or user routes."""
        return self.redemptions.redeem_by_id(coupon_id, now=now)

    def expire_coupons(self, now: Optional[datetime] = None) -> int:
        return self.coupons.expire_coupons(now=now)

    # ------------------------------------------------------------------
    # Reviews and notifications
    # ------------------------------------------------------------------
    def add_review(self, deal_id: int, user_id: str, user_name: str, rating, comment: Optional[str] = None) -> CommandResult:
        return self.reviews.add_review(deal_id, user_id, user_name, rating, comment)

    def mark_notification_read(self, recipient_id: str, notification_id: str) -> bool:
        return self.notifications.mark_as_read(recipient_id, notification_id)

    def mark_all_notifications_read(self, recipient_id: str) -> int:
        return self.notifications.mark_all_as_read(recipient_id)
