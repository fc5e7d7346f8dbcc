from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from descuentosya.models import Coupon, CouponStatus, utcnow
from descuentosya.observability import increment_counter, set_gauge
from descuentosya.services.base import MarketplaceService
from descuentosya.services.events import DomainEvent, EventType
from descuentosya.services.redemption_codes import RedemptionCodeGenerator, generator_for
from descuentosya.services.results import CommandResult, ErrorKind


class CouponService(MarketplaceService):
    """Claims deals on behalf of users and mints their coupons."""

    rejection_metric = "claims_rejected_total"

    def __init__(self, *args, code_generator: Optional[RedemptionCodeGenerator] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.codes = code_generator or generator_for(self.config.MARKETPLACE_TAG)

    def claim(self, deal_id: int, user_id: str, now: Optional[datetime] = None) -> CommandResult:
        """
        Claim one unit of a deal.

        Checks run in order and stop at the first failure: the deal exists,
        it is publicly visible, a unit remains, and the user holds no active
        coupon for it. Everything from the visibility check to the coupon
        insert runs under the deal's lock, and the counter increment is a
        conditional UPDATE, so the last unit can only be handed out once.
        """
        if not user_id:
            return self._reject(ErrorKind.VALIDATION_ERROR, "A user is required to claim a deal", deal_id=deal_id)
        user_id = str(user_id)

        with self.locks.hold("deal", deal_id):
            deal = self.repo.get_deal(deal_id, refresh=True)
            if not deal:
                return self._reject(ErrorKind.NOT_FOUND, "Deal not found", deal_id=deal_id)

            if not deal.is_visible(now):
                return self._reject(ErrorKind.NOT_ELIGIBLE, "Deal is not available to claim", deal_id=deal_id)

            if deal.remaining_quantity <= 0:
                return self._reject(ErrorKind.SOLD_OUT, "Deal is sold out", deal_id=deal_id)

            if self.repo.find_active_coupon(user_id, deal_id):
                return self._reject(
                    ErrorKind.ALREADY_CLAIMED,
                    "You already have an active coupon for this deal",
                    deal_id=deal_id,
                    user_id=user_id,
                )

            if not self.repo.reserve_unit(deal_id):
                self.repo.rollback()
                return self._reject(ErrorKind.SOLD_OUT, "Deal is sold out", deal_id=deal_id)

            coupon = Coupon(
                dealID=deal.dealID,
                businessID=deal.businessID,
                userID=user_id,
                redemption_code=self.codes.generate(deal.dealID, user_id),
                status=CouponStatus.ACTIVE,
                claimed_at=utcnow(),
                deal_snapshot=deal.snapshot(),
            )
            self.repo.add(coupon)
            self._commit("claim deal", deal_id=deal_id, user_id=user_id)
            remaining = deal.remaining_quantity

        increment_counter("coupons_claimed_total")
        set_gauge("deal_remaining_quantity", remaining, labels={"deal_id": str(deal_id)})
        self.logger.info(
            "Coupon %s issued for deal %s",
            coupon.couponID,
            deal_id,
            extra={"user_id": user_id, "remaining": remaining},
        )
        events = self._publish([
            DomainEvent(
                EventType.COUPON_CLAIMED,
                {
                    "user_id": user_id,
                    "coupon_id": coupon.couponID,
                    "title": coupon.deal_snapshot["title"],
                    "business_name": coupon.deal_snapshot.get("business_name"),
                },
                deal_id=deal_id,
            )
        ])
        return CommandResult.ok("Coupon claimed", coupon, events)

    def has_claimed_deal(self, user_id: str, deal_id: int) -> bool:
        return self.repo.find_active_coupon(str(user_id), deal_id) is not None

    def get_coupons_for_user(self, user_id: str, status: Optional[CouponStatus | str] = None) -> List[Coupon]:
        status_enum = CouponStatus(status) if status is not None else None
        return self.repo.coupons_for_user(str(user_id), status_enum)

    def get_coupons_for_business(self, business_id: int, status: Optional[CouponStatus | str] = None) -> List[Coupon]:
        status_enum = CouponStatus(status) if status is not None else None
        return self.repo.coupons_for_business(business_id, status_enum)

    def total_saved(self, user_id: str) -> Decimal:
        """Sum of (original - discounted) over every coupon the user has claimed."""
        total = Decimal("0")
        for coupon in self.repo.coupons_for_user(str(user_id)):
            snapshot = coupon.deal_snapshot or {}
            total += Decimal(str(snapshot.get("original_price", 0))) - Decimal(str(snapshot.get("discount_price", 0)))
        return total

    def expire_coupons(self, now: Optional[datetime] = None) -> int:
        """
        Move active coupons whose deal has passed its expiry to ``expired``.

        Nothing schedules this; callers run it when they want the stored
        status to catch up with the clock. Redemption applies the same rule
        on its own at read time.
        """
        now = now or utcnow()
        expired = 0
        for coupon in self.repo.active_coupons():
            if not coupon.is_past_deal_expiry(now):
                continue
            with self.locks.hold("coupon", coupon.couponID):
                if self.repo.transition_coupon(coupon.couponID, CouponStatus.ACTIVE, CouponStatus.EXPIRED):
                    expired += 1
                self._commit("expire coupon", coupon_id=coupon.couponID)
        if expired:
            increment_counter("coupons_expired_total", amount=expired)
        self.logger.info("Expired %d coupons", expired)
        return expired
