from __future__ import annotations

from datetime import datetime
from typing import Optional

from descuentosya.models import Coupon, CouponStatus, as_utc, utcnow
from descuentosya.observability import increment_counter
from descuentosya.services.base import MarketplaceService
from descuentosya.services.events import DomainEvent, EventType
from descuentosya.services.redemption_codes import generator_for
from descuentosya.services.results import CommandResult, ErrorKind


class RedemptionService(MarketplaceService):
    """
    Validates coupons presented at a business and consumes them.

    ``redeem`` is the scanner/manual-entry flow and can be scoped to the
    redeeming business. ``redeem_by_id`` is the administrative override and
    skips that scope; it must only be reachable from trusted admin tooling.
    """

    rejection_metric = "redemptions_rejected_total"

    def redeem(
        self,
        code: str,
        redeeming_business_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> CommandResult:
        codes = generator_for(self.config.MARKETPLACE_TAG)
        normalized = codes.normalize(code)
        if not codes.looks_valid(normalized):
            return self._reject(ErrorKind.NOT_FOUND, "Coupon code not recognized")

        coupon = self.repo.get_coupon_by_code(normalized)
        if not coupon:
            return self._reject(ErrorKind.NOT_FOUND, "Coupon code not recognized")

        return self._consume(
            coupon.couponID,
            redeeming_business_id=redeeming_business_id,
            channel="scanner" if redeeming_business_id is not None else "code",
            now=now,
        )

    def redeem_by_id(self, coupon_id: int, now: Optional[datetime] = None) -> CommandResult:
        if self.repo.get_coupon(coupon_id) is None:
            return self._reject(ErrorKind.NOT_FOUND, "Coupon not found", coupon_id=coupon_id)
        return self._consume(coupon_id, redeeming_business_id=None, channel="admin", now=now)

    def _consume(
        self,
        coupon_id: int,
        redeeming_business_id: Optional[int],
        channel: str,
        now: Optional[datetime] = None,
    ) -> CommandResult:
        now = now or utcnow()
        with self.locks.hold("coupon", coupon_id):
            coupon = self.repo.get_coupon(coupon_id, refresh=True)
            if coupon is None:
                return self._reject(ErrorKind.NOT_FOUND, "Coupon not found", coupon_id=coupon_id)

            status = CouponStatus(coupon.status)
            if status == CouponStatus.USED:
                return self._already_used(coupon)

            if status == CouponStatus.EXPIRED:
                return self._reject(ErrorKind.EXPIRED, "This coupon has expired", value=coupon, coupon_id=coupon_id)

            if coupon.is_past_deal_expiry(now):
                # Expiry is evaluated at read time; persist what the clock already decided
                self.repo.transition_coupon(coupon_id, CouponStatus.ACTIVE, CouponStatus.EXPIRED)
                self._commit("expire coupon", coupon_id=coupon_id)
                return self._reject(ErrorKind.EXPIRED, "This coupon has expired", value=coupon, coupon_id=coupon_id)

            if redeeming_business_id is not None and coupon.businessID != redeeming_business_id:
                increment_counter("redemption_wrong_business_total")
                return self._reject(
                    ErrorKind.WRONG_BUSINESS,
                    "This coupon does not belong to your business",
                    value=coupon,
                    coupon_id=coupon_id,
                )

            used_at = now
            if not self.repo.transition_coupon(coupon_id, CouponStatus.ACTIVE, CouponStatus.USED, used_at=used_at):
                # Another writer outside this process moved it first
                self.repo.rollback()
                coupon = self.repo.get_coupon(coupon_id, refresh=True)
                if CouponStatus(coupon.status) == CouponStatus.USED:
                    return self._already_used(coupon)
                return self._reject(ErrorKind.EXPIRED, "This coupon has expired", value=coupon, coupon_id=coupon_id)

            self._commit("redeem coupon", coupon_id=coupon_id)
            coupon = self.repo.get_coupon(coupon_id, refresh=True)

        increment_counter("coupons_redeemed_total", labels={"channel": channel})
        self.logger.info(
            "Coupon %s redeemed",
            coupon_id,
            extra={"deal_id": coupon.dealID, "business_id": coupon.businessID, "channel": channel},
        )
        events = self._publish([
            DomainEvent(
                EventType.COUPON_REDEEMED,
                {
                    "coupon_id": coupon_id,
                    "user_id": coupon.userID,
                    "business_id": coupon.businessID,
                    "channel": channel,
                },
                deal_id=coupon.dealID,
            )
        ])
        return CommandResult.ok("Coupon redeemed", coupon, events)

    def _already_used(self, coupon: Coupon) -> CommandResult:
        used_at = as_utc(coupon.used_at)
        used_label = used_at.isoformat() if used_at else None
        return self._reject(
            ErrorKind.ALREADY_USED,
            f"This coupon was already used on {used_at:%Y-%m-%d}" if used_at else "This coupon was already used",
            value=coupon,
            coupon_id=coupon.couponID,
            used_at=used_label,
        )
