"""
Dashboard statistics for businesses and the platform.

Revenue counts redeemed coupons only, at the discounted price captured in
each coupon's deal snapshot. "Validated today" uses the marketplace's
local calendar day (``Config.DEFAULT_TIMEZONE``).
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from descuentosya.models import ApprovalStatus, CouponStatus, as_utc, utcnow
from descuentosya.services.base import MarketplaceService


class StatsService(MarketplaceService):
    def business_stats(self, business_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        local_zone = ZoneInfo(self.config.DEFAULT_TIMEZONE)
        today = as_utc(now).astimezone(local_zone).date()

        deals = self.repo.deals_for_business(business_id)
        coupons = self.repo.coupons_for_business(business_id)

        validated_today = 0
        active_coupons = 0
        revenue = Decimal("0")
        for coupon in coupons:
            status = CouponStatus(coupon.status)
            if status == CouponStatus.ACTIVE:
                active_coupons += 1
            elif status == CouponStatus.USED:
                revenue += Decimal(str((coupon.deal_snapshot or {}).get("discount_price", 0)))
                used_at = as_utc(coupon.used_at)
                if used_at is not None and used_at.astimezone(local_zone).date() == today:
                    validated_today += 1

        return {
            "business_id": business_id,
            "total_deals": len(deals),
            "total_claimed": len(coupons),
            "validated_today": validated_today,
            "active_coupons": active_coupons,
            "revenue": revenue,
        }

    def platform_stats(self) -> Dict[str, Any]:
        return {
            "total_businesses": len(self.repo.list_businesses()),
            "approved_deals": self.repo.count_deals(ApprovalStatus.APPROVED),
            "pending_deals": self.repo.count_deals(ApprovalStatus.PENDING),
            "total_coupons": self.repo.count_coupons(),
            "total_users": self.repo.count_claimants(),
        }
