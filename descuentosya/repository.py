"""
Catalog store access.

Every query and conditional write the services need goes through
CatalogRepository, so business rules never touch the Session directly.
The two conditional UPDATEs (inventory reservation and coupon state
change) are the storage-level half of the claim and redemption critical
sections.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, desc, func, or_, select, update
from sqlalchemy.orm import Session, joinedload

from descuentosya.models import (
    ApprovalStatus,
    Business,
    Coupon,
    CouponStatus,
    Deal,
    Review,
    utcnow,
)


class CatalogRepository:
    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------
    def add(self, entity) -> None:
        self.db.add(entity)

    def flush(self) -> None:
        self.db.flush()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # ------------------------------------------------------------------
    # Businesses
    # ------------------------------------------------------------------
    def get_business(self, business_id: int, include_deleted: bool = False) -> Optional[Business]:
        business = self.db.get(Business, business_id)
        if business is None or (business.deleted and not include_deleted):
            return None
        return business

    def list_businesses(self, status: Optional[ApprovalStatus] = None) -> List[Business]:
        query = self.db.query(Business).filter(Business.deleted.is_(False))
        if status is not None:
            query = query.filter(Business.approval_status == status)
        return query.order_by(Business.name).all()

    # ------------------------------------------------------------------
    # Deals
    # ------------------------------------------------------------------
    def get_deal(self, deal_id: int, refresh: bool = False) -> Optional[Deal]:
        """Return a non-deleted deal; ``refresh`` bypasses the identity map."""
        stmt = select(Deal).where(Deal.dealID == deal_id, Deal.deleted.is_(False))
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        return self.db.execute(stmt).scalars().first()

    def visible_deals(
        self,
        now: Optional[datetime] = None,
        search: Optional[str] = None,
        category: Optional[str] = None,
    ) -> List[Deal]:
        now = now or utcnow()
        query = (
            self.db.query(Deal)
            .join(Business, Deal.businessID == Business.businessID)
            .options(joinedload(Deal.business))
            .filter(
                Deal.deleted.is_(False),
                Deal.approval_status == ApprovalStatus.APPROVED,
                Deal.active.is_(True),
                Deal.paused.is_(False),
                Deal.expires_at > now,
                Business.deleted.is_(False),
                Business.active.is_(True),
                Business.approval_status == ApprovalStatus.APPROVED,
            )
        )
        if category:
            query = query.filter(Deal.category == category)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    Deal.title.ilike(pattern),
                    Deal.description.ilike(pattern),
                    Business.name.ilike(pattern),
                )
            )
        return query.order_by(desc(Deal.featured), desc(Deal.created_at), desc(Deal.dealID)).all()

    def pending_deals(self) -> List[Deal]:
        return (
            self.db.query(Deal)
            .options(joinedload(Deal.business))
            .filter(Deal.deleted.is_(False), Deal.approval_status == ApprovalStatus.PENDING)
            .order_by(Deal.created_at, Deal.dealID)
            .all()
        )

    def deals_for_business(self, business_id: int) -> List[Deal]:
        return (
            self.db.query(Deal)
            .filter(Deal.businessID == business_id, Deal.deleted.is_(False))
            .order_by(desc(Deal.created_at), desc(Deal.dealID))
            .all()
        )

    def count_deals(self, status: Optional[ApprovalStatus] = None) -> int:
        query = self.db.query(func.count(Deal.dealID)).filter(Deal.deleted.is_(False))
        if status is not None:
            query = query.filter(Deal.approval_status == status)
        return query.scalar() or 0

    def reserve_unit(self, deal_id: int) -> bool:
        """
        Increment claimed_quantity only while capacity remains.

        Returns False when no unit was left; the row is untouched then.
        """
        result = self.db.execute(
            update(Deal)
            .where(
                Deal.dealID == deal_id,
                Deal._claimed_quantity < Deal.available_quantity,
            )
            .values({Deal._claimed_quantity: Deal._claimed_quantity + 1})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Coupons
    # ------------------------------------------------------------------
    def get_coupon(self, coupon_id: int, refresh: bool = False) -> Optional[Coupon]:
        stmt = select(Coupon).where(Coupon.couponID == coupon_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        return self.db.execute(stmt).scalars().first()

    def get_coupon_by_code(self, redemption_code: str) -> Optional[Coupon]:
        stmt = select(Coupon).where(Coupon.redemption_code == redemption_code)
        return self.db.execute(stmt).scalars().first()

    def find_active_coupon(self, user_id: str, deal_id: int) -> Optional[Coupon]:
        return (
            self.db.query(Coupon)
            .filter(
                Coupon.userID == user_id,
                Coupon.dealID == deal_id,
                Coupon.status == CouponStatus.ACTIVE,
            )
            .first()
        )

    def transition_coupon(
        self,
        coupon_id: int,
        from_status: CouponStatus,
        to_status: CouponStatus,
        used_at: Optional[datetime] = None,
    ) -> bool:
        """Compare-and-set on the coupon status; False when the status moved meanwhile."""
        values = {"status": to_status}
        if used_at is not None:
            values["used_at"] = used_at
        result = self.db.execute(
            update(Coupon)
            .where(Coupon.couponID == coupon_id, Coupon.status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def coupons_for_user(self, user_id: str, status: Optional[CouponStatus] = None) -> List[Coupon]:
        query = self.db.query(Coupon).filter(Coupon.userID == user_id)
        if status is not None:
            query = query.filter(Coupon.status == status)
        return query.order_by(desc(Coupon.claimed_at), desc(Coupon.couponID)).all()

    def coupons_for_business(self, business_id: int, status: Optional[CouponStatus] = None) -> List[Coupon]:
        query = self.db.query(Coupon).filter(Coupon.businessID == business_id)
        if status is not None:
            query = query.filter(Coupon.status == status)
        return query.order_by(desc(Coupon.claimed_at), desc(Coupon.couponID)).all()

    def active_coupons(self) -> List[Coupon]:
        return self.db.query(Coupon).filter(Coupon.status == CouponStatus.ACTIVE).all()

    def count_coupons(self) -> int:
        return self.db.query(func.count(Coupon.couponID)).scalar() or 0

    def count_claimants(self) -> int:
        return self.db.query(func.count(func.distinct(Coupon.userID))).scalar() or 0

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------
    def reviews_for_deal(self, deal_id: int) -> List[Review]:
        return (
            self.db.query(Review)
            .filter(Review.dealID == deal_id)
            .order_by(desc(Review.created_at), desc(Review.reviewID))
            .all()
        )

    def rating_summary(self, deal_id: int) -> tuple[int, Optional[float]]:
        count, average = (
            self.db.query(func.count(Review.reviewID), func.avg(Review.rating))
            .filter(Review.dealID == deal_id)
            .one()
        )
        return count or 0, (float(average) if average is not None else None)

    def deactivate_business_deals(self, business_id: int) -> int:
        result = self.db.execute(
            update(Deal)
            .where(and_(Deal.businessID == business_id, Deal.active.is_(True)))
            .values(active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
