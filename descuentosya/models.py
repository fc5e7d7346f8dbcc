# descuentosya/models.py
from enum import Enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    ForeignKey,
    Boolean,
    Float,
    Text,
    JSON,
    Enum as SAEnum,
)
from sqlalchemy.orm import relationship

# Use a single, shared Base for all models
from descuentosya.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CouponStatus(str, Enum):
    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"


class BusinessPlan(str, Enum):
    BASICO = "basico"
    PREMIUM = "premium"
    ELITE = "elite"


class Business(Base):
    __tablename__ = 'Business'

    businessID = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    logo = Column(String(512))
    category = Column(String(120))
    address = Column(String(255))
    lat = Column(Float)
    lng = Column(Float)
    phone = Column(String(50))
    contact_name = Column(String(255))
    contact_email = Column(String(255))
    plan = Column(
        SAEnum(BusinessPlan, name="business_plan", native_enum=False, validate_strings=True),
        default=BusinessPlan.BASICO,
        nullable=False,
    )
    active = Column(Boolean, default=True, nullable=False)
    approval_status = Column(
        SAEnum(ApprovalStatus, name="business_approval_status", native_enum=False, validate_strings=True),
        default=ApprovalStatus.PENDING,
        nullable=False,
    )
    rejection_reason = Column(Text)
    deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    deals = relationship("Deal", back_populates="business")

    @property
    def is_publishable(self) -> bool:
        return (
            self.approval_status == ApprovalStatus.APPROVED
            and bool(self.active)
            and not self.deleted
        )

    @property
    def notification_channel(self) -> str:
        return f"business:{self.businessID}"

    def to_dict(self) -> dict:
        return {
            "id": self.businessID,
            "name": self.name,
            "description": self.description,
            "logo": self.logo,
            "category": self.category,
            "address": self.address,
            "lat": self.lat,
            "lng": self.lng,
            "phone": self.phone,
            "contact_name": self.contact_name,
            "contact_email": self.contact_email,
            "plan": BusinessPlan(self.plan).value,
            "active": bool(self.active),
            "approval_status": ApprovalStatus(self.approval_status).value,
            "rejection_reason": self.rejection_reason,
        }


class Deal(Base):
    __tablename__ = 'Deal'

    dealID = Column(Integer, primary_key=True, autoincrement=True)
    businessID = Column(Integer, ForeignKey('Business.businessID'), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, default="")
    details = Column(Text, default="")
    image = Column(String(512))
    category = Column(String(120))
    original_price = Column(Numeric(10, 2), nullable=False)
    discount_percent = Column(Numeric(5, 2), nullable=False)
    discount_price = Column(Numeric(10, 2), nullable=False)
    available_quantity = Column(Integer, nullable=False)
    _claimed_quantity = Column('claimed_quantity', Integer, default=0, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    approval_status = Column(
        SAEnum(ApprovalStatus, name="deal_approval_status", native_enum=False, validate_strings=True),
        default=ApprovalStatus.PENDING,
        nullable=False,
    )
    rejection_reason = Column(Text)
    reviewed_at = Column(DateTime(timezone=True))
    active = Column(Boolean, default=False, nullable=False)
    paused = Column(Boolean, default=False, nullable=False)
    featured = Column(Boolean, default=False, nullable=False)
    deleted = Column(Boolean, default=False, nullable=False)
    address = Column(String(255))
    lat = Column(Float)
    lng = Column(Float)
    terms = Column(JSON, default=list)

    business = relationship("Business", back_populates="deals")
    coupons = relationship("Coupon", back_populates="deal")
    reviews = relationship("Review", back_populates="deal")

    _VALID_TRANSITIONS = {
        ApprovalStatus.PENDING: {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED},
        # Re-editing a rejected deal puts it back in the review queue
        ApprovalStatus.REJECTED: {ApprovalStatus.PENDING},
        ApprovalStatus.APPROVED: set(),
    }

    @property
    def claimed_quantity(self) -> int:
        # Written only through CatalogRepository.reserve_unit
        return self._claimed_quantity or 0

    @property
    def remaining_quantity(self) -> int:
        return max(0, self.available_quantity - self.claimed_quantity)

    def can_transition(self, new_status: ApprovalStatus) -> bool:
        allowed = self._VALID_TRANSITIONS.get(ApprovalStatus(self.approval_status), set())
        return new_status in allowed

    def transition_to(self, new_status: ApprovalStatus) -> None:
        if not self.can_transition(new_status):
            raise ValueError(f"Invalid deal approval transition from {self.approval_status} to {new_status}")
        self.approval_status = new_status

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return now >= as_utc(self.expires_at)

    def is_visible(self, now: datetime | None = None) -> bool:
        business = self.business
        return (
            not self.deleted
            and self.approval_status == ApprovalStatus.APPROVED
            and bool(self.active)
            and not self.paused
            and not self.is_expired(now)
            and business is not None
            and business.is_publishable
        )

    def snapshot(self) -> dict:
        """Denormalized copy attached to coupons at claim time."""
        return {
            "id": self.dealID,
            "business_id": self.businessID,
            "business_name": self.business.name if self.business else None,
            "title": self.title,
            "description": self.description,
            "original_price": float(self.original_price),
            "discount_price": float(self.discount_price),
            "discount_percent": float(self.discount_percent),
            "expires_at": as_utc(self.expires_at).isoformat(),
            "address": self.address,
            "terms": list(self.terms or []),
        }

    def to_dict(self) -> dict:
        business = self.business
        return {
            "id": self.dealID,
            "business_id": self.businessID,
            "business_name": business.name if business else None,
            "business_logo": business.logo if business else None,
            "title": self.title,
            "description": self.description,
            "details": self.details,
            "image": self.image,
            "category": self.category,
            "original_price": float(self.original_price),
            "discount_price": float(self.discount_price),
            "discount_percent": float(self.discount_percent),
            "available_quantity": self.available_quantity,
            "claimed_quantity": self.claimed_quantity,
            "remaining_quantity": self.remaining_quantity,
            "expires_at": as_utc(self.expires_at).isoformat(),
            "created_at": as_utc(self.created_at).isoformat() if self.created_at else None,
            "approval_status": ApprovalStatus(self.approval_status).value,
            "rejection_reason": self.rejection_reason,
            "active": bool(self.active),
            "paused": bool(self.paused),
            "featured": bool(self.featured),
            "address": self.address,
            "lat": self.lat,
            "lng": self.lng,
            "terms": list(self.terms or []),
        }


class Coupon(Base):
    __tablename__ = 'Coupon'

    couponID = Column(Integer, primary_key=True, autoincrement=True)
    dealID = Column(Integer, ForeignKey('Deal.dealID'), nullable=False)
    # Denormalized so business scoping survives later deal edits or deletion
    businessID = Column(Integer, nullable=False)
    userID = Column(String(64), nullable=False)
    redemption_code = Column(String(120), unique=True, nullable=False)
    status = Column(
        SAEnum(CouponStatus, name="coupon_status", native_enum=False, validate_strings=True),
        default=CouponStatus.ACTIVE,
        nullable=False,
    )
    claimed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    used_at = Column(DateTime(timezone=True))
    deal_snapshot = Column(JSON, nullable=False)

    deal = relationship("Deal", back_populates="coupons")

    _VALID_TRANSITIONS = {
        CouponStatus.ACTIVE: {CouponStatus.USED, CouponStatus.EXPIRED},
        CouponStatus.USED: set(),
        CouponStatus.EXPIRED: set(),
    }

    def can_transition(self, new_status: CouponStatus) -> bool:
        allowed = self._VALID_TRANSITIONS.get(CouponStatus(self.status), set())
        return new_status in allowed

    @property
    def snapshot_expires_at(self) -> datetime | None:
        raw = (self.deal_snapshot or {}).get("expires_at")
        if not raw:
            return None
        return as_utc(datetime.fromisoformat(raw))

    def is_past_deal_expiry(self, now: datetime | None = None) -> bool:
        expires_at = self.snapshot_expires_at
        if expires_at is None:
            return False
        return (now or utcnow()) >= expires_at

    def to_dict(self) -> dict:
        return {
            "id": self.couponID,
            "deal_id": self.dealID,
            "business_id": self.businessID,
            "user_id": self.userID,
            "redemption_code": self.redemption_code,
            "status": CouponStatus(self.status).value,
            "claimed_at": as_utc(self.claimed_at).isoformat(),
            "used_at": as_utc(self.used_at).isoformat() if self.used_at else None,
            "deal": dict(self.deal_snapshot or {}),
        }


class Review(Base):
    __tablename__ = 'Review'

    reviewID = Column(Integer, primary_key=True, autoincrement=True)
    dealID = Column(Integer, ForeignKey('Deal.dealID'), nullable=False)
    userID = Column(String(64), nullable=False)
    user_name = Column(String(255), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, default="")
    helpful = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    deal = relationship("Deal", back_populates="reviews")

    def to_dict(self) -> dict:
        return {
            "id": self.reviewID,
            "deal_id": self.dealID,
            "user_id": self.userID,
            "user_name": self.user_name,
            "rating": self.rating,
            "comment": self.comment,
            "helpful": self.helpful,
            "created_at": as_utc(self.created_at).isoformat() if self.created_at else None,
        }
