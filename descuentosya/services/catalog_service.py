from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from descuentosya.models import ApprovalStatus, Business, BusinessPlan, Deal, utcnow
from descuentosya.services.base import MarketplaceService
from descuentosya.services.events import DomainEvent, EventType
from descuentosya.services.proximity import (
    TravelEstimate,
    ZoneMatch,
    distance_km,
    format_distance,
    nearest_zone,
    travel_estimate,
)
from descuentosya.services.results import CommandResult, ErrorKind
from descuentosya.services.validation import InvalidInput, clean_text, to_coordinate

BUSINESS_TEXT_FIELDS = ("description", "category", "address", "phone", "contact_name", "contact_email")


@dataclass
class NearbyDeal:
    """A visible deal annotated for a caller at a known position."""

    deal: Deal
    distance_km: float
    travel: TravelEstimate
    zone: Optional[ZoneMatch]

    def to_dict(self) -> Dict[str, Any]:
        payload = self.deal.to_dict()
        payload["distance_km"] = round(self.distance_km, 3)
        payload["distance"] = format_distance(self.distance_km)
        payload["travel"] = self.travel.to_dict()
        payload["transit"] = self.zone.to_dict() if self.zone else None
        return payload


def prepare_business_fields(payload: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    if not partial or "name" in payload:
        name = clean_text(payload.get("name"), max_length=255)
        if not name:
            raise InvalidInput("Business name is required")
        fields["name"] = name
    for text_field in BUSINESS_TEXT_FIELDS:
        if text_field in payload:
            fields[text_field] = clean_text(payload.get(text_field), max_length=2000) or None
    if "logo" in payload:
        fields["logo"] = (payload.get("logo") or "").strip() or None
    if "plan" in payload:
        try:
            fields["plan"] = BusinessPlan(str(payload.get("plan")).lower())
        except ValueError:
            raise InvalidInput("plan must be one of: basico, premium, elite")
    if "lat" in payload:
        fields["lat"] = to_coordinate(payload.get("lat"), "lat", 90)
    if "lng" in payload:
        fields["lng"] = to_coordinate(payload.get("lng"), "lng", 180)
    return fields


class CatalogService(MarketplaceService):
    """Read side of the catalog plus the admin housekeeping commands."""

    rejection_metric = "catalog_commands_rejected_total"

    # ------------------------------------------------------------------
    # Deal queries
    # ------------------------------------------------------------------
    def list_visible_deals(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[Deal]:
        return self.repo.visible_deals(now=now, search=search, category=category)

    def list_pending_deals(self) -> List[Deal]:
        return self.repo.pending_deals()

    def get_deal(self, deal_id: int) -> Optional[Deal]:
        return self.repo.get_deal(deal_id)

    def list_business_deals(self, business_id: int) -> List[Deal]:
        return self.repo.deals_for_business(business_id)

    def list_nearby_deals(
        self,
        lat: float,
        lng: float,
        radius_km: Optional[float] = None,
        search: Optional[str] = None,
        category: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[NearbyDeal]:
        """Visible deals with a known location within ``radius_km``, nearest first."""
        radius = self.config.NEARBY_RADIUS_KM if radius_km is None else radius_km
        nearby: List[NearbyDeal] = []
        for deal in self.repo.visible_deals(now=now, search=search, category=category):
            if deal.lat is None or deal.lng is None:
                continue
            distance = distance_km(lat, lng, deal.lat, deal.lng)
            if distance > radius:
                continue
            nearby.append(
                NearbyDeal(
                    deal=deal,
                    distance_km=distance,
                    travel=travel_estimate(distance),
                    zone=nearest_zone(deal.lat, deal.lng),
                )
            )
        nearby.sort(key=lambda item: item.distance_km)
        return nearby

    # ------------------------------------------------------------------
    # Deal housekeeping
    # ------------------------------------------------------------------
    def toggle_featured(self, deal_id: int) -> CommandResult:
        with self.locks.hold("deal", deal_id):
            deal = self.repo.get_deal(deal_id, refresh=True)
            if not deal:
                return self._reject(ErrorKind.NOT_FOUND, "Deal not found", deal_id=deal_id)
            deal.featured = not deal.featured
            self._commit("toggle featured", deal_id=deal_id)

        self.logger.info("Deal %s featured=%s", deal_id, deal.featured)
        return CommandResult.ok("Deal featured" if deal.featured else "Deal unfeatured", deal)

    def delete_deal(self, deal_id: int, owner_business_id: Optional[int] = None) -> CommandResult:
        """Soft delete. Coupons already issued stay redeemable."""
        with self.locks.hold("deal", deal_id):
            deal = self.repo.get_deal(deal_id, refresh=True)
            if not deal:
                return self._reject(ErrorKind.NOT_FOUND, "Deal not found", deal_id=deal_id)
            if owner_business_id is not None and deal.businessID != owner_business_id:
                return self._reject(ErrorKind.WRONG_BUSINESS, "Deal belongs to another business", deal_id=deal_id)
            deal.deleted = True
            deal.active = False
            self._commit("delete deal", deal_id=deal_id)

        self.logger.info("Deal %s deleted", deal_id)
        return CommandResult.ok("Deal deleted", deal)

    # ------------------------------------------------------------------
    # Businesses
    # ------------------------------------------------------------------
    def get_business(self, business_id: int) -> Optional[Business]:
        return self.repo.get_business(business_id)

    def list_businesses(self, status: Optional[ApprovalStatus | str] = None) -> List[Business]:
        status_enum = ApprovalStatus(status) if status is not None else None
        return self.repo.list_businesses(status_enum)

    def register_business(self, **payload: Any) -> CommandResult:
        """Self-service sign-up; the business waits in ``pending`` until reviewed."""
        return self._create_business(payload, ApprovalStatus.PENDING)

    def create_business(self, **payload: Any) -> CommandResult:
        """Admin-created business, approved on creation."""
        return self._create_business(payload, ApprovalStatus.APPROVED)

    def update_business(self, business_id: int, changes: Dict[str, Any]) -> CommandResult:
        business = self.repo.get_business(business_id)
        if not business:
            return self._reject(ErrorKind.NOT_FOUND, "Business not found", business_id=business_id)
        try:
            fields = prepare_business_fields(changes, partial=True)
        except InvalidInput as exc:
            return self._reject(ErrorKind.VALIDATION_ERROR, str(exc), business_id=business_id)

        for name, value in fields.items():
            setattr(business, name, value)
        if "active" in changes:
            business.active = bool(changes["active"])
        self._commit("update business", business_id=business_id)

        self.logger.info("Business %s updated", business_id, extra={"fields": sorted(fields)})
        return CommandResult.ok("Business updated", business)

    def delete_business(self, business_id: int) -> CommandResult:
        """Soft delete; every deal of the business leaves circulation with it."""
        business = self.repo.get_business(business_id)
        if not business:
            return self._reject(ErrorKind.NOT_FOUND, "Business not found", business_id=business_id)

        business.deleted = True
        business.active = False
        deactivated = self.repo.deactivate_business_deals(business_id)
        self._commit("delete business", business_id=business_id)

        self.logger.info("Business %s deleted", business_id, extra={"deactivated_deals": deactivated})
        return CommandResult.ok("Business deleted", business)

    def _create_business(self, payload: Dict[str, Any], status: ApprovalStatus) -> CommandResult:
        try:
            fields = prepare_business_fields(payload)
        except InvalidInput as exc:
            return self._reject(ErrorKind.VALIDATION_ERROR, str(exc))

        business = Business(
            approval_status=status,
            active=True,
            deleted=False,
            plan=fields.pop("plan", BusinessPlan.BASICO),
            created_at=utcnow(),
            **fields,
        )
        self.repo.add(business)
        self._commit("create business", name=business.name)

        self.logger.info(
            "Business %s created",
            business.businessID,
            extra={"approval_status": status.value},
        )
        events = []
        if status == ApprovalStatus.PENDING:
            events = self._publish([
                DomainEvent(
                    EventType.BUSINESS_REGISTERED,
                    {"name": business.name, "business_id": business.businessID},
                )
            ])
        return CommandResult.ok("Business created", business, events)
