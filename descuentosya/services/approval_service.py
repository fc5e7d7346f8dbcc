from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from descuentosya.models import ApprovalStatus, Business, Deal, utcnow
from descuentosya.observability import increment_counter
from descuentosya.services.base import MarketplaceService
from descuentosya.services.events import DomainEvent, EventType
from descuentosya.services.results import CommandResult, ErrorKind
from descuentosya.services.validation import (
    InvalidInput,
    clean_terms,
    clean_text,
    compute_discount_price,
    parse_instant,
    to_coordinate,
    to_decimal,
    to_positive_int,
)

# Fields a business may change on its own deal; quantity and flags are admin-only
OWNER_EDITABLE_FIELDS = frozenset({
    "title",
    "description",
    "details",
    "image",
    "category",
    "original_price",
    "discount_percent",
    "expires_at",
    "address",
    "lat",
    "lng",
    "terms",
})
ADMIN_EDITABLE_FIELDS = OWNER_EDITABLE_FIELDS | {"available_quantity"}


def prepare_deal_fields(
    payload: Dict[str, Any],
    config,
    now: Optional[datetime] = None,
    partial: bool = False,
) -> Dict[str, Any]:
    """
    Validate and normalize deal input.

    With ``partial`` only the keys present in ``payload`` are checked, which
    is how edits are validated. Raises InvalidInput on the first bad field.
    """
    now = now or utcnow()
    fields: Dict[str, Any] = {}

    if not partial or "title" in payload:
        title = clean_text(payload.get("title"), max_length=255)
        if not title:
            raise InvalidInput("Title is required")
        fields["title"] = title

    if not partial or "original_price" in payload:
        original_price = to_decimal(payload.get("original_price"), "original_price")
        if original_price <= 0:
            raise InvalidInput("Original price must be greater than zero")
        fields["original_price"] = original_price

    if not partial or "discount_percent" in payload:
        discount_percent = to_decimal(payload.get("discount_percent"), "discount_percent")
        if not (0 < discount_percent < 100):
            raise InvalidInput("Discount must be between 0 and 100 percent (exclusive)")
        fields["discount_percent"] = discount_percent

    if not partial or "available_quantity" in payload:
        fields["available_quantity"] = to_positive_int(payload.get("available_quantity"), "available_quantity")

    if not partial or "expires_at" in payload:
        expires_at = parse_instant(payload.get("expires_at"))
        if expires_at <= now:
            raise InvalidInput("Expiry must be in the future")
        fields["expires_at"] = expires_at

    for text_field in ("description", "details", "category", "address"):
        if text_field in payload:
            fields[text_field] = clean_text(payload.get(text_field), max_length=2000) or None
    if "image" in payload:
        fields["image"] = (payload.get("image") or "").strip() or None
    if "terms" in payload:
        fields["terms"] = clean_terms(payload.get("terms"), config.MAX_TERMS_PER_DEAL)
    if "lat" in payload:
        fields["lat"] = to_coordinate(payload.get("lat"), "lat", 90)
    if "lng" in payload:
        fields["lng"] = to_coordinate(payload.get("lng"), "lng", 180)

    return fields


class ApprovalService(MarketplaceService):
    """pending -> approved | rejected workflow for deals and businesses."""

    rejection_metric = "approval_commands_rejected_total"

    # ------------------------------------------------------------------
    # Business-side submissions
    # ------------------------------------------------------------------
    def submit_deal(self, business_id: int, now: Optional[datetime] = None, **payload: Any) -> CommandResult:
        """
        Create a deal in ``pending`` for admin review.

        Required payload keys: title, original_price, discount_percent,
        available_quantity, expires_at. Optional: description, details,
        image, category, address, lat, lng, terms. Location defaults to the
        business's own address and coordinates.
        """
        business = self.repo.get_business(business_id)
        if not business:
            return self._reject(ErrorKind.NOT_FOUND, "Business not found", business_id=business_id)
        if business.approval_status == ApprovalStatus.REJECTED or not business.active:
            return self._reject(
                ErrorKind.NOT_ELIGIBLE,
                "Business is not allowed to publish deals",
                business_id=business_id,
            )

        try:
            fields = prepare_deal_fields(payload, self.config, now=now)
        except InvalidInput as exc:
            return self._reject(ErrorKind.VALIDATION_ERROR, str(exc), business_id=business_id)

        deal = self._new_deal(business, fields, ApprovalStatus.PENDING)
        self.repo.add(deal)
        self._commit("submit deal", business_id=business_id)

        increment_counter("deals_submitted_total")
        self.logger.info(
            "Deal %s submitted by business %s",
            deal.dealID,
            business_id,
            extra={"discount_price": str(deal.discount_price)},
        )
        events = self._publish([
            DomainEvent(
                EventType.DEAL_SUBMITTED,
                {"title": deal.title, "business_id": business_id, "business_name": business.name},
                deal_id=deal.dealID,
            )
        ])
        return CommandResult.ok("Deal submitted for approval", deal, events)

    def create_approved_deal(self, business_id: int, now: Optional[datetime] = None, **payload: Any) -> CommandResult:
        """Admin-authored deal: skips the review queue and is visible immediately."""
        business = self.repo.get_business(business_id)
        if not business:
            return self._reject(ErrorKind.NOT_FOUND, "Business not found", business_id=business_id)
        if business.approval_status == ApprovalStatus.REJECTED:
            return self._reject(
                ErrorKind.NOT_ELIGIBLE,
                "Business is not allowed to publish deals",
                business_id=business_id,
            )

        featured = bool(payload.pop("featured", False))
        try:
            fields = prepare_deal_fields(payload, self.config, now=now)
        except InvalidInput as exc:
            return self._reject(ErrorKind.VALIDATION_ERROR, str(exc), business_id=business_id)

        deal = self._new_deal(business, fields, ApprovalStatus.APPROVED)
        deal.active = True
        deal.featured = featured
        deal.reviewed_at = utcnow()
        self.repo.add(deal)
        self._commit("create deal", business_id=business_id)

        increment_counter("deal_approval_transitions_total", labels={"status": ApprovalStatus.APPROVED.value})
        self.logger.info("Deal %s created as approved for business %s", deal.dealID, business_id)
        return CommandResult.ok("Deal created", deal)

    def update_deal(
        self,
        deal_id: int,
        changes: Dict[str, Any],
        owner_business_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> CommandResult:
        """
        Edit a deal.

        ``owner_business_id`` marks an edit by the owning business: only
        OWNER_EDITABLE_FIELDS are accepted, and a rejected deal re-enters the
        review queue. Without it the edit is an admin edit, which may also
        change available_quantity (never below what was already claimed).
        """
        allowed = OWNER_EDITABLE_FIELDS if owner_business_id is not None else ADMIN_EDITABLE_FIELDS
        unknown = sorted(set(changes) - allowed)
        if unknown:
            return self._reject(
                ErrorKind.VALIDATION_ERROR,
                f"Fields cannot be edited: {', '.join(unknown)}",
                deal_id=deal_id,
            )

        try:
            fields = prepare_deal_fields(changes, self.config, now=now, partial=True)
        except InvalidInput as exc:
            return self._reject(ErrorKind.VALIDATION_ERROR, str(exc), deal_id=deal_id)

        events = []
        with self.locks.hold("deal", deal_id):
            deal = self.repo.get_deal(deal_id, refresh=True)
            if not deal:
                return self._reject(ErrorKind.NOT_FOUND, "Deal not found", deal_id=deal_id)
            if owner_business_id is not None and deal.businessID != owner_business_id:
                return self._reject(
                    ErrorKind.WRONG_BUSINESS,
                    "Deal belongs to another business",
                    deal_id=deal_id,
                )
            new_quantity = fields.get("available_quantity")
            if new_quantity is not None and new_quantity < deal.claimed_quantity:
                return self._reject(
                    ErrorKind.VALIDATION_ERROR,
                    f"Quantity cannot drop below the {deal.claimed_quantity} coupons already claimed",
                    deal_id=deal_id,
                )

            for name, value in fields.items():
                setattr(deal, name, value)
            deal.discount_price = compute_discount_price(
                to_decimal(deal.original_price, "original_price"),
                to_decimal(deal.discount_percent, "discount_percent"),
            )

            resubmitted = (
                owner_business_id is not None
                and deal.approval_status == ApprovalStatus.REJECTED
            )
            if resubmitted:
                deal.transition_to(ApprovalStatus.PENDING)
                deal.rejection_reason = None
                deal.reviewed_at = None
                events.append(
                    DomainEvent(
                        EventType.DEAL_RESUBMITTED,
                        {"title": deal.title, "business_id": deal.businessID},
                        deal_id=deal.dealID,
                    )
                )
            self._commit("update deal", deal_id=deal_id)

        self.logger.info(
            "Deal %s updated",
            deal_id,
            extra={"fields": sorted(fields), "resubmitted": resubmitted},
        )
        self._publish(events)
        message = "Deal resubmitted for approval" if resubmitted else "Deal updated"
        return CommandResult.ok(message, deal, events)

    # ------------------------------------------------------------------
    # Admin review
    # ------------------------------------------------------------------
    def approve_deal(self, deal_id: int) -> CommandResult:
        with self.locks.hold("deal", deal_id):
            deal = self.repo.get_deal(deal_id, refresh=True)
            if not deal:
                return self._reject(ErrorKind.NOT_FOUND, "Deal not found", deal_id=deal_id)
            if not deal.can_transition(ApprovalStatus.APPROVED):
                return self._reject(
                    ErrorKind.INVALID_TRANSITION,
                    f"Cannot approve deal in status {ApprovalStatus(deal.approval_status).value}",
                    deal_id=deal_id,
                )

            deal.transition_to(ApprovalStatus.APPROVED)
            deal.active = True
            deal.reviewed_at = utcnow()
            self._commit("approve deal", deal_id=deal_id)

        increment_counter("deal_approval_transitions_total", labels={"status": ApprovalStatus.APPROVED.value})
        self.logger.info("Deal %s approved", deal_id)
        events = self._publish([
            DomainEvent(
                EventType.DEAL_APPROVED,
                {"title": deal.title, "business_channel": f"business:{deal.businessID}"},
                deal_id=deal.dealID,
            )
        ])
        return CommandResult.ok("Deal approved", deal, events)

    def reject_deal(self, deal_id: int, reason: str) -> CommandResult:
        cleaned_reason = clean_text(reason)
        if not cleaned_reason:
            return self._reject(ErrorKind.VALIDATION_ERROR, "A rejection reason is required", deal_id=deal_id)

        with self.locks.hold("deal", deal_id):
            deal = self.repo.get_deal(deal_id, refresh=True)
            if not deal:
                return self._reject(ErrorKind.NOT_FOUND, "Deal not found", deal_id=deal_id)
            if not deal.can_transition(ApprovalStatus.REJECTED):
                return self._reject(
                    ErrorKind.INVALID_TRANSITION,
                    f"Cannot reject deal in status {ApprovalStatus(deal.approval_status).value}",
                    deal_id=deal_id,
                )

            deal.transition_to(ApprovalStatus.REJECTED)
            deal.active = False
            deal.rejection_reason = cleaned_reason
            deal.reviewed_at = utcnow()
            self._commit("reject deal", deal_id=deal_id)

        increment_counter("deal_approval_transitions_total", labels={"status": ApprovalStatus.REJECTED.value})
        self.logger.info("Deal %s rejected", deal_id, extra={"reason": cleaned_reason})
        events = self._publish([
            DomainEvent(
                EventType.DEAL_REJECTED,
                {
                    "title": deal.title,
                    "business_channel": f"business:{deal.businessID}",
                    "reason": cleaned_reason,
                },
                deal_id=deal.dealID,
            )
        ])
        return CommandResult.ok("Deal rejected", deal, events)

    def toggle_pause(self, deal_id: int, owner_business_id: Optional[int] = None) -> CommandResult:
        with self.locks.hold("deal", deal_id):
            deal = self.repo.get_deal(deal_id, refresh=True)
            if not deal:
                return self._reject(ErrorKind.NOT_FOUND, "Deal not found", deal_id=deal_id)
            if owner_business_id is not None and deal.businessID != owner_business_id:
                return self._reject(ErrorKind.WRONG_BUSINESS, "Deal belongs to another business", deal_id=deal_id)
            if deal.approval_status != ApprovalStatus.APPROVED:
                return self._reject(
                    ErrorKind.INVALID_TRANSITION,
                    "Only approved deals can be paused or resumed",
                    deal_id=deal_id,
                )

            deal.paused = not deal.paused
            self._commit("toggle pause", deal_id=deal_id)

        self.logger.info("Deal %s %s", deal_id, "paused" if deal.paused else "resumed")
        return CommandResult.ok("Deal paused" if deal.paused else "Deal resumed", deal)

    # ------------------------------------------------------------------
    # Business review
    # ------------------------------------------------------------------
    def approve_business(self, business_id: int) -> CommandResult:
        business = self.repo.get_business(business_id)
        if not business:
            return self._reject(ErrorKind.NOT_FOUND, "Business not found", business_id=business_id)
        if business.approval_status != ApprovalStatus.PENDING:
            return self._reject(
                ErrorKind.INVALID_TRANSITION,
                f"Cannot approve business in status {ApprovalStatus(business.approval_status).value}",
                business_id=business_id,
            )

        business.approval_status = ApprovalStatus.APPROVED
        business.active = True
        self._commit("approve business", business_id=business_id)

        self.logger.info("Business %s approved", business_id)
        events = self._publish([
            DomainEvent(
                EventType.BUSINESS_APPROVED,
                {"name": business.name, "business_channel": business.notification_channel},
            )
        ])
        return CommandResult.ok("Business approved", business, events)

    def reject_business(self, business_id: int, reason: str) -> CommandResult:
        """Reject a business and take all of its deals out of circulation."""
        cleaned_reason = clean_text(reason)
        if not cleaned_reason:
            return self._reject(ErrorKind.VALIDATION_ERROR, "A rejection reason is required", business_id=business_id)

        business = self.repo.get_business(business_id)
        if not business:
            return self._reject(ErrorKind.NOT_FOUND, "Business not found", business_id=business_id)
        if business.approval_status != ApprovalStatus.PENDING:
            return self._reject(
                ErrorKind.INVALID_TRANSITION,
                f"Cannot reject business in status {ApprovalStatus(business.approval_status).value}",
                business_id=business_id,
            )

        business.approval_status = ApprovalStatus.REJECTED
        business.rejection_reason = cleaned_reason
        deactivated = self.repo.deactivate_business_deals(business_id)
        self._commit("reject business", business_id=business_id)

        self.logger.info(
            "Business %s rejected",
            business_id,
            extra={"deactivated_deals": deactivated},
        )
        events = self._publish([
            DomainEvent(
                EventType.BUSINESS_REJECTED,
                {
                    "name": business.name,
                    "business_channel": business.notification_channel,
                    "reason": cleaned_reason,
                },
            )
        ])
        return CommandResult.ok("Business rejected", business, events)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _new_deal(business: Business, fields: Dict[str, Any], status: ApprovalStatus) -> Deal:
        values: Dict[str, Any] = {"description": "", "details": "", "terms": []}
        values.update(fields)
        deal = Deal(
            businessID=business.businessID,
            approval_status=status,
            active=False,
            paused=False,
            featured=False,
            deleted=False,
            _claimed_quantity=0,
            created_at=utcnow(),
            **values,
        )
        deal.discount_price = compute_discount_price(fields["original_price"], fields["discount_percent"])
        if deal.address is None:
            deal.address = business.address
        if deal.lat is None or deal.lng is None:
            deal.lat, deal.lng = business.lat, business.lng
        deal.business = business
        return deal
