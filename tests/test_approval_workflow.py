from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import in_days
from descuentosya.models import ApprovalStatus
from descuentosya.observability.metrics import get_counter_value
from descuentosya.services.results import ErrorKind
from descuentosya.services.validation import compute_discount_price


def test_submit_deal_starts_pending_and_computes_discount_price(marketplace, make_business, deal_payload):
    business = make_business()

    result = marketplace.submit_deal(business.businessID, **deal_payload(original_price=1000, discount_percent=30))

    assert result.success
    deal = result.value
    assert deal.approval_status == ApprovalStatus.PENDING
    assert deal.active is False
    assert deal.claimed_quantity == 0
    assert Decimal(deal.discount_price) == Decimal("700")
    assert deal in marketplace.list_pending_deals()
    assert deal not in marketplace.list_visible_deals()
    assert get_counter_value("deals_submitted_total") == 1


def test_submit_deal_inherits_business_location(marketplace, make_business, deal_payload):
    business = make_business(address="Rambla 123", lat=-34.92, lng=-56.16)

    deal = marketplace.submit_deal(business.businessID, **deal_payload()).value

    assert deal.address == "Rambla 123"
    assert (deal.lat, deal.lng) == (-34.92, -56.16)


@pytest.mark.parametrize(
    "overrides, message_fragment",
    [
        ({"title": "   "}, "Title"),
        ({"original_price": 0}, "Original price"),
        ({"discount_percent": 0}, "Discount"),
        ({"discount_percent": 100}, "Discount"),
        ({"available_quantity": 0}, "available_quantity"),
        ({"expires_at": in_days(-1)}, "future"),
        ({"expires_at": "not-a-date"}, "expires_at"),
    ],
)
def test_submit_deal_validation_errors(marketplace, make_business, deal_payload, overrides, message_fragment):
    business = make_business()

    result = marketplace.submit_deal(business.businessID, **deal_payload(**overrides))

    assert not result.success
    assert result.error == ErrorKind.VALIDATION_ERROR
    assert message_fragment in result.message
    assert marketplace.list_pending_deals() == []


def test_submit_deal_unknown_business(marketplace, deal_payload):
    result = marketplace.submit_deal(9999, **deal_payload())

    assert result.error == ErrorKind.NOT_FOUND


def test_submit_deal_strips_markup(marketplace, make_business, deal_payload):
    business = make_business()

    deal = marketplace.submit_deal(
        business.businessID,
        **deal_payload(title="<b>Promo</b> <script>x</script>", terms=["<i>Solo</i> efectivo", ""]),
    ).value

    assert "<" not in deal.title
    assert deal.terms == ["Solo efectivo"]


def test_approve_makes_deal_visible_and_notifies_business(marketplace, pending_deal, notifications):
    result = marketplace.approve_deal(pending_deal.dealID)

    assert result.success
    deal = result.value
    assert deal.approval_status == ApprovalStatus.APPROVED
    assert deal.active is True
    assert deal in marketplace.list_visible_deals()

    inbox = notifications.get_notifications(f"business:{deal.businessID}")
    assert inbox[0].notification_type.value == "approval"
    assert inbox[0].deal_id == deal.dealID


def test_approve_twice_is_invalid_transition(marketplace, pending_deal):
    assert marketplace.approve_deal(pending_deal.dealID).success

    second = marketplace.approve_deal(pending_deal.dealID)

    assert second.error == ErrorKind.INVALID_TRANSITION


def test_reject_records_reason_and_hides_deal(marketplace, pending_deal, notifications):
    result = marketplace.reject_deal(pending_deal.dealID, "Image quality too low")

    assert result.success
    deal = result.value
    assert deal.approval_status == ApprovalStatus.REJECTED
    assert deal.rejection_reason == "Image quality too low"
    assert deal not in marketplace.list_visible_deals()

    inbox = notifications.get_notifications(f"business:{deal.businessID}")
    assert inbox[0].notification_type.value == "rejection"
    assert inbox[0].message == "Image quality too low"


def test_reject_requires_reason(marketplace, pending_deal):
    result = marketplace.reject_deal(pending_deal.dealID, "  ")

    assert result.error == ErrorKind.VALIDATION_ERROR
    assert marketplace.get_deal(pending_deal.dealID).approval_status == ApprovalStatus.PENDING


def test_approved_deal_cannot_be_rejected(marketplace, pending_deal):
    marketplace.approve_deal(pending_deal.dealID)

    result = marketplace.reject_deal(pending_deal.dealID, "Changed my mind")

    assert result.error == ErrorKind.INVALID_TRANSITION


def test_rejection_reason_is_kept_verbatim(marketplace, pending_deal, notifications):
    reason = "Price & terms don't match: 40% < 50% " + "x" * 1200

    deal = marketplace.reject_deal(pending_deal.dealID, f"  {reason}\n").value

    assert deal.rejection_reason == reason
    inbox = notifications.get_notifications(f"business:{deal.businessID}")
    assert inbox[0].message == reason


def test_submitted_text_keeps_ampersands_and_angle_brackets(marketplace, make_business, deal_payload):
    business = make_business()

    deal = marketplace.submit_deal(
        business.businessID,
        **deal_payload(title="2x1 Pizza & Beer <i>hoy</i>", description="Menu < 500 & bebida"),
    ).value

    assert deal.title == "2x1 Pizza & Beer hoy"
    assert deal.description == "Menu < 500 & bebida"
    assert deal.to_dict()["title"] == "2x1 Pizza & Beer hoy"


def test_rejected_deal_cannot_be_approved(marketplace, pending_deal):
    marketplace.reject_deal(pending_deal.dealID, "Blurry photo")

    result = marketplace.approve_deal(pending_deal.dealID)

    assert result.error == ErrorKind.INVALID_TRANSITION
    assert marketplace.get_deal(pending_deal.dealID).approval_status == ApprovalStatus.REJECTED
    assert marketplace.list_visible_deals() == []


def test_missing_deal_is_not_found(marketplace):
    assert marketplace.approve_deal(404).error == ErrorKind.NOT_FOUND
    assert marketplace.reject_deal(404, "reason").error == ErrorKind.NOT_FOUND
    assert marketplace.toggle_pause(404).error == ErrorKind.NOT_FOUND


def test_owner_edit_of_rejected_deal_resubmits(marketplace, pending_deal, notifications):
    marketplace.reject_deal(pending_deal.dealID, "Missing terms")

    result = marketplace.update_deal(
        pending_deal.dealID,
        {"terms": ["Valid Monday to Friday"], "original_price": 400},
        owner_business_id=pending_deal.businessID,
    )

    assert result.success
    deal = result.value
    assert deal.approval_status == ApprovalStatus.PENDING
    assert deal.rejection_reason is None
    assert Decimal(deal.discount_price) == Decimal("200")
    assert notifications.get_notifications("admin")[0].title == "Deal resubmitted"


def test_owner_cannot_edit_another_business_deal(marketplace, pending_deal, make_business):
    intruder = make_business()

    result = marketplace.update_deal(pending_deal.dealID, {"title": "Hijacked"}, owner_business_id=intruder.businessID)

    assert result.error == ErrorKind.WRONG_BUSINESS


def test_owner_cannot_change_quantity(marketplace, pending_deal):
    result = marketplace.update_deal(
        pending_deal.dealID,
        {"available_quantity": 500},
        owner_business_id=pending_deal.businessID,
    )

    assert result.error == ErrorKind.VALIDATION_ERROR


def test_admin_cannot_drop_quantity_below_claimed(marketplace, make_deal):
    deal = make_deal(available_quantity=3)
    marketplace.claim(deal.dealID, "user-a")
    marketplace.claim(deal.dealID, "user-b")

    too_low = marketplace.update_deal(deal.dealID, {"available_quantity": 1})
    exact = marketplace.update_deal(deal.dealID, {"available_quantity": 2})

    assert too_low.error == ErrorKind.VALIDATION_ERROR
    assert exact.success
    assert exact.value.remaining_quantity == 0


def test_toggle_pause_hides_and_restores(marketplace, make_deal):
    deal = make_deal()

    paused = marketplace.toggle_pause(deal.dealID)
    assert paused.success and paused.value.paused
    assert deal not in marketplace.list_visible_deals()

    resumed = marketplace.toggle_pause(deal.dealID)
    assert resumed.success and not resumed.value.paused
    assert deal in marketplace.list_visible_deals()


def test_toggle_pause_requires_approved(marketplace, pending_deal):
    result = marketplace.toggle_pause(pending_deal.dealID)

    assert result.error == ErrorKind.INVALID_TRANSITION


def test_rejected_business_cannot_submit(marketplace, make_business, deal_payload):
    business = make_business(approved=False)
    marketplace.reject_business(business.businessID, "Incomplete documentation")

    result = marketplace.submit_deal(business.businessID, **deal_payload())

    assert result.error == ErrorKind.NOT_ELIGIBLE


def test_pending_business_deals_stay_hidden_until_business_approved(marketplace, make_business, deal_payload):
    business = make_business(approved=False)
    deal = marketplace.submit_deal(business.businessID, **deal_payload()).value
    marketplace.approve_deal(deal.dealID)

    assert deal not in marketplace.list_visible_deals()

    marketplace.approve_business(business.businessID)
    assert deal in marketplace.list_visible_deals()


def test_rejecting_business_deactivates_its_deals(marketplace, make_business, deal_payload):
    business = make_business(approved=False)
    deal = marketplace.submit_deal(business.businessID, **deal_payload()).value
    marketplace.approve_deal(deal.dealID)

    result = marketplace.reject_business(business.businessID, "Fraud report")

    assert result.success
    refreshed = marketplace.get_deal(deal.dealID)
    marketplace.db.refresh(refreshed)
    assert refreshed.active is False
    assert refreshed.is_visible() is False


@pytest.mark.parametrize(
    "original, percent, expected",
    [
        ("1000", "30", "700"),
        ("999", "15", "849"),
        ("250", "33", "168"),
        ("100", "12.5", "88"),
    ],
)
def test_discount_price_rounds_half_up(original, percent, expected):
    assert compute_discount_price(Decimal(original), Decimal(percent)) == Decimal(expected)
