from __future__ import annotations

import threading
from datetime import timedelta

from conftest import in_days
from descuentosya.models import Coupon, CouponStatus, utcnow
from descuentosya.observability.metrics import get_counter_value
from descuentosya.services.redemption_codes import RedemptionCodeGenerator, code_segment
from descuentosya.services.results import ErrorKind


def test_claim_issues_coupon_with_snapshot(marketplace, make_deal, notifications):
    deal = make_deal(available_quantity=5)

    result = marketplace.claim(deal.dealID, "user-42")

    assert result.success
    coupon = result.value
    assert coupon.status == CouponStatus.ACTIVE
    assert coupon.userID == "user-42"
    assert coupon.businessID == deal.businessID
    assert coupon.redemption_code.startswith(f"DESCYA-{deal.dealID}-USER42-")
    assert coupon.deal_snapshot["title"] == deal.title
    assert coupon.deal_snapshot["discount_price"] == 150.0
    assert marketplace.get_deal(deal.dealID).claimed_quantity == 1

    inbox = notifications.get_notifications("user-42")
    assert len(inbox) == 1
    assert inbox[0].notification_type.value == "claim"
    assert get_counter_value("coupons_claimed_total") == 1


def test_claim_unknown_deal(marketplace):
    result = marketplace.claim(12345, "user-1")

    assert result.error == ErrorKind.NOT_FOUND


def test_claim_pending_deal_is_not_eligible(marketplace, pending_deal):
    result = marketplace.claim(pending_deal.dealID, "user-1")

    assert result.error == ErrorKind.NOT_ELIGIBLE
    assert get_counter_value("claims_rejected_total", labels={"reason": "NOT_ELIGIBLE"}) == 1


def test_claim_paused_deal_is_not_eligible(marketplace, make_deal):
    deal = make_deal()
    marketplace.toggle_pause(deal.dealID)

    assert marketplace.claim(deal.dealID, "user-1").error == ErrorKind.NOT_ELIGIBLE


def test_claim_expired_deal_is_not_eligible(marketplace, make_deal):
    deal = make_deal(expires_at=in_days(1))

    result = marketplace.claim(deal.dealID, "user-1", now=utcnow() + timedelta(days=2))

    assert result.error == ErrorKind.NOT_ELIGIBLE


def test_sold_out_leaves_counter_unchanged(marketplace, make_deal):
    deal = make_deal(available_quantity=1)
    assert marketplace.claim(deal.dealID, "first").success

    result = marketplace.claim(deal.dealID, "second")

    assert result.error == ErrorKind.SOLD_OUT
    refreshed = marketplace.get_deal(deal.dealID)
    assert refreshed.claimed_quantity == 1
    assert refreshed.remaining_quantity == 0
    assert marketplace.get_coupons_for_user("second") == []


def test_second_claim_by_same_user_is_already_claimed(marketplace, make_deal, db_session):
    deal = make_deal(available_quantity=5)
    first = marketplace.claim(deal.dealID, "user-7")

    second = marketplace.claim(deal.dealID, "user-7")

    assert second.error == ErrorKind.ALREADY_CLAIMED
    rows = db_session.query(Coupon).filter_by(userID="user-7", dealID=deal.dealID).all()
    assert [row.couponID for row in rows] == [first.value.couponID]
    assert marketplace.get_deal(deal.dealID).claimed_quantity == 1


def test_sold_out_is_checked_before_already_claimed(marketplace, make_deal):
    deal = make_deal(available_quantity=1)
    marketplace.claim(deal.dealID, "user-7")

    assert marketplace.claim(deal.dealID, "user-7").error == ErrorKind.SOLD_OUT


def test_user_can_claim_again_after_redeeming(marketplace, make_deal):
    deal = make_deal(available_quantity=5)
    first = marketplace.claim(deal.dealID, "user-9").value
    assert marketplace.redeem(first.redemption_code).success

    again = marketplace.claim(deal.dealID, "user-9")

    assert again.success
    assert again.value.redemption_code != first.redemption_code
    assert marketplace.has_claimed_deal("user-9", deal.dealID)


def test_claim_requires_user(marketplace, make_deal):
    deal = make_deal()

    assert marketplace.claim(deal.dealID, "").error == ErrorKind.VALIDATION_ERROR


def test_coupons_for_user_filter_by_status(marketplace, make_deal):
    first = make_deal()
    second = make_deal()
    used = marketplace.claim(first.dealID, "user-3").value
    marketplace.claim(second.dealID, "user-3")
    marketplace.redeem(used.redemption_code)

    assert len(marketplace.get_coupons_for_user("user-3")) == 2
    active = marketplace.get_coupons_for_user("user-3", "active")
    assert [c.dealID for c in active] == [second.dealID]
    assert [c.couponID for c in marketplace.get_coupons_for_user("user-3", CouponStatus.USED)] == [used.couponID]


def test_concurrent_claims_hand_out_last_unit_once(make_deal, make_marketplace):
    deal = make_deal(available_quantity=1)
    contenders = 8
    barrier = threading.Barrier(contenders)
    facades = [make_marketplace() for _ in range(contenders)]
    outcomes = [None] * contenders

    def _claim(index):
        barrier.wait()
        outcomes[index] = facades[index].claim(deal.dealID, f"racer-{index}")

    threads = [threading.Thread(target=_claim, args=(i,)) for i in range(contenders)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    winners = [result for result in outcomes if result.success]
    assert len(winners) == 1
    assert all(result.error == ErrorKind.SOLD_OUT for result in outcomes if not result.success)

    checker = make_marketplace()
    assert checker.get_deal(deal.dealID).claimed_quantity == 1
    assert len(checker.get_coupons_for_business(deal.businessID)) == 1


def test_concurrent_claims_never_exceed_capacity(make_deal, make_marketplace):
    deal = make_deal(available_quantity=3)
    contenders = 10
    barrier = threading.Barrier(contenders)
    facades = [make_marketplace() for _ in range(contenders)]
    outcomes = [None] * contenders

    def _claim(index):
        barrier.wait()
        outcomes[index] = facades[index].claim(deal.dealID, f"user-{index}")

    threads = [threading.Thread(target=_claim, args=(i,)) for i in range(contenders)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sum(1 for result in outcomes if result.success) == 3
    assert make_marketplace().get_deal(deal.dealID).claimed_quantity == 3


def test_redemption_codes_are_unique_and_well_formed():
    generator = RedemptionCodeGenerator("descya")

    codes = {generator.generate(7, "abc-123") for _ in range(500)}

    assert len(codes) == 500
    for code in codes:
        assert code == code.upper()
        assert code.startswith("DESCYA-7-ABC123-")
        assert generator.looks_valid(code)


def test_code_segment_drops_delimiters():
    assert code_segment("user-1 x") == "USER1X"
    assert code_segment("---") == "X"


def test_normalize_accepts_hand_typed_codes():
    generator = RedemptionCodeGenerator("DESCYA")

    assert generator.normalize("  descya-1-u1-123 ") == "DESCYA-1-U1-123"
    assert generator.normalize(None) == ""
