from __future__ import annotations

import threading
from datetime import timedelta

from conftest import in_days
from descuentosya.models import CouponStatus, as_utc, utcnow
from descuentosya.observability.metrics import get_counter_value
from descuentosya.services.results import ErrorKind


def _claimed(marketplace, make_deal, user_id="user-1", **deal_overrides):
    deal = make_deal(**deal_overrides)
    result = marketplace.claim(deal.dealID, user_id)
    assert result.success, result.message
    return deal, result.value


def test_redeem_marks_coupon_used(marketplace, make_deal):
    deal, coupon = _claimed(marketplace, make_deal)

    result = marketplace.redeem(coupon.redemption_code, redeeming_business_id=deal.businessID)

    assert result.success
    assert result.value.status == CouponStatus.USED
    assert result.value.used_at is not None
    assert get_counter_value("coupons_redeemed_total", labels={"channel": "scanner"}) == 1


def test_redeem_accepts_lowercase_and_spaces(marketplace, make_deal):
    _, coupon = _claimed(marketplace, make_deal)

    result = marketplace.redeem(f"  {coupon.redemption_code.lower()} ")

    assert result.success


def test_redeem_unknown_code(marketplace):
    assert marketplace.redeem("DESCYA-1-U-000").error == ErrorKind.NOT_FOUND
    assert marketplace.redeem("OTHER-1-U-000").error == ErrorKind.NOT_FOUND
    assert marketplace.redeem("").error == ErrorKind.NOT_FOUND


def test_second_redeem_reports_original_used_at(marketplace, make_deal):
    deal, coupon = _claimed(marketplace, make_deal)
    first = marketplace.redeem(coupon.redemption_code, redeeming_business_id=deal.businessID)
    first_used_at = as_utc(first.value.used_at)

    second = marketplace.redeem(coupon.redemption_code, redeeming_business_id=deal.businessID)

    assert second.error == ErrorKind.ALREADY_USED
    assert second.details["used_at"] == first_used_at.isoformat()
    assert as_utc(marketplace.get_coupons_for_user("user-1")[0].used_at) == first_used_at


def test_wrong_business_leaves_coupon_active(marketplace, make_deal, make_business):
    _, coupon = _claimed(marketplace, make_deal)
    other = make_business()

    result = marketplace.redeem(coupon.redemption_code, redeeming_business_id=other.businessID)

    assert result.error == ErrorKind.WRONG_BUSINESS
    assert marketplace.get_coupons_for_user("user-1")[0].status == CouponStatus.ACTIVE


def test_redeem_after_deal_expiry_expires_coupon(marketplace, make_deal):
    deal, coupon = _claimed(marketplace, make_deal, expires_at=in_days(1))

    result = marketplace.redeem(
        coupon.redemption_code,
        redeeming_business_id=deal.businessID,
        now=utcnow() + timedelta(days=2),
    )

    assert result.error == ErrorKind.EXPIRED
    assert marketplace.get_coupons_for_user("user-1", "expired")[0].couponID == coupon.couponID
    assert marketplace.redeem(coupon.redemption_code).error == ErrorKind.EXPIRED


def test_expired_is_reported_before_wrong_business(marketplace, make_deal, make_business):
    _, coupon = _claimed(marketplace, make_deal, expires_at=in_days(1))
    other = make_business()

    result = marketplace.redeem(
        coupon.redemption_code,
        redeeming_business_id=other.businessID,
        now=utcnow() + timedelta(days=2),
    )

    assert result.error == ErrorKind.EXPIRED


def test_coupon_of_deleted_deal_is_still_redeemable(marketplace, make_deal):
    deal, coupon = _claimed(marketplace, make_deal)
    assert marketplace.delete_deal(deal.dealID).success

    result = marketplace.redeem(coupon.redemption_code, redeeming_business_id=deal.businessID)

    assert result.success


def test_redeem_by_id_skips_business_scope(marketplace, make_deal):
    _, coupon = _claimed(marketplace, make_deal)

    result = marketplace.redeem_by_id(coupon.couponID)

    assert result.success
    assert marketplace.redeem_by_id(coupon.couponID).error == ErrorKind.ALREADY_USED
    assert marketplace.redeem_by_id(99999).error == ErrorKind.NOT_FOUND
    assert get_counter_value("coupons_redeemed_total", labels={"channel": "admin"}) == 1


def test_redeem_does_not_notify(marketplace, make_deal, notifications):
    deal, coupon = _claimed(marketplace, make_deal)
    before = len(notifications.get_notifications("user-1"))

    marketplace.redeem(coupon.redemption_code)

    assert len(notifications.get_notifications("user-1")) == before
    assert notifications.get_notifications(f"business:{deal.businessID}") == []


def test_expire_coupons_sweep(marketplace, make_deal):
    _, stale = _claimed(marketplace, make_deal, user_id="u-stale", expires_at=in_days(1))
    _, fresh = _claimed(marketplace, make_deal, user_id="u-fresh", expires_at=in_days(10))

    expired = marketplace.expire_coupons(now=utcnow() + timedelta(days=2))

    assert expired == 1
    assert marketplace.get_coupons_for_user("u-stale")[0].status == CouponStatus.EXPIRED
    assert marketplace.get_coupons_for_user("u-fresh")[0].status == CouponStatus.ACTIVE


def test_concurrent_redemptions_succeed_once(marketplace, make_deal, make_marketplace):
    deal, coupon = _claimed(marketplace, make_deal)
    contenders = 6
    barrier = threading.Barrier(contenders)
    facades = [make_marketplace() for _ in range(contenders)]
    outcomes = [None] * contenders

    def _redeem(index):
        barrier.wait()
        outcomes[index] = facades[index].redeem(coupon.redemption_code, redeeming_business_id=deal.businessID)

    threads = [threading.Thread(target=_redeem, args=(i,)) for i in range(contenders)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sum(1 for result in outcomes if result.success) == 1
    assert all(result.error == ErrorKind.ALREADY_USED for result in outcomes if not result.success)
