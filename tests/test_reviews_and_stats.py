from __future__ import annotations

from decimal import Decimal

import pytest

from descuentosya.services.results import ErrorKind


def test_add_review_and_summary(marketplace, make_deal):
    deal = make_deal()

    marketplace.add_review(deal.dealID, "u1", "Ana", 5, "<b>Excelente</b>")
    marketplace.add_review(deal.dealID, "u2", "Bruno", 4)
    marketplace.add_review(deal.dealID, "u1", "Ana", 2, "Second visit was worse")

    reviews = marketplace.get_reviews_for_deal(deal.dealID)
    assert len(reviews) == 3
    assert {review.comment for review in reviews} >= {"Excelente"}
    assert marketplace.rating_summary(deal.dealID) == {"count": 3, "average": 3.7}


def test_rating_summary_without_reviews(marketplace, make_deal):
    deal = make_deal()

    assert marketplace.rating_summary(deal.dealID) == {"count": 0, "average": None}


@pytest.mark.parametrize("rating", [0, 6, "abc", None, 3.5])
def test_invalid_rating(marketplace, make_deal, rating):
    deal = make_deal()

    result = marketplace.add_review(deal.dealID, "u1", "Ana", rating)

    assert result.error == ErrorKind.VALIDATION_ERROR


def test_review_for_missing_deal(marketplace):
    assert marketplace.add_review(404, "u1", "Ana", 5).error == ErrorKind.NOT_FOUND


def test_business_stats_count_revenue_from_used_coupons_only(marketplace, make_business, make_deal):
    business = make_business()
    deal = make_deal(business=business, original_price=1000, discount_percent=30, available_quantity=5)
    make_deal(business=business)
    used = marketplace.claim(deal.dealID, "u1").value
    marketplace.claim(deal.dealID, "u2")
    marketplace.redeem(used.redemption_code, redeeming_business_id=business.businessID)

    stats = marketplace.business_stats(business.businessID)

    assert stats["total_deals"] == 2
    assert stats["total_claimed"] == 2
    assert stats["active_coupons"] == 1
    assert stats["validated_today"] == 1
    assert stats["revenue"] == Decimal("700")


def test_platform_stats(marketplace, make_deal, pending_deal):
    deal = make_deal()
    marketplace.claim(deal.dealID, "u1")
    marketplace.claim(deal.dealID, "u2")

    stats = marketplace.platform_stats()

    assert stats["total_businesses"] == 2
    assert stats["approved_deals"] == 1
    assert stats["pending_deals"] == 1
    assert stats["total_coupons"] == 2
    assert stats["total_users"] == 2


def test_total_saved(marketplace, make_deal):
    first = make_deal(original_price=1000, discount_percent=30)
    second = make_deal(original_price=300, discount_percent=50)
    marketplace.claim(first.dealID, "saver")
    marketplace.claim(second.dealID, "saver")

    assert marketplace.total_saved("saver") == Decimal("450")
