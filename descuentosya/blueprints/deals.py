from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from descuentosya.blueprints.common import (
    current_actor,
    get_marketplace,
    json_payload,
    query_float,
    require_user,
    result_response,
)
from descuentosya.models import CouponStatus
from descuentosya.roles import AdminActor, BusinessActor, UserActor

deals_bp = Blueprint("deals", __name__, url_prefix="/api")


@deals_bp.route("/deals", methods=["GET"])
def list_deals():
    """Visible deals; with ``lat`` and ``lng`` the list is nearby-only and sorted by distance."""
    marketplace = get_marketplace()
    search = request.args.get("q") or None
    category = request.args.get("category") or None
    lat, lng = query_float("lat"), query_float("lng")

    if lat is not None and lng is not None:
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            return jsonify({"error": "lat/lng out of range"}), 422
        nearby = marketplace.list_nearby_deals(
            lat,
            lng,
            radius_km=query_float("radius_km"),
            search=search,
            category=category,
        )
        return jsonify({"deals": [item.to_dict() for item in nearby]})

    deals = marketplace.list_visible_deals(search=search, category=category)
    return jsonify({"deals": [deal.to_dict() for deal in deals]})


@deals_bp.route("/deals/<int:deal_id>", methods=["GET"])
def get_deal(deal_id: int):
    marketplace = get_marketplace()
    deal = marketplace.get_deal(deal_id)
    actor = current_actor()
    if deal is None or not (deal.is_visible() or _can_see_hidden(actor, deal.businessID)):
        return jsonify({"error": "Deal not found"}), 404

    payload = deal.to_dict()
    payload["rating"] = marketplace.rating_summary(deal_id)
    if isinstance(actor, UserActor):
        payload["claimed"] = marketplace.has_claimed_deal(actor.user_id, deal_id)
    return jsonify({"deal": payload})


def _can_see_hidden(actor, business_id: int) -> bool:
    # Unpublished deals are shown only to whoever can act on them
    if isinstance(actor, AdminActor):
        return True
    return isinstance(actor, BusinessActor) and actor.business_id == business_id


@deals_bp.route("/deals/<int:deal_id>/claim", methods=["POST"])
@require_user
def claim_deal(deal_id: int):
    result = get_marketplace().claim(deal_id, g.actor.user_id)
    return result_response(result, key="coupon", success_status=201)


@deals_bp.route("/deals/<int:deal_id>/reviews", methods=["GET"])
def list_reviews(deal_id: int):
    marketplace = get_marketplace()
    if marketplace.get_deal(deal_id) is None:
        return jsonify({"error": "Deal not found"}), 404
    reviews = marketplace.get_reviews_for_deal(deal_id)
    return jsonify({
        "reviews": [review.to_dict() for review in reviews],
        "rating": marketplace.rating_summary(deal_id),
    })


@deals_bp.route("/deals/<int:deal_id>/reviews", methods=["POST"])
@require_user
def add_review(deal_id: int):
    payload = json_payload()
    result = get_marketplace().add_review(
        deal_id,
        g.actor.user_id,
        payload.get("user_name") or g.actor.display_name,
        payload.get("rating"),
        payload.get("comment"),
    )
    return result_response(result, key="review", success_status=201)


@deals_bp.route("/me/coupons", methods=["GET"])
@require_user
def my_coupons():
    status = request.args.get("status") or None
    if status is not None and status not in {s.value for s in CouponStatus}:
        return jsonify({"error": f"Unknown coupon status: {status}"}), 422
    marketplace = get_marketplace()
    coupons = marketplace.get_coupons_for_user(g.actor.user_id, status)
    return jsonify({
        "coupons": [coupon.to_dict() for coupon in coupons],
        "total_saved": float(marketplace.total_saved(g.actor.user_id)),
    })


@deals_bp.route("/notifications", methods=["GET"])
def list_notifications():
    actor = current_actor()
    if actor is None:
        return jsonify({"error": "Not authenticated"}), 401
    marketplace = get_marketplace()
    unread_only = request.args.get("unread") in {"1", "true", "yes"}
    notifications = marketplace.get_notifications(actor.inbox, unread_only=unread_only)
    return jsonify({
        "notifications": [n.to_dict() for n in notifications],
        "unread_count": marketplace.get_unread_count(actor.inbox),
    })


@deals_bp.route("/notifications/<notification_id>/read", methods=["POST"])
def mark_notification_read(notification_id: str):
    actor = current_actor()
    if actor is None:
        return jsonify({"error": "Not authenticated"}), 401
    if not get_marketplace().mark_notification_read(actor.inbox, notification_id):
        return jsonify({"error": "Notification not found"}), 404
    return jsonify({"success": True})


@deals_bp.route("/notifications/read-all", methods=["POST"])
def mark_all_notifications_read():
    actor = current_actor()
    if actor is None:
        return jsonify({"error": "Not authenticated"}), 401
    updated = get_marketplace().mark_all_notifications_read(actor.inbox)
    return jsonify({"success": True, "updated": updated})
