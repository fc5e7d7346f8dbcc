from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from descuentosya.blueprints.common import (
    get_marketplace,
    json_payload,
    require_business,
    result_response,
)
from descuentosya.models import CouponStatus

business_bp = Blueprint("business", __name__, url_prefix="/api/business")


@business_bp.route("/register", methods=["POST"])
def register_business():
    """Public sign-up; the business can submit deals but stays hidden until approved."""
    result = get_marketplace().register_business(**json_payload())
    return result_response(result, key="business", success_status=201)


@business_bp.route("/deals", methods=["GET"])
@require_business
def list_own_deals():
    deals = get_marketplace().list_business_deals(g.actor.business_id)
    return jsonify({"deals": [deal.to_dict() for deal in deals]})


@business_bp.route("/deals", methods=["POST"])
@require_business
def submit_deal():
    payload = json_payload()
    # Flags and ownership are never taken from the request body
    for key in ("business_id", "featured", "approval_status", "active", "now"):
        payload.pop(key, None)
    result = get_marketplace().submit_deal(g.actor.business_id, **payload)
    return result_response(result, key="deal", success_status=201)


@business_bp.route("/deals/<int:deal_id>", methods=["PATCH"])
@require_business
def update_deal(deal_id: int):
    result = get_marketplace().update_deal(deal_id, json_payload(), owner_business_id=g.actor.business_id)
    return result_response(result, key="deal")


@business_bp.route("/deals/<int:deal_id>", methods=["DELETE"])
@require_business
def delete_deal(deal_id: int):
    result = get_marketplace().delete_deal(deal_id, owner_business_id=g.actor.business_id)
    return result_response(result)


@business_bp.route("/deals/<int:deal_id>/pause", methods=["POST"])
@require_business
def toggle_pause(deal_id: int):
    result = get_marketplace().toggle_pause(deal_id, owner_business_id=g.actor.business_id)
    return result_response(result, key="deal")


@business_bp.route("/redeem", methods=["POST"])
@require_business
def redeem_coupon():
    """Scanner or manual entry; only coupons of the signed-in business are accepted."""
    code = json_payload().get("code")
    if not code:
        return jsonify({"success": False, "message": "A coupon code is required", "error": "VALIDATION_ERROR"}), 422
    result = get_marketplace().redeem(code, redeeming_business_id=g.actor.business_id)
    return result_response(result, key="coupon")


@business_bp.route("/coupons", methods=["GET"])
@require_business
def list_coupons():
    status = request.args.get("status") or None
    if status is not None and status not in {s.value for s in CouponStatus}:
        return jsonify({"error": f"Unknown coupon status: {status}"}), 422
    coupons = get_marketplace().get_coupons_for_business(g.actor.business_id, status)
    return jsonify({"coupons": [coupon.to_dict() for coupon in coupons]})


@business_bp.route("/stats", methods=["GET"])
@require_business
def stats():
    data = get_marketplace().business_stats(g.actor.business_id)
    data["revenue"] = float(data["revenue"])
    return jsonify(data)
