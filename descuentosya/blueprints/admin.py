from __future__ import annotations

from flask import Blueprint, jsonify, request

from descuentosya.blueprints.common import (
    get_marketplace,
    json_payload,
    require_admin,
    result_response,
)
from descuentosya.models import ApprovalStatus
from descuentosya.observability import get_metrics_snapshot

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# ---------------------------
# Deal review
# ---------------------------


@admin_bp.route("/deals/pending", methods=["GET"])
@require_admin
def pending_deals():
    deals = get_marketplace().list_pending_deals()
    return jsonify({"deals": [deal.to_dict() for deal in deals]})


@admin_bp.route("/deals/<int:deal_id>/approve", methods=["POST"])
@require_admin
def approve_deal(deal_id: int):
    return result_response(get_marketplace().approve_deal(deal_id), key="deal")


@admin_bp.route("/deals/<int:deal_id>/reject", methods=["POST"])
@require_admin
def reject_deal(deal_id: int):
    reason = json_payload().get("reason")
    return result_response(get_marketplace().reject_deal(deal_id, reason), key="deal")


@admin_bp.route("/deals", methods=["POST"])
@require_admin
def create_deal():
    payload = json_payload()
    payload.pop("now", None)
    business_id = payload.pop("business_id", None)
    if business_id is None:
        return jsonify({"success": False, "message": "business_id is required", "error": "VALIDATION_ERROR"}), 422
    try:
        business_id = int(business_id)
    except (TypeError, ValueError):
        return jsonify({"success": False, "message": "business_id must be an integer", "error": "VALIDATION_ERROR"}), 422
    result = get_marketplace().create_approved_deal(business_id, **payload)
    return result_response(result, key="deal", success_status=201)


@admin_bp.route("/deals/<int:deal_id>", methods=["PATCH"])
@require_admin
def update_deal(deal_id: int):
    return result_response(get_marketplace().update_deal(deal_id, json_payload()), key="deal")


@admin_bp.route("/deals/<int:deal_id>", methods=["DELETE"])
@require_admin
def delete_deal(deal_id: int):
    return result_response(get_marketplace().delete_deal(deal_id))


@admin_bp.route("/deals/<int:deal_id>/featured", methods=["POST"])
@require_admin
def toggle_featured(deal_id: int):
    return result_response(get_marketplace().toggle_featured(deal_id), key="deal")


# ---------------------------
# Businesses
# ---------------------------


@admin_bp.route("/businesses", methods=["GET"])
@require_admin
def list_businesses():
    status = request.args.get("status") or None
    if status is not None and status not in {s.value for s in ApprovalStatus}:
        return jsonify({"error": f"Unknown approval status: {status}"}), 422
    businesses = get_marketplace().list_businesses(status)
    return jsonify({"businesses": [business.to_dict() for business in businesses]})


@admin_bp.route("/businesses", methods=["POST"])
@require_admin
def create_business():
    result = get_marketplace().create_business(**json_payload())
    return result_response(result, key="business", success_status=201)


@admin_bp.route("/businesses/<int:business_id>", methods=["PATCH"])
@require_admin
def update_business(business_id: int):
    return result_response(get_marketplace().update_business(business_id, json_payload()), key="business")


@admin_bp.route("/businesses/<int:business_id>", methods=["DELETE"])
@require_admin
def delete_business(business_id: int):
    return result_response(get_marketplace().delete_business(business_id))


@admin_bp.route("/businesses/<int:business_id>/approve", methods=["POST"])
@require_admin
def approve_business(business_id: int):
    return result_response(get_marketplace().approve_business(business_id), key="business")


@admin_bp.route("/businesses/<int:business_id>/reject", methods=["POST"])
@require_admin
def reject_business(business_id: int):
    reason = json_payload().get("reason")
    return result_response(get_marketplace().reject_business(business_id, reason), key="business")


# ---------------------------
# Coupons, stats, metrics
# ---------------------------


@admin_bp.route("/coupons/<int:coupon_id>/redeem", methods=["POST"])
@require_admin
def redeem_by_id(coupon_id: int):
    return result_response(get_marketplace().redeem_by_id(coupon_id), key="coupon")


@admin_bp.route("/coupons/expire", methods=["POST"])
@require_admin
def expire_coupons():
    return jsonify({"success": True, "expired": get_marketplace().expire_coupons()})


@admin_bp.route("/stats", methods=["GET"])
@require_admin
def platform_stats():
    return jsonify(get_marketplace().platform_stats())


@admin_bp.route("/metrics", methods=["GET"])
@require_admin
def metrics():
    return jsonify(get_metrics_snapshot())
