# Overview: Flask API routes for purchases; parses input and returns JSON responses.

# backend/garment_erp/routes/purchases.py
from flask import Blueprint, request, jsonify, current_app

from ..errors import HANDLED_ERRORS, error_response
from ..services import purchase_service
from ..validation import parse_pagination


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
def list_purchases_route():
    """Query params: status, order_type, limit (1-500), offset."""
    limit, offset = parse_pagination(request.args)

    try:
        purchases, total = purchase_service.list_purchases(
            status=request.args.get("status"),
            order_type=request.args.get("order_type"),
            limit=limit,
            offset=offset,
        )
    except HANDLED_ERRORS as e:
        return error_response(e)

    return jsonify({
        "items": [p.to_dict(include_lines=False) for p in purchases],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@purchases_bp.get("/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase(purchase_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify({"purchase": purchase.to_dict()}), 200


@purchases_bp.put("/<int:purchase_id>")
def update_purchase_route(purchase_id: int):
    """
    Replace the vendor items of a purchase.

    Body: items [{item_type, item_name, vendor_name?, vendor_code?, unit?,
    quantity, cost_per_unit}], remarks?, purchase_date?
    """
    data = request.get_json(silent=True) or {}

    try:
        purchase = purchase_service.update_purchase(
            purchase_id,
            items=data.get("items"),
            remarks=data.get("remarks"),
            purchase_date=data.get("purchase_date"),
        )
        return jsonify({"purchase": purchase.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update purchase %s", purchase_id)
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.patch("/<int:purchase_id>/complete")
def complete_purchase_route(purchase_id: int):
    """Complete a purchase; the order's production run is created if missing."""
    try:
        purchase, production = purchase_service.complete_purchase(purchase_id)
        return jsonify({
            "purchase": purchase.to_dict(),
            "production": production.to_dict() if production else None,
        }), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to complete purchase %s", purchase_id)
        return jsonify({"error": "Internal server error"}), 500
