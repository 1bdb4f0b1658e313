# Overview: Flask API routes for purchase returns; parses input and returns JSON responses.

# backend/garment_erp/routes/purchase_returns.py
from flask import Blueprint, request, jsonify, current_app

from ..errors import HANDLED_ERRORS, error_response
from ..services import purchase_return_service
from ..validation import parse_pagination


purchase_returns_bp = Blueprint("purchase_returns", __name__, url_prefix="/api/purchase-returns")


@purchase_returns_bp.post("")
def create_purchase_return_route():
    """
    Return materials from a completed purchase.

    Body: purchase_id, items [{purchase_item_id | item_name, return_quantity,
    return_reason, reason_description?}], return_date?, remarks?,
    generate_debit_note? (default true)
    """
    data = request.get_json(silent=True) or {}

    try:
        purchase_return = purchase_return_service.create_purchase_return(
            data.get("purchase_id"),
            items=data.get("items"),
            return_date=data.get("return_date"),
            remarks=data.get("remarks"),
            generate_debit_note=data.get("generate_debit_note", True),
        )
        return jsonify({"purchase_return": purchase_return.to_dict()}), 201
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create purchase return")
        return jsonify({"error": "Internal server error"}), 500


@purchase_returns_bp.get("")
def list_purchase_returns_route():
    """Query params: order_id, limit (1-500), offset."""
    limit, offset = parse_pagination(request.args)
    returns, total = purchase_return_service.list_purchase_returns(
        order_id=request.args.get("order_id", type=int),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [r.to_dict(include_lines=False) for r in returns],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@purchase_returns_bp.get("/<int:return_id>")
def get_purchase_return_route(return_id: int):
    try:
        purchase_return = purchase_return_service.get_purchase_return(return_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify({"purchase_return": purchase_return.to_dict()}), 200


@purchase_returns_bp.get("/purchase/<int:purchase_id>")
def get_return_for_purchase_route(purchase_id: int):
    try:
        purchase_return = purchase_return_service.get_return_for_purchase(purchase_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify({"purchase_return": purchase_return.to_dict()}), 200


@purchase_returns_bp.delete("/<int:return_id>")
def delete_purchase_return_route(return_id: int):
    """Delete a purchase return and its generated debit note."""
    try:
        purchase_return_service.delete_purchase_return(return_id)
        return jsonify({"message": "Purchase return deleted"}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete purchase return %s", return_id)
        return jsonify({"error": "Internal server error"}), 500
