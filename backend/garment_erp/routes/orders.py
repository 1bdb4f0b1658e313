# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/garment_erp/routes/orders.py
"""
Order routes.

Creating an order also writes its Pending placeholder purchase in the same
transaction. Order numbers (OID-nnnn, type serial, PO number) are issued by
the server; clients never send them.
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import HANDLED_ERRORS, error_response
from ..services import order_service
from ..validation import parse_pagination


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _order_detail(order) -> dict:
    body = order.to_dict()
    body["purchase"] = order.purchase.to_dict(include_lines=False) if order.purchase else None
    body["production"] = order.production.to_dict(include_history=False) if order.production else None
    return body


@orders_bp.post("")
def create_order_route():
    """
    Create an order.

    Body: order_type, order_date?, buyer {id | name, mobile, ...},
    products [{product_id | product_name, style?, color?, fabric_type?,
    sizes [{size, qty}]}], remarks?
    """
    data = request.get_json(silent=True) or {}

    try:
        order = order_service.create_order(data)
        return jsonify({"order": _order_detail(order)}), 201
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
def list_orders_route():
    """
    List orders, newest first.

    Query params: order_type, status, buyer, po_number, limit (1-500), offset
    """
    limit, offset = parse_pagination(request.args)

    try:
        orders, total = order_service.list_orders(
            order_type=request.args.get("order_type"),
            status=request.args.get("status"),
            buyer=request.args.get("buyer"),
            po_number=request.args.get("po_number"),
            limit=limit,
            offset=offset,
        )
    except HANDLED_ERRORS as e:
        return error_response(e)

    return jsonify({
        "items": [o.to_dict(include_lines=False) for o in orders],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify({"order": _order_detail(order)}), 200


@orders_bp.put("/<int:order_id>")
def update_order_route(order_id: int):
    """Update order_date, remarks, products and/or status."""
    data = request.get_json(silent=True) or {}

    try:
        order = order_service.update_order(order_id, data)
        return jsonify({"order": _order_detail(order)}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>/status")
def set_order_status_route(order_id: int):
    """Body: {"status": "<stage>"}; 400 on an unknown stage."""
    data = request.get_json(silent=True) or {}

    try:
        order = order_service.set_order_status(order_id, data.get("status"))
        return jsonify({"order": _order_detail(order)}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set status of order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/advance")
def advance_order_route(order_id: int):
    try:
        order = order_service.advance_order_status(order_id)
        return jsonify({"order": _order_detail(order)}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to advance order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
def delete_order_route(order_id: int):
    """Delete an order with its purchase, production, store entries and logs."""
    try:
        order_service.delete_order(order_id)
        return jsonify({"message": "Order deleted"}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500
