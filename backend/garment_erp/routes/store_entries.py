# Overview: Flask API routes for store entries; parses input and returns JSON responses.

# backend/garment_erp/routes/store_entries.py
"""
Store entry routes.

A store entry records what physically arrived for a completed purchase.
Creating it (status Completed, the default) issues the STR number and
writes the opening store log in the same transaction.
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import HANDLED_ERRORS, error_response
from ..services import store_entry_service
from ..validation import parse_pagination


store_entries_bp = Blueprint("store_entries", __name__, url_prefix="/api/store-entries")


@store_entries_bp.post("")
def create_store_entry_route():
    """
    Body: purchase_id, store_entry_date, entries [{item_name, item_type?,
    unit?, supplier_name?, invoice_no?, invoice_date?, purchase_qty?,
    invoice_qty?, store_in_qty}], remarks?, status? ("Completed" | "Pending")
    """
    data = request.get_json(silent=True) or {}

    try:
        entry = store_entry_service.create_store_entry(
            purchase_id=data.get("purchase_id"),
            store_entry_date=data.get("store_entry_date"),
            entries=data.get("entries"),
            remarks=data.get("remarks"),
            status=data.get("status") or store_entry_service.STATUS_COMPLETED,
        )
        return jsonify({"store_entry": entry.to_dict()}), 201
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create store entry")
        return jsonify({"error": "Internal server error"}), 500


@store_entries_bp.get("")
def list_store_entries_route():
    """Query params: status, order_id, purchase_id, limit (1-500), offset."""
    limit, offset = parse_pagination(request.args)

    try:
        entries, total = store_entry_service.list_store_entries(
            status=request.args.get("status"),
            order_id=request.args.get("order_id", type=int),
            purchase_id=request.args.get("purchase_id", type=int),
            limit=limit,
            offset=offset,
        )
    except HANDLED_ERRORS as e:
        return error_response(e)

    return jsonify({
        "items": [e.to_dict(include_items=False) for e in entries],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@store_entries_bp.get("/pending-purchases")
def pending_purchases_route():
    """Completed purchases with no store entry yet."""
    purchases = store_entry_service.list_purchases_awaiting_store_entry()
    return jsonify({
        "items": [p.to_dict() for p in purchases],
        "count": len(purchases),
    }), 200


@store_entries_bp.get("/purchase/<int:purchase_id>")
def get_store_entry_for_purchase_route(purchase_id: int):
    try:
        entry = store_entry_service.get_store_entry_for_purchase(purchase_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify({"exists": True, "store_entry": entry.to_dict()}), 200


@store_entries_bp.get("/<int:entry_id>")
def get_store_entry_route(entry_id: int):
    try:
        entry = store_entry_service.get_store_entry(entry_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify({"store_entry": entry.to_dict()}), 200


@store_entries_bp.put("/<int:entry_id>")
def update_store_entry_route(entry_id: int):
    """Body: store_entry_date?, entries? (replaces all lines), remarks?"""
    data = request.get_json(silent=True) or {}

    try:
        entry = store_entry_service.update_store_entry(
            entry_id,
            store_entry_date=data.get("store_entry_date"),
            entries=data.get("entries"),
            remarks=data.get("remarks"),
        )
        return jsonify({"store_entry": entry.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update store entry %s", entry_id)
        return jsonify({"error": "Internal server error"}), 500


@store_entries_bp.patch("/<int:entry_id>/complete")
def complete_store_entry_route(entry_id: int):
    try:
        entry = store_entry_service.complete_store_entry(entry_id)
        return jsonify({"store_entry": entry.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to complete store entry %s", entry_id)
        return jsonify({"error": "Internal server error"}), 500


@store_entries_bp.delete("/<int:entry_id>")
def delete_store_entry_route(entry_id: int):
    try:
        store_entry_service.delete_store_entry(entry_id)
        return jsonify({"message": "Store entry deleted"}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete store entry %s", entry_id)
        return jsonify({"error": "Internal server error"}), 500
