# Overview: Flask API routes for store logs; parses input and returns JSON responses.

# backend/garment_erp/routes/store_logs.py
"""
Store log routes.

Each log records material taken out of, and returned to, the store for one
store entry. Availability is re-checked on every write; a shortage answers
400 with the item name and the quantity actually available.
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import HANDLED_ERRORS, error_response
from ..services import store_log_service
from ..validation import parse_int, parse_pagination, to_number


store_logs_bp = Blueprint("store_logs", __name__, url_prefix="/api/store-logs")

HEADER_FIELDS = (
    "log_date",
    "person_name",
    "person_role",
    "department",
    "login_time",
    "logout_time",
    "product_count",
    "status",
    "remarks",
)


STOCK_QTY_FIELDS = ("initial_stock", "total_taken", "total_returned", "available_stock")


def _header(data: dict) -> dict:
    return {name: data[name] for name in HEADER_FIELDS if name in data}


@store_logs_bp.post("")
def create_store_log_route():
    """
    Body: store_entry_id, log_date, items [{item_name, taken_qty?,
    returned_qty?, return_date?, remarks?}], person_name?, person_role?,
    department?, login_time?, logout_time?, product_count?, status?, remarks?
    """
    data = request.get_json(silent=True) or {}

    try:
        store_entry_id = parse_int(data.get("store_entry_id"), "store_entry_id", minimum=1)
        log = store_log_service.create_store_log(store_entry_id, items=data.get("items"), **_header(data))
        return jsonify({"store_log": log.to_dict()}), 201
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create store log")
        return jsonify({"error": "Internal server error"}), 500


@store_logs_bp.get("")
def list_store_logs_route():
    """
    Query params: store_entry_id, status, order_id, person_name,
    include_opening (default true), limit (1-500), offset
    """
    limit, offset = parse_pagination(request.args)
    include_opening = request.args.get("include_opening", "true").lower() != "false"

    try:
        logs, total = store_log_service.list_store_logs(
            store_entry_id=request.args.get("store_entry_id", type=int),
            status=request.args.get("status"),
            order_id=request.args.get("order_id", type=int),
            person_name=request.args.get("person_name"),
            include_opening=include_opening,
            limit=limit,
            offset=offset,
        )
    except HANDLED_ERRORS as e:
        return error_response(e)

    return jsonify({
        "items": [log.to_dict(include_items=False) for log in logs],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@store_logs_bp.get("/available-stock/<int:entry_id>")
def available_stock_route(entry_id: int):
    """Per-item initial stock, totals taken/returned and availability."""
    try:
        snapshot = store_log_service.get_available_stock(entry_id)
    except HANDLED_ERRORS as e:
        return error_response(e)

    for item in snapshot["items"]:
        for key in STOCK_QTY_FIELDS:
            item[key] = to_number(item[key])
    return jsonify(snapshot), 200


@store_logs_bp.get("/store-entry/<int:entry_id>")
def logs_for_entry_route(entry_id: int):
    try:
        logs = store_log_service.list_logs_for_entry(entry_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify({"items": [log.to_dict() for log in logs], "count": len(logs)}), 200


@store_logs_bp.get("/<int:log_id>")
def get_store_log_route(log_id: int):
    try:
        log = store_log_service.get_store_log(log_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify({"store_log": log.to_dict()}), 200


@store_logs_bp.put("/<int:log_id>")
def update_store_log_route(log_id: int):
    """Partial update; items, when present, replace the whole item list."""
    data = request.get_json(silent=True) or {}

    try:
        log = store_log_service.update_store_log(log_id, items=data.get("items"), **_header(data))
        return jsonify({"store_log": log.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update store log %s", log_id)
        return jsonify({"error": "Internal server error"}), 500


@store_logs_bp.delete("/<int:log_id>")
def delete_store_log_route(log_id: int):
    try:
        store_log_service.delete_store_log(log_id)
        return jsonify({"message": "Store log deleted"}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete store log %s", log_id)
        return jsonify({"error": "Internal server error"}), 500
