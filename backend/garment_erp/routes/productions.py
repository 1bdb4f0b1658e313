# Overview: Flask API routes for production runs; parses input and returns JSON responses.

# backend/garment_erp/routes/productions.py
from flask import Blueprint, request, jsonify, current_app

from ..errors import HANDLED_ERRORS, error_response
from ..services import production_service
from ..validation import parse_int, parse_pagination


productions_bp = Blueprint("productions", __name__, url_prefix="/api/productions")


@productions_bp.get("")
def list_productions_route():
    """Query params: status, order_type, limit (1-500), offset."""
    limit, offset = parse_pagination(request.args)

    try:
        productions, total = production_service.list_productions(
            status=request.args.get("status"),
            order_type=request.args.get("order_type"),
            limit=limit,
            offset=offset,
        )
    except HANDLED_ERRORS as e:
        return error_response(e)

    return jsonify({
        "items": [p.to_dict(include_history=False) for p in productions],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@productions_bp.post("")
def create_production_route():
    """
    Manually start production.

    Body: {"order_id": int, "remarks"?: str}
    """
    data = request.get_json(silent=True) or {}

    try:
        order_id = parse_int(data.get("order_id"), "order_id", minimum=1)
        production = production_service.create_production(order_id, remarks=data.get("remarks"))
        return jsonify({"production": production.to_dict()}), 201
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create production")
        return jsonify({"error": "Internal server error"}), 500


@productions_bp.get("/<int:production_id>")
def get_production_route(production_id: int):
    try:
        production = production_service.get_production(production_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify({"production": production.to_dict()}), 200


@productions_bp.patch("/<int:production_id>/status")
def set_production_status_route(production_id: int):
    """Body: {"status": "<stage>", "notes"?: str}"""
    data = request.get_json(silent=True) or {}

    try:
        production = production_service.set_production_status(
            production_id, data.get("status"), notes=data.get("notes")
        )
        return jsonify({"production": production.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set status of production %s", production_id)
        return jsonify({"error": "Internal server error"}), 500


@productions_bp.post("/<int:production_id>/advance")
def advance_production_route(production_id: int):
    data = request.get_json(silent=True) or {}

    try:
        production = production_service.advance_production_status(production_id, notes=data.get("notes"))
        return jsonify({"production": production.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to advance production %s", production_id)
        return jsonify({"error": "Internal server error"}), 500
