# Overview: Flask API routes for estimations, proformas and invoices; parses input and returns JSON responses.

# backend/garment_erp/routes/documents.py
from flask import Blueprint, request, jsonify, current_app

from ..errors import HANDLED_ERRORS, error_response
from ..services import document_service
from ..validation import parse_pagination


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


@documents_bp.post("")
def create_document_route():
    """
    Create an estimation, proforma or invoice.

    Body: document_type, customer {id | name, mobile, ...}, items [{product_id |
    product_name, quantity, unit_price, discount?, discount_type?, ...}],
    document_date?, due_date?, valid_until?, order_id?, transportation_charges?
    """
    data = request.get_json(silent=True) or {}

    try:
        document = document_service.create_document(data)
        return jsonify({"document": document.to_dict()}), 201
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create document")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.get("")
def list_documents_route():
    """Query params: document_type, status, customer, search, start_date, end_date, limit, offset."""
    limit, offset = parse_pagination(request.args)

    try:
        documents, total = document_service.list_documents(
            document_type=request.args.get("document_type"),
            status=request.args.get("status"),
            customer=request.args.get("customer"),
            search=request.args.get("search"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            limit=limit,
            offset=offset,
        )
    except HANDLED_ERRORS as e:
        return error_response(e)

    return jsonify({
        "items": [d.to_dict(include_lines=False) for d in documents],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@documents_bp.get("/<int:document_id>")
def get_document_route(document_id: int):
    try:
        document = document_service.get_document(document_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify({"document": document.to_dict()}), 200


@documents_bp.put("/<int:document_id>")
def update_document_route(document_id: int):
    data = request.get_json(silent=True) or {}

    try:
        document = document_service.update_document(document_id, data)
        return jsonify({"document": document.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update document %s", document_id)
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.patch("/<int:document_id>/status")
def set_document_status_route(document_id: int):
    """Body: {"status": "<status valid for the document type>"}."""
    data = request.get_json(silent=True) or {}

    try:
        document = document_service.set_document_status(document_id, data.get("status"))
        return jsonify({"document": document.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set status of document %s", document_id)
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.post("/<int:document_id>/convert")
def convert_document_route(document_id: int):
    """
    Convert into the next document type.

    Body: target_type (proforma | invoice), document_date?, due_date?,
    valid_until?, payment_terms?, remarks?
    """
    data = request.get_json(silent=True) or {}
    target_type = data.pop("target_type", None)

    try:
        document = document_service.convert_document(document_id, target_type, **data)
        return jsonify({"document": document.to_dict()}), 201
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to convert document %s", document_id)
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.post("/<int:document_id>/payments")
def add_payment_route(document_id: int):
    """Body: amount, payment_date?, method?, reference?, remarks? (invoices only)."""
    data = request.get_json(silent=True) or {}

    try:
        document = document_service.add_payment(document_id, data)
        return jsonify({"document": document.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add payment to document %s", document_id)
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.get("/<int:document_id>/history")
def conversion_history_route(document_id: int):
    try:
        return jsonify(document_service.conversion_history(document_id)), 200
    except HANDLED_ERRORS as e:
        return error_response(e)


@documents_bp.delete("/<int:document_id>")
def delete_document_route(document_id: int):
    try:
        document_service.delete_document(document_id)
        return jsonify({"message": "Document deleted"}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete document %s", document_id)
        return jsonify({"error": "Internal server error"}), 500
