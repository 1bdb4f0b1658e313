# Overview: Flask API routes for document number previews; never issues a number.

# backend/garment_erp/routes/sequences.py
from flask import Blueprint, request, jsonify, current_app

from ..errors import HANDLED_ERRORS, error_response
from ..services import sequence_service


sequences_bp = Blueprint("sequences", __name__, url_prefix="/api/sequences")


@sequences_bp.get("/<key>/next")
def peek_next_route(key: str):
    """
    Next value of a raw counter, e.g. /api/sequences/globalOrderSeq/next.

    Preview only: the number is not reserved.
    """
    try:
        next_value = sequence_service.peek_sequence(key)
        return jsonify({"key": key, "next": next_value, "reserved": False}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to preview counter %s", key)
        return jsonify({"error": "Internal server error"}), 500


@sequences_bp.get("/preview/<doc_type>")
def preview_document_route(doc_type: str):
    """
    Formatted next document number.

    Query params:
    - order_type: required for doc_type=order_serial
    - fy: optional for doc_type=po (defaults to the current financial year)
    - year: optional for estimation, proforma, invoice, credit_note and
      debit_note (defaults to the current calendar year)
    """
    params = {}
    if request.args.get("order_type"):
        params["order_type"] = request.args["order_type"]
    if request.args.get("fy"):
        params["fy"] = request.args["fy"]
    if request.args.get("year"):
        params["year"] = request.args["year"]

    try:
        return jsonify(sequence_service.preview_document_number(doc_type, **params)), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to preview %s number", doc_type)
        return jsonify({"error": "Internal server error"}), 500
