# Overview: Flask API routes for credit and debit notes; parses input and returns JSON responses.

# backend/garment_erp/routes/notes.py
from flask import Blueprint, request, jsonify, current_app

from ..errors import HANDLED_ERRORS, error_response
from ..services import note_service
from ..validation import parse_pagination


notes_bp = Blueprint("notes", __name__, url_prefix="/api/notes")


@notes_bp.post("")
def create_note_route():
    """
    Create a credit or debit note; the number is issued by the server.

    Body: note_type, reference_type, reference_number | document_id, reason,
    party {name, ...}, items [{description, quantity, rate, ...}], note_date?,
    status? (draft | issued)
    """
    data = request.get_json(silent=True) or {}

    try:
        note = note_service.create_note(data)
        return jsonify({"note": note.to_dict()}), 201
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create note")
        return jsonify({"error": "Internal server error"}), 500


@notes_bp.get("")
def list_notes_route():
    """Query params: note_type, reference_number, party_name, status, start_date, end_date, limit, offset."""
    limit, offset = parse_pagination(request.args)

    try:
        notes, total = note_service.list_notes(
            note_type=request.args.get("note_type"),
            reference_number=request.args.get("reference_number"),
            party_name=request.args.get("party_name"),
            status=request.args.get("status"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            limit=limit,
            offset=offset,
        )
    except HANDLED_ERRORS as e:
        return error_response(e)

    return jsonify({
        "items": [n.to_dict(include_lines=False) for n in notes],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@notes_bp.get("/reference/<path:reference_number>")
def notes_for_reference_route(reference_number: str):
    """Notes against one reference with total credited, debited and the net adjustment."""
    try:
        return jsonify(note_service.notes_for_reference(reference_number)), 200
    except HANDLED_ERRORS as e:
        return error_response(e)


@notes_bp.get("/<int:note_id>")
def get_note_route(note_id: int):
    try:
        note = note_service.get_note(note_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify({"note": note.to_dict()}), 200


@notes_bp.patch("/<int:note_id>/status")
def update_note_status_route(note_id: int):
    """Body: {"status": "issued" | "cancelled"}."""
    data = request.get_json(silent=True) or {}

    try:
        note = note_service.update_note_status(note_id, data.get("status"))
        return jsonify({"note": note.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update status of note %s", note_id)
        return jsonify({"error": "Internal server error"}), 500


@notes_bp.delete("/<int:note_id>")
def cancel_note_route(note_id: int):
    """Cancel (soft delete) a note; its number stays on record."""
    try:
        note = note_service.cancel_note(note_id)
        return jsonify({"note": note.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel note %s", note_id)
        return jsonify({"error": "Internal server error"}), 500
