# Overview: Translation of domain and database exceptions into JSON error responses.

from __future__ import annotations

from flask import current_app, jsonify
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.exceptions import HTTPException

from .services.sequence_service import SequenceError
from .validation import ConflictError, NotFoundError, StateError, ValidationError


DOMAIN_ERRORS = (ValidationError, ConflictError, StateError, NotFoundError, SequenceError)
# Still failing after run_with_retry gave up: "try again later"
TRANSIENT_ERRORS = (OperationalError, StaleDataError)
HANDLED_ERRORS = DOMAIN_ERRORS + TRANSIENT_ERRORS


def error_response(exc: Exception):
    """(json, status) for a handled exception."""
    if isinstance(exc, TRANSIENT_ERRORS):
        current_app.logger.warning("Database busy after retries: %s", exc.__class__.__name__)
        return jsonify({"error": "Database is busy, try again later", "retryable": True}), 503
    return jsonify(exc.to_dict()), exc.status_code


def register_error_handlers(app) -> None:
    for exc_class in HANDLED_ERRORS:
        app.register_error_handler(exc_class, error_response)

    @app.errorhandler(HTTPException)
    def http_error(exc: HTTPException):
        return jsonify({"error": exc.description or exc.name}), exc.code
