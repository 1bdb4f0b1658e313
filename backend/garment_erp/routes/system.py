# Overview: Flask API routes for service health; checks the database and the workflow links.

# backend/garment_erp/routes/system.py
"""
System health endpoint.

Reports database connectivity plus counts of the documents in the
order workflow, so an operator can spot a broken deployment at a glance.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Counter, Document, Note, Order, Purchase, PurchaseReturn, Production, StoreEntry, StoreLog
from ..services.reconciliation_service import find_workflow_gaps
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "orders": db.session.query(Order).count(),
            "purchases": db.session.query(Purchase).count(),
            "productions": db.session.query(Production).count(),
            "store_entries": db.session.query(StoreEntry).count(),
            "store_logs": db.session.query(StoreLog).count(),
            "purchase_returns": db.session.query(PurchaseReturn).count(),
            "documents": db.session.query(Document).count(),
            "notes": db.session.query(Note).count(),
            "counters": db.session.query(Counter).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_workflow_health() -> dict:
    """
    Orders missing a purchase or completed purchases missing a production
    degrade the status; `flask orders repair` fixes them.
    """
    start_time = time.time()
    try:
        gaps = find_workflow_gaps()
        elapsed_ms = (time.time() - start_time) * 1000
        missing_purchases = len(gaps["orders_without_purchase"])
        missing_productions = len(gaps["completed_purchases_without_production"])
        details = {
            "orders_without_purchase": missing_purchases,
            "completed_purchases_without_production": missing_productions,
        }
        if missing_purchases or missing_productions:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "Workflow gaps found; run `flask orders repair`",
                "details": details,
            }
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Workflow health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Workflow check error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    workflow_health = check_workflow_health()

    all_checks = [database_health, workflow_health]
    unhealthy_count = sum(1 for check in all_checks if check["status"] == "unhealthy")
    degraded_count = sum(1 for check in all_checks if check["status"] == "degraded")

    if unhealthy_count > 0:
        overall_status = "unhealthy"
        http_status = 503
    elif degraded_count > 0:
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "workflow": workflow_health,
        }
    }

    return response, http_status
