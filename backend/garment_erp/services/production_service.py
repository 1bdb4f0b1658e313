# Overview: Service-layer operations for production runs; idempotent spawn and stage history.

"""
Production Service

SPAWN (exactly one production per order):
- check for an existing production, then insert
- the unique constraint on productions.order_id turns a concurrent
  duplicate into an IntegrityError; that is rolled back and answered
  with the row the other writer created (idempotent success)

STAGES:
    Pending Production -> Cutting -> Stitching -> Trimming -> QC ->
    Ironing -> Packing -> Completed

Every stage change appends a ProductionStageEvent; events are never
edited and their timestamps never go backwards. Order status follows
forward only: "Pending Production" on spawn, "In Production" once a
stage starts, "Production Completed" at the end.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, Production, ProductionStageEvent, Purchase
from ..time_utils import to_naive_utc, utcnow
from ..validation import ConflictError, NotFoundError, StateError, clean_str
from .concurrency import run_atomic
from .sequence_service import PRODUCTION_SEQ, format_production_number, next_sequence
from .status_flow import ORDER_FLOW, PRODUCTION_FLOW


STAGE_PENDING = "Pending Production"
STAGE_COMPLETED = "Completed"

EVENT_PENDING = "Pending"
EVENT_IN_PROGRESS = "In Progress"
EVENT_COMPLETED = "Completed"

# Order types that may start production before their purchase is completed
MANUAL_START_TYPES = {"JOB-Works", "Own-Orders"}


def _event_status(stage: str) -> str:
    if stage == STAGE_PENDING:
        return EVENT_PENDING
    if stage == STAGE_COMPLETED:
        return EVENT_COMPLETED
    return EVENT_IN_PROGRESS


def _append_event(production: Production, stage: str, notes: str | None) -> ProductionStageEvent:
    occurred_at = utcnow()
    if production.history:
        last = to_naive_utc(production.history[-1].occurred_at)
        if last is not None and last > occurred_at:
            occurred_at = last
    event = ProductionStageEvent(
        stage=stage,
        status=_event_status(stage),
        occurred_at=occurred_at,
        notes=notes,
    )
    production.history.append(event)
    return event


def _sync_order_status(order: Order, stage: str) -> None:
    if stage == STAGE_COMPLETED:
        target = "Production Completed"
    elif stage == STAGE_PENDING:
        target = "Pending Production"
    else:
        target = "In Production"
    promoted = ORDER_FLOW.promote(order.status, target)
    if promoted != order.status:
        order.status = promoted


def _build_production(order: Order, purchase: Purchase | None, remarks: str | None = None) -> Production:
    serial = next_sequence(PRODUCTION_SEQ)
    production = Production(
        serial_no=serial,
        production_number=format_production_number(serial),
        order=order,
        purchase=purchase,
        order_number=order.order_number,
        order_type=order.order_type,
        buyer_code=order.buyer_code,
        buyer_name=order.buyer_name,
        total_qty=order.total_qty,
        status=STAGE_PENDING,
        remarks=remarks,
    )
    _append_event(production, STAGE_PENDING, "Production created")
    _sync_order_status(order, STAGE_PENDING)
    db.session.add(production)
    return production


def _find_for_order(order_id: int) -> Production | None:
    return db.session.query(Production).filter_by(order_id=order_id).first()


def ensure_production_for_order(order_id: int) -> tuple[Production, bool]:
    """
    Make sure exactly one production exists for an order.

    Safe to call any number of times, concurrently.

    Returns:
        (production, created)

    Raises:
        NotFoundError: order missing
    """
    def _op():
        existing = _find_for_order(order_id)
        if existing:
            return existing, False
        order = db.session.get(Order, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        production = _build_production(order, order.purchase)
        db.session.flush()
        return production, True

    try:
        production, created = run_atomic(_op)
    except IntegrityError:
        existing = _find_for_order(order_id)
        if existing is None:
            raise
        current_app.logger.warning(
            "Production for order %s already exists (%s); treating spawn as done",
            order_id,
            existing.production_number,
        )
        return existing, False

    if created:
        current_app.logger.info(
            "Spawned production %s for order %s", production.production_number, order_id
        )
    return production, created


def create_production(order_id: int, *, remarks: str | None = None) -> Production:
    """
    Manually start production for an order.

    JOB-Works and Own-Orders may start at any time; FOB orders only after
    their purchase is completed.

    Raises:
        NotFoundError: order missing
        ConflictError: order already has a production
        StateError: FOB order whose purchase is not completed
    """
    cleaned_remarks = clean_str(remarks, "remarks")

    def _op() -> Production:
        order = db.session.get(Order, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        if _find_for_order(order_id):
            raise ConflictError(f"Production already exists for order {order.order_number}")
        purchase = order.purchase
        if order.order_type not in MANUAL_START_TYPES:
            if purchase is None or purchase.status != "Completed":
                raise StateError(
                    f"{order.order_type} order {order.order_number} needs a completed purchase before production"
                )
        production = _build_production(order, purchase, cleaned_remarks)
        db.session.flush()
        return production

    try:
        production = run_atomic(_op)
    except IntegrityError:
        raise ConflictError(f"Production already exists for order {order_id}")

    current_app.logger.info("Created production %s for order %s", production.production_number, order_id)
    return production


def get_production(production_id: int) -> Production:
    production = db.session.get(Production, production_id)
    if production is None:
        raise NotFoundError(f"Production {production_id} not found")
    return production


def get_production_for_order(order_id: int) -> Production:
    production = _find_for_order(order_id)
    if production is None:
        raise NotFoundError(f"No production for order {order_id}")
    return production


def list_productions(
    *,
    status: str | None = None,
    order_type: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Production], int]:
    query = db.session.query(Production)
    if status:
        PRODUCTION_FLOW.validate(status)
        query = query.filter(Production.status == status)
    if order_type:
        query = query.filter(Production.order_type == order_type)

    total = query.count()
    productions = query.order_by(Production.id.desc()).offset(offset).limit(limit).all()
    return productions, total


def _move_to(production: Production, status: str, notes: str | None) -> Production:
    if production.status == status:
        return production
    production.status = status
    production.completed_at = utcnow() if status == STAGE_COMPLETED else None
    _append_event(production, status, notes)
    _sync_order_status(production.order, status)
    return production


def set_production_status(production_id: int, status: str, *, notes: str | None = None) -> Production:
    """
    Move a production to any stage of its flow.

    Setting the current stage again is a no-op. With STRICT_STATUS_PROGRESSION
    enabled, backwards moves raise StateError.

    Raises:
        NotFoundError, ValidationError (unknown stage), StateError
    """
    PRODUCTION_FLOW.validate(status)
    cleaned_notes = clean_str(notes, "notes")
    strict = current_app.config.get("STRICT_STATUS_PROGRESSION", False)

    def _op() -> Production:
        production = get_production(production_id)
        PRODUCTION_FLOW.check_transition(production.status, status, strict=strict)
        return _move_to(production, status, cleaned_notes)

    return run_atomic(_op)


def advance_production_status(production_id: int, *, notes: str | None = None) -> Production:
    """
    Move a production exactly one stage forward.

    Raises:
        StateError: already Completed
    """
    cleaned_notes = clean_str(notes, "notes")

    def _op() -> Production:
        production = get_production(production_id)
        return _move_to(production, PRODUCTION_FLOW.next_status(production.status), cleaned_notes)

    return run_atomic(_op)


def find_completed_purchases_without_production() -> list[Purchase]:
    return (
        db.session.query(Purchase)
        .outerjoin(Production, Production.order_id == Purchase.order_id)
        .filter(Purchase.status == "Completed", Production.id.is_(None))
        .order_by(Purchase.id)
        .all()
    )
