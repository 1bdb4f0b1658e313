# Overview: Service-layer operations for purchases; placeholder creation, costing and completion.

"""
Purchase Service

LIFECYCLE:
1. Pending: placeholder written in the same transaction as its order
2. Partial: vendor items recorded, purchase still open
3. Completed: materials bought; the order moves to "Purchase Completed"
   and a production run is ensured for it

COSTING:
- item.total_cost = quantity * cost_per_unit (rounded to paise)
- total_<type>_cost = sum of item costs for fabric / trims / machine
- grand_total_cost = sum of all item costs
Derived on every write, never accepted from the client.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, Purchase, PurchaseItem, PurchaseProduct
from ..time_utils import utcnow
from ..validation import (
    MONEY_PLACES,
    NotFoundError,
    StateError,
    ValidationError,
    clean_str,
    parse_choice,
    parse_date_field,
    parse_money,
    parse_quantity,
    require_list,
    require_mapping,
)
from .concurrency import run_atomic
from .sequence_service import PURCHASE_SEQ, format_purchase_number, next_sequence
from .status_flow import ORDER_FLOW


STATUS_PENDING = "Pending"
STATUS_PARTIAL = "Partial"
STATUS_COMPLETED = "Completed"
PURCHASE_STATUSES = (STATUS_PENDING, STATUS_PARTIAL, STATUS_COMPLETED)

ITEM_TYPES = ("fabric", "trims", "machine")


def build_placeholder_purchase(order: Order) -> Purchase:
    """
    Create the empty Pending purchase for a freshly created order.

    Runs inside the caller's transaction and does not commit. Product lines
    are copied per size, so later edits to the order leave them intact.
    """
    serial = next_sequence(PURCHASE_SEQ)
    purchase = Purchase(
        serial_no=serial,
        pur_number=format_purchase_number(serial),
        order=order,
        order_number=order.order_number,
        order_type=order.order_type,
        buyer_code=order.buyer_code,
        buyer_name=order.buyer_name,
        purchase_date=order.order_date or utcnow(),
        status=STATUS_PENDING,
        total_qty=order.total_qty,
        total_fabric_cost=Decimal("0.00"),
        total_trims_cost=Decimal("0.00"),
        total_machine_cost=Decimal("0.00"),
        grand_total_cost=Decimal("0.00"),
        remarks=f"Pending purchase details for {order.order_type} order",
    )
    for line in order.lines:
        fabric_type = line.fabric_type
        if not fabric_type and order.order_type == "JOB-Works":
            fabric_type = "N/A"
        for size in line.sizes:
            purchase.products.append(
                PurchaseProduct(
                    product_name=line.product_name,
                    fabric_type=fabric_type,
                    color=line.color,
                    size=size.size,
                    quantity=size.qty,
                )
            )
    db.session.add(purchase)
    return purchase


def ensure_purchase_for_order(order_id: int) -> tuple[Purchase, bool]:
    """
    Idempotently make sure an order has its placeholder purchase.

    Returns:
        (purchase, created)
    """
    def _op():
        existing = db.session.query(Purchase).filter_by(order_id=order_id).first()
        if existing:
            return existing, False
        order = db.session.get(Order, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        purchase = build_placeholder_purchase(order)
        db.session.flush()
        return purchase, True

    try:
        purchase, created = run_atomic(_op)
    except IntegrityError:
        existing = db.session.query(Purchase).filter_by(order_id=order_id).first()
        if existing is None:
            raise
        current_app.logger.warning(
            "Purchase for order %s was created concurrently; using %s", order_id, existing.pur_number
        )
        return existing, False

    if created:
        current_app.logger.info("Created missing purchase %s for order %s", purchase.pur_number, order_id)
    return purchase, created


def get_purchase(purchase_id: int) -> Purchase:
    """
    Get a purchase by ID.

    Raises:
        NotFoundError: If not found
    """
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise NotFoundError(f"Purchase {purchase_id} not found")
    return purchase


def get_purchase_for_order(order_id: int) -> Purchase:
    purchase = db.session.query(Purchase).filter_by(order_id=order_id).first()
    if purchase is None:
        raise NotFoundError(f"No purchase for order {order_id}")
    return purchase


def list_purchases(
    *,
    status: str | None = None,
    order_type: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Purchase], int]:
    query = db.session.query(Purchase)
    if status:
        parse_choice(status, "status", PURCHASE_STATUSES)
        query = query.filter(Purchase.status == status)
    if order_type:
        query = query.filter(Purchase.order_type == order_type)

    total = query.count()
    purchases = query.order_by(Purchase.id.desc()).offset(offset).limit(limit).all()
    return purchases, total


def _parse_items(raw_items) -> list[dict]:
    parsed = []
    for index, raw in enumerate(require_list(raw_items, "items", allow_empty=True)):
        prefix = f"items[{index}]"
        raw = require_mapping(raw, prefix)
        quantity = parse_quantity(raw.get("quantity"), f"{prefix}.quantity", positive=True)
        cost_per_unit = parse_money(raw.get("cost_per_unit"), f"{prefix}.cost_per_unit")
        parsed.append(
            {
                "item_type": parse_choice(raw.get("item_type"), f"{prefix}.item_type", ITEM_TYPES),
                "item_name": clean_str(raw.get("item_name"), f"{prefix}.item_name", required=True, max_len=255),
                "vendor_name": clean_str(raw.get("vendor_name"), f"{prefix}.vendor_name", max_len=255),
                "vendor_code": clean_str(raw.get("vendor_code"), f"{prefix}.vendor_code", max_len=64),
                "unit": clean_str(raw.get("unit"), f"{prefix}.unit", max_len=16),
                "quantity": quantity,
                "cost_per_unit": cost_per_unit,
                "total_cost": (quantity * cost_per_unit).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP),
            }
        )
    return parsed


def recalculate_totals(purchase: Purchase) -> None:
    by_type = {item_type: Decimal("0.00") for item_type in ITEM_TYPES}
    for item in purchase.items:
        by_type[item.item_type] = by_type.get(item.item_type, Decimal("0.00")) + Decimal(item.total_cost)
    purchase.total_fabric_cost = by_type["fabric"]
    purchase.total_trims_cost = by_type["trims"]
    purchase.total_machine_cost = by_type["machine"]
    purchase.grand_total_cost = sum(by_type.values(), Decimal("0.00"))


def update_purchase(
    purchase_id: int,
    *,
    items=None,
    remarks: str | None = None,
    purchase_date=None,
) -> Purchase:
    """
    Replace the vendor items of a purchase and re-derive its totals.

    Args:
        items: full list of items, or None to leave items untouched
        remarks: new remarks (None leaves them unchanged)
        purchase_date: ISO-8601 date (None leaves it unchanged)

    Raises:
        NotFoundError: purchase missing
        ValidationError: malformed item
        StateError: emptying a completed purchase
    """
    parsed_items = _parse_items(items) if items is not None else None
    parsed_date = parse_date_field(purchase_date, "purchase_date")
    cleaned_remarks = clean_str(remarks, "remarks")

    def _op() -> Purchase:
        purchase = get_purchase(purchase_id)

        if parsed_items is not None:
            if not parsed_items and purchase.status == STATUS_COMPLETED:
                raise StateError("A completed purchase must keep at least one item")
            purchase.items.clear()
            for values in parsed_items:
                purchase.items.append(PurchaseItem(**values))
            recalculate_totals(purchase)
            if purchase.status != STATUS_COMPLETED:
                purchase.status = STATUS_PARTIAL if parsed_items else STATUS_PENDING

        if parsed_date is not None:
            purchase.purchase_date = parsed_date
        if cleaned_remarks is not None:
            purchase.remarks = cleaned_remarks
        return purchase

    return run_atomic(_op)


def complete_purchase(purchase_id: int):
    """
    Mark a purchase Completed and make sure its order has a production run.

    Completion is idempotent. The order status only moves forward to
    "Purchase Completed". The production spawn runs after the completion
    has committed; if it fails the purchase stays completed and the
    reconciliation report lists it.

    Returns:
        (purchase, production)

    Raises:
        NotFoundError: purchase missing
        ValidationError: purchase has no items
    """
    from .production_service import ensure_production_for_order

    def _op() -> Purchase:
        purchase = get_purchase(purchase_id)
        if purchase.status != STATUS_COMPLETED:
            if not purchase.items:
                raise ValidationError("Add at least one purchase item before completing", field="items")
            purchase.status = STATUS_COMPLETED
            purchase.completed_at = utcnow()
        order = purchase.order
        promoted = ORDER_FLOW.promote(order.status, "Purchase Completed")
        if promoted != order.status:
            order.status = promoted
        return purchase

    purchase = run_atomic(_op)
    production, _created = ensure_production_for_order(purchase.order_id)
    return purchase, production
