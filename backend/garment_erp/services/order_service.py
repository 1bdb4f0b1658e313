# Overview: Service-layer operations for orders; buyer/product resolution, numbering and status.

"""
Order Service

CREATION (one transaction, retried on lock timeouts):
1. Resolve or create the buyer (new buyers get BUY### codes)
2. Resolve or create each ordered product by id or name
3. Issue order numbers: globalOrderSeq, orderSeq_<TYPE>, poSeq_<FY>
4. Persist the order and its lines with the derived total_qty
5. Write the Pending placeholder purchase (product lines copied)
6. Commit once

Any failure rolls everything back, numbers included. Orders left without
a purchase by earlier data (imports, manual SQL) are reported by
find_orders_without_purchase() and repaired by
purchase_service.ensure_purchase_for_order().

INVARIANT: order.total_qty == sum of every size qty over every line,
after creation and after every line update.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Buyer, Order, OrderLine, OrderLineSize, Product, Purchase
from ..time_utils import financial_year, utcnow
from ..validation import (
    NotFoundError,
    ValidationError,
    clean_str,
    parse_choice,
    parse_date_field,
    parse_int,
    require_list,
    require_mapping,
)
from .concurrency import run_atomic
from .purchase_service import build_placeholder_purchase
from .sequence_service import (
    BUYER_SEQ,
    GLOBAL_ORDER_SEQ,
    ORDER_TYPES,
    format_buyer_code,
    format_order_number,
    format_po_number,
    next_sequence,
    order_type_key,
    po_key,
)
from .status_flow import ORDER_FLOW, ORDER_STATUSES


def _name_key(name: str) -> str:
    return " ".join(name.split()).lower()


# =============================================================================
# Payload parsing
# =============================================================================

def parse_buyer_spec(raw, field: str = "buyer") -> dict:
    raw = require_mapping(raw if raw is not None else {}, field)
    buyer_id = raw.get("id")
    if buyer_id is not None:
        return {"id": parse_int(buyer_id, f"{field}.id", minimum=1)}
    return {
        "name": clean_str(raw.get("name"), f"{field}.name", required=True, max_len=255),
        "mobile": clean_str(raw.get("mobile"), f"{field}.mobile", required=True, max_len=32),
        "gst": clean_str(raw.get("gst"), f"{field}.gst", max_len=32),
        "email": clean_str(raw.get("email"), f"{field}.email", max_len=255),
        "address": clean_str(raw.get("address"), f"{field}.address"),
    }


def _parse_lines(raw_products) -> list[dict]:
    lines = []
    for index, raw in enumerate(require_list(raw_products, "products")):
        prefix = f"products[{index}]"
        raw = require_mapping(raw, prefix)

        product_ref = raw.get("product") if isinstance(raw.get("product"), dict) else {}
        product_id = raw.get("product_id", product_ref.get("id"))
        product_name = raw.get("product_name", product_ref.get("name"))

        line = {
            "product_id": parse_int(product_id, f"{prefix}.product_id", minimum=1, required=False),
            "product_name": clean_str(product_name, f"{prefix}.product_name", max_len=255),
            "hsn": clean_str(raw.get("hsn", product_ref.get("hsn")), f"{prefix}.hsn", max_len=32),
            "style": clean_str(raw.get("style"), f"{prefix}.style", max_len=128),
            "color": clean_str(raw.get("color"), f"{prefix}.color", max_len=64),
            "fabric_type": clean_str(raw.get("fabric_type"), f"{prefix}.fabric_type", max_len=128),
            "sizes": [],
        }
        if line["product_id"] is None and line["product_name"] is None:
            raise ValidationError(f"{prefix} needs a product_id or product_name", field=f"{prefix}.product_name")

        seen_sizes = set()
        for size_index, raw_size in enumerate(require_list(raw.get("sizes"), f"{prefix}.sizes")):
            size_prefix = f"{prefix}.sizes[{size_index}]"
            raw_size = require_mapping(raw_size, size_prefix)
            size = clean_str(raw_size.get("size"), f"{size_prefix}.size", required=True, max_len=16)
            if size in seen_sizes:
                raise ValidationError(f"Size '{size}' listed twice in {prefix}", field=f"{size_prefix}.size")
            seen_sizes.add(size)
            qty = parse_int(raw_size.get("qty"), f"{size_prefix}.qty", minimum=1)
            line["sizes"].append({"size": size, "qty": qty})
        lines.append(line)
    return lines


# =============================================================================
# Resolution helpers (run inside the creating transaction)
# =============================================================================

def resolve_buyer(spec: dict) -> Buyer:
    """Existing buyer by id, or by mobile plus name (any case); otherwise a new BUY### buyer."""
    if "id" in spec:
        buyer = db.session.get(Buyer, spec["id"])
        if buyer is None:
            raise NotFoundError(f"Buyer {spec['id']} not found")
        return buyer

    existing = (
        db.session.query(Buyer)
        .filter(Buyer.mobile == spec["mobile"], func.lower(Buyer.name) == spec["name"].lower())
        .first()
    )
    if existing:
        return existing

    code = format_buyer_code(next_sequence(BUYER_SEQ))
    buyer = Buyer(code=code, total_orders=0, **spec)
    db.session.add(buyer)
    current_app.logger.info("Created buyer %s (%s)", code, spec["name"])
    return buyer


def _resolve_product(line: dict) -> Product:
    if line["product_id"] is not None:
        product = db.session.get(Product, line["product_id"])
        if product is None:
            raise ValidationError(f"Product {line['product_id']} not found", field="products")
        return product

    key = _name_key(line["product_name"])
    product = db.session.query(Product).filter_by(name_key=key).first()
    if product is None:
        product = Product(
            name=line["product_name"],
            name_key=key,
            hsn=line["hsn"],
            total_orders=0,
            total_quantity_ordered=0,
        )
        db.session.add(product)
        db.session.flush()
    return product


def _resolve_products(parsed_lines: list[dict]) -> list[Product]:
    # May flush new products; call before a pending order joins the buyer or session graph
    return [_resolve_product(spec) for spec in parsed_lines]


def _build_lines(order: Order, parsed_lines: list[dict], products: list[Product]) -> None:
    for spec, product in zip(parsed_lines, products):
        line = OrderLine(
            product=product,
            product_name=product.name,
            style=spec["style"],
            color=spec["color"],
            fabric_type=spec["fabric_type"],
        )
        for size in spec["sizes"]:
            line.sizes.append(OrderLineSize(size=size["size"], qty=size["qty"]))
        order.lines.append(line)


def recalculate_totals(order: Order) -> None:
    """Re-derive line and order quantities from the size rows."""
    total = 0
    for line in order.lines:
        line.total_qty = sum(size.qty for size in line.sizes)
        total += line.total_qty
    order.total_qty = total


def _tally_products(lines, sign: int, now=None) -> None:
    """Add (sign=1) or remove (sign=-1) the lines' share of the product counters."""
    for line in lines:
        product = line.product
        if product is None:
            continue
        product.total_orders = max(0, (product.total_orders or 0) + sign)
        product.total_quantity_ordered = max(
            0, (product.total_quantity_ordered or 0) + sign * (line.total_qty or 0)
        )
        if sign > 0 and now is not None:
            product.last_ordered_date = now


# =============================================================================
# Operations
# =============================================================================

def create_order(payload: dict) -> Order:
    """
    Create an order with its placeholder purchase in one transaction.

    Payload:
        order_type: FOB | JOB-Works | Own-Orders (required)
        order_date: ISO-8601 (defaults to now)
        buyer: {"id": ..} or {"name", "mobile", "gst", "email", "address"}
        products: [{product_id | product_name, hsn, style, color,
                    fabric_type, sizes: [{size, qty >= 1}]}] (at least one)
        remarks: optional

    Raises:
        ValidationError: malformed payload
        NotFoundError: unknown buyer id
        SequenceError: a number could not be issued
    """
    payload = require_mapping(payload, "body")
    order_type = parse_choice(payload.get("order_type"), "order_type", ORDER_TYPES)
    order_date = parse_date_field(payload.get("order_date"), "order_date") or utcnow()
    buyer_spec = parse_buyer_spec(payload.get("buyer"))
    parsed_lines = _parse_lines(payload.get("products"))
    remarks = clean_str(payload.get("remarks"), "remarks")

    def _op() -> Order:
        buyer = resolve_buyer(buyer_spec)
        products = _resolve_products(parsed_lines)

        global_seq = next_sequence(GLOBAL_ORDER_SEQ)
        type_seq = next_sequence(order_type_key(order_type))
        fy = financial_year(order_date)
        po_seq = next_sequence(po_key(fy))

        order = Order(
            order_number=format_order_number(global_seq),
            serial_no=type_seq,
            po_number=format_po_number(po_seq, fy),
            order_type=order_type,
            order_date=order_date,
            buyer=buyer,
            buyer_name=buyer.name,
            buyer_code=buyer.code,
            buyer_mobile=buyer.mobile,
            status=ORDER_STATUSES[0],
            remarks=remarks,
        )
        _build_lines(order, parsed_lines, products)
        recalculate_totals(order)
        db.session.add(order)

        now = utcnow()
        buyer.total_orders = (buyer.total_orders or 0) + 1
        buyer.last_order_date = now
        _tally_products(order.lines, 1, now)

        build_placeholder_purchase(order)
        db.session.flush()
        return order

    try:
        order = run_atomic(_op)
    except IntegrityError:
        # A concurrent request created the same buyer or product; resolve again
        current_app.logger.warning("Order creation raced on buyer/product creation; retrying once")
        order = run_atomic(_op)

    current_app.logger.info(
        "Created order %s (%s) with purchase %s",
        order.order_number,
        order.po_number,
        order.purchase.pur_number,
    )
    return order


def get_order(order_id: int) -> Order:
    """
    Get an order by ID.

    Raises:
        NotFoundError: If not found
    """
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(
    *,
    order_type: str | None = None,
    status: str | None = None,
    buyer: str | None = None,
    po_number: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Order], int]:
    """
    List orders, newest first.

    ``buyer`` matches buyer name or code (case-insensitive substring);
    ``po_number`` is a substring match.
    """
    query = db.session.query(Order)
    if order_type:
        parse_choice(order_type, "order_type", ORDER_TYPES)
        query = query.filter(Order.order_type == order_type)
    if status:
        ORDER_FLOW.validate(status)
        query = query.filter(Order.status == status)
    if buyer:
        pattern = f"%{buyer.strip().lower()}%"
        query = query.filter(
            or_(func.lower(Order.buyer_name).like(pattern), func.lower(Order.buyer_code).like(pattern))
        )
    if po_number:
        query = query.filter(Order.po_number.like(f"%{po_number.strip()}%"))

    total = query.count()
    orders = query.order_by(Order.id.desc()).offset(offset).limit(limit).all()
    return orders, total


def update_order(order_id: int, payload: dict) -> Order:
    """
    Update an order's date, remarks, lines and/or status.

    Numbers, order type and buyer are fixed at creation. Replacing lines
    re-derives total_qty; the purchase keeps its own copy of the lines.
    """
    payload = require_mapping(payload, "body")
    for fixed in ("order_type", "order_number", "po_number", "serial_no", "buyer"):
        if fixed in payload:
            raise ValidationError(f"{fixed} cannot be changed after creation", field=fixed)

    order_date = parse_date_field(payload.get("order_date"), "order_date")
    parsed_lines = _parse_lines(payload["products"]) if "products" in payload else None
    remarks = clean_str(payload.get("remarks"), "remarks")
    status = payload.get("status")
    if status is not None:
        ORDER_FLOW.validate(status)
    strict = current_app.config.get("STRICT_STATUS_PROGRESSION", False)

    def _op() -> Order:
        order = get_order(order_id)
        if order_date is not None:
            order.order_date = order_date
        if remarks is not None:
            order.remarks = remarks
        if parsed_lines is not None:
            products = _resolve_products(parsed_lines)
            _tally_products(order.lines, -1)
            order.lines.clear()
            _build_lines(order, parsed_lines, products)
            recalculate_totals(order)
            _tally_products(order.lines, 1, utcnow())
        if status is not None and status != order.status:
            ORDER_FLOW.check_transition(order.status, status, strict=strict)
            order.status = status
        db.session.flush()
        return order

    try:
        return run_atomic(_op)
    except IntegrityError:
        current_app.logger.warning("Order update raced on product creation; retrying once")
        return run_atomic(_op)


def set_order_status(order_id: int, status: str) -> Order:
    """
    Set an order to any member of the order flow.

    Raises:
        ValidationError: unknown status
        StateError: backwards move while STRICT_STATUS_PROGRESSION is on
    """
    ORDER_FLOW.validate(status)
    strict = current_app.config.get("STRICT_STATUS_PROGRESSION", False)

    def _op() -> Order:
        order = get_order(order_id)
        ORDER_FLOW.check_transition(order.status, status, strict=strict)
        order.status = status
        return order

    return run_atomic(_op)


def advance_order_status(order_id: int) -> Order:
    """
    Move an order exactly one stage forward.

    Raises:
        StateError: order already Completed
    """
    def _op() -> Order:
        order = get_order(order_id)
        order.status = ORDER_FLOW.next_status(order.status)
        return order

    return run_atomic(_op)


def delete_order(order_id: int) -> None:
    """Delete an order with its purchase, production, store entries and store logs."""
    def _op() -> str:
        order = get_order(order_id)
        number = order.order_number
        if order.buyer and order.buyer.total_orders:
            order.buyer.total_orders -= 1
        _tally_products(order.lines, -1)
        db.session.delete(order)
        return number

    number = run_atomic(_op)
    current_app.logger.info("Deleted order %s and its dependent documents", number)


def find_orders_without_purchase() -> list[Order]:
    return (
        db.session.query(Order)
        .outerjoin(Purchase, Purchase.order_id == Order.id)
        .filter(Purchase.id.is_(None))
        .order_by(Order.id)
        .all()
    )
