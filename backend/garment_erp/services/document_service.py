# Overview: Service-layer operations for estimations, proformas and invoices; pricing, status, payments and conversion.

"""
Document Service

TYPES AND NUMBERS:
- estimation "EST-<year>-0001", proforma "PRO-<year>-0001", invoice
  "INV-<year>-0001"; one counter per type and calendar year, issued in
  the creating transaction like every other document number

PRICING (tax is out of scope; amounts are before GST):
- line subtotal = quantity * unit_price
- line discount = subtotal * discount / 100 (percentage) or discount (amount)
- line_total = line subtotal - line discount
- subtotal = sum of line subtotals, total_discount = sum of line discounts
- grand_total = subtotal - total_discount + transportation_charges
- balance_amount = grand_total - amount_paid
Derived on every write, never accepted from the client.

CONVERSION:
- estimation -> proforma or invoice, proforma -> invoice
- a source converts at most once into each target type
- the new document copies customer, lines and charges, links back through
  original_document_id and gets its own number
- a Draft or Sent source becomes Converted

PAYMENTS: invoices only; Partially Paid until the balance reaches zero,
then Paid.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Document, DocumentLine, DocumentPayment, Order, Product
from ..time_utils import to_utc_z, utcnow
from ..validation import (
    MONEY_PLACES,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
    clean_str,
    parse_choice,
    parse_date_field,
    parse_int,
    parse_money,
    require_list,
    require_mapping,
    to_number,
)
from .concurrency import run_atomic
from .order_service import parse_buyer_spec, resolve_buyer
from .sequence_service import DOCUMENT_TYPES, document_key, format_document_number, next_sequence


STATUS_DRAFT = "Draft"
STATUS_SENT = "Sent"
STATUS_CONVERTED = "Converted"
STATUS_CANCELLED = "Cancelled"
STATUS_PAID = "Paid"
STATUS_PARTIALLY_PAID = "Partially Paid"

STATUSES_BY_TYPE = {
    "estimation": (
        "Draft", "Sent", "Viewed", "Under Review", "Approved", "Rejected", "Expired", "Cancelled", "Converted",
    ),
    "proforma": ("Draft", "Sent", "Viewed", "Accepted", "Rejected", "Expired", "Cancelled", "Converted"),
    "invoice": ("Draft", "Sent", "Viewed", "Partially Paid", "Paid", "Overdue", "Cancelled"),
}
CONVERSIONS = {"estimation": ("proforma", "invoice"), "proforma": ("invoice",), "invoice": ()}

# Reached only through convert_document / add_payment
SYSTEM_STATUSES = (STATUS_CONVERTED, STATUS_PARTIALLY_PAID, STATUS_PAID)
TERMINAL_STATUSES = (STATUS_CANCELLED, STATUS_CONVERTED, STATUS_PAID)
# No conversion out of these
DEAD_STATUSES = (STATUS_CANCELLED, "Rejected", "Expired")

DISCOUNT_TYPES = ("percentage", "amount")
DEFAULT_TERM_DAYS = 30
DEFAULT_PAYMENT_TERMS = "Net 30"


def _money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


# =============================================================================
# Payload parsing
# =============================================================================

def _parse_lines(raw_items) -> list[dict]:
    lines = []
    for index, raw in enumerate(require_list(raw_items, "items")):
        prefix = f"items[{index}]"
        raw = require_mapping(raw, prefix)
        product_id = parse_int(raw.get("product_id"), f"{prefix}.product_id", minimum=1, required=False)
        product_name = clean_str(raw.get("product_name"), f"{prefix}.product_name", max_len=255)
        if product_id is None and product_name is None:
            raise ValidationError(f"{prefix} needs a product_id or product_name", field=f"{prefix}.product_name")

        quantity = parse_int(raw.get("quantity"), f"{prefix}.quantity", minimum=1)
        unit_price = parse_money(raw.get("unit_price"), f"{prefix}.unit_price", default=None)
        discount = parse_money(raw.get("discount"), f"{prefix}.discount")
        discount_type = parse_choice(
            raw.get("discount_type") or "percentage", f"{prefix}.discount_type", DISCOUNT_TYPES
        )
        gross = _money(quantity * unit_price)
        if discount_type == "percentage":
            if discount > 100:
                raise ValidationError(f"{prefix}.discount cannot exceed 100%", field=f"{prefix}.discount")
            discount_amount = _money(gross * discount / 100)
        else:
            if discount > gross:
                raise ValidationError(
                    f"{prefix}.discount cannot exceed the line amount ({gross})", field=f"{prefix}.discount"
                )
            discount_amount = discount

        lines.append(
            {
                "product_id": product_id,
                "product_name": product_name,
                "description": clean_str(raw.get("description"), f"{prefix}.description"),
                "hsn": clean_str(raw.get("hsn"), f"{prefix}.hsn", max_len=32),
                "color": clean_str(raw.get("color"), f"{prefix}.color", max_len=64),
                "size": clean_str(raw.get("size"), f"{prefix}.size", max_len=16),
                "quantity": quantity,
                "unit_price": unit_price,
                "discount": discount,
                "discount_type": discount_type,
                "gross": gross,
                "discount_amount": discount_amount,
            }
        )
    return lines


def _parse_header(payload: dict) -> dict:
    header = {}
    for name in ("document_date", "due_date", "valid_until"):
        if name in payload:
            header[name] = parse_date_field(payload[name], name)
    for name, max_len in (("place_of_supply", 64), ("payment_terms", 64)):
        if name in payload:
            header[name] = clean_str(payload[name], name, max_len=max_len)
    if "remarks" in payload:
        header["remarks"] = clean_str(payload["remarks"], "remarks")
    if "transportation_charges" in payload:
        header["transportation_charges"] = parse_money(payload["transportation_charges"], "transportation_charges")
    if payload.get("order_id") is not None:
        header["order_id"] = parse_int(payload["order_id"], "order_id", minimum=1)
    return header


def _customer_snapshot(raw) -> dict:
    raw = raw if isinstance(raw, dict) else {}
    return {
        "customer_company": clean_str(raw.get("company"), "customer.company", max_len=255),
    }


# =============================================================================
# Building blocks (run inside the caller's transaction)
# =============================================================================

def _resolve_products(parsed_lines: list[dict]) -> list[Product | None]:
    products = []
    for spec in parsed_lines:
        product = None
        if spec["product_id"] is not None:
            product = db.session.get(Product, spec["product_id"])
            if product is None:
                raise ValidationError(f"Product {spec['product_id']} not found", field="items")
        products.append(product)
    return products


def _apply_lines(document: Document, parsed_lines: list[dict], products: list[Product | None]) -> None:
    for spec, product in zip(parsed_lines, products):
        product_name = spec["product_name"]
        hsn = spec["hsn"]
        if product is not None:
            product_name = product_name or product.name
            hsn = hsn or product.hsn
        document.lines.append(
            DocumentLine(
                product_id=spec["product_id"],
                product_name=product_name,
                description=spec["description"],
                hsn=hsn,
                color=spec["color"],
                size=spec["size"],
                quantity=spec["quantity"],
                unit_price=spec["unit_price"],
                discount=spec["discount"],
                discount_type=spec["discount_type"],
                line_total=spec["gross"] - spec["discount_amount"],
            )
        )


def _line_discount(line: DocumentLine) -> Decimal:
    gross = _money(line.quantity * Decimal(line.unit_price))
    if line.discount_type == "percentage":
        return _money(gross * Decimal(line.discount) / 100)
    return Decimal(line.discount)


def recalculate_totals(document: Document) -> None:
    """Re-derive line totals, document totals and the open balance."""
    subtotal = Decimal("0.00")
    total_discount = Decimal("0.00")
    for line in document.lines:
        gross = _money(line.quantity * Decimal(line.unit_price))
        discount = _line_discount(line)
        line.line_total = gross - discount
        subtotal += gross
        total_discount += discount
    document.subtotal = subtotal
    document.total_discount = total_discount
    document.grand_total = subtotal - total_discount + Decimal(document.transportation_charges or 0)
    document.balance_amount = document.grand_total - Decimal(document.amount_paid or 0)


def _get_order(order_id: int | None) -> Order | None:
    if order_id is None:
        return None
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def _issue_number(document_type: str, document_date) -> tuple[int, str]:
    year = document_date.year
    serial = next_sequence(document_key(document_type, year))
    return serial, format_document_number(document_type, serial, year)


def _apply_type_defaults(document: Document) -> None:
    base = document.document_date or utcnow()
    if document.document_type == "invoice":
        document.due_date = document.due_date or base + timedelta(days=DEFAULT_TERM_DAYS)
        document.payment_terms = document.payment_terms or DEFAULT_PAYMENT_TERMS
    else:
        document.valid_until = document.valid_until or base + timedelta(days=DEFAULT_TERM_DAYS)


# =============================================================================
# Operations
# =============================================================================

def create_document(payload: dict) -> Document:
    """
    Create an estimation, proforma or invoice as a Draft.

    Payload:
        document_type: estimation | proforma | invoice (required)
        customer: {"id": ..} or {"name", "mobile", "gst", "email",
                  "address", "company"}; unknown customers become buyers
        items: [{product_id | product_name, description, hsn, color, size,
                 quantity >= 1, unit_price, discount, discount_type}]
        document_date, due_date, valid_until, order_id, place_of_supply,
        payment_terms, transportation_charges, remarks: optional

    Raises:
        ValidationError: malformed payload
        NotFoundError: unknown customer or order
        SequenceError: the number could not be issued
    """
    payload = require_mapping(payload, "body")
    document_type = parse_choice(payload.get("document_type"), "document_type", DOCUMENT_TYPES)
    customer_spec = parse_buyer_spec(payload.get("customer"), "customer")
    snapshot = _customer_snapshot(payload.get("customer"))
    parsed_lines = _parse_lines(payload.get("items"))
    header = _parse_header(payload)
    order_id = header.pop("order_id", None)
    if header.get("document_date") is None:
        header["document_date"] = utcnow()
    header.setdefault("transportation_charges", Decimal("0.00"))

    def _op() -> Document:
        buyer = resolve_buyer(customer_spec)
        order = _get_order(order_id)
        products = _resolve_products(parsed_lines)
        serial, number = _issue_number(document_type, header["document_date"])
        document = Document(
            serial_no=serial,
            document_number=number,
            document_type=document_type,
            buyer=buyer,
            customer_name=buyer.name,
            customer_mobile=buyer.mobile,
            customer_email=buyer.email,
            customer_gst=buyer.gst,
            customer_address=buyer.address,
            status=STATUS_DRAFT,
            amount_paid=Decimal("0.00"),
            **snapshot,
            **header,
        )
        db.session.add(document)
        if order is not None:
            document.order = order
            document.order_number = order.order_number
        _apply_type_defaults(document)
        _apply_lines(document, parsed_lines, products)
        recalculate_totals(document)
        db.session.flush()
        return document

    document = run_atomic(_op)
    current_app.logger.info(
        "Created %s %s for %s (total %s)",
        document.document_type,
        document.document_number,
        document.customer_name,
        document.grand_total,
    )
    return document


def get_document(document_id: int) -> Document:
    """
    Get a document by ID.

    Raises:
        NotFoundError: If not found
    """
    document = db.session.get(Document, document_id)
    if document is None:
        raise NotFoundError(f"Document {document_id} not found")
    return document


def list_documents(
    *,
    document_type: str | None = None,
    status: str | None = None,
    customer: str | None = None,
    search: str | None = None,
    start_date=None,
    end_date=None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Document], int]:
    """
    List documents, newest first.

    ``customer`` matches the customer name (case-insensitive substring);
    ``search`` matches the document or order number.
    """
    query = db.session.query(Document)
    if document_type:
        parse_choice(document_type, "document_type", DOCUMENT_TYPES)
        query = query.filter(Document.document_type == document_type)
    if status:
        query = query.filter(Document.status == status)
    if customer:
        query = query.filter(func.lower(Document.customer_name).like(f"%{customer.strip().lower()}%"))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Document.document_number.like(pattern), Document.order_number.like(pattern)))
    start = parse_date_field(start_date, "start_date")
    end = parse_date_field(end_date, "end_date")
    if start is not None:
        query = query.filter(Document.document_date >= start)
    if end is not None:
        query = query.filter(Document.document_date <= end)

    total = query.count()
    documents = query.order_by(Document.id.desc()).offset(offset).limit(limit).all()
    return documents, total


def update_document(document_id: int, payload: dict) -> Document:
    """
    Update lines, dates and charges of an open document.

    Number, type and customer are fixed at creation. Converted, cancelled
    and (partly) paid documents are read-only.

    Raises:
        StateError: document is read-only
        ValidationError: malformed payload, or a grand total below what was paid
    """
    payload = require_mapping(payload, "body")
    for fixed in ("document_type", "document_number", "serial_no", "customer", "status"):
        if fixed in payload:
            raise ValidationError(f"{fixed} cannot be changed here", field=fixed)
    parsed_lines = _parse_lines(payload["items"]) if "items" in payload else None
    header = _parse_header(payload)
    order_id = header.pop("order_id", None)
    if "document_date" in header and header["document_date"] is None:
        del header["document_date"]

    def _op() -> Document:
        document = get_document(document_id)
        if document.status in TERMINAL_STATUSES or document.status == STATUS_PARTIALLY_PAID:
            raise StateError(f"{document.document_number} is {document.status} and can no longer be edited")
        order = _get_order(order_id)
        products = _resolve_products(parsed_lines) if parsed_lines is not None else None
        for name, value in header.items():
            setattr(document, name, value)
        if order is not None:
            document.order = order
            document.order_number = order.order_number
        if parsed_lines is not None:
            document.lines.clear()
            _apply_lines(document, parsed_lines, products)
        recalculate_totals(document)
        if document.balance_amount < 0:
            raise ValidationError("Grand total cannot drop below the amount already paid", field="items")
        db.session.flush()
        return document

    return run_atomic(_op)


def set_document_status(document_id: int, status: str) -> Document:
    """
    Move a document to another status valid for its type.

    Converted, Partially Paid and Paid are set by conversion and payments
    only. Cancelled, Converted and Paid documents keep their status.

    Raises:
        ValidationError: status not valid for the type, or system-managed
        StateError: document already in a final status
    """
    def _op() -> Document:
        document = get_document(document_id)
        allowed = STATUSES_BY_TYPE[document.document_type]
        parse_choice(status, "status", allowed)
        if status in SYSTEM_STATUSES:
            raise ValidationError(f"Status '{status}' is set automatically", field="status")
        if status == document.status:
            return document
        if document.status in TERMINAL_STATUSES:
            raise StateError(f"{document.document_number} is {document.status}; status is final")
        document.status = status
        if status == STATUS_SENT and document.sent_at is None:
            document.sent_at = utcnow()
        if status in ("Accepted", "Approved"):
            document.accepted_at = utcnow()
        return document

    document = run_atomic(_op)
    current_app.logger.info("Document %s is now %s", document.document_number, document.status)
    return document


def convert_document(document_id: int, target_type: str, **extra) -> Document:
    """
    Convert an estimation or proforma into the next document type.

    Args:
        target_type: proforma or invoice
        extra: document_date, due_date, valid_until, payment_terms,
               remarks overriding the copied values

    Returns:
        the new document

    Raises:
        StateError: conversion not allowed for the source type or status
        ConflictError: the source was already converted to target_type
    """
    parse_choice(target_type, "document_type", DOCUMENT_TYPES)
    header = _parse_header({k: v for k, v in extra.items() if k in (
        "document_date", "due_date", "valid_until", "payment_terms", "remarks",
    )})
    document_date = header.pop("document_date", None) or utcnow()

    def _op() -> Document:
        source = get_document(document_id)
        if target_type not in CONVERSIONS[source.document_type]:
            raise StateError(f"Cannot convert {source.document_type} to {target_type}")
        if source.status in DEAD_STATUSES:
            raise StateError(f"{source.document_number} is {source.status} and cannot be converted")
        if any(d.document_type == target_type for d in source.conversions):
            raise ConflictError(f"{source.document_number} was already converted to {target_type}")

        serial, number = _issue_number(target_type, document_date)
        values = {"payment_terms": source.payment_terms, "remarks": source.remarks, **header}
        converted = Document(
            serial_no=serial,
            document_number=number,
            document_type=target_type,
            document_date=document_date,
            original_document=source,
            converted_from=source.document_type,
            buyer_id=source.buyer_id,
            customer_name=source.customer_name,
            customer_mobile=source.customer_mobile,
            customer_email=source.customer_email,
            customer_gst=source.customer_gst,
            customer_company=source.customer_company,
            customer_address=source.customer_address,
            order_id=source.order_id,
            order_number=source.order_number,
            place_of_supply=source.place_of_supply,
            transportation_charges=source.transportation_charges,
            status=STATUS_DRAFT,
            amount_paid=Decimal("0.00"),
            **values,
        )
        db.session.add(converted)
        for line in source.lines:
            converted.lines.append(
                DocumentLine(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    description=line.description,
                    hsn=line.hsn,
                    color=line.color,
                    size=line.size,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    discount=line.discount,
                    discount_type=line.discount_type,
                )
            )
        _apply_type_defaults(converted)
        recalculate_totals(converted)
        if source.status in (STATUS_DRAFT, STATUS_SENT):
            source.status = STATUS_CONVERTED
        db.session.flush()
        return converted

    try:
        converted = run_atomic(_op)
    except IntegrityError:
        # uq_documents_conversion: a concurrent request converted the same source
        current_app.logger.warning("Conversion of document %s to %s raced; rejecting", document_id, target_type)
        raise ConflictError(f"Document {document_id} was already converted to {target_type}")

    current_app.logger.info(
        "Converted document %s into %s %s", document_id, target_type, converted.document_number
    )
    return converted


def add_payment(document_id: int, payload: dict) -> Document:
    """
    Record a payment against an invoice.

    Payload: amount (> 0, at most the open balance), payment_date?,
    method?, reference?, remarks?

    Raises:
        StateError: not an invoice, or the invoice is cancelled or paid
        ValidationError: bad amount
    """
    payload = require_mapping(payload, "body")
    amount = parse_money(payload.get("amount"), "amount", default=None)
    if amount <= 0:
        raise ValidationError("amount must be greater than 0", field="amount")
    payment_date = parse_date_field(payload.get("payment_date"), "payment_date") or utcnow()
    method = clean_str(payload.get("method"), "method", max_len=32)
    reference = clean_str(payload.get("reference"), "reference", max_len=128)
    remarks = clean_str(payload.get("remarks"), "remarks")

    def _op() -> Document:
        document = get_document(document_id)
        if document.document_type != "invoice":
            raise StateError("Payments can only be added to invoices")
        if document.status in (STATUS_CANCELLED, STATUS_PAID):
            raise StateError(f"{document.document_number} is {document.status}")
        balance = Decimal(document.balance_amount)
        if amount > balance:
            raise ValidationError(f"amount exceeds the open balance ({balance})", field="amount")

        document.payments.append(
            DocumentPayment(
                amount=amount,
                payment_date=payment_date,
                method=method,
                reference=reference,
                remarks=remarks,
            )
        )
        document.amount_paid = Decimal(document.amount_paid or 0) + amount
        recalculate_totals(document)
        document.status = STATUS_PAID if document.balance_amount <= 0 else STATUS_PARTIALLY_PAID
        return document

    document = run_atomic(_op)
    current_app.logger.info(
        "Payment of %s on %s; balance %s", amount, document.document_number, document.balance_amount
    )
    return document


def delete_document(document_id: int) -> None:
    """
    Delete a document with its lines and payments.

    Raises:
        StateError: the document was converted into another one, or notes
            reference it
    """
    def _op() -> str:
        document = get_document(document_id)
        if document.conversions:
            raise StateError(
                f"{document.document_number} has converted documents; delete or cancel those first"
            )
        if document.notes:
            raise StateError(f"{document.document_number} is referenced by credit/debit notes")
        number = document.document_number
        db.session.delete(document)
        return number

    number = run_atomic(_op)
    current_app.logger.info("Deleted document %s", number)


def conversion_history(document_id: int) -> dict:
    """
    Full conversion chain containing a document.

    Walks back to the root document, then returns the tree below it:
    {"root": <summary with "conversions": [...]>, "document_id": id}
    """
    document = get_document(document_id)
    root = document
    seen = {root.id}
    while root.original_document is not None and root.original_document.id not in seen:
        root = root.original_document
        seen.add(root.id)

    def _node(doc: Document) -> dict:
        return {
            "id": doc.id,
            "document_type": doc.document_type,
            "document_number": doc.document_number,
            "document_date": to_utc_z(doc.document_date),
            "status": doc.status,
            "grand_total": to_number(doc.grand_total),
            "conversions": [_node(child) for child in doc.conversions],
        }

    return {"document_id": document.id, "root": _node(root)}
