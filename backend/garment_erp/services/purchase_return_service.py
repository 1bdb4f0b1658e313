# Overview: Service-layer operations for purchase returns; validation against the purchase and the vendor debit note.

"""
Purchase Return Service

A purchase return sends part of a completed purchase back to its vendors.

RULES:
1. Only Completed purchases can be returned against
2. One return per purchase (uq_purchase_returns_purchase)
3. Every return line names a purchase item (by purchase_item_id, or by
   item_name when that name is unique on the purchase)
4. Total returned per purchase item <= the quantity purchased
5. return_value = return_quantity * the item's cost_per_unit

NUMBERING: "PURT-0001" from purchaseReturnSeq, issued in the creating
transaction.

DEBIT NOTE: unless generate_debit_note is false, an issued debit note
(DN/<year>/####) against the PUR number is written in the same
transaction; deleting the return deletes that note too.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import PurchaseReturn, PurchaseReturnItem
from ..time_utils import utcnow
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
    parse_quantity,
    require_list,
    require_mapping,
)
from .concurrency import run_atomic
from .note_service import STATUS_ISSUED, build_note
from .purchase_service import STATUS_COMPLETED, get_purchase
from .sequence_service import PURCHASE_RETURN_SEQ, format_purchase_return_number, next_sequence


RETURN_REASONS = (
    "damaged-goods",
    "quality-issue",
    "wrong-item",
    "excess-quantity",
    "defective",
    "not-as-described",
    "other",
)
UNKNOWN_VENDOR = "Vendor not recorded"


def _parse_items(raw_items) -> list[dict]:
    parsed = []
    for index, raw in enumerate(require_list(raw_items, "items")):
        prefix = f"items[{index}]"
        raw = require_mapping(raw, prefix)
        item = {
            "purchase_item_id": parse_int(raw.get("purchase_item_id"), f"{prefix}.purchase_item_id", minimum=1, required=False),
            "item_name": clean_str(raw.get("item_name"), f"{prefix}.item_name", max_len=255),
            "return_quantity": parse_quantity(raw.get("return_quantity"), f"{prefix}.return_quantity", positive=True),
            "return_reason": parse_choice(raw.get("return_reason"), f"{prefix}.return_reason", RETURN_REASONS),
            "reason_description": clean_str(raw.get("reason_description"), f"{prefix}.reason_description"),
        }
        if item["purchase_item_id"] is None and item["item_name"] is None:
            raise ValidationError(f"{prefix} needs a purchase_item_id or item_name", field=f"{prefix}.item_name")
        parsed.append(item)
    return parsed


def _match_purchase_item(purchase, spec: dict, prefix: str):
    if spec["purchase_item_id"] is not None:
        for item in purchase.items:
            if item.id == spec["purchase_item_id"]:
                return item
        raise ValidationError(
            f"Item {spec['purchase_item_id']} is not part of {purchase.pur_number}", field=f"{prefix}.purchase_item_id"
        )
    matches = [item for item in purchase.items if item.item_name == spec["item_name"]]
    if not matches:
        raise ValidationError(
            f"Item '{spec['item_name']}' is not part of {purchase.pur_number}", field=f"{prefix}.item_name"
        )
    if len(matches) > 1:
        raise ValidationError(
            f"'{spec['item_name']}' was bought from several vendors; give purchase_item_id",
            field=f"{prefix}.purchase_item_id",
        )
    return matches[0]


def _build_items(purchase, parsed: list[dict]) -> list[PurchaseReturnItem]:
    returned: dict[int, Decimal] = {}
    items = []
    for index, spec in enumerate(parsed):
        prefix = f"items[{index}]"
        source = _match_purchase_item(purchase, spec, prefix)
        bought = Decimal(source.quantity)
        returned[source.id] = returned.get(source.id, Decimal("0")) + spec["return_quantity"]
        if returned[source.id] > bought:
            raise ValidationError(
                f"Returning {returned[source.id]} of '{source.item_name}' but only {bought} was purchased",
                field=f"{prefix}.return_quantity",
            )
        cost = Decimal(source.cost_per_unit)
        items.append(
            PurchaseReturnItem(
                purchase_item_id=source.id,
                item_type=source.item_type,
                item_name=source.item_name,
                vendor_name=source.vendor_name,
                unit=source.unit,
                original_quantity=bought,
                original_cost_per_unit=cost,
                return_quantity=spec["return_quantity"],
                return_reason=spec["return_reason"],
                reason_description=spec["reason_description"],
                return_value=(spec["return_quantity"] * cost).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP),
            )
        )
    return items


def _build_debit_note(purchase_return: PurchaseReturn, purchase):
    vendor = next((i.vendor_name for i in purchase_return.items if i.vendor_name), None) or UNKNOWN_VENDOR
    lines = []
    for item in purchase_return.items:
        description = f"{item.item_name} - RETURN"
        if item.vendor_name:
            description = f"{description} ({item.vendor_name})"
        lines.append(
            {
                "description": description[:255],
                "hsn": None,
                "unit": item.unit,
                "quantity": item.return_quantity,
                "rate": item.original_cost_per_unit,
                "amount": item.return_value,
            }
        )
    reason_text = f"Purchase return {purchase_return.purt_number} for {purchase.pur_number}"
    if purchase_return.remarks:
        reason_text = f"{reason_text}. {purchase_return.remarks}"
    return build_note(
        note_type="debit",
        note_date=purchase_return.return_date,
        reference_type="purchase-order",
        reference_number=purchase.pur_number,
        reason="goods-returned",
        party_name=vendor,
        lines=lines,
        status=STATUS_ISSUED,
        reference_date=purchase.purchase_date,
        reason_description=reason_text,
        is_auto_generated=True,
    )


def create_purchase_return(
    purchase_id: int,
    *,
    items,
    return_date=None,
    remarks: str | None = None,
    generate_debit_note: bool = True,
) -> PurchaseReturn:
    """
    Record materials returned from a completed purchase.

    Args:
        items: [{purchase_item_id | item_name, return_quantity > 0,
                 return_reason, reason_description?}] (at least one)
        return_date: ISO-8601 (defaults to now)
        generate_debit_note: also issue a vendor debit note (default True)

    Raises:
        NotFoundError: purchase missing
        StateError: purchase not completed
        ConflictError: a return already exists for the purchase
        ValidationError: malformed item or quantity above what was bought
    """
    if purchase_id is None:
        raise ValidationError("purchase_id is required", field="purchase_id")
    parsed = _parse_items(items)
    parsed_date = parse_date_field(return_date, "return_date") or utcnow()
    cleaned_remarks = clean_str(remarks, "remarks")
    if not isinstance(generate_debit_note, bool):
        raise ValidationError("generate_debit_note must be true or false", field="generate_debit_note")

    def _op() -> PurchaseReturn:
        purchase = get_purchase(purchase_id)
        if purchase.status != STATUS_COMPLETED:
            raise StateError(f"{purchase.pur_number} is {purchase.status}; only completed purchases can be returned")
        if purchase.purchase_return is not None:
            raise ConflictError(
                f"Purchase return {purchase.purchase_return.purt_number} already exists for {purchase.pur_number}"
            )
        return_items = _build_items(purchase, parsed)

        serial = next_sequence(PURCHASE_RETURN_SEQ)
        purchase_return = PurchaseReturn(
            serial_no=serial,
            purt_number=format_purchase_return_number(serial),
            pur_number=purchase.pur_number,
            order_id=purchase.order_id,
            order_number=purchase.order_number,
            order_type=purchase.order_type,
            return_date=parsed_date,
            remarks=cleaned_remarks,
        )
        purchase.purchase_return = purchase_return
        purchase_return.items.extend(return_items)
        purchase_return.total_return_value = sum(
            (Decimal(i.return_value) for i in return_items), Decimal("0.00")
        )
        if generate_debit_note:
            purchase_return.debit_note = _build_debit_note(purchase_return, purchase)
        db.session.flush()
        return purchase_return

    try:
        purchase_return = run_atomic(_op)
    except IntegrityError:
        existing = db.session.query(PurchaseReturn).filter_by(purchase_id=purchase_id).first()
        if existing is None:
            raise
        current_app.logger.warning(
            "Purchase return for purchase %s was created concurrently (%s)", purchase_id, existing.purt_number
        )
        raise ConflictError(f"Purchase return {existing.purt_number} already exists for {existing.pur_number}")

    current_app.logger.info(
        "Created purchase return %s for %s (value %s, debit note %s)",
        purchase_return.purt_number,
        purchase_return.pur_number,
        purchase_return.total_return_value,
        purchase_return.debit_note.note_number if purchase_return.debit_note else None,
    )
    return purchase_return


def get_purchase_return(return_id: int) -> PurchaseReturn:
    """
    Get a purchase return by ID.

    Raises:
        NotFoundError: If not found
    """
    purchase_return = db.session.get(PurchaseReturn, return_id)
    if purchase_return is None:
        raise NotFoundError(f"Purchase return {return_id} not found")
    return purchase_return


def get_return_for_purchase(purchase_id: int) -> PurchaseReturn:
    purchase_return = db.session.query(PurchaseReturn).filter_by(purchase_id=purchase_id).first()
    if purchase_return is None:
        raise NotFoundError(f"No purchase return for purchase {purchase_id}")
    return purchase_return


def list_purchase_returns(
    *,
    order_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[PurchaseReturn], int]:
    query = db.session.query(PurchaseReturn)
    if order_id is not None:
        query = query.filter(PurchaseReturn.order_id == order_id)
    total = query.count()
    returns = query.order_by(PurchaseReturn.id.desc()).offset(offset).limit(limit).all()
    return returns, total


def delete_purchase_return(return_id: int) -> None:
    """Delete a purchase return together with its generated debit note."""
    def _op() -> str:
        purchase_return = get_purchase_return(return_id)
        number = purchase_return.purt_number
        db.session.delete(purchase_return)
        return number

    number = run_atomic(_op)
    current_app.logger.info("Deleted purchase return %s", number)
