# Overview: Service-layer operations for store entries; warehouse receipts of completed purchases.

"""
Store Entry Service

PRECONDITIONS (create):
- the purchase exists (404) and is Completed (409 state)
- no store entry exists for it yet (409 conflict, also a unique constraint)
- at least one item has store_in_qty > 0; item names are unique

DERIVED (never accepted from the client):
- shortage = max(invoice_qty - store_in_qty, 0)
- surplus  = max(store_in_qty - invoice_qty, 0)
- totals are sums over items

NUMBERING: store_number (STR-n) is issued only when the entry becomes
Completed; in the same transaction the opening store log is written.
Drafts (status Pending) carry no number and accept no movements.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Purchase, StoreEntry, StoreEntryItem
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
    clean_str,
    parse_choice,
    parse_date_field,
    parse_quantity,
    require_list,
    require_mapping,
)
from .concurrency import ledger_locks, run_atomic
from .sequence_service import STORE_ENTRY_SEQ, format_store_entry_number, next_sequence
from .store_log_service import build_opening_log, movement_totals


STATUS_PENDING = "Pending"
STATUS_COMPLETED = "Completed"
ENTRY_STATUSES = (STATUS_PENDING, STATUS_COMPLETED)

ITEM_TYPES = ("fabric", "accessories", "others")
UNITS = ("kg", "mtr", "qty", "piece", "pieces", "packet")

ZERO = Decimal("0.000")


def _parse_entries(raw_entries) -> list[dict]:
    parsed = []
    seen = set()
    for index, raw in enumerate(require_list(raw_entries, "entries")):
        prefix = f"entries[{index}]"
        raw = require_mapping(raw, prefix)
        name = clean_str(raw.get("item_name"), f"{prefix}.item_name", required=True, max_len=255)
        if name.lower() in seen:
            raise ValidationError(f"Item '{name}' is listed more than once", field=f"{prefix}.item_name")
        seen.add(name.lower())

        invoice_qty = parse_quantity(raw.get("invoice_qty"), f"{prefix}.invoice_qty", default=ZERO)
        store_in_qty = parse_quantity(raw.get("store_in_qty"), f"{prefix}.store_in_qty", default=ZERO)
        parsed.append(
            {
                "item_type": parse_choice(raw.get("item_type") or "fabric", f"{prefix}.item_type", ITEM_TYPES),
                "item_name": name,
                "supplier_name": clean_str(raw.get("supplier_name"), f"{prefix}.supplier_name", max_len=255),
                "supplier_code": clean_str(raw.get("supplier_code"), f"{prefix}.supplier_code", max_len=64),
                "invoice_no": clean_str(raw.get("invoice_no"), f"{prefix}.invoice_no", max_len=64),
                "invoice_date": parse_date_field(raw.get("invoice_date"), f"{prefix}.invoice_date"),
                "hsn": clean_str(raw.get("hsn"), f"{prefix}.hsn", max_len=32),
                "unit": parse_choice(raw.get("unit") or "mtr", f"{prefix}.unit", UNITS),
                "purchase_qty": parse_quantity(raw.get("purchase_qty"), f"{prefix}.purchase_qty", default=ZERO),
                "invoice_qty": invoice_qty,
                "store_in_qty": store_in_qty,
                "shortage": max(invoice_qty - store_in_qty, ZERO),
                "surplus": max(store_in_qty - invoice_qty, ZERO),
                "remarks": clean_str(raw.get("remarks"), f"{prefix}.remarks"),
            }
        )

    if not any(item["store_in_qty"] > 0 for item in parsed):
        raise ValidationError("At least one item must have store_in_qty greater than 0", field="entries")
    return parsed


def recalculate_totals(entry: StoreEntry) -> None:
    entry.total_invoice_qty = sum((Decimal(i.invoice_qty) for i in entry.items), ZERO)
    entry.total_store_in_qty = sum((Decimal(i.store_in_qty) for i in entry.items), ZERO)
    entry.total_shortage = sum((Decimal(i.shortage) for i in entry.items), ZERO)
    entry.total_surplus = sum((Decimal(i.surplus) for i in entry.items), ZERO)


def _finalize(entry: StoreEntry) -> None:
    """Issue the store number and write the opening log (caller's transaction)."""
    serial = next_sequence(STORE_ENTRY_SEQ)
    entry.serial_no = serial
    entry.store_number = format_store_entry_number(serial)
    entry.status = STATUS_COMPLETED
    entry.completed_at = utcnow()
    build_opening_log(entry)


def create_store_entry(
    *,
    purchase_id: int,
    store_entry_date,
    entries,
    remarks: str | None = None,
    status: str = STATUS_COMPLETED,
) -> StoreEntry:
    """
    Record the materials physically received for a completed purchase.

    Args:
        purchase_id: purchase being received (must be Completed)
        store_entry_date: ISO-8601 date of receipt (required)
        entries: item lines (see _parse_entries)
        remarks: optional
        status: "Completed" (default, numbered immediately) or "Pending" draft

    Raises:
        ValidationError, NotFoundError, StateError, ConflictError
    """
    if purchase_id is None:
        raise ValidationError("purchase_id is required", field="purchase_id")
    entry_date = parse_date_field(store_entry_date, "store_entry_date")
    if entry_date is None:
        raise ValidationError("store_entry_date is required", field="store_entry_date")
    parsed = _parse_entries(entries)
    status = parse_choice(status or STATUS_COMPLETED, "status", ENTRY_STATUSES)
    cleaned_remarks = clean_str(remarks, "remarks")

    def _op() -> StoreEntry:
        purchase = db.session.get(Purchase, purchase_id)
        if purchase is None:
            raise NotFoundError(f"Purchase {purchase_id} not found")
        if purchase.status != "Completed":
            raise StateError(
                f"Cannot create a store entry: purchase {purchase.pur_number} is {purchase.status}, not Completed"
            )
        existing = db.session.query(StoreEntry).filter_by(purchase_id=purchase.id).first()
        if existing:
            raise ConflictError(
                f"Store entry already exists for purchase {purchase.pur_number}"
                + (f" ({existing.store_number})" if existing.store_number else "")
            )

        entry = StoreEntry(
            purchase_id=purchase.id,
            order_id=purchase.order_id,
            order_number=purchase.order_number,
            pur_number=purchase.pur_number,
            buyer_name=purchase.buyer_name,
            store_entry_date=entry_date,
            status=STATUS_PENDING,
            remarks=cleaned_remarks,
        )
        for values in parsed:
            entry.items.append(StoreEntryItem(**values))
        recalculate_totals(entry)
        db.session.add(entry)
        if status == STATUS_COMPLETED:
            _finalize(entry)
        db.session.flush()
        return entry

    try:
        entry = run_atomic(_op)
    except IntegrityError:
        raise ConflictError(f"Store entry already exists for purchase {purchase_id}")

    current_app.logger.info(
        "Created store entry %s for purchase %s", entry.store_number or f"draft #{entry.id}", entry.pur_number
    )
    return entry


def complete_store_entry(entry_id: int) -> StoreEntry:
    """
    Finalize a draft: issue its store number and write the opening log.

    Raises:
        StateError: entry already Completed
    """
    def _op() -> StoreEntry:
        entry = get_store_entry(entry_id)
        if entry.status == STATUS_COMPLETED:
            raise StateError(f"Store entry {entry.store_number} is already completed")
        if not any(Decimal(item.store_in_qty) > 0 for item in entry.items):
            raise ValidationError("At least one item must have store_in_qty greater than 0", field="entries")
        _finalize(entry)
        db.session.flush()
        return entry

    entry = run_atomic(_op)
    current_app.logger.info("Completed store entry %s", entry.store_number)
    return entry


def update_store_entry(
    entry_id: int,
    *,
    store_entry_date=None,
    entries=None,
    remarks: str | None = None,
) -> StoreEntry:
    """
    Update date, remarks and/or item lines of a store entry.

    Item lines are replaced as a whole. Under the ledger locks for every
    affected item: items with store movements cannot be removed, and
    store_in_qty cannot drop below the quantity currently out.
    """
    entry_date = parse_date_field(store_entry_date, "store_entry_date")
    parsed = _parse_entries(entries) if entries is not None else None
    cleaned_remarks = clean_str(remarks, "remarks")

    current = get_store_entry(entry_id)
    names = {item.item_name for item in current.items}
    if parsed is not None:
        names |= {item["item_name"] for item in parsed}
    keys = [(entry_id, name) for name in names]

    def _op() -> StoreEntry:
        db.session.expire_all()
        entry = get_store_entry(entry_id)

        if parsed is not None:
            totals = movement_totals(entry.id)
            new_by_name = {item["item_name"]: item for item in parsed}
            for item in entry.items:
                taken, returned = totals.get(item.item_name, (ZERO, ZERO))
                if item.item_name not in new_by_name and (taken or returned):
                    raise StateError(f"Item '{item.item_name}' has store movements and cannot be removed")
            for name, values in new_by_name.items():
                taken, returned = totals.get(name, (ZERO, ZERO))
                out = taken - returned
                if values["store_in_qty"] < out:
                    raise ValidationError(
                        f"store_in_qty for '{name}' cannot be below {out} currently taken out",
                        field="entries",
                    )

            entry.items.clear()
            db.session.flush()
            for values in parsed:
                entry.items.append(StoreEntryItem(**values))
            recalculate_totals(entry)

        if entry_date is not None:
            entry.store_entry_date = entry_date
        if cleaned_remarks is not None:
            entry.remarks = cleaned_remarks
        # Always bump the version so concurrent ledger writers re-validate
        entry.updated_at = utcnow()
        db.session.flush()
        return entry

    with ledger_locks.hold(keys):
        return run_atomic(_op)


def delete_store_entry(entry_id: int) -> None:
    """Delete a store entry together with all of its store logs."""
    def _op() -> str:
        entry = get_store_entry(entry_id)
        label = entry.store_number or f"draft #{entry.id}"
        db.session.delete(entry)
        return label

    label = run_atomic(_op)
    current_app.logger.info("Deleted store entry %s and its store logs", label)


def get_store_entry(entry_id: int) -> StoreEntry:
    entry = db.session.get(StoreEntry, entry_id)
    if entry is None:
        raise NotFoundError(f"Store entry {entry_id} not found")
    return entry


def get_store_entry_for_purchase(purchase_id: int) -> StoreEntry:
    entry = db.session.query(StoreEntry).filter_by(purchase_id=purchase_id).first()
    if entry is None:
        raise NotFoundError(f"No store entry found for purchase {purchase_id}")
    return entry


def list_store_entries(
    *,
    status: str | None = None,
    order_id: int | None = None,
    purchase_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[StoreEntry], int]:
    query = db.session.query(StoreEntry)
    if status:
        parse_choice(status, "status", ENTRY_STATUSES)
        query = query.filter(StoreEntry.status == status)
    if order_id:
        query = query.filter(StoreEntry.order_id == order_id)
    if purchase_id:
        query = query.filter(StoreEntry.purchase_id == purchase_id)

    total = query.count()
    entries = query.order_by(StoreEntry.id.desc()).offset(offset).limit(limit).all()
    return entries, total


def list_purchases_awaiting_store_entry() -> list[Purchase]:
    """Completed purchases that have not been received into the store yet."""
    return (
        db.session.query(Purchase)
        .outerjoin(StoreEntry, StoreEntry.purchase_id == Purchase.id)
        .filter(Purchase.status == "Completed", StoreEntry.id.is_(None))
        .order_by(Purchase.purchase_date.desc(), Purchase.id.desc())
        .all()
    )
