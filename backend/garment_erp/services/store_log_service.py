# Overview: Service-layer operations for store logs; the take/return ledger against store entries.

"""
Store Log Service

LEDGER INVARIANT (per store entry, per item name):
    available = store_in_qty - sum(taken_qty) + sum(returned_qty)
    0 <= available <= store_in_qty

Availability is summed over the set of logs, so it does not depend on
the order logs were written in. Nothing is cached; every read recomputes.

WRITE RULES (create, update and delete alike):
- every item on the log must exist on the store entry
- a larger take than before must fit into what is available without this log
- the write may not leave the item's availability negative
- total returns may not exceed total takes for the item

CONCURRENCY:
- in-process writers hold ledger_locks for (store_entry_id, item_name)
  across read, validate, write and commit
- every write also touches the store entry row, bumping its version_id;
  a writer in another process that validated against older numbers gets
  StaleDataError and the whole operation is retried

STATUS:
The caller's status always wins. Without one, new movement logs start
as "Out" and edits keep the current status. suggest_status() is a pure
hint returned with the log; it is never applied silently.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import StoreEntry, StoreLog, StoreLogItem
from ..time_utils import utcnow
from ..validation import (
    QTY_PLACES,
    InsufficientStockError,
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
from .concurrency import ledger_locks, lock_for_update, run_atomic
from .sequence_service import STORE_LOG_SEQ, format_store_log_number, next_sequence


STATUS_IN_STORE = "In Store"
STATUS_OUT = "Out"
STATUS_COMPLETED = "Completed"
LOG_STATUSES = (STATUS_IN_STORE, STATUS_OUT, STATUS_COMPLETED)

ZERO = Decimal("0.000")


def _qty(value) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(QTY_PLACES)


def suggest_status(total_taken, total_returned, current: str | None) -> str | None:
    """
    Hint for the UI, derived only from quantities.

    - material taken, nothing returned, still marked In Store -> Out
    - something returned, nothing left in hand, still marked Out -> In Store
    Otherwise the current status stands.
    """
    taken = _qty(total_taken)
    returned = _qty(total_returned)
    in_hand = taken - returned
    if taken > 0 and returned == 0 and current == STATUS_IN_STORE:
        return STATUS_OUT
    if returned > 0 and in_hand <= 0 and current == STATUS_OUT:
        return STATUS_IN_STORE
    return current


# =============================================================================
# Availability
# =============================================================================

def movement_totals(store_entry_id: int, *, exclude_log_id: int | None = None) -> dict[str, tuple[Decimal, Decimal]]:
    """item_name -> (sum taken, sum returned) over the entry's logs."""
    query = db.session.query(
        StoreLogItem.item_name,
        func.coalesce(func.sum(StoreLogItem.taken_qty), 0),
        func.coalesce(func.sum(StoreLogItem.returned_qty), 0),
    ).filter(StoreLogItem.store_entry_id == store_entry_id)
    if exclude_log_id is not None:
        query = query.filter(StoreLogItem.store_log_id != exclude_log_id)
    rows = query.group_by(StoreLogItem.item_name).all()
    return {name: (_qty(taken), _qty(returned)) for name, taken, returned in rows}


def _get_entry(store_entry_id: int) -> StoreEntry:
    entry = db.session.get(StoreEntry, store_entry_id)
    if entry is None:
        raise NotFoundError(f"Store entry {store_entry_id} not found")
    return entry


def calculate_available_stock(store_entry_id: int, item_name: str, exclude_log_id: int | None = None) -> Decimal:
    """
    Available quantity of one item, optionally ignoring the log being edited.

    Clamped at zero for display; writes never rely on the clamp.
    """
    entry = _get_entry(store_entry_id)
    item = entry.item_named(item_name)
    if item is None:
        raise NotFoundError(f"Item '{item_name}' is not part of store entry {store_entry_id}")
    taken, returned = movement_totals(store_entry_id, exclude_log_id=exclude_log_id).get(item_name, (ZERO, ZERO))
    available = _qty(item.store_in_qty) - taken + returned
    return max(available, ZERO)


def get_available_stock(store_entry_id: int) -> dict:
    """Per-item stock snapshot of a store entry, computed on read."""
    entry = _get_entry(store_entry_id)
    totals = movement_totals(store_entry_id)
    stock = []
    for item in entry.items:
        taken, returned = totals.get(item.item_name, (ZERO, ZERO))
        initial = _qty(item.store_in_qty)
        stock.append(
            {
                "item_name": item.item_name,
                "item_type": item.item_type,
                "unit": item.unit,
                "initial_stock": initial,
                "total_taken": taken,
                "total_returned": returned,
                "available_stock": max(initial - taken + returned, ZERO),
            }
        )
    return {
        "store_entry_id": entry.id,
        "store_number": entry.store_number,
        "order_number": entry.order_number,
        "items": stock,
    }


# =============================================================================
# Validation
# =============================================================================

def _parse_items(raw_items) -> dict[str, dict]:
    parsed: dict[str, dict] = {}
    for index, raw in enumerate(require_list(raw_items, "items")):
        prefix = f"items[{index}]"
        raw = require_mapping(raw, prefix)
        name = clean_str(raw.get("item_name"), f"{prefix}.item_name", required=True, max_len=255)
        if name in parsed:
            raise ValidationError(f"Item '{name}' is listed more than once", field=f"{prefix}.item_name")
        taken = parse_quantity(raw.get("taken_qty"), f"{prefix}.taken_qty", default=ZERO)
        returned = parse_quantity(raw.get("returned_qty"), f"{prefix}.returned_qty", default=ZERO)
        parsed[name] = {
            "item_name": name,
            "item_type": clean_str(raw.get("item_type"), f"{prefix}.item_type", max_len=16),
            "unit": clean_str(raw.get("unit"), f"{prefix}.unit", max_len=16),
            "taken_qty": taken,
            "returned_qty": returned,
            "in_hand_qty": taken - returned,
            "return_date": parse_date_field(raw.get("return_date"), f"{prefix}.return_date"),
            "remarks": clean_str(raw.get("remarks"), f"{prefix}.remarks"),
        }
    return parsed


def _check_ledger(
    entry: StoreEntry,
    new_items: dict[str, dict],
    old_items: dict[str, tuple[Decimal, Decimal]],
    *,
    exclude_log_id: int | None,
) -> None:
    totals = movement_totals(entry.id, exclude_log_id=exclude_log_id)
    for name in sorted(set(new_items) | set(old_items)):
        entry_item = entry.item_named(name)
        if entry_item is None:
            if name in new_items:
                raise ValidationError(
                    f"Item '{name}' is not part of store entry {entry.store_number}", field="items"
                )
            continue

        initial = _qty(entry_item.store_in_qty)
        taken_excl, returned_excl = totals.get(name, (ZERO, ZERO))
        available_excl = initial - taken_excl + returned_excl

        new = new_items.get(name)
        new_taken = new["taken_qty"] if new else ZERO
        new_returned = new["returned_qty"] if new else ZERO
        old_taken = old_items.get(name, (ZERO, ZERO))[0]

        if new_taken > old_taken and new_taken > available_excl:
            raise InsufficientStockError(name, max(available_excl, ZERO), new_taken)
        if available_excl - new_taken + new_returned < 0:
            raise InsufficientStockError(name, max(available_excl, ZERO), new_taken)
        if returned_excl + new_returned > taken_excl + new_taken:
            raise ValidationError(
                f"Returned quantity for '{name}' ({returned_excl + new_returned}) exceeds "
                f"quantity taken out ({taken_excl + new_taken})",
                field="items",
            )


def _get_movement_entry(store_entry_id: int) -> StoreEntry:
    # Row lock serialises writers in other processes; ledger_locks covers this one
    entry = lock_for_update(db.session.query(StoreEntry).filter(StoreEntry.id == store_entry_id)).first()
    if entry is None:
        raise NotFoundError(f"Store entry {store_entry_id} not found")
    if entry.status != "Completed":
        raise StateError("Store entry is still a draft; complete it before logging movements")
    return entry


def _apply_items(log: StoreLog, entry: StoreEntry, items: dict[str, dict]) -> None:
    for values in items.values():
        entry_item = entry.item_named(values["item_name"])
        log.items.append(
            StoreLogItem(
                store_entry_id=entry.id,
                item_name=values["item_name"],
                item_type=values["item_type"] or entry_item.item_type,
                unit=values["unit"] or entry_item.unit,
                taken_qty=values["taken_qty"],
                returned_qty=values["returned_qty"],
                in_hand_qty=values["in_hand_qty"],
                return_date=values["return_date"],
                remarks=values["remarks"],
            )
        )
    recalculate_totals(log)


def recalculate_totals(log: StoreLog) -> None:
    log.total_taken_qty = sum((_qty(i.taken_qty) for i in log.items), ZERO)
    log.total_returned_qty = sum((_qty(i.returned_qty) for i in log.items), ZERO)
    log.total_in_hand_qty = log.total_taken_qty - log.total_returned_qty


def _touch(entry: StoreEntry) -> None:
    entry.last_movement_at = utcnow()


# =============================================================================
# Operations
# =============================================================================

def build_opening_log(entry: StoreEntry) -> StoreLog:
    """
    Opening record of a freshly completed store entry.

    No item lines, status In Store. Runs in the caller's transaction.
    """
    serial = next_sequence(STORE_LOG_SEQ)
    log = StoreLog(
        serial_no=serial,
        log_number=format_store_log_number(serial),
        order_id=entry.order_id,
        purchase_id=entry.purchase_id,
        store_number=entry.store_number,
        order_number=entry.order_number,
        pur_number=entry.pur_number,
        log_date=entry.store_entry_date,
        product_count=0,
        status=STATUS_IN_STORE,
        is_opening=True,
        total_taken_qty=ZERO,
        total_returned_qty=ZERO,
        total_in_hand_qty=ZERO,
        remarks="Initial entry - materials received in warehouse",
    )
    entry.logs.append(log)
    return log


def _parse_header(fields: dict) -> dict:
    header = {}
    if "log_date" in fields:
        header["log_date"] = parse_date_field(fields["log_date"], "log_date")
    for name, max_len in (("person_name", 255), ("person_role", 64), ("department", 64)):
        if name in fields:
            header[name] = clean_str(fields[name], name, max_len=max_len)
    for name in ("login_time", "logout_time"):
        if name in fields:
            header[name] = parse_date_field(fields[name], name)
    if "product_count" in fields:
        header["product_count"] = parse_int(fields["product_count"], "product_count", minimum=0, required=False) or 0
    if "remarks" in fields:
        header["remarks"] = clean_str(fields["remarks"], "remarks")
    if fields.get("status") is not None:
        header["status"] = parse_choice(fields["status"], "status", LOG_STATUSES)
    return header


def create_store_log(store_entry_id: int, *, items, **fields) -> StoreLog:
    """
    Record material taken out of and/or returned to the store.

    Args:
        store_entry_id: completed store entry the material belongs to
        items: [{item_name, taken_qty, returned_qty, item_type, unit,
                 return_date, remarks}] (at least one)
        fields: log_date (required), person_name, person_role, department,
                login_time, logout_time, product_count, status, remarks

    Raises:
        InsufficientStockError: a take exceeds what is available
        ValidationError, NotFoundError, StateError
    """
    if store_entry_id is None:
        raise ValidationError("store_entry_id is required", field="store_entry_id")
    header = _parse_header(fields)
    if header.get("log_date") is None:
        raise ValidationError("log_date is required", field="log_date")
    parsed = _parse_items(items)
    keys = [(store_entry_id, name) for name in parsed]

    def _op() -> StoreLog:
        db.session.expire_all()
        entry = _get_movement_entry(store_entry_id)
        _check_ledger(entry, parsed, {}, exclude_log_id=None)

        serial = next_sequence(STORE_LOG_SEQ)
        log = StoreLog(
            serial_no=serial,
            log_number=format_store_log_number(serial),
            order_id=entry.order_id,
            purchase_id=entry.purchase_id,
            store_number=entry.store_number,
            order_number=entry.order_number,
            pur_number=entry.pur_number,
            is_opening=False,
            **{"status": STATUS_OUT, "product_count": 0, **header},
        )
        entry.logs.append(log)
        _apply_items(log, entry, parsed)
        _touch(entry)
        db.session.flush()
        return log

    with ledger_locks.hold(keys):
        log = run_atomic(_op)

    current_app.logger.info(
        "Store log %s recorded against %s (taken %s, returned %s)",
        log.log_number,
        log.store_number,
        log.total_taken_qty,
        log.total_returned_qty,
    )
    return log


def update_store_log(log_id: int, *, items=None, **fields) -> StoreLog:
    """
    Edit a store log. Availability is checked without this log's own lines.

    ``items`` replaces the whole item list when given. Status changes only
    when the caller passes one.
    """
    header = _parse_header(fields)
    if "log_date" in header and header["log_date"] is None:
        raise ValidationError("log_date cannot be cleared", field="log_date")
    parsed = _parse_items(items) if items is not None else None

    current = get_store_log(log_id)
    if current.is_opening and parsed:
        raise StateError("The opening store log cannot carry item movements")
    store_entry_id = current.store_entry_id
    names = {item.item_name for item in current.items} | set(parsed or {})
    keys = [(store_entry_id, name) for name in names]

    def _op() -> StoreLog:
        db.session.expire_all()
        log = get_store_log(log_id)
        entry = _get_movement_entry(log.store_entry_id)

        if parsed is not None:
            old = {item.item_name: (_qty(item.taken_qty), _qty(item.returned_qty)) for item in log.items}
            _check_ledger(entry, parsed, old, exclude_log_id=log.id)
            log.items.clear()
            db.session.flush()
            _apply_items(log, entry, parsed)
            _touch(entry)

        for name, value in header.items():
            setattr(log, name, value)
        db.session.flush()
        return log

    with ledger_locks.hold(keys):
        return run_atomic(_op)


def delete_store_log(log_id: int) -> None:
    """
    Delete a movement log.

    Refused for the opening log, and when removing the log's returns would
    leave an item with negative availability or more returns than takes.
    """
    current = get_store_log(log_id)
    if current.is_opening:
        raise StateError("The opening store log cannot be deleted")
    keys = [(current.store_entry_id, item.item_name) for item in current.items]

    def _op() -> str:
        db.session.expire_all()
        log = get_store_log(log_id)
        entry = _get_movement_entry(log.store_entry_id)
        totals = movement_totals(entry.id, exclude_log_id=log.id)
        for item in log.items:
            entry_item = entry.item_named(item.item_name)
            if entry_item is None:
                continue
            taken, returned = totals.get(item.item_name, (ZERO, ZERO))
            if _qty(entry_item.store_in_qty) - taken + returned < 0 or returned > taken:
                raise StateError(
                    f"Deleting {log.log_number} would leave '{item.item_name}' with inconsistent stock"
                )
        number = log.log_number
        db.session.delete(log)
        _touch(entry)
        return number

    with ledger_locks.hold(keys):
        number = run_atomic(_op)
    current_app.logger.info("Deleted store log %s", number)


def get_store_log(log_id: int) -> StoreLog:
    log = db.session.get(StoreLog, log_id)
    if log is None:
        raise NotFoundError(f"Store log {log_id} not found")
    return log


def list_logs_for_entry(store_entry_id: int) -> list[StoreLog]:
    _get_entry(store_entry_id)
    return (
        db.session.query(StoreLog)
        .filter(StoreLog.store_entry_id == store_entry_id)
        .order_by(StoreLog.log_date, StoreLog.id)
        .all()
    )


def list_store_logs(
    *,
    store_entry_id: int | None = None,
    status: str | None = None,
    order_id: int | None = None,
    person_name: str | None = None,
    include_opening: bool = True,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[StoreLog], int]:
    query = db.session.query(StoreLog)
    if store_entry_id:
        query = query.filter(StoreLog.store_entry_id == store_entry_id)
    if status:
        parse_choice(status, "status", LOG_STATUSES)
        query = query.filter(StoreLog.status == status)
    if order_id:
        query = query.filter(StoreLog.order_id == order_id)
    if person_name:
        query = query.filter(func.lower(StoreLog.person_name).like(f"%{person_name.strip().lower()}%"))
    if not include_opening:
        query = query.filter(StoreLog.is_opening.is_(False))

    total = query.count()
    logs = query.order_by(StoreLog.log_date.desc(), StoreLog.id.desc()).offset(offset).limit(limit).all()
    return logs, total
