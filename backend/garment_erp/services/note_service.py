# Overview: Service-layer operations for credit and debit notes; numbering, status and per-reference summaries.

"""
Note Service

Credit notes reduce what a party owes (returns, shortages, overcharges);
debit notes increase it (undercharges, extra charges) or, on the purchase
side, claim money back from a vendor.

NUMBERING: "CN/<year>/0001" and "DN/<year>/0001", one counter per note
type and calendar year of note_date. Numbers are always issued by the
counter; a client-supplied note_number is rejected.

LIFECYCLE: draft -> issued -> cancelled (draft -> cancelled also allowed).
Cancelling is the delete: the row and its number stay on record.

AMOUNTS: line amount = quantity * rate; subtotal = grand_total = sum of
line amounts (tax is out of scope).
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Document, Note, NoteLine
from ..time_utils import utcnow
from ..validation import (
    MONEY_PLACES,
    NotFoundError,
    StateError,
    ValidationError,
    clean_str,
    parse_choice,
    parse_date_field,
    parse_int,
    parse_money,
    parse_quantity,
    require_list,
    require_mapping,
    to_number,
)
from .concurrency import run_atomic
from .sequence_service import NOTE_TYPES, format_note_number, next_sequence, note_key


STATUS_DRAFT = "draft"
STATUS_ISSUED = "issued"
STATUS_CANCELLED = "cancelled"
NOTE_STATUSES = (STATUS_DRAFT, STATUS_ISSUED, STATUS_CANCELLED)
_TRANSITIONS = {
    STATUS_DRAFT: (STATUS_ISSUED, STATUS_CANCELLED),
    STATUS_ISSUED: (STATUS_CANCELLED,),
    STATUS_CANCELLED: (),
}

REASONS = {
    "credit": (
        "goods-returned",
        "shortage-in-supply",
        "overcharged-amount",
        "discount-allowed",
        "quality-issue",
        "damaged-goods",
        "other",
    ),
    "debit": (
        "goods-returned",
        "undercharged-amount",
        "additional-charges",
        "price-difference",
        "penalty-charges",
        "other",
    ),
}
REFERENCE_TYPES = ("invoice", "proforma", "estimation", "purchase-order", "other")


def _parse_lines(raw_items) -> list[dict]:
    lines = []
    for index, raw in enumerate(require_list(raw_items, "items")):
        prefix = f"items[{index}]"
        raw = require_mapping(raw, prefix)
        quantity = parse_quantity(raw.get("quantity"), f"{prefix}.quantity", positive=True)
        rate = parse_money(raw.get("rate"), f"{prefix}.rate", default=None)
        lines.append(
            {
                "description": clean_str(raw.get("description"), f"{prefix}.description", required=True, max_len=255),
                "hsn": clean_str(raw.get("hsn"), f"{prefix}.hsn", max_len=32),
                "unit": clean_str(raw.get("unit"), f"{prefix}.unit", max_len=16),
                "quantity": quantity,
                "rate": rate,
                "amount": (quantity * rate).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP),
            }
        )
    return lines


def recalculate_totals(note: Note) -> None:
    note.subtotal = sum((Decimal(line.amount) for line in note.lines), Decimal("0.00"))
    note.grand_total = note.subtotal


def build_note(
    *,
    note_type: str,
    note_date,
    reference_type: str,
    reference_number: str,
    reason: str,
    party_name: str,
    lines: list[dict],
    status: str = STATUS_DRAFT,
    **fields,
) -> Note:
    """
    Number and assemble a note inside the caller's transaction.

    ``lines`` are parsed item dicts (description, hsn, unit, quantity,
    rate, amount). Does not commit.
    """
    year = note_date.year
    serial = next_sequence(note_key(note_type, year))
    note = Note(
        serial_no=serial,
        note_number=format_note_number(note_type, serial, year),
        note_type=note_type,
        note_date=note_date,
        reference_type=reference_type,
        reference_number=reference_number,
        reason=reason,
        party_name=party_name,
        status=status,
        **fields,
    )
    db.session.add(note)
    for values in lines:
        note.lines.append(NoteLine(**values))
    recalculate_totals(note)
    return note


def create_note(payload: dict) -> Note:
    """
    Create a credit or debit note.

    Payload:
        note_type: credit | debit (required)
        note_date: ISO-8601 (defaults to now)
        reference_type: invoice | proforma | estimation | purchase-order | other
        reference_number: required unless document_id is given
        document_id: optional link to an estimation, proforma or invoice
        reason: one of REASONS[note_type]; reason_description optional
        party: {name, mobile, gst, state, address}; name defaults to the
               linked document's customer
        items: [{description, hsn, unit, quantity > 0, rate}] (at least one)
        status: draft (default) or issued
        remarks: optional

    Raises:
        ValidationError: malformed payload
        NotFoundError: unknown document_id
    """
    payload = require_mapping(payload, "body")
    if payload.get("note_number") is not None:
        raise ValidationError("note_number is issued automatically", field="note_number")
    note_type = parse_choice(payload.get("note_type"), "note_type", NOTE_TYPES)
    note_date = parse_date_field(payload.get("note_date"), "note_date") or utcnow()
    reference_type = parse_choice(payload.get("reference_type"), "reference_type", REFERENCE_TYPES)
    reference_number = clean_str(payload.get("reference_number"), "reference_number", max_len=64)
    reference_date = parse_date_field(payload.get("reference_date"), "reference_date")
    document_id = parse_int(payload.get("document_id"), "document_id", minimum=1, required=False)
    reason = parse_choice(payload.get("reason"), "reason", REASONS[note_type])
    reason_description = clean_str(payload.get("reason_description"), "reason_description")
    party = require_mapping(payload.get("party") or {}, "party")
    party_fields = {
        "party_mobile": clean_str(party.get("mobile"), "party.mobile", max_len=32),
        "party_gst": clean_str(party.get("gst"), "party.gst", max_len=32),
        "party_state": clean_str(party.get("state"), "party.state", max_len=64),
        "party_address": clean_str(party.get("address"), "party.address"),
    }
    party_name = clean_str(party.get("name"), "party.name", max_len=255)
    lines = _parse_lines(payload.get("items"))
    status = parse_choice(payload.get("status") or STATUS_DRAFT, "status", (STATUS_DRAFT, STATUS_ISSUED))
    remarks = clean_str(payload.get("remarks"), "remarks")

    if document_id is None and reference_number is None:
        raise ValidationError("reference_number is required", field="reference_number")
    if document_id is None and party_name is None:
        raise ValidationError("party.name is required", field="party.name")

    def _op() -> Note:
        name = party_name
        number = reference_number
        ref_date = reference_date
        document = None
        if document_id is not None:
            document = db.session.get(Document, document_id)
            if document is None:
                raise NotFoundError(f"Document {document_id} not found")
            if reference_type != document.document_type:
                raise ValidationError(
                    f"reference_type '{reference_type}' does not match {document.document_number} "
                    f"({document.document_type})",
                    field="reference_type",
                )
            number = number or document.document_number
            name = name or document.customer_name
            ref_date = ref_date or document.document_date
            for key, value in (
                ("party_mobile", document.customer_mobile),
                ("party_gst", document.customer_gst),
                ("party_address", document.customer_address),
            ):
                party_fields[key] = party_fields[key] or value

        note = build_note(
            note_type=note_type,
            note_date=note_date,
            reference_type=reference_type,
            reference_number=number,
            reason=reason,
            party_name=name,
            lines=lines,
            status=status,
            reference_date=ref_date,
            document=document,
            reason_description=reason_description,
            remarks=remarks,
            is_auto_generated=False,
            **party_fields,
        )
        db.session.flush()
        return note

    note = run_atomic(_op)
    current_app.logger.info(
        "Created %s note %s against %s (%s)",
        note.note_type,
        note.note_number,
        note.reference_number,
        note.grand_total,
    )
    return note


def get_note(note_id: int) -> Note:
    """
    Get a note by ID.

    Raises:
        NotFoundError: If not found
    """
    note = db.session.get(Note, note_id)
    if note is None:
        raise NotFoundError(f"Note {note_id} not found")
    return note


def list_notes(
    *,
    note_type: str | None = None,
    reference_number: str | None = None,
    party_name: str | None = None,
    status: str | None = None,
    start_date=None,
    end_date=None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Note], int]:
    query = db.session.query(Note)
    if note_type:
        parse_choice(note_type, "note_type", NOTE_TYPES)
        query = query.filter(Note.note_type == note_type)
    if status:
        parse_choice(status, "status", NOTE_STATUSES)
        query = query.filter(Note.status == status)
    if reference_number:
        query = query.filter(Note.reference_number.like(f"%{reference_number.strip()}%"))
    if party_name:
        query = query.filter(func.lower(Note.party_name).like(f"%{party_name.strip().lower()}%"))
    start = parse_date_field(start_date, "start_date")
    end = parse_date_field(end_date, "end_date")
    if start is not None:
        query = query.filter(Note.note_date >= start)
    if end is not None:
        query = query.filter(Note.note_date <= end)

    total = query.count()
    notes = query.order_by(Note.id.desc()).offset(offset).limit(limit).all()
    return notes, total


def update_note_status(note_id: int, status: str) -> Note:
    """
    Move a note forward: draft -> issued, draft/issued -> cancelled.

    Raises:
        ValidationError: unknown status
        StateError: backwards move or a cancelled note
    """
    parse_choice(status, "status", NOTE_STATUSES)

    def _op() -> Note:
        note = get_note(note_id)
        if status == note.status:
            return note
        if status not in _TRANSITIONS[note.status]:
            raise StateError(f"Cannot move {note.note_number} from {note.status} to {status}")
        note.status = status
        if status == STATUS_CANCELLED:
            note.cancelled_at = utcnow()
        return note

    note = run_atomic(_op)
    current_app.logger.info("Note %s is now %s", note.note_number, note.status)
    return note


def cancel_note(note_id: int) -> Note:
    """Soft delete: the note is kept with status cancelled."""
    return update_note_status(note_id, STATUS_CANCELLED)


def notes_for_reference(reference_number: str) -> dict:
    """
    Every note raised against one reference, with the net adjustment.

    Cancelled notes are listed but do not count towards the totals.
    net_adjustment = total_debited - total_credited
    """
    reference_number = clean_str(reference_number, "reference_number", required=True, max_len=64)
    notes = (
        db.session.query(Note)
        .filter(Note.reference_number == reference_number)
        .order_by(Note.note_date.desc(), Note.id.desc())
        .all()
    )
    credited = sum(
        (Decimal(n.grand_total) for n in notes if n.note_type == "credit" and n.status != STATUS_CANCELLED),
        Decimal("0.00"),
    )
    debited = sum(
        (Decimal(n.grand_total) for n in notes if n.note_type == "debit" and n.status != STATUS_CANCELLED),
        Decimal("0.00"),
    )
    return {
        "reference_number": reference_number,
        "credit_notes": [n.to_dict(include_lines=False) for n in notes if n.note_type == "credit"],
        "debit_notes": [n.to_dict(include_lines=False) for n in notes if n.note_type == "debit"],
        "total_credited": to_number(credited),
        "total_debited": to_number(debited),
        "net_adjustment": to_number(debited - credited),
    }
