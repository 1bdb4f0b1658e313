# Overview: Service-layer operations for document sequences; atomic counters and number formatting.

"""
Sequence Service

Every business document carries a human-readable number minted from a
named counter. The counter store exposes one atomic increment-and-fetch;
the sequence service validates keys and offers a non-mutating preview.

RULES:
1. next(key) is a single atomic statement; N concurrent callers receive
   N distinct numbers.
2. The increment runs in the caller's transaction. If the document write
   rolls back, so does the number, keeping the sequence gapless.
3. peek(key) never writes. The previewed number is NOT reserved.
4. Formatting is the caller's job; counters only hand out integers.
"""

from __future__ import annotations

import re
from typing import Protocol

from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Counter
from ..time_utils import financial_year, utcnow
from ..validation import ValidationError


# Counter keys
GLOBAL_ORDER_SEQ = "globalOrderSeq"
BUYER_SEQ = "buyerSeq"
PURCHASE_SEQ = "purchaseSeq"
PRODUCTION_SEQ = "productionSeq"
STORE_ENTRY_SEQ = "storeEntrySeq"
STORE_LOG_SEQ = "storeLogSeq"
PURCHASE_RETURN_SEQ = "purchaseReturnSeq"

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
_UPSERT_DIALECTS = {"sqlite": sqlite_insert, "postgresql": pg_insert}


class SequenceError(RuntimeError):
    """Raised when a counter cannot be durably advanced; nothing was issued."""

    status_code = 503

    def to_dict(self) -> dict:
        return {"error": str(self), "retryable": True}


def order_type_key(order_type: str) -> str:
    return f"orderSeq_{order_type}"


def po_key(fy: str) -> str:
    return f"poSeq_{fy}"


def document_key(document_type: str, year: int) -> str:
    return f"documentSeq_{document_type}_{year}"


def note_key(note_type: str, year: int) -> str:
    return f"{note_type}NoteSeq_{year}"


def validate_key(key) -> str:
    if not isinstance(key, str) or not _KEY_PATTERN.match(key):
        raise ValidationError(
            "Counter key must be 1-64 characters of letters, digits, '_' or '-'",
            field="key",
        )
    return key


class CounterStore(Protocol):
    def increment(self, key: str) -> int: ...

    def current(self, key: str) -> int | None: ...

    def reset(self, key: str, value: int = 0) -> None: ...

    def all(self) -> list[Counter]: ...


class SqlCounterStore:
    """
    Counter store on the ``counters`` table.

    SQLite and PostgreSQL use one ``INSERT .. ON CONFLICT DO UPDATE ..
    RETURNING`` statement. Other dialects bump with UPDATE and fall back
    to INSERT (inside a savepoint) for a brand-new key.
    """

    def __init__(self, session):
        self.session = session

    def increment(self, key: str) -> int:
        now = utcnow()
        dialect = self.session.get_bind().dialect.name
        insert_fn = _UPSERT_DIALECTS.get(dialect)

        if insert_fn is not None:
            stmt = insert_fn(Counter).values(key=key, value=1, updated_at=now)
            stmt = stmt.on_conflict_do_update(
                index_elements=["key"],
                set_={"value": Counter.value + 1, "updated_at": now},
            ).returning(Counter.value)
            return self.session.execute(stmt).scalar_one()

        bump = (
            update(Counter)
            .where(Counter.key == key)
            .values(value=Counter.value + 1, updated_at=now)
        )
        result = self.session.execute(bump)
        if not result.rowcount:
            try:
                with self.session.begin_nested():
                    self.session.execute(insert(Counter).values(key=key, value=1, updated_at=now))
                return 1
            except IntegrityError:
                # Another writer created the row first
                result = self.session.execute(bump)
                if not result.rowcount:
                    raise
        return self.session.execute(select(Counter.value).where(Counter.key == key)).scalar_one()

    def current(self, key: str) -> int | None:
        return self.session.execute(
            select(Counter.value).where(Counter.key == key)
        ).scalar_one_or_none()

    def reset(self, key: str, value: int = 0) -> None:
        now = utcnow()
        result = self.session.execute(
            update(Counter).where(Counter.key == key).values(value=value, updated_at=now)
        )
        if not result.rowcount:
            self.session.add(Counter(key=key, value=value, updated_at=now))
        self.session.flush()

    def all(self) -> list[Counter]:
        return list(self.session.execute(select(Counter).order_by(Counter.key)).scalars())


class SequenceService:
    def __init__(self, store: CounterStore):
        self.store = store

    def next(self, key: str) -> int:
        """
        Issue the next number for ``key`` (first call returns 1).

        Raises:
            ValidationError: malformed key
            SequenceError: the increment could not be recorded
        """
        validate_key(key)
        try:
            value = self.store.increment(key)
        except IntegrityError as exc:
            raise SequenceError(f"Could not advance counter '{key}'; try again later") from exc
        if not isinstance(value, int) or value < 1:
            raise SequenceError(f"Counter '{key}' returned an invalid value")
        return value

    def peek(self, key: str) -> int:
        """Preview only, not reserved: a concurrent next() may take this number."""
        validate_key(key)
        current = self.store.current(key)
        return 1 if current is None else current + 1

    def current(self, key: str) -> int | None:
        validate_key(key)
        return self.store.current(key)

    def reset(self, key: str, value: int = 0) -> None:
        """Administrative reset. Never part of the normal document flow."""
        validate_key(key)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError("Counter value must be a non-negative integer", field="value")
        self.store.reset(key, value)

    def all(self) -> list[Counter]:
        return self.store.all()


def get_sequence_service() -> SequenceService:
    return SequenceService(SqlCounterStore(db.session))


def next_sequence(key: str) -> int:
    return get_sequence_service().next(key)


def peek_sequence(key: str) -> int:
    return get_sequence_service().peek(key)


# =============================================================================
# Number formatting
# =============================================================================

def format_order_number(seq: int) -> str:
    return f"OID-{seq:04d}"


def format_po_number(seq: int, fy: str) -> str:
    return f"PO/{fy}/{seq:04d}"


def format_purchase_number(seq: int) -> str:
    return f"PUR-{seq}"


def format_production_number(seq: int) -> str:
    return f"PRD-{seq:04d}"


def format_store_entry_number(seq: int) -> str:
    return f"STR-{seq}"


def format_store_log_number(seq: int) -> str:
    return f"LOG-{seq}"


def format_buyer_code(seq: int) -> str:
    return f"BUY{seq:03d}"


def format_purchase_return_number(seq: int) -> str:
    return f"PURT-{seq:04d}"


DOCUMENT_TYPES = ("estimation", "proforma", "invoice")
_DOCUMENT_PREFIXES = {"estimation": "EST", "proforma": "PRO", "invoice": "INV"}


def format_document_number(document_type: str, seq: int, year: int) -> str:
    return f"{_DOCUMENT_PREFIXES[document_type]}-{year}-{seq:04d}"


NOTE_TYPES = ("credit", "debit")
_NOTE_PREFIXES = {"credit": "CN", "debit": "DN"}


def format_note_number(note_type: str, seq: int, year: int) -> str:
    return f"{_NOTE_PREFIXES[note_type]}/{year}/{seq:04d}"


ORDER_TYPES = ("FOB", "JOB-Works", "Own-Orders")


def _document_preview(document_type: str):
    return (
        lambda params: document_key(document_type, params["year"]),
        lambda seq, params: format_document_number(document_type, seq, params["year"]),
    )


def _note_preview(note_type: str):
    return (
        lambda params: note_key(note_type, params["year"]),
        lambda seq, params: format_note_number(note_type, seq, params["year"]),
    )


# doc_type -> (counter key builder, formatter)
_PREVIEWS = {
    "order": (lambda params: GLOBAL_ORDER_SEQ, lambda seq, params: format_order_number(seq)),
    "order_serial": (lambda params: order_type_key(params["order_type"]), lambda seq, params: seq),
    "po": (lambda params: po_key(params["fy"]), lambda seq, params: format_po_number(seq, params["fy"])),
    "purchase": (lambda params: PURCHASE_SEQ, lambda seq, params: format_purchase_number(seq)),
    "production": (lambda params: PRODUCTION_SEQ, lambda seq, params: format_production_number(seq)),
    "store_entry": (lambda params: STORE_ENTRY_SEQ, lambda seq, params: format_store_entry_number(seq)),
    "store_log": (lambda params: STORE_LOG_SEQ, lambda seq, params: format_store_log_number(seq)),
    "buyer": (lambda params: BUYER_SEQ, lambda seq, params: format_buyer_code(seq)),
    "purchase_return": (lambda params: PURCHASE_RETURN_SEQ, lambda seq, params: format_purchase_return_number(seq)),
    "estimation": _document_preview("estimation"),
    "proforma": _document_preview("proforma"),
    "invoice": _document_preview("invoice"),
    "credit_note": _note_preview("credit"),
    "debit_note": _note_preview("debit"),
}

PREVIEW_DOC_TYPES = tuple(_PREVIEWS)
_YEARLY_DOC_TYPES = DOCUMENT_TYPES + ("credit_note", "debit_note")


def _parse_year(value) -> int:
    if value is None or value == "":
        return utcnow().year
    if isinstance(value, int) and not isinstance(value, bool):
        year = value
    elif isinstance(value, str) and re.fullmatch(r"\d{4}", value.strip()):
        year = int(value)
    else:
        raise ValidationError("year must be a four-digit calendar year", field="year")
    if not 2000 <= year <= 2999:
        raise ValidationError("year must be a four-digit calendar year", field="year")
    return year


def preview_document_number(doc_type: str, **params) -> dict:
    """
    Formatted, non-mutating preview of the next number for a document type.

    ``order_serial`` needs ``order_type``; ``po`` takes an optional ``fy``
    (defaults to the current financial year). Estimations, proformas,
    invoices and credit/debit notes number per calendar year and take an
    optional ``year`` (defaults to this year).
    """
    if doc_type not in _PREVIEWS:
        raise ValidationError(
            f"Unknown document type '{doc_type}'. Must be one of: {', '.join(PREVIEW_DOC_TYPES)}",
            field="doc_type",
        )
    if doc_type == "order_serial" and params.get("order_type") not in ORDER_TYPES:
        raise ValidationError(
            f"order_type is required. Must be one of: {', '.join(ORDER_TYPES)}",
            field="order_type",
        )
    if doc_type == "po":
        params["fy"] = params.get("fy") or financial_year()
        if not re.fullmatch(r"\d{4}", params["fy"]):
            raise ValidationError("fy must look like 2526", field="fy")

    if doc_type in _YEARLY_DOC_TYPES:
        params["year"] = _parse_year(params.get("year"))

    key_for, formatter = _PREVIEWS[doc_type]
    key = key_for(params)
    seq = peek_sequence(key)
    return {
        "doc_type": doc_type,
        "key": key,
        "next": seq,
        "formatted": formatter(seq, params),
        "reserved": False,
    }
