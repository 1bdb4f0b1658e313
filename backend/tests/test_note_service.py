# Overview: Pytest coverage for credit and debit notes; numbering, document links, status and reference totals.

"""
Note Service Tests

Covers:
1. CN/DN numbering per note type and calendar year
2. Line amounts and totals
3. Defaults taken from a linked document
4. draft -> issued -> cancelled
5. Net adjustment per reference number
"""

from decimal import Decimal

import pytest

from garment_erp.services import document_service, note_service
from garment_erp.validation import NotFoundError, StateError, ValidationError


def note_payload(note_type="credit", **overrides):
    payload = {
        "note_type": note_type,
        "note_date": "2025-08-01",
        "reference_type": "invoice",
        "reference_number": "INV-2025-0001",
        "reason": "goods-returned",
        "party": {"name": "Acme Apparel", "mobile": "9876543210"},
        "items": [{"description": "Polo Shirt M", "unit": "pcs", "quantity": "2.5", "rate": "120.00"}],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_note(db_session):
    def _make(note_type="credit", **overrides):
        return note_service.create_note(note_payload(note_type, **overrides))
    return _make


@pytest.fixture
def invoice(db_session):
    return document_service.create_document(
        {
            "document_type": "invoice",
            "document_date": "2025-07-20",
            "customer": {"name": "Zen Wear", "mobile": "9000000000", "gst": "27ZZZZZ9999Z1Z9"},
            "items": [{"product_name": "Polo Shirt", "quantity": 10, "unit_price": "120"}],
        }
    )


class TestCreateNote:
    """Creation and numbering."""

    def test_numbers_per_type_and_year(self, db_session, make_note):
        first = make_note("credit")
        second = make_note("credit")
        debit = make_note("debit", reason="price-difference")
        next_year = make_note("credit", note_date="2026-01-02")

        assert [first.note_number, second.note_number] == ["CN/2025/0001", "CN/2025/0002"]
        assert debit.note_number == "DN/2025/0001"
        assert next_year.note_number == "CN/2026/0001"

    def test_amounts(self, db_session, make_note):
        note = make_note(
            items=[
                {"description": "Polo Shirt M", "quantity": "2.5", "rate": "120.00"},
                {"description": "Freight", "quantity": 1, "rate": "80"},
            ]
        )

        assert sorted(line.amount for line in note.lines) == [Decimal("80.00"), Decimal("300.00")]
        assert note.grand_total == Decimal("380.00")
        assert note.status == "draft"
        assert note.is_auto_generated is False

    def test_supplied_number_rejected(self, db_session, make_note):
        with pytest.raises(ValidationError) as exc:
            make_note(note_number="CN/2025/0099")
        assert exc.value.field == "note_number"

    def test_reason_must_fit_type(self, db_session, make_note):
        with pytest.raises(ValidationError):
            make_note("credit", reason="penalty-charges")
        with pytest.raises(ValidationError):
            make_note("debit", reason="discount-allowed")

    def test_reference_and_party_required_without_document(self, db_session, make_note):
        with pytest.raises(ValidationError) as exc:
            make_note(reference_number=None)
        assert exc.value.field == "reference_number"
        with pytest.raises(ValidationError) as exc:
            make_note(party={})
        assert exc.value.field == "party.name"

    def test_defaults_from_linked_document(self, db_session, make_note, invoice):
        note = make_note(document_id=invoice.id, reference_number=None, party={})

        assert note.reference_number == invoice.document_number
        assert note.party_name == "Zen Wear"
        assert note.party_gst == "27ZZZZZ9999Z1Z9"
        assert note.reference_date == invoice.document_date
        assert note.document_id == invoice.id

    def test_reference_type_must_match_document(self, db_session, make_note, invoice):
        with pytest.raises(ValidationError) as exc:
            make_note(document_id=invoice.id, reference_type="proforma")
        assert exc.value.field == "reference_type"

    def test_unknown_document(self, db_session, make_note):
        with pytest.raises(NotFoundError):
            make_note(document_id=999)

    def test_referenced_document_cannot_be_deleted(self, db_session, make_note, invoice):
        make_note(document_id=invoice.id)
        with pytest.raises(StateError):
            document_service.delete_document(invoice.id)


class TestNoteStatus:
    """Lifecycle."""

    def test_issue_then_cancel(self, db_session, make_note):
        note = make_note()
        note = note_service.update_note_status(note.id, "issued")
        assert note.status == "issued"

        note = note_service.cancel_note(note.id)
        assert note.status == "cancelled"
        assert note.cancelled_at is not None

    def test_no_way_back(self, db_session, make_note):
        note = make_note(status="issued")
        with pytest.raises(StateError):
            note_service.update_note_status(note.id, "draft")

        note_service.cancel_note(note.id)
        with pytest.raises(StateError):
            note_service.update_note_status(note.id, "issued")

    def test_cancelled_note_keeps_number(self, db_session, make_note):
        note = make_note()
        number = note.note_number
        note_service.cancel_note(note.id)

        assert note_service.get_note(note.id).note_number == number
        assert make_note().note_number == "CN/2025/0002"


class TestReferenceSummary:
    """Notes grouped by reference."""

    def test_net_adjustment_skips_cancelled(self, db_session, make_note):
        make_note("credit", status="issued")  # 300
        make_note("debit", reason="additional-charges", items=[{"description": "Packing", "quantity": 1, "rate": "100"}])
        cancelled = make_note("credit", items=[{"description": "Spare", "quantity": 1, "rate": "50"}])
        note_service.cancel_note(cancelled.id)
        make_note("credit", reference_number="INV-2025-0002")

        summary = note_service.notes_for_reference("INV-2025-0001")

        assert len(summary["credit_notes"]) == 2
        assert len(summary["debit_notes"]) == 1
        assert summary["total_credited"] == 300
        assert summary["total_debited"] == 100
        assert summary["net_adjustment"] == -200

    def test_list_filters(self, db_session, make_note):
        make_note("credit")
        make_note("debit", reason="price-difference", party={"name": "Zen Wear"})

        notes, total = note_service.list_notes(note_type="debit")
        assert total == 1
        assert notes[0].note_number == "DN/2025/0001"

        _, total = note_service.list_notes(party_name="acme")
        assert total == 1
