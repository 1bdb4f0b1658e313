# Overview: Pytest coverage for store entries; receipt preconditions, derived quantities and edits.

"""
Store Entry Tests

Covers:
1. Preconditions: purchase exists, is Completed, has no entry yet
2. Derived shortage/surplus and totals
3. Numbering and the opening store log on completion
4. Draft entries and completing them later
5. Edits that would contradict recorded movements
"""

from decimal import Decimal

import pytest

from garment_erp.models import StoreEntry, StoreLog
from garment_erp.services import store_entry_service
from garment_erp.services.sequence_service import peek_sequence
from garment_erp.validation import ConflictError, NotFoundError, StateError, ValidationError


def _entries(**qty_by_name):
    return [
        {"item_name": name, "invoice_qty": invoice, "store_in_qty": store_in}
        for name, (invoice, store_in) in qty_by_name.items()
    ]


class TestCreateStoreEntry:
    """Creation preconditions and derived fields."""

    def test_create_completed_entry(self, db_session, completed_purchase):
        purchase = completed_purchase()
        entry = store_entry_service.create_store_entry(
            purchase_id=purchase.id,
            store_entry_date="2025-06-20",
            entries=_entries(Cotton=("100", "95.5"), Lining=("40", "42")),
        )

        assert entry.status == "Completed"
        assert entry.store_number == "STR-1"
        assert entry.pur_number == purchase.pur_number
        assert entry.order_id == purchase.order_id

        cotton = entry.item_named("Cotton")
        assert cotton.shortage == Decimal("4.500")
        assert cotton.surplus == 0
        lining = entry.item_named("Lining")
        assert lining.shortage == 0
        assert lining.surplus == Decimal("2.000")

        assert entry.total_invoice_qty == Decimal("140.000")
        assert entry.total_store_in_qty == Decimal("137.500")
        assert entry.total_shortage == Decimal("4.500")
        assert entry.total_surplus == Decimal("2.000")

        # Defaults for type and unit
        assert cotton.item_type == "fabric"
        assert cotton.unit == "mtr"

    def test_opening_log_written(self, db_session, store_entry):
        entry = store_entry()
        logs = db_session.query(StoreLog).filter_by(store_entry_id=entry.id).all()

        assert len(logs) == 1
        opening = logs[0]
        assert opening.is_opening is True
        assert opening.status == "In Store"
        assert opening.items == []
        assert opening.log_number == "LOG-1"
        assert opening.store_number == entry.store_number

    def test_purchase_must_be_completed(self, db_session, make_order):
        order = make_order()
        with pytest.raises(StateError):
            store_entry_service.create_store_entry(
                purchase_id=order.purchase.id,
                store_entry_date="2025-06-20",
                entries=_entries(Cotton=(10, 10)),
            )
        assert peek_sequence("storeEntrySeq") == 1

    def test_second_entry_for_purchase_conflicts(self, db_session, completed_purchase):
        purchase = completed_purchase()
        store_entry_service.create_store_entry(
            purchase_id=purchase.id, store_entry_date="2025-06-20", entries=_entries(Cotton=(10, 10))
        )
        with pytest.raises(ConflictError):
            store_entry_service.create_store_entry(
                purchase_id=purchase.id, store_entry_date="2025-06-21", entries=_entries(Cotton=(5, 5))
            )
        assert db_session.query(StoreEntry).count() == 1

    def test_missing_purchase(self, db_session):
        with pytest.raises(NotFoundError):
            store_entry_service.create_store_entry(
                purchase_id=404, store_entry_date="2025-06-20", entries=_entries(Cotton=(1, 1))
            )

    def test_needs_some_stock(self, db_session, completed_purchase):
        purchase = completed_purchase()
        with pytest.raises(ValidationError):
            store_entry_service.create_store_entry(
                purchase_id=purchase.id, store_entry_date="2025-06-20", entries=_entries(Cotton=(10, 0))
            )

    def test_duplicate_item_names_rejected(self, db_session, completed_purchase):
        purchase = completed_purchase()
        with pytest.raises(ValidationError):
            store_entry_service.create_store_entry(
                purchase_id=purchase.id,
                store_entry_date="2025-06-20",
                entries=[
                    {"item_name": "Cotton", "store_in_qty": 1},
                    {"item_name": "cotton", "store_in_qty": 2},
                ],
            )

    def test_store_entry_date_required(self, db_session, completed_purchase):
        purchase = completed_purchase()
        with pytest.raises(ValidationError) as excinfo:
            store_entry_service.create_store_entry(
                purchase_id=purchase.id, store_entry_date=None, entries=_entries(Cotton=(1, 1))
            )
        assert excinfo.value.field == "store_entry_date"

    def test_negative_quantity_rejected(self, db_session, completed_purchase):
        purchase = completed_purchase()
        with pytest.raises(ValidationError):
            store_entry_service.create_store_entry(
                purchase_id=purchase.id, store_entry_date="2025-06-20", entries=_entries(Cotton=(10, -1))
            )


class TestDraftEntries:
    """Pending entries carry no number until completed."""

    def test_draft_then_complete(self, db_session, store_entry):
        draft = store_entry(status="Pending")
        assert draft.store_number is None
        assert draft.logs == []

        entry = store_entry_service.complete_store_entry(draft.id)
        assert entry.store_number == "STR-1"
        assert len(entry.logs) == 1

        with pytest.raises(StateError):
            store_entry_service.complete_store_entry(entry.id)

    def test_pending_purchases_listing(self, db_session, completed_purchase, store_entry):
        waiting = completed_purchase()
        store_entry()
        awaiting = store_entry_service.list_purchases_awaiting_store_entry()
        assert [p.id for p in awaiting] == [waiting.id]


class TestUpdateStoreEntry:
    """Edits must stay consistent with recorded movements."""

    def test_update_recomputes_totals(self, db_session, store_entry):
        entry = store_entry()
        updated = store_entry_service.update_store_entry(
            entry.id, entries=_entries(Cotton=(120, 110)), remarks="Recounted"
        )
        assert updated.total_store_in_qty == Decimal("110.000")
        assert updated.total_shortage == Decimal("10.000")
        assert updated.remarks == "Recounted"

    def test_cannot_drop_below_quantity_out(self, db_session, store_entry, take):
        entry = store_entry()
        take(entry.id, taken=60)
        with pytest.raises(ValidationError):
            store_entry_service.update_store_entry(entry.id, entries=_entries(Cotton=(100, 50)))

    def test_cannot_remove_item_with_movements(self, db_session, store_entry, take):
        entry = store_entry({"Cotton": 100, "Lining": 20})
        take(entry.id, taken=10)
        with pytest.raises(StateError):
            store_entry_service.update_store_entry(entry.id, entries=_entries(Lining=(20, 20)))

    def test_update_bumps_version(self, db_session, store_entry):
        entry = store_entry()
        before = entry.version_id
        updated = store_entry_service.update_store_entry(entry.id, remarks="Checked")
        assert updated.version_id > before


class TestDeleteStoreEntry:
    def test_delete_removes_logs(self, db_session, store_entry, take):
        entry = store_entry()
        take(entry.id, taken=5)
        store_entry_service.delete_store_entry(entry.id)

        assert db_session.query(StoreEntry).count() == 0
        assert db_session.query(StoreLog).count() == 0

    def test_lookup_by_purchase(self, db_session, store_entry):
        entry = store_entry()
        assert store_entry_service.get_store_entry_for_purchase(entry.purchase_id).id == entry.id
        with pytest.raises(NotFoundError):
            store_entry_service.get_store_entry_for_purchase(9999)
