# Overview: Pytest coverage for the store log ledger; availability, movements and status hints.

"""
Store Log Ledger Tests

The ledger invariant: for every item of a store entry,
    available = store_in - sum(taken) + sum(returned) >= 0
and returns never exceed takes. These tests cover:
1. The take/reject/take walk-through (100 in, take 30, take 80 rejected, take 50)
2. Edits validated without the edited log's own lines
3. Deletes that would break the invariant
4. Status defaults and the suggested status hint
5. Draft entries refuse movements
"""

from decimal import Decimal

import pytest

from garment_erp.models import StoreLog
from garment_erp.services import store_log_service
from garment_erp.services.store_log_service import calculate_available_stock, get_available_stock, suggest_status
from garment_erp.validation import InsufficientStockError, NotFoundError, StateError, ValidationError


class TestAvailability:
    """Take, reject, take."""

    def test_walkthrough(self, db_session, store_entry, take):
        entry = store_entry({"Cotton": 100})

        take(entry.id, taken=30)
        assert calculate_available_stock(entry.id, "Cotton") == Decimal("70")

        with pytest.raises(InsufficientStockError) as excinfo:
            take(entry.id, taken=80)
        assert excinfo.value.item_name == "Cotton"
        assert excinfo.value.available == Decimal("70")
        assert excinfo.value.requested == Decimal("80")
        body = excinfo.value.to_dict()
        assert body["available"] == 70
        assert body["requested"] == 80

        take(entry.id, taken=50, returned=0)
        assert calculate_available_stock(entry.id, "Cotton") == Decimal("20")

    def test_rejected_take_leaves_no_trace(self, db_session, store_entry, take):
        entry = store_entry({"Cotton": 10})
        with pytest.raises(InsufficientStockError):
            take(entry.id, taken=11)
        assert db_session.query(StoreLog).filter_by(is_opening=False).count() == 0

    def test_returns_restore_availability(self, db_session, store_entry, take):
        entry = store_entry({"Cotton": 100})
        take(entry.id, taken=100)
        take(entry.id, returned=40)
        take(entry.id, taken=40)
        assert calculate_available_stock(entry.id, "Cotton") == 0

    def test_return_more_than_taken_rejected(self, db_session, store_entry, take):
        entry = store_entry({"Cotton": 100})
        take(entry.id, taken=10)
        with pytest.raises(ValidationError):
            take(entry.id, returned=11)

    def test_snapshot_per_item(self, db_session, store_entry, take):
        entry = store_entry({"Cotton": 100, "Lining": "12.5"})
        take(entry.id, taken=30)
        take(entry.id, item_name="Lining", taken="2.25", returned="0.25")

        snapshot = get_available_stock(entry.id)
        by_name = {item["item_name"]: item for item in snapshot["items"]}
        assert snapshot["store_number"] == entry.store_number
        assert by_name["Cotton"]["available_stock"] == Decimal("70")
        assert by_name["Cotton"]["total_taken"] == Decimal("30")
        assert by_name["Lining"]["available_stock"] == Decimal("10.500")

    def test_unknown_item(self, db_session, store_entry, take):
        entry = store_entry({"Cotton": 100})
        with pytest.raises(ValidationError):
            take(entry.id, item_name="Silk", taken=1)
        with pytest.raises(NotFoundError):
            calculate_available_stock(entry.id, "Silk")


class TestCreateStoreLog:
    """Header fields, totals and defaults."""

    def test_fields_totals_and_default_status(self, db_session, store_entry):
        entry = store_entry({"Cotton": 100, "Thread": 50})
        log = store_log_service.create_store_log(
            entry.id,
            items=[
                {"item_name": "Cotton", "taken_qty": 20},
                {"item_name": "Thread", "taken_qty": 5, "returned_qty": 1},
            ],
            log_date="2025-06-21",
            person_name="Ravi",
            person_role="Cutter",
            department="Cutting",
            login_time="2025-06-21T09:00:00Z",
            product_count=40,
        )

        assert log.status == "Out"
        assert log.log_number == "LOG-2"
        assert log.person_name == "Ravi"
        assert log.product_count == 40
        assert log.total_taken_qty == Decimal("25")
        assert log.total_returned_qty == Decimal("1")
        assert log.total_in_hand_qty == Decimal("24")
        thread = next(item for item in log.items if item.item_name == "Thread")
        assert thread.in_hand_qty == Decimal("4")
        # Type and unit fall back to the store entry's line
        assert thread.item_type == "fabric"
        assert thread.unit == "mtr"

    def test_explicit_status_wins(self, db_session, store_entry, take):
        entry = store_entry()
        log = take(entry.id, taken=10, status="Completed")
        assert log.status == "Completed"

    def test_log_date_required(self, db_session, store_entry):
        entry = store_entry()
        with pytest.raises(ValidationError) as excinfo:
            store_log_service.create_store_log(entry.id, items=[{"item_name": "Cotton", "taken_qty": 1}])
        assert excinfo.value.field == "log_date"

    def test_items_required(self, db_session, store_entry):
        entry = store_entry()
        with pytest.raises(ValidationError):
            store_log_service.create_store_log(entry.id, items=[], log_date="2025-06-21")

    def test_draft_entry_refuses_movements(self, db_session, store_entry, take):
        draft = store_entry(status="Pending")
        with pytest.raises(StateError):
            take(draft.id, taken=1)

    def test_missing_entry(self, db_session, take):
        with pytest.raises(NotFoundError):
            take(404, taken=1)


class TestUpdateStoreLog:
    """Edits exclude the log's own quantities from availability."""

    def test_increase_within_availability(self, db_session, store_entry, take):
        entry = store_entry({"Cotton": 100})
        log = take(entry.id, taken=30)
        take(entry.id, taken=50)

        # Others hold 50, so this log may go up to 50
        updated = store_log_service.update_store_log(log.id, items=[{"item_name": "Cotton", "taken_qty": 50}])
        assert updated.total_taken_qty == Decimal("50")
        assert calculate_available_stock(entry.id, "Cotton") == 0

        with pytest.raises(InsufficientStockError) as excinfo:
            store_log_service.update_store_log(log.id, items=[{"item_name": "Cotton", "taken_qty": 51}])
        assert excinfo.value.available == Decimal("50")

    def test_decrease_always_allowed(self, db_session, store_entry, take):
        entry = store_entry({"Cotton": 100})
        log = take(entry.id, taken=80)
        store_log_service.update_store_log(log.id, items=[{"item_name": "Cotton", "taken_qty": 10}])
        assert calculate_available_stock(entry.id, "Cotton") == Decimal("90")

    def test_header_only_update_keeps_items_and_status(self, db_session, store_entry, take):
        entry = store_entry()
        log = take(entry.id, taken=10)
        updated = store_log_service.update_store_log(log.id, person_name="Meena", logout_time="2025-06-21T18:00:00Z")
        assert updated.person_name == "Meena"
        assert updated.status == "Out"
        assert len(updated.items) == 1

    def test_opening_log_cannot_take_items(self, db_session, store_entry):
        entry = store_entry()
        opening = entry.logs[0]
        with pytest.raises(StateError):
            store_log_service.update_store_log(opening.id, items=[{"item_name": "Cotton", "taken_qty": 1}])

    def test_invalid_status(self, db_session, store_entry, take):
        entry = store_entry()
        log = take(entry.id, taken=1)
        with pytest.raises(ValidationError):
            store_log_service.update_store_log(log.id, status="Lost")


class TestDeleteStoreLog:
    def test_delete_restores_availability(self, db_session, store_entry, take):
        entry = store_entry({"Cotton": 100})
        log = take(entry.id, taken=30)
        store_log_service.delete_store_log(log.id)
        assert calculate_available_stock(entry.id, "Cotton") == Decimal("100")

    def test_delete_that_orphans_returns_refused(self, db_session, store_entry, take):
        """Removing the take behind a later return would leave returns > takes."""
        entry = store_entry({"Cotton": 100})
        taking = take(entry.id, taken=30)
        take(entry.id, returned=30)
        with pytest.raises(StateError):
            store_log_service.delete_store_log(taking.id)

    def test_opening_log_cannot_be_deleted(self, db_session, store_entry):
        entry = store_entry()
        with pytest.raises(StateError):
            store_log_service.delete_store_log(entry.logs[0].id)


class TestConservation:
    """Availability always equals store_in - taken + returned."""

    def test_sequence_of_movements(self, db_session, store_entry, take):
        entry = store_entry({"Cotton": 100})
        movements = [(25, 0), (0, 5), (40, 10), (30, 0), (0, 20)]
        taken_total = returned_total = 0
        for taken, returned in movements:
            take(entry.id, taken=taken, returned=returned)
            taken_total += taken
            returned_total += returned
            available = calculate_available_stock(entry.id, "Cotton")
            assert available == Decimal(100 - taken_total + returned_total)
            assert available >= 0


class TestSuggestStatus:
    """Pure status hint; never applied automatically."""

    @pytest.mark.parametrize(
        "taken, returned, current, expected",
        [
            (10, 0, "In Store", "Out"),
            (10, 10, "Out", "In Store"),
            (10, 4, "Out", "Out"),
            (0, 0, "In Store", "In Store"),
            (10, 10, "Completed", "Completed"),
        ],
    )
    def test_suggestion(self, taken, returned, current, expected):
        assert suggest_status(taken, returned, current) == expected

    def test_exposed_but_not_applied(self, db_session, store_entry, take):
        entry = store_entry()
        log = take(entry.id, taken=10, returned=10, status="Out")
        body = log.to_dict()
        assert body["status"] == "Out"
        assert body["suggested_status"] == "In Store"


class TestListing:
    def test_logs_for_entry_and_filters(self, db_session, store_entry, take):
        entry = store_entry()
        take(entry.id, taken=1, person_name="Ravi")
        take(entry.id, taken=1, person_name="Meena", status="Completed")

        assert len(store_log_service.list_logs_for_entry(entry.id)) == 3

        logs, total = store_log_service.list_store_logs(store_entry_id=entry.id, include_opening=False)
        assert total == 2

        logs, total = store_log_service.list_store_logs(person_name="rav")
        assert [log.person_name for log in logs] == ["Ravi"]

        logs, total = store_log_service.list_store_logs(status="In Store")
        assert total == 1
        assert logs[0].is_opening
