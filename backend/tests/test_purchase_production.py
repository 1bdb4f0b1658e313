# Overview: Pytest coverage for purchase items, completion and the production lifecycle.

"""
Purchase and Production Tests

Covers:
1. Purchase item replacement and cost totals
2. Completion: idempotent, promotes the order, spawns exactly one production
3. Manual production start rules per order type
4. Production stage history and order status sync
5. Reconciliation of missing purchases/productions
"""

from decimal import Decimal

import pytest

from garment_erp.models import Production, Purchase
from garment_erp.services import production_service, purchase_service
from garment_erp.services.reconciliation_service import find_workflow_gaps, repair_workflow_gaps
from garment_erp.validation import ConflictError, NotFoundError, StateError, ValidationError


ITEMS = [
    {"item_type": "fabric", "item_name": "Cotton", "unit": "mtr", "quantity": "120.5", "cost_per_unit": "80"},
    {"item_type": "trims", "item_name": "Buttons", "unit": "packet", "quantity": 10, "cost_per_unit": "12.25"},
    {"item_type": "machine", "item_name": "Needle set", "quantity": 1, "cost_per_unit": 500},
]


class TestUpdatePurchase:
    """Replacing vendor items."""

    def test_items_and_cost_totals(self, db_session, make_order):
        order = make_order()
        purchase = purchase_service.update_purchase(order.purchase.id, items=ITEMS)

        assert purchase.status == "Partial"
        assert purchase.total_fabric_cost == Decimal("9640.00")
        assert purchase.total_trims_cost == Decimal("122.50")
        assert purchase.total_machine_cost == Decimal("500.00")
        assert purchase.grand_total_cost == Decimal("10262.50")

    def test_clearing_items_goes_back_to_pending(self, db_session, make_order):
        order = make_order()
        purchase_service.update_purchase(order.purchase.id, items=ITEMS)
        purchase = purchase_service.update_purchase(order.purchase.id, items=[])
        assert purchase.status == "Pending"
        assert purchase.grand_total_cost == 0

    def test_invalid_item_type(self, db_session, make_order):
        order = make_order()
        with pytest.raises(ValidationError) as excinfo:
            purchase_service.update_purchase(
                order.purchase.id, items=[{"item_type": "paint", "item_name": "x", "quantity": 1}]
            )
        assert excinfo.value.field == "items[0].item_type"

    def test_zero_quantity_rejected(self, db_session, make_order):
        order = make_order()
        with pytest.raises(ValidationError):
            purchase_service.update_purchase(
                order.purchase.id, items=[{"item_type": "fabric", "item_name": "x", "quantity": 0}]
            )

    def test_completed_purchase_cannot_be_emptied(self, db_session, completed_purchase):
        purchase = completed_purchase()
        with pytest.raises(StateError):
            purchase_service.update_purchase(purchase.id, items=[])


class TestCompletePurchase:
    """Completion and the production spawn."""

    def test_complete_spawns_production_and_promotes_order(self, db_session, make_order):
        order = make_order()
        purchase_service.update_purchase(order.purchase.id, items=ITEMS[:1])
        purchase, production = purchase_service.complete_purchase(order.purchase.id)

        assert purchase.status == "Completed"
        assert purchase.completed_at is not None
        assert production.production_number == "PRD-0001"
        assert production.status == "Pending Production"
        assert production.purchase_id == purchase.id
        assert production.total_qty == 13
        # Production creation moves the order one step further
        assert purchase.order.status == "Pending Production"

    def test_complete_twice_is_idempotent(self, db_session, make_order):
        order = make_order()
        purchase_service.update_purchase(order.purchase.id, items=ITEMS[:1])
        _, first = purchase_service.complete_purchase(order.purchase.id)
        _, second = purchase_service.complete_purchase(order.purchase.id)

        assert first.id == second.id
        assert db_session.query(Production).filter_by(order_id=order.id).count() == 1

    def test_complete_without_items_rejected(self, db_session, make_order):
        order = make_order()
        with pytest.raises(ValidationError):
            purchase_service.complete_purchase(order.purchase.id)
        assert db_session.query(Production).count() == 0

    def test_complete_never_moves_order_backwards(self, db_session, make_order):
        from garment_erp.services import order_service

        order = make_order()
        order_service.set_order_status(order.id, "Delivered")
        purchase_service.update_purchase(order.purchase.id, items=ITEMS[:1])
        purchase, _ = purchase_service.complete_purchase(order.purchase.id)
        assert purchase.order.status == "Delivered"

    def test_missing_purchase(self, db_session):
        with pytest.raises(NotFoundError):
            purchase_service.complete_purchase(999)


class TestManualProduction:
    """create_production rules."""

    def test_job_works_can_start_before_purchase(self, db_session, make_order):
        order = make_order("JOB-Works")
        production = production_service.create_production(order.id, remarks="Customer fabric")
        assert production.status == "Pending Production"
        assert production.remarks == "Customer fabric"

    def test_fob_needs_completed_purchase(self, db_session, make_order):
        order = make_order("FOB")
        with pytest.raises(StateError):
            production_service.create_production(order.id)

    def test_second_production_conflicts(self, db_session, make_order):
        order = make_order("Own-Orders")
        production_service.create_production(order.id)
        with pytest.raises(ConflictError):
            production_service.create_production(order.id)

    def test_completion_after_manual_start_reuses_it(self, db_session, make_order):
        order = make_order("JOB-Works")
        manual = production_service.create_production(order.id)
        purchase_service.update_purchase(order.purchase.id, items=ITEMS[:1])
        _, production = purchase_service.complete_purchase(order.purchase.id)
        assert production.id == manual.id


class TestProductionStatus:
    """Stage moves, history and order sync."""

    def test_advance_through_all_stages(self, db_session, completed_purchase):
        purchase = completed_purchase()
        production = production_service.get_production_for_order(purchase.order_id)

        stages = []
        while production.status != "Completed":
            production = production_service.advance_production_status(production.id)
            stages.append(production.status)

        assert stages == ["Cutting", "Stitching", "Trimming", "QC", "Ironing", "Packing", "Completed"]
        assert production.completed_at is not None
        assert production.order.status == "Production Completed"
        assert len(production.history) == 8
        times = [event.occurred_at for event in production.history]
        assert times == sorted(times)
        assert production.history[-1].status == "Completed"
        assert production.history[1].status == "In Progress"

        with pytest.raises(StateError):
            production_service.advance_production_status(production.id)

    def test_set_status_records_notes_and_syncs_order(self, db_session, completed_purchase):
        purchase = completed_purchase()
        production = production_service.get_production_for_order(purchase.order_id)
        production = production_service.set_production_status(production.id, "Stitching", notes="Line 3")

        assert production.history[-1].stage == "Stitching"
        assert production.history[-1].notes == "Line 3"
        assert production.order.status == "In Production"

    def test_same_status_is_noop(self, db_session, completed_purchase):
        purchase = completed_purchase()
        production = production_service.get_production_for_order(purchase.order_id)
        production_service.set_production_status(production.id, "Pending Production")
        assert len(production.history) == 1

    def test_unknown_stage(self, db_session, completed_purchase):
        purchase = completed_purchase()
        production = production_service.get_production_for_order(purchase.order_id)
        with pytest.raises(ValidationError):
            production_service.set_production_status(production.id, "Dyeing")

    def test_strict_mode_blocks_backwards(self, app, db_session, completed_purchase):
        app.config["STRICT_STATUS_PROGRESSION"] = True
        purchase = completed_purchase()
        production = production_service.get_production_for_order(purchase.order_id)
        production_service.set_production_status(production.id, "QC")
        with pytest.raises(StateError):
            production_service.set_production_status(production.id, "Cutting")


class TestReconciliation:
    """Finding and repairing broken workflow links."""

    def test_repairs_missing_purchase_and_production(self, db_session, make_order, completed_purchase):
        orphan = make_order()
        db_session.delete(orphan.purchase)
        db_session.commit()

        purchase = completed_purchase()
        db_session.delete(db_session.query(Production).filter_by(order_id=purchase.order_id).one())
        db_session.commit()

        gaps = find_workflow_gaps()
        assert [row["order_id"] for row in gaps["orders_without_purchase"]] == [orphan.id]
        assert [row["purchase_id"] for row in gaps["completed_purchases_without_production"]] == [purchase.id]

        result = repair_workflow_gaps()
        assert len(result["purchases"]) == 1
        assert len(result["productions"]) == 1

        assert db_session.query(Purchase).filter_by(order_id=orphan.id).count() == 1
        assert find_workflow_gaps() == {
            "orders_without_purchase": [],
            "completed_purchases_without_production": [],
        }
