# Overview: Pytest coverage for the Flask CLI command groups.

from garment_erp.models import Order, Production, Purchase
from garment_erp.services import sequence_service


def _invoke(app, *args):
    return app.test_cli_runner().invoke(args=list(args))


class TestCounterCommands:
    def test_list_empty_then_populated(self, app, db_session, make_order):
        result = _invoke(app, "counters", "list")
        assert result.exit_code == 0
        assert "No counters issued yet" in result.output

        make_order()
        result = _invoke(app, "counters", "list")
        assert "globalOrderSeq" in result.output
        assert "orderSeq_FOB" in result.output

    def test_peek_does_not_issue(self, app, db_session):
        result = _invoke(app, "counters", "peek", "storeEntrySeq")
        assert result.exit_code == 0
        assert "storeEntrySeq: next = 1" in result.output
        assert sequence_service.peek_sequence("storeEntrySeq") == 1

    def test_peek_rejects_bad_key(self, app, db_session):
        result = _invoke(app, "counters", "peek", "bad key")
        assert result.exit_code != 0

    def test_reset(self, app, db_session, make_order):
        make_order()
        make_order()
        result = _invoke(app, "counters", "reset", "globalOrderSeq", "--value", "10", "--yes")
        assert result.exit_code == 0
        assert "next = 11" in result.output
        assert sequence_service.peek_sequence("globalOrderSeq") == 11


class TestOrderCommands:
    def test_orphans_and_repair(self, app, db_session, make_order):
        order = make_order()
        db_session.delete(order.purchase)
        db_session.commit()

        result = _invoke(app, "orders", "orphans")
        assert result.exit_code == 0
        assert "Orders without purchase: 1" in result.output
        assert order.order_number in result.output

        result = _invoke(app, "orders", "repair")
        assert result.exit_code == 0
        assert "Purchases created: 1" in result.output

        db_session.expire_all()
        assert db_session.query(Purchase).filter_by(order_id=order.id).count() == 1
        assert db_session.query(Production).count() == 0


class TestSystemCommands:
    def test_reset_db(self, app, db_session, make_order):
        make_order()
        result = _invoke(app, "system", "reset-db", "--yes")
        assert result.exit_code == 0
        assert "Database reset complete" in result.output
        assert db_session.query(Order).count() == 0
