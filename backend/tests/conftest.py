"""
Pytest fixtures for the garment ERP backend tests.

Provides an in-memory application, a per-test clean database, a test
client, and small builders that walk a document through the workflow
(order -> purchase -> store entry -> store log).
"""

import pytest

from garment_erp import create_app
from garment_erp.extensions import db
from garment_erp.services import (
    order_service,
    purchase_service,
    store_entry_service,
    store_log_service,
)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DB_RETRY_BACKOFF': 0.0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema (counters included)
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        app.config['STRICT_STATUS_PROGRESSION'] = False

        yield db.session

        # Cleanup after test
        db.session.rollback()


def order_payload(order_type="FOB", sizes=(("S", 8), ("M", 5)), **overrides):
    """Minimal valid order body: one product, the given sizes."""
    payload = {
        "order_type": order_type,
        "order_date": "2025-06-15",
        "buyer": {"name": "Acme Apparel", "mobile": "9876543210", "gst": "29ABCDE1234F1Z5"},
        "products": [
            {
                "product_name": "Polo Shirt",
                "style": "PS-01",
                "color": "Navy",
                "fabric_type": "Pique",
                "sizes": [{"size": size, "qty": qty} for size, qty in sizes],
            }
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture(scope='function')
def make_order(db_session):
    """Factory: create an order (and its placeholder purchase) through the service."""
    def _make(order_type="FOB", sizes=(("S", 8), ("M", 5)), **overrides):
        return order_service.create_order(order_payload(order_type, sizes, **overrides))
    return _make


@pytest.fixture(scope='function')
def completed_purchase(db_session, make_order):
    """Factory: an order whose purchase carries one fabric item and is Completed."""
    def _make(order_type="FOB"):
        order = make_order(order_type)
        purchase_service.update_purchase(
            order.purchase.id,
            items=[
                {
                    "item_type": "fabric",
                    "item_name": "Cotton",
                    "vendor_name": "Sri Textiles",
                    "unit": "mtr",
                    "quantity": 100,
                    "cost_per_unit": "85.50",
                }
            ],
        )
        purchase, _production = purchase_service.complete_purchase(order.purchase.id)
        return purchase
    return _make


@pytest.fixture(scope='function')
def store_entry(db_session, completed_purchase):
    """Factory: a Completed store entry with the given item -> store_in_qty."""
    def _make(items=None, status="Completed"):
        purchase = completed_purchase()
        items = items or {"Cotton": 100}
        return store_entry_service.create_store_entry(
            purchase_id=purchase.id,
            store_entry_date="2025-06-20",
            entries=[
                {"item_name": name, "item_type": "fabric", "unit": "mtr", "invoice_qty": qty, "store_in_qty": qty}
                for name, qty in items.items()
            ],
            status=status,
        )
    return _make


@pytest.fixture(scope='function')
def take(db_session):
    """Shortcut: record one movement log against a store entry."""
    def _take(entry_id, item_name="Cotton", taken=0, returned=0, **fields):
        fields.setdefault("log_date", "2025-06-21")
        return store_log_service.create_store_log(
            entry_id,
            items=[{"item_name": item_name, "taken_qty": taken, "returned_qty": returned}],
            **fields,
        )
    return _take
