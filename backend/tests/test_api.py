# Overview: Pytest coverage for the HTTP API; status codes, payload shapes and error bodies.

"""
API Tests

Drives the full workflow through the Flask test client:
order -> purchase items -> complete -> production -> store entry -> store logs
and checks the JSON error contract (400 / 404 / 409 / 503).
"""

from sqlalchemy.exc import OperationalError

from garment_erp.services import order_service

from conftest import order_payload


def _create_order(client, **overrides):
    resp = client.post("/api/orders", json=order_payload(**overrides))
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["order"]


def _complete_purchase(client, purchase_id):
    resp = client.put(
        f"/api/purchases/{purchase_id}",
        json={"items": [{"item_type": "fabric", "item_name": "Cotton", "quantity": 100, "cost_per_unit": 90}]},
    )
    assert resp.status_code == 200, resp.get_json()
    resp = client.patch(f"/api/purchases/{purchase_id}/complete")
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


def _create_store_entry(client, purchase_id, store_in=100):
    resp = client.post(
        "/api/store-entries",
        json={
            "purchase_id": purchase_id,
            "store_entry_date": "2025-06-20",
            "entries": [{"item_name": "Cotton", "invoice_qty": store_in, "store_in_qty": store_in}],
        },
    )
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["store_entry"]


class TestOrdersApi:
    def test_create_and_fetch(self, client, db_session):
        order = _create_order(client)
        assert order["order_number"] == "OID-0001"
        assert order["total_qty"] == 13
        assert order["purchase"]["status"] == "Pending"
        assert order["production"] is None

        resp = client.get(f"/api/orders/{order['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["order"]["po_number"] == order["po_number"]

    def test_validation_error_body(self, client, db_session):
        resp = client.post("/api/orders", json=order_payload(order_type="Retail"))
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["field"] == "order_type"
        assert "order_type" in body["error"]

    def test_not_found(self, client, db_session):
        resp = client.get("/api/orders/999")
        assert resp.status_code == 404
        assert "error" in resp.get_json()

    def test_list_with_pagination(self, client, db_session):
        for _ in range(3):
            _create_order(client)
        resp = client.get("/api/orders?limit=2&offset=0")
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["count"] == 3
        assert body["limit"] == 2
        assert len(body["items"]) == 2

        resp = client.get("/api/orders?limit=10000&offset=-5")
        body = resp.get_json()
        assert body["limit"] == 500
        assert body["offset"] == 0

    def test_update_status_and_advance(self, client, db_session):
        order = _create_order(client)

        resp = client.put(
            f"/api/orders/{order['id']}",
            json={"products": [{"product_name": "Polo Shirt", "sizes": [{"size": "XL", "qty": 7}]}]},
        )
        assert resp.get_json()["order"]["total_qty"] == 7

        resp = client.patch(f"/api/orders/{order['id']}/status", json={"status": "Nope"})
        assert resp.status_code == 400

        resp = client.patch(f"/api/orders/{order['id']}/status", json={"status": "Ready for Delivery"})
        assert resp.get_json()["order"]["status"] == "Ready for Delivery"

        resp = client.post(f"/api/orders/{order['id']}/advance")
        assert resp.get_json()["order"]["status"] == "Delivered"

    def test_delete(self, client, db_session):
        order = _create_order(client)
        assert client.delete(f"/api/orders/{order['id']}").status_code == 200
        assert client.get(f"/api/orders/{order['id']}").status_code == 404
        assert client.get(f"/api/purchases/{order['purchase']['id']}").status_code == 404


class TestWorkflowApi:
    def test_purchase_to_store_log(self, client, db_session):
        order = _create_order(client)
        completed = _complete_purchase(client, order["purchase"]["id"])
        assert completed["purchase"]["status"] == "Completed"
        assert completed["purchase"]["grand_total_cost"] == 9000
        production = completed["production"]
        assert production["production_number"] == "PRD-0001"

        resp = client.post(f"/api/productions/{production['id']}/advance", json={"notes": "Cutting floor"})
        assert resp.get_json()["production"]["status"] == "Cutting"

        resp = client.get("/api/store-entries/pending-purchases")
        assert [p["id"] for p in resp.get_json()["items"]] == [order["purchase"]["id"]]

        entry = _create_store_entry(client, order["purchase"]["id"])
        assert entry["store_number"] == "STR-1"
        assert entry["entries"][0]["store_in_qty"] == 100

        resp = client.post(
            "/api/store-logs",
            json={
                "store_entry_id": entry["id"],
                "log_date": "2025-06-21",
                "person_name": "Ravi",
                "items": [{"item_name": "Cotton", "taken_qty": 30}],
            },
        )
        assert resp.status_code == 201
        log = resp.get_json()["store_log"]
        assert log["status"] == "Out"
        assert log["items"][0]["in_hand_qty"] == 30

        resp = client.post(
            "/api/store-logs",
            json={
                "store_entry_id": entry["id"],
                "log_date": "2025-06-21",
                "items": [{"item_name": "Cotton", "taken_qty": 80}],
            },
        )
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["item_name"] == "Cotton"
        assert body["available"] == 70
        assert body["requested"] == 80

        resp = client.get(f"/api/store-logs/available-stock/{entry['id']}")
        stock = resp.get_json()
        assert stock["items"][0]["available_stock"] == 70
        assert stock["items"][0]["initial_stock"] == 100

        resp = client.get(f"/api/store-logs/store-entry/{entry['id']}")
        assert resp.get_json()["count"] == 2

        resp = client.put(f"/api/store-logs/{log['id']}", json={"items": [{"item_name": "Cotton", "taken_qty": 20}]})
        assert resp.status_code == 200
        assert resp.get_json()["store_log"]["total_taken_qty"] == 20

        assert client.delete(f"/api/store-logs/{log['id']}").status_code == 200
        resp = client.get(f"/api/store-logs/available-stock/{entry['id']}")
        assert resp.get_json()["items"][0]["available_stock"] == 100

    def test_store_entry_conflicts(self, client, db_session):
        order = _create_order(client)

        resp = client.post(
            "/api/store-entries",
            json={
                "purchase_id": order["purchase"]["id"],
                "store_entry_date": "2025-06-20",
                "entries": [{"item_name": "Cotton", "store_in_qty": 1}],
            },
        )
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "invalid_state"

        _complete_purchase(client, order["purchase"]["id"])
        _create_store_entry(client, order["purchase"]["id"])
        resp = client.post(
            "/api/store-entries",
            json={
                "purchase_id": order["purchase"]["id"],
                "store_entry_date": "2025-06-20",
                "entries": [{"item_name": "Cotton", "store_in_qty": 1}],
            },
        )
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "already_exists"

        resp = client.get(f"/api/store-entries/purchase/{order['purchase']['id']}")
        assert resp.get_json()["exists"] is True

    def test_manual_production_api(self, client, db_session):
        order = _create_order(client, order_type="JOB-Works")
        resp = client.post("/api/productions", json={"order_id": order["id"]})
        assert resp.status_code == 201

        resp = client.post("/api/productions", json={"order_id": order["id"]})
        assert resp.status_code == 409

        resp = client.post("/api/productions", json={})
        assert resp.status_code == 400

        production_id = client.get("/api/productions").get_json()["items"][0]["id"]
        resp = client.patch(f"/api/productions/{production_id}/status", json={"status": "QC"})
        assert resp.get_json()["production"]["status"] == "QC"
        assert len(resp.get_json()["production"]["history"]) == 2


class TestSequencesAndSystemApi:
    def test_sequence_preview_does_not_issue(self, client, db_session):
        resp = client.get("/api/sequences/globalOrderSeq/next")
        assert resp.get_json() == {"key": "globalOrderSeq", "next": 1, "reserved": False}

        resp = client.get("/api/sequences/preview/order")
        assert resp.get_json()["formatted"] == "OID-0001"

        order = _create_order(client)
        assert order["order_number"] == "OID-0001"

    def test_sequence_preview_errors(self, client, db_session):
        assert client.get("/api/sequences/bad%20key/next").status_code == 400
        assert client.get("/api/sequences/preview/receipt").status_code == 400
        resp = client.get("/api/sequences/preview/order_serial?order_type=FOB")
        assert resp.get_json()["key"] == "orderSeq_FOB"

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["orders"] == 0

    def test_unknown_route_is_json(self, client, db_session):
        resp = client.get("/api/nothing-here")
        assert resp.status_code == 404
        assert "error" in resp.get_json()

    def test_database_busy_is_503(self, client, db_session, monkeypatch):
        def _busy(order_id):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(order_service, "advance_order_status", _busy)
        resp = client.post("/api/orders/1/advance")
        assert resp.status_code == 503
        assert resp.get_json()["retryable"] is True

    def test_cors_header_for_allowed_origin(self, client, db_session):
        resp = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        resp = client.get("/api/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestBillingApi:
    def _document(self, client, document_type="estimation"):
        resp = client.post(
            "/api/documents",
            json={
                "document_type": document_type,
                "document_date": "2025-07-01",
                "customer": {"name": "Acme Apparel", "mobile": "9876543210"},
                "items": [{"product_name": "Polo Shirt", "quantity": 10, "unit_price": "250", "discount": 10}],
            },
        )
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["document"]

    def test_document_convert_and_pay(self, client, db_session):
        estimation = self._document(client)
        assert estimation["document_number"] == "EST-2025-0001"
        assert estimation["grand_total"] == 2250

        resp = client.post(
            f"/api/documents/{estimation['id']}/convert",
            json={"target_type": "invoice", "document_date": "2025-07-02"},
        )
        assert resp.status_code == 201, resp.get_json()
        invoice = resp.get_json()["document"]
        assert invoice["document_number"] == "INV-2025-0001"
        assert invoice["original_document_number"] == "EST-2025-0001"

        resp = client.post(f"/api/documents/{estimation['id']}/convert", json={"target_type": "invoice"})
        assert resp.status_code == 409

        resp = client.post(f"/api/documents/{invoice['id']}/payments", json={"amount": 2250})
        assert resp.status_code == 200
        assert resp.get_json()["document"]["status"] == "Paid"

        resp = client.get(f"/api/documents/{invoice['id']}/history")
        assert resp.get_json()["root"]["document_number"] == "EST-2025-0001"

        resp = client.get("/api/documents?document_type=invoice")
        assert resp.get_json()["count"] == 1

    def test_document_errors(self, client, db_session):
        estimation = self._document(client)
        assert client.post(f"/api/documents/{estimation['id']}/convert", json={}).status_code == 400
        assert client.get("/api/documents/999").status_code == 404
        resp = client.patch(f"/api/documents/{estimation['id']}/status", json={"status": "Converted"})
        assert resp.status_code == 400

    def test_notes(self, client, db_session):
        invoice = self._document(client, "invoice")
        resp = client.post(
            "/api/notes",
            json={
                "note_type": "credit",
                "note_date": "2025-07-15",
                "document_id": invoice["id"],
                "reference_type": "invoice",
                "reason": "discount-allowed",
                "items": [{"description": "Loyalty discount", "quantity": 1, "rate": "250"}],
            },
        )
        assert resp.status_code == 201, resp.get_json()
        note = resp.get_json()["note"]
        assert note["note_number"] == "CN/2025/0001"
        assert note["reference_number"] == "INV-2025-0001"

        resp = client.get("/api/notes/reference/INV-2025-0001")
        assert resp.get_json()["net_adjustment"] == -250

        resp = client.delete(f"/api/notes/{note['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["note"]["status"] == "cancelled"
        assert client.patch(f"/api/notes/{note['id']}/status", json={"status": "issued"}).status_code == 409

    def test_purchase_return(self, client, db_session):
        order = _create_order(client)
        purchase_id = order["purchase"]["id"]

        resp = client.post(
            "/api/purchase-returns",
            json={"purchase_id": purchase_id, "items": [{"item_name": "Cotton", "return_quantity": 5, "return_reason": "defective"}]},
        )
        assert resp.status_code == 409

        _complete_purchase(client, purchase_id)
        resp = client.post(
            "/api/purchase-returns",
            json={
                "purchase_id": purchase_id,
                "return_date": "2025-06-25",
                "items": [{"item_name": "Cotton", "return_quantity": 5, "return_reason": "defective"}],
            },
        )
        assert resp.status_code == 201, resp.get_json()
        created = resp.get_json()["purchase_return"]
        assert created["purt_number"] == "PURT-0001"
        assert created["total_return_value"] == 450
        assert created["debit_note_number"] == "DN/2025/0001"

        resp = client.get(f"/api/purchase-returns/purchase/{purchase_id}")
        assert resp.get_json()["purchase_return"]["id"] == created["id"]

        assert client.delete(f"/api/purchase-returns/{created['id']}").status_code == 200
        assert client.get(f"/api/purchase-returns/{created['id']}").status_code == 404
