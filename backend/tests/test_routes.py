# Overview: Pytest coverage for the HTTP API (envelope, auth, permissions, tenant isolation).

"""
API tests through the Flask test client.

Verifies:
- every response uses the {success, data | error} envelope with numeric amounts
- unauthenticated requests return 401, missing permissions return 403
- another tenant's invoices and drawer sessions look exactly like missing ones
- the end-to-end invoice -> item -> cash payment -> drawer close flow
"""

import pytest

from conftest import auth_headers, get_auth_token
from repairdesk.time_utils import utcnow


def _create_invoice(client, headers, **body):
    resp = client.post("/api/invoices", json=body, headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json["data"]


class TestSystemAndAuth:

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["success"] is True
        assert resp.json["data"]["database"]["status"] == "healthy"

    def test_login_returns_token_and_context(self, client, frontdesk_a, location_a):
        resp = client.post("/api/auth/login", json={"username": "frontdesk_a", "password": "Password123!"})

        assert resp.status_code == 200
        data = resp.json["data"]
        assert data["token"]
        assert data["locationId"] == location_a.id
        assert "TAKE_PAYMENT" in data["permissions"]
        assert "REFUND_PAYMENT" not in data["permissions"]

    def test_bad_password(self, client, frontdesk_a):
        resp = client.post("/api/auth/login", json={"username": "frontdesk_a", "password": "nope"})
        assert resp.status_code == 401
        assert resp.json["success"] is False
        assert resp.json["error"]["message"] == "Invalid credentials"

    def test_login_requires_fields(self, client):
        resp = client.post("/api/auth/login", json={"username": "x"})
        assert resp.status_code == 400
        assert resp.json["error"]["errors"] == [{"field": "password", "message": "is required"}]

    def test_logout_revokes_token(self, client, frontdesk_a):
        token = get_auth_token(client, "frontdesk_a")
        headers = auth_headers(token)

        assert client.get("/api/auth/me", headers=headers).status_code == 200
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/invoices"),
            ("POST", "/api/invoices"),
            ("GET", "/api/invoices/1"),
            ("POST", "/api/invoices/1/items"),
            ("POST", "/api/invoices/1/payments/cash"),
            ("POST", "/api/invoices/1/refund"),
            ("POST", "/api/cash-drawer/open"),
            ("GET", "/api/cash-drawer/current"),
            ("GET", "/api/cash-drawer/history"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.json["success"] is False


class TestRoleGate:

    def test_technician_can_read_but_not_write(self, client, technician_headers):
        assert client.get("/api/invoices", headers=technician_headers).status_code == 200

        resp = client.post("/api/invoices", json={}, headers=technician_headers)
        assert resp.status_code == 403
        assert resp.json["error"]["message"] == "Permission denied"

        assert client.post("/api/cash-drawer/open", json={"openingAmount": 50}, headers=technician_headers).status_code == 403

    def test_frontdesk_cannot_refund(self, client, frontdesk_headers):
        invoice = _create_invoice(client, frontdesk_headers, subtotal=10)
        resp = client.post(
            f"/api/invoices/{invoice['id']}/refund",
            json={"amount": 5, "method": "card"},
            headers=frontdesk_headers,
        )
        assert resp.status_code == 403


class TestInvoiceApi:

    def test_end_to_end_cash_sale(self, client, frontdesk_headers, admin_headers):
        drawer = client.post("/api/cash-drawer/open", json={"openingAmount": 100.00}, headers=frontdesk_headers)
        assert drawer.status_code == 201
        session_id = drawer.json["data"]["id"]

        invoice = _create_invoice(client, frontdesk_headers, subtotal=0, taxRate=8.5)
        assert invoice["status"] == "draft"
        assert invoice["items"] == []

        item = client.post(
            f"/api/invoices/{invoice['id']}/items",
            json={"description": "Screen repair", "quantity": 1, "unitPrice": 100.00, "discountPercent": 10, "type": "service"},
            headers=frontdesk_headers,
        )
        assert item.status_code == 201
        assert item.json["data"]["discountAmount"] == 10.00
        assert item.json["data"]["subtotal"] == 90.00

        fetched = client.get(f"/api/invoices/{invoice['id']}", headers=frontdesk_headers).json["data"]
        assert fetched["subtotal"] == 90.00
        assert fetched["taxAmount"] == 7.65
        assert fetched["totalAmount"] == 97.65
        assert isinstance(fetched["totalAmount"], float)
        assert len(fetched["items"]) == 1

        short = client.post(
            f"/api/invoices/{invoice['id']}/payments/cash", json={"amount": 90.00}, headers=frontdesk_headers
        )
        assert short.status_code == 400

        paid = client.post(
            f"/api/invoices/{invoice['id']}/payments/cash", json={"amount": 97.65}, headers=frontdesk_headers
        )
        assert paid.status_code == 200
        assert paid.json["data"]["status"] == "paid"
        assert paid.json["data"]["cashDrawerSessionId"] == session_id

        again = client.post(
            f"/api/invoices/{invoice['id']}/items",
            json={"description": "Case", "quantity": 1, "unitPrice": 5},
            headers=frontdesk_headers,
        )
        assert again.status_code == 409

        current = client.get("/api/cash-drawer/current", headers=frontdesk_headers).json["data"]
        assert current["cashSales"] == 97.65
        assert current["expectedAmount"] == 197.65

        closed = client.post(
            f"/api/cash-drawer/{session_id}/close", json={"closingAmount": 195.00}, headers=admin_headers
        )
        assert closed.status_code == 200
        assert closed.json["data"]["variance"] == -2.65

        detail = client.get(f"/api/cash-drawer/{session_id}", headers=admin_headers).json["data"]
        assert [e["eventType"] for e in detail["events"]] == ["open", "cash_sale", "close"]

        assert client.get("/api/cash-drawer/current", headers=frontdesk_headers).json["data"] is None

    def test_second_open_is_409(self, client, frontdesk_headers):
        assert client.post("/api/cash-drawer/open", json={"openingAmount": 10}, headers=frontdesk_headers).status_code == 201
        resp = client.post("/api/cash-drawer/open", json={"openingAmount": 10}, headers=frontdesk_headers)
        assert resp.status_code == 409
        assert resp.json["success"] is False

    def test_history_date_range(self, client, frontdesk_headers):
        session_id = client.post(
            "/api/cash-drawer/open", json={"openingAmount": 10}, headers=frontdesk_headers
        ).json["data"]["id"]
        client.post(f"/api/cash-drawer/{session_id}/close", json={"closingAmount": 10}, headers=frontdesk_headers)

        today = utcnow().date().isoformat()
        resp = client.get(f"/api/cash-drawer/history?startDate={today}&endDate={today}", headers=frontdesk_headers)
        assert resp.status_code == 200
        assert [s["id"] for s in resp.json["data"]] == [session_id]
        assert resp.json["data"][0]["variance"] == 0.0

        bad = client.get("/api/cash-drawer/history?endDate=yesterday", headers=frontdesk_headers)
        assert bad.status_code == 400
        assert bad.json["error"]["errors"][0]["field"] == "endDate"

    def test_validation_errors_are_field_level(self, client, frontdesk_headers):
        invoice = _create_invoice(client, frontdesk_headers)
        resp = client.post(
            f"/api/invoices/{invoice['id']}/items",
            json={"description": "", "quantity": 0, "unitPrice": "abc"},
            headers=frontdesk_headers,
        )
        assert resp.status_code == 400
        fields = {e["field"] for e in resp.json["error"]["errors"]}
        assert fields == {"description", "quantity", "unitPrice"}

    def test_update_to_paid_is_400(self, client, frontdesk_headers):
        invoice = _create_invoice(client, frontdesk_headers)
        resp = client.put(f"/api/invoices/{invoice['id']}", json={"status": "paid"}, headers=frontdesk_headers)
        assert resp.status_code == 400

    def test_soft_delete(self, client, frontdesk_headers):
        invoice = _create_invoice(client, frontdesk_headers)

        first = client.delete(f"/api/invoices/{invoice['id']}", headers=frontdesk_headers)
        assert first.status_code == 200
        assert first.json["data"] == {"id": invoice["id"], "deleted": True}

        assert client.get(f"/api/invoices/{invoice['id']}", headers=frontdesk_headers).status_code == 404
        assert client.get("/api/invoices", headers=frontdesk_headers).json["data"] == []
        assert client.delete(f"/api/invoices/{invoice['id']}", headers=frontdesk_headers).status_code == 404

    def test_list_filter_by_status(self, client, frontdesk_headers):
        issued = _create_invoice(client, frontdesk_headers, status="issued")
        _create_invoice(client, frontdesk_headers)

        resp = client.get("/api/invoices?status=issued", headers=frontdesk_headers)
        assert [i["id"] for i in resp.json["data"]] == [issued["id"]]

        assert client.get("/api/invoices?status=bogus", headers=frontdesk_headers).status_code == 400

    def test_card_then_manual_conflict(self, client, frontdesk_headers):
        invoice = _create_invoice(client, frontdesk_headers, subtotal=20, status="issued")

        card = client.post(
            f"/api/invoices/{invoice['id']}/payments/card",
            json={"reference": "ch_9", "amount": 20.00, "succeeded": True},
            headers=frontdesk_headers,
        )
        assert card.status_code == 200
        assert card.json["data"]["paymentReference"] == "ch_9"

        manual = client.post(f"/api/invoices/{invoice['id']}/paid", json={"paymentMethod": "check"}, headers=frontdesk_headers)
        assert manual.status_code == 409

    def test_manager_refund(self, client, manager_a, frontdesk_headers):
        manager_headers = auth_headers(get_auth_token(client, manager_a.username))
        invoice = _create_invoice(client, frontdesk_headers, subtotal=20, status="issued")
        client.post(f"/api/invoices/{invoice['id']}/paid", json={"paymentMethod": "transfer"}, headers=frontdesk_headers)

        resp = client.post(
            f"/api/invoices/{invoice['id']}/refund",
            json={"amount": 5.50, "method": "transfer", "reason": "Goodwill"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json["data"]["refundAmount"] == 5.50
        assert resp.json["data"]["status"] == "paid"


class TestTenantIsolation:

    def test_foreign_invoice_is_404(self, client, frontdesk_headers, admin_b_headers):
        invoice = _create_invoice(client, frontdesk_headers, subtotal=10)

        assert client.get(f"/api/invoices/{invoice['id']}", headers=admin_b_headers).status_code == 404
        assert client.put(f"/api/invoices/{invoice['id']}", json={"notes": "x"}, headers=admin_b_headers).status_code == 404
        assert client.delete(f"/api/invoices/{invoice['id']}", headers=admin_b_headers).status_code == 404
        assert client.post(
            f"/api/invoices/{invoice['id']}/payments/cash", json={"amount": 10}, headers=admin_b_headers
        ).status_code == 404
        assert client.get("/api/invoices", headers=admin_b_headers).json["data"] == []

        # Untouched for the owner
        assert client.get(f"/api/invoices/{invoice['id']}", headers=frontdesk_headers).json["data"]["notes"] is None

    def test_foreign_drawer_is_404(self, client, frontdesk_headers, admin_b_headers):
        session_id = client.post(
            "/api/cash-drawer/open", json={"openingAmount": 10}, headers=frontdesk_headers
        ).json["data"]["id"]

        assert client.get(f"/api/cash-drawer/{session_id}", headers=admin_b_headers).status_code == 404
        assert client.post(
            f"/api/cash-drawer/{session_id}/close", json={"closingAmount": 10}, headers=admin_b_headers
        ).status_code == 404
        assert client.get("/api/cash-drawer/history", headers=admin_b_headers).json["data"] == []

    def test_foreign_location_header_is_404(self, client, frontdesk_headers, location_b):
        headers = dict(frontdesk_headers, **{"X-Location-Id": str(location_b.id)})
        resp = client.post("/api/cash-drawer/open", json={"openingAmount": 10}, headers=headers)
        assert resp.status_code == 404
